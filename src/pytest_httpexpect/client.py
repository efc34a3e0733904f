"""Request builder with a sticky error shared by every response it produces.

Configuration methods mutate the client and return it, so they chain. Action
methods perform exactly one request and return a response wrapper. Once any
step fails the error is kept on the client and every further call becomes a
no-op until the caller inspects ``Client.error`` or calls ``raise_for_error``.
"""

import logging
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from datetime import timedelta
from http import HTTPMethod
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any, Self

import httpx
from pydantic_core import PydanticSerializationError, to_json

from .exceptions import ConfigurationError, ExpectationChainError, RequestError, wrap_error
from .response import NOP_RESPONSE, ResponseInspector, ResponseWrapper
from .sticky import StickyError

logger = logging.getLogger(__name__)

FormData = Mapping[str, str | bytes | Sequence[str | bytes]]

JSON_CONTENT_TYPE = "application/json"


def _rejecting_cookie_jar() -> CookieJar:
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def _form_value(value: str | bytes) -> str:
    return value.decode() if isinstance(value, bytes) else value


class _DeadlineStream(httpx.SyncByteStream):
    """Response stream failing with ``httpx.ReadTimeout`` once the request deadline has passed."""

    def __init__(self, stream: httpx.SyncByteStream, deadline: float) -> None:
        self._stream = stream
        self._deadline = deadline

    def _check_deadline(self) -> None:
        if time.monotonic() > self._deadline:
            raise httpx.ReadTimeout("response not received within the timeout")

    def __iter__(self) -> Iterator[bytes]:
        self._check_deadline()
        for chunk in self._stream:
            self._check_deadline()
            yield chunk

    def close(self) -> None:
        self._stream.close()


class Client:
    """Fluent HTTP client for API tests.

    Args:
        base_url: URL every request path is joined to.
        http_client: Transport to send requests with. A new ``httpx.Client``
            without a default timeout is created (and owned) when omitted.
            The cookie jar of an owned client accepts nothing, cookies are
            kept per ``Client`` instead (see ``use_cookies``). A client passed
            in keeps its own jar and whatever cookies the caller put there.
        cookie_factory: Creates the cookie jar enabled by ``use_cookies``.
    """

    def __init__(
        self,
        base_url: str,
        http_client: httpx.Client | None = None,
        cookie_factory: Callable[[], httpx.Cookies] = httpx.Cookies,
    ) -> None:
        self._base_url = base_url
        self._owns_http_client = http_client is None
        if http_client is None:
            http_client = httpx.Client(timeout=None, cookies=_rejecting_cookie_jar())
        self._http_client = http_client
        self._cookie_factory = cookie_factory

        self._error = StickyError()
        self._basic_auth: tuple[str, str] | None = None
        self._cookies: httpx.Cookies | None = None
        self._headers: list[tuple[str, str]] = []
        self._timeout: float | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def error(self) -> BaseException | None:
        return self._error.get()

    @property
    def headers(self) -> httpx.Headers:
        """Copy of the headers added to every request."""
        return httpx.Headers(self._headers)

    def raise_for_error(self) -> Self:
        """Raise the recorded error, if any."""
        error = self._error.get()
        if error is not None:
            raise error
        return self

    # Configuration

    def no_basic_auth(self) -> Self:
        if self.error is not None:
            return self
        self._basic_auth = None
        return self

    def use_basic_auth(self, user: str, password: str) -> Self:
        if self.error is not None:
            return self
        self._basic_auth = (user, password)
        return self

    def use_cookies(self, use: bool) -> Self:
        if self.error is not None:
            return self
        if not use:
            self._cookies = None
            return self
        try:
            self._cookies = self._cookie_factory()
        except Exception as e:
            self._error.set(wrap_error(ConfigurationError, "creating cookie jar", e))
        return self

    def with_header(self, key: str, value: str) -> Self:
        if self.error is not None:
            return self
        self._headers.append((key, value))
        return self

    def with_timeout(self, timeout: float | timedelta | None) -> Self:
        """Bound every following request, body included, by ``timeout`` seconds; falsy disables it."""
        if self.error is not None:
            return self
        if isinstance(timeout, timedelta):
            timeout = timeout.total_seconds()
        self._timeout = timeout or None
        return self

    def clone(self) -> Self:
        """Copy of this client with its own headers, cookies and error.

        The transport is shared. A client holding an error is returned as is.
        """
        if self.error is not None:
            return self
        cloned = type(self)(self._base_url, http_client=self._http_client, cookie_factory=self._cookie_factory)
        cloned._basic_auth = self._basic_auth
        cloned._headers = list(self._headers)
        cloned._timeout = self._timeout
        if self._cookies is not None:
            cloned.use_cookies(True)
        return cloned

    def close(self) -> None:
        if self._owns_http_client:
            self._http_client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Actions

    def delete(self, path: str) -> ResponseInspector:
        return self._request(HTTPMethod.DELETE, path)

    def get(self, path: str) -> ResponseInspector:
        return self._request(HTTPMethod.GET, path)

    def head(self, path: str) -> ResponseInspector:
        return self._request(HTTPMethod.HEAD, path)

    def options(self, path: str) -> ResponseInspector:
        return self._request(HTTPMethod.OPTIONS, path)

    def patch(self, path: str, body: Any) -> ResponseInspector:
        return self._request_json(HTTPMethod.PATCH, path, body)

    def post(self, path: str, body: Any) -> ResponseInspector:
        return self._request_json(HTTPMethod.POST, path, body)

    def put(self, path: str, body: Any) -> ResponseInspector:
        return self._request_json(HTTPMethod.PUT, path, body)

    def patch_no_body(self, path: str) -> ResponseInspector:
        return self._request(HTTPMethod.PATCH, path)

    def post_no_body(self, path: str) -> ResponseInspector:
        return self._request(HTTPMethod.POST, path)

    def put_no_body(self, path: str) -> ResponseInspector:
        return self._request(HTTPMethod.PUT, path)

    def patch_string(self, path: str, body: str) -> ResponseInspector:
        return self._request(HTTPMethod.PATCH, path, content=body)

    def post_string(self, path: str, body: str) -> ResponseInspector:
        return self._request(HTTPMethod.POST, path, content=body)

    def put_string(self, path: str, body: str) -> ResponseInspector:
        return self._request(HTTPMethod.PUT, path, content=body)

    def patch_bytes(self, path: str, body: bytes) -> ResponseInspector:
        return self._request(HTTPMethod.PATCH, path, content=body)

    def post_bytes(self, path: str, body: bytes) -> ResponseInspector:
        return self._request(HTTPMethod.POST, path, content=body)

    def put_bytes(self, path: str, body: bytes) -> ResponseInspector:
        return self._request(HTTPMethod.PUT, path, content=body)

    def patch_form(self, path: str, body: FormData) -> ResponseInspector:
        return self._request(HTTPMethod.PATCH, path, form=body)

    def post_form(self, path: str, body: FormData) -> ResponseInspector:
        return self._request(HTTPMethod.POST, path, form=body)

    def put_form(self, path: str, body: FormData) -> ResponseInspector:
        return self._request(HTTPMethod.PUT, path, form=body)

    # Plumbing

    def _build_url(self, path: str) -> str:
        return f"{self._base_url.rstrip('/')}/{path.lstrip('/')}"

    def _request_json(self, method: HTTPMethod, path: str, body: Any) -> ResponseInspector:
        if self.error is not None:
            return NOP_RESPONSE
        try:
            content = to_json(body)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            self._error.set(wrap_error(RequestError, "marshalling JSON body", e))
            return NOP_RESPONSE
        return self._request(method, path, content=content, content_type=JSON_CONTENT_TYPE)

    def _request(
        self,
        method: HTTPMethod,
        path: str,
        content: str | bytes | None = None,
        form: FormData | None = None,
        content_type: str | None = None,
    ) -> ResponseInspector:
        if self.error is not None:
            return NOP_RESPONSE

        deadline = time.monotonic() + self._timeout if self._timeout is not None else None
        try:
            request = self._build_request(method, path, content, form, content_type)
        except (httpx.HTTPError, httpx.InvalidURL, TypeError, ValueError) as e:
            self._error.set(wrap_error(RequestError, "creating request", e))
            return ResponseWrapper(None, self._error.get, self._error.set)

        return self._send(request, deadline)

    def _build_request(
        self,
        method: HTTPMethod,
        path: str,
        content: str | bytes | None,
        form: FormData | None,
        content_type: str | None,
    ) -> httpx.Request:
        headers = httpx.Headers(self._headers)
        if content_type is not None and "content-type" not in headers:
            headers["Content-Type"] = content_type

        form_data = None
        if form is not None:
            form_data = {
                key: _form_value(value) if isinstance(value, str | bytes) else [_form_value(item) for item in value]
                for key, value in form.items()
            }
        request = self._http_client.build_request(
            method.value,
            self._build_url(path),
            content=content,
            data=form_data,
            headers=headers,
            timeout=self._timeout if self._timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
        if self._cookies is not None:
            self._cookies.set_cookie_header(request)
        return request

    def _send(self, request: httpx.Request, deadline: float | None) -> ResponseInspector:
        def annotate(error: BaseException) -> BaseException:
            error_class = type(error) if isinstance(error, ExpectationChainError) else RequestError
            return wrap_error(error_class, f"doing a {request.method} request to URL {str(request.url)!r}", error)

        auth = httpx.BasicAuth(*self._basic_auth) if self._basic_auth is not None else httpx.USE_CLIENT_DEFAULT
        logger.debug(f"{request.method} {request.url}")
        try:
            response = self._http_client.send(request, auth=auth, stream=True)
        except Exception as e:
            self._error.set(annotate(e))
            return ResponseWrapper(None, self._error.get, self._error.set)

        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        if self._cookies is not None:
            self._cookies.extract_cookies(response)
        if deadline is not None:
            response.stream = _DeadlineStream(response.stream, deadline)
        return ResponseWrapper(response, self._error.get, self._error.annotated_setter(annotate))

    def __repr__(self) -> str:
        return f"<Client base_url={self._base_url!r} error={self.error!r}>"
