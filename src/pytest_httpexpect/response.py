"""Chainable assertions over a completed HTTP response.

A ``ResponseWrapper`` reads the response body once, at construction, and then
checks the materialized body, the headers and the status code. Failures are
recorded through the error setter shared with the owning client; once that
error is set every method is a no-op returning the same wrapper.

``NopResponseWrapper`` stands in for a response when no request could be made
at all.
"""

import dataclasses
import json
import logging
from collections.abc import Callable
from http import HTTPStatus
from typing import Any, Protocol, Self

import httpx
from pydantic import BaseModel, TypeAdapter

from .exceptions import DecodeError, RequestError, ResponseError, VerificationError, wrap_error
from .sticky import ErrorGetter, ErrorSetter

logger = logging.getLogger(__name__)

BodyPredicate = Callable[[str], bool]
ResponsePredicate = Callable[[httpx.Response, str], bool]


class ResponseInspector(Protocol):
    """Interface shared by real and null response wrappers."""

    @property
    def body(self) -> str: ...

    @property
    def response(self) -> httpx.Response | None: ...

    def expect_body_contains(self, needle: str) -> Self: ...

    def expect_body_equals(self, value: str) -> Self: ...

    def expect_body_not_contains(self, needle: str) -> Self: ...

    def expect_body_not_equals(self, value: str) -> Self: ...

    def expect_body_passes(self, predicate: BodyPredicate) -> Self: ...

    def expect_header_contains(self, key: str, needle: str) -> Self: ...

    def expect_header_equals(self, key: str, value: str) -> Self: ...

    def expect_header_not_contains(self, key: str, needle: str) -> Self: ...

    def expect_header_not_equals(self, key: str, value: str) -> Self: ...

    def expect_header_not_present(self, key: str) -> Self: ...

    def expect_header_present(self, key: str) -> Self: ...

    def expect_passes(self, predicate: ResponsePredicate) -> Self: ...

    def expect_status(self, code: int | HTTPStatus) -> Self: ...

    def parse_body(self, dest: Any) -> Self: ...


class ResponseWrapper:
    def __init__(
        self,
        response: httpx.Response | None,
        get_error: ErrorGetter,
        set_error: ErrorSetter,
    ) -> None:
        self._response = response
        self._get_error = get_error
        self._set_error = set_error
        self._body = ""

        try:
            if get_error() is not None:
                return
            if response is None:
                set_error(ResponseError("reading response body: no response received"))
                return
            try:
                response.read()
            except httpx.TimeoutException as e:
                set_error(wrap_error(RequestError, "reading response body", e))
                return
            except (httpx.HTTPError, httpx.StreamError, OSError) as e:
                set_error(wrap_error(ResponseError, "reading response body", e))
                return
            self._body = response.text
            logger.debug(f"Read {len(response.content)} bytes of response body")
        finally:
            if response is not None:
                response.close()

    @property
    def body(self) -> str:
        return self._body

    @property
    def response(self) -> httpx.Response | None:
        return self._response

    def _failed(self) -> bool:
        return self._get_error() is not None

    def _fail(self, message: str) -> None:
        self._set_error(VerificationError(message))

    def expect_body_contains(self, needle: str) -> Self:
        if self._failed():
            return self
        if needle not in self._body:
            self._fail(f"expected body to contain {needle!r} but it did not")
        return self

    def expect_body_equals(self, value: str) -> Self:
        if self._failed():
            return self
        if self._body != value:
            self._fail(f"expected body to be {value!r} but it was not")
        return self

    def expect_body_not_contains(self, needle: str) -> Self:
        if self._failed():
            return self
        if needle in self._body:
            self._fail(f"expected body to not contain {needle!r} but it does")
        return self

    def expect_body_not_equals(self, value: str) -> Self:
        if self._failed():
            return self
        if self._body == value:
            self._fail(f"expected body not to be {value!r} but it was")
        return self

    def expect_body_passes(self, predicate: BodyPredicate) -> Self:
        if self._failed():
            return self
        self._check_predicate(predicate, self._body)
        return self

    def _header_values(self, key: str) -> list[str] | None:
        """Values of header ``key``, or ``None`` when the response carries no headers at all."""
        headers = self._response.headers
        if not headers:
            return None
        return headers.get_list(key)

    def expect_header_contains(self, key: str, needle: str) -> Self:
        if self._failed():
            return self
        values = self._header_values(key)
        if values is None:
            self._fail(f"expected a header {key!r} containing {needle!r}, but there are no headers")
        elif not any(needle in value for value in values):
            self._fail(f"expected a header {key!r} containing {needle!r}, but it did not")
        return self

    def expect_header_equals(self, key: str, value: str) -> Self:
        if self._failed():
            return self
        values = self._header_values(key)
        if values is None:
            self._fail(f"expected a header {key!r} equal to {value!r}, but there are no headers")
        elif value not in values:
            self._fail(f"expected a header {key!r} equal to {value!r}, but it was not")
        return self

    # Negative header checks pass trivially when there are no headers.

    def expect_header_not_contains(self, key: str, needle: str) -> Self:
        if self._failed():
            return self
        values = self._header_values(key) or []
        if any(needle in value for value in values):
            self._fail(f"expected a header {key!r} to not contain {needle!r}, but it does")
        return self

    def expect_header_not_equals(self, key: str, value: str) -> Self:
        if self._failed():
            return self
        values = self._header_values(key) or []
        if value in values:
            self._fail(f"expected a header {key!r} to not be {value!r}, but it is")
        return self

    def expect_header_not_present(self, key: str) -> Self:
        if self._failed():
            return self
        if self._header_values(key):
            self._fail(f"expected a header {key!r} not to be present, but it was")
        return self

    def expect_header_present(self, key: str) -> Self:
        if self._failed():
            return self
        values = self._header_values(key)
        if values is None:
            self._fail(f"expected a header {key!r}, but there are no headers")
        elif not values:
            self._fail(f"expected a header {key!r} to be present, but it was not")
        return self

    def expect_passes(self, predicate: ResponsePredicate) -> Self:
        if self._failed():
            return self
        self._check_predicate(predicate, self._response, self._body)
        return self

    def expect_status(self, code: int | HTTPStatus) -> Self:
        if self._failed():
            return self
        if self._response.status_code != code:
            self._fail(f"expected status code {int(code)} but got {self._response.status_code}")
        return self

    def parse_body(self, dest: Any) -> Self:
        """Decode the body as JSON into ``dest`` in place.

        ``dest`` may be a pydantic model instance, a dataclass instance, a dict
        or a list. Models and dataclasses are validated as a whole before any
        field is copied; unknown keys are ignored. On failure ``dest`` is left
        as it was.
        """
        if self._failed():
            return self
        try:
            _decode_into(self._body, dest)
        except (ValueError, TypeError, AttributeError) as e:
            self._set_error(wrap_error(DecodeError, "unmarshalling body", e))
        return self

    def _check_predicate(self, predicate: Callable[..., bool], *args: Any) -> None:
        try:
            passed = predicate(*args)
        except Exception as e:
            self._set_error(wrap_error(VerificationError, "calling predicate", e))
            return
        if not passed:
            self._fail("expected function to pass, but it did not")

    def __repr__(self) -> str:
        status = self._response.status_code if self._response is not None else None
        return f"<ResponseWrapper status={status}>"


def _decode_into(body: str, dest: Any) -> None:
    if isinstance(dest, BaseModel):
        model_class = type(dest)
        parsed = model_class.model_validate_json(body)
        for name in model_class.model_fields:
            setattr(dest, name, getattr(parsed, name))
        return

    if dataclasses.is_dataclass(dest) and not isinstance(dest, type):
        parsed = TypeAdapter(type(dest)).validate_json(body)
        for field in dataclasses.fields(dest):
            setattr(dest, field.name, getattr(parsed, field.name))
        return

    match dest:
        case dict():
            value = json.loads(body)
            if not isinstance(value, dict):
                raise TypeError(f"cannot decode JSON {type(value).__name__} into dict")
            dest.update(value)
        case list():
            value = json.loads(body)
            if not isinstance(value, list):
                raise TypeError(f"cannot decode JSON {type(value).__name__} into list")
            dest[:] = value
        case _:
            raise TypeError(f"cannot decode JSON into {type(dest).__name__}")


class NopResponseWrapper:
    """Response wrapper for a request that was never made; every call is a no-op."""

    @property
    def body(self) -> str:
        return ""

    @property
    def response(self) -> None:
        return None

    def expect_body_contains(self, needle: str) -> Self:
        return self

    def expect_body_equals(self, value: str) -> Self:
        return self

    def expect_body_not_contains(self, needle: str) -> Self:
        return self

    def expect_body_not_equals(self, value: str) -> Self:
        return self

    def expect_body_passes(self, predicate: BodyPredicate) -> Self:
        return self

    def expect_header_contains(self, key: str, needle: str) -> Self:
        return self

    def expect_header_equals(self, key: str, value: str) -> Self:
        return self

    def expect_header_not_contains(self, key: str, needle: str) -> Self:
        return self

    def expect_header_not_equals(self, key: str, value: str) -> Self:
        return self

    def expect_header_not_present(self, key: str) -> Self:
        return self

    def expect_header_present(self, key: str) -> Self:
        return self

    def expect_passes(self, predicate: ResponsePredicate) -> Self:
        return self

    def expect_status(self, code: int | HTTPStatus) -> Self:
        return self

    def parse_body(self, dest: Any) -> Self:
        return self

    def __repr__(self) -> str:
        return "<NopResponseWrapper>"


NOP_RESPONSE = NopResponseWrapper()
