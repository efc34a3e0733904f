"""First-failure-wins error cell shared by a client and the responses it produces."""

import logging
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

ErrorGetter = Callable[[], BaseException | None]
ErrorSetter = Callable[[BaseException], None]


class StickyError:
    """Lock-guarded optional error shared by a client and its response wrappers.

    Only the first recorded error is kept; later writes are discarded.
    """

    def __init__(self) -> None:
        self._error: BaseException | None = None
        self._lock = threading.Lock()

    def get(self) -> BaseException | None:
        with self._lock:
            return self._error

    def set(self, error: BaseException) -> None:
        with self._lock:
            if self._error is not None:
                return
            self._error = error
        logger.info(f"Chain failed: {error}")

    def annotated_setter(self, annotate: Callable[[BaseException], BaseException]) -> ErrorSetter:
        """Return a setter that passes each error through ``annotate`` before recording it."""

        def _set(error: BaseException) -> None:
            self.set(annotate(error))

        return _set
