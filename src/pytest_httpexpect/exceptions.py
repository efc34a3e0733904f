"""Errors recorded by an expectation chain, one class per failing step."""


class ExpectationChainError(Exception):
    """Base class for every error recorded in an expectation chain."""


class ConfigurationError(ExpectationChainError):
    pass


class RequestError(ExpectationChainError):
    pass


class ResponseError(ExpectationChainError):
    pass


class VerificationError(ExpectationChainError):
    pass


class DecodeError(ExpectationChainError):
    pass


def wrap_error(error_class: type[ExpectationChainError], description: str, cause: BaseException) -> ExpectationChainError:
    """Wrap ``cause`` in ``error_class`` with a message naming the failing step."""
    error = error_class(f"{description}: {cause}")
    error.__cause__ = cause
    return error
