"""Fluent HTTP API assertions with a sticky error per client."""

from pytest_httpexpect.client import Client
from pytest_httpexpect.exceptions import (
    ConfigurationError,
    DecodeError,
    ExpectationChainError,
    RequestError,
    ResponseError,
    VerificationError,
)
from pytest_httpexpect.response import NOP_RESPONSE, NopResponseWrapper, ResponseInspector, ResponseWrapper

__all__ = [
    "Client",
    "ConfigurationError",
    "DecodeError",
    "ExpectationChainError",
    "NOP_RESPONSE",
    "NopResponseWrapper",
    "RequestError",
    "ResponseError",
    "ResponseInspector",
    "ResponseWrapper",
    "VerificationError",
]
