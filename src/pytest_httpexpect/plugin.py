"""Pytest plugin for fluent HTTP API assertions.

Registers ini options for the default base URL and timeout and provides
fixtures creating ``Client`` instances configured from them.
"""

import logging
from collections.abc import Callable, Iterator

import httpx
import pytest
from _pytest import config
from _pytest.config import argparsing
from pydantic import ValidationError

from pytest_httpexpect.constants import ConfigOptions

from .client import Client
from .settings import ClientSettings

logger = logging.getLogger(__name__)

settings_key = pytest.StashKey[ClientSettings]()

ClientFactory = Callable[..., Client]


def pytest_addoption(parser: argparsing.Parser) -> None:
    """Add ini options for the plugin.

    Registers configuration options that can be set in pytest.ini:
    - httpexpect_base_url: URL paths of the ``http_client`` fixture are joined to
    - httpexpect_timeout: Request timeout in seconds, 0 disables it

    Args:
        parser: Pytest's argument parser to add options to
    """
    parser.addini(
        name=ConfigOptions.BASE_URL,
        help="Base URL for clients created by the http_client fixtures.",
        type="string",
        default="",
    )
    parser.addini(
        name=ConfigOptions.TIMEOUT,
        help="Request timeout in seconds for clients created by the http_client fixtures.",
        type="string",
        default="",
    )


def load_settings(config: config.Config) -> ClientSettings:
    """Build client settings from ini options; unset options fall back to the environment."""
    values = {}
    base_url = str(config.getini(ConfigOptions.BASE_URL))
    if base_url:
        values["base_url"] = base_url
    timeout = str(config.getini(ConfigOptions.TIMEOUT))
    if timeout:
        values["timeout"] = timeout
    return ClientSettings(**values)


def pytest_configure(config: config.Config) -> None:
    """Validate configuration settings.

    Raises:
        ValueError: If configuration values are invalid
    """
    try:
        settings = load_settings(config)
    except ValidationError as e:
        error_details = []
        for error in e.errors():
            loc = " -> ".join(str(x) for x in error["loc"])
            error_details.append(f"  - {loc}: {error['msg']}")
        raise ValueError("Invalid pytest-httpexpect configuration:\n" + "\n".join(error_details)) from None

    config.stash[settings_key] = settings
    logger.debug(f"Loaded settings: {settings}")


@pytest.fixture
def httpexpect_settings(pytestconfig: pytest.Config) -> ClientSettings:
    return pytestconfig.stash[settings_key]


@pytest.fixture
def http_client_factory(httpexpect_settings: ClientSettings) -> Iterator[ClientFactory]:
    """Factory creating clients from the configured defaults, closed after the test."""
    created: list[Client] = []

    def _create(base_url: str | None = None, http_client: httpx.Client | None = None) -> Client:
        client = Client(
            base_url if base_url is not None else httpexpect_settings.base_url,
            http_client=http_client,
        ).with_timeout(httpexpect_settings.timeout)
        created.append(client)
        return client

    yield _create

    for client in created:
        client.close()


@pytest.fixture
def http_client(http_client_factory: ClientFactory) -> Client:
    return http_client_factory()
