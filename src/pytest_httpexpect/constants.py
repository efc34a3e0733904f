from enum import StrEnum


class ConfigOptions(StrEnum):
    """Configuration option names for the pytest-httpexpect plugin."""

    BASE_URL = "httpexpect_base_url"
    TIMEOUT = "httpexpect_timeout"
