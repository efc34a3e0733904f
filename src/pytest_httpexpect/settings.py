from pydantic import Field, NonNegativeFloat
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Defaults for clients created by the plugin fixtures.

    Values come from pytest ini options, falling back to ``HTTPEXPECT_*``
    environment variables.
    """

    base_url: str = Field(default="", description="URL request paths are joined to.")
    timeout: NonNegativeFloat = Field(default=0.0, description="Request timeout in seconds, 0 disables it.")

    model_config = SettingsConfigDict(env_prefix="HTTPEXPECT_")
