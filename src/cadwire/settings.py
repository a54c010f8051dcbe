from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cadwire.types import ContainerMode


class LocatorSettings(BaseSettings):
    """Service locator settings read from ``CADWIRE_*`` environment variables.

    ``CADWIRE_MODE`` accepts a ``ContainerMode`` value in any case, e.g.
    ``prefer_minimal`` or ``PREFER_MINIMAL``.
    """

    model_config = SettingsConfigDict(env_prefix="CADWIRE_")

    mode: ContainerMode = ContainerMode.AUTO

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value
