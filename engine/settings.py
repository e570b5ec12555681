"""
Engine Settings
FakeREST Contract Verification

Base URL, default timeout and default headers, read once at setup from
config/engine.yaml and immutable afterwards.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from common.toolkit import Config

DEFAULT_BASE_URL = "https://fakerestapi.azurewebsites.net"
DEFAULT_TIMEOUT_MILLIS = 30_000


class EngineSettings(BaseModel):
    """Configuration surface consumed by the engine."""

    model_config = ConfigDict(frozen=True)

    base_url: str = DEFAULT_BASE_URL
    timeout_millis: float = Field(default=DEFAULT_TIMEOUT_MILLIS, gt=0)
    default_headers: dict[str, str] = Field(default_factory=lambda: {"Accept": "application/json"})

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @field_validator("timeout_millis", mode="before")
    @classmethod
    def empty_timeout_uses_default(cls, v):
        # An unset ${VAR} substitutes to ""
        return DEFAULT_TIMEOUT_MILLIS if v in (None, "") else v


def load_settings(config: Config = None, **overrides) -> EngineSettings:
    """
    Build settings from the "engine" section of config/engine.yaml.

    Keyword overrides (e.g. from CLI flags) win when not None.
    """
    config = config or Config()
    values = dict(config.get("engine.engine", {}) or {})
    values = {k: v for k, v in values.items() if v not in (None, "")}
    values.update({k: v for k, v in overrides.items() if v is not None})
    return EngineSettings(**values)
