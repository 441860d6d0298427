"""Root `Settings` model.

Precedence, highest first: constructor arguments, TOOLGATE_* environment
variables (``__`` separates nested keys), the merged TOML layers, model
defaults. A bare ``Settings()`` ignores TOML; use `Settings.from_toml`.
"""

from contextvars import ContextVar
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from toolgate.config.models.api import APIConfig
from toolgate.config.models.auth import AuthConfig, SecretsConfig
from toolgate.config.models.gateway import DiscoveryConfig, GatewayConfig
from toolgate.config.models.observability import ObservabilityConfig
from toolgate.config.models.providers import ProvidersConfig
from toolgate.config.models.storage import StorageConfig

_toml_layers: ContextVar[dict[str, Any] | None] = ContextVar("toml_layers", default=None)


class TomlLayersSource(PydanticBaseSettingsSource):
    """Serves the TOML dict installed by `Settings.from_toml`."""

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        data = _toml_layers.get() or {}
        return data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(_toml_layers.get() or {})


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TOOLGATE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "toolgate"
    debug: bool = False

    api: APIConfig = Field(default_factory=APIConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    secrets: SecretsConfig = Field(default_factory=SecretsConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @classmethod
    def from_toml(cls, data: dict[str, Any]) -> "Settings":
        token = _toml_layers.set(data)
        try:
            return cls()
        finally:
            _toml_layers.reset(token)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, TomlLayersSource(settings_cls)
