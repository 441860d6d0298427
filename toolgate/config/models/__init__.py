"""Configuration model exports.

    from toolgate.config.models import APIConfig, StorageConfig
"""

from toolgate.config.models.api import APIConfig, RateLimitConfig
from toolgate.config.models.auth import AuthConfig, SecretsConfig
from toolgate.config.models.gateway import DiscoveryConfig, GatewayConfig, WeeklyQuotaConfig
from toolgate.config.models.observability import (
    LoggingConfig,
    MetricsConfig,
    ObservabilityConfig,
    TracingConfig,
)
from toolgate.config.models.providers import (
    BundlerConfig,
    EmbeddingProviderConfig,
    ProvidersConfig,
    SandboxConfig,
)
from toolgate.config.models.storage import (
    BlobConfig,
    GrantCacheConfig,
    PostgresConfig,
    RedisConfig,
    StorageConfig,
)

__all__ = [
    "APIConfig",
    "AuthConfig",
    "BlobConfig",
    "BundlerConfig",
    "DiscoveryConfig",
    "EmbeddingProviderConfig",
    "GatewayConfig",
    "GrantCacheConfig",
    "LoggingConfig",
    "MetricsConfig",
    "ObservabilityConfig",
    "PostgresConfig",
    "ProvidersConfig",
    "RateLimitConfig",
    "RedisConfig",
    "SandboxConfig",
    "SecretsConfig",
    "StorageConfig",
    "TracingConfig",
    "WeeklyQuotaConfig",
]
