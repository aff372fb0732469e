"""Auth State Store - cache-coherent persistence of per-identity auth state."""

from auth_state.caching import IdentityCache
from auth_state.codecs import BufferJSONCodec, Codec
from auth_state.config import CacheConfig, DatabaseConfig, StoreConfig
from auth_state.exceptions import AuthStateError, BackendError, CodecError, ConfigError
from auth_state.observability import (
    IdentityContext,
    LogLevel,
    StructuredLogger,
    Timer,
    configure_logging,
    emit_counter,
    emit_metric,
    emit_timer,
    get_logger,
    register_metric_callback,
    unregister_metric_callback,
)
from auth_state.protocols import AuthCapabilities, Database, Row
from auth_state.store import (
    AuthenticationState,
    AuthStateStore,
    ReadResult,
    ReadStatus,
    open_auth_state,
)

__version__ = "0.1.0"
__all__ = [
    # Core
    "AuthCapabilities",
    "AuthStateStore",
    "AuthenticationState",
    "IdentityCache",
    "ReadResult",
    "ReadStatus",
    "open_auth_state",
    # Configuration
    "CacheConfig",
    "DatabaseConfig",
    "StoreConfig",
    # Codecs & protocols
    "BufferJSONCodec",
    "Codec",
    "Database",
    "Row",
    # Errors
    "AuthStateError",
    "BackendError",
    "CodecError",
    "ConfigError",
    # Observability
    "IdentityContext",
    "LogLevel",
    "StructuredLogger",
    "Timer",
    "configure_logging",
    "emit_counter",
    "emit_metric",
    "emit_timer",
    "get_logger",
    "register_metric_callback",
    "unregister_metric_callback",
]
