"""Auth state store exceptions."""


class AuthStateError(Exception):
    """Base exception for auth-state-store."""

    pass


class ConfigError(AuthStateError):
    """Configuration error."""

    pass


class BackendError(AuthStateError):
    """Durable backend could not serve a request."""

    pass


class CodecError(AuthStateError):
    """Stored value could not be encoded or decoded."""

    pass
