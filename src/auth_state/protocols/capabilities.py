"""Capabilities the caller supplies to an auth state store."""

from dataclasses import dataclass, field
from typing import Any, Callable

from auth_state.codecs import BufferJSONCodec, Codec
from auth_state.exceptions import ConfigError

CredsFactory = Callable[[], Any]
KeyDecoder = Callable[[Any], Any]


@dataclass
class AuthCapabilities:
    """Narrow bundle of caller-supplied functions.

    Attributes:
        init_creds: Builds fresh credentials for an identity with none stored
        codec: Encodes values to stored JSON text and back
        decode_app_state_sync_key: Turns a stored ``app-state-sync-key``
            value into the protocol's key-data object. Values are returned
            unchanged when not set.
    """

    init_creds: CredsFactory
    codec: Codec = field(default_factory=BufferJSONCodec)
    decode_app_state_sync_key: KeyDecoder | None = None

    def validate(self) -> "AuthCapabilities":
        """Check every capability has the expected shape.

        Raises:
            ConfigError: If a capability is missing or not callable
        """
        if not callable(self.init_creds):
            raise ConfigError("init_creds must be a function.")
        if self.codec is None or not (
            callable(getattr(self.codec, "encode", None))
            and callable(getattr(self.codec, "decode", None))
        ):
            raise ConfigError("codec must provide encode() and decode().")
        if self.decode_app_state_sync_key is not None and not callable(
            self.decode_app_state_sync_key
        ):
            raise ConfigError("decode_app_state_sync_key must be a function.")
        return self

    def decode_key(self, value: Any) -> Any:
        """Apply the app-state-sync-key decoder, if any."""
        if self.decode_app_state_sync_key is None:
            return value
        return self.decode_app_state_sync_key(value)
