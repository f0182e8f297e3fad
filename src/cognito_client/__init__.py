"""Cognito user-pool client using the SRP password flow.

This package authenticates a user the way the provider's browser SDK does:
the password never leaves the process, only an SRP proof does.  It then
keeps the resulting tokens, refreshes them on request and caches the user's
attributes.

Sub-modules
-----------
clock
    Test-friendly time abstraction.
config
    Timeout / endpoint settings and environment helpers.
errors
    Exception taxonomy surfaced to callers.
models
    Immutable credentials and token snapshots.
srp
    Default SRP challenge engine.
transport
    ``requests``-based transport and error-envelope classification.
session
    :class:`SessionManager`, the handshake and token lifecycle.
log_utils
    Structured logging helpers (thin wrapper around :pymod:`logging`).

All public objects are re-exported here for convenience.
"""

from __future__ import annotations

from .clock import Clock, default_clock  # noqa: F401
from .config import ClientConfig, credentials_from_env  # noqa: F401
from .errors import (  # noqa: F401
    CognitoClientError,
    CryptoError,
    EmptyProfileError,
    MalformedResponseError,
    MissingTokensError,
    NoSessionError,
    ProtocolStateError,
    RemoteAuthError,
    TransportError,
    UnexpectedChallengeError,
    ValidationError,
)
from .models import Credentials, Profile, TokenSet  # noqa: F401
from .srp import ChallengeEngine, CognitoSRP  # noqa: F401
from .transport import HttpTransport, Transport, classify_error  # noqa: F401
from .session import SessionManager  # noqa: F401
from .log_utils import get_auth_logger, mask_sensitive  # noqa: F401

__all__ = [
    # clock
    "Clock",
    "default_clock",
    # config
    "ClientConfig",
    "credentials_from_env",
    # errors
    "CognitoClientError",
    "CryptoError",
    "EmptyProfileError",
    "MalformedResponseError",
    "MissingTokensError",
    "NoSessionError",
    "ProtocolStateError",
    "RemoteAuthError",
    "TransportError",
    "UnexpectedChallengeError",
    "ValidationError",
    # models
    "Credentials",
    "Profile",
    "TokenSet",
    # engine & transport
    "ChallengeEngine",
    "CognitoSRP",
    "HttpTransport",
    "Transport",
    "classify_error",
    # session
    "SessionManager",
    # logging helpers
    "get_auth_logger",
    "mask_sensitive",
]
