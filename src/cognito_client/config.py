"""Runtime configuration for the Cognito client.

Values come from explicit arguments or, via the ``from_env`` helpers, from
environment variables.  The library itself never reads ``.env`` files.

Environment variables
---------------------
COGNITO_TIMEOUT
    Per-request timeout in seconds. Defaults to ``5``.
COGNITO_ENDPOINT_URL
    Override of the regional endpoint (local emulators, VPC endpoints).
COGNITO_USER_POOL_ID, COGNITO_CLIENT_ID, COGNITO_USERNAME, COGNITO_PASSWORD
    Credentials consumed by :func:`credentials_from_env`.
COGNITO_CLIENT_SECRET
    Optional app client secret. ``COGNITO_SECRET_HASH`` is honoured as a
    legacy alias.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Final

from cognito_client.errors import ValidationError
from cognito_client.models import Credentials

logger = logging.getLogger("cognito-client.config")

DEFAULT_TIMEOUT: Final[float] = 5.0
DEFAULT_USER_AGENT: Final[str] = "cognito-srp-client"


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Transport-level settings shared by every request of a session."""

    timeout: float = DEFAULT_TIMEOUT
    endpoint_url: str | None = None
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if not self.timeout or self.timeout <= 0:
            raise ValidationError("timeout must be a positive number of seconds")

    def endpoint_for(self, region: str) -> str:
        """Return the provider URL for *region*, honouring the override."""
        if self.endpoint_url:
            return self.endpoint_url.rstrip("/") + "/"
        return f"https://cognito-idp.{region}.amazonaws.com/"

    @classmethod
    def from_env(cls, prefix: str = "COGNITO_") -> "ClientConfig":
        raw_timeout = os.getenv(f"{prefix}TIMEOUT")
        timeout = DEFAULT_TIMEOUT
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ValidationError(
                    f"{prefix}TIMEOUT must be a number, got {raw_timeout!r}"
                ) from None
        endpoint_url = os.getenv(f"{prefix}ENDPOINT_URL") or None
        if endpoint_url:
            logger.info("Using custom provider endpoint %s", endpoint_url)
        return cls(timeout=timeout, endpoint_url=endpoint_url)


def credentials_from_env(prefix: str = "COGNITO_") -> Credentials:
    """Build :class:`Credentials` from ``${prefix}*`` environment variables.

    Raises
    ------
    ValidationError
        If a required variable is missing or malformed.
    """
    client_secret = os.getenv(f"{prefix}CLIENT_SECRET")
    if client_secret is None:
        client_secret = os.getenv(f"{prefix}SECRET_HASH")
    return Credentials(
        pool_id=os.getenv(f"{prefix}USER_POOL_ID", ""),
        client_id=os.getenv(f"{prefix}CLIENT_ID", ""),
        user_name=os.getenv(f"{prefix}USERNAME", ""),
        password=os.getenv(f"{prefix}PASSWORD", ""),
        client_secret=client_secret or None,
    )
