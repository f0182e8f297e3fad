"""Typed records used by the session core."""

from __future__ import annotations

from dataclasses import dataclass, field

from cognito_client.errors import ValidationError

# attribute name -> value, plus the synthesized "username" entry
Profile = dict[str, str]

POOL_ID_SEPARATOR = "_"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Immutable user-pool credentials, validated once at construction."""

    pool_id: str
    client_id: str
    user_name: str
    password: str = field(repr=False)
    client_secret: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        parts = (self.pool_id or "").split(POOL_ID_SEPARATOR)
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise ValidationError(
                "UserPoolId is probably wrong, it should start with region "
                "(e.g. 'eu-west-1_abc123')"
            )
        if not self.client_id:
            raise ValidationError("ClientID cannot be empty")
        if not self.user_name:
            raise ValidationError("UserName cannot be empty")
        if not self.password:
            raise ValidationError("Password cannot be empty")
        if self.client_secret == "":
            # blank secrets come from unset env vars; treat as "not configured"
            object.__setattr__(self, "client_secret", None)

    @classmethod
    def create(
        cls,
        *,
        pool_id: str,
        client_id: str,
        user_name: str,
        password: str,
        client_secret: str | None = None,
    ) -> "Credentials":
        """Keyword-only constructor; raises :class:`ValidationError`."""
        return cls(
            pool_id=pool_id,
            client_id=client_id,
            user_name=user_name,
            password=password,
            client_secret=client_secret,
        )

    @property
    def region(self) -> str:
        """AWS region prefix of the pool id (``eu-west-1``)."""
        return self.pool_id.split(POOL_ID_SEPARATOR, 1)[0]

    @property
    def pool_name(self) -> str:
        """Pool suffix after the region separator (``abc123``)."""
        return self.pool_id.split(POOL_ID_SEPARATOR, 1)[1]


@dataclass(frozen=True, slots=True)
class TokenSet:
    """Snapshot of the access/ID/refresh tokens issued together."""

    access_token: str
    id_token: str
    refresh_token: str
    issued_at: float
    expires_at: float

    @property
    def ttl(self) -> float:
        """Seconds between *issued_at* and *expires_at*."""
        return self.expires_at - self.issued_at

    def is_expired(self, now: float) -> bool:
        """Return *True* once *now* reached the expiry instant."""
        return now >= self.expires_at

    def as_dict(self) -> dict[str, str]:
        return {
            "AccessToken": self.access_token,
            "IdToken": self.id_token,
            "RefreshToken": self.refresh_token,
        }
