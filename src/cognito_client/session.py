"""Session manager: SRP handshake, token lifecycle and profile cache.

A :class:`SessionManager` represents exactly one identity.  It drives the
two-phase ``USER_SRP_AUTH`` handshake, owns the resulting tokens and memoises
the user's attributes.  Typical use::

    creds = Credentials.create(
        pool_id="eu-west-1_abc123", client_id="c1", user_name="u1", password="p1"
    )
    session = SessionManager(creds)
    id_token = session.authenticate()
    profile = session.get_profile()
    if session.is_expired():
        session.refresh()

State changes happen only after every network step of an operation has
succeeded, by swapping whole immutable :class:`TokenSet` snapshots; a failure
anywhere leaves tokens and cached profile exactly as they were.  No timers
run in the background: callers check :meth:`SessionManager.is_expired` and
call :meth:`SessionManager.refresh` themselves.
"""

from __future__ import annotations

import threading
from typing import Any, Final, Mapping

from cognito_client.clock import Clock, default_clock, utc_datetime
from cognito_client.config import ClientConfig
from cognito_client.errors import (
    EmptyProfileError,
    MalformedResponseError,
    MissingTokensError,
    NoSessionError,
    ProtocolStateError,
    UnexpectedChallengeError,
)
from cognito_client.log_utils import get_auth_logger, mask_sensitive
from cognito_client.models import Credentials, Profile, TokenSet
from cognito_client.srp import ChallengeEngine, CognitoSRP, secret_hash
from cognito_client.transport import HttpTransport, Transport, decode_response

OP_INITIATE_AUTH: Final[str] = "InitiateAuth"
OP_RESPOND_TO_CHALLENGE: Final[str] = "RespondToAuthChallenge"
OP_GET_USER: Final[str] = "GetUser"

FLOW_USER_SRP: Final[str] = "USER_SRP_AUTH"
FLOW_REFRESH: Final[str] = "REFRESH_TOKEN_AUTH"
PASSWORD_VERIFIER: Final[str] = "PASSWORD_VERIFIER"


class SessionManager:
    """Authenticate one user against a user pool and keep their tokens."""

    def __init__(
        self,
        credentials: Credentials,
        *,
        transport: Transport | None = None,
        engine: ChallengeEngine | None = None,
        config: ClientConfig | None = None,
        clock: Clock = default_clock,
    ) -> None:
        self.credentials = credentials
        self.config = config or ClientConfig()
        self.transport = transport or HttpTransport.for_region(
            credentials.region, self.config
        )
        self.engine = engine or CognitoSRP()
        self._owns_transport = transport is None
        self.clock = clock

        self._lock = threading.RLock()
        self._challenge: dict[str, str] = {}
        self._tokens: TokenSet | None = None
        self._profile: Profile | None = None
        # pool-internal username; differs from user_name for alias logins
        self._srp_user_id: str | None = None
        self._log = get_auth_logger(
            base_logger_name="cognito-client.session",
            pool_id=credentials.pool_id,
            client_id=credentials.client_id,
            user_name=credentials.user_name,
        )

    def __repr__(self) -> str:
        state = "authenticated" if self._tokens else "empty"
        return f"<SessionManager pool={self.credentials.pool_id} user={self.credentials.user_name!r} {state}>"

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #
    def authenticate(self) -> str:
        """Run both SRP phases and return the new ID token.

        On failure the previous tokens (if any) stay in place and the error
        propagates; the call may simply be retried.
        """
        with self._lock:
            self._challenge = {}
            try:
                self._challenge = self._initiate()
                srp_user_id = self._challenge.get("USER_ID_FOR_SRP")
                tokens = self._respond_to_challenge()
            finally:
                self._challenge = {}
            self._install(tokens)
            self._srp_user_id = srp_user_id or self.credentials.user_name
            self._log.info(
                "Authenticated user (token expires in %ss)", int(tokens.ttl)
            )
            return tokens.id_token

    def refresh(self) -> None:
        """Obtain fresh access and ID tokens using the refresh token."""
        with self._lock:
            current = self._tokens
            if current is None or not current.refresh_token:
                raise NoSessionError("No refresh token. Please authenticate first.")

            auth_params = {"REFRESH_TOKEN": current.refresh_token}
            if self.credentials.client_secret:
                auth_params["SECRET_HASH"] = secret_hash(
                    self._srp_user_id or self.credentials.user_name,
                    self.credentials.client_id,
                    self.credentials.client_secret,
                )
            data = self._call(
                OP_INITIATE_AUTH,
                {
                    "AuthFlow": FLOW_REFRESH,
                    "ClientId": self.credentials.client_id,
                    "AuthParameters": auth_params,
                },
            )
            tokens = self._token_set_from(data, fallback_refresh=current.refresh_token)
            self._install(tokens)
            self._log.info(
                "Refreshed tokens (expires in %ss, refresh token %s)",
                int(tokens.ttl),
                "rotated" if tokens.refresh_token != current.refresh_token else "kept",
            )

    def get_profile(self, force: bool = False) -> Profile:
        """Return the user's attributes, fetching them at most once per token.

        A cached profile is served without a network call unless *force* is
        set.  The cache is dropped on every authenticate and refresh.
        """
        with self._lock:
            tokens = self._tokens
            if tokens is None or not tokens.access_token:
                raise NoSessionError("Missing access token. Please authenticate first.")
            if self._profile is not None and not force:
                return dict(self._profile)

            data = self._call(OP_GET_USER, {"AccessToken": tokens.access_token})
            attributes = data.get("UserAttributes")
            if attributes is not None and not isinstance(attributes, list):
                raise MalformedResponseError("UserAttributes is not a list")
            if not attributes:
                raise EmptyProfileError("No user attributes in response")

            profile: Profile = {}
            for item in attributes:
                if not isinstance(item, Mapping) or "Name" not in item:
                    raise MalformedResponseError(f"invalid user attribute entry: {item!r}")
                # last write wins on duplicate names
                profile[str(item["Name"])] = str(item.get("Value", ""))
            profile["username"] = str(data.get("Username") or "")

            self._profile = profile
            self._log.debug("Fetched %d user attributes", len(attributes))
            return dict(profile)

    def get_profile_forced(self) -> Profile:
        """Shorthand for ``get_profile(force=True)``."""
        return self.get_profile(force=True)

    def current_id_token(self) -> str:
        """Return the ID token to send as ``Authorization`` to API gateways."""
        tokens = self._tokens
        return tokens.id_token if tokens else ""

    def current_tokens(self) -> dict[str, str]:
        """Return all three tokens; empty strings before authentication."""
        tokens = self._tokens
        if tokens is None:
            return {"AccessToken": "", "IdToken": "", "RefreshToken": ""}
        return tokens.as_dict()

    @property
    def tokens(self) -> TokenSet | None:
        return self._tokens

    @property
    def is_authenticated(self) -> bool:
        return self._tokens is not None

    def is_expired(self, now: float | None = None) -> bool:
        """Return *True* when *now* (default: clock) is at or past expiry.

        A session without tokens counts as expired.
        """
        tokens = self._tokens
        if tokens is None:
            return True
        return tokens.is_expired(self.clock() if now is None else now)

    def sign_out(self) -> None:
        """Forget tokens and cached profile locally."""
        with self._lock:
            self._tokens = None
            self._profile = None
            self._challenge = {}
            self._srp_user_id = None

    def close(self) -> None:
        """Close the transport if this manager created it."""
        if self._owns_transport:
            self.transport.close()  # type: ignore[attr-defined]

    def __enter__(self) -> "SessionManager":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Handshake phases                                                   #
    # ------------------------------------------------------------------ #
    def _initiate(self) -> dict[str, str]:
        """Phase 1: send ``SRP_A`` and return the provider's challenge."""
        data = self._call(
            OP_INITIATE_AUTH,
            {
                "AuthFlow": FLOW_USER_SRP,
                "ClientId": self.credentials.client_id,
                "AuthParameters": self.engine.init_params(self.credentials),
            },
        )
        challenge_name = data.get("ChallengeName")
        if challenge_name != PASSWORD_VERIFIER:
            raise UnexpectedChallengeError(challenge_name)

        params = data.get("ChallengeParameters") or {}
        if not isinstance(params, Mapping):
            raise MalformedResponseError("ChallengeParameters is not an object")
        return {str(k): str(v) for k, v in params.items()}

    def _respond_to_challenge(self) -> TokenSet:
        """Phase 2: prove knowledge of the password and collect tokens."""
        if not self._challenge:
            raise ProtocolStateError(
                "RespondToAuthChallenge requires a successful InitiateAuth first"
            )
        # the proof is bound to this instant; never reuse an earlier one
        responses = self.engine.verifier_response(
            self.credentials, self._challenge, utc_datetime(self.clock)
        )
        data = self._call(
            OP_RESPOND_TO_CHALLENGE,
            {
                "ChallengeName": PASSWORD_VERIFIER,
                "ClientId": self.credentials.client_id,
                "ChallengeResponses": responses,
            },
        )
        return self._token_set_from(data)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #
    def _call(self, operation: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        body = self.transport.send(operation, payload)
        return decode_response(body)

    def _token_set_from(
        self, data: Mapping[str, Any], *, fallback_refresh: str | None = None
    ) -> TokenSet:
        result = data.get("AuthenticationResult")
        if not isinstance(result, Mapping):
            raise MissingTokensError("Missing tokens in response")
        required = ["AccessToken", "IdToken"]
        if fallback_refresh is None:
            # a fresh login must deliver the complete token triple
            required.append("RefreshToken")
        missing = [name for name in required if not result.get(name)]
        if missing:
            raise MissingTokensError(f"Missing tokens in response: {', '.join(missing)}")

        refresh_token = result.get("RefreshToken") or fallback_refresh or ""
        issued_at = self.clock()
        return TokenSet(
            access_token=str(result["AccessToken"]),
            id_token=str(result["IdToken"]),
            refresh_token=str(refresh_token),
            issued_at=issued_at,
            expires_at=issued_at + self._ttl_from(result),
        )

    def _ttl_from(self, result: Mapping[str, Any]) -> int:
        raw = result.get("ExpiresIn")
        try:
            ttl = int(raw)
        except (TypeError, ValueError):
            ttl = 0
        if ttl <= 0:
            self._log.warning(
                "Provider sent no usable ExpiresIn (%r); treating tokens as expired",
                raw,
            )
            return 0
        return ttl

    def _install(self, tokens: TokenSet) -> None:
        """Swap in *tokens* and drop the profile fetched under the old ones."""
        self._tokens = tokens
        self._profile = None
        self._log.debug("Installed id token %s", mask_sensitive(tokens.id_token, 8))
