"""Exception types raised by the Cognito client core.

Only lightweight, **data-carrying** exceptions live here so that CLI or web
layers can tell "fix your credentials" apart from "retry the network call"
and from "the protocol assumption is broken".  Every exception exposes a
``kind`` and renders a payload **without secrets**.
"""

from __future__ import annotations


class CognitoClientError(RuntimeError):
    """Base class of every failure surfaced by :mod:`cognito_client`."""

    kind: str = "CognitoClientError"
    retryable: bool = False

    def to_payload(self) -> dict[str, str]:
        """Return a JSON-serialisable payload **without secrets**."""
        return {"error": self.kind, "message": str(self)}


class ValidationError(CognitoClientError, ValueError):
    """Raised when constructor input is invalid. Never retried."""

    kind = "ValidationError"


class TransportError(CognitoClientError):
    """Network failure or timeout talking to the provider. Safe to retry."""

    kind = "TransportError"
    retryable = True

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation

    def to_payload(self) -> dict[str, str]:
        payload = super().to_payload()
        if self.operation:
            payload["operation"] = self.operation
        return payload


class RemoteAuthError(CognitoClientError):
    """The provider rejected the request (wrong password, unknown client...)."""

    def __init__(self, *, kind: str, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind}]: {self.message}"


class UnexpectedChallengeError(CognitoClientError):
    """The provider asked for a challenge other than ``PASSWORD_VERIFIER``."""

    kind = "UnexpectedChallengeError"

    def __init__(self, challenge_name: str | None) -> None:
        super().__init__(
            f"expected PASSWORD_VERIFIER challenge but got {challenge_name!r}"
        )
        self.challenge_name = challenge_name


class ProtocolStateError(CognitoClientError):
    """An operation was invoked in a state that does not allow it."""

    kind = "ProtocolStateError"


class NoSessionError(ProtocolStateError):
    """Profile or refresh requested before a successful authentication."""

    kind = "NoSessionError"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or "Missing session tokens. Please authenticate first.")


class MissingTokensError(CognitoClientError):
    """Success envelope without the expected ``IdToken``."""

    kind = "MissingTokensError"


class EmptyProfileError(CognitoClientError):
    """``GetUser`` answered with an empty attribute list."""

    kind = "EmptyProfileError"


class MalformedResponseError(CognitoClientError):
    """Response body is not a JSON object at all."""

    kind = "MalformedResponseError"


class CryptoError(CognitoClientError):
    """Challenge parameters are missing or mathematically unusable."""

    kind = "CryptoError"
