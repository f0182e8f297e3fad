"""HTTP transport and response classification for the provider API.

Every provider call is a JSON ``POST`` to the regional endpoint with the
target operation named in the ``X-Amz-Target`` header.  The transport only
moves bytes; interpreting them is a two-step affair:

1. :func:`classify_error` checks for the ``{"__type", "message"}`` error
   envelope and turns it into a :class:`~cognito_client.errors.RemoteAuthError`.
2. Only then does the caller decode the operation-specific success shape.

Error responses do not match any success schema, so reversing the order would
report a misleading decode failure instead of the provider's actual reason.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Final, Mapping, Protocol, runtime_checkable

import requests

from cognito_client.config import ClientConfig
from cognito_client.errors import MalformedResponseError, RemoteAuthError, TransportError

_LOG = logging.getLogger("cognito-client.transport")

CONTENT_TYPE: Final[str] = "application/x-amz-json-1.1"
TARGET_HEADER: Final[str] = "X-Amz-Target"
TARGET_PREFIX: Final[str] = "AWSCognitoIdentityProviderService."

UNKNOWN_ERROR_KIND: Final[str] = "UnknownRemoteError"
UNKNOWN_ERROR_MESSAGE: Final[str] = "Unknown message"


@runtime_checkable
class Transport(Protocol):
    """Single request/response exchange against the provider."""

    def send(self, operation: str, payload: Mapping[str, Any]) -> bytes: ...


def build_headers(operation: str, user_agent: str | None = None) -> dict[str, str]:
    """Return the headers every provider call carries."""
    headers = {
        "Content-Type": CONTENT_TYPE,
        TARGET_HEADER: TARGET_PREFIX + operation,
    }
    if user_agent:
        headers["User-Agent"] = user_agent
    return headers


class HttpTransport:
    """:class:`Transport` backed by a :class:`requests.Session`.

    Non-2xx answers are returned as-is: the provider reports rejected
    credentials with HTTP 400 and an error envelope, which is a protocol-level
    outcome rather than a transport failure.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float,
        session: requests.Session | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.user_agent = user_agent
        self._session = session or requests.Session()

    @classmethod
    def for_region(cls, region: str, config: ClientConfig | None = None) -> "HttpTransport":
        config = config or ClientConfig()
        return cls(
            config.endpoint_for(region),
            timeout=config.timeout,
            user_agent=config.user_agent,
        )

    def send(self, operation: str, payload: Mapping[str, Any]) -> bytes:
        body = json.dumps(payload)
        _LOG.debug("POST %s target=%s", self.url, operation)
        try:
            resp = self._session.post(
                self.url,
                data=body,
                headers=build_headers(operation, self.user_agent),
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise TransportError(
                f"{operation} timed out after {self.timeout}s", operation=operation
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(
                f"{operation} request failed: {exc}", operation=operation
            ) from exc

        _LOG.debug("%s answered HTTP %s", operation, resp.status_code)
        return resp.content

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


# --------------------------------------------------------------------------- #
# Classification                                                              #
# --------------------------------------------------------------------------- #
def _load_object(body: bytes) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        raise MalformedResponseError(
            f"response is not valid JSON: {body[:120]!r}"
        ) from None
    if not isinstance(data, dict):
        raise MalformedResponseError("response JSON is not an object")
    return data


def _error_from(data: Mapping[str, Any]) -> RemoteAuthError | None:
    if data.get("__type") is None:
        return None
    kind = data["__type"]
    if not isinstance(kind, str) or not kind:
        kind = UNKNOWN_ERROR_KIND
    message = data.get("message")
    if not isinstance(message, str):
        # some services capitalise the field
        message = data.get("Message")
    if not isinstance(message, str):
        message = UNKNOWN_ERROR_MESSAGE
    return RemoteAuthError(kind=kind, message=message)


def classify_error(body: bytes) -> RemoteAuthError | None:
    """Return the provider error carried by *body*, or ``None`` on success.

    Raises
    ------
    MalformedResponseError
        If *body* is not a JSON object.
    """
    return _error_from(_load_object(body))


def decode_response(body: bytes) -> dict[str, Any]:
    """Classify *body* and return it as a success envelope.

    Raises
    ------
    RemoteAuthError
        If the body is a provider error envelope.
    MalformedResponseError
        If *body* is not a JSON object.
    """
    data = _load_object(body)
    error = _error_from(data)
    if error is not None:
        raise error
    return data
