"""Challenge engine for the ``USER_SRP_AUTH`` flow.

The session core treats the zero-knowledge proof as an opaque collaborator
(:class:`ChallengeEngine`).  :class:`CognitoSRP` is the default engine: an
SRP-6a client over the 3072-bit group of RFC 5054 with ``g = 2`` and SHA-256,
deriving the password authentication key with HKDF the way the provider's
browser SDK does.

Phase 1 sends ``SRP_A``; phase 2 answers the ``PASSWORD_VERIFIER`` challenge
with an HMAC signature over the pool name, user id, secret block and a
timestamp.  The timestamp is part of the signed message, so callers pass the
instant at which the proof is built.

This module intentionally performs **no logging** of passwords, keys or
intermediate SRP values.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
from datetime import datetime, timezone
from typing import Final, Mapping, Protocol, runtime_checkable

from cognito_client.errors import CryptoError
from cognito_client.models import Credentials

_N_HEX: Final[str] = (
    "FFFFFFFFFFFFFFFFC90FDAA22168C234C4C6628B80DC1CD1"
    "29024E088A67CC74020BBEA63B139B22514A08798E3404DD"
    "EF9519B3CD3A431B302B0A6DF25F14374FE1356D6D51C245"
    "E485B576625E7EC6F44C42E9A637ED6B0BFF5CB6F406B7ED"
    "EE386BFB5A899FA5AE9F24117C4B1FE649286651ECE45B3D"
    "C2007CB8A163BF0598DA48361C55D39A69163FA8FD24CF5F"
    "83655D23DCA3AD961C62F356208552BB9ED529077096966D"
    "670C354E4ABC9804F1746C08CA18217C32905E462E36CE3B"
    "E39E772C180E86039B2783A2EC07A28FB5C55DF06F4C52C9"
    "DE2BCBF6955817183995497CEA956AE515D2261898FA0510"
    "15728E5A8AAAC42DAD33170D04507A33A85521ABDF1CBA64"
    "ECFB850458DBEF0A8AEA71575D060C7DB3970F85A6E1E4C7"
    "ABF5AE8CDB0933D71E8C94E04A25619DCEE3D2261AD2EE6B"
    "F12FFA06D98A0864D87602733EC86A64521F2B18177B200C"
    "BBE117577A615D6C770988C0BAD946E208E24FA074E5AB31"
    "43DB5BFCE0FD108E4B82D120A93AD2CAFFFFFFFFFFFFFFFF"
)
_G_HEX: Final[str] = "2"
_INFO_BITS: Final[bytes] = b"Caldera Derived Key"
_SMALL_A_BYTES: Final[int] = 128

# fixed English names; strftime %a/%b follow LC_TIME
_WEEKDAY_NAMES: Final[tuple[str, ...]] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTH_NAMES: Final[tuple[str, ...]] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_REQUIRED_CHALLENGE_KEYS: Final[tuple[str, ...]] = (
    "USER_ID_FOR_SRP",
    "SALT",
    "SRP_B",
    "SECRET_BLOCK",
)


@runtime_checkable
class ChallengeEngine(Protocol):
    """Builds the payload fragments of both authentication phases."""

    def init_params(self, credentials: Credentials) -> dict[str, str]: ...

    def verifier_response(
        self,
        credentials: Credentials,
        challenge_params: Mapping[str, str],
        timestamp: datetime,
    ) -> dict[str, str]: ...


# --------------------------------------------------------------------------- #
# Helpers                                                                     #
# --------------------------------------------------------------------------- #
def _hash_sha256(buf: bytes) -> str:
    """Hex SHA-256 digest left-padded to 64 characters."""
    return hashlib.sha256(buf).hexdigest().rjust(64, "0")


def _hex_hash(hex_string: str) -> str:
    return _hash_sha256(bytes.fromhex(hex_string))


def _hex_to_long(hex_string: str) -> int:
    return int(hex_string, 16)


def _long_to_hex(value: int) -> str:
    return f"{value:x}"


def _pad_hex(value: int | str) -> str:
    """Hex encoding the way the provider hashes it (signed, even length)."""
    hex_str = value if isinstance(value, str) else _long_to_hex(value)
    if len(hex_str) % 2 == 1:
        return f"0{hex_str}"
    if hex_str[0] in "89ABCDEFabcdef":
        return f"00{hex_str}"
    return hex_str


def _compute_hkdf(ikm: bytes, salt: bytes) -> bytes:
    prk = hmac.new(salt, ikm, hashlib.sha256).digest()
    return hmac.new(prk, _INFO_BITS + b"\x01", hashlib.sha256).digest()[:16]


def format_timestamp(timestamp: datetime) -> str:
    """Render *timestamp* as ``Mon Jan 2 15:04:05 UTC 2006`` (day unpadded)."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    weekday = _WEEKDAY_NAMES[timestamp.weekday()]
    month = _MONTH_NAMES[timestamp.month - 1]
    return (
        f"{weekday} {month} {timestamp.day} "
        f"{timestamp:%H:%M:%S} UTC {timestamp.year}"
    )


def secret_hash(user_name: str, client_id: str, client_secret: str) -> str:
    """Return ``base64(HMAC-SHA256(client_secret, user_name + client_id))``."""
    digest = hmac.new(
        client_secret.encode("utf-8"),
        msg=(user_name + client_id).encode("utf-8"),
        digestmod=hashlib.sha256,
    ).digest()
    return base64.standard_b64encode(digest).decode("ascii")


# --------------------------------------------------------------------------- #
# Engine                                                                      #
# --------------------------------------------------------------------------- #
class CognitoSRP:
    """Default :class:`ChallengeEngine` implementing SRP-6a.

    The ephemeral secret ``a`` is drawn once per engine; both phases of one
    attempt must therefore use the same engine instance.
    """

    def __init__(self, small_a: int | None = None) -> None:
        self.big_n = _hex_to_long(_N_HEX)
        self.g = _hex_to_long(_G_HEX)
        self.k = _hex_to_long(_hex_hash("00" + _N_HEX + "0" + _G_HEX))
        if small_a is None:
            small_a = int.from_bytes(os.urandom(_SMALL_A_BYTES), "big")
        self.small_a = small_a % self.big_n
        self.large_a = pow(self.g, self.small_a, self.big_n)
        if self.large_a % self.big_n == 0:
            raise CryptoError("safety check for SRP_A failed")

    # ------------------------------------------------------------------ #
    # Phase 1                                                            #
    # ------------------------------------------------------------------ #
    def init_params(self, credentials: Credentials) -> dict[str, str]:
        params = {
            "USERNAME": credentials.user_name,
            "SRP_A": _long_to_hex(self.large_a),
        }
        if credentials.client_secret:
            params["SECRET_HASH"] = secret_hash(
                credentials.user_name, credentials.client_id, credentials.client_secret
            )
        return params

    # ------------------------------------------------------------------ #
    # Phase 2                                                            #
    # ------------------------------------------------------------------ #
    def password_authentication_key(
        self, credentials: Credentials, user_id: str, server_b: int, salt_hex: str
    ) -> bytes:
        """Derive the 16-byte HKDF key shared with the provider."""
        if server_b % self.big_n == 0:
            raise CryptoError("SRP_B safety check failed")
        u_value = _hex_to_long(_hex_hash(_pad_hex(self.large_a) + _pad_hex(server_b)))
        if u_value == 0:
            raise CryptoError("SRP scrambling parameter u cannot be zero")

        user_pass = f"{credentials.pool_name}{user_id}:{credentials.password}"
        user_pass_hash = _hash_sha256(user_pass.encode("utf-8"))
        x_value = _hex_to_long(_hex_hash(_pad_hex(salt_hex) + user_pass_hash))

        g_mod_pow_xn = pow(self.g, x_value, self.big_n)
        base = (server_b - self.k * g_mod_pow_xn) % self.big_n
        s_value = pow(base, self.small_a + u_value * x_value, self.big_n)
        return _compute_hkdf(
            bytes.fromhex(_pad_hex(s_value)),
            bytes.fromhex(_pad_hex(_long_to_hex(u_value))),
        )

    def verifier_response(
        self,
        credentials: Credentials,
        challenge_params: Mapping[str, str],
        timestamp: datetime,
    ) -> dict[str, str]:
        missing = [k for k in _REQUIRED_CHALLENGE_KEYS if not challenge_params.get(k)]
        if missing:
            raise CryptoError(f"challenge parameters missing: {', '.join(missing)}")

        user_id = challenge_params["USER_ID_FOR_SRP"]
        secret_block_b64 = challenge_params["SECRET_BLOCK"]
        try:
            server_b = _hex_to_long(challenge_params["SRP_B"])
            bytes.fromhex(_pad_hex(challenge_params["SALT"]))
            secret_block = base64.b64decode(secret_block_b64, validate=True)
        except (ValueError, binascii.Error):
            raise CryptoError("challenge parameters are malformed") from None

        key = self.password_authentication_key(
            credentials, user_id, server_b, challenge_params["SALT"]
        )
        ts = format_timestamp(timestamp)
        msg = (
            credentials.pool_name.encode("utf-8")
            + user_id.encode("utf-8")
            + secret_block
            + ts.encode("utf-8")
        )
        signature = hmac.new(key, msg, digestmod=hashlib.sha256).digest()

        response = {
            "TIMESTAMP": ts,
            "USERNAME": user_id,
            "PASSWORD_CLAIM_SECRET_BLOCK": secret_block_b64,
            "PASSWORD_CLAIM_SIGNATURE": base64.standard_b64encode(signature).decode("ascii"),
        }
        if credentials.client_secret:
            response["SECRET_HASH"] = secret_hash(
                user_id, credentials.client_id, credentials.client_secret
            )
        return response
