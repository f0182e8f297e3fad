"""
Unit tests for SessionManager handshake, refresh and profile cache.

Coverage:
* End-to-end scenarios: happy path, unsupported challenge, wrong password,
  profile before authentication
* Wire payloads of InitiateAuth / RespondToAuthChallenge / GetUser
* Failure paths leave tokens and profile untouched
* Expiry bookkeeping (explicit TTL and fail-closed default)
* Refresh keeps or rotates the refresh token atomically
* Profile cache hits, forced fetches and invalidation
* Transport ownership: only a self-built transport is closed
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from cognito_client.errors import (
    EmptyProfileError,
    MalformedResponseError,
    MissingTokensError,
    NoSessionError,
    ProtocolStateError,
    RemoteAuthError,
    TransportError,
    UnexpectedChallengeError,
)
from cognito_client.models import Credentials
from cognito_client.session import SessionManager
from cognito_client.srp import secret_hash

from fakes import (
    NOW,
    FakeEngine,
    FakeTransport,
    MutableClock,
    auth_result,
    challenge_response,
    error_response,
    user_response,
)


def _authenticate(session: SessionManager, transport: FakeTransport, **result) -> str:
    transport.queue(challenge_response(), auth_result(**result))
    return session.authenticate()


# --------------------------------------------------------------------------- #
# Construction                                                                #
# --------------------------------------------------------------------------- #
def test_new_session_has_no_tokens(session: SessionManager) -> None:
    assert session.tokens is None
    assert session.is_authenticated is False
    assert session.current_id_token() == ""
    assert session.current_tokens() == {
        "AccessToken": "",
        "IdToken": "",
        "RefreshToken": "",
    }
    assert session.is_expired() is True


def test_default_transport_targets_regional_endpoint(credentials: Credentials) -> None:
    session = SessionManager(credentials, engine=FakeEngine())
    assert session.transport.url == "https://cognito-idp.eu-west-1.amazonaws.com/"
    assert session.transport.timeout == 5.0


# --------------------------------------------------------------------------- #
# authenticate()                                                              #
# --------------------------------------------------------------------------- #
def test_scenario_a_authenticate_returns_id_token(
    session: SessionManager, transport: FakeTransport
) -> None:
    transport.queue(challenge_response(), auth_result(id_token="tok.id.1"))

    assert session.authenticate() == "tok.id.1"
    assert session.current_id_token() == "tok.id.1"
    assert session.current_tokens() == {
        "AccessToken": "tok.access.1",
        "IdToken": "tok.id.1",
        "RefreshToken": "tok.refresh.1",
    }
    assert transport.operations() == ["InitiateAuth", "RespondToAuthChallenge"]


def test_authenticate_wire_payloads(
    session: SessionManager, transport: FakeTransport, engine: FakeEngine
) -> None:
    _authenticate(session, transport)

    (op1, initiate), (op2, respond) = transport.calls
    assert op1 == "InitiateAuth"
    assert initiate == {
        "AuthFlow": "USER_SRP_AUTH",
        "ClientId": "c1",
        "AuthParameters": {"USERNAME": "u1", "SRP_A": "abc"},
    }
    assert op2 == "RespondToAuthChallenge"
    assert respond["ChallengeName"] == "PASSWORD_VERIFIER"
    assert respond["ClientId"] == "c1"
    assert respond["ChallengeResponses"]["PASSWORD_CLAIM_SIGNATURE"] == "sig"

    # proof timestamp comes from the injected clock, in UTC
    assert engine.timestamps == [datetime.fromtimestamp(NOW, tz=timezone.utc)]


def test_scenario_b_unexpected_challenge(
    session: SessionManager, transport: FakeTransport
) -> None:
    transport.queue(challenge_response("SMS_MFA"))

    with pytest.raises(UnexpectedChallengeError) as exc_info:
        session.authenticate()

    assert exc_info.value.challenge_name == "SMS_MFA"
    assert session.tokens is None
    assert transport.operations() == ["InitiateAuth"]


def test_missing_challenge_name_is_unexpected(
    session: SessionManager, transport: FakeTransport
) -> None:
    transport.queue(challenge_response(None))
    with pytest.raises(UnexpectedChallengeError):
        session.authenticate()


def test_scenario_c_wrong_password(session: SessionManager, transport: FakeTransport) -> None:
    transport.queue(
        challenge_response(),
        error_response("NotAuthorizedException", "Incorrect username or password."),
    )

    with pytest.raises(RemoteAuthError) as exc_info:
        session.authenticate()

    err = exc_info.value
    assert err.kind == "NotAuthorizedException"
    assert err.message == "Incorrect username or password."
    assert err.retryable is False
    assert session.tokens is None


def test_phase_one_provider_error(session: SessionManager, transport: FakeTransport) -> None:
    transport.queue(error_response("UserNotFoundException", "User does not exist."))
    with pytest.raises(RemoteAuthError, match="UserNotFoundException"):
        session.authenticate()
    assert transport.operations() == ["InitiateAuth"]


def test_empty_challenge_parameters_fail_before_phase_two(
    session: SessionManager, transport: FakeTransport
) -> None:
    transport.queue({"ChallengeName": "PASSWORD_VERIFIER", "ChallengeParameters": {}})
    with pytest.raises(ProtocolStateError):
        session.authenticate()
    assert transport.operations() == ["InitiateAuth"]


def test_phase_two_without_phase_one(session: SessionManager) -> None:
    with pytest.raises(ProtocolStateError):
        session._respond_to_challenge()


def test_missing_id_token(session: SessionManager, transport: FakeTransport) -> None:
    transport.queue(challenge_response(), {"AuthenticationResult": {"AccessToken": "a"}})
    with pytest.raises(MissingTokensError):
        session.authenticate()
    assert session.tokens is None


def test_missing_access_token(session: SessionManager, transport: FakeTransport) -> None:
    transport.queue(
        challenge_response(), {"AuthenticationResult": {"IdToken": "tok.id.1", "ExpiresIn": 3600}}
    )
    with pytest.raises(MissingTokensError, match="AccessToken"):
        session.authenticate()
    assert session.tokens is None
    assert session.is_authenticated is False


def test_login_without_refresh_token_is_rejected(
    session: SessionManager, transport: FakeTransport
) -> None:
    transport.queue(challenge_response(), auth_result(refresh=None))
    with pytest.raises(MissingTokensError, match="RefreshToken"):
        session.authenticate()
    assert session.tokens is None


def test_failed_reauthentication_keeps_previous_session(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    before = session.tokens
    transport.queue(challenge_response(), TransportError("boom", operation="RespondToAuthChallenge"))

    with pytest.raises(TransportError):
        session.authenticate()

    assert session.tokens is before
    assert session._challenge == {}


def test_malformed_body(session: SessionManager, transport: FakeTransport) -> None:
    transport.queue(b"<html>bad gateway</html>")
    with pytest.raises(MalformedResponseError):
        session.authenticate()


# --------------------------------------------------------------------------- #
# Expiry                                                                      #
# --------------------------------------------------------------------------- #
def test_expiry_round_trip(session: SessionManager, transport: FakeTransport) -> None:
    _authenticate(session, transport, expires_in=3600)
    tokens = session.tokens
    assert tokens is not None
    assert tokens.issued_at == NOW
    assert session.is_expired(NOW) is False
    assert session.is_expired(NOW + 3600 + 1) is True


def test_is_expired_defaults_to_clock(
    session: SessionManager, transport: FakeTransport, clock: MutableClock
) -> None:
    _authenticate(session, transport, expires_in=60)
    assert session.is_expired() is False
    clock.now = NOW + 60
    assert session.is_expired() is True


def test_missing_expires_in_fails_closed(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport, expires_in=None)
    assert session.is_expired(NOW) is True


# --------------------------------------------------------------------------- #
# refresh()                                                                   #
# --------------------------------------------------------------------------- #
def test_refresh_without_session(session: SessionManager, transport: FakeTransport) -> None:
    with pytest.raises(NoSessionError):
        session.refresh()
    assert transport.calls == []


def test_refresh_keeps_unrotated_refresh_token(
    session: SessionManager, transport: FakeTransport, clock: MutableClock
) -> None:
    _authenticate(session, transport)
    clock.now = NOW + 100
    transport.queue(auth_result(access="tok.access.2", id_token="tok.id.2", refresh=None))

    session.refresh()

    op, payload = transport.calls[-1]
    assert op == "InitiateAuth"
    assert payload == {
        "AuthFlow": "REFRESH_TOKEN_AUTH",
        "ClientId": "c1",
        "AuthParameters": {"REFRESH_TOKEN": "tok.refresh.1"},
    }
    assert session.current_tokens() == {
        "AccessToken": "tok.access.2",
        "IdToken": "tok.id.2",
        "RefreshToken": "tok.refresh.1",
    }
    tokens = session.tokens
    assert tokens is not None and tokens.issued_at == NOW + 100
    assert tokens.expires_at == NOW + 100 + 3600


def test_refresh_adopts_rotated_refresh_token(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    transport.queue(auth_result(access="a2", id_token="i2", refresh="tok.refresh.2"))
    session.refresh()
    assert session.current_tokens()["RefreshToken"] == "tok.refresh.2"


def test_refresh_sends_secret_hash(transport: FakeTransport, engine: FakeEngine) -> None:
    creds = Credentials.create(
        pool_id="eu-west-1_abc123",
        client_id="c1",
        user_name="u1",
        password="p1",
        client_secret="s3cr3t",
    )
    session = SessionManager(creds, transport=transport, engine=engine)
    _authenticate(session, transport)
    transport.queue(auth_result())

    session.refresh()

    params = transport.calls[-1][1]["AuthParameters"]
    assert set(params) == {"REFRESH_TOKEN", "SECRET_HASH"}


def test_refresh_secret_hash_uses_srp_user_id(
    transport: FakeTransport, engine: FakeEngine
) -> None:
    creds = Credentials.create(
        pool_id="eu-west-1_abc123",
        client_id="c1",
        user_name="alias@example.com",
        password="p1",
        client_secret="s3cr3t",
    )
    session = SessionManager(creds, transport=transport, engine=engine)
    transport.queue(challenge_response(user_id="uuid-1"), auth_result())
    session.authenticate()
    transport.queue(auth_result())

    session.refresh()

    params = transport.calls[-1][1]["AuthParameters"]
    assert params["SECRET_HASH"] == secret_hash("uuid-1", "c1", "s3cr3t")
    assert params["SECRET_HASH"] != secret_hash("alias@example.com", "c1", "s3cr3t")


def test_refresh_failure_leaves_session(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    before = session.tokens
    transport.queue(error_response("NotAuthorizedException", "Refresh Token has expired"))

    with pytest.raises(RemoteAuthError):
        session.refresh()
    assert session.tokens is before

    transport.queue({"AuthenticationResult": {}})
    with pytest.raises(MissingTokensError):
        session.refresh()
    assert session.tokens is before


def test_refresh_without_access_token_leaves_session(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    before = session.tokens
    transport.queue({"AuthenticationResult": {"IdToken": "tok.id.2", "ExpiresIn": 3600}})

    with pytest.raises(MissingTokensError, match="AccessToken"):
        session.refresh()
    assert session.tokens is before


# --------------------------------------------------------------------------- #
# Profile cache                                                               #
# --------------------------------------------------------------------------- #
def test_scenario_d_profile_before_authentication(
    session: SessionManager, transport: FakeTransport
) -> None:
    with pytest.raises(NoSessionError):
        session.get_profile()
    assert transport.calls == []


def test_profile_fetched_once(session: SessionManager, transport: FakeTransport) -> None:
    _authenticate(session, transport)
    transport.queue(user_response(("email", "u1@example.com"), ("sub", "1234")))

    first = session.get_profile()
    second = session.get_profile(False)

    assert first == second == {"email": "u1@example.com", "sub": "1234", "username": "u1"}
    assert transport.operations().count("GetUser") == 1
    assert transport.calls[-1] == ("GetUser", {"AccessToken": "tok.access.1"})


def test_forced_profile_always_fetches(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    transport.queue(
        user_response(("email", "old@example.com")),
        user_response(("email", "new@example.com")),
        user_response(("email", "newer@example.com")),
    )

    session.get_profile(force=True)
    assert session.get_profile(force=True)["email"] == "new@example.com"
    assert session.get_profile_forced()["email"] == "newer@example.com"
    assert transport.operations().count("GetUser") == 3


def test_refresh_invalidates_profile(session: SessionManager, transport: FakeTransport) -> None:
    _authenticate(session, transport)
    transport.queue(user_response(("email", "before@example.com")))
    session.get_profile()

    transport.queue(auth_result(access="tok.access.2", refresh=None))
    session.refresh()
    transport.queue(user_response(("email", "after@example.com")))

    assert session.get_profile()["email"] == "after@example.com"
    assert transport.calls[-1] == ("GetUser", {"AccessToken": "tok.access.2"})


def test_reauthentication_resets_profile(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    transport.queue(user_response(("email", "first@example.com")))
    session.get_profile()

    _authenticate(session, transport, access="tok.access.9")
    transport.queue(user_response(("email", "second@example.com")))

    assert session.get_profile()["email"] == "second@example.com"


def test_empty_attribute_list(session: SessionManager, transport: FakeTransport) -> None:
    _authenticate(session, transport)
    transport.queue(user_response())
    with pytest.raises(EmptyProfileError):
        session.get_profile()

    # nothing cached: the next call goes to the network again
    transport.queue(user_response(("email", "x@example.com")))
    assert session.get_profile()["email"] == "x@example.com"


def test_non_list_attributes_are_malformed(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    transport.queue({"UserAttributes": {"Name": "email", "Value": "x"}, "Username": "u1"})
    with pytest.raises(MalformedResponseError):
        session.get_profile()


def test_duplicate_attributes_last_write_wins(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    transport.queue(user_response(("email", "a@example.com"), ("email", "b@example.com")))
    assert session.get_profile()["email"] == "b@example.com"


def test_profile_copy_does_not_leak_into_cache(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)
    transport.queue(user_response(("email", "a@example.com")))
    session.get_profile()["email"] = "tampered"
    assert session.get_profile()["email"] == "a@example.com"


def test_profile_provider_error(session: SessionManager, transport: FakeTransport) -> None:
    _authenticate(session, transport)
    transport.queue(error_response("NotAuthorizedException", "Access Token has expired"))
    with pytest.raises(RemoteAuthError, match="Access Token has expired"):
        session.get_profile()


def test_sign_out(session: SessionManager, transport: FakeTransport) -> None:
    _authenticate(session, transport)
    session.sign_out()
    assert session.tokens is None
    with pytest.raises(NoSessionError):
        session.get_profile()


# --------------------------------------------------------------------------- #
# Resource ownership                                                          #
# --------------------------------------------------------------------------- #
def test_context_manager_closes_own_transport(credentials: Credentials) -> None:
    http = SimpleNamespace(closed=False)
    http.close = lambda: setattr(http, "closed", True)

    with SessionManager(credentials, engine=FakeEngine()) as session:
        session.transport._session = http

    assert http.closed is True


def test_injected_transport_left_open(
    session: SessionManager, transport: FakeTransport
) -> None:
    with session:
        pass
    session.close()
    assert transport.closed is False


# --------------------------------------------------------------------------- #
# Serialisation                                                              #
# --------------------------------------------------------------------------- #
def test_concurrent_refresh_and_profile_are_serialised(
    session: SessionManager, transport: FakeTransport
) -> None:
    _authenticate(session, transport)

    seen: list[str] = []
    original_send = transport.send

    def _slow_send(operation, payload):  # noqa: ANN001
        seen.append(f"start:{operation}")
        time.sleep(0.05)
        body = original_send(operation, payload)
        seen.append(f"end:{operation}")
        return body

    transport.send = _slow_send  # type: ignore[method-assign]
    transport.queue(auth_result(access="tok.access.2", refresh=None))
    transport.queue(user_response(("email", "a@example.com")))

    t1 = threading.Thread(target=session.refresh)
    t1.start()
    time.sleep(0.01)
    t2 = threading.Thread(target=session.get_profile)
    t2.start()
    t1.join()
    t2.join()

    assert seen == [
        "start:InitiateAuth",
        "end:InitiateAuth",
        "start:GetUser",
        "end:GetUser",
    ]
    # profile fetched with the refreshed token, never a half-updated one
    assert transport.calls[-1] == ("GetUser", {"AccessToken": "tok.access.2"})
