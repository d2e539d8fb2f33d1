from __future__ import annotations

import asyncio

import pytest

from emporia_energy.cognito import (
    CognitoChallenge,
    initiate_srp_auth,
    login_with_password,
    refresh_with_refresh_token,
    respond_to_password_verifier,
)
from emporia_energy.exceptions import CognitoError

_SRP_PARAMS = {"USER_ID_FOR_SRP": "uid", "SRP_B": "bb", "SALT": "ss", "SECRET_BLOCK": "blk", "USERNAME": "uid"}


def test_cognito_initiate_rejects_unexpected_challenge(monkeypatch) -> None:  # noqa: ANN001
    import emporia_energy.cognito as mod

    async def fake_post(session, target, payload):  # noqa: ANN001
        return {"ChallengeName": "NOPE"}

    monkeypatch.setattr(mod, "_cognito_post", fake_post)
    with pytest.raises(CognitoError):
        asyncio.run(initiate_srp_auth(session=None, auth_params={"USERNAME": "x", "SRP_A": "a"}))  # type: ignore[arg-type]


def test_cognito_initiate_rejects_missing_srp_parameters(monkeypatch) -> None:  # noqa: ANN001
    import emporia_energy.cognito as mod

    async def fake_post(session, target, payload):  # noqa: ANN001
        return {"ChallengeName": "PASSWORD_VERIFIER", "ChallengeParameters": {"SALT": "s"}}

    monkeypatch.setattr(mod, "_cognito_post", fake_post)
    with pytest.raises(CognitoError):
        asyncio.run(initiate_srp_auth(session=None, auth_params={}))  # type: ignore[arg-type]


def test_cognito_initiate_uses_user_srp_flow(monkeypatch) -> None:  # noqa: ANN001
    import emporia_energy.cognito as mod

    sent: list[tuple[str, dict]] = []

    async def fake_post(session, target, payload):  # noqa: ANN001
        sent.append((target, payload))
        return {"ChallengeName": "PASSWORD_VERIFIER", "ChallengeParameters": _SRP_PARAMS}

    monkeypatch.setattr(mod, "_cognito_post", fake_post)
    challenge = asyncio.run(initiate_srp_auth(session=None, auth_params={"USERNAME": "x", "SRP_A": "a"}))  # type: ignore[arg-type]
    assert challenge.name == "PASSWORD_VERIFIER"
    assert challenge.session is None
    target, payload = sent[0]
    assert target.endswith(".InitiateAuth")
    assert payload["AuthFlow"] == "USER_SRP_AUTH"
    assert payload["ClientId"] == mod.COGNITO_CLIENT_ID
    assert payload["AuthParameters"]["SRP_A"] == "a"


def test_cognito_missing_tokens(monkeypatch) -> None:  # noqa: ANN001
    import emporia_energy.cognito as mod

    async def fake_post(session, target, payload):  # noqa: ANN001
        return {"AuthenticationResult": {"IdToken": "id"}}

    monkeypatch.setattr(mod, "_cognito_post", fake_post)
    challenge = CognitoChallenge(name="PASSWORD_VERIFIER", session="s", parameters=_SRP_PARAMS)
    with pytest.raises(CognitoError):
        asyncio.run(respond_to_password_verifier(session=None, challenge=challenge, responses={}))  # type: ignore[arg-type]


def test_cognito_rejects_follow_up_challenge(monkeypatch) -> None:  # noqa: ANN001
    import emporia_energy.cognito as mod

    async def fake_post(session, target, payload):  # noqa: ANN001
        return {"ChallengeName": "SOFTWARE_TOKEN_MFA", "Session": "s2"}

    monkeypatch.setattr(mod, "_cognito_post", fake_post)
    challenge = CognitoChallenge(name="PASSWORD_VERIFIER", session=None, parameters=_SRP_PARAMS)
    with pytest.raises(CognitoError):
        asyncio.run(respond_to_password_verifier(session=None, challenge=challenge, responses={}))  # type: ignore[arg-type]


def test_cognito_refresh_keeps_refresh_token(monkeypatch) -> None:  # noqa: ANN001
    import emporia_energy.cognito as mod

    async def fake_post(session, target, payload):  # noqa: ANN001
        assert payload["AuthFlow"] == "REFRESH_TOKEN_AUTH"
        assert payload["AuthParameters"] == {"REFRESH_TOKEN": "r1"}
        return {"AuthenticationResult": {"IdToken": "id", "AccessToken": "acc", "ExpiresIn": 1800}}

    monkeypatch.setattr(mod, "_cognito_post", fake_post)
    tokens = asyncio.run(refresh_with_refresh_token(session=None, refresh_token="r1"))  # type: ignore[arg-type]
    assert tokens.id_token == "id"
    assert tokens.access_token == "acc"
    assert tokens.refresh_token == "r1"
    assert tokens.expires_in == 1800


def test_cognito_login_runs_srp_exchange(monkeypatch) -> None:  # noqa: ANN001
    import emporia_energy.cognito as mod

    class FakeSrp:
        def __init__(self) -> None:
            self.processed: list[tuple[dict, dict]] = []

        def get_auth_params(self) -> dict[str, str]:
            return {"USERNAME": "me@example.com", "SRP_A": "abc"}

        def process_challenge(self, challenge_parameters, request_parameters):  # noqa: ANN001
            self.processed.append((challenge_parameters, request_parameters))
            return {"USERNAME": "uid", "PASSWORD_CLAIM_SIGNATURE": "sig"}

    srp = FakeSrp()
    built: list[tuple[str, str]] = []

    def fake_build(username, password):  # noqa: ANN001
        built.append((username, password))
        return srp

    targets: list[str] = []

    async def fake_post(session, target, payload):  # noqa: ANN001
        targets.append(target)
        if target.endswith(".InitiateAuth"):
            return {"ChallengeName": "PASSWORD_VERIFIER", "ChallengeParameters": _SRP_PARAMS, "Session": "sess"}
        assert payload["Session"] == "sess"
        assert payload["ChallengeResponses"]["PASSWORD_CLAIM_SIGNATURE"] == "sig"
        return {
            "AuthenticationResult": {
                "IdToken": "id",
                "AccessToken": "acc",
                "RefreshToken": "ref",
            }
        }

    monkeypatch.setattr(mod, "_build_srp", fake_build)
    monkeypatch.setattr(mod, "_cognito_post", fake_post)

    tokens = asyncio.run(login_with_password(session=None, username="me@example.com", password="pw"))  # type: ignore[arg-type]
    assert built == [("me@example.com", "pw")]
    assert srp.processed[0][0] == _SRP_PARAMS
    assert srp.processed[0][1]["SRP_A"] == "abc"
    assert [t.rsplit(".", 1)[-1] for t in targets] == ["InitiateAuth", "RespondToAuthChallenge"]
    assert tokens.refresh_token == "ref"
    assert tokens.expires_in == 3600
