from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import aiohttp
from aiohttp import ClientSession
from pycognito.aws_srp import AWSSRP

from .const import (
    COGNITO_CLIENT_ID,
    COGNITO_HOST,
    COGNITO_REGION,
    COGNITO_USER_POOL_ID,
    DEFAULT_REQUEST_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_LIFETIME_SECONDS,
)
from .exceptions import AuthNetworkError, CognitoError


@dataclass(frozen=True)
class CognitoChallenge:
    name: str
    session: str | None
    parameters: dict[str, str]


@dataclass(frozen=True)
class CognitoTokens:
    id_token: str
    access_token: str
    refresh_token: str
    expires_in: int


def _error_type(text: str) -> str | None:
    try:
        body = json.loads(text)
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    raw = body.get("__type") or body.get("code")
    if not isinstance(raw, str):
        return None
    # Some endpoints prefix the type with a namespace: "com.amazon...#NotAuthorizedException".
    return raw.rsplit("#", 1)[-1]


async def _cognito_post(session: ClientSession, target: str, payload: dict[str, Any]) -> dict[str, Any]:
    url = f"https://{COGNITO_HOST}/"
    headers = {
        "content-type": "application/x-amz-json-1.1",
        "x-amz-target": target,
    }

    try:
        async with session.post(
            url,
            headers=headers,
            data=json.dumps(payload),
            timeout=aiohttp.ClientTimeout(total=DEFAULT_REQUEST_TIMEOUT_SECONDS),
        ) as resp:
            try:
                text = await resp.text()
            except UnicodeDecodeError as e:
                raise CognitoError(
                    f"cognito returned an undecodable body ({resp.status})", status=resp.status
                ) from e
            if resp.status >= 400:
                raise CognitoError(
                    f"cognito error {resp.status}: {text[:200]}",
                    error_type=_error_type(text),
                    status=resp.status,
                )
            if not text:
                return {}
            try:
                return json.loads(text)
            except ValueError as e:
                raise CognitoError(f"cognito returned invalid json: {text[:200]}") from e
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise AuthNetworkError(f"cognito unreachable: {e!r}") from e


def _tokens_from_result(data: dict[str, Any], *, fallback_refresh_token: str = "") -> CognitoTokens:
    auth = data.get("AuthenticationResult") or {}
    id_token = auth.get("IdToken")
    access_token = auth.get("AccessToken") or ""
    refresh_token = auth.get("RefreshToken") or fallback_refresh_token
    if not id_token:
        raise CognitoError("missing id token in auth result")
    if not refresh_token:
        raise CognitoError("missing refresh token in auth result")

    try:
        expires_in = int(auth.get("ExpiresIn") or DEFAULT_TOKEN_LIFETIME_SECONDS)
    except (TypeError, ValueError):
        expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
    return CognitoTokens(
        id_token=id_token,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=expires_in,
    )


def _build_srp(username: str, password: str) -> AWSSRP:
    return AWSSRP(
        username=username,
        password=password,
        pool_id=COGNITO_USER_POOL_ID,
        client_id=COGNITO_CLIENT_ID,
        pool_region=COGNITO_REGION,
    )


async def initiate_srp_auth(session: ClientSession, *, auth_params: dict[str, str]) -> CognitoChallenge:
    data = await _cognito_post(
        session,
        "AWSCognitoIdentityProviderService.InitiateAuth",
        {
            "ClientId": COGNITO_CLIENT_ID,
            "ClientMetadata": {},
            "AuthFlow": "USER_SRP_AUTH",
            "AuthParameters": auth_params,
        },
    )

    if data.get("ChallengeName") != "PASSWORD_VERIFIER":
        raise CognitoError(f"unexpected challenge: {data.get('ChallengeName')}")

    params = data.get("ChallengeParameters") or {}
    if not params.get("USER_ID_FOR_SRP") or not params.get("SRP_B") or not params.get("SALT"):
        raise CognitoError("missing SRP parameters in challenge response")

    return CognitoChallenge(name="PASSWORD_VERIFIER", session=data.get("Session"), parameters=params)


async def respond_to_password_verifier(
    session: ClientSession, *, challenge: CognitoChallenge, responses: dict[str, str]
) -> CognitoTokens:
    payload: dict[str, Any] = {
        "ChallengeName": challenge.name,
        "ClientId": COGNITO_CLIENT_ID,
        "ClientMetadata": {},
        "ChallengeResponses": responses,
    }
    if challenge.session:
        payload["Session"] = challenge.session

    data = await _cognito_post(session, "AWSCognitoIdentityProviderService.RespondToAuthChallenge", payload)
    if data.get("ChallengeName"):
        # MFA / NEW_PASSWORD_REQUIRED flows need the Emporia app.
        raise CognitoError(f"unsupported follow-up challenge: {data.get('ChallengeName')}")
    return _tokens_from_result(data)


async def login_with_password(session: ClientSession, *, username: str, password: str) -> CognitoTokens:
    # Building the SRP helper creates a boto3 client and the proof is big-int math;
    # keep both off the event loop.
    srp = await asyncio.to_thread(_build_srp, username, password)
    auth_params = srp.get_auth_params()
    challenge = await initiate_srp_auth(session, auth_params=auth_params)
    responses = await asyncio.to_thread(srp.process_challenge, challenge.parameters, auth_params)
    return await respond_to_password_verifier(session, challenge=challenge, responses=responses)


async def refresh_with_refresh_token(session: ClientSession, *, refresh_token: str) -> CognitoTokens:
    data = await _cognito_post(
        session,
        "AWSCognitoIdentityProviderService.InitiateAuth",
        {
            "ClientId": COGNITO_CLIENT_ID,
            "ClientMetadata": {},
            "AuthFlow": "REFRESH_TOKEN_AUTH",
            "AuthParameters": {"REFRESH_TOKEN": refresh_token},
        },
    )
    # Cognito only rotates the refresh token when the pool is configured to.
    return _tokens_from_result(data, fallback_refresh_token=refresh_token)
