from __future__ import annotations

import jwt
import pytest

from communication_service.infrastructure.auth.claims import principal_from_claims
from communication_service.infrastructure.auth.hs256_verifier import HS256Verifier

SECRET = "unit-test-secret-with-32-bytes-min"


def test_camel_case_claims():
    principal = principal_from_claims(
        {"userId": "coach-7", "role": "coach", "organizationId": "org-1", "teamIds": ["t1"]}
    )

    assert principal.user_id == "coach-7"
    assert principal.roles == ["coach"]
    assert principal.organization_id == "org-1"
    assert principal.team_ids == ["t1"]


def test_missing_subject_is_rejected():
    with pytest.raises(jwt.InvalidTokenError):
        principal_from_claims({"roles": ["player"]})


@pytest.mark.asyncio
async def test_hs256_round_trip():
    token = jwt.encode({"sub": "player-1", "roles": ["player"]}, SECRET, algorithm="HS256")

    principal = await HS256Verifier(SECRET).verify(token)

    assert principal.user_id == "player-1"
    assert principal.roles == ["player"]


@pytest.mark.asyncio
async def test_hs256_wrong_secret():
    token = jwt.encode({"sub": "player-1"}, SECRET, algorithm="HS256")

    with pytest.raises(jwt.InvalidSignatureError):
        await HS256Verifier("another-secret-of-thirty-two-bytes!").verify(token)
