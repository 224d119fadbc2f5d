import json
from datetime import datetime, timedelta

import pytest

from app.core.exceptions import Expired, InvalidSignature
from app.core.security import OutpassTokenSigner

ISSUED = datetime(2025, 3, 14, 9, 30, 0)
OUTPASS_ID = "7b1f3c2e-0d7a-4a55-9d0e-6c3c8f1e2a10"
STUDENT_ID = "c0a8012e-3b4d-4f6a-8e9b-112233445566"


@pytest.fixture
def signer():
    return OutpassTokenSigner("gate-secret")


def test_token_is_canonical_json(signer):
    token = signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED)

    data = json.loads(token)
    assert list(data.keys()) == ["issuedAt", "outpassId", "signature", "subjectId"]
    assert " " not in token
    assert data["outpassId"] == OUTPASS_ID
    assert data["subjectId"] == STUDENT_ID
    assert len(data["signature"]) == 64

    # Same claims, same string
    assert signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED) == token


def test_verify_returns_claims(signer):
    token = signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED)

    claims = signer.verify(token, ISSUED + timedelta(hours=1))

    assert claims.outpass_id == OUTPASS_ID
    assert claims.subject_id == STUDENT_ID


@pytest.mark.parametrize("age", [
    timedelta(0),
    timedelta(hours=12),
    timedelta(hours=24) - timedelta(milliseconds=1),
])
def test_valid_inside_window(signer, age):
    token = signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED)
    signer.verify(token, ISSUED + age)


@pytest.mark.parametrize("age", [timedelta(hours=24), timedelta(days=3)])
def test_expired_from_24_hours(signer, age):
    token = signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED)

    with pytest.raises(Expired):
        signer.verify(token, ISSUED + age)


def test_single_bit_flip_in_signature_fails(signer):
    token = signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED)
    data = json.loads(token)

    sig = bytearray(data["signature"].encode())
    sig[10] ^= 0x01
    data["signature"] = sig.decode()
    tampered = json.dumps(data, sort_keys=True, separators=(",", ":"))

    with pytest.raises(InvalidSignature):
        signer.verify(tampered, ISSUED)


def test_changed_claims_fail(signer):
    data = json.loads(signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED))
    data["subjectId"] = "someone-else"

    with pytest.raises(InvalidSignature):
        signer.verify(json.dumps(data), ISSUED)


def test_other_secret_fails(signer):
    token = OutpassTokenSigner("another-secret").issue(OUTPASS_ID, STUDENT_ID, ISSUED)

    with pytest.raises(InvalidSignature):
        signer.verify(token, ISSUED)


def test_issued_in_future_is_invalid(signer):
    token = signer.issue(OUTPASS_ID, STUDENT_ID, ISSUED)

    with pytest.raises(InvalidSignature):
        signer.verify(token, ISSUED - timedelta(seconds=1))


@pytest.mark.parametrize("token", [
    "",
    "not json",
    "[1, 2, 3]",
    '{"outpassId": "x"}',
    '{"outpassId": "x", "subjectId": "y", "issuedAt": "soon", "signature": "ab"}',
    '{"outpassId": "x", "subjectId": "y", "issuedAt": true, "signature": "ab"}',
])
def test_malformed_tokens(signer, token):
    with pytest.raises(InvalidSignature) as exc:
        signer.verify(token, ISSUED)

    assert exc.value.message == "Invalid outpass token"


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        OutpassTokenSigner("")
