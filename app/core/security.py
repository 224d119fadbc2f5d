# app/core/security.py
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import jwt
from passlib.context import CryptContext

from app.core.clock import to_epoch_millis
from app.core.config import settings
from app.core.exceptions import Expired, InvalidSignature

# 1. Configuration
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
ALGORITHM = "HS256"

# 2. Password Handling
def _pre_hash_password(password: str) -> str:
    """
    Handle the 'bcrypt 72-byte limit' safely.
    Passwords longer than 72 bytes are SHA-256 hashed first, so the whole
    password matters regardless of length.
    """
    if len(password.encode('utf-8')) <= 72:
        return password

    # SHA-256 hexdigest is 64 chars, which fits inside 72 bytes.
    return hashlib.sha256(password.encode('utf-8')).hexdigest()

def hash_password(password: str) -> str:
    safe_password = _pre_hash_password(password)
    return pwd_context.hash(safe_password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    safe_password = _pre_hash_password(plain_password)
    return pwd_context.verify(safe_password, hashed_password)

# 3. Access Tokens (API auth)
def create_access_token(
    subject: Union[str, Any],
    expires_delta: Optional[timedelta] = None,
    data: Optional[dict] = None
) -> str:

    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "iat": now,
        "nbf": now,
    }

    if data:
        to_encode.update(data)

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)

def decode_token(token: str) -> dict:
    # Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError for the caller
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[ALGORITHM],
        options={"verify_exp": True}
    )


# 4. Outpass Verification Tokens (scannable at the gate)
@dataclass(frozen=True)
class OutpassClaims:
    outpass_id: str
    subject_id: str
    issued_at: int  # epoch millis


class OutpassTokenSigner:
    """
    Signs {outpassId, subjectId, issuedAt} with HMAC-SHA256 and verifies it
    without any storage lookup. Tokens are canonical JSON (sorted keys, no
    whitespace) so the same claims always produce the same string.
    """

    def __init__(self, secret: str, ttl: timedelta = timedelta(hours=24)):
        if not secret:
            raise ValueError("Outpass token secret must not be empty")
        self._secret = secret.encode("utf-8")
        self.ttl = ttl

    def sign(self, outpass_id: str, subject_id: str, issued_at: int) -> str:
        message = f"{outpass_id}:{subject_id}:{issued_at}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def issue(self, outpass_id: Any, subject_id: Any, issued_at: datetime) -> str:
        issued_ms = to_epoch_millis(issued_at)
        payload = {
            "outpassId": str(outpass_id),
            "subjectId": str(subject_id),
            "issuedAt": issued_ms,
            "signature": self.sign(str(outpass_id), str(subject_id), issued_ms),
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))

    def verify(self, token: str, now: datetime) -> OutpassClaims:
        claims, signature = self._parse(token)

        expected = self.sign(claims.outpass_id, claims.subject_id, claims.issued_at)
        if not hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8")):
            raise InvalidSignature()

        age_ms = to_epoch_millis(now) - claims.issued_at
        if age_ms < 0:
            # Issued "in the future": never produced by this signer
            raise InvalidSignature()
        if age_ms >= int(self.ttl.total_seconds() * 1000):
            raise Expired()

        return claims

    @staticmethod
    def _parse(token: str) -> tuple[OutpassClaims, str]:
        try:
            data = json.loads(token)
        except (TypeError, ValueError):
            raise InvalidSignature()

        if not isinstance(data, dict):
            raise InvalidSignature()

        outpass_id = data.get("outpassId")
        subject_id = data.get("subjectId")
        issued_at = data.get("issuedAt")
        signature = data.get("signature")

        if not isinstance(outpass_id, str) or not isinstance(subject_id, str):
            raise InvalidSignature()
        if not isinstance(issued_at, int) or isinstance(issued_at, bool):
            raise InvalidSignature()
        if not isinstance(signature, str):
            raise InvalidSignature()

        return OutpassClaims(outpass_id, subject_id, issued_at), signature


def get_outpass_signer() -> OutpassTokenSigner:
    return OutpassTokenSigner(
        settings.outpass_token_secret,
        ttl=timedelta(hours=settings.OUTPASS_TOKEN_TTL_HOURS),
    )
