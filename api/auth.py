from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import get_settings
from core.errors import NotAuthenticated


bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthPrincipal:
    athlete_id: int
    email: str
    exp: int


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes:
    padding = "=" * ((4 - (len(data) % 4)) % 4)
    return base64.urlsafe_b64decode((data + padding).encode("ascii"))


def _sign(signing_input: str, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()
    return _b64url_encode(digest)


def issue_access_token(*, athlete_id: int, email: str, expires_in_seconds: Optional[int] = None) -> str:
    settings = get_settings()
    ttl = expires_in_seconds if expires_in_seconds is not None else settings.jwt_expire_minutes * 60
    header = {"alg": "HS256", "typ": "JWT"}
    payload = {
        "sub": int(athlete_id),
        "email": str(email),
        "exp": int(time.time()) + int(ttl),
    }
    header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}"
    signature = _sign(signing_input, settings.jwt_secret_key)
    return f"{signing_input}.{signature}"


def decode_access_token(token: str) -> AuthPrincipal:
    settings = get_settings()
    try:
        header_b64, payload_b64, signature = token.split(".", 2)
    except ValueError as exc:
        raise NotAuthenticated("Malformed access token") from exc

    signing_input = f"{header_b64}.{payload_b64}"
    expected_sig = _sign(signing_input, settings.jwt_secret_key)
    if not hmac.compare_digest(signature, expected_sig):
        raise NotAuthenticated("Invalid access token")

    try:
        payload = json.loads(_b64url_decode(payload_b64))
    except ValueError as exc:
        raise NotAuthenticated("Invalid access token") from exc

    exp = int(payload.get("exp") or 0)
    if exp <= int(time.time()):
        raise NotAuthenticated("Access token expired")

    try:
        return AuthPrincipal(athlete_id=int(payload["sub"]), email=str(payload.get("email", "")), exp=exp)
    except (KeyError, TypeError, ValueError) as exc:
        raise NotAuthenticated("Invalid access token") from exc


def get_current_principal(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> AuthPrincipal:
    if credentials is None or not credentials.credentials:
        raise NotAuthenticated("Not authenticated")
    return decode_access_token(credentials.credentials)
