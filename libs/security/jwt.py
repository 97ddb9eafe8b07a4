import base64
import hashlib
import hmac
import json
import time
from typing import Dict, Any


_ALGS = {"HS256": hashlib.sha256}


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(segment: str) -> bytes:
    padding = '=' * (-len(segment) % 4)
    return base64.urlsafe_b64decode(segment + padding)


def _digest(alg: str):
    try:
        return _ALGS[alg]
    except KeyError:
        raise ValueError(f"unsupported alg {alg}")


def create_access_token(
    subject: str,
    *,
    key: str,
    alg: str = "HS256",
    expires_min: int = 60,
    extra_claims: Dict[str, Any] | None = None,
) -> str:
    """Mint an access token in the same shape the hosted auth platform issues."""
    header = {"alg": alg, "typ": "JWT"}
    now = int(time.time())
    payload = {
        "sub": subject,
        "iat": now,
        "exp": now + expires_min * 60,
    }
    if extra_claims:
        payload.update(extra_claims)

    header_b64 = _b64url(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64url(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")

    sig = hmac.new(key.encode("utf-8"), signing_input, _digest(alg)).digest()
    return f"{header_b64}.{payload_b64}.{_b64url(sig)}"


def verify_and_decode(token: str, *, key: str, alg: str = "HS256", audience: str | None = None) -> Dict[str, Any]:
    """
    Verifies an HMAC JWT and returns its payload dict.
    Raises ValueError on invalid/expired tokens.
    """
    try:
        header_b64, payload_b64, sig_b64 = token.split('.')
    except ValueError:
        raise ValueError("invalid token format")

    try:
        header = json.loads(_b64url_decode(header_b64))
        actual_sig = _b64url_decode(sig_b64)
    except (ValueError, TypeError):
        raise ValueError("invalid token encoding")
    if not isinstance(header, dict):
        raise ValueError("invalid token encoding")
    if header.get("alg") != alg:
        raise ValueError("unexpected alg")

    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    expected_sig = hmac.new(key.encode("utf-8"), signing_input, _digest(alg)).digest()
    if not hmac.compare_digest(expected_sig, actual_sig):
        raise ValueError("invalid signature")

    try:
        payload = json.loads(_b64url_decode(payload_b64))
    except (ValueError, TypeError):
        raise ValueError("invalid token encoding")
    if not isinstance(payload, dict):
        raise ValueError("invalid token encoding")
    now = int(time.time())
    try:
        expired = "exp" in payload and int(payload["exp"]) < now
    except (ValueError, TypeError):
        raise ValueError("invalid exp claim")
    if expired:
        raise ValueError("token expired")
    if audience is not None:
        aud = payload.get("aud")
        auds = aud if isinstance(aud, list) else [aud]
        if audience not in auds:
            raise ValueError("invalid audience")
    return payload
