from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from fastapi import Request

from libs.event_contracts.auth_v1 import SignedIn, SignedOut
from libs.security.jwt import verify_and_decode
from fee_service.app.errors import NotAuthenticated
from fee_service.app.settings import settings


logger = logging.getLogger(__name__)

AuthEvent = Union[SignedIn, SignedOut]
AuthHandler = Callable[[AuthEvent], None]


@dataclass(frozen=True)
class SessionContext:
    """Authenticated actor, passed explicitly to every data-access call."""
    user_id: str
    access_token: str = field(repr=False)
    claims: Dict[str, Any] = field(default_factory=dict, repr=False)


def require_actor(ctx: Optional[SessionContext]) -> SessionContext:
    if ctx is None or not ctx.user_id:
        raise NotAuthenticated("You must be signed in.")
    return ctx


class Subscription:
    def __init__(self, listeners: "AuthStateListeners", handler: AuthHandler):
        self._listeners = listeners
        self.handler = handler

    def unsubscribe(self) -> None:
        self._listeners._remove(self.handler)


class AuthStateListeners:
    """Sign-in/sign-out observers; handlers run synchronously in emit order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: List[AuthHandler] = []

    def subscribe(self, handler: AuthHandler) -> Subscription:
        with self._lock:
            self._handlers.append(handler)
        return Subscription(self, handler)

    def _remove(self, handler: AuthHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def emit(self, event: AuthEvent) -> None:
        with self._lock:
            handlers = list(self._handlers)
        for handler in handlers:
            handler(event)


class RevokedTokens:
    """Tokens signed out before their exp; entries drop once the token would have expired anyway."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._store: Dict[str, int] = {}

    def revoke(self, token: str, expires_at: int) -> None:
        with self._lock:
            self._store[token] = expires_at

    def is_revoked(self, token: str) -> bool:
        now = int(time.time())
        with self._lock:
            exp = self._store.get(token)
            if exp is None:
                return False
            if exp < now:
                self._store.pop(token, None)
                return False
            return True

    def clear(self) -> None:
        with self._lock:
            self._store.clear()


auth_events = AuthStateListeners()
revoked_tokens = RevokedTokens()


def session_from_token(token: str) -> SessionContext:
    try:
        claims = verify_and_decode(
            token,
            key=settings.AUTH_JWT_SECRET,
            alg=settings.AUTH_JWT_ALG,
            audience=settings.AUTH_JWT_AUDIENCE,
        )
    except ValueError:
        raise NotAuthenticated("Invalid token")
    if revoked_tokens.is_revoked(token):
        raise NotAuthenticated("Session signed out")
    user_id = str(claims.get("sub") or "").strip()
    if not user_id:
        raise NotAuthenticated("Invalid token subject")
    return SessionContext(user_id=user_id, access_token=token, claims=claims)


def _token_from_request(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return request.cookies.get(settings.AUTH_COOKIE_NAME) or None


def optional_session(request: Request) -> Optional[SessionContext]:
    token = _token_from_request(request)
    if not token:
        return None
    try:
        return session_from_token(token)
    except NotAuthenticated:
        return None


def require_session(request: Request) -> SessionContext:
    token = _token_from_request(request)
    if not token:
        raise NotAuthenticated("Missing bearer token")
    return session_from_token(token)


def sign_in(ctx: SessionContext) -> None:
    auth_events.emit(SignedIn(user_id=ctx.user_id))


def sign_out(ctx: SessionContext) -> None:
    exp = int(ctx.claims.get("exp") or time.time() + 24 * 3600)
    revoked_tokens.revoke(ctx.access_token, exp)
    logger.info("User %s signed out", ctx.user_id)
    auth_events.emit(SignedOut(user_id=ctx.user_id, reason_code="user_signout"))


__all__ = [
    "SessionContext",
    "AuthStateListeners",
    "Subscription",
    "auth_events",
    "revoked_tokens",
    "require_actor",
    "session_from_token",
    "optional_session",
    "require_session",
    "sign_in",
    "sign_out",
]
