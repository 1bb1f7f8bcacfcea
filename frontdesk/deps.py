from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status, Request

from .clock import Clock
from .config import get_settings
from .database import SessionLocal
from .issuer import CodeIssuer
from .ledger import Ledger, SqlLedger
from .rate_limit import rate_limit_check
from .subscriptions import SubscriptionHub


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return Clock()


@lru_cache(maxsize=1)
def get_hub() -> SubscriptionHub:
    return SubscriptionHub()


def get_ledger(clock: Clock = Depends(get_clock)) -> Ledger:
    settings = get_settings()
    return SqlLedger(
        SessionLocal,
        clock,
        venue_timezone=settings.venue_timezone,
        default_max_stay_time=settings.default_max_stay_time,
        hub=get_hub(),
    )


def get_issuer(request: Request) -> CodeIssuer:
    issuer: Optional[CodeIssuer] = getattr(request.app.state, "issuer", None)
    if issuer is None:
        # Lifespan did not run (e.g. TestClient without a context manager)
        issuer = CodeIssuer(get_settings(), get_clock())
        issuer.refresh()
        request.app.state.issuer = issuer
    return issuer


def require_token(request: Request, authorization: Optional[str] = Header(default=None)) -> str:
    settings = get_settings()
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1].strip()
    if token != settings.api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    # Rate limit per token + IP (if enabled)
    rate_limit_check(request, token)
    return token


def limit_public(request: Request) -> None:
    """Rate limit for unauthenticated portal routes, keyed by IP only."""
    rate_limit_check(request, "public")
