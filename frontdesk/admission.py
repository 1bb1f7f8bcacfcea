from __future__ import annotations

"""
Time-windowed admission codes.

The display device encodes the current time bucket into the check-in URL; the
portal recomputes the bucket independently and admits only on exact equality.
A photographed code stops working once its window rolls over. The token is
plain text and unsigned, so this protects against stale codes, not against a
client that forges the parameter.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union
from urllib.parse import parse_qs, urlsplit

from .errors import MSG_RESCAN


logger = logging.getLogger("admission")

TOKEN_PARAM = "t"
CHECKIN_PATH = "/checkin"

_INT_RE = re.compile(r"-?[0-9]{1,18}")


def bucket(now_ms: int, window_ms: int) -> int:
    return now_ms // window_ms


def next_rollover_ms(now_ms: int, window_ms: int) -> int:
    # ceil division; an instant exactly on a boundary is its own rollover
    return -(-now_ms // window_ms) * window_ms


def time_until_next_bucket(now_ms: int, window_ms: int) -> int:
    return next_rollover_ms(now_ms, window_ms) - now_ms


def format_countdown(remaining_ms: int) -> str:
    if remaining_ms <= 0:
        return "Updating..."
    minutes = remaining_ms // 60_000
    seconds = (remaining_ms % 60_000) // 1000
    return f"{minutes}:{seconds:02d}"


def admission_url(origin: str, bucket_value: int) -> str:
    return f"{origin.rstrip('/')}{CHECKIN_PATH}?{TOKEN_PARAM}={bucket_value}"


class AdmissionStatus(str, Enum):
    VALID = "valid"
    MISSING = "missing"
    MALFORMED = "malformed"
    EXPIRED = "expired"


@dataclass(frozen=True)
class TokenOk:
    bucket: int


@dataclass(frozen=True)
class TokenError:
    status: AdmissionStatus


TokenParse = Union[TokenOk, TokenError]


def parse_token(raw: Optional[str]) -> TokenParse:
    if raw is None or raw == "":
        return TokenError(AdmissionStatus.MISSING)
    if not _INT_RE.fullmatch(raw):
        return TokenError(AdmissionStatus.MALFORMED)
    return TokenOk(int(raw))


@dataclass(frozen=True)
class AdmissionDecision:
    status: AdmissionStatus
    current_bucket: int
    token: Optional[int] = None

    @property
    def is_valid(self) -> bool:
        return self.status is AdmissionStatus.VALID

    @property
    def form_enabled(self) -> bool:
        return self.is_valid

    @property
    def message(self) -> Optional[str]:
        return None if self.is_valid else MSG_RESCAN


def validate_admission(raw_token: Optional[str], now_ms: int, window_ms: int) -> AdmissionDecision:
    """Decide admit/reject for a token seen at ``now_ms``.

    Missing and malformed tokens are rejected before the bucket comparison.
    Any bucket other than the current one, earlier or later, is expired.
    """
    current = bucket(now_ms, window_ms)
    parsed = parse_token(raw_token)
    if isinstance(parsed, TokenError):
        decision = AdmissionDecision(status=parsed.status, current_bucket=current)
    elif parsed.bucket == current:
        decision = AdmissionDecision(status=AdmissionStatus.VALID, current_bucket=current, token=parsed.bucket)
    else:
        decision = AdmissionDecision(status=AdmissionStatus.EXPIRED, current_bucket=current, token=parsed.bucket)

    level = logging.INFO if decision.is_valid else logging.WARNING
    logger.log(
        level,
        "status=%s token=%r current_bucket=%s",
        decision.status.value,
        raw_token,
        current,
    )
    return decision


def validate_admission_url(url: str, now_ms: int, window_ms: int) -> AdmissionDecision:
    query = parse_qs(urlsplit(url).query, keep_blank_values=True)
    values = query.get(TOKEN_PARAM)
    raw = values[0] if values else None
    return validate_admission(raw, now_ms, window_ms)
