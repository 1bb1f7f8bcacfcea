from __future__ import annotations

import base64
import functools
import io
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

import qrcode
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from PIL import Image

from .admission import admission_url, bucket, format_countdown, next_rollover_ms
from .clock import Clock
from .config import Settings
from .errors import MSG_RENDER_FAILED, RenderFailure


logger = logging.getLogger("issuer")

ISSUER_JOB_ID = "admission_code_refresh"
ROLLOVER_LAG_MS = 250

Renderer = Callable[[str], bytes]


def render_qr_png(payload: str, pixel_size: int = 300, margin: int = 2) -> bytes:
    """Encode ``payload`` as a black-on-white QR code PNG of ``pixel_size`` square pixels."""
    try:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=margin,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white").convert("RGB")
        img = img.resize((pixel_size, pixel_size), Image.NEAREST)
        buf = io.BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()
    except Exception as exc:
        raise RenderFailure(str(exc)) from exc


def png_data_url(image_png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(image_png).decode("ascii")


class IssuerState(str, Enum):
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class IssuedCode:
    token: int
    url: str
    image_png: bytes
    issued_at_ms: int
    next_rollover_ms: int

    @property
    def data_url(self) -> str:
        return png_data_url(self.image_png)

    @property
    def filename(self) -> str:
        return f"checkin-qr-code-{self.token}.png"


@dataclass(frozen=True)
class IssuerSnapshot:
    state: IssuerState
    code: Optional[IssuedCode]
    error: Optional[str]
    time_until_rollover_ms: Optional[int]

    @property
    def countdown(self) -> Optional[str]:
        if self.time_until_rollover_ms is None:
            return None
        return format_countdown(self.time_until_rollover_ms)


class CodeIssuer:
    """Keeps the displayed admission code in step with the current time bucket."""

    def __init__(self, settings: Settings, clock: Clock, renderer: Optional[Renderer] = None) -> None:
        self.origin = settings.public_origin
        self.window_ms = settings.admission_window_ms
        self.clock = clock
        if renderer is None:
            renderer = functools.partial(render_qr_png, pixel_size=settings.qr_pixel_size, margin=settings.qr_margin)
        self.renderer = renderer
        self._lock = threading.Lock()
        self._state = IssuerState.GENERATING
        self._code: Optional[IssuedCode] = None
        self._error: Optional[str] = None

    @property
    def state(self) -> IssuerState:
        return self._state

    @property
    def current_code(self) -> Optional[IssuedCode]:
        return self._code

    def refresh(self) -> IssuerSnapshot:
        """Regenerate from the current instant. Used for activation, ticks and manual refresh."""
        with self._lock:
            self._state = IssuerState.GENERATING
            self._error = None
        now_ms = self.clock.now_ms()
        token = bucket(now_ms, self.window_ms)
        url = admission_url(self.origin, token)
        try:
            image_png = self.renderer(url)
        except RenderFailure as exc:
            logger.error("Render failed token=%s: %s", token, exc)
            with self._lock:
                self._code = None
                self._state = IssuerState.ERROR
                self._error = MSG_RENDER_FAILED
            return self.snapshot()

        code = IssuedCode(
            token=token,
            url=url,
            image_png=image_png,
            issued_at_ms=now_ms,
            next_rollover_ms=next_rollover_ms(now_ms, self.window_ms),
        )
        with self._lock:
            self._code = code
            self._state = IssuerState.READY
        logger.info("Issued admission code token=%s url=%s next_rollover_ms=%s", token, url, code.next_rollover_ms)
        return self.snapshot()

    def tick(self) -> IssuerSnapshot:
        """Scheduled callback; regenerates once the bucket has rolled over."""
        code = self._code
        current = bucket(self.clock.now_ms(), self.window_ms)
        if self._state is IssuerState.ERROR or code is None or code.token != current:
            return self.refresh()
        return self.snapshot()

    def snapshot(self) -> IssuerSnapshot:
        with self._lock:
            state, code, error = self._state, self._code, self._error
        remaining = None
        if code is not None:
            remaining = code.next_rollover_ms - self.clock.now_ms()
        return IssuerSnapshot(state=state, code=code, error=error, time_until_rollover_ms=remaining)


def schedule_refresh(scheduler: BackgroundScheduler, issuer: CodeIssuer) -> None:
    """Register the recurring tick, first fire aligned to the next rollover."""
    now_ms = issuer.clock.now_ms()
    # fire just after the boundary so the new bucket is already current
    first_ms = next_rollover_ms(now_ms, issuer.window_ms) + ROLLOVER_LAG_MS
    first = datetime.fromtimestamp(first_ms / 1000, tz=timezone.utc)
    scheduler.add_job(
        issuer.tick,
        IntervalTrigger(seconds=issuer.window_ms / 1000, start_date=first),
        id=ISSUER_JOB_ID,
        replace_existing=True,
    )
