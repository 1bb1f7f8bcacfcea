from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from ..deps import get_issuer, require_token
from ..issuer import CodeIssuer, IssuerSnapshot, IssuerState
from ..schemas import IssuedCodeOut


router = APIRouter(prefix="/api", tags=["qr"], dependencies=[Depends(require_token)])


def _ms_to_dt(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def _snapshot_out(snap: IssuerSnapshot) -> IssuedCodeOut:
    code = snap.code
    if code is None:
        return IssuedCodeOut(state=snap.state.value, error=snap.error)
    return IssuedCodeOut(
        state=snap.state.value,
        token=code.token,
        url=code.url,
        data_url=code.data_url,
        issued_at=_ms_to_dt(code.issued_at_ms),
        next_rollover=_ms_to_dt(code.next_rollover_ms),
        countdown=snap.countdown,
        error=snap.error,
    )


@router.get("/qr.current", response_model=IssuedCodeOut)
def qr_current(issuer: CodeIssuer = Depends(get_issuer)):
    return _snapshot_out(issuer.tick())


@router.post("/qr.refresh", response_model=IssuedCodeOut)
def qr_refresh(issuer: CodeIssuer = Depends(get_issuer)):
    return _snapshot_out(issuer.refresh())


@router.get("/qr.png")
def qr_png(issuer: CodeIssuer = Depends(get_issuer)):
    snap = issuer.tick()
    if snap.state is IssuerState.ERROR or snap.code is None:
        raise HTTPException(status_code=503, detail=snap.error or "QR code not ready")
    headers = {"Content-Disposition": f"attachment; filename={snap.code.filename}"}
    return Response(content=snap.code.image_png, media_type="image/png", headers=headers)
