"""API routes for verifying SDM tag scans."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from sdmverify.crypto.hexcodec import decode_hex, encode_hex
from sdmverify.errors import CounterStoreError, InvalidHex
from sdmverify.sdm.verifier import SdmVerifier, VerificationResult, VerificationStatus

router = APIRouter(prefix="/api/scan", tags=["scan"])


# ──────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────

class VerifyUrlRequest(BaseModel):
    url: str  # Full URL read from the tag


def get_verifier(request: Request) -> SdmVerifier:
    return request.app.state.verifier


def _respond(result: VerificationResult) -> JSONResponse:
    # Only MALFORMED is a client error; a failed counter store is ours
    if result.status == VerificationStatus.MALFORMED:
        status_code = 400
    elif result.status == VerificationStatus.UNAVAILABLE:
        status_code = 503
    else:
        status_code = 200
    return JSONResponse(status_code=status_code, content=result.to_dict())


# ──────────────────────────────────────────────
# Routes
# ──────────────────────────────────────────────

@router.get("")
async def verify_params(
    u: str = Query(..., description="Mirrored UID hex"),
    c: str = Query(..., description="Mirrored read counter hex"),
    m: str = Query(..., description="Mirrored SDM MAC hex"),
    gid: Optional[str] = None,
    rule: Optional[str] = None,
    verifier: SdmVerifier = Depends(get_verifier),
):
    """Verify SDM parameters, as when the tag URL points straight at this service."""
    return _respond(verifier.verify(u, c, m, gid=gid, rule=rule))


@router.post("/verify")
async def verify_url(req: VerifyUrlRequest, verifier: SdmVerifier = Depends(get_verifier)):
    """Verify a full scanned URL."""
    return _respond(verifier.verify_url(req.url))


@router.get("/counters/{uid}")
async def last_counter(uid: str, verifier: SdmVerifier = Depends(get_verifier)):
    """Return the last accepted read counter for a tag."""
    try:
        uid_hex = encode_hex(decode_hex(uid, 7, "UID"))
    except InvalidHex as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        counter = verifier.replay_guard.last_counter(uid_hex)
    except CounterStoreError as e:
        raise HTTPException(status_code=503, detail=str(e))
    if counter is None:
        raise HTTPException(status_code=404, detail="No scans accepted for this UID")
    return {"uid": uid_hex, "last_counter": counter}
