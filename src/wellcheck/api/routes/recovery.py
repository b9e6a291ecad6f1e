"""Account recovery after a reinstall."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from wellcheck.analysis.name_matching import RecoveryCandidate
from wellcheck.api.deps import get_recovery
from wellcheck.recovery.service import (
    AccountRecoveryError,
    AccountRecoveryService,
    RecoveryErrorType,
)
from wellcheck.remote.client import RemoteStoreError

router = APIRouter()

_STATUS = {
    RecoveryErrorType.CONNECTION_CODE_NOT_FOUND: 404,
    RecoveryErrorType.NAME_NOT_MATCH: 404,
    RecoveryErrorType.MULTIPLE_MATCHES: 409,
    RecoveryErrorType.RECOVERY_FAILED: 502,
}


class RecoveryRequest(BaseModel):
    name: str
    pairing_code: str
    family_id: Optional[str] = None  # picks one candidate out of an ambiguous result


class CandidateResponse(BaseModel):
    family_id: str
    elderly_name: str
    score: float


def _candidate(c: RecoveryCandidate) -> CandidateResponse:
    return CandidateResponse(family_id=c.profile_id, elderly_name=c.stored_name, score=round(c.match_score, 3))


@router.post("", response_model=CandidateResponse)
async def recover(request: RecoveryRequest, recovery: AccountRecoveryService = Depends(get_recovery)):
    """
    Re-pair with the family whose pairing code and elder name match.

    A 409 lists candidates when several match; repeat the request with one
    of their family_id values to pick it.
    """
    try:
        return _candidate(await recovery.recover(request.name, request.pairing_code))
    except AccountRecoveryError as exc:
        chosen = None
        if exc.error_type == RecoveryErrorType.MULTIPLE_MATCHES and request.family_id:
            chosen = next((c for c in exc.candidates if c.profile_id == request.family_id), None)
        if chosen is None:
            raise _recovery_http_error(exc)

    try:
        recovery.restore(chosen)
    except AccountRecoveryError as exc:
        raise _recovery_http_error(exc)
    return _candidate(chosen)


def _recovery_http_error(exc: AccountRecoveryError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS[exc.error_type],
        detail={
            "error": exc.error_type.value,
            "message": str(exc),
            "candidates": [_candidate(c).model_dump() for c in exc.candidates],
        },
    )


@router.post("/auto-detect", response_model=List[CandidateResponse])
async def auto_detect(recovery: AccountRecoveryService = Depends(get_recovery)):
    """Active families ranked by how likely they belong to this device."""
    try:
        candidates = await recovery.auto_detect()
    except RemoteStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc))
    return [_candidate(c) for c in candidates]
