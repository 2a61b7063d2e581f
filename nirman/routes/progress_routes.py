"""
Work progress routes: progress reports, installments, completion, history
and the progress dashboard listing.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from nirman import progress
from nirman.auth import Session
from nirman.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from nirman.dependencies import require_capability
from nirman.roles import Capability
from nirman.schemas import CompleteWorkRequest, InstallmentCreate, ProgressUpdate

router = APIRouter()


@router.post("/api/work-proposals/{proposal_id}/progress")
async def update_work_progress(
    proposal_id: int,
    payload: ProgressUpdate,
    session: Session = Depends(require_capability(Capability.RECORD_PROGRESS)),
):
    proposal = progress.update_progress(proposal_id, payload, session.user_id)
    return {"success": True, "message": "Work progress updated successfully", "data": proposal}


@router.post("/api/work-proposals/{proposal_id}/progress/installment")
async def add_installment(
    proposal_id: int,
    payload: InstallmentCreate,
    session: Session = Depends(require_capability(Capability.RELEASE_INSTALLMENT)),
):
    result = progress.add_installment(proposal_id, payload, session.user_id)
    return {"success": True, "message": "Installment added successfully", "data": result}


@router.post("/api/work-proposals/{proposal_id}/progress/complete")
async def complete_work(
    proposal_id: int,
    payload: CompleteWorkRequest,
    session: Session = Depends(require_capability(Capability.COMPLETE_WORK)),
):
    proposal = progress.complete_work(proposal_id, payload, session.user_id)
    return {"success": True, "message": "Work completed successfully", "data": proposal}


@router.get("/api/work-proposals/{proposal_id}/progress/history")
async def get_progress_history(
    proposal_id: int,
    session: Session = Depends(require_capability(Capability.VIEW_WORKS)),
):
    return {"success": True, "data": progress.get_progress_history(proposal_id)}


@router.get("/api/work-progress")
async def get_all_work_progress(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    status: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    min_progress: Optional[int] = Query(None, alias="minProgress", ge=0, le=100),
    max_progress: Optional[int] = Query(None, alias="maxProgress", ge=0, le=100),
    session: Session = Depends(require_capability(Capability.VIEW_WORKS)),
):
    """Progress dashboard; defaults to works with an issued work order."""
    result = progress.list_work_progress(page, limit, status, department, min_progress, max_progress)
    return {"success": True, **result}
