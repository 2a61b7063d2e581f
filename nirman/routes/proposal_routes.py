"""
Work proposal routes: registration, listing, detail and the approval stages
up to the work order.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from nirman import approvals, proposals
from nirman.auth import Session
from nirman.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from nirman.dependencies import require_capability
from nirman.roles import Capability
from nirman.schemas import (
    AdministrativeApprovalRequest,
    ProposalCreate,
    TechnicalApprovalRequest,
    TenderAwardRequest,
    TenderStartRequest,
    WorkOrderCreate,
)

router = APIRouter()


def _outcome(action: str) -> str:
    return "approved" if action.strip().lower() == "approve" else "rejected"


@router.post("", status_code=201)
async def create_work_proposal(
    payload: ProposalCreate,
    session: Session = Depends(require_capability(Capability.CREATE_PROPOSAL)),
):
    proposal = proposals.create_proposal(payload, session.user_id)
    return {"success": True, "message": "Work proposal created successfully", "data": proposal}


@router.get("")
async def list_work_proposals(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    status: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    financial_year: Optional[str] = Query(None, alias="financialYear"),
    session: Session = Depends(require_capability(Capability.VIEW_WORKS)),
):
    """Paginated proposal list with status/department/year filters."""
    result = proposals.list_proposals(page, limit, status, department, financial_year)
    return {"success": True, **result}


@router.get("/{proposal_id}")
async def get_work_proposal(
    proposal_id: int,
    session: Session = Depends(require_capability(Capability.VIEW_WORKS)),
):
    return {"success": True, "data": proposals.get_proposal(proposal_id)}


@router.post("/{proposal_id}/technical-approval")
async def submit_technical_approval(
    proposal_id: int,
    payload: TechnicalApprovalRequest,
    session: Session = Depends(require_capability(Capability.TECHNICAL_APPROVAL)),
):
    proposal = approvals.technical_approval(proposal_id, payload, session.user_id)
    return {
        "success": True,
        "message": f"Technical approval {_outcome(payload.action)} successfully",
        "data": proposal,
    }


@router.post("/{proposal_id}/administrative-approval")
async def submit_administrative_approval(
    proposal_id: int,
    payload: AdministrativeApprovalRequest,
    session: Session = Depends(require_capability(Capability.ADMINISTRATIVE_APPROVAL)),
):
    proposal = approvals.administrative_approval(proposal_id, payload, session.user_id)
    return {
        "success": True,
        "message": f"Administrative approval {_outcome(payload.action)} successfully",
        "data": proposal,
    }


@router.post("/{proposal_id}/tender/start")
async def start_tender_process(
    proposal_id: int,
    payload: TenderStartRequest,
    session: Session = Depends(require_capability(Capability.MANAGE_TENDER)),
):
    proposal = approvals.start_tender(proposal_id, payload, session.user_id)
    return {"success": True, "message": "Tender process started successfully", "data": proposal}


@router.post("/{proposal_id}/tender/award")
async def award_tender_process(
    proposal_id: int,
    payload: TenderAwardRequest,
    session: Session = Depends(require_capability(Capability.MANAGE_TENDER)),
):
    proposal = approvals.award_tender(proposal_id, payload, session.user_id)
    return {"success": True, "message": "Tender awarded successfully", "data": proposal}


@router.post("/{proposal_id}/work-order")
async def issue_work_order(
    proposal_id: int,
    payload: WorkOrderCreate,
    session: Session = Depends(require_capability(Capability.MANAGE_WORK_ORDER)),
):
    proposal = approvals.create_work_order(proposal_id, payload, session.user_id)
    return {"success": True, "message": "Work order created successfully", "data": proposal}
