"""
Report routes (read-only).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from nirman import reports
from nirman.auth import Session
from nirman.dependencies import require_capability
from nirman.roles import Capability

router = APIRouter()

can_view_reports = require_capability(Capability.VIEW_REPORTS)


@router.get("/dashboard")
async def dashboard_report(session: Session = Depends(can_view_reports)):
    return reports.dashboard()


@router.get("/department-wise")
async def department_wise_report(
    financial_year: Optional[str] = Query(None, alias="financialYear"),
    department: Optional[str] = Query(None),
    session: Session = Depends(can_view_reports),
):
    return reports.department_wise(financial_year, department)


@router.get("/scheme-wise")
async def scheme_wise_report(
    financial_year: Optional[str] = Query(None, alias="financialYear"),
    session: Session = Depends(can_view_reports),
):
    return reports.scheme_wise(financial_year)


@router.get("/pending")
async def pending_report(
    stage: str = Query(...),
    session: Session = Depends(can_view_reports),
):
    """Proposals waiting at one stage: technical, administrative, tender or work-order."""
    return reports.pending(stage)
