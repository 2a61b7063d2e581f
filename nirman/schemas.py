"""
Request bodies. Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, allow_inf_nan=False)


# ── Auth / users ─────────────────────────────────────────────────────

class LoginRequest(CamelModel):
    email: str
    password: str


class UserCreate(CamelModel):
    user_id: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=8, max_length=72)
    role: str
    department: Optional[str] = None


# ── Work proposals ───────────────────────────────────────────────────

class ProposalCreate(CamelModel):
    name_of_work: str = Field(..., min_length=1, max_length=500)
    work_description: str = Field(..., min_length=1, max_length=2000)
    work_department: str = Field(..., min_length=1)
    financial_year: str = Field(..., min_length=1)
    sanction_amount: float = Field(..., ge=0)
    type_of_work: Optional[str] = None
    work_agency: Optional[str] = None
    scheme: Optional[str] = None
    city: Optional[str] = None
    ward: Optional[str] = None
    approving_department: Optional[str] = None
    is_tender_or_not: bool = False
    appointed_engineer: Optional[int] = None


class TechnicalApprovalRequest(CamelModel):
    action: str
    approval_number: Optional[str] = None
    amount_of_technical_sanction: Optional[float] = Field(None, ge=0)
    remarks: Optional[str] = None
    rejection_reason: Optional[str] = None


class AdministrativeApprovalRequest(CamelModel):
    action: str
    by_govt_district_as: Optional[str] = Field(None, alias="byGovtDistrictAS")
    approval_number: Optional[str] = None
    approved_amount: Optional[float] = Field(None, ge=0)
    remarks: Optional[str] = None
    rejection_reason: Optional[str] = None


class TenderStartRequest(CamelModel):
    tender_title: Optional[str] = None
    tender_id: Optional[str] = Field(None, alias="tenderID")
    department: Optional[str] = None
    issued_date: Optional[date] = None
    remark: Optional[str] = None


class TenderAwardRequest(CamelModel):
    contractor_name: Optional[str] = None
    contact_info: Optional[str] = None
    awarded_amount: Optional[float] = None


class WorkOrderCreate(CamelModel):
    work_order_number: Optional[str] = None
    date_of_work_order: Optional[date] = None
    contractor_or_gram_panchayat: Optional[str] = None
    work_order_amount: Optional[float] = Field(None, ge=0)
    remark: Optional[str] = None


# ── Work progress ────────────────────────────────────────────────────

class ProgressUpdate(CamelModel):
    progress_percentage: int
    mb_stage_measurement_book_stag: Optional[str] = None
    expenditure_amount: Optional[float] = None
    installment_amount: Optional[float] = None
    installment_date: Optional[date] = None
    description: Optional[str] = None


class InstallmentCreate(CamelModel):
    amount: Optional[float] = None
    release_date: Optional[date] = Field(None, alias="date")
    description: Optional[str] = None


class CompleteWorkRequest(CamelModel):
    final_expenditure_amount: Optional[float] = None
    completion_documents: Optional[List[Dict[str, Any]]] = None
