"""
Shared test fixtures -- mock data for unit and integration tests.
"""
import datetime


# ── User / session fixtures ──────────────────────────────────────────

def make_user(
    id=1,
    user_id="USR001",
    full_name="Test User",
    email="test@nirman.gov.in",
    department="Public Works",
    role="Department User",
    is_active=1,
    password_hash=None,
):
    """Build a users row as a dict."""
    return {
        "id": id,
        "user_id": user_id,
        "full_name": full_name,
        "email": email,
        "department": department,
        "role": role,
        "is_active": is_active,
        "password_hash": password_hash,
    }


def make_session(role="Department User", user_id=1, expires_in=3600, **overrides):
    """Build a Session as returned by validate_session()."""
    from nirman.auth import Session
    from nirman.roles import capability_names

    values = dict(
        session_id="session-123",
        user_id=user_id,
        login_id=f"USR{user_id:03d}",
        full_name="Test User",
        email="test@nirman.gov.in",
        department="Public Works",
        role=role,
        expires_at=datetime.datetime.now() + datetime.timedelta(seconds=expires_in),
        capabilities=capability_names(role),
    )
    values.update(overrides)
    return Session(**values)


# ── Proposal fixtures ────────────────────────────────────────────────

def make_proposal_payload(**overrides):
    """Request body for POST /api/work-proposals (camelCase wire names)."""
    payload = {
        "nameOfWork": "CC road construction, Ward 4",
        "workDescription": "Cement concrete road from market to school",
        "workDepartment": "Public Works",
        "financialYear": "2024-25",
        "sanctionAmount": 100000,
        "scheme": "Mukhyamantri Sadak Yojana",
        "city": "Jashpur",
        "ward": "4",
        "isTenderOrNot": False,
    }
    payload.update(overrides)
    return payload


def make_work_order_payload(number="WO/2024/001", **overrides):
    payload = {
        "workOrderNumber": number,
        "dateOfWorkOrder": "2024-06-01",
        "contractorOrGramPanchayat": "Gram Panchayat Kunkuri",
        "workOrderAmount": 100000,
        "remark": "Issued",
    }
    payload.update(overrides)
    return payload


def make_ledger_row(
    proposal_id=1,
    progress_percentage=0,
    mb_stage=None,
    expenditure_amount=None,
    sanctioned_amount=100000,
    total_amount_released=0,
    remaining_balance=None,
    version=0,
):
    """Build a work_progress row as a dict."""
    if remaining_balance is None:
        remaining_balance = sanctioned_amount - total_amount_released
    return {
        "proposal_id": proposal_id,
        "progress_percentage": progress_percentage,
        "mb_stage": mb_stage,
        "expenditure_amount": expenditure_amount,
        "sanctioned_amount": sanctioned_amount,
        "total_amount_released": total_amount_released,
        "remaining_balance": remaining_balance,
        "version": version,
    }
