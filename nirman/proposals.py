"""
Work proposal record store.

Assembles the proposal "document" (identity fields, stage sub-documents,
progress ledger and installments) from its rows, and handles registration
and the general proposal listing.
"""
import logging
import math

from nirman.database import generate_serial_number, get_db, now_str
from nirman.exceptions import NotFoundError, ValidationError
from nirman.serializers import format_date, format_datetime, load_json_list, user_ref
from nirman.workflow import WorkStatus, parse_status

logger = logging.getLogger(__name__)

USER_COLUMNS = "{alias}.id AS {prefix}_id, {alias}.full_name AS {prefix}_name, " \
               "{alias}.email AS {prefix}_email, {alias}.department AS {prefix}_department"


def user_columns(alias: str, prefix: str) -> str:
    return USER_COLUMNS.format(alias=alias, prefix=prefix)


# Case-insensitive substring match on p.work_department
DEPARTMENT_MATCH = "LOWER(p.work_department) LIKE ? ESCAPE '\\'"


def department_pattern(department: str) -> str:
    """LIKE pattern for DEPARTMENT_MATCH; % and _ in the input match literally."""
    escaped = department.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def fetch_proposal_row(cursor, proposal_id: int):
    """Return the work_proposals row joined with its submitter, or raise NotFoundError."""
    cursor.execute(f"""
        SELECT p.*, {user_columns('su', 'submitter')}
        FROM work_proposals p
        LEFT JOIN users su ON su.id = p.submitted_by
        WHERE p.id = ?
    """, (proposal_id,))
    row = cursor.fetchone()
    if not row:
        raise NotFoundError("Work proposal not found")
    return row


def fetch_ledger(cursor, proposal_id: int):
    """Raw work_progress row, or None before the work order is issued."""
    cursor.execute("SELECT * FROM work_progress WHERE proposal_id = ?", (proposal_id,))
    return cursor.fetchone()


def fetch_work_order(cursor, proposal_id: int):
    cursor.execute("SELECT * FROM work_orders WHERE proposal_id = ?", (proposal_id,))
    return cursor.fetchone()


def serialize_installment(row) -> dict:
    return {
        "installmentNo": row['installment_no'],
        "amount": row['amount'],
        "date": format_date(row['date']),
        "description": row['description'],
    }


def load_installments(cursor, proposal_id: int) -> list:
    cursor.execute("""
        SELECT installment_no, amount, date, description
        FROM installments
        WHERE proposal_id = ?
        ORDER BY installment_no
    """, (proposal_id,))
    return [serialize_installment(row) for row in cursor.fetchall()]


def load_work_progress(cursor, proposal_id: int):
    """The workProgress sub-document with lastUpdatedBy populated, or None."""
    cursor.execute(f"""
        SELECT wp.*, {user_columns('u', 'updater')}
        FROM work_progress wp
        LEFT JOIN users u ON u.id = wp.last_updated_by
        WHERE wp.proposal_id = ?
    """, (proposal_id,))
    row = cursor.fetchone()
    if not row:
        return None

    return {
        "progressPercentage": row['progress_percentage'],
        "mbStageMeasurementBookStag": row['mb_stage'],
        "expenditureAmount": row['expenditure_amount'],
        "sanctionedAmount": row['sanctioned_amount'],
        "installments": load_installments(cursor, proposal_id),
        "totalAmountReleasedSoFar": row['total_amount_released'],
        "remainingBalance": row['remaining_balance'],
        "lastUpdatedBy": user_ref(row, 'updater'),
        "createdAt": format_datetime(row['created_at']),
        "updatedAt": format_datetime(row['updated_at']),
    }


def _load_technical_approval(cursor, proposal_id: int):
    cursor.execute(f"""
        SELECT ta.*, {user_columns('u', 'approver')}
        FROM technical_approvals ta
        LEFT JOIN users u ON u.id = ta.approved_by
        WHERE ta.proposal_id = ?
    """, (proposal_id,))
    row = cursor.fetchone()
    if not row:
        return None
    return {
        "status": row['status'],
        "approvalNumber": row['approval_number'],
        "approvalDate": format_datetime(row['approval_date']),
        "amountOfTechnicalSanction": row['amount_of_technical_sanction'],
        "forwardingDate": format_datetime(row['forwarding_date']),
        "remarks": row['remarks'],
        "rejectionReason": row['rejection_reason'],
        "approvedBy": user_ref(row, 'approver'),
    }


def _load_administrative_approval(cursor, proposal_id: int):
    cursor.execute(f"""
        SELECT aa.*, {user_columns('u', 'approver')}
        FROM administrative_approvals aa
        LEFT JOIN users u ON u.id = aa.approved_by
        WHERE aa.proposal_id = ?
    """, (proposal_id,))
    row = cursor.fetchone()
    if not row:
        return None
    return {
        "status": row['status'],
        "byGovtDistrictAS": row['by_govt_district_as'],
        "approvalNumber": row['approval_number'],
        "approvalDate": format_datetime(row['approval_date']),
        "approvedAmount": row['approved_amount'],
        "remarks": row['remarks'],
        "rejectionReason": row['rejection_reason'],
        "approvedBy": user_ref(row, 'approver'),
    }


def _load_tender_process(cursor, proposal_id: int):
    cursor.execute("SELECT * FROM tender_processes WHERE proposal_id = ?", (proposal_id,))
    row = cursor.fetchone()
    if not row:
        return None
    contractor = None
    if row['contractor_name']:
        contractor = {
            "name": row['contractor_name'],
            "contactInfo": row['contractor_contact'],
            "awardedAmount": row['awarded_amount'],
        }
    return {
        "tenderTitle": row['tender_title'],
        "tenderID": row['tender_id'],
        "department": row['department'],
        "issuedDate": format_date(row['issued_date']),
        "remark": row['remark'],
        "tenderStatus": row['tender_status'],
        "selectedContractor": contractor,
    }


def _load_work_order(cursor, proposal_id: int):
    cursor.execute(f"""
        SELECT wo.*, {user_columns('u', 'issuer')}
        FROM work_orders wo
        LEFT JOIN users u ON u.id = wo.issued_by
        WHERE wo.proposal_id = ?
    """, (proposal_id,))
    row = cursor.fetchone()
    if not row:
        return None
    return {
        "workOrderNumber": row['work_order_number'],
        "dateOfWorkOrder": format_date(row['date_of_work_order']),
        "contractorOrGramPanchayat": row['contractor_or_gram_panchayat'],
        "workOrderAmount": row['work_order_amount'],
        "remark": row['remark'],
        "issuedBy": user_ref(row, 'issuer'),
    }


def serialize_proposal_row(row) -> dict:
    """Top-level proposal fields (no sub-documents)."""
    return {
        "id": row['id'],
        "serialNumber": row['serial_number'],
        "nameOfWork": row['name_of_work'],
        "workDescription": row['work_description'],
        "typeOfWork": row['type_of_work'],
        "workAgency": row['work_agency'],
        "scheme": row['scheme'],
        "city": row['city'],
        "ward": row['ward'],
        "workDepartment": row['work_department'],
        "approvingDepartment": row['approving_department'],
        "financialYear": row['financial_year'],
        "sanctionAmount": row['sanction_amount'],
        "isTenderOrNot": bool(row['is_tender_or_not']),
        "appointedEngineer": row['appointed_engineer'],
        "currentStatus": row['current_status'],
        "workProgressStage": row['work_progress_stage'],
        "submittedBy": user_ref(row, 'submitter'),
        "submissionDate": format_datetime(row['submission_date']),
        "lastStatusUpdate": format_datetime(row['last_status_update']),
        "completionDate": format_datetime(row['completion_date']),
        "finalCost": row['final_cost'],
        "completionDocuments": load_json_list(row['completion_documents']),
        "createdAt": format_datetime(row['created_at']),
        "updatedAt": format_datetime(row['updated_at']),
    }


def load_proposal(cursor, proposal_id: int) -> dict:
    """The full proposal document."""
    proposal = serialize_proposal_row(fetch_proposal_row(cursor, proposal_id))
    proposal["technicalApproval"] = _load_technical_approval(cursor, proposal_id)
    proposal["administrativeApproval"] = _load_administrative_approval(cursor, proposal_id)
    proposal["tenderProcess"] = _load_tender_process(cursor, proposal_id)
    proposal["workOrder"] = _load_work_order(cursor, proposal_id)
    proposal["workProgress"] = load_work_progress(cursor, proposal_id)
    return proposal


def get_proposal(proposal_id: int) -> dict:
    with get_db() as conn:
        return load_proposal(conn.cursor(), proposal_id)


def create_proposal(payload, submitted_by: int) -> dict:
    """Register a new proposal at Pending Technical Approval."""
    status = WorkStatus.PENDING_TECHNICAL_APPROVAL.value
    now = now_str()

    with get_db() as conn:
        cursor = conn.cursor()

        if payload.appointed_engineer is not None:
            cursor.execute("SELECT id FROM users WHERE id = ?", (payload.appointed_engineer,))
            if not cursor.fetchone():
                raise ValidationError("Appointed engineer does not exist")

        serial_number = generate_serial_number(cursor)
        cursor.execute("""
            INSERT INTO work_proposals (
                serial_number, name_of_work, work_description, type_of_work, work_agency,
                scheme, city, ward, work_department, approving_department, financial_year,
                sanction_amount, is_tender_or_not, appointed_engineer,
                current_status, work_progress_stage, submitted_by, submission_date,
                last_status_update, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            serial_number,
            payload.name_of_work.strip(),
            payload.work_description.strip(),
            payload.type_of_work,
            payload.work_agency,
            payload.scheme,
            payload.city,
            payload.ward,
            payload.work_department.strip(),
            payload.approving_department,
            payload.financial_year,
            payload.sanction_amount,
            1 if payload.is_tender_or_not else 0,
            payload.appointed_engineer,
            status,
            status,
            submitted_by,
            now,
            now,
            now,
            now,
        ))
        proposal_id = cursor.lastrowid
        logger.info("Registered work proposal %s (%s)", proposal_id, serial_number)
        return load_proposal(cursor, proposal_id)


def list_proposals(page: int = 1, limit: int = 10, status: str = None,
                   department: str = None, financial_year: str = None) -> dict:
    """Paginated proposal list, newest submission first."""
    where = []
    params = []

    if status:
        where.append("p.current_status = ?")
        params.append(parse_status(status).value)
    if department:
        where.append(DEPARTMENT_MATCH)
        params.append(department_pattern(department))
    if financial_year:
        where.append("p.financial_year = ?")
        params.append(financial_year)

    where_sql = f"WHERE {' AND '.join(where)}" if where else ""

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"SELECT COUNT(*) AS total FROM work_proposals p {where_sql}", params)
        total = cursor.fetchone()['total']

        cursor.execute(f"""
            SELECT p.*, {user_columns('su', 'submitter')}
            FROM work_proposals p
            LEFT JOIN users su ON su.id = p.submitted_by
            {where_sql}
            ORDER BY p.submission_date DESC, p.id DESC
            LIMIT ? OFFSET ?
        """, params + [limit, (page - 1) * limit])
        data = [serialize_proposal_row(row) for row in cursor.fetchall()]

    return {"data": data, "pagination": build_pagination(page, limit, total)}


def build_pagination(page: int, limit: int, total: int) -> dict:
    return {
        "current": page,
        "pages": math.ceil(total / limit) if limit else 0,
        "total": total,
        "limit": limit,
    }
