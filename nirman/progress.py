"""
Work progress ledger.

Progress updates, installment releases, completion and the read-only
history/dashboard queries. Ledger writes are conditional on the row's
version so two requests racing on the same proposal cannot both apply.
"""
import logging
import math

from nirman import config
from nirman.database import get_db, now_str
from nirman.exceptions import ConcurrentUpdateError, ValidationError
from nirman.proposals import (
    DEPARTMENT_MATCH,
    build_pagination,
    department_pattern,
    fetch_ledger,
    fetch_proposal_row,
    fetch_work_order,
    load_proposal,
    load_work_progress,
    user_columns,
)
from nirman.serializers import format_date, format_datetime, safe_tojson, user_ref
from nirman.workflow import ACTIVE_PROGRESS_STATUSES, WorkAction, WorkStatus, apply_transition, parse_status, transition

logger = logging.getLogger(__name__)

CEILING_MESSAGE = "Installment amount exceeds remaining sanctioned amount"


def _money(value) -> float:
    return round(float(value or 0), 2)


def _require_finite(value, label: str) -> None:
    if value is not None and not math.isfinite(value):
        raise ValidationError(f"{label} must be a finite number")


def check_ceiling(ledger, amount: float) -> float:
    """Return the new released total, or raise if it would pass the sanctioned amount."""
    _require_finite(amount, "Installment amount")
    new_total = _money(_money(ledger['total_amount_released']) + amount)
    if new_total > _money(ledger['sanctioned_amount']):
        raise ValidationError(CEILING_MESSAGE)
    return new_total


def write_ledger(cursor, ledger, user_id: int, **changes) -> int:
    """Compare-and-swap the work_progress row; returns the new version.

    Fields not in changes keep their current values. Raises
    ConcurrentUpdateError when the row moved on since it was read.
    """
    values = {
        'progress_percentage': ledger['progress_percentage'],
        'mb_stage': ledger['mb_stage'],
        'expenditure_amount': ledger['expenditure_amount'],
        'total_amount_released': ledger['total_amount_released'],
        'remaining_balance': ledger['remaining_balance'],
    }
    values.update(changes)

    cursor.execute("""
        UPDATE work_progress
        SET progress_percentage = ?, mb_stage = ?, expenditure_amount = ?,
            total_amount_released = ?, remaining_balance = ?,
            last_updated_by = ?, updated_at = ?, version = version + 1
        WHERE proposal_id = ? AND version = ?
    """, (
        values['progress_percentage'],
        values['mb_stage'],
        values['expenditure_amount'],
        values['total_amount_released'],
        values['remaining_balance'],
        user_id,
        now_str(),
        ledger['proposal_id'],
        ledger['version'],
    ))
    if cursor.rowcount == 0:
        raise ConcurrentUpdateError()
    return ledger['version'] + 1


def append_installment(cursor, proposal_id: int, amount: float, release_date, description, user_id: int) -> dict:
    """Insert the next installment row and return it serialized."""
    cursor.execute(
        "SELECT COUNT(*) AS existing FROM installments WHERE proposal_id = ?",
        (proposal_id,)
    )
    installment_no = (cursor.fetchone()['existing'] or 0) + 1

    cursor.execute("""
        INSERT INTO installments (proposal_id, installment_no, amount, date, description, created_by, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
    """, (proposal_id, installment_no, amount, release_date.isoformat(), description, user_id, now_str()))

    logger.info("Installment %s of %.2f released for proposal %s", installment_no, amount, proposal_id)
    return {
        "installmentNo": installment_no,
        "amount": amount,
        "date": format_date(release_date),
        "description": description,
    }


def _require_ledger(cursor, proposal_id: int):
    ledger = fetch_ledger(cursor, proposal_id)
    if not ledger:
        raise ValidationError("Work progress not initialized")
    return ledger


# ── Mutations ────────────────────────────────────────────────────────

def update_progress(proposal_id: int, payload, user_id: int) -> dict:
    """Record a site progress report, optionally with an installment."""
    progress = payload.progress_percentage
    if progress < 0 or progress > 100:
        raise ValidationError("Progress percentage must be between 0 and 100")
    _require_finite(payload.expenditure_amount, "Expenditure amount")
    _require_finite(payload.installment_amount, "Installment amount")
    if payload.expenditure_amount is not None and payload.expenditure_amount < 0:
        raise ValidationError("Expenditure amount cannot be negative")

    with_installment = payload.installment_amount is not None and payload.installment_date is not None
    if with_installment and payload.installment_amount <= 0:
        raise ValidationError("Installment amount must be positive")

    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        current = parse_status(proposal['current_status'])
        transition(current, WorkAction.RECORD_PROGRESS, message="Work must be in progress to update progress")
        ledger = _require_ledger(cursor, proposal_id)

        changes = {'progress_percentage': progress}
        if payload.mb_stage_measurement_book_stag is not None:
            changes['mb_stage'] = payload.mb_stage_measurement_book_stag
        if payload.expenditure_amount is not None:
            changes['expenditure_amount'] = payload.expenditure_amount

        if with_installment:
            amount = payload.installment_amount
            if config.ENFORCE_CEILING_ON_PROGRESS_INSTALLMENTS:
                new_total = check_ceiling(ledger, amount)
            else:
                new_total = _money(_money(ledger['total_amount_released']) + amount)
            changes['total_amount_released'] = new_total
            changes['remaining_balance'] = _money(_money(ledger['sanctioned_amount']) - new_total)

        write_ledger(cursor, ledger, user_id, **changes)

        if with_installment:
            append_installment(cursor, proposal_id, payload.installment_amount,
                               payload.installment_date, payload.description, user_id)

        if current == WorkStatus.WORK_ORDER_CREATED:
            current = apply_transition(cursor, proposal_id, current, WorkAction.RECORD_PROGRESS)

        if progress == 100:
            apply_transition(cursor, proposal_id, current, WorkAction.COMPLETE_WORK)
            expenditure = changes.get('expenditure_amount', ledger['expenditure_amount'])
            if expenditure is None:
                work_order = fetch_work_order(cursor, proposal_id)
                final_cost = work_order['work_order_amount'] if work_order else None
            else:
                final_cost = expenditure
            cursor.execute("""
                UPDATE work_proposals SET completion_date = ?, final_cost = ?, updated_at = ?
                WHERE id = ?
            """, (now_str(), final_cost, now_str(), proposal_id))
        else:
            cursor.execute("UPDATE work_proposals SET updated_at = ? WHERE id = ?", (now_str(), proposal_id))

        return load_proposal(cursor, proposal_id)


def add_installment(proposal_id: int, payload, user_id: int) -> dict:
    """Release one installment against the sanctioned amount."""
    if not payload.amount or payload.release_date is None:
        raise ValidationError("Amount and date are required for installment")
    _require_finite(payload.amount, "Installment amount")
    if payload.amount < 0:
        raise ValidationError("Installment amount must be positive")

    with get_db() as conn:
        cursor = conn.cursor()
        fetch_proposal_row(cursor, proposal_id)
        ledger = _require_ledger(cursor, proposal_id)

        new_total = check_ceiling(ledger, payload.amount)
        remaining = _money(_money(ledger['sanctioned_amount']) - new_total)

        write_ledger(cursor, ledger, user_id, total_amount_released=new_total, remaining_balance=remaining)
        installment = append_installment(cursor, proposal_id, payload.amount, payload.release_date,
                                         payload.description, user_id)

    return {
        "installment": installment,
        "totalReleased": new_total,
        "remainingBalance": remaining,
    }


def complete_work(proposal_id: int, payload, user_id: int) -> dict:
    """Close out a work in progress at 100%."""
    final_expenditure = payload.final_expenditure_amount
    _require_finite(final_expenditure, "Final expenditure amount")
    if final_expenditure is not None and final_expenditure < 0:
        raise ValidationError("Final expenditure amount cannot be negative")

    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        current = proposal['current_status']
        transition(current, WorkAction.COMPLETE_WORK, message="Work must be in progress to complete")
        ledger = _require_ledger(cursor, proposal_id)

        changes = {'progress_percentage': 100}
        if final_expenditure is not None:
            changes['expenditure_amount'] = final_expenditure
            final_cost = final_expenditure
        else:
            work_order = fetch_work_order(cursor, proposal_id)
            final_cost = work_order['work_order_amount'] if work_order else None

        write_ledger(cursor, ledger, user_id, **changes)
        apply_transition(cursor, proposal_id, current, WorkAction.COMPLETE_WORK)

        now = now_str()
        if payload.completion_documents is not None:
            cursor.execute("""
                UPDATE work_proposals
                SET completion_date = ?, final_cost = ?, completion_documents = ?, updated_at = ?
                WHERE id = ?
            """, (now, final_cost, safe_tojson(payload.completion_documents), now, proposal_id))
        else:
            cursor.execute("""
                UPDATE work_proposals SET completion_date = ?, final_cost = ?, updated_at = ?
                WHERE id = ?
            """, (now, final_cost, now, proposal_id))

        return load_proposal(cursor, proposal_id)


# ── Queries ──────────────────────────────────────────────────────────

def get_progress_history(proposal_id: int) -> dict:
    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        return {
            "workInfo": {
                "serialNumber": proposal['serial_number'],
                "nameOfWork": proposal['name_of_work'],
                "currentStatus": proposal['current_status'],
            },
            "progress": load_work_progress(cursor, proposal_id),
        }


def list_work_progress(page: int = 1, limit: int = 10, status: str = None, department: str = None,
                       min_progress: int = None, max_progress: int = None) -> dict:
    """Dashboard listing, most recently updated ledger first.

    The progress range applies only when both bounds are given.
    """
    where = []
    params = []

    if status:
        where.append("p.current_status = ?")
        params.append(parse_status(status).value)
    else:
        where.append(f"p.current_status IN ({', '.join('?' for _ in ACTIVE_PROGRESS_STATUSES)})")
        params.extend(s.value for s in ACTIVE_PROGRESS_STATUSES)

    if department:
        where.append(DEPARTMENT_MATCH)
        params.append(department_pattern(department))

    if min_progress is not None and max_progress is not None:
        if min_progress > max_progress:
            raise ValidationError("minProgress cannot be greater than maxProgress")
        where.append("wp.progress_percentage BETWEEN ? AND ?")
        params.extend([min_progress, max_progress])

    where_sql = " AND ".join(where)

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT COUNT(*) AS total
            FROM work_proposals p
            LEFT JOIN work_progress wp ON wp.proposal_id = p.id
            WHERE {where_sql}
        """, params)
        total = cursor.fetchone()['total']

        cursor.execute(f"""
            SELECT p.id, p.serial_number, p.name_of_work, p.work_department, p.current_status,
                   p.completion_date, wo.date_of_work_order, {user_columns('su', 'submitter')}
            FROM work_proposals p
            LEFT JOIN work_progress wp ON wp.proposal_id = p.id
            LEFT JOIN work_orders wo ON wo.proposal_id = p.id
            LEFT JOIN users su ON su.id = p.submitted_by
            WHERE {where_sql}
            ORDER BY (wp.updated_at IS NULL), wp.updated_at DESC, p.id DESC
            LIMIT ? OFFSET ?
        """, params + [limit, (page - 1) * limit])
        rows = cursor.fetchall()

        data = []
        for row in rows:
            data.append({
                "id": row['id'],
                "serialNumber": row['serial_number'],
                "nameOfWork": row['name_of_work'],
                "workDepartment": row['work_department'],
                "currentStatus": row['current_status'],
                "workProgress": load_work_progress(cursor, row['id']),
                "workOrder": {"dateOfWorkOrder": format_date(row['date_of_work_order'])},
                "completionDate": format_datetime(row['completion_date']),
                "submittedBy": user_ref(row, 'submitter'),
            })

    return {"data": data, "pagination": build_pagination(page, limit, total)}
