"""
Approval-stage handlers: technical sanction, administrative sanction,
tender and work order. Each one validates its input, checks the move with
the workflow table, writes its sub-document and transitions the proposal.
"""
import logging

from nirman.database import get_db, now_str
from nirman.exceptions import ValidationError
from nirman.proposals import fetch_proposal_row, load_proposal
from nirman.workflow import WorkAction, apply_transition, transition

logger = logging.getLogger(__name__)

APPROVAL_ACTIONS = ("approve", "reject")


def _check_action(action: str) -> str:
    action = (action or "").strip().lower()
    if action not in APPROVAL_ACTIONS:
        raise ValidationError('Action must be either "approve" or "reject"')
    return action


def technical_approval(proposal_id: int, payload, user_id: int) -> dict:
    action = _check_action(payload.action)
    work_action = WorkAction.APPROVE_TECHNICAL if action == "approve" else WorkAction.REJECT_TECHNICAL

    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        current = proposal['current_status']
        transition(current, work_action, message="Proposal is not pending technical approval")

        now = now_str()
        if action == "approve":
            if not payload.approval_number:
                raise ValidationError("Approval number is required for approval")
            cursor.execute("""
                INSERT INTO technical_approvals (
                    proposal_id, status, approval_number, approval_date, amount_of_technical_sanction,
                    forwarding_date, remarks, approved_by, created_at, updated_at
                ) VALUES (?, 'Approved', ?, ?, ?, ?, ?, ?, ?, ?)
            """, (proposal_id, payload.approval_number, now, payload.amount_of_technical_sanction,
                  now, payload.remarks, user_id, now, now))
        else:
            if not payload.rejection_reason:
                raise ValidationError("Rejection reason is required for rejection")
            cursor.execute("""
                INSERT INTO technical_approvals (
                    proposal_id, status, remarks, rejection_reason, approved_by, created_at, updated_at
                ) VALUES (?, 'Rejected', ?, ?, ?, ?, ?)
            """, (proposal_id, payload.remarks, payload.rejection_reason, user_id, now, now))

        apply_transition(cursor, proposal_id, current, work_action)
        return load_proposal(cursor, proposal_id)


def administrative_approval(proposal_id: int, payload, user_id: int) -> dict:
    action = _check_action(payload.action)

    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        current = proposal['current_status']

        if action == "approve":
            # Next stage depends on whether the work goes to tender
            if proposal['is_tender_or_not']:
                work_action = WorkAction.APPROVE_ADMINISTRATIVE_WITH_TENDER
            else:
                work_action = WorkAction.APPROVE_ADMINISTRATIVE
        else:
            work_action = WorkAction.REJECT_ADMINISTRATIVE
        transition(current, work_action, message="Proposal is not pending administrative approval")

        now = now_str()
        if action == "approve":
            if not payload.approval_number:
                raise ValidationError("Approval number is required for approval")
            cursor.execute("""
                INSERT INTO administrative_approvals (
                    proposal_id, status, by_govt_district_as, approval_number, approval_date,
                    approved_amount, remarks, approved_by, created_at, updated_at
                ) VALUES (?, 'Approved', ?, ?, ?, ?, ?, ?, ?, ?)
            """, (proposal_id, payload.by_govt_district_as, payload.approval_number, now,
                  payload.approved_amount, payload.remarks, user_id, now, now))
        else:
            if not payload.rejection_reason:
                raise ValidationError("Rejection reason is required for rejection")
            cursor.execute("""
                INSERT INTO administrative_approvals (
                    proposal_id, status, remarks, rejection_reason, approved_by, created_at, updated_at
                ) VALUES (?, 'Rejected', ?, ?, ?, ?, ?)
            """, (proposal_id, payload.remarks, payload.rejection_reason, user_id, now, now))

        apply_transition(cursor, proposal_id, current, work_action)
        return load_proposal(cursor, proposal_id)


def start_tender(proposal_id: int, payload, user_id: int) -> dict:
    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        current = proposal['current_status']
        transition(current, WorkAction.START_TENDER, message="Proposal is not pending tender process")

        if not proposal['is_tender_or_not']:
            raise ValidationError("This proposal does not require tender process")

        now = now_str()
        cursor.execute("""
            INSERT INTO tender_processes (
                proposal_id, tender_title, tender_id, department, issued_date, remark,
                tender_status, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, 'Notice Published', ?, ?)
        """, (proposal_id, payload.tender_title, payload.tender_id, payload.department,
              payload.issued_date.isoformat() if payload.issued_date else None,
              payload.remark, now, now))

        apply_transition(cursor, proposal_id, current, WorkAction.START_TENDER)
        logger.info("Tender started for proposal %s by user %s", proposal_id, user_id)
        return load_proposal(cursor, proposal_id)


def award_tender(proposal_id: int, payload, user_id: int) -> dict:
    if not payload.contractor_name or payload.awarded_amount is None:
        raise ValidationError("Contractor name and awarded amount are required")
    if payload.awarded_amount < 0:
        raise ValidationError("Awarded amount cannot be negative")

    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        current = proposal['current_status']
        transition(current, WorkAction.AWARD_TENDER, message="Tender process is not in progress")

        cursor.execute("""
            UPDATE tender_processes
            SET contractor_name = ?, contractor_contact = ?, awarded_amount = ?,
                tender_status = 'Awarded', updated_at = ?
            WHERE proposal_id = ?
        """, (payload.contractor_name, payload.contact_info, payload.awarded_amount, now_str(), proposal_id))

        apply_transition(cursor, proposal_id, current, WorkAction.AWARD_TENDER)
        logger.info("Tender for proposal %s awarded to %s by user %s",
                    proposal_id, payload.contractor_name, user_id)
        return load_proposal(cursor, proposal_id)


def create_work_order(proposal_id: int, payload, user_id: int) -> dict:
    """Issue the work order and open the progress ledger."""
    if not payload.work_order_number or not payload.date_of_work_order or not payload.contractor_or_gram_panchayat:
        raise ValidationError("All work order fields are required")

    with get_db() as conn:
        cursor = conn.cursor()
        proposal = fetch_proposal_row(cursor, proposal_id)
        current = proposal['current_status']
        transition(current, WorkAction.CREATE_WORK_ORDER, message="Proposal is not pending work order creation")

        cursor.execute(
            "SELECT proposal_id FROM work_orders WHERE work_order_number = ?",
            (payload.work_order_number,)
        )
        if cursor.fetchone():
            raise ValidationError("Work order number already exists")

        amount = payload.work_order_amount
        if amount is None:
            amount = proposal['sanction_amount']

        now = now_str()
        cursor.execute("""
            INSERT INTO work_orders (
                proposal_id, work_order_number, date_of_work_order, contractor_or_gram_panchayat,
                work_order_amount, remark, issued_by, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (proposal_id, payload.work_order_number, payload.date_of_work_order.isoformat(),
              payload.contractor_or_gram_panchayat, amount, payload.remark, user_id, now, now))

        # The contracted amount is the ceiling for installment releases
        cursor.execute("""
            INSERT INTO work_progress (
                proposal_id, progress_percentage, sanctioned_amount, total_amount_released,
                remaining_balance, last_updated_by, version, created_at, updated_at
            ) VALUES (?, 0, ?, 0, ?, ?, 0, ?, ?)
        """, (proposal_id, amount, amount, user_id, now, now))

        apply_transition(cursor, proposal_id, current, WorkAction.CREATE_WORK_ORDER)
        return load_proposal(cursor, proposal_id)
