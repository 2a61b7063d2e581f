"""
Work proposal lifecycle.

Main line:
    Pending Technical Approval -> Pending Administrative Approval
    -> [Pending Tender -> Tender In Progress] -> Pending Work Order
    -> Work Order Created -> Work In Progress -> Work Completed

Side branches: the two rejections, Work Cancelled (from any open state)
and Work Closed (after completion).

Every handler that changes current_status goes through transition() so
illegal jumps are refused in one place.
"""
import logging
from datetime import datetime
from enum import Enum

from nirman.exceptions import InvalidTransition

logger = logging.getLogger(__name__)


class WorkStatus(str, Enum):
    PENDING_TECHNICAL_APPROVAL = "Pending Technical Approval"
    REJECTED_TECHNICAL_APPROVAL = "Rejected Technical Approval"
    PENDING_ADMINISTRATIVE_APPROVAL = "Pending Administrative Approval"
    REJECTED_ADMINISTRATIVE_APPROVAL = "Rejected Administrative Approval"
    PENDING_TENDER = "Pending Tender"
    TENDER_IN_PROGRESS = "Tender In Progress"
    PENDING_WORK_ORDER = "Pending Work Order"
    WORK_ORDER_CREATED = "Work Order Created"
    WORK_IN_PROGRESS = "Work In Progress"
    WORK_COMPLETED = "Work Completed"
    WORK_CANCELLED = "Work Cancelled"
    WORK_CLOSED = "Work Closed"


class WorkAction(str, Enum):
    APPROVE_TECHNICAL = "approve_technical"
    REJECT_TECHNICAL = "reject_technical"
    APPROVE_ADMINISTRATIVE_WITH_TENDER = "approve_administrative_with_tender"
    APPROVE_ADMINISTRATIVE = "approve_administrative"
    REJECT_ADMINISTRATIVE = "reject_administrative"
    START_TENDER = "start_tender"
    AWARD_TENDER = "award_tender"
    CREATE_WORK_ORDER = "create_work_order"
    RECORD_PROGRESS = "record_progress"
    COMPLETE_WORK = "complete_work"
    CANCEL_WORK = "cancel_work"
    CLOSE_WORK = "close_work"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ")


TERMINAL_STATUSES = frozenset({
    WorkStatus.REJECTED_TECHNICAL_APPROVAL,
    WorkStatus.REJECTED_ADMINISTRATIVE_APPROVAL,
    WorkStatus.WORK_CANCELLED,
    WorkStatus.WORK_CLOSED,
})

# Statuses shown on the work progress dashboard by default
ACTIVE_PROGRESS_STATUSES = (
    WorkStatus.WORK_ORDER_CREATED,
    WorkStatus.WORK_IN_PROGRESS,
    WorkStatus.WORK_COMPLETED,
)

# (current status, action) -> next status
TRANSITIONS = {
    (WorkStatus.PENDING_TECHNICAL_APPROVAL, WorkAction.APPROVE_TECHNICAL): WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL,
    (WorkStatus.PENDING_TECHNICAL_APPROVAL, WorkAction.REJECT_TECHNICAL): WorkStatus.REJECTED_TECHNICAL_APPROVAL,
    (WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL, WorkAction.APPROVE_ADMINISTRATIVE_WITH_TENDER): WorkStatus.PENDING_TENDER,
    (WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL, WorkAction.APPROVE_ADMINISTRATIVE): WorkStatus.PENDING_WORK_ORDER,
    (WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL, WorkAction.REJECT_ADMINISTRATIVE): WorkStatus.REJECTED_ADMINISTRATIVE_APPROVAL,
    (WorkStatus.PENDING_TENDER, WorkAction.START_TENDER): WorkStatus.TENDER_IN_PROGRESS,
    (WorkStatus.TENDER_IN_PROGRESS, WorkAction.AWARD_TENDER): WorkStatus.PENDING_WORK_ORDER,
    (WorkStatus.PENDING_WORK_ORDER, WorkAction.CREATE_WORK_ORDER): WorkStatus.WORK_ORDER_CREATED,
    (WorkStatus.WORK_ORDER_CREATED, WorkAction.RECORD_PROGRESS): WorkStatus.WORK_IN_PROGRESS,
    (WorkStatus.WORK_IN_PROGRESS, WorkAction.RECORD_PROGRESS): WorkStatus.WORK_IN_PROGRESS,
    (WorkStatus.WORK_IN_PROGRESS, WorkAction.COMPLETE_WORK): WorkStatus.WORK_COMPLETED,
    (WorkStatus.WORK_COMPLETED, WorkAction.CLOSE_WORK): WorkStatus.WORK_CLOSED,
}

# Any open (non-terminal, not yet completed) status may be cancelled
for _status in WorkStatus:
    if _status not in TERMINAL_STATUSES and _status != WorkStatus.WORK_COMPLETED:
        TRANSITIONS[(_status, WorkAction.CANCEL_WORK)] = WorkStatus.WORK_CANCELLED
del _status


def parse_status(value) -> WorkStatus:
    """Coerce a stored status string into a WorkStatus."""
    if isinstance(value, WorkStatus):
        return value
    try:
        return WorkStatus(value)
    except ValueError:
        raise InvalidTransition(value, None, message=f"Unknown work status '{value}'")


def transition(current, action: WorkAction, message: str = None) -> WorkStatus:
    """Return the status reached by applying action to current.

    Raises InvalidTransition when the pair is not in TRANSITIONS.
    """
    status = parse_status(current)
    try:
        return TRANSITIONS[(status, action)]
    except KeyError:
        raise InvalidTransition(status, action, message=message)


def apply_transition(cursor, proposal_id: int, current, action: WorkAction, message: str = None) -> WorkStatus:
    """Validate and persist a status change.

    current_status and work_progress_stage are always written together.
    """
    new_status = transition(current, action, message=message)
    now = datetime.now().isoformat(sep=" ")
    cursor.execute("""
        UPDATE work_proposals
        SET current_status = ?, work_progress_stage = ?, last_status_update = ?, updated_at = ?
        WHERE id = ?
    """, (new_status.value, new_status.value, now, now, proposal_id))
    logger.info(
        "Proposal %s: %s -> %s (%s)",
        proposal_id, parse_status(current).value, new_status.value, action.value
    )
    return new_status
