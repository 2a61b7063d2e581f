"""
Read-only administrative reports: dashboard, department/scheme rollups and
the per-stage pending lists.

Every report returns {success, data, summary}; summary always carries
generatedAt.
"""
from datetime import datetime

from nirman.auth import parse_timestamp
from nirman.config import NIRMAN_DEPLOYMENT
from nirman.database import get_db
from nirman.exceptions import ValidationError
from nirman.proposals import DEPARTMENT_MATCH, department_pattern, serialize_proposal_row, user_columns
from nirman.workflow import WorkStatus

# stage query value -> statuses waiting at that stage
PENDING_STAGES = {
    "technical": (WorkStatus.PENDING_TECHNICAL_APPROVAL,),
    "administrative": (WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL,),
    "tender": (WorkStatus.PENDING_TENDER, WorkStatus.TENDER_IN_PROGRESS),
    "work-order": (WorkStatus.PENDING_WORK_ORDER,),
}

ROLLUP_COLUMNS = """
    COUNT(*) as total_works,
    COALESCE(SUM(p.sanction_amount), 0) as total_sanction_amount,
    SUM(CASE WHEN p.current_status = 'Pending Technical Approval' THEN 1 ELSE 0 END) as pending_technical,
    SUM(CASE WHEN p.current_status = 'Pending Administrative Approval' THEN 1 ELSE 0 END) as pending_administrative,
    SUM(CASE WHEN p.current_status = 'Work In Progress' THEN 1 ELSE 0 END) as in_progress,
    SUM(CASE WHEN p.current_status = 'Work Completed' THEN 1 ELSE 0 END) as completed,
    COALESCE(SUM(aa.approved_amount), 0) as total_approved_amount,
    COALESCE(SUM(wp.total_amount_released), 0) as total_released_amount
"""

ROLLUP_JOINS = """
    LEFT JOIN administrative_approvals aa ON aa.proposal_id = p.id
    LEFT JOIN work_progress wp ON wp.proposal_id = p.id
"""


def report_response(data, **summary) -> dict:
    summary["deployment"] = NIRMAN_DEPLOYMENT
    summary["generatedAt"] = datetime.now().isoformat()
    return {"success": True, "data": data, "summary": summary}


def _rollup(row) -> dict:
    total = row['total_works'] or 0
    completed = row['completed'] or 0
    return {
        "totalWorks": total,
        "totalSanctionAmount": row['total_sanction_amount'],
        "pendingTechnical": row['pending_technical'] or 0,
        "pendingAdministrative": row['pending_administrative'] or 0,
        "inProgress": row['in_progress'] or 0,
        "completed": completed,
        "totalApprovedAmount": row['total_approved_amount'],
        "totalReleasedAmount": row['total_released_amount'],
        "completionRate": round(completed / total * 100, 2) if total else 0,
    }


def dashboard() -> dict:
    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute("""
            SELECT current_status, COUNT(*) as count
            FROM work_proposals
            GROUP BY current_status
        """)
        by_status = {status.value: 0 for status in WorkStatus}
        for row in cursor.fetchall():
            by_status[row['current_status']] = row['count']

        cursor.execute("""
            SELECT
                COALESCE(SUM(p.sanction_amount), 0) as total_sanction,
                COALESCE(SUM(aa.approved_amount), 0) as total_approved,
                COALESCE(SUM(wo.work_order_amount), 0) as total_work_order,
                COALESCE(SUM(wp.total_amount_released), 0) as total_released,
                COALESCE(SUM(p.final_cost), 0) as total_final_cost
            FROM work_proposals p
            LEFT JOIN administrative_approvals aa ON aa.proposal_id = p.id
            LEFT JOIN work_orders wo ON wo.proposal_id = p.id
            LEFT JOIN work_progress wp ON wp.proposal_id = p.id
        """)
        money = cursor.fetchone()

    data = {
        "proposals": {
            "total": sum(by_status.values()),
            "pendingTechnical": by_status[WorkStatus.PENDING_TECHNICAL_APPROVAL.value],
            "pendingAdministrative": by_status[WorkStatus.PENDING_ADMINISTRATIVE_APPROVAL.value],
            "inProgress": by_status[WorkStatus.WORK_IN_PROGRESS.value],
            "completed": by_status[WorkStatus.WORK_COMPLETED.value],
            "byStatus": by_status,
        },
        "financial": {
            "totalSanctionAmount": money['total_sanction'],
            "totalApprovedAmount": money['total_approved'],
            "totalWorkOrderAmount": money['total_work_order'],
            "totalReleasedAmount": money['total_released'],
            "totalFinalCost": money['total_final_cost'],
        },
    }
    return report_response(data)


def department_wise(financial_year: str = None, department: str = None) -> dict:
    conditions = []
    params = []
    if financial_year:
        conditions.append("p.financial_year = ?")
        params.append(financial_year)
    if department:
        conditions.append(DEPARTMENT_MATCH)
        params.append(department_pattern(department))
    where_sql = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT p.work_department as department, {ROLLUP_COLUMNS}
            FROM work_proposals p
            {ROLLUP_JOINS}
            {where_sql}
            GROUP BY p.work_department
            ORDER BY total_sanction_amount DESC, p.work_department
        """, params)
        data = [dict(department=row['department'], **_rollup(row)) for row in cursor.fetchall()]

    return report_response(
        data,
        reportYear=financial_year,
        totalDepartments=len(data),
        totalWorks=sum(item["totalWorks"] for item in data),
        totalSanctionAmount=sum(item["totalSanctionAmount"] for item in data),
    )


def scheme_wise(financial_year: str = None) -> dict:
    """Rollup per scheme; proposals without a scheme are left out."""
    conditions = ["p.scheme IS NOT NULL", "p.scheme <> ''"]
    params = []
    if financial_year:
        conditions.append("p.financial_year = ?")
        params.append(financial_year)

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT p.scheme as scheme, {ROLLUP_COLUMNS},
                COUNT(DISTINCT p.work_department) as total_departments,
                COUNT(DISTINCT p.city) as total_areas
            FROM work_proposals p
            {ROLLUP_JOINS}
            WHERE {' AND '.join(conditions)}
            GROUP BY p.scheme
            ORDER BY total_works DESC, p.scheme
        """, params)
        data = []
        for row in cursor.fetchall():
            item = dict(scheme=row['scheme'], **_rollup(row))
            item["totalDepartments"] = row['total_departments']
            item["totalAreas"] = row['total_areas']
            data.append(item)

    avg_rate = sum(item["completionRate"] for item in data) / len(data) if data else 0
    return report_response(
        data,
        reportYear=financial_year,
        totalSchemes=len(data),
        totalWorks=sum(item["totalWorks"] for item in data),
        totalSanctionAmount=sum(item["totalSanctionAmount"] for item in data),
        avgCompletionRate=round(avg_rate, 2),
    )


def pending(stage: str) -> dict:
    """Proposals waiting at one approval stage, longest waiting first."""
    statuses = PENDING_STAGES.get(stage)
    if statuses is None:
        raise ValidationError(
            f"Unknown stage '{stage}'. Expected one of: {', '.join(PENDING_STAGES)}"
        )

    placeholders = ", ".join("?" for _ in statuses)
    now = datetime.now()

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(f"""
            SELECT p.*, {user_columns('su', 'submitter')}
            FROM work_proposals p
            LEFT JOIN users su ON su.id = p.submitted_by
            WHERE p.current_status IN ({placeholders})
            ORDER BY p.last_status_update, p.id
        """, [s.value for s in statuses])

        data = []
        for row in cursor.fetchall():
            item = serialize_proposal_row(row)
            since = row['last_status_update'] or row['submission_date']
            item["daysPending"] = (now - parse_timestamp(since)).days if since else None
            data.append(item)

    return report_response(
        data,
        stage=stage,
        statuses=[s.value for s in statuses],
        total=len(data),
    )
