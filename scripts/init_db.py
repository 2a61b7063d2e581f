"""
Database initialization script.
Creates tables, seeds one user per role, and walks a few sample proposals
through the approval workflow.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import date, timedelta

from nirman import approvals, progress, proposals
from nirman.auth import hash_password
from nirman.config import NIRMAN_DEPLOYMENT
from nirman.database import USE_POSTGRES, get_current_fy, get_db, reset_database
from nirman.logging_config import setup_logging
from nirman.roles import Role
from nirman.schemas import (
    AdministrativeApprovalRequest,
    InstallmentCreate,
    ProgressUpdate,
    ProposalCreate,
    TechnicalApprovalRequest,
    TenderAwardRequest,
    TenderStartRequest,
    WorkOrderCreate,
)

SEED_PASSWORD = os.getenv("NIRMAN_SEED_PASSWORD", "Nirman@2024")

SEED_USERS = [
    ("DEPT01", "Department User", "dept@nirman.gov.in", "Public Works", Role.DEPARTMENT_USER),
    ("TECH01", "Technical Approver", "tech@nirman.gov.in", "Engineering", Role.TECHNICAL_APPROVER),
    ("ADMN01", "Administrative Approver", "admin.approver@nirman.gov.in", "Collectorate",
     Role.ADMINISTRATIVE_APPROVER),
    ("TNDR01", "Tender Manager", "tender@nirman.gov.in", "Public Works", Role.TENDER_MANAGER),
    ("WORD01", "Work Order Manager", "workorder@nirman.gov.in", "Public Works", Role.WORK_ORDER_MANAGER),
    ("PROG01", "Progress Monitor", "progress@nirman.gov.in", "Engineering", Role.PROGRESS_MONITOR),
    ("ADMIN2", "Portal Admin", "portal.admin@nirman.gov.in", "Administration", Role.ADMIN),
]

SAMPLE_WORKS = [
    # (name, department, scheme, amount, tender, stop after)
    ("CC road, Ward 4 main market", "Public Works", "Mukhyamantri Sadak Yojana", 850000, False, "registered"),
    ("Anganwadi building, Kunkuri", "Women and Child Development", "ICDS", 1200000, False, "technical"),
    ("Drainage line, Station road", "Urban Administration", "AMRUT", 2500000, True, "tender"),
    ("Community hall, Bagicha", "Panchayat", "MLA Fund", 600000, False, "work_order"),
    ("School boundary wall, Pathalgaon", "Education", "Samagra Shiksha", 400000, False, "in_progress"),
    ("Culvert repair, NH-43 link", "Public Works", "Mukhyamantri Sadak Yojana", 300000, True, "completed"),
]


def seed_users(cursor) -> dict:
    """Insert one user per role; returns role -> users.id."""
    ids = {}
    password_hash = hash_password(SEED_PASSWORD)
    for user_id, name, email, department, role in SEED_USERS:
        cursor.execute("""
            INSERT INTO users (user_id, full_name, email, department, role, password_hash, is_active)
            VALUES (?, ?, ?, ?, ?, ?, 1)
        """, (user_id, name, email, department, role.value, password_hash))
        ids[role] = cursor.lastrowid
        print(f"  {role.value:<24} {email}")
    return ids


def seed_proposal(index: int, work: tuple, users: dict):
    name, department, scheme, amount, tender, stop = work
    proposal = proposals.create_proposal(ProposalCreate(
        name_of_work=name,
        work_description=f"{name} ({NIRMAN_DEPLOYMENT})",
        work_department=department,
        financial_year=get_current_fy(),
        sanction_amount=amount,
        scheme=scheme,
        city=NIRMAN_DEPLOYMENT,
        is_tender_or_not=tender,
    ), users[Role.DEPARTMENT_USER])
    proposal_id = proposal["id"]
    if stop == "registered":
        return proposal

    approvals.technical_approval(proposal_id, TechnicalApprovalRequest(
        action="approve", approval_number=f"TS/{index:03d}", amount_of_technical_sanction=amount,
    ), users[Role.TECHNICAL_APPROVER])
    if stop == "technical":
        return proposal

    approvals.administrative_approval(proposal_id, AdministrativeApprovalRequest(
        action="approve", approval_number=f"AS/{index:03d}", approved_amount=amount,
        by_govt_district_as="District",
    ), users[Role.ADMINISTRATIVE_APPROVER])

    if tender:
        approvals.start_tender(proposal_id, TenderStartRequest(
            tender_title=name, tender_id=f"TND-{index:03d}", department=department,
            issued_date=date.today() - timedelta(days=30),
        ), users[Role.TENDER_MANAGER])
        if stop == "tender":
            return proposal
        approvals.award_tender(proposal_id, TenderAwardRequest(
            contractor_name="Jashpur Constructions", contact_info="9876543210",
            awarded_amount=round(amount * 0.95, 2),
        ), users[Role.TENDER_MANAGER])

    order_amount = round(amount * 0.95, 2) if tender else amount
    approvals.create_work_order(proposal_id, WorkOrderCreate(
        work_order_number=f"WO/{date.today().year}/{index:03d}",
        date_of_work_order=date.today() - timedelta(days=20),
        contractor_or_gram_panchayat="Jashpur Constructions" if tender else "Gram Panchayat",
        work_order_amount=order_amount,
    ), users[Role.WORK_ORDER_MANAGER])
    if stop == "work_order":
        return proposal

    monitor = users[Role.PROGRESS_MONITOR]
    progress.update_progress(proposal_id, ProgressUpdate(
        progress_percentage=40, mb_stage_measurement_book_stag="Foundation",
        expenditure_amount=round(order_amount * 0.35, 2),
    ), monitor)
    progress.add_installment(proposal_id, InstallmentCreate(
        amount=round(order_amount * 0.3, 2), release_date=date.today() - timedelta(days=5),
        description="First running bill",
    ), monitor)
    if stop == "in_progress":
        return proposal

    progress.update_progress(proposal_id, ProgressUpdate(
        progress_percentage=100, mb_stage_measurement_book_stag="Final measurement",
        expenditure_amount=round(order_amount * 0.9, 2),
    ), monitor)
    return proposal


def init_database():
    """Initialize the database with tables, users, and sample proposals."""
    setup_logging("WARNING")
    print("=" * 60, flush=True)
    print(f"Nirman {NIRMAN_DEPLOYMENT} - Database Initialization", flush=True)
    print(f"Database: {'PostgreSQL' if USE_POSTGRES else 'SQLite'}", flush=True)
    print("=" * 60, flush=True)

    print("\nStep 1: Creating database tables...")
    print("-" * 40)
    reset_database()

    print("\nStep 2: Creating users (password: %s)..." % SEED_PASSWORD)
    print("-" * 40)
    with get_db() as conn:
        users = seed_users(conn.cursor())

    print("\nStep 3: Generating sample proposals...")
    print("-" * 40)
    for index, work in enumerate(SAMPLE_WORKS, start=1):
        proposal = seed_proposal(index, work, users)
        current = proposals.get_proposal(proposal["id"])["currentStatus"]
        print(f"  {proposal['serialNumber']}  {current:<34} {work[0]}")

    print("\n" + "=" * 60)
    print("Database initialization complete!")
    print("=" * 60)


if __name__ == "__main__":
    init_database()
