"""
Integration test conftest -- test database setup, FastAPI TestClient and
logged-in users for every role.
"""
import itertools
import os
import sys
import pytest
from pathlib import Path

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

# Force SQLite for integration tests
os.environ["DATABASE_URL"] = ""
os.environ["SECRET_KEY"] = "integration-test-secret-key"

from starlette.testclient import TestClient

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from __mocks__.fixtures import make_proposal_payload, make_work_order_payload

TEST_PASSWORD = "Testpass@123"

ROLE_USERS = {
    "Super Admin": ("T-SADM", "test.superadmin@nirman.gov.in"),
    "Admin": ("T-ADM", "test.admin@nirman.gov.in"),
    "Department User": ("T-DEPT", "test.dept@nirman.gov.in"),
    "Technical Approver": ("T-TECH", "test.tech@nirman.gov.in"),
    "Administrative Approver": ("T-AADM", "test.adminapprover@nirman.gov.in"),
    "Tender Manager": ("T-TNDR", "test.tender@nirman.gov.in"),
    "Work Order Manager": ("T-WORD", "test.workorder@nirman.gov.in"),
    "Progress Monitor": ("T-PROG", "test.progress@nirman.gov.in"),
}


@pytest.fixture(scope="session")
def test_db():
    """Initialize a fresh SQLite test database."""
    import nirman.config as config
    import nirman.database as database_mod

    # Use a temp file for test DB
    test_db_path = Path(__file__).resolve().parent.parent.parent / "test_nirman.db"
    config.DATABASE_PATH = test_db_path
    database_mod.DATABASE_PATH = test_db_path

    # Remove old test DB if exists
    if test_db_path.exists():
        test_db_path.unlink()

    # Initialize fresh DB
    from nirman.database import init_database
    init_database()

    yield test_db_path

    # Cleanup
    if test_db_path.exists():
        test_db_path.unlink()


@pytest.fixture(scope="session")
def client(test_db):
    """Create a TestClient for the FastAPI app."""
    from nirman.main import app
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture(scope="session")
def role_users(test_db):
    """One active user per role; returns role -> users.id."""
    from nirman.auth import hash_password
    from nirman.database import get_db

    pw_hash = hash_password(TEST_PASSWORD)
    ids = {}
    with get_db() as conn:
        cursor = conn.cursor()
        for role, (user_id, email) in ROLE_USERS.items():
            cursor.execute(
                """INSERT INTO users (user_id, full_name, email, department, role, password_hash, is_active)
                   VALUES (?, ?, ?, ?, ?, ?, 1)""",
                (user_id, f"Test {role}", email, "Public Works", role, pw_hash),
            )
            ids[role] = cursor.lastrowid
    return ids


@pytest.fixture(scope="session")
def headers(client, role_users):
    """Bearer headers per role, logged in once for the whole session."""
    result = {}
    for role, (_, email) in ROLE_USERS.items():
        response = client.post("/api/auth/login", json={"email": email, "password": TEST_PASSWORD})
        assert response.status_code == 200, response.text
        token = response.json()["data"]["token"]
        result[role] = {"Authorization": f"Bearer {token}"}
    return result


@pytest.fixture(scope="session")
def make_work(client, headers):
    """Register a proposal over HTTP and walk it to the requested status.

    stop is one of: registered, technical, administrative, tender_started,
    work_order, in_progress.
    """
    numbers = itertools.count(1)

    def _make(stop="work_order", tender=False, sanction=100000, work_order_amount=100000, **fields):
        payload = make_proposal_payload(sanctionAmount=sanction, isTenderOrNot=tender, **fields)
        response = client.post("/api/work-proposals", json=payload, headers=headers["Department User"])
        assert response.status_code == 201, response.text
        proposal_id = response.json()["data"]["id"]
        if stop == "registered":
            return proposal_id

        n = next(numbers)
        response = client.post(
            f"/api/work-proposals/{proposal_id}/technical-approval",
            json={"action": "approve", "approvalNumber": f"TS/{n}", "amountOfTechnicalSanction": sanction},
            headers=headers["Technical Approver"],
        )
        assert response.status_code == 200, response.text
        if stop == "technical":
            return proposal_id

        response = client.post(
            f"/api/work-proposals/{proposal_id}/administrative-approval",
            json={"action": "approve", "approvalNumber": f"AS/{n}", "approvedAmount": sanction},
            headers=headers["Administrative Approver"],
        )
        assert response.status_code == 200, response.text
        if stop == "administrative":
            return proposal_id

        if tender:
            response = client.post(
                f"/api/work-proposals/{proposal_id}/tender/start",
                json={"tenderTitle": "Road tender", "tenderID": f"TND-{n}", "issuedDate": "2024-05-01"},
                headers=headers["Tender Manager"],
            )
            assert response.status_code == 200, response.text
            if stop == "tender_started":
                return proposal_id
            response = client.post(
                f"/api/work-proposals/{proposal_id}/tender/award",
                json={"contractorName": "Kunkuri Builders", "contactInfo": "9876543210",
                      "awardedAmount": work_order_amount},
                headers=headers["Tender Manager"],
            )
            assert response.status_code == 200, response.text

        response = client.post(
            f"/api/work-proposals/{proposal_id}/work-order",
            json=make_work_order_payload(number=f"WO/TEST/{n:04d}", workOrderAmount=work_order_amount),
            headers=headers["Work Order Manager"],
        )
        assert response.status_code == 200, response.text
        if stop == "work_order":
            return proposal_id

        response = client.post(
            f"/api/work-proposals/{proposal_id}/progress",
            json={"progressPercentage": 10},
            headers=headers["Progress Monitor"],
        )
        assert response.status_code == 200, response.text
        return proposal_id

    return _make
