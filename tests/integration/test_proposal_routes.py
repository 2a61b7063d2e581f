"""
Integration tests for work proposal routes -- registration, listing, detail
and the approval stages up to the work order.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "integration-test-secret-key")

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from __mocks__.fixtures import make_proposal_payload, make_work_order_payload

pytestmark = pytest.mark.integration


def _post(client, headers, role, path, body):
    return client.post(path, json=body, headers=headers[role])


# ── Registration ─────────────────────────────────────────────────────

class TestCreateProposal:
    def test_create(self, client, headers, role_users):
        response = _post(client, headers, "Department User", "/api/work-proposals", make_proposal_payload())
        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Work proposal created successfully"

        data = body["data"]
        assert data["serialNumber"].startswith("WP")
        assert data["currentStatus"] == "Pending Technical Approval"
        assert data["workProgressStage"] == "Pending Technical Approval"
        assert data["submittedBy"]["id"] == role_users["Department User"]
        assert data["technicalApproval"] is None
        assert data["workProgress"] is None
        assert data["isTenderOrNot"] is False

    def test_serial_numbers_unique(self, client, headers):
        serials = {
            _post(client, headers, "Department User", "/api/work-proposals",
                  make_proposal_payload()).json()["data"]["serialNumber"]
            for _ in range(3)
        }
        assert len(serials) == 3

    @pytest.mark.parametrize("missing", ["nameOfWork", "workDescription", "workDepartment",
                                         "financialYear", "sanctionAmount"])
    def test_required_fields(self, client, headers, missing):
        payload = make_proposal_payload()
        del payload[missing]
        response = _post(client, headers, "Department User", "/api/work-proposals", payload)
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Validation failed"
        assert any(error["field"] == missing for error in body["errors"])

    def test_negative_sanction_amount(self, client, headers):
        response = _post(client, headers, "Department User", "/api/work-proposals",
                         make_proposal_payload(sanctionAmount=-5))
        assert response.status_code == 400

    @pytest.mark.parametrize("literal", ["1e400", "Infinity", "NaN"])
    def test_non_finite_sanction_amount(self, client, headers, literal):
        body = ('{"nameOfWork": "Culvert", "workDescription": "Culvert repair", "workDepartment": "Roads", '
                f'"financialYear": "2024-25", "sanctionAmount": {literal}}}')
        response = client.post("/api/work-proposals", content=body.encode(),
                               headers={**headers["Department User"], "Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["message"] == "Validation failed"
        assert any(error["field"] == "sanctionAmount" for error in response.json()["errors"])

    def test_unknown_engineer(self, client, headers):
        response = _post(client, headers, "Department User", "/api/work-proposals",
                         make_proposal_payload(appointedEngineer=999999))
        assert response.status_code == 400
        assert response.json()["message"] == "Appointed engineer does not exist"

    def test_requires_login(self, client):
        response = client.post("/api/work-proposals", json=make_proposal_payload())
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_invalid_token(self, client):
        response = client.post("/api/work-proposals", json=make_proposal_payload(),
                               headers={"Authorization": "Bearer not-a-real-token"})
        assert response.status_code == 401

    def test_approver_cannot_register(self, client, headers):
        response = _post(client, headers, "Technical Approver", "/api/work-proposals", make_proposal_payload())
        assert response.status_code == 403


# ── Listing and detail ───────────────────────────────────────────────

class TestListProposals:
    def test_list_newest_first(self, client, headers, make_work):
        first = make_work("registered", workDepartment="Listing Order Dept")
        second = make_work("registered", workDepartment="Listing Order Dept")

        response = client.get("/api/work-proposals", params={"department": "listing order"},
                              headers=headers["Admin"])
        assert response.status_code == 200
        body = response.json()
        assert [item["id"] for item in body["data"]] == [second, first]
        assert body["pagination"] == {"current": 1, "pages": 1, "total": 2, "limit": 10}

    def test_filters(self, client, headers, make_work):
        approved = make_work("technical", workDepartment="Filter Dept", financialYear="2023-24")
        make_work("registered", workDepartment="Filter Dept", financialYear="2023-24")

        response = client.get("/api/work-proposals", headers=headers["Department User"], params={
            "department": "filter dept",
            "financialYear": "2023-24",
            "status": "Pending Administrative Approval",
        })
        assert [item["id"] for item in response.json()["data"]] == [approved]

    def test_list_items_have_no_sub_documents(self, client, headers, make_work):
        make_work("registered", workDepartment="Shape Dept")
        item = client.get("/api/work-proposals", params={"department": "shape dept"},
                          headers=headers["Admin"]).json()["data"][0]
        assert "workProgress" not in item
        assert item["submittedBy"]["email"] == "test.dept@nirman.gov.in"

    def test_department_underscore_is_literal(self, client, headers, make_work):
        literal = make_work("registered", workDepartment="Ward_7 Drains")
        make_work("registered", workDepartment="Ward 7 Drains")

        response = client.get("/api/work-proposals", params={"department": "ward_7"},
                              headers=headers["Admin"])
        assert [item["id"] for item in response.json()["data"]] == [literal]

    def test_department_percent_is_literal(self, client, headers, make_work):
        make_work("registered", workDepartment="Percent Dept")
        response = client.get("/api/work-proposals", params={"department": "percent%dept"},
                              headers=headers["Admin"])
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 0

    def test_limit_capped(self, client, headers):
        response = client.get("/api/work-proposals", params={"limit": 1000}, headers=headers["Admin"])
        assert response.status_code == 400

    def test_bad_page(self, client, headers):
        response = client.get("/api/work-proposals", params={"page": 0}, headers=headers["Admin"])
        assert response.status_code == 400

    def test_unknown_status_filter(self, client, headers):
        response = client.get("/api/work-proposals", params={"status": "Dreaming"}, headers=headers["Admin"])
        assert response.status_code == 400
        assert response.json()["message"] == "Unknown work status 'Dreaming'"


class TestGetProposal:
    def test_full_document(self, client, headers, make_work):
        proposal_id = make_work("in_progress", tender=True)
        response = client.get(f"/api/work-proposals/{proposal_id}", headers=headers["Progress Monitor"])
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["technicalApproval"]["status"] == "Approved"
        assert data["technicalApproval"]["approvedBy"]["email"] == "test.tech@nirman.gov.in"
        assert data["administrativeApproval"]["status"] == "Approved"
        assert data["tenderProcess"]["tenderStatus"] == "Awarded"
        assert data["tenderProcess"]["selectedContractor"]["name"] == "Kunkuri Builders"
        assert data["workOrder"]["issuedBy"]["email"] == "test.workorder@nirman.gov.in"
        assert data["workProgress"]["progressPercentage"] == 10

    def test_not_found(self, client, headers):
        response = client.get("/api/work-proposals/999999", headers=headers["Admin"])
        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Work proposal not found"}

    def test_non_numeric_id(self, client, headers):
        response = client.get("/api/work-proposals/abc", headers=headers["Admin"])
        assert response.status_code == 400


# ── Technical approval ───────────────────────────────────────────────

class TestTechnicalApproval:
    def _path(self, proposal_id):
        return f"/api/work-proposals/{proposal_id}/technical-approval"

    def test_approve(self, client, headers, make_work):
        proposal_id = make_work("registered")
        response = _post(client, headers, "Technical Approver", self._path(proposal_id), {
            "action": "approve", "approvalNumber": "TS/99", "amountOfTechnicalSanction": 95000,
            "remarks": "Estimate checked",
        })
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Technical approval approved successfully"
        assert body["data"]["currentStatus"] == "Pending Administrative Approval"
        assert body["data"]["technicalApproval"]["approvalNumber"] == "TS/99"
        assert body["data"]["technicalApproval"]["amountOfTechnicalSanction"] == 95000

    def test_reject(self, client, headers, make_work):
        proposal_id = make_work("registered")
        response = _post(client, headers, "Technical Approver", self._path(proposal_id),
                         {"action": "reject", "rejectionReason": "Estimate incomplete"})
        body = response.json()
        assert body["message"] == "Technical approval rejected successfully"
        assert body["data"]["currentStatus"] == "Rejected Technical Approval"
        assert body["data"]["technicalApproval"]["rejectionReason"] == "Estimate incomplete"

    def test_approve_requires_number(self, client, headers, make_work):
        proposal_id = make_work("registered")
        response = _post(client, headers, "Technical Approver", self._path(proposal_id), {"action": "approve"})
        assert response.status_code == 400
        assert response.json()["message"] == "Approval number is required for approval"

    def test_reject_requires_reason(self, client, headers, make_work):
        proposal_id = make_work("registered")
        response = _post(client, headers, "Technical Approver", self._path(proposal_id), {"action": "reject"})
        assert response.status_code == 400
        assert response.json()["message"] == "Rejection reason is required for rejection"

    def test_bad_action(self, client, headers, make_work):
        proposal_id = make_work("registered")
        response = _post(client, headers, "Technical Approver", self._path(proposal_id), {"action": "maybe"})
        assert response.status_code == 400
        assert response.json()["message"] == 'Action must be either "approve" or "reject"'

    def test_not_pending(self, client, headers, make_work):
        proposal_id = make_work("technical")
        before = client.get(f"/api/work-proposals/{proposal_id}", headers=headers["Admin"]).json()["data"]
        response = _post(client, headers, "Technical Approver", self._path(proposal_id),
                         {"action": "approve", "approvalNumber": "TS/again"})
        assert response.status_code == 400
        assert response.json()["message"] == "Proposal is not pending technical approval"
        after = client.get(f"/api/work-proposals/{proposal_id}", headers=headers["Admin"]).json()["data"]
        assert after == before

    def test_wrong_role(self, client, headers, make_work):
        proposal_id = make_work("registered")
        response = _post(client, headers, "Department User", self._path(proposal_id),
                         {"action": "approve", "approvalNumber": "TS/x"})
        assert response.status_code == 403


# ── Administrative approval ──────────────────────────────────────────

class TestAdministrativeApproval:
    def _path(self, proposal_id):
        return f"/api/work-proposals/{proposal_id}/administrative-approval"

    def test_approve_without_tender(self, client, headers, make_work):
        proposal_id = make_work("technical")
        response = _post(client, headers, "Administrative Approver", self._path(proposal_id), {
            "action": "approve", "approvalNumber": "AS/77", "approvedAmount": 98000, "byGovtDistrictAS": "District",
        })
        data = response.json()["data"]
        assert data["currentStatus"] == "Pending Work Order"
        assert data["administrativeApproval"]["byGovtDistrictAS"] == "District"
        assert data["administrativeApproval"]["approvedAmount"] == 98000

    def test_approve_with_tender(self, client, headers, make_work):
        proposal_id = make_work("technical", tender=True)
        response = _post(client, headers, "Administrative Approver", self._path(proposal_id),
                         {"action": "approve", "approvalNumber": "AS/78"})
        assert response.json()["data"]["currentStatus"] == "Pending Tender"

    def test_reject(self, client, headers, make_work):
        proposal_id = make_work("technical")
        response = _post(client, headers, "Administrative Approver", self._path(proposal_id),
                         {"action": "REJECT", "rejectionReason": "No budget head"})
        body = response.json()
        assert body["message"] == "Administrative approval rejected successfully"
        assert body["data"]["currentStatus"] == "Rejected Administrative Approval"

    def test_before_technical_approval(self, client, headers, make_work):
        proposal_id = make_work("registered")
        response = _post(client, headers, "Administrative Approver", self._path(proposal_id),
                         {"action": "approve", "approvalNumber": "AS/79"})
        assert response.status_code == 400
        assert response.json()["message"] == "Proposal is not pending administrative approval"

    def test_unknown_proposal(self, client, headers):
        response = _post(client, headers, "Administrative Approver", self._path(999999),
                         {"action": "approve", "approvalNumber": "AS/80"})
        assert response.status_code == 404


# ── Tender ───────────────────────────────────────────────────────────

class TestTender:
    def test_start(self, client, headers, make_work):
        proposal_id = make_work("administrative", tender=True)
        response = _post(client, headers, "Tender Manager", f"/api/work-proposals/{proposal_id}/tender/start",
                         {"tenderTitle": "Bridge", "tenderID": "TND-X1", "issuedDate": "2024-05-10"})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["currentStatus"] == "Tender In Progress"
        assert data["tenderProcess"]["tenderStatus"] == "Notice Published"
        assert data["tenderProcess"]["tenderID"] == "TND-X1"
        assert data["tenderProcess"]["issuedDate"] == "2024-05-10"
        assert data["tenderProcess"]["selectedContractor"] is None

    def test_start_when_not_pending(self, client, headers, make_work):
        proposal_id = make_work("administrative", tender=False)
        response = _post(client, headers, "Tender Manager", f"/api/work-proposals/{proposal_id}/tender/start",
                         {"tenderTitle": "Bridge"})
        assert response.status_code == 400
        assert response.json()["message"] == "Proposal is not pending tender process"

    def test_award(self, client, headers, make_work):
        proposal_id = make_work("tender_started", tender=True)
        response = _post(client, headers, "Tender Manager", f"/api/work-proposals/{proposal_id}/tender/award",
                         {"contractorName": "Sai Constructions", "contactInfo": "0771-000", "awardedAmount": 91000})
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["currentStatus"] == "Pending Work Order"
        assert data["tenderProcess"]["tenderStatus"] == "Awarded"
        assert data["tenderProcess"]["selectedContractor"] == {
            "name": "Sai Constructions", "contactInfo": "0771-000", "awardedAmount": 91000,
        }

    def test_award_requires_contractor(self, client, headers, make_work):
        proposal_id = make_work("tender_started", tender=True)
        response = _post(client, headers, "Tender Manager", f"/api/work-proposals/{proposal_id}/tender/award",
                         {"awardedAmount": 91000})
        assert response.status_code == 400
        assert response.json()["message"] == "Contractor name and awarded amount are required"

    def test_award_before_start(self, client, headers, make_work):
        proposal_id = make_work("administrative", tender=True)
        response = _post(client, headers, "Tender Manager", f"/api/work-proposals/{proposal_id}/tender/award",
                         {"contractorName": "Sai Constructions", "awardedAmount": 91000})
        assert response.status_code == 400
        assert response.json()["message"] == "Tender process is not in progress"

    def test_wrong_role(self, client, headers, make_work):
        proposal_id = make_work("administrative", tender=True)
        response = _post(client, headers, "Work Order Manager",
                         f"/api/work-proposals/{proposal_id}/tender/start", {"tenderTitle": "Bridge"})
        assert response.status_code == 403


# ── Work order ───────────────────────────────────────────────────────

class TestWorkOrder:
    def _path(self, proposal_id):
        return f"/api/work-proposals/{proposal_id}/work-order"

    def test_create_opens_ledger(self, client, headers, make_work):
        proposal_id = make_work("administrative")
        response = _post(client, headers, "Work Order Manager", self._path(proposal_id),
                         make_work_order_payload(number="WO/WO-TEST/1", workOrderAmount=88000))
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["currentStatus"] == "Work Order Created"
        assert data["workOrder"]["workOrderNumber"] == "WO/WO-TEST/1"
        assert data["workOrder"]["dateOfWorkOrder"] == "2024-06-01"

        ledger = data["workProgress"]
        assert ledger["progressPercentage"] == 0
        assert ledger["sanctionedAmount"] == 88000
        assert ledger["totalAmountReleasedSoFar"] == 0
        assert ledger["remainingBalance"] == 88000
        assert ledger["installments"] == []
        assert "version" not in ledger

    def test_amount_defaults_to_sanction(self, client, headers, make_work):
        proposal_id = make_work("administrative", sanction=45000)
        payload = make_work_order_payload(number="WO/WO-TEST/2")
        del payload["workOrderAmount"]
        response = _post(client, headers, "Work Order Manager", self._path(proposal_id), payload)
        data = response.json()["data"]
        assert data["workOrder"]["workOrderAmount"] == 45000
        assert data["workProgress"]["sanctionedAmount"] == 45000

    def test_duplicate_number(self, client, headers, make_work):
        first = make_work("administrative")
        second = make_work("administrative")
        _post(client, headers, "Work Order Manager", self._path(first), make_work_order_payload(number="WO/DUP/1"))
        response = _post(client, headers, "Work Order Manager", self._path(second),
                         make_work_order_payload(number="WO/DUP/1"))
        assert response.status_code == 400
        assert response.json()["message"] == "Work order number already exists"

    def test_missing_fields(self, client, headers, make_work):
        proposal_id = make_work("administrative")
        response = _post(client, headers, "Work Order Manager", self._path(proposal_id),
                         {"workOrderNumber": "WO/WO-TEST/3"})
        assert response.status_code == 400
        assert response.json()["message"] == "All work order fields are required"

    def test_tender_not_awarded(self, client, headers, make_work):
        proposal_id = make_work("tender_started", tender=True)
        response = _post(client, headers, "Work Order Manager", self._path(proposal_id),
                         make_work_order_payload(number="WO/WO-TEST/4"))
        assert response.status_code == 400
        assert response.json()["message"] == "Proposal is not pending work order creation"

    def test_admin_can_issue(self, client, headers, make_work):
        proposal_id = make_work("administrative")
        response = _post(client, headers, "Admin", self._path(proposal_id),
                         make_work_order_payload(number="WO/WO-TEST/5"))
        assert response.status_code == 200
