"""HTTP tests for the FastAPI routers, backed by the in-memory store"""
from fastapi.testclient import TestClient

from main import app
from phoneshop.services.document_store import get_document_store
from phoneshop.services.memory_store import InMemoryDocumentStore


class RouterTestBase:
    def setup_method(self):
        self.store = InMemoryDocumentStore()
        app.dependency_overrides[get_document_store] = lambda: self.store
        self.client = TestClient(app)

    def teardown_method(self):
        app.dependency_overrides.clear()


class TestHealth(RouterTestBase):
    def test_root(self):
        response = self.client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestJobEndpoints(RouterTestBase):
    def create_job(self, **fields) -> str:
        response = self.client.post("/api/jobs/", json=fields)
        assert response.status_code == 200, response.text
        return response.json()["id"]

    def test_create_get_update_delete(self):
        job_id = self.create_job(
            customer_name="Ali",
            visit_date="2024-03-01T10:00:00Z",
            amount_charged=200,
            tech_id="T1",
            tech_percent=0.3,
            parts=[{"part_name": "Screen", "part_cost": 50, "rep_id": "R1"}],
        )

        job = self.client.get(f"/api/jobs/{job_id}").json()
        assert job["status"] == "pending"
        assert job["profit"] == 150
        assert job["attribution"]["kind"] == "parts"

        response = self.client.patch(f"/api/jobs/{job_id}", json={"amount_charged": 100})
        assert response.status_code == 200
        job = self.client.get(f"/api/jobs/{job_id}").json()
        assert job["profit"] == 50
        assert job["tech_commission"] == 15

        assert self.client.delete(f"/api/jobs/{job_id}").status_code == 200
        assert self.client.get(f"/api/jobs/{job_id}").status_code == 404

    def test_patch_cannot_overwrite_profit(self):
        job_id = self.create_job(amount_charged=100, part_cost=20, tech_percent=0.5)

        response = self.client.patch(f"/api/jobs/{job_id}", json={"profit": 999, "shop_profit": 1})
        assert response.status_code == 200

        job = self.client.get(f"/api/jobs/{job_id}").json()
        assert job["profit"] == 80
        assert job["shop_profit"] == 40

    def test_list_filters_and_inclusive_date_to(self):
        self.create_job(visit_date="2024-03-31T18:30:00Z", tech_id="T1", amount_charged=10)
        self.create_job(visit_date="2024-04-01T08:00:00Z", tech_id="T1", amount_charged=10)
        other = self.create_job(visit_date="2024-03-10T08:00:00Z", tech_id="T2", amount_charged=10)
        self.client.patch(f"/api/jobs/{other}", json={"status": "completed"})

        response = self.client.get("/api/jobs/", params={"date_from": "2024-03-01", "date_to": "2024-03-31"})
        assert response.status_code == 200
        assert [j["visit_date"][:10] for j in response.json()] == ["2024-03-31", "2024-03-10"]

        response = self.client.get("/api/jobs/", params={"status": "pending", "date_to": "2024-03-31"})
        assert [j["tech_id"] for j in response.json()] == ["T1"]

    def test_rejects_negative_amount(self):
        response = self.client.post("/api/jobs/", json={"amount_charged": -5})
        assert response.status_code == 422

    def test_rejects_bad_visit_date(self):
        response = self.client.post("/api/jobs/", json={"visit_date": "next tuesday"})
        assert response.status_code == 422

    def test_missing_job_update(self):
        response = self.client.patch("/api/jobs/nope", json={"amount_charged": 5})
        assert response.status_code == 404

    def test_calculate_preview(self):
        response = self.client.get("/api/jobs/calculate", params={
            "part_cost": 100, "amount_charged": 80, "tech_percent": 0.5,
        })
        assert response.json() == {"profit": -20, "tech_commission": 0, "shop_profit": -20}


class TestSettlementEndpoints(RouterTestBase):
    def test_reports(self):
        self.client.post("/api/jobs/", json={
            "visit_date": "2024-03-05T10:00:00Z",
            "amount_charged": 100,
            "tech_id": "T1",
            "tech_name": "Karim",
            "tech_percent": 0.5,
            "parts": [
                {"part_cost": 20, "rep_id": "R1"},
                {"part_cost": 30, "rep_id": "R1"},
                {"part_cost": 10, "rep_id": "R2"},
            ],
        })

        reps = self.client.get("/api/settlements/reps", params={"date_from": "2024-03-01", "date_to": "2024-03-31"})
        assert reps.status_code == 200
        by_rep = {r["rep_id"]: r for r in reps.json()}
        assert (by_rep["R1"]["jobs_count"], by_rep["R1"]["parts_count"], by_rep["R1"]["part_cost_sum"]) == (1, 2, 50)
        assert len(by_rep["R1"]["jobs"]) == 2

        techs = self.client.get("/api/settlements/technicians", params={"status": "pending"})
        assert techs.json()[0]["tech_name"] == "Karim"
        assert techs.json()[0]["tech_commission_sum"] == 20

    def test_lifecycle(self):
        settlement_id = self.client.post("/api/settlements/", json={
            "type": "tech", "entity_id": "T1", "amount": 20,
        }).json()["id"]

        assert self.client.get(f"/api/settlements/{settlement_id}").json()["status"] == "open"

        paid = self.client.post(f"/api/settlements/{settlement_id}/pay", json={"notes": "cash"})
        assert paid.status_code == 200
        assert self.client.get(f"/api/settlements/{settlement_id}").json()["notes"] == "cash"

        again = self.client.post(f"/api/settlements/{settlement_id}/pay", json={})
        assert again.status_code == 400

        listed = self.client.get("/api/settlements/", params={"type": "tech", "status": "paid"}).json()
        assert [s["id"] for s in listed] == [settlement_id]

    def test_unknown_settlement(self):
        assert self.client.post("/api/settlements/nope/pay", json={}).status_code == 404


class TestStaffAndPhoneEndpoints(RouterTestBase):
    def test_staff(self):
        rep_id = self.client.post("/api/staff/reps", json={"name": "Omar"}).json()["id"]
        tech_id = self.client.post("/api/staff/technicians", json={"name": "Karim"}).json()["id"]

        assert [r["id"] for r in self.client.get("/api/staff/reps").json()] == [rep_id]
        assert self.client.get("/api/staff/technicians").json()[0]["default_commission_percent"] == 0.5

        self.client.patch(f"/api/staff/technicians/{tech_id}", json={"active": False})
        assert self.client.get("/api/staff/technicians").json()[0]["active"] is False

        self.client.delete(f"/api/staff/reps/{rep_id}")
        assert self.client.get("/api/staff/reps").json() == []

    def test_barcodes(self):
        barcode = self.client.get("/api/phones/next-barcode").json()["phone_number"]
        assert barcode == "000001"

        created = self.client.post("/api/phones/", json={"phone_number": barcode, "brand": "Apple"})
        assert created.status_code == 200
        duplicate = self.client.post("/api/phones/", json={"phone_number": "1"})
        assert duplicate.status_code == 400

        assert self.client.get("/api/phones/next-barcode").json() == {"phone_number": "000002"}
        assert len(self.client.get("/api/phones/").json()) == 1


class TestRealtimeFeed(RouterTestBase):
    def test_initial_snapshot(self):
        self.client.post("/api/jobs/", json={"amount_charged": 10, "visit_date": "2024-03-05T10:00:00Z"})

        with self.client.websocket_connect("/api/realtime/ws/jobs?status=pending") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "jobs_snapshot"
        assert message["status"] == "pending"
        assert message["count"] == 1
        assert message["data"][0]["amount_charged"] == 10

    def test_status(self):
        response = self.client.get("/api/realtime/status")
        assert response.json()["connections"]["total_connections"] == 0
