"""
Tests for maintenance order endpoints.
"""
from datetime import datetime, timedelta

import pytest

from tests.factories import create_test_job, create_test_machine, create_test_work_order

MONDAY_9 = datetime(2024, 6, 3, 9, 0)


def _request(machine, **overrides):
    body = {
        "machine_id": machine.id,
        "maintenance_type": "unplanned",
        "start": "2024-06-03T09:00:00",
        "duration_hours": 2,
        "description": "Coolant pump failure",
    }
    body.update(overrides)
    return body


class TestCreateMaintenance:
    """Tests for POST /api/v1/maintenance/"""

    @pytest.fixture(autouse=True)
    def setup(self, db):
        self.machine = create_test_machine(db, code="MILL-2")
        wo = create_test_work_order(db)
        self.busy = create_test_job(
            db, wo, status="assigned", machine=self.machine,
            scheduled_start=MONDAY_9 + timedelta(hours=1), scheduled_end=MONDAY_9 + timedelta(hours=2),
        )
        db.commit()

    @pytest.mark.api
    def test_conflicts_come_back_without_writes(self, client, db, admin_headers):
        response = client.post("/api/v1/maintenance/", json=_request(self.machine), headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "conflicts"
        assert data["work_order"] is None
        assert [c["job_number"] for c in data["conflicts"]] == [self.busy.job_number]
        assert data["window_end"] == "2024-06-03T11:00:00"

        db.refresh(self.machine)
        assert self.machine.status == "available"

    @pytest.mark.api
    def test_resolution_creates_order(self, client, db, admin_headers):
        response = client.post(
            "/api/v1/maintenance/",
            json=_request(self.machine, resolution="move_next"),
            headers=admin_headers,
        )

        data = response.json()
        assert data["state"] == "created"
        assert data["resolution"] == "move_next"
        assert data["work_order"]["wo_number"].startswith("MO-")
        assert data["work_order"]["maintenance_type"] == "unplanned"
        assert data["job"]["is_maintenance"] is True
        assert data["conflicts"][0]["scheduled_start"] == "2024-06-03T11:00:00"

        db.refresh(self.machine)
        assert self.machine.status == "down"

    @pytest.mark.api
    def test_planned_window_blocks_unplanned_request(self, client, db, admin_headers):
        planned = client.post(
            "/api/v1/maintenance/",
            json=_request(self.machine, maintenance_type="planned"),
            headers=admin_headers,
        ).json()["job"]

        response = client.post(
            "/api/v1/maintenance/",
            json=_request(
                self.machine, start="2024-06-03T10:00:00", duration_hours=1, resolution="return_to_queue",
            ),
            headers=admin_headers,
        )

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "SCHEDULE_CONFLICT"
        assert data["details"]["maintenance_jobs"] == [planned["job_number"]]

        db.refresh(self.busy)
        assert self.busy.status == "assigned"
        db.refresh(self.machine)
        assert self.machine.status == "available"

    @pytest.mark.api
    def test_blank_description_fails_validation(self, client, db, admin_headers):
        response = client.post(
            "/api/v1/maintenance/", json=_request(self.machine, description=""), headers=admin_headers
        )
        assert response.status_code == 422

    @pytest.mark.api
    def test_active_list_and_close(self, client, db, admin_headers):
        created = client.post(
            "/api/v1/maintenance/",
            json=_request(self.machine, maintenance_type="planned"),
            headers=admin_headers,
        ).json()
        job_id = created["job"]["id"]

        active = client.get("/api/v1/maintenance/active").json()
        assert [j["id"] for j in active] == [job_id]

        response = client.post(
            f"/api/v1/maintenance/{job_id}/extend", json={"minutes": 30}, headers=admin_headers
        )
        assert response.json()["scheduled_end"] == "2024-06-03T11:30:00"

        response = client.post(
            f"/api/v1/maintenance/{job_id}/close", json={"mode": "cancel"}, headers=admin_headers
        )
        assert response.status_code == 400

        response = client.post(
            f"/api/v1/maintenance/{job_id}/close",
            json={"mode": "complete", "end_time": "2024-06-03T10:15:00"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "complete"
        assert client.get("/api/v1/maintenance/active").json() == []
