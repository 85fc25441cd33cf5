"""
Tests for the BOM import endpoints.
"""
import pytest

from app.models.part import Part
from tests.factories import create_test_part

BOM_TEXT = """SK40-1 - Clamp Assembly
Item Description Qty
SK401 Clamp jaw 2 ea
SK402 Clamp screw l ea
labor Assemble 1 hr
"""


class TestBomImport:
    """Tests for /api/v1/bom-import"""

    @pytest.mark.api
    def test_review_edit_save(self, client, db, admin_headers):
        create_test_part(db, part_number="SK402", description="Existing screw")
        db.commit()

        response = client.post("/api/v1/bom-import/", json={"text": BOM_TEXT}, headers=admin_headers)
        assert response.status_code == 201
        data = response.json()
        session_id = data["id"]
        assert data["stage"] == "review"
        assert data["assembly"]["part_number"] == "SK40-1"
        assert [c["part_number"] for c in data["components"]] == ["SK401", "SK402"]
        assert [c["is_duplicate"] for c in data["components"]] == [False, True]

        response = client.patch(
            f"/api/v1/bom-import/{session_id}/components/0",
            json={"quantity": 4, "requires_passivation": True},
            headers=admin_headers,
        )
        assert response.json()["components"][0]["quantity"] == 4

        response = client.post(f"/api/v1/bom-import/{session_id}/save", headers=admin_headers)
        data = response.json()
        assert data["stage"] == "complete"
        assert data["report"]["created"] == ["Assembly: SK40-1", "Component: SK401"]
        assert data["report"]["errors"] == []

        jaw = db.query(Part).filter_by(part_number="SK401").one()
        assert jaw.requires_passivation

        response = client.delete(f"/api/v1/bom-import/{session_id}", headers=admin_headers)
        assert response.status_code == 200
        assert client.get(f"/api/v1/bom-import/{session_id}").status_code == 404

    @pytest.mark.api
    def test_unparseable_text(self, client, db, admin_headers):
        response = client.post("/api/v1/bom-import/", json={"text": "blurry photo"}, headers=admin_headers)
        assert response.status_code == 400

    @pytest.mark.api
    def test_remove_out_of_range(self, client, db, admin_headers):
        session_id = client.post(
            "/api/v1/bom-import/", json={"text": BOM_TEXT}, headers=admin_headers
        ).json()["id"]

        response = client.delete(f"/api/v1/bom-import/{session_id}/components/9", headers=admin_headers)
        assert response.status_code == 404
