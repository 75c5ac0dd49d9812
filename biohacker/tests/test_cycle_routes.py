"""
Tests for the cycle and dose endpoints.
"""

import pytest
from datetime import date

from httpx import AsyncClient

from biohacker.cycle_service import CycleService
from biohacker.models.documents import RecurrenceRule

CYCLE_BODY = {
    "name": "Recovery",
    "peptide_name": "BPC-157",
    "dose_amount": "250mcg",
    "start_date": "2024-01-01",
    "end_date": "2024-01-14",
    "frequency": {"type": "weekly", "days": ["MON", "THU"]},
}


async def _create(client: AsyncClient, headers: dict, **overrides) -> dict:
    response = await client.post("/api/v1/cycles", headers=headers, json={**CYCLE_BODY, **overrides})
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_create_cycle(client: AsyncClient, auth_headers):
    body = await _create(client, auth_headers)

    assert body["doses"] == {"success": True, "count": 4, "generated": 4}
    assert body["cycle"]["name"] == "Recovery"
    assert body["cycle"]["total_expected_doses"] == 4
    assert body["cycle"]["status"] == "active"


@pytest.mark.asyncio
async def test_create_rejects_inverted_range(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/cycles", headers=auth_headers, json={
        **CYCLE_BODY, "start_date": "2024-02-01", "end_date": "2024-01-01"
    })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_rejects_unbounded_range(client: AsyncClient, auth_headers, mock_db):
    response = await client.post("/api/v1/cycles", headers=auth_headers, json={
        **CYCLE_BODY, "start_date": "2024-01-01", "end_date": "9999-12-31"
    })

    assert response.status_code == 422
    assert mock_db.documents("dose_events") == []


@pytest.mark.asyncio
async def test_preview_rejects_unbounded_range(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/cycles/preview", headers=auth_headers, json={
        **CYCLE_BODY, "start_date": "2024-01-01", "end_date": "9999-12-31"
    })

    assert response.status_code == 422



@pytest.mark.asyncio
async def test_create_rejects_unknown_weekday(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/cycles", headers=auth_headers, json={
        **CYCLE_BODY, "frequency": {"type": "weekly", "days": ["FUNDAY"]}
    })

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_preview_does_not_save(client: AsyncClient, auth_headers, mock_db):
    response = await client.post("/api/v1/cycles/preview", headers=auth_headers, json={
        **CYCLE_BODY, "frequency": {"type": "daily", "times": 2}
    })

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 28
    assert body["doses"][0] == {"scheduled_date": "2024-01-01", "time_label": "08:00"}
    assert mock_db.documents("cycles") == []
    assert mock_db.documents("dose_events") == []


@pytest.mark.asyncio
async def test_list_and_get(client: AsyncClient, auth_headers):
    created = await _create(client, auth_headers)
    cycle_id = created["cycle"]["cycle_id"]

    listed = await client.get("/api/v1/cycles", headers=auth_headers)
    assert [c["cycle_id"] for c in listed.json()] == [cycle_id]

    fetched = await client.get(f"/api/v1/cycles/{cycle_id}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["frequency"]["days"] == ["MON", "THU"]


@pytest.mark.asyncio
async def test_other_users_cycle_is_forbidden(client: AsyncClient, auth_headers, mock_db):
    cycle, _ = await CycleService(mock_db).create_cycle(
        user_id="someone-else",
        peptide_name="TB-500",
        dose_amount="2mg",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 2),
        frequency=RecurrenceRule(),
    )

    response = await client.get(f"/api/v1/cycles/{cycle.cycle_id}", headers=auth_headers)
    assert response.status_code == 403

    response = await client.delete(f"/api/v1/cycles/{cycle.cycle_id}", headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_missing_cycle(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/cycles/nope", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_patch_range_regenerates(client: AsyncClient, auth_headers, mock_db):
    created = await _create(client, auth_headers)
    cycle_id = created["cycle"]["cycle_id"]

    response = await client.patch(
        f"/api/v1/cycles/{cycle_id}",
        headers=auth_headers,
        json={"end_date": "2024-01-07"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["doses"]["count"] == 2
    assert body["cycle"]["total_expected_doses"] == 2
    assert len(mock_db.documents("dose_events")) == 2


@pytest.mark.asyncio
async def test_patch_notes_only(client: AsyncClient, auth_headers):
    created = await _create(client, auth_headers)
    cycle_id = created["cycle"]["cycle_id"]

    response = await client.patch(
        f"/api/v1/cycles/{cycle_id}",
        headers=auth_headers,
        json={"notes": "fridge, top shelf", "frequency": CYCLE_BODY["frequency"]}
    )

    assert response.status_code == 200
    assert response.json()["doses"] is None


@pytest.mark.asyncio
async def test_delete_cascades(client: AsyncClient, auth_headers, mock_db):
    created = await _create(client, auth_headers)
    cycle_id = created["cycle"]["cycle_id"]

    response = await client.delete(f"/api/v1/cycles/{cycle_id}", headers=auth_headers)

    assert response.json() == {"status": "deleted", "doses_removed": 4}
    assert mock_db.documents("dose_events") == []


@pytest.mark.asyncio
async def test_pause_and_resume(client: AsyncClient, auth_headers):
    created = await _create(client, auth_headers)
    cycle_id = created["cycle"]["cycle_id"]

    paused = await client.post(f"/api/v1/cycles/{cycle_id}/pause", headers=auth_headers)
    assert paused.json() == {"status": "paused"}

    resumed = await client.post(f"/api/v1/cycles/{cycle_id}/resume", headers=auth_headers)
    assert resumed.json() == {"status": "active"}


@pytest.mark.asyncio
async def test_generate_doses_is_idempotent(client: AsyncClient, auth_headers, mock_db):
    created = await _create(client, auth_headers)
    cycle_id = created["cycle"]["cycle_id"]

    response = await client.post(f"/api/v1/cycles/{cycle_id}/generate-doses", headers=auth_headers)

    assert response.json()["count"] == 4
    assert len(mock_db.documents("dose_events")) == 4


@pytest.mark.asyncio
async def test_dose_window_and_toggle(client: AsyncClient, auth_headers):
    created = await _create(client, auth_headers)
    cycle_id = created["cycle"]["cycle_id"]

    response = await client.get(
        "/api/v1/doses",
        headers=auth_headers,
        params={"start": "2024-01-01", "end": "2024-01-07"}
    )
    doses = response.json()
    assert [d["scheduled_date"] for d in doses] == ["2024-01-01", "2024-01-04"]

    dose_id = doses[0]["dose_id"]
    assert dose_id == f"{cycle_id}-2024-01-01-08:00"

    toggled = await client.post(f"/api/v1/doses/{dose_id}/toggle", headers=auth_headers)
    assert toggled.json()["status"] == "logged"

    cycle = await client.get(f"/api/v1/cycles/{cycle_id}", headers=auth_headers)
    assert cycle.json()["doses_logged"] == 1

    missed = await client.patch(
        f"/api/v1/doses/{dose_id}",
        headers=auth_headers,
        json={"status": "missed"}
    )
    assert missed.json()["status"] == "missed"
    assert missed.json()["logged_at"] is None


@pytest.mark.asyncio
async def test_dose_window_validation(client: AsyncClient, auth_headers):
    response = await client.get(
        "/api/v1/doses",
        headers=auth_headers,
        params={"start": "2024-01-07", "end": "2024-01-01"}
    )
    assert response.status_code == 400

    response = await client.get(
        "/api/v1/doses",
        headers=auth_headers,
        params={"start": "2024-01-01", "end": "2025-06-01"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_dose(client: AsyncClient, auth_headers):
    response = await client.post("/api/v1/doses/missing/toggle", headers=auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_adherence_endpoint_without_doses(client: AsyncClient, auth_headers):
    response = await client.get("/api/v1/doses/adherence", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"days": 7, "adherence": 100.0, "doses_today": 0}
