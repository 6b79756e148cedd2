"""Processing lifecycle: start, status changes and per-station stats."""

from __future__ import annotations

import pytest

from washstation.errors import (
    AlreadyStarted,
    BatchNotInPurchases,
    InvalidStatusTransition,
    MissingRequiredFields,
    StationNotFound,
    UnsupportedProcessingType,
)
from washstation.models import ProcessingStatus, ProcessingType
from washstation.services.processing import set_status, start_processing, station_stats


def _start_payload(station, **overrides):
    payload = {
        "batchNo": "24KY1503A",
        "processingType": "FULLY_WASHED",
        "totalKgs": 1000,
        "grade": "A",
        "cwsId": station.id,
    }
    payload.update(overrides)
    return payload


def _start_payload_stub():
    return {"batchNo": "24KY1503A", "processingType": "HONEY", "totalKgs": 10, "grade": "A"}


class TestStartProcessing:

    def test_starts_in_progress(self, station, make_purchase):
        make_purchase(station)
        row = start_processing(_start_payload(station))
        assert row.status is ProcessingStatus.IN_PROGRESS
        assert row.processing_type is ProcessingType.FULLY_WASHED
        assert row.start_date is not None
        assert row.end_date is None

    def test_missing_fields(self, station):
        with pytest.raises(MissingRequiredFields) as exc:
            start_processing({"batchNo": "24KY1503A"})
        assert set(exc.value.fields) == {"processingType", "totalKgs", "grade", "cwsId"}

    def test_station_checked_before_purchases(self, app):
        with pytest.raises(StationNotFound):
            start_processing({**_start_payload_stub(), "cwsId": 404})

    def test_batch_must_be_purchased(self, station):
        with pytest.raises(BatchNotInPurchases) as exc:
            start_processing(_start_payload(station))
        assert exc.value.message == "Batch not found in purchases"

    def test_speciality_station_skips_purchase_check(self, make_station):
        special = make_station("SP", havespeciality=True)
        row = start_processing(_start_payload(special, batchNo="24SP1503A"))
        assert row.batch_no == "24SP1503A"

    def test_second_start_refused(self, station, make_purchase):
        make_purchase(station)
        start_processing(_start_payload(station))
        with pytest.raises(AlreadyStarted) as exc:
            start_processing(_start_payload(station, processingType="NATURAL"))
        assert exc.value.message == "Processing for this batch already started"

    def test_unsupported_type(self, station, make_purchase):
        make_purchase(station)
        with pytest.raises(UnsupportedProcessingType):
            start_processing(_start_payload(station, processingType="SEMI_WASHED"))

    def test_fully_washed_with_space(self, station, make_purchase):
        make_purchase(station)
        row = start_processing(_start_payload(station, processingType="FULLY WASHED"))
        assert row.processing_type is ProcessingType.FULLY_WASHED


class TestSetStatus:

    def test_completed_stamps_end_date(self, station, make_processing):
        row = make_processing(station)
        updated = set_status(row.id, "COMPLETED", notes="dried")
        assert updated.status is ProcessingStatus.COMPLETED
        assert updated.end_date is not None
        assert updated.notes == "dried"

    def test_permissive_by_default(self, station, make_processing):
        row = make_processing(station, status=ProcessingStatus.COMPLETED)
        updated = set_status(row.id, "IN_PROGRESS")
        assert updated.status is ProcessingStatus.IN_PROGRESS

    def test_strict_mode_blocks_reopen(self, app, station, make_processing):
        app.config["STRICT_PROCESSING_TRANSITIONS"] = True
        row = make_processing(station, status=ProcessingStatus.COMPLETED)
        with pytest.raises(InvalidStatusTransition):
            set_status(row.id, "IN_PROGRESS")

    def test_strict_mode_allows_forward(self, app, station, make_processing):
        app.config["STRICT_PROCESSING_TRANSITIONS"] = True
        row = make_processing(station)
        assert set_status(row.id, "BAGGING_STARTED").status is ProcessingStatus.BAGGING_STARTED
        assert set_status(row.id, "COMPLETED").status is ProcessingStatus.COMPLETED


class TestStationStats:

    def test_grouped_by_type_and_status(self, station, make_processing):
        make_processing(station, batch_no="24KY1503A", total_kgs=1000)
        make_processing(station, batch_no="24KY1603A", total_kgs=500)
        make_processing(station, batch_no="24KY1703A", processing_type="NATURAL", total_kgs=200)

        stats = {(s["processingType"], s["status"]): s for s in station_stats(station.id)}
        assert stats[("FULLY_WASHED", "IN_PROGRESS")]["count"] == 2
        assert stats[("FULLY_WASHED", "IN_PROGRESS")]["totalKgs"] == 1500
        assert stats[("NATURAL", "IN_PROGRESS")]["count"] == 1


class TestProcessingRoutes:

    def test_start_returns_201(self, client, manager_headers, station, make_purchase):
        make_purchase(station)
        resp = client.post("/api/processing", json=_start_payload(station), headers=manager_headers)
        assert resp.status_code == 201
        assert resp.get_json()["status"] == "IN_PROGRESS"

    def test_batch_lookup_404(self, client, manager_headers):
        resp = client.get("/api/processing/batch/24KY0101A", headers=manager_headers)
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "No processing found for this batch"

    def test_station_filter(self, client, manager_headers, station, make_processing):
        make_processing(station, batch_no="24KY1503A")
        make_processing(station, batch_no="24KY1603A", status=ProcessingStatus.COMPLETED)
        resp = client.get(f"/api/processing/cws/{station.id}?status=COMPLETED", headers=manager_headers)
        assert [p["batchNo"] for p in resp.get_json()] == ["24KY1603A"]

    def test_status_requires_value(self, client, manager_headers, station, make_processing):
        row = make_processing(station)
        resp = client.put(f"/api/processing/{row.id}/status", json={}, headers=manager_headers)
        assert resp.status_code == 400

    def test_status_update(self, client, manager_headers, station, make_processing):
        row = make_processing(station)
        resp = client.put(
            f"/api/processing/{row.id}/status",
            json={"status": "COMPLETED"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["endDate"] is not None
