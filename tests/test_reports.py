"""Purchase rollups and outturn reports."""

from __future__ import annotations

from datetime import date

import pytest

from washstation.errors import ValidationError
from washstation.models import ProcessingStatus
from washstation.services import reports
from washstation.services.bagging_off import reconcile


def _complete(batch_no, output_kgs, processing_type="FULLY_WASHED"):
    return reconcile(
        {
            "date": "2024-04-02T10:00:00",
            "batchNo": batch_no,
            "processingType": processing_type,
            "status": "COMPLETED",
            "outputKgs": output_kgs,
        }
    )


# =========================================================================
# Purchases
# =========================================================================


class TestPurchaseReports:

    def test_grouped_by_date(self, station, make_site, make_purchase):
        site = make_site(station)
        make_purchase(station, grade="A", total_kgs=100)
        make_purchase(
            station,
            grade="A",
            total_kgs=50,
            deliveryType="SITE_COLLECTION",
            siteCollectionId=site.id,
        )
        make_purchase(station, grade="A", purchase_date="2024-03-16", total_kgs=10)

        grouped = reports.purchases_grouped_by_date()
        assert [g["date"] for g in grouped] == ["2024-03-16", "2024-03-15"]
        day = grouped[1]
        assert day["totalKgs"] == 150
        assert day["totalPurchases"] == 2
        assert {d["deliveryType"] for d in day["deliveryTypes"]} == {"DIRECT_DELIVERY", "SITE_COLLECTION"}

    def test_range_totals(self, station, make_purchase):
        make_purchase(station, total_kgs=100, transportFee=20, commissionFee=10)
        make_purchase(station, grade="B", total_kgs=50, transportFee=20, commissionFee=10)

        result = reports.purchases_in_range("2024-03-01", "2024-03-31")
        assert result["totalPurchases"] == 2
        assert result["totals"]["totalKgs"] == 150
        assert result["totals"]["totalTransportFee"] == 150 * 20
        assert result["totals"]["totalCommissionFee"] == 150 * 10

    def test_range_requires_both_dates(self, app):
        with pytest.raises(ValidationError):
            reports.purchases_in_range("2024-03-01", None)

    def test_on_date_groups_by_station(self, make_station, make_purchase):
        mu, ky = make_station("MU", name="Musasa"), make_station("KY", name="Kayonza")
        make_purchase(mu, total_kgs=30)
        make_purchase(ky, total_kgs=70)

        result = reports.purchases_on_date("2024-03-15")
        assert [c["name"] for c in result["cwsData"]] == ["Kayonza", "Musasa"]
        assert result["grandTotals"]["totalKgs"] == 100
        assert result["grandTotals"]["directDelivery"]["kgs"] == 100
        assert result["grandTotals"]["siteCollection"]["kgs"] == 0

    def test_yesterday_only_counts_processed_batches(self, make_station, make_purchase, make_processing):
        ky, mu = make_station("KY"), make_station("MU")
        make_purchase(ky, total_kgs=100)
        make_purchase(mu, total_kgs=40)
        make_processing(ky, batch_no="24KY1503A")

        rows = reports.station_aggregates_for_yesterday(today=date(2024, 3, 16))
        assert [r["cwsCode"] for r in rows] == ["KY"]
        assert rows[0]["totalKgs"] == 100
        assert rows[0]["totalCherryPrice"] == 100 * 500

    def test_all_time_ignores_processing(self, make_station, make_purchase):
        ky = make_station("KY")
        make_purchase(ky, total_kgs=100)
        make_purchase(ky, grade="B", total_kgs=20)

        result = reports.station_aggregates_all_time()
        assert result["overallTotals"]["totalKgs"] == 120
        assert result["overallTotals"]["numberOfCWS"] == 1
        assert result["data"][0]["gradeBreakdown"]["B"]["totalKgs"] == 20


# =========================================================================
# Outturn
# =========================================================================


class TestCompletedLotReport:

    def test_empty(self, app):
        result = reports.completed_lot_report()
        assert result["reports"] == []
        assert "message" in result

    def test_lot_outturn(self, station, make_processing):
        make_processing(station, batch_no="24KY1503A", total_kgs=1000)
        _complete("24KY1503A", {"A0": 600, "A1": 250})

        result = reports.completed_lot_report()
        assert result["totalRecords"] == 1
        metrics = result["reports"][0]["metrics"]
        assert metrics["inputKgs"] == 1000
        assert metrics["totalOutputKgs"] == 850
        assert metrics["outturn"] == 85.0
        assert metrics["gradeBreakdown"] == {"A0": 600, "A1": 250}

    def test_split_batches_share_a_lot(self, station, make_processing):
        make_processing(station, batch_no="24KY1503A-1", total_kgs=600)
        make_processing(station, batch_no="24KY1503A-2", total_kgs=400, processing_type="NATURAL")
        _complete("24KY1503A-1", {"A0": 500})
        _complete("24KY1503A-2", {"B1": 300}, processing_type="NATURAL")

        result = reports.completed_lot_report()
        assert result["totalRecords"] == 1
        lot = result["reports"][0]["batchInfo"]
        assert lot["batchNo"] == "24KY1503A"
        assert lot["processingType"] == "NATURAL"
        assert sorted(lot["relatedBatches"]) == ["24KY1503A-1", "24KY1503A-2"]
        # Natural lot: excluded from the non-Natural figures.
        assert result["overallMetrics"]["totalNonNaturalInputKgs"] == 0


class TestOutturnSummary:

    def test_station_outturn(self, station, make_processing):
        make_processing(station, batch_no="24KY1503A", total_kgs=1000)
        _complete("24KY1503A", {"A0": 850})

        result = reports.outturn_summary()
        assert result["overall"]["overallOutturn"] == 85.0
        assert result["overall"]["dateRange"] == {"startDate": "All time", "endDate": "Present"}
        assert result["stationSummaries"][0]["outturn"] == 85.0
        assert result["batchSummaries"][0]["outturn"] == 85.0

    def test_natural_base_excluded_from_station_outturn(self, station, make_processing):
        make_processing(station, batch_no="24KY1503A", total_kgs=1000)
        make_processing(station, batch_no="24KY1603A", total_kgs=500)
        make_processing(station, batch_no="24KY1603A-2", total_kgs=500, processing_type="NATURAL")
        _complete("24KY1503A", {"A0": 850})
        _complete("24KY1603A", {"A0": 100})
        _complete("24KY1603A-2", {"B1": 100}, processing_type="NATURAL")

        result = reports.outturn_summary()
        summary = result["stationSummaries"][0]
        # 24KY1603A shares its base with a NATURAL row, so only 24KY1503A counts.
        assert summary["nonNaturalInputKgs"] == 1000
        assert summary["naturalInputKgs"] == 1000
        assert summary["outturn"] == 85.0
        assert result["overall"]["overallOutturn"] == 85.0

        treated = {
            b["batchNo"]: b["processingInfo"]["treatedAsNatural"] for b in result["batchSummaries"]
        }
        assert treated == {"24KY1503A": False, "24KY1603A": True, "24KY1603A-2": True}

    def test_only_completed_processing(self, station, make_processing):
        make_processing(station, batch_no="24KY1503A", status=ProcessingStatus.IN_PROGRESS)
        result = reports.outturn_summary()
        assert result["overall"]["totalProcessings"] == 0

    def test_station_filter(self, make_station, make_processing):
        ky, mu = make_station("KY"), make_station("MU")
        make_processing(ky, batch_no="24KY1503A", total_kgs=100)
        make_processing(mu, batch_no="24MU1503A", total_kgs=100)
        _complete("24KY1503A", {"A0": 80})
        _complete("24MU1503A", {"A0": 90})

        result = reports.outturn_summary(cws_id=mu.id)
        assert [s["stationId"] for s in result["stationSummaries"]] == [mu.id]


class TestReportRoutes:

    def test_summary_route(self, client, manager_headers, station, make_processing):
        make_processing(station, batch_no="24KY1503A", total_kgs=1000)
        _complete("24KY1503A", {"A0": 850})
        resp = client.get(f"/api/bagging-off/report/summary?cwsId={station.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json()["overall"]["overallOutturn"] == 85.0

    def test_date_range_route_validates(self, client, manager_headers):
        resp = client.get("/api/purchases/date-range?startDate=2024-03-01", headers=manager_headers)
        assert resp.status_code == 400
