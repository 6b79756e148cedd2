"""Fee schedules: append-only snapshots, latest wins."""

from __future__ import annotations

import pytest

from washstation.errors import MissingRequiredFields, StationNotFound, ValidationError
from washstation.services import pricing


class TestGlobalFees:

    def test_latest_snapshot_wins(self, app):
        pricing.record_global_fees({"commissionFee": 10, "transportFee": 20})
        pricing.record_global_fees({"commissionFee": 12, "transportFee": 25})
        current = pricing.current_global_fees()
        assert current.commission_fee == 12
        assert current.transport_fee == 25

    def test_none_when_empty(self, app):
        assert pricing.current_global_fees() is None

    def test_amounts_validated(self, app):
        with pytest.raises(MissingRequiredFields):
            pricing.record_global_fees({"commissionFee": 10})
        with pytest.raises(ValidationError):
            pricing.record_global_fees({"commissionFee": -1, "transportFee": 5})
        with pytest.raises(ValidationError):
            pricing.record_global_fees({"commissionFee": "ten", "transportFee": 5})


class TestStationAndSitePricing:

    def test_per_station(self, make_station):
        ky, mu = make_station("KY"), make_station("MU")
        pricing.record_cws_pricing({"cwsId": ky.id, "gradeAPrice": 500, "transportFee": 20})
        pricing.record_cws_pricing({"cwsId": mu.id, "gradeAPrice": 520, "transportFee": 15})
        assert pricing.current_cws_pricing(ky.id).grade_a_price == 500
        assert pricing.current_cws_pricing(mu.id).grade_a_price == 520

    def test_unknown_station(self, app):
        with pytest.raises(StationNotFound):
            pricing.record_cws_pricing({"cwsId": 77, "gradeAPrice": 500, "transportFee": 20})

    def test_site_fees(self, station, make_site):
        site = make_site(station)
        pricing.record_site_fees({"siteCollectionId": site.id, "transportFee": 30})
        assert pricing.current_site_fees(site.id).transport_fee == 30


class TestPricingRoutes:

    def test_write_is_admin_only(self, client, manager_headers):
        resp = client.post(
            "/api/pricing/global",
            json={"commissionFee": 10, "transportFee": 20},
            headers=manager_headers,
        )
        assert resp.status_code == 403

    def test_read_returns_null_without_snapshot(self, client, manager_headers):
        resp = client.get("/api/pricing/global", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.get_json() is None

    def test_admin_round_trip(self, client, auth_headers, station):
        resp = client.post(
            "/api/pricing/cws-pricing",
            json={"cwsId": station.id, "gradeAPrice": 480, "transportFee": 18},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        resp = client.get(f"/api/pricing/cws-pricing/{station.id}", headers=auth_headers)
        assert resp.get_json()["gradeAPrice"] == 480
