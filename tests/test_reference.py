"""Stations and site collections, including cache invalidation on writes."""

from __future__ import annotations

import pytest

from washstation.cache import MemoryCache, init_cache
from washstation.errors import SiteCollectionInUse, StationInUse
from washstation.extensions import db
from washstation.models import CWS, SiteCollection, SiteCollectionFees
from washstation.services import reference


@pytest.fixture
def memory_cache(app):
    cache = MemoryCache()
    init_cache(app, cache)
    return cache


class TestStations:

    def test_create_uppercases_code(self, app):
        station = reference.create_station({"name": "Kayonza", "code": "ky"})
        assert station.code == "KY"
        assert station.havespeciality is False
        assert station.is_wet_parchment_sender is True

    def test_delete_refused_while_referenced(self, station, make_purchase):
        make_purchase(station)
        with pytest.raises(StationInUse):
            reference.delete_station(station.id)

    def test_delete_unreferenced(self, station):
        reference.delete_station(station.id)
        assert CWS.query.count() == 0


class TestStationRoutes:

    def test_create_is_admin_only(self, client, manager_headers):
        resp = client.post("/api/cws", json={"name": "Kayonza", "code": "KY"}, headers=manager_headers)
        assert resp.status_code == 403

    def test_admin_creates(self, client, auth_headers):
        resp = client.post(
            "/api/cws",
            json={"name": "Kayonza", "code": "KY", "havespeciality": True},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        assert resp.get_json()["havespeciality"] is True

    def test_unknown_station_404(self, client, auth_headers):
        resp = client.get("/api/cws/404", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "CWS not found"}

    def test_list_served_from_cache_until_write(self, client, auth_headers, memory_cache):
        client.post("/api/cws", json={"name": "Kayonza", "code": "KY"}, headers=auth_headers)
        first = client.get("/api/cws", headers=auth_headers).get_json()
        assert [c["code"] for c in first] == ["KY"]
        assert memory_cache.get(reference.CWS_ALL_KEY) is not None

        # A write through the API drops the cached list.
        client.post("/api/cws", json={"name": "Musasa", "code": "MU"}, headers=auth_headers)
        assert memory_cache.get(reference.CWS_ALL_KEY) is None
        second = client.get("/api/cws", headers=auth_headers).get_json()
        assert [c["code"] for c in second] == ["KY", "MU"]

    def test_update_invalidates_detail(self, client, auth_headers, station, memory_cache):
        client.get(f"/api/cws/{station.id}", headers=auth_headers)
        assert memory_cache.get(reference.cws_key(station.id)) is not None

        resp = client.put(f"/api/cws/{station.id}", json={"name": "Renamed"}, headers=auth_headers)
        assert resp.status_code == 200
        assert memory_cache.get(reference.cws_key(station.id)) is None
        assert client.get(f"/api/cws/{station.id}", headers=auth_headers).get_json()["name"] == "Renamed"


class TestSiteCollections:

    def test_move_invalidates_both_stations(self, make_station, memory_cache):
        ky, mu = make_station("KY"), make_station("MU")
        site = reference.create_site_collection({"name": "Hilltop", "cwsId": ky.id})
        reference.site_collections_for_station(ky.id)
        reference.site_collections_for_station(mu.id)

        reference.update_site_collection(site.id, {"cwsId": mu.id})

        assert memory_cache.get(reference.sites_for_cws_key(ky.id)) is None
        assert memory_cache.get(reference.sites_for_cws_key(mu.id)) is None
        assert [s["name"] for s in reference.site_collections_for_station(mu.id)] == ["Hilltop"]
        assert reference.site_collections_for_station(ky.id) == []

    def test_station_rename_refreshes_site_reads(self, station, make_site, memory_cache):
        site = make_site(station)
        reference.list_site_collections()
        reference.site_collections_for_station(station.id)
        reference.site_collection_detail(site.id)

        reference.update_station(station.id, {"name": "Kayonza East", "code": "ke"})

        assert reference.list_site_collections()[0]["cws"]["code"] == "KE"
        assert reference.site_collections_for_station(station.id)[0]["cws"]["name"] == "Kayonza East"
        assert reference.site_collection_detail(site.id)["cws"]["code"] == "KE"

    def test_delete_refused_with_purchases(self, station, make_site, make_purchase):
        site = make_site(station)
        make_purchase(station, deliveryType="SITE_COLLECTION", siteCollectionId=site.id)
        with pytest.raises(SiteCollectionInUse) as exc:
            reference.delete_site_collection(site.id)
        assert exc.value.message == "Cannot delete site collection with associated purchases"

    def test_delete_removes_fees(self, station, make_site):
        site = make_site(station)
        db.session.add(SiteCollectionFees(site_collection_id=site.id, transport_fee=15))
        db.session.commit()

        reference.delete_site_collection(site.id)
        assert SiteCollection.query.count() == 0
        assert SiteCollectionFees.query.count() == 0

    def test_routes(self, client, manager_headers, station):
        resp = client.post(
            "/api/site-collections",
            json={"name": "Hilltop", "cwsId": station.id},
            headers=manager_headers,
        )
        assert resp.status_code == 201
        site_id = resp.get_json()["id"]

        resp = client.get(f"/api/site-collections/cws/{station.id}", headers=manager_headers)
        assert [s["id"] for s in resp.get_json()] == [site_id]

        resp = client.get("/api/site-collections/999", headers=manager_headers)
        assert resp.status_code == 404
