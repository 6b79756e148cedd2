"""App factory wiring: JSON error bodies for routing and persistence failures."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from washstation.errors import PersistenceError
from washstation.extensions import db
from washstation.models import GlobalFees
from washstation.services import unit_of_work


class TestErrorHandlers:

    def test_unknown_route_is_json_404(self, client):
        resp = client.get("/api/nowhere")
        assert resp.status_code == 404
        assert resp.get_json() == {"error": "Not found"}

    def test_wrong_method_is_json_405(self, client, manager_headers):
        resp = client.patch("/api/cws", headers=manager_headers)
        assert resp.status_code == 405
        assert "error" in resp.get_json()


class TestUnitOfWork:

    def test_store_failure_becomes_persistence_error(self, app, monkeypatch):
        def fail():
            raise OperationalError("COMMIT", {}, Exception("disk full"))

        monkeypatch.setattr(db.session, "commit", fail)

        with pytest.raises(PersistenceError) as exc:
            with unit_of_work("Record global fees"):
                db.session.add(GlobalFees(commission_fee=1, transport_fee=2))
        assert exc.value.status_code == 500
        assert exc.value.message == "Record global fees failed"

        monkeypatch.undo()
        assert GlobalFees.query.count() == 0
