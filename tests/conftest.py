"""
Shared fixtures.

Provides:
- app / client on an in-memory SQLite database (tables created per test)
- users with bearer session tokens (admin and station manager)
- factories for stations, site collections, purchases and processing rows
"""

from __future__ import annotations

import pytest
from flask import g
from flask.testing import FlaskClient

from washstation import create_app
from washstation.extensions import db
from washstation.models import (
    CWS,
    Processing,
    ProcessingStatus,
    SiteCollection,
    User,
    UserSession,
)
from washstation.services.batches import normalize_processing_type
from washstation.services.purchases import record_purchase
from washstation.settings import TestConfig
from washstation.utils.passwords import hash_password

STRONG_PASSWORD = "Cherry#Harvest2024"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


class BearerClient(FlaskClient):
    """Resolves the bearer token afresh on every request.

    Requests reuse the fixture's app context, so the user Flask-Login cached
    on `g` for a previous request has to be dropped first.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture
def client(app):
    app.test_client_class = BearerClient
    return app.test_client()


@pytest.fixture
def password():
    return STRONG_PASSWORD


# =========================================================================
# Users and tokens
# =========================================================================


@pytest.fixture
def make_user(app):
    def _make(username="operator", role="CWS_MANAGER", cws=None, password=STRONG_PASSWORD):
        user = User(
            username=username,
            role=role,
            cws_id=cws.id if cws is not None else None,
            password_hash=hash_password(password),
        )
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def token_for(app):
    def _token(user, hours=24):
        user_session = UserSession.issue(user, hours=hours)
        db.session.add(user_session)
        db.session.commit()
        return user_session.token

    return _token


@pytest.fixture
def admin_user(make_user):
    return make_user(username="admin", role="SUPER_ADMIN")


@pytest.fixture
def auth_headers(admin_user, token_for):
    return {"Authorization": f"Bearer {token_for(admin_user)}"}


@pytest.fixture
def manager_user(make_user):
    return make_user(username="manager", role="CWS_MANAGER")


@pytest.fixture
def manager_headers(manager_user, token_for):
    return {"Authorization": f"Bearer {token_for(manager_user)}"}


# =========================================================================
# Domain factories
# =========================================================================


@pytest.fixture
def make_station(app):
    def _make(code="KY", name=None, havespeciality=False, location="Kayonza"):
        station = CWS(
            name=name or f"Station {code}",
            code=code,
            location=location,
            havespeciality=havespeciality,
        )
        db.session.add(station)
        db.session.commit()
        return station

    return _make


@pytest.fixture
def station(make_station):
    return make_station()


@pytest.fixture
def make_site(app):
    def _make(station, name="Hilltop"):
        site = SiteCollection(name=name, cws_id=station.id)
        db.session.add(site)
        db.session.commit()
        return site

    return _make


@pytest.fixture
def make_purchase(app):
    def _make(station, grade="A", purchase_date="2024-03-15", total_kgs=100.0, **extra):
        payload = {
            "cwsId": station.id,
            "deliveryType": "DIRECT_DELIVERY",
            "grade": grade,
            "purchaseDate": purchase_date,
            "totalKgs": total_kgs,
            "totalPrice": total_kgs * 500,
            "cherryPrice": 500,
            "transportFee": 20,
            "commissionFee": 10,
        }
        payload.update(extra)
        return record_purchase(payload)

    return _make


@pytest.fixture
def make_processing(app):
    def _make(
        station,
        batch_no="24KY1503A",
        processing_type="FULLY_WASHED",
        total_kgs=1000.0,
        grade="A",
        status=ProcessingStatus.IN_PROGRESS,
    ):
        row = Processing(
            batch_no=batch_no,
            processing_type=normalize_processing_type(processing_type),
            total_kgs=total_kgs,
            grade=grade,
            cws_id=station.id,
            status=status,
        )
        db.session.add(row)
        db.session.commit()
        return row

    return _make
