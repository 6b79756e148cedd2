# washstation/services/__init__.py
"""
Domain services. Routes stay thin: they parse the request, call a service
function and serialize what comes back. Services raise washstation.errors
types and never return HTTP responses.
"""

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ApiError, PersistenceError
from ..extensions import db


@contextmanager
def unit_of_work(action: str):
    """
    Commit everything done inside the block, or nothing.

        with unit_of_work("Record bagging off"):
            ...

    Domain errors propagate unchanged; store failures become PersistenceError.
    """
    try:
        yield db.session
        db.session.commit()
    except ApiError:
        db.session.rollback()
        current_app.logger.info("%s rolled back", action)
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise PersistenceError(f"{action} failed", details=str(exc)) from exc
    except Exception:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        raise
