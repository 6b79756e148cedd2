# washstation/utils/guards.py

from __future__ import annotations

from functools import wraps
from typing import Callable, Any

from flask import abort
from flask_login import login_required, current_user


ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")


def _role() -> str:
    return (getattr(current_user, "role", "") or "").strip().upper()


def is_admin() -> bool:
    return _role() in ADMIN_ROLES


def admin_required(view: Callable[..., Any]) -> Callable[..., Any]:
    """
    Allow only ADMIN and SUPER_ADMIN.
    Returns 403 for all other logged-in roles.
    """
    @wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not is_admin():
            abort(403)
        return view(*args, **kwargs)

    return wrapped

