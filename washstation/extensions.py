from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# ======================
# Database
# ======================
db = SQLAlchemy()
migrate = Migrate()

# ======================
# Login Manager
# ======================
# Token-based: identities are resolved per request from the Authorization header
# (see washstation.auth.load_user_from_request). No cookie session is used.
login_manager = LoginManager()
login_manager.session_protection = None

# ======================
# Rate Limiter
# ======================
# Storage comes from RATELIMIT_STORAGE_URI (Redis in production, memory locally).
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
)
