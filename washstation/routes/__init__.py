# washstation/routes/__init__.py
"""JSON API blueprints, one per resource."""

from .cws import cws_bp
from .site_collections import site_collections_bp
from .purchases import purchases_bp
from .processing import processing_bp
from .bagging_off import bagging_off_bp
from .transfers import transfers_bp
from .wet_transfers import wet_transfers_bp
from .pricing import pricing_bp

API_BLUEPRINTS = (
    cws_bp,
    site_collections_bp,
    purchases_bp,
    processing_bp,
    bagging_off_bp,
    transfers_bp,
    wet_transfers_bp,
    pricing_bp,
)
