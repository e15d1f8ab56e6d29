"""
po_workflow/blueprints/purchase_orders/__init__.py

Blueprint package export. Must expose purchase_orders_bp for app factory registration.
"""

from __future__ import annotations

from .routes import purchase_orders_bp  # noqa: F401
