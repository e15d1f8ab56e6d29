"""
po_workflow/blueprints/cost_estimates/__init__.py

Blueprint package export. Must expose cost_estimates_bp for app factory registration.
"""

from __future__ import annotations

from .routes import cost_estimates_bp  # noqa: F401
