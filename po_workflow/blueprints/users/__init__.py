"""
po_workflow/blueprints/users/__init__.py

Blueprint package export. Must expose users_bp for app factory registration.
"""

from __future__ import annotations

from .routes import users_bp  # noqa: F401
