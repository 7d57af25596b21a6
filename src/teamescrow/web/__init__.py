"""Web API for Teamescrow."""

from __future__ import annotations

from teamescrow.web.app import create_app

__all__ = ["create_app"]
