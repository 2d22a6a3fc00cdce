"""Falcon ASGI API for webhook intake and metrics queries."""

from __future__ import annotations

from devpulse.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
