"""Checklist forms module entry point."""

from __future__ import annotations

from fastapi import FastAPI

__all__ = ["register_api"]


def register_api(app: FastAPI) -> None:
    """Register FastAPI routes for the checklists module."""
    from .api import router as checklists_router

    registered = getattr(app.state, "registered_modules", None)
    if registered is None:
        registered = app.state.registered_modules = set()
    if "checklists" in registered:
        return
    app.include_router(checklists_router)
    registered.add("checklists")
