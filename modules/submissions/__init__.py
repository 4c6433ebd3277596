"""Submissions module entry point."""

from __future__ import annotations

from fastapi import FastAPI

__all__ = ["register_api"]


def register_api(app: FastAPI) -> None:
    """Register FastAPI routes for the submissions module."""
    from .api import router as submissions_router

    registered = getattr(app.state, "registered_modules", None)
    if registered is None:
        registered = app.state.registered_modules = set()
    if "submissions" in registered:
        return
    app.include_router(submissions_router)
    registered.add("submissions")
