"""Authentication stubs shared by the admin routes.

Sign-in lives outside this application; these dependencies only describe
the shape the routes expect.  Override them with
``app.dependency_overrides`` to plug in a real identity provider.
"""

from fastapi import Depends, HTTPException, status


def get_current_user():
    """Stub current user; replace with real auth integration."""
    return {"id": "admin", "roles": ["admin"]}


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if "admin" not in (user or {}).get("roles", []):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
