"""Authentication and authorization utilities."""

import os
import secrets
from typing import Optional

from fastapi import HTTPException, Request

from savemanager.core.config import API_TOKEN
from savemanager.services.settings import get_config

_admin_emails = os.getenv("ADMIN_EMAILS", "admin@example.com")
ADMIN_EMAILS = frozenset(
    email.strip().lower() for email in _admin_emails.split(",") if email.strip()
)


def get_current_user(request: Request) -> Optional[dict]:
    """Extract user info from session."""
    return request.session.get("user_info")


def is_admin(user_info: Optional[dict]) -> bool:
    """Check if user has admin privileges."""
    if not user_info:
        return False
    return user_info.get("email", "").lower() in ADMIN_EMAILS


def has_permission(user_info: Optional[dict], permission: str) -> bool:
    """Admins hold every permission; others need a grant in config.yml."""
    if not user_info:
        return False
    if is_admin(user_info):
        return True
    return get_config().has_permission(user_info.get("email", ""), permission)


def check_api_token(token: str) -> bool:
    """Constant-time comparison against SAVEMANAGER_API_TOKEN."""
    if not API_TOKEN or not token:
        return False
    return secrets.compare_digest(token, API_TOKEN)


async def require_auth(request: Request) -> dict:
    """Require authenticated user."""
    user_info = get_current_user(request)
    if not user_info:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_info
