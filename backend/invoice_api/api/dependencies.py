"""Common dependencies for FastAPI routes.

This module defines shared dependency functions such as database access
and authorisation helpers.  Token verification itself lives in
``invoice_api.core.security`` so that JWT handling is centralised.
"""

from __future__ import annotations

from invoice_api.core.database import get_db  # noqa: F401
from invoice_api.core.errors import Forbidden
from invoice_api.core.security import AuthContext, get_auth_context, require_admin  # noqa: F401


def require_owner_or_admin(auth: AuthContext, resource_owner_id: int) -> None:
    """Ensure the caller is the resource owner or has the ``admin`` role."""
    if auth.id != resource_owner_id and not auth.is_admin:
        raise Forbidden("Access denied")

