"""Convenience imports for Alembic metadata discovery."""

from herit_auth.models.user import User  # noqa: F401
from herit_auth.models.refresh_token import RefreshToken  # noqa: F401
