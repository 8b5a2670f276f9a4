from __future__ import annotations

"""
App user identity: anonymous IDs, legacy ID migration, aliasing and reset.
"""

from purchases.core.identity.manager import IdentityManager
from purchases.core.identity.models import (
    ANONYMOUS_ID_PREFIX,
    IdentityState,
    generate_anonymous_app_user_id,
    is_anonymous_app_user_id,
)

__all__ = [
    "ANONYMOUS_ID_PREFIX",
    "IdentityManager",
    "IdentityState",
    "generate_anonymous_app_user_id",
    "is_anonymous_app_user_id",
]
