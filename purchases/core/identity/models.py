from __future__ import annotations

import re
import uuid
from enum import Enum

ANONYMOUS_ID_PREFIX = "$RCAnonymousID:"
ANONYMOUS_ID_PATTERN = re.compile(r"^\$RCAnonymousID:([a-f0-9]{32})$")


class IdentityState(str, Enum):
    UNCONFIGURED = "UNCONFIGURED"
    ANONYMOUS = "ANONYMOUS"
    IDENTIFIED = "IDENTIFIED"


def generate_anonymous_app_user_id() -> str:
    return ANONYMOUS_ID_PREFIX + uuid.uuid4().hex


def is_anonymous_app_user_id(app_user_id: str) -> bool:
    return ANONYMOUS_ID_PATTERN.fullmatch(str(app_user_id)) is not None
