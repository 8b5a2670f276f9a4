from __future__ import annotations

import time
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubscriberAttribute(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str = Field(min_length=1)
    value: Optional[str] = None
    set_time: float = Field(default_factory=lambda: time.time())
    is_synced: bool = False

    def synced(self) -> "SubscriberAttribute":
        return self.model_copy(update={"is_synced": True})


# attribute key -> attribute
SubscriberAttributeMap = Dict[str, SubscriberAttribute]
# app_user_id -> attributes of that user
SubscriberAttributesPerUser = Dict[str, SubscriberAttributeMap]
