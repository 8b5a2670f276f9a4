from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from purchases.core.errors import ConfigError

DEFAULT_BASE_URL = "https://api.revenuecat.com/v1"


class PurchasesConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    api_key: str = Field(min_length=1)
    app_user_id: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    request_timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    backend_worker_threads: int = Field(default=2, ge=1, le=16)
    cache_path: Optional[str] = os.path.join("runtime", "purchases_cache.json")
    customer_info_cache_ttl_seconds: int = Field(default=300, ge=0)
    log_dir: str = "logs"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        v = str(v or "").strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must be http(s)")
        return v.rstrip("/")


def _read_json(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_config(path: str, **overrides: Any) -> PurchasesConfig:
    """
    Load `PurchasesConfig` from a JSON file; keyword overrides win over file values.
    """
    try:
        raw = _read_json(path)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file is not valid JSON: {e}", path=path) from e
    if not isinstance(raw, dict):
        raise ConfigError("Config file must contain a JSON object.", path=path)
    raw.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return PurchasesConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e.error_count()} error(s).", path=path, fields=[".".join(str(p) for p in err["loc"]) for err in e.errors()]) from e
