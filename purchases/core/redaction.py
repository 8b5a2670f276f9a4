from __future__ import annotations

from typing import Any, Dict


REDACT_KEYS = {
    "api_key",
    "apikey",
    "authorization",
    "password",
    "secret",
    "token",
    "purchase_token",
}


def _redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        out: Dict[str, Any] = {}
        for k, v in obj.items():
            if str(k).lower() in REDACT_KEYS:
                out[k] = "***REDACTED***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(obj, list):
        return [_redact(x) for x in obj]
    return obj


def redact(obj: Any) -> Any:
    return _redact(obj)


def mask_api_key(api_key: str) -> str:
    # keep the public prefix so log lines stay attributable
    s = str(api_key or "")
    if len(s) <= 8:
        return "***"
    return s[:4] + "***" + s[-2:]
