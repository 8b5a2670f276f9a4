from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from purchases.core.redaction import redact


class PurchasesErrorCode(str, Enum):
    UNKNOWN_ERROR = "unknown_error"
    NETWORK_ERROR = "network_error"
    INVALID_CREDENTIALS_ERROR = "invalid_credentials_error"
    INVALID_APP_USER_ID_ERROR = "invalid_app_user_id_error"
    INVALID_SUBSCRIBER_ATTRIBUTES_ERROR = "invalid_subscriber_attributes_error"
    UNEXPECTED_BACKEND_RESPONSE_ERROR = "unexpected_backend_response_error"
    OPERATION_ALREADY_IN_PROGRESS_ERROR = "operation_already_in_progress_error"
    CONFIGURATION_ERROR = "configuration_error"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS: Dict[PurchasesErrorCode, str] = {
    PurchasesErrorCode.UNKNOWN_ERROR: "Unknown error.",
    PurchasesErrorCode.NETWORK_ERROR: "Error performing request.",
    PurchasesErrorCode.INVALID_CREDENTIALS_ERROR: "There was a credentials issue. Check the underlying error for more details.",
    PurchasesErrorCode.INVALID_APP_USER_ID_ERROR: "The app user id is not valid.",
    PurchasesErrorCode.INVALID_SUBSCRIBER_ATTRIBUTES_ERROR: "One or more of the attributes sent could not be saved.",
    PurchasesErrorCode.UNEXPECTED_BACKEND_RESPONSE_ERROR: "Received unexpected response from the backend.",
    PurchasesErrorCode.OPERATION_ALREADY_IN_PROGRESS_ERROR: "The operation is already in progress.",
    PurchasesErrorCode.CONFIGURATION_ERROR: "There is an issue with your configuration.",
}


@dataclass
class PurchasesError(Exception):
    code: PurchasesErrorCode
    underlying_error_message: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code.value)

    @property
    def message(self) -> str:
        return self.code.description

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "underlying_error_message": self.underlying_error_message,
            "context": redact(self.context or {}),
        }

    def __str__(self) -> str:
        if self.underlying_error_message:
            return f"PurchasesError(code={self.code.value}, message='{self.message}', underlying='{self.underlying_error_message}')"
        return f"PurchasesError(code={self.code.value}, message='{self.message}')"


class ConfigError(PurchasesError):
    def __init__(self, underlying_error_message: str = "Configuration error.", **ctx: Any):
        super().__init__(PurchasesErrorCode.CONFIGURATION_ERROR, underlying_error_message, context=ctx)


# ---- Backend error mapping ----
# Numeric codes returned by the backend in the `code` field of error bodies.
BACKEND_ERROR_CODES: Dict[int, PurchasesErrorCode] = {
    7220: PurchasesErrorCode.INVALID_APP_USER_ID_ERROR,
    7224: PurchasesErrorCode.INVALID_CREDENTIALS_ERROR,
    7225: PurchasesErrorCode.INVALID_CREDENTIALS_ERROR,
    7263: PurchasesErrorCode.INVALID_SUBSCRIBER_ATTRIBUTES_ERROR,
    7638: PurchasesErrorCode.OPERATION_ALREADY_IN_PROGRESS_ERROR,
}


def error_from_backend_response(status_code: int, body: Optional[Dict[str, Any]]) -> PurchasesError:
    body = body if isinstance(body, dict) else {}
    message = body.get("message")
    raw_code = body.get("code")
    try:
        backend_code = int(raw_code) if raw_code is not None else None
    except (TypeError, ValueError):
        backend_code = None

    code = BACKEND_ERROR_CODES.get(backend_code) if backend_code is not None else None
    if code is None:
        if status_code in (401, 403):
            code = PurchasesErrorCode.INVALID_CREDENTIALS_ERROR
        elif status_code >= 500:
            code = PurchasesErrorCode.UNEXPECTED_BACKEND_RESPONSE_ERROR
        else:
            code = PurchasesErrorCode.UNKNOWN_ERROR
    return PurchasesError(
        code,
        str(message) if message else None,
        context={"status_code": int(status_code), "backend_code": backend_code},
    )


def network_error(exc: BaseException) -> PurchasesError:
    return PurchasesError(PurchasesErrorCode.NETWORK_ERROR, str(exc), context={"exception": type(exc).__name__})
