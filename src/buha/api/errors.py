from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from buha.runtime.errors import ApplyError

# ApplyError code -> HTTP status. Unknown codes are client errors (400).
_APPLY_STATUS: Dict[str, int] = {
    "unauthorized": 403,
    "no_position": 404,
    "not_found": 404,
    "position_exists": 409,
    "not_mature": 409,
    "already_mature": 409,
    "invalid_state": 409,
}


@dataclass
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    def to_json(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    @staticmethod
    def from_apply_error(e: ApplyError) -> "ApiError":
        details = e.details if isinstance(e.details, dict) else ({"details": e.details} if e.details is not None else {})
        return ApiError(_APPLY_STATUS.get(e.code, 400), e.code, e.reason, details)
