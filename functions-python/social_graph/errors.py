from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    ERR_INTERNAL = "ERR_INTERNAL"
    ERR_UNAUTHENTICATED = "ERR_UNAUTHENTICATED"
    ERR_INVALID_REQUEST = "ERR_INVALID_REQUEST"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_BLOCKED = "ERR_BLOCKED"
    ERR_ALREADY_FRIENDS = "ERR_ALREADY_FRIENDS"
    ERR_DUPLICATE_REQUEST = "ERR_DUPLICATE_REQUEST"
    ERR_REQUEST_NOT_FOUND = "ERR_REQUEST_NOT_FOUND"
    ERR_NOT_FRIENDS = "ERR_NOT_FRIENDS"
    ERR_NOT_BLOCKED = "ERR_NOT_BLOCKED"
    ERR_PARTIAL_WRITE = "ERR_PARTIAL_WRITE"
    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"


DEFAULT_MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.ERR_INTERNAL: "Internal server error",
    ErrorCode.ERR_UNAUTHENTICATED: "Authentication required",
    ErrorCode.ERR_INVALID_REQUEST: "Invalid request body",
    ErrorCode.ERR_NOT_FOUND: "User not found",
    ErrorCode.ERR_BLOCKED: "Friend request cannot be sent to this user as they have been blocked",
    ErrorCode.ERR_ALREADY_FRIENDS: "Friend request cannot be sent to this user as they are already friends",
    ErrorCode.ERR_DUPLICATE_REQUEST: "Friend request has already been sent to this user",
    ErrorCode.ERR_REQUEST_NOT_FOUND: "Friend request not found in the request list",
    ErrorCode.ERR_NOT_FRIENDS: "User is not your friend",
    ErrorCode.ERR_NOT_BLOCKED: "User is not blocked",
    ErrorCode.ERR_PARTIAL_WRITE: "Relationship was only partially updated; retry to complete it",
    ErrorCode.ERR_STORE_UNAVAILABLE: "Player store unavailable",
}

_HTTP_STATUS: Dict[ErrorCode, int] = {
    ErrorCode.ERR_INTERNAL: 500,
    ErrorCode.ERR_UNAUTHENTICATED: 401,
    ErrorCode.ERR_NOT_FOUND: 404,
    ErrorCode.ERR_PARTIAL_WRITE: 500,
    ErrorCode.ERR_STORE_UNAVAILABLE: 503,
}


def http_status(code: ErrorCode) -> int:
    """HTTP status for an error code; precondition failures are plain 400s."""
    return _HTTP_STATUS.get(code, 400)


class RelationshipError(Exception):
    """Base exception for relationship graph errors.

    Attributes:
        code: ErrorCode enum
        message: human readable text, safe to show to the client
        details: optional structured data (e.g. {'committed': ['p1'], 'failed': 'p2'})
    """

    def __init__(
        self,
        code: ErrorCode,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message or DEFAULT_MESSAGES.get(code, code.value)
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}
