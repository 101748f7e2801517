# Typed API errors raised by services and rendered by a single exception handler in main.py.
# Every error maps to a fixed HTTP status and a stable machine-readable code.
from __future__ import annotations

from typing import Any, Optional

from fastapi import status


class ApiError(Exception):
    """Base class for errors that reach the client as {"success": false, "error": {...}}."""

    code: str = "INTERNAL_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Đã xảy ra lỗi"

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": {"code": self.code, "message": self.message, "details": self.details},
        }


class ValidationError(ApiError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Dữ liệu không hợp lệ"


class Unauthorized(ApiError):
    code = "UNAUTHORIZED"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Vui lòng đăng nhập"


class Forbidden(ApiError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Bạn không có quyền thực hiện hành động này"


class NotFound(ApiError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Không tìm thấy dữ liệu"


class Conflict(ApiError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Dữ liệu đã tồn tại"


class RoomOccupied(ApiError):
    code = "ROOM_OCCUPIED"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Phòng này đang có hợp đồng"


class RoomUnavailable(ApiError):
    code = "ROOM_NOT_AVAILABLE"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Phòng này đã được thuê"


class TimeConflict(ApiError):
    code = "TIME_CONFLICT"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Đã có lịch hẹn trong khung giờ này"


class Busy(ApiError):
    code = "BUSY"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Hệ thống đang xử lý yêu cầu khác cho phòng này, vui lòng thử lại"

    def __init__(self, message: Optional[str] = None, retry_after: int = 1) -> None:
        super().__init__(message, details={"retry_after": retry_after})


class RateLimited(ApiError):
    code = "RATE_LIMITED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Quá nhiều yêu cầu, vui lòng thử lại sau"


class InternalError(ApiError):
    pass
