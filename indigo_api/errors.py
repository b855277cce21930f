"""Error hierarchy shared by services and routes.

Services raise these; a single FastAPI handler in main.py turns them into the
`{"success": false, "error": {...}}` envelope with the matching status code.
`message` is for logs and developers, `user_message` is safe to show in the UI.
"""

from typing import Any


class AppError(Exception):
    """Base exception for all expected API failures."""

    code = "UNKNOWN_ERROR"
    status_code = 500
    default_user_message = "操作失败，请稍后重试"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        user_message: str | None = None,
        detail: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.user_message = user_message or self.default_user_message
        self.detail = detail

    def to_response(self) -> dict[str, Any]:
        """Convert to the REST error envelope."""
        error: dict[str, Any] = {
            "code": self.code,
            "message": self.message,
            "userMessage": self.user_message,
        }
        if self.detail:
            error["detail"] = self.detail
        return {"success": False, "error": error}


# ─── 4xx ────────────────────────────────────────────────────────


class AuthError(AppError):
    code = "AUTH_ERROR"
    status_code = 401
    default_user_message = "请先登录"


class ForbiddenError(AppError):
    code = "FORBIDDEN"
    status_code = 403
    default_user_message = "无权限执行此操作"


class TestModeError(ForbiddenError):
    code = "TEST_MODE_FORBIDDEN"
    default_user_message = "测试模式未开启"


class ValidationError(AppError):
    """Request input failed a business rule check."""

    code = "VALIDATION_ERROR"
    status_code = 400
    default_user_message = "输入数据无效"

    def __init__(self, message: str, field: str | None = None, **kwargs: Any):
        detail = kwargs.pop("detail", None) or ({"field": field} if field else None)
        super().__init__(message, detail=detail, **kwargs)
        self.field = field


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or f"{resource} not found",
            user_message=kwargs.pop("user_message", None) or f"{resource}不存在",
            **kwargs,
        )
        self.resource = resource


class InventoryFullError(AppError):
    code = "INVENTORY_FULL"
    status_code = 400

    def __init__(self, current: int, max_size: int):
        super().__init__(
            f"Inventory is full ({current}/{max_size})",
            user_message=f"背包已满 ({current}/{max_size})，请先清理或扩容背包",
            detail={"current": current, "max": max_size},
        )
        self.current = current
        self.max_size = max_size


class InsufficientCurrencyError(AppError):
    code = "INSUFFICIENT_CURRENCY"
    status_code = 400

    def __init__(self, required: int, current: int):
        super().__init__(
            f"Insufficient currency: need {required}, have {current}",
            user_message=f"货币不足，需要 {required}，当前 {current}",
            detail={"required": required, "current": current},
        )
        self.required = required
        self.current = current


class ClothStatusError(AppError):
    code = "CLOTH_STATUS_ERROR"
    status_code = 400
    default_user_message = "作品状态不允许此操作"


class ListingSlotsFullError(AppError):
    code = "LISTING_SLOTS_FULL"
    status_code = 400

    def __init__(self, current: int, max_slots: int):
        super().__init__(
            f"Listing slots are full ({current}/{max_slots})",
            user_message=f"上架位已满 ({current}/{max_slots})",
            detail={"current": current, "max": max_slots},
        )


class DuplicateError(AppError):
    code = "DUPLICATE_ACTION"
    status_code = 400
    default_user_message = "请勿重复操作"


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409
    default_user_message = "操作进行中，请稍后再试"


# ─── 5xx ────────────────────────────────────────────────────────


class DatabaseError(AppError):
    code = "DATABASE_ERROR"
    status_code = 500
    default_user_message = "数据库操作失败"


class StorageError(AppError):
    code = "STORAGE_ERROR"
    status_code = 500
    default_user_message = "文件存储失败"


class NetworkError(AppError):
    code = "NETWORK_ERROR"
    status_code = 503
    default_user_message = "网络连接失败，请稍后重试"
