"""领域层业务异常定义，供领域与基础设施使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class InvalidArgumentException(BusinessException):
    """A required input is missing or empty. No state is touched."""

    def __init__(self, field: str, message: Optional[str] = None):
        super().__init__(
            code=BusinessCode.PARAM_MISSING,
            message=message or f"{field} is required",
            error_type="InvalidArgument",
            details={"field": field},
            field=field,
        )


def require_text(field: str, value: Optional[str]) -> str:
    """Return value unchanged, or raise InvalidArgumentException if blank."""
    if value is None or not value.strip():
        raise InvalidArgumentException(field)
    return value
