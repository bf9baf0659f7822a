"""
统一错误响应格式定义
"""
from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """错误响应：{status: "error", message, ...}"""
    status: str = "error"
    message: str
    code: int
    error_type: str
    field: Optional[str] = None
    details: Optional[dict] = None
    request_id: Optional[str] = None


def error_response(
    code: int,
    message: str,
    error_type: str = "BusinessError",
    details: Optional[dict] = None,
    field: Optional[str] = None,
    request_id: Optional[str] = None,
) -> ErrorResponse:
    """
    创建错误响应

    Args:
        code: 业务状态码
        message: 错误消息
        error_type: 错误类型
        details: 错误详情
        field: 错误字段
        request_id: 请求ID
    """
    return ErrorResponse(
        code=code,
        message=message,
        error_type=error_type,
        details=details,
        field=field,
        request_id=request_id,
    )
