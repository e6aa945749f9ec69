from typing import Any, Dict
from pydantic import BaseModel, Field

class ErrorResponse(BaseModel):
    """错误响应格式"""
    success: bool = Field(False, description="请求失败")
    error_code: str = Field(description="错误码")
    message: str = Field(description="错误消息")
    details: Dict[str, Any] = Field(default_factory=dict, description="错误详情")

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error_code": "CAPACITY_EXCEEDED",
                "message": "No availability on 2030-07-04",
                "details": {"dates": ["2030-07-04"]}
            }
        }
    }
