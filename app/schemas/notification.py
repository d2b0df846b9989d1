# app/schemas/notification.py
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.notification import NotificationType


class NotificationCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=2000)
    type: NotificationType = NotificationType.INFO
    user_id: Optional[int] = Field(None, ge=1)  # None = whole organization
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("title", "message")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def _upper(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v
