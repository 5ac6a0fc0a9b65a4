from typing import Optional
from pydantic import BaseModel
from datetime import datetime


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    created_at: datetime
    updated_at: datetime
    user_id: int
    submission_id: Optional[int] = None
    read: bool = False

    model_config = {"from_attributes": True}
