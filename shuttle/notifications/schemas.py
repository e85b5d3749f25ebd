from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class Notification(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    priority: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    is_read: bool = False
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True
