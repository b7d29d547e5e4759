"""
Project Share Schemas
"""

from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class InviteRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=63)


class ShareResponse(BaseModel):
    user_id: str
    username: str
    name: Optional[str] = None
    created_at: datetime


class MembersResponse(BaseModel):
    shares: List[ShareResponse]
