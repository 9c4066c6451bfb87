"""
Pydantic models for the notification wire contract.
"""

from datetime import datetime
from typing import Optional, List, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Wire Schemas
# =============================================================================

class Notification(BaseModel):
    """Cached copy of a server-owned notification."""
    model_config = ConfigDict(extra="ignore")

    id: int
    type: Optional[str] = None
    message: str = ""
    question_title: Optional[str] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    related_question_id: Optional[int] = None
    related_answer_id: Optional[int] = None
    related_comment_id: Optional[int] = None
    question_slug: Optional[str] = None


class NotificationsPage(BaseModel):
    """GET /notifications response."""
    notifications: List[Notification] = Field(default_factory=list)
    unreadCount: int = 0

    @field_validator("unreadCount", mode="before")
    @classmethod
    def _floor_count(cls, value):
        if value is None:
            return 0
        return max(0, int(value))


class UnreadCountResponse(BaseModel):
    """GET /notifications/unread-count response."""
    count: int = 0

    @field_validator("count", mode="before")
    @classmethod
    def _floor_count(cls, value):
        if value is None:
            return 0
        return max(0, int(value))


class MarkAllReadResponse(BaseModel):
    """PUT /notifications/read-all response."""
    message: str = ""
    count: int = 0


# =============================================================================
# Client State
# =============================================================================

class NotificationState(BaseModel):
    """Immutable snapshot of the store handed to presentation listeners."""
    model_config = ConfigDict(frozen=True)

    notifications: Tuple[Notification, ...] = ()
    unread_count: int = 0
    loading: bool = False
    error: Optional[str] = None
