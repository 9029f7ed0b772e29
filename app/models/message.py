# app/models/message.py

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime
from app.utils.timestamps import to_instant

MessageStatus = Literal["unread", "read", "archived"]


class ReplyTo(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    message_id: Optional[str] = None
    user_name: Optional[str] = None
    original_message: Optional[str] = None

    @classmethod
    def from_document(cls, data: Optional[dict]) -> Optional["ReplyTo"]:
        if not isinstance(data, dict):
            return None
        return cls(
            message_id=data.get("messageId"),
            user_name=data.get("userName"),
            original_message=data.get("originalMessage"),
        )


# ==================== Stored record shapes ====================

class PrimaryMessageRecord(BaseModel):
    """A document from the `messages` collection."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    full_name: str = "Unknown User"
    email: str = ""
    mobile: str = ""
    message: str = ""
    status: str = "read"
    category: str = "general"
    priority: str = "normal"
    is_reply: bool = False
    original_message_id: Optional[str] = None
    reply_to: Optional[ReplyTo] = None
    park_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("created_at", mode="before")
    @classmethod
    def normalize_timestamp(cls, value):
        return to_instant(value)

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "PrimaryMessageRecord":
        return cls(
            id=doc_id,
            full_name=data.get("fullName") or data.get("userName") or "Unknown User",
            email=data.get("email") or "",
            mobile=data.get("mobile") or data.get("phone") or "",
            message=data.get("message") or "",
            status=data.get("status") or "read",
            category=data.get("category") or "general",
            priority=data.get("priority") or "normal",
            is_reply=bool(data.get("isReply", False)),
            original_message_id=data.get("originalMessageId"),
            reply_to=ReplyTo.from_document(data.get("replyTo")),
            park_id=data.get("parkId"),
            created_at=data.get("createdAt"),
        )


class LegacyChatRecord(BaseModel):
    """A document from the older `chats` collection, one per chat thread."""
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    user_name: str = "Unknown User"
    user_email: str = ""
    phone: str = ""
    last_message: str = ""
    unread_count: int = 0
    park_id: Optional[str] = None
    last_message_time: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("last_message_time", "created_at", mode="before")
    @classmethod
    def normalize_timestamp(cls, value):
        return to_instant(value)

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "LegacyChatRecord":
        return cls(
            id=doc_id,
            user_name=data.get("userName") or "Unknown User",
            user_email=data.get("userEmail") or "",
            phone=data.get("phone") or "",
            last_message=data.get("lastMessage") or "",
            unread_count=data.get("unreadCount") or 0,
            park_id=data.get("parkId"),
            last_message_time=data.get("lastMessageTime"),
            created_at=data.get("createdAt"),
        )


# ==================== Derived views ====================

class Message(BaseModel):
    id: str
    text: str
    is_admin_reply: bool = False
    timestamp: Optional[datetime] = None
    status: str = "read"
    category: str = "general"
    priority: str = "normal"
    reply_to: Optional[ReplyTo] = None
    source: Literal["messages", "chats"] = "messages"
    user_key: str
    user_name: str = "Unknown User"
    user_email: str = ""
    user_phone: str = ""


class Conversation(BaseModel):
    user_id: str
    user_name: str
    user_email: str = ""
    user_phone: str = ""
    last_message: str = ""
    last_message_time: Optional[datetime] = None
    unread_count: int = 0
    message_count: int = 0
    category: str = "general"
    priority: str = "normal"
    messages: List[Message] = []


# ==================== Requests ====================

class NewMessageRequest(BaseModel):
    full_name: str = Field(..., min_length=1)
    mobile: Optional[str] = ""
    email: Optional[EmailStr] = None
    message: str = Field(..., min_length=1)
    category: str = "general"
    priority: Literal["low", "normal", "high", "urgent"] = "normal"


class ReplyRequest(BaseModel):
    message: str = Field(..., min_length=1)


class MessageStatusUpdate(BaseModel):
    status: MessageStatus
