"""
Profile data types using Pydantic models.

Upstream payloads (Conversation*) are validated on the way in and reshaped
into the ClientProfile that Consumers render.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ConversationContact(BaseModel):
    """Contact block of an upstream conversation."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str | None = None
    avatar: str | None = None
    channel: str = "whatsapp"


class AssignedAgent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str


class ConversationData(BaseModel):
    """Conversation as returned by GET /api/conversations/{id}."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    contact: ConversationContact
    status: str = "open"
    priority: str = "normal"
    tags: list[str] = Field(default_factory=list)
    unread_count: int = Field(default=0, alias="unreadCount")
    assigned_to: AssignedAgent | None = Field(default=None, alias="assignedTo")
    last_message_at: str = Field(alias="lastMessageAt")
    created_at: str = Field(alias="createdAt")
    customer_phone: str = Field(default="", alias="customerPhone")


class ConversationEnvelope(BaseModel):
    """Standard `{success, data}` response wrapper."""

    model_config = ConfigDict(extra="ignore")

    success: bool
    data: ConversationData | None = None
    error: str | None = None


class ConversationSummary(BaseModel):
    """Conversation state shown next to a profile."""

    status: str
    priority: str
    unread_messages: int
    assigned_to: str


class ContactDetails(BaseModel):
    id: str
    email: str | None = None
    is_active: bool = True
    total_messages: int = 0
    created_at: str
    updated_at: str
    custom_fields: dict[str, Any] | None = None


class ClientProfile(BaseModel):
    """Profile of the client behind a conversation."""

    name: str
    phone: str
    status: str
    channel: str
    last_contact: str
    client_since: str
    whatsapp_id: str
    tags: list[str] = Field(default_factory=list)
    conversation: ConversationSummary
    contact_details: ContactDetails | None = None
