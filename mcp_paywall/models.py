"""
Data models for MCP Paywall conversations
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> str:
    """ISO-8601 timestamp with millisecond precision and a Z suffix"""
    return datetime.utcnow().isoformat(timespec="milliseconds") + "Z"


class Role(str, Enum):
    """Author of a message"""
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single conversation turn, immutable once appended"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    content: str
    timestamp: str = Field(default_factory=utc_now)


class Context(BaseModel):
    """Server-held conversation session"""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    created: str = Field(default_factory=utc_now)
    messages: List[Message] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    last_processing_metadata: Optional[Dict[str, Any]] = Field(
        default=None,
        alias="lastProcessingMetadata"
    )

    def to_json(self) -> dict:
        """JSON body used by the HTTP surface"""
        return self.model_dump(mode="json", by_alias=True)


class ContextCreateRequest(BaseModel):
    """Request body for POST /context"""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class MessageRequest(BaseModel):
    """Request body for POST /context/{id}/message"""
    role: Role = Field(description="'user' messages are processed by the protocol engine")
    content: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "role": "user",
                "content": "/hash hello --tx=0x5c504ed432cb51138bcf09aa5e8a410dd4a1e204ef84bfed1be16dfba1b22060"
            }
        }
    )
