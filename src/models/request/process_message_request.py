from typing import Optional
from pydantic import BaseModel, Field

# Models
from models.flow_context import ContactInfo


class ProcessMessageRequest(BaseModel):
    """
    Request model for one inbound end-user message, sent by the channel adapter
    (chat widget, webhook receiver) after its own deduplication.
    """
    workspace_id: str = Field(..., description="Workspace (tenant) ID")
    bot_id: str = Field(..., description="Bot ID within the workspace")
    conversation_id: str = Field(..., description="Tenant-scoped conversation correlation key")
    message: str = Field(..., description="Text of the inbound message")
    contact: Optional[ContactInfo] = Field(None, description="Known contact identity, if any")

    class Config:
        json_schema_extra = {
            "example": {
                "workspace_id": "ws_123",
                "bot_id": "bot_456",
                "conversation_id": "conv_789",
                "message": "What's your pricing?",
                "contact": {
                    "contact_id": "contact_1",
                    "contact_name": "Jane Doe",
                    "contact_email": "jane@example.com"
                }
            }
        }
