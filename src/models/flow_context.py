from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime


class FlowMessage(BaseModel):
    role: Literal["user", "bot", "system"]
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    node_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class ContactInfo(BaseModel):
    contact_id: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None


class FlowContext(BaseModel):
    """
    In-memory state of one conversation's walk through a flow version.
    `sequence` is the persisted write counter used for conditional saves;
    0 means the context has never been saved.
    """
    flow_id: str
    version_id: str
    conversation_id: str
    workspace_id: str
    bot_id: str
    contact: ContactInfo = Field(default_factory=ContactInfo)
    variables: Dict[str, Any] = Field(default_factory=dict)
    message_history: List[FlowMessage] = Field(default_factory=list)
    current_node_id: str
    started_at: datetime = Field(default_factory=datetime.utcnow)
    last_activity_at: datetime = Field(default_factory=datetime.utcnow)
    sequence: int = 0
