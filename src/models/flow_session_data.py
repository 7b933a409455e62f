from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime


class FlowSessionData(BaseModel):
    """
    Persisted form of a FlowContext in the flow_sessions collection.
    One document per conversation_id (unique index).
    """
    id: Optional[str] = None  # MongoDB _id
    conversation_id: str
    workspace_id: str
    bot_id: str
    flow_id: str
    version_id: str
    current_node_id: str
    variables: Dict[str, Any] = Field(default_factory=dict)
    message_history: List[Dict[str, Any]] = Field(default_factory=list)
    contact_id: Optional[str] = None
    contact_name: Optional[str] = None
    contact_email: Optional[str] = None
    status: str = Field(default="active", description="Session status: active, completed")
    sequence: int = Field(default=1, description="Incremented on every successful write")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    last_activity_at: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(..., description="Rolling expiry, pushed forward on every save")
