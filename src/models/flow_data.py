from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any, Literal
from datetime import datetime

TriggerType = Literal["keyword", "intent", "page_url", "event", "fallback"]

class FlowTrigger(BaseModel):
    model_config = ConfigDict(extra='allow')

    type: str
    conditions: Dict[str, Any] = Field(default_factory=dict)
    priority: Optional[int] = 0

class FlowData(BaseModel):
    """
    Flow record as written by the authoring/publish path.
    The interpreter only ever mutates the run counters.
    """
    id: Optional[str] = None  # MongoDB _id
    workspace_id: str
    bot_id: str
    name: str
    triggers: List[FlowTrigger] = Field(default_factory=list)
    status: str = Field(default="draft", description="Flow status: draft, active")
    is_published: bool = False
    current_version_id: Optional[str] = None
    total_runs: int = 0
    successful_runs: int = 0
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
