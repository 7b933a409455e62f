from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from datetime import datetime

class FlowNode(BaseModel):
    model_config = ConfigDict(extra='allow')  # Layout fields like 'position' are kept but never read

    id: str
    type: str  # start, message, question, condition, action, ai_answer, handoff, delay, set_variable, api_call, end
    data: Dict[str, Any] = Field(default_factory=dict)

class FlowEdge(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: str
    source: str
    target: str
    sourceHandle: Optional[str] = None
    label: Optional[str] = None

class FlowVariable(BaseModel):
    model_config = ConfigDict(extra='allow')

    name: str
    defaultValue: Optional[Any] = None

class FlowVersionData(BaseModel):
    """
    Immutable snapshot of a flow graph. Every edit creates a new version.
    """
    id: Optional[str] = None  # MongoDB _id
    flow_id: str
    version: int
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    variables: List[FlowVariable] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(default_factory=datetime.utcnow)
