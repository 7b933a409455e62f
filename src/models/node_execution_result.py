from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any

# Models
from models.flow_context import FlowMessage


class HandoffData(BaseModel):
    reason: str = "User requested human agent"
    priority: Optional[str] = "normal"
    metadata: Optional[Dict[str, Any]] = None


class NodeExecutionResult(BaseModel):
    """
    Outcome of one node execution, and of a whole turn when returned by the interpreter.
    """
    success: bool = True
    messages: List[FlowMessage] = Field(default_factory=list)
    variables: Optional[Dict[str, Any]] = None
    next_node_id: Optional[str] = None
    source_handle: Optional[str] = None  # Edge handle to follow when next_node_id is not set
    waiting_for_input: bool = False
    completed: bool = False
    handoff: Optional[HandoffData] = None
    error: Optional[str] = None

    @property
    def is_handoff(self) -> bool:
        return self.handoff is not None
