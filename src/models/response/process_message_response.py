from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

# Models
from models.node_execution_result import NodeExecutionResult


class OutboundMessage(BaseModel):
    role: str
    content: str
    node_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class ProcessMessageResponse(BaseModel):
    """
    Response returned to the channel adapter. Messages are delivered in order.
    """
    success: bool
    messages: List[OutboundMessage] = Field(default_factory=list)
    waiting_for_input: bool = False
    completed: bool = False
    handoff: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: NodeExecutionResult) -> "ProcessMessageResponse":
        return cls(
            success=result.success,
            messages=[
                OutboundMessage(
                    role=message.role,
                    content=message.content,
                    node_id=message.node_id,
                    metadata=message.metadata
                )
                for message in result.messages
            ],
            waiting_for_input=result.waiting_for_input,
            completed=result.completed,
            handoff=result.handoff.model_dump() if result.handoff else None,
            error=result.error
        )
