from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Literal

# Utils
from utils.log_utils import LogUtil

# Models
from models.flow_context import FlowContext, FlowMessage
from models.flow_version_data import FlowNode
from models.node_execution_result import NodeExecutionResult


class NodeExecutor(ABC):
    """
    Handler for one node type.

    Executors never mutate the context. Every change is expressed through the
    returned NodeExecutionResult (messages, variables, next node, flags), and
    every call returns before the turn ends.
    """

    def __init__(self, log_util: LogUtil):
        self.log_util = log_util

    @abstractmethod
    async def execute(
        self,
        node: FlowNode,
        context: FlowContext,
        user_input: Optional[str] = None
    ) -> NodeExecutionResult:
        ...

    @staticmethod
    def create_message(
        content: str,
        node_id: Optional[str] = None,
        role: Literal["user", "bot", "system"] = "bot",
        metadata: Optional[Dict[str, Any]] = None
    ) -> FlowMessage:
        return FlowMessage(role=role, content=content, node_id=node_id, metadata=metadata)
