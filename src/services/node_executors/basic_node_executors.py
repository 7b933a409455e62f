"""
Executors for nodes that only emit text or end the flow: start, message, delay, handoff, end.
"""
from typing import Optional

# Services
from services.node_executors.base_node_executor import NodeExecutor

# Utils
from utils.template_utils import interpolate_variables

# Models
from models.flow_context import FlowContext
from models.flow_version_data import FlowNode
from models.node_execution_result import NodeExecutionResult, HandoffData


class StartNodeExecutor(NodeExecutor):
    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        return NodeExecutionResult(success=True, completed=False)


class MessageNodeExecutor(NodeExecutor):
    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        content = interpolate_variables(node.data.get("content") or "", context.variables)
        return NodeExecutionResult(
            success=True,
            messages=[self.create_message(content, node.id)],
            completed=False
        )


class DelayNodeExecutor(NodeExecutor):
    """
    Records the requested pause for the delivery layer. The turn itself never sleeps.
    """
    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        try:
            delay_seconds = max(float(node.data.get("delay") or 0), 0.0)
        except (TypeError, ValueError):
            self.log_util.warning(
                service_name="DelayNodeExecutor",
                message=f"Invalid delay '{node.data.get('delay')}' on node {node.id}, ignoring"
            )
            delay_seconds = 0.0

        if delay_seconds <= 0:
            return NodeExecutionResult(success=True, completed=False)

        return NodeExecutionResult(
            success=True,
            messages=[
                self.create_message(
                    "",
                    node.id,
                    role="system",
                    metadata={"type": "delay", "delay_seconds": delay_seconds}
                )
            ],
            completed=False
        )


class HandoffNodeExecutor(NodeExecutor):
    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        handoff_message = interpolate_variables(
            node.data.get("content") or "Connecting you with a human agent...",
            context.variables
        )

        return NodeExecutionResult(
            success=True,
            messages=[self.create_message(handoff_message, node.id)],
            completed=True,
            handoff=HandoffData(
                reason=node.data.get("reason") or "User requested human agent",
                priority=node.data.get("priority") or "normal",
                metadata={
                    "node_id": node.id,
                    "flow_id": context.flow_id,
                    "variables": dict(context.variables)
                }
            )
        )


class EndNodeExecutor(NodeExecutor):
    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        content = node.data.get("content")
        messages = []
        if content:
            messages.append(self.create_message(interpolate_variables(content, context.variables), node.id))

        return NodeExecutionResult(success=True, messages=messages, completed=True)
