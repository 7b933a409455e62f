from typing import Optional, List
from datetime import datetime

# Utils
from utils.log_utils import LogUtil

# Services
from services.node_executors.node_executor_registry import NodeExecutorRegistry

# Models
from models.flow_context import FlowContext, FlowMessage
from models.flow_definition import FlowDefinition
from models.node_execution_result import NodeExecutionResult


class StepExecutorService:
    """
    Drives a flow definition and a context through successive node executions
    until a node needs input, the flow terminates, or the hop limit is hit.

    One call is one turn. The context is advanced in place: current node,
    merged variables, appended history and last_activity_at.
    """

    ERROR_MESSAGE = "I'm sorry, I encountered an error. Please try again."
    MISSING_NODE_MESSAGE = "I'm sorry, something went wrong. Please try again."

    def __init__(self, log_util: LogUtil, node_executor_registry: NodeExecutorRegistry, max_hops: int = 50):
        self.log_util = log_util
        self.node_executor_registry = node_executor_registry
        self.max_hops = max_hops

    async def execute_step(
        self,
        context: FlowContext,
        flow_definition: FlowDefinition,
        user_input: Optional[str] = None
    ) -> NodeExecutionResult:
        """
        Execute one turn.

        Args:
            context: Context to advance
            flow_definition: Definition the context is bound to
            user_input: The user's reply; only the first hop receives it

        Returns:
            NodeExecutionResult carrying every message emitted during the turn.
            Executor exceptions and the hop limit produce completed=False with error set.
        """
        turn_messages: List[FlowMessage] = []
        turn_success = True
        pending_input = user_input

        for _ in range(self.max_hops):
            current_node = flow_definition.get_node(context.current_node_id)
            if current_node is None:
                self.log_util.error(
                    service_name="StepExecutorService",
                    message=f"[STEP_EXECUTE] Node {context.current_node_id} not found in flow {context.flow_id} version {context.version_id}"
                )
                turn_messages.append(FlowMessage(role="bot", content=self.MISSING_NODE_MESSAGE))
                return NodeExecutionResult(
                    success=False,
                    messages=turn_messages,
                    completed=True,
                    error="Current node not found"
                )

            if pending_input:
                context.message_history.append(
                    FlowMessage(role="user", content=pending_input, node_id=current_node.id)
                )

            try:
                executor = self.node_executor_registry.get_executor(current_node.type)
                result = await executor.execute(current_node, context, pending_input)
            except Exception as e:
                self.log_util.error(
                    service_name="StepExecutorService",
                    message=f"[STEP_EXECUTE] Error executing node {current_node.id} ({current_node.type}) in flow {context.flow_id}: {str(e)}"
                )
                turn_messages.append(FlowMessage(role="bot", content=self.ERROR_MESSAGE, node_id=current_node.id))
                return NodeExecutionResult(
                    success=False,
                    messages=turn_messages,
                    completed=False,
                    error=str(e) or "Node execution failed"
                )
            pending_input = None

            if result.variables:
                context.variables.update(result.variables)
            context.message_history.extend(result.messages)
            turn_messages.extend(result.messages)
            context.last_activity_at = datetime.utcnow()

            if not result.success:
                turn_success = False
                self.log_util.warning(
                    service_name="StepExecutorService",
                    message=f"[STEP_EXECUTE] Node {current_node.id} ({current_node.type}) reported a handled failure: {result.error}"
                )

            if result.waiting_for_input:
                if result.next_node_id:
                    context.current_node_id = result.next_node_id
                return NodeExecutionResult(
                    success=turn_success,
                    messages=turn_messages,
                    waiting_for_input=True,
                    completed=False
                )

            if result.completed:
                return NodeExecutionResult(
                    success=turn_success,
                    messages=turn_messages,
                    completed=True,
                    handoff=result.handoff
                )

            next_node_id = result.next_node_id
            if not next_node_id:
                outgoing_edge = flow_definition.get_outgoing_edge(current_node.id, result.source_handle)
                next_node_id = outgoing_edge.target if outgoing_edge else None

            if not next_node_id:
                # Dead end in the authored graph ends the flow
                self.log_util.info(
                    service_name="StepExecutorService",
                    message=f"[STEP_EXECUTE] Node {current_node.id} has no outgoing transition, completing flow {context.flow_id}"
                )
                return NodeExecutionResult(
                    success=turn_success,
                    messages=turn_messages,
                    completed=True,
                    handoff=result.handoff
                )

            context.current_node_id = next_node_id

        self.log_util.error(
            service_name="StepExecutorService",
            message=f"[STEP_EXECUTE] Hop limit of {self.max_hops} exceeded in flow {context.flow_id} at node {context.current_node_id}"
        )
        turn_messages.append(FlowMessage(role="bot", content=self.ERROR_MESSAGE))
        return NodeExecutionResult(
            success=False,
            messages=turn_messages,
            completed=False,
            error="Maximum hop count exceeded"
        )
