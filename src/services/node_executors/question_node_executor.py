from typing import Optional, List
from pydantic import ValidationError

# Services
from services.node_executors.base_node_executor import NodeExecutor

# Utils
from utils.template_utils import interpolate_variables

# Models
from models.flow_context import FlowContext
from models.flow_version_data import FlowNode
from models.node_config_data import QuestionOption
from models.node_execution_result import NodeExecutionResult

# Exceptions
from exceptions.flow_exception import NodeExecutionException


class QuestionNodeExecutor(NodeExecutor):
    """
    Asks the user a question and waits for the reply.

    With options, the reply is matched by exact value or label, then by
    1-based option number, then by label containment. The selected option's
    value is stored under data.variable (default "last_answer") and its branch
    is followed. Without options any reply is accepted as free text.
    """

    DEFAULT_VARIABLE = "last_answer"
    DEFAULT_RETRY_MESSAGE = "I didn't understand that. Please select one of the options."

    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        options = self._parse_options(node)
        variable_name = str(node.data.get("variable") or self.DEFAULT_VARIABLE)

        if not user_input or not user_input.strip():
            content = interpolate_variables(node.data.get("content") or "", context.variables)
            metadata = None
            if options:
                metadata = {
                    "options": [{"id": option.id, "label": option.label, "value": option.value} for option in options]
                }
            return NodeExecutionResult(
                success=True,
                messages=[self.create_message(content, node.id, metadata=metadata)],
                completed=False,
                waiting_for_input=True
            )

        if not options:
            return NodeExecutionResult(
                success=True,
                completed=False,
                variables={variable_name: user_input.strip()}
            )

        selected_option = self._match_option(options, user_input)
        if selected_option is not None:
            self.log_util.info(
                service_name="QuestionNodeExecutor",
                message=f"[QUESTION] Node {node.id} resolved reply '{user_input}' to option {selected_option.id}"
            )
            return NodeExecutionResult(
                success=True,
                completed=False,
                variables={variable_name: selected_option.value},
                next_node_id=selected_option.nextNodeId,
                source_handle=selected_option.id
            )

        retry_message = node.data.get("retryMessage") or self.DEFAULT_RETRY_MESSAGE
        return NodeExecutionResult(
            success=True,
            messages=[self.create_message(retry_message, node.id)],
            completed=False,
            waiting_for_input=True
        )

    def _parse_options(self, node: FlowNode) -> List[QuestionOption]:
        try:
            return [QuestionOption.model_validate(option) for option in node.data.get("options") or []]
        except ValidationError as e:
            raise NodeExecutionException(message=f"Invalid options on question node {node.id}: {e}", node_id=node.id)

    def _match_option(self, options: List[QuestionOption], user_input: str) -> Optional[QuestionOption]:
        normalized_input = user_input.strip().lower()

        for option in options:
            if option.value.lower() == normalized_input or option.label.lower() == normalized_input:
                return option

        if normalized_input.isdigit():
            index = int(normalized_input)
            if 0 < index <= len(options):
                return options[index - 1]

        for option in options:
            if normalized_input in option.label.lower():
                return option

        return None
