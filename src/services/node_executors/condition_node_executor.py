import re
from typing import Optional, Any, Dict
from pydantic import ValidationError

# Services
from services.node_executors.base_node_executor import NodeExecutor

# Utils
from utils.template_utils import get_nested_value, stringify_value

# Models
from models.flow_context import FlowContext
from models.flow_version_data import FlowNode
from models.node_config_data import ConditionRule
from models.node_execution_result import NodeExecutionResult

# Exceptions
from exceptions.flow_exception import NodeExecutionException


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or (isinstance(value, list) and len(value) == 0)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class ConditionNodeExecutor(NodeExecutor):
    """
    Picks a branch by evaluating rules against context variables, first match wins.
    Falls back to data.defaultNextNodeId. Emits no messages.
    """

    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        try:
            rules = [ConditionRule.model_validate(rule) for rule in node.data.get("conditions") or []]
        except ValidationError as e:
            raise NodeExecutionException(message=f"Invalid conditions on condition node {node.id}: {e}", node_id=node.id)

        for rule in rules:
            if self.evaluate_condition(rule, context.variables):
                self.log_util.info(
                    service_name="ConditionNodeExecutor",
                    message=f"[CONDITION] Node {node.id} matched rule {rule.id}: {rule.variable} {rule.operator} {rule.value}"
                )
                return NodeExecutionResult(
                    success=True,
                    completed=False,
                    next_node_id=rule.nextNodeId,
                    source_handle=rule.id
                )

        return NodeExecutionResult(
            success=True,
            completed=False,
            next_node_id=node.data.get("defaultNextNodeId"),
            source_handle="default"
        )

    def evaluate_condition(self, rule: ConditionRule, variables: Dict[str, Any]) -> bool:
        value = get_nested_value(variables, rule.variable)
        compare_value = rule.value

        try:
            if rule.operator == "equals":
                if value is None:
                    return compare_value is None or compare_value == ""
                return stringify_value(value) == stringify_value(compare_value)

            elif rule.operator == "not_equals":
                if value is None:
                    return compare_value is not None and compare_value != ""
                return stringify_value(value) != stringify_value(compare_value)

            elif rule.operator == "contains":
                if value is None or compare_value is None:
                    return False
                return stringify_value(compare_value).lower() in stringify_value(value).lower()

            elif rule.operator == "not_contains":
                if value is None or compare_value is None:
                    return True
                return stringify_value(compare_value).lower() not in stringify_value(value).lower()

            elif rule.operator in ("greater_than", "less_than"):
                number_value = _to_number(value)
                number_compare = _to_number(compare_value)
                if number_value is None or number_compare is None:
                    return False
                if rule.operator == "greater_than":
                    return number_value > number_compare
                return number_value < number_compare

            elif rule.operator == "is_empty":
                return _is_blank(value)

            elif rule.operator == "is_not_empty":
                return not _is_blank(value)

            elif rule.operator == "matches_regex":
                if value is None or not compare_value:
                    return False
                return re.search(str(compare_value), stringify_value(value)) is not None

        except re.error as e:
            self.log_util.error(
                service_name="ConditionNodeExecutor",
                message=f"[CONDITION] Invalid regex '{compare_value}' for variable {rule.variable}: {str(e)}"
            )
            return False

        self.log_util.warning(
            service_name="ConditionNodeExecutor",
            message=f"[CONDITION] Unknown condition operator: {rule.operator}"
        )
        return False
