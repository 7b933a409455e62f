from typing import Dict

# Utils
from utils.log_utils import LogUtil

# Services
from services.internal.text_generation_service import TextGenerationService
from services.internal.lead_service import LeadService
from services.node_executors.base_node_executor import NodeExecutor
from services.node_executors.basic_node_executors import (
    StartNodeExecutor,
    MessageNodeExecutor,
    DelayNodeExecutor,
    HandoffNodeExecutor,
    EndNodeExecutor
)
from services.node_executors.question_node_executor import QuestionNodeExecutor
from services.node_executors.condition_node_executor import ConditionNodeExecutor
from services.node_executors.ai_answer_node_executor import AIAnswerNodeExecutor
from services.node_executors.action_node_executors import ActionNodeExecutor, SetVariableNodeExecutor
from services.node_executors.api_call_node_executor import APICallNodeExecutor


class NodeExecutorRegistry:
    """
    Maps node types to their executors. New node types only need register().
    """

    def __init__(
        self,
        log_util: LogUtil,
        text_generation_service: TextGenerationService,
        lead_service: LeadService,
        api_call_timeout_seconds: float = 15.0,
        webhook_timeout_seconds: float = 10.0
    ):
        self.log_util = log_util
        self._fallback_executor = MessageNodeExecutor(log_util)
        self._executors: Dict[str, NodeExecutor] = {
            "start": StartNodeExecutor(log_util),
            "message": self._fallback_executor,
            "question": QuestionNodeExecutor(log_util),
            "condition": ConditionNodeExecutor(log_util),
            "ai_answer": AIAnswerNodeExecutor(log_util, text_generation_service),
            "action": ActionNodeExecutor(log_util, lead_service, webhook_timeout_seconds),
            "set_variable": SetVariableNodeExecutor(log_util),
            "delay": DelayNodeExecutor(log_util),
            "api_call": APICallNodeExecutor(log_util, api_call_timeout_seconds),
            "handoff": HandoffNodeExecutor(log_util),
            "end": EndNodeExecutor(log_util)
        }

    def register(self, node_type: str, executor: NodeExecutor) -> None:
        self._executors[node_type] = executor

    def get_executor(self, node_type: str) -> NodeExecutor:
        executor = self._executors.get(node_type)
        if executor is None:
            self.log_util.warning(
                service_name="NodeExecutorRegistry",
                message=f"Unknown node type: {node_type}, using message executor"
            )
            return self._fallback_executor
        return executor
