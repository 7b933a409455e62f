from typing import Optional, List, Dict

# Services
from services.node_executors.base_node_executor import NodeExecutor
from services.internal.text_generation_service import TextGenerationService

# Utils
from utils.log_utils import LogUtil
from utils.template_utils import interpolate_variables

# Models
from models.flow_context import FlowContext
from models.flow_version_data import FlowNode
from models.node_config_data import AIConfig
from models.node_execution_result import NodeExecutionResult


class AIAnswerNodeExecutor(NodeExecutor):
    """
    Prompts the user, then answers the reply with a text-generation call.
    Generation failures fall back to aiConfig.fallbackMessage and the flow continues.
    """

    DEFAULT_PROMPT = "How can I help you?"
    DEFAULT_SYSTEM_PROMPT = "You are a helpful customer service assistant. Be concise and helpful."
    DEFAULT_EMPTY_RESPONSE = "I apologize, but I couldn't generate a response. Please try again."
    DEFAULT_FALLBACK = "I'm having trouble processing your request right now. Please try again later."
    HISTORY_WINDOW = 10

    def __init__(self, log_util: LogUtil, text_generation_service: TextGenerationService):
        super().__init__(log_util)
        self.text_generation_service = text_generation_service

    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        ai_config = AIConfig.model_validate(node.data.get("aiConfig") or {})

        if not user_input:
            prompt = interpolate_variables(node.data.get("content") or self.DEFAULT_PROMPT, context.variables)
            return NodeExecutionResult(
                success=True,
                messages=[self.create_message(prompt, node.id)],
                completed=False,
                waiting_for_input=True
            )

        try:
            ai_response = await self.text_generation_service.generate(
                system_prompt=ai_config.systemPrompt or self.DEFAULT_SYSTEM_PROMPT,
                messages=self._build_conversation(context, user_input),
                model=ai_config.model,
                temperature=ai_config.temperature if ai_config.temperature is not None else 0.7,
                max_tokens=ai_config.maxTokens if ai_config.maxTokens is not None else 500
            )
            ai_response = ai_response or ai_config.fallbackMessage or self.DEFAULT_EMPTY_RESPONSE

            return NodeExecutionResult(
                success=True,
                messages=[self.create_message(ai_response, node.id)],
                completed=False,
                variables={"last_ai_response": ai_response}
            )
        except Exception as e:
            self.log_util.error(
                service_name="AIAnswerNodeExecutor",
                message=f"[AI_ANSWER] Generation failed on node {node.id}: {str(e)}"
            )
            return NodeExecutionResult(
                success=False,
                messages=[self.create_message(ai_config.fallbackMessage or self.DEFAULT_FALLBACK, node.id)],
                completed=False,
                error="AI processing failed"
            )

    def _build_conversation(self, context: FlowContext, user_input: str) -> List[Dict[str, str]]:
        history = [message for message in context.message_history if message.role != "system"]
        # The interpreter records the reply before dispatching; do not send it twice
        if history and history[-1].role == "user" and history[-1].content == user_input:
            history = history[:-1]

        conversation = [
            {"role": "user" if message.role == "user" else "assistant", "content": message.content}
            for message in history[-self.HISTORY_WINDOW:]
        ]
        conversation.append({"role": "user", "content": user_input})
        return conversation
