from typing import Optional

# Utils
from utils.log_utils import LogUtil

# Database
from database.flow_db import FlowDB

# Services
from services.flow_definition_service import FlowDefinitionService
from services.trigger_resolution_service import TriggerResolutionService
from services.flow_context_service import FlowContextService
from services.step_executor_service import StepExecutorService

# Models
from models.flow_context import FlowMessage, ContactInfo
from models.node_execution_result import NodeExecutionResult
from models.trigger_event import TriggerEvent

# Exceptions
from exceptions.flow_exception import FlowContextConflictException


class FlowInterpreterService:
    """
    Entry point for inbound messages. Resumes or starts a flow for the
    conversation, runs one turn, then persists or clears the context.
    Never raises: every call returns a well-formed result.
    """

    NO_FLOW_MESSAGE = "I'm sorry, I don't have a response configured for that. How else can I help you?"
    GENERIC_ERROR_MESSAGE = "I'm sorry, something went wrong. Please try again."
    CONCURRENT_UPDATE_MESSAGE = "I'm still working on your previous message. Please give me a moment."

    def __init__(
        self,
        log_util: LogUtil,
        flow_db: FlowDB,
        flow_definition_service: FlowDefinitionService,
        trigger_resolution_service: TriggerResolutionService,
        flow_context_service: FlowContextService,
        step_executor_service: StepExecutorService
    ):
        self.log_util = log_util
        self.flow_db = flow_db
        self.flow_definition_service = flow_definition_service
        self.trigger_resolution_service = trigger_resolution_service
        self.flow_context_service = flow_context_service
        self.step_executor_service = step_executor_service

    async def process_user_message(
        self,
        workspace_id: str,
        bot_id: str,
        conversation_id: str,
        message: str,
        contact: Optional[ContactInfo] = None
    ) -> NodeExecutionResult:
        """
        Process one inbound message for a conversation.

        Steps:
        1. Load the conversation's context and its bound flow version; discard it if the binding is gone
        2. Without a context, resolve a flow by keyword trigger and run it from the start node
        3. With a context, run the current node with the message as input
        4. Clear the context on completion, handoff or error, otherwise save it

        Returns:
            NodeExecutionResult with the messages to deliver, in order
        """
        try:
            context = await self.flow_context_service.load_context(conversation_id)
            flow_definition = None

            if context is not None:
                flow_definition = await self.flow_definition_service.load_flow(context.flow_id, context.version_id)
                if flow_definition is None or flow_definition.get_node(context.current_node_id) is None:
                    self.log_util.warning(
                        service_name="FlowInterpreterService",
                        message=f"[PROCESS_MESSAGE] Binding for conversation {conversation_id} is gone (flow {context.flow_id}, version {context.version_id}, node {context.current_node_id}); discarding context"
                    )
                    await self.flow_context_service.clear_context(conversation_id)
                    context = None
                    flow_definition = None

            if context is None or flow_definition is None:
                flow_definition = await self.trigger_resolution_service.find_flow_by_trigger(
                    workspace_id=workspace_id,
                    bot_id=bot_id,
                    trigger_event=TriggerEvent(type="keyword", value=message)
                )

                if flow_definition is None:
                    self.log_util.info(
                        service_name="FlowInterpreterService",
                        message=f"[PROCESS_MESSAGE] No flow configured for bot {bot_id}, conversation {conversation_id}"
                    )
                    return NodeExecutionResult(
                        success=False,
                        messages=[FlowMessage(role="bot", content=self.NO_FLOW_MESSAGE)],
                        completed=True,
                        error="No matching flow found"
                    )

                context = self.flow_context_service.create_context(flow_definition, conversation_id, contact)
                context.message_history.append(FlowMessage(role="user", content=message))

                self.log_util.info(
                    service_name="FlowInterpreterService",
                    message=f"[PROCESS_MESSAGE] Starting flow {context.flow_id} version {context.version_id} for conversation {conversation_id}"
                )

                init_result = await self.step_executor_service.execute_step(context, flow_definition)

                if init_result.completed or init_result.is_handoff:
                    await self._update_flow_stats(context.flow_id, init_result.success)
                elif init_result.waiting_for_input and not init_result.error:
                    await self.flow_context_service.save_context(context)
                return init_result

            result = await self.step_executor_service.execute_step(context, flow_definition, message)

            if result.completed or result.is_handoff:
                await self.flow_context_service.clear_context(conversation_id)
                await self._update_flow_stats(context.flow_id, result.success)
            elif result.error:
                await self.flow_context_service.clear_context(conversation_id)
            else:
                await self.flow_context_service.save_context(context)

            return result

        except FlowContextConflictException as e:
            # Another delivery for this conversation already advanced it; keep the winner's state
            self.log_util.warning(
                service_name="FlowInterpreterService",
                message=f"[PROCESS_MESSAGE] Dropping turn for conversation {conversation_id}: {e.message}"
            )
            return NodeExecutionResult(
                success=False,
                messages=[FlowMessage(role="bot", content=self.CONCURRENT_UPDATE_MESSAGE)],
                completed=False,
                error="Conversation was updated concurrently"
            )

        except Exception as e:
            self.log_util.error(
                service_name="FlowInterpreterService",
                message=f"[PROCESS_MESSAGE] Error processing message for conversation {conversation_id}: {str(e)}"
            )
            try:
                await self.flow_context_service.clear_context(conversation_id)
            except Exception as clear_error:
                self.log_util.error(
                    service_name="FlowInterpreterService",
                    message=f"[PROCESS_MESSAGE] Could not clear context for conversation {conversation_id}: {str(clear_error)}"
                )
            return NodeExecutionResult(
                success=False,
                messages=[FlowMessage(role="bot", content=self.GENERIC_ERROR_MESSAGE)],
                completed=True,
                error=str(e) or "Processing failed"
            )

    async def _update_flow_stats(self, flow_id: str, success: bool) -> None:
        updated = await self.flow_db.increment_flow_run_stats(flow_id, success)
        if not updated:
            self.log_util.warning(
                service_name="FlowInterpreterService",
                message=f"[FLOW_STATS] Run statistics not updated for flow {flow_id}"
            )
