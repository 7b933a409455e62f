from fastapi import APIRouter
from typing import Dict, Any

# Utils
from utils.log_utils import LogUtil

# Services
from services.flow_interpreter_service import FlowInterpreterService

# Models
from models.request.process_message_request import ProcessMessageRequest
from models.response.process_message_response import ProcessMessageResponse


def create_flow_message_api(
    log_util: LogUtil,
    flow_interpreter_service: FlowInterpreterService
) -> APIRouter:
    """
    Create API router through which the channel adapter hands inbound
    messages to the interpreter.
    """
    router = APIRouter(
        prefix="/flow",
        tags=["flow"],
    )

    @router.post("/message", response_model=ProcessMessageResponse)
    async def process_message(request: ProcessMessageRequest) -> ProcessMessageResponse:
        """
        Run one conversational turn and return the messages to deliver.
        The interpreter never raises, so this endpoint always answers 200.
        """
        log_util.info(
            service_name="FlowMessageAPI",
            message=f"Received message for conversation {request.conversation_id}, bot_id: {request.bot_id}"
        )

        result = await flow_interpreter_service.process_user_message(
            workspace_id=request.workspace_id,
            bot_id=request.bot_id,
            conversation_id=request.conversation_id,
            message=request.message,
            contact=request.contact
        )
        return ProcessMessageResponse.from_result(result)

    @router.get("/message/health")
    async def flow_message_health_check() -> Dict[str, Any]:
        """Health check endpoint for flow message API"""
        return {
            "status": "healthy",
            "api": "flow_message_api",
            "service": "flow_interpreter_service"
        }

    return router
