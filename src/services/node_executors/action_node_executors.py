"""
Executors for nodes that only change state or call out: action and set_variable.
"""
import json
from datetime import datetime
from typing import Optional, Dict, Any
import httpx
from pydantic import ValidationError

# Services
from services.node_executors.base_node_executor import NodeExecutor
from services.internal.lead_service import LeadService

# Utils
from utils.log_utils import LogUtil
from utils.template_utils import interpolate_variables

# Models
from models.flow_context import FlowContext
from models.flow_version_data import FlowNode
from models.node_config_data import ActionConfig, VariableConfig
from models.node_execution_result import NodeExecutionResult


class ActionNodeExecutor(NodeExecutor):
    """
    Runs the node's actions in order. A failing action is logged and the rest still run.
    """

    def __init__(self, log_util: LogUtil, lead_service: LeadService, webhook_timeout_seconds: float = 10.0):
        super().__init__(log_util)
        self.lead_service = lead_service
        self.webhook_timeout_seconds = webhook_timeout_seconds

    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        new_variables: Dict[str, Any] = {}

        for index, raw_action in enumerate(node.data.get("actions") or []):
            try:
                action = ActionConfig.model_validate(raw_action)
            except ValidationError as e:
                self.log_util.error(
                    service_name="ActionNodeExecutor",
                    message=f"[ACTION] Skipping invalid action #{index} on node {node.id}: {str(e)}"
                )
                continue

            try:
                if action.type == "set_variable":
                    name = action.config.get("name")
                    if name:
                        new_variables[name] = interpolate_variables(str(action.config.get("value") or ""), context.variables)

                elif action.type == "create_lead":
                    lead_id = await self.lead_service.create_lead(
                        workspace_id=context.workspace_id,
                        bot_id=context.bot_id,
                        name=context.contact.contact_name or action.config.get("name") or "Unknown",
                        email=context.contact.contact_email or action.config.get("email"),
                        phone=action.config.get("phone"),
                        metadata={
                            "flow_id": context.flow_id,
                            "conversation_id": context.conversation_id,
                            "variables": context.variables
                        }
                    )
                    if lead_id:
                        new_variables["lead_created"] = True
                        new_variables["lead_id"] = lead_id

                elif action.type == "trigger_webhook":
                    await self._trigger_webhook(context, action.config)
                    new_variables["webhook_triggered"] = True

                elif action.type == "send_email":
                    if self._queue_email(context, action.config):
                        new_variables["email_sent"] = True

                elif action.type == "add_tag":
                    tags = list(new_variables.get("tags", context.variables.get("tags")) or [])
                    tags.append(action.config.get("tag"))
                    new_variables["tags"] = tags

                elif action.type == "update_contact":
                    new_variables["contact_updated"] = True

                elif action.type == "schedule_appointment":
                    new_variables["appointment_scheduled"] = True

                else:
                    self.log_util.warning(
                        service_name="ActionNodeExecutor",
                        message=f"[ACTION] Unknown action type: {action.type} on node {node.id}"
                    )
            except Exception as e:
                self.log_util.error(
                    service_name="ActionNodeExecutor",
                    message=f"[ACTION] Error executing {action.type} on node {node.id}: {str(e)}"
                )

        return NodeExecutionResult(success=True, completed=False, variables=new_variables)

    async def _trigger_webhook(self, context: FlowContext, config: Dict[str, Any]) -> None:
        url = config.get("url")
        if not url:
            self.log_util.warning(service_name="ActionNodeExecutor", message="[ACTION] No webhook URL provided")
            return

        payload = {
            "event": "flow.action",
            "timestamp": datetime.utcnow().isoformat(),
            "flow_id": context.flow_id,
            "conversation_id": context.conversation_id,
            "workspace_id": context.workspace_id,
            "bot_id": context.bot_id,
            "contact": context.contact.model_dump(),
            "variables": context.variables,
            **(config.get("payload") or {})
        }
        headers = {"Content-Type": "application/json", **(config.get("headers") or {})}

        async with httpx.AsyncClient(timeout=self.webhook_timeout_seconds) as client:
            response = await client.request(
                config.get("method") or "POST",
                url,
                content=json.dumps(payload, default=str),
                headers=headers
            )

        if response.is_success:
            self.log_util.info(service_name="ActionNodeExecutor", message=f"[ACTION] Webhook triggered successfully: {url}")
        else:
            self.log_util.warning(
                service_name="ActionNodeExecutor",
                message=f"[ACTION] Webhook {url} returned {response.status_code}"
            )

    def _queue_email(self, context: FlowContext, config: Dict[str, Any]) -> bool:
        to_email = config.get("to") or context.contact.contact_email
        if not to_email:
            self.log_util.warning(service_name="ActionNodeExecutor", message="[ACTION] No email recipient")
            return False

        subject = interpolate_variables(config.get("subject") or "", context.variables)
        self.log_util.info(
            service_name="ActionNodeExecutor",
            message=f"[ACTION] Email queued: to={to_email}, subject={subject}, template={config.get('template')}"
        )
        return True


class SetVariableNodeExecutor(NodeExecutor):
    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        raw_config = node.data.get("variable")
        if not raw_config:
            return NodeExecutionResult(success=True, completed=False)

        variable_config = VariableConfig.model_validate(raw_config)
        value = variable_config.value
        if isinstance(value, str):
            value = interpolate_variables(value, context.variables)

        return NodeExecutionResult(
            success=True,
            completed=False,
            variables={variable_config.name: self._coerce(value, variable_config.type)}
        )

    def _coerce(self, value: Any, value_type: Optional[str]) -> Any:
        if value_type == "number":
            try:
                number = float(value)
            except (TypeError, ValueError):
                return None
            return int(number) if number.is_integer() else number

        if value_type == "boolean":
            return value is True or value == "true"

        if value_type in ("array", "object") and isinstance(value, str):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return [value] if value_type == "array" else {}

        return value
