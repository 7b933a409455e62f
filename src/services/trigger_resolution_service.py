import re
from typing import Optional, List, Tuple

# Utils
from utils.log_utils import LogUtil

# Database
from database.flow_db import FlowDB

# Services
from services.flow_definition_service import FlowDefinitionService

# Models
from models.flow_data import FlowData, FlowTrigger
from models.flow_definition import FlowDefinition
from models.trigger_event import TriggerEvent


class TriggerResolutionService:
    """
    Selects the flow that should answer an inbound event.
    At most one flow is selected per event.
    """

    def __init__(
        self,
        log_util: LogUtil,
        flow_db: FlowDB,
        flow_definition_service: FlowDefinitionService
    ):
        self.log_util = log_util
        self.flow_db = flow_db
        self.flow_definition_service = flow_definition_service

    async def find_flow_by_trigger(
        self,
        workspace_id: str,
        bot_id: str,
        trigger_event: TriggerEvent,
        attempted_fallback: bool = False
    ) -> Optional[FlowDefinition]:
        """
        Find the highest-priority active, published flow whose triggers match the event.

        Ties on priority are broken by flow id so the choice does not depend on
        storage iteration order. When nothing matches, the lookup is retried once
        with a fallback event.

        Returns:
            FlowDefinition of the selected flow, or None if the bot has no flow for this event
        """
        self.log_util.info(
            service_name="TriggerResolutionService",
            message=f"[TRIGGER_CHECK] Resolving trigger type={trigger_event.type} for workspace_id: {workspace_id}, bot_id: {bot_id}"
        )

        flows = await self.flow_db.get_active_published_flows(workspace_id=workspace_id, bot_id=bot_id)

        matched_flows: List[Tuple[FlowData, int]] = []
        for flow in flows:
            for trigger in flow.triggers:
                if self.matches_trigger(trigger, trigger_event):
                    matched_flows.append((flow, trigger.priority or 0))
                    break

        if matched_flows:
            matched_flows.sort(key=lambda item: (-item[1], item[0].id or ""))
            selected_flow, priority = matched_flows[0]
            self.log_util.info(
                service_name="TriggerResolutionService",
                message=f"[TRIGGER_CHECK] ✅ Matched {len(matched_flows)} flow(s), selected flow_id: {selected_flow.id} (priority {priority})"
            )
            return await self.flow_definition_service.load_flow(selected_flow.id)

        if trigger_event.type != "fallback" and not attempted_fallback:
            self.log_util.info(
                service_name="TriggerResolutionService",
                message=f"[TRIGGER_CHECK] No {trigger_event.type} trigger matched, retrying with fallback"
            )
            return await self.find_flow_by_trigger(
                workspace_id=workspace_id,
                bot_id=bot_id,
                trigger_event=TriggerEvent(type="fallback"),
                attempted_fallback=True
            )

        self.log_util.info(
            service_name="TriggerResolutionService",
            message=f"[TRIGGER_CHECK] ❌ No flow configured for bot_id: {bot_id}"
        )
        return None

    def matches_trigger(self, trigger: FlowTrigger, trigger_event: TriggerEvent) -> bool:
        if trigger.type != trigger_event.type:
            return False

        conditions = trigger.conditions or {}
        value = trigger_event.value

        if trigger.type == "keyword":
            if not value:
                return False
            keywords = conditions.get("keywords") or []
            value_lower = value.lower()
            return any(str(keyword).lower() in value_lower for keyword in keywords)

        elif trigger.type == "intent":
            intent = conditions.get("intent")
            if not intent or not value:
                return False
            return intent == value

        elif trigger.type == "page_url":
            pattern = conditions.get("pattern")
            if not pattern or not value:
                return False
            try:
                return re.search(pattern, value) is not None
            except re.error:
                self.log_util.warning(
                    service_name="TriggerResolutionService",
                    message=f"[TRIGGER_CHECK] Invalid page_url pattern '{pattern}', using substring match"
                )
                return pattern in value

        elif trigger.type == "event":
            event_name = conditions.get("eventName")
            if not event_name or not value:
                return False
            return event_name == value

        elif trigger.type == "fallback":
            return True

        return False
