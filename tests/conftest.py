import copy
import pytest
from typing import Optional, List, Dict, Any
from unittest.mock import AsyncMock, MagicMock

from utils.log_utils import LogUtil
from models.flow_data import FlowData, FlowTrigger
from models.flow_version_data import FlowVersionData, FlowNode, FlowEdge, FlowVariable
from models.flow_session_data import FlowSessionData
from services.internal.text_generation_service import TextGenerationService
from services.internal.lead_service import LeadService
from services.node_executors.node_executor_registry import NodeExecutorRegistry
from services.flow_definition_service import FlowDefinitionService
from services.trigger_resolution_service import TriggerResolutionService
from services.flow_context_service import FlowContextService
from services.step_executor_service import StepExecutorService
from services.flow_interpreter_service import FlowInterpreterService


class InMemoryFlowDB:
    """
    Test double exposing the FlowDB surface used by the interpreter.
    Documents are deep-copied in and out to behave like a real store.
    """

    def __init__(self):
        self.flows: Dict[str, FlowData] = {}
        self.versions: Dict[str, FlowVersionData] = {}
        self.sessions: Dict[str, Dict[str, Any]] = {}
        self.session_events: List[tuple] = []

    def seed_flow(
        self,
        flow_id: str,
        nodes: List[Dict[str, Any]],
        edges: List[Dict[str, Any]],
        triggers: Optional[List[Dict[str, Any]]] = None,
        version_id: Optional[str] = None,
        version: int = 1,
        variables: Optional[List[Dict[str, Any]]] = None,
        status: str = "active",
        is_published: bool = True,
        workspace_id: str = "ws-1",
        bot_id: str = "bot-1",
        set_current: bool = True
    ) -> FlowVersionData:
        version_id = version_id or f"{flow_id}-v{version}"
        flow_version = FlowVersionData(
            id=version_id,
            flow_id=flow_id,
            version=version,
            nodes=[FlowNode.model_validate(node) for node in nodes],
            edges=[FlowEdge.model_validate(edge) for edge in edges],
            variables=[FlowVariable.model_validate(variable) for variable in variables or []]
        )
        self.versions[version_id] = flow_version

        existing = self.flows.get(flow_id)
        if existing is None:
            self.flows[flow_id] = FlowData(
                id=flow_id,
                workspace_id=workspace_id,
                bot_id=bot_id,
                name=f"Flow {flow_id}",
                triggers=[FlowTrigger.model_validate(trigger) for trigger in triggers or []],
                status=status,
                is_published=is_published,
                current_version_id=version_id if set_current else None
            )
        elif set_current:
            existing.current_version_id = version_id
        return flow_version

    async def get_flow(self, flow_id: str) -> Optional[FlowData]:
        flow = self.flows.get(flow_id)
        return flow.model_copy(deep=True) if flow else None

    async def get_active_published_flows(self, workspace_id: str, bot_id: str) -> List[FlowData]:
        return [
            flow.model_copy(deep=True)
            for flow in self.flows.values()
            if flow.workspace_id == workspace_id and flow.bot_id == bot_id
            and flow.status == "active" and flow.is_published
        ]

    async def increment_flow_run_stats(self, flow_id: str, success: bool) -> bool:
        flow = self.flows.get(flow_id)
        if flow is None:
            return False
        flow.total_runs += 1
        flow.successful_runs += 1 if success else 0
        return True

    async def get_flow_version(self, version_id: str) -> Optional[FlowVersionData]:
        flow_version = self.versions.get(version_id)
        return flow_version.model_copy(deep=True) if flow_version else None

    async def get_latest_flow_version(self, flow_id: str) -> Optional[FlowVersionData]:
        candidates = [v for v in self.versions.values() if v.flow_id == flow_id]
        if not candidates:
            return None
        return max(candidates, key=lambda v: v.version).model_copy(deep=True)

    async def get_session(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        session = self.sessions.get(conversation_id)
        if session is None:
            return None
        return {"id": f"session-{conversation_id}", **copy.deepcopy(session)}

    async def insert_session(self, session: FlowSessionData) -> bool:
        if session.conversation_id in self.sessions:
            return False
        self.sessions[session.conversation_id] = copy.deepcopy(session.model_dump(exclude={"id"}))
        self.session_events.append(("insert", session.conversation_id))
        return True

    async def update_session(self, conversation_id: str, expected_sequence: int, fields: Dict[str, Any]) -> Optional[int]:
        session = self.sessions.get(conversation_id)
        if session is None or session["sequence"] != expected_sequence:
            return None
        session.update(copy.deepcopy(fields))
        session["sequence"] += 1
        self.session_events.append(("update", conversation_id))
        return session["sequence"]

    async def mark_session_completed(self, conversation_id: str) -> None:
        if conversation_id in self.sessions:
            self.sessions[conversation_id]["status"] = "completed"
        self.session_events.append(("completed", conversation_id))

    async def delete_session(self, conversation_id: str) -> None:
        self.sessions.pop(conversation_id, None)
        self.session_events.append(("delete", conversation_id))


@pytest.fixture
def log_util():
    return MagicMock(spec=LogUtil)


@pytest.fixture
def flow_db():
    return InMemoryFlowDB()


@pytest.fixture
def text_generation_service():
    service = MagicMock(spec=TextGenerationService)
    service.generate = AsyncMock(return_value="Generated answer")
    return service


@pytest.fixture
def lead_service():
    service = MagicMock(spec=LeadService)
    service.create_lead = AsyncMock(return_value="lead-1")
    return service


@pytest.fixture
def node_executor_registry(log_util, text_generation_service, lead_service):
    return NodeExecutorRegistry(
        log_util=log_util,
        text_generation_service=text_generation_service,
        lead_service=lead_service
    )


@pytest.fixture
def flow_definition_service(log_util, flow_db):
    return FlowDefinitionService(log_util=log_util, flow_db=flow_db)


@pytest.fixture
def trigger_resolution_service(log_util, flow_db, flow_definition_service):
    return TriggerResolutionService(
        log_util=log_util,
        flow_db=flow_db,
        flow_definition_service=flow_definition_service
    )


@pytest.fixture
def flow_context_service(log_util, flow_db):
    return FlowContextService(log_util=log_util, flow_db=flow_db, session_ttl_hours=24)


@pytest.fixture
def step_executor_service(log_util, node_executor_registry):
    return StepExecutorService(log_util=log_util, node_executor_registry=node_executor_registry, max_hops=50)


@pytest.fixture
def flow_interpreter_service(
    log_util,
    flow_db,
    flow_definition_service,
    trigger_resolution_service,
    flow_context_service,
    step_executor_service
):
    return FlowInterpreterService(
        log_util=log_util,
        flow_db=flow_db,
        flow_definition_service=flow_definition_service,
        trigger_resolution_service=trigger_resolution_service,
        flow_context_service=flow_context_service,
        step_executor_service=step_executor_service
    )


@pytest.fixture
def service_flow_nodes():
    """start -> message "Welcome" -> question "Which service? A/B" -> A/B replies"""
    return [
        {"id": "start", "type": "start", "position": {"x": 0, "y": 0}, "data": {}},
        {"id": "welcome", "type": "message", "data": {"content": "Welcome"}},
        {
            "id": "question",
            "type": "question",
            "data": {
                "content": "Which service? A/B",
                "variable": "service",
                "options": [
                    {"id": "opt-a", "label": "A", "value": "A"},
                    {"id": "opt-b", "label": "B", "value": "B"}
                ]
            }
        },
        {"id": "reply-a", "type": "message", "data": {"content": "You picked {{service}}"}},
        {"id": "reply-b", "type": "handoff", "data": {"content": "Connecting you to our B team"}}
    ]


@pytest.fixture
def service_flow_edges():
    return [
        {"id": "e1", "source": "start", "target": "welcome"},
        {"id": "e2", "source": "welcome", "target": "question"},
        {"id": "e3", "source": "question", "target": "reply-a", "sourceHandle": "opt-a"},
        {"id": "e4", "source": "question", "target": "reply-b", "sourceHandle": "opt-b"}
    ]
