import pytest
from datetime import datetime, timedelta

from models.flow_context import FlowMessage, ContactInfo
from exceptions.flow_exception import FlowContextConflictException, FlowDBException


async def _load_definition(flow_db, flow_definition_service, variables=None):
    flow_db.seed_flow(
        "flow-1",
        [
            {"id": "welcome", "type": "message", "data": {"content": "Hi"}},
            {"id": "start", "type": "start", "data": {}}
        ],
        [{"id": "e1", "source": "start", "target": "welcome"}],
        variables=variables
    )
    return await flow_definition_service.load_flow("flow-1")


@pytest.mark.asyncio
async def test_create_context_starts_at_start_node_with_declared_defaults(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(
        flow_db, flow_definition_service,
        variables=[{"name": "plan", "defaultValue": "basic"}, {"name": "count"}]
    )

    context = flow_context_service.create_context(definition, "conv-1", ContactInfo(contact_name="Ada"))

    assert context.current_node_id == "start"
    assert context.variables == {"plan": "basic", "count": None}
    assert context.flow_id == "flow-1"
    assert context.version_id == "flow-1-v1"
    assert context.workspace_id == "ws-1"
    assert context.contact.contact_name == "Ada"
    assert context.sequence == 0


@pytest.mark.asyncio
async def test_save_then_load_round_trips_state(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    context = flow_context_service.create_context(definition, "conv-1")
    context.current_node_id = "welcome"
    context.variables["service"] = "A"
    context.message_history.append(FlowMessage(role="user", content="hi"))

    assert await flow_context_service.save_context(context) is True
    loaded = await flow_context_service.load_context("conv-1")

    assert loaded.current_node_id == "welcome"
    assert loaded.variables == {"service": "A"}
    assert [message.content for message in loaded.message_history] == ["hi"]
    assert loaded.sequence == 1


@pytest.mark.asyncio
async def test_save_pushes_expiry_forward(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    context = flow_context_service.create_context(definition, "conv-1")

    before = datetime.utcnow()
    await flow_context_service.save_context(context)

    expires_at = flow_db.sessions["conv-1"]["expires_at"]
    assert before + timedelta(hours=24) <= expires_at <= datetime.utcnow() + timedelta(hours=24)


@pytest.mark.asyncio
async def test_second_save_updates_existing_session(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    context = flow_context_service.create_context(definition, "conv-1")
    await flow_context_service.save_context(context)

    context.current_node_id = "welcome"
    await flow_context_service.save_context(context)

    assert context.sequence == 2
    assert flow_db.session_events == [("insert", "conv-1"), ("update", "conv-1")]
    assert flow_db.sessions["conv-1"]["current_node_id"] == "welcome"


@pytest.mark.asyncio
async def test_stale_save_raises_conflict(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    await flow_context_service.save_context(flow_context_service.create_context(definition, "conv-1"))

    first = await flow_context_service.load_context("conv-1")
    second = await flow_context_service.load_context("conv-1")
    first.current_node_id = "welcome"
    await flow_context_service.save_context(first)

    with pytest.raises(FlowContextConflictException):
        await flow_context_service.save_context(second)
    assert flow_db.sessions["conv-1"]["current_node_id"] == "welcome"


@pytest.mark.asyncio
async def test_concurrent_first_saves_conflict(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    await flow_context_service.save_context(flow_context_service.create_context(definition, "conv-1"))

    with pytest.raises(FlowContextConflictException):
        await flow_context_service.save_context(flow_context_service.create_context(definition, "conv-1"))


@pytest.mark.asyncio
async def test_save_returns_false_on_storage_error(mocker, flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    mocker.patch.object(flow_db, "insert_session", side_effect=FlowDBException("connection lost"))

    saved = await flow_context_service.save_context(flow_context_service.create_context(definition, "conv-1"))

    assert saved is False


@pytest.mark.asyncio
async def test_clear_marks_completed_then_deletes(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    await flow_context_service.save_context(flow_context_service.create_context(definition, "conv-1"))

    await flow_context_service.clear_context("conv-1")

    assert flow_db.session_events[-2:] == [("completed", "conv-1"), ("delete", "conv-1")]
    assert await flow_context_service.load_context("conv-1") is None


@pytest.mark.asyncio
async def test_load_unknown_conversation_returns_none(flow_context_service):
    assert await flow_context_service.load_context("nobody") is None


@pytest.mark.asyncio
async def test_malformed_session_is_discarded(flow_db, flow_context_service):
    flow_db.sessions["conv-1"] = {"conversation_id": "conv-1", "sequence": 1, "variables": "not-a-dict"}

    assert await flow_context_service.load_context("conv-1") is None
    assert "conv-1" not in flow_db.sessions


@pytest.mark.asyncio
async def test_expired_session_is_treated_as_absent(flow_db, flow_definition_service, flow_context_service):
    definition = await _load_definition(flow_db, flow_definition_service)
    await flow_context_service.save_context(flow_context_service.create_context(definition, "conv-1"))
    flow_db.sessions["conv-1"]["expires_at"] = datetime.utcnow() - timedelta(minutes=1)

    assert await flow_context_service.load_context("conv-1") is None
    assert "conv-1" not in flow_db.sessions


@pytest.mark.asyncio
async def test_load_returns_none_on_storage_error(mocker, flow_db, flow_context_service):
    mocker.patch.object(flow_db, "get_session", side_effect=FlowDBException("timeout"))

    assert await flow_context_service.load_context("conv-1") is None
