import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

import main
from models.flow_context import FlowMessage
from models.node_execution_result import NodeExecutionResult, HandoffData


@pytest.fixture
def client(mocker):
    mocker.patch.object(main.flow_db, "ensure_indexes", new_callable=AsyncMock)
    with TestClient(main.app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_process_message_returns_turn_result(mocker, client):
    process_mock = mocker.patch.object(
        main.flow_interpreter_service,
        "process_user_message",
        new_callable=AsyncMock,
        return_value=NodeExecutionResult(
            success=True,
            messages=[
                FlowMessage(role="bot", content="Welcome", node_id="welcome"),
                FlowMessage(
                    role="bot",
                    content="Which service? A/B",
                    node_id="question",
                    metadata={"options": [{"id": "opt-a", "label": "A", "value": "A"}]}
                )
            ],
            waiting_for_input=True
        )
    )

    response = client.post("/flow/message", json={
        "workspace_id": "ws-1",
        "bot_id": "bot-1",
        "conversation_id": "conv-1",
        "message": "hi",
        "contact": {"contact_id": "c-1"}
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["waiting_for_input"] is True
    assert [message["content"] for message in body["messages"]] == ["Welcome", "Which service? A/B"]
    assert body["messages"][1]["metadata"]["options"][0]["id"] == "opt-a"
    kwargs = process_mock.call_args.kwargs
    assert kwargs["conversation_id"] == "conv-1"
    assert kwargs["contact"].contact_id == "c-1"


def test_process_message_serializes_handoff(mocker, client):
    mocker.patch.object(
        main.flow_interpreter_service,
        "process_user_message",
        new_callable=AsyncMock,
        return_value=NodeExecutionResult(
            success=True,
            messages=[FlowMessage(role="bot", content="Connecting you with a human agent...")],
            completed=True,
            handoff=HandoffData(reason="billing")
        )
    )

    response = client.post("/flow/message", json={
        "workspace_id": "ws-1", "bot_id": "bot-1", "conversation_id": "conv-1", "message": "agent"
    })

    assert response.json()["handoff"]["reason"] == "billing"
    assert response.json()["completed"] is True


def test_process_message_rejects_incomplete_request(client):
    response = client.post("/flow/message", json={"workspace_id": "ws-1", "message": "hi"})

    assert response.status_code == 422


def test_cache_invalidate_and_clear(mocker, client):
    invalidate_mock = mocker.patch.object(main.flow_definition_service, "invalidate", return_value=2)
    clear_mock = mocker.patch.object(main.flow_definition_service, "clear_cache")

    invalidate_response = client.post("/flow/cache/invalidate/flow-1")
    clear_response = client.post("/flow/cache/clear")

    assert invalidate_response.json() == {"status": "success", "flow_id": "flow-1", "removed_entries": 2}
    invalidate_mock.assert_called_once_with("flow-1")
    assert clear_response.json() == {"status": "success"}
    clear_mock.assert_called_once()
