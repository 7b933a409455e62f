import pytest

from models.flow_data import FlowTrigger
from models.trigger_event import TriggerEvent

_NODES = [{"id": "start", "type": "start", "data": {}}]


@pytest.mark.asyncio
async def test_highest_priority_match_wins(flow_db, trigger_resolution_service):
    flow_db.seed_flow("low", _NODES, [], triggers=[{"type": "keyword", "conditions": {"keywords": ["book"]}, "priority": 10}])
    flow_db.seed_flow("high", _NODES, [], triggers=[{"type": "keyword", "conditions": {"keywords": ["book"]}, "priority": 100}])

    definition = await trigger_resolution_service.find_flow_by_trigger(
        "ws-1", "bot-1", TriggerEvent(type="keyword", value="I want to book")
    )

    assert definition.flow.id == "high"


@pytest.mark.asyncio
async def test_keyword_beats_fallback(flow_db, trigger_resolution_service):
    flow_db.seed_flow("F1", _NODES, [], triggers=[{"type": "keyword", "conditions": {"keywords": ["pricing"]}, "priority": 5}])
    flow_db.seed_flow("F2", _NODES, [], triggers=[{"type": "fallback", "conditions": {}, "priority": 0}])

    definition = await trigger_resolution_service.find_flow_by_trigger(
        "ws-1", "bot-1", TriggerEvent(type="keyword", value="what's your pricing?")
    )

    assert definition.flow.id == "F1"


@pytest.mark.asyncio
async def test_fallback_selected_only_when_nothing_else_matches(flow_db, trigger_resolution_service):
    flow_db.seed_flow("F1", _NODES, [], triggers=[{"type": "keyword", "conditions": {"keywords": ["pricing"]}, "priority": 5}])
    flow_db.seed_flow("F2", _NODES, [], triggers=[{"type": "fallback", "conditions": {}, "priority": 0}])

    definition = await trigger_resolution_service.find_flow_by_trigger(
        "ws-1", "bot-1", TriggerEvent(type="keyword", value="hello there")
    )

    assert definition.flow.id == "F2"


@pytest.mark.asyncio
async def test_no_match_and_no_fallback_returns_none(mocker, flow_db, trigger_resolution_service):
    flow_db.seed_flow("F1", _NODES, [], triggers=[{"type": "keyword", "conditions": {"keywords": ["pricing"]}}])
    lookup_spy = mocker.spy(flow_db, "get_active_published_flows")

    definition = await trigger_resolution_service.find_flow_by_trigger(
        "ws-1", "bot-1", TriggerEvent(type="keyword", value="hello")
    )

    assert definition is None
    assert lookup_spy.call_count == 2  # keyword lookup, then one fallback retry


@pytest.mark.asyncio
async def test_equal_priorities_break_ties_by_flow_id(flow_db, trigger_resolution_service):
    flow_db.seed_flow("flow-b", _NODES, [], triggers=[{"type": "keyword", "conditions": {"keywords": ["hi"]}, "priority": 1}])
    flow_db.seed_flow("flow-a", _NODES, [], triggers=[{"type": "keyword", "conditions": {"keywords": ["hi"]}, "priority": 1}])

    definition = await trigger_resolution_service.find_flow_by_trigger(
        "ws-1", "bot-1", TriggerEvent(type="keyword", value="hi")
    )

    assert definition.flow.id == "flow-a"


@pytest.mark.asyncio
async def test_unpublished_inactive_and_other_bot_flows_are_ignored(flow_db, trigger_resolution_service):
    keyword_trigger = [{"type": "keyword", "conditions": {"keywords": ["hi"]}}]
    flow_db.seed_flow("draft", _NODES, [], triggers=keyword_trigger, status="draft")
    flow_db.seed_flow("unpublished", _NODES, [], triggers=keyword_trigger, is_published=False)
    flow_db.seed_flow("other-bot", _NODES, [], triggers=keyword_trigger, bot_id="bot-2")

    definition = await trigger_resolution_service.find_flow_by_trigger(
        "ws-1", "bot-1", TriggerEvent(type="keyword", value="hi")
    )

    assert definition is None


@pytest.mark.parametrize(
    "trigger, event, expected",
    [
        ({"type": "keyword", "conditions": {"keywords": ["PRICE"]}}, {"type": "keyword", "value": "your prices?"}, True),
        ({"type": "keyword", "conditions": {"keywords": ["price"]}}, {"type": "keyword", "value": None}, False),
        ({"type": "intent", "conditions": {"intent": "book"}}, {"type": "intent", "value": "book"}, True),
        ({"type": "intent", "conditions": {"intent": "book"}}, {"type": "intent", "value": "Book"}, False),
        ({"type": "page_url", "conditions": {"pattern": r"/pricing/\d+"}}, {"type": "page_url", "value": "https://x.io/pricing/42"}, True),
        ({"type": "page_url", "conditions": {"pattern": "/pricing[("}}, {"type": "page_url", "value": "https://x.io/pricing[("}, True),
        ({"type": "page_url", "conditions": {"pattern": "/pricing[("}}, {"type": "page_url", "value": "https://x.io/about"}, False),
        ({"type": "event", "conditions": {"eventName": "cart_abandoned"}}, {"type": "event", "value": "cart_abandoned"}, True),
        ({"type": "fallback", "conditions": {}}, {"type": "fallback"}, True),
        ({"type": "fallback", "conditions": {}}, {"type": "keyword", "value": "anything"}, False),
    ]
)
def test_matches_trigger(trigger_resolution_service, trigger, event, expected):
    assert trigger_resolution_service.matches_trigger(
        FlowTrigger.model_validate(trigger), TriggerEvent.model_validate(event)
    ) is expected
