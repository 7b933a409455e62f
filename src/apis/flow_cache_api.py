from fastapi import APIRouter
from typing import Dict, Any

# Utils
from utils.log_utils import LogUtil

# Services
from services.flow_definition_service import FlowDefinitionService


def create_flow_cache_api(
    log_util: LogUtil,
    flow_definition_service: FlowDefinitionService
) -> APIRouter:
    """
    Create API router used by the publish path to invalidate cached flow
    definitions after a version change or publish.
    """
    router = APIRouter(
        prefix="/flow/cache",
        tags=["flow-cache"],
    )

    @router.post("/invalidate/{flow_id}")
    async def invalidate_flow(flow_id: str) -> Dict[str, Any]:
        removed = flow_definition_service.invalidate(flow_id)
        log_util.info(service_name="FlowCacheAPI", message=f"Invalidated cache for flow {flow_id} ({removed} entries)")
        return {"status": "success", "flow_id": flow_id, "removed_entries": removed}

    @router.post("/clear")
    async def clear_cache() -> Dict[str, Any]:
        flow_definition_service.clear_cache()
        log_util.info(service_name="FlowCacheAPI", message="Cleared flow definition cache")
        return {"status": "success"}

    return router
