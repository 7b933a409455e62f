from typing import Optional, Dict

# Utils
from utils.log_utils import LogUtil

# Database
from database.flow_db import FlowDB

# Models
from models.flow_definition import FlowDefinition
from models.flow_version_data import FlowVersionData


class FlowDefinitionService:
    """
    Loads flow definitions (flow + resolved version) and caches them in-process.

    Entries never expire on their own. The publish path owns invalidation and
    must call invalidate() after any version change or publish.
    """

    def __init__(self, log_util: LogUtil, flow_db: FlowDB):
        self.log_util = log_util
        self.flow_db = flow_db
        self._cache: Dict[str, FlowDefinition] = {}

    @staticmethod
    def _cache_key(flow_id: str, version_id: Optional[str]) -> str:
        return f"{flow_id}:{version_id or 'current'}"

    async def load_flow(self, flow_id: str, version_id: Optional[str] = None) -> Optional[FlowDefinition]:
        """
        Load a flow definition.

        Version resolution order: explicit version_id, then the flow's
        current_version_id, then the highest version number on record.

        Returns:
            FlowDefinition, or None if the flow or the version is missing
        """
        cache_key = self._cache_key(flow_id, version_id)
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        flow = await self.flow_db.get_flow(flow_id)
        if flow is None:
            self.log_util.warning(
                service_name="FlowDefinitionService",
                message=f"[LOAD_FLOW] Flow {flow_id} not found"
            )
            return None

        version: Optional[FlowVersionData]
        if version_id:
            version = await self.flow_db.get_flow_version(version_id)
        elif flow.current_version_id:
            version = await self.flow_db.get_flow_version(flow.current_version_id)
        else:
            version = await self.flow_db.get_latest_flow_version(flow_id)

        if version is None or version.flow_id != flow_id:
            self.log_util.warning(
                service_name="FlowDefinitionService",
                message=f"[LOAD_FLOW] No usable version for flow {flow_id} (requested version: {version_id or 'current'})"
            )
            return None

        definition = FlowDefinition(flow=flow, version=version)
        self._cache[cache_key] = definition

        self.log_util.debug(
            service_name="FlowDefinitionService",
            message=f"[LOAD_FLOW] Cached flow {flow_id} version {version.version} under key {cache_key}"
        )
        return definition

    def invalidate(self, flow_id: str) -> int:
        """
        Drop every cached definition of one flow. Returns the number of entries removed.
        """
        prefix = f"{flow_id}:"
        keys_to_delete = [key for key in self._cache if key.startswith(prefix)]
        for key in keys_to_delete:
            del self._cache[key]

        self.log_util.info(
            service_name="FlowDefinitionService",
            message=f"[CACHE_INVALIDATE] Removed {len(keys_to_delete)} cached definitions for flow {flow_id}"
        )
        return len(keys_to_delete)

    def clear_cache(self) -> None:
        self._cache.clear()
        self.log_util.info(service_name="FlowDefinitionService", message="[CACHE_CLEAR] Flow definition cache cleared")
