from motor.motor_asyncio import AsyncIOMotorClient
from bson import ObjectId
import urllib.parse
import threading
import asyncio
from typing import Optional, List, Dict, Any
from datetime import datetime
import weakref
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import NetworkTimeout, ServerSelectionTimeoutError, ConnectionFailure, DuplicateKeyError

# Utils
from utils.log_utils import LogUtil
from utils.environment_utils import EnvironmentUtils

# Exceptions
from exceptions.flow_exception import FlowDBException

# Models
from models.flow_data import FlowData
from models.flow_version_data import FlowVersionData
from models.flow_session_data import FlowSessionData

"""
Database class for flow interpreter operations
"""
class FlowDB:
    def __init__(self, log_util: LogUtil, environment_utils: EnvironmentUtils):

        # Initialize logger
        self.log_util = log_util

        # Initialize environment utils
        self.environment_utils = environment_utils

        # Mongo credentials
        self.username = urllib.parse.quote_plus(self.environment_utils.get_env_variable("MONGO_USERNAME"))
        self.password = urllib.parse.quote_plus(self.environment_utils.get_env_variable("MONGO_PASSWORD"))
        self.auth_source = self.environment_utils.get_env_variable("MONGO_AUTH_SOURCE")
        self.host = self.environment_utils.get_env_variable("MONGO_HOST")
        self.port = int(self.environment_utils.get_env_variable("MONGO_PORT"))
        self.db_name = self.environment_utils.get_env_variable("MONGO_DB_NAME")

        # Mongo Connection Pool Configs
        self.max_pool_size = 50
        self.min_pool_size = 0  # Create connections on-demand instead of at startup
        self.max_idle_time_ms = 30000
        self.wait_queue_timeout_ms = 10000
        self.connect_timeout_ms = 10000
        self.server_selection_timeout_ms = 10000
        self.socket_timeout_ms = 10000

        # MongoDB clients keyed by event loop ID to support multiple event loops
        self._clients = {}  # {loop_id: {client, db, collections, loop}}

        # Thread-safe initialization lock
        self._client_lock = threading.Lock()

    def _get_connection_uri(self) -> str:
        if self.username and self.password:
            return f"mongodb://{self.username}:{self.password}@{self.host}:{self.port}/?authSource={self.auth_source}"
        return f"mongodb://{self.host}:{self.port}/"

    def _get_client_for_current_loop(self):
        """
        Thread-safe method to get the MongoDB client and collections for the current event loop.
        Returns a dictionary with 'client', 'db', and 'collections' for the current event loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("No event loop available. Database methods must be called from an async context.")

        loop_id = id(loop)

        if loop_id in self._clients:
            return self._clients[loop_id]

        with self._client_lock:
            # Double-check after acquiring lock (another thread might have created it)
            if loop_id in self._clients:
                return self._clients[loop_id]

            client = AsyncIOMotorClient(
                self._get_connection_uri(),
                maxPoolSize=self.max_pool_size,
                minPoolSize=self.min_pool_size,
                maxIdleTimeMS=self.max_idle_time_ms,
                waitQueueTimeoutMS=self.wait_queue_timeout_ms,
                connectTimeoutMS=self.connect_timeout_ms,
                serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                socketTimeoutMS=self.socket_timeout_ms,
                retryWrites=True,
                retryReads=True
            )
            db = client[self.db_name]

            client_data = {
                'client': client,
                'db': db,
                'collections': self._initialize_collections_for_client(db),
                'loop': weakref.ref(loop)  # Weak reference to avoid circular references
            }
            self._clients[loop_id] = client_data

            self.log_util.info(
                service_name="FlowDB",
                message=f"MongoDB client initialized for event loop {loop_id} (lazy initialization)"
            )

            return client_data

    def _initialize_collections_for_client(self, db):
        """
        Initialize MongoDB collections for a given database instance
        Returns a dictionary of collections
        """
        return {
            'flows': db.flows,
            'flow_versions': db.flow_versions,
            'flow_sessions': db.flow_sessions
        }

    def close(self):
        """
        Close all MongoDB clients and cleanup resources
        """
        with self._client_lock:
            for loop_id, client_data in self._clients.items():
                try:
                    client_data['client'].close()
                except Exception as e:
                    self.log_util.warning(
                        service_name="FlowDB",
                        message=f"Error closing client for loop {loop_id}: {str(e)}"
                    )

            self._clients.clear()

            self.log_util.info(
                service_name="FlowDB",
                message="All MongoDB clients closed"
            )

    def _handle_db_operation(self, operation_name: str, error: Exception) -> None:
        """
        Handle database operation errors with appropriate logging and exception wrapping.

        Args:
            operation_name: Name of the operation that failed
            error: The exception that occurred
        """
        if isinstance(error, (NetworkTimeout, ServerSelectionTimeoutError, ConnectionFailure)):
            self.log_util.error(
                service_name="FlowDB",
                message=f"Database connection error in {operation_name}: {str(error)}"
            )
            raise FlowDBException(
                message=f"Database connection error: {str(error)}",
                status_code=503  # Service Unavailable
            )
        else:
            self.log_util.error(
                service_name="FlowDB",
                message=f"Error in {operation_name}: {str(error)}"
            )
            raise FlowDBException(
                message=f"Database error: {str(error)}",
                status_code=500
            )

    @staticmethod
    def _to_object_id(value: str) -> Any:
        # Records created outside this service may use plain string ids
        return ObjectId(value) if ObjectId.is_valid(value) else value

    async def ensure_indexes(self) -> None:
        """
        Create the indexes the interpreter relies on.
        The TTL index on expires_at removes abandoned sessions.
        """
        client_data = self._get_client_for_current_loop()
        try:
            collections = client_data['collections']
            await collections['flow_sessions'].create_index([("conversation_id", ASCENDING)], unique=True)
            await collections['flow_sessions'].create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)
            await collections['flows'].create_index([
                ("workspace_id", ASCENDING),
                ("bot_id", ASCENDING),
                ("status", ASCENDING),
                ("is_published", ASCENDING)
            ])
            await collections['flow_versions'].create_index([("flow_id", ASCENDING), ("version", DESCENDING)])
            self.log_util.info(service_name="FlowDB", message="Indexes ensured for flows, flow_versions, flow_sessions")
        except Exception as e:
            self._handle_db_operation("ensure_indexes", e)

    # Flow reads
    async def get_flow(self, flow_id: str) -> Optional[FlowData]:
        """
        Get a flow by ID
        """
        client_data = self._get_client_for_current_loop()
        try:
            result = await client_data['collections']['flows'].find_one({"_id": self._to_object_id(flow_id)})
            if result is None:
                return None
            result["id"] = str(result.pop("_id"))
            return FlowData.model_validate(result)
        except Exception as e:
            self.log_util.error(service_name="FlowDB", message=f"Error getting flow: {str(e)}")
            return None

    async def get_active_published_flows(self, workspace_id: str, bot_id: str) -> List[FlowData]:
        """
        Get every active, published flow of a bot
        """
        client_data = self._get_client_for_current_loop()
        try:
            cursor = client_data['collections']['flows'].find({
                "workspace_id": workspace_id,
                "bot_id": bot_id,
                "status": "active",
                "is_published": True
            })
            flows: List[FlowData] = []
            async for flow_dict in cursor:
                flow_dict["id"] = str(flow_dict.pop("_id"))
                flows.append(FlowData.model_validate(flow_dict))
            return flows
        except Exception as e:
            self.log_util.error(service_name="FlowDB", message=f"Error getting active flows: {str(e)}")
            return []

    async def increment_flow_run_stats(self, flow_id: str, success: bool) -> bool:
        """
        Atomically bump total_runs, and successful_runs when the run succeeded
        """
        client_data = self._get_client_for_current_loop()
        try:
            result = await client_data['collections']['flows'].update_one(
                {"_id": self._to_object_id(flow_id)},
                {
                    "$inc": {"total_runs": 1, "successful_runs": 1 if success else 0},
                    "$set": {"updated_at": datetime.utcnow()}
                }
            )
            return result.matched_count > 0
        except Exception as e:
            self.log_util.error(service_name="FlowDB", message=f"Error updating flow run stats: {str(e)}")
            return False

    # Flow version reads
    async def get_flow_version(self, version_id: str) -> Optional[FlowVersionData]:
        """
        Get a flow version by ID
        """
        client_data = self._get_client_for_current_loop()
        try:
            result = await client_data['collections']['flow_versions'].find_one({"_id": self._to_object_id(version_id)})
            if result is None:
                return None
            result["id"] = str(result.pop("_id"))
            return FlowVersionData.model_validate(result)
        except Exception as e:
            self.log_util.error(service_name="FlowDB", message=f"Error getting flow version: {str(e)}")
            return None

    async def get_latest_flow_version(self, flow_id: str) -> Optional[FlowVersionData]:
        """
        Get the highest-numbered version of a flow
        """
        client_data = self._get_client_for_current_loop()
        try:
            result = await client_data['collections']['flow_versions'].find_one(
                {"flow_id": flow_id},
                sort=[("version", DESCENDING)]
            )
            if result is None:
                return None
            result["id"] = str(result.pop("_id"))
            return FlowVersionData.model_validate(result)
        except Exception as e:
            self.log_util.error(service_name="FlowDB", message=f"Error getting latest flow version: {str(e)}")
            return None

    # Session operations
    async def get_session(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        """
        Get the raw session document for a conversation.
        Validation is left to the caller so malformed documents can be discarded there.
        """
        client_data = self._get_client_for_current_loop()
        try:
            result = await client_data['collections']['flow_sessions'].find_one({"conversation_id": conversation_id})
            if result is None:
                return None
            result["id"] = str(result.pop("_id"))
            return result
        except Exception as e:
            self._handle_db_operation("get_session", e)

    async def insert_session(self, session: FlowSessionData) -> bool:
        """
        Insert a new session. Returns False if a session already exists for the conversation.
        """
        client_data = self._get_client_for_current_loop()
        try:
            session_dict = session.model_dump(exclude={"id"})
            await client_data['collections']['flow_sessions'].insert_one(session_dict)
            return True
        except DuplicateKeyError:
            return False
        except Exception as e:
            self._handle_db_operation("insert_session", e)

    async def update_session(self, conversation_id: str, expected_sequence: int, fields: Dict[str, Any]) -> Optional[int]:
        """
        Update a session only if its stored sequence equals expected_sequence.

        Returns:
            The new sequence number, or None if the session changed (or vanished) in between
        """
        client_data = self._get_client_for_current_loop()
        try:
            result = await client_data['collections']['flow_sessions'].find_one_and_update(
                {"conversation_id": conversation_id, "sequence": expected_sequence},
                {"$set": fields, "$inc": {"sequence": 1}},
                projection={"sequence": 1},
                return_document=ReturnDocument.AFTER
            )
            if result is None:
                return None
            return int(result["sequence"])
        except Exception as e:
            self._handle_db_operation("update_session", e)

    async def mark_session_completed(self, conversation_id: str) -> None:
        client_data = self._get_client_for_current_loop()
        try:
            await client_data['collections']['flow_sessions'].update_one(
                {"conversation_id": conversation_id},
                {"$set": {"status": "completed", "last_activity_at": datetime.utcnow()}}
            )
        except Exception as e:
            self._handle_db_operation("mark_session_completed", e)

    async def delete_session(self, conversation_id: str) -> None:
        client_data = self._get_client_for_current_loop()
        try:
            await client_data['collections']['flow_sessions'].delete_one({"conversation_id": conversation_id})
        except Exception as e:
            self._handle_db_operation("delete_session", e)
