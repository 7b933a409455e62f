from typing import Optional, Dict, Any
from datetime import datetime, timedelta
from pydantic import ValidationError

# Utils
from utils.log_utils import LogUtil

# Database
from database.flow_db import FlowDB

# Models
from models.flow_context import FlowContext, FlowMessage, ContactInfo
from models.flow_definition import FlowDefinition
from models.flow_session_data import FlowSessionData

# Exceptions
from exceptions.flow_exception import FlowDBException, FlowContextConflictException


class FlowContextService:
    """
    Creates, persists and restores per-conversation execution contexts.
    Sessions are keyed by conversation_id and expire SESSION_TTL_HOURS after the last save.
    """

    def __init__(self, log_util: LogUtil, flow_db: FlowDB, session_ttl_hours: int = 24):
        self.log_util = log_util
        self.flow_db = flow_db
        self.session_ttl_hours = session_ttl_hours

    def create_context(
        self,
        flow_definition: FlowDefinition,
        conversation_id: str,
        contact: Optional[ContactInfo] = None
    ) -> FlowContext:
        """
        Build a fresh, unsaved context positioned on the flow's start node.
        """
        start_node = flow_definition.get_start_node()
        now = datetime.utcnow()

        return FlowContext(
            flow_id=flow_definition.flow.id,
            version_id=flow_definition.version.id,
            conversation_id=conversation_id,
            workspace_id=flow_definition.flow.workspace_id,
            bot_id=flow_definition.flow.bot_id,
            contact=contact or ContactInfo(),
            variables=self._initialize_variables(flow_definition),
            message_history=[],
            current_node_id=start_node.id if start_node else "",
            started_at=now,
            last_activity_at=now,
            sequence=0
        )

    def _initialize_variables(self, flow_definition: FlowDefinition) -> Dict[str, Any]:
        variables: Dict[str, Any] = {}
        for variable in flow_definition.version.variables:
            variables[variable.name] = variable.defaultValue
        return variables

    async def load_context(self, conversation_id: str) -> Optional[FlowContext]:
        """
        Restore the persisted context of a conversation.

        Returns:
            FlowContext, or None when there is no usable session. Malformed,
            expired and completed sessions are logged, removed and treated as absent.
        """
        try:
            session_dict = await self.flow_db.get_session(conversation_id)
        except FlowDBException as e:
            self.log_util.error(
                service_name="FlowContextService",
                message=f"[LOAD_CONTEXT] Error loading session for conversation {conversation_id}: {e.message}"
            )
            return None

        if session_dict is None:
            return None

        try:
            session = FlowSessionData.model_validate(session_dict)
            message_history = [FlowMessage.model_validate(message) for message in session.message_history]
        except ValidationError as e:
            self.log_util.error(
                service_name="FlowContextService",
                message=f"[LOAD_CONTEXT] Discarding malformed session for conversation {conversation_id}: {str(e)}"
            )
            await self._discard_session(conversation_id)
            return None

        if session.status != "active" or session.expires_at <= datetime.utcnow():
            self.log_util.info(
                service_name="FlowContextService",
                message=f"[LOAD_CONTEXT] Session for conversation {conversation_id} is {session.status}, expires_at {session.expires_at}; discarding"
            )
            await self._discard_session(conversation_id)
            return None

        return FlowContext(
            flow_id=session.flow_id,
            version_id=session.version_id,
            conversation_id=session.conversation_id,
            workspace_id=session.workspace_id,
            bot_id=session.bot_id,
            contact=ContactInfo(
                contact_id=session.contact_id,
                contact_name=session.contact_name,
                contact_email=session.contact_email
            ),
            variables=session.variables or {},
            message_history=message_history,
            current_node_id=session.current_node_id,
            started_at=session.started_at,
            last_activity_at=session.last_activity_at,
            sequence=session.sequence
        )

    async def save_context(self, context: FlowContext) -> bool:
        """
        Persist a context and push its expiry SESSION_TTL_HOURS into the future.

        The write is conditional on the context's sequence number: a context
        that was never saved is inserted, an existing one is updated only if
        nobody else has written it since it was loaded.

        Raises:
            FlowContextConflictException: another writer saved this conversation first

        Returns:
            True if saved, False on a storage error (logged)
        """
        now = datetime.utcnow()
        expires_at = now + timedelta(hours=self.session_ttl_hours)
        context.last_activity_at = now
        message_history = [message.model_dump() for message in context.message_history]

        try:
            if context.sequence == 0:
                session = FlowSessionData(
                    conversation_id=context.conversation_id,
                    workspace_id=context.workspace_id,
                    bot_id=context.bot_id,
                    flow_id=context.flow_id,
                    version_id=context.version_id,
                    current_node_id=context.current_node_id,
                    variables=context.variables,
                    message_history=message_history,
                    contact_id=context.contact.contact_id,
                    contact_name=context.contact.contact_name,
                    contact_email=context.contact.contact_email,
                    status="active",
                    sequence=1,
                    started_at=context.started_at,
                    last_activity_at=now,
                    expires_at=expires_at
                )
                inserted = await self.flow_db.insert_session(session)
                if not inserted:
                    raise FlowContextConflictException(conversation_id=context.conversation_id, expected_sequence=0)
                context.sequence = 1
            else:
                new_sequence = await self.flow_db.update_session(
                    conversation_id=context.conversation_id,
                    expected_sequence=context.sequence,
                    fields={
                        "current_node_id": context.current_node_id,
                        "variables": context.variables,
                        "message_history": message_history,
                        "status": "active",
                        "last_activity_at": now,
                        "expires_at": expires_at
                    }
                )
                if new_sequence is None:
                    raise FlowContextConflictException(
                        conversation_id=context.conversation_id,
                        expected_sequence=context.sequence
                    )
                context.sequence = new_sequence
        except FlowDBException as e:
            self.log_util.error(
                service_name="FlowContextService",
                message=f"[SAVE_CONTEXT] Error saving session for conversation {context.conversation_id}: {e.message}"
            )
            return False

        self.log_util.debug(
            service_name="FlowContextService",
            message=f"[SAVE_CONTEXT] Saved conversation {context.conversation_id} at node {context.current_node_id}, sequence {context.sequence}"
        )
        return True

    async def clear_context(self, conversation_id: str) -> None:
        """
        Mark the session completed, then delete it.
        """
        try:
            await self.flow_db.mark_session_completed(conversation_id)
            await self.flow_db.delete_session(conversation_id)
        except FlowDBException as e:
            self.log_util.error(
                service_name="FlowContextService",
                message=f"[CLEAR_CONTEXT] Error clearing session for conversation {conversation_id}: {e.message}"
            )

    async def _discard_session(self, conversation_id: str) -> None:
        try:
            await self.flow_db.delete_session(conversation_id)
        except FlowDBException as e:
            self.log_util.warning(
                service_name="FlowContextService",
                message=f"[LOAD_CONTEXT] Could not remove unusable session for conversation {conversation_id}: {e.message}"
            )
