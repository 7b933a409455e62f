"""
Lead Service
Creates leads in the lead management service on behalf of flow actions.
"""
from typing import Optional, Dict, Any
import httpx

from utils.log_utils import LogUtil


class LeadService:
    """
    Client for the external lead management API.
    """

    def __init__(
        self,
        log_util: LogUtil,
        lead_service_base_url: Optional[str] = None,
        timeout_seconds: float = 10.0
    ):
        self.log_util = log_util
        self.lead_service_base_url = lead_service_base_url
        self.timeout_seconds = timeout_seconds

    async def create_lead(
        self,
        workspace_id: str,
        bot_id: str,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Optional[str]:
        """
        Create a new lead.

        Returns:
            Lead ID (str) if successful, None if failed or not configured
        """
        if not self.lead_service_base_url:
            self.log_util.warning(
                service_name="LeadService",
                message="LEAD_SERVICE_URL is not configured, skipping lead creation"
            )
            return None

        try:
            url = f"{self.lead_service_base_url}/leads"
            payload: Dict[str, Any] = {
                "workspace_id": workspace_id,
                "bot_id": bot_id,
                "name": name,
                "status": "new",
                "source": "flow"
            }
            if email:
                payload["email"] = email
            if phone:
                payload["phone"] = phone
            if metadata:
                payload["metadata"] = metadata

            headers = {
                "x-workspace-id": workspace_id,
                "Content-Type": "application/json"
            }

            self.log_util.info(
                service_name="LeadService",
                message=f"Creating lead for workspace {workspace_id}, bot {bot_id}, email={email}"
            )

            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, json=payload, headers=headers)

                if response.status_code == 200 or response.status_code == 201:
                    response_data = response.json()

                    # Accepts {"id": ...} or {"lead": {"id": ...}}
                    if isinstance(response_data, dict):
                        if "id" in response_data:
                            return str(response_data["id"])
                        elif isinstance(response_data.get("lead"), dict) and "id" in response_data["lead"]:
                            return str(response_data["lead"]["id"])

                    self.log_util.error(
                        service_name="LeadService",
                        message=f"Unexpected response format from create lead API: {response_data}"
                    )
                    return None
                else:
                    self.log_util.error(
                        service_name="LeadService",
                        message=f"Failed to create lead: {response.status_code} - {response.text}"
                    )
                    return None

        except httpx.TimeoutException:
            self.log_util.error(
                service_name="LeadService",
                message="Timeout while creating lead"
            )
            return None
        except Exception as e:
            self.log_util.error(
                service_name="LeadService",
                message=f"Error creating lead: {str(e)}"
            )
            return None
