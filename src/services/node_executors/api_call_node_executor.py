from typing import Optional, Dict, Any
import httpx
from pydantic import ValidationError

# Services
from services.node_executors.base_node_executor import NodeExecutor

# Utils
from utils.log_utils import LogUtil
from utils.template_utils import interpolate_variables, interpolate_structure

# Models
from models.flow_context import FlowContext
from models.flow_version_data import FlowNode
from models.node_config_data import APIConfig
from models.node_execution_result import NodeExecutionResult


class APICallNodeExecutor(NodeExecutor):
    """
    Calls an external HTTP API and stores the JSON response in a variable.

    Failures, including an unusable apiConfig, are stored in
    "<responseVariable>_error" and the flow continues.
    """

    DEFAULT_RESPONSE_VARIABLE = "api_response"

    def __init__(self, log_util: LogUtil, timeout_seconds: float = 15.0):
        super().__init__(log_util)
        self.timeout_seconds = timeout_seconds

    async def execute(self, node: FlowNode, context: FlowContext, user_input: Optional[str] = None) -> NodeExecutionResult:
        raw_config = node.data.get("apiConfig")
        if not raw_config:
            return NodeExecutionResult(success=False, completed=False, error="No API config")

        variable_name = self.DEFAULT_RESPONSE_VARIABLE
        if isinstance(raw_config, dict) and isinstance(raw_config.get("responseVariable"), str) and raw_config["responseVariable"]:
            variable_name = raw_config["responseVariable"]

        method = "GET"
        url = ""
        try:
            api_config = APIConfig.model_validate(raw_config)
            method = api_config.method
            url = interpolate_variables(api_config.url, context.variables)
            headers = {
                "Content-Type": "application/json",
                **{str(key): interpolate_variables(str(value), context.variables) for key, value in (api_config.headers or {}).items()}
            }
            body: Optional[Dict[str, Any]] = None
            if api_config.body:
                body = interpolate_structure(api_config.body, context.variables)

            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    json=body if method != "GET" else None
                )
        except (ValidationError, httpx.HTTPError, httpx.InvalidURL) as e:
            error = str(e) or e.__class__.__name__
            self.log_util.error(
                service_name="APICallNodeExecutor",
                message=f"[API_CALL] {method} {url or '<unresolved url>'} failed on node {node.id}: {error}"
            )
            return NodeExecutionResult(
                success=False,
                completed=False,
                variables={f"{variable_name}_error": error},
                error=error
            )

        try:
            response_data = response.json()
        except ValueError:
            response_data = {}

        variables: Dict[str, Any] = {variable_name: response_data}
        error = None
        if not response.is_success:
            error = f"API call failed with status {response.status_code}"
            variables[f"{variable_name}_error"] = error
            self.log_util.warning(
                service_name="APICallNodeExecutor",
                message=f"[API_CALL] {method} {url} returned {response.status_code} on node {node.id}"
            )

        return NodeExecutionResult(
            success=response.is_success,
            completed=False,
            variables=variables,
            error=error
        )
