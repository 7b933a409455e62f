import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

# Utils
from utils.log_utils import LogUtil
from utils.environment_utils import EnvironmentUtils

# Database
from database.flow_db import FlowDB

# Internal Services
from services.internal.text_generation_service import TextGenerationService
from services.internal.lead_service import LeadService

# Services
from services.node_executors.node_executor_registry import NodeExecutorRegistry
from services.flow_definition_service import FlowDefinitionService
from services.trigger_resolution_service import TriggerResolutionService
from services.flow_context_service import FlowContextService
from services.step_executor_service import StepExecutorService
from services.flow_interpreter_service import FlowInterpreterService

# APIs
from apis.flow_message_api import create_flow_message_api
from apis.flow_cache_api import create_flow_cache_api

# Exceptions
from exceptions.flow_exception import FlowException, FlowDBException

# Utils
log_util = LogUtil()
environment_utils = EnvironmentUtils(log_util=log_util)

# Database
flow_db = FlowDB(log_util=log_util, environment_utils=environment_utils)

# Internal Services
text_generation_service = TextGenerationService(
    log_util=log_util,
    api_key=environment_utils.get_env_variable("OPENAI_API_KEY"),
    default_model=environment_utils.get_env_variable("OPENAI_MODEL")
)
lead_service = LeadService(
    log_util=log_util,
    lead_service_base_url=environment_utils.get_env_variable("LEAD_SERVICE_URL"),
    timeout_seconds=environment_utils.get_env_variable("WEBHOOK_TIMEOUT_SECONDS")
)

# Services
node_executor_registry = NodeExecutorRegistry(
    log_util=log_util,
    text_generation_service=text_generation_service,
    lead_service=lead_service,
    api_call_timeout_seconds=environment_utils.get_env_variable("API_CALL_TIMEOUT_SECONDS"),
    webhook_timeout_seconds=environment_utils.get_env_variable("WEBHOOK_TIMEOUT_SECONDS")
)

flow_definition_service = FlowDefinitionService(
    log_util=log_util,
    flow_db=flow_db
)

trigger_resolution_service = TriggerResolutionService(
    log_util=log_util,
    flow_db=flow_db,
    flow_definition_service=flow_definition_service
)

flow_context_service = FlowContextService(
    log_util=log_util,
    flow_db=flow_db,
    session_ttl_hours=environment_utils.get_env_variable("SESSION_TTL_HOURS")
)

step_executor_service = StepExecutorService(
    log_util=log_util,
    node_executor_registry=node_executor_registry,
    max_hops=environment_utils.get_env_variable("MAX_HOPS")
)

flow_interpreter_service = FlowInterpreterService(
    log_util=log_util,
    flow_db=flow_db,
    flow_definition_service=flow_definition_service,
    trigger_resolution_service=trigger_resolution_service,
    flow_context_service=flow_context_service,
    step_executor_service=step_executor_service
)

# Define lifespan function
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    try:
        await flow_db.ensure_indexes()
    except FlowDBException as e:
        log_util.error(service_name="FlowInterpreterService", message=f"Could not ensure indexes at startup: {e.message}")
    log_util.info(service_name="FlowInterpreterService", message="Application startup complete")

    yield

    # Shutdown
    flow_db.close()
    log_util.info(service_name="FlowInterpreterService", message="Application shutdown complete")

# Create FastAPI app
app = FastAPI(
    title="flow interpreter service",
    description="Executes published conversation flows for multi-tenant chatbots",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Inbound message API (called by channel adapters)
flow_message_router = create_flow_message_api(
    log_util=log_util,
    flow_interpreter_service=flow_interpreter_service
)
app.include_router(flow_message_router)

# Cache invalidation API (called by the publish path)
flow_cache_router = create_flow_cache_api(
    log_util=log_util,
    flow_definition_service=flow_definition_service
)
app.include_router(flow_cache_router)

# Health check endpoint
@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "flow_interpreter_service"}

# Global exception handler for HTTPExceptions
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    log_util.error(service_name="FlowInterpreterService", message=f"HTTPException: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error": str(exc),
            "status_code": exc.status_code
        },
        headers={"Content-Type": "application/json"}
    )

# Global exception handler for flow exceptions
@app.exception_handler(FlowException)
async def flow_exception_handler(request: Request, exc: FlowException):
    log_util.error(service_name="FlowInterpreterService", message=f"FlowException: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error": exc.__class__.__name__,
            "status_code": exc.status_code
        },
        headers={"Content-Type": "application/json"}
    )

# Global exception handler for any unhandled exceptions
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    log_util.error(service_name="FlowInterpreterService", message=f"Exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "status_code": 500
        },
        headers={"Content-Type": "application/json"}
    )

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=environment_utils.get_env_variable("HOST"),
        port=environment_utils.get_env_variable("PORT")
    )
