from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Any, Literal

class QuestionOption(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: str
    label: str
    value: str
    nextNodeId: Optional[str] = None

class ConditionRule(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: Optional[str] = None
    variable: str
    operator: str  # equals, not_equals, contains, not_contains, greater_than, less_than, is_empty, is_not_empty, matches_regex
    value: Optional[Any] = None
    nextNodeId: Optional[str] = None

class ActionConfig(BaseModel):
    model_config = ConfigDict(extra='allow')

    type: str  # send_email, create_lead, update_contact, trigger_webhook, add_tag, set_variable, schedule_appointment
    config: Dict[str, Any] = Field(default_factory=dict)

class AIConfig(BaseModel):
    model_config = ConfigDict(extra='allow')

    model: Optional[str] = None
    temperature: Optional[float] = None
    maxTokens: Optional[int] = None
    systemPrompt: Optional[str] = None
    fallbackMessage: Optional[str] = None

class VariableConfig(BaseModel):
    model_config = ConfigDict(extra='allow')

    name: str
    value: Optional[Any] = None
    type: Optional[Literal["string", "number", "boolean", "array", "object"]] = "string"

class APIConfig(BaseModel):
    model_config = ConfigDict(extra='allow')

    url: str
    method: Literal["GET", "POST", "PUT", "PATCH", "DELETE"] = "GET"
    headers: Optional[Dict[str, Any]] = None
    body: Optional[Dict[str, Any]] = None
    responseVariable: Optional[str] = None
