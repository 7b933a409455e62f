from pydantic import BaseModel
from typing import Optional, Dict, Any

# Models
from models.flow_data import TriggerType


class TriggerEvent(BaseModel):
    """
    Classified inbound event used to select a flow.
    """
    type: TriggerType
    value: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
