from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

class AuditEvent(BaseModel):
    entity: str
    entity_id: int
    action: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    actor: Optional[str] = None
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
