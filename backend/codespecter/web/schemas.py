from pydantic import BaseModel, Field
from typing import Any, Optional, List


class EventRequest(BaseModel):
    name: str
    data: Any = Field(default_factory=dict)


class EventAccepted(BaseModel):
    name: str
    run_ids: List[str]


class RunStatus(BaseModel):
    id: str
    function_id: str
    event_name: str
    status: str
    attempts: int
    result: Optional[Any] = None
    error: Optional[str] = None


class WebhookAccepted(BaseModel):
    event: Optional[str] = None
    run_ids: List[str] = Field(default_factory=list)
    message: Optional[str] = None
