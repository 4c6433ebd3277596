from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SubmissionRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    form_id: str = Field(alias="formId")
    period: str
    date_key: str = Field(alias="dateKey")
    staff: List[str]
    staff_key: str = Field(alias="staffKey")
    sequence: Optional[int] = None
    answers: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(alias="createdAt")


class SubmissionPage(BaseModel):
    items: List[SubmissionRead] = Field(default_factory=list)
    cursor: Optional[str] = None
