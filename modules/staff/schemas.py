from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class StaffBase(BaseModel):
    name: str = Field(min_length=1)
    active: bool = True


class StaffCreate(StaffBase):
    pass


class StaffUpdate(BaseModel):
    name: Optional[str] = None
    active: Optional[bool] = None


class StaffRead(StaffBase):
    model_config = ConfigDict(from_attributes=True)

    id: str


class StaffImportRow(BaseModel):
    name: str
    active: bool = True


class ActiveToggle(BaseModel):
    active: bool


class ImportResult(BaseModel):
    imported: int
    items: List[StaffRead] = Field(default_factory=list)
