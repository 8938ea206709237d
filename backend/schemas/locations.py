from pydantic import BaseModel
from typing import Optional
from uuid import UUID


class LocationRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None


class LocationCreate(BaseModel):
    name: str
    description: Optional[str] = None


class LocationUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
