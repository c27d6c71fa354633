from __future__ import annotations

import datetime as dt
import uuid
from typing import Literal, Optional

from pydantic import BaseModel, Field

Priority = Literal["Baja", "Normal", "Alta"]
RequestStatus = Literal["Pendiente", "Respondida"]
RoleName = Literal["admin", "operator", "consulta"]


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    email: str
    password: str


class UserProfile(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: str
    active: bool
    created_at: dt.datetime


class StockEntryCreate(BaseModel):
    date_iso: dt.date
    type: str = Field(min_length=1, max_length=64)
    description: str = Field(min_length=1, max_length=255)
    reference: str = Field(default="", max_length=255)
    quantity_received: int = Field(gt=0)


class StockEntryResponse(BaseModel):
    id: uuid.UUID
    date_iso: dt.date
    type: str
    description: str
    reference: str
    quantity_received: int
    quantity_available: int
    created_by: Optional[uuid.UUID] = None
    created_by_name: str
    created_at: dt.datetime


class StockEntryOption(BaseModel):
    id: uuid.UUID
    label: str
    quantity_available: int


class AssignmentCreate(BaseModel):
    date_iso: dt.date
    entry_id: uuid.UUID
    worker: str = Field(min_length=1, max_length=128)
    quantity: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=255)


class AssignmentResponse(BaseModel):
    id: uuid.UUID
    date_iso: dt.date
    entry_id: uuid.UUID
    entry_type: str
    entry_desc: str
    entry_label: str
    worker: str
    quantity: int
    reason: str
    created_by: Optional[uuid.UUID] = None
    created_by_name: str
    created_at: dt.datetime


class ScrapCreate(BaseModel):
    date_iso: dt.date
    entry_id: uuid.UUID
    quantity: int = Field(gt=0)
    reason: str = Field(min_length=1, max_length=128)
    detail: str = ""


class ScrapResponse(BaseModel):
    id: uuid.UUID
    date_iso: dt.date
    entry_id: uuid.UUID
    entry_type: str
    entry_desc: str
    entry_label: str
    quantity: int
    reason: str
    detail: str
    reason_label: str
    created_by: Optional[uuid.UUID] = None
    created_by_name: str
    created_at: dt.datetime


class RequestCreate(BaseModel):
    type: str = Field(min_length=1, max_length=64)
    text: str = Field(min_length=1)
    priority: Priority = "Normal"


class RequestAnswer(BaseModel):
    response: str = Field(min_length=1)


class RequestResponse(BaseModel):
    id: uuid.UUID
    type: str
    text: str
    priority: str
    status: str
    response: str
    created_by: Optional[uuid.UUID] = None
    created_by_name: str
    created_at: dt.datetime
    responded_by: Optional[uuid.UUID] = None
    responded_by_name: Optional[str] = None
    responded_at: Optional[dt.datetime] = None


class EmployeeCreate(BaseModel):
    first: str = Field(min_length=1, max_length=64)
    last: str = Field(min_length=1, max_length=64)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    role: RoleName = "consulta"
    active: bool = True


class EmployeeResponse(BaseModel):
    id: uuid.UUID
    first: str
    last: str
    name: str
    email: str
    role: str
    active: bool
    created_at: dt.datetime


class AuditEntry(BaseModel):
    id: uuid.UUID
    entity: str
    entity_id: str
    action: str
    payload_json: dict
    user_id: Optional[uuid.UUID] = None
    ts: dt.datetime
