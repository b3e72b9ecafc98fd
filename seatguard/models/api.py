"""API request/response schemas for FastAPI endpoints."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from seatguard.types import Role

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    platform_role: str | None = None
    company_id: str | None = None
    is_active: bool


class InvitationCreate(BaseModel):
    email: str = Field(min_length=3, max_length=320, pattern=_EMAIL_PATTERN)
    role: Role = Role.TECHNICIAN
    company_id: str | None = None


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    email: str
    role: str
    status: str
    expires_at: datetime
    invited_by: str | None = None
    created_at: datetime


class InvitationAccept(BaseModel):
    token: str = Field(min_length=1)
    email: str = Field(min_length=3, max_length=320, pattern=_EMAIL_PATTERN)
    first_name: str = ""
    last_name: str = ""


class AcceptResponse(BaseModel):
    user: UserResponse
    session_token: str


class AssignRequest(BaseModel):
    company_id: str | None = None
    role: Role | None = None


class BulkDeleteRequest(BaseModel):
    user_ids: list[str] = Field(min_length=1, max_length=500)


class DeletionResponse(BaseModel):
    deleted: list[str]
    skipped: dict[str, str]


class SeatsResponse(BaseModel):
    company_id: str
    used_licenses: int
    purchased: dict[str, int]
    used: dict[str, int]
    pending: dict[str, int]
    available: dict[str, int]


class EquipmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    location: str = ""
    criticality: str = Field(default="medium", pattern="^(low|medium|high)$")


class EquipmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    location: str | None = None
    criticality: str | None = Field(default=None, pattern="^(low|medium|high)$")


class EquipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    name: str
    location: str
    criticality: str
    created_at: datetime


class ClientCompanyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class ClientCompanyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    name: str


class DeliverableCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    client_company_id: str | None = None
    step: int = Field(default=1, ge=1)


class DeliverableUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    is_complete: bool | None = None


class DeliverableResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    client_company_id: str | None = None
    step: int
    title: str
    is_complete: bool
    completed_by_id: str | None = None
