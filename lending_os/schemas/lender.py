from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class LenderCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    entity_type: str = Field(default="individual", min_length=1, max_length=50)
    contact_email: EmailStr | None = None


class LenderDTO(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: str
    name: str
    entity_type: str
    contact_email: str | None = None
    created_at: datetime | None = None


class LenderListResponse(BaseModel):
    items: list[LenderDTO]
    total: int
