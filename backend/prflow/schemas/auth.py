import uuid

from pydantic import BaseModel, ConfigDict


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    emp_code: str
    email: str
    name: str
    role: str
    department: str | None = None
    location: str | None = None
    entity: str | None = None
    is_active: bool
