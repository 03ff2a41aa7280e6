"""The authenticated caller, as handed over by the API Gateway authorizer."""

from pydantic import BaseModel, Field

from core.models.status import Role


class Principal(BaseModel):
    user_id: str = Field(..., min_length=1)
    role: Role
