from pydantic import BaseModel, Field


class ConsultantProfileCreateRequest(BaseModel):
    display_name: str = Field(min_length=2, max_length=120)
    description: str | None = Field(default=None, max_length=500)


class ConsultantProfileResponse(BaseModel):
    id: int
    user_id: int
    display_name: str
    description: str | None

    model_config = {"from_attributes": True}
