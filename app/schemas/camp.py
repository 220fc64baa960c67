from enum import Enum

from pydantic import BaseModel


class CamperStatusEnum(str, Enum):
    registered = "Registered"
    checked_in = "CheckedIn"
    checked_out = "CheckedOut"


class AvailableGroupOut(BaseModel):
    id: int
    name: str
    camp_id: int
    supervisor_id: int | None = None
    camper_count: int = 0

    class Config:
        from_attributes = True
