# Wire contract shared with the face-recognition service, which speaks camelCase.
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from app.schemas.attendance import ParticipantStatusEnum


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class BoundingBox(CamelModel):
    x: float
    y: float
    width: float
    height: float


class RecognizedFace(CamelModel):
    embedding: List[float] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)
    bounding_box: Optional[BoundingBox] = None
    face_area: Optional[float] = None
    camper_id: Optional[int] = None


class WebhookMetadata(CamelModel):
    timestamp: Optional[datetime] = None
    processed_by: Optional[str] = None
    user_id: Optional[int] = None
    source: str = "mobile-direct"
    python_version: Optional[str] = None
    participant_status: ParticipantStatusEnum = ParticipantStatusEnum.present


class RecognitionWebhookRequest(CamelModel):
    request_id: Optional[str] = None
    activity_schedule_id: int
    group_id: Optional[int] = None
    camp_id: Optional[int] = None
    recognized_faces: List[RecognizedFace] = Field(default_factory=list)
    metadata: WebhookMetadata = Field(default_factory=WebhookMetadata)


class RecognizedCamper(CamelModel):
    camper_id: int
    camper_name: str
    confidence: float
    distance: float
    bounding_box: Optional[BoundingBox] = None


class AttendanceUpdateResult(CamelModel):
    success: bool
    request_id: str
    timestamp: datetime
    updated_count: int = 0
    created_count: int = 0
    recognized_campers: List[RecognizedCamper] = Field(default_factory=list)
    processed_by: Optional[str] = None
    broadcast_sent: bool = False
