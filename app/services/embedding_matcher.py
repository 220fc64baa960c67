"""
Face-to-camper matching behind a narrow async interface.

The recognition model itself lives in the external AI service. The default
matcher trusts the camper candidates that service attaches to each face and
only keeps campers registered in the schedule's camp.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, List
import logging

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.camp import Camper
from app.schemas.recognition import RecognizedCamper, RecognizedFace
from app.services.exceptions import NotFoundError
from app.services.schedule_store import ScheduleStore

logger = logging.getLogger(__name__)


class EmbeddingMatcher(ABC):
    @abstractmethod
    async def match(self, activity_schedule_id: int, faces: List[RecognizedFace]) -> List[RecognizedCamper]:
        """Resolve recognized faces to campers of the schedule's camp"""


class PreMatchedEmbeddingMatcher(EmbeddingMatcher):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    async def match(self, activity_schedule_id: int, faces: List[RecognizedFace]) -> List[RecognizedCamper]:
        return await run_in_threadpool(self._match_sync, activity_schedule_id, faces)

    def _match_sync(self, activity_schedule_id: int, faces: List[RecognizedFace]) -> List[RecognizedCamper]:
        db = self.session_factory()
        try:
            store = ScheduleStore(db)
            schedule = store.get_schedule(activity_schedule_id)
            if not schedule:
                raise NotFoundError("Activity schedule", activity_schedule_id)
            activity = store.get_activity(schedule.activity_id)
            if not activity:
                raise NotFoundError("Activity", schedule.activity_id)

            candidate_ids = {face.camper_id for face in faces if face.camper_id is not None}
            campers = {}
            if candidate_ids:
                campers = {
                    camper.id: camper
                    for camper in db.query(Camper).filter(
                        Camper.id.in_(candidate_ids), Camper.camp_id == activity.camp_id
                    ).all()
                }

            # The same camper can appear in several faces; keep the most confident one
            best: Dict[int, RecognizedCamper] = {}
            for face in faces:
                camper = campers.get(face.camper_id)
                if camper is None:
                    continue
                current = best.get(camper.id)
                if current is None or face.confidence > current.confidence:
                    best[camper.id] = RecognizedCamper(
                        camper_id=camper.id,
                        camper_name=camper.camper_name,
                        confidence=face.confidence,
                        distance=round(1.0 - face.confidence, 6),
                        bounding_box=face.bounding_box,
                    )

            skipped = len(faces) - sum(1 for face in faces if face.camper_id in campers)
            if skipped:
                logger.info(f"Schedule {activity_schedule_id}: {skipped} faces had no camper in camp {activity.camp_id}")
            return sorted(best.values(), key=lambda c: c.camper_id)
        finally:
            db.close()
