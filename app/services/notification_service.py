from typing import Any, Dict, List, Optional
import logging

from app.core.websocket_manager import ConnectionManager, attendance_topic, connection_manager
from app.schemas.recognition import RecognizedCamper
from app.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

ATTENDANCE_UPDATED = "AttendanceUpdated"


class AttendanceNotifier:
    """Pushes attendance updates to live subscribers of a schedule"""

    def __init__(self, manager: Optional[ConnectionManager] = None):
        self.manager = manager or connection_manager

    @staticmethod
    def build_event(
        activity_schedule_id: int,
        request_id: str,
        campers: List[RecognizedCamper],
        created: int,
        updated: int,
    ) -> Dict[str, Any]:
        return {
            "eventType": ATTENDANCE_UPDATED,
            "activityScheduleId": activity_schedule_id,
            "campers": [camper.model_dump(by_alias=True, mode="json") for camper in campers],
            "timestamp": utc_now().isoformat(),
            "requestId": request_id,
            "summary": {"updated": updated, "created": created, "total": updated + created},
        }

    async def broadcast(self, activity_schedule_id: int, event: Dict[str, Any]) -> int:
        topic = attendance_topic(activity_schedule_id)
        delivered = await self.manager.broadcast(topic, event)
        logger.debug(f"{ATTENDANCE_UPDATED} sent to {delivered} subscribers of {topic}")
        return delivered
