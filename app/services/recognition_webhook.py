"""
Idempotent processing of recognition results pushed by the AI service.

Order of effects for a new request id: match faces, persist attendance,
cache the response, then broadcast. A duplicate within the TTL gets the
cached response and causes no writes. Any failure before the cache write
releases the processing claim so the sender can retry.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional
import logging
import time

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.controllers.attendance import record_recognized_attendance
from app.core.config import settings
from app.db.session import SessionLocal
from app.schemas.attendance import AttendanceCheckResult
from app.schemas.recognition import AttendanceUpdateResult, RecognitionWebhookRequest, RecognizedCamper
from app.services.embedding_matcher import EmbeddingMatcher, PreMatchedEmbeddingMatcher
from app.services.exceptions import RequestInProgressError, ServiceError, UpstreamServiceError, ValidationError
from app.services.idempotency_service import IdempotencyStore, build_idempotency_store
from app.services.logging_service import LoggingService
from app.services.notification_service import AttendanceNotifier
from app.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_PROCESSED_BY = "CampAttendanceService"


class RecognitionWebhookProcessor:
    def __init__(
        self,
        store: IdempotencyStore,
        matcher: EmbeddingMatcher,
        notifier: AttendanceNotifier,
        session_factory: Callable[[], Session] = SessionLocal,
        *,
        wait_seconds: Optional[float] = None,
        poll_interval: Optional[float] = None,
        matcher_timeout: Optional[float] = None,
        broadcast_timeout: Optional[float] = None,
    ):
        self.store = store
        self.matcher = matcher
        self.notifier = notifier
        self.session_factory = session_factory
        self.wait_seconds = settings.IDEMPOTENCY_WAIT_SECONDS if wait_seconds is None else wait_seconds
        self.poll_interval = settings.IDEMPOTENCY_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        self.matcher_timeout = settings.MATCHER_TIMEOUT_SECONDS if matcher_timeout is None else matcher_timeout
        self.broadcast_timeout = settings.BROADCAST_TIMEOUT_SECONDS if broadcast_timeout is None else broadcast_timeout

    async def process(self, request_id: Optional[str], payload: RecognitionWebhookRequest) -> Dict[str, Any]:
        request_id = (request_id or payload.request_id or "").strip()
        if not request_id:
            raise ValidationError("X-Request-ID header or requestId is required", field="request_id")

        started = time.perf_counter()
        logger.info(
            f"[{request_id}] Recognition webhook for schedule {payload.activity_schedule_id} "
            f"with {len(payload.recognized_faces)} faces"
        )

        cached = await self._claim(request_id)
        if cached is not None:
            logger.info(f"[{request_id}] Duplicate request, returning cached result")
            return cached

        try:
            campers = await self._match(request_id, payload)
            outcome = await run_in_threadpool(self._persist, request_id, payload, campers)
            response = AttendanceUpdateResult(
                success=True,
                request_id=request_id,
                timestamp=utc_now(),
                updated_count=outcome.updated_count,
                created_count=outcome.created_count,
                recognized_campers=campers,
                processed_by=payload.metadata.processed_by or DEFAULT_PROCESSED_BY,
                broadcast_sent=False,
            ).model_dump(by_alias=True, mode="json")
            await run_in_threadpool(self.store.save, request_id, response)
        except BaseException:
            # Cancellation included: the key must never stay Processing after we stop working on it
            await asyncio.shield(self._release(request_id))
            raise

        logger.info(
            f"[{request_id}] Persisted {outcome.created_count} created, {outcome.updated_count} updated "
            f"in {(time.perf_counter() - started) * 1000:.0f}ms"
        )

        if await self._broadcast(request_id, payload.activity_schedule_id, campers, outcome):
            response["broadcastSent"] = True
            try:
                await run_in_threadpool(self.store.save, request_id, response)
            except Exception as e:
                logger.error(f"[{request_id}] Failed to record broadcast flag, cached result keeps broadcastSent=false: {e}")
        return response

    async def _claim(self, request_id: str) -> Optional[Dict[str, Any]]:
        """None when this call owns the request id, else the cached response"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds
        while True:
            claim = await run_in_threadpool(self.store.claim, request_id)
            if claim.acquired:
                return None
            if claim.cached is not None:
                return claim.cached
            if loop.time() >= deadline:
                logger.warning(f"[{request_id}] Still processing elsewhere, asking caller to retry")
                raise RequestInProgressError(request_id, retry_after=max(1, int(self.wait_seconds)))
            await asyncio.sleep(self.poll_interval)

    async def _release(self, request_id: str) -> None:
        try:
            await run_in_threadpool(self.store.release, request_id)
        except Exception as e:
            logger.error(f"[{request_id}] Failed to release processing claim, lease expiry will free it: {e}")

    async def _match(self, request_id: str, payload: RecognitionWebhookRequest) -> List[RecognizedCamper]:
        try:
            campers = await asyncio.wait_for(
                self.matcher.match(payload.activity_schedule_id, payload.recognized_faces),
                timeout=self.matcher_timeout,
            )
        except asyncio.TimeoutError:
            raise UpstreamServiceError("embedding matcher", f"timed out after {self.matcher_timeout}s")
        except ServiceError:
            raise
        except Exception as e:
            raise UpstreamServiceError("embedding matcher", str(e)) from e

        logger.info(f"[{request_id}] Matched {len(campers)} of {len(payload.recognized_faces)} faces")
        return campers

    def _persist(
        self, request_id: str, payload: RecognitionWebhookRequest, campers: List[RecognizedCamper]
    ) -> AttendanceCheckResult:
        db = self.session_factory()
        try:
            outcome = record_recognized_attendance(
                db,
                payload.activity_schedule_id,
                {camper.camper_id: camper.confidence for camper in campers},
                payload.metadata.participant_status,
            )
            try:
                LoggingService.log_recognition_update(
                    db, payload.activity_schedule_id, request_id, outcome.created_count, outcome.updated_count
                )
            except Exception as e:
                db.rollback()
                logger.error(f"[{request_id}] Failed to write audit log: {e}")
            return outcome
        finally:
            db.close()

    async def _broadcast(
        self,
        request_id: str,
        activity_schedule_id: int,
        campers: List[RecognizedCamper],
        outcome: AttendanceCheckResult,
    ) -> bool:
        event = AttendanceNotifier.build_event(
            activity_schedule_id, request_id, campers, outcome.created_count, outcome.updated_count
        )
        try:
            delivered = await asyncio.wait_for(
                self.notifier.broadcast(activity_schedule_id, event), timeout=self.broadcast_timeout
            )
        except Exception as e:
            logger.warning(f"[{request_id}] Broadcast to schedule {activity_schedule_id} failed: {e!r}")
            return False
        logger.info(f"[{request_id}] Broadcast sent to {delivered} subscribers")
        return True


_processor: Optional[RecognitionWebhookProcessor] = None


def get_recognition_processor() -> RecognitionWebhookProcessor:
    global _processor
    if _processor is None:
        _processor = RecognitionWebhookProcessor(
            build_idempotency_store(),
            PreMatchedEmbeddingMatcher(),
            AttendanceNotifier(),
        )
    return _processor
