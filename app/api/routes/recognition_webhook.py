from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse

from app.core.security import get_ai_service_identity
from app.schemas.recognition import RecognitionWebhookRequest
from app.services.recognition_webhook import RecognitionWebhookProcessor, get_recognition_processor

router = APIRouter()


@router.post("/update-from-recognition")
async def update_from_recognition(
    payload: RecognitionWebhookRequest,
    x_request_id: Optional[str] = Header(default=None, alias="X-Request-ID"),
    service: dict = Depends(get_ai_service_identity),
    processor: RecognitionWebhookProcessor = Depends(get_recognition_processor),
):
    """Called by the recognition service after it matched faces on a schedule"""
    result = await processor.process(x_request_id, payload)
    return JSONResponse(content=result)
