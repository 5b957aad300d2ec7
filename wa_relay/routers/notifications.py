import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from wa_relay.dependencies import get_notification_service
from wa_relay.logging_config import get_logger
from wa_relay.schemas.notification import FulfillmentResponse
from wa_relay.services.notification_service import (
    LEGACY_ROUTES,
    NotificationService,
    NotificationTemplate,
    get_template,
)

logger = get_logger("notifications")

router = APIRouter()


async def _read_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Notification body is not valid JSON")
        return {}
    return data if isinstance(data, dict) else {}


async def _notify(
    template: NotificationTemplate,
    request: Request,
    session_id: Optional[str],
    service: NotificationService,
) -> FulfillmentResponse:
    body = await _read_body(request)
    try:
        text = await service.notify(template, session_id, body)
    except Exception as e:
        logger.error(f"Notification {template.kind} failed: {e}", exc_info=True)
        text = template.failure_text
    return FulfillmentResponse(fulfillmentText=text)


@router.post("/notifications/{kind}", response_model=FulfillmentResponse)
async def send_notification(
    kind: str,
    request: Request,
    session_id: Optional[str] = Query(default=None, alias="X-SESSION"),
    service: NotificationService = Depends(get_notification_service),
):
    """Forward a business event to WhatsApp. Always answers with a fulfillment text."""
    template = get_template(kind)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown notification kind: {kind}")
    return await _notify(template, request, session_id, service)


def _legacy_endpoint(kind: str):
    template = get_template(kind)

    async def endpoint(
        request: Request,
        session_id: Optional[str] = Query(default=None, alias="X-SESSION"),
        service: NotificationService = Depends(get_notification_service),
    ):
        return await _notify(template, request, session_id, service)

    return endpoint


# Backward-compatible paths named after the earlier per-event functions
for legacy_name, legacy_kind in LEGACY_ROUTES.items():
    router.add_api_route(
        f"/{legacy_name}",
        _legacy_endpoint(legacy_kind),
        methods=["POST"],
        response_model=FulfillmentResponse,
        include_in_schema=False,
    )
