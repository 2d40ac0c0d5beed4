"""
Security monitoring endpoints.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from app.api import deps
from app.core.security import SecurityEventType, SecuritySeverity
from app.schemas.common import SuccessResponse

router = APIRouter(prefix="/security", tags=["security"])


@router.get(
    "/events",
    response_model=SuccessResponse[List[Dict[str, Any]]],
    summary="Recent security events, newest first",
)
async def list_security_events(
    request: Request,
    limit: int = Query(50, ge=1, le=1000),
    event_type: Optional[SecurityEventType] = Query(None),
    severity: Optional[SecuritySeverity] = Query(None),
    _: str = Depends(deps.get_current_faculty),
) -> SuccessResponse[List[Dict[str, Any]]]:
    event_log = request.app.state.security_event_log
    event_log.clear_older_than(request.app.state.settings.SECURITY_EVENT_RETENTION_DAYS)
    events = event_log.recent(len(event_log))
    if event_type is not None:
        events = [event for event in events if event.type == event_type]
    if severity is not None:
        events = [event for event in events if event.severity == severity]

    return SuccessResponse.create(
        message="Security events retrieved",
        data=[event.to_dict() for event in events[:limit]],
    )
