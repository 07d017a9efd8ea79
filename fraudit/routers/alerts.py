# fraudit/routers/alerts.py

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from fraudit.clients.risk_api_client import RiskApiError
from fraudit.lib.alert_resolution import NOTES_REQUIRED_MESSAGE
from fraudit.lib.dependencies import get_notification_session
from fraudit.lib.session_manager import NotificationSession
from fraudit.models.alert import ResolveAlertRequest, Severity

router = APIRouter(tags=["Alerts"])


def backend_error(e: RiskApiError):
    status_code = e.status_code if e.status_code and e.status_code >= 400 else 502
    return HTTPException(
        status_code=status_code,
        detail={
            "message": e.message or "Fraud-risk backend request failed",
            "data": "risk_api_error",
            "details": e.details,
        },
    )


@router.get("/alerts")
async def get_alerts(
    page: int = 0,
    size: int = 10,
    severity: Optional[Severity] = None,
    is_resolved: Optional[bool] = None,
    assessment_id: Optional[int] = None,
    session: NotificationSession = Depends(get_notification_session),
):
    params = {
        "page": page,
        "size": size,
        "severity": severity.value if severity else None,
        "isResolved": is_resolved,
        "assessmentId": assessment_id,
    }
    try:
        alert_page = await session.get_alerts(
            {k: v for k, v in params.items() if v is not None}
        )
    except RiskApiError as e:
        logging.error(f"Error fetching alerts: {e}")
        raise backend_error(e)
    return {
        "status": "success",
        "data": alert_page.model_dump(mode="json", by_alias=True),
        "message": "Alerts retrieved successfully",
    }


@router.get("/alerts/{alert_id}")
async def get_alert(
    alert_id: int,
    session: NotificationSession = Depends(get_notification_session),
):
    try:
        alert = await session.get_alert(alert_id)
    except RiskApiError as e:
        logging.error(f"Error fetching alert {alert_id}: {e}")
        raise backend_error(e)
    return {
        "status": "success",
        "data": alert.model_dump(mode="json", by_alias=True),
        "message": "Alert retrieved successfully",
    }


@router.put("/alerts/{alert_id}/resolve")
async def resolve_alert(
    alert_id: int,
    request_body: ResolveAlertRequest,
    session: NotificationSession = Depends(get_notification_session),
):
    result = await session.resolve_alert(alert_id, request_body.resolution_notes)
    if not result.success:
        if result.already_resolved:
            status_code, data = 409, "alert_already_resolved"
        elif result.error == NOTES_REQUIRED_MESSAGE:
            status_code, data = 400, "resolution_notes_required"
        else:
            status_code = result.status_code if result.status_code and result.status_code >= 400 else 502
            data = "resolution_failed"
        raise HTTPException(
            status_code=status_code,
            detail={"message": result.error, "data": data},
        )

    return {
        "status": "success",
        "data": result.alert.model_dump(mode="json", by_alias=True),
        "message": result.message,
    }
