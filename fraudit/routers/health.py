# fraudit/routers/health.py

import logging

from fastapi import APIRouter, Request
from starlette.status import HTTP_200_OK

router = APIRouter(tags=["Healthz"])


@router.get(
    "/healthz",
    status_code=HTTP_200_OK,
    summary="Health Check",
    response_description="Health Status",
)
async def healthz(request: Request):
    logging.getLogger("healthz").debug("Health check endpoint called")
    session_manager = getattr(request.app.state, "session_manager", None)
    return {
        "status": "running",
        "message": "Notification gateway is running",
        "data": {
            "activeSessions": session_manager.session_count if session_manager else 0,
        },
    }
