# fraudit/clients/risk_api_client.py

import logging
from typing import Any, Dict, List, Optional

import httpx
from httpx import AsyncClient, Timeout

from fraudit.models.alert import Alert, AlertPage


class RiskApiError(Exception):
    """Error returned by (or while talking to) the fraud-risk backend.

    ``message`` is the server's own message when the response carried one,
    otherwise ``None``.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ):
        super().__init__(message or details or "Fraud-risk backend request failed")
        self.message = message
        self.status_code = status_code
        self.details = details


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message")
        if isinstance(message, str) and message.strip():
            return message
    return None


class RiskApiClient:
    """Client for the fraud-risk backend, authenticated as one user.

    Responses use the backend envelope ``{"success", "message", "data"}``;
    only ``data`` is returned to callers.
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport
        self.client: Optional[AsyncClient] = None
        self.logger = logging.getLogger(__name__)

    async def get_client(self) -> AsyncClient:
        if self.client is None:
            headers = {"Accept": "application/json"}
            if self.access_token:
                headers["Authorization"] = f"Bearer {self.access_token}"
            self.client = AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=Timeout(self.timeout),
                transport=self.transport,
            )
        return self.client

    async def set_access_token(self, access_token: str):
        if access_token == self.access_token:
            return
        self.access_token = access_token
        await self.close_client()

    async def close_client(self):
        if self.client:
            await self.client.aclose()
            self.client = None

    async def make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        client = await self.get_client()

        try:
            self.logger.debug(f"Making {method} request to {endpoint} with params: {params}")
            response = await client.request(method, endpoint, params=params, json=data)
            self.logger.debug(f"Response status: {response.status_code}")
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            self.logger.error(
                f"HTTP error occurred: {e.response.status_code} {e.response.text}"
            )
            raise RiskApiError(
                message=_server_message(e.response),
                status_code=e.response.status_code,
                details=str(e),
            ) from e
        except httpx.RequestError as e:
            self.logger.error(f"Network error occurred: {str(e)}")
            raise RiskApiError(details=f"Network error: {e}") from e
        except ValueError as e:
            self.logger.error(f"Invalid JSON from {endpoint}: {e}")
            raise RiskApiError(details="Invalid response from fraud-risk backend") from e

        if isinstance(body, dict) and "data" in body:
            if body.get("success") is False:
                raise RiskApiError(
                    message=body.get("message"), status_code=response.status_code
                )
            return body["data"]
        return body

    async def fetch_recent_alerts(self, limit: int = 5) -> List[Alert]:
        data = await self.make_request(
            "GET", "/dashboard/recent-risk-alerts", params={"limit": limit}
        )
        alerts = [Alert.model_validate(item) for item in data or []]
        return alerts[:limit]

    async def resolve_alert(self, alert_id: int, resolution_notes: str) -> Alert:
        data = await self.make_request(
            "PUT",
            f"/fraud-risk/alerts/{alert_id}/resolve",
            data={"resolutionNotes": resolution_notes},
        )
        return Alert.model_validate(data)

    async def get_alerts(self, params: Optional[Dict[str, Any]] = None) -> AlertPage:
        data = await self.make_request("GET", "/fraud-risk/alerts", params=params)
        if isinstance(data, list):
            return AlertPage(content=data, size=len(data), total_elements=len(data), total_pages=1)
        return AlertPage.model_validate(data or {})

    async def get_alert(self, alert_id: int) -> Alert:
        data = await self.make_request("GET", f"/fraud-risk/alerts/{alert_id}")
        return Alert.model_validate(data)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close_client()
