"""
Google Tasks API client integration.

This module handles direct communication with the Tasks API:
1. Build authenticated requests with retry on transient errors
2. Insert a task (title, optional notes and due date) into a list

Tasks API Reference: https://developers.google.com/tasks/reference/rest
"""
import asyncio
from typing import Optional

import httpx

from app.utils.logger import get_logger
from app.utils.errors import AuthError, RateLimitError, TasksAPIError

logger = get_logger(__name__)

# Tasks API base URL
TASKS_API_BASE = "https://tasks.googleapis.com/tasks/v1"


class TasksClient:
    """
    Google Tasks API client.

    Usage:
        client = TasksClient(access_token)
        task = await client.insert_task("Review the budget", due="2025-02-07T00:00:00.000Z")
    """

    def __init__(self, access_token: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize Tasks client with access token.

        Args:
            access_token: Valid Google OAuth access token with the tasks scope
            transport: Optional httpx transport (tests inject a MockTransport)
        """
        self.access_token = access_token
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        self._transport = transport

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json_data: dict = None,
        params: dict = None,
        retries: int = 2,
    ) -> dict:
        """
        Make an authenticated request to the Tasks API.

        Handles common error cases:
        - 401: Token expired/invalid
        - 403: Permission denied
        - 429: Rate limited
        - 5xx: Server errors (retried with exponential backoff)

        Raises:
            AuthError: Token issues
            RateLimitError: Rate limit exceeded after retries
            TasksAPIError: API errors
        """
        url = f"{TASKS_API_BASE}{endpoint}"

        for attempt in range(retries + 1):
            async with httpx.AsyncClient(transport=self._transport) as client:
                try:
                    response = await client.request(
                        method=method,
                        url=url,
                        headers=self.headers,
                        json=json_data,
                        params=params,
                        timeout=30.0,
                    )
                except (httpx.TimeoutException, httpx.ConnectError) as e:
                    if attempt < retries:
                        wait_time = 2 ** attempt
                        logger.warning(f"Tasks API connection error, retrying in {wait_time}s...")
                        await asyncio.sleep(wait_time)
                        continue
                    logger.error(f"Tasks API: Request failed after {retries} retries - {e}")
                    raise TasksAPIError("Google Tasks service unavailable. Please try again later.")

            if 200 <= response.status_code < 300:
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()

            # Transient errors
            if response.status_code == 429 or response.status_code >= 500:
                if attempt < retries:
                    wait_time = 2 ** attempt
                    logger.warning(f"Tasks API transient error {response.status_code}, retrying in {wait_time}s...")
                    await asyncio.sleep(wait_time)
                    continue
                if response.status_code == 429:
                    raise RateLimitError("Google Tasks rate limit reached. Please try again later.")

            if response.status_code == 401:
                logger.warning("Tasks API: Token expired or invalid")
                raise AuthError("Google access token expired", "INVALID_ACCESS_TOKEN")

            if response.status_code == 403:
                logger.warning("Tasks API: Permission denied")
                raise TasksAPIError("Google Tasks permission denied. Please re-authorize.", upstream_status=403)

            logger.error(f"Tasks API error: {response.status_code} - {response.text[:200]}")
            raise TasksAPIError(f"Google Tasks API error: {response.status_code}", upstream_status=response.status_code)

        raise TasksAPIError("Google Tasks request failed")

    async def insert_task(
        self,
        title: str,
        due: Optional[str] = None,
        notes: Optional[str] = None,
        tasklist: str = "@default",
    ) -> dict:
        """
        Insert a task into a task list.

        Args:
            title: Task title
            due: RFC 3339 due timestamp (Google keeps only the date part)
            notes: Optional task notes
            tasklist: Task list id, "@default" for the user's default list

        Returns:
            The created task resource
        """
        body = {"title": title}
        if notes:
            body["notes"] = notes
        if due:
            body["due"] = due

        task = await self._make_request("POST", f"/lists/{tasklist}/tasks", json_data=body)
        logger.info(f"Created task {task.get('id')} in list {tasklist}")
        return task
