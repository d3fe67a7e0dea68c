"""
Request dependencies shared by the routers.

- get_current_user_id: resolves the requesting user from a Supabase Auth
  bearer token. Tests override it via app.dependency_overrides.
- get_task_queue: post-commit work runs as FastAPI background tasks, after
  the response has been sent.
"""

import logging
from typing import Optional

from fastapi import BackgroundTasks, Header, HTTPException

from repositories.client import get_client
from services.post_commit import BackgroundTasksQueue, TaskQueue

logger = logging.getLogger(__name__)


def get_current_user_id(
    authorization: Optional[str] = Header(None, description="Bearer token")
) -> str:
    """
    Validate the bearer token with Supabase Auth and return the user id.

    Raises:
        HTTPException: 401 if the header is missing, malformed or the token is rejected
    """
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing or malformed Authorization header")
        raise HTTPException(
            status_code=401,
            detail="Authorization header required. Use: Bearer <access_token>",
        )

    token = authorization[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Empty bearer token")

    try:
        response = get_client().auth.get_user(token)
    except Exception as e:
        logger.warning("Token validation failed: %s", e)
        raise HTTPException(status_code=401, detail="Invalid or expired token") from e

    user = getattr(response, "user", None)
    if user is None or not getattr(user, "id", None):
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return str(user.id)


def get_task_queue(background_tasks: BackgroundTasks) -> TaskQueue:
    return BackgroundTasksQueue(background_tasks)
