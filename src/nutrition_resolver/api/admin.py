"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status

from nutrition_resolver.api.payloads import task_payload
from nutrition_resolver.domain.discovery import DiscoveryStatus

if TYPE_CHECKING:
    from nutrition_resolver.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/discovery", dependencies=[Depends(require_admin)])
async def list_discovery_tasks(
    request: Request,
    status_filter: DiscoveryStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=500),
) -> dict[str, object]:
    """Return discovery tasks, optionally filtered by status."""
    container: AppContainer = request.app.state.container
    tasks = container.discovery_queue.list_tasks(status_filter, limit)
    return {"tasks": [task_payload(task) for task in tasks]}


@router.post(
    "/discovery/{ingredient_key}/requeue", dependencies=[Depends(require_admin)]
)
async def requeue_discovery_task(
    ingredient_key: str, request: Request
) -> dict[str, object]:
    """Reset a failed discovery task so the worker picks it up again."""
    container: AppContainer = request.app.state.container
    task = container.discovery_queue.get(ingredient_key)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    if task.status is not DiscoveryStatus.FAILED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Task is {task.status.value}; only failed tasks can be requeued",
        )
    requeued = container.discovery_queue.requeue(ingredient_key) or task
    return task_payload(requeued)
