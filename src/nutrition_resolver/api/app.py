"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status

from nutrition_resolver.api.admin import router as admin_router
from nutrition_resolver.api.payloads import (
    meal_payload,
    resolution_payload,
    task_payload,
    unresolved_payload,
)
from nutrition_resolver.api.schemas import ResolveFoodRequest, ResolveMealRequest
from nutrition_resolver.app_logging import configure_logging
from nutrition_resolver.containers import AppContainer
from nutrition_resolver.domain.errors import UnconvertibleUnitError
from nutrition_resolver.domain.resolution import UnresolvedResult
from nutrition_resolver.services.discovery import stop_workers


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.debug)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        settings = state_container.settings
        workers = state_container.discovery_worker.start_workers(
            settings.discovery_workers, settings.discovery_poll_seconds
        )
        logger.info("Started %s discovery workers", len(workers))
        yield
        await stop_workers(workers)
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/nutrition/resolve")
    async def resolve_food(
        body: ResolveFoodRequest, request: Request, response: Response
    ) -> dict[str, object]:
        """Resolve one food; unknown foods are queued and answered with 202."""
        state_container: AppContainer = request.app.state.container
        try:
            result = await state_container.resolution_service.resolve(
                body.to_domain()
            )
        except (UnconvertibleUnitError, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        if isinstance(result, UnresolvedResult):
            response.status_code = status.HTTP_202_ACCEPTED
            return unresolved_payload(result)
        return resolution_payload(result)

    @app.post("/nutrition/meal")
    async def resolve_meal(
        body: ResolveMealRequest, request: Request
    ) -> dict[str, object]:
        """Resolve and score every extracted item of a meal."""
        state_container: AppContainer = request.app.state.container
        try:
            meal = await state_container.resolution_service.resolve_meal(
                [item.to_domain() for item in body.items],
                body.user_allergens,
                body.user_diet_preferences,
                allow_estimates=body.allow_estimates,
            )
        except (UnconvertibleUnitError, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        return meal_payload(meal)

    @app.get("/discovery/{ingredient_key}")
    async def discovery_status(
        ingredient_key: str, request: Request
    ) -> dict[str, object]:
        """Return the discovery task for an ingredient key."""
        state_container: AppContainer = request.app.state.container
        task = state_container.discovery_queue.get(ingredient_key)
        if task is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return task_payload(task)

    return app
