"""Entry point for the FastAPI-powered poster service."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from .catalog import CatalogStore, EntryKind
from .config import get_settings, settings
from .errors import ScanInProgressError
from .models import DISPLAY_PRESETS, DisplayHint
from .services.loader import resolve_poster
from .services.scanner import HealthScanner
from .services.transport import HttpxTransport, Transport

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    image_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.http_timeout, connect=5.0),
            headers={"Accept": "image/*"},
        )
    )
    transport = HttpxTransport(
        image_client, require_image=settings.require_image_content_type
    )
    configure_services(fastapi_app, transport)

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def configure_services(
    fastapi_app: FastAPI,
    transport: Transport,
    catalog: CatalogStore | None = None,
) -> None:
    """Attach the catalog, transport and scanner to the application state."""

    fastapi_app.state.catalog = catalog or CatalogStore()
    fastapi_app.state.transport = transport
    fastapi_app.state.scanner = HealthScanner(
        transport,
        probe_timeout=settings.scan_probe_timeout,
        concurrency=settings.scan_concurrency,
    )


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Resilient poster loading and availability scanning",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def _get_state(fastapi_app: FastAPI, name: str) -> Any:
    value = getattr(fastapi_app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialised")
    return value


def _resolve_hint(request: Request, preset: str | None) -> DisplayHint:
    params = request.query_params
    if preset is not None:
        if preset not in DISPLAY_PRESETS:
            raise HTTPException(status_code=400, detail=f"Unknown preset: {preset}")
        base = DISPLAY_PRESETS[preset]
    else:
        base = DisplayHint(
            width=settings.default_image_width,
            quality=settings.default_image_quality,
        )

    overrides: dict[str, int] = {}
    for key, field_name in (("w", "width"), ("h", "height"), ("q", "quality")):
        raw = params.get(key)
        if raw is None:
            continue
        try:
            overrides[field_name] = int(raw)
        except ValueError as exc:
            raise HTTPException(
                status_code=400, detail=f"Query parameter {key} must be an integer"
            ) from exc
    if not overrides:
        return base
    try:
        return DisplayHint.model_validate({**base.model_dump(), **overrides})
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/resources")
    async def list_resources(
        request: Request, preset: str | None = None, kind: EntryKind | None = None
    ) -> dict[str, Any]:
        catalog: CatalogStore = _get_state(fastapi_app, "catalog")
        hint = _resolve_hint(request, preset)
        refs = catalog.list_resources(hint, kind=kind)
        return {
            "resources": [ref.to_payload(settings.proxy_base) for ref in refs],
        }

    @fastapi_app.get("/api/posters/{resource_id}")
    async def resolve_poster_endpoint(
        request: Request, resource_id: str, preset: str | None = None
    ) -> JSONResponse:
        catalog: CatalogStore = _get_state(fastapi_app, "catalog")
        hint = _resolve_hint(request, preset)
        try:
            ref = catalog.get_resource(resource_id, hint)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

        state = await resolve_poster(
            ref,
            _get_state(fastapi_app, "transport"),
            proxy_url=settings.proxy_base,
            stage_timeout=settings.proxy_stage_timeout,
        )
        payload = {"id": ref.resource_id, "title": ref.title, **state.to_payload()}
        return JSONResponse(payload)

    @fastapi_app.post("/api/scan")
    async def start_scan() -> StreamingResponse:
        catalog: CatalogStore = _get_state(fastapi_app, "catalog")
        scanner: HealthScanner = _get_state(fastapi_app, "scanner")
        try:
            events = scanner.stream(catalog.list_resources())
        except ScanInProgressError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc

        async def _lines() -> AsyncIterator[str]:
            async for event in events:
                yield json.dumps(event.to_payload()) + "\n"

        return StreamingResponse(_lines(), media_type="application/x-ndjson")

    @fastapi_app.get("/api/scan")
    async def latest_scan() -> JSONResponse:
        scanner: HealthScanner = _get_state(fastapi_app, "scanner")
        scan = scanner.latest_run
        if scan is None:
            raise HTTPException(status_code=404, detail="No scan has been run yet")
        payload = scan.to_payload()
        payload["running"] = scanner.running
        return JSONResponse(payload)


app = create_app()


def main() -> None:
    """Serve the API with uvicorn using the configured host and port."""

    import uvicorn

    config = get_settings()
    logger.info(
        "Starting %s on %s:%d (proxy %s, stage timeout %.1fs, probe timeout %.1fs)",
        config.app_name,
        config.server_host,
        config.server_port,
        config.proxy_base,
        config.proxy_stage_timeout,
        config.scan_probe_timeout,
    )
    uvicorn.run(
        "app.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=config.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - manual execution
    main()
