from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Annotated, Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from .scheduler import build_scheduler, run_cache_prune_job
from .service import LocationLookupError, WeatherService, build_weather_service
from .settings import AppSettings, load_settings
from .storage.db import initialize_database

LOGGER = logging.getLogger(__name__)

Latitude = Annotated[float, Query(ge=-90, le=90)]
Longitude = Annotated[float, Query(ge=-180, le=180)]


def _get_service(request: Request) -> WeatherService:
    return request.app.state.service


def _get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def create_app(
    *,
    settings: AppSettings | None = None,
    service: WeatherService | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(application: FastAPI):
        app_settings = settings or load_settings()
        logging.basicConfig(level=app_settings.env.log_level)
        if app_settings.db_path is not None:
            initialize_database(app_settings.db_path)

        weather_service = service or build_weather_service(app_settings)
        if not app_settings.has_api_key:
            LOGGER.warning("No OpenWeatherMap API key configured, serving synthetic weather")

        run_cache_prune_job(weather_service.cache)
        scheduler = build_scheduler(app_settings, weather_service.cache)
        if start_scheduler:
            scheduler.start()

        application.state.settings = app_settings
        application.state.service = weather_service
        application.state.scheduler = scheduler
        application.state.started_at_utc = datetime.now(timezone.utc)

        try:
            yield
        finally:
            if scheduler.running:
                scheduler.shutdown(wait=False)

    application = FastAPI(title="Weatherdash", version="0.1.0", lifespan=lifespan)
    _register_routes(application)
    return application


def _register_routes(application: FastAPI) -> None:
    @application.get("/health", response_class=JSONResponse)
    async def health(request: Request) -> JSONResponse:
        settings = _get_settings(request)
        return JSONResponse(
            {
                "status": "ok",
                "service": "weatherdash",
                "environment": settings.env.env,
                "timezone": settings.env.timezone,
                "api_key_configured": settings.has_api_key,
                "scheduler_running": request.app.state.scheduler.running,
                "started_at_utc": request.app.state.started_at_utc.isoformat(),
                "timestamp_utc": datetime.now(timezone.utc).isoformat(),
            }
        )

    @application.get("/api/locations")
    async def search_locations(
        request: Request,
        q: str = Query(default=""),
        limit: int | None = Query(default=None, ge=1, le=5),
    ) -> list[dict[str, Any]]:
        if limit is None:
            limit = _get_settings(request).yaml.weather.search_limit
        matches = await _get_service(request).search_locations(q, limit)
        return [match.model_dump(mode="json") for match in matches]

    @application.get("/api/locations/reverse")
    async def location_by_coords(
        request: Request,
        lat: Latitude,
        lon: Longitude,
    ) -> dict[str, Any]:
        try:
            match = await _get_service(request).get_location_by_coords(lat, lon)
        except LocationLookupError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        if match is None:
            raise HTTPException(status_code=404, detail="No place found for these coordinates")
        return match.model_dump(mode="json")

    @application.get("/api/weather/current")
    async def current_weather(
        request: Request,
        lat: Latitude,
        lon: Longitude,
        location: str | None = Query(default=None),
    ) -> dict[str, Any]:
        result = await _get_service(request).get_current_weather_result(lat, lon)
        observation = result.value
        if location and location.strip():
            observation = observation.model_copy(update={"location": location.strip()})
        return {
            "provenance": result.provenance.value,
            "weather": observation.model_dump(mode="json"),
        }

    @application.get("/api/weather/forecast")
    async def forecast(
        request: Request,
        lat: Latitude,
        lon: Longitude,
    ) -> dict[str, Any]:
        result = await _get_service(request).get_forecast_result(lat, lon)
        return {
            "provenance": result.provenance.value,
            **result.value.model_dump(mode="json"),
        }

    @application.get("/api/cache")
    def cache_info(request: Request) -> dict[str, Any]:
        return _get_service(request).get_cache_info().model_dump(mode="json")

    @application.delete("/api/cache")
    def clear_cache(request: Request) -> dict[str, Any]:
        removed = _get_service(request).clear_all_cache()
        return {"removed": removed}


app = create_app()
