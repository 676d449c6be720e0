"""Expose currently loaded server config for debugging."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import ServerConfig
from ..validation.validator import SchemaRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_config(request: Request) -> ServerConfig:
    return request.app.state.server_config


def _get_schema_registry(request: Request) -> SchemaRegistry:
    return request.app.state.schema_registry


@router.get("/config")
async def config(
    request: Request,
    config: ServerConfig = Depends(_get_config),
    schemas: SchemaRegistry = Depends(_get_schema_registry),
) -> dict:
    admission = config.admission
    return {
        "min_bid": admission.min_bid,
        "hours_range": [admission.min_hours, admission.max_hours],
        "max_bids_per_day": admission.max_bids_per_day,
        "daily_capacity": config.allocation.daily_capacity,
        "storage_backend": config.storage.backend,
        "auth_algorithm": config.auth.algorithm,
        "auth_configured": bool(config.auth.verification_key),
        "schemas": schemas.names(),
        "version": request.app.version,
    }
