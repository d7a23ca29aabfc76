"""Configuration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from posesketch.api.schemas.models import ConfigSchema
from posesketch.api.services.state import apply_settings, get_settings
from posesketch.core.config.presets import list_sketches, sketch_profile
from posesketch.core.config.settings import settings_to_dict

router = APIRouter()


@router.get("/config", response_model=ConfigSchema)
def get_config() -> ConfigSchema:
    """Return the current effective configuration."""

    settings = get_settings()
    return ConfigSchema(**settings_to_dict(settings))


@router.get("/config/sketches")
def get_sketches() -> dict[str, list[dict[str, object]]]:
    """Return the available sketches."""

    return {"sketches": list_sketches()}


@router.post("/config/sketches/{sketch_id}", response_model=ConfigSchema)
def switch_sketch(sketch_id: str) -> ConfigSchema:
    """Switch to another sketch and return the updated configuration."""

    try:
        profile = sketch_profile(sketch_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Unknown sketch") from None
    settings = apply_settings({**settings_to_dict(get_settings()), "sketch": profile.name})
    return ConfigSchema(**settings_to_dict(settings))


@router.post("/config", response_model=ConfigSchema)
def update_config(cfg: ConfigSchema) -> ConfigSchema:
    """Update in-memory settings and restart the engine.

    This endpoint updates runtime configuration only. Persist configuration via
    environment variables or the YAML config file.
    """

    settings = apply_settings(cfg.model_dump())
    return ConfigSchema(**settings_to_dict(settings))
