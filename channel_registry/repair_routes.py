"""Shared-secret gated entrypoints for the registered repair tasks."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from .auth import require_repair_secret
from .repairs import available_repairs, run_pipeline, run_repair

router = APIRouter(
    prefix="/api/admin/repairs",
    tags=["repairs"],
    dependencies=[Depends(require_repair_secret)],
)
logger = logging.getLogger(__name__)


@router.get("")
def list_repairs() -> List[Dict[str, str]]:
    return [{"name": task.name, "description": task.description} for task in available_repairs()]


@router.post("")
def run_all_repairs() -> List[Dict[str, Any]]:
    return [tally.model_dump(mode="json", by_alias=True) for tally in run_pipeline()]


@router.post("/{name}")
def run_named_repair(name: str) -> Dict[str, Any]:
    return run_repair(name).model_dump(mode="json", by_alias=True)


__all__ = ["router"]
