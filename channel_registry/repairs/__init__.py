"""Registered repair tasks; import order below is the pipeline order."""

from . import legacy_ids, missing_fields, display_names, registry_backfill, social_links, account_usernames  # noqa: F401
from .base import (
    RepairConflict,
    RepairIssue,
    RepairOutcome,
    RepairTally,
    RepairTask,
    available_repairs,
    chunked,
    get_repair,
    pipeline_order,
    register_repair,
    run_pipeline,
    run_repair,
)

__all__ = [
    "RepairConflict",
    "RepairIssue",
    "RepairOutcome",
    "RepairTally",
    "RepairTask",
    "available_repairs",
    "chunked",
    "get_repair",
    "pipeline_order",
    "register_repair",
    "run_pipeline",
    "run_repair",
]
