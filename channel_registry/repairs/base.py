"""Repair task abstraction: named, idempotent scans with a uniform tally."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, ClassVar, ContextManager, Dict, Iterable, Iterator, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from ..db.session import session_scope
from ..errors import NotFoundError
from ..normalization import CertifiedProfile, certify_profile
from ..repositories import pending_profiles
from ..schemas import PendingProfile
from ..telemetry import emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RepairOutcome(str, Enum):
    FIXED = "fixed"
    ALREADY_CORRECT = "already_correct"
    CREATED = "created"
    SKIPPED = "skipped"


class RepairConflict(Exception):
    """A document that needs manual review; recorded, never written."""


class RepairIssue(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    document_id: str
    message: str


class RepairTally(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    task: str
    total: int = 0
    fixed: int = 0
    already_correct: int = 0
    created: int = 0
    skipped: int = 0
    conflicts: List[RepairIssue] = Field(default_factory=list)
    errors: List[RepairIssue] = Field(default_factory=list)

    def record(self, outcome: RepairOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def summary(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "fixed": self.fixed,
            "already_correct": self.already_correct,
            "created": self.created,
            "skipped": self.skipped,
            "conflicts": len(self.conflicts),
            "errors": len(self.errors),
        }


class RepairTask:
    """Scan a set of documents, repairing each one in its own unit of work.

    A failure on one document is recorded in the tally and the scan continues.
    """

    name: ClassVar[str]
    description: ClassVar[str] = ""

    def __init__(self, scope: Callable[..., ContextManager[Session]] = session_scope) -> None:
        self._scope = scope

    def document_ids(self, session: Session) -> Sequence[str]:
        raise NotImplementedError

    def repair(self, session: Session, document_id: str) -> RepairOutcome:
        raise NotImplementedError

    def run(self) -> RepairTally:
        tally = RepairTally(task=self.name)
        with self._scope(commit=False) as session:
            ids = list(self.document_ids(session))
        tally.total = len(ids)
        for document_id in ids:
            try:
                with self._scope() as session:
                    outcome = self.repair(session, document_id)
            except RepairConflict as conflict:
                logger.warning("%s: conflict on %s: %s", self.name, document_id, conflict)
                tally.conflicts.append(RepairIssue(document_id=document_id, message=str(conflict)))
                continue
            except Exception as exc:  # noqa: BLE001
                logger.exception("%s: failed to repair %s", self.name, document_id)
                tally.errors.append(RepairIssue(document_id=document_id, message=str(exc)))
                continue
            tally.record(outcome)
        self._finish(tally)
        return tally

    def _finish(self, tally: RepairTally) -> None:
        logger.info("Repair %s finished: %s", self.name, tally.summary())
        emit_event("repair_task_completed", task=self.name, **tally.summary())


class ProfileRepairTask(RepairTask):
    """Repair pass over the pending profile store, one profile per unit of work."""

    status: ClassVar[Optional[str]] = None

    def document_ids(self, session: Session) -> Sequence[str]:
        return pending_profiles.list_ids(session, status=self.status)

    def repair(self, session: Session, document_id: str) -> RepairOutcome:
        profile = pending_profiles.get(session, document_id)
        if profile is None:
            return RepairOutcome.SKIPPED
        return self.repair_profile(session, profile, certify(profile))

    def repair_profile(
        self,
        session: Session,
        profile: PendingProfile,
        certified: CertifiedProfile,
    ) -> RepairOutcome:
        raise NotImplementedError


def certify(profile: PendingProfile) -> CertifiedProfile:
    return certify_profile(
        profile.id,
        profile.chat_username,
        profile.chat_username_normalized,
        profile.dj_name,
    )


def chunked(items: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError("Chunk size must be positive.")
    batch: List[T] = []
    for item in items:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []
    if batch:
        yield batch


_REPAIRS: Dict[str, Type[RepairTask]] = {}


def register_repair(task_cls: Type[RepairTask]) -> Type[RepairTask]:
    """Class decorator; registration order is the pipeline order."""
    if task_cls.name in _REPAIRS:
        raise ValueError(f"Repair task '{task_cls.name}' is already registered.")
    _REPAIRS[task_cls.name] = task_cls
    return task_cls


def available_repairs() -> List[Type[RepairTask]]:
    return list(_REPAIRS.values())


def pipeline_order() -> List[str]:
    return list(_REPAIRS)


def get_repair(name: str) -> Type[RepairTask]:
    try:
        return _REPAIRS[name]
    except KeyError as exc:
        raise NotFoundError(f"Unknown repair task: {name}") from exc


def run_repair(name: str, scope: Callable[..., ContextManager[Session]] = session_scope) -> RepairTally:
    task = get_repair(name)(scope)
    logger.info("Running repair %s", name)
    return task.run()


def run_pipeline(
    names: Optional[Sequence[str]] = None,
    scope: Callable[..., ContextManager[Session]] = session_scope,
) -> List[RepairTally]:
    """Run ``names`` (default: every registered task) sequentially in the given order."""
    selected = list(names) if names is not None else pipeline_order()
    for name in selected:
        get_repair(name)
    return [run_repair(name, scope) for name in selected]


__all__ = [
    "ProfileRepairTask",
    "RepairConflict",
    "RepairIssue",
    "RepairOutcome",
    "RepairTally",
    "RepairTask",
    "available_repairs",
    "certify",
    "chunked",
    "get_repair",
    "pipeline_order",
    "register_repair",
    "run_pipeline",
    "run_repair",
]
