"""Recompute chat_username_normalized on accounts, committed in bounded batches."""

from __future__ import annotations

import logging

from ..config import get_settings
from ..normalization import normalize_username
from ..repositories import accounts
from .base import RepairIssue, RepairOutcome, RepairTally, RepairTask, chunked, register_repair

logger = logging.getLogger(__name__)


@register_repair
class AccountUsernameBackfill(RepairTask):
    name = "account-usernames"
    description = "Recompute chat_username_normalized for every account with a chat username."

    def run(self) -> RepairTally:
        tally = RepairTally(task=self.name)
        with self._scope(commit=False) as session:
            candidates = accounts.list_with_username(session)
        tally.total = len(candidates)

        updates = []
        for account in candidates:
            key = normalize_username(account.chat_username or "")
            if not key:
                tally.errors.append(RepairIssue(document_id=account.id, message="No usable username."))
            elif account.chat_username_normalized == key:
                tally.record(RepairOutcome.ALREADY_CORRECT)
            else:
                updates.append((account.id, key))

        for batch in chunked(updates, get_settings().max_batch_writes):
            try:
                with self._scope() as session:
                    written = accounts.set_normalized_usernames(session, batch)
            except Exception as exc:  # noqa: BLE001
                logger.exception("%s: batch of %d failed", self.name, len(batch))
                tally.errors.extend(RepairIssue(document_id=account_id, message=str(exc)) for account_id, _ in batch)
                continue
            tally.fixed += written
            logger.info("%s: committed batch of %d", self.name, written)

        self._finish(tally)
        return tally
