# Overview: Purchase receiving against the stored stock ledger.

"""
Receive Service

WHY: Receiving is the only path that changes stock. A purchase batch is merged
into the ledger (quantity adds, other fields sparse-update) and the whole
ledger is saved back under the "inventory" key.

SINGLE WRITER: the ledger has no locks. Each receive is one load-merge-save
cycle; on an optimistic-lock conflict the cycle is rerun from a fresh load,
never by re-saving a stale ledger. Callers must not submit the same purchase
twice: replaying a batch doubles the stock.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .concurrency import run_with_retry
from .inventory_service import InventoryLedger, merge_purchase_rows
from .storage_service import INVENTORY_KEY, RecordStore


logger = logging.getLogger(__name__)


def load_ledger(store: RecordStore) -> InventoryLedger:
    return InventoryLedger.from_rows(store.load(INVENTORY_KEY))


def save_ledger(store: RecordStore, ledger: InventoryLedger) -> None:
    store.save(INVENTORY_KEY, ledger.to_rows())


def receive_purchase(store: RecordStore, rows: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge purchase rows into the stored ledger; returns the merge summary."""
    rows = [r for r in rows]

    def _op() -> dict[str, Any]:
        ledger = load_ledger(store)
        new_ledger, summary = merge_purchase_rows(ledger, rows)
        if new_ledger is not ledger:
            save_ledger(store, new_ledger)
            store.commit()
        result = summary.to_dict()
        result["records"] = len(new_ledger)
        return result

    result = run_with_retry(_op, rollback=store.rollback)
    logger.info(
        "Received purchase batch: %d rows, %d created, %d updated, %d skipped",
        result["received"], result["created"], result["updated"], result["skipped"],
    )
    return result
