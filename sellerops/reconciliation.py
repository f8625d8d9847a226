# sellerops/reconciliation.py
# Marketplace status vs our status -> mismatch records

from __future__ import annotations

from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping

from sellerops.status_normalizer import normalize_status
from sellerops.status_resolver import explain_resolution, to_entity
from sellerops.status_vocab import EMPTY_STATUS, EntityType, equivalence_key


@dataclass(frozen=True)
class StatusComparison:
    is_mismatch: bool
    marketplace_canonical: str
    our_canonical: str


@dataclass(frozen=True)
class MismatchRecord:
    entity_id: str
    marketplace_status_raw: str
    our_status_raw: str
    marketplace_canonical: str
    our_canonical: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ReconciledRow:
    entity_id: str
    marketplace_status_raw: str
    our_status_raw: str
    our_status_source: str
    marketplace_canonical: str
    our_canonical: str
    is_mismatch: bool

    def to_dict(self) -> dict:
        return asdict(self)

    def to_mismatch(self) -> MismatchRecord:
        return MismatchRecord(
            entity_id=self.entity_id,
            marketplace_status_raw=self.marketplace_status_raw,
            our_status_raw=self.our_status_raw,
            marketplace_canonical=self.marketplace_canonical,
            our_canonical=self.our_canonical,
        )


def reconcile_status(entity_type, marketplace_raw, our_raw) -> StatusComparison:
    """
    Compare two raw statuses after normalization.

    No opinion without two actual values: if either side is empty the result
    is never a mismatch (canonical forms are still filled in).
    """
    et = EntityType.parse(entity_type)
    mp = normalize_status(et, marketplace_raw)
    ours = normalize_status(et, our_raw)

    if mp == EMPTY_STATUS or ours == EMPTY_STATUS:
        return StatusComparison(False, mp, ours)

    return StatusComparison(
        is_mismatch=equivalence_key(et, mp) != equivalence_key(et, ours),
        marketplace_canonical=mp,
        our_canonical=ours,
    )


def reconcile_entity(entity_type, doc) -> ReconciledRow:
    e = to_entity(doc, entity_type)
    resolution = explain_resolution(e)
    cmp = reconcile_status(e.entity_type, e.marketplace_status, resolution.value)
    return ReconciledRow(
        entity_id=e.id,
        marketplace_status_raw=e.marketplace_status,
        our_status_raw=resolution.value,
        our_status_source=resolution.source,
        marketplace_canonical=cmp.marketplace_canonical,
        our_canonical=cmp.our_canonical,
        is_mismatch=cmp.is_mismatch,
    )


def reconcile_many(entity_type, docs: Iterable[Any]) -> list[ReconciledRow]:
    et = EntityType.parse(entity_type)
    return [reconcile_entity(et, d) for d in docs]


def find_mismatches(entity_type, docs: Iterable[Any]) -> list[MismatchRecord]:
    """Batch variant: only the mismatched entities, in input order."""
    return [row.to_mismatch() for row in reconcile_many(entity_type, docs) if row.is_mismatch]


def mismatch_summary(records: list[MismatchRecord], sample: int = 3) -> dict:
    """Count + a few examples (what the dashboard banner shows)."""
    return {
        "count": len(records),
        "examples": [
            {"id": r.entity_id, "marketplace": r.marketplace_status_raw, "ours": r.our_status_raw}
            for r in records[:sample]
        ],
    }


def status_statistics(orders: Iterable[Mapping[str, Any]], returns: Iterable[Mapping[str, Any]]) -> dict:
    """Canonical marketplace-status counts per entity type."""
    order_stats: Counter = Counter()
    return_stats: Counter = Counter()
    total_orders = total_returns = 0

    for o in orders:
        total_orders += 1
        e = to_entity(o, EntityType.ORDER)
        order_stats[normalize_status(EntityType.ORDER, e.marketplace_status) or "unknown"] += 1

    for r in returns:
        total_returns += 1
        e = to_entity(r, EntityType.RETURN)
        return_stats[normalize_status(EntityType.RETURN, e.marketplace_status) or "unknown"] += 1

    return {
        "orders": dict(order_stats),
        "returns": dict(return_stats),
        "totalOrders": total_orders,
        "totalReturns": total_returns,
    }
