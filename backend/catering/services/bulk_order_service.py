# Overview: Applies one status/assignment patch across many orders with a partial-success report.

"""
Bulk order updates

POLICY: best effort, per row.
- The patch itself is validated once, up front. A malformed patch (unknown
  field, unknown status, caterer that does not exist) rejects the whole
  batch with ValidationError before any row is touched.
- Each order is then locked, checked, and committed on its own. A row that
  fails its own checks (not found, terminal, missing caterer, unpaid
  completion, disallowed by its type's transition row) is rolled back and
  reported in `skipped` with the reason; the remaining rows still apply.
- Mixed order types are allowed: every row is judged against the
  transition row for its own type.
- Persistence failures that survive run_with_retry abort the batch; rows
  committed before the failure stay committed.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import NotFoundError, PreconditionError, ValidationError
from ..extensions import db
from .concurrency import run_with_retry
from .order_service import apply_order_patch, validate_order_patch
from .order_workflow_service import StatusChange, get_order_for_update


@dataclass
class BulkResult:
    applied: list[int] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    changes: list[StatusChange] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.applied) and bool(self.skipped)

    def to_dict(self) -> dict:
        return {
            "applied": list(self.applied),
            "skipped": list(self.skipped),
            "status_changes": [c.to_dict() for c in self.changes],
        }


def _normalize_ids(order_ids) -> list[int]:
    if not order_ids:
        raise ValidationError("ids must be a non-empty list")
    seen = set()
    ids = []
    for raw in order_ids:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValidationError("ids must be integers")
        if raw not in seen:
            seen.add(raw)
            ids.append(raw)
    return ids


def apply_bulk(order_ids: list[int], patch: dict) -> BulkResult:
    """Apply patch to every order in order_ids, best effort; see module docstring."""
    ids = _normalize_ids(order_ids)
    patch = dict(patch)
    validate_order_patch(patch)

    result = BulkResult()
    for order_id in ids:
        def _op():
            order = get_order_for_update(order_id)
            change = apply_order_patch(order, patch)
            db.session.commit()
            return change

        try:
            change = run_with_retry(_op)
        except (NotFoundError, PreconditionError) as e:
            db.session.rollback()
            result.skipped.append({"id": order_id, "reason": str(e)})
            continue

        result.applied.append(order_id)
        if change is not None:
            result.changes.append(change)

    current_app.logger.info(
        "Bulk order update %s: %d applied, %d skipped",
        sorted(patch), len(result.applied), len(result.skipped),
    )
    return result
