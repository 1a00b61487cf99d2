# Overview: Existence checks for reference data the order core treats as opaque foreign keys.

from __future__ import annotations

from ..extensions import db
from ..models import Airport, Caterer, Customer


def _exists(model, entity_id: int | None) -> bool:
    if entity_id is None:
        return False
    return db.session.query(model.id).filter_by(id=entity_id).first() is not None


def caterer_exists(caterer_id: int | None) -> bool:
    return _exists(Caterer, caterer_id)


def airport_exists(airport_id: int | None) -> bool:
    return _exists(Airport, airport_id)


def customer_exists(customer_id: int | None) -> bool:
    return _exists(Customer, customer_id)


REFERENCE_CHECKS = {
    "customer_id": ("customer", customer_exists),
    "caterer_id": ("caterer", caterer_exists),
    "delivery_airport_id": ("delivery airport", airport_exists),
}


def missing_references(values: dict) -> list[str]:
    """
    Return a message for every non-null reference id in values that does not exist.

    Keys not in REFERENCE_CHECKS are ignored; None means "unassign" and is valid.
    """
    problems = []
    for key, (label, check) in REFERENCE_CHECKS.items():
        if key in values and values[key] is not None and not check(values[key]):
            problems.append(f"{label} {values[key]} does not exist")
    return problems
