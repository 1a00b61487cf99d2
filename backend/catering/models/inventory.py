from __future__ import annotations

from ..extensions import db
from catering.money_utils import format_money
from catering.time_utils import to_utc_z, to_iso_date


class StockInventory(db.Model):
    """
    Kitchen stock item with a stored valuation.

    VALUATION INVARIANT:
    total_value == round(quantity * unit_cost, 2) after every mutation.
    Only inventory_valuation computes the three numbers; services write
    them together.
    """
    __tablename__ = "stock_inventories"
    __table_args__ = (
        db.Index("ix_stock_inventories_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(1000), nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)
    unit = db.Column(db.String(50), nullable=False)

    quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    minimum_quantity = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_value = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    supplier = db.Column(db.String(255), nullable=True)
    location = db.Column(db.String(255), nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)
    last_restocked_date = db.Column(db.DateTime(timezone=True), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    notes = db.Column(db.String(1000), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockInventory id={self.id} name={self.name!r} qty={self.quantity} unit_cost={self.unit_cost}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "unit": self.unit,
            "quantity": format_money(self.quantity),
            "minimum_quantity": format_money(self.minimum_quantity),
            "unit_cost": format_money(self.unit_cost),
            "total_value": format_money(self.total_value),
            "supplier": self.supplier,
            "location": self.location,
            "expiry_date": to_iso_date(self.expiry_date),
            "last_restocked_date": to_utc_z(self.last_restocked_date),
            "is_active": self.is_active,
            "notes": self.notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
