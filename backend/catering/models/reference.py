from __future__ import annotations

from ..extensions import db
from catering.time_utils import to_utc_z


class Airport(db.Model):
    """Delivery airport (FBO contact details live here)."""
    __tablename__ = "airports"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    fbo_name = db.Column(db.String(255), nullable=True)
    fbo_email = db.Column(db.String(255), nullable=True)
    fbo_phone = db.Column(db.String(64), nullable=True)
    iata_code = db.Column(db.String(8), nullable=True, index=True)
    icao_code = db.Column(db.String(8), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "fbo_name": self.fbo_name,
            "fbo_email": self.fbo_email,
            "fbo_phone": self.fbo_phone,
            "iata_code": self.iata_code,
            "icao_code": self.icao_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Caterer(db.Model):
    """
    External catering vendor that fulfils delivery-type orders.

    A caterer usually serves a single airport; airport_id is informational
    and is not enforced against an order's delivery airport.
    """
    __tablename__ = "caterers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    iata_code = db.Column(db.String(8), nullable=True)
    icao_code = db.Column(db.String(8), nullable=True)
    time_zone = db.Column(db.String(64), nullable=True)
    airport_id = db.Column(db.Integer, db.ForeignKey("airports.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    airport = db.relationship("Airport", backref=db.backref("caterers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "iata_code": self.iata_code,
            "icao_code": self.icao_code,
            "time_zone": self.time_zone,
            "airport_id": self.airport_id,
            "is_active": self.is_active,
        }


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
        }
