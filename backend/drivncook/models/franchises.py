from __future__ import annotations

from ..extensions import db
from drivncook.time_utils import to_utc_z, to_iso_date


FRANCHISE_STATUSES = {"PENDING", "ACTIVE", "SUSPENDED", "TERMINATED"}
VEHICLE_STATUSES = {"AVAILABLE", "ASSIGNED", "MAINTENANCE", "OUT_OF_SERVICE"}
MAINTENANCE_TYPES = {"PREVENTIVE", "REPAIR", "INSPECTION", "CLEANING"}
MAINTENANCE_STATUSES = {"SCHEDULED", "IN_PROGRESS", "COMPLETED", "CANCELLED"}

# Documents a franchise must supply before activation: (column, display name)
REQUIRED_DOCUMENTS = (
    ("kbis_document_url", "Document KBIS"),
    ("id_card_document_url", "Carte d'identité"),
)


class Franchise(db.Model):
    """
    A franchisee business unit.

    Owns its vehicles, orders, invoices and sales reports. Starts PENDING;
    becomes ACTIVE once its documents are validated.
    """
    __tablename__ = "franchises"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    business_name = db.Column(db.String(255), nullable=False, index=True)
    siret_number = db.Column(db.String(14), nullable=False, unique=True)
    vat_number = db.Column(db.String(32), nullable=True)
    address = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    postal_code = db.Column(db.String(5), nullable=False)
    region = db.Column(db.String(100), nullable=False)
    contact_email = db.Column(db.String(255), nullable=False)
    contact_phone = db.Column(db.String(32), nullable=False)
    personal_email = db.Column(db.String(255), nullable=True)
    driving_license = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)  # PENDING, ACTIVE, SUSPENDED, TERMINATED

    entry_fee_cents = db.Column(db.Integer, nullable=False, default=5_000_000)
    entry_fee_paid = db.Column(db.Boolean, nullable=False, default=False)
    entry_fee_date = db.Column(db.DateTime(timezone=True), nullable=True)
    royalty_rate = db.Column(db.Float, nullable=False, default=4.0)  # percent

    contract_start_date = db.Column(db.Date, nullable=True)
    contract_end_date = db.Column(db.Date, nullable=True)

    kbis_document_url = db.Column(db.String(512), nullable=True)
    id_card_document_url = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    user = db.relationship("User", backref=db.backref("franchise", uselist=False, lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def missing_documents(self) -> list[str]:
        return [label for attr, label in REQUIRED_DOCUMENTS if not getattr(self, attr)]

    def __repr__(self) -> str:
        return f"<Franchise id={self.id} name={self.business_name!r} status={self.status}>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "business_name": self.business_name,
            "city": self.city,
            "status": self.status,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "business_name": self.business_name,
            "siret_number": self.siret_number,
            "vat_number": self.vat_number,
            "address": self.address,
            "city": self.city,
            "postal_code": self.postal_code,
            "region": self.region,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "personal_email": self.personal_email,
            "driving_license": self.driving_license,
            "status": self.status,
            "entry_fee_cents": self.entry_fee_cents,
            "entry_fee_paid": self.entry_fee_paid,
            "entry_fee_date": to_utc_z(self.entry_fee_date),
            "royalty_rate": self.royalty_rate,
            "contract_start_date": to_iso_date(self.contract_start_date),
            "contract_end_date": to_iso_date(self.contract_end_date),
            "kbis_document_url": self.kbis_document_url,
            "id_card_document_url": self.id_card_document_url,
            "user": {
                "id": self.user.id,
                "email": self.user.email,
                "first_name": self.user.first_name,
                "last_name": self.user.last_name,
                "is_active": self.user.is_active,
            } if self.user else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Vehicle(db.Model):
    """Food truck, optionally assigned to a franchise."""
    __tablename__ = "vehicles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    license_plate = db.Column(db.String(20), nullable=False, unique=True)
    brand = db.Column(db.String(64), nullable=False)
    model = db.Column(db.String(64), nullable=False)
    year = db.Column(db.Integer, nullable=False)
    vin = db.Column(db.String(32), nullable=False, unique=True)
    status = db.Column(db.String(16), nullable=False, default="AVAILABLE", index=True)

    purchase_date = db.Column(db.Date, nullable=True)
    purchase_price_cents = db.Column(db.Integer, nullable=True)
    current_mileage = db.Column(db.Integer, nullable=True)
    last_inspection_date = db.Column(db.Date, nullable=True)
    next_inspection_date = db.Column(db.Date, nullable=True)
    insurance_number = db.Column(db.String(64), nullable=True)
    insurance_expiry = db.Column(db.Date, nullable=True)

    franchise_id = db.Column(db.Integer, db.ForeignKey("franchises.id"), nullable=True, index=True)
    assignment_date = db.Column(db.DateTime(timezone=True), nullable=True)
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    franchise = db.relationship("Franchise", backref=db.backref("vehicles", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "license_plate": self.license_plate,
            "brand": self.brand,
            "model": self.model,
            "year": self.year,
            "vin": self.vin,
            "status": self.status,
            "purchase_date": to_iso_date(self.purchase_date),
            "purchase_price_cents": self.purchase_price_cents,
            "current_mileage": self.current_mileage,
            "last_inspection_date": to_iso_date(self.last_inspection_date),
            "next_inspection_date": to_iso_date(self.next_inspection_date),
            "insurance_number": self.insurance_number,
            "insurance_expiry": to_iso_date(self.insurance_expiry),
            "franchise_id": self.franchise_id,
            "franchise": self.franchise.to_summary() if self.franchise else None,
            "assignment_date": to_utc_z(self.assignment_date),
            "latitude": self.latitude,
            "longitude": self.longitude,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Maintenance(db.Model):
    __tablename__ = "maintenances"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)  # PREVENTIVE, REPAIR, INSPECTION, CLEANING
    status = db.Column(db.String(16), nullable=False, default="SCHEDULED", index=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    scheduled_date = db.Column(db.DateTime(timezone=True), nullable=False)
    completed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    cost_cents = db.Column(db.Integer, nullable=True)
    mileage = db.Column(db.Integer, nullable=True)
    parts = db.Column(db.Text, nullable=True)
    labor_hours = db.Column(db.Float, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    next_maintenance_date = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    vehicle = db.relationship("Vehicle", backref=db.backref("maintenances", lazy=True))

    @property
    def franchise_id(self) -> int | None:
        return self.vehicle.franchise_id if self.vehicle else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "license_plate": self.vehicle.license_plate if self.vehicle else None,
            "type": self.type,
            "status": self.status,
            "title": self.title,
            "description": self.description,
            "scheduled_date": to_utc_z(self.scheduled_date),
            "completed_date": to_utc_z(self.completed_date),
            "cost_cents": self.cost_cents,
            "mileage": self.mileage,
            "parts": self.parts,
            "labor_hours": self.labor_hours,
            "notes": self.notes,
            "next_maintenance_date": to_utc_z(self.next_maintenance_date),
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
        }
