from __future__ import annotations

from ..extensions import db
from drivncook.time_utils import to_utc_z, to_iso_date


PAYMENT_STATUSES = {"PENDING", "PAID", "OVERDUE", "CANCELLED"}
PAYMENT_PURPOSES = {"ENTRY_FEE", "ORDER"}


class Invoice(db.Model):
    """
    Financial document billed to a franchise.

    Created manually, by monthly royalty generation ("Redevances YYYY-MM"),
    or lazily when an order payment starts ("Commande CMD-...").
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_franchise_description", "franchise_id", "description"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    franchise_id = db.Column(db.Integer, db.ForeignKey("franchises.id"), nullable=False, index=True)
    issue_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    due_date = db.Column(db.DateTime(timezone=True), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.String(255), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)  # PENDING, PAID, OVERDUE, CANCELLED
    paid_date = db.Column(db.DateTime(timezone=True), nullable=True)
    pdf_url = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    franchise = db.relationship("Franchise", backref=db.backref("invoices", lazy=True))

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} status={self.payment_status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "franchise_id": self.franchise_id,
            "franchise": self.franchise.to_summary() if self.franchise else None,
            "issue_date": to_utc_z(self.issue_date),
            "due_date": to_utc_z(self.due_date),
            "amount_cents": self.amount_cents,
            "description": self.description,
            "payment_status": self.payment_status,
            "paid_date": to_utc_z(self.paid_date),
            "pdf_url": self.pdf_url,
            "created_at": to_utc_z(self.created_at),
        }


class SalesReport(db.Model):
    """Daily sales declared by a franchise; basis for royalty billing."""
    __tablename__ = "sales_reports"
    __table_args__ = (
        db.UniqueConstraint("franchise_id", "report_date", name="uq_sales_reports_franchise_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    franchise_id = db.Column(db.Integer, db.ForeignKey("franchises.id"), nullable=False, index=True)
    report_date = db.Column(db.Date, nullable=False, index=True)
    daily_sales_cents = db.Column(db.Integer, nullable=False)
    transaction_count = db.Column(db.Integer, nullable=False, default=0)
    average_ticket_cents = db.Column(db.Integer, nullable=False, default=0)
    location = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    royalty_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    franchise = db.relationship("Franchise", backref=db.backref("sales_reports", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "franchise_id": self.franchise_id,
            "franchise": self.franchise.to_summary() if self.franchise else None,
            "report_date": to_iso_date(self.report_date),
            "daily_sales_cents": self.daily_sales_cents,
            "transaction_count": self.transaction_count,
            "average_ticket_cents": self.average_ticket_cents,
            "location": self.location,
            "notes": self.notes,
            "royalty_amount_cents": self.royalty_amount_cents,
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
        }


class ProcessedPaymentEvent(db.Model):
    """
    One row per completed payment (intent or checkout session id).

    Both the client confirmation and the webhook may report the same payment;
    the unique key makes their side effects (notifications) run once.
    """
    __tablename__ = "processed_payment_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(255), nullable=False, unique=True)
    purpose = db.Column(db.String(16), nullable=False)  # ENTRY_FEE, ORDER
    source = db.Column(db.String(16), nullable=False)   # CONFIRM, WEBHOOK
    franchise_id = db.Column(db.Integer, db.ForeignKey("franchises.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "purpose": self.purpose,
            "source": self.source,
            "franchise_id": self.franchise_id,
            "order_id": self.order_id,
            "processed_at": to_utc_z(self.processed_at),
        }
