from datetime import datetime

from inpaycheckout.extensions import db


class InvoicePayment(db.Model):
    __tablename__ = "invoice_payments"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)

    # Processor transaction reference; one payment per reference
    transaction_id = db.Column(db.String(128), nullable=False, unique=True, index=True)
    gateway = db.Column(db.String(32), nullable=False, default="inpaycheckout")

    amount = db.Column(db.Float, nullable=False, default=0.0)
    fee = db.Column(db.Float, nullable=False, default=0.0)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "invoice_id": int(self.invoice_id),
            "transaction_id": self.transaction_id,
            "gateway": self.gateway,
            "amount": float(self.amount or 0.0),
            "fee": float(self.fee or 0.0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
