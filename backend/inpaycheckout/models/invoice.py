from datetime import datetime

from inpaycheckout.extensions import db


class Invoice(db.Model):
    __tablename__ = "invoices"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False)

    currency_code = db.Column(db.String(8), nullable=False, default="NGN")
    total = db.Column(db.Float, nullable=False, default=0.0)
    status = db.Column(db.String(16), nullable=False, default="Unpaid")  # Unpaid/Paid/Cancelled

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    paid_at = db.Column(db.DateTime, nullable=True)

    payments = db.relationship("InvoicePayment", backref="invoice", lazy="dynamic")

    def amount_paid(self) -> float:
        return float(sum(float(p.amount or 0.0) for p in self.payments))

    def balance(self) -> float:
        return round(float(self.total or 0.0) - self.amount_paid(), 2)

    def to_dict(self):
        return {
            "id": int(self.id),
            "user_id": int(self.user_id),
            "currency": self.currency_code,
            "total": float(self.total or 0.0),
            "balance": self.balance(),
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }
