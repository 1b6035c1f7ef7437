from datetime import datetime

from inpaycheckout.extensions import db


class GatewayLog(db.Model):
    __tablename__ = "gateway_logs"

    id = db.Column(db.Integer, primary_key=True)

    module = db.Column(db.String(64), nullable=False)
    message = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(32), nullable=False, default="Information")  # Successful/Unsuccessful/Information/Error

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": int(self.id),
            "module": self.module,
            "message": self.message,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
