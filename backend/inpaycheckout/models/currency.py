from inpaycheckout.extensions import db


class Currency(db.Model):
    __tablename__ = "currencies"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(8), nullable=False, unique=True)
    prefix = db.Column(db.String(8), nullable=False, default="")

    # Exchange rate relative to the default currency (default currency has rate 1.0)
    rate = db.Column(db.Float, nullable=False, default=1.0)
    decimals = db.Column(db.Integer, nullable=False, default=2)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
