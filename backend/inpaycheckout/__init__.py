import os
from typing import Mapping, Optional

from flask import Flask, jsonify
from sqlalchemy import text

from inpaycheckout.config import Config
from inpaycheckout.extensions import db, migrate, cors
from inpaycheckout.segments.segment_callback import callback_bp
from inpaycheckout.segments.segment_gateway import gateway_bp


def create_app(config_overrides: Optional[Mapping] = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    env = (os.getenv("INPAY_ENV", "dev") or "dev").strip().lower()

    # Production safety checks
    if env in ("prod", "production") and not app.config.get("TESTING"):
        secret = (app.config.get("SECRET_KEY") or "").strip()
        if not secret or secret == "change-me" or len(secret) < 16:
            raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
        if not (os.getenv("DATABASE_URL") or "").strip() and not (os.getenv("SQLALCHEMY_DATABASE_URI") or "").strip():
            raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")

    # Ensure instance dir exists for SQLite paths
    os.makedirs(Config.INSTANCE_DIR, exist_ok=True)

    # CORS configuration
    cors_origins = (app.config.get("CORS_ORIGINS") or "").strip()
    if env in ("prod", "production"):
        origins = [o.strip() for o in cors_origins.split(",") if o.strip()]
    else:
        origins = ["*"] if not cors_origins else [o.strip() for o in cors_origins.split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(Config.BACKEND_DIR, "migrations"))

    app.register_blueprint(callback_bp)
    app.register_blueprint(gateway_bp)

    # Health check
    @app.get("/api/health")
    def health():
        db_state = "ok"
        try:
            db.session.execute(text("SELECT 1"))
        except Exception:
            db_state = "fail"
        return jsonify({
            "ok": True,
            "service": "inpaycheckout-gateway",
            "env": env,
            "db": db_state,
        })

    app.logger.info("iNPAY gateway ready (env=%s, active=%s)", env, bool(app.config.get("INPAY_SECRET_KEY")))
    return app
