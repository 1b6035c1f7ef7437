from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

GATEWAY_MODULE = "inpaycheckout"
DEFAULT_API_BASE = "https://api.inpaycheckout.com"
CALLBACK_PATH = "/modules/gateways/callback/inpaycheckout"


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _flag(value) -> bool:
    return str(value or "").strip().lower() in ("1", "on", "yes", "true")


class Config:
    # Base directory of the backend (one level above this package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")
    SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
    _default_sqlite_path = os.path.join(INSTANCE_DIR, "inpaycheckout.db").replace("\\", "/")
    _db_url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL") or f"sqlite:///{_default_sqlite_path}"
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(_db_url)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Gateway settings, mirrored from the billing system's module configuration
    INPAY_SECRET_KEY = os.getenv("INPAY_SECRET_KEY", "")
    INPAY_PUBLIC_KEY = os.getenv("INPAY_PUBLIC_KEY", "pk_live_xxx")
    INPAY_GATEWAY_LOGS = _flag(os.getenv("INPAY_GATEWAY_LOGS", "0"))
    INPAY_CONVERT_TO = os.getenv("INPAY_CONVERT_TO", "")
    INPAY_API_BASE = os.getenv("INPAY_API_BASE", DEFAULT_API_BASE)
    INPAY_SYSTEM_URL = os.getenv("INPAY_SYSTEM_URL", "")
    INPAY_RETURN_REDIRECT = _flag(os.getenv("INPAY_RETURN_REDIRECT", "0"))
    INPAY_TIMESTAMP_TOLERANCE_MINUTES = int(os.getenv("INPAY_TIMESTAMP_TOLERANCE_MINUTES", "5") or "5")

    # CORS: comma-separated origins (e.g. https://billing.example.com)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")


@dataclass(frozen=True)
class GatewayConfig:
    """Gateway options as the billing system exposes them to the module."""

    secret_key: str = ""
    public_key: str = ""
    gateway_logs: bool = False
    webhook_url: str = ""
    convert_to: str = ""
    system_url: str = ""
    api_base: str = DEFAULT_API_BASE
    return_redirect: bool = False
    timestamp_tolerance_minutes: int = 5
    module: str = GATEWAY_MODULE

    @property
    def active(self) -> bool:
        return bool(self.secret_key)

    @classmethod
    def from_mapping(cls, cfg: Mapping, system_url: str = "") -> "GatewayConfig":
        base = (cfg.get("INPAY_SYSTEM_URL") or system_url or "").rstrip("/")
        try:
            tolerance = int(cfg.get("INPAY_TIMESTAMP_TOLERANCE_MINUTES") or 5)
        except (TypeError, ValueError):
            tolerance = 5
        return cls(
            secret_key=(cfg.get("INPAY_SECRET_KEY") or "").strip(),
            public_key=(cfg.get("INPAY_PUBLIC_KEY") or "").strip(),
            gateway_logs=_flag(cfg.get("INPAY_GATEWAY_LOGS")),
            webhook_url=f"{base}{CALLBACK_PATH}" if base else CALLBACK_PATH,
            convert_to=(cfg.get("INPAY_CONVERT_TO") or "").strip().upper(),
            system_url=base,
            api_base=(cfg.get("INPAY_API_BASE") or DEFAULT_API_BASE).rstrip("/"),
            return_redirect=_flag(cfg.get("INPAY_RETURN_REDIRECT")),
            timestamp_tolerance_minutes=tolerance,
        )
