from __future__ import annotations

import logging

from inpaycheckout.extensions import db
from inpaycheckout.models import GatewayLog

log = logging.getLogger("inpaycheckout.gateway")

SUCCESSFUL = "Successful"
UNSUCCESSFUL = "Unsuccessful"
INFORMATION = "Information"
ERROR = "Error"

_LEVELS = {
    SUCCESSFUL: logging.INFO,
    INFORMATION: logging.INFO,
    UNSUCCESSFUL: logging.WARNING,
    ERROR: logging.ERROR,
}


class GatewayLogger:
    """Gateway transaction log, switched by the module's "Gateway logs" option."""

    def __init__(self, enabled: bool = False):
        self.enabled = bool(enabled)

    def log(self, module: str, message: str, status: str = INFORMATION) -> None:
        if not self.enabled:
            log.debug("[%s] %s (%s)", module, message, status)
            return
        log.log(_LEVELS.get(status, logging.INFO), "[%s] %s (%s)", module, message, status)
        try:
            db.session.add(GatewayLog(module=module[:64], message=message, status=status))
            db.session.commit()
        except Exception:
            db.session.rollback()
            log.exception("could not persist gateway log entry")
