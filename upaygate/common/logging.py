"""Structured JSON logging with per-request context fields.

Every record carries the service name plus the correlation id, client IP and
order id bound for the current request.
"""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from upaygate.common.config import GatewaySettings, settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
client_ip_ctx: ContextVar[str] = ContextVar("client_ip", default="")
order_id_ctx: ContextVar[str] = ContextVar("order_id", default="")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(client_ip)s %(order_id)s %(message)s"


class ContextFilter(logging.Filter):
    """Stamp service and request identifiers onto every log record."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self.service_name
        record.trace_id = trace_id_ctx.get()
        record.client_ip = client_ip_ctx.get()
        record.order_id = order_id_ctx.get()
        return True


def configure_logging(cfg: GatewaySettings = settings) -> None:
    """Install the JSON stdout handler on the root logger."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter(cfg.service_name)
    handler.addFilter(context_filter)
    handler.setFormatter(
        JsonFormatter(LOG_FORMAT, rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"})
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(cfg.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("upaygate")
