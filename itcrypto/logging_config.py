"""
Logging configuration for itcrypto.

Provides structured JSON logging and an audit logger for sharing events.
Audit events carry identifiers only, never log contents or key material.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for correlating the events of one operation
correlation_id_var: ContextVar[str] = ContextVar('correlation_id', default='')


class StructuredFormatter(logging.Formatter):
    """JSON formatter emitting one object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data)


class AuditLogger:
    """
    Specialized logger for sharing events.

    Records who signed, who shared with how many receivers, and which
    decryptions were accepted or rejected at which stage.
    """

    def __init__(self, name: str = "itcrypto.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {
            "event_type": event_type,
            "correlation_id": correlation_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def log_signed(self, signer: str, monitor: str, owner: str) -> None:
        self._log(
            logging.INFO,
            "LOG_SIGNED",
            signer=signer,
            monitor=monitor,
            owner=owner,
            message=f"AccessLog signed by {signer}"
        )

    def envelope_encrypted(self, creator: str, share_id: str, receiver_count: int) -> None:
        self._log(
            logging.INFO,
            "ENVELOPE_ENCRYPTED",
            creator=creator,
            share_id=share_id,
            receiver_count=receiver_count,
            message=f"Envelope created by {creator} for {receiver_count} receiver(s)"
        )

    def envelope_decrypted(self, receiver: str, creator: str, share_id: str) -> None:
        self._log(
            logging.INFO,
            "ENVELOPE_DECRYPTED",
            receiver=receiver,
            creator=creator,
            share_id=share_id,
            message=f"Envelope from {creator} accepted by {receiver}"
        )

    def decryption_rejected(self, receiver: str, stage: str, reason: str) -> None:
        """Log a rejected envelope. Rejections are security relevant."""
        self._log(
            logging.WARNING,
            "DECRYPTION_REJECTED",
            receiver=receiver,
            stage=stage,
            reason=reason,
            message=f"Envelope rejected at {stage}: {reason}"
        )

    def certificate_rejected(self, user_id: str, which: str) -> None:
        self._log(
            logging.WARNING,
            "CERTIFICATE_REJECTED",
            user_id=user_id,
            certificate=which,
            message=f"{which} certificate of {user_id} not issued by trusted CA"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for an application embedding itcrypto.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # stderr keeps stdout free for CLI output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Set the correlation id for the current context, generating one if needed."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str:
    return correlation_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
