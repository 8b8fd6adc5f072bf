"""Job and step loggers with secret masking and coloured output."""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from collections.abc import Mapping, MutableSequence
from typing import Any, TextIO

RED, GREEN, YELLOW, BLUE, MAGENTA, CYAN, GRAY = 31, 32, 33, 34, 35, 36, 37

_COLORS = (BLUE, YELLOW, GREEN, MAGENTA, RED, GRAY, CYAN)
_color_lock = threading.Lock()
_color_counter = 0


def next_color() -> int:
    """Return the next job colour in rotation."""
    global _color_counter
    with _color_lock:
        _color_counter += 1
        return _COLORS[_color_counter % len(_COLORS)]


def mask_message(message: str, secrets: Mapping[str, str], masks, insecure_secrets: bool) -> str:
    """Replace every secret value and mask in a message with ``***``."""
    if insecure_secrets:
        return message
    for value in list(secrets.values()) + list(masks):
        if value:
            message = message.replace(value, "***")
    return message


def is_colored(stream: Any) -> bool:
    """Decide whether output to ``stream`` should be coloured."""
    try:
        colored = bool(stream is not None and stream.isatty())
    except (AttributeError, ValueError):
        colored = False
    force = os.environ.get("CLICOLOR_FORCE")
    if force is not None:
        colored = force != "0"
    elif os.environ.get("CLICOLOR") == "0":
        colored = False
    return colored


class MaskingFilter(logging.Filter):
    """Hides secrets and registered masks in log messages."""

    def __init__(self, secrets: Mapping[str, str], masks: MutableSequence[str], insecure_secrets: bool = False):
        super().__init__()
        self.secrets = secrets
        self.masks = masks
        self.insecure_secrets = insecure_secrets

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_message(record.getMessage(), self.secrets, self.masks, self.insecure_secrets)
        record.args = ()
        return True


class JobLogFormatter(logging.Formatter):
    """Prefixes each line with the job name, coloured when the stream allows."""

    def __init__(self, color: int, stream: TextIO | None = None):
        super().__init__()
        self.color = color
        self.stream = stream

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if message.endswith("\n"):
            message = message[:-1]
        job = getattr(record, "job", None)
        debug = "[DEBUG] " if record.levelno == logging.DEBUG else ""
        raw = getattr(record, "raw_output", False) is True
        dryrun = getattr(record, "dryrun", False) is True
        if is_colored(self.stream):
            if raw:
                return f"\x1b[{self.color}m|\x1b[0m {message}"
            if dryrun:
                return (f"\x1b[1m\x1b[{GRAY}m\x1b[7m*DRYRUN*\x1b[0m "
                        f"\x1b[{self.color}m[{job}] \x1b[0m{debug}{message}")
            return f"\x1b[{self.color}m[{job}] \x1b[0m{debug}{message}"
        if raw:
            return f"[{job}]   | {message}"
        if dryrun:
            return f"*DRYRUN* [{job}] {debug}{message}"
        return f"[{job}] {debug}{message}"


_FIELDS = ("job", "jobID", "dryrun", "matrix", "step", "stepID", "stage",
           "raw_output", "jobResult", "stepResult")


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        data = {"level": record.levelname.lower(), "msg": record.getMessage(),
                "time": self.formatTime(record)}
        for name in _FIELDS:
            if hasattr(record, name):
                data[name] = getattr(record, name)
        return json.dumps(data, default=str)


class _FieldAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def job_logger(job_id: str, job_name: str, masks: MutableSequence[str], matrix: Mapping[str, Any],
               secrets: Mapping[str, str], insecure_secrets: bool = False, json_logger: bool = False,
               dryrun: bool = False, stream: TextIO | None = None) -> logging.LoggerAdapter:
    """Build a logger for one job, carrying its fields and masking secrets."""
    stream = stream if stream is not None else sys.stdout
    logger = logging.Logger(f"actrunner.job.{job_id}")
    logger.setLevel(logging.getLogger("actrunner").getEffectiveLevel())
    handler = logging.StreamHandler(stream)
    handler.setFormatter(_JsonFormatter() if json_logger else JobLogFormatter(next_color(), stream))
    handler.addFilter(MaskingFilter(secrets, masks, insecure_secrets))
    logger.addHandler(handler)
    logger.propagate = False
    fields = {"job": job_name, "jobID": job_id, "dryrun": dryrun, "matrix": dict(matrix)}
    return _FieldAdapter(logger, fields)


def step_logger(logger: logging.LoggerAdapter, step_id: str, step_name: str,
                stage_name: str) -> logging.LoggerAdapter:
    """Derive a logger that carries the fields of one step stage."""
    fields = {**logger.extra, "step": step_name, "stepID": [step_id], "stage": stage_name}
    return _FieldAdapter(logger.logger, fields)


def composite_step_logger(logger: logging.LoggerAdapter, step_id: str) -> logging.LoggerAdapter:
    """Derive a logger for a nested composite step, extending the step id path."""
    previous = logger.extra.get("stepID")
    step_ids = list(previous) if isinstance(previous, list) else []
    step_ids.append(step_id)
    return _FieldAdapter(logger.logger, {**logger.extra, "stepID": step_ids})