import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler

from memoria.config import settings

# -------- structured context (per store operation) --------
_op: ContextVar[str | None] = ContextVar("op", default=None)
_entity: ContextVar[str | None] = ContextVar("entity", default=None)
_entity_id: ContextVar[str | None] = ContextVar("entity_id", default=None)

CONTEXT_FIELDS = ("op", "entity", "entity_id")


def set_log_context(op: str | None = None, entity: str | None = None, entity_id: str | None = None) -> None:
    _op.set(op)
    _entity.set(entity)
    _entity_id.set(entity_id)


def clear_log_context() -> None:
    _op.set(None)
    _entity.set(None)
    _entity_id.set(None)


@contextmanager
def log_context(op: str, entity: str, entity_id: str | None = None):
    tokens = (_op.set(op), _entity.set(entity), _entity_id.set(entity_id))
    try:
        yield
    finally:
        _entity_id.reset(tokens[2])
        _entity.reset(tokens[1])
        _op.reset(tokens[0])


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        obj = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        if record.exc_info:
            obj["exc_info"] = self.formatException(record.exc_info)

        # extra={"entity_id": ...} or values injected by the record factory
        for k in CONTEXT_FIELDS:
            v = getattr(record, k, None)
            if v is not None:
                obj[k] = v

        return json.dumps(obj, ensure_ascii=False)


def _install_record_factory() -> None:
    old_factory = logging.getLogRecordFactory()
    if getattr(old_factory, "_memoria_context", False):
        return

    def record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        record.op = _op.get()
        record.entity = _entity.get()
        record.entity_id = _entity_id.get()
        return record

    record_factory._memoria_context = True
    logging.setLogRecordFactory(record_factory)


def setup_logging(level: str | None = None, fmt: str | None = None, log_file: str | None = None) -> None:
    _install_record_factory()

    level_name = (level or settings.log_level or "INFO").upper()
    lvl = getattr(logging, level_name, logging.INFO)

    log_format = (fmt or settings.log_format or "text").strip().lower()
    use_json = log_format in {"json", "structured", "jsonl"}

    text_formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    formatter = JsonFormatter() if use_json else text_formatter

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    # stdout
    ch = logging.StreamHandler()
    ch.setLevel(lvl)
    ch.setFormatter(formatter)
    root.addHandler(ch)

    # file (rotation), only when configured
    log_path = settings.log_file if log_file is None else log_file
    if log_path:
        parent = os.path.dirname(log_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        fh = TimedRotatingFileHandler(
            log_path,
            when="D",
            interval=1,
            backupCount=14,
            encoding="utf-8",
        )
        fh.setLevel(lvl)
        fh.setFormatter(formatter)
        root.addHandler(fh)
