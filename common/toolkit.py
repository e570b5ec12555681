"""
Common Utilities
FakeREST Contract Verification

Shared logging, configuration, metrics and report helpers used by the
registry, the engine and the CLI.
"""

import json
import logging
import logging.handlers
import os
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import yaml
from prometheus_client import Counter, Histogram

# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

HTTP_REQUESTS_TOTAL = Counter(
    "fakerest_http_requests_total",
    "Total HTTP requests by host, method, and status",
    ["host", "method", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "fakerest_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["host", "method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
)

HTTP_ERRORS_TOTAL = Counter(
    "fakerest_http_errors_total",
    "Total transport errors by host, method, and error type",
    ["host", "method", "error_type"],
)

VERIFICATIONS_TOTAL = Counter(
    "fakerest_verifications_total",
    "Contract verifications by resource, method, and result",
    ["resource", "method", "result"],
)


# ============================================================================
# STRUCTURED LOGGER
# ============================================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per record: time, level, logger, message, bound fields."""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": getattr(record, "event", record.getMessage()),
            **getattr(record, "fields", {}),
        }
        return json.dumps(entry, default=str)


class StructuredLogger:
    """
    Key/value logger for one engine component.

    Context given at construction or through bind() (run id, case name)
    is appended to every console line and emitted as separate keys by the
    JSON file handler. Loggers bound from the same component share
    handlers.
    """

    def __init__(self, component: str, run_id: str = None, **context):
        self.component = component
        self.run_id = run_id
        self.context = {"component": component, "run_id": run_id, **context}
        self.logger = logging.getLogger(f"fakerest.{component}")

        if not self.logger.handlers:
            console = logging.StreamHandler()
            console.setFormatter(logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s"))
            self.logger.addHandler(console)
            self.logger.setLevel(logging.INFO)

    def bind(self, **context) -> "StructuredLogger":
        """Child logger with extra context on every record."""
        extra = {k: v for k, v in self.context.items() if k not in ("component", "run_id")}
        return StructuredLogger(self.component, self.run_id, **{**extra, **context})

    def log_to_file(self, path: str | Path, max_bytes: int = 10_485_760, backup_count: int = 5):
        """Also write JSON lines to a rotating file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        )
        handler.setFormatter(JsonFormatter())
        self.logger.addHandler(handler)
        return handler

    def set_level(self, level: str):
        self.logger.setLevel(getattr(logging, level.upper()))

    def fields(self, **kwargs) -> dict:
        """Bound context merged with per-call values; None values dropped."""
        return {k: v for k, v in {**self.context, **kwargs}.items() if v is not None}

    def log(self, level: int, message: str, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        fields = self.fields(**kwargs)
        pairs = " ".join(f"{k}={v}" for k, v in fields.items())
        record = self.logger.makeRecord(
            self.logger.name, level, "(unknown)", 0, f"{message} [{pairs}]", (), None,
        )
        record.event = message
        record.fields = fields
        self.logger.handle(record)

    def debug(self, message: str, **kwargs):
        self.log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self.log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self.log(logging.ERROR, message, **kwargs)


# ============================================================================
# JSONL REPORT
# ============================================================================

def write_jsonl(path: str | Path, records: Iterable[dict]) -> int:
    """Write records one JSON object per line, replacing the file. Returns the count."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for record in records:
            f.write(json.dumps(record, ensure_ascii=False, default=str) + "\n")
            count += 1
    return count


# ============================================================================
# CONFIG LOADER
# ============================================================================

ENV_PATTERN = re.compile(r'\$\{([^}]+)\}')


def substitute_env(content: str) -> str:
    """Substitute ${VAR} and ${VAR:default} with environment variables."""

    def replacer(match):
        var_name = match.group(1)
        default = None

        if ":" in var_name:
            var_name, default = var_name.split(":", 1)

        return os.getenv(var_name, default or "")

    return ENV_PATTERN.sub(replacer, content)


def load_yaml(path: str | Path) -> Any:
    """Read a YAML file after environment substitution."""
    with open(path, encoding="utf-8") as f:
        content = f.read()
    return yaml.safe_load(substitute_env(content))


class Config:
    """Configuration loader with environment variable substitution."""

    def __init__(self, config_path: str = "config"):
        self.config_path = Path(config_path)
        self._cache: dict[str, dict] = {}

    def load(self, name: str) -> dict:
        """Load configuration file by name, {} when it does not exist."""
        if name in self._cache:
            return self._cache[name]

        path = self.config_path / f"{name}.yaml"
        if not path.exists():
            path = self.config_path / f"{name}.yml"

        if not path.exists():
            return {}

        config = load_yaml(path) or {}
        self._cache[name] = config

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get nested config value using dot notation."""
        parts = key.split(".")

        config = self.load(parts[0])
        for part in parts[1:]:
            if isinstance(config, dict):
                config = config.get(part)
            else:
                return default
        return config if config is not None else default
