"""
Common Package
FakeREST Contract Verification

Logging, configuration, metrics and report helpers.
"""

from common.toolkit import (
    Config,
    JsonFormatter,
    StructuredLogger,
    load_yaml,
    substitute_env,
    write_jsonl,
)

__all__ = [
    "Config",
    "JsonFormatter",
    "StructuredLogger",
    "load_yaml",
    "substitute_env",
    "write_jsonl",
]
