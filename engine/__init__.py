"""
Engine Package
FakeREST Contract Verification

Request execution, verification and suite running.
"""

from engine.executor import PathParameterError, RequestExecutor, resolve_path
from engine.settings import EngineSettings, load_settings
from engine.suite import CaseReport, SuiteCase, SuiteReport, SuiteRunner, load_suite
from engine.transport import HttpxTransport, Transport, TransportError, TransportResponse
from engine.verifier import Verifier

__all__ = [
    "RequestExecutor",
    "PathParameterError",
    "resolve_path",
    "EngineSettings",
    "load_settings",
    "SuiteCase",
    "SuiteRunner",
    "SuiteReport",
    "CaseReport",
    "load_suite",
    "Transport",
    "HttpxTransport",
    "TransportError",
    "TransportResponse",
    "Verifier",
]
