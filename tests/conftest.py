"""
Pytest Fixtures for FakeREST Contract Verification Tests

Shared fixtures for the registry, a scripted transport, and the engine.
"""

import json
from pathlib import Path
from typing import Any

import pytest

from contracts.registry import ContractRegistry
from engine.executor import RequestExecutor
from engine.transport import TransportResponse
from engine.verifier import Verifier
from models.contract import EndpointContract, FieldSpec, ResourceSchema

BASE_URL = "https://api.test"

# =============================================================================
# HELPERS
# =============================================================================


def json_response(body: Any, status: int = 200, headers: dict = None) -> TransportResponse:
    """Build a JSON TransportResponse the way the demo API answers."""
    return TransportResponse(
        status=status,
        headers={"Content-Type": "application/json; charset=utf-8", **(headers or {})},
        body=json.dumps(body).encode("utf-8") if body is not None else b"",
    )


def empty_response(status: int = 200) -> TransportResponse:
    return TransportResponse(status=status, headers={"Content-Length": "0"}, body=b"")


class FakeTransport:
    """
    Scripted transport.

    responses: a list consumed in order (the last entry repeats), or a
    callable(method, url, headers, body) returning a response. Entries
    that are exceptions are raised.
    """

    def __init__(self, responses=None):
        self.responses = responses
        self.calls: list[dict] = []

    async def send(self, method, url, headers, body=None):
        self.calls.append({"method": method, "url": url, "headers": headers, "body": body})

        if callable(self.responses):
            result = self.responses(method, url, headers, body)
        elif len(self.responses) > 1:
            result = self.responses.pop(0)
        else:
            result = self.responses[0]

        if isinstance(result, BaseException):
            raise result
        return result


def echo_handler(status: int = 200, assign_id: int = 5):
    """Transport handler echoing the submitted body with an assigned id."""

    def handler(method, url, headers, body):
        echoed = {"id": assign_id, **(body or {})}
        return json_response(echoed, status=status)

    return handler


# =============================================================================
# PATH FIXTURES
# =============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def suite_path(project_root) -> Path:
    return project_root / "config" / "suites" / "fakerestapi.yaml"


# =============================================================================
# REGISTRY FIXTURES
# =============================================================================


@pytest.fixture
def registry() -> ContractRegistry:
    """Registry built from the bundled catalog."""
    return ContractRegistry.load_catalog()


@pytest.fixture
def books_schema() -> ResourceSchema:
    return ResourceSchema(
        resource_name="Books",
        fields=(
            FieldSpec(name="id", type="number"),
            FieldSpec(name="title", type="string"),
            FieldSpec(name="description", type="string"),
            FieldSpec(name="pageCount", type="number"),
            FieldSpec(name="excerpt", type="string"),
            FieldSpec(name="publishDate", type="date-string"),
        ),
    )


@pytest.fixture
def books_get_contract() -> EndpointContract:
    return EndpointContract(
        resource_name="Books",
        method="GET",
        path_template="/api/v1/Books/{id}",
        expected_status_on_missing_resource=404,
    )


@pytest.fixture
def minimal_registry(books_schema, books_get_contract) -> ContractRegistry:
    """Registry with only Books GET, no optional expectations."""
    registry = ContractRegistry()
    registry.register(books_schema)
    registry.register_endpoint(books_get_contract)
    return registry


# =============================================================================
# VALID DATA FIXTURES
# =============================================================================


@pytest.fixture
def valid_book() -> dict:
    return {
        "id": 1,
        "title": "X",
        "description": "Y",
        "pageCount": 10,
        "excerpt": "Z",
        "publishDate": "2024-01-01",
    }


@pytest.fixture
def valid_books(valid_book) -> list[dict]:
    second = {**valid_book, "id": 2, "title": "Book 2", "publishDate": "2024-03-05T10:15:00.000Z"}
    return [valid_book, second]


# =============================================================================
# ENGINE FIXTURES
# =============================================================================


@pytest.fixture
def make_verifier(registry):
    """Factory: Verifier over a FakeTransport with scripted responses."""

    def factory(responses, registry_override=None, **kwargs):
        transport = FakeTransport(responses)
        executor = RequestExecutor(transport, BASE_URL)
        verifier = Verifier(registry_override or registry, executor, **kwargs)
        return verifier, transport

    return factory
