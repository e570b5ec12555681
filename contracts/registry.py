"""
Contract Registry
FakeREST Contract Verification

Stores resource schemas and endpoint contracts, and builds them from the
declarative YAML catalog. Adding a resource means adding catalog data.
"""

import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from common.toolkit import load_yaml
from models.contract import (
    EndpointContract,
    FieldSpec,
    HttpMethod,
    ResourceSchema,
)

logger = logging.getLogger(__name__)

# Bundled catalog
CATALOG_DIR = Path(__file__).parent / "schemas"
DEFAULT_CATALOG = CATALOG_DIR / "fakerestapi.yaml"


class ContractError(Exception):
    """Base class for contract authoring errors."""


class NotFoundError(ContractError):
    """Raised when no schema or endpoint contract is registered."""

    def __init__(self, resource_name: str, method: str = None, detail: str = None):
        self.resource_name = resource_name
        self.method = method
        if detail:
            message = detail
        elif method:
            message = f"No endpoint contract registered for {method} {resource_name}"
        else:
            message = f"No schema registered for resource '{resource_name}'"
        super().__init__(message)


class CatalogError(ContractError):
    """Raised when a catalog document cannot be turned into contracts."""


class RequestBodyError(ContractError):
    """Raised when a request body cannot be serialised to JSON."""


def _as_method(method: str | HttpMethod, resource_name: str) -> HttpMethod:
    try:
        return HttpMethod(str(method).upper())
    except ValueError:
        raise NotFoundError(resource_name, str(method)) from None


class ContractRegistry:
    """
    In-memory store of resource schemas and endpoint contracts.

    Schemas are keyed by resource name, endpoint contracts by
    (resource name, method). Registering under an existing key
    supersedes the previous entry. The registry is only written during
    setup, so concurrent verifications read it without locking.
    """

    def __init__(self):
        self._schemas: dict[str, ResourceSchema] = {}
        self._endpoints: dict[tuple[str, HttpMethod], EndpointContract] = {}

    def register(self, schema: ResourceSchema) -> None:
        """Insert or replace a resource schema."""
        if schema.resource_name in self._schemas:
            logger.debug(f"Replacing schema for {schema.resource_name}")
        self._schemas[schema.resource_name] = schema

    def register_endpoint(self, contract: EndpointContract) -> None:
        """Insert or replace an endpoint contract."""
        self._endpoints[contract.key] = contract

    def resolve(self, resource_name: str, method: str | HttpMethod) -> EndpointContract:
        """
        Look up the contract for a (resource, method) pair.

        Raises:
            NotFoundError: If no contract is registered for the pair
        """
        key = (resource_name, _as_method(method, resource_name))
        contract = self._endpoints.get(key)
        if contract is None:
            raise NotFoundError(resource_name, key[1].value)
        return contract

    def schema_for(self, resource_name: str) -> ResourceSchema:
        """
        Look up a resource schema.

        Raises:
            NotFoundError: If the resource has no registered schema
        """
        schema = self._schemas.get(resource_name)
        if schema is None:
            raise NotFoundError(resource_name)
        return schema

    def resources(self) -> list[str]:
        return list(self._schemas.keys())

    def endpoints(self, resource_name: str = None) -> list[EndpointContract]:
        """Registered contracts, optionally for a single resource."""
        return [
            c for c in self._endpoints.values()
            if resource_name is None or c.resource_name == resource_name
        ]

    # -------------------------------------------------------------------------
    # Catalog loading
    # -------------------------------------------------------------------------

    @classmethod
    def from_catalog(cls, catalog: dict[str, Any]) -> "ContractRegistry":
        """
        Build a registry from a catalog document.

        Expected shape:
            defaults: {<endpoint contract fields>}
            resources:
              <Name>:
                path: /api/v1/<Name>/{id}
                fields: [{name, type, required?, nullable?}, ...]
                endpoints:
                  GET: {<overrides>}
                  POST: {}

        Raises:
            CatalogError: If the document does not describe valid contracts
        """
        registry = cls()
        if not isinstance(catalog, dict) or not isinstance(catalog.get("resources"), dict):
            raise CatalogError("Catalog must contain a 'resources' mapping")

        defaults = catalog.get("defaults") or {}

        for resource_name, entry in catalog["resources"].items():
            entry = entry or {}
            try:
                schema = ResourceSchema(
                    resource_name=resource_name,
                    fields=tuple(FieldSpec(**f) for f in entry.get("fields") or []),
                )
                registry.register(schema)

                for method, overrides in (entry.get("endpoints") or {}).items():
                    params = {
                        **defaults,
                        "path_template": entry.get("path"),
                        **(overrides or {}),
                        "resource_name": resource_name,
                        "method": method,
                    }
                    registry.register_endpoint(EndpointContract(**params))
            except (ValidationError, TypeError) as e:
                raise CatalogError(f"Invalid catalog entry '{resource_name}': {e}") from e

        logger.info(
            f"Loaded catalog with {len(registry._schemas)} resources "
            f"and {len(registry._endpoints)} endpoints"
        )
        return registry

    @classmethod
    def load_catalog(cls, path: str | Path = None) -> "ContractRegistry":
        """Build a registry from a YAML catalog file."""
        path = Path(path) if path else DEFAULT_CATALOG
        if not path.exists():
            raise FileNotFoundError(f"Contract catalog not found: {path}")
        return cls.from_catalog(load_yaml(path))


# Global registry instance
_registry: ContractRegistry | None = None


def get_registry() -> ContractRegistry:
    """Get the global registry built from the bundled catalog."""
    global _registry
    if _registry is None:
        _registry = ContractRegistry.load_catalog()
    return _registry
