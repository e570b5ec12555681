"""
Contracts Module
FakeREST Contract Verification

Declarative resource schemas and endpoint contracts.
"""

from .registry import (
    CatalogError,
    ContractError,
    ContractRegistry,
    NotFoundError,
    RequestBodyError,
    get_registry,
)

__all__ = [
    "ContractRegistry",
    "ContractError",
    "CatalogError",
    "NotFoundError",
    "RequestBodyError",
    "get_registry",
]
