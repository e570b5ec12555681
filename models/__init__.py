"""
Models Package
FakeREST Contract Verification

Pydantic models and data structures for contract verification.
"""

from models.contract import (
    BodyPolicy,
    EndpointContract,
    ExecutionRequest,
    ExecutionResult,
    # Data Models
    FieldSpec,
    # Enums
    FieldType,
    HttpMethod,
    ResourceSchema,
    ScenarioClass,
    VerificationOutcome,
    Violation,
    ViolationKind,
)

__all__ = [
    # Enums
    "FieldType",
    "HttpMethod",
    "ScenarioClass",
    "BodyPolicy",
    "ViolationKind",

    # Data Models
    "FieldSpec",
    "ResourceSchema",
    "EndpointContract",
    "ExecutionRequest",
    "ExecutionResult",
    "Violation",
    "VerificationOutcome",
]
