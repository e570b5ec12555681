"""
Contract Models
FakeREST Contract Verification

Pydantic models describing resources, endpoint contracts, and the
transient request/result/outcome values passed between the registry,
the executor and the verifier.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# ENUMERATIONS
# =============================================================================

class FieldType(StrEnum):
    """JSON value types a resource field may declare."""

    NUMBER = "number"
    STRING = "string"
    BOOLEAN = "boolean"
    DATE_STRING = "date-string"


class HttpMethod(StrEnum):
    """HTTP methods an endpoint contract can describe."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class ScenarioClass(StrEnum):
    """Which expected status a verification is checked against."""

    SUCCESS = "success"
    VALIDATION_FAILURE = "validation-failure"
    MISSING_RESOURCE = "missing-resource"


class BodyPolicy(StrEnum):
    """How the API treats fields omitted from a request body."""

    NULL_FIELD = "nullField"  # echoed back as null
    REJECT = "reject"


class ViolationKind(StrEnum):
    """Categories of contract violations."""

    TRANSPORT = "transport"
    STATUS = "status"
    HEADER = "header"
    BODY = "body"
    FIELD = "field"
    VALUE_MISMATCH = "value-mismatch"
    TIMING = "timing"
    REQUEST = "request"


# =============================================================================
# SCHEMA MODELS
# =============================================================================

class FieldSpec(BaseModel):
    """A single declared field of a resource."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    type: FieldType
    required: bool = True
    nullable: bool = False


class ResourceSchema(BaseModel):
    """Minimum set of fields a resource representation must carry."""

    model_config = ConfigDict(frozen=True)

    resource_name: str = Field(..., min_length=1)
    fields: tuple[FieldSpec, ...] = ()

    @field_validator("fields")
    @classmethod
    def unique_field_names(cls, v):
        """Reject schemas that declare the same field twice."""
        seen = set()
        for spec in v:
            if spec.name in seen:
                raise ValueError(f"Duplicate field '{spec.name}'")
            seen.add(spec.name)
        return v

    def field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    @property
    def field_names(self) -> list[str]:
        return [spec.name for spec in self.fields]


class EndpointContract(BaseModel):
    """Expected behaviour of one (resource, method) endpoint."""

    model_config = ConfigDict(frozen=True)

    resource_name: str = Field(..., min_length=1)
    method: HttpMethod
    path_template: str = Field(..., description="Path, may contain an {id} placeholder")
    expected_status_on_success: int = 200
    expected_status_on_validation_failure: int = 400
    expected_status_on_missing_resource: int | None = None
    body_policy_on_missing_fields: BodyPolicy = BodyPolicy.NULL_FIELD

    # Optional response expectations
    expected_content_type: str | None = None
    min_collection_items: int = Field(default=0, ge=0)
    echo_exempt_fields: tuple[str, ...] = ()
    allow_unsafe_identifiers: bool = True

    @field_validator("method", mode="before")
    @classmethod
    def upper_method(cls, v):
        return v.upper() if isinstance(v, str) else v

    @property
    def key(self) -> tuple[str, HttpMethod]:
        return (self.resource_name, self.method)

    def expected_status(self, scenario: ScenarioClass) -> int | None:
        """Status declared for a scenario class, or None if undeclared."""
        if scenario == ScenarioClass.SUCCESS:
            return self.expected_status_on_success
        if scenario == ScenarioClass.VALIDATION_FAILURE:
            return self.expected_status_on_validation_failure
        return self.expected_status_on_missing_resource


# =============================================================================
# EXECUTION MODELS
# =============================================================================

class ExecutionRequest(BaseModel):
    """One concrete HTTP call derived from a contract and parameters."""

    model_config = ConfigDict(frozen=True)

    method: HttpMethod
    resolved_path: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    query: dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(BaseModel):
    """Captured response of one call. Header names are lower-cased."""

    model_config = ConfigDict(frozen=True)

    status: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None
    elapsed_millis: float = Field(..., ge=0)

    @field_validator("headers", mode="before")
    @classmethod
    def lowercase_headers(cls, v):
        if v is None:
            return {}
        return {str(k).lower(): str(val) for k, val in dict(v).items()}


# =============================================================================
# OUTCOME MODELS
# =============================================================================

class Violation(BaseModel):
    """One mismatch between the contract and the observed response."""

    model_config = ConfigDict(frozen=True)

    kind: ViolationKind
    rule: str
    expected: Any = None
    actual: Any = None

    def __str__(self):
        return f"[{self.kind}] {self.rule}: expected {self.expected!r}, got {self.actual!r}"


class VerificationOutcome(BaseModel):
    """Aggregate result of one verification."""

    model_config = ConfigDict(frozen=True)

    resource_name: str
    method: HttpMethod
    scenario: ScenarioClass = ScenarioClass.SUCCESS
    passed: bool
    violations: tuple[Violation, ...] = ()
    elapsed_millis: float | None = None

    @classmethod
    def from_violations(
        cls,
        resource_name: str,
        method: HttpMethod,
        scenario: ScenarioClass,
        violations: list[Violation],
        elapsed_millis: float | None = None,
    ) -> "VerificationOutcome":
        return cls(
            resource_name=resource_name,
            method=method,
            scenario=scenario,
            passed=not violations,
            violations=tuple(violations),
            elapsed_millis=elapsed_millis,
        )

    def kinds(self) -> list[ViolationKind]:
        """Violation kinds in report order."""
        return [v.kind for v in self.violations]
