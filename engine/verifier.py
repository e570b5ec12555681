"""
Verifier
FakeREST Contract Verification

Resolves a contract, performs the call and diffs the response against
the contract and resource schema. Every discrepancy is collected, so one
verification reports all of them in a single pass.

Pipeline per call: resolve -> build -> execute -> check -> aggregate.
"""

from datetime import UTC, datetime
from typing import Any

from dateutil import parser as date_parser

from common.toolkit import VERIFICATIONS_TOTAL, StructuredLogger
from contracts.registry import ContractRegistry, NotFoundError, RequestBodyError
from engine.executor import PathParameterError, RequestExecutor, resolve_path
from engine.transport import TransportError, encode_body
from models.contract import (
    BodyPolicy,
    EndpointContract,
    ExecutionRequest,
    ExecutionResult,
    FieldType,
    HttpMethod,
    ResourceSchema,
    ScenarioClass,
    VerificationOutcome,
    Violation,
    ViolationKind,
)

DEFAULT_TIMEOUT_MILLIS = 30_000
BODY_METHODS = {HttpMethod.POST, HttpMethod.PUT}


# =============================================================================
# STRUCTURAL TYPE CHECKS
# =============================================================================

def json_type_name(value: Any) -> str:
    """Name of a decoded JSON value's type."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _parse_date(value: str) -> datetime | None:
    try:
        return date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None


def matches_type(field_type: FieldType, value: Any) -> bool:
    """Check a non-null value against a declared field type."""
    if field_type == FieldType.NUMBER:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if field_type == FieldType.STRING:
        return isinstance(value, str)
    if field_type == FieldType.BOOLEAN:
        return isinstance(value, bool)
    if field_type == FieldType.DATE_STRING:
        return isinstance(value, str) and _parse_date(value) is not None
    return False


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def values_equal(expected: Any, actual: Any, field_type: FieldType = None) -> bool:
    """Compare a submitted value with its echo. Dates compare as instants."""
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and expected == actual
    if field_type == FieldType.DATE_STRING and isinstance(expected, str) and isinstance(actual, str):
        left, right = _parse_date(expected), _parse_date(actual)
        if left is not None and right is not None:
            return _as_utc(left) == _as_utc(right)
    return expected == actual


def check_fields(
    schema: ResourceSchema,
    item: dict[str, Any],
    omitted: set[str] = None,
    policy: BodyPolicy = BodyPolicy.NULL_FIELD,
    prefix: str = "",
) -> list[Violation]:
    """
    Validate one object against a schema.

    Fields the schema does not declare are ignored; schemas describe a
    minimum contract. A null in a non-nullable field is accepted only
    when the policy is nullField and the request omitted that field.
    """
    violations = []
    omitted = omitted or set()

    for spec in schema.fields:
        rule = f"{prefix}{spec.name}"

        if spec.name not in item:
            if spec.required:
                violations.append(Violation(
                    kind=ViolationKind.FIELD, rule=rule,
                    expected=spec.type.value, actual="missing",
                ))
            continue

        value = item[spec.name]
        if value is None:
            if spec.nullable:
                continue
            if policy == BodyPolicy.NULL_FIELD and spec.name in omitted:
                continue
            violations.append(Violation(
                kind=ViolationKind.FIELD, rule=rule,
                expected=spec.type.value, actual="null",
            ))
            continue

        if not matches_type(spec.type, value):
            actual = json_type_name(value)
            if spec.type == FieldType.DATE_STRING and isinstance(value, str):
                actual = f"unparseable date {value!r}"
            violations.append(Violation(
                kind=ViolationKind.FIELD, rule=rule,
                expected=spec.type.value, actual=actual,
            ))

    return violations


# =============================================================================
# VERIFIER
# =============================================================================

class Verifier:
    """
    Verifies one endpoint call against its registered contract.

    Stateless between calls; any number of verify() calls may run
    concurrently against the same instance.
    """

    def __init__(
        self,
        registry: ContractRegistry,
        executor: RequestExecutor,
        default_headers: dict[str, str] = None,
        timeout_millis: float = DEFAULT_TIMEOUT_MILLIS,
        log: StructuredLogger = None,
    ):
        self.registry = registry
        self.executor = executor
        self.default_headers = dict(default_headers or {})
        self.timeout_millis = timeout_millis
        self.log = log or StructuredLogger("verifier")

    async def verify(
        self,
        resource_name: str,
        method: str | HttpMethod,
        parameters: dict[str, Any] = None,
        body: Any = None,
        scenario: ScenarioClass | str = ScenarioClass.SUCCESS,
        headers: dict[str, str] = None,
        max_elapsed_millis: float = None,
        timeout_millis: float = None,
    ) -> VerificationOutcome:
        """
        Verify one call.

        Args:
            resource_name: Catalog resource (e.g., "Books")
            method: HTTP method
            parameters: Path parameters ({"id": 1}); unused ones become query
            body: Request body for POST/PUT
            scenario: Which expected status the call is checked against
            headers: Extra request headers, override configured defaults
            max_elapsed_millis: Optional response time ceiling
            timeout_millis: Per-call timeout, defaults to the configured one

        Returns:
            VerificationOutcome with every violation found

        Raises:
            NotFoundError: If the contract, schema or scenario status is not
                registered (authoring error, never turned into a failure)
            RequestBodyError: If the body cannot be serialised to JSON
        """
        scenario = ScenarioClass(scenario)
        parameters = dict(parameters or {})

        # 1. Resolve
        contract = self.registry.resolve(resource_name, method)
        schema = self.registry.schema_for(resource_name)
        expected_status = contract.expected_status(scenario)
        if expected_status is None:
            raise NotFoundError(
                resource_name, contract.method.value,
                detail=(
                    f"No {scenario.value} status declared for "
                    f"{contract.method.value} {resource_name}"
                ),
            )

        def finish(violations, elapsed=None):
            return self._finish(contract, scenario, violations, elapsed)

        # 2. Build
        try:
            req = self.build_request(contract, parameters, body, headers)
        except PathParameterError as e:
            return finish([Violation(
                kind=ViolationKind.REQUEST, rule="path", expected="resolvable path", actual=str(e),
            )])

        # 3. Execute
        try:
            result = await self.executor.execute(req, timeout_millis or self.timeout_millis)
        except TransportError as e:
            return finish([Violation(
                kind=ViolationKind.TRANSPORT,
                rule="timeout" if e.timed_out else "connection",
                expected="response",
                actual=str(e),
            )])

        # 4-6. Check
        violations = self.check_response(contract, schema, scenario, req, parameters, result)

        if max_elapsed_millis is not None and result.elapsed_millis > max_elapsed_millis:
            violations.append(Violation(
                kind=ViolationKind.TIMING, rule="elapsed_millis",
                expected=f"<= {max_elapsed_millis}", actual=round(result.elapsed_millis, 1),
            ))

        # 7. Aggregate
        return finish(violations, result.elapsed_millis)

    def build_request(
        self,
        contract: EndpointContract,
        parameters: dict[str, Any],
        body: Any = None,
        headers: dict[str, str] = None,
    ) -> ExecutionRequest:
        """Turn a contract and parameters into a concrete request."""
        path, query = resolve_path(
            contract.path_template, parameters, allow_unsafe=contract.allow_unsafe_identifiers,
        )

        request_headers = {**self.default_headers, **(headers or {})}

        if contract.method not in BODY_METHODS:
            if body is not None:
                self.log.warning(
                    "Ignoring request body", method=contract.method.value,
                    resource=contract.resource_name,
                )
            body = None

        if body is not None:
            try:
                encode_body(body)
            except (TypeError, ValueError) as e:
                raise RequestBodyError(
                    f"Body for {contract.method.value} {contract.resource_name} is not JSON serialisable: {e}"
                ) from e
            request_headers = {
                k: v for k, v in request_headers.items() if k.lower() != "content-type"
            }
            request_headers["Content-Type"] = "application/json"

        return ExecutionRequest(
            method=contract.method,
            resolved_path=path,
            headers=request_headers,
            body=body,
            query=query,
        )

    def check_response(
        self,
        contract: EndpointContract,
        schema: ResourceSchema,
        scenario: ScenarioClass,
        req: ExecutionRequest,
        parameters: dict[str, Any],
        result: ExecutionResult,
    ) -> list[Violation]:
        """Status, header and body checks for a captured response."""
        expected_status = contract.expected_status(scenario)
        if result.status != expected_status:
            return [Violation(
                kind=ViolationKind.STATUS, rule="status",
                expected=expected_status, actual=result.status,
            )]

        if scenario != ScenarioClass.SUCCESS:
            return []

        violations = []

        if contract.expected_content_type:
            content_type = result.headers.get("content-type", "")
            if contract.expected_content_type.lower() not in content_type.lower():
                violations.append(Violation(
                    kind=ViolationKind.HEADER, rule="content-type",
                    expected=contract.expected_content_type, actual=content_type or None,
                ))

        if contract.method == HttpMethod.GET:
            single = req.resolved_path != contract.path_template.split("{")[0].rstrip("/")
            if single:
                violations.extend(self._check_single(schema, result.body))
                violations.extend(self._check_requested_id(schema, parameters, result.body))
            else:
                violations.extend(self._check_collection(contract, schema, result.body))

        elif contract.method in BODY_METHODS:
            submitted = req.body if isinstance(req.body, dict) else {}
            omitted = {name for name in schema.field_names if name not in submitted}
            violations.extend(self._check_single(
                schema, result.body, omitted, contract.body_policy_on_missing_fields,
            ))
            if isinstance(result.body, dict):
                violations.extend(self._check_echo(contract, schema, submitted, result.body))

        return violations

    # -------------------------------------------------------------------------
    # Body checks
    # -------------------------------------------------------------------------

    def _check_collection(
        self,
        contract: EndpointContract,
        schema: ResourceSchema,
        body: Any,
    ) -> list[Violation]:
        if not isinstance(body, list):
            return [Violation(
                kind=ViolationKind.BODY, rule="body", expected="array", actual=json_type_name(body),
            )]

        violations = []
        if len(body) < contract.min_collection_items:
            violations.append(Violation(
                kind=ViolationKind.BODY, rule="length",
                expected=f">= {contract.min_collection_items}", actual=len(body),
            ))

        for index, item in enumerate(body):
            if not isinstance(item, dict):
                violations.append(Violation(
                    kind=ViolationKind.BODY, rule=f"[{index}]",
                    expected="object", actual=json_type_name(item),
                ))
                continue
            violations.extend(check_fields(schema, item, prefix=f"[{index}]."))
        return violations

    def _check_single(
        self,
        schema: ResourceSchema,
        body: Any,
        omitted: set[str] = None,
        policy: BodyPolicy = BodyPolicy.NULL_FIELD,
    ) -> list[Violation]:
        if not isinstance(body, dict):
            return [Violation(
                kind=ViolationKind.BODY, rule="body", expected="object", actual=json_type_name(body),
            )]
        return check_fields(schema, body, omitted, policy)

    def _check_requested_id(
        self,
        schema: ResourceSchema,
        parameters: dict[str, Any],
        body: Any,
    ) -> list[Violation]:
        """A single GET must return the resource that was asked for."""
        requested = parameters.get("id")
        if requested is None or schema.field("id") is None:
            return []
        if not isinstance(body, dict) or body.get("id") is None:
            return []
        actual = body["id"]
        if actual == requested or str(actual) == str(requested):
            return []
        return [Violation(
            kind=ViolationKind.VALUE_MISMATCH, rule="id", expected=requested, actual=actual,
        )]

    def _check_echo(
        self,
        contract: EndpointContract,
        schema: ResourceSchema,
        submitted: dict[str, Any],
        echoed: dict[str, Any],
    ) -> list[Violation]:
        """Every submitted field must come back unchanged."""
        violations = []
        for name, expected in submitted.items():
            if name in contract.echo_exempt_fields:
                continue
            spec = schema.field(name)
            if name not in echoed:
                violations.append(Violation(
                    kind=ViolationKind.VALUE_MISMATCH, rule=name, expected=expected, actual="missing",
                ))
                continue
            if not values_equal(expected, echoed[name], spec.type if spec else None):
                violations.append(Violation(
                    kind=ViolationKind.VALUE_MISMATCH, rule=name,
                    expected=expected, actual=echoed[name],
                ))
        return violations

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------

    def _finish(
        self,
        contract: EndpointContract,
        scenario: ScenarioClass,
        violations: list[Violation],
        elapsed_millis: float = None,
    ) -> VerificationOutcome:
        outcome = VerificationOutcome.from_violations(
            contract.resource_name, contract.method, scenario, violations, elapsed_millis,
        )

        VERIFICATIONS_TOTAL.labels(
            resource=contract.resource_name,
            method=contract.method.value,
            result="passed" if outcome.passed else "failed",
        ).inc()

        if outcome.passed:
            self.log.info(
                "Verification passed",
                resource=contract.resource_name, method=contract.method.value,
                scenario=scenario.value,
            )
        else:
            for violation in outcome.violations:
                self.log.warning(
                    "Contract violation",
                    resource=contract.resource_name, method=contract.method.value,
                    kind=violation.kind.value, rule=violation.rule,
                    expected=violation.expected, actual=violation.actual,
                )
        return outcome
