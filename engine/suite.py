"""
Suite Runner
FakeREST Contract Verification

Runs a list of declarative cases through the Verifier with bounded
concurrency, an optional retry policy, and a per-case report.
"""

import asyncio
import random
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from common.toolkit import StructuredLogger, load_yaml
from contracts.registry import ContractError
from engine.verifier import Verifier
from models.contract import HttpMethod, ScenarioClass, VerificationOutcome

# =============================================================================
# SUITE MODELS
# =============================================================================

class SuiteCase(BaseModel):
    """One (resource, method, parameters) verification to run."""

    model_config = ConfigDict(frozen=True)

    name: str
    resource: str
    method: HttpMethod
    scenario: ScenarioClass = ScenarioClass.SUCCESS
    parameters: dict[str, Any] = Field(default_factory=dict)
    body: Any = None
    headers: dict[str, str] = Field(default_factory=dict)
    max_elapsed_millis: float | None = None
    repeat: int = Field(default=1, ge=1, description="Concurrent copies of the same call")

    @classmethod
    def from_dict(cls, data: dict) -> "SuiteCase":
        data = dict(data)
        if isinstance(data.get("method"), str):
            data["method"] = data["method"].upper()
        data.setdefault("name", f"{data.get('method')} {data.get('resource')}")
        return cls(**data)


class CaseReport(BaseModel):
    """Result of one case (all of its repeats)."""

    case: SuiteCase
    outcomes: list[VerificationOutcome] = Field(default_factory=list)
    error: str | None = None
    attempts: int = 0

    @property
    def status(self) -> str:
        """passed, failed, or error (suite misconfigured or case crashed)."""
        if self.error is not None:
            return "error"
        if self.outcomes and all(o.passed for o in self.outcomes):
            return "passed"
        return "failed"

    @property
    def passed(self) -> bool:
        return self.status == "passed"

    def to_record(self) -> dict:
        return {
            "case": self.case.name,
            "resource": self.case.resource,
            "method": self.case.method.value,
            "scenario": self.case.scenario.value,
            "status": self.status,
            "attempts": self.attempts,
            "error": self.error,
            "elapsed_millis": [o.elapsed_millis for o in self.outcomes],
            "violations": [
                v.model_dump(mode="json") for o in self.outcomes for v in o.violations
            ],
        }


class SuiteReport(BaseModel):
    """Aggregate of every case report in a run."""

    cases: list[CaseReport] = Field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for c in self.cases if c.status == status)

    @property
    def totals(self) -> dict[str, int]:
        return {
            "total": len(self.cases),
            "passed": self.count("passed"),
            "failed": self.count("failed"),
            "error": self.count("error"),
        }

    @property
    def exit_code(self) -> int:
        return 0 if all(c.passed for c in self.cases) else 1


def load_suite(path: str | Path) -> list[SuiteCase]:
    """Load suite cases from YAML ({cases: [...]}) with ${VAR} substitution."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Suite file not found: {path}")
    data = load_yaml(path) or {}
    return [SuiteCase.from_dict(case) for case in data.get("cases") or []]


# =============================================================================
# RUNNER
# =============================================================================

class SuiteRunner:
    """
    Fans suite cases out over a Verifier and joins on all of them.

    Retrying is a policy of this layer only: the executor and verifier
    perform exactly one attempt per call.
    """

    DEFAULT_BACKOFF = 2.0
    MAX_BACKOFF = 30

    def __init__(
        self,
        verifier: Verifier,
        concurrency: int = 8,
        retries: int = 0,
        retry_delay: float = 0.5,
        log: StructuredLogger = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.verifier = verifier
        self.concurrency = concurrency
        self.retries = retries
        self.retry_delay = retry_delay
        self.log = log or StructuredLogger("suite")

    async def run(self, cases: list[SuiteCase]) -> SuiteReport:
        """Run all cases concurrently; reports keep the input order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        self.log.info(f"Running {len(cases)} cases", concurrency=self.concurrency)

        async def limited(call):
            async with semaphore:
                return await call()

        reports = await asyncio.gather(
            *[self.run_case(case, limited) for case in cases]
        )
        report = SuiteReport(cases=list(reports))

        self.log.info("Suite finished", **report.totals)
        return report

    async def run_case(self, case: SuiteCase, limiter=None) -> CaseReport:
        """Run one case, retrying failed outcomes up to self.retries times."""
        report = CaseReport(case=case)
        log = self.log.bind(case=case.name)

        for attempt in range(self.retries + 1):
            report.attempts = attempt + 1
            try:
                report.outcomes = await self._run_repeats(case, limiter)
            except ContractError as e:
                # Authoring errors are not retried and never count as API failures
                report.error = f"{type(e).__name__}: {e}"
                log.error("Suite misconfigured", error=str(e))
                return report
            except Exception as e:
                # Recorded against this case only; other cases keep running
                report.error = f"{type(e).__name__}: {e}"
                log.error("Case crashed", error=str(e))
                return report

            if report.passed:
                break

            if attempt < self.retries:
                wait = min(
                    self.retry_delay * self.DEFAULT_BACKOFF ** attempt + random.uniform(0, 0.1),
                    self.MAX_BACKOFF,
                )
                log.info("Retrying failed case", attempt=attempt + 1, wait_seconds=round(wait, 2))
                await asyncio.sleep(wait)

        return report

    async def _run_repeats(self, case: SuiteCase, limiter=None) -> list[VerificationOutcome]:
        async def call():
            return await self.verifier.verify(
                case.resource,
                case.method,
                parameters=case.parameters,
                body=case.body,
                scenario=case.scenario,
                headers=case.headers,
                max_elapsed_millis=case.max_elapsed_millis,
            )

        async def limited_call():
            if limiter is None:
                return await call()
            return await limiter(call)

        return list(await asyncio.gather(*[limited_call() for _ in range(case.repeat)]))
