"""
Command Line Interface
FakeREST Contract Verification

Runs a suite of contract cases against the configured API and exits
non-zero when any case fails or the suite is misconfigured.
"""

import asyncio
import uuid

import click
from dotenv import load_dotenv

from common.toolkit import Config, StructuredLogger, write_jsonl
from contracts.registry import ContractError, ContractRegistry
from engine.executor import RequestExecutor
from engine.settings import load_settings
from engine.suite import SuiteReport, SuiteRunner, load_suite
from engine.transport import HttpxTransport
from engine.verifier import Verifier

STATUS_COLORS = {"passed": "green", "failed": "red", "error": "yellow"}


async def run_suite(
    cases,
    registry: ContractRegistry,
    settings,
    concurrency: int,
    retries: int,
    log: StructuredLogger,
) -> SuiteReport:
    """Wire transport, executor, verifier and runner for one run."""
    async with HttpxTransport() as transport:
        executor = RequestExecutor(transport, settings.base_url, log=log)
        verifier = Verifier(
            registry,
            executor,
            default_headers=settings.default_headers,
            timeout_millis=settings.timeout_millis,
            log=log,
        )
        runner = SuiteRunner(verifier, concurrency=concurrency, retries=retries, log=log)
        return await runner.run(cases)


def print_report(report: SuiteReport):
    """Print every case with its violations, then totals."""
    for case_report in report.cases:
        status = case_report.status
        label = click.style(f"[{status.upper()}]", fg=STATUS_COLORS[status])
        attempts = f" (attempts: {case_report.attempts})" if case_report.attempts > 1 else ""
        click.echo(f"{label} {case_report.case.name}{attempts}")

        if case_report.error:
            click.echo(f"    misconfigured: {case_report.error}")
        for outcome in case_report.outcomes:
            for violation in outcome.violations:
                click.echo(f"    - {violation}")

    totals = report.totals
    click.echo("\n" + "=" * 60)
    click.echo(
        f"Total: {totals['total']}  Passed: {totals['passed']}  "
        f"Failed: {totals['failed']}  Errors: {totals['error']}"
    )


@click.command()
@click.option("--suite", "suite_path", default="config/suites/fakerestapi.yaml",
              show_default=True, help="Suite YAML file")
@click.option("--catalog", "catalog_path", default=None, help="Contract catalog YAML (default: bundled)")
@click.option("--config-dir", default="config", show_default=True, help="Directory holding engine.yaml")
@click.option("--base-url", default=None, help="Override the API base URL")
@click.option("--timeout-ms", type=float, default=None, help="Per-request timeout in milliseconds")
@click.option("--concurrency", type=click.IntRange(min=1), default=8, show_default=True)
@click.option("--retries", type=click.IntRange(min=0), default=0, show_default=True,
              help="Re-verify failed cases this many times")
@click.option("--resource", "-r", "resources", multiple=True, help="Only run cases for these resources")
@click.option("--report", "report_path", default=None, help="Write a JSONL report to this path")
@click.option("--log-file", default=None, help="Also write JSON log lines to this file")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
def main(suite_path, catalog_path, config_dir, base_url, timeout_ms, concurrency,
         retries, resources, report_path, log_file, log_level):
    """
    FakeREST contract verification

    Verify status codes, headers and response bodies of the FakeRESTAPI
    against the declarative contract catalog.
    """
    load_dotenv()

    run_id = str(uuid.uuid4())
    log = StructuredLogger("cli", run_id)
    log.set_level(log_level)
    if log_file:
        log.log_to_file(log_file)

    try:
        settings = load_settings(Config(config_dir), base_url=base_url, timeout_millis=timeout_ms)
        registry = ContractRegistry.load_catalog(catalog_path)
        cases = load_suite(suite_path)
    except (FileNotFoundError, ContractError, ValueError) as e:
        click.echo(click.style(f"ERROR: {e}", fg="red"))
        raise SystemExit(2)

    if resources:
        cases = [c for c in cases if c.resource in resources]

    click.echo(f"Run {run_id}: {len(cases)} cases against {settings.base_url}")
    log.info("Suite loaded", cases=len(cases), base_url=settings.base_url, suite=suite_path)

    report = asyncio.run(run_suite(cases, registry, settings, concurrency, retries, log))

    if report_path:
        write_jsonl(report_path, (c.to_record() for c in report.cases))
        click.echo(f"Report: {report_path}")

    print_report(report)

    if report.exit_code:
        click.echo(click.style("\n[FAIL] Contract verification failed", fg="red"))
        raise SystemExit(report.exit_code)

    click.echo(click.style("\n[OK] All contracts verified", fg="green"))


if __name__ == "__main__":
    main()
