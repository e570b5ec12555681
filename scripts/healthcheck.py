#!/usr/bin/env python3
"""
Container health check.

Returns exit code 0 if the core modules import, the bundled contract
catalog loads, and the default suite only names registered contracts.
"""

import sys
from pathlib import Path

# Ensure project root is on sys.path (needed outside Docker too)
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))


def main() -> int:
    try:
        from contracts.registry import ContractRegistry
        from engine.suite import load_suite

        root = Path(__file__).resolve().parent.parent
        if not (root / "config").is_dir():
            print("Health check failed: config/ directory missing", file=sys.stderr)
            return 1

        registry = ContractRegistry.load_catalog()
        for case in load_suite(root / "config" / "suites" / "fakerestapi.yaml"):
            registry.resolve(case.resource, case.method)
            registry.schema_for(case.resource)

        return 0
    except Exception as e:
        print(f"Health check failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
