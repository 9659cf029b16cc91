#!/usr/bin/env python3
"""SerialGuard quickstart.

Demonstrates the core workflow of SerialGuard:

1. Write a policy file with a blacklist and a whitelist.
2. Build a TypeFilter for it.
3. Unpickle a benign payload through SafeUnpickler.
4. Watch a hostile payload get rejected, and inspect the error.
5. Switch the policy to profiling mode and see it picked up live.

Run:
    python examples/quickstart.py
"""
from __future__ import annotations

import json
import logging
import pickle
import tempfile
from collections import OrderedDict
from pathlib import Path

from serialguard import (
    InMemoryAuditSink,
    RejectedTypeError,
    StoreRegistry,
    TypeFilter,
    loads,
)


class Exploit:
    def __reduce__(self):
        return (eval, ("__import__('os').getcwd()",))


def write_policy(path: Path, *, profiling: bool) -> None:
    path.write_text(json.dumps({
        "refresh_interval_ms": 0,
        "profiling": profiling,
        "blacklist_patterns": [r"^builtins\.(eval|exec|compile)$", r"^os\.", r"^subprocess\."],
        "blacklist_names": ["posix.system"],
        "whitelist_patterns": [r"^collections\.OrderedDict$", r"^datetime\."],
    }), encoding="utf-8")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with tempfile.TemporaryDirectory() as tmp:
        # -- Step 1: Write a policy --------------------------------------------
        policy = Path(tmp) / "serialguard.json"
        write_policy(policy, profiling=False)
        print(f"[1] Policy written to {policy}")

        # -- Step 2: Build a filter --------------------------------------------
        sink = InMemoryAuditSink()
        guard = TypeFilter(str(policy), registry=StoreRegistry(), audit_sink=sink)
        print(f"[2] {guard!r} in {guard.store.snapshot.mode} mode")

        # -- Step 3: Benign payload --------------------------------------------
        obj = loads(pickle.dumps(OrderedDict(a=1, b=2)), guard)
        print(f"[3] Loaded {obj!r}")

        # -- Step 4: Hostile payload -------------------------------------------
        try:
            loads(pickle.dumps(Exploit()), guard)
        except RejectedTypeError as exc:
            kind = "blacklist" if exc.is_blacklist else "whitelist"
            print(f"[4] Rejected {exc.type_name} ({kind}, rule={exc.matched_rule!r})")
            print(f"    code={exc.code}")

        # -- Step 5: Profiling mode --------------------------------------------
        write_policy(policy, profiling=True)
        verdict = guard.classify("builtins.eval")
        print(f"[5] Profiling verdict for builtins.eval: {verdict.outcome} ({verdict.reason})")
        print(f"    version={guard.store.snapshot.version}, audit records={len(sink)}")


if __name__ == "__main__":
    main()
