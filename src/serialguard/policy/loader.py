"""Policy source loaders.

:class:`JsonPolicyLoader` reads policies from JSON files.  A policy file
holds exactly the fields of :class:`~serialguard.core.types.ParsedPolicy`::

    {
        "refresh_interval_ms": 6000,
        "profiling": false,
        "blacklist_patterns": ["^org\\\\.apache\\\\.commons\\\\.collections\\\\.functors\\\\."],
        "blacklist_names": ["java.lang.ProcessBuilder"],
        "whitelist_patterns": ["^com\\\\.example\\\\."]
    }

The staleness marker of a file is ``(st_mtime_ns, st_size)``: a changed
size is caught even when a rewrite lands within the mtime granularity.
"""
from __future__ import annotations

import os

from pydantic import ValidationError

from serialguard.core.errors import MalformedPolicy, PolicySourceNotFound
from serialguard.core.types import ParsedPolicy


class JsonPolicyLoader:
    """Loads :class:`ParsedPolicy` values from JSON files.

    Implements the :class:`~serialguard.core.interfaces.PolicyLoader`
    protocol.
    """

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    def canonical_id(self, source_id: str) -> str:
        """Return the absolute, normalised form of *source_id*."""
        path = os.fspath(source_id) if source_id is not None else ""
        if not path:
            raise PolicySourceNotFound(
                "Policy path is empty",
                details={"source_id": path},
            )
        return os.path.abspath(path)

    def marker(self, source_id: str) -> tuple[int, int]:
        try:
            st = os.stat(source_id)
        except OSError as exc:
            raise PolicySourceNotFound(
                f"Cannot stat policy file '{source_id}': {exc.strerror}",
                details={"source_id": source_id, "errno": exc.errno},
            ) from exc
        return (st.st_mtime_ns, st.st_size)

    def load(self, source_id: str) -> ParsedPolicy:
        try:
            with open(source_id, encoding=self._encoding) as fh:
                raw = fh.read()
        except OSError as exc:
            raise PolicySourceNotFound(
                f"Cannot read policy file '{source_id}': {exc.strerror}",
                details={"source_id": source_id, "errno": exc.errno},
            ) from exc
        except UnicodeDecodeError as exc:
            raise MalformedPolicy(
                f"Policy file '{source_id}' is not valid {self._encoding}",
                details={"source_id": source_id},
            ) from exc

        try:
            return ParsedPolicy.model_validate_json(raw)
        except ValidationError as exc:
            raise MalformedPolicy(
                f"Policy file '{source_id}' is malformed: "
                f"{exc.error_count()} validation error(s)",
                details={
                    "source_id": source_id,
                    "errors": [
                        {"loc": list(err["loc"]), "msg": err["msg"]}
                        for err in exc.errors()
                    ],
                },
            ) from exc
