"""Ordered pattern sets for blacklist and whitelist rules.

A :class:`PatternSet` holds an immutable, ordered tuple of regular
expression sources, the compiled matcher for each of them, and an
optional set of exact type names that are checked without any regex.

Patterns follow ``re.search`` semantics: a pattern matches when it is
found anywhere in the type name, so ``"^evil\\.Gadget$"`` is needed for an
exact match while ``"evil"`` matches every name containing it.

Compilation:
* Eager (default) -- every pattern is compiled in the constructor, so an
  invalid pattern fails the construction with :class:`PatternSyntaxError`.
* Lazy -- each slot is compiled on first iteration behind its own lock
  (double-checked), so concurrent readers never observe a half-built
  matcher and a slot is published once.  An invalid pattern raises
  :class:`PatternSyntaxError` from the iteration that reaches it.

Compiled patterns are additionally cached at module level, so a policy
reload that keeps most of its rules does not recompile them.
"""
from __future__ import annotations

import re
import threading
from collections.abc import Iterable, Iterator
from functools import lru_cache
from typing import Any

from serialguard.core.errors import ConfigurationError, PatternSyntaxError

# ---------------------------------------------------------------------------
# Compiled pattern cache (module-level)
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1024)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile and cache *pattern*.

    Raises
    ------
    re.error, OverflowError, RecursionError
        If the pattern cannot be compiled.
    """
    return re.compile(pattern)


# ---------------------------------------------------------------------------
# PatternSet
# ---------------------------------------------------------------------------

class PatternSet:
    """An ordered, immutable collection of compiled type-name matchers.

    Parameters
    ----------
    patterns:
        Ordered regex sources.  Copied on construction; ``None`` is a
        :class:`ConfigurationError` (pass an empty list instead).
    names:
        Optional exact type names (blacklists only).
    list_name:
        ``"blacklist"`` or ``"whitelist"``, used in error reports.
    lazy:
        Defer compilation of each pattern to its first use.
    """

    __slots__ = ("_sources", "_names", "_slots", "_locks", "_list_name", "_lazy")

    def __init__(
        self,
        patterns: Iterable[str] | None,
        names: Iterable[str] | None = None,
        *,
        list_name: str = "patterns",
        lazy: bool = False,
    ) -> None:
        if patterns is None:
            raise ConfigurationError(
                f"The {list_name} pattern list is missing",
                details={"list": list_name},
                resolution="Supply an empty list when no pattern is needed.",
            )
        self._list_name = list_name
        self._lazy = lazy
        self._sources: tuple[str, ...] = tuple(patterns)
        self._names: frozenset[str] = frozenset(names or ())

        for position, source in enumerate(self._sources):
            if not isinstance(source, str):
                raise PatternSyntaxError(
                    repr(source),
                    list_name=list_name,
                    position=position,
                    reason=f"expected a string, got {type(source).__name__}",
                )

        self._slots: list[re.Pattern[str] | None] = [None] * len(self._sources)
        if lazy:
            self._locks = tuple(threading.Lock() for _ in self._sources)
        else:
            self._locks = ()
            for position in range(len(self._sources)):
                self._slots[position] = self._compile(position)

    # -- public properties --------------------------------------------------

    @property
    def patterns(self) -> tuple[str, ...]:
        """Return the pattern sources in declared order."""
        return self._sources

    @property
    def names(self) -> frozenset[str]:
        """Return the exact type names of this set."""
        return self._names

    @property
    def list_name(self) -> str:
        return self._list_name

    @property
    def lazy(self) -> bool:
        return self._lazy

    @property
    def compiled_count(self) -> int:
        """Return how many slots currently hold a compiled matcher."""
        return sum(1 for slot in self._slots if slot is not None)

    # -- iteration ----------------------------------------------------------

    def __iter__(self) -> Iterator[re.Pattern[str]]:
        """Yield compiled matchers in declared order, compiling on demand."""
        for position in range(len(self._sources)):
            yield self.matcher(position)

    def __len__(self) -> int:
        return len(self._sources)

    def __bool__(self) -> bool:
        return bool(self._sources) or bool(self._names)

    def matcher(self, position: int) -> re.Pattern[str]:
        """Return the compiled matcher at *position*."""
        compiled = self._slots[position]
        if compiled is not None:
            return compiled
        with self._locks[position]:
            compiled = self._slots[position]
            if compiled is None:
                compiled = self._compile(position)
                self._slots[position] = compiled
        return compiled

    def __repr__(self) -> str:
        return (
            f"PatternSet(list_name={self._list_name!r}, "
            f"patterns={len(self._sources)}, names={len(self._names)})"
        )

    # -- internal helpers ---------------------------------------------------

    def _compile(self, position: int) -> re.Pattern[str]:
        source = self._sources[position]
        try:
            return _compile_pattern(source)
        except (re.error, OverflowError, RecursionError) as exc:
            # oversized repeat counts and deep nesting fail outside re.error
            raise PatternSyntaxError(
                source,
                list_name=self._list_name,
                position=position,
                reason=str(exc),
            ) from exc

    # -- cache management ---------------------------------------------------

    @staticmethod
    def clear_cache() -> None:
        """Clear the module-level compiled pattern cache."""
        _compile_pattern.cache_clear()

    @staticmethod
    def cache_info() -> Any:
        """Return module-level compile cache statistics."""
        return _compile_pattern.cache_info()
