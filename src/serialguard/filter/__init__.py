"""SerialGuard admission filter.

This subpackage provides:

* :func:`classify` -- the blacklist/whitelist decision function
  (:mod:`~serialguard.filter.classifier`).
* :func:`admit` / **TypeFilter** -- the admission hook that turns BLOCK
  verdicts into :class:`~serialguard.core.errors.RejectedTypeError`
  (:mod:`~serialguard.filter.hook`).
* **SafeUnpickler** -- :mod:`pickle` integration
  (:mod:`~serialguard.filter.unpickler`).
"""
from __future__ import annotations

from serialguard.filter.classifier import classify
from serialguard.filter.hook import TypeFilter, admit, rejection_for
from serialguard.filter.unpickler import SafeUnpickler, load, loads

__all__ = [
    "SafeUnpickler",
    "TypeFilter",
    "admit",
    "classify",
    "load",
    "loads",
    "rejection_for",
]
