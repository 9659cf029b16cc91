"""Look-ahead unpickling.

:class:`SafeUnpickler` is a drop-in :class:`pickle.Unpickler` that asks
a :class:`~serialguard.filter.hook.TypeFilter` for admission before every
global it resolves (classes, functions, ``copyreg`` reconstructors), so a
hostile stream is rejected before the dangerous callable exists::

    guard = TypeFilter("/etc/myapp/serialguard.json")
    obj = SafeUnpickler(stream, type_filter=guard).load()

Type names are ``"<module>.<qualname>"``, e.g. ``"collections.OrderedDict"``
or ``"builtins.set"``.  Plain containers and scalars (``dict``, ``list``,
``str``, ``int`` ...) are encoded by dedicated opcodes and never reach
the filter.

With ``fix_imports=True`` (the default) the stock resolver renames
Python 2 globals of protocol 0-2 streams, e.g. ``__builtin__.eval`` to
``builtins.eval``.  The renamed global is admitted first, then the name
as written in the stream.
"""
from __future__ import annotations

import _compat_pickle
import io
import pickle
from typing import IO, Any

from serialguard.filter.hook import TypeFilter


def _python3_name(module: str, name: str) -> tuple[str, str]:
    """Return the global *module*.*name* after Python 2 import fixing."""
    if (module, name) in _compat_pickle.NAME_MAPPING:
        return _compat_pickle.NAME_MAPPING[(module, name)]
    if module in _compat_pickle.IMPORT_MAPPING:
        return _compat_pickle.IMPORT_MAPPING[module], name
    return module, name


class SafeUnpickler(pickle.Unpickler):
    """An unpickler that admits each global through *type_filter*.

    Raises :class:`~serialguard.core.errors.RejectedTypeError` from
    :meth:`load` when the filter blocks a type; the rejected global is
    never imported.
    """

    def __init__(
        self,
        file: IO[bytes],
        *,
        type_filter: TypeFilter,
        fix_imports: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init__(file, fix_imports=fix_imports, **kwargs)
        self._type_filter = type_filter
        self._fix_imports = fix_imports

    @property
    def type_filter(self) -> TypeFilter:
        return self._type_filter

    def find_class(self, module: str, name: str) -> Any:
        # The protocol of the stream is not exposed by the C unpickler, so
        # both spellings are admitted whenever import fixing is on.
        if self._fix_imports:
            fixed_module, fixed_name = _python3_name(module, name)
            if (fixed_module, fixed_name) != (module, name):
                self._type_filter.admit(f"{fixed_module}.{fixed_name}")
        self._type_filter.admit(f"{module}.{name}")
        return super().find_class(module, name)


def load(file: IO[bytes], source_id: str | TypeFilter, **kwargs: Any) -> Any:
    """Unpickle one object from *file* under the policy *source_id*.

    *source_id* may also be an existing :class:`TypeFilter`.
    """
    type_filter = source_id if isinstance(source_id, TypeFilter) else TypeFilter(source_id)
    return SafeUnpickler(file, type_filter=type_filter, **kwargs).load()


def loads(data: bytes, source_id: str | TypeFilter, **kwargs: Any) -> Any:
    """Unpickle one object from *data* under the policy *source_id*."""
    return load(io.BytesIO(data), source_id, **kwargs)
