"""
Structural equality for controller configurations.

Estimators and splitters do not define value equality, so a deep-copied
snapshot would never compare equal to the live object with ``==``. The
helpers here compare by type and content instead.
"""

from __future__ import annotations

import dataclasses
import types
from typing import Any, Iterable

import numpy as np


def structurally_equal(a: Any, b: Any) -> bool:
    """
    Recursively compare two objects by type and content.

    Rules, in order:
    - identical objects are equal; objects of different types are not
    - estimators (anything with ``get_params``) compare their shallow params
    - dataclasses compare field by field
    - dicts, lists and tuples compare element-wise
    - NumPy arrays compare by shape and values
    - functions, classes and modules compare by identity
    - other objects with a ``__dict__`` compare their attributes
    - everything else falls back to ``==``
    """
    if a is b:
        return True
    if type(a) is not type(b):
        return False

    if hasattr(a, 'get_params') and not isinstance(a, type):
        return structurally_equal(a.get_params(deep=False), b.get_params(deep=False))

    if dataclasses.is_dataclass(a) and not isinstance(a, type):
        return all(
            structurally_equal(getattr(a, f.name), getattr(b, f.name))
            for f in dataclasses.fields(a)
        )

    if isinstance(a, dict):
        if a.keys() != b.keys():
            return False
        return all(structurally_equal(a[k], b[k]) for k in a)

    if isinstance(a, (list, tuple)):
        if len(a) != len(b):
            return False
        return all(structurally_equal(x, y) for x, y in zip(a, b))

    if isinstance(a, np.ndarray):
        return a.shape == b.shape and bool(np.array_equal(a, b))

    if isinstance(a, (types.FunctionType, types.BuiltinFunctionType, types.MethodType,
                      types.ModuleType, type)):
        return False

    if hasattr(a, '__dict__'):
        return structurally_equal(vars(a), vars(b))

    try:
        return bool(a == b)
    except (TypeError, ValueError):
        return False


def is_same_except(a: Any, b: Any, exclude: Iterable[str]) -> bool:
    """
    Compare two configuration objects attribute by attribute, ignoring the
    attribute names in ``exclude``.
    """
    if type(a) is not type(b):
        return False
    excluded = set(exclude)
    names = _config_field_names(a)
    if names != _config_field_names(b):
        return False
    return all(
        structurally_equal(getattr(a, name), getattr(b, name))
        for name in names
        if name not in excluded
    )


def _config_field_names(obj: Any) -> tuple:
    fields = getattr(obj, 'CONFIG_FIELDS', None)
    if fields is not None:
        return tuple(fields)
    if dataclasses.is_dataclass(obj):
        return tuple(f.name for f in dataclasses.fields(obj))
    return tuple(sorted(vars(obj)))
