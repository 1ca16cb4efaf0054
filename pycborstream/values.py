"""Typed value wrappers.

A wrapper pins a native Python value to one logical CBOR kind, so that
record code never has to tag values by hand. :class:`Value` carries a
copy of a value to be written; :class:`Slot` is the place a decoded
value is written to.
"""

from collections import namedtuple
from collections.abc import MutableMapping, MutableSequence
from enum import Enum
from math import isnan

from .codec import float_struct


class Kind(Enum):
    UINT = "uint"
    INT = "int"
    TEXT = "text"
    BYTES = "bytes"
    BOOL = "bool"
    FLOAT = "float"
    DOUBLE = "double"
    NULL = "null"
    UNDEFINED = "undefined"
    ARRAY = "array"
    MAP = "map"


# Kinds a wrapper may carry. ARRAY and MAP are reported by introspection
# only; containers are written with begin_array()/begin_map().
scalar_kinds = frozenset([
    Kind.UINT, Kind.INT, Kind.TEXT, Kind.BYTES, Kind.BOOL,
    Kind.FLOAT, Kind.DOUBLE, Kind.NULL, Kind.UNDEFINED,
    ])


def coerce_integer(obj):
    if int(obj) != obj:
        raise TypeError(
            "Object must be coercible to int without loss of information.")
    return int(obj)


def coerce_double(obj):
    coerced_obj = float(obj)
    if (not isnan(coerced_obj)) and (coerced_obj != obj):
        raise TypeError(
            "Object must be coercible to float without loss of information.")
    return coerced_obj


def coerce_float(obj):
    """Coerce *obj* to a float that survives a round trip through a
    32-bit IEEE floating point number unchanged."""
    coerced_obj = coerce_double(obj)
    if isnan(coerced_obj):
        return coerced_obj
    try:
        packed = float_struct.pack(coerced_obj)
    except OverflowError:
        packed = None
    if packed is None or float_struct.unpack(packed) != (coerced_obj,):
        raise TypeError(
            "Object must be exactly representable as a 32-bit signed float.")
    return coerced_obj


def coerce_bytes(obj):
    if isinstance(obj, bytes):
        return obj
    return bytes(obj)


def coerce_none(obj):
    if obj is not None:
        raise TypeError("null and undefined values carry no payload.")
    return None


_coercers = {
    Kind.UINT: coerce_integer,
    Kind.INT: coerce_integer,
    Kind.TEXT: str,
    Kind.BYTES: coerce_bytes,
    Kind.BOOL: bool,
    Kind.FLOAT: coerce_float,
    Kind.DOUBLE: coerce_double,
    Kind.NULL: coerce_none,
    Kind.UNDEFINED: coerce_none,
    }


def scalar_kind(kind):
    kind = Kind(kind)
    if kind not in scalar_kinds:
        raise ValueError("%s is not a scalar kind." % kind.value)
    return kind


class Value(namedtuple("Value", ["kind", "value"])):
    """Read-only typed value for the encode direction.

    The value is coerced for its kind when the wrapper is built, so a
    ``Value`` that exists is always writable as far as Python types go;
    range limits of the wire format are checked when it is appended."""

    __slots__ = ()

    def __new__(cls, kind, value=None):
        kind = scalar_kind(kind)
        return super().__new__(cls, kind, _coercers[kind](value))


def uint(value):
    return Value(Kind.UINT, value)


def sint(value):
    return Value(Kind.INT, value)


def text(value):
    return Value(Kind.TEXT, value)


def bytestring(value):
    return Value(Kind.BYTES, value)


def boolean(value):
    return Value(Kind.BOOL, value)


def float32(value):
    return Value(Kind.FLOAT, value)


def float64(value):
    return Value(Kind.DOUBLE, value)


NULL = Value(Kind.NULL)
UNDEFINED = Value(Kind.UNDEFINED)


def native_value(obj):
    """Wrap a plain Python scalar in the :class:`Value` of its natural
    kind, or return None if *obj* has no natural kind."""
    if obj is None:
        return NULL
    # bool before int: bool is a subclass of int.
    if isinstance(obj, bool):
        return boolean(obj)
    if isinstance(obj, int):
        return sint(obj)
    if isinstance(obj, float):
        return float64(obj)
    if isinstance(obj, str):
        return text(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytestring(obj)
    return None


class Slot:
    """Writable typed destination for the decode direction.

    A decoded value is always stored in ``value``. When *target* is
    given it is also written through to ``target[name]`` for mappings
    and sequences, or to the attribute *name* of any other object::

        inner = Inner()
        ctx.extract(Slot(Kind.TEXT, inner, "name"))
    """

    def __init__(self, kind, target=None, name=None):
        self.kind = scalar_kind(kind)
        if target is not None and name is None:
            raise TypeError("A slot with a target needs a name.")
        self.target = target
        self.name = name
        self.value = None

    def set(self, value):
        self.value = value
        target = self.target
        if target is None:
            return
        if isinstance(target, (MutableMapping, MutableSequence)):
            target[self.name] = value
        else:
            setattr(target, self.name, value)

    def __repr__(self):
        return "Slot(%s, value=%r)" % (self.kind.value, self.value)
