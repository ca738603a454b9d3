"""SBIF value model.

Plain Python values cover most of the model:

    None   → null          str    → str
    bool   → bool          bytes  → bytes
    int    → i64 (u64 above the i64 range)
    float  → f64           list   → seq
    tuple  → tuple         dict   → map

The rest needs a width or a shape that builtins can't carry, so it gets a
thin subclass or a small dataclass.  Integer and float wrappers are real
``int``/``float`` subclasses: they compare, hash and do arithmetic like the
builtin, but remember which tag to write.  Arithmetic results fall back to
the plain builtin.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Tuple, Union

from ._constants import (
    INT64_MAX,
    INT64_MIN,
    TAG_I8,
    TAG_I16,
    TAG_I32,
    TAG_I64,
    TAG_U8,
    TAG_U16,
    TAG_U32,
    TAG_U64,
    U32_MAX,
    UINT64_MAX,
)
from ._errors import ERR_UNSUPPORTED_TYPE, SbifError

__all__ = [
    "I8", "I16", "I32", "I64", "U8", "U16", "U32", "U64",
    "F32", "Char", "TupleStruct", "Map", "UnitVariant", "EnumVariant",
    "check_variant_id",
]


# ── Fixed-width integers ─────────────────────────────────────

class _FixedInt(int):
    TAG: int = TAG_I64
    MIN: int = INT64_MIN
    MAX: int = INT64_MAX

    def __new__(cls, value: int = 0):
        v = int.__new__(cls, value)
        if v < cls.MIN or v > cls.MAX:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "{} out of range for {}".format(int(v), cls.__name__.lower()))
        return v

    def __repr__(self) -> str:
        return "{}({})".format(type(self).__name__, int(self))


class I8(_FixedInt):
    TAG, MIN, MAX = TAG_I8, -(2**7), 2**7 - 1


class I16(_FixedInt):
    TAG, MIN, MAX = TAG_I16, -(2**15), 2**15 - 1


class I32(_FixedInt):
    TAG, MIN, MAX = TAG_I32, -(2**31), 2**31 - 1


class I64(_FixedInt):
    TAG, MIN, MAX = TAG_I64, INT64_MIN, INT64_MAX


class U8(_FixedInt):
    TAG, MIN, MAX = TAG_U8, 0, 2**8 - 1


class U16(_FixedInt):
    TAG, MIN, MAX = TAG_U16, 0, 2**16 - 1


class U32(_FixedInt):
    TAG, MIN, MAX = TAG_U32, 0, U32_MAX


class U64(_FixedInt):
    TAG, MIN, MAX = TAG_U64, 0, UINT64_MAX


# ── Floats and chars ─────────────────────────────────────────

class F32(float):
    """A float that is written as IEEE-754 binary32.

    The value is rounded to binary32 on construction, so what you hold is
    exactly what decodes back (NaN payload bits aside).
    """

    def __new__(cls, value: float = 0.0):
        try:
            rounded = struct.unpack(">f", struct.pack(">f", value))[0]
        except (OverflowError, struct.error) as exc:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "{!r} out of range for f32".format(value)) from exc
        return float.__new__(cls, rounded)

    def __repr__(self) -> str:
        return "F32({})".format(float.__repr__(self))


class Char(str):
    """A single Unicode scalar value, written without a length prefix."""

    def __new__(cls, value: str):
        if not isinstance(value, str) or len(value) != 1:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "char must be exactly one code point, got {!r}".format(value))
        return str.__new__(cls, value)

    def __repr__(self) -> str:
        return "Char({})".format(str.__repr__(self))


# ── Composites ───────────────────────────────────────────────

class TupleStruct(tuple):
    """A named-by-the-host tuple: distinct tag from a plain tuple."""

    def __repr__(self) -> str:
        return "TupleStruct({})".format(tuple.__repr__(self))


Pair = Tuple[Any, Any]


class Map(list):
    """Ordered (key, value) pairs.

    Unlike ``dict`` this keeps duplicate and unhashable keys, and pair order
    is exactly the wire order.  Built from a dict, it takes the dict's
    insertion order.
    """

    def __init__(self, pairs: Union[Dict[Any, Any], Iterable[Pair]] = ()) -> None:
        if isinstance(pairs, dict):
            pairs = pairs.items()
        super().__init__(_pair(p) for p in pairs)

    # No keys()/values(): dict() would then treat a Map as a mapping and
    # index it by key.

    def items(self) -> Iterator[Pair]:
        return iter(self)

    def to_dict(self) -> Dict[Any, Any]:
        """Collapse to a dict.  Later duplicates win; keys must be hashable."""
        return {k: v for k, v in self}

    def __repr__(self) -> str:
        return "Map({})".format(list.__repr__(self))


def _pair(p: Any) -> Pair:
    if not isinstance(p, (tuple, list)) or len(p) != 2:
        raise SbifError(ERR_UNSUPPORTED_TYPE,
                        "map entries must be (key, value) pairs, got {!r}".format(p))
    return (p[0], p[1])


# ── Enum variants ────────────────────────────────────────────
# The variant id is an opaque u32 ordinal.  Mapping ids to names is the
# host's business; the codec only carries the number.

def check_variant_id(variant_id: Any) -> int:
    if isinstance(variant_id, bool) or not isinstance(variant_id, int):
        raise SbifError(ERR_UNSUPPORTED_TYPE,
                        "variant id must be an int, got {}".format(type(variant_id).__name__))
    if variant_id < 0 or variant_id > U32_MAX:
        raise SbifError(ERR_UNSUPPORTED_TYPE,
                        "variant id {} out of u32 range".format(variant_id))
    return int(variant_id)


@dataclass(frozen=True)
class UnitVariant:
    variant_id: int

    def __post_init__(self) -> None:
        check_variant_id(self.variant_id)


@dataclass(frozen=True)
class EnumVariant:
    """A tuple- or struct-shaped variant.

    ``payload`` is a list (tuple-like variant, written as a seq) or a
    Map/dict (struct-like variant, written as a map).  Bare scalars are not
    allowed: wrap a newtype payload in a one-element list.
    """

    variant_id: int
    payload: Any

    def __post_init__(self) -> None:
        check_variant_id(self.variant_id)
        if not isinstance(self.payload, (list, dict)):
            raise SbifError(
                ERR_UNSUPPORTED_TYPE,
                "enum variant payload must be a seq (list) or map (Map/dict), "
                "got {}".format(type(self.payload).__name__))
