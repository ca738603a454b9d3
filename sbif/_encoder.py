"""SBIF encoder — host events in, tagged bytes out.

A host drives the encoder with one call per value: scalars via
``write_*``, composites via ``begin_*`` / ``end_*`` with the element count
announced up front.  ``write_value`` does the same walk over a plain value
tree, so most callers never touch the event API directly.

The encoder keeps a stack of open containers and checks every block
against it *before* writing anything: too many children, an enum payload
that isn't a seq or map, nesting past ``max_depth``.  When a check fails,
no byte of the offending block reaches the sink.  Bytes already written for
earlier siblings stay written, so write to a temp file if the output must
be all-or-nothing.
"""

from __future__ import annotations

import logging
import struct
from typing import Any, BinaryIO, List, Optional

from ._compression import wrap_writer, write_sink
from ._config import DEFAULT_CONFIG, CodecConfig
from ._constants import (
    ENUM_PAYLOAD_TAGS,
    INT64_MAX,
    INT64_MIN,
    TAG_BOOL,
    TAG_BYTES,
    TAG_CHAR,
    TAG_ENUM_VARIANT,
    TAG_F32,
    TAG_F64,
    TAG_I8,
    TAG_I16,
    TAG_I32,
    TAG_I64,
    TAG_MAP,
    TAG_NAMES,
    TAG_NULL,
    TAG_SEQ,
    TAG_STR,
    TAG_TUPLE,
    TAG_TUPLE_STRUCT,
    TAG_U8,
    TAG_U16,
    TAG_U32,
    TAG_U64,
    TAG_UNIT_VARIANT,
    U32_MAX,
    UINT64_MAX,
)
from ._errors import (
    ERR_INVALID_LENGTH,
    ERR_LENGTH_OVERFLOW,
    ERR_RECURSION_LIMIT,
    ERR_UNSUPPORTED_TYPE,
    ERR_UTF8,
    SbifError,
)
from ._header import Compression, write_header
from ._value import (
    F32,
    Char,
    EnumVariant,
    Map,
    TupleStruct,
    UnitVariant,
    _FixedInt,
    check_variant_id,
)

logger = logging.getLogger(__name__)

_INT_FORMATS = {
    TAG_I8: struct.Struct(">b"),
    TAG_I16: struct.Struct(">h"),
    TAG_I32: struct.Struct(">i"),
    TAG_I64: struct.Struct(">q"),
    TAG_U8: struct.Struct(">B"),
    TAG_U16: struct.Struct(">H"),
    TAG_U32: struct.Struct(">I"),
    TAG_U64: struct.Struct(">Q"),
}
_U32 = struct.Struct(">I")


def _u32be(n: int, what: str) -> bytes:
    if n < 0 or n > U32_MAX:
        raise SbifError(ERR_LENGTH_OVERFLOW, "{} {} exceeds u32 range".format(what, n))
    return _U32.pack(n)


class _Frame:
    """One open container: how many child blocks it still expects."""

    __slots__ = ("tag", "remaining")

    def __init__(self, tag: Optional[int], remaining: int) -> None:
        self.tag = tag            # None for the root slot
        self.remaining = remaining


class Encoder:
    """Write one SBIF stream (header + exactly one root value) to *sink*.

    The header is written immediately.  Call :meth:`finish` (or use the
    encoder as a context manager) once the root value is complete, to flush
    the compressor.  The sink itself is never closed.
    """

    def __init__(self, sink: BinaryIO, compression: Optional[Compression] = None, *,
                 config: Optional[CodecConfig] = None) -> None:
        if compression is None:
            compression = Compression()
        self.compression = compression
        self.config = config if config is not None else DEFAULT_CONFIG
        self._finished = False
        self._stack: List[_Frame] = [_Frame(None, 1)]

        header = write_header(compression)
        write_sink(sink, header)
        self._out = wrap_writer(sink, compression)
        logger.debug("sbif encode: header written (%d bytes, compression=%s)",
                     len(header), compression)

    # ── context manager ──────────────────────────────────────

    def __enter__(self) -> "Encoder":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.finish()

    # ── bookkeeping ──────────────────────────────────────────

    @property
    def depth(self) -> int:
        """Number of containers currently open."""
        return len(self._stack) - 1

    def _claim(self, tag: int) -> None:
        """Account for one new block under the innermost open container."""
        if self._finished:
            raise SbifError(ERR_INVALID_LENGTH, "encoder already finished")
        parent = self._stack[-1]
        if parent.remaining == 0:
            if parent.tag is None:
                raise SbifError(ERR_INVALID_LENGTH,
                                "stream already holds its root value")
            raise SbifError(ERR_INVALID_LENGTH,
                            "{} received more items than declared".format(TAG_NAMES[parent.tag]))
        if parent.tag == TAG_ENUM_VARIANT and tag not in ENUM_PAYLOAD_TAGS:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "enum variant payload must be a seq or map, got {}".format(TAG_NAMES[tag]))
        parent.remaining -= 1

    def _open(self, tag: int, head: bytes, children: int) -> None:
        if self.depth + 1 > self.config.max_depth:
            raise SbifError(ERR_RECURSION_LIMIT,
                            "nesting exceeds max_depth {}".format(self.config.max_depth))
        self._claim(tag)
        self._out.write(head)
        self._stack.append(_Frame(tag, children))

    def _close(self, tag: int) -> None:
        frame = self._stack[-1]
        if frame.tag != tag:
            open_name = "nothing" if frame.tag is None else TAG_NAMES[frame.tag]
            raise SbifError(ERR_INVALID_LENGTH,
                            "end_{} called while {} is open".format(
                                TAG_NAMES[tag].replace("-", "_"), open_name))
        if frame.remaining:
            raise SbifError(ERR_INVALID_LENGTH,
                            "{} closed with {} declared items missing".format(
                                TAG_NAMES[tag], frame.remaining))
        self._stack.pop()

    def _scalar(self, tag: int, payload: bytes = b"") -> None:
        self._claim(tag)
        self._out.write(bytes([tag]) + payload)

    # ── scalars ──────────────────────────────────────────────

    def write_null(self) -> None:
        self._scalar(TAG_NULL)

    def write_bool(self, value: bool) -> None:
        self._scalar(TAG_BOOL, b"\x01" if value else b"\x00")

    def _write_int(self, tag: int, value: int) -> None:
        try:
            payload = _INT_FORMATS[tag].pack(value)
        except struct.error as exc:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "{!r} out of range for {}".format(value, TAG_NAMES[tag])) from exc
        self._scalar(tag, payload)

    def write_i8(self, value: int) -> None:
        self._write_int(TAG_I8, value)

    def write_i16(self, value: int) -> None:
        self._write_int(TAG_I16, value)

    def write_i32(self, value: int) -> None:
        self._write_int(TAG_I32, value)

    def write_i64(self, value: int) -> None:
        self._write_int(TAG_I64, value)

    def write_u8(self, value: int) -> None:
        self._write_int(TAG_U8, value)

    def write_u16(self, value: int) -> None:
        self._write_int(TAG_U16, value)

    def write_u32(self, value: int) -> None:
        self._write_int(TAG_U32, value)

    def write_u64(self, value: int) -> None:
        self._write_int(TAG_U64, value)

    def write_f32(self, value: float) -> None:
        try:
            payload = struct.pack(">f", value)
        except (OverflowError, struct.error) as exc:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "{!r} out of range for f32".format(value)) from exc
        self._scalar(TAG_F32, payload)

    def write_f64(self, value: float) -> None:
        try:
            payload = struct.pack(">d", value)
        except (OverflowError, struct.error) as exc:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "{!r} is not a float".format(value)) from exc
        self._scalar(TAG_F64, payload)

    def write_char(self, value: str) -> None:
        if not isinstance(value, str) or len(value) != 1:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "char must be exactly one code point, got {!r}".format(value))
        self._scalar(TAG_CHAR, _utf8(value))

    def write_str(self, value: str) -> None:
        if not isinstance(value, str):
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "str expected, got {}".format(type(value).__name__))
        raw = _utf8(value)
        self._scalar(TAG_STR, _u32be(len(raw), "str length") + raw)

    def write_bytes(self, value: bytes) -> None:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "bytes-like expected, got {}".format(type(value).__name__))
        raw = bytes(value)
        self._scalar(TAG_BYTES, _u32be(len(raw), "bytes length") + raw)

    # ── composites ───────────────────────────────────────────

    def begin_seq(self, length: int) -> None:
        self._open(TAG_SEQ, bytes([TAG_SEQ]) + _u32be(length, "seq length"), length)

    def end_seq(self) -> None:
        self._close(TAG_SEQ)

    def begin_tuple(self, arity: int) -> None:
        self._open(TAG_TUPLE, bytes([TAG_TUPLE]) + _u32be(arity, "tuple arity"), arity)

    def end_tuple(self) -> None:
        self._close(TAG_TUPLE)

    def begin_tuple_struct(self, arity: int) -> None:
        self._open(TAG_TUPLE_STRUCT,
                   bytes([TAG_TUPLE_STRUCT]) + _u32be(arity, "tuple-struct arity"), arity)

    def end_tuple_struct(self) -> None:
        self._close(TAG_TUPLE_STRUCT)

    def begin_map(self, count: int) -> None:
        # Each pair is two blocks: key, then value.
        self._open(TAG_MAP, bytes([TAG_MAP]) + _u32be(count, "map pair count"), 2 * count)

    def end_map(self) -> None:
        self._close(TAG_MAP)

    def write_unit_variant(self, variant_id: int) -> None:
        vid = check_variant_id(variant_id)
        self._scalar(TAG_UNIT_VARIANT, _U32.pack(vid))

    def begin_enum_variant(self, variant_id: int) -> None:
        vid = check_variant_id(variant_id)
        self._open(TAG_ENUM_VARIANT, bytes([TAG_ENUM_VARIANT]) + _U32.pack(vid), 1)

    def end_enum_variant(self) -> None:
        self._close(TAG_ENUM_VARIANT)

    # ── value trees ──────────────────────────────────────────

    def write_value(self, value: Any) -> None:
        """Write *value* and everything under it.

        Objects that define ``sbif_serialize(encoder)`` are asked to emit
        themselves through the event API.
        """
        # bool is an int subclass, and every wrapper subclasses a builtin,
        # so the specific checks have to come before the general ones.
        if value is None:
            self.write_null()
        elif isinstance(value, bool):
            self.write_bool(value)
        elif isinstance(value, _FixedInt):
            self._write_int(type(value).TAG, value)
        elif isinstance(value, int):
            if INT64_MIN <= value <= INT64_MAX:
                self._write_int(TAG_I64, value)
            elif INT64_MAX < value <= UINT64_MAX:
                self._write_int(TAG_U64, value)
            else:
                raise SbifError(ERR_UNSUPPORTED_TYPE,
                                "integer {} does not fit in 64 bits".format(value))
        elif isinstance(value, F32):
            self.write_f32(value)
        elif isinstance(value, float):
            self.write_f64(value)
        elif isinstance(value, Char):
            self.write_char(value)
        elif isinstance(value, str):
            self.write_str(value)
        elif isinstance(value, (bytes, bytearray, memoryview)):
            self.write_bytes(value)
        elif isinstance(value, UnitVariant):
            self.write_unit_variant(value.variant_id)
        elif isinstance(value, EnumVariant):
            self.begin_enum_variant(value.variant_id)
            self.write_value(value.payload)
            self.end_enum_variant()
        elif isinstance(value, TupleStruct):
            self.begin_tuple_struct(len(value))
            for item in value:
                self.write_value(item)
            self.end_tuple_struct()
        elif isinstance(value, tuple):
            self.begin_tuple(len(value))
            for item in value:
                self.write_value(item)
            self.end_tuple()
        elif isinstance(value, (Map, dict)):
            pairs = list(value.items())
            self.begin_map(len(pairs))
            for k, v in pairs:
                self.write_value(k)
                self.write_value(v)
            self.end_map()
        elif isinstance(value, list):
            self.begin_seq(len(value))
            for item in value:
                self.write_value(item)
            self.end_seq()
        elif callable(getattr(value, "sbif_serialize", None)):
            value.sbif_serialize(self)
        else:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "unsupported type: {}".format(type(value).__name__))

    # ── completion ───────────────────────────────────────────

    def finish(self) -> None:
        """Check the root value is complete and flush compression."""
        if self._finished:
            return
        if self.depth:
            raise SbifError(ERR_INVALID_LENGTH,
                            "{} container(s) still open".format(self.depth))
        if self._stack[0].remaining:
            raise SbifError(ERR_INVALID_LENGTH, "no root value was written")
        self._out.finish()
        self._finished = True
        logger.debug("sbif encode: body finished (%d bytes in, %d bytes out)",
                     self._out.bytes_in, self._out.bytes_out)


def _utf8(value: str) -> bytes:
    # Lone surrogates are the only way a Python str can fail to encode.
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise SbifError(ERR_UTF8, "cannot encode {!r} as UTF-8".format(value)) from exc
