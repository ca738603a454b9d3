"""SBIF decoder — recursive descent over tagged blocks, reported to a visitor.

The decoder never guesses: every step is chosen by the tag byte it just
read.  Values go to a :class:`Visitor`, which decides what Python object
each one becomes.  :class:`ValueBuilder` is the stock visitor and rebuilds
the value model from ``sbif._value``.  Hosts with their own types subclass
:class:`Visitor` and override only what they expect to see.

Decoding is all-or-nothing.  The first problem raises SbifError and
nothing partial is returned.
"""

from __future__ import annotations

import io
import logging
import struct
from typing import Any, BinaryIO, List, Optional, Tuple, Union

from ._compression import wrap_reader
from ._config import DEFAULT_CONFIG, CodecConfig
from ._constants import (
    ENUM_PAYLOAD_TAGS,
    TAG_BOOL,
    TAG_BYTES,
    TAG_CHAR,
    TAG_COUNT,
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
    TAG_U8,
    TAG_U16,
    TAG_U32,
    TAG_U64,
    TAG_UNIT_VARIANT,
)
from ._errors import (
    ERR_FORMAT,
    ERR_LENGTH_OVERFLOW,
    ERR_RECURSION_LIMIT,
    ERR_TRUNCATED,
    ERR_UNEXPECTED_TAG,
    ERR_UNSUPPORTED_TYPE,
    ERR_UTF8,
    SbifError,
)
from ._header import read_header
from ._value import (
    F32,
    I8,
    I16,
    I32,
    U8,
    U16,
    U32,
    U64,
    Char,
    EnumVariant,
    Map,
    TupleStruct,
    UnitVariant,
)

logger = logging.getLogger(__name__)

# Fixed-width numeric tags: (decoder, visitor method).
_SCALARS = {
    TAG_I8: (struct.Struct(">b"), "visit_i8"),
    TAG_I16: (struct.Struct(">h"), "visit_i16"),
    TAG_I32: (struct.Struct(">i"), "visit_i32"),
    TAG_I64: (struct.Struct(">q"), "visit_i64"),
    TAG_U8: (struct.Struct(">B"), "visit_u8"),
    TAG_U16: (struct.Struct(">H"), "visit_u16"),
    TAG_U32: (struct.Struct(">I"), "visit_u32"),
    TAG_U64: (struct.Struct(">Q"), "visit_u64"),
    TAG_F32: (struct.Struct(">f"), "visit_f32"),
    TAG_F64: (struct.Struct(">d"), "visit_f64"),
}
_U32 = struct.Struct(">I")


def _char_width(lead: int) -> int:
    """UTF-8 sequence length implied by a leading byte."""
    if lead < 0x80:
        return 1
    if lead & 0xE0 == 0xC0:
        return 2
    if lead & 0xF0 == 0xE0:
        return 3
    if lead & 0xF8 == 0xF0:
        return 4
    raise SbifError(ERR_UTF8, "invalid UTF-8 leading byte 0x{:02x} in char".format(lead))


def _utf8(raw: bytes, what: str) -> str:
    # Strict decoding rejects overlongs, surrogates and anything past
    # U+10FFFF; never substitute U+FFFD.
    try:
        return raw.decode("utf-8", errors="strict")
    except UnicodeDecodeError as exc:
        raise SbifError(ERR_UTF8, "invalid UTF-8 in {}: {}".format(what, exc)) from exc


# ── Visitor protocol ──────────────────────────────────────────

class Visitor:
    """Receives decoded values, innermost first.

    Scalars arrive through ``visit_*``.  Composites get ``begin_*`` with
    the declared count before any child is decoded, and ``end_*`` with the
    children the same visitor returned.  Whatever ``end_*`` returns is the
    composite's value.

    Every ``visit_*``/``end_*`` raises ERR_UNSUPPORTED_TYPE unless
    overridden, so a visitor only handles the shapes it was written for.
    ``begin_*`` hooks do nothing by default.  Override them to reject a
    count early or to pre-size storage.
    """

    def _reject(self, kind: str) -> Any:
        raise SbifError(ERR_UNSUPPORTED_TYPE,
                        "{} does not accept {}".format(type(self).__name__, kind))

    def visit_null(self) -> Any:
        return self._reject("null")

    def visit_bool(self, value: bool) -> Any:
        return self._reject("bool")

    def visit_i8(self, value: int) -> Any:
        return self._reject("i8")

    def visit_i16(self, value: int) -> Any:
        return self._reject("i16")

    def visit_i32(self, value: int) -> Any:
        return self._reject("i32")

    def visit_i64(self, value: int) -> Any:
        return self._reject("i64")

    def visit_u8(self, value: int) -> Any:
        return self._reject("u8")

    def visit_u16(self, value: int) -> Any:
        return self._reject("u16")

    def visit_u32(self, value: int) -> Any:
        return self._reject("u32")

    def visit_u64(self, value: int) -> Any:
        return self._reject("u64")

    def visit_f32(self, value: float) -> Any:
        return self._reject("f32")

    def visit_f64(self, value: float) -> Any:
        return self._reject("f64")

    def visit_char(self, value: str) -> Any:
        return self._reject("char")

    def visit_str(self, value: str) -> Any:
        return self._reject("str")

    def visit_bytes(self, value: bytes) -> Any:
        return self._reject("bytes")

    def begin_seq(self, length: int) -> None:
        pass

    def end_seq(self, items: List[Any]) -> Any:
        return self._reject("seq")

    def begin_tuple(self, arity: int) -> None:
        pass

    def end_tuple(self, items: List[Any]) -> Any:
        return self._reject("tuple")

    def begin_tuple_struct(self, arity: int) -> None:
        pass

    def end_tuple_struct(self, items: List[Any]) -> Any:
        return self._reject("tuple-struct")

    def begin_map(self, count: int) -> None:
        pass

    def end_map(self, pairs: List[Tuple[Any, Any]]) -> Any:
        return self._reject("map")

    def visit_unit_variant(self, variant_id: int) -> Any:
        return self._reject("unit-variant")

    def begin_enum_variant(self, variant_id: int) -> None:
        pass

    def end_enum_variant(self, variant_id: int, payload: Any) -> Any:
        return self._reject("enum-variant")


class ValueBuilder(Visitor):
    """Rebuilds the value model: the inverse of ``Encoder.write_value``.

    i64 and f64 come back as plain ``int`` and ``float`` (the default
    widths); every other width comes back wrapped, so re-encoding a
    decoded value writes the same tags.  Maps come back as ``map_type``,
    which defaults to the order- and duplicate-preserving :class:`Map`.
    """

    def __init__(self, map_type: Any = Map) -> None:
        self.map_type = map_type

    def visit_null(self) -> None:
        return None

    def visit_bool(self, value: bool) -> bool:
        return value

    def visit_i8(self, value: int) -> I8:
        return I8(value)

    def visit_i16(self, value: int) -> I16:
        return I16(value)

    def visit_i32(self, value: int) -> I32:
        return I32(value)

    def visit_i64(self, value: int) -> int:
        return value

    def visit_u8(self, value: int) -> U8:
        return U8(value)

    def visit_u16(self, value: int) -> U16:
        return U16(value)

    def visit_u32(self, value: int) -> U32:
        return U32(value)

    def visit_u64(self, value: int) -> U64:
        return U64(value)

    def visit_f32(self, value: float) -> F32:
        return F32(value)

    def visit_f64(self, value: float) -> float:
        return value

    def visit_char(self, value: str) -> Char:
        return Char(value)

    def visit_str(self, value: str) -> str:
        return value

    def visit_bytes(self, value: bytes) -> bytes:
        return value

    def end_seq(self, items: List[Any]) -> List[Any]:
        return items

    def end_tuple(self, items: List[Any]) -> tuple:
        return tuple(items)

    def end_tuple_struct(self, items: List[Any]) -> TupleStruct:
        return TupleStruct(items)

    def end_map(self, pairs: List[Tuple[Any, Any]]) -> Any:
        try:
            return self.map_type(pairs)
        except TypeError as exc:
            raise SbifError(ERR_UNSUPPORTED_TYPE,
                            "cannot build {} from map pairs: {}".format(
                                getattr(self.map_type, "__name__", self.map_type), exc)) from exc

    def visit_unit_variant(self, variant_id: int) -> UnitVariant:
        return UnitVariant(variant_id)

    def end_enum_variant(self, variant_id: int, payload: Any) -> EnumVariant:
        return EnumVariant(variant_id, payload)


# ── Decoder ───────────────────────────────────────────────────

class Decoder:
    """Read one SBIF stream from *source* (bytes or a binary stream).

    The header is parsed on construction; ``header.compression`` picks the
    body reader.  :meth:`decode` reads the root value.  On a stream the
    decoder stops right after it; :meth:`finish` checks nothing follows and
    :meth:`release` leaves the source positioned behind the stream.
    """

    def __init__(self, source: Union[bytes, bytearray, memoryview, BinaryIO], *,
                 config: Optional[CodecConfig] = None) -> None:
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        self.config = config if config is not None else DEFAULT_CONFIG
        self.header = read_header(source)
        self._in = wrap_reader(source, self.header.compression)
        logger.debug("sbif decode: header read (version=%d, compression=%s)",
                     self.header.version, self.header.compression)

    def decode(self, visitor: Optional[Visitor] = None) -> Any:
        if visitor is None:
            visitor = ValueBuilder()
        return self._block(visitor, 0)

    def finish(self) -> None:
        """Fail with ERR_FORMAT if anything follows the root value."""
        if not self._in.at_end():
            raise SbifError(ERR_FORMAT, "trailing bytes after root value")

    def release(self) -> None:
        """Leave the source positioned right after this stream.

        A compressed body is read through its end marker (verifying the
        checksum).  Input read past the marker is seeked back over; on a
        source that cannot seek it is lost, which is logged.
        """
        lost = self._in.release()
        if lost:
            logger.warning("sbif decode: %d bytes after the compressed body were "
                           "consumed from a non-seekable source", lost)

    # ── primitives ───────────────────────────────────────────

    def _read(self, n: int) -> bytes:
        return self._in.read_exact(n)

    def _read_u32(self) -> int:
        return _U32.unpack(self._read(4))[0]

    def _read_count(self, what: str, limit: int) -> int:
        n = self._read_u32()
        if n > limit:
            raise SbifError(ERR_LENGTH_OVERFLOW,
                            "{} {} exceeds configured maximum {}".format(what, n, limit))
        return n

    def _read_payload(self, what: str) -> bytes:
        n = self._read_count(what + " length", self.config.max_length)
        # Report an impossible length at the length field, before reading.
        left = self._in.remaining()
        if left is not None and n > left:
            raise SbifError(ERR_TRUNCATED,
                            "truncated {}: declared {} bytes, {} left".format(what, n, left))
        return self._read(n)

    def _enter(self, depth: int) -> None:
        if depth + 1 > self.config.max_depth:
            raise SbifError(ERR_RECURSION_LIMIT,
                            "nesting exceeds max_depth {}".format(self.config.max_depth))

    # ── recursive descent ────────────────────────────────────

    def _block(self, visitor: Visitor, depth: int) -> Any:
        tag = self._read(1)[0]
        return self._tagged(tag, visitor, depth)

    def _tagged(self, tag: int, visitor: Visitor, depth: int) -> Any:
        if tag >= TAG_COUNT:
            raise SbifError(ERR_UNEXPECTED_TAG, "unknown tag 0x{:02x}".format(tag))

        if tag == TAG_NULL:
            return visitor.visit_null()

        if tag == TAG_BOOL:
            return visitor.visit_bool(self._read(1)[0] != 0)

        scalar = _SCALARS.get(tag)
        if scalar is not None:
            codec, method = scalar
            value = codec.unpack(self._read(codec.size))[0]
            return getattr(visitor, method)(value)

        if tag == TAG_CHAR:
            lead = self._read(1)[0]
            width = _char_width(lead)
            raw = bytes([lead]) + self._read(width - 1) if width > 1 else bytes([lead])
            return visitor.visit_char(_utf8(raw, "char"))

        if tag == TAG_STR:
            return visitor.visit_str(_utf8(self._read_payload("str"), "str"))

        if tag == TAG_BYTES:
            return visitor.visit_bytes(self._read_payload("bytes"))

        if tag == TAG_UNIT_VARIANT:
            return visitor.visit_unit_variant(self._read_u32())

        # Everything below opens a nesting level.
        self._enter(depth)

        if tag == TAG_ENUM_VARIANT:
            variant_id = self._read_u32()
            payload_tag = self._read(1)[0]
            if payload_tag not in ENUM_PAYLOAD_TAGS:
                raise SbifError(
                    ERR_UNEXPECTED_TAG,
                    "enum variant payload must be seq or map, got tag 0x{:02x} ({})".format(
                        payload_tag, TAG_NAMES.get(payload_tag, "unknown")))
            visitor.begin_enum_variant(variant_id)
            payload = self._tagged(payload_tag, visitor, depth + 1)
            return visitor.end_enum_variant(variant_id, payload)

        if tag == TAG_MAP:
            count = self._read_count("map pair count", self.config.max_items)
            visitor.begin_map(count)
            pairs = []
            for _ in range(count):
                key = self._block(visitor, depth + 1)
                val = self._block(visitor, depth + 1)
                pairs.append((key, val))
            return visitor.end_map(pairs)

        # seq, tuple and tuple-struct share a layout: count + items.
        name = TAG_NAMES[tag]
        count = self._read_count(name + " length", self.config.max_items)
        if tag == TAG_SEQ:
            visitor.begin_seq(count)
        elif tag == TAG_TUPLE:
            visitor.begin_tuple(count)
        else:
            visitor.begin_tuple_struct(count)
        items = []
        for _ in range(count):
            items.append(self._block(visitor, depth + 1))
        if tag == TAG_SEQ:
            return visitor.end_seq(items)
        if tag == TAG_TUPLE:
            return visitor.end_tuple(items)
        return visitor.end_tuple_struct(items)
