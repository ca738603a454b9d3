"""sbif — Structured Binary Interchange Format.

Encode tree-shaped values into a compact, self-describing, tag-prefixed
binary stream and back, with optional zlib-family body compression.

Quick start:
    >>> from sbif import encode, decode, Compression, I32
    >>> data = encode({"street": "10 Downing Street", "city": "London"},
    ...               Compression.none())
    >>> decode(data).to_dict()
    {'street': '10 Downing Street', 'city': 'London'}
    >>> encode(I32(-1), Compression.none())[8:]
    b'\\x04\\xff\\xff\\xff\\xff'

Stream layout: an 8- or 12-byte header (``SBIF``, version, compression),
then exactly one tagged root value.  Hosts with their own types drive
:class:`Encoder` events directly, or give their objects an
``sbif_serialize(encoder)`` method, and read them back with a
:class:`Visitor` subclass.
"""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from ._config import DEFAULT_CONFIG, CodecConfig
from ._constants import (
    HEADER_MAX_SIZE,
    HEADER_MIN_SIZE,
    SBIF_NAME,
    SBIF_VERSION,
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
    TAG_TUPLE_STRUCT,
    TAG_U8,
    TAG_U16,
    TAG_U32,
    TAG_U64,
    TAG_UNIT_VARIANT,
)
from ._decoder import Decoder, ValueBuilder, Visitor
from ._encoder import Encoder
from ._errors import (
    ERR_DECOMPRESSION,
    ERR_FORMAT,
    ERR_INVALID_LENGTH,
    ERR_IO,
    ERR_LENGTH_OVERFLOW,
    ERR_RECURSION_LIMIT,
    ERR_TRUNCATED,
    ERR_UNEXPECTED_TAG,
    ERR_UNSUPPORTED_COMPRESSION,
    ERR_UNSUPPORTED_TYPE,
    ERR_UTF8,
    ERROR_CODES,
    SbifError,
)
from ._header import Compression, CompressionMode, Header, read_header, write_header
from ._value import (
    F32,
    I8,
    I16,
    I32,
    I64,
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

__version__ = "1.0.0"

__all__ = [
    # Public API functions
    "encode",
    "encode_to",
    "encode_file",
    "decode",
    "decode_from",
    "decode_file",
    "write_header",
    "read_header",
    # Streaming / host binding
    "Encoder",
    "Decoder",
    "Visitor",
    "ValueBuilder",
    # Header and config
    "Compression",
    "CompressionMode",
    "Header",
    "CodecConfig",
    "DEFAULT_CONFIG",
    # Value model
    "I8", "I16", "I32", "I64", "U8", "U16", "U32", "U64",
    "F32", "Char", "TupleStruct", "Map", "UnitVariant", "EnumVariant",
    # Exception
    "SbifError",
    "ERROR_CODES",
    # Error codes
    "ERR_FORMAT",
    "ERR_UNSUPPORTED_COMPRESSION",
    "ERR_UNEXPECTED_TAG",
    "ERR_TRUNCATED",
    "ERR_UTF8",
    "ERR_LENGTH_OVERFLOW",
    "ERR_RECURSION_LIMIT",
    "ERR_UNSUPPORTED_TYPE",
    "ERR_DECOMPRESSION",
    "ERR_IO",
    "ERR_INVALID_LENGTH",
    # Format constants
    "SBIF_NAME",
    "SBIF_VERSION",
    "HEADER_MIN_SIZE",
    "HEADER_MAX_SIZE",
    "TAG_COUNT",
    "TAG_NAMES",
    "TAG_NULL", "TAG_BOOL", "TAG_I8", "TAG_I16", "TAG_I32", "TAG_I64",
    "TAG_U8", "TAG_U16", "TAG_U32", "TAG_U64", "TAG_F32", "TAG_F64",
    "TAG_CHAR", "TAG_STR", "TAG_BYTES", "TAG_SEQ", "TAG_TUPLE",
    "TAG_UNIT_VARIANT", "TAG_ENUM_VARIANT", "TAG_TUPLE_STRUCT", "TAG_MAP",
]


# ── Encoding ──────────────────────────────────────────────────

def encode_to(sink: BinaryIO, value: Any, compression: Optional[Compression] = None, *,
              config: Optional[CodecConfig] = None) -> None:
    """Write header + *value* to a binary stream.  The stream is not closed."""
    with Encoder(sink, compression, config=config) as enc:
        enc.write_value(value)


def encode(value: Any, compression: Optional[Compression] = None, *,
           config: Optional[CodecConfig] = None) -> bytes:
    """Return the complete SBIF stream for *value*.

    *compression* defaults to ``Compression.gzip(6)``.
    """
    buf = io.BytesIO()
    encode_to(buf, value, compression, config=config)
    return buf.getvalue()


def encode_file(path: Union[str, Path], value: Any, compression: Optional[Compression] = None, *,
                config: Optional[CodecConfig] = None) -> None:
    """Atomically write *value* to *path*.

    The stream goes to a sibling ``.tmp`` file that replaces *path* only
    once encoding succeeded, so readers never see a half-written file.
    """
    p = Path(path)
    tmp = p.with_suffix(p.suffix + ".tmp")
    try:
        with open(tmp, "wb") as f:
            encode_to(f, value, compression, config=config)
        tmp.replace(p)
    except OSError as exc:
        tmp.unlink(missing_ok=True)
        raise SbifError(ERR_IO, "cannot write {}: {}".format(p, exc)) from exc
    except SbifError:
        tmp.unlink(missing_ok=True)
        raise


# ── Decoding ──────────────────────────────────────────────────

def decode_from(source: BinaryIO, visitor: Optional[Visitor] = None, *,
                config: Optional[CodecConfig] = None) -> Any:
    """Read one value from a binary stream.

    Reading stops right after the stream; anything behind it is left in
    *source*, so back-to-back streams can be read one call at a time.  A
    compressed body is inflated through its end marker and checksum; input
    read past the marker is handed back by seeking, so on a source that
    cannot seek those bytes are lost.
    """
    dec = Decoder(source, config=config)
    value = dec.decode(visitor)
    dec.release()
    return value


def decode(data: Union[bytes, bytearray, memoryview], visitor: Optional[Visitor] = None, *,
           config: Optional[CodecConfig] = None) -> Any:
    """Decode a complete SBIF stream held in memory.

    Unlike :func:`decode_from`, bytes after the root value are an error
    (ERR_FORMAT).  For compressed bodies this also reads through to the end
    marker, so the gzip/zlib checksum is verified.
    """
    dec = Decoder(data, config=config)
    value = dec.decode(visitor)
    dec.finish()
    return value


def decode_file(path: Union[str, Path], visitor: Optional[Visitor] = None, *,
                config: Optional[CodecConfig] = None) -> Any:
    """Decode the SBIF file at *path*, rejecting trailing bytes."""
    try:
        with open(path, "rb") as f:
            dec = Decoder(f, config=config)
            value = dec.decode(visitor)
            dec.finish()
    except OSError as exc:
        raise SbifError(ERR_IO, "cannot read {}: {}".format(path, exc)) from exc
    return value
