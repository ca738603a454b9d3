"""SBIF file header.

Layout (big-endian):

    u16   name length (always 4)
    4B    name, ASCII "SBIF"
    u8    format version (1)
    u8    compression id
    u32   compression level, only when compression id != 0

So a header is 8 bytes uncompressed and 12 bytes otherwise.
"""

from __future__ import annotations

import io
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import BinaryIO, Union

from ._compression import read_exact
from ._constants import (
    COMPRESSION_DEFLATE,
    COMPRESSION_GZIP,
    COMPRESSION_NONE,
    COMPRESSION_ZLIB,
    DEFAULT_COMPRESSION_LEVEL,
    HEADER_MAX_SIZE,
    HEADER_MIN_SIZE,
    SBIF_NAME,
    SBIF_VERSION,
)
from ._errors import ERR_FORMAT, ERR_UNSUPPORTED_COMPRESSION, SbifError

__all__ = ["CompressionMode", "Compression", "Header", "write_header", "read_header"]


class CompressionMode(IntEnum):
    NONE = COMPRESSION_NONE
    DEFLATE = COMPRESSION_DEFLATE
    GZIP = COMPRESSION_GZIP
    ZLIB = COMPRESSION_ZLIB


@dataclass(frozen=True)
class Compression:
    """Body compression: a mode plus a zlib level in [0..9].

    The level is meaningless for NONE and is normalized to 0, so that a
    header written for ``Compression.none()`` reads back equal.
    """

    mode: CompressionMode = CompressionMode.GZIP
    level: int = DEFAULT_COMPRESSION_LEVEL

    def __post_init__(self) -> None:
        try:
            mode = CompressionMode(self.mode)
        except ValueError:
            raise SbifError(ERR_UNSUPPORTED_COMPRESSION,
                            "unknown compression mode {!r}".format(self.mode)) from None
        object.__setattr__(self, "mode", mode)
        if mode is CompressionMode.NONE:
            object.__setattr__(self, "level", 0)
        elif not (0 <= self.level <= 9):
            raise SbifError(ERR_UNSUPPORTED_COMPRESSION,
                            "compression level {} outside [0..9]".format(self.level))

    @classmethod
    def none(cls) -> "Compression":
        return cls(CompressionMode.NONE, 0)

    @classmethod
    def deflate(cls, level: int = DEFAULT_COMPRESSION_LEVEL) -> "Compression":
        return cls(CompressionMode.DEFLATE, level)

    @classmethod
    def gzip(cls, level: int = DEFAULT_COMPRESSION_LEVEL) -> "Compression":
        return cls(CompressionMode.GZIP, level)

    @classmethod
    def zlib(cls, level: int = DEFAULT_COMPRESSION_LEVEL) -> "Compression":
        return cls(CompressionMode.ZLIB, level)

    def __str__(self) -> str:
        if self.mode is CompressionMode.NONE:
            return "none"
        return "{}({})".format(self.mode.name.lower(), self.level)


@dataclass(frozen=True)
class Header:
    version: int
    compression: Compression

    @property
    def size(self) -> int:
        if self.compression.mode is CompressionMode.NONE:
            return HEADER_MIN_SIZE
        return HEADER_MAX_SIZE


def write_header(compression: Compression) -> bytes:
    """Return the 8- or 12-byte header announcing *compression*."""
    out = struct.pack(">H", len(SBIF_NAME)) + SBIF_NAME + bytes([SBIF_VERSION])
    out += bytes([int(compression.mode)])
    if compression.mode is not CompressionMode.NONE:
        out += struct.pack(">I", compression.level)
    return out


def read_header(source: Union[bytes, bytearray, BinaryIO]) -> Header:
    """Parse a header from the front of *source* (bytes or a binary stream).

    On a stream, exactly the header bytes are consumed and the body is left
    for the caller.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        source = io.BytesIO(bytes(source))

    name_len = struct.unpack(">H", read_exact(source, 2, "header"))[0]
    # Check the length before reading the name, so a garbage length field
    # can't make us swallow the body.
    if name_len != len(SBIF_NAME):
        raise SbifError(ERR_FORMAT, "bad header name length {}".format(name_len))
    name = read_exact(source, name_len, "header")
    if name != SBIF_NAME:
        raise SbifError(ERR_FORMAT, "bad header name {!r}, expected {!r}".format(name, SBIF_NAME))

    version = read_exact(source, 1, "header")[0]
    if version != SBIF_VERSION:
        raise SbifError(ERR_FORMAT,
                        "unsupported SBIF version {}, expected {}".format(version, SBIF_VERSION))

    mode_id = read_exact(source, 1, "header")[0]
    if mode_id == COMPRESSION_NONE:
        return Header(version, Compression.none())
    if mode_id not in (COMPRESSION_DEFLATE, COMPRESSION_GZIP, COMPRESSION_ZLIB):
        raise SbifError(ERR_UNSUPPORTED_COMPRESSION,
                        "unknown compression id {}".format(mode_id))
    level = struct.unpack(">I", read_exact(source, 4, "header"))[0]
    return Header(version, Compression(CompressionMode(mode_id), level))
