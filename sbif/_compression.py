"""SBIF compression adapter — raw passthrough or a zlib-family body.

The header names the compression mode; everything after it goes through
one of the wrappers below.  Writers compress on the fly.  Readers inflate
in bounded chunks, so a tiny hostile body cannot make us allocate the
whole declared payload before we find out it's a lie.

Modes:

    none     (0)  : bytes pass through untouched
    deflate  (1)  : raw DEFLATE, no framing (RFC 1951)
    gzip     (2)  : one gzip member, CRC-32 trailer (RFC 1952)
    zlib     (3)  : zlib framing, Adler-32 trailer (RFC 1950)
"""

from __future__ import annotations

import io
import zlib
from typing import Any, BinaryIO, List, Optional

from ._constants import (
    COMPRESSION_DEFLATE,
    COMPRESSION_GZIP,
    COMPRESSION_NONE,
    COMPRESSION_ZLIB,
)
from ._errors import (
    ERR_DECOMPRESSION,
    ERR_IO,
    ERR_TRUNCATED,
    ERR_UNSUPPORTED_COMPRESSION,
    SbifError,
)

CHUNK_SIZE: int = 64 * 1024

# zlib's wbits selects the framing: negative = raw, +16 = gzip.
_WBITS = {
    COMPRESSION_DEFLATE: -zlib.MAX_WBITS,
    COMPRESSION_GZIP: 16 + zlib.MAX_WBITS,
    COMPRESSION_ZLIB: zlib.MAX_WBITS,
}


# ── Raw stream helpers ───────────────────────────────────────

def read_source(source: BinaryIO, n: int) -> bytes:
    """A single ``source.read(n)``; OSError becomes ERR_IO."""
    try:
        data = source.read(n)
    except OSError as exc:
        raise SbifError(ERR_IO, "read failed: {}".format(exc)) from exc
    return data or b""


def read_exact(source: BinaryIO, n: int, what: str = "input") -> bytes:
    """Read exactly n bytes or raise ERR_TRUNCATED.

    Short reads are retried until the source reports EOF, so pipes and
    sockets that return partial chunks are fine.
    """
    parts: List[bytes] = []
    got = 0
    while got < n:
        chunk = read_source(source, min(n - got, CHUNK_SIZE))
        if not chunk:
            raise SbifError(
                ERR_TRUNCATED,
                "truncated {}: needed {} bytes, got {}".format(what, n, got))
        parts.append(chunk)
        got += len(chunk)
    return b"".join(parts)


def write_sink(sink: BinaryIO, data: bytes) -> None:
    try:
        sink.write(data)
    except OSError as exc:
        raise SbifError(ERR_IO, "write failed: {}".format(exc)) from exc


def _flush_sink(sink: BinaryIO) -> None:
    flush = getattr(sink, "flush", None)
    if flush is None:
        return
    try:
        flush()
    except OSError as exc:
        raise SbifError(ERR_IO, "flush failed: {}".format(exc)) from exc


# ── Writers ──────────────────────────────────────────────────

class _PlainWriter:
    def __init__(self, sink: BinaryIO) -> None:
        self._sink = sink
        self.bytes_in = 0
        self.bytes_out = 0

    def write(self, data: bytes) -> None:
        write_sink(self._sink, data)
        self.bytes_in += len(data)
        self.bytes_out += len(data)

    def finish(self) -> None:
        _flush_sink(self._sink)


class _DeflateWriter:
    def __init__(self, sink: BinaryIO, level: int, wbits: int) -> None:
        self._sink = sink
        self._c = zlib.compressobj(level, zlib.DEFLATED, wbits)
        self.bytes_in = 0
        self.bytes_out = 0

    def write(self, data: bytes) -> None:
        self.bytes_in += len(data)
        out = self._c.compress(data)
        if out:
            write_sink(self._sink, out)
            self.bytes_out += len(out)

    def finish(self) -> None:
        out = self._c.flush()
        if out:
            write_sink(self._sink, out)
            self.bytes_out += len(out)
        _flush_sink(self._sink)


# ── Readers ──────────────────────────────────────────────────

class _PlainReader:
    def __init__(self, source: BinaryIO) -> None:
        self._source = source

    def read_exact(self, n: int) -> bytes:
        return read_exact(self._source, n, "body")

    def remaining(self) -> Optional[int]:
        # Only an in-memory buffer can answer without consuming anything.
        if isinstance(self._source, io.BytesIO):
            with self._source.getbuffer() as view:
                return len(view) - self._source.tell()
        return None

    def at_end(self) -> bool:
        return not read_source(self._source, 1)

    def release(self) -> int:
        return 0


class _InflateReader:
    def __init__(self, source: BinaryIO, wbits: int) -> None:
        self._source = source
        self._d = zlib.decompressobj(wbits)
        self._buf = bytearray()
        self._drained = False

    def _fill(self, n: int) -> None:
        while len(self._buf) < n and not self._d.eof:
            if self._drained:
                raise SbifError(ERR_DECOMPRESSION,
                                "compressed body ended before its end marker")
            data = self._d.unconsumed_tail
            if not data:
                data = read_source(self._source, CHUNK_SIZE)
            try:
                if data:
                    self._buf += self._d.decompress(data, CHUNK_SIZE)
                else:
                    # Source exhausted: whatever zlib still holds is all
                    # we will ever get.  decompress() is off-limits after this.
                    self._drained = True
                    self._buf += self._d.flush()
            except zlib.error as exc:
                raise SbifError(ERR_DECOMPRESSION,
                                "corrupt compressed body: {}".format(exc)) from exc

    def read_exact(self, n: int) -> bytes:
        if len(self._buf) < n:
            self._fill(n)
        if len(self._buf) < n:
            raise SbifError(
                ERR_TRUNCATED,
                "truncated body: needed {} bytes, got {}".format(n, len(self._buf)))
        data = bytes(self._buf[:n])
        del self._buf[:n]
        return data

    def remaining(self) -> Optional[int]:
        return None

    def at_end(self) -> bool:
        # Inflating to the end marker also verifies the CRC/Adler trailer.
        self._fill(1)
        if self._buf or self._d.unused_data:
            return False
        return not read_source(self._source, 1)

    def release(self) -> int:
        """Inflate through the end marker, then give back what was over-read.

        Bytes pulled from the source past the end marker are seeked back
        over when the source is seekable.  Returns how many could not be
        given back.
        """
        while not self._d.eof:
            del self._buf[:]
            self._fill(1)
        del self._buf[:]
        extra = len(self._d.unused_data)
        if not extra:
            return 0
        seekable = getattr(self._source, "seekable", None)
        if seekable is None or not seekable():
            return extra
        try:
            self._source.seek(-extra, io.SEEK_CUR)
        except OSError as exc:
            raise SbifError(ERR_IO, "seek failed: {}".format(exc)) from exc
        return 0


# ── Public entry points ──────────────────────────────────────

def wrap_writer(sink: BinaryIO, compression: Any):
    """Wrap *sink* so every body byte written goes through *compression*."""
    mode = int(compression.mode)
    if mode == COMPRESSION_NONE:
        return _PlainWriter(sink)
    if mode in _WBITS:
        return _DeflateWriter(sink, compression.level, _WBITS[mode])
    raise SbifError(ERR_UNSUPPORTED_COMPRESSION,
                    "unsupported compression mode {}".format(mode))


def wrap_reader(source: BinaryIO, compression: Any):
    """Wrap *source* to undo *compression*, which must come from the header."""
    mode = int(compression.mode)
    if mode == COMPRESSION_NONE:
        return _PlainReader(source)
    if mode in _WBITS:
        return _InflateReader(source, _WBITS[mode])
    raise SbifError(ERR_UNSUPPORTED_COMPRESSION,
                    "unsupported compression mode {}".format(mode))
