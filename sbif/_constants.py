"""SBIF format constants — header framing, the 21-entry tag table, limits.

Everything here is fixed by the wire format.  Changing a value changes the
bytes on disk, so treat this module as append-only.
"""

from __future__ import annotations

from typing import Dict

# ── Header framing ───────────────────────────────────────────
# u16be name length + name + u8 version + u8 compression id [+ u32be level].
# The name is length-prefixed rather than fixed, so a reader checks the
# length field first and never reads a runaway name.
SBIF_NAME = b"SBIF"
SBIF_VERSION: int = 1

HEADER_MIN_SIZE: int = 2 + len(SBIF_NAME) + 1 + 1   # 8, compression "none"
HEADER_MAX_SIZE: int = HEADER_MIN_SIZE + 4           # 12, with a level

# ── Compression discriminants ────────────────────────────────
COMPRESSION_NONE: int = 0
COMPRESSION_DEFLATE: int = 1
COMPRESSION_GZIP: int = 2
COMPRESSION_ZLIB: int = 3

DEFAULT_COMPRESSION_LEVEL: int = 6

# ── Tag table (single byte each) ─────────────────────────────
TAG_NULL: int = 0
TAG_BOOL: int = 1
TAG_I8: int = 2
TAG_I16: int = 3
TAG_I32: int = 4
TAG_I64: int = 5
TAG_U8: int = 6
TAG_U16: int = 7
TAG_U32: int = 8
TAG_U64: int = 9
TAG_F32: int = 10
TAG_F64: int = 11
TAG_CHAR: int = 12          # 1-4 UTF-8 bytes, width from the leading byte
TAG_STR: int = 13           # u32be byte length + UTF-8
TAG_BYTES: int = 14         # u32be byte length + raw
TAG_SEQ: int = 15           # u32be count + tagged items
TAG_TUPLE: int = 16         # u32be arity + tagged items
TAG_UNIT_VARIANT: int = 17  # u32be variant id, nothing else
TAG_ENUM_VARIANT: int = 18  # u32be variant id + one SEQ or MAP block
TAG_TUPLE_STRUCT: int = 19  # u32be arity + tagged items
TAG_MAP: int = 20           # u32be pair count + (key, value) blocks

TAG_COUNT: int = 21

TAG_NAMES: Dict[int, str] = {
    TAG_NULL: "null",
    TAG_BOOL: "bool",
    TAG_I8: "i8",
    TAG_I16: "i16",
    TAG_I32: "i32",
    TAG_I64: "i64",
    TAG_U8: "u8",
    TAG_U16: "u16",
    TAG_U32: "u32",
    TAG_U64: "u64",
    TAG_F32: "f32",
    TAG_F64: "f64",
    TAG_CHAR: "char",
    TAG_STR: "str",
    TAG_BYTES: "bytes",
    TAG_SEQ: "seq",
    TAG_TUPLE: "tuple",
    TAG_UNIT_VARIANT: "unit-variant",
    TAG_ENUM_VARIANT: "enum-variant",
    TAG_TUPLE_STRUCT: "tuple-struct",
    TAG_MAP: "map",
}

# The enum-variant payload must be one of these, so the decoder can pick
# the payload routine from the payload's own tag.
ENUM_PAYLOAD_TAGS = (TAG_SEQ, TAG_MAP)

# ── Integer ranges ───────────────────────────────────────────
# Python ints are unbounded, so every width is range-checked explicitly.
U32_MAX: int = 2**32 - 1
INT64_MIN: int = -(2**63)
INT64_MAX: int = 2**63 - 1
UINT64_MAX: int = 2**64 - 1

# ── Default safety limits ────────────────────────────────────
# Decoding untrusted input must not exhaust the stack or memory.
# Each level of nesting costs the decoder two Python frames, so the
# hard ceiling keeps well inside the interpreter's recursion limit.
MAX_DEPTH: int = 128
HARD_MAX_DEPTH: int = 256
MAX_LENGTH: int = 256 * 1024 * 1024   # str/bytes payload, 256 MiB
MAX_ITEMS: int = 1 << 24              # elements or pairs per composite
