from __future__ import annotations

from dataclasses import dataclass

from ._constants import HARD_MAX_DEPTH, MAX_DEPTH, MAX_ITEMS, MAX_LENGTH, U32_MAX

__all__ = ["CodecConfig", "DEFAULT_CONFIG"]


@dataclass(frozen=True)
class CodecConfig:
    """Safety limits shared by :class:`Encoder` and :class:`Decoder`.

    Fields
    ------
    max_depth : int, default=128
        Maximum container nesting.  The root value sits at depth 0; every
        seq, tuple, tuple-struct, map or enum-variant adds one level.
        Must be in [1..256].
    max_length : int, default=256 MiB
        Largest str/bytes payload the decoder accepts.  Must be in
        [0..2^32-1].
    max_items : int, default=2^24
        Largest element (or pair) count per composite the decoder accepts.
        Must be in [0..2^32-1].

    Limits above the configured maximum raise ERR_LENGTH_OVERFLOW or
    ERR_RECURSION_LIMIT.  Bad bounds raise ``ValueError`` at construction.
    """

    max_depth: int = MAX_DEPTH
    max_length: int = MAX_LENGTH
    max_items: int = MAX_ITEMS

    def __post_init__(self) -> None:
        if not (1 <= int(self.max_depth) <= HARD_MAX_DEPTH):
            raise ValueError(
                "CodecConfig.max_depth must be in [1..{}]".format(HARD_MAX_DEPTH))
        if not (0 <= int(self.max_length) <= U32_MAX):
            raise ValueError("CodecConfig.max_length must be in [0..2^32-1]")
        if not (0 <= int(self.max_items) <= U32_MAX):
            raise ValueError("CodecConfig.max_items must be in [0..2^32-1]")


DEFAULT_CONFIG = CodecConfig()
