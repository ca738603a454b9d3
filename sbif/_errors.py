"""SBIF error codes and exception class.

Every failure the codec detects is raised as :class:`SbifError` with a
``.code`` taken from the constants below.  Codes are plain strings so
tests and callers can compare them without importing anything else.
"""

from __future__ import annotations

from typing import List

# ── Error codes ──────────────────────────────────────────────

ERR_FORMAT: str = "ERR_FORMAT"                          # bad name/version, trailing bytes
ERR_UNSUPPORTED_COMPRESSION: str = "ERR_UNSUPPORTED_COMPRESSION"
ERR_UNEXPECTED_TAG: str = "ERR_UNEXPECTED_TAG"          # tag byte not in 0..20
ERR_TRUNCATED: str = "ERR_TRUNCATED"                    # input ended early
ERR_UTF8: str = "ERR_UTF8"                              # invalid UTF-8 in str/char
ERR_LENGTH_OVERFLOW: str = "ERR_LENGTH_OVERFLOW"        # length/count over a limit
ERR_RECURSION_LIMIT: str = "ERR_RECURSION_LIMIT"        # nesting over max_depth
ERR_UNSUPPORTED_TYPE: str = "ERR_UNSUPPORTED_TYPE"      # no encoding rule
ERR_DECOMPRESSION: str = "ERR_DECOMPRESSION"            # corrupt compressed body
ERR_IO: str = "ERR_IO"                                  # wraps OSError
ERR_INVALID_LENGTH: str = "ERR_INVALID_LENGTH"          # declared vs supplied count

ERROR_CODES: List[str] = [
    ERR_FORMAT,
    ERR_UNSUPPORTED_COMPRESSION,
    ERR_UNEXPECTED_TAG,
    ERR_TRUNCATED,
    ERR_UTF8,
    ERR_LENGTH_OVERFLOW,
    ERR_RECURSION_LIMIT,
    ERR_UNSUPPORTED_TYPE,
    ERR_DECOMPRESSION,
    ERR_IO,
    ERR_INVALID_LENGTH,
]


class SbifError(Exception):
    """Exception for SBIF encode/decode errors.

    The `.code` attribute is one of the ERR_* strings above.  When the
    error wraps a lower-level exception (OSError, zlib.error, ...) that
    exception is chained as ``__cause__``.
    """

    def __init__(self, code: str, msg: str = "") -> None:
        super().__init__(msg or code)
        self.code = code
