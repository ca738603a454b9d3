"""Property tests over seeded random value trees.

Generators are deterministic per seed.  Tune them from the environment:

    SBIF_SEED=7 SBIF_TRIALS=2000 python -m pytest tests/test_properties.py
"""

from __future__ import annotations

import os
import random
import sys
import unittest
from typing import Any

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sbif import (
    F32,
    I8,
    I16,
    I32,
    U8,
    U16,
    U32,
    U64,
    Char,
    Compression,
    EnumVariant,
    Map,
    SbifError,
    TupleStruct,
    UnitVariant,
    ERR_TRUNCATED,
    ERROR_CODES,
    decode,
    encode,
)

SEED = int(os.environ.get("SBIF_SEED", "1337"))
TRIALS = int(os.environ.get("SBIF_TRIALS", "200"))
MAX_GEN_DEPTH = int(os.environ.get("SBIF_GEN_MAX_DEPTH", "5"))
MAX_LIST = int(os.environ.get("SBIF_GEN_MAX_LIST", "5"))
MAX_STR = int(os.environ.get("SBIF_GEN_MAX_STR", "16"))

MODES = [Compression.none(), Compression.deflate(), Compression.gzip(), Compression.zlib()]


def rand_char(rng: random.Random) -> str:
    # Scalars only: the surrogate block can't be encoded.
    r = rng.random()
    if r < 0.6:
        return chr(rng.randint(0x20, 0x7E))
    if r < 0.75:
        return chr(rng.randint(0xA0, 0x7FF))
    if r < 0.9:
        return chr(rng.choice((rng.randint(0x800, 0xD7FF), rng.randint(0xE000, 0xFFFF))))
    return chr(rng.randint(0x10000, 0x10FFFF))


def rand_str(rng: random.Random) -> str:
    return "".join(rand_char(rng) for _ in range(rng.randint(0, MAX_STR)))


def rand_scalar(rng: random.Random) -> Any:
    kind = rng.randrange(16)
    if kind == 0:
        return None
    if kind == 1:
        return rng.random() < 0.5
    if kind == 2:
        return I8(rng.randint(I8.MIN, I8.MAX))
    if kind == 3:
        return I16(rng.randint(I16.MIN, I16.MAX))
    if kind == 4:
        return I32(rng.randint(I32.MIN, I32.MAX))
    if kind == 5:
        return rng.randint(-(2**63), 2**63 - 1)
    if kind == 6:
        return U8(rng.randint(0, U8.MAX))
    if kind == 7:
        return U16(rng.randint(0, U16.MAX))
    if kind == 8:
        return U32(rng.randint(0, U32.MAX))
    if kind == 9:
        return U64(rng.randint(0, U64.MAX))
    if kind == 10:
        return F32(rng.uniform(-1e6, 1e6))
    if kind == 11:
        return rng.choice((0.0, -1.5, float("inf"), rng.uniform(-1e300, 1e300)))
    if kind == 12:
        return Char(rand_char(rng))
    if kind == 13:
        return rand_str(rng)
    if kind == 14:
        return bytes(rng.getrandbits(8) for _ in range(rng.randint(0, MAX_STR)))
    return UnitVariant(rng.randint(0, 2**32 - 1))


def gen_value(rng: random.Random, depth: int = 0) -> Any:
    if depth >= MAX_GEN_DEPTH or rng.random() < 0.4:
        return rand_scalar(rng)

    def items():
        return [gen_value(rng, depth + 1) for _ in range(rng.randint(0, MAX_LIST))]

    kind = rng.randrange(5)
    if kind == 0:
        return items()
    if kind == 1:
        return tuple(items())
    if kind == 2:
        return TupleStruct(items())
    if kind == 3:
        return Map((gen_value(rng, depth + 1), v) for v in items())
    payload = items() if rng.random() < 0.5 else Map((rand_str(rng), v) for v in items())
    return EnumVariant(rng.randint(0, 2**32 - 1), payload)


class TestProperties(unittest.TestCase):
    def test_round_trip(self):
        rng = random.Random(SEED)
        for trial in range(TRIALS):
            value = gen_value(rng)
            comp = MODES[trial % len(MODES)]
            with self.subTest(trial=trial, compression=str(comp)):
                self.assertEqual(decode(encode(value, comp)), value)

    def test_reencoding_is_byte_stable(self):
        rng = random.Random(SEED + 1)
        for trial in range(TRIALS):
            data = encode(gen_value(rng), Compression.none())
            with self.subTest(trial=trial):
                self.assertEqual(encode(decode(data), Compression.none()), data)

    def test_truncation_is_always_truncated(self):
        rng = random.Random(SEED + 2)
        for trial in range(max(1, TRIALS // 10)):
            data = encode(gen_value(rng), Compression.none())
            for cut in range(len(data)):
                try:
                    decode(data[:cut])
                except SbifError as e:
                    self.assertEqual(e.code, ERR_TRUNCATED,
                                     "trial {} cut {}: {}".format(trial, cut, e))
                else:
                    self.fail("trial {} cut {}: decoded a truncated stream".format(trial, cut))

    def test_mutation_never_escapes_sbif_error(self):
        rng = random.Random(SEED + 3)
        for trial in range(TRIALS):
            comp = Compression.none() if trial % 2 else Compression.gzip()
            data = bytearray(encode(gen_value(rng), comp))
            pos = rng.randrange(len(data))
            data[pos] = rng.getrandbits(8)
            try:
                decode(bytes(data))
            except SbifError as e:
                self.assertIn(e.code, ERROR_CODES)


if __name__ == "__main__":
    unittest.main()
