"""Host binding through the event API and a Visitor subclass.

The host below owns two types: an ``Address`` record (written as a map)
and a ``Shape`` enum whose variants are ordinals 0..2.  Nothing in sbif
knows their names; the binding maps them to events and back.
"""

from __future__ import annotations

import enum
import os
import sys
import unittest
from dataclasses import dataclass
from typing import Any, List, Tuple

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sbif import (
    Compression,
    SbifError,
    U8,
    Visitor,
    ERR_INVALID_LENGTH,
    ERR_UNSUPPORTED_TYPE,
    decode,
    encode,
)


@dataclass
class Address:
    street: str
    city: str

    def sbif_serialize(self, enc) -> None:
        enc.begin_map(2)
        enc.write_str("street")
        enc.write_str(self.street)
        enc.write_str("city")
        enc.write_str(self.city)
        enc.end_map()


class ShapeKind(enum.IntEnum):
    CIRCLE = 0
    RECT = 1
    EMPTY = 2


@dataclass
class Shape:
    kind: ShapeKind
    dims: Tuple[float, ...] = ()

    def sbif_serialize(self, enc) -> None:
        if self.kind is ShapeKind.EMPTY:
            enc.write_unit_variant(self.kind)
            return
        enc.begin_enum_variant(self.kind)
        enc.begin_seq(len(self.dims))
        for d in self.dims:
            enc.write_f64(d)
        enc.end_seq()
        enc.end_enum_variant()


class HostVisitor(Visitor):
    """Builds Address and Shape objects; everything else is refused."""

    def visit_str(self, value: str) -> str:
        return value

    def visit_f64(self, value: float) -> float:
        return value

    def end_seq(self, items: List[Any]) -> List[Any]:
        return items

    def end_map(self, pairs: List[Tuple[Any, Any]]) -> Address:
        fields = dict(pairs)
        if set(fields) != {"street", "city"}:
            raise SbifError(ERR_INVALID_LENGTH, "Address expects street and city")
        return Address(**fields)

    def visit_unit_variant(self, variant_id: int) -> Shape:
        return Shape(ShapeKind(variant_id))

    def end_enum_variant(self, variant_id: int, payload: Any) -> Shape:
        return Shape(ShapeKind(variant_id), tuple(payload))


class RecordingVisitor(Visitor):
    def __init__(self):
        self.events: List[str] = []

    def visit_u8(self, value):
        self.events.append("u8 {}".format(value))
        return value

    def begin_seq(self, length):
        self.events.append("begin_seq {}".format(length))

    def end_seq(self, items):
        self.events.append("end_seq {}".format(items))
        return items


class PairVisitor(Visitor):
    """Accepts only 2-tuples of strings."""

    def visit_str(self, value):
        return value

    def begin_tuple(self, arity):
        if arity != 2:
            raise SbifError(ERR_INVALID_LENGTH, "expected a pair, got arity {}".format(arity))

    def end_tuple(self, items):
        return tuple(items)


class TestHostBinding(unittest.TestCase):
    def test_record(self):
        addr = Address("10 Downing Street", "London")
        for comp in (Compression.none(), Compression.deflate()):
            with self.subTest(compression=str(comp)):
                self.assertEqual(decode(encode(addr, comp), HostVisitor()), addr)

    def test_record_bytes_match_plain_map(self):
        addr = Address("10 Downing Street", "London")
        plain = {"street": "10 Downing Street", "city": "London"}
        self.assertEqual(encode(addr, Compression.none()), encode(plain, Compression.none()))

    def test_enum_ordinals(self):
        shapes = [Shape(ShapeKind.CIRCLE, (1.5,)), Shape(ShapeKind.RECT, (2.0, 3.0)),
                  Shape(ShapeKind.EMPTY)]
        got = decode(encode(shapes), HostVisitor())
        self.assertEqual(got, shapes)

    def test_unit_variant_wire_form(self):
        data = encode(Shape(ShapeKind.EMPTY), Compression.none())
        self.assertEqual(data[8:], b"\x11\x00\x00\x00\x02")

    def test_unexpected_shape_refused(self):
        with self.assertRaises(SbifError) as cm:
            decode(encode([1], Compression.none()), HostVisitor())
        self.assertEqual(cm.exception.code, ERR_UNSUPPORTED_TYPE)

    def test_visitor_error_aborts_decode(self):
        data = encode({"street": "x"}, Compression.none())
        with self.assertRaises(SbifError) as cm:
            decode(data, HostVisitor())
        self.assertEqual(cm.exception.code, ERR_INVALID_LENGTH)


class TestVisitorProtocol(unittest.TestCase):
    def test_event_order(self):
        v = RecordingVisitor()
        decode(encode([U8(1), U8(2)], Compression.none()), v)
        self.assertEqual(v.events, ["begin_seq 2", "u8 1", "u8 2", "end_seq [1, 2]"])

    def test_begin_hook_can_reject_before_children(self):
        self.assertEqual(decode(encode(("a", "b"), Compression.none()), PairVisitor()),
                         ("a", "b"))
        with self.assertRaises(SbifError) as cm:
            decode(encode(("a", "b", "c"), Compression.none()), PairVisitor())
        self.assertEqual(cm.exception.code, ERR_INVALID_LENGTH)


if __name__ == "__main__":
    unittest.main()
