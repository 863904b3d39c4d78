# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Binary Canonical Serialization (BCS) for transaction signing.

BCS is the encoding every signature in this package is computed over, so the
encoder and decoder here are deliberately strict: there is exactly one valid
byte sequence per value. The decoder rejects anything the node's decoder would
reject, namely non-canonical ULEB128 integers, booleans other than 0 or 1,
lengths that run past the end of the input, invalid UTF-8 and unsorted map
keys. Top-level decoding through :meth:`Deserializable.from_bytes` or
:func:`decode` also rejects trailing bytes.

Learn more at https://github.com/diem/bcs

Examples:
    Basic serialization::

        from aptos_txn.bcs import Serializer, Deserializer

        ser = Serializer()
        ser.str("hello")
        data = ser.output()

        der = Deserializer(data)
        result = der.str()  # "hello"

    Working with custom structures::

        class MyStruct:
            def serialize(self, serializer):
                serializer.str(self.name)
                serializer.u32(self.value)

            @staticmethod
            def deserialize(deserializer):
                name = deserializer.str()
                value = deserializer.u32()
                return MyStruct(name, value)

    Field order is the contract: structs are written without field tags, so
    renaming a field is safe and reordering one is a wire format change.
"""

from __future__ import annotations

import io
import typing
import unittest
from typing import Dict, List, Optional

from typing_extensions import Protocol

from .errors import DecodeError

MAX_U8 = 2**8 - 1
MAX_U16 = 2**16 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MAX_U128 = 2**128 - 1
MAX_U256 = 2**256 - 1

# A u32 never needs more than five 7-bit groups.
MAX_ULEB128_BYTES = 5


class Deserializable(Protocol):
    """Protocol for objects that can be deserialized from a BCS byte stream.

    Implementations provide a static ``deserialize`` reading from a
    :class:`Deserializer`; ``from_bytes`` is then available for free and
    enforces that the whole input was consumed.
    """

    @classmethod
    def from_bytes(cls, indata: bytes) -> Deserializable:
        """Create an instance of this class from BCS-encoded bytes.

        Raises:
            DecodeError: If the data is malformed or has trailing bytes.
        """
        der = Deserializer(indata)
        value = der.struct(cls)
        der.ensure_consumed()
        return value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deserializable:
        """Deserialize an instance from a Deserializer."""
        ...


class Serializable(Protocol):
    """Protocol for objects that can be serialized into a BCS byte stream."""

    def to_bytes(self) -> bytes:
        """Convert this object to BCS-encoded bytes."""
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def serialize(self, serializer: Serializer):
        """Serialize this object using the provided Serializer."""
        ...


class Deserializer:
    """A BCS deserializer reading from an immutable byte sequence.

    The deserializer keeps a cursor into the input. Every read either returns
    a complete value or raises :class:`DecodeError`; there are no partial
    results.

    Examples:
        Basic usage::

            data = b'\x01\x05hello'
            der = Deserializer(data)

            flag = der.bool()    # True
            text = der.str()     # "hello"
            der.ensure_consumed()

        Reading collections::

            values = der.sequence(Deserializer.str)
            mapping = der.map(Deserializer.str, Deserializer.u32)
            maybe = der.option(Deserializer.u64)
    """

    _data: bytes
    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._length = len(self._data)
        self._input = io.BytesIO(self._data)

    def remaining(self) -> int:
        """Return the number of unread bytes."""
        return self._length - self._input.tell()

    def ensure_consumed(self):
        """Raise :class:`DecodeError` if any input is left unread."""
        if self.remaining() != 0:
            raise DecodeError(f"Unexpected trailing bytes: {self.remaining()}")

    def bool(self) -> bool:
        """Read a boolean; any byte other than 0 or 1 is rejected."""
        value = self._read_int(1)
        if value == 0:
            return False
        elif value == 1:
            return True
        else:
            raise DecodeError(f"Unexpected boolean value: {value}")

    def to_bytes(self) -> bytes:
        """Read a ULEB128 length-prefixed byte array."""
        return self._read(self.uleb128())

    def fixed_bytes(self, length: int) -> bytes:
        """Read exactly ``length`` raw bytes without a length prefix."""
        return self._read(length)

    def map(
        self,
        key_decoder: typing.Callable[[Deserializer], typing.Any],
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> Dict[typing.Any, typing.Any]:
        """Read a map written by :meth:`Serializer.map`.

        The encoded keys must be strictly increasing in byte order, which also
        rules out duplicate keys.

        Raises:
            DecodeError: If keys are unsorted or duplicated, or the input is
                malformed.
        """
        length = self.uleb128()
        values: Dict = {}
        previous_key: Optional[bytes] = None
        for _ in range(length):
            start = self._input.tell()
            key = key_decoder(self)
            encoded_key = self._data[start : self._input.tell()]
            if previous_key is not None and encoded_key <= previous_key:
                raise DecodeError("Map keys are not in canonical order")
            previous_key = encoded_key
            values[key] = value_decoder(self)
        return values

    def option(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> Optional[typing.Any]:
        """Read an optional value: a presence byte, then the value if present."""
        if self.bool():
            return value_decoder(self)
        return None

    def sequence(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> List[typing.Any]:
        """Read a ULEB128 length followed by that many elements.

        Examples:
            Reading a sequence of strings::

                strings = der.sequence(Deserializer.str)
        """
        length = self.uleb128()
        values: List = []
        while len(values) < length:
            values.append(value_decoder(self))
        return values

    def str(self) -> str:
        """Read a length-prefixed UTF-8 string."""
        try:
            return self.to_bytes().decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"Invalid UTF-8 string: {e}") from e

    def struct(self, struct: typing.Any) -> typing.Any:
        """Delegate to ``struct.deserialize``."""
        return struct.deserialize(self)

    def u8(self) -> int:
        return self._read_int(1)

    def u16(self) -> int:
        return self._read_int(2)

    def u32(self) -> int:
        return self._read_int(4)

    def u64(self) -> int:
        return self._read_int(8)

    def u128(self) -> int:
        return self._read_int(16)

    def u256(self) -> int:
        return self._read_int(32)

    def i8(self) -> int:
        return self._read_int(1, signed=True)

    def i16(self) -> int:
        return self._read_int(2, signed=True)

    def i32(self) -> int:
        return self._read_int(4, signed=True)

    def i64(self) -> int:
        return self._read_int(8, signed=True)

    def i128(self) -> int:
        return self._read_int(16, signed=True)

    def uleb128(self) -> int:
        """Read a canonical ULEB128 integer bounded by u32.

        Each byte carries 7 bits of data and a continuation bit. The decoder
        accepts only the minimal encoding: a final byte of zero after one or
        more continuation bytes is a padded encoding and is rejected.

        Raises:
            DecodeError: On overflow past u32, a non-minimal encoding or
                truncated input.
        """
        value = 0
        for shift in range(0, 7 * MAX_ULEB128_BYTES, 7):
            byte = self._read_int(1)
            digit = byte & 0x7F
            value |= digit << shift
            if value > MAX_U32:
                raise DecodeError("Overflowing uleb128 value")
            if byte & 0x80 == 0:
                if shift > 0 and digit == 0:
                    raise DecodeError("Non-canonical uleb128 encoding")
                return value
        raise DecodeError("Overflowing uleb128 value")

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            raise DecodeError(
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
        return value

    def _read_int(self, length: int, signed: bool = False) -> int:
        return int.from_bytes(self._read(length), byteorder="little", signed=signed)


class Serializer:
    """A BCS serializer writing to an append-only buffer.

    Examples:
        Basic usage::

            ser = Serializer()
            ser.bool(True)
            ser.str("hello")
            data = ser.output()

        Serializing collections::

            ser.sequence(["a", "b", "c"], Serializer.str)
            ser.map({"key": 42}, Serializer.str, Serializer.u32)
            ser.option(None, Serializer.u64)
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        """Return everything written so far."""
        return self._output.getvalue()

    def bool(self, value: bool):
        self._write_int(int(value), 1)

    def to_bytes(self, value: bytes):
        """Write a ULEB128 length followed by the raw bytes."""
        self.uleb128(len(value))
        self._output.write(value)

    def fixed_bytes(self, value):
        """Write raw bytes without any length prefix."""
        self._output.write(value)

    def map(
        self,
        values: typing.Dict[typing.Any, typing.Any],
        key_encoder: typing.Callable[[Serializer, typing.Any], None],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a map with entries sorted by the BCS encoding of their keys.

        Sorting by encoded key makes the output independent of the dict's
        insertion order.
        """
        encoded_values = []
        for key, value in values.items():
            encoded_values.append(
                (encoder(key, key_encoder), encoder(value, value_encoder))
            )
        encoded_values.sort(key=lambda item: item[0])

        self.uleb128(len(encoded_values))
        for key, value in encoded_values:
            self.fixed_bytes(key)
            self.fixed_bytes(value)

    def option(
        self,
        value: Optional[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a presence byte, then the value when it is not None."""
        self.bool(value is not None)
        if value is not None:
            value_encoder(self, value)

    @staticmethod
    def sequence_serializer(
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Return an encoder for sequences of ``value_encoder`` elements.

        Useful as the encoder of a nested sequence, e.g. a ``vector<vector<u8>>``
        transaction argument::

            TransactionArgument(
                [b"a", b"b"], Serializer.sequence_serializer(Serializer.to_bytes)
            )
        """
        return lambda self, values: self.sequence(values, value_encoder)

    def sequence(
        self,
        values: typing.Sequence[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a ULEB128 length, then each element in order."""
        self.uleb128(len(values))
        for value in values:
            self.fixed_bytes(encoder(value, value_encoder))

    def str(self, value: str):
        self.to_bytes(value.encode("utf-8"))

    def struct(self, value: typing.Any):
        """Delegate to ``value.serialize``."""
        value.serialize(self)

    def u8(self, value: int):
        self._write_uint(value, MAX_U8, 1, "u8")

    def u16(self, value: int):
        self._write_uint(value, MAX_U16, 2, "u16")

    def u32(self, value: int):
        self._write_uint(value, MAX_U32, 4, "u32")

    def u64(self, value: int):
        self._write_uint(value, MAX_U64, 8, "u64")

    def u128(self, value: int):
        self._write_uint(value, MAX_U128, 16, "u128")

    def u256(self, value: int):
        self._write_uint(value, MAX_U256, 32, "u256")

    def i8(self, value: int):
        self._write_sint(value, 1, "i8")

    def i16(self, value: int):
        self._write_sint(value, 2, "i16")

    def i32(self, value: int):
        self._write_sint(value, 4, "i32")

    def i64(self, value: int):
        self._write_sint(value, 8, "i64")

    def i128(self, value: int):
        self._write_sint(value, 16, "i128")

    def uleb128(self, value: int):
        """Write the minimal ULEB128 encoding of a u32."""
        if value < 0 or value > MAX_U32:
            raise ValueError(f"Cannot encode {value} into uleb128")

        while value >= 0x80:
            # Write 7 (lowest) bits of data and set the 8th bit to 1.
            byte = value & 0x7F
            self.u8(byte | 0x80)
            value >>= 7

        # Write the remaining bits of data and set the highest bit to 0.
        self.u8(value & 0x7F)

    def _write_uint(self, value: int, maximum: int, length: int, name: str):
        if value < 0 or value > maximum:
            raise ValueError(f"Cannot encode {value} into {name}")
        self._write_int(value, length)

    def _write_sint(self, value: int, length: int, name: str):
        bound = 2 ** (length * 8 - 1)
        if value < -bound or value >= bound:
            raise ValueError(f"Cannot encode {value} into {name}")
        self._output.write(value.to_bytes(length, "little", signed=True))

    def _write_int(self, value: int, length: int):
        self._output.write(value.to_bytes(length, "little", signed=False))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], typing.Any]
) -> bytes:
    """Encode a single value with ``encoder`` and return the bytes.

    Examples:
        Encoding a string::

            data = encoder("hello", Serializer.str)
    """
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


def decode(
    data: bytes, decoder: typing.Callable[[Deserializer], typing.Any]
) -> typing.Any:
    """Decode a complete value from ``data``, rejecting trailing bytes.

    Examples:
        Decoding a sequence of u64::

            values = decode(data, lambda der: der.sequence(Deserializer.u64))
    """
    der = Deserializer(data)
    value = decoder(der)
    der.ensure_consumed()
    return value


class Test(unittest.TestCase):
    def test_bool(self):
        ser = Serializer()
        ser.bool(True)
        ser.bool(False)
        self.assertEqual(ser.output(), b"\x01\x00")
        der = Deserializer(ser.output())
        self.assertTrue(der.bool())
        self.assertFalse(der.bool())

    def test_bool_error(self):
        ser = Serializer()
        ser.u8(32)
        der = Deserializer(ser.output())
        with self.assertRaises(DecodeError):
            der.bool()

    def test_bytes(self):
        in_value = b"1234567890"

        ser = Serializer()
        ser.to_bytes(in_value)
        self.assertEqual(ser.output(), b"\x0a" + in_value)
        der = Deserializer(ser.output())
        self.assertEqual(der.to_bytes(), in_value)

    def test_bytes_length_exceeds_input(self):
        der = Deserializer(b"\x05abc")
        with self.assertRaises(DecodeError):
            der.to_bytes()

    def test_invalid_utf8(self):
        der = Deserializer(b"\x02\xc3\x28")
        with self.assertRaises(DecodeError):
            der.str()

    def test_map(self):
        in_value = {"c": 23829, "a": 12345, "b": 99234}

        ser = Serializer()
        ser.map(in_value, Serializer.str, Serializer.u32)
        # Entries are written in key order regardless of insertion order.
        self.assertEqual(ser.output()[1:3], b"\x01a")
        der = Deserializer(ser.output())
        out_value = der.map(Deserializer.str, Deserializer.u32)

        self.assertEqual(in_value, out_value)

    def test_map_rejects_unsorted_keys(self):
        ser = Serializer()
        ser.uleb128(2)
        ser.str("b")
        ser.u8(1)
        ser.str("a")
        ser.u8(2)
        with self.assertRaises(DecodeError):
            Deserializer(ser.output()).map(Deserializer.str, Deserializer.u8)

    def test_map_rejects_duplicate_keys(self):
        ser = Serializer()
        ser.uleb128(2)
        ser.str("a")
        ser.u8(1)
        ser.str("a")
        ser.u8(2)
        with self.assertRaises(DecodeError):
            Deserializer(ser.output()).map(Deserializer.str, Deserializer.u8)

    def test_option(self):
        ser = Serializer()
        ser.option(None, Serializer.u64)
        ser.option(7, Serializer.u64)
        self.assertEqual(ser.output(), b"\x00\x01" + (7).to_bytes(8, "little"))
        der = Deserializer(ser.output())
        self.assertIsNone(der.option(Deserializer.u64))
        self.assertEqual(der.option(Deserializer.u64), 7)
        der.ensure_consumed()

    def test_sequence(self):
        in_value = ["a", "abc", "def", "ghi"]

        ser = Serializer()
        ser.sequence(in_value, Serializer.str)
        der = Deserializer(ser.output())
        out_value = der.sequence(Deserializer.str)

        self.assertEqual(in_value, out_value)

    def test_sequence_serializer(self):
        in_value = [[1, 2], [], [3]]

        ser = Serializer()
        seq_ser = Serializer.sequence_serializer(Serializer.u8)
        ser.sequence(in_value, seq_ser)
        self.assertEqual(ser.output(), bytes.fromhex("03020102000103"))
        der = Deserializer(ser.output())
        out_value = der.sequence(lambda d: d.sequence(Deserializer.u8))

        self.assertEqual(in_value, out_value)

    def test_str(self):
        in_value = "çå∞≠¢õß∂ƒ∫"

        ser = Serializer()
        ser.str(in_value)
        der = Deserializer(ser.output())
        self.assertEqual(der.str(), in_value)

    def test_fixed_width_little_endian(self):
        ser = Serializer()
        ser.u16(0x0102)
        ser.u32(0x01020304)
        ser.u64(0x0102030405060708)
        self.assertEqual(
            ser.output(), bytes.fromhex("0201" "04030201" "0807060504030201")
        )

    def test_unsigned_out_of_range(self):
        ser = Serializer()
        with self.assertRaises(ValueError):
            ser.u8(256)
        with self.assertRaises(ValueError):
            ser.u64(-1)
        with self.assertRaises(ValueError):
            ser.u128(MAX_U128 + 1)

    def test_u128_and_u256(self):
        ser = Serializer()
        ser.u128(MAX_U128)
        ser.u256(MAX_U256)
        der = Deserializer(ser.output())
        self.assertEqual(der.u128(), MAX_U128)
        self.assertEqual(der.u256(), MAX_U256)
        der.ensure_consumed()

    def test_signed(self):
        ser = Serializer()
        ser.i8(-1)
        ser.i16(-32768)
        ser.i32(2**31 - 1)
        ser.i64(-2)
        ser.i128(-(2**127))
        self.assertEqual(ser.output()[:3], b"\xff\x00\x80")
        der = Deserializer(ser.output())
        self.assertEqual(der.i8(), -1)
        self.assertEqual(der.i16(), -32768)
        self.assertEqual(der.i32(), 2**31 - 1)
        self.assertEqual(der.i64(), -2)
        self.assertEqual(der.i128(), -(2**127))

    def test_signed_out_of_range(self):
        with self.assertRaises(ValueError):
            Serializer().i8(128)
        with self.assertRaises(ValueError):
            Serializer().i16(-32769)

    def test_uleb128_minimal(self):
        cases = {
            0: "00",
            1: "01",
            127: "7f",
            128: "8001",
            16383: "ff7f",
            16384: "808001",
            MAX_U32: "ffffffff0f",
        }
        for value, expected in cases.items():
            ser = Serializer()
            ser.uleb128(value)
            self.assertEqual(ser.output().hex(), expected)
            self.assertEqual(decode(ser.output(), Deserializer.uleb128), value)

    def test_uleb128_rejects_padding(self):
        for padded in ["8000", "ff00", "808000", "8180808000"]:
            with self.assertRaises(DecodeError):
                decode(bytes.fromhex(padded), Deserializer.uleb128)

    def test_uleb128_rejects_overflow(self):
        for overflowing in ["ffffffff10", "ffffffff1f", "8080808080"]:
            with self.assertRaises(DecodeError):
                decode(bytes.fromhex(overflowing), Deserializer.uleb128)
        with self.assertRaises(ValueError):
            Serializer().uleb128(MAX_U32 + 1)

    def test_uleb128_truncated(self):
        with self.assertRaises(DecodeError):
            Deserializer(b"\x80").uleb128()

    def test_truncated_integer(self):
        with self.assertRaises(DecodeError):
            Deserializer(b"\x01\x02\x03").u32()

    def test_decode_rejects_trailing_bytes(self):
        with self.assertRaises(DecodeError):
            decode(b"\x01\x00", Deserializer.u8)
        self.assertEqual(decode(b"\x01", Deserializer.u8), 1)


if __name__ == "__main__":
    unittest.main()
