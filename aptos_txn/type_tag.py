# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Move type tags.

A type tag names a Move type, not a value: ``vector<u8>``,
``0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>`` and so on. They appear as
the type arguments of entry functions and scripts. On the wire a tag is its
ULEB128 variant index followed by the variant's fields; only vectors and
structs carry fields.
"""

from __future__ import annotations

import re
import typing
import unittest
from typing import List

from .account_address import AccountAddress
from .bcs import Deserializable, Deserializer, Serializable, Serializer
from .errors import DecodeError

# Type arguments may sit at most this many levels below the outermost tag.
MAX_NESTING_DEPTH = 8


class TypeTag(Deserializable, Serializable):
    """
    A Move type: one of the primitives, a vector or a struct.
    """

    BOOL: int = 0
    U8: int = 1
    U64: int = 2
    U128: int = 3
    ACCOUNT_ADDRESS: int = 4
    SIGNER: int = 5
    VECTOR: int = 6
    STRUCT: int = 7
    U16: int = 8
    U32: int = 9
    U256: int = 10

    value: typing.Any

    def __init__(self, value: typing.Any):
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeTag):
            return NotImplemented
        return (
            self.value.variant() == other.value.variant() and self.value == other.value
        )

    def __hash__(self) -> int:
        return hash(self.canonical_string())

    def __str__(self):
        return self.canonical_string()

    def __repr__(self):
        return self.__str__()

    def variant(self) -> int:
        return self.value.variant()

    def canonical_string(self) -> str:
        return str(self.value)

    @staticmethod
    def from_str(type_tag: str) -> TypeTag:
        """Parse the canonical string form, e.g. ``vector<0x1::string::String>``.

        Raises:
            ValueError: If the string is not a well formed type tag.
        """
        return _TypeTagParser(type_tag).parse()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TypeTag:
        return TypeTag.deserialize_nested(deserializer, 0)

    @staticmethod
    def deserialize_nested(deserializer: Deserializer, depth: int) -> TypeTag:
        """Decode a tag found ``depth`` levels below the outermost one.

        Raises:
            DecodeError: On an unknown variant or nesting past MAX_NESTING_DEPTH.
        """
        if depth > MAX_NESTING_DEPTH:
            raise DecodeError(
                f"TypeTag nesting exceeds the maximum depth of {MAX_NESTING_DEPTH}"
            )
        variant = deserializer.uleb128()
        tag_class = _TAGS_BY_VARIANT.get(variant)
        if tag_class is None:
            raise DecodeError(f"Unknown TypeTag variant: {variant}")
        if tag_class is VectorTag:
            return TypeTag(
                VectorTag(TypeTag.deserialize_nested(deserializer, depth + 1))
            )
        if tag_class is StructTag:
            return TypeTag(StructTag.deserialize_nested(deserializer, depth))
        return TypeTag(tag_class.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.value.variant())
        serializer.struct(self.value)


class PrimitiveTag(Deserializable, Serializable):
    """A field-less tag. Every instance of a given class is equal."""

    VARIANT: int
    NAME: str

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrimitiveTag):
            return NotImplemented
        return self.VARIANT == other.VARIANT

    def __hash__(self) -> int:
        return hash(self.VARIANT)

    def __str__(self):
        return self.NAME

    def variant(self) -> int:
        return self.VARIANT

    @classmethod
    def deserialize(cls, deserializer: Deserializer) -> PrimitiveTag:
        return cls()

    def serialize(self, serializer: Serializer):
        pass


class BoolTag(PrimitiveTag):
    VARIANT = TypeTag.BOOL
    NAME = "bool"


class U8Tag(PrimitiveTag):
    VARIANT = TypeTag.U8
    NAME = "u8"


class U16Tag(PrimitiveTag):
    VARIANT = TypeTag.U16
    NAME = "u16"


class U32Tag(PrimitiveTag):
    VARIANT = TypeTag.U32
    NAME = "u32"


class U64Tag(PrimitiveTag):
    VARIANT = TypeTag.U64
    NAME = "u64"


class U128Tag(PrimitiveTag):
    VARIANT = TypeTag.U128
    NAME = "u128"


class U256Tag(PrimitiveTag):
    VARIANT = TypeTag.U256
    NAME = "u256"


class AccountAddressTag(PrimitiveTag):
    VARIANT = TypeTag.ACCOUNT_ADDRESS
    NAME = "address"


class SignerTag(PrimitiveTag):
    VARIANT = TypeTag.SIGNER
    NAME = "signer"


class VectorTag(Deserializable, Serializable):
    element: TypeTag

    def __init__(self, element: TypeTag):
        self.element = element

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VectorTag):
            return NotImplemented
        return self.element == other.element

    def __str__(self):
        return f"vector<{self.element}>"

    def variant(self) -> int:
        return TypeTag.VECTOR

    @staticmethod
    def deserialize(deserializer: Deserializer) -> VectorTag:
        return VectorTag(TypeTag.deserialize_nested(deserializer, 1))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.element)


class StructTag(Deserializable, Serializable):
    address: AccountAddress
    module: str
    name: str
    type_args: List[TypeTag]

    def __init__(
        self,
        address: AccountAddress,
        module: str,
        name: str,
        type_args: List[TypeTag],
    ):
        self.address = address
        self.module = module
        self.name = name
        self.type_args = list(type_args)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StructTag):
            return NotImplemented
        return (
            self.address == other.address
            and self.module == other.module
            and self.name == other.name
            and self.type_args == other.type_args
        )

    def __str__(self) -> str:
        value = f"{self.address}::{self.module}::{self.name}"
        if len(self.type_args) > 0:
            value += "<" + ", ".join(str(arg) for arg in self.type_args) + ">"
        return value

    @staticmethod
    def from_str(type_tag: str) -> StructTag:
        tag = TypeTag.from_str(type_tag)
        if not isinstance(tag.value, StructTag):
            raise ValueError(f"{type_tag} is not a struct type")
        return tag.value

    def variant(self) -> int:
        return TypeTag.STRUCT

    @staticmethod
    def deserialize(deserializer: Deserializer) -> StructTag:
        return StructTag.deserialize_nested(deserializer, 0)

    @staticmethod
    def deserialize_nested(deserializer: Deserializer, depth: int) -> StructTag:
        address = deserializer.struct(AccountAddress)
        module = deserializer.str()
        name = deserializer.str()
        type_args = deserializer.sequence(
            lambda inner: TypeTag.deserialize_nested(inner, depth + 1)
        )
        return StructTag(address, module, name, type_args)

    def serialize(self, serializer: Serializer):
        self.address.serialize(serializer)
        serializer.str(self.module)
        serializer.str(self.name)
        serializer.sequence(self.type_args, Serializer.struct)


_PRIMITIVES = {
    tag.NAME: tag
    for tag in [
        BoolTag,
        U8Tag,
        U16Tag,
        U32Tag,
        U64Tag,
        U128Tag,
        U256Tag,
        AccountAddressTag,
        SignerTag,
    ]
}

_TAGS_BY_VARIANT: typing.Dict[int, typing.Any] = {
    tag.VARIANT: tag for tag in _PRIMITIVES.values()
}
_TAGS_BY_VARIANT[TypeTag.VECTOR] = VectorTag
_TAGS_BY_VARIANT[TypeTag.STRUCT] = StructTag

_TOKEN = re.compile(r"\s*(::|<|>|,|[A-Za-z0-9_]+)")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class _TypeTagParser:
    """Recursive descent over ``type := prim | vector<type> | struct``."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = self._tokenize(text)
        self.index = 0

    def _tokenize(self, text: str) -> List[str]:
        tokens = []
        position = 0
        while position < len(text):
            if text[position:].strip() == "":
                break
            match = _TOKEN.match(text, position)
            if match is None:
                raise ValueError(f"Invalid type tag {text!r} at position {position}")
            tokens.append(match.group(1))
            position = match.end()
        return tokens

    def parse(self) -> TypeTag:
        tag = self._type(0)
        if self.index != len(self.tokens):
            raise ValueError(f"Unexpected trailing input in type tag {self.text!r}")
        return tag

    def _peek(self) -> str:
        if self.index >= len(self.tokens):
            return ""
        return self.tokens[self.index]

    def _next(self) -> str:
        token = self._peek()
        if token == "":
            raise ValueError(f"Unexpected end of type tag {self.text!r}")
        self.index += 1
        return token

    def _expect(self, expected: str):
        token = self._next()
        if token != expected:
            raise ValueError(
                f"Expected {expected!r} but found {token!r} in type tag {self.text!r}"
            )

    def _identifier(self) -> str:
        token = self._next()
        if not _IDENTIFIER.match(token):
            raise ValueError(f"Invalid identifier {token!r} in type tag {self.text!r}")
        return token

    def _type(self, depth: int) -> TypeTag:
        if depth > MAX_NESTING_DEPTH:
            raise ValueError(
                f"Type tag {self.text!r} nests deeper than {MAX_NESTING_DEPTH} levels"
            )
        token = self._next()
        if token in _PRIMITIVES:
            return TypeTag(_PRIMITIVES[token]())
        if token == "vector":
            self._expect("<")
            element = self._type(depth + 1)
            self._expect(">")
            return TypeTag(VectorTag(element))
        if token in ("::", "<", ">", ","):
            raise ValueError(f"Unexpected {token!r} in type tag {self.text!r}")

        address = AccountAddress.from_str_relaxed(token)
        self._expect("::")
        module = self._identifier()
        self._expect("::")
        name = self._identifier()

        type_args: List[TypeTag] = []
        if self._peek() == "<":
            self._next()
            type_args.append(self._type(depth + 1))
            while self._peek() == ",":
                self._next()
                type_args.append(self._type(depth + 1))
            self._expect(">")
        return TypeTag(StructTag(address, module, name, type_args))


class Test(unittest.TestCase):
    def test_nested_structs(self):
        l0 = "0x0::l0::L0"
        l10 = "0x1::l10::L10"
        l20 = "0x2::l20::L20"
        l11 = "0x1::l11::L11"
        composite = f"{l0}<{l10}<{l20}>, {l11}>"
        derived = StructTag.from_str(composite)
        self.assertEqual(composite, f"{derived}")
        in_bytes = derived.to_bytes()
        from_bytes = StructTag.from_bytes(in_bytes)
        self.assertEqual(derived, from_bytes)

    def test_coin_store_encoding(self):
        tag = TypeTag.from_str("0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>")
        self.assertEqual(
            tag.canonical_string(), "0x1::coin::CoinStore<0x1::aptos_coin::AptosCoin>"
        )
        one = bytes(31) + b"\x01"
        expected = (
            b"\x07"
            + one
            + b"\x04coin\x09CoinStore\x01"
            + b"\x07"
            + one
            + b"\x0aaptos_coin\x09AptosCoin\x00"
        )
        self.assertEqual(tag.to_bytes(), expected)
        self.assertEqual(TypeTag.from_bytes(expected), tag)

    def test_primitive_variants(self):
        expected = {
            "bool": 0,
            "u8": 1,
            "u64": 2,
            "u128": 3,
            "address": 4,
            "signer": 5,
            "u16": 8,
            "u32": 9,
            "u256": 10,
        }
        for name, variant in expected.items():
            tag = TypeTag.from_str(name)
            self.assertEqual(tag.variant(), variant)
            self.assertEqual(tag.to_bytes(), bytes([variant]))
            self.assertEqual(str(tag), name)

    def test_vector(self):
        tag = TypeTag.from_str("vector<vector<u8>>")
        self.assertEqual(tag, TypeTag(VectorTag(TypeTag(VectorTag(TypeTag(U8Tag()))))))
        self.assertEqual(tag.to_bytes(), b"\x06\x06\x01")
        self.assertEqual(str(tag), "vector<vector<u8>>")

    def test_struct_with_vector_args(self):
        text = "0x1::table::Table<address, vector<0x1::string::String>>"
        tag = TypeTag.from_str(text)
        self.assertEqual(str(tag), text)
        self.assertEqual(TypeTag.from_bytes(tag.to_bytes()), tag)

    def test_structural_equality(self):
        self.assertEqual(TypeTag(U64Tag()), TypeTag(U64Tag()))
        self.assertNotEqual(TypeTag(U64Tag()), TypeTag(U128Tag()))
        self.assertEqual(
            TypeTag.from_str("0x1::aptos_coin::AptosCoin"),
            TypeTag.from_str(
                "0x0000000000000000000000000000000000000000000000000000000000000001::aptos_coin::AptosCoin"
            ),
        )

    def test_unknown_variant(self):
        with self.assertRaises(DecodeError):
            TypeTag.from_bytes(b"\x0b")

    def test_nesting_depth_limit(self):
        deepest = b"\x06" * MAX_NESTING_DEPTH + b"\x01"
        tag = TypeTag.from_bytes(deepest)
        self.assertEqual(tag.to_bytes(), deepest)
        self.assertEqual(TypeTag.from_str(str(tag)), tag)

        with self.assertRaises(DecodeError):
            TypeTag.from_bytes(b"\x06" * (MAX_NESTING_DEPTH + 1) + b"\x01")
        with self.assertRaises(DecodeError):
            TypeTag.from_bytes(b"\x06" * 5000 + b"\x01")
        with self.assertRaises(ValueError):
            TypeTag.from_str("vector<" * 5000 + "u8" + ">" * 5000)

        one = bytes(31) + b"\x01"
        nested_struct = b"\x07" + one + b"\x01m\x01S\x01"
        too_deep = nested_struct * (MAX_NESTING_DEPTH + 1) + b"\x01"
        with self.assertRaises(DecodeError):
            TypeTag.from_bytes(too_deep)

    def test_invalid_strings(self):
        for invalid in [
            "",
            "vector<u8",
            "vector<>",
            "0x1::coin",
            "0x1::coin::Coin<>",
            "0x1::coin::Coin<u8,>",
            "u8 u8",
            "0x1::9coin::Coin",
            "u8$",
        ]:
            with self.assertRaises(ValueError, msg=invalid):
                TypeTag.from_str(invalid)


if __name__ == "__main__":
    unittest.main()
