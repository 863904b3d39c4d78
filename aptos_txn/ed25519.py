# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ed25519 and MultiEd25519 keys and signatures.

A MultiEd25519 identity is an ordered list of up to 32 Ed25519 public keys and
a threshold. Its signature is a set of ``(index, signature)`` pairs plus a
4-byte bitmap naming the participating indices. The bitmap is big-endian in
bit order, so index 0 is the most significant bit of the first byte, and
signatures are always laid out in ascending index order.

Examples:
    Single key signing::

        private_key = PrivateKey.random()
        signature = private_key.sign(b"message")
        assert private_key.public_key().verify(b"message", signature)

    A 2-of-3 threshold signature::

        keys = [PrivateKey.random() for _ in range(3)]
        multisig_key = MultiPublicKey([k.public_key() for k in keys], 2)
        multisig = multisig_key.aggregate(
            [
                (keys[2].public_key(), keys[2].sign(b"message")),
                (keys[0].public_key(), keys[0].sign(b"message")),
            ]
        )
        assert multisig_key.verify(b"message", multisig)
"""

from __future__ import annotations

import unittest
from typing import List, Tuple

from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey

from . import asymmetric_crypto
from .bcs import Deserializer, Serializer
from .errors import DecodeError, InvalidKeyConfiguration, OrderMismatch


class PrivateKey(asymmetric_crypto.PrivateKey):
    """A 32-byte Ed25519 signing key backed by PyNaCl."""

    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self):
        return self.aip80()

    def __repr__(self):
        return f"PrivateKey(public_key={self.public_key()})"

    @staticmethod
    def from_hex(value: str | bytes, strict: bool | None = None) -> PrivateKey:
        """Parse a key from bytes, hex or an AIP-80 string.

        Raises:
            ValueError: If the input is malformed or not 32 bytes long.
        """
        key_bytes = PrivateKey.parse_hex_input(
            value, asymmetric_crypto.PrivateKeyVariant.Ed25519, strict
        )
        return PrivateKey.from_seed(key_bytes)

    @staticmethod
    def from_str(value: str, strict: bool | None = None) -> PrivateKey:
        return PrivateKey.from_hex(value, strict)

    @staticmethod
    def from_seed(seed: bytes) -> PrivateKey:
        """Create a key from its 32-byte seed."""
        if len(seed) != PrivateKey.LENGTH:
            raise ValueError(
                f"Ed25519 seed must be {PrivateKey.LENGTH} bytes, got {len(seed)}"
            )
        return PrivateKey(SigningKey(bytes(seed)))

    def hex(self) -> str:
        return f"0x{self.key.encode().hex()}"

    def aip80(self) -> str:
        return PrivateKey.format_private_key(
            self.hex(), asymmetric_crypto.PrivateKeyVariant.Ed25519
        )

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verify_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate())

    def sign(self, data: bytes) -> Signature:
        return Signature(self.key.sign(data).signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PrivateKey:
        key = deserializer.to_bytes()
        if len(key) != PrivateKey.LENGTH:
            raise DecodeError(f"Ed25519 private key length mismatch: {len(key)}")
        return PrivateKey(SigningKey(key))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.encode())


class PublicKey(asymmetric_crypto.PublicKey):
    """A 32-byte Ed25519 verifying key."""

    LENGTH: int = 32

    key: VerifyKey

    def __init__(self, key: VerifyKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key == other.key

    def __hash__(self):
        return hash(self.key.encode())

    def __str__(self) -> str:
        return f"0x{self.key.encode().hex()}"

    __repr__ = __str__

    @staticmethod
    def from_str(value: str) -> PublicKey:
        if value[0:2] == "0x":
            value = value[2:]
        return PublicKey.from_crypto_bytes(bytes.fromhex(value))

    @staticmethod
    def from_crypto_bytes(indata: bytes) -> PublicKey:
        if len(indata) != PublicKey.LENGTH:
            raise DecodeError(f"Ed25519 public key length mismatch: {len(indata)}")
        return PublicKey(VerifyKey(bytes(indata)))

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, Signature):
            return False
        try:
            self.key.verify(data, signature.data())
        except BadSignatureError:
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.key.encode()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        return PublicKey.from_crypto_bytes(deserializer.to_bytes())

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.key.encode())


class MultiPublicKey(asymmetric_crypto.PublicKey):
    """An ordered set of Ed25519 keys with a signing threshold.

    The key order is part of the identity: it determines both the derived
    address and the bitmap positions in every :class:`MultiSignature`.

    Raises:
        InvalidKeyConfiguration: Unless ``1 <= threshold <= len(keys) <= 32``.
    """

    keys: List[PublicKey]
    threshold: int

    MIN_KEYS = 1
    MAX_KEYS = 32
    MIN_THRESHOLD = 1

    def __init__(self, keys: List[PublicKey], threshold: int):
        if not self.MIN_KEYS <= len(keys) <= self.MAX_KEYS:
            raise InvalidKeyConfiguration(
                f"Must have between {self.MIN_KEYS} and {self.MAX_KEYS} keys."
            )
        if not self.MIN_THRESHOLD <= threshold <= len(keys):
            raise InvalidKeyConfiguration(
                f"Threshold must be between {self.MIN_THRESHOLD} and {len(keys)}."
            )

        self.keys = list(keys)
        self.threshold = threshold

    def __eq__(self, other: object):
        if not isinstance(other, MultiPublicKey):
            return NotImplemented
        return self.keys == other.keys and self.threshold == other.threshold

    def __str__(self) -> str:
        return f"{self.threshold}-of-{len(self.keys)} Multi-Ed25519 public key"

    def index_of(self, key: PublicKey) -> int:
        """Return the declared position of ``key``.

        Raises:
            InvalidKeyConfiguration: If ``key`` is not a member.
        """
        try:
            return self.keys.index(key)
        except ValueError:
            raise InvalidKeyConfiguration(f"{key} is not part of {self}") from None

    def aggregate(
        self, signatures: List[Tuple[PublicKey, Signature]]
    ) -> MultiSignature:
        """Combine per-key signatures into a :class:`MultiSignature`.

        The input may be in any order; the result is ordered by each key's
        declared position.
        """
        return MultiSignature.from_key_map(self, signatures)

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        if not isinstance(signature, MultiSignature):
            return False
        if len(signature.signatures) < self.threshold:
            return False

        for idx, inner in signature.signatures:
            if idx >= len(self.keys):
                return False
            if not self.keys[idx].verify(data, inner):
                return False
        return True

    @staticmethod
    def from_crypto_bytes(indata: bytes) -> MultiPublicKey:
        """Parse ``pk_1 || ... || pk_n || threshold``."""
        if len(indata) % PublicKey.LENGTH != 1:
            raise DecodeError(f"MultiPublicKey length is invalid: {len(indata)}")

        total_keys = len(indata) // PublicKey.LENGTH
        keys: List[PublicKey] = []
        for idx in range(total_keys):
            start = idx * PublicKey.LENGTH
            end = (idx + 1) * PublicKey.LENGTH
            keys.append(PublicKey.from_crypto_bytes(indata[start:end]))
        threshold = indata[-1]
        return MultiPublicKey(keys, threshold)

    def to_crypto_bytes(self) -> bytes:
        key_bytes = bytearray()
        for key in self.keys:
            key_bytes.extend(key.to_crypto_bytes())
        key_bytes.append(self.threshold)
        return bytes(key_bytes)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiPublicKey:
        indata = deserializer.to_bytes()
        return MultiPublicKey.from_crypto_bytes(indata)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.to_crypto_bytes())


class Signature(asymmetric_crypto.Signature):
    """A 64-byte Ed25519 signature."""

    LENGTH: int = 64

    signature: bytes

    def __init__(self, signature: bytes):
        if len(signature) != Signature.LENGTH:
            raise DecodeError(f"Ed25519 signature length mismatch: {len(signature)}")
        self.signature = bytes(signature)

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return f"0x{self.signature.hex()}"

    __repr__ = __str__

    def data(self) -> bytes:
        return self.signature

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        return Signature(deserializer.to_bytes())

    @staticmethod
    def from_str(value: str) -> Signature:
        if value[0:2] == "0x":
            value = value[2:]
        return Signature(bytes.fromhex(value))

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(self.signature)


class MultiSignature(asymmetric_crypto.Signature):
    """Signatures from a subset of a :class:`MultiPublicKey`'s signers.

    ``signatures`` is a list of ``(index, signature)`` pairs that must be
    strictly ascending by index, mirroring the wire layout.

    Raises:
        OrderMismatch: If indices are duplicated or out of order.
        InvalidKeyConfiguration: If an index does not fit the 32-bit bitmap.
    """

    signatures: List[Tuple[int, Signature]]
    BITMAP_NUM_OF_BYTES: int = 4

    def __init__(self, signatures: List[Tuple[int, Signature]]):
        previous = -1
        for index, _ in signatures:
            if not 0 <= index < self.BITMAP_NUM_OF_BYTES * 8:
                raise InvalidKeyConfiguration(
                    f"Signer index {index} exceeds the bitmap capacity"
                )
            if index <= previous:
                raise OrderMismatch(
                    f"Signer indices must be strictly ascending, {index} follows {previous}"
                )
            previous = index
        self.signatures = list(signatures)

    def __eq__(self, other: object):
        if not isinstance(other, MultiSignature):
            return NotImplemented
        return self.signatures == other.signatures

    def __str__(self) -> str:
        return f"{self.signatures}"

    def bitmap(self) -> bytes:
        value = 0
        for index, _ in self.signatures:
            value |= 1 << (31 - index)
        return value.to_bytes(MultiSignature.BITMAP_NUM_OF_BYTES, "big")

    @staticmethod
    def from_key_map(
        public_key: MultiPublicKey,
        signatures_map: List[Tuple[PublicKey, Signature]],
    ) -> MultiSignature:
        """Map each key to its declared index and sort by it."""
        signatures = [
            (public_key.index_of(key), signature) for key, signature in signatures_map
        ]
        signatures.sort(key=lambda entry: entry[0])
        return MultiSignature(signatures)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiSignature:
        signature_bytes = deserializer.to_bytes()
        count = len(signature_bytes) // Signature.LENGTH
        if count * Signature.LENGTH + MultiSignature.BITMAP_NUM_OF_BYTES != len(
            signature_bytes
        ):
            raise DecodeError("MultiSignature length is invalid")

        bitmap = int.from_bytes(signature_bytes[-4:], "big")
        positions = [
            position for position in range(32) if bitmap & (1 << (31 - position))
        ]
        if len(positions) != count:
            raise DecodeError(
                f"MultiSignature bitmap names {len(positions)} signers but carries {count} signatures"
            )

        signatures = []
        for current, position in enumerate(positions):
            left = current * Signature.LENGTH
            signature = Signature(signature_bytes[left : left + Signature.LENGTH])
            signatures.append((position, signature))

        return MultiSignature(signatures)

    def serialize(self, serializer: Serializer):
        signature_bytes = bytearray()
        for _, signature in self.signatures:
            signature_bytes.extend(signature.data())
        signature_bytes.extend(self.bitmap())
        serializer.to_bytes(bytes(signature_bytes))


class Test(unittest.TestCase):
    PRIVATE_KEY_1 = "ed25519-priv-0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
    PRIVATE_KEY_2 = "ed25519-priv-0x1e70e49b78f976644e2c51754a2f049d3ff041869c669523ba95b172c7329901"

    def test_private_key_formats(self):
        raw = "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
        from_hex = PrivateKey.from_str(f"0x{raw}", False)
        from_aip80 = PrivateKey.from_str(self.PRIVATE_KEY_1, True)
        from_bytes = PrivateKey.from_hex(bytes.fromhex(raw), False)

        self.assertEqual(from_hex, from_aip80)
        self.assertEqual(from_aip80, from_bytes)
        self.assertEqual(str(from_hex), self.PRIVATE_KEY_1)

    def test_private_key_strict_rejects_plain_hex(self):
        with self.assertRaises(ValueError):
            PrivateKey.from_str("0x" + "11" * 32, True)

    def test_private_key_wrong_length(self):
        with self.assertRaises(ValueError):
            PrivateKey.from_str("0x1234", False)

    def test_repr_hides_secret(self):
        private_key = PrivateKey.from_str(self.PRIVATE_KEY_1)
        self.assertNotIn("4e5e3be6", repr(private_key))

    def test_sign_and_verify(self):
        private_key = PrivateKey.random()
        public_key = private_key.public_key()

        signature = private_key.sign(b"test_message")
        self.assertTrue(public_key.verify(b"test_message", signature))
        self.assertFalse(public_key.verify(b"other_message", signature))
        self.assertFalse(PrivateKey.random().public_key().verify(b"test_message", signature))

    def test_signing_is_deterministic(self):
        private_key = PrivateKey.from_str(self.PRIVATE_KEY_1)
        self.assertEqual(private_key.sign(b"payload"), private_key.sign(b"payload"))

    def test_key_serialization(self):
        private_key = PrivateKey.random()
        self.assertEqual(PrivateKey.from_bytes(private_key.to_bytes()), private_key)
        public_key = private_key.public_key()
        self.assertEqual(PublicKey.from_bytes(public_key.to_bytes()), public_key)
        signature = private_key.sign(b"another_message")
        self.assertEqual(Signature.from_bytes(signature.to_bytes()), signature)

    def test_public_key_length_checked(self):
        ser = Serializer()
        ser.to_bytes(b"\x01" * 31)
        with self.assertRaises(DecodeError):
            PublicKey.from_bytes(ser.output())

    def test_multisig_vectors(self):
        private_key_1 = PrivateKey.from_str(self.PRIVATE_KEY_1)
        private_key_2 = PrivateKey.from_str(self.PRIVATE_KEY_2)
        multisig_public_key = MultiPublicKey(
            [private_key_1.public_key(), private_key_2.public_key()], 1
        )

        expected_public_key_bcs = (
            "41754bb6a4720a658bdd5f532995955db0971ad3519acbde2f1149c3857348006c"
            "1634cd4607073f2be4a6f2aadc2b866ddb117398a675f2096ed906b20e0bf2c901"
        )
        self.assertEqual(multisig_public_key.to_bytes().hex(), expected_public_key_bcs)
        self.assertEqual(
            MultiPublicKey.from_bytes(bytes.fromhex(expected_public_key_bcs)),
            multisig_public_key,
        )

        signature = private_key_2.sign(b"multisig")
        multisig_signature = multisig_public_key.aggregate(
            [(private_key_2.public_key(), signature)]
        )
        expected_multisig_signature_bcs = (
            "4402e90d8f300d79963cb7159ffa6f620f5bba4af5d32a7176bfb5480b43897cf"
            "4886bbb4042182f4647c9b04f02dbf989966f0facceec52d22bdcc7ce631bfc0c"
            "40000000"
        )
        self.assertEqual(
            multisig_signature.to_bytes().hex(), expected_multisig_signature_bcs
        )
        self.assertEqual(
            MultiSignature.from_bytes(bytes.fromhex(expected_multisig_signature_bcs)),
            multisig_signature,
        )
        self.assertTrue(multisig_public_key.verify(b"multisig", multisig_signature))

    def test_multisig_threshold(self):
        private_keys = [PrivateKey.random() for _ in range(3)]
        multisig_public_key = MultiPublicKey(
            [key.public_key() for key in private_keys], 2
        )

        one = multisig_public_key.aggregate(
            [(private_keys[1].public_key(), private_keys[1].sign(b"msg"))]
        )
        self.assertFalse(multisig_public_key.verify(b"msg", one))

        # Supplied out of order, laid out by declared position.
        two = multisig_public_key.aggregate(
            [
                (private_keys[2].public_key(), private_keys[2].sign(b"msg")),
                (private_keys[0].public_key(), private_keys[0].sign(b"msg")),
            ]
        )
        self.assertEqual([index for index, _ in two.signatures], [0, 2])
        self.assertEqual(two.bitmap(), bytes([0b10100000, 0, 0, 0]))
        self.assertTrue(multisig_public_key.verify(b"msg", two))

    def test_multisig_order_enforced(self):
        signature = PrivateKey.random().sign(b"msg")
        with self.assertRaises(OrderMismatch):
            MultiSignature([(2, signature), (0, signature)])
        with self.assertRaises(OrderMismatch):
            MultiSignature([(1, signature), (1, signature)])
        with self.assertRaises(InvalidKeyConfiguration):
            MultiSignature([(32, signature)])

    def test_multisig_unknown_key(self):
        multisig_public_key = MultiPublicKey([PrivateKey.random().public_key()], 1)
        stranger = PrivateKey.random()
        with self.assertRaises(InvalidKeyConfiguration):
            multisig_public_key.aggregate(
                [(stranger.public_key(), stranger.sign(b"msg"))]
            )

    def test_multisig_bitmap_mismatch(self):
        signature = PrivateKey.random().sign(b"msg")
        ser = Serializer()
        # One signature but two bits set.
        ser.to_bytes(signature.data() + bytes([0b11000000, 0, 0, 0]))
        with self.assertRaises(DecodeError):
            MultiSignature.from_bytes(ser.output())

    def test_multisig_range_checks(self):
        keys = [
            PrivateKey.random().public_key() for _ in range(MultiPublicKey.MAX_KEYS + 1)
        ]
        # A single key with threshold one is a valid configuration.
        MultiPublicKey([keys[0]], 1)
        with self.assertRaisesRegex(
            InvalidKeyConfiguration, "Must have between 1 and 32 keys."
        ):
            MultiPublicKey([], 1)
        with self.assertRaisesRegex(
            InvalidKeyConfiguration, "Must have between 1 and 32 keys."
        ):
            MultiPublicKey(keys, 1)
        with self.assertRaisesRegex(
            InvalidKeyConfiguration, "Threshold must be between 1 and 4."
        ):
            MultiPublicKey(keys[0:4], 0)
        with self.assertRaisesRegex(
            InvalidKeyConfiguration, "Threshold must be between 1 and 4."
        ):
            MultiPublicKey(keys[0:4], 5)

        # The same bounds apply when decoding.
        too_high = b"".join(key.to_crypto_bytes() for key in keys[0:4]) + b"\x05"
        ser = Serializer()
        ser.to_bytes(too_high)
        with self.assertRaises(InvalidKeyConfiguration):
            MultiPublicKey.from_bytes(ser.output())


if __name__ == "__main__":
    unittest.main()
