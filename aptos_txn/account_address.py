# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
32-byte account addresses and their derivation from public keys.

An address is the authentication key of the account that created it:
``sha3_256(key_material || scheme)``. The one-byte scheme identifier is
appended to the key material before hashing, which keeps a single Ed25519 key
and a one-key MultiEd25519 set from colliding.

String forms follow AIP-40: special addresses (``0x0`` to ``0xf``) print in
short form, everything else prints as ``0x`` followed by 64 hex characters.
"""

from __future__ import annotations

import hashlib
import unittest

from . import asymmetric_crypto, ed25519
from .bcs import Deserializable, Deserializer, Serializable, Serializer


class AuthKeyScheme:
    Ed25519: bytes = b"\x00"
    MultiEd25519: bytes = b"\x01"


class ParseAddressError(ValueError):
    """
    There was an error parsing an address.
    """


class AccountAddress(Deserializable, Serializable):
    address: bytes
    LENGTH: int = 32

    def __init__(self, address: bytes):
        if len(address) != AccountAddress.LENGTH:
            raise ParseAddressError("Expected address of length 32")
        self.address = bytes(address)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAddress):
            return NotImplemented
        return self.address == other.address

    def __hash__(self) -> int:
        return hash(self.address)

    def __str__(self):
        """
        The AIP-40 standard form: special addresses in short form, every other
        address as 0x plus 64 lowercase hex characters.
        """
        suffix = self.address.hex()
        if self.is_special():
            suffix = suffix.lstrip("0") or "0"
        return f"0x{suffix}"

    def __repr__(self):
        return self.__str__()

    def is_special(self):
        """
        Special addresses are 0x0 through 0xf inclusive; the last byte is below
        0b10000 and every other byte is zero.
        """
        return all(b == 0 for b in self.address[:-1]) and self.address[-1] < 0b10000

    def is_zero(self) -> bool:
        return self.address == bytes(AccountAddress.LENGTH)

    @staticmethod
    def zero() -> AccountAddress:
        return AccountAddress(bytes(AccountAddress.LENGTH))

    @staticmethod
    def from_str(address: str) -> AccountAddress:
        """
        Strictly parse an address in the AIP-40 standard form.

        Non-special addresses must be 0x plus exactly 64 hex characters. Special
        addresses must be in long form or in short form without padding
        zeroes, so ``0x0f`` is rejected while ``0xf`` is accepted.

        Use :meth:`from_str_relaxed` for user input.
        """
        if not address.startswith("0x"):
            raise ParseAddressError("Hex string must start with a leading 0x.")

        out = AccountAddress.from_str_relaxed(address)

        if len(address) != AccountAddress.LENGTH * 2 + 2:
            if not out.is_special():
                raise ParseAddressError(
                    "The given hex string is not a special address, it must be represented "
                    "as 0x + 64 chars."
                )
            elif len(address) != 3:
                raise ParseAddressError(
                    "The given hex string is a special address not in LONG form, "
                    "it must be 0x0 to 0xf without padding zeroes."
                )

        return out

    @staticmethod
    def from_str_relaxed(address: str) -> AccountAddress:
        """
        Parse an address leniently: the 0x prefix is optional and short
        inputs are left padded with zeroes.
        """
        addr = address
        if address[0:2] == "0x":
            addr = address[2:]

        if len(addr) < 1:
            raise ParseAddressError(
                "Hex string is too short, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )
        if len(addr) > 64:
            raise ParseAddressError(
                "Hex string is too long, must be 1 to 64 chars long, excluding the "
                "leading 0x."
            )

        addr = addr.rjust(AccountAddress.LENGTH * 2, "0")
        try:
            return AccountAddress(bytes.fromhex(addr))
        except ValueError as e:
            if isinstance(e, ParseAddressError):
                raise
            raise ParseAddressError(f"Invalid hex in address {address}") from e

    @staticmethod
    def from_key(key: asymmetric_crypto.PublicKey) -> AccountAddress:
        hasher = hashlib.sha3_256()
        hasher.update(key.to_crypto_bytes())

        if isinstance(key, ed25519.PublicKey):
            hasher.update(AuthKeyScheme.Ed25519)
        elif isinstance(key, ed25519.MultiPublicKey):
            hasher.update(AuthKeyScheme.MultiEd25519)
        else:
            raise TypeError(f"Unsupported public key type: {type(key).__name__}")

        return AccountAddress(hasher.digest())

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AccountAddress:
        return AccountAddress(deserializer.fixed_bytes(AccountAddress.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.address)


class Test(unittest.TestCase):
    def test_ed25519(self):
        private_key = ed25519.PrivateKey.from_str(
            "9bf49a6a0755f953811fce125f2683d50429c3bb49e074147e0089a52eae155f", False
        )
        expected = AccountAddress.from_str(
            "0x7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d6"
        )
        self.assertEqual(AccountAddress.from_key(private_key.public_key()), expected)

    def test_multi_ed25519(self):
        private_key_1 = ed25519.PrivateKey.from_str(
            "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe", False
        )
        private_key_2 = ed25519.PrivateKey.from_str(
            "1e70e49b78f976644e2c51754a2f049d3ff041869c669523ba95b172c7329901", False
        )
        multisig_public_key = ed25519.MultiPublicKey(
            [private_key_1.public_key(), private_key_2.public_key()], 1
        )

        expected = AccountAddress.from_str_relaxed(
            "835bb8c5ee481062946b18bbb3b42a40b998d6bf5316ca63834c959dc739acf0"
        )
        self.assertEqual(AccountAddress.from_key(multisig_public_key), expected)

    def test_scheme_separates_single_and_multi(self):
        public_key = ed25519.PrivateKey.random().public_key()
        single = AccountAddress.from_key(public_key)
        multi = AccountAddress.from_key(ed25519.MultiPublicKey([public_key], 1))
        self.assertNotEqual(single, multi)

    def test_multi_ed25519_threshold_changes_address(self):
        keys = [ed25519.PrivateKey.random().public_key() for _ in range(3)]
        self.assertNotEqual(
            AccountAddress.from_key(ed25519.MultiPublicKey(keys, 1)),
            AccountAddress.from_key(ed25519.MultiPublicKey(keys, 2)),
        )

    def test_to_standard_string(self):
        cases = {
            "0x0000000000000000000000000000000000000000000000000000000000000000": "0x0",
            "0x0000000000000000000000000000000000000000000000000000000000000001": "0x1",
            "0x000000000000000000000000000000000000000000000000000000000000000f": "0xf",
            "d": "0xd",
            "0x0000000000000000000000000000000000000000000000000000000000000010": "0x0000000000000000000000000000000000000000000000000000000000000010",
            "ca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0": "0xca843279e3427144cead5e4d5999a3d0ca843279e3427144cead5e4d5999a3d0",
            "0f00000000000000000000000000000000000000000000000000000000000000": "0x0f00000000000000000000000000000000000000000000000000000000000000",
        }
        for value, expected in cases.items():
            self.assertEqual(str(AccountAddress.from_str_relaxed(value)), expected)

    def test_from_str_strict(self):
        self.assertEqual(AccountAddress.from_str("0x1"), AccountAddress.from_str_relaxed("1"))
        for invalid in [
            # Missing 0x.
            "0000000000000000000000000000000000000000000000000000000000000001",
            # Padded special address.
            "0x0f",
            # Short non-special address.
            "0x10",
            "0xca843279e3427144cead5e4d5999a3d0",
        ]:
            with self.assertRaises(ParseAddressError):
                AccountAddress.from_str(invalid)

    def test_from_str_relaxed_errors(self):
        with self.assertRaises(ParseAddressError):
            AccountAddress.from_str_relaxed("0x")
        with self.assertRaises(ParseAddressError):
            AccountAddress.from_str_relaxed("0x" + "1" * 65)
        with self.assertRaises(ParseAddressError):
            AccountAddress.from_str_relaxed("0xzz")

    def test_zero(self):
        self.assertTrue(AccountAddress.zero().is_zero())
        self.assertEqual(str(AccountAddress.zero()), "0x0")
        self.assertFalse(AccountAddress.from_str("0x1").is_zero())

    def test_serialization(self):
        address = AccountAddress.from_str("0x1")
        ser = Serializer()
        address.serialize(ser)
        self.assertEqual(ser.output(), bytes(31) + b"\x01")
        self.assertEqual(AccountAddress.from_bytes(ser.output()), address)


if __name__ == "__main__":
    unittest.main()
