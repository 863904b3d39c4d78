# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Authenticators: the proof attached to a raw transaction.

:class:`AccountAuthenticator` proves a single account's consent and is what an
individual signer produces. :class:`Authenticator` is the transaction level
envelope; for multi-agent and fee-payer transactions it carries the sender's
account authenticator plus one per secondary signer, in the order the signed
message lists them.
"""

from __future__ import annotations

import typing
import unittest
from typing import List

from . import asymmetric_crypto, ed25519
from .account_address import AccountAddress
from .bcs import Deserializer, Serializer
from .errors import DecodeError


class Authenticator:
    """
    Each transaction submitted to the Aptos blockchain contains a `TransactionAuthenticator`.
    During transaction execution, the executor will check if every `AccountAuthenticator`'s
    signature on the transaction hash is well-formed and whether the sha3 hash of the
    `AccountAuthenticator`'s `AuthenticationKeyPreimage` matches the `AuthenticationKey` stored
    under the participating signer's account address.
    """

    ED25519: int = 0
    MULTI_ED25519: int = 1
    MULTI_AGENT: int = 2
    FEE_PAYER: int = 3

    variant: int
    authenticator: typing.Any

    def __init__(self, authenticator: typing.Any):
        if isinstance(authenticator, Ed25519Authenticator):
            self.variant = Authenticator.ED25519
        elif isinstance(authenticator, MultiEd25519Authenticator):
            self.variant = Authenticator.MULTI_ED25519
        elif isinstance(authenticator, MultiAgentAuthenticator):
            self.variant = Authenticator.MULTI_AGENT
        elif isinstance(authenticator, FeePayerAuthenticator):
            self.variant = Authenticator.FEE_PAYER
        else:
            raise TypeError(f"Invalid authenticator type: {type(authenticator).__name__}")
        self.authenticator = authenticator

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Authenticator):
            return NotImplemented
        return (
            self.variant == other.variant and self.authenticator == other.authenticator
        )

    def __str__(self) -> str:
        return self.authenticator.__str__()

    def verify(self, data: bytes) -> bool:
        return self.authenticator.verify(data)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Authenticator:
        variant = deserializer.uleb128()

        if variant == Authenticator.ED25519:
            authenticator: typing.Any = Ed25519Authenticator.deserialize(deserializer)
        elif variant == Authenticator.MULTI_ED25519:
            authenticator = MultiEd25519Authenticator.deserialize(deserializer)
        elif variant == Authenticator.MULTI_AGENT:
            authenticator = MultiAgentAuthenticator.deserialize(deserializer)
        elif variant == Authenticator.FEE_PAYER:
            authenticator = FeePayerAuthenticator.deserialize(deserializer)
        else:
            raise DecodeError(f"Invalid Authenticator variant: {variant}")

        return Authenticator(authenticator)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.authenticator)


class AccountAuthenticator:
    ED25519: int = 0
    MULTI_ED25519: int = 1

    variant: int
    authenticator: typing.Any

    def __init__(self, authenticator: typing.Any):
        if isinstance(authenticator, Ed25519Authenticator):
            self.variant = AccountAuthenticator.ED25519
        elif isinstance(authenticator, MultiEd25519Authenticator):
            self.variant = AccountAuthenticator.MULTI_ED25519
        else:
            raise TypeError(f"Invalid authenticator type: {type(authenticator).__name__}")
        self.authenticator = authenticator

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAuthenticator):
            return NotImplemented
        return (
            self.variant == other.variant and self.authenticator == other.authenticator
        )

    def __repr__(self) -> str:
        return self.__str__()

    def __str__(self) -> str:
        return self.authenticator.__str__()

    def public_key(self) -> asymmetric_crypto.PublicKey:
        return self.authenticator.public_key

    def address(self) -> AccountAddress:
        """The address whose authentication key this authenticator proves."""
        return AccountAddress.from_key(self.authenticator.public_key)

    def verify(self, data: bytes) -> bool:
        return self.authenticator.verify(data)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AccountAuthenticator:
        variant = deserializer.uleb128()

        if variant == AccountAuthenticator.ED25519:
            authenticator: typing.Any = Ed25519Authenticator.deserialize(deserializer)
        elif variant == AccountAuthenticator.MULTI_ED25519:
            authenticator = MultiEd25519Authenticator.deserialize(deserializer)
        else:
            raise DecodeError(f"Invalid AccountAuthenticator variant: {variant}")

        return AccountAuthenticator(authenticator)

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.variant)
        serializer.struct(self.authenticator)


class Ed25519Authenticator:
    public_key: ed25519.PublicKey
    signature: ed25519.Signature

    def __init__(self, public_key: ed25519.PublicKey, signature: ed25519.Signature):
        self.public_key = public_key
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ed25519Authenticator):
            return NotImplemented

        return self.public_key == other.public_key and self.signature == other.signature

    def __str__(self) -> str:
        return f"PublicKey: {self.public_key}, Signature: {self.signature}"

    def verify(self, data: bytes) -> bool:
        return self.public_key.verify(data, self.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Ed25519Authenticator:
        key = deserializer.struct(ed25519.PublicKey)
        signature = deserializer.struct(ed25519.Signature)
        return Ed25519Authenticator(key, signature)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.public_key)
        serializer.struct(self.signature)


class MultiEd25519Authenticator:
    public_key: ed25519.MultiPublicKey
    signature: ed25519.MultiSignature

    def __init__(
        self, public_key: ed25519.MultiPublicKey, signature: ed25519.MultiSignature
    ):
        self.public_key = public_key
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiEd25519Authenticator):
            return NotImplemented
        return self.public_key == other.public_key and self.signature == other.signature

    def __str__(self) -> str:
        return f"MultiPublicKey: {self.public_key}, MultiSignature: {self.signature}"

    def verify(self, data: bytes) -> bool:
        return self.public_key.verify(data, self.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiEd25519Authenticator:
        public_key = deserializer.struct(ed25519.MultiPublicKey)
        signature = deserializer.struct(ed25519.MultiSignature)
        return MultiEd25519Authenticator(public_key, signature)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.public_key)
        serializer.struct(self.signature)


def _read_secondary_signers(
    deserializer: Deserializer,
) -> List[typing.Tuple[AccountAddress, AccountAuthenticator]]:
    secondary_addresses = deserializer.sequence(AccountAddress.deserialize)
    secondary_authenticators = deserializer.sequence(AccountAuthenticator.deserialize)
    if len(secondary_addresses) != len(secondary_authenticators):
        raise DecodeError(
            f"{len(secondary_addresses)} secondary addresses but "
            f"{len(secondary_authenticators)} secondary authenticators"
        )
    return list(zip(secondary_addresses, secondary_authenticators))


def _write_secondary_signers(
    serializer: Serializer,
    secondary_signers: List[typing.Tuple[AccountAddress, AccountAuthenticator]],
):
    serializer.sequence([x[0] for x in secondary_signers], Serializer.struct)
    serializer.sequence([x[1] for x in secondary_signers], Serializer.struct)


class MultiAgentAuthenticator:
    sender: AccountAuthenticator
    secondary_signers: List[typing.Tuple[AccountAddress, AccountAuthenticator]]

    def __init__(
        self,
        sender: AccountAuthenticator,
        secondary_signers: List[typing.Tuple[AccountAddress, AccountAuthenticator]],
    ):
        self.sender = sender
        self.secondary_signers = list(secondary_signers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiAgentAuthenticator):
            return NotImplemented
        return (
            self.sender == other.sender
            and self.secondary_signers == other.secondary_signers
        )

    def __str__(self) -> str:
        return f"MultiAgent: \n\tSender: {self.sender}\n\tSecondary Signers: {self.secondary_signers}"

    def secondary_addresses(self) -> List[AccountAddress]:
        return [x[0] for x in self.secondary_signers]

    def verify(self, data: bytes) -> bool:
        if not self.sender.verify(data):
            return False
        return all([x[1].verify(data) for x in self.secondary_signers])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultiAgentAuthenticator:
        sender = deserializer.struct(AccountAuthenticator)
        return MultiAgentAuthenticator(sender, _read_secondary_signers(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.sender)
        _write_secondary_signers(serializer, self.secondary_signers)


class FeePayerAuthenticator:
    sender: AccountAuthenticator
    secondary_signers: List[typing.Tuple[AccountAddress, AccountAuthenticator]]
    fee_payer: typing.Tuple[AccountAddress, AccountAuthenticator]

    def __init__(
        self,
        sender: AccountAuthenticator,
        secondary_signers: List[typing.Tuple[AccountAddress, AccountAuthenticator]],
        fee_payer: typing.Tuple[AccountAddress, AccountAuthenticator],
    ):
        self.sender = sender
        self.secondary_signers = list(secondary_signers)
        self.fee_payer = fee_payer

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeePayerAuthenticator):
            return NotImplemented
        return (
            self.sender == other.sender
            and self.secondary_signers == other.secondary_signers
            and self.fee_payer == other.fee_payer
        )

    def __str__(self) -> str:
        return f"FeePayer: \n\tSender: {self.sender}\n\tSecondary Signers: {self.secondary_signers}\n\t{self.fee_payer}"

    def fee_payer_address(self) -> AccountAddress:
        return self.fee_payer[0]

    def secondary_addresses(self) -> List[AccountAddress]:
        return [x[0] for x in self.secondary_signers]

    def verify(self, data: bytes) -> bool:
        if not self.sender.verify(data):
            return False
        if not self.fee_payer[1].verify(data):
            return False
        return all([x[1].verify(data) for x in self.secondary_signers])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> FeePayerAuthenticator:
        sender = deserializer.struct(AccountAuthenticator)
        secondary_signers = _read_secondary_signers(deserializer)
        fee_payer_address = deserializer.struct(AccountAddress)
        fee_payer_authenticator = deserializer.struct(AccountAuthenticator)
        return FeePayerAuthenticator(
            sender,
            secondary_signers,
            (fee_payer_address, fee_payer_authenticator),
        )

    def serialize(self, serializer: Serializer):
        serializer.struct(self.sender)
        _write_secondary_signers(serializer, self.secondary_signers)
        serializer.struct(self.fee_payer[0])
        serializer.struct(self.fee_payer[1])


class Test(unittest.TestCase):
    def setUp(self):
        self.key_1 = ed25519.PrivateKey.from_str(
            "ed25519-priv-0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
        )
        self.key_2 = ed25519.PrivateKey.from_str(
            "ed25519-priv-0x1e70e49b78f976644e2c51754a2f049d3ff041869c669523ba95b172c7329901"
        )

    def _account_authenticator(self, key: ed25519.PrivateKey, data: bytes):
        return AccountAuthenticator(
            Ed25519Authenticator(key.public_key(), key.sign(data))
        )

    def test_ed25519_layout(self):
        auth = Authenticator(
            Ed25519Authenticator(self.key_1.public_key(), self.key_1.sign(b"data"))
        )
        encoded = Serializer()
        auth.serialize(encoded)
        output = encoded.output()
        # variant, key length, key, signature length, signature
        self.assertEqual(len(output), 1 + 1 + 32 + 1 + 64)
        self.assertEqual(output[0:2], b"\x00\x20")
        self.assertEqual(Authenticator.deserialize(Deserializer(output)), auth)
        self.assertTrue(auth.verify(b"data"))
        self.assertFalse(auth.verify(b"other"))

    def test_multi_ed25519_account_authenticator(self):
        multisig_key = ed25519.MultiPublicKey(
            [self.key_1.public_key(), self.key_2.public_key()], 1
        )
        signature = multisig_key.aggregate(
            [(self.key_2.public_key(), self.key_2.sign(b"data"))]
        )
        auth = AccountAuthenticator(MultiEd25519Authenticator(multisig_key, signature))
        self.assertEqual(auth.variant, AccountAuthenticator.MULTI_ED25519)
        self.assertEqual(
            str(auth.address()),
            "0x835bb8c5ee481062946b18bbb3b42a40b998d6bf5316ca63834c959dc739acf0",
        )

        ser = Serializer()
        auth.serialize(ser)
        der = Deserializer(ser.output())
        self.assertEqual(AccountAuthenticator.deserialize(der), auth)
        self.assertTrue(auth.verify(b"data"))

    def test_multi_agent(self):
        sender = self._account_authenticator(self.key_1, b"data")
        secondary = self._account_authenticator(self.key_2, b"data")
        secondary_address = AccountAddress.from_key(self.key_2.public_key())
        auth = Authenticator(
            MultiAgentAuthenticator(sender, [(secondary_address, secondary)])
        )
        self.assertEqual(auth.variant, Authenticator.MULTI_AGENT)

        ser = Serializer()
        auth.serialize(ser)
        self.assertEqual(Authenticator.deserialize(Deserializer(ser.output())), auth)
        self.assertTrue(auth.verify(b"data"))
        self.assertEqual(auth.authenticator.secondary_addresses(), [secondary_address])

    def test_fee_payer(self):
        sender = self._account_authenticator(self.key_1, b"data")
        fee_payer = self._account_authenticator(self.key_2, b"data")
        fee_payer_address = AccountAddress.from_key(self.key_2.public_key())
        auth = Authenticator(
            FeePayerAuthenticator(sender, [], (fee_payer_address, fee_payer))
        )
        self.assertEqual(auth.variant, Authenticator.FEE_PAYER)

        ser = Serializer()
        auth.serialize(ser)
        self.assertEqual(Authenticator.deserialize(Deserializer(ser.output())), auth)
        self.assertTrue(auth.verify(b"data"))

        tampered = FeePayerAuthenticator(
            sender,
            [],
            (fee_payer_address, self._account_authenticator(self.key_2, b"other")),
        )
        self.assertFalse(tampered.verify(b"data"))

    def test_secondary_count_mismatch(self):
        sender = self._account_authenticator(self.key_1, b"data")
        ser = Serializer()
        ser.uleb128(Authenticator.MULTI_AGENT)
        sender.serialize(ser)
        ser.sequence([AccountAddress.from_str("0x1")], Serializer.struct)
        ser.sequence([], Serializer.struct)
        with self.assertRaises(DecodeError):
            Authenticator.deserialize(Deserializer(ser.output()))

    def test_unknown_variants(self):
        with self.assertRaises(DecodeError):
            Authenticator.deserialize(Deserializer(b"\x04"))
        with self.assertRaises(DecodeError):
            AccountAuthenticator.deserialize(Deserializer(b"\x02"))


if __name__ == "__main__":
    unittest.main()
