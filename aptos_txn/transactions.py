# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
This translates Aptos transactions to and from BCS for signing and submitting to the REST API.

The signed message for a plain transaction is
``sha3_256(b"APTOS::RawTransaction") || bcs(raw_transaction)``. Multi-agent and
fee-payer transactions are signed as a ``RawTransactionWithData`` enum instead,
under the ``APTOS::RawTransactionWithData`` salt; the enum variant byte that
follows the salt keeps the two envelope kinds apart.
"""

from __future__ import annotations

import hashlib
import unittest
from typing import Any, Callable, List, Optional, Union

from typing_extensions import Protocol

from . import ed25519
from .account_address import AccountAddress
from .authenticator import (
    AccountAuthenticator,
    Authenticator,
    Ed25519Authenticator,
    FeePayerAuthenticator,
    MultiAgentAuthenticator,
)
from .bcs import Deserializable, Deserializer, Serializable, Serializer, encoder
from .errors import DecodeError, OrderMismatch
from .type_tag import StructTag, TypeTag


def _salt(domain: bytes) -> bytes:
    hasher = hashlib.sha3_256()
    hasher.update(domain)
    return hasher.digest()


RAW_TRANSACTION_SALT = _salt(b"APTOS::RawTransaction")
RAW_TRANSACTION_WITH_DATA_SALT = _salt(b"APTOS::RawTransactionWithData")
TRANSACTION_SALT = _salt(b"APTOS::Transaction")

# Variant of Transaction::UserTransaction in the node's transaction enum.
USER_TRANSACTION_VARIANT = b"\x00"


class RawTransactionInternal(Protocol):
    def keyed(self) -> bytes:
        """The exact bytes a signer signs: the domain salt followed by BCS."""
        ser = Serializer()
        self.serialize(ser)
        prehash = bytearray(self.prehash())
        prehash.extend(ser.output())
        return bytes(prehash)

    def prehash(self) -> bytes: ...

    def serialize(self, serializer: Serializer) -> None: ...

    def sign(self, key: ed25519.PrivateKey) -> AccountAuthenticator:
        signature = key.sign(self.keyed())
        return AccountAuthenticator(Ed25519Authenticator(key.public_key(), signature))

    def verify(self, key: ed25519.PublicKey, signature: ed25519.Signature) -> bool:
        return key.verify(self.keyed(), signature)


class RawTransactionWithData(RawTransactionInternal, Protocol):
    MULTI_AGENT: int = 0
    FEE_PAYER: int = 1

    raw_transaction: RawTransaction
    secondary_signers: List[AccountAddress]

    def inner(self) -> RawTransaction:
        return self.raw_transaction

    def prehash(self) -> bytes:
        return RAW_TRANSACTION_WITH_DATA_SALT

    @staticmethod
    def deserialize(deserializer: Deserializer) -> RawTransactionWithData:
        variant = deserializer.u8()
        if variant not in (
            RawTransactionWithData.MULTI_AGENT,
            RawTransactionWithData.FEE_PAYER,
        ):
            raise DecodeError(f"Invalid RawTransactionWithData variant: {variant}")

        raw_transaction = RawTransaction.deserialize(deserializer)
        secondary_signers = deserializer.sequence(AccountAddress.deserialize)
        if variant == RawTransactionWithData.MULTI_AGENT:
            return MultiAgentRawTransaction(raw_transaction, secondary_signers)
        fee_payer = AccountAddress.deserialize(deserializer)
        return FeePayerRawTransaction(raw_transaction, secondary_signers, fee_payer)


class RawTransaction(Deserializable, RawTransactionInternal, Serializable):
    # Sender's address
    sender: AccountAddress
    # Sequence number of this transaction. This must match the sequence number in the sender's
    # account at the time of execution.
    sequence_number: int
    # The transaction payload, e.g., a script to execute.
    payload: TransactionPayload
    # Maximum total gas to spend for this transaction
    max_gas_amount: int
    # Price to be paid per gas unit.
    gas_unit_price: int
    # Expiration timestamp for this transaction, represented as seconds from the Unix epoch.
    expiration_timestamps_secs: int
    # Chain ID of the Aptos network this transaction is intended for.
    chain_id: int

    def __init__(
        self,
        sender: AccountAddress,
        sequence_number: int,
        payload: TransactionPayload,
        max_gas_amount: int,
        gas_unit_price: int,
        expiration_timestamps_secs: int,
        chain_id: int,
    ):
        self.sender = sender
        self.sequence_number = sequence_number
        self.payload = payload
        self.max_gas_amount = max_gas_amount
        self.gas_unit_price = gas_unit_price
        self.expiration_timestamps_secs = expiration_timestamps_secs
        self.chain_id = chain_id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RawTransaction):
            return NotImplemented
        return (
            self.sender == other.sender
            and self.sequence_number == other.sequence_number
            and self.payload == other.payload
            and self.max_gas_amount == other.max_gas_amount
            and self.gas_unit_price == other.gas_unit_price
            and self.expiration_timestamps_secs == other.expiration_timestamps_secs
            and self.chain_id == other.chain_id
        )

    def __str__(self):
        return f"""RawTransaction:
    sender: {self.sender}
    sequence_number: {self.sequence_number}
    payload: {self.payload}
    max_gas_amount: {self.max_gas_amount}
    gas_unit_price: {self.gas_unit_price}
    expiration_timestamps_secs: {self.expiration_timestamps_secs}
    chain_id: {self.chain_id}
"""

    def prehash(self) -> bytes:
        return RAW_TRANSACTION_SALT

    @staticmethod
    def deserialize(deserializer: Deserializer) -> RawTransaction:
        return RawTransaction(
            AccountAddress.deserialize(deserializer),
            deserializer.u64(),
            TransactionPayload.deserialize(deserializer),
            deserializer.u64(),
            deserializer.u64(),
            deserializer.u64(),
            deserializer.u8(),
        )

    def serialize(self, serializer: Serializer) -> None:
        self.sender.serialize(serializer)
        serializer.u64(self.sequence_number)
        self.payload.serialize(serializer)
        serializer.u64(self.max_gas_amount)
        serializer.u64(self.gas_unit_price)
        serializer.u64(self.expiration_timestamps_secs)
        serializer.u8(self.chain_id)


def ensure_distinct_signers(
    sender: AccountAddress,
    secondary_signers: List[AccountAddress],
    fee_payer: Optional[AccountAddress] = None,
):
    """
    Each secondary signer must appear once and differ from the sender. A fee
    payer, when known, must differ from the sender as well.

    :raises OrderMismatch: If a signer list breaks either rule.
    """
    seen = set()
    for address in secondary_signers:
        if address == sender:
            raise OrderMismatch(f"Sender {sender} is also listed as a secondary signer")
        if address in seen:
            raise OrderMismatch(f"Secondary signer {address} is listed more than once")
        seen.add(address)
    if fee_payer is not None and fee_payer == sender:
        raise OrderMismatch(f"Sender {sender} cannot also be the fee payer")


class MultiAgentRawTransaction(RawTransactionWithData):
    def __init__(
        self, raw_transaction: RawTransaction, secondary_signers: List[AccountAddress]
    ):
        self.raw_transaction = raw_transaction
        self.secondary_signers = list(secondary_signers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultiAgentRawTransaction):
            return NotImplemented
        return (
            self.raw_transaction == other.raw_transaction
            and self.secondary_signers == other.secondary_signers
        )

    def serialize(self, serializer: Serializer) -> None:
        serializer.u8(RawTransactionWithData.MULTI_AGENT)
        serializer.struct(self.raw_transaction)
        serializer.sequence(self.secondary_signers, Serializer.struct)


class FeePayerRawTransaction(RawTransactionWithData):
    """
    A transaction whose gas is paid by ``fee_payer`` rather than the sender.

    A fee payer of ``None`` is written as the all-zero address; that
    placeholder must be replaced by the real fee payer before anyone signs.
    """

    fee_payer: Optional[AccountAddress]

    def __init__(
        self,
        raw_transaction: RawTransaction,
        secondary_signers: List[AccountAddress],
        fee_payer: Optional[AccountAddress],
    ):
        self.raw_transaction = raw_transaction
        self.secondary_signers = list(secondary_signers)
        self.fee_payer = fee_payer

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FeePayerRawTransaction):
            return NotImplemented
        return (
            self.raw_transaction == other.raw_transaction
            and self.secondary_signers == other.secondary_signers
            and self.fee_payer_address() == other.fee_payer_address()
        )

    def fee_payer_address(self) -> AccountAddress:
        return AccountAddress.zero() if self.fee_payer is None else self.fee_payer

    def has_placeholder_fee_payer(self) -> bool:
        return self.fee_payer_address().is_zero()

    def with_fee_payer(self, fee_payer: AccountAddress) -> FeePayerRawTransaction:
        return FeePayerRawTransaction(
            self.raw_transaction, self.secondary_signers, fee_payer
        )

    def serialize(self, serializer: Serializer) -> None:
        serializer.u8(RawTransactionWithData.FEE_PAYER)
        serializer.struct(self.raw_transaction)
        serializer.sequence(self.secondary_signers, Serializer.struct)
        serializer.struct(self.fee_payer_address())


class TransactionPayload:
    SCRIPT: int = 0
    MODULE_BUNDLE: int = 1
    ENTRY_FUNCTION: int = 2
    MULTISIG: int = 3

    variant: int
    value: Any

    def __init__(self, payload: Any):
        if isinstance(payload, Script):
            self.variant = TransactionPayload.SCRIPT
        elif isinstance(payload, EntryFunction):
            self.variant = TransactionPayload.ENTRY_FUNCTION
        elif isinstance(payload, Multisig):
            self.variant = TransactionPayload.MULTISIG
        else:
            raise TypeError(f"Invalid payload type: {type(payload).__name__}")
        self.value = payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransactionPayload):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __str__(self) -> str:
        return self.value.__str__()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TransactionPayload:
        variant = deserializer.uleb128()

        if variant == TransactionPayload.SCRIPT:
            payload: Any = Script.deserialize(deserializer)
        elif variant == TransactionPayload.MODULE_BUNDLE:
            raise DecodeError("ModuleBundle payloads are deprecated")
        elif variant == TransactionPayload.ENTRY_FUNCTION:
            payload = EntryFunction.deserialize(deserializer)
        elif variant == TransactionPayload.MULTISIG:
            payload = Multisig.deserialize(deserializer)
        else:
            raise DecodeError(f"Invalid TransactionPayload variant: {variant}")

        return TransactionPayload(payload)

    def serialize(self, serializer: Serializer) -> None:
        serializer.uleb128(self.variant)
        self.value.serialize(serializer)


class Script:
    code: bytes
    ty_args: List[TypeTag]
    args: List[ScriptArgument]

    def __init__(self, code: bytes, ty_args: List[TypeTag], args: List[ScriptArgument]):
        self.code = code
        self.ty_args = ty_args
        self.args = args

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Script:
        code = deserializer.to_bytes()
        ty_args = deserializer.sequence(TypeTag.deserialize)
        args = deserializer.sequence(ScriptArgument.deserialize)
        return Script(code, ty_args, args)

    def serialize(self, serializer: Serializer) -> None:
        serializer.to_bytes(self.code)
        serializer.sequence(self.ty_args, Serializer.struct)
        serializer.sequence(self.args, Serializer.struct)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Script):
            return NotImplemented
        return (
            self.code == other.code
            and self.ty_args == other.ty_args
            and self.args == other.args
        )

    def __str__(self):
        return f"<{self.ty_args}>({self.args})"


class ScriptArgument:
    U8: int = 0
    U64: int = 1
    U128: int = 2
    ADDRESS: int = 3
    U8_VECTOR: int = 4
    BOOL: int = 5
    U16: int = 6
    U32: int = 7
    U256: int = 8

    variant: int
    value: Any

    _ENCODERS: dict = {
        U8: (Serializer.u8, Deserializer.u8),
        U64: (Serializer.u64, Deserializer.u64),
        U128: (Serializer.u128, Deserializer.u128),
        ADDRESS: (Serializer.struct, AccountAddress.deserialize),
        U8_VECTOR: (Serializer.to_bytes, Deserializer.to_bytes),
        BOOL: (Serializer.bool, Deserializer.bool),
        U16: (Serializer.u16, Deserializer.u16),
        U32: (Serializer.u32, Deserializer.u32),
        U256: (Serializer.u256, Deserializer.u256),
    }

    def __init__(self, variant: int, value: Any):
        if variant not in ScriptArgument._ENCODERS:
            raise ValueError(f"Invalid ScriptArgument variant {variant}")

        self.variant = variant
        self.value = value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ScriptArgument:
        variant = deserializer.u8()
        if variant not in ScriptArgument._ENCODERS:
            raise DecodeError(f"Invalid ScriptArgument variant {variant}")
        decoder = ScriptArgument._ENCODERS[variant][1]
        return ScriptArgument(variant, decoder(deserializer))

    def serialize(self, serializer: Serializer) -> None:
        serializer.u8(self.variant)
        write = ScriptArgument._ENCODERS[self.variant][0]
        write(serializer, self.value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScriptArgument):
            return NotImplemented
        return self.variant == other.variant and self.value == other.value

    def __str__(self):
        return f"[{self.variant}] {self.value}"


class EntryFunction:
    module: ModuleId
    function: str
    ty_args: List[TypeTag]
    args: List[bytes]

    def __init__(
        self, module: ModuleId, function: str, ty_args: List[TypeTag], args: List[bytes]
    ):
        self.module = module
        self.function = function
        self.ty_args = ty_args
        self.args = args

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntryFunction):
            return NotImplemented

        return (
            self.module == other.module
            and self.function == other.function
            and self.ty_args == other.ty_args
            and self.args == other.args
        )

    def __str__(self):
        return f"{self.module}::{self.function}::<{self.ty_args}>({self.args})"

    @staticmethod
    def natural(
        module: str,
        function: str,
        ty_args: List[TypeTag],
        args: List[TransactionArgument],
    ) -> EntryFunction:
        """
        Build an entry function call from a module string such as
        ``"0x1::coin"`` and arguments that are BCS encoded up front.
        """
        module_id = ModuleId.from_str(module)

        byte_args = []
        for arg in args:
            byte_args.append(arg.encode())
        return EntryFunction(module_id, function, ty_args, byte_args)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> EntryFunction:
        module = ModuleId.deserialize(deserializer)
        function = deserializer.str()
        ty_args = deserializer.sequence(TypeTag.deserialize)
        args = deserializer.sequence(Deserializer.to_bytes)
        return EntryFunction(module, function, ty_args, args)

    def serialize(self, serializer: Serializer) -> None:
        self.module.serialize(serializer)
        serializer.str(self.function)
        serializer.sequence(self.ty_args, Serializer.struct)
        serializer.sequence(self.args, Serializer.to_bytes)


class Multisig:
    multisig_address: AccountAddress
    transaction_payload: Optional[MultisigTransactionPayload]

    def __init__(
        self,
        multisig_address: AccountAddress,
        transaction_payload: Optional[MultisigTransactionPayload] = None,
    ):
        self.multisig_address = multisig_address
        self.transaction_payload = transaction_payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Multisig):
            return NotImplemented
        return (
            self.multisig_address == other.multisig_address
            and self.transaction_payload == other.transaction_payload
        )

    def __str__(self):
        return f"Multisig({self.multisig_address}, {self.transaction_payload})"

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Multisig:
        multisig_address = AccountAddress.deserialize(deserializer)
        transaction_payload = deserializer.option(MultisigTransactionPayload.deserialize)
        return Multisig(multisig_address, transaction_payload)

    def serialize(self, serializer: Serializer):
        self.multisig_address.serialize(serializer)
        serializer.option(self.transaction_payload, Serializer.struct)


class MultisigTransactionPayload:
    """
    Currently `MultisigTransactionPayload` only supports `EntryFunction` type payload
    """

    ENTRY_FUNCTION: int = 0

    payload_variant: int
    transaction_payload: EntryFunction

    def __init__(self, transaction_payload: Any):
        if isinstance(transaction_payload, EntryFunction):
            self.payload_variant = self.ENTRY_FUNCTION
        else:
            raise TypeError("Invalid payload type")
        self.transaction_payload = transaction_payload

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MultisigTransactionPayload):
            return NotImplemented
        return self.transaction_payload == other.transaction_payload

    def __str__(self):
        return str(self.transaction_payload)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> MultisigTransactionPayload:
        payload_variant = deserializer.uleb128()
        if payload_variant != MultisigTransactionPayload.ENTRY_FUNCTION:
            raise DecodeError(f"Invalid MultisigTransactionPayload variant: {payload_variant}")
        return MultisigTransactionPayload(EntryFunction.deserialize(deserializer))

    def serialize(self, serializer: Serializer):
        serializer.uleb128(self.payload_variant)
        self.transaction_payload.serialize(serializer)


class ModuleId:
    address: AccountAddress
    name: str

    def __init__(self, address: AccountAddress, name: str):
        self.address = address
        self.name = name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModuleId):
            return NotImplemented
        return self.address == other.address and self.name == other.name

    def __str__(self) -> str:
        return f"{self.address}::{self.name}"

    @staticmethod
    def from_str(module_id: str) -> ModuleId:
        split = module_id.split("::")
        if len(split) != 2:
            raise ValueError(f"Invalid module id {module_id}, expected address::name")
        return ModuleId(AccountAddress.from_str_relaxed(split[0]), split[1])

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ModuleId:
        addr = AccountAddress.deserialize(deserializer)
        name = deserializer.str()
        return ModuleId(addr, name)

    def serialize(self, serializer: Serializer) -> None:
        self.address.serialize(serializer)
        serializer.str(self.name)


class TransactionArgument:
    value: Any
    encoder: Callable[[Serializer, Any], None]

    def __init__(
        self,
        value: Any,
        encoder: Callable[[Serializer, Any], None],
    ):
        self.value = value
        self.encoder = encoder

    def encode(self) -> bytes:
        ser = Serializer()
        self.encoder(ser, self.value)
        return ser.output()


class SignedTransaction:
    transaction: RawTransaction
    authenticator: Authenticator

    def __init__(
        self,
        transaction: RawTransaction,
        authenticator: Union[AccountAuthenticator, Authenticator],
    ):
        self.transaction = transaction
        if isinstance(authenticator, AccountAuthenticator):
            authenticator = Authenticator(authenticator.authenticator)
        self.authenticator = authenticator

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SignedTransaction):
            return NotImplemented
        return (
            self.transaction == other.transaction
            and self.authenticator == other.authenticator
        )

    def __str__(self) -> str:
        return f"Transaction: {self.transaction}Authenticator: {self.authenticator}"

    def bytes(self) -> bytes:
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def hash(self) -> str:
        """The user transaction hash the node reports for this transaction."""
        hasher = hashlib.sha3_256()
        hasher.update(TRANSACTION_SALT)
        hasher.update(USER_TRANSACTION_VARIANT)
        hasher.update(self.bytes())
        return f"0x{hasher.hexdigest()}"

    def signed_message(self) -> RawTransactionInternal:
        """Rebuild the envelope every signature in the authenticator covers."""
        auth = self.authenticator.authenticator
        if isinstance(auth, MultiAgentAuthenticator):
            return MultiAgentRawTransaction(
                self.transaction, auth.secondary_addresses()
            )
        elif isinstance(auth, FeePayerAuthenticator):
            return FeePayerRawTransaction(
                self.transaction,
                auth.secondary_addresses(),
                auth.fee_payer_address(),
            )
        return self.transaction

    def verify(self) -> bool:
        return self.authenticator.verify(self.signed_message().keyed())

    @staticmethod
    def deserialize(deserializer: Deserializer) -> SignedTransaction:
        transaction = RawTransaction.deserialize(deserializer)
        authenticator = Authenticator.deserialize(deserializer)
        return SignedTransaction(transaction, authenticator)

    @staticmethod
    def from_bytes(indata: bytes) -> SignedTransaction:
        der = Deserializer(indata)
        signed_transaction = SignedTransaction.deserialize(der)
        der.ensure_consumed()
        return signed_transaction

    def serialize(self, serializer: Serializer) -> None:
        self.transaction.serialize(serializer)
        self.authenticator.serialize(serializer)


class Test(unittest.TestCase):
    SENDER_KEY = "9bf49a6a0755f953811fce125f2683d50429c3bb49e074147e0089a52eae155f"
    RECEIVER_KEY = "0564f879d27ae3c02ce82834acfa8c793a629f2ca0de6919610be82f411326be"

    def _raw(self, sender: AccountAddress, payload: EntryFunction) -> RawTransaction:
        return RawTransaction(
            sender, 11, TransactionPayload(payload), 2000, 1, 1234567890, 4
        )

    def test_entry_function(self):
        private_key = ed25519.PrivateKey.random()
        account_address = AccountAddress.from_key(private_key.public_key())
        recipient_address = AccountAddress.from_key(
            ed25519.PrivateKey.random().public_key()
        )

        payload = EntryFunction.natural(
            "0x1::coin",
            "transfer",
            [TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))],
            [
                TransactionArgument(recipient_address, Serializer.struct),
                TransactionArgument(5000, Serializer.u64),
            ],
        )
        raw_transaction = RawTransaction(
            account_address,
            0,
            TransactionPayload(payload),
            2000,
            0,
            18446744073709551615,
            4,
        )

        authenticator = raw_transaction.sign(private_key)
        signed_transaction = SignedTransaction(raw_transaction, authenticator)
        self.assertTrue(signed_transaction.verify())
        self.assertEqual(
            SignedTransaction.from_bytes(signed_transaction.bytes()), signed_transaction
        )

    def test_entry_function_with_corpus(self):
        sender_private_key = ed25519.PrivateKey.from_str(self.SENDER_KEY, False)
        sender_address = AccountAddress.from_key(sender_private_key.public_key())
        receiver_address = AccountAddress.from_key(
            ed25519.PrivateKey.from_str(self.RECEIVER_KEY, False).public_key()
        )

        payload = EntryFunction.natural(
            "0x1::coin",
            "transfer",
            [TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))],
            [
                TransactionArgument(receiver_address, Serializer.struct),
                TransactionArgument(5000, Serializer.u64),
            ],
        )
        raw_transaction_generated = self._raw(sender_address, payload)
        signed_transaction_generated = SignedTransaction(
            raw_transaction_generated, raw_transaction_generated.sign(sender_private_key)
        )
        self.assertTrue(signed_transaction_generated.verify())

        raw_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000104636f696e087472616e73666572010700000000000000000000000000000000000000000000000000000000000000010a6170746f735f636f696e094170746f73436f696e0002202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9088813000000000000d0070000000000000100000000000000d20296490000000004"
        signed_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000104636f696e087472616e73666572010700000000000000000000000000000000000000000000000000000000000000010a6170746f735f636f696e094170746f73436f696e0002202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9088813000000000000d0070000000000000100000000000000d202964900000000040020b9c6ee1630ef3e711144a648db06bbb2284f7274cfbee53ffcee503cc1a4920040f25b74ec60a38a1ed780fd2bef6ddb6eb4356e3ab39276c9176cdf0fcae2ab37d79b626abb43d926e91595b66503a4a3c90acbae36a28d405e308f3537af720b"

        self.verify_transactions(
            raw_transaction_input,
            raw_transaction_generated,
            signed_transaction_input,
            signed_transaction_generated,
        )

    def test_entry_function_multi_agent_with_corpus(self):
        sender_private_key = ed25519.PrivateKey.from_str(self.SENDER_KEY, False)
        receiver_private_key = ed25519.PrivateKey.from_str(self.RECEIVER_KEY, False)
        sender_address = AccountAddress.from_key(sender_private_key.public_key())
        receiver_address = AccountAddress.from_key(receiver_private_key.public_key())

        payload = EntryFunction.natural(
            "0x3::token",
            "direct_transfer_script",
            [],
            [
                TransactionArgument(receiver_address, Serializer.struct),
                TransactionArgument("collection_name", Serializer.str),
                TransactionArgument("token_name", Serializer.str),
                TransactionArgument(1, Serializer.u64),
            ],
        )
        raw_transaction_generated = MultiAgentRawTransaction(
            self._raw(sender_address, payload), [receiver_address]
        )

        authenticator = Authenticator(
            MultiAgentAuthenticator(
                raw_transaction_generated.sign(sender_private_key),
                [
                    (
                        receiver_address,
                        raw_transaction_generated.sign(receiver_private_key),
                    )
                ],
            )
        )
        signed_transaction_generated = SignedTransaction(
            raw_transaction_generated.inner(), authenticator
        )
        self.assertTrue(signed_transaction_generated.verify())

        raw_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000305746f6b656e166469726563745f7472616e736665725f7363726970740004202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9100f636f6c6c656374696f6e5f6e616d650b0a746f6b656e5f6e616d65080100000000000000d0070000000000000100000000000000d20296490000000004"
        signed_transaction_input = "7deeccb1080854f499ec8b4c1b213b82c5e34b925cf6875fec02d4b77adbd2d60b0000000000000002000000000000000000000000000000000000000000000000000000000000000305746f6b656e166469726563745f7472616e736665725f7363726970740004202d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9100f636f6c6c656374696f6e5f6e616d650b0a746f6b656e5f6e616d65080100000000000000d0070000000000000100000000000000d20296490000000004020020b9c6ee1630ef3e711144a648db06bbb2284f7274cfbee53ffcee503cc1a4920040343e7b10aa323c480391a5d7cd2d0cf708d51529b96b5a2be08cbb365e4f11dcc2cf0655766cf70d40853b9c395b62dad7a9f58ed998803d8bf1901ba7a7a401012d133ddd281bb6205558357cc6ac75661817e9aaeac3afebc32842759cbf7fa9010020aef3f4a4b8eca1dfc343361bf8e436bd42de9259c04b8314eb8e2054dd6e82ab408a7f06e404ae8d9535b0cbbeafb7c9e34e95fe1425e4529758150a4f7ce7a683354148ad5c313ec36549e3fb29e669d90010f97467c9074ff0aec3ed87f76608"

        self.verify_transactions(
            raw_transaction_input,
            raw_transaction_generated.inner(),
            signed_transaction_input,
            signed_transaction_generated,
        )

    def verify_transactions(
        self,
        raw_transaction_input: str,
        raw_transaction_generated: RawTransaction,
        signed_transaction_input: str,
        signed_transaction_generated: SignedTransaction,
    ):
        self.assertEqual(raw_transaction_input, raw_transaction_generated.to_bytes().hex())
        raw_transaction = RawTransaction.from_bytes(bytes.fromhex(raw_transaction_input))
        self.assertEqual(raw_transaction_generated, raw_transaction)

        self.assertEqual(
            signed_transaction_input, signed_transaction_generated.bytes().hex()
        )
        signed_transaction = SignedTransaction.from_bytes(
            bytes.fromhex(signed_transaction_input)
        )
        self.assertEqual(signed_transaction.transaction, raw_transaction)
        self.assertTrue(signed_transaction.verify())

    def test_verify_fee_payer(self):
        signed_transaction_input = "4629fa78b6a7810c6c3a45565707896944c4936a5583f9d3981c0692beb9e3fe010000000000000002915efe6647e0440f927d46e39bcb5eb040a7e567e1756e002073bc6e26f2cd230c63616e7661735f746f6b656e04647261770004205d45bb2a6f391440ba10444c7734559bd5ef9053930e3ef53d05be332518522bc90164850086008700880089008a008b008c008d008e008f0090009100920093009400950096009700980099009a009b009c009d009e009f00a000a100a200a300a400a500a600a700a800a900aa00ab00ac00ad00ae00af00b000b100b200b300b400b500b600b700b800b900ba00bb00bc00bd00be00bf00c000c100c200c300c4009f00a000a100a200a300a400a500a600a700a800a900aa00ab00ac00ad00ae00af00b000b100b200b300b400b500b600b700b800b900ba00bb00bc00bd00be00bf00c000c100c200c90164b701b701b701b701b701b701b701b701b701b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601b601130213021302130213021302130213021302130213021302130213021302130213021302130213021302130213021302130213021302130213021302130213021302130213021302656400000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000000400d030000000000640000000000000043663065000000000103002076585d13da61c3d65f786b082e75ef790be66639fa066e0fc3b6f427d6ceb89340e137736ee1a0b60e8bdac8d0c75f29f1e6c6e7378689928125ea7a13164f96244d98ed3584df98643f5db00624f0271931498ff19492558737fbd4dcd0e99c040000af621023eaa26d6f1139da3e146a43aa4757fd77552f73ceba34b00295c340ce0020c245d6e4f0ce0867b80f9b901c00be5d790ed73272f4e5126ce02a5a7d55a15c4002fbb70e7d79b536d692953e4bdc3f762b5a288839ab974f03c8597ebb1c51d1d7e0920991bd79ca8c0acd02a7fb7c38b9c1f4d7e53f19f88b130555b20ef60d"
        signed_txn = SignedTransaction.from_bytes(bytes.fromhex(signed_transaction_input))

        self.assertEqual(signed_txn.bytes().hex(), signed_transaction_input)
        self.assertIsInstance(signed_txn.authenticator.authenticator, FeePayerAuthenticator)
        self.assertTrue(signed_txn.verify())

    def test_fee_payer_domain_separation(self):
        sender = ed25519.PrivateKey.from_str(self.SENDER_KEY, False)
        receiver = AccountAddress.from_key(
            ed25519.PrivateKey.from_str(self.RECEIVER_KEY, False).public_key()
        )
        raw = self._raw(
            AccountAddress.from_key(sender.public_key()),
            EntryFunction.natural(
                "0x1::aptos_account",
                "transfer",
                [],
                [TransactionArgument(receiver, Serializer.struct)],
            ),
        )
        plain = raw.keyed()
        multi_agent = MultiAgentRawTransaction(raw, []).keyed()
        fee_payer = FeePayerRawTransaction(raw, [], None).keyed()

        self.assertTrue(plain.startswith(RAW_TRANSACTION_SALT))
        self.assertTrue(multi_agent.startswith(RAW_TRANSACTION_WITH_DATA_SALT + b"\x00"))
        self.assertTrue(fee_payer.startswith(RAW_TRANSACTION_WITH_DATA_SALT + b"\x01"))
        self.assertEqual(len({plain, multi_agent, fee_payer}), 3)

        signature = sender.sign(fee_payer)
        self.assertTrue(
            FeePayerRawTransaction(raw, [], None).verify(sender.public_key(), signature)
        )
        self.assertFalse(
            MultiAgentRawTransaction(raw, []).verify(sender.public_key(), signature)
        )
        self.assertFalse(raw.verify(sender.public_key(), signature))

    def test_raw_transaction_with_data_round_trip(self):
        raw = self._raw(
            AccountAddress.from_str("0x1"),
            EntryFunction.natural("0x1::coin", "noop", [], []),
        )
        fee_payer = FeePayerRawTransaction(raw, [AccountAddress.from_str("0x2")], None)
        encoded = encoder(fee_payer, Serializer.struct)
        decoded = RawTransactionWithData.deserialize(Deserializer(encoded))
        self.assertEqual(decoded, fee_payer)
        self.assertTrue(decoded.has_placeholder_fee_payer())
        self.assertFalse(
            fee_payer.with_fee_payer(AccountAddress.from_str("0x3")).has_placeholder_fee_payer()
        )

        with self.assertRaises(DecodeError):
            RawTransactionWithData.deserialize(Deserializer(b"\x02"))

    def test_script_arguments(self):
        script = Script(
            b"\xa1\x1c\xeb\x0b",
            [TypeTag.from_str("u64")],
            [
                ScriptArgument(ScriptArgument.U8, 5),
                ScriptArgument(ScriptArgument.U16, 600),
                ScriptArgument(ScriptArgument.U256, 2**200),
                ScriptArgument(ScriptArgument.ADDRESS, AccountAddress.from_str("0x1")),
                ScriptArgument(ScriptArgument.U8_VECTOR, b"\x01\x02"),
                ScriptArgument(ScriptArgument.BOOL, True),
            ],
        )
        payload = TransactionPayload(script)
        ser = Serializer()
        payload.serialize(ser)
        self.assertEqual(ser.output()[0], TransactionPayload.SCRIPT)
        self.assertEqual(TransactionPayload.deserialize(Deserializer(ser.output())), payload)

        with self.assertRaises(ValueError):
            ScriptArgument(9, 0)
        with self.assertRaises(DecodeError):
            ScriptArgument.deserialize(Deserializer(b"\x09"))

    def test_multisig_payload(self):
        entry_function = EntryFunction.natural(
            "0x1::aptos_account",
            "transfer",
            [],
            [
                TransactionArgument(AccountAddress.from_str("0x1"), Serializer.struct),
                TransactionArgument(100, Serializer.u64),
            ],
        )
        multisig_address = AccountAddress.from_str_relaxed("abcd")
        for inner in [None, MultisigTransactionPayload(entry_function)]:
            payload = TransactionPayload(Multisig(multisig_address, inner))
            ser = Serializer()
            payload.serialize(ser)
            self.assertEqual(
                TransactionPayload.deserialize(Deserializer(ser.output())), payload
            )

    def test_module_bundle_deprecated(self):
        with self.assertRaises(DecodeError):
            TransactionPayload.deserialize(Deserializer(b"\x01"))
        with self.assertRaises(DecodeError):
            TransactionPayload.deserialize(Deserializer(b"\x01\x00"))
        with self.assertRaises(TypeError):
            TransactionPayload(b"module bytes")

    def test_hash(self):
        private_key = ed25519.PrivateKey.from_str(self.SENDER_KEY, False)
        raw = self._raw(
            AccountAddress.from_key(private_key.public_key()),
            EntryFunction.natural("0x1::coin", "noop", [], []),
        )
        signed = SignedTransaction(raw, raw.sign(private_key))
        expected = hashlib.sha3_256(
            hashlib.sha3_256(b"APTOS::Transaction").digest() + b"\x00" + signed.bytes()
        ).hexdigest()
        self.assertEqual(signed.hash(), f"0x{expected}")

    def test_trailing_bytes_rejected(self):
        private_key = ed25519.PrivateKey.random()
        raw = self._raw(
            AccountAddress.from_key(private_key.public_key()),
            EntryFunction.natural("0x1::coin", "noop", [], []),
        )
        signed = SignedTransaction(raw, raw.sign(private_key))
        with self.assertRaises(DecodeError):
            SignedTransaction.from_bytes(signed.bytes() + b"\x00")


if __name__ == "__main__":
    unittest.main()
