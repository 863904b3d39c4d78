# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Fluent construction of raw transactions.

A :class:`TransactionBuilder` collects every field of a
:class:`~aptos_txn.transactions.RawTransaction` and refuses to build until all
of them have been set; nothing is defaulted. Once built, the builder is frozen
until :meth:`TransactionBuilder.reset` is called, so the bytes that were handed
out for signing cannot drift from the builder's state.

Example::

    builder = (
        TransactionBuilder()
        .sender(alice.address())
        .sequence_number(5)
        .payload(TransactionPayload(entry_function))
        .max_gas_amount(2000)
        .gas_unit_price(100)
        .expiration_timestamps_secs(1700000000)
        .chain_id(1)
    )
    raw_transaction = builder.build()
"""

from __future__ import annotations

import logging
import time
import unittest
from typing import Any, List, Optional

from .account_address import AccountAddress
from .bcs import MAX_U8, MAX_U64, Serializer
from .config import ClientConfig
from .errors import MissingField, OrderMismatch
from .transactions import (
    EntryFunction,
    FeePayerRawTransaction,
    MultiAgentRawTransaction,
    RawTransaction,
    RawTransactionInternal,
    TransactionArgument,
    TransactionPayload,
    ensure_distinct_signers,
)

logger = logging.getLogger(__name__)


class TransactionBuilder:
    # Declaration order is the order fields are checked in build().
    REQUIRED_FIELDS = [
        "sender",
        "sequence_number",
        "payload",
        "max_gas_amount",
        "gas_unit_price",
        "expiration_timestamps_secs",
        "chain_id",
    ]

    INTEGER_LIMITS = {
        "sequence_number": MAX_U64,
        "max_gas_amount": MAX_U64,
        "gas_unit_price": MAX_U64,
        "expiration_timestamps_secs": MAX_U64,
        "chain_id": MAX_U8,
    }

    BUILDING: str = "building"
    READY: str = "ready"

    def __init__(self):
        self.reset()

    def reset(self) -> TransactionBuilder:
        """Clear every field and return to the building state."""
        self.state = TransactionBuilder.BUILDING
        self._fields: dict = {}
        self._secondary_signers: Optional[List[AccountAddress]] = None
        self._fee_payer: Optional[AccountAddress] = None
        return self

    @staticmethod
    def from_config(
        client_config: ClientConfig, now: Optional[int] = None
    ) -> TransactionBuilder:
        """
        Start a builder with gas and expiration copied from ``client_config``.

        The expiration is ``now + expiration_ttl``, with ``now`` defaulting to
        the current unix time.
        """
        now = int(time.time()) if now is None else now
        return (
            TransactionBuilder()
            .max_gas_amount(client_config.max_gas_amount)
            .gas_unit_price(client_config.gas_unit_price)
            .expiration_timestamps_secs(now + client_config.expiration_ttl)
        )

    def _ensure_building(self, name: str):
        if self.state != TransactionBuilder.BUILDING:
            raise RuntimeError(
                f"Cannot set {name} after build(), call reset() to start over"
            )

    def _set(self, name: str, value: Any) -> TransactionBuilder:
        self._ensure_building(name)
        self._fields[name] = value
        return self

    def sender(self, sender: AccountAddress) -> TransactionBuilder:
        return self._set("sender", sender)

    def sequence_number(self, sequence_number: int) -> TransactionBuilder:
        return self._set("sequence_number", sequence_number)

    def payload(self, payload: TransactionPayload) -> TransactionBuilder:
        return self._set("payload", payload)

    def max_gas_amount(self, max_gas_amount: int) -> TransactionBuilder:
        return self._set("max_gas_amount", max_gas_amount)

    def gas_unit_price(self, gas_unit_price: int) -> TransactionBuilder:
        return self._set("gas_unit_price", gas_unit_price)

    def expiration_timestamps_secs(self, expiration: int) -> TransactionBuilder:
        return self._set("expiration_timestamps_secs", expiration)

    def chain_id(self, chain_id: int) -> TransactionBuilder:
        return self._set("chain_id", chain_id)

    def secondary_signers(
        self, secondary_signers: List[AccountAddress]
    ) -> TransactionBuilder:
        """Record secondary signers; their order is the order they must sign in."""
        self._ensure_building("secondary_signers")
        self._secondary_signers = list(secondary_signers)
        return self

    def fee_payer(self, fee_payer: AccountAddress) -> TransactionBuilder:
        self._ensure_building("fee_payer")
        self._fee_payer = fee_payer
        return self

    def _validate(self):
        for name in TransactionBuilder.REQUIRED_FIELDS:
            if name not in self._fields:
                raise MissingField(name)
        for name, limit in TransactionBuilder.INTEGER_LIMITS.items():
            value = self._fields[name]
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            if value < 0 or value > limit:
                raise ValueError(f"{name} {value} is outside [0, {limit}]")

    def build(self) -> RawTransaction:
        """
        :return: The raw transaction described by the builder.
        :raises MissingField: Naming the first required field that is unset.
        :raises ValueError: If an integer field does not fit its wire width.
        """
        self._validate()

        raw_transaction = RawTransaction(
            **{name: self._fields[name] for name in TransactionBuilder.REQUIRED_FIELDS}
        )
        self.state = TransactionBuilder.READY
        logger.debug(
            "Built transaction for %s with sequence number %d on chain %d",
            raw_transaction.sender,
            raw_transaction.sequence_number,
            raw_transaction.chain_id,
        )
        return raw_transaction

    def build_multi_agent(self) -> MultiAgentRawTransaction:
        if not self._secondary_signers:
            raise MissingField(
                "secondary_signers",
                "A multi-agent transaction needs at least one secondary signer",
            )
        self._validate()
        ensure_distinct_signers(self._fields["sender"], self._secondary_signers)
        transaction = MultiAgentRawTransaction(self.build(), self._secondary_signers)
        logger.debug(
            "Wrapped transaction as multi-agent with %d secondary signers",
            len(transaction.secondary_signers),
        )
        return transaction

    def build_fee_payer(self) -> FeePayerRawTransaction:
        """
        Wrap the transaction for a sponsor. Without a fee payer the envelope
        carries the 0x0 placeholder, which signing resolves later.
        """
        self._validate()
        ensure_distinct_signers(
            self._fields["sender"], self._secondary_signers or [], self._fee_payer
        )
        transaction = FeePayerRawTransaction(
            self.build(), self._secondary_signers or [], self._fee_payer
        )
        logger.debug(
            "Wrapped transaction as fee payer with %d secondary signers, fee payer %s",
            len(transaction.secondary_signers),
            transaction.fee_payer_address(),
        )
        return transaction

    def build_envelope(self) -> RawTransactionInternal:
        """Build the envelope kind implied by the fields that have been set."""
        if self._fee_payer is not None:
            return self.build_fee_payer()
        if self._secondary_signers is not None:
            return self.build_multi_agent()
        return self.build()

    def build_signing_message(self) -> bytes:
        return self.build_envelope().keyed()


class Test(unittest.TestCase):
    def setUp(self):
        self.sender = AccountAddress.from_str("0x1")
        self.receiver = AccountAddress.from_str("0x2")
        self.payload = TransactionPayload(
            EntryFunction.natural(
                "0x1::coin",
                "transfer",
                [],
                [
                    TransactionArgument(self.receiver, Serializer.struct),
                    TransactionArgument(100, Serializer.u64),
                ],
            )
        )

    def builder(self) -> TransactionBuilder:
        return (
            TransactionBuilder()
            .sender(self.sender)
            .sequence_number(5)
            .payload(self.payload)
            .max_gas_amount(2000)
            .gas_unit_price(100)
            .expiration_timestamps_secs(1700000000)
            .chain_id(1)
        )

    def test_build(self):
        raw_transaction = self.builder().build()
        self.assertEqual(
            raw_transaction,
            RawTransaction(self.sender, 5, self.payload, 2000, 100, 1700000000, 1),
        )
        self.assertEqual(
            RawTransaction.from_bytes(raw_transaction.to_bytes()), raw_transaction
        )

    def test_missing_field(self):
        builder = TransactionBuilder().sender(self.sender).sequence_number(5)
        with self.assertRaises(MissingField) as context:
            builder.build()
        self.assertEqual(context.exception.field, "payload")

        with self.assertRaises(MissingField) as context:
            TransactionBuilder().build()
        self.assertEqual(context.exception.field, "sender")

    def test_independent_builders_agree(self):
        self.assertEqual(
            self.builder().build_signing_message(),
            self.builder().build_signing_message(),
        )

    def test_frozen_after_build(self):
        builder = self.builder()
        builder.build()
        self.assertEqual(builder.state, TransactionBuilder.READY)
        with self.assertRaises(RuntimeError):
            builder.sequence_number(6)
        with self.assertRaises(RuntimeError):
            builder.fee_payer(self.receiver)

        builder.reset()
        self.assertEqual(builder.state, TransactionBuilder.BUILDING)
        with self.assertRaises(MissingField):
            builder.build()

    def test_multi_agent(self):
        with self.assertRaises(MissingField):
            self.builder().build_multi_agent()
        with self.assertRaises(MissingField):
            self.builder().secondary_signers([]).build_multi_agent()

        transaction = self.builder().secondary_signers([self.receiver]).build_multi_agent()
        self.assertEqual(transaction.secondary_signers, [self.receiver])
        self.assertEqual(
            self.builder().secondary_signers([self.receiver]).build_signing_message(),
            transaction.keyed(),
        )

    def test_fee_payer_placeholder(self):
        transaction = self.builder().build_fee_payer()
        self.assertTrue(transaction.has_placeholder_fee_payer())
        self.assertEqual(transaction.secondary_signers, [])

        sponsored = self.builder().fee_payer(self.receiver).build_fee_payer()
        self.assertEqual(sponsored.fee_payer_address(), self.receiver)
        self.assertNotEqual(transaction.keyed(), sponsored.keyed())

    def test_signing_messages_differ_by_envelope(self):
        plain = self.builder().build_signing_message()
        multi_agent = (
            self.builder().secondary_signers([self.receiver]).build_signing_message()
        )
        fee_payer = self.builder().fee_payer(self.receiver).build_signing_message()
        self.assertEqual(len({plain, multi_agent, fee_payer}), 3)

    def test_out_of_range_fields(self):
        for setter, value in [
            ("sequence_number", -1),
            ("sequence_number", MAX_U64 + 1),
            ("max_gas_amount", -5),
            ("gas_unit_price", MAX_U64 + 1),
            ("expiration_timestamps_secs", 2**70),
            ("chain_id", 300),
            ("chain_id", True),
            ("sequence_number", "5"),
        ]:
            builder = getattr(self.builder(), setter)(value)
            with self.assertRaises(ValueError, msg=f"{setter}={value!r}"):
                builder.build()
            self.assertEqual(builder.state, TransactionBuilder.BUILDING)

        edge = self.builder().sequence_number(MAX_U64).chain_id(MAX_U8).build()
        self.assertEqual(RawTransaction.from_bytes(edge.to_bytes()), edge)

    def test_repeated_signers_rejected(self):
        for builder in [
            self.builder().secondary_signers([self.receiver, self.receiver]),
            self.builder().secondary_signers([self.sender]),
            self.builder().fee_payer(self.sender),
        ]:
            with self.assertRaises(OrderMismatch):
                builder.build_envelope()
            self.assertEqual(builder.state, TransactionBuilder.BUILDING)

    def test_from_config(self):
        config = ClientConfig(gas_unit_price=150, max_gas_amount=50_000)
        raw_transaction = (
            TransactionBuilder.from_config(config, now=1_000)
            .sender(self.sender)
            .sequence_number(0)
            .payload(self.payload)
            .chain_id(4)
            .build()
        )
        self.assertEqual(raw_transaction.gas_unit_price, 150)
        self.assertEqual(raw_transaction.max_gas_amount, 50_000)
        self.assertEqual(raw_transaction.expiration_timestamps_secs, 1_600)


if __name__ == "__main__":
    unittest.main()
