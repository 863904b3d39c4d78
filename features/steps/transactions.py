# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import typing

from behave import given, then, use_step_matcher, when

from aptos_txn.account import Account
from aptos_txn.account_address import AccountAddress
from aptos_txn.bcs import Serializer
from aptos_txn.errors import DecodeError
from aptos_txn.signing import sign_transaction, verify_envelope
from aptos_txn.transaction_builder import TransactionBuilder
from aptos_txn.transactions import (
    EntryFunction,
    SignedTransaction,
    TransactionArgument,
    TransactionPayload,
)
from aptos_txn.type_tag import StructTag, TypeTag

# Use regular expressions
use_step_matcher("re")


@given(r"the account with private key (?P<private_key>\S+)")
def given_account(context: typing.Any, private_key: str):
    context.account = Account.load_key(private_key)


@given(
    r"a coin transfer of (?P<amount>[0-9]+) to (?P<receiver>\S+) "
    r"with sequence number (?P<sequence_number>[0-9]+) on chain (?P<chain_id>[0-9]+)"
)
def given_coin_transfer(
    context: typing.Any,
    amount: str,
    receiver: str,
    sequence_number: str,
    chain_id: str,
):
    payload = EntryFunction.natural(
        "0x1::coin",
        "transfer",
        [TypeTag(StructTag.from_str("0x1::aptos_coin::AptosCoin"))],
        [
            TransactionArgument(AccountAddress.from_str(receiver), Serializer.struct),
            TransactionArgument(int(amount), Serializer.u64),
        ],
    )
    context.raw_transaction = (
        TransactionBuilder()
        .sender(context.account.address())
        .sequence_number(int(sequence_number))
        .payload(TransactionPayload(payload))
        .max_gas_amount(2000)
        .gas_unit_price(1)
        .expiration_timestamps_secs(1234567890)
        .chain_id(int(chain_id))
        .build()
    )


@when(r"I sign the transaction")
def when_sign(context: typing.Any):
    context.signed_transaction = sign_transaction(
        context.raw_transaction, context.account
    )


@when(r"I decode the signed transaction")
def when_decode_signed_transaction(context: typing.Any):
    try:
        context.signed_transaction = SignedTransaction.from_bytes(context.input)
        context.output = context.signed_transaction
    except DecodeError as e:
        context.output = e


@then(r"the raw transaction should serialize to (?P<expected>[0-9a-f]+)")
def then_raw_transaction_bytes(context: typing.Any, expected: str):
    assert context.raw_transaction.to_bytes().hex() == expected


@then(r"the signed transaction should serialize to (?P<expected>[0-9a-f]+)")
def then_signed_transaction_bytes(context: typing.Any, expected: str):
    assert context.signed_transaction.bytes().hex() == expected


@then(r"the signed transaction should verify")
def then_signed_transaction_verifies(context: typing.Any):
    assert verify_envelope(context.signed_transaction)
