# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

import typing

from behave import then, use_step_matcher, when

from aptos_txn.account_address import AccountAddress, ParseAddressError
from aptos_txn.ed25519 import MultiPublicKey, PrivateKey

# Use regular expressions
use_step_matcher("re")


@when(r"I parse the account address")
def when_parse_account_address(context: typing.Any):
    try:
        context.output = AccountAddress.from_str_relaxed(context.input)
    except ParseAddressError as e:
        context.output = e


@when(r"I parse the account address strictly")
def when_parse_account_address_strict(context: typing.Any):
    try:
        context.output = AccountAddress.from_str(context.input)
    except ParseAddressError as e:
        context.output = e


@when(r"I convert the address to a string")
def when_account_address_to_string(context: typing.Any):
    context.output = str(context.input)


@when(r"I convert the address to a string long")
def when_account_address_to_string_long(context: typing.Any):
    context.output = "0x" + context.input.to_bytes().hex()


@when(r"I derive the address of the ed25519 private key")
def when_derive_ed25519_address(context: typing.Any):
    private_key = PrivateKey.from_hex(context.input, False)
    context.output = AccountAddress.from_key(private_key.public_key())


@when(r"I derive the address of the (?P<threshold>[0-9]+) of n ed25519 private keys")
def when_derive_multi_ed25519_address(context: typing.Any, threshold: str):
    public_keys = [PrivateKey.from_hex(key, False).public_key() for key in context.input]
    context.output = AccountAddress.from_key(MultiPublicKey(public_keys, int(threshold)))


@then(r"I should fail to parse the account address")
def then_fail_account_address(context: typing.Any):
    assert isinstance(context.output, ParseAddressError)
