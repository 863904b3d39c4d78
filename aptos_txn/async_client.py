# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
A thin asynchronous adapter over the Aptos node REST API.

Only what a signer needs is covered: the chain id and sequence number that go
into a raw transaction, submission of BCS-encoded signed transactions, and
lookups of submitted transactions by hash. Requests are sent once; callers own
any retry policy.

Example::

    client = RestClient("https://fullnode.devnet.aptoslabs.com/v1")
    try:
        raw_transaction = await client.create_bcs_transaction(alice, payload)
        signed = sign_transaction(raw_transaction, alice)
        txn_hash = await client.submit_bcs_transaction(signed)
        await client.wait_for_transaction(txn_hash)
    finally:
        await client.close()
"""

import asyncio
import logging
import time
import unittest
from typing import Any, Dict, Optional, Union

import httpx

from .account import Account, KeyPair, MultiEd25519Account
from .account_address import AccountAddress
from .bcs import Serializer
from .config import ClientConfig
from .metadata import Metadata
from .signing import sign_transaction
from .transactions import (
    EntryFunction,
    RawTransaction,
    SignedTransaction,
    TransactionArgument,
    TransactionPayload,
)

logger = logging.getLogger(__name__)

BCS_SIGNED_TRANSACTION = "application/x.aptos.signed_transaction+bcs"


class RestClient:
    """A wrapper around the Aptos-core REST API for submitting signed transactions."""

    _chain_id: Optional[int]
    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str

    def __init__(
        self,
        base_url: str,
        client_config: ClientConfig = ClientConfig(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        :param base_url: Base URL of the node REST API, e.g. ``http://localhost:8080/v1``.
        :param client_config: Gas, expiration and networking settings.
        :param transport: Optional httpx transport, mostly useful for tests.
        """
        self.base_url = base_url.rstrip("/")
        # Default limits
        limits = httpx.Limits()
        # Default timeouts but do not set a pool timeout, since the idea is that jobs will wait as
        # long as progress is being made.
        timeout = httpx.Timeout(60.0, pool=None)
        # Default headers
        headers = {Metadata.APTOS_HEADER: Metadata.get_aptos_header_val()}
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=limits,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.client_config = client_config
        self._chain_id = None
        if client_config.api_key:
            self.client.headers["Authorization"] = f"Bearer {client_config.api_key}"

    async def close(self):
        await self.client.aclose()

    async def info(self) -> Dict[str, str]:
        response = await self._get(endpoint="")
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()

    async def chain_id(self) -> int:
        """
        Fetch the chain id from the node. The value is cached after the first
        successful call.
        """
        if self._chain_id is None:
            info = await self.info()
            self._chain_id = int(info["chain_id"])
        return self._chain_id

    async def account(self, account_address: AccountAddress) -> Dict[str, str]:
        """Fetch the authentication key and the sequence number for an account address."""
        response = await self._get(endpoint=f"accounts/{account_address}")
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {account_address}", response.status_code)
        return response.json()

    async def account_sequence_number(self, account_address: AccountAddress) -> int:
        """
        Fetch the current sequence number for an account address. An account
        the node does not know yet starts at 0.
        """
        try:
            account_res = await self.account(account_address)
            return int(account_res["sequence_number"])
        except ApiError as ae:
            if ae.status_code != 404:
                raise
            return 0

    async def create_bcs_transaction(
        self,
        sender: Union[KeyPair, AccountAddress],
        payload: Union[TransactionPayload, EntryFunction],
        sequence_number: Optional[int] = None,
    ) -> RawTransaction:
        """
        Build a raw transaction using the chain id and, unless given, the sequence
        number reported by the node. Gas and expiration come from ``client_config``.
        """
        if isinstance(sender, (Account, MultiEd25519Account)):
            sender_address = sender.address()
        else:
            sender_address = sender

        if isinstance(payload, EntryFunction):
            payload = TransactionPayload(payload)

        sequence_number = (
            sequence_number
            if sequence_number is not None
            else await self.account_sequence_number(sender_address)
        )
        return RawTransaction(
            sender_address,
            sequence_number,
            payload,
            self.client_config.max_gas_amount,
            self.client_config.gas_unit_price,
            int(time.time()) + self.client_config.expiration_ttl,
            await self.chain_id(),
        )

    async def submit_bcs_transaction(
        self, signed_transaction: SignedTransaction
    ) -> str:
        """
        :return: The transaction hash reported by the node.
        :raises ApiError: If the node rejects the transaction.
        """
        headers = {"Content-Type": BCS_SIGNED_TRANSACTION}
        response = await self.client.post(
            f"{self.base_url}/transactions",
            headers=headers,
            content=signed_transaction.bytes(),
        )
        if response.status_code >= 400:
            logger.debug(
                "Node rejected transaction from %s: %d",
                signed_transaction.transaction.sender,
                response.status_code,
            )
            raise ApiError(response.text, response.status_code)

        txn_hash = response.json()["hash"]
        logger.debug(
            "Submitted transaction %s from %s with sequence number %d",
            txn_hash,
            signed_transaction.transaction.sender,
            signed_transaction.transaction.sequence_number,
        )
        return txn_hash

    async def submit_and_wait_for_bcs_transaction(
        self, signed_transaction: SignedTransaction
    ) -> Dict[str, Any]:
        txn_hash = await self.submit_bcs_transaction(signed_transaction)
        await self.wait_for_transaction(txn_hash)
        return await self.transaction_by_hash(txn_hash)

    async def transaction_pending(self, txn_hash: str) -> bool:
        response = await self._get(endpoint=f"transactions/by_hash/{txn_hash}")
        # A transaction that just left the submission queue may not be indexed yet.
        if response.status_code == 404:
            return True
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()["type"] == "pending_transaction"

    async def wait_for_transaction(self, txn_hash: str) -> None:
        """
        Waits up to the duration specified in client_config for a transaction to move past pending
        state.
        """

        count = 0
        while await self.transaction_pending(txn_hash):
            assert (
                count < self.client_config.transaction_wait_in_seconds
            ), f"transaction {txn_hash} timed out"
            await asyncio.sleep(1)
            count += 1

        response = await self._get(endpoint=f"transactions/by_hash/{txn_hash}")
        assert (
            "success" in response.json() and response.json()["success"]
        ), f"{response.text} - {txn_hash}"

    async def transaction_by_hash(self, txn_hash: str) -> Dict[str, Any]:
        response = await self._get(endpoint=f"transactions/by_hash/{txn_hash}")
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        return response.json()

    async def _get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        # format params:
        params = {} if params is None else params
        params = {key: val for key, val in params.items() if val is not None}
        return await self.client.get(
            url=f"{self.base_url}/{endpoint}",
            params=params,
        )


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.status_code = status_code


class Test(unittest.IsolatedAsyncioTestCase):
    BASE_URL = "http://node.test/v1"

    def setUp(self):
        self.requests: list = []
        self.accounts: Dict[str, int] = {}
        self.transactions: Dict[str, Dict[str, Any]] = {}
        self.reject_with: Optional[int] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/":
            return httpx.Response(200, json={"chain_id": 4})
        if path.startswith("/v1/accounts/"):
            address = path.split("/")[-1]
            if address not in self.accounts:
                return httpx.Response(404, json={"error_code": "account_not_found"})
            return httpx.Response(
                200, json={"sequence_number": str(self.accounts[address])}
            )
        if path == "/v1/transactions" and request.method == "POST":
            if self.reject_with is not None:
                return httpx.Response(
                    self.reject_with, json={"message": "invalid transaction"}
                )
            signed = SignedTransaction.from_bytes(request.content)
            self.transactions[signed.hash()] = {
                "type": "user_transaction",
                "hash": signed.hash(),
                "success": True,
            }
            return httpx.Response(202, json={"hash": signed.hash()})
        if path.startswith("/v1/transactions/by_hash/"):
            txn_hash = path.split("/")[-1]
            if txn_hash not in self.transactions:
                return httpx.Response(404, json={"error_code": "transaction_not_found"})
            return httpx.Response(200, json=self.transactions[txn_hash])
        return httpx.Response(500)

    def client(self, config: ClientConfig = ClientConfig()) -> RestClient:
        return RestClient(self.BASE_URL, config, httpx.MockTransport(self.handler))

    async def test_chain_id_is_cached(self):
        client = self.client()
        self.assertEqual(await client.chain_id(), 4)
        self.assertEqual(await client.chain_id(), 4)
        self.assertEqual(len(self.requests), 1)
        self.assertIn(Metadata.APTOS_HEADER, self.requests[0].headers)
        await client.close()

    async def test_account_sequence_number(self):
        alice = Account.generate()
        client = self.client()
        self.assertEqual(await client.account_sequence_number(alice.address()), 0)
        self.accounts[str(alice.address())] = 7
        self.assertEqual(await client.account_sequence_number(alice.address()), 7)
        await client.close()

    async def test_submit(self):
        alice = Account.generate()
        self.accounts[str(alice.address())] = 3
        client = self.client(ClientConfig(api_key="secret"))

        payload = EntryFunction.natural(
            "0x1::aptos_account",
            "transfer",
            [],
            [
                TransactionArgument(AccountAddress.from_str("0x1"), Serializer.struct),
                TransactionArgument(100, Serializer.u64),
            ],
        )
        raw_transaction = await client.create_bcs_transaction(alice, payload)
        self.assertEqual(raw_transaction.sequence_number, 3)
        self.assertEqual(raw_transaction.chain_id, 4)

        signed = sign_transaction(raw_transaction, alice)
        txn = await client.submit_and_wait_for_bcs_transaction(signed)
        self.assertEqual(txn["hash"], signed.hash())

        post = [request for request in self.requests if request.method == "POST"][0]
        self.assertEqual(post.headers["Content-Type"], BCS_SIGNED_TRANSACTION)
        self.assertEqual(post.headers["Authorization"], "Bearer secret")
        self.assertEqual(post.content, signed.bytes())
        await client.close()

    async def test_submit_rejected(self):
        alice = Account.generate()
        client = self.client()
        raw_transaction = await client.create_bcs_transaction(
            alice, EntryFunction.natural("0x1::coin", "noop", [], []), 0
        )
        self.reject_with = 400
        with self.assertRaises(ApiError) as context:
            await client.submit_bcs_transaction(sign_transaction(raw_transaction, alice))
        self.assertEqual(context.exception.status_code, 400)

        with self.assertRaises(ApiError) as context:
            await client.transaction_by_hash("0x1234")
        self.assertEqual(context.exception.status_code, 404)
        await client.close()


if __name__ == "__main__":
    unittest.main()
