# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from typing import Optional


@dataclass
class ClientConfig:
    """Common configuration for clients, particularly for submitting transactions.

    Transaction Parameters:
        expiration_ttl: Time-to-live for transactions in seconds (default: 600)
        gas_unit_price: Price per unit of gas in octas (default: 100)
        max_gas_amount: Maximum gas units allowed per transaction (default: 100,000)
        transaction_wait_in_seconds: Timeout for transaction confirmation (default: 20)

    Network Parameters:
        http2: Enable HTTP/2 (default: True)
        api_key: Optional API key sent as a bearer token (default: None)
    """

    expiration_ttl: int = 600
    gas_unit_price: int = 100
    max_gas_amount: int = 100_000
    transaction_wait_in_seconds: int = 20
    http2: bool = True
    api_key: Optional[str] = None
