# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Shared configuration for the examples, read from the environment.

    APTOS_NODE_URL: REST endpoint of the node to submit to
    APTOS_PRIVATE_KEY: AIP-80 private key of a funded account; without it the
        examples sign offline and print the transaction instead of submitting
"""

import os

# :!:>section_1
NODE_URL = os.getenv("APTOS_NODE_URL", "https://api.devnet.aptoslabs.com/v1")

PRIVATE_KEY = os.getenv("APTOS_PRIVATE_KEY")
# <:!:section_1
