"""Chain parameters. Changing these values retargets the indexer."""

NETWORK = "mainnet"
P2PKH_VERSION = 0x00
P2SH_VERSION = 0x05
BECH32_HRP = "bc"
GENESIS_HASH = "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"