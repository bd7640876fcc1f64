"""Launch program constants: PDA seeds, discriminators, account sizes."""

import hashlib

# PDA seeds (must match the on-chain program byte-for-byte)
CONFIG_SEED = b"launchr_config"
LAUNCH_SEED = b"launch"
USER_POSITION_SEED = b"user_position"


def anchor_discriminator(namespace: str, name: str) -> bytes:
    """First 8 bytes of sha256("<namespace>:<name>"), as Anchor derives them."""
    return hashlib.sha256(f"{namespace}:{name}".encode()).digest()[:8]


DISCRIMINATOR_SIZE = 8

CONFIG_DISCRIMINATOR = anchor_discriminator("account", "Config")
LAUNCH_DISCRIMINATOR = anchor_discriminator("account", "Launch")
USER_POSITION_DISCRIMINATOR = anchor_discriminator("account", "UserPosition")

TRADE_EXECUTED_DISCRIMINATOR = anchor_discriminator("event", "TradeExecuted")
LAUNCH_CREATED_DISCRIMINATOR = anchor_discriminator("event", "LaunchCreated")
LAUNCH_GRADUATED_DISCRIMINATOR = anchor_discriminator("event", "LaunchGraduated")

# Byte offset of UserPosition.user (8 discriminator + 32 launch)
USER_POSITION_USER_OFFSET = 40

# SOL and launch tokens both use 9 decimals
LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_DECIMALS = 9

# Every launch mints 1B tokens; the event path uses this instead of reading supply
DEFAULT_TOTAL_SUPPLY_TOKENS = 1_000_000_000

# Anchor emits events as base64 on this log prefix
PROGRAM_DATA_PREFIX = "Program data: "
