"""Decode launch program accounts from raw account data.

Account sizes (8 discriminator + struct, Borsh, no padding):
  Config        257 bytes
  Launch        707 bytes
  UserPosition  185 bytes (user pubkey at offset 40)

Decoders raise DecodeError on wrong length, wrong discriminator or an
out-of-range enum tag; ChainReader turns that into a skipped record.
"""

from loguru import logger

from src.chain.constants import (
    CONFIG_DISCRIMINATOR,
    LAUNCH_DISCRIMINATOR,
    USER_POSITION_DISCRIMINATOR,
)
from src.chain.layout import (
    AccountLayout,
    boolean,
    enum_u8,
    fixed_str,
    i64,
    pubkey,
    reserved,
    u8,
    u16,
    u32,
    u64,
    u128,
)
from src.chain.models import Launch, LaunchStatus, ProtocolConfig, UserPosition

CONFIG_LAYOUT = AccountLayout(
    name="Config",
    version=1,
    discriminator=CONFIG_DISCRIMINATOR,
    fields=(
        pubkey("admin"),
        pubkey("fee_authority"),
        u16("protocol_fee_bps"),
        u64("graduation_threshold"),
        pubkey("quote_mint"),
        pubkey("orbit_program_id"),
        u16("default_bin_step_bps"),
        u16("default_base_fee_bps"),
        boolean("launches_paused"),
        boolean("trading_paused"),
        u64("total_launches"),
        u64("total_graduations"),
        u128("total_volume_lamports"),
        u64("total_fees_collected"),
        u8("bump"),
        reserved("_reserved", 64),
    ),
)

LAUNCH_LAYOUT = AccountLayout(
    name="Launch",
    version=1,
    discriminator=LAUNCH_DISCRIMINATOR,
    fields=(
        pubkey("mint"),
        pubkey("creator"),
        enum_u8("status", LaunchStatus),
        u64("total_supply"),
        u64("tokens_sold"),
        u64("graduation_tokens"),
        u64("creator_tokens"),
        u64("virtual_sol_reserve"),
        u64("virtual_token_reserve"),
        u64("real_sol_reserve"),
        u64("real_token_reserve"),
        u64("graduation_threshold"),
        i64("created_at"),
        i64("graduated_at"),
        u128("buy_volume"),
        u128("sell_volume"),
        u64("trade_count"),
        u32("holder_count"),
        pubkey("orbit_pool"),
        u16("creator_fee_bps"),
        fixed_str("name", 32),
        fixed_str("symbol", 10),
        fixed_str("uri", 200),
        fixed_str("twitter", 64),
        fixed_str("telegram", 64),
        fixed_str("website", 64),
        u8("bump"),
        u8("authority_bump"),
        reserved("_reserved", 32),
    ),
)

USER_POSITION_LAYOUT = AccountLayout(
    name="UserPosition",
    version=1,
    discriminator=USER_POSITION_DISCRIMINATOR,
    fields=(
        pubkey("launch"),
        pubkey("user"),
        u64("tokens_bought"),
        u64("tokens_sold"),
        u64("token_balance"),
        u64("sol_spent"),
        u64("sol_received"),
        i64("first_trade_at"),
        i64("last_trade_at"),
        u32("buy_count"),
        u32("sell_count"),
        u64("avg_buy_price"),
        u64("cost_basis"),
        u8("bump"),
        reserved("_reserved", 32),
    ),
)

CONFIG_ACCOUNT_SIZE = CONFIG_LAYOUT.size
LAUNCH_ACCOUNT_SIZE = LAUNCH_LAYOUT.size
USER_POSITION_ACCOUNT_SIZE = USER_POSITION_LAYOUT.size

# Pubkey of all zero bytes, used on-chain for "not set"
_DEFAULT_PUBKEY = "11111111111111111111111111111111"


def decode_config(address: str, data: bytes) -> ProtocolConfig:
    values = CONFIG_LAYOUT.decode(data)
    return ProtocolConfig(address=address, **values)


def decode_launch(address: str, data: bytes) -> Launch:
    values = LAUNCH_LAYOUT.decode(data)

    if values["graduated_at"] <= 0:
        values["graduated_at"] = None
    if values["orbit_pool"] == _DEFAULT_PUBKEY:
        values["orbit_pool"] = None
    for social in ("twitter", "telegram", "website"):
        values[social] = values[social] or None

    launch = Launch(address=address, **values)
    if launch.tokens_sold > launch.total_supply:
        logger.warning(
            f"[CHAIN] Launch {address[:12]} reports tokens_sold > total_supply "
            f"({launch.tokens_sold} > {launch.total_supply})"
        )
    return launch


def decode_user_position(address: str, data: bytes) -> UserPosition:
    values = USER_POSITION_LAYOUT.decode(data)
    return UserPosition(address=address, **values)


def classify_account(data: bytes) -> str:
    """Identify account kind by discriminator. Returns "unknown" if none match."""
    for kind, layout in (
        ("launch", LAUNCH_LAYOUT),
        ("user_position", USER_POSITION_LAYOUT),
        ("config", CONFIG_LAYOUT),
    ):
        if layout.matches(data):
            return kind
    return "unknown"

