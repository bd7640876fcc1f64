"""Builders for raw account bytes, event log lines and decoded models."""

import base64

from solders.pubkey import Pubkey

from src.chain.decoder import LAUNCH_LAYOUT, USER_POSITION_LAYOUT, decode_launch
from src.chain.models import Launch, LaunchStatus
from src.events.decoder import LAUNCH_GRADUATED_LAYOUT, TRADE_EXECUTED_LAYOUT

PROGRAM_ID = "AD9VheLMqVPwbDQc5CmSHmCZdfa8CGmr2xXmhhNSTyhK"
DEFAULT_PUBKEY = "11111111111111111111111111111111"


def make_pubkey(n: int) -> str:
    return str(Pubkey.from_bytes(bytes([n]) * 32))


def launch_values(**overrides) -> dict:
    values = {
        "mint": make_pubkey(2),
        "creator": make_pubkey(3),
        "status": LaunchStatus.ACTIVE,
        "total_supply": 1_000_000_000_000_000_000,
        "tokens_sold": 200_000_000_000_000_000,
        "graduation_tokens": 200_000_000_000_000_000,
        "creator_tokens": 0,
        "virtual_sol_reserve": 30_000_000_000,
        "virtual_token_reserve": 800_000_000_000_000_000,
        "real_sol_reserve": 5_000_000_000,
        "real_token_reserve": 600_000_000_000_000_000,
        "graduation_threshold": 85_000_000_000,
        "created_at": 1_700_000_000,
        "graduated_at": 0,
        "buy_volume": 6_000_000_000,
        "sell_volume": 1_000_000_000,
        "trade_count": 12,
        "holder_count": 7,
        "orbit_pool": DEFAULT_PUBKEY,
        "creator_fee_bps": 100,
        "name": "Orbit Cat",
        "symbol": "OCAT",
        "uri": "https://example.com/ocat.json",
        "twitter": "",
        "telegram": "",
        "website": "",
        "bump": 254,
        "authority_bump": 253,
    }
    values.update(overrides)
    return values


def launch_bytes(**overrides) -> bytes:
    return LAUNCH_LAYOUT.encode(launch_values(**overrides))


def make_launch(address: str | None = None, **overrides) -> Launch:
    return decode_launch(address or make_pubkey(1), launch_bytes(**overrides))


def position_values(**overrides) -> dict:
    values = {
        "launch": make_pubkey(1),
        "user": make_pubkey(9),
        "tokens_bought": 50_000_000_000_000,
        "tokens_sold": 10_000_000_000_000,
        "token_balance": 40_000_000_000_000,
        "sol_spent": 2_500_000_000,
        "sol_received": 400_000_000,
        "first_trade_at": 1_700_000_100,
        "last_trade_at": 1_700_000_200,
        "buy_count": 2,
        "sell_count": 1,
        "avg_buy_price": 50_000,
        "cost_basis": 2_000_000_000,
        "bump": 251,
    }
    values.update(overrides)
    return values


def position_bytes(**overrides) -> bytes:
    return USER_POSITION_LAYOUT.encode(position_values(**overrides))


def trade_values(**overrides) -> dict:
    values = {
        "launch": make_pubkey(1),
        "trader": make_pubkey(9),
        "is_buy": True,
        "sol_amount": 2_500_000_000,
        "token_amount": 50_000_000_000_000,
        "price": 50_000,
        "protocol_fee": 25_000_000,
        "creator_fee": 25_000_000,
        "timestamp": 1_700_000_300,
    }
    values.update(overrides)
    return values


def program_data(payload: bytes) -> str:
    return "Program data: " + base64.b64encode(payload).decode()


def trade_log_line(**overrides) -> str:
    return program_data(TRADE_EXECUTED_LAYOUT.encode(trade_values(**overrides)))


def graduation_log_line(**overrides) -> str:
    values = {
        "launch": make_pubkey(1),
        "mint": make_pubkey(2),
        "orbit_pool": make_pubkey(5),
        "sol_liquidity": 80_000_000_000,
        "token_liquidity": 200_000_000_000_000_000,
        "final_price": 400,
        "active_bin_index": -12,
        "creator_reward": 500_000_000,
        "treasury_fee": 500_000_000,
        "timestamp": 1_700_000_400,
    }
    values.update(overrides)
    return program_data(LAUNCH_GRADUATED_LAYOUT.encode(values))


def unrelated_logs(count: int) -> list[str]:
    """Noise lines a real transaction interleaves with events."""
    pool = [
        f"Program {PROGRAM_ID} invoke [1]",
        "Program log: Instruction: Transfer",
        "Program 11111111111111111111111111111111 success",
        "Program log: remaining compute units 12000",
        "Program data: not*base64*at*all",
        program_data(b"\x01\x02\x03\x04\x05\x06\x07\x08" + bytes(113)),
        "Program TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA consumed 4500 of 200000 compute units",
        f"Program {PROGRAM_ID} success",
        "Program return: abc",
        "Program log: ok",
    ]
    return [pool[i % len(pool)] for i in range(count)]
