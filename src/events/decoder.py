"""Anchor event decoding from transaction log lines.

Events are emitted as ``Program data: <base64>`` lines. The payload starts
with sha256("event:<Name>")[:8] and is followed by the Borsh fields. A
transaction logs many unrelated lines, so anything that is not a
``Program data:`` line, is not valid base64, or carries another
discriminator is skipped without error.

TradeExecuted v1 (121 bytes):
  0:8     discriminator
  8:40    launch (Pubkey)
  40:72   trader (Pubkey)
  72      is_buy (bool)
  73:81   sol_amount (u64 LE)
  81:89   token_amount (u64 LE)
  89:97   price (u64 LE, lamports per token scaled by 1e9)
  97:105  protocol_fee (u64 LE)
  105:113 creator_fee (u64 LE)
  113:121 timestamp (i64 LE)
"""

import base64
import binascii
from collections.abc import Iterator

from loguru import logger

from src.chain.constants import (
    DISCRIMINATOR_SIZE,
    LAUNCH_CREATED_DISCRIMINATOR,
    LAUNCH_GRADUATED_DISCRIMINATOR,
    PROGRAM_DATA_PREFIX,
    TRADE_EXECUTED_DISCRIMINATOR,
)
from src.chain.layout import AccountLayout, DecodeError, boolean, i32, i64, pubkey, u64
from src.events.models import GraduationEvent, InstructionKind, TradeEvent

TRADE_EXECUTED_LAYOUT = AccountLayout(
    name="TradeExecuted",
    version=1,
    discriminator=TRADE_EXECUTED_DISCRIMINATOR,
    fields=(
        pubkey("launch"),
        pubkey("trader"),
        boolean("is_buy"),
        u64("sol_amount"),
        u64("token_amount"),
        u64("price"),
        u64("protocol_fee"),
        u64("creator_fee"),
        i64("timestamp"),
    ),
)

LAUNCH_GRADUATED_LAYOUT = AccountLayout(
    name="LaunchGraduated",
    version=1,
    discriminator=LAUNCH_GRADUATED_DISCRIMINATOR,
    fields=(
        pubkey("launch"),
        pubkey("mint"),
        pubkey("orbit_pool"),
        u64("sol_liquidity"),
        u64("token_liquidity"),
        u64("final_price"),
        i32("active_bin_index"),
        u64("creator_reward"),
        u64("treasury_fee"),
        i64("timestamp"),
    ),
)

TRADE_EXECUTED_SIZE = TRADE_EXECUTED_LAYOUT.size

# Event discriminator → the instruction family that emits it
EVENT_KINDS: dict[bytes, InstructionKind] = {
    TRADE_EXECUTED_DISCRIMINATOR: InstructionKind.TRADE,
    LAUNCH_CREATED_DISCRIMINATOR: InstructionKind.CREATE,
    LAUNCH_GRADUATED_DISCRIMINATOR: InstructionKind.GRADUATE,
}

# Best-effort fallback: Anchor's "Instruction: <Name>" log lines.
# Human-readable and version dependent; only used when no event matched.
_INSTRUCTION_MARKERS: tuple[tuple[str, InstructionKind], ...] = (
    ("Instruction: Buy", InstructionKind.TRADE),
    ("Instruction: Sell", InstructionKind.TRADE),
    ("Instruction: CreateLaunch", InstructionKind.CREATE),
    ("Instruction: Graduate", InstructionKind.GRADUATE),
)


def iter_event_payloads(logs: list[str]) -> Iterator[bytes]:
    """Yield decoded ``Program data:`` payloads in log order."""
    for line in logs:
        if not line.startswith(PROGRAM_DATA_PREFIX):
            continue
        encoded = line[len(PROGRAM_DATA_PREFIX):].strip()
        try:
            payload = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError):
            continue
        if len(payload) >= DISCRIMINATOR_SIZE:
            yield payload


def decode_trade_event(payload: bytes) -> TradeEvent:
    """Decode one TradeExecuted payload. Raises DecodeError on any mismatch."""
    return TradeEvent(**TRADE_EXECUTED_LAYOUT.decode(payload))


def parse_trade_events(logs: list[str]) -> list[TradeEvent]:
    """All TradeExecuted events in a log batch, in log order."""
    events: list[TradeEvent] = []
    for payload in iter_event_payloads(logs):
        if not TRADE_EXECUTED_LAYOUT.matches(payload):
            continue
        try:
            events.append(decode_trade_event(payload))
        except DecodeError as e:
            logger.debug(f"[EVENTS] Dropping TradeExecuted payload: {e}")
    return events


def classify_logs(logs: list[str]) -> set[InstructionKind]:
    """Instruction families present in a log batch.

    Event discriminators are authoritative. The substring scan over
    instruction names only runs when no known event was found.
    """
    kinds: set[InstructionKind] = set()
    for payload in iter_event_payloads(logs):
        kind = EVENT_KINDS.get(payload[:DISCRIMINATOR_SIZE])
        if kind is not None:
            kinds.add(kind)
    if kinds:
        return kinds

    for line in logs:
        for marker, kind in _INSTRUCTION_MARKERS:
            if marker in line:
                kinds.add(kind)
    return kinds


def parse_graduation_events(logs: list[str]) -> list[GraduationEvent]:
    """All LaunchGraduated events in a log batch, in log order."""
    events: list[GraduationEvent] = []
    for payload in iter_event_payloads(logs):
        if not LAUNCH_GRADUATED_LAYOUT.matches(payload):
            continue
        try:
            events.append(GraduationEvent(**LAUNCH_GRADUATED_LAYOUT.decode(payload)))
        except DecodeError as e:
            logger.debug(f"[EVENTS] Dropping LaunchGraduated payload: {e}")
    return events
