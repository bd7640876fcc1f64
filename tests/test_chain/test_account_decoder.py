"""Tests for launch program account decoding."""

from decimal import Decimal

import pytest

from src.chain.constants import LAUNCH_DISCRIMINATOR, USER_POSITION_USER_OFFSET
from src.chain.decoder import (
    CONFIG_ACCOUNT_SIZE,
    CONFIG_LAYOUT,
    LAUNCH_ACCOUNT_SIZE,
    LAUNCH_LAYOUT,
    USER_POSITION_ACCOUNT_SIZE,
    USER_POSITION_LAYOUT,
    classify_account,
    decode_config,
    decode_launch,
    decode_user_position,
)
from src.chain.layout import DecodeError
from src.chain.models import LaunchStatus
from tests.factories import (
    launch_bytes,
    launch_values,
    make_launch,
    make_pubkey,
    position_bytes,
    position_values,
)


def _config_values() -> dict:
    return {
        "admin": make_pubkey(10),
        "fee_authority": make_pubkey(11),
        "protocol_fee_bps": 100,
        "graduation_threshold": 85_000_000_000,
        "quote_mint": "So11111111111111111111111111111111111111112",
        "orbit_program_id": make_pubkey(12),
        "default_bin_step_bps": 25,
        "default_base_fee_bps": 30,
        "launches_paused": False,
        "trading_paused": True,
        "total_launches": 42,
        "total_graduations": 3,
        "total_volume_lamports": 2**70,
        "total_fees_collected": 9_000_000_000,
        "bump": 255,
    }


class TestSizes:
    def test_account_sizes(self) -> None:
        assert CONFIG_ACCOUNT_SIZE == 257
        assert LAUNCH_ACCOUNT_SIZE == 707
        assert USER_POSITION_ACCOUNT_SIZE == 185

    def test_user_field_offset(self) -> None:
        assert USER_POSITION_LAYOUT.offset_of("user") == USER_POSITION_USER_OFFSET == 40


class TestRoundTrip:
    def test_config(self) -> None:
        values = _config_values()
        config = decode_config("cfg", CONFIG_LAYOUT.encode(values))
        assert config.address == "cfg"
        for key, value in values.items():
            assert getattr(config, key) == value

    def test_launch(self) -> None:
        values = launch_values(
            status=LaunchStatus.GRADUATED,
            graduated_at=1_700_100_000,
            orbit_pool=make_pubkey(5),
            twitter="@orbitcat",
            telegram="t.me/orbitcat",
            website="https://orbit.cat",
            buy_volume=2**100,
        )
        launch = decode_launch("launch_addr", LAUNCH_LAYOUT.encode(values))
        for key, value in values.items():
            assert getattr(launch, key) == value, key

    def test_user_position(self) -> None:
        values = position_values()
        position = decode_user_position("pos", position_bytes())
        for key, value in values.items():
            assert getattr(position, key) == value

    def test_encode_is_stable(self) -> None:
        data = launch_bytes()
        values = LAUNCH_LAYOUT.decode(data)
        assert LAUNCH_LAYOUT.encode(values) == data


class TestRejection:
    @pytest.mark.parametrize("cut", [1, 8, 100])
    def test_truncated_launch_rejected(self, cut: int) -> None:
        data = launch_bytes()[:-cut]
        with pytest.raises(DecodeError, match="expected 707 bytes"):
            decode_launch("addr", data)

    def test_oversized_launch_rejected(self) -> None:
        with pytest.raises(DecodeError):
            decode_launch("addr", launch_bytes() + b"\x00")

    def test_wrong_discriminator(self) -> None:
        data = bytearray(launch_bytes())
        data[0:8] = bytes(8)
        with pytest.raises(DecodeError, match="discriminator"):
            decode_launch("addr", bytes(data))

    def test_position_bytes_are_not_a_launch(self) -> None:
        with pytest.raises(DecodeError):
            decode_launch("addr", position_bytes())

    def test_status_tag_out_of_range(self) -> None:
        data = bytearray(launch_bytes())
        data[LAUNCH_LAYOUT.offset_of("status")] = 7
        with pytest.raises(DecodeError, match="status"):
            decode_launch("addr", bytes(data))

    def test_invalid_bool_byte(self) -> None:
        data = bytearray(CONFIG_LAYOUT.encode(_config_values()))
        data[CONFIG_LAYOUT.offset_of("trading_paused")] = 2
        with pytest.raises(DecodeError, match="trading_paused"):
            decode_config("cfg", bytes(data))

    def test_decode_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            decode_user_position("pos", b"short")


class TestLaunchNormalization:
    def test_text_fields_null_trimmed(self) -> None:
        launch = make_launch(name="Cat", symbol="C")
        assert launch.name == "Cat"
        assert launch.symbol == "C"
        assert "\x00" not in launch.uri

    def test_unset_optionals_become_none(self) -> None:
        launch = make_launch()
        assert launch.graduated_at is None
        assert launch.orbit_pool is None
        assert launch.twitter is None
        assert launch.telegram is None
        assert launch.website is None

    def test_oversold_launch_still_decodes(self) -> None:
        launch = make_launch(tokens_sold=2 * 10**18)
        assert launch.tokens_sold > launch.total_supply

    def test_worked_example_price(self) -> None:
        launch = make_launch(
            virtual_sol_reserve=30_000_000_000,
            virtual_token_reserve=800_000_000_000_000_000,
            total_supply=1_000_000_000_000_000_000,
        )
        assert launch.current_price == Decimal("3.75E-8")
        assert launch.market_cap == launch.current_price * Decimal(launch.total_supply)
        assert launch.market_cap_sol == Decimal("37.5")

    def test_progress_clamped(self) -> None:
        assert make_launch(real_sol_reserve=0).progress == Decimal(0)
        assert make_launch(real_sol_reserve=42_500_000_000).progress == Decimal("0.5")
        assert make_launch(real_sol_reserve=10**12).progress == Decimal(1)

    def test_zero_token_reserve_price(self) -> None:
        assert make_launch(virtual_token_reserve=0).current_price == Decimal(0)

    def test_json_keeps_u64_precision(self) -> None:
        dumped = make_launch(buy_volume=2**100).model_dump(mode="json")
        assert dumped["buy_volume"] == str(2**100)
        assert dumped["status"] == "Active"
        assert isinstance(dumped["current_price"], str)


class TestClassify:
    def test_kinds(self) -> None:
        assert classify_account(launch_bytes()) == "launch"
        assert classify_account(position_bytes()) == "user_position"
        assert classify_account(CONFIG_LAYOUT.encode(_config_values())) == "config"
        assert classify_account(b"\x00" * 64) == "unknown"

    def test_classify_uses_discriminator_only(self) -> None:
        assert classify_account(LAUNCH_DISCRIMINATOR) == "launch"
