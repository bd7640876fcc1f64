"""Tests for program-derived address helpers."""

from solders.pubkey import Pubkey

from src.chain.constants import CONFIG_SEED, LAUNCH_SEED, USER_POSITION_SEED
from src.chain.pda import (
    derive_config_address,
    derive_launch_address,
    derive_user_position_address,
)
from tests.factories import PROGRAM_ID, make_pubkey

PROGRAM = Pubkey.from_string(PROGRAM_ID)


def test_config_address_matches_seed() -> None:
    address, bump = derive_config_address(PROGRAM_ID)
    assert (address, bump) == Pubkey.find_program_address([CONFIG_SEED], PROGRAM)
    assert 0 <= bump <= 255
    assert not address.is_on_curve()


def test_launch_address_uses_mint_bytes() -> None:
    mint = make_pubkey(2)
    expected = Pubkey.find_program_address(
        [LAUNCH_SEED, bytes(Pubkey.from_string(mint))], PROGRAM
    )
    assert derive_launch_address(mint, PROGRAM_ID) == expected
    assert derive_launch_address(Pubkey.from_string(mint), PROGRAM) == expected


def test_distinct_mints_distinct_launches() -> None:
    a, _ = derive_launch_address(make_pubkey(2), PROGRAM_ID)
    b, _ = derive_launch_address(make_pubkey(4), PROGRAM_ID)
    assert a != b


def test_user_position_seed_order() -> None:
    launch, user = make_pubkey(1), make_pubkey(9)
    expected = Pubkey.find_program_address(
        [
            USER_POSITION_SEED,
            bytes(Pubkey.from_string(launch)),
            bytes(Pubkey.from_string(user)),
        ],
        PROGRAM,
    )
    assert derive_user_position_address(launch, user, PROGRAM_ID) == expected
    swapped, _ = derive_user_position_address(user, launch, PROGRAM_ID)
    assert swapped != expected[0]
