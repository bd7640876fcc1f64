"""Program-derived addresses for launch program accounts."""

from solders.pubkey import Pubkey  # type: ignore[import-untyped]

from src.chain.constants import CONFIG_SEED, LAUNCH_SEED, USER_POSITION_SEED


def _as_pubkey(value: Pubkey | str) -> Pubkey:
    return value if isinstance(value, Pubkey) else Pubkey.from_string(value)


def derive_address(seeds: list[bytes], program_id: Pubkey | str) -> tuple[Pubkey, int]:
    """Find the canonical (address, bump) for ``seeds`` under ``program_id``."""
    return Pubkey.find_program_address(seeds, _as_pubkey(program_id))


def derive_config_address(program_id: Pubkey | str) -> tuple[Pubkey, int]:
    return derive_address([CONFIG_SEED], program_id)


def derive_launch_address(mint: Pubkey | str, program_id: Pubkey | str) -> tuple[Pubkey, int]:
    return derive_address([LAUNCH_SEED, bytes(_as_pubkey(mint))], program_id)


def derive_user_position_address(
    launch: Pubkey | str, user: Pubkey | str, program_id: Pubkey | str
) -> tuple[Pubkey, int]:
    return derive_address(
        [USER_POSITION_SEED, bytes(_as_pubkey(launch)), bytes(_as_pubkey(user))],
        program_id,
    )
