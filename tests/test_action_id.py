"""
Tests for action identifier derivation.
"""

from datetime import date

import pytest
from hypothesis import given, strategies as st
from web3 import Web3

from xp_minting.core.exceptions import ValidationError
from xp_minting.models.award_log import ActionKind
from xp_minting.services.awards.core.action_id import derive_action_id, action_id_bytes


hex_addresses = st.text(alphabet="0123456789abcdefABCDEF", min_size=40, max_size=40).map(lambda h: "0x" + h)
period_keys = st.dates(min_value=date(2000, 1, 1), max_value=date(2100, 12, 31)).map(lambda d: d.isoformat())


def test_matches_keccak_of_joined_fields():
    """The identifier is keccak256 of the UTF-8 'address|kind|period' string."""
    address = "0x" + "a" * 40
    expected = Web3.to_hex(Web3.solidity_keccak(["string"], [f"{address}|daily-login|2024-03-01"]))

    assert derive_action_id(address, ActionKind.DAILY_LOGIN, "2024-03-01") == expected


def test_mixed_case_address_gives_identical_identifier():
    lower = "0xabcdef0123456789abcdef0123456789abcdef01"
    mixed = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"

    first = derive_action_id(lower, ActionKind.DAILY_LOGIN, "2024-03-01")
    second = derive_action_id(mixed, ActionKind.DAILY_LOGIN, "2024-03-01")

    assert action_id_bytes(first) == action_id_bytes(second)


@given(address=hex_addresses, period_key=period_keys)
def test_deterministic_and_case_insensitive(address, period_key):
    first = derive_action_id(address, ActionKind.DAILY_LOGIN, period_key)

    assert first == derive_action_id(address, ActionKind.DAILY_LOGIN, period_key)
    assert first == derive_action_id(address.upper(), ActionKind.DAILY_LOGIN, period_key)
    assert first == derive_action_id(f"  {address.lower()} ", ActionKind.DAILY_LOGIN, period_key)
    assert first.startswith("0x") and len(first) == 66


@given(address=hex_addresses, first_day=period_keys, second_day=period_keys)
def test_different_periods_give_different_identifiers(address, first_day, second_day):
    if first_day == second_day:
        return
    assert derive_action_id(address, ActionKind.DAILY_LOGIN, first_day) != \
        derive_action_id(address, ActionKind.DAILY_LOGIN, second_day)


def test_kind_accepts_plain_string():
    address = "0x" + "b" * 40
    assert derive_action_id(address, "daily-login", "2024-03-01") == \
        derive_action_id(address, ActionKind.DAILY_LOGIN, "2024-03-01")


@pytest.mark.parametrize("address", ["", "   ", None])
def test_rejects_empty_address(address):
    with pytest.raises(ValidationError):
        derive_action_id(address, ActionKind.DAILY_LOGIN, "2024-03-01")


@pytest.mark.parametrize("period_key", ["2024-3-1", "2024-02-30", "20240301", "", "2024-03-01T00:00"])
def test_rejects_malformed_period_key(period_key):
    with pytest.raises(ValidationError):
        derive_action_id("0x" + "a" * 40, ActionKind.DAILY_LOGIN, period_key)


def test_rejects_separator_in_fields():
    with pytest.raises(ValidationError):
        derive_action_id("0xabc|def", ActionKind.DAILY_LOGIN, "2024-03-01")

    with pytest.raises(ValidationError):
        derive_action_id("0x" + "a" * 40, "daily|login", "2024-03-01")


def test_action_id_bytes_is_32_bytes():
    action_id = derive_action_id("0x" + "c" * 40, ActionKind.DAILY_LOGIN, "2024-03-01")
    assert len(action_id_bytes(action_id)) == 32

    with pytest.raises(ValidationError):
        action_id_bytes("0x1234")
