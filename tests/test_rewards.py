from __future__ import annotations

import pytest

from buha.ledger.constants import SECONDS_PER_DAY, UNIT
from buha.ledger.rewards import DEFAULT_POLICY, RewardPolicy


def test_default_policy_validates() -> None:
    DEFAULT_POLICY.validate()


def test_mint_full_reward_grows_with_term() -> None:
    p = RewardPolicy()
    # 100 days: bonus = 10000 * 100 // 365 = 2739 bps
    assert p.mint_full_reward(100) == 127_390_000_000_000_000_000
    assert p.mint_full_reward(365) == 2 * 365 * UNIT

    # Longer terms earn a higher per-day rate.
    per_day_short = p.mint_full_reward(10) // 10
    per_day_long = p.mint_full_reward(300) // 300
    assert per_day_long > per_day_short


def test_mint_full_reward_zero_term_is_zero() -> None:
    assert RewardPolicy().mint_full_reward(0) == 0


def test_mint_early_reward_is_penalised_pro_rata() -> None:
    p = RewardPolicy()
    full = p.mint_full_reward(10)
    assert full == 10_273_000_000_000_000_000

    half = p.mint_reward(10, 5 * SECONDS_PER_DAY, matured=False)
    assert half == (full // 2) * 8_000 // 10_000
    assert half == 4_109_200_000_000_000_000


def test_mint_early_reward_never_reaches_full() -> None:
    p = RewardPolicy(mint_early_penalty_bps=0)
    full = p.mint_full_reward(10)
    # Even with elapsed beyond the term, an unmatured claim is capped below full.
    assert p.mint_reward(10, 11 * SECONDS_PER_DAY, matured=False) < full
    assert p.mint_reward(10, 0, matured=False) == 0
    assert p.mint_reward(10, 0, matured=True) == full


def test_stake_reward_curve() -> None:
    p = RewardPolicy()
    amount = 1_000 * UNIT
    full = p.stake_full_reward(amount, 365)
    # apr 10% with bonus 5000 * 365 // 1095 = 1666 bps
    assert full == 116_660_000_000_000_000_000

    term_s = 365 * SECONDS_PER_DAY
    assert p.stake_reward(amount, 365, 0) == 0
    assert p.stake_reward(amount, 365, term_s // 2) == full // 2
    assert p.stake_reward(amount, 365, term_s) == full
    assert p.stake_reward(amount, 365, term_s * 3) == full


def test_stake_partial_reward_stays_strictly_inside_full() -> None:
    p = RewardPolicy()
    amount = 1_000 * UNIT
    full = p.stake_full_reward(amount, 30)
    assert 0 < p.stake_reward(amount, 30, 1) < full
    assert 0 < p.stake_reward(amount, 30, 30 * SECONDS_PER_DAY - 1) < full


def test_small_stake_reward_rounds_down() -> None:
    p = RewardPolicy()
    assert p.stake_full_reward(100, 50) == 1
    assert p.stake_reward(100, 50, 0) == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_mint_term_days": 0},
        {"max_stake_term_days": 0},
        {"min_stake_amount": 0},
        {"mint_daily_reward": 0},
        {"stake_apr_bps": -1},
        {"mint_early_penalty_bps": 10_001},
    ],
)
def test_invalid_policy_rejected(overrides: dict) -> None:
    with pytest.raises(ValueError):
        RewardPolicy().with_overrides(overrides).validate()


def test_policy_json_roundtrip_and_overrides() -> None:
    p = RewardPolicy().with_overrides({"stake_apr_bps": 2_500, "unknown_field": 7})
    assert p.stake_apr_bps == 2_500
    again = RewardPolicy.from_json(p.to_json())
    assert again == p

    # Missing keys fall back to defaults.
    assert RewardPolicy.from_json({}) == RewardPolicy()
    assert RewardPolicy.from_json(None) == RewardPolicy()


@pytest.mark.parametrize("value", ["abc", "", True, 1.5, None, [1]])
def test_overrides_reject_malformed_values(value) -> None:
    with pytest.raises(ValueError):
        RewardPolicy().with_overrides({"stake_apr_bps": value})


def test_overrides_accept_decimal_strings() -> None:
    assert RewardPolicy().with_overrides({"stake_apr_bps": "2500"}).stake_apr_bps == 2_500
