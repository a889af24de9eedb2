"""
Test Valuation Service

Tests for UI amount formatting, USD / native valuation and price fetching.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

import base58

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def _key(n: int) -> str:
    return base58.b58encode(bytes([n]) * 32).decode("ascii")


SOL = "So11111111111111111111111111111111111111112"
TOKEN = _key(3)
REWARD = _key(7)


def _fixture():
    from dlmm_engine.types import AggregateResult, LbPairState, MintInfo

    pair = LbPairState(
        address=_key(1),
        token_x_mint=TOKEN,
        token_y_mint=SOL,
        bin_step=25,
        active_id=0,
        reward_mints=(REWARD, None),
    )
    mints = {
        TOKEN: MintInfo(address=TOKEN, decimals=6),
        SOL: MintInfo(address=SOL, decimals=9),
        REWARD: MintInfo(address=REWARD, decimals=6),
    }
    totals = AggregateResult(
        position_address=_key(9),
        lb_pair=pair.address,
        total_x=1_500_000,
        total_y=2_000_000_000,
        fee_x=10_000,
        fee_y=0,
        rewards={REWARD: 5_000_000},
    )
    return pair, mints, totals


class FakeOracle:
    """Records get_prices calls"""

    def __init__(self, prices=None, error=None):
        self.prices = prices or {}
        self.error = error
        self.calls = []

    async def get_prices(self, mints):
        self.calls.append(list(mints))
        if self.error is not None:
            raise self.error
        return {m: self.prices[m] for m in mints if m in self.prices}


def test_to_ui_amount():
    """UI strings are exact and rounded down"""
    from dlmm_engine.modules.valuation import to_ui_amount

    print("Testing to_ui_amount...")

    assert to_ui_amount(1_234_567, 6) == "1.234567"
    assert to_ui_amount(1, 9) == "0.000000001"
    assert to_ui_amount(0, 6) == "0.000000"
    assert to_ui_amount(1_999_999, 6, places=2) == "1.99"
    assert to_ui_amount(2**128 - 1, 0) == str(2**128 - 1)
    assert to_ui_amount(5, 0) == "5"

    print("  to_ui_amount: PASSED")


def test_missing_reward_price():
    """Unpriced reward counts as 0 but its raw amount is still reported"""
    from dlmm_engine.modules.valuation import value_position
    from dlmm_engine.errors import WarningKind

    print("Testing missing reward price...")

    pair, mints, totals = _fixture()
    prices = {TOKEN: Decimal("2"), SOL: Decimal("150")}
    v = value_position(totals, pair, mints, prices, native_mint=SOL, value_places=9, display_decimals=None)

    assert v.total_x_ui == "1.500000"
    assert v.total_y_ui == "2.000000000"
    assert v.fee_x_ui == "0.010000"
    assert v.rewards_raw == {REWARD: 5_000_000}
    assert v.rewards_ui == {REWARD: "5.000000"}

    assert v.liquidity_value_usd == Decimal("303")
    assert v.unclaimed_fees_usd == Decimal("0.02")
    assert v.unclaimed_rewards_usd == Decimal(0)
    assert v.total_value_usd == Decimal("303.02")
    assert v.total_value_native == Decimal("2.020133333")

    assert v.missing_prices == [REWARD]
    assert not v.is_fully_priced
    assert [w.kind for w in v.warnings] == [WarningKind.MISSING_PRICE]

    print("  Missing reward price: PASSED")


def test_missing_native_price():
    """Without a native price the native value is absent"""
    from dlmm_engine.modules.valuation import value_position

    print("Testing missing native price...")

    pair, mints, totals = _fixture()
    v = value_position(totals, pair, mints, {TOKEN: Decimal("2"), REWARD: Decimal("1")}, native_mint=SOL)

    assert v.total_value_native is None
    assert SOL in v.missing_prices
    # SOL side contributes 0
    assert v.liquidity_value_usd == Decimal("3")
    assert v.unclaimed_rewards_usd == Decimal("5")

    print("  Missing native price: PASSED")


def test_missing_reward_mint():
    """A reward mint without metadata is reported raw, not valued"""
    from dlmm_engine.modules.valuation import value_position
    from dlmm_engine.errors import WarningKind

    print("Testing missing reward mint...")

    pair, mints, totals = _fixture()
    del mints[REWARD]
    v = value_position(totals, pair, mints, {TOKEN: Decimal("2"), SOL: Decimal("150")}, native_mint=SOL)

    assert v.rewards_raw == {REWARD: 5_000_000}
    assert v.rewards_ui == {}
    assert v.unclaimed_rewards_usd == Decimal(0)
    assert [w.kind for w in v.warnings] == [WarningKind.MISSING_REWARD_MINT]

    print("  Missing reward mint: PASSED")


def test_display_decimals_cap():
    """display_decimals caps UI digits, rounding down"""
    from dlmm_engine.modules.valuation import value_position

    print("Testing display decimals cap...")

    pair, mints, totals = _fixture()
    v = value_position(totals, pair, mints, {}, native_mint=SOL, display_decimals=4)

    assert v.total_x_ui == "1.5000"
    assert v.total_y_ui == "2.0000"
    assert v.fee_x_ui == "0.0100"

    print("  Display decimals cap: PASSED")


def test_claimed_fees_value():
    """Claimed fee totals valued with the same prices"""
    from dlmm_engine.modules.valuation import value_claimed_fees
    from dlmm_engine.types import FeeInfo, PositionState, UserRewardInfo

    print("Testing claimed fee value...")

    pair, mints, _ = _fixture()
    position = PositionState(
        address=_key(9),
        lb_pair=pair.address,
        owner=_key(2),
        lower_bin_id=0,
        upper_bin_id=0,
        liquidity_shares=(0,),
        fee_infos=(FeeInfo(),),
        reward_infos=(UserRewardInfo(),),
        total_claimed_fee_x_amount=3_000_000,
        total_claimed_fee_y_amount=100_000_000,
    )
    value = value_claimed_fees(position, pair, mints, {TOKEN: Decimal("2"), SOL: Decimal("150")})
    assert value == Decimal("21")

    print("  Claimed fee value: PASSED")


def test_fetch_prices_batched_and_cached():
    """One oracle request for all uncached mints, none once cached"""
    from dlmm_engine.modules.valuation import ValuationService

    print("Testing price fetch batching...")

    oracle = FakeOracle({TOKEN: Decimal("2"), SOL: Decimal("150")})
    service = ValuationService(oracle, native_mint=SOL)
    cache = {}

    first = asyncio.run(service.fetch_prices([TOKEN, REWARD], cache=cache))
    assert oracle.calls == [[TOKEN, REWARD, SOL]]
    assert first.prices == {TOKEN: Decimal("2"), SOL: Decimal("150")}
    assert first.warnings == []

    second = asyncio.run(service.fetch_prices([TOKEN], cache=cache))
    # REWARD is not cached (no price) but not requested either
    assert len(oracle.calls) == 1
    assert second.prices == {TOKEN: Decimal("2"), SOL: Decimal("150")}

    print("  Price fetch batching: PASSED")


def test_fetch_prices_oracle_down():
    """Oracle failure degrades to missing prices with a warning"""
    from dlmm_engine.modules.valuation import ValuationService
    from dlmm_engine.errors import ExternalUnavailable, WarningKind

    print("Testing oracle failure...")

    oracle = FakeOracle(error=ExternalUnavailable.oracle("HTTP 503"))
    service = ValuationService(oracle, native_mint=SOL)

    fetch = asyncio.run(service.fetch_prices([TOKEN]))
    assert fetch.prices == {}
    assert len(fetch.warnings) == 1
    assert fetch.warnings[0].kind == WarningKind.ORACLE_UNAVAILABLE
    assert fetch.warnings[0].details["mints"] == [TOKEN, SOL]

    print("  Oracle failure: PASSED")


def main():
    """Run all valuation tests"""
    print("=" * 60)
    print("Valuation Tests")
    print("=" * 60)

    tests = [
        test_to_ui_amount,
        test_missing_reward_price,
        test_missing_native_price,
        test_missing_reward_mint,
        test_display_decimals_cap,
        test_claimed_fees_value,
        test_fetch_prices_batched_and_cached,
        test_fetch_prices_oracle_down,
    ]

    passed = 0
    failed = 0

    for test in tests:
        try:
            test()
            passed += 1
        except Exception as e:
            print(f"  FAILED: {e}")
            import traceback
            traceback.print_exc()
            failed += 1

    print("=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    return failed == 0


if __name__ == "__main__":
    success = main()
    sys.exit(0 if success else 1)
