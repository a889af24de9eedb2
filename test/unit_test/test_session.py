"""
Test Session Context

Tests for cache invalidation on pool and token-set changes.
"""

import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


SOL = "So11111111111111111111111111111111111111112"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
BONK = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"


def _request(pool="PoolA"):
    from dlmm_engine.types import DepositRequest

    return DepositRequest(
        pool_address=pool,
        token_x_mint=BONK,
        token_y_mint=SOL,
        decimals_x=5,
        decimals_y=9,
        bin_step=100,
        current_price=Decimal("0.0000002"),
        target_value=Decimal("1"),
        native_ratio_percent=Decimal("50"),
        strategy="Spot",
        active_bin_id=0,
        native_mint=SOL,
    )


def _fill(session):
    from dlmm_engine.types import MintInfo

    session.prices[SOL] = Decimal("150")
    session.mints[SOL] = MintInfo(address=SOL, decimals=9)


def test_select_pool_clears_caches():
    """A different pool clears caches and resets planning"""
    from dlmm_engine.modules.planner import PlanCoordinator
    from dlmm_engine.session import Session

    print("Testing pool selection...")

    session = Session(PlanCoordinator(widths={"Spot": 10}, debounce_seconds=0))
    assert session.select_pool("PoolA", [BONK, SOL])
    assert session.token_set == frozenset({BONK, SOL})

    _fill(session)
    assert asyncio.run(session.planner.submit(_request())).is_success
    assert session.planner.latest is not None

    # Same pool, same mints: caches kept
    assert not session.select_pool("PoolA", [SOL, BONK])
    assert SOL in session.prices

    # Different pool: everything dropped
    assert session.select_pool("PoolB", [USDC, SOL])
    assert session.pool == "PoolB"
    assert session.prices == {} and session.mints == {}
    assert session.planner.latest is None

    print("  Pool selection: PASSED")


def test_token_set_change():
    """Changing the token set of the same pool clears caches"""
    from dlmm_engine.session import Session

    print("Testing token set change...")

    session = Session()
    session.select_pool("PoolA", [BONK, SOL])
    _fill(session)

    assert not session.set_token_set([SOL, BONK])
    assert session.prices

    assert session.set_token_set([BONK, SOL, USDC])
    assert session.prices == {} and session.mints == {}

    print("  Token set change: PASSED")


def test_pool_change_discards_pending_plan():
    """A plan started for the previous pool is never adopted"""
    from dlmm_engine.modules.planner import PlanCoordinator
    from dlmm_engine.session import Session

    print("Testing pending plan on pool change...")

    session = Session(PlanCoordinator(widths={"Spot": 10}, debounce_seconds=0.05))

    async def scenario():
        session.select_pool("PoolA")
        pending = asyncio.ensure_future(session.planner.submit(_request()))
        await asyncio.sleep(0.01)
        session.select_pool("PoolB")
        return await pending

    assert asyncio.run(scenario()) is None
    assert session.planner.latest is None
    assert session.planner.computations == 0

    print("  Pending plan on pool change: PASSED")


def main():
    """Run all session tests"""
    print("=" * 60)
    print("Session Tests")
    print("=" * 60)

    tests = [
        test_select_pool_clears_caches,
        test_token_set_change,
        test_pool_change_discards_pending_plan,
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
