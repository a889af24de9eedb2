"""
Test DlmmClient

End-to-end write path through the client facade with in-memory collaborators.
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
PAIR = _key(1)
OWNER = _key(2)


class FakeRpc:
    """Chain reader serving one pair, its mints and wallet balances"""

    endpoint = "memory://chain"

    def __init__(self):
        from dlmm_engine.protocols.meteora.layouts import AccountKind, encode
        from dlmm_engine.types import LbPairState, MintInfo

        pair = LbPairState(address=PAIR, token_x_mint=TOKEN, token_y_mint=SOL, bin_step=25, active_id=0)
        self.accounts = {
            PAIR: encode(AccountKind.LB_PAIR, pair),
            TOKEN: encode(AccountKind.MINT, MintInfo(address=TOKEN, decimals=6)),
            SOL: encode(AccountKind.MINT, MintInfo(address=SOL, decimals=9)),
        }
        self.closed = False

    async def get_account(self, address):
        return self.accounts.get(address)

    async def get_accounts(self, addresses):
        return [self.accounts.get(a) for a in addresses]

    async def get_balance(self, owner):
        return 20_000_000_000

    async def get_token_balance(self, owner, mint):
        assert mint == TOKEN
        return 1_000_000_000

    async def close(self):
        self.closed = True


class FakeRouter:
    def __init__(self):
        self.calls = []
        self.closed = False

    async def quote(self, source_mint, source_amount, dest_mint):
        from dlmm_engine.types import QuoteResult

        self.calls.append((source_mint, source_amount, dest_mint))
        return QuoteResult(
            from_token=source_mint,
            to_token=dest_mint,
            from_amount=source_amount,
            to_amount=4_100_000_000,
        )

    async def close(self):
        self.closed = True


class FakeService:
    """Price oracle / pool directory placeholder"""

    def __init__(self):
        self.closed = False

    async def get_prices(self, mints):
        return {}

    async def close(self):
        self.closed = True


def _client():
    from dlmm_engine import DlmmClient, Session
    from dlmm_engine.modules.planner import PlanCoordinator

    router = FakeRouter()
    client = DlmmClient(
        rpc=FakeRpc(),
        price_api=FakeService(),
        quote_api=router,
        directory=FakeService(),
        session=Session(PlanCoordinator(widths={"Spot": 20}, debounce_seconds=0)),
    )
    return client, router


def test_plan_and_fund():
    """Pool selection, planning and funding check through the facade"""
    print("Testing plan and funding flow...")

    client, router = _client()

    async def scenario():
        async with client:
            request = await client.build_deposit_request(PAIR, Decimal("10"), Decimal("50"), "Spot")
            result = await client.plan_deposit(request)
            requirement = await client.check_funding(result.value, owner=OWNER)
            return request, result, requirement

    request, result, requirement = asyncio.run(scenario())

    assert request.current_price == Decimal("0.001")
    assert request.active_bin_id == 0
    assert (request.decimals_x, request.decimals_y) == (6, 9)
    assert client.session.pool == PAIR
    assert client.session.token_set == frozenset({TOKEN, SOL})

    assert result.is_success
    plan = result.value
    assert (plan.min_bin_id, plan.max_bin_id) == (-10, 10)
    assert plan.amount_x == Decimal("5000")

    # 1000 TOKEN held, 5000 needed; SOL surplus funds the swap
    assert requirement.needs_swap and requirement.can_fund
    assert router.calls == [(SOL, 4_000_000_000, TOKEN)]
    assert client.rpc.closed

    print("  Plan and funding flow: PASSED")


def test_check_funding_requires_input():
    """Funding check needs balances or an owner to read them from"""
    print("Testing funding input requirement...")

    client, _ = _client()

    async def scenario():
        request = await client.build_deposit_request(PAIR, Decimal("10"), Decimal("50"), "Spot")
        result = await client.plan_deposit(request)
        try:
            await client.check_funding(result.value)
            return False
        except ValueError:
            return True
        finally:
            await client.close()

    assert asyncio.run(scenario())

    print("  Funding input requirement: PASSED")


def test_missing_pool():
    """Unknown pool address is a resolution error"""
    from dlmm_engine.errors import ErrorCode, ResolutionError

    print("Testing missing pool...")

    client, _ = _client()
    try:
        asyncio.run(client.build_deposit_request(_key(50), Decimal("10"), Decimal("50"), "Spot"))
        assert False, "Should raise ResolutionError"
    except ResolutionError as e:
        assert e.code == ErrorCode.PAIR_NOT_FOUND
    assert client.session.pool is None

    print("  Missing pool: PASSED")


def main():
    """Run all client tests"""
    print("=" * 60)
    print("DlmmClient Tests")
    print("=" * 60)

    tests = [
        test_plan_and_fund,
        test_check_funding_requires_input,
        test_missing_pool,
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
