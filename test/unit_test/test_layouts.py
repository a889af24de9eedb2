"""
Test Account Layouts

Tests for decoding (and encoding) PositionV2, LbPair, BinArray and Mint accounts.
"""

import sys
from pathlib import Path

import base58

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def _key(n: int) -> str:
    """Deterministic valid public key"""
    return base58.b58encode(bytes([n]) * 32).decode("ascii")


def _position(lower=100, upper=102):
    from dlmm_engine.types import FeeInfo, PositionState, UserRewardInfo

    width = upper - lower + 1
    return PositionState(
        address=_key(9),
        lb_pair=_key(1),
        owner=_key(2),
        lower_bin_id=lower,
        upper_bin_id=upper,
        liquidity_shares=tuple(10**20 + i for i in range(width)),
        fee_infos=tuple(FeeInfo(fee_x_pending=5 + i, fee_y_pending=7 + i) for i in range(width)),
        reward_infos=tuple(UserRewardInfo(reward_pendings=(11 + i, 0)) for i in range(width)),
        last_updated_at=1_700_000_000,
        total_claimed_fee_x_amount=123,
        total_claimed_fee_y_amount=456,
        total_claimed_rewards=(1, 2),
    )


def test_position_round_trip():
    """Encoding then decoding a PositionV2 reproduces every field"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode

    print("Testing PositionV2 round trip...")

    state = _position()
    data = encode(AccountKind.POSITION, state)
    decoded = decode(AccountKind.POSITION, data, address=state.address)

    assert decoded == state
    assert decoded.width == 3
    assert decoded.liquidity_shares[1] == 10**20 + 1
    assert decoded.operator is None

    print("  PositionV2 round trip: PASSED")


def test_lb_pair_round_trip():
    """LbPair decode keeps unset reward slots as None"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.types import LbPairState

    print("Testing LbPair round trip...")

    state = LbPairState(
        address=_key(1),
        token_x_mint=_key(3),
        token_y_mint=_key(4),
        bin_step=25,
        active_id=-1234,
        reserve_x=_key(5),
        reserve_y=_key(6),
        reward_mints=(_key(7), None),
        oracle=_key(8),
        status=0,
    )
    decoded = decode(AccountKind.LB_PAIR, encode(AccountKind.LB_PAIR, state), address=state.address)

    assert decoded == state
    assert decoded.reward_mints == (_key(7), None)
    assert decoded.active_reward_mints == [_key(7)]
    assert decoded.mints == [_key(3), _key(4), _key(7)]

    print("  LbPair round trip: PASSED")


def test_bin_array_round_trip():
    """BinArray decode yields 70 bins with u128 fields intact"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.types import BinArrayState, BinState

    print("Testing BinArray round trip...")

    bins = tuple(
        BinState(amount_x=i, amount_y=2 * i, price=2**100 + i, liquidity_supply=10**30 + i)
        for i in range(70)
    )
    state = BinArrayState(index=-2, lb_pair=_key(1), bins=bins, version=1, address="bin-array")
    decoded = decode(AccountKind.BIN_ARRAY, encode(AccountKind.BIN_ARRAY, state), address="bin-array")

    assert decoded == state
    assert decoded.chunk_size == 70
    assert decoded.bins[69].liquidity_supply == 10**30 + 69

    print("  BinArray round trip: PASSED")


def test_mint_round_trip():
    """Mint decode reads decimals and optional authorities"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.types import MintInfo

    print("Testing Mint round trip...")

    mint = MintInfo(address=_key(3), decimals=6, supply=10**15, mint_authority=_key(2))
    decoded = decode(AccountKind.MINT, encode(AccountKind.MINT, mint), address=mint.address)

    assert decoded == mint
    assert decoded.freeze_authority is None

    print("  Mint round trip: PASSED")


def test_trailing_bytes_ignored():
    """Bytes past the known layout do not change the decoded record"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.types import BinArrayState, BinState, LbPairState, MintInfo

    print("Testing trailing bytes...")

    records = [
        (AccountKind.POSITION, _position()),
        (AccountKind.LB_PAIR, LbPairState(
            address=_key(1), token_x_mint=_key(3), token_y_mint=_key(4), bin_step=10, active_id=7,
            reserve_x=_key(5), reserve_y=_key(6),
        )),
        (AccountKind.BIN_ARRAY, BinArrayState(
            index=3, lb_pair=_key(1), bins=tuple(BinState(amount_x=i) for i in range(70)), address=_key(6),
        )),
        (AccountKind.MINT, MintInfo(address=_key(3), decimals=9, supply=42)),
    ]
    for kind, state in records:
        data = encode(kind, state) + b"\xff" * 64
        assert decode(kind, data, address=state.address) == state, kind

    print("  Trailing bytes: PASSED")


def test_decode_too_short():
    """Truncated buffers are rejected with TOO_SHORT"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.errors import DecodeError, ErrorCode

    print("Testing too-short buffers...")

    data = encode(AccountKind.POSITION, _position())
    for kind, blob in ((AccountKind.POSITION, data[:100]), (AccountKind.MINT, b"\x01" * 10)):
        try:
            decode(kind, blob)
            assert False, f"Should raise for short {kind.value}"
        except DecodeError as e:
            assert e.code == ErrorCode.DECODE_TOO_SHORT

    print("  Too-short buffers: PASSED")


def test_decode_bad_discriminator():
    """A position buffer does not decode as an LbPair"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.errors import DecodeError, ErrorCode

    print("Testing bad discriminator...")

    data = bytearray(encode(AccountKind.POSITION, _position()))
    data[0] ^= 0xFF
    try:
        decode(AccountKind.POSITION, bytes(data))
        assert False, "Should raise for wrong discriminator"
    except DecodeError as e:
        assert e.code == ErrorCode.DECODE_BAD_DISCRIMINATOR

    uninitialized = encode(AccountKind.MINT, {"decimals": 6, "is_initialized": 0})
    try:
        decode(AccountKind.MINT, uninitialized)
        assert False, "Should raise for uninitialized mint"
    except DecodeError as e:
        assert e.code == ErrorCode.DECODE_BAD_DISCRIMINATOR

    print("  Bad discriminator: PASSED")


def test_decode_inverted_range():
    """lower_bin_id > upper_bin_id is FIELD_OUT_OF_RANGE"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.errors import DecodeError, ErrorCode

    print("Testing inverted bin range...")

    data = encode(AccountKind.POSITION, {
        "lb_pair": _key(1),
        "owner": _key(2),
        "lower_bin_id": 10,
        "upper_bin_id": 5,
    })
    try:
        decode(AccountKind.POSITION, data)
        assert False, "Should raise for inverted range"
    except DecodeError as e:
        assert e.code == ErrorCode.DECODE_FIELD_OUT_OF_RANGE
        assert "lower_bin_id" in e.message

    wide = encode(AccountKind.POSITION, {"lower_bin_id": 0, "upper_bin_id": 70})
    try:
        decode(AccountKind.POSITION, wide)
        assert False, "Should raise for a 71-bin position"
    except DecodeError as e:
        assert e.code == ErrorCode.DECODE_FIELD_OUT_OF_RANGE

    print("  Inverted bin range: PASSED")


def test_lb_pair_zero_bin_step():
    """bin_step 0 is rejected"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, decode, encode
    from dlmm_engine.errors import DecodeError, ErrorCode

    print("Testing zero bin step...")

    data = encode(AccountKind.LB_PAIR, {"token_x_mint": _key(3), "token_y_mint": _key(4), "bin_step": 0})
    try:
        decode(AccountKind.LB_PAIR, data)
        assert False, "Should raise for bin_step 0"
    except DecodeError as e:
        assert e.code == ErrorCode.DECODE_FIELD_OUT_OF_RANGE

    print("  Zero bin step: PASSED")


def test_filters():
    """getProgramAccounts filters"""
    from dlmm_engine.protocols.meteora.layouts import AccountKind, discriminator_filter, pubkey_filter
    from dlmm_engine.protocols.meteora.constants import ACCOUNT_DISCRIMINATORS

    print("Testing account filters...")

    f = discriminator_filter(AccountKind.POSITION)
    assert f["memcmp"]["offset"] == 0
    assert base58.b58decode(f["memcmp"]["bytes"]) == ACCOUNT_DISCRIMINATORS["position"]

    assert pubkey_filter(40, _key(2)) == {"memcmp": {"offset": 40, "bytes": _key(2)}}

    print("  Account filters: PASSED")


def main():
    """Run all layout tests"""
    print("=" * 60)
    print("Account Layout Tests")
    print("=" * 60)

    tests = [
        test_position_round_trip,
        test_lb_pair_round_trip,
        test_bin_array_round_trip,
        test_mint_round_trip,
        test_trailing_bytes_ignored,
        test_decode_too_short,
        test_decode_bad_discriminator,
        test_decode_inverted_range,
        test_lb_pair_zero_bin_step,
        test_filters,
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
