"""
Test Error Handling

Tests for the error taxonomy, warnings and per-unit results.
"""

import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))


def test_error_codes():
    """Error codes are grouped by category"""
    from dlmm_engine.errors import ErrorCode

    print("Testing ErrorCode...")

    assert ErrorCode.DECODE_TOO_SHORT.value.startswith("1")
    assert ErrorCode.POSITION_NOT_FOUND.value.startswith("2")
    assert ErrorCode.VALIDATION_FAILED.value.startswith("3")
    assert ErrorCode.ORACLE_UNAVAILABLE.value.startswith("4")
    assert ErrorCode.CONFIG_MISSING.value.startswith("9")

    values = [code.value for code in ErrorCode]
    assert len(values) == len(set(values)), "Error codes must be unique"

    print("  ErrorCode: PASSED")


def test_base_error():
    """Base error formatting and retry flag"""
    from dlmm_engine.errors import DlmmEngineError, ErrorCode

    print("Testing DlmmEngineError...")

    error = DlmmEngineError("boom", ErrorCode.CHAIN_UNAVAILABLE, recoverable=True)
    assert str(error) == "[4001] boom"
    assert "DlmmEngineError" in repr(error)
    assert error.should_retry
    assert error.details == {}

    print("  DlmmEngineError: PASSED")


def test_decode_error():
    """Decode errors are fatal and carry the account kind"""
    from dlmm_engine.errors import DecodeError, DlmmEngineError, ErrorCode

    print("Testing DecodeError...")

    short = DecodeError.too_short("PositionV2", 8120, 100)
    assert short.code == ErrorCode.DECODE_TOO_SHORT
    assert "8120" in short.message and "100" in short.message
    assert short.kind == "PositionV2"
    assert not short.recoverable
    assert isinstance(short, DlmmEngineError)

    bad = DecodeError.bad_discriminator("LbPair", bytes.fromhex("0011223344556677"))
    assert bad.code == DecodeError.BAD_DISCRIMINATOR
    assert "0011223344556677" in bad.message

    field_error = DecodeError.field_out_of_range("PositionV2", "upper_bin_id", "10 < 20")
    assert field_error.code == ErrorCode.DECODE_FIELD_OUT_OF_RANGE
    assert field_error.field_name == "upper_bin_id"
    assert field_error.details["field"] == "upper_bin_id"

    print("  DecodeError: PASSED")


def test_resolution_error():
    """Resolution errors name the missing address"""
    from dlmm_engine.errors import ErrorCode, ResolutionError

    print("Testing ResolutionError...")

    missing = ResolutionError.position_not_found("Pos111")
    assert missing.code == ErrorCode.POSITION_NOT_FOUND
    assert missing.address == "Pos111"

    cause = ValueError("decode failed")
    pair = ResolutionError.pair_not_found("Pair111", cause)
    assert pair.code == ErrorCode.PAIR_NOT_FOUND
    assert pair.original_error is cause

    mint = ResolutionError.mint_not_found("Mint111")
    assert mint.code == ErrorCode.MINT_NOT_FOUND
    assert not mint.recoverable

    print("  ResolutionError: PASSED")


def test_validation_error():
    """Validation errors name the offending field"""
    from dlmm_engine.errors import ErrorCode, ValidationError

    print("Testing ValidationError...")

    error = ValidationError.invalid("native_ratio_percent", 101, "must be within [0, 100]")
    assert error.code == ErrorCode.VALIDATION_FAILED
    assert error.field_name == "native_ratio_percent"
    assert error.value == 101
    assert error.message == "Invalid native_ratio_percent 101: must be within [0, 100]"
    assert error.details["value"] == "101"
    assert not error.recoverable

    print("  ValidationError: PASSED")


def test_external_unavailable():
    """External failures are recoverable and tagged by service"""
    from dlmm_engine.errors import ErrorCode, ExternalUnavailable

    print("Testing ExternalUnavailable...")

    timeout = ExternalUnavailable.timeout("https://rpc.example", 30)
    assert timeout.code == ErrorCode.CHAIN_TIMEOUT
    assert timeout.recoverable
    assert timeout.endpoint == "https://rpc.example"
    assert timeout.service == "chain"

    limited = ExternalUnavailable.rate_limited("https://rpc.example")
    assert limited.code == ErrorCode.CHAIN_RATE_LIMITED

    oracle = ExternalUnavailable.oracle("HTTP 503")
    assert oracle.code == ErrorCode.ORACLE_UNAVAILABLE
    assert oracle.service == "oracle"

    router = ExternalUnavailable.router("no route")
    assert router.code == ErrorCode.ROUTER_UNAVAILABLE
    assert router.details["service"] == "router"

    directory = ExternalUnavailable.directory("timeout")
    assert directory.code == ErrorCode.DIRECTORY_UNAVAILABLE

    print("  ExternalUnavailable: PASSED")


def test_configuration_error():
    """Configuration errors are not recoverable"""
    from dlmm_engine.errors import ConfigurationError, ErrorCode

    print("Testing ConfigurationError...")

    missing = ConfigurationError.missing("SOLANA_RPC_URL")
    assert missing.code == ErrorCode.CONFIG_MISSING
    assert "SOLANA_RPC_URL" in missing.message

    invalid = ConfigurationError.invalid("range_widths", "Spot width 70 exceeds 69")
    assert invalid.code == ErrorCode.CONFIG_INVALID
    assert not invalid.recoverable

    print("  ConfigurationError: PASSED")


def test_partial_data_warning():
    """Warnings are values, comparable by kind and message"""
    from dlmm_engine.errors import PartialDataWarning, WarningKind

    print("Testing PartialDataWarning...")

    warning = PartialDataWarning(
        WarningKind.MISSING_BIN_ARRAY,
        "BinArray -1 unavailable",
        {"chunk_index": -1, "bin_ids": [-3, -2]},
    )
    assert str(warning) == "missing_bin_array: BinArray -1 unavailable"
    assert warning.to_dict() == {
        "kind": "missing_bin_array",
        "message": "BinArray -1 unavailable",
        "details": {"chunk_index": -1, "bin_ids": [-3, -2]},
    }

    same = PartialDataWarning(WarningKind.MISSING_BIN_ARRAY, "BinArray -1 unavailable", {"other": 1})
    assert warning == same

    print("  PartialDataWarning: PASSED")


def test_unit_result():
    """UnitResult status follows value, warnings and error"""
    from dlmm_engine.errors import (
        ExternalUnavailable,
        PartialDataWarning,
        ResolutionError,
        WarningKind,
    )
    from dlmm_engine.types import UnitResult, UnitStatus

    print("Testing UnitResult...")

    ok = UnitResult.of(5, unit_id="a")
    assert ok.is_success and ok.status == UnitStatus.SUCCESS
    assert ok.unit_id == "a"

    warning = PartialDataWarning(WarningKind.MISSING_PRICE, "no price")
    partial = UnitResult.of(5, [warning])
    assert partial.is_partial
    assert partial.to_dict()["warnings"] == [warning.to_dict()]

    fatal = UnitResult.failed(ResolutionError.pair_not_found("Pair111"), unit_id="p")
    assert fatal.is_failed
    assert not fatal.recoverable
    assert fatal.to_dict()["error"]["code"] == "2002"
    assert "FAILED" in str(fatal)

    transient = UnitResult.failed(ExternalUnavailable("node down"))
    assert transient.recoverable

    print("  UnitResult: PASSED")


def main():
    """Run all error tests"""
    print("=" * 60)
    print("Error Handling Tests")
    print("=" * 60)

    tests = [
        test_error_codes,
        test_base_error,
        test_decode_error,
        test_resolution_error,
        test_validation_error,
        test_external_unavailable,
        test_configuration_error,
        test_partial_data_warning,
        test_unit_result,
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
