"""
Meteora DLMM account layouts

Schema-driven decoder for the accounts the engine reads:
- PositionV2
- LbPair
- BinArray
- SPL Mint (base 82-byte layout, Token-2022 extensions ignored)

Each layout is a declarative list of fields (offset, type, count) validated
against an 8-byte Anchor discriminator. All integers are little-endian.
Trailing bytes beyond a layout's minimum size are ignored.

Usage:
    position = decode(AccountKind.POSITION, data, address="...")
    data = encode(AccountKind.POSITION, position)
"""

import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

import base58

from ...errors import DecodeError
from ...types import (
    BinArrayState,
    BinState,
    DEFAULT_PUBKEY,
    FeeInfo,
    LbPairState,
    MintInfo,
    PositionState,
    UserRewardInfo,
)
from .constants import (
    ACCOUNT_DISCRIMINATORS,
    BIN_ARRAY_BINS_OFFSET,
    BIN_ARRAY_INDEX_OFFSET,
    BIN_ARRAY_LB_PAIR_OFFSET,
    BIN_ARRAY_MIN_SIZE,
    BIN_ARRAY_VERSION_OFFSET,
    BIN_SIZE,
    FEE_INFO_SIZE,
    LB_PAIR_ACTIVE_ID_OFFSET,
    LB_PAIR_BIN_STEP_OFFSET,
    LB_PAIR_MIN_SIZE,
    LB_PAIR_ORACLE_OFFSET,
    LB_PAIR_RESERVE_X_OFFSET,
    LB_PAIR_RESERVE_Y_OFFSET,
    LB_PAIR_REWARD_INFOS_OFFSET,
    LB_PAIR_STATUS_OFFSET,
    LB_PAIR_TOKEN_X_MINT_OFFSET,
    LB_PAIR_TOKEN_Y_MINT_OFFSET,
    MAX_BIN_ID,
    MAX_BIN_PER_ARRAY,
    MAX_BIN_PER_POSITION,
    MIN_BIN_ID,
    MINT_DECIMALS_OFFSET,
    MINT_IS_INITIALIZED_OFFSET,
    MINT_SIZE,
    MINT_SUPPLY_OFFSET,
    NUM_REWARDS,
    POSITION_FEE_INFOS_OFFSET,
    POSITION_LAST_UPDATED_AT_OFFSET,
    POSITION_LB_PAIR_OFFSET,
    POSITION_LIQUIDITY_SHARES_OFFSET,
    POSITION_LOWER_BIN_ID_OFFSET,
    POSITION_MIN_SIZE,
    POSITION_OPERATOR_OFFSET,
    POSITION_OWNER_OFFSET,
    POSITION_REWARD_INFOS_OFFSET,
    POSITION_TOTAL_CLAIMED_FEE_X_OFFSET,
    POSITION_TOTAL_CLAIMED_FEE_Y_OFFSET,
    POSITION_TOTAL_CLAIMED_REWARDS_OFFSET,
    POSITION_UPPER_BIN_ID_OFFSET,
    REWARD_INFO_SIZE,
    USER_REWARD_INFO_SIZE,
)


class AccountKind(Enum):
    """Account kinds understood by the decoder"""
    POSITION = "position"
    LB_PAIR = "lb_pair"
    BIN_ARRAY = "bin_array"
    MINT = "mint"


# struct formats for fixed-width scalars; u128 and pubkey are handled apart
_SCALAR_FORMATS = {
    "u8": "<B",
    "u16": "<H",
    "u32": "<I",
    "i32": "<i",
    "u64": "<Q",
    "i64": "<q",
}

_TYPE_SIZES = {
    "u8": 1,
    "u16": 2,
    "u32": 4,
    "i32": 4,
    "u64": 8,
    "i64": 8,
    "u128": 16,
    "pubkey": 32,
}


@dataclass(frozen=True)
class Field:
    """
    One field of an account layout

    Attributes:
        name: Key in the decoded values dict
        offset: Byte offset (absolute, or relative to the enclosing struct)
        type: Scalar type name, "pubkey", or "struct"
        count: Array length (None for a single value)
        stride: Element size for struct arrays
        fields: Element fields for struct types
    """
    name: str
    offset: int
    type: str
    count: Optional[int] = None
    stride: Optional[int] = None
    fields: Tuple["Field", ...] = ()

    @property
    def element_size(self) -> int:
        if self.type == "struct":
            return self.stride
        return self.stride or _TYPE_SIZES[self.type]


@dataclass(frozen=True)
class AccountLayout:
    """Declarative layout of one account kind"""
    kind: AccountKind
    name: str
    discriminator: Optional[bytes]
    min_size: int
    fields: Tuple[Field, ...]


_FEE_INFO_FIELDS = (
    Field("fee_x_per_token_complete", 0, "u128"),
    Field("fee_y_per_token_complete", 16, "u128"),
    Field("fee_x_pending", 32, "u64"),
    Field("fee_y_pending", 40, "u64"),
)

_USER_REWARD_INFO_FIELDS = (
    Field("reward_per_token_completes", 0, "u128", count=NUM_REWARDS),
    Field("reward_pendings", 32, "u64", count=NUM_REWARDS),
)

_REWARD_INFO_FIELDS = (
    Field("mint", 0, "pubkey"),
    Field("vault", 32, "pubkey"),
    Field("funder", 64, "pubkey"),
    Field("reward_duration", 96, "u64"),
    Field("reward_duration_end", 104, "u64"),
    Field("reward_rate", 112, "u128"),
    Field("last_update_time", 128, "u64"),
    Field("cumulative_seconds_with_empty_liquidity_reward", 136, "u64"),
)

_BIN_FIELDS = (
    Field("amount_x", 0, "u64"),
    Field("amount_y", 8, "u64"),
    Field("price", 16, "u128"),
    Field("liquidity_supply", 32, "u128"),
    Field("reward_per_token_stored", 48, "u128", count=NUM_REWARDS),
    Field("fee_amount_x_per_token_stored", 80, "u128"),
    Field("fee_amount_y_per_token_stored", 96, "u128"),
    Field("amount_x_in", 112, "u128"),
    Field("amount_y_in", 128, "u128"),
)

LAYOUTS: Dict[AccountKind, AccountLayout] = {
    AccountKind.POSITION: AccountLayout(
        kind=AccountKind.POSITION,
        name="PositionV2",
        discriminator=ACCOUNT_DISCRIMINATORS["position"],
        min_size=POSITION_MIN_SIZE,
        fields=(
            Field("lb_pair", POSITION_LB_PAIR_OFFSET, "pubkey"),
            Field("owner", POSITION_OWNER_OFFSET, "pubkey"),
            Field("liquidity_shares", POSITION_LIQUIDITY_SHARES_OFFSET, "u128", count=MAX_BIN_PER_POSITION),
            Field(
                "reward_infos", POSITION_REWARD_INFOS_OFFSET, "struct",
                count=MAX_BIN_PER_POSITION, stride=USER_REWARD_INFO_SIZE, fields=_USER_REWARD_INFO_FIELDS,
            ),
            Field(
                "fee_infos", POSITION_FEE_INFOS_OFFSET, "struct",
                count=MAX_BIN_PER_POSITION, stride=FEE_INFO_SIZE, fields=_FEE_INFO_FIELDS,
            ),
            Field("lower_bin_id", POSITION_LOWER_BIN_ID_OFFSET, "i32"),
            Field("upper_bin_id", POSITION_UPPER_BIN_ID_OFFSET, "i32"),
            Field("last_updated_at", POSITION_LAST_UPDATED_AT_OFFSET, "i64"),
            Field("total_claimed_fee_x_amount", POSITION_TOTAL_CLAIMED_FEE_X_OFFSET, "u64"),
            Field("total_claimed_fee_y_amount", POSITION_TOTAL_CLAIMED_FEE_Y_OFFSET, "u64"),
            Field("total_claimed_rewards", POSITION_TOTAL_CLAIMED_REWARDS_OFFSET, "u64", count=NUM_REWARDS),
            Field("operator", POSITION_OPERATOR_OFFSET, "pubkey"),
        ),
    ),
    AccountKind.LB_PAIR: AccountLayout(
        kind=AccountKind.LB_PAIR,
        name="LbPair",
        discriminator=ACCOUNT_DISCRIMINATORS["lb_pair"],
        min_size=LB_PAIR_MIN_SIZE,
        fields=(
            Field("active_id", LB_PAIR_ACTIVE_ID_OFFSET, "i32"),
            Field("bin_step", LB_PAIR_BIN_STEP_OFFSET, "u16"),
            Field("status", LB_PAIR_STATUS_OFFSET, "u8"),
            Field("token_x_mint", LB_PAIR_TOKEN_X_MINT_OFFSET, "pubkey"),
            Field("token_y_mint", LB_PAIR_TOKEN_Y_MINT_OFFSET, "pubkey"),
            Field("reserve_x", LB_PAIR_RESERVE_X_OFFSET, "pubkey"),
            Field("reserve_y", LB_PAIR_RESERVE_Y_OFFSET, "pubkey"),
            Field(
                "reward_infos", LB_PAIR_REWARD_INFOS_OFFSET, "struct",
                count=NUM_REWARDS, stride=REWARD_INFO_SIZE, fields=_REWARD_INFO_FIELDS,
            ),
            Field("oracle", LB_PAIR_ORACLE_OFFSET, "pubkey"),
        ),
    ),
    AccountKind.BIN_ARRAY: AccountLayout(
        kind=AccountKind.BIN_ARRAY,
        name="BinArray",
        discriminator=ACCOUNT_DISCRIMINATORS["bin_array"],
        min_size=BIN_ARRAY_MIN_SIZE,
        fields=(
            Field("index", BIN_ARRAY_INDEX_OFFSET, "i64"),
            Field("version", BIN_ARRAY_VERSION_OFFSET, "u8"),
            Field("lb_pair", BIN_ARRAY_LB_PAIR_OFFSET, "pubkey"),
            Field(
                "bins", BIN_ARRAY_BINS_OFFSET, "struct",
                count=MAX_BIN_PER_ARRAY, stride=BIN_SIZE, fields=_BIN_FIELDS,
            ),
        ),
    ),
    AccountKind.MINT: AccountLayout(
        kind=AccountKind.MINT,
        name="Mint",
        discriminator=None,  # is_initialized flag is checked instead
        min_size=MINT_SIZE,
        fields=(
            Field("mint_authority_option", 0, "u32"),
            Field("mint_authority", 4, "pubkey"),
            Field("supply", MINT_SUPPLY_OFFSET, "u64"),
            Field("decimals", MINT_DECIMALS_OFFSET, "u8"),
            Field("is_initialized", MINT_IS_INITIALIZED_OFFSET, "u8"),
            Field("freeze_authority_option", 46, "u32"),
            Field("freeze_authority", 50, "pubkey"),
        ),
    ),
}


# ========== Low-level field codec ==========

def _pubkey_from_bytes(data: bytes) -> str:
    """Convert 32 bytes to base58"""
    return base58.b58encode(data).decode("ascii")


def _pubkey_to_bytes(value: Optional[str]) -> bytes:
    if not value:
        return bytes(32)
    raw = base58.b58decode(value)
    if len(raw) != 32:
        raise ValueError(f"Public key must be 32 bytes, got {len(raw)}: {value}")
    return raw


def _read_scalar(data: bytes, offset: int, type_name: str) -> Any:
    if type_name == "u128":
        return int.from_bytes(data[offset:offset + 16], "little")
    if type_name == "pubkey":
        return _pubkey_from_bytes(data[offset:offset + 32])
    return struct.unpack_from(_SCALAR_FORMATS[type_name], data, offset)[0]


def _write_scalar(buf: bytearray, offset: int, type_name: str, value: Any) -> None:
    if type_name == "u128":
        buf[offset:offset + 16] = int(value).to_bytes(16, "little")
    elif type_name == "pubkey":
        buf[offset:offset + 32] = _pubkey_to_bytes(value)
    else:
        struct.pack_into(_SCALAR_FORMATS[type_name], buf, offset, int(value))


def _read_fields(data: bytes, base: int, fields: Tuple[Field, ...]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for f in fields:
        start = base + f.offset
        if f.type == "struct":
            items = [
                _read_fields(data, start + i * f.stride, f.fields)
                for i in range(f.count or 1)
            ]
            values[f.name] = items if f.count is not None else items[0]
        elif f.count is not None:
            size = f.element_size
            values[f.name] = [_read_scalar(data, start + i * size, f.type) for i in range(f.count)]
        else:
            values[f.name] = _read_scalar(data, start, f.type)
    return values


def _write_fields(buf: bytearray, base: int, fields: Tuple[Field, ...], values: Dict[str, Any]) -> None:
    for f in fields:
        if f.name not in values or values[f.name] is None:
            continue  # zero-filled
        value = values[f.name]
        start = base + f.offset
        if f.type == "struct":
            items = value if f.count is not None else [value]
            for i, item in enumerate(items[:f.count or 1]):
                _write_fields(buf, start + i * f.stride, f.fields, item)
        elif f.count is not None:
            size = f.element_size
            for i, item in enumerate(list(value)[:f.count]):
                _write_scalar(buf, start + i * size, f.type, item)
        else:
            _write_scalar(buf, start, f.type, value)


def _resolve_kind(kind: Union[AccountKind, str]) -> AccountKind:
    if isinstance(kind, AccountKind):
        return kind
    try:
        return AccountKind(kind)
    except ValueError:
        raise ValueError(f"Unknown account kind: {kind!r}") from None


def decode_fields(kind: Union[AccountKind, str], data: bytes) -> Dict[str, Any]:
    """
    Validate length and discriminator, then read every field of the layout

    Raises:
        DecodeError: TOO_SHORT or BAD_DISCRIMINATOR
    """
    layout = LAYOUTS[_resolve_kind(kind)]
    data = bytes(data)

    if len(data) < layout.min_size:
        raise DecodeError.too_short(layout.name, layout.min_size, len(data))

    if layout.discriminator is not None:
        got = data[:len(layout.discriminator)]
        if got != layout.discriminator:
            raise DecodeError.bad_discriminator(layout.name, got)

    return _read_fields(data, 0, layout.fields)


# ========== Range checks ==========

def _check_bin_id(kind: str, name: str, bin_id: int) -> None:
    if not MIN_BIN_ID <= bin_id <= MAX_BIN_ID:
        raise DecodeError.field_out_of_range(
            kind, name, f"{bin_id} outside [{MIN_BIN_ID}, {MAX_BIN_ID}]"
        )


def _optional_pubkey(value: str) -> Optional[str]:
    return None if value == DEFAULT_PUBKEY else value


# ========== Typed decoders ==========

def decode_position(data: bytes, address: str = "") -> PositionState:
    """
    Decode a PositionV2 account

    Per-bin arrays are cut to the position width so index i is bin
    lower_bin_id + i.
    """
    values = decode_fields(AccountKind.POSITION, data)
    lower = values["lower_bin_id"]
    upper = values["upper_bin_id"]

    _check_bin_id("PositionV2", "lower_bin_id", lower)
    _check_bin_id("PositionV2", "upper_bin_id", upper)
    if lower > upper:
        raise DecodeError.field_out_of_range(
            "PositionV2", "upper_bin_id", f"lower_bin_id {lower} > upper_bin_id {upper}"
        )
    width = upper - lower + 1
    if width > MAX_BIN_PER_POSITION:
        raise DecodeError.field_out_of_range(
            "PositionV2", "upper_bin_id", f"width {width} exceeds {MAX_BIN_PER_POSITION}"
        )

    fee_infos = tuple(FeeInfo(**item) for item in values["fee_infos"][:width])
    reward_infos = tuple(
        UserRewardInfo(
            reward_per_token_completes=tuple(item["reward_per_token_completes"]),
            reward_pendings=tuple(item["reward_pendings"]),
        )
        for item in values["reward_infos"][:width]
    )

    return PositionState(
        address=address,
        lb_pair=values["lb_pair"],
        owner=values["owner"],
        lower_bin_id=lower,
        upper_bin_id=upper,
        liquidity_shares=tuple(values["liquidity_shares"][:width]),
        fee_infos=fee_infos,
        reward_infos=reward_infos,
        last_updated_at=values["last_updated_at"],
        total_claimed_fee_x_amount=values["total_claimed_fee_x_amount"],
        total_claimed_fee_y_amount=values["total_claimed_fee_y_amount"],
        total_claimed_rewards=tuple(values["total_claimed_rewards"]),
        operator=_optional_pubkey(values["operator"]),
    )


def decode_lb_pair(data: bytes, address: str = "") -> LbPairState:
    """Decode an LbPair account; unset reward slots become None"""
    values = decode_fields(AccountKind.LB_PAIR, data)

    if values["bin_step"] <= 0:
        raise DecodeError.field_out_of_range("LbPair", "bin_step", "must be > 0")
    _check_bin_id("LbPair", "active_id", values["active_id"])

    return LbPairState(
        address=address,
        token_x_mint=values["token_x_mint"],
        token_y_mint=values["token_y_mint"],
        bin_step=values["bin_step"],
        active_id=values["active_id"],
        reserve_x=values["reserve_x"],
        reserve_y=values["reserve_y"],
        reward_mints=tuple(_optional_pubkey(r["mint"]) for r in values["reward_infos"]),
        oracle=_optional_pubkey(values["oracle"]),
        status=values["status"],
    )


def decode_bin_array(data: bytes, address: Optional[str] = None) -> BinArrayState:
    """Decode a BinArray account (70 bins)"""
    values = decode_fields(AccountKind.BIN_ARRAY, data)

    index = values["index"]
    lowest = MIN_BIN_ID // MAX_BIN_PER_ARRAY
    highest = MAX_BIN_ID // MAX_BIN_PER_ARRAY
    if not lowest <= index <= highest:
        raise DecodeError.field_out_of_range("BinArray", "index", f"{index} outside [{lowest}, {highest}]")

    bins = tuple(
        BinState(
            amount_x=b["amount_x"],
            amount_y=b["amount_y"],
            price=b["price"],
            liquidity_supply=b["liquidity_supply"],
        )
        for b in values["bins"]
    )
    return BinArrayState(
        index=index,
        lb_pair=values["lb_pair"],
        bins=bins,
        version=values["version"],
        address=address,
    )


def decode_mint(data: bytes, address: str = "") -> MintInfo:
    """Decode an SPL / Token-2022 mint (base layout only)"""
    values = decode_fields(AccountKind.MINT, data)

    if values["is_initialized"] != 1:
        raise DecodeError.bad_discriminator("Mint", bytes([values["is_initialized"]]))

    return MintInfo(
        address=address,
        decimals=values["decimals"],
        supply=values["supply"],
        is_initialized=True,
        mint_authority=values["mint_authority"] if values["mint_authority_option"] else None,
        freeze_authority=values["freeze_authority"] if values["freeze_authority_option"] else None,
    )


_DECODERS = {
    AccountKind.POSITION: decode_position,
    AccountKind.LB_PAIR: decode_lb_pair,
    AccountKind.BIN_ARRAY: decode_bin_array,
    AccountKind.MINT: decode_mint,
}


def decode(kind: Union[AccountKind, str], data: bytes, address: str = ""):
    """
    Decode raw account bytes into a typed record

    Args:
        kind: Expected account kind
        data: Raw account data
        address: Account address to attach to the record

    Returns:
        PositionState, LbPairState, BinArrayState or MintInfo

    Raises:
        DecodeError: Buffer too short, wrong discriminator, or a field out of range
    """
    return _DECODERS[_resolve_kind(kind)](data, address)


# ========== Encoding ==========

def _position_values(state: PositionState) -> Dict[str, Any]:
    return {
        "lb_pair": state.lb_pair,
        "owner": state.owner,
        "liquidity_shares": list(state.liquidity_shares),
        "reward_infos": [
            {
                "reward_per_token_completes": list(r.reward_per_token_completes),
                "reward_pendings": list(r.reward_pendings),
            }
            for r in state.reward_infos
        ],
        "fee_infos": [
            {
                "fee_x_per_token_complete": f.fee_x_per_token_complete,
                "fee_y_per_token_complete": f.fee_y_per_token_complete,
                "fee_x_pending": f.fee_x_pending,
                "fee_y_pending": f.fee_y_pending,
            }
            for f in state.fee_infos
        ],
        "lower_bin_id": state.lower_bin_id,
        "upper_bin_id": state.upper_bin_id,
        "last_updated_at": state.last_updated_at,
        "total_claimed_fee_x_amount": state.total_claimed_fee_x_amount,
        "total_claimed_fee_y_amount": state.total_claimed_fee_y_amount,
        "total_claimed_rewards": list(state.total_claimed_rewards),
        "operator": state.operator,
    }


def _lb_pair_values(state: LbPairState) -> Dict[str, Any]:
    return {
        "active_id": state.active_id,
        "bin_step": state.bin_step,
        "status": state.status,
        "token_x_mint": state.token_x_mint,
        "token_y_mint": state.token_y_mint,
        "reserve_x": state.reserve_x or None,
        "reserve_y": state.reserve_y or None,
        "reward_infos": [{"mint": mint} for mint in state.reward_mints],
        "oracle": state.oracle,
    }


def _bin_array_values(state: BinArrayState) -> Dict[str, Any]:
    return {
        "index": state.index,
        "version": state.version,
        "lb_pair": state.lb_pair,
        "bins": [
            {
                "amount_x": b.amount_x,
                "amount_y": b.amount_y,
                "price": b.price,
                "liquidity_supply": b.liquidity_supply,
            }
            for b in state.bins
        ],
    }


def _mint_values(state: MintInfo) -> Dict[str, Any]:
    return {
        "mint_authority_option": 1 if state.mint_authority else 0,
        "mint_authority": state.mint_authority,
        "supply": state.supply,
        "decimals": state.decimals,
        "is_initialized": 1 if state.is_initialized else 0,
        "freeze_authority_option": 1 if state.freeze_authority else 0,
        "freeze_authority": state.freeze_authority,
    }


_TO_VALUES = {
    PositionState: _position_values,
    LbPairState: _lb_pair_values,
    BinArrayState: _bin_array_values,
    MintInfo: _mint_values,
}


def encode(kind: Union[AccountKind, str], values: Union[Dict[str, Any], Any]) -> bytes:
    """
    Encode a record (or a raw values dict) into account bytes

    Fields absent from values are zero-filled. The discriminator is written
    for Anchor accounts.

    Args:
        kind: Account kind
        values: Typed record or dict keyed by layout field names

    Returns:
        Account bytes of the layout's minimum size
    """
    layout = LAYOUTS[_resolve_kind(kind)]
    to_values = _TO_VALUES.get(type(values))
    if to_values is not None:
        values = to_values(values)

    buf = bytearray(layout.min_size)
    if layout.discriminator is not None:
        buf[:len(layout.discriminator)] = layout.discriminator
    _write_fields(buf, 0, layout.fields, values)
    return bytes(buf)


def discriminator_filter(kind: Union[AccountKind, str]) -> Dict[str, Any]:
    """getProgramAccounts memcmp filter matching an account kind"""
    layout = LAYOUTS[_resolve_kind(kind)]
    return {
        "memcmp": {
            "offset": 0,
            "bytes": base58.b58encode(layout.discriminator).decode("ascii"),
        }
    }


def pubkey_filter(offset: int, pubkey: str) -> Dict[str, Any]:
    """getProgramAccounts memcmp filter matching a public key at offset"""
    return {"memcmp": {"offset": offset, "bytes": pubkey}}
