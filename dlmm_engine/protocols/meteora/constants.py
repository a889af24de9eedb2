"""
Meteora DLMM Constants
"""

# Meteora DLMM Program ID (mainnet)
DLMM_PROGRAM_ID = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"

# PDA seeds
BIN_ARRAY_SEED = b"bin_array"

# Bin array constants
MAX_BIN_PER_ARRAY = 70

# Position constants
MAX_BIN_PER_POSITION = 70

# Reward slots per pair
NUM_REWARDS = 2

# Bin ID bounds
MIN_BIN_ID = -443636
MAX_BIN_ID = 443636

# Basis point denominator for bin_step
BASIS_POINT_MAX = 10000

# Anchor account discriminators (sha256("account:<AccountName>")[0:8])
ACCOUNT_DISCRIMINATORS = {
    # sha256("account:PositionV2")[0:8]
    "position": bytes([0x75, 0xb0, 0xd4, 0xc7, 0xf5, 0xb4, 0x85, 0xb6]),
    # sha256("account:LbPair")[0:8]
    "lb_pair": bytes([0x21, 0x0b, 0x31, 0x62, 0xb5, 0x65, 0xb1, 0x0d]),
    # sha256("account:BinArray")[0:8]
    "bin_array": bytes([0x5c, 0x8e, 0x5c, 0xdc, 0x05, 0x94, 0x46, 0xb5]),
}

# Position account structure offsets (PositionV2)
# - Discriminator: 8 bytes (offset 0)
# - lb_pair: Pubkey at offset 8
# - owner: Pubkey at offset 40
# - liquidity_shares: [u128; 70] at offset 72
# - reward_infos: [UserRewardInfo; 70] at offset 1192 (48 bytes each)
# - fee_infos: [FeeInfo; 70] at offset 4552 (48 bytes each)
# - lower_bin_id / upper_bin_id: i32 at 7912 / 7916
POSITION_LB_PAIR_OFFSET = 8
POSITION_OWNER_OFFSET = 40
POSITION_LIQUIDITY_SHARES_OFFSET = 72
POSITION_REWARD_INFOS_OFFSET = 1192
POSITION_FEE_INFOS_OFFSET = 4552
POSITION_LOWER_BIN_ID_OFFSET = 7912
POSITION_UPPER_BIN_ID_OFFSET = 7916
POSITION_LAST_UPDATED_AT_OFFSET = 7920
POSITION_TOTAL_CLAIMED_FEE_X_OFFSET = 7928
POSITION_TOTAL_CLAIMED_FEE_Y_OFFSET = 7936
POSITION_TOTAL_CLAIMED_REWARDS_OFFSET = 7944
POSITION_OPERATOR_OFFSET = 7960
POSITION_MIN_SIZE = 7992
USER_REWARD_INFO_SIZE = 48
FEE_INFO_SIZE = 48

# LbPair account structure offsets
LB_PAIR_ACTIVE_ID_OFFSET = 76
LB_PAIR_BIN_STEP_OFFSET = 80
LB_PAIR_STATUS_OFFSET = 82
LB_PAIR_TOKEN_X_MINT_OFFSET = 88
LB_PAIR_TOKEN_Y_MINT_OFFSET = 120
LB_PAIR_RESERVE_X_OFFSET = 152
LB_PAIR_RESERVE_Y_OFFSET = 184
LB_PAIR_REWARD_INFOS_OFFSET = 264
LB_PAIR_ORACLE_OFFSET = 552
LB_PAIR_MIN_SIZE = 584
REWARD_INFO_SIZE = 144

# BinArray account structure offsets
BIN_ARRAY_INDEX_OFFSET = 8
BIN_ARRAY_VERSION_OFFSET = 16
BIN_ARRAY_LB_PAIR_OFFSET = 24
BIN_ARRAY_BINS_OFFSET = 56
BIN_SIZE = 144
BIN_ARRAY_MIN_SIZE = BIN_ARRAY_BINS_OFFSET + BIN_SIZE * MAX_BIN_PER_ARRAY  # 10136

# SPL Mint base layout (no Anchor discriminator)
MINT_SIZE = 82
MINT_SUPPLY_OFFSET = 36
MINT_DECIMALS_OFFSET = 44
MINT_IS_INITIALIZED_OFFSET = 45
