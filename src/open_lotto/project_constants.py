"""
Deployment-wide immutable parameters for the Open Lotto program.

These values define the public rules of every round.
Changing them changes payouts and MUST be publicly announced.
"""

# Program id of the deployed lottery (devnet)
PROGRAM_ID = "GMECsoFXBjDcsA7GuVUq1vFmCM27qJumw4Y1rGsxseui"

# Native SOL is recorded as the wrapped SOL mint
NATIVE_MINT = "So11111111111111111111111111111111111111112"

LAMPORTS_PER_SOL = 1_000_000_000

# One ticket costs 0.01 SOL
TICKET_PRICE = 10_000_000

# Protocol fee in basis points: 5% to treasury, 95% to the round's prize pool
FEE_BPS = 500
BPS_DENOMINATOR = 10_000

# Manager names are used as a PDA seed, which caps them at 32 bytes
MAX_MANAGER_NAME_LEN = 32

# PDA seeds
MANAGER_SEED = b"manager"
POT_SEED = b"pot"
TICKET_SEED = b"ticket"
ESCROW_SEED = b"escrow"
TREASURY_SEED = b"treasury"

# Switchboard on-demand
SB_ON_DEMAND_DEVNET = "Aio4gaXjXzJNVLtzwtNVmSqGKpANtXhybbkhtAC94ji2"
SB_ON_DEMAND_MAINNET = "SBondMDrcV3K4kxZR1HNVT7osZxAHVHgYXL5Ze1oMUv"
