"""Game constants"""

# Player count bounds
MIN_PLAYERS = 2
MAX_PLAYERS = 4

# Move history retention
MAX_HISTORY_LENGTH = 50

# Threshold meaning "any card may be played"
NO_THRESHOLD = 0

# Cards of one rank needed for a burn
BURN_COUNT = 4

# Bot heuristics
BOT_HIGH_PILE_THRESHOLD = 10
BOT_LOW_OPPONENT_CARDS = 3

# Error codes
ERROR_INVALID_PLAYER = "INVALID_PLAYER"
ERROR_INVALID_PLAYER_COUNT = "INVALID_PLAYER_COUNT"
ERROR_PHASE_VIOLATION = "PHASE_VIOLATION"
ERROR_TURN_VIOLATION = "TURN_VIOLATION"
ERROR_INVALID_CARD_SOURCE = "INVALID_CARD_SOURCE"
ERROR_INVALID_PLAY = "INVALID_PLAY"
ERROR_INSUFFICIENT_CARDS = "INSUFFICIENT_CARDS"
ERROR_INVALID_SWAP = "INVALID_SWAP"
ERROR_ROLLBACK_NOT_FOUND = "ROLLBACK_NOT_FOUND"
ERROR_ROLLBACK_NOT_AUTHORIZED = "ROLLBACK_NOT_AUTHORIZED"
ERROR_CARD_ACCOUNTING = "CARD_ACCOUNTING"
ERROR_CORRUPT_SNAPSHOT = "CORRUPT_SNAPSHOT"

# Validation failure codes (rank/threshold judgement)
ERROR_EMPTY_PLAY = "EMPTY_PLAY"
ERROR_MIXED_RANKS = "MIXED_RANKS"
ERROR_MULTIPLES_DISABLED = "MULTIPLES_DISABLED"
ERROR_RANK_TOO_LOW = "RANK_TOO_LOW"
