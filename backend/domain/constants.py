"""
Domain constants used across services/routers.
"""

# SPL token programs whose transfers count as payments
SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM_ID = "TokenzQdBNbLqP5VEhdkAS6EHFLx1ATXGwZ4VPkRtZ"
TOKEN_PROGRAM_IDS = frozenset({SPL_TOKEN_PROGRAM_ID, TOKEN_2022_PROGRAM_ID})

# jsonParsed program labels for the same programs
TOKEN_PROGRAM_LABELS = frozenset({"spl-token", "spl-token-2022"})

# Parsed instruction types
IX_TRANSFER = "transfer"
IX_TRANSFER_CHECKED = "transferChecked"

# Reported sender when the source token account cannot be resolved
UNRESOLVED_SENDER = "unresolved"

# Fractional digits carried by stored amounts
AMOUNT_DECIMALS = 6
