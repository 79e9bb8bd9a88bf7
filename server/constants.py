"""
Game constants for Equation Poker.

This module is the single source of truth for table rules: targets,
dealing schedule, deck composition and color ranking. Values that
operators may tune come from config.py (environment-aware).

Equation Poker Summary:
    - Every player starts a round with three operator cards: + - ÷
    - Two number cards are dealt after the preflop betting round,
      two more after the first betting round
    - Multiply and square-root cards may turn up while dealing
    - After the last betting round each player builds equations aiming
      for the small target (1), the big target (20), or both
"""

from config import config


# =============================================================================
# Targets
# =============================================================================

SMALL_TARGET: int = config.game.small_target
BIG_TARGET: int = config.game.big_target


# =============================================================================
# Chips & Table
# =============================================================================

STARTING_CHIPS: int = config.game.starting_chips
MAX_PLAYERS: int = config.MAX_PLAYERS_PER_SESSION
SESSION_ID_DIGITS: int = config.SESSION_ID_DIGITS

BOT_TURN_DELAY: float = config.game.bot_turn_delay
SWAP_DECISION_TIMEOUT: float = config.game.swap_decision_timeout

PRACTICE_BOT_ID = "bot-1"
SPECTATOR_SUFFIX = " (Spectator)"
MAX_NAME_LENGTH = 40


# =============================================================================
# Deck Composition
# =============================================================================

# Number cards run 0..10 inclusive in each color
MIN_CARD_VALUE = 0
MAX_CARD_VALUE = 10

# Copies of each special operation card in the deck
MULTIPLY_COPIES = 4
SQUARE_ROOT_COPIES = 4

DECK_SIZE = 4 * (MAX_CARD_VALUE - MIN_CARD_VALUE + 1) + MULTIPLY_COPIES + SQUARE_ROOT_COPIES

# Number cards each contestant holds once a dealing phase completes
DEALING1_TARGET = 2
DEALING2_TARGET = 4

# Retries of a dealing pass that ends with a wrong number-card count
MAX_DEAL_ATTEMPTS = 3


# =============================================================================
# Equations
# =============================================================================

# Longest equation string accepted in a submission
MAX_EQUATION_LENGTH = 200

# Deepest chain of square roots over parenthesized expressions
MAX_SQRT_NESTING = 16
