"""Application-wide constants and configuration values.

This module centralizes all magic numbers and hardcoded values used throughout
the application, making them easier to maintain and adjust.
"""

# Word Lists
EASY_WORDS = ["GAMES", "OF", "MATH", "ARE", "THE", "BEST", "FUNNIEST", "TYPE"]
"""Secret words for the Easy tier, played in order."""

MEDIUM_WORDS = ["ALGEBRA", "EQUATION", "VARIABLE", "SOLUTION", "COEFFICIENT", "EXPONENT", "POLYNOMIAL"]
"""Secret words for the Medium tier, played in order. Unlocked by solving every Easy word."""

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"
"""Equation solutions are 1-based positions in this alphabet."""

# Equation Generation
COEFFICIENT_MIN = 1
COEFFICIENT_MAX = 5
"""Inclusive range of the x coefficient."""

CONSTANT_MIN = 0
CONSTANT_MAX = 9
"""Inclusive range of the additive constant."""

# Scoring
CORRECT_ANSWER_REWARD = 100
"""Points added for a correct answer."""

WRONG_ANSWER_PENALTY = 10
"""Points removed for a wrong answer. Score never drops below zero."""

# Leaderboard
LEADERBOARD_TOP_SIZE = 3
"""Number of players shown inline."""

LEADERBOARD_FULL_SIZE = 12
"""Number of players shown in the expanded leaderboard."""

LEADERBOARD_SIZES = (LEADERBOARD_TOP_SIZE, LEADERBOARD_FULL_SIZE)
"""Leaderboard views kept in cache."""

# Snapshot Store Keys
GAME_STATE_KEY = "puzzle_state"
"""Snapshot key holding the serialized saved game state."""

PLAYER_NAME_KEY = "player_name"
"""Snapshot key holding the player's display name."""

# Player Names
MAX_PLAYER_NAME_LENGTH = 50
"""Longest accepted display name after trimming."""

# Cookie Configuration
COOKIE_NAME = "awp_cid"
"""Name of the cookie used to store the anonymous client id."""

# Rate Limiting
ANSWER_SUBMISSION_RATE_LIMIT = "60/minute"
"""Maximum number of answer submissions allowed per minute per client."""

DEFAULT_RATE_LIMIT = "100/minute"
"""Default per-IP request limit."""

# Logging
DEFAULT_LOG_LEVEL = "INFO"
"""Default logging level for the application."""
