"""Equation generation: one solvable linear equation per hidden letter."""
import random
from dataclasses import dataclass
from typing import Iterable, List, Optional
from app.constants import ALPHABET, COEFFICIENT_MIN, COEFFICIENT_MAX, CONSTANT_MIN, CONSTANT_MAX

# Shared random source, replaced per call when a caller injects its own
_rng = random.Random()


@dataclass(frozen=True)
class Equation:
    """Equation ``a*x + b = right_hand_side`` whose solution encodes a letter."""
    coefficient: int
    constant: int
    right_hand_side: int
    solution: int
    target_letter: str

    @property
    def left(self) -> str:
        """Left-hand side as shown to the player, e.g. ``3x + 7``."""
        return f"{self.coefficient}x + {self.constant}"

    @property
    def text(self) -> str:
        return f"{self.left} = {self.right_hand_side}"

    def is_solved_by(self, value: Optional[int]) -> bool:
        return value is not None and value == self.solution


def letter_position(letter: str) -> int:
    """
    1-based position of a letter in the alphabet (A=1 ... Z=26).

    Raises:
        ValueError: If ``letter`` is not a single A-Z letter
    """
    upper = letter.upper()
    if len(upper) != 1 or upper not in ALPHABET:
        raise ValueError(f"Not an alphabet letter: {letter!r}")
    return ALPHABET.index(upper) + 1


def word_letters(word: str) -> List[str]:
    """Distinct uppercase letters of ``word`` in sorted order, ignoring non-letters."""
    return sorted({char for char in word.upper() if char in ALPHABET})


def needed_letters(secret_word: str, revealed_letters: Iterable[str]) -> List[str]:
    """Letters of ``secret_word`` the player has not revealed yet."""
    revealed = {letter.upper() for letter in revealed_letters}
    return [letter for letter in word_letters(secret_word) if letter not in revealed]


def generate_equation(
    secret_word: str,
    revealed_letters: Iterable[str],
    rng: random.Random = None
) -> Optional[Equation]:
    """
    Generate the next equation for a secret word.

    Strategy:
    1. Collect distinct letters of the word that are not yet revealed
    2. Pick one uniformly at random as the target; x is its alphabet position
    3. Draw a in [1, 5] and b in [0, 9]; the right side is a*x + b

    Args:
        secret_word: Word being solved (case-insensitive, must be non-empty)
        revealed_letters: Letters already uncovered
        rng: Random source. Defaults to the module's shared generator

    Returns:
        Equation targeting an unrevealed letter, or None when every letter is
        revealed (the caller must advance to the next word)

    Raises:
        ValueError: If ``secret_word`` is empty
    """
    if not secret_word:
        raise ValueError("secret_word must be non-empty")

    rng = rng or _rng
    candidates = needed_letters(secret_word, revealed_letters)

    if not candidates:
        return None

    target_letter = rng.choice(candidates)
    x = letter_position(target_letter)
    a = rng.randint(COEFFICIENT_MIN, COEFFICIENT_MAX)
    b = rng.randint(CONSTANT_MIN, CONSTANT_MAX)

    return Equation(
        coefficient=a,
        constant=b,
        right_hand_side=a * x + b,
        solution=x,
        target_letter=target_letter
    )
