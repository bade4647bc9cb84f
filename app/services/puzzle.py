"""Puzzle state machine: secret words, revealed letters and tier progression."""
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence
from pydantic import BaseModel, Field
from app.constants import (
    ALPHABET,
    EASY_WORDS,
    MEDIUM_WORDS,
    CORRECT_ANSWER_REWARD,
    WRONG_ANSWER_PENALTY,
    MAX_PLAYER_NAME_LENGTH
)
from app.services.equation_generator import Equation, generate_equation, word_letters
from app.services.score_ledger import ScoreLedger


class Difficulty(str, Enum):
    """Word list tiers."""
    EASY = "Easy"
    MEDIUM = "Medium"


class PuzzlePhase(str, Enum):
    """Where the session is in its word progression."""
    AWAITING_NAME = "awaiting_name"
    PLAYING = "playing"
    WORD_COMPLETE = "word_complete"  # solved word on display until the hold expires
    ALL_WORDS_COMPLETE = "all_words_complete"


DEFAULT_WORD_LISTS = {
    Difficulty.EASY: EASY_WORDS,
    Difficulty.MEDIUM: MEDIUM_WORDS,
}


class InvalidNameError(ValueError):
    """Player name is empty after trimming or too long."""


class PuzzleStateError(Exception):
    """Command is not valid in the session's current phase."""


class SavedGameState(BaseModel):
    """Record persisted to the snapshot store after every state change."""
    solved_words: List[str] = Field(default_factory=list)
    current_word_index: int = Field(0, ge=0)
    difficulty: Difficulty = Difficulty.EASY
    medium_unlocked: bool = False
    player_name: str = ""
    score: int = Field(0, ge=0)


@dataclass
class AnswerOutcome:
    """Result of a single answer submission."""
    correct: bool
    score: int
    delta: int
    revealed_letter: Optional[str]
    word_completed: bool
    feedback: str


def clean_player_name(name: Optional[str]) -> str:
    """
    Trim a display name and validate it.

    Raises:
        InvalidNameError: If the trimmed name is empty or too long
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise InvalidNameError("Player name cannot be empty")
    if len(cleaned) > MAX_PLAYER_NAME_LENGTH:
        raise InvalidNameError(f"Player name cannot exceed {MAX_PLAYER_NAME_LENGTH} characters")
    return cleaned


def parse_answer(value) -> Optional[int]:
    """Parse a submitted answer. Anything that is not an integer yields None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class PuzzleSession:
    """
    One player's puzzle: the aggregate behind the command interface.

    All mutation goes through set_name, start_word, submit_answer,
    change_difficulty and advance_after_hold/tick. The UI reads view().

    The word-complete pause is an explicit state: submit_answer records
    ``hold_until`` and the surrounding runtime calls advance_after_hold (or
    tick) once the delay is over.
    """

    def __init__(
        self,
        word_lists: Dict[Difficulty, Sequence[str]] = None,
        ledger: ScoreLedger = None,
        rng: random.Random = None,
        clock: Callable[[], float] = time.monotonic,
        word_complete_delay: float = 3.0
    ):
        self.word_lists = {
            difficulty: [word.upper() for word in words]
            for difficulty, words in (word_lists or DEFAULT_WORD_LISTS).items()
        }
        self.ledger = ledger or ScoreLedger()
        self._rng = rng
        self._clock = clock
        self.word_complete_delay = word_complete_delay

        self.phase = PuzzlePhase.AWAITING_NAME
        self.player_name = ""
        self.difficulty = Difficulty.EASY
        self.current_word_index = 0
        self.solved_words: List[str] = []
        self.revealed_letters = set()
        self.secret_word: Optional[str] = None
        self.current_equation: Optional[Equation] = None
        self.medium_unlocked = False
        self.feedback = ""
        self.hold_until: Optional[float] = None
        self.hold_id = 0

    @property
    def score(self) -> int:
        return self.ledger.score

    @property
    def words(self) -> List[str]:
        return self.word_lists[self.difficulty]

    def _observe_unlock(self) -> None:
        if (self.difficulty == Difficulty.EASY
                and len(self.solved_words) == len(self.word_lists[Difficulty.EASY])):
            self.medium_unlocked = True

    def _is_word_revealed(self) -> bool:
        return all(letter in self.revealed_letters for letter in word_letters(self.secret_word))

    # Commands

    def set_name(self, name: str) -> str:
        """
        Set the player's display name and start playing if waiting for it.

        Returns:
            The trimmed name

        Raises:
            InvalidNameError: If the name is empty after trimming
        """
        self.player_name = clean_player_name(name)
        if self.phase == PuzzlePhase.AWAITING_NAME:
            self.start_word(self.current_word_index)
        return self.player_name

    def start_word(self, index: int) -> None:
        """
        Start the word at ``index`` of the active tier.

        Past the end of the list the session enters ALL_WORDS_COMPLETE. A word
        that yields no equation is skipped within this call.
        """
        self.hold_until = None
        words = self.words

        while index < len(words):
            word = words[index]
            equation = generate_equation(word, set(), self._rng) if word else None
            if equation is not None:
                self.current_word_index = index
                self.secret_word = word
                self.revealed_letters = set()
                self.current_equation = equation
                self.feedback = ""
                self.phase = PuzzlePhase.PLAYING
                self._observe_unlock()
                return
            index += 1

        self.current_word_index = index
        self.secret_word = None
        self.revealed_letters = set()
        self.current_equation = None
        self.feedback = f"Congratulations! You've solved all the {self.difficulty.value} words!"
        self.phase = PuzzlePhase.ALL_WORDS_COMPLETE
        self._observe_unlock()

    def submit_answer(self, value) -> AnswerOutcome:
        """
        Check an answer against the current equation.

        A correct answer reveals the target letter and earns the reward; a
        wrong or non-numeric one costs the penalty and keeps the equation.

        Raises:
            PuzzleStateError: If no equation is being played
        """
        if self.phase != PuzzlePhase.PLAYING or self.current_equation is None:
            raise PuzzleStateError(f"Cannot submit an answer while {self.phase.value}")

        equation = self.current_equation
        answer = parse_answer(value)

        if not equation.is_solved_by(answer):
            before = self.ledger.score
            score = self.ledger.apply(-WRONG_ANSWER_PENALTY)
            self.feedback = "Try again!"
            return AnswerOutcome(
                correct=False,
                score=score,
                delta=score - before,
                revealed_letter=None,
                word_completed=False,
                feedback=self.feedback
            )

        self.revealed_letters.add(equation.target_letter)
        score = self.ledger.apply(CORRECT_ANSWER_REWARD)
        word_completed = self._is_word_revealed()

        if word_completed:
            self.solved_words.append(self.secret_word)
            self.current_equation = None
            self.phase = PuzzlePhase.WORD_COMPLETE
            self.hold_id += 1
            self.hold_until = self._clock() + self.word_complete_delay
            self.feedback = "Great job! You solved one of the words."
            self._observe_unlock()
        else:
            self.current_equation = generate_equation(self.secret_word, self.revealed_letters, self._rng)
            self.feedback = f"Correct! You revealed the letter {equation.target_letter}"

        return AnswerOutcome(
            correct=True,
            score=score,
            delta=CORRECT_ANSWER_REWARD,
            revealed_letter=equation.target_letter,
            word_completed=word_completed,
            feedback=self.feedback
        )

    def advance_after_hold(self, hold_id: int = None) -> bool:
        """
        End the word-complete pause and start the next word.

        Args:
            hold_id: Hold this wake-up was scheduled for. A stale id (the
                session moved on since) makes the call a no-op.

        Returns:
            True if the session advanced
        """
        if self.phase != PuzzlePhase.WORD_COMPLETE:
            return False
        if hold_id is not None and hold_id != self.hold_id:
            return False
        self.start_word(self.current_word_index + 1)
        return True

    def tick(self, now: float = None) -> bool:
        """Advance past an expired word-complete pause. Returns True if it did."""
        if self.phase != PuzzlePhase.WORD_COMPLETE or self.hold_until is None:
            return False
        now = self._clock() if now is None else now
        if now < self.hold_until:
            return False
        return self.advance_after_hold()

    def change_difficulty(self, target: Difficulty) -> bool:
        """
        Switch word tiers.

        Medium stays locked until every Easy word is solved. Switching clears
        the solved-word list and restarts at the first word of the new tier;
        the unlock is kept.

        Returns:
            True if the difficulty changed
        """
        target = Difficulty(target)
        if target == self.difficulty:
            return False
        if target == Difficulty.MEDIUM and not self.medium_unlocked:
            return False

        self.difficulty = target
        self.solved_words = []
        self.current_word_index = 0
        self.revealed_letters = set()
        self.current_equation = None
        self.secret_word = None
        self.hold_until = None

        if self.phase != PuzzlePhase.AWAITING_NAME:
            self.start_word(0)
        return True

    # Persistence

    def to_saved_state(self) -> SavedGameState:
        """
        Record for the snapshot store. During the word-complete pause the
        solved word is already in ``solved_words``, so the record points at
        the next word.
        """
        index = self.current_word_index
        if self.phase == PuzzlePhase.WORD_COMPLETE:
            index += 1
        return SavedGameState(
            solved_words=list(self.solved_words),
            current_word_index=index,
            difficulty=self.difficulty,
            medium_unlocked=self.medium_unlocked,
            player_name=self.player_name,
            score=self.ledger.score
        )

    def restore(self, saved: SavedGameState, resume: bool = True) -> None:
        """
        Load a saved game.

        Revealed letters are not part of the record, so the saved word
        restarts from scratch. With ``resume`` and a saved name the session
        goes straight to PLAYING; otherwise it waits for a name.
        """
        self.difficulty = saved.difficulty
        self.medium_unlocked = saved.medium_unlocked
        if self.difficulty == Difficulty.MEDIUM and not self.medium_unlocked:
            self.difficulty = Difficulty.EASY
            self.solved_words = []
            self.current_word_index = 0
        else:
            self.solved_words = [word.upper() for word in saved.solved_words]
            self.current_word_index = saved.current_word_index
        self.ledger.reset(saved.score)
        self._observe_unlock()

        if resume and saved.player_name.strip():
            self.player_name = saved.player_name.strip()
            self.start_word(self.current_word_index)
        else:
            self.phase = PuzzlePhase.AWAITING_NAME

    # Read-only view

    def masked_word(self) -> Optional[List[str]]:
        """Secret word with unrevealed letters as ``_``; fully shown during the pause."""
        if self.secret_word is None:
            return None
        if self.phase == PuzzlePhase.WORD_COMPLETE:
            return list(self.secret_word)
        return [
            char if char in self.revealed_letters or char not in ALPHABET else "_"
            for char in self.secret_word
        ]

    def view(self) -> Dict:
        """Snapshot of the session for display. Never exposes the solution."""
        equation = None
        if self.current_equation is not None:
            equation = {
                "coefficient": self.current_equation.coefficient,
                "constant": self.current_equation.constant,
                "left": self.current_equation.left,
                "right": self.current_equation.right_hand_side,
                "text": self.current_equation.text
            }

        return {
            "phase": self.phase.value,
            "player_name": self.player_name,
            "difficulty": self.difficulty.value,
            "score": self.ledger.score,
            "current_word_index": self.current_word_index,
            "word_count": len(self.words),
            "masked_word": self.masked_word(),
            "revealed_letters": sorted(self.revealed_letters),
            "equation": equation,
            "solved_words": list(self.solved_words),
            "medium_unlocked": self.medium_unlocked,
            "feedback": self.feedback
        }
