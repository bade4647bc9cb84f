"""Unit tests for equation generation."""
import random
import pytest
from app.constants import ALPHABET, EASY_WORDS, MEDIUM_WORDS
from app.services.equation_generator import (
    Equation,
    generate_equation,
    letter_position,
    needed_letters,
    word_letters
)


class TestLetterHelpers:
    """Tests for alphabet position and letter set helpers."""

    def test_letter_positions_are_one_based(self):
        """A maps to 1 and Z to 26."""
        assert letter_position("A") == 1
        assert letter_position("z") == 26
        assert [letter_position(c) for c in ALPHABET] == list(range(1, 27))

    def test_rejects_non_letters(self):
        """Digits, punctuation and multi-character strings are not letters."""
        for bad in ["1", "-", "AB", ""]:
            with pytest.raises(ValueError):
                letter_position(bad)

    def test_word_letters_are_distinct_and_uppercase(self):
        """Repeated letters count once; case is folded."""
        assert word_letters("Games") == ["A", "E", "G", "M", "S"]
        assert word_letters("FUNNIEST") == ["E", "F", "I", "N", "S", "T", "U"]

    def test_needed_letters_exclude_revealed(self):
        """Revealed letters are removed case-insensitively."""
        assert needed_letters("MATH", {"m", "T"}) == ["A", "H"]


class TestGenerateEquation:
    """Tests for generate_equation."""

    def test_solution_is_position_of_an_unrevealed_letter(self):
        """Across many draws, every equation targets a needed letter."""
        rng = random.Random(1)
        for word in EASY_WORDS + MEDIUM_WORDS:
            letters = word_letters(word)
            for size in range(len(letters)):
                revealed = set(rng.sample(letters, size))
                equation = generate_equation(word, revealed, rng)

                assert equation.target_letter in set(letters) - revealed
                assert equation.solution == letter_position(equation.target_letter)
                assert 1 <= equation.solution <= 26

    def test_coefficient_and_constant_ranges(self):
        """a is drawn from [1, 5] and b from [0, 9]; both ends are reachable."""
        rng = random.Random(3)
        coefficients, constants = set(), set()
        for _ in range(500):
            equation = generate_equation("POLYNOMIAL", set(), rng)
            coefficients.add(equation.coefficient)
            constants.add(equation.constant)

        assert coefficients == {1, 2, 3, 4, 5}
        assert constants == set(range(10))

    def test_equation_is_consistent(self):
        """right_hand_side equals a*x + b, so x solves the equation."""
        rng = random.Random(5)
        for _ in range(100):
            eq = generate_equation("EXPONENT", set(), rng)
            assert eq.right_hand_side == eq.coefficient * eq.solution + eq.constant
            assert (eq.right_hand_side - eq.constant) / eq.coefficient == eq.solution

    def test_returns_none_when_all_letters_revealed(self):
        """A fully revealed word has nothing left to ask."""
        assert generate_equation("OF", {"O", "F"}) is None
        assert generate_equation("GAMES", set("games")) is None

    def test_single_needed_letter_is_always_chosen(self):
        """With one letter left the target is fixed."""
        for seed in range(20):
            equation = generate_equation("ARE", {"A", "R"}, random.Random(seed))
            assert equation.target_letter == "E"
            assert equation.solution == 5

    def test_empty_word_is_rejected(self):
        """An empty secret word is a caller error."""
        with pytest.raises(ValueError):
            generate_equation("", set())

    def test_injected_rng_is_reproducible(self):
        """The same seed yields the same equation."""
        first = generate_equation("ALGEBRA", {"A"}, random.Random(99))
        second = generate_equation("ALGEBRA", {"A"}, random.Random(99))
        assert first == second

    def test_lowercase_word_targets_uppercase_letter(self):
        """Letters are stored uppercase whatever the input case."""
        equation = generate_equation("of", {"o"}, random.Random(0))
        assert equation.target_letter == "F"


class TestEquationFormatting:
    """Tests for equation display helpers."""

    def test_left_and_text(self):
        """Rendered as 'ax + b = c'."""
        equation = Equation(coefficient=3, constant=7, right_hand_side=25, solution=6, target_letter="F")
        assert equation.left == "3x + 7"
        assert equation.text == "3x + 7 = 25"

    def test_is_solved_by(self):
        """Only the exact integer solution is accepted."""
        equation = Equation(coefficient=2, constant=0, right_hand_side=30, solution=15, target_letter="O")
        assert equation.is_solved_by(15)
        assert not equation.is_solved_by(14)
        assert not equation.is_solved_by(None)
