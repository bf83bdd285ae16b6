"""
Tests for core/exit_challenge.py - the stop confirmation challenges.
"""

import re
import sys
import random
import unittest
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from core.exit_challenge import ChallengeType, ExitChallenge, normalize_answer

_PROBLEM = re.compile(r"Solve to stop: (\d+) ([+\-x]) (\d+) = \?")


def solve(prompt: str) -> int:
    """Work out the answer to a math prompt."""
    match = _PROBLEM.search(prompt)
    a, op, b = int(match.group(1)), match.group(2), int(match.group(3))
    if op == "+":
        return a + b
    if op == "-":
        return a - b
    return a * b


class TestNormalizeAnswer(unittest.TestCase):

    def test_strips_all_whitespace_and_lowercases(self):
        self.assertEqual(normalize_answer("  I Want\tto STOP\n"), "iwanttostop")

    def test_empty(self):
        self.assertEqual(normalize_answer(""), "")
        self.assertEqual(normalize_answer(None), "")


class TestChallengeNone(unittest.TestCase):

    def test_disabled_by_default(self):
        challenge = ExitChallenge()
        self.assertFalse(challenge.is_enabled())
        self.assertEqual(challenge.initiate_challenge(), "")
        self.assertFalse(challenge.is_active())
        self.assertTrue(challenge.validate_answer("anything"))

    def test_unknown_type_falls_back_to_none(self):
        challenge = ExitChallenge()
        challenge.configure(7)
        self.assertEqual(challenge.get_type(), ChallengeType.NONE)
        self.assertFalse(challenge.is_enabled())


class TestTypePhrase(unittest.TestCase):

    def setUp(self):
        self.challenge = ExitChallenge()
        self.challenge.configure(config.CHALLENGE_TYPE_PHRASE)

    def test_default_phrase(self):
        prompt = self.challenge.initiate_challenge()
        self.assertIn(config.DEFAULT_CHALLENGE_PHRASE, prompt)
        self.assertTrue(self.challenge.is_active())

    def test_wrong_phrase_keeps_challenge_active(self):
        self.challenge.initiate_challenge()
        self.assertFalse(self.challenge.validate_answer("let me go"))
        self.assertTrue(self.challenge.is_active())

    def test_phrase_ignores_case_and_spacing(self):
        self.challenge.initiate_challenge()
        self.assertTrue(self.challenge.validate_answer("i want to STOP focusing "))
        self.assertFalse(self.challenge.is_active())

    def test_custom_phrase(self):
        self.challenge.configure(config.CHALLENGE_TYPE_PHRASE, "Deep work is over")
        self.assertIn("Deep work is over", self.challenge.initiate_challenge())
        self.assertTrue(self.challenge.validate_answer("deepworkisover"))

    def test_empty_custom_phrase_keeps_previous(self):
        self.challenge.configure(config.CHALLENGE_TYPE_PHRASE, "")
        self.assertIn(config.DEFAULT_CHALLENGE_PHRASE, self.challenge.initiate_challenge())

    def test_hint(self):
        self.assertIn("exact phrase", self.challenge.get_hint())


class TestMathProblem(unittest.TestCase):

    def setUp(self):
        self.challenge = ExitChallenge(rng=random.Random(42))
        self.challenge.configure(config.CHALLENGE_MATH)

    def test_correct_answer_passes_once(self):
        prompt = self.challenge.initiate_challenge()
        answer = solve(prompt)

        self.assertTrue(self.challenge.validate_answer(str(answer)))
        self.assertFalse(self.challenge.is_active())

    def test_wrong_answer_fails(self):
        answer = solve(self.challenge.initiate_challenge())
        self.assertFalse(self.challenge.validate_answer(str(answer + 1)))
        self.assertTrue(self.challenge.is_active())
        self.assertTrue(self.challenge.validate_answer(f" {answer} "))

    def test_problems_stay_in_range(self):
        """Results are never negative; products use small operands."""
        for _ in range(200):
            prompt = self.challenge.initiate_challenge()
            match = _PROBLEM.search(prompt)
            self.assertIsNotNone(match, prompt)
            a, op, b = int(match.group(1)), match.group(2), int(match.group(3))
            if op == "x":
                self.assertTrue(2 <= a <= 14 and 2 <= b <= 14)
            else:
                self.assertTrue(10 <= a <= 50 and 10 <= b <= 50)
            self.assertGreaterEqual(solve(prompt), 0)
            self.challenge.cancel_challenge()


class TestCountdown(unittest.TestCase):

    def setUp(self):
        self.challenge = ExitChallenge()
        self.challenge.configure(config.CHALLENGE_COUNTDOWN)

    def test_three_confirmations_required(self):
        self.challenge.initiate_challenge()
        self.assertEqual(self.challenge.get_remaining_confirmations(), 3)

        self.assertFalse(self.challenge.validate_answer("yes"))
        self.assertFalse(self.challenge.validate_answer("Y"))
        self.assertEqual(self.challenge.get_remaining_confirmations(), 1)
        self.assertIn("1 more", self.challenge.get_prompt())

        self.assertTrue(self.challenge.validate_answer("yes"))
        self.assertFalse(self.challenge.is_active())

    def test_other_input_does_not_count(self):
        self.challenge.initiate_challenge()
        self.assertFalse(self.challenge.validate_answer("no"))
        self.assertEqual(self.challenge.get_remaining_confirmations(), 3)

    def test_cancel_resets(self):
        self.challenge.initiate_challenge()
        self.challenge.validate_answer("yes")
        self.challenge.cancel_challenge()

        self.assertFalse(self.challenge.is_active())
        self.assertEqual(self.challenge.get_remaining_confirmations(), 3)

    def test_restart_resets_confirmations(self):
        self.challenge.initiate_challenge()
        self.challenge.validate_answer("yes")
        self.challenge.initiate_challenge()
        self.assertEqual(self.challenge.get_remaining_confirmations(), 3)


if __name__ == "__main__":
    unittest.main()
