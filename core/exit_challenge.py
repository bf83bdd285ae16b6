"""
Exit challenge: a small hurdle between the user and stopping a session.

A challenge is configured once (from settings) and then initiated each time
the user asks to stop. The session only ends when validate_answer() passes.
"""

import logging
import random
import threading
from enum import IntEnum
from typing import Optional

import config

logger = logging.getLogger(__name__)

COUNTDOWN_CONFIRMATIONS = 3
MATH_OPERAND_RANGE = (10, 50)

_HINTS = {
    "TYPE_PHRASE": "Hint: Type the exact phrase shown (case-insensitive)",
    "MATH_PROBLEM": "Hint: Calculate the answer and submit just the number",
    "COUNTDOWN": "Hint: Keep typing 'yes' to confirm",
}


class ChallengeType(IntEnum):
    """Challenge kinds, matching the integers used in configuration."""
    NONE = config.CHALLENGE_NONE
    TYPE_PHRASE = config.CHALLENGE_TYPE_PHRASE
    MATH_PROBLEM = config.CHALLENGE_MATH
    COUNTDOWN = config.CHALLENGE_COUNTDOWN


def normalize_answer(text: str) -> str:
    """Strip every whitespace character and lowercase."""
    return "".join((text or "").split()).lower()


class ExitChallenge:
    """
    Challenge state machine.

    Inactive until initiate_challenge(); a correct answer (or cancel)
    makes it inactive again.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Args:
            rng: Random source for math problems (seed it in tests).
        """
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._type = ChallengeType.NONE
        self._phrase = config.DEFAULT_CHALLENGE_PHRASE
        self._active = False
        self._expected_answer = ""
        self._remaining_confirmations = COUNTDOWN_CONFIRMATIONS
        self._prompt = ""

    def configure(self, challenge_type: int, custom_phrase: str = "") -> None:
        """
        Set the challenge type and, optionally, the phrase to type.

        Args:
            challenge_type: Config integer 0-3. Unknown values disable the challenge.
            custom_phrase: Replaces the default phrase when non-empty.
        """
        try:
            resolved = ChallengeType(int(challenge_type))
        except (TypeError, ValueError):
            logger.warning(f"Unknown exit challenge type {challenge_type!r}, disabling challenge")
            resolved = ChallengeType.NONE

        with self._lock:
            self._type = resolved
            if custom_phrase and custom_phrase.strip():
                self._phrase = custom_phrase
            phrase = self._phrase

        logger.debug(f"Exit challenge configured: type={resolved.name}, phrase='{phrase}'")

    def initiate_challenge(self) -> str:
        """
        Begin a new challenge.

        Returns:
            The prompt to show the user, or "" if challenges are disabled.
        """
        with self._lock:
            self._remaining_confirmations = COUNTDOWN_CONFIRMATIONS

            if self._type == ChallengeType.NONE:
                self._active = False
                self._prompt = ""
                return ""

            if self._type == ChallengeType.TYPE_PHRASE:
                self._expected_answer = normalize_answer(self._phrase)
                self._prompt = (
                    f"To stop the session, type: \"{self._phrase}\"\n"
                    "Use: focusgate send confirm <your answer>"
                )
            elif self._type == ChallengeType.MATH_PROBLEM:
                self._prompt = self._generate_math_problem()
            else:
                self._prompt = (
                    f"Are you SURE you want to stop? ({self._remaining_confirmations} "
                    "confirmations needed)\nType: focusgate send confirm yes"
                )

            self._active = True
            logger.info(f"{self._type.name} challenge initiated")
            return self._prompt

    def validate_answer(self, answer: str) -> bool:
        """
        Check an answer against the active challenge.

        Returns:
            True if the challenge is passed (or none is active).
        """
        normalized = normalize_answer(answer)

        with self._lock:
            if not self._active:
                return True

            if self._type == ChallengeType.NONE:
                self._active = False
                return True

            if self._type == ChallengeType.COUNTDOWN:
                if normalized not in ("yes", "y"):
                    return False
                self._remaining_confirmations -= 1
                if self._remaining_confirmations <= 0:
                    self._active = False
                    logger.info("Countdown challenge passed")
                    return True
                self._prompt = (
                    f"Still sure? ({self._remaining_confirmations} more confirmations needed)\n"
                    "Type: focusgate send confirm yes"
                )
                logger.debug(f"Countdown: {self._remaining_confirmations} remaining")
                return False

            if normalized == self._expected_answer:
                self._active = False
                logger.info(f"{self._type.name} challenge passed")
                return True

            logger.debug(f"{self._type.name} wrong answer: got '{normalized}'")
            return False

    def cancel_challenge(self) -> None:
        with self._lock:
            self._active = False
            self._remaining_confirmations = COUNTDOWN_CONFIRMATIONS
        logger.debug("Challenge cancelled")

    def get_hint(self) -> str:
        with self._lock:
            return _HINTS.get(self._type.name, "")

    def is_enabled(self) -> bool:
        with self._lock:
            return self._type != ChallengeType.NONE

    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def get_remaining_confirmations(self) -> int:
        with self._lock:
            return self._remaining_confirmations

    def get_prompt(self) -> str:
        with self._lock:
            return self._prompt

    def get_type(self) -> ChallengeType:
        with self._lock:
            return self._type

    def _generate_math_problem(self) -> str:
        """Pick a problem and store its answer. Caller holds _lock."""
        low, high = MATH_OPERAND_RANGE
        a = self._rng.randint(low, high)
        b = self._rng.randint(low, high)
        op = self._rng.randint(0, 2)

        if op == 0:
            result, symbol = a + b, "+"
        elif op == 1:
            if a < b:
                a, b = b, a  # keep the result non-negative
            result, symbol = a - b, "-"
        else:
            a, b = a % 13 + 2, b % 13 + 2
            result, symbol = a * b, "x"

        self._expected_answer = str(result)
        return f"Solve to stop: {a} {symbol} {b} = ?\nUse: focusgate send confirm <answer>"
