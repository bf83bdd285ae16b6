"""
Tests for config.py - environment settings and validation.
"""

import os
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

import config
from config import Settings, load_settings, parse_comma_list, validate_settings


class TestParseCommaList(unittest.TestCase):

    def test_trims_and_drops_blanks(self):
        self.assertEqual(parse_comma_list(" eww, rofi,,wofi "), {"eww", "rofi", "wofi"})

    def test_none_placeholder(self):
        self.assertEqual(parse_comma_list("NONE"), set())
        self.assertEqual(parse_comma_list("none"), set())
        self.assertEqual(parse_comma_list(""), set())


class TestLoadSettings(unittest.TestCase):

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()
        self.assertEqual(settings.work_minutes, config.DEFAULT_WORK_MINUTES)
        self.assertEqual(settings.break_minutes, config.DEFAULT_BREAK_MINUTES)
        self.assertFalse(settings.enforce_during_break)
        self.assertTrue(settings.floating_exempt)
        self.assertTrue(settings.block_spawn)
        self.assertEqual(settings.spawn_whitelist, set())
        self.assertIn("rofi", settings.exception_classes)
        self.assertEqual(settings.exit_challenge_type, config.CHALLENGE_NONE)
        self.assertFalse(settings.auto_complete)

    def test_environment_overrides(self):
        env = {
            "FOCUSGATE_WORK_MINUTES": "50",
            "FOCUSGATE_ENFORCE_DURING_BREAK": "yes",
            "FOCUSGATE_SPAWN_WHITELIST": "kitty, firefox",
            "FOCUSGATE_EXIT_CHALLENGE_TYPE": "2",
            "FOCUSGATE_AUTO_COMPLETE": "1",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings()
        self.assertEqual(settings.work_minutes, 50)
        self.assertTrue(settings.enforce_during_break)
        self.assertEqual(settings.spawn_whitelist, {"kitty", "firefox"})
        self.assertEqual(settings.exit_challenge_type, config.CHALLENGE_MATH)
        self.assertTrue(settings.auto_complete)

    def test_garbage_integer_uses_default(self):
        with patch.dict(os.environ, {"FOCUSGATE_WORK_MINUTES": "lots"}, clear=True):
            settings = load_settings()
        self.assertEqual(settings.work_minutes, config.DEFAULT_WORK_MINUTES)


class TestValidateSettings(unittest.TestCase):

    def test_valid_settings_untouched(self):
        settings, warnings = validate_settings(Settings(work_minutes=40, break_minutes=0))
        self.assertEqual(warnings, [])
        self.assertEqual(settings.work_minutes, 40)
        self.assertEqual(settings.break_minutes, 0)

    def test_out_of_range_values_corrected(self):
        settings, warnings = validate_settings(
            Settings(total_minutes=0, work_minutes=-5, break_minutes=-1,
                     exit_challenge_type=4, exit_challenge_phrase="  ")
        )
        self.assertEqual(len(warnings), 5)
        self.assertEqual(settings.total_minutes, config.DEFAULT_TOTAL_MINUTES)
        self.assertEqual(settings.work_minutes, config.DEFAULT_WORK_MINUTES)
        self.assertEqual(settings.break_minutes, config.DEFAULT_BREAK_MINUTES)
        self.assertEqual(settings.exit_challenge_type, config.CHALLENGE_NONE)
        self.assertEqual(settings.exit_challenge_phrase, config.DEFAULT_CHALLENGE_PHRASE)


if __name__ == "__main__":
    unittest.main()
