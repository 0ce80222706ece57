# tests/test_diagnosis.py
"""Tests for the diagnosis-only output contract and its fallback template."""

import pytest

from galibot_engine.exceptions import DiagnosisValidationFailure
from galibot_engine.models import TopicId
from galibot_engine.topics import (
    apply_diagnosis_enforcement,
    forced_diagnostic_template,
    is_valid_diagnosis_only_output,
    validate_diagnosis_only_output,
)
from galibot_engine.topics.diagnosis import count_sentence_terminators


class TestValidation:
    @pytest.mark.parametrize(
        "text",
        [
            "מה אתה כבר יודע על חציון?",
            "שמעת פעם על חציון? איפה נתקלת בו?",
        ],
    )
    def test_valid_outputs(self, text):
        assert is_valid_diagnosis_only_output(text) is True

    @pytest.mark.parametrize(
        "text, reason",
        [
            ("", "empty"),
            ("מה אתה יודע על חציון?" * 30, "too long"),
            ("החציון הוא הערך האמצעי. נסתכל על דוגמה. מה דעתך?", "too many sentences"),
            ("ספר לי מה אתה יודע על חציון", "no question"),
            ("מה??? באמת?", "questions"),
            ("מה זה $x$?", "forbidden"),
            ("האם ממוצע = סכום חלקי מספר?", "forbidden"),
            ("מה ההגדרה? רוצה הגדרה?", "forbidden"),
            ("בחומרים של הקורס יש על זה משהו?", "forbidden"),
        ],
    )
    def test_invalid_outputs(self, text, reason):
        with pytest.raises(DiagnosisValidationFailure) as exc_info:
            validate_diagnosis_only_output(text)
        assert reason in exc_info.value.reason
        assert is_valid_diagnosis_only_output(text) is False

    def test_terminator_runs_count_once(self):
        assert count_sentence_terminators("באמת?! כן...") == 2
        assert count_sentence_terminators("בלי סימנים") == 0


class TestTemplate:
    @pytest.mark.parametrize("topic", list(TopicId) + [None])
    def test_template_always_passes_validation(self, topic):
        assert is_valid_diagnosis_only_output(forced_diagnostic_template(topic))

    def test_template_depends_only_on_topic(self):
        assert forced_diagnostic_template(TopicId.MEAN) == forced_diagnostic_template(TopicId.MEAN)
        assert forced_diagnostic_template(TopicId.MEAN) != forced_diagnostic_template(TopicId.MEDIAN)
        assert "ממוצע" in forced_diagnostic_template(TopicId.MEAN)


class TestEnforcement:
    def test_appends_hard_rules(self):
        prompt = apply_diagnosis_enforcement("BASE")
        assert prompt.startswith("BASE")
        assert "DIAGNOSIS-ONLY" in prompt

    def test_handles_missing_prompt(self):
        assert "DIAGNOSIS-ONLY" in apply_diagnosis_enforcement(None)
