# galibot_engine/topics/diagnosis.py
"""
Output contract for diagnosis-only turns.

A diagnosis-only answer may contain only a short assessment question. The
completion service is not trusted to comply, so the rendered answer is
checked here and, on any violation, replaced by a deterministic template.
"""

from __future__ import annotations

import re

from galibot_engine.exceptions import DiagnosisValidationFailure
from galibot_engine.models import TopicId

from .rules import topic_display_name

MAX_DIAGNOSIS_CHARS = 320
MAX_SENTENCE_TERMINATORS = 2
MIN_QUESTION_MARKS = 1
MAX_QUESTION_MARKS = 2

# Runs of . ! ? … and the Hebrew sof pasuq each count once
SENTENCE_TERMINATOR_PATTERN = re.compile(r"[.!?…׃]+")

FORBIDDEN_DIAGNOSIS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\$\$"),
    re.compile(r"\$(?!\s)"),  # inline math
    re.compile(r"\\frac|\\mu|\\sigma|\\sum|\\sqrt|\\int"),
    re.compile(r"="),
    re.compile(r"1️⃣|2️⃣|3️⃣|\b1\.|\b2\.|\b3\.|-\s"),  # enumerations and list dashes
    re.compile(r"הגדרה|דוגמה|נוסחה|נוסחאות|משוואה|מאפיינים"),  # definitional keywords
    re.compile(r"חומרים|קורפוס|RAG|Dr\.?\s*Galit|גלית\s*מדר|מדר"),  # corpus / backend mentions
)

DIAGNOSIS_ENFORCEMENT = (
    "\n\n"
    "🚨 BACKEND ENFORCEMENT (HARD) 🚨\n"
    "This turn is DIAGNOSIS-ONLY.\n"
    "You MUST output ONLY 1–2 diagnostic questions in Hebrew.\n"
    "NO explanations, NO definitions, NO examples, NO formulas, NO lists.\n"
    "Max 2 sentences, max 2 question marks.\n"
    "Do NOT mention corpus/materials/RAG/server.\n"
)

UNKNOWN_TOPIC_TEMPLATE = "שאלה מצוינת 🙂 על איזה נושא בסטטיסטיקה אתה רוצה ללמוד? ומה אתה כבר יודע עליו?"
KNOWN_TOPIC_TEMPLATE = "שאלה מצוינת 🙂 לפני שנתחיל—מה אתה כבר יודע על {topic_name}? יצא לך להשתמש בזה בעבר?"


def count_sentence_terminators(text: str) -> int:
    return len(SENTENCE_TERMINATOR_PATTERN.findall(text or ""))


def validate_diagnosis_only_output(output: str | None) -> None:
    """Raise DiagnosisValidationFailure if *output* breaks the contract."""
    text = (output or "").strip()
    if not text:
        raise DiagnosisValidationFailure("empty")
    if len(text) > MAX_DIAGNOSIS_CHARS:
        raise DiagnosisValidationFailure(f"too long ({len(text)} chars)")
    if count_sentence_terminators(text) > MAX_SENTENCE_TERMINATORS:
        raise DiagnosisValidationFailure("too many sentences")

    question_marks = text.count("?")
    if question_marks < MIN_QUESTION_MARKS:
        raise DiagnosisValidationFailure("no question")
    if question_marks > MAX_QUESTION_MARKS:
        raise DiagnosisValidationFailure(f"{question_marks} questions")

    for pattern in FORBIDDEN_DIAGNOSIS_PATTERNS:
        if pattern.search(text):
            raise DiagnosisValidationFailure(f"forbidden content /{pattern.pattern}/")


def is_valid_diagnosis_only_output(output: str | None) -> bool:
    try:
        validate_diagnosis_only_output(output)
    except DiagnosisValidationFailure:
        return False
    return True


def forced_diagnostic_template(topic: TopicId | None) -> str:
    """Deterministic diagnostic question, parameterized only by topic name."""
    if topic is None or topic == TopicId.UNKNOWN:
        return UNKNOWN_TOPIC_TEMPLATE
    return KNOWN_TOPIC_TEMPLATE.format(topic_name=topic_display_name(topic))


def apply_diagnosis_enforcement(system_prompt: str | None) -> str:
    """Append the hard diagnosis-only rules to a system prompt."""
    return (system_prompt or "") + DIAGNOSIS_ENFORCEMENT
