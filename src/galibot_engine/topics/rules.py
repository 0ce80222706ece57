# galibot_engine/topics/rules.py
"""
Topic detection table and the small text classifiers the state machine uses.

Adding a topic means adding a TopicId member, a display name and a row in
TOPIC_RULES; no control flow changes.
"""

from __future__ import annotations

import re

from galibot_engine.models import TopicId

# Display names used in rewritten retrieval queries and fallback templates
TOPIC_DISPLAY_NAMES: dict[TopicId, str] = {
    TopicId.MEAN: "ממוצע",
    TopicId.MEDIAN: "חציון",
    TopicId.MODE: "שכיח",
    TopicId.STD: "סטיית תקן",
    TopicId.VARIANCE: "שונות",
    TopicId.Z: "ציון תקן (Z)",
    TopicId.T: "מבחן t",
    TopicId.CORRELATION: "מתאם",
    TopicId.REGRESSION: "רגרסיה",
    TopicId.SAMPLING_DISTRIBUTION: "התפלגות דגימה",
    TopicId.CONFIDENCE_INTERVAL: "רווח סמך",
    TopicId.HYPOTHESIS_TESTING: "בדיקת השערות",
    TopicId.ANOVA: "ANOVA (אנובה)",
    TopicId.CHI_SQUARE: "חי-בריבוע",
    TopicId.CRONBACH_ALPHA: "אלפא של קרונבאך",
    TopicId.UNKNOWN: "הנושא",
}


def _rx(*patterns: str, flags: int = 0) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


# Evaluated in order; first match wins
TOPIC_RULES: tuple[tuple[TopicId, tuple[re.Pattern[str], ...]], ...] = (
    (TopicId.MEAN, _rx(r"\bmean\b", flags=re.I) + _rx(r"ממוצע")),
    (TopicId.MEDIAN, _rx(r"\bmedian\b", flags=re.I) + _rx(r"חציון")),
    (TopicId.MODE, _rx(r"\bmode\b", flags=re.I) + _rx(r"שכיח")),
    (TopicId.STD, _rx(r"standard\s*deviation", flags=re.I) + _rx(r"סטיית\s*תקן")),
    (TopicId.VARIANCE, _rx(r"\bvariance\b", flags=re.I) + _rx(r"שונות")),
    (TopicId.Z, _rx(r"z[-\s]?score", flags=re.I) + _rx(r"\bZ\b", r"ציון\s*תקן")),
    (TopicId.T, _rx(r"t[-\s]?test", r"\bt\b", flags=re.I) + _rx(r"מבחן\s*t")),
    (TopicId.CORRELATION, _rx(r"correlation", flags=re.I) + _rx(r"קורלציה", r"מתאם")),
    (TopicId.REGRESSION, _rx(r"regression", flags=re.I) + _rx(r"רגרס(?:יה|ייה)")),
    (TopicId.SAMPLING_DISTRIBUTION, _rx(r"sampling\s*distribution", flags=re.I) + _rx(r"התפלגות\s*דגימה")),
    (TopicId.CONFIDENCE_INTERVAL, _rx(r"confidence\s*interval", flags=re.I) + _rx(r"רווח\s*סמך")),
    (
        TopicId.HYPOTHESIS_TESTING,
        _rx(r"hypothesis\s*test", flags=re.I) + _rx(r"בדיקת\s*השערות", r"מבחן\s*השערות"),
    ),
    (TopicId.ANOVA, _rx(r"\banova\b", flags=re.I) + _rx(r"אנובה")),
    (TopicId.CHI_SQUARE, _rx(r"chi[-\s]?square", flags=re.I) + _rx(r"חי[-\s]?בריבוע", r"כי[-\s]?בריבוע")),
    (TopicId.CRONBACH_ALPHA, _rx(r"cronbach", flags=re.I) + _rx(r"אלפא", r"קרונבאך", r"מהימנות")),
)

FAST_PASS_TRIGGERS: tuple[str, ...] = (
    "final:",
    "answer:",
    "full:",
    "פתור:",
    "תן לי פתרון מלא",
)

# "A", "b", "C)", "d. the median" - a selector from a small multiple-choice set
ANSWER_SELECTOR_PATTERN = re.compile(r"^[A-D](?:[).]|$)", re.I)


def topic_display_name(topic: TopicId | None) -> str:
    return TOPIC_DISPLAY_NAMES.get(topic or TopicId.UNKNOWN, TOPIC_DISPLAY_NAMES[TopicId.UNKNOWN])


def detect_topic(text: str | None) -> TopicId:
    """Topic mentioned in *text*, or TopicId.UNKNOWN."""
    stripped = (text or "").strip()
    for topic, patterns in TOPIC_RULES:
        if any(p.search(stripped) for p in patterns):
            return topic
    return TopicId.UNKNOWN


def is_fast_pass_request(text: str | None) -> bool:
    """True if the student explicitly asked to skip straight to a full answer."""
    lowered = (text or "").lower()
    return any(trigger in lowered for trigger in FAST_PASS_TRIGGERS)


def is_answer_to_prior_question(text: str | None) -> bool:
    """True if *text* is a short multiple-choice selector."""
    return bool(ANSWER_SELECTOR_PATTERN.match((text or "").strip()))
