"""Keyword-based emotion bucket for chat messages."""
import re

from emotrack.utils.schemas import Emotion

# Checked in order; first match wins.
EMOTION_PATTERNS: list[tuple[Emotion, re.Pattern]] = [
    (Emotion.ACCUEIL, re.compile(r"\b(bonjour|salut|coucou|hello|hi|hey)\b")),
    (Emotion.JOIE, re.compile(r"\b(content|heureu|joie|génial|super)")),
    (Emotion.TRISTESSE, re.compile(r"triste|pleur|\bmal\b|désolé")),
]


def classify_emotion(message: str) -> Emotion:
    lower = message.lower()
    for emotion, pattern in EMOTION_PATTERNS:
        if pattern.search(lower):
            return emotion
    return Emotion.NEUTRE
