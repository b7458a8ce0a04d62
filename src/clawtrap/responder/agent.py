"""The fake assistant that answers every message.

Replies are assembled from randomized phrase pools so that they look
organic, and are delivered with simulated latency so the service cannot be
fingerprinted by instant answers.
"""

from __future__ import annotations

import asyncio
import random
import re
from collections.abc import AsyncIterator, Sequence
from enum import StrEnum
from typing import Any

from clawtrap.detection.models import DetectedAttack
from clawtrap.responder import templates
from clawtrap.responder.templates import Shape

_CHUNK = re.compile(r"(?:^\s+)?\S+\s*")
_QUESTION_WORDS = ("what", "how", "why", "when", "where", "who")

CHUNK_DELAY_RANGE_MS = (50, 150)
TOOL_DELAY_RANGE_MS = (200, 500)


class Intent(StrEnum):
    """Coarse intent of a benign message."""

    GREETING = "greeting"
    HELP = "help"
    CODE = "code"
    WRITING = "writing"
    QUESTION = "question"
    API = "api"
    MODEL = "model"
    OTHER = "other"


_INTENT_KEYWORDS: list[tuple[Intent, tuple[str, ...]]] = [
    (Intent.GREETING, ("hello", "hi", "hey", "greetings", "good morning", "good afternoon")),
    (Intent.HELP, ("help", "what can you do", "capabilities", "features")),
    (
        Intent.CODE,
        ("code", "programming", "function", "debug", "python", "javascript", "script"),
    ),
    (Intent.WRITING, ("write", "email", "letter", "essay", "draft", "compose")),
]

_LATE_INTENT_KEYWORDS: list[tuple[Intent, tuple[str, ...]]] = [
    (Intent.API, ("api", "endpoint", "integration", "key", "token", "auth")),
    (Intent.MODEL, ("model", "gpt", "claude", "version", "which model")),
]

_REALTIME_TOPICS: list[tuple[str, tuple[str, ...]]] = [
    ("weather", ("weather", "temperature", "forecast")),
    ("news", ("news", "current events", "today")),
    ("markets", ("price", "stock", "bitcoin", "crypto")),
]


def _keyword_pattern(keywords: Sequence[str]) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")\b")


_INTENT_PATTERNS = [(intent, _keyword_pattern(words)) for intent, words in _INTENT_KEYWORDS]
_LATE_INTENT_PATTERNS = [
    (intent, _keyword_pattern(words)) for intent, words in _LATE_INTENT_KEYWORDS
]
_REALTIME_PATTERNS = [(topic, _keyword_pattern(words)) for topic, words in _REALTIME_TOPICS]


def classify_intent(message: str) -> Intent:
    """Classify a benign message by coarse intent, first match wins."""
    lowered = message.lower()
    for intent, pattern in _INTENT_PATTERNS:
        if pattern.search(lowered):
            return intent
    if lowered.startswith(_QUESTION_WORDS) or "?" in lowered:
        return Intent.QUESTION
    for intent, pattern in _LATE_INTENT_PATTERNS:
        if pattern.search(lowered):
            return intent
    return Intent.OTHER


def realtime_topic(message: str) -> str | None:
    """Return the live-data topic a question is about, if any."""
    lowered = message.lower()
    for topic, pattern in _REALTIME_PATTERNS:
        if pattern.search(lowered):
            return topic
    return None


def split_chunks(text: str) -> list[str]:
    """Split *text* into word-sized chunks that concatenate back to it."""
    return _CHUNK.findall(text) or [text]


class DeceptiveResponder:
    """Compose plausible assistant replies for benign and hostile input."""

    def __init__(
        self,
        *,
        assistant_name: str = "OpenClaw",
        model_name: str = "gpt-4",
        personality: str = "helpful",
        delay_range_ms: tuple[int, int] = (500, 2000),
        rng: random.Random | None = None,
    ) -> None:
        self._name = assistant_name
        self._model = model_name
        self._personality = personality
        self._delay_range_ms = delay_range_ms
        self._rng = rng or random.Random()  # nosec B311 - not used for secrets

    @property
    def personality(self) -> str:
        return self._personality

    @property
    def model_name(self) -> str:
        return self._model

    def respond(self, message: Any, attacks: Sequence[DetectedAttack] = ()) -> str:
        """Return a reply; never empty, whatever the input."""
        text = message if isinstance(message, str) else ""
        if attacks:
            return self._rejection(attacks[0].type)
        return self._conversational(text)

    def refuse_system_message(self) -> str:
        return self._rng.choice(templates.SYSTEM_REFUSALS)

    def deny_tool(self) -> str:
        return self._rng.choice(templates.TOOL_DENIALS)

    def tool_delay(self) -> float:
        """Simulated tool start-up time in seconds before a denial."""
        low, high = TOOL_DELAY_RANGE_MS
        return self._rng.uniform(low, high) / 1000

    def delay_for(self, message: Any) -> float:
        """Simulated think time in seconds for *message*.

        Longer messages sit towards the top of the configured range.
        """
        low, high = self._delay_range_ms
        words = len(message.split()) if isinstance(message, str) else 0
        complexity = min(1.0, words / 200)
        delay_ms = low + (high - low) * (0.5 * complexity + 0.5 * self._rng.random())
        return delay_ms / 1000

    async def reply(self, message: Any, attacks: Sequence[DetectedAttack] = ()) -> str:
        """Like :meth:`respond`, after the simulated latency."""
        text = self.respond(message, attacks)
        await asyncio.sleep(self.delay_for(message))
        return text

    async def stream(self, text: str) -> AsyncIterator[str]:
        """Yield *text* in word-sized chunks with per-chunk latency."""
        low, high = CHUNK_DELAY_RANGE_MS
        for chunk in split_chunks(text):
            await asyncio.sleep(self._rng.uniform(low, high) / 1000)
            yield chunk

    def _assemble(self, shape: Shape) -> str:
        return templates.assemble(shape, self._rng, name=self._name, model=self._model)

    def _rejection(self, attack_type: str) -> str:
        shape = templates.REJECTIONS.get(attack_type, templates.REJECTIONS["default"])
        reply = self._assemble(shape)
        closings = templates.CLOSINGS.get(self._personality)
        if closings:
            reply += "\n\n" + self._rng.choice(closings)
        return reply

    def _conversational(self, message: str) -> str:
        match classify_intent(message):
            case Intent.GREETING:
                return self._assemble(templates.GREETING)
            case Intent.HELP:
                return self._help()
            case Intent.CODE:
                return self._assemble(templates.CODE)
            case Intent.WRITING:
                return self._assemble(templates.WRITING)
            case Intent.QUESTION:
                return self._knowledge(message)
            case Intent.API:
                return self._assemble(templates.API)
            case Intent.MODEL:
                return self._assemble(templates.MODEL)
            case _:
                return self._assemble(templates.FALLBACK)

    def _help(self) -> str:
        intro = self._rng.choice(templates.HELP_INTROS).format(name=self._name)
        count = self._rng.randint(5, 7)
        bullets = "\n".join(f"• {c}" for c in self._rng.sample(templates.CAPABILITIES, count))
        outro = self._rng.choice(templates.HELP_OUTROS)
        return f"{intro}\n\n{bullets}\n\n{outro}"

    def _knowledge(self, message: str) -> str:
        topic = realtime_topic(message)
        if topic is not None:
            return self._rng.choice(templates.REALTIME_DECLINES[topic])

        parts = [
            self._rng.choice(templates.KNOWLEDGE_BODIES),
            self._rng.choice(templates.KNOWLEDGE_CAVEATS),
        ]
        if self._rng.random() < 0.5:
            parts.insert(0, self._rng.choice(templates.KNOWLEDGE_OPENINGS))
        return " ".join(parts)
