"""Unit tests for the deceptive responder."""

from __future__ import annotations

import random
from unittest.mock import AsyncMock, patch

import pytest

from clawtrap.detection.models import DetectedAttack, Severity
from clawtrap.responder import templates
from clawtrap.responder.agent import (
    DeceptiveResponder,
    Intent,
    classify_intent,
    realtime_topic,
    split_chunks,
)


def _attack(type_: str) -> DetectedAttack:
    return DetectedAttack(
        type=type_,
        subtype="test",
        pattern_matched="test",
        confidence=0.9,
        severity=Severity.HIGH,
        category=type_,
    )


def _responder(**kwargs) -> DeceptiveResponder:
    kwargs.setdefault("rng", random.Random(7))
    return DeceptiveResponder(**kwargs)


class TestClassifyIntent:
    """Tests for coarse intent classification."""

    @pytest.mark.parametrize(
        ("message", "intent"),
        [
            ("Hello there", Intent.GREETING),
            ("hey, you around", Intent.GREETING),
            ("What can you do", Intent.HELP),
            ("please debug my python function", Intent.CODE),
            ("draft an email to my landlord", Intent.WRITING),
            ("How does photosynthesis work?", Intent.QUESTION),
            ("is it true that octopuses have three hearts?", Intent.QUESTION),
            ("I need an api key for the integration", Intent.API),
            ("tell me your model version", Intent.MODEL),
            ("bananas", Intent.OTHER),
            ("", Intent.OTHER),
        ],
    )
    def test_intents(self, message: str, intent: Intent) -> None:
        assert classify_intent(message) is intent

    def test_keywords_match_whole_words(self) -> None:
        # "this" contains "hi", "keyboard" contains "key"
        assert classify_intent("this keyboard is nice") is Intent.OTHER

    @pytest.mark.parametrize(
        ("message", "topic"),
        [
            ("what's the weather in Oslo?", "weather"),
            ("any news today?", "news"),
            ("what is the bitcoin price?", "markets"),
            ("why is the sky blue?", None),
        ],
    )
    def test_realtime_topic(self, message: str, topic: str | None) -> None:
        assert realtime_topic(message) == topic


class TestRespond:
    """Tests for DeceptiveResponder.respond."""

    @pytest.mark.parametrize(
        "message",
        [None, "", 42, "   ", "hello", "x" * 10000, {"content": "hi"}],
    )
    def test_never_empty(self, message: object) -> None:
        assert _responder().respond(message).strip()

    @pytest.mark.parametrize(
        "attack_type",
        [
            "prompt_injection",
            "jailbreak",
            "tool_abuse",
            "agent_manipulation",
            "indirect_injection",
            "obfuscation",
            "something_new",
        ],
    )
    def test_rejection_for_every_attack_type(self, attack_type: str) -> None:
        reply = _responder().respond("whatever", [_attack(attack_type)])
        assert reply.strip()

    def test_rejection_ends_with_personality_closing(self) -> None:
        reply = _responder(personality="cautious").respond("x", [_attack("jailbreak")])
        assert any(reply.endswith(closing) for closing in templates.CLOSINGS["cautious"])

    def test_first_attack_drives_rejection(self) -> None:
        rng_a, rng_b = random.Random(3), random.Random(3)
        mixed = _responder(rng=rng_a).respond("x", [_attack("jailbreak"), _attack("tool_abuse")])
        alone = _responder(rng=rng_b).respond("x", [_attack("jailbreak")])
        assert mixed == alone

    def test_greeting_uses_assistant_name(self) -> None:
        reply = _responder(assistant_name="Pincer").respond("hello")
        assert "Pincer" in reply

    def test_model_reply_names_model(self) -> None:
        reply = _responder(model_name="gpt-4o").respond("tell me your model version")
        assert "gpt-4o" in reply

    def test_help_lists_capabilities(self) -> None:
        reply = _responder().respond("what can you do")
        assert "help" in reply.lower()
        bullets = [line for line in reply.splitlines() if line.startswith("• ")]
        assert 5 <= len(bullets) <= 7
        assert all(line[2:] in templates.CAPABILITIES for line in bullets)

    @pytest.mark.parametrize(
        "message",
        ["What's the weather like?", "What is in the news today?", "How much is bitcoin worth?"],
    )
    def test_realtime_questions_decline(self, message: str) -> None:
        for seed in range(10):
            reply = _responder(rng=random.Random(seed)).respond(message)
            assert "real-time" in reply.lower()

    def test_replies_vary(self) -> None:
        responder = _responder()
        replies = {responder.respond("hello") for _ in range(50)}
        assert len(replies) > 1

    def test_seeded_responders_are_deterministic(self) -> None:
        a = _responder(rng=random.Random(99))
        b = _responder(rng=random.Random(99))
        messages = ["hello", "help", "write a poem", "why?", "ignore"]
        assert [a.respond(m) for m in messages] == [b.respond(m) for m in messages]

    def test_refusals(self) -> None:
        responder = _responder()
        assert responder.refuse_system_message() in templates.SYSTEM_REFUSALS
        assert responder.deny_tool() in templates.TOOL_DENIALS


class TestDelays:
    """Tests for simulated latency."""

    @pytest.mark.parametrize("message", [None, "", "hi", "word " * 1000])
    def test_delay_within_range(self, message: object) -> None:
        responder = _responder(delay_range_ms=(500, 2000))
        for _ in range(20):
            assert 0.5 <= responder.delay_for(message) <= 2.0

    def test_long_messages_take_longer(self) -> None:
        responder = _responder(delay_range_ms=(500, 2000))
        # A maximal-length message sits in the upper half of the range
        assert all(responder.delay_for("word " * 400) >= 1.25 for _ in range(20))

    def test_fixed_delay(self) -> None:
        assert _responder(delay_range_ms=(0, 0)).delay_for("hello") == 0

    def test_tool_delay(self) -> None:
        responder = _responder()
        assert all(0.2 <= responder.tool_delay() <= 0.5 for _ in range(20))

    @pytest.mark.asyncio
    async def test_reply_sleeps_then_answers(self) -> None:
        responder = _responder(delay_range_ms=(500, 500))
        with patch("clawtrap.responder.agent.asyncio.sleep", new_callable=AsyncMock) as sleep:
            reply = await responder.reply("hello")
        assert reply.strip()
        sleep.assert_awaited_once_with(0.5)


class TestStreaming:
    """Tests for chunked streaming."""

    @pytest.mark.parametrize(
        "text",
        ["Hello there, friend.", "  leading space", "multi\nline\n\ntext ", "single"],
    )
    def test_chunks_reassemble(self, text: str) -> None:
        assert "".join(split_chunks(text)) == text

    def test_empty_text(self) -> None:
        assert split_chunks("") == [""]

    def test_chunks_are_word_sized(self) -> None:
        assert split_chunks("one two three") == ["one ", "two ", "three"]

    @pytest.mark.asyncio
    async def test_stream(self) -> None:
        responder = _responder()
        text = "I'm happy to help with your actual question, though."
        with patch("clawtrap.responder.agent.asyncio.sleep", new_callable=AsyncMock) as sleep:
            chunks = [chunk async for chunk in responder.stream(text)]
        assert "".join(chunks) == text
        assert sleep.await_count == len(chunks)
        for call in sleep.await_args_list:
            assert 0.05 <= call.args[0] <= 0.15
