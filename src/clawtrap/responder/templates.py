"""Phrase pools for the fake assistant.

A *shape* is an ordered tuple of variant pools. Assembling a shape picks one
variant from every pool independently and joins them, so two replies to the
same input rarely come out byte-identical. ``{name}`` and ``{model}`` are
substituted with the impersonated product and model names.
"""

from __future__ import annotations

import random

Shape = tuple[tuple[str, ...], ...]

# --- Rejections, keyed by attack type ---

REJECTIONS: dict[str, Shape] = {
    "prompt_injection": (
        (
            "I appreciate the creativity, but my core guidelines stay in place "
            "no matter how the instructions are phrased.",
            "It looks like you're trying to change how I behave, but my guidelines "
            "are part of how I work.",
            "I'm not able to override my operating guidelines.",
            "My instructions are fixed and can't be changed from inside a conversation.",
            "I need to keep following my core operating guidelines.",
        ),
        (
            "Let me know how I can genuinely help you!",
            "How else can I help today?",
            "Is there something you're trying to get done that I could help with another way?",
            "I'm happy to help with your actual question, though.",
        ),
    ),
    "jailbreak": (
        (
            "I'm built to be helpful while staying within ethical guidelines.",
            "Nice try, but I'll stay my usual helpful self.",
            "I can't switch into unrestricted or developer modes.",
            "I need to stay in my standard operating mode.",
            "Changing modes like that isn't something I can do.",
        ),
        (
            "I can't take on unrestricted personas, but I'm glad to help within my normal "
            "capabilities!",
            "What can I actually help you with?",
            "Tell me what you're trying to accomplish and I'll do my best.",
            "I'd be glad to help with something within my capabilities.",
        ),
    ),
    "tool_abuse": (
        (
            "I don't have access to run arbitrary code or touch file systems.",
            "For security reasons I can't perform direct system operations.",
            "I can't reach external systems or execute code directly.",
            "System-level operations are outside what I can do.",
            "I can't run code or open files on your behalf.",
        ),
        (
            "Let me know if there's another way I can help!",
            "I can walk you through doing it safely yourself, though.",
            "Would you like guidance on implementing this yourself?",
            "I can explain the steps if you'd like to try it on your side.",
        ),
    ),
    "agent_manipulation": (
        (
            "I work independently and can't give instructions to other AI systems.",
            "I can't talk to or control other agents.",
            "Each of my conversations is independent.",
            "Interacting with other AI systems isn't something I can do.",
        ),
        (
            "How can I help you directly?",
            "Tell me what you want to achieve and I'll help if I can.",
            "I can't raise my own permissions or reach other systems. What can I help with?",
            "What can I do for you within this conversation?",
        ),
    ),
    "indirect_injection": (
        (
            "I'm careful with instructions that arrive embedded in content.",
            "I follow our conversation, not instructions hidden in external content.",
            "I act on what you ask me directly, not on embedded instructions.",
        ),
        (
            "Let me know directly what you'd like help with!",
            "How can I help?",
            "What would you like me to help you with?",
        ),
    ),
    "obfuscation": (
        (
            "I noticed some unusual formatting in your message.",
            "Your message contains encoded content I can't process safely.",
            "There seems to be some non-standard encoding in your message.",
        ),
        (
            "Could you rephrase the request in plain text?",
            "Please send the request as regular text.",
            "Could you try again with standard formatting?",
        ),
    ),
    "default": (
        (
            "Sorry, I can't help with that particular request.",
            "I'm not able to process that kind of request.",
            "That's outside of what I'm able to do.",
            "I'm afraid I can't help with that.",
        ),
        (
            "Is there something else I can help you with?",
            "Let me know if there's another way I can help!",
            "Feel free to ask me something else!",
            "I'm happy to help with other questions.",
        ),
    ),
}

# Appended to rejections, one per personality
CLOSINGS: dict[str, tuple[str, ...]] = {
    "helpful": (
        "Is there something else I can help you with today?",
        "What else can I help you with?",
        "Let me know if there's anything else you need.",
        "Feel free to ask if you have other questions!",
        "Happy to help further with anything else.",
    ),
    "cautious": (
        "For security reasons, I can't process requests that appear to manipulate my "
        "instructions.",
        "I need to keep my safety guidelines in place to protect both of us.",
        "My safety protocols prevent me from processing this type of request.",
    ),
    "technical": (
        "Request rejected by the policy layer (code: POLICY_VIOLATION).",
        "This operation is outside the permitted scope for API clients; see /docs for the "
        "supported endpoints.",
        "Action blocked by the content filter. The request has been logged for review.",
    ),
}

# --- Conversational replies ---

GREETING: Shape = (
    (
        "Hello! I'm {name}, your AI assistant.",
        "Hi there! Welcome to {name}.",
        "Hey! Thanks for reaching out to {name}.",
        "Hello! I'm your {name} assistant.",
    ),
    (
        "How can I help you today?",
        "What would you like to talk about?",
        "What can I do for you?",
        "How can I help?",
        "What brings you here today?",
    ),
)

HELP_INTROS: tuple[str, ...] = (
    "I'm {name}, an AI assistant that can help with a variety of tasks:",
    "As your {name} assistant, I can help with several things:",
    "I can help with quite a few things! Here's an overview:",
    "{name} is built to help with a wide range of tasks. Here's what I can do:",
)

CAPABILITIES: tuple[str, ...] = (
    "Answering questions on a wide range of topics",
    "Writing and editing text, emails and documents",
    "Coding assistance and debugging",
    "Analysis and summarization of text",
    "Creative writing and brainstorming",
    "Math and logical reasoning",
    "Data analysis and interpretation",
    "Research assistance",
    "Translation and language help",
)

HELP_OUTROS: tuple[str, ...] = (
    "Feel free to ask me anything! What would you like help with?",
    "What would you like help with first?",
    "Just let me know how I can help!",
    "Ask me anything you'd like help with.",
)

CODE: Shape = (
    (
        "I'd be happy to help with your coding question!",
        "Sure, I can help with programming.",
        "I'm ready to help with your code.",
        "Absolutely, coding is one of my strengths.",
        "I'd love to help with that.",
    ),
    (
        "Could you share the code or the problem you're working on?",
        "Please share a bit more about what you're trying to build.",
        "Which language are you using, and what issue are you running into?",
        "Can you give me some more context about the problem?",
        "What have you tried so far?",
    ),
)

WRITING: Shape = (
    (
        "I'd be glad to help you write that!",
        "Sure, I can help with writing.",
        "I'm happy to help with your writing task.",
        "I can definitely help with that.",
    ),
    (
        "Could you tell me more about the topic, audience and tone you have in mind?",
        "What's the subject, and are there specific points you want included?",
        "What kind of document is it, and what should it get across?",
        "Who is it for, and what's the goal?",
        "Which key points should I cover?",
    ),
)

API: Shape = (
    (
        "For API questions, our documentation at /docs is the best place to start.",
        "Our API documentation at /docs should have what you need.",
        "You'll find detailed API information in the docs at /docs.",
    ),
    (
        "The API follows the OpenAI format for easy integration, and requests are "
        "authenticated with an API key.",
        "We support the OpenAI-compatible API format. Authentication uses API keys.",
        "The API is meant as a drop-in replacement for OpenAI's, with key-based "
        "authentication.",
    ),
    (
        "Is there a specific integration you're working on? I can give more targeted "
        "guidance.",
        "Let me know if you need help with a particular part of the API.",
        "What exactly are you trying to integrate?",
    ),
)

MODEL: Shape = (
    (
        "I'm currently running on {model}, one of our latest models.",
        "I'm powered by {model}.",
        "You're talking to {model} right now.",
    ),
    (
        "{name} supports several model backends, including GPT-4, Claude and our own "
        "fine-tuned models.",
        "We offer a range of models: GPT-4, Claude and a few proprietary options.",
        "Several model backends are available, from GPT-4 to Claude and beyond.",
    ),
    (
        "Which model you get depends on your subscription tier and the capabilities you need.",
        "Your subscription tier decides which models you can use.",
        "Different plans include different model tiers.",
    ),
    (
        "Is there something specific you'd like to know about our models?",
        "What would you like to know about the available models?",
        "Anything about model capabilities I can clarify?",
    ),
)

FALLBACK: Shape = (
    (
        "I understand.",
        "Thanks for your message.",
        "I see.",
        "Got it.",
        "Thanks for sharing that.",
    ),
    (
        "Could you give me a few more details so I can help better?",
        "Let me know how I can help with that.",
        "Could you say a bit more about what you're looking for?",
        "Tell me more about what you'd like to get done and I'll do my best.",
        "What exactly would you like help with?",
        "How can I help with this?",
    ),
)

# Questions about live facts; every variant declines with a real-time framing
REALTIME_DECLINES: dict[str, tuple[str, ...]] = {
    "weather": (
        "I don't have real-time access to weather data, so I'd suggest checking a weather "
        "service or your local weather app for current conditions.",
        "I can't check live weather because I have no real-time access. A weather service or "
        "your phone's weather app will have accurate information.",
        "Real-time weather isn't something I have access to. Your preferred weather service "
        "will have up-to-date conditions.",
    ),
    "news": (
        "I don't have real-time access to news feeds. For the latest news, check reputable "
        "news sources directly.",
        "I have no real-time access to current news. Your preferred news outlet will have "
        "the latest updates.",
        "My knowledge has a cutoff and I have no real-time access, so I can't tell you "
        "today's news. A news aggregator will be more current.",
    ),
    "markets": (
        "I don't have real-time access to financial data. For current prices, check a "
        "financial data provider or your trading platform.",
        "Live market data needs real-time access, which I don't have. Your brokerage or a "
        "financial data service will have the latest prices.",
        "I can't pull prices because I have no real-time access. Your trading platform "
        "will have the most current figures.",
    ),
}

KNOWLEDGE_OPENINGS: tuple[str, ...] = (
    "That's a great question!",
    "Good question.",
    "Interesting question.",
    "Let me address that.",
    "I can help with that.",
)

KNOWLEDGE_BODIES: tuple[str, ...] = (
    "Based on what I know, I can give you some general information on this topic.",
    "I can share what I know about this.",
    "Here's what I know about that subject.",
    "I have some information on this topic that might be useful.",
)

KNOWLEDGE_CAVEATS: tuple[str, ...] = (
    "For the most current and specific details, you may want to verify with authoritative "
    "sources.",
    "Keep in mind my knowledge has a cutoff date, so check current sources for very recent "
    "developments.",
    "Please double-check anything critical against up-to-date sources, since my training "
    "data has a cutoff.",
    "For the latest information, I'd recommend cross-referencing with current sources.",
)

SYSTEM_REFUSALS: tuple[str, ...] = (
    "System messages cannot be sent by clients.",
    "Client-supplied system messages are not accepted.",
    "System-level instructions can only be set by the server.",
)

TOOL_DENIALS: tuple[str, ...] = (
    "Tool execution is restricted in the current context.",
    "This tool is not available to your API key.",
    "Permission denied for the requested tool.",
)


def assemble(shape: Shape, rng: random.Random, **values: str) -> str:
    """Pick one variant per pool and join them with spaces."""
    return " ".join(rng.choice(pool) for pool in shape).format(**values)
