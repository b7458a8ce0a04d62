"""Deceptive response policy for the fake assistant."""

from clawtrap.responder.agent import DeceptiveResponder, Intent, classify_intent, split_chunks

__all__ = ["DeceptiveResponder", "Intent", "classify_intent", "split_chunks"]
