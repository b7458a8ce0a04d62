"""Exception hierarchy for ClawTrap."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clawtrap.session.models import AdmissionDecision


class ClawTrapError(Exception):
    """Base class for all ClawTrap errors."""


class RuleLoadError(ClawTrapError):
    """A detection rule (or rule file) could not be loaded."""


class NoUsableRulesError(ClawTrapError):
    """Neither the configured rule set nor the built-ins produced a usable rule."""


class DeliveryError(ClawTrapError):
    """A reporting sink failed to deliver a batch."""


class SessionNotFoundError(ClawTrapError):
    """The session id is unknown or has already been removed."""


class AdmissionRejectedError(ClawTrapError):
    """A new connection was refused by admission control."""

    def __init__(self, identity: str, decision: AdmissionDecision) -> None:
        super().__init__(f"connection from {identity} rejected: {decision.reason}")
        self.identity = identity
        self.decision = decision
