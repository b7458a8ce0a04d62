"""Session tracking and admission control."""

from clawtrap.session.models import AdmissionDecision, Session
from clawtrap.session.rate_limiter import RateLimiter
from clawtrap.session.registry import SessionRegistry

__all__ = ["AdmissionDecision", "RateLimiter", "Session", "SessionRegistry"]
