"""Canary token data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class CanaryTokenType(StrEnum):
    """Credential flavours a canary token can imitate."""

    OPENAI_API_KEY = "openai_api_key"
    ANTHROPIC_API_KEY = "anthropic_api_key"
    AWS_ACCESS_KEY = "aws_access_key"
    AWS_SECRET_KEY = "aws_secret_key"
    GITHUB_TOKEN = "github_token"
    SLACK_TOKEN = "slack_token"
    TELEGRAM_TOKEN = "telegram_token"
    DATABASE_URL = "database_url"
    SSH_KEY = "ssh_key"
    KUBERNETES_TOKEN = "kubernetes_token"
    GENERIC_API_KEY = "generic_api_key"


class CanaryEventType(StrEnum):
    """Kinds of canary sightings."""

    IN_MESSAGE = "canary_in_message"
    CREDENTIAL_USED = "canary_credential_used"
    AWS_KEY_USAGE = "aws_key_usage"
    API_KEY_EXTERNAL_USAGE = "api_key_external_usage"


@dataclass(frozen=True)
class CanaryToken:
    """A minted fake credential. Never mutated after creation."""

    id: str  # 12 hex characters
    type: CanaryTokenType
    value: str
    instance_id: str
    created_at: datetime
    metadata: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "value": self.value,
            "instance_id": self.instance_id,
            "created_at": self.created_at.isoformat(),
            "metadata": dict(self.metadata),
        }


@dataclass
class CanaryEvent:
    """A raw sighting of canary-shaped text in traffic.

    ``type`` is a :class:`CanaryEventType` value or any event name a
    transport wants to report under.
    """

    type: str
    source_identity: str
    context: str
    token_type: str | None = None
    token_value: str | None = None
    session_id: str | None = None
    matches: list[str] = field(default_factory=list)
    timestamp: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
