"""ClawTrap: a deception service that impersonates an AI-assistant platform."""

__version__ = "0.3.0"
