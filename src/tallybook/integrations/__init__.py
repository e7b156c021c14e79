"""Clients for external services."""

from tallybook.integrations.openai_classifier import OpenAIClassifier

__all__ = ["OpenAIClassifier"]
