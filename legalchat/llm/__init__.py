"""Text-generation adapters for the legal chat core."""

from legalchat.llm.gateway import GenerationGateway
from legalchat.llm.openai_service import OpenAIGenerationService, calculate_cost

__all__ = ["GenerationGateway", "OpenAIGenerationService", "calculate_cost"]
