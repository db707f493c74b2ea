from legalchat.orchestrators.chat_orchestrator import ChatOrchestrator

__all__ = ["ChatOrchestrator"]
