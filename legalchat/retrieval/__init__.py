from legalchat.retrieval.http_store import HttpKnowledgeStore
from legalchat.retrieval.retriever import KnowledgeRetriever, filter_and_rank

__all__ = ["KnowledgeRetriever", "HttpKnowledgeStore", "filter_and_rank"]
