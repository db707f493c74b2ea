"""Shared libraries for the legal chat service.

This package contains the infrastructure adapters behind the chat core:
- common: Configuration
- telemetry: structlog setup
- firestore / firebase / models: Conversation persistence on Firestore
- caching / usage: Redis client and the token quota ledger
"""
