"""Token usage accounting for the legal chat service."""

from libs.usage.quota_ledger import RedisQuotaLedger

__all__ = ["RedisQuotaLedger"]
