"""Audit journal sinks."""

from .journal import AuditSink, DailyJournal, NullAuditSink, safe_record

__all__ = [
    "AuditSink",
    "DailyJournal",
    "NullAuditSink",
    "safe_record",
]
