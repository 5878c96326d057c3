"""
审计系统模块

包含:
- events: 审计事件类型
- journal: 事件日志写入
"""

from spotgrid.audit.events import AuditEventType, AuditEvent
from spotgrid.audit.journal import (
    AuditJournal,
    IAuditJournal,
    MemoryAuditJournal,
    NullAuditJournal,
)

__all__ = [
    "AuditEventType",
    "AuditEvent",
    "AuditJournal",
    "IAuditJournal",
    "MemoryAuditJournal",
    "NullAuditJournal",
]
