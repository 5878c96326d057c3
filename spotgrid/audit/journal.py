"""
审计日志写入

append-only 的 JSONL 审计日志；轮询线程与 stop 调用方可能同时写入，
所以写入加锁
"""

import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from spotgrid.audit.events import AuditEvent, AuditEventType


class IAuditJournal(ABC):
    """审计日志接口"""

    @abstractmethod
    def write(self, event: AuditEvent) -> None:
        """写入审计事件"""
        pass

    @abstractmethod
    def close(self) -> None:
        """关闭日志"""
        pass

    @abstractmethod
    def query(
        self,
        event_types: Optional[List[AuditEventType]] = None,
        session_id: Optional[str] = None,
        level_index: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """查询审计事件（返回字典）"""
        pass


def _matches(
    data: Dict[str, Any],
    event_types: Optional[List[AuditEventType]],
    session_id: Optional[str],
    level_index: Optional[int],
) -> bool:
    if event_types and data.get("type") not in [et.name for et in event_types]:
        return False
    if session_id and data.get("session") != session_id:
        return False
    if level_index is not None and data.get("level") != level_index:
        return False
    return True


class AuditJournal(IAuditJournal):
    """
    审计日志实现

    特点：
    - append-only
    - JSON Lines 格式
    - 每条事件立即 flush
    - 可查询
    """

    def __init__(self, output_dir: str, filename: str = "audit_events.jsonl"):
        """
        初始化审计日志

        Args:
            output_dir: 输出目录
            filename: 日志文件名
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        self.filepath = self.output_dir / filename
        self._file = None
        self._event_count = 0
        self._lock = threading.Lock()

    def write(self, event: AuditEvent) -> None:
        """
        写入审计事件

        立即 flush 确保数据持久化
        """
        line = json.dumps(event.to_dict(), ensure_ascii=False, default=str)

        with self._lock:
            if self._file is None:
                self._file = open(self.filepath, "a", encoding="utf-8")
            self._file.write(line + "\n")
            self._file.flush()
            self._event_count += 1

    def close(self) -> None:
        """关闭日志"""
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def query(
        self,
        event_types: Optional[List[AuditEventType]] = None,
        session_id: Optional[str] = None,
        level_index: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        查询审计事件

        从文件中读取并过滤
        """
        if not self.filepath.exists():
            return []

        results = []

        with open(self.filepath, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue

                try:
                    data = json.loads(line)
                except json.JSONDecodeError:
                    continue

                if _matches(data, event_types, session_id, level_index):
                    results.append(data)

        return results

    @property
    def event_count(self) -> int:
        """已写入事件数"""
        return self._event_count

    def __enter__(self) -> "AuditJournal":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemoryAuditJournal(IAuditJournal):
    """内存审计日志（测试和 dry-run 用）"""

    def __init__(self):
        self._events: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def write(self, event: AuditEvent) -> None:
        with self._lock:
            self._events.append(event.to_dict())

    def close(self) -> None:
        pass

    def query(
        self,
        event_types: Optional[List[AuditEventType]] = None,
        session_id: Optional[str] = None,
        level_index: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        with self._lock:
            events = list(self._events)
        return [e for e in events if _matches(e, event_types, session_id, level_index)]

    @property
    def event_count(self) -> int:
        return len(self._events)


class NullAuditJournal(IAuditJournal):
    """
    空审计日志（用于禁用审计）
    """

    def write(self, event: AuditEvent) -> None:
        pass

    def close(self) -> None:
        pass

    def query(
        self,
        event_types: Optional[List[AuditEventType]] = None,
        session_id: Optional[str] = None,
        level_index: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return []
