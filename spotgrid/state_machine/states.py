"""
运行生命周期状态机

STOPPED → STARTING → RUNNING → STOPPING → STOPPED

只负责迁移合法性检查和审计，进入动作（下单/撤单）由控制器执行
"""

from datetime import datetime
from typing import List, Optional, Tuple

from spotgrid.audit.events import AuditEvent
from spotgrid.audit.journal import IAuditJournal, NullAuditJournal
from spotgrid.models.state import RunState, is_valid_transition


class RunStateMachine:
    """
    运行状态机

    每个 run 一个实例
    """

    def __init__(
        self,
        session_id: str,
        audit_journal: Optional[IAuditJournal] = None,
        initial_state: RunState = RunState.STOPPED,
    ):
        """
        初始化状态机

        Args:
            session_id: 会话 ID
            audit_journal: 审计日志
            initial_state: 初始状态
        """
        self._session_id = session_id
        self._audit_journal = audit_journal or NullAuditJournal()
        self._current_state = initial_state
        self._transition_history: List[Tuple[datetime, RunState, RunState, str]] = []

    @property
    def current_state(self) -> RunState:
        """当前状态"""
        return self._current_state

    @property
    def history(self) -> List[Tuple[datetime, RunState, RunState, str]]:
        """迁移历史 [(timestamp, from, to, reason)]"""
        return list(self._transition_history)

    def can_transition_to(self, new_state: RunState) -> bool:
        """检查是否可以迁移到目标状态"""
        return is_valid_transition(self._current_state, new_state)

    def transition_to(
        self,
        new_state: RunState,
        reason: str,
        timestamp: Optional[datetime] = None,
    ) -> bool:
        """
        执行状态迁移

        Args:
            new_state: 目标状态
            reason: 迁移原因
            timestamp: 时间戳

        Returns:
            是否成功迁移
        """
        if self._current_state == new_state:
            return True  # 已经在目标状态

        if not self.can_transition_to(new_state):
            print(f"[StateMachine] Illegal transition {self._current_state.name} -> {new_state.name} ({reason})")
            return False

        timestamp = timestamp or datetime.now()
        old_state = self._current_state

        self._current_state = new_state
        self._transition_history.append((timestamp, old_state, new_state, reason))

        self._audit_journal.write(AuditEvent.state_change(
            session_id=self._session_id,
            timestamp=timestamp,
            from_state=old_state.name,
            to_state=new_state.name,
            reason=reason,
        ))

        print(f"[StateMachine] {old_state.name} -> {new_state.name} ({reason})")
        return True
