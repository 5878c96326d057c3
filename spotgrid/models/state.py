"""
运行状态

生命周期:
- STOPPED → STARTING → RUNNING → STOPPING → STOPPED
"""

from enum import Enum, auto
from typing import Dict, Set


class RunState(Enum):
    """策略运行状态"""
    STOPPED = auto()
    STARTING = auto()
    RUNNING = auto()
    STOPPING = auto()

    @property
    def is_active(self) -> bool:
        return self in (RunState.STARTING, RunState.RUNNING)


class RunHealth(Enum):
    """
    运行健康度

    DEGRADED 只是展示状态，不会自动停止策略
    """
    OK = auto()
    DEGRADED = auto()


# 状态迁移图（用于验证）
VALID_TRANSITIONS: Dict[RunState, Set[RunState]] = {
    RunState.STOPPED: {
        RunState.STARTING,
    },
    RunState.STARTING: {
        RunState.RUNNING,
        # 初始下单阶段也允许直接停止
        RunState.STOPPING,
    },
    RunState.RUNNING: {
        RunState.STOPPING,
    },
    RunState.STOPPING: {
        RunState.STOPPED,
    },
}


def is_valid_transition(from_state: RunState, to_state: RunState) -> bool:
    """检查状态迁移是否合法"""
    if from_state == to_state:
        return True
    return to_state in VALID_TRANSITIONS.get(from_state, set())
