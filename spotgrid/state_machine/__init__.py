"""
状态机模块

运行生命周期：
- STOPPED
- STARTING
- RUNNING
- STOPPING
"""

from spotgrid.state_machine.states import RunStateMachine

__all__ = [
    "RunStateMachine",
]
