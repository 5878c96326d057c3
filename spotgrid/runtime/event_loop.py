"""
轮询事件循环

每个 run 一个循环：
- 每 poll_interval 秒执行一次对账 tick
- 每 health_interval 秒执行一次健康检查
- tick 之间不会重叠；stop 可以从任意线程调用，在当前 tick 结束后生效
"""

import threading
import time
from typing import Callable, Optional

from spotgrid.exceptions import GridError
from spotgrid.models.grid import TickReport
from spotgrid.runtime.controller import StrategyController


class PollingLoop:
    """
    轮询循环

    只驱动 tick 和健康检查；撤单由 StrategyController.stop 完成
    """

    def __init__(
        self,
        controller: StrategyController,
        poll_interval: Optional[float] = None,
        health_interval: Optional[float] = None,
        on_tick: Optional[Callable[[TickReport], None]] = None,
    ):
        """
        初始化轮询循环

        Args:
            controller: 生命周期控制器（已 start）
            poll_interval: 对账间隔（秒），默认取 RuntimeConfig
            health_interval: 健康检查间隔（秒），默认取 RuntimeConfig
            on_tick: 每次 tick 后的回调
        """
        self.controller = controller
        self.poll_interval = (
            poll_interval if poll_interval is not None
            else controller.runtime.poll_interval_seconds
        )
        self.health_interval = (
            health_interval if health_interval is not None
            else controller.runtime.health_check_interval_seconds
        )
        self._on_tick = on_tick

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_health_check: Optional[float] = None

        # 计数
        self._tick_count = 0
        self._error_count = 0

    @property
    def tick_count(self) -> int:
        """已执行 tick 数"""
        return self._tick_count

    @property
    def error_count(self) -> int:
        """tick 中未处理的错误数"""
        return self._error_count

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def run_once(self) -> Optional[TickReport]:
        """
        执行一次循环体

        到期时先做健康检查，再做对账 tick
        """
        now = time.monotonic()
        if (
            self._last_health_check is None
            or now - self._last_health_check >= self.health_interval
        ):
            self._last_health_check = now
            self.controller.health_check()

        try:
            report = self.controller.tick()
        except GridError as e:
            # run 级错误不会停止循环
            self._error_count += 1
            print(f"[PollingLoop] Tick failed: {type(e).__name__}: {e}")
            return None

        if report is None:
            return None

        self._tick_count += 1

        if report.fills or report.failed or report.error:
            print(
                f"[PollingLoop] Tick {self._tick_count}: "
                f"{len(report.fills)} fills, {report.action_count} actions, "
                f"{len(report.failed)} failed"
                + (f", error: {report.error}" if report.error else "")
            )

        if self._on_tick is not None:
            self._on_tick(report)

        return report

    def run_until_stopped(self, max_ticks: Optional[int] = None) -> None:
        """
        运行直到 stop() 或控制器离开 RUNNING

        Args:
            max_ticks: 最多执行的 tick 数（None 表示不限）
        """
        print(
            f"[PollingLoop] Started (poll {self.poll_interval}s, "
            f"health {self.health_interval}s)"
        )

        while not self._stop_event.is_set():
            if not self.controller.is_running:
                break

            self.run_once()

            if max_ticks is not None and self._tick_count >= max_ticks:
                break

            self._stop_event.wait(self.poll_interval)

        print(f"[PollingLoop] Stopped after {self._tick_count} ticks")

    def start_background(self) -> threading.Thread:
        """在后台线程运行"""
        if self.is_running:
            return self._thread

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.run_until_stopped,
            name=f"grid-poll-{self.controller.session_id}",
            daemon=True,
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        """
        请求停止

        等待当前 tick 结束（后台线程模式下 join）
        """
        self._stop_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        阻塞直到 stop 被请求

        Returns:
            是否已请求停止
        """
        return self._stop_event.wait(timeout)
