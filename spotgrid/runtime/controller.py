"""
策略生命周期控制器

实现:
- start: 校验配置 → 生成网格 → STARTING → 每层挂 buy → RUNNING
- tick: 一次对账（只在 RUNNING 执行）
- stop: STOPPING → 撤销所有挂单（尽力而为）→ 丢弃订单 ID → STOPPED
- health_check: 刷新行情、余额、服务器时间
- snapshot: 给展示层的只读视图

同一个 run 的 tick 与 stop 通过锁串行：stop 会等待进行中的 tick 结束
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from spotgrid.audit.events import AuditEvent, AuditEventType
from spotgrid.audit.journal import IAuditJournal, NullAuditJournal
from spotgrid.config.loader import compute_config_hash
from spotgrid.config.schema import (
    AppConfig,
    GridConfiguration,
    RuntimeConfig,
    TradingLimits,
    TRADING_LIMITS,
)
from spotgrid.config.validator import (
    calculate_grid_metrics,
    create_invalid_config_event,
    validate_grid_config,
)
from spotgrid.exceptions import ExchangeError, InvalidConfiguration
from spotgrid.execution.reconciler import ReconciliationEngine
from spotgrid.grid_engine.grid_builder import build_grid_layout
from spotgrid.grid_engine.level_store import GridLevelStore
from spotgrid.interfaces import IExchangeClient
from spotgrid.models.grid import ActionResult, OrderSide, TickReport
from spotgrid.models.market import Balance, Ticker
from spotgrid.models.snapshot import RunSnapshot, RunStats
from spotgrid.models.state import RunHealth, RunState
from spotgrid.state_machine.states import RunStateMachine
from spotgrid.utils.timeutils import generate_session_id


@dataclass
class StrategyRun:
    """
    一次运行

    start 时创建，stop 时置为非活跃；订单 ID 在 run 结束前全部丢弃
    """
    config: GridConfiguration
    store: GridLevelStore
    engine: ReconciliationEngine
    session_id: str
    active: bool = True
    started_at: datetime = field(default_factory=datetime.now)


@dataclass
class StopReport:
    """stop 的结果；撤单失败只报告，不重试"""
    cancelled: List[str] = field(default_factory=list)
    failed: List[ActionResult] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    discarded: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed and not self.errors

    def to_dict(self) -> dict:
        return {
            "cancelled": self.cancelled,
            "failed": [r.to_dict() for r in self.failed],
            "errors": self.errors,
            "discarded": self.discarded,
        }


class StrategyController:
    """
    策略生命周期控制器

    每个 run 注入独立的交易所客户端，不同 run 之间不共享可变状态
    """

    def __init__(
        self,
        config: GridConfiguration,
        client: IExchangeClient,
        limits: TradingLimits = TRADING_LIMITS,
        runtime: Optional[RuntimeConfig] = None,
        audit_journal: Optional[IAuditJournal] = None,
        session_id: Optional[str] = None,
    ):
        """
        初始化控制器

        Args:
            config: 网格配置（start 时校验）
            client: 交易所客户端
            limits: 交易限制
            runtime: 运行配置
            audit_journal: 审计日志
            session_id: 会话 ID（可选，自动生成）
        """
        self._config = config
        self._client = client
        self._limits = limits
        self._runtime = runtime or RuntimeConfig()
        self._audit_journal = audit_journal or NullAuditJournal()
        self._session_id = session_id or generate_session_id()
        self._config_hash = compute_config_hash(config)

        self._state_machine = RunStateMachine(
            session_id=self._session_id,
            audit_journal=self._audit_journal,
        )

        self._run: Optional[StrategyRun] = None
        self._lock = threading.RLock()

        # 行情上下文（health_check 刷新）
        self._ticker: Optional[Ticker] = None
        self._balances: List[Balance] = []
        self._server_time: Optional[datetime] = None
        self._last_health_check: Optional[datetime] = None
        self._health_error: Optional[str] = None

    @classmethod
    def from_app_config(
        cls,
        app_config: AppConfig,
        client: IExchangeClient,
        audit_journal: Optional[IAuditJournal] = None,
        session_id: Optional[str] = None,
    ) -> "StrategyController":
        """从完整配置创建控制器"""
        return cls(
            config=app_config.grid,
            client=client,
            limits=app_config.limits,
            runtime=app_config.runtime,
            audit_journal=audit_journal,
            session_id=session_id,
        )

    # ------------------------------------------------------------------
    # 属性
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def config(self) -> GridConfiguration:
        return self._config

    @property
    def config_hash(self) -> str:
        return self._config_hash

    @property
    def runtime(self) -> RuntimeConfig:
        return self._runtime

    @property
    def state(self) -> RunState:
        """当前生命周期状态"""
        return self._state_machine.current_state

    @property
    def state_machine(self) -> RunStateMachine:
        return self._state_machine

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    @property
    def health(self) -> RunHealth:
        if self._run is None:
            return RunHealth.OK
        return self._run.engine.health

    @property
    def run(self) -> Optional[StrategyRun]:
        return self._run

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def start(self) -> RunState:
        """
        启动策略

        已在 STARTING / RUNNING 时为空操作（不会重复下单）

        Returns:
            启动后的状态

        Raises:
            InvalidConfiguration: 配置无效（状态保持 STOPPED）
            Exception: 初始下单时的意外错误（已停止并回到 STOPPED）
        """
        with self._lock:
            if self.state.is_active:
                print(f"[Controller] Already {self.state.name}, ignoring start")
                return self.state

            # 配置闸门：无效配置永远不会进入引擎
            result = validate_grid_config(self._config, self._limits)
            if not result.is_valid:
                self._audit_journal.write(create_invalid_config_event(
                    session_id=self._session_id,
                    timestamp=datetime.now(),
                    errors=result.errors,
                    config_hash=self._config_hash,
                ))
                for error in result.errors:
                    print(f"[CONFIG ERROR] {error}")
                raise InvalidConfiguration(result.errors)

            for warning in result.warnings:
                print(f"[CONFIG WARNING] {warning}")

            store = GridLevelStore(
                build_grid_layout(self._config),
                epsilon=self._runtime.price_epsilon,
            )
            engine = ReconciliationEngine(
                config=self._config,
                store=store,
                client=self._client,
                session_id=self._session_id,
                audit_journal=self._audit_journal,
                verify_vanished_orders=self._runtime.verify_vanished_orders,
                api_fault_max_consecutive=self._runtime.api_fault_max_consecutive,
            )
            self._run = StrategyRun(
                config=self._config,
                store=store,
                engine=engine,
                session_id=self._session_id,
            )

            self._state_machine.transition_to(RunState.STARTING, "start_requested")

            metrics = calculate_grid_metrics(self._config)
            self._audit_journal.write(AuditEvent(
                session_id=self._session_id,
                timestamp=datetime.now(),
                event_type=AuditEventType.RUN_STARTED,
                reason="start",
                config_hash=self._config_hash,
                details={
                    "symbol": self._config.symbol,
                    "grid_count": self._config.grid_count,
                    "lower_price": self._config.lower_price,
                    "upper_price": self._config.upper_price,
                    "investment": self._config.investment,
                    "profit_per_grid": self._config.profit_per_grid,
                    "order_size": metrics.order_size,
                    "price_step": metrics.price_step,
                },
            ))

            print(f"[Controller] Starting {self._config.symbol} grid")
            print(f"  Session ID: {self._session_id}")
            print(f"  Config Hash: {self._config_hash}")
            print(f"  Range: {self._config.lower_price:,.2f} - {self._config.upper_price:,.2f}")
            print(f"  Levels: {self._config.grid_count}, step {metrics.price_step:,.6f}")
            print(f"  Order size: ${metrics.order_size:,.2f}")

            # 每层一个 buy；失败的层级进入 PendingRetry，由后续 tick 重试
            try:
                results = engine.execute(engine.pending_intents())
            except Exception as e:
                # 意外错误：撤销已下的单并回到 STOPPED，之后可以重新 start
                print(f"[Controller] Start failed: {type(e).__name__}: {e}")
                self.stop("start_failed")
                raise

            failed = [r for r in results if not r.success]

            self._state_machine.transition_to(RunState.RUNNING, "initial_orders_submitted")

            print(f"[Controller] Placed {len(results) - len(failed)}/{len(results)} initial orders")
            return self.state

    def tick(self) -> Optional[TickReport]:
        """
        执行一次对账

        Returns:
            TickReport；不在 RUNNING 时返回 None
        """
        with self._lock:
            if self.state != RunState.RUNNING or self._run is None:
                return None
            return self._run.engine.run_tick()

    def stop(self, reason: str = "stop_requested") -> StopReport:
        """
        停止策略

        撤销交易所报告的所有活跃订单；获取失败时撤销本地记录的订单。
        无论单个撤单是否失败，最终都进入 STOPPED。

        Returns:
            StopReport
        """
        with self._lock:
            report = StopReport()

            if self.state == RunState.STOPPED or self._run is None:
                return report

            self._state_machine.transition_to(RunState.STOPPING, reason)
            engine = self._run.engine

            try:
                open_orders = self._client.get_open_orders(self._config.symbol)
                intents = engine.cancel_intents(open_orders)
            except ExchangeError as e:
                message = f"get_open_orders failed during stop: {type(e).__name__}: {e}"
                report.errors.append(message)
                print(f"[Controller] {message}; cancelling tracked orders")
                intents = engine.tracked_cancel_intents()

            for result in engine.execute(intents):
                if result.success:
                    report.cancelled.append(result.order_ref)
                else:
                    report.failed.append(result)
                    report.errors.append(
                        f"cancel {result.intent.order_ref} failed: {result.error}"
                    )

            report.discarded = self._run.store.discard_orders()
            self._run.active = False

            self._state_machine.transition_to(
                RunState.STOPPED,
                "stopped" if report.success else "stopped_with_errors",
            )

            print(
                f"[Controller] Stopped: {len(report.cancelled)} cancelled, "
                f"{len(report.failed)} failed"
            )
            return report

    def health_check(self) -> bool:
        """
        刷新行情、余额和服务器时间

        只更新展示用的上下文，不影响层级状态

        Returns:
            是否成功
        """
        symbol = self._config.symbol

        try:
            ticker = self._client.get_ticker(symbol)
            balances = self._client.get_balances()
            server_time = self._client.get_server_time()
        except ExchangeError as e:
            error = f"{type(e).__name__}: {e}"
            with self._lock:
                self._health_error = error
            self._audit_journal.write(AuditEvent(
                session_id=self._session_id,
                timestamp=datetime.now(),
                event_type=AuditEventType.HEALTH_CHECK,
                reason="health_check_failed",
                error=error,
            ))
            print(f"[Controller] Health check failed: {error}")
            return False

        with self._lock:
            self._ticker = ticker
            self._balances = balances
            self._server_time = server_time
            self._last_health_check = datetime.now()
            self._health_error = None

        return True

    # ------------------------------------------------------------------
    # 观察
    # ------------------------------------------------------------------

    def snapshot(self) -> RunSnapshot:
        """只读运行快照"""
        with self._lock:
            levels = self._run.store.snapshot() if self._run else []

            stats = RunStats()
            if self._run is not None:
                refs = self._run.store.open_refs()
                stats = RunStats(
                    active_orders=len(refs),
                    buy_orders=sum(1 for _, side in refs.values() if side == OrderSide.BUY),
                    sell_orders=sum(1 for _, side in refs.values() if side == OrderSide.SELL),
                    pending_levels=sum(1 for level in levels if level.pending_retry),
                    fills=self._run.store.fill_count,
                    completed_cycles=self._run.store.completed_cycles,
                )

            last_error = self._health_error
            consecutive_faults = 0
            if self._run is not None:
                consecutive_faults = self._run.engine.consecutive_faults
                last_error = self._run.engine.last_error or last_error

            return RunSnapshot(
                timestamp=datetime.now(),
                session_id=self._session_id,
                symbol=self._config.symbol,
                state=self.state,
                health=self.health,
                levels=levels,
                metrics=calculate_grid_metrics(self._config).to_dict(),
                ticker=self._ticker,
                balances=list(self._balances),
                stats=stats,
                consecutive_faults=consecutive_faults,
                last_error=last_error,
            )
