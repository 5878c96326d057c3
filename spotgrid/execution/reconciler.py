"""
对账引擎

实现:
- 轮询交易所活跃订单，与层级存储比对
- 成交检测：挂单从活跃订单中消失（可选地查询单个订单区分成交/外部撤单）
- 补偿订单：buy 成交 → 配对 sell；sell 成交 → 原价重新挂 buy
- 下单失败进入 PendingRetry，下一个 tick 以相同参数重试
- 单个层级的错误不会中断同一 tick 中其他层级的处理
- run 级故障计数与降级（不会自动停止）
"""

from datetime import datetime
from typing import Dict, List, Optional

from spotgrid.audit.events import AuditEvent, AuditEventType
from spotgrid.audit.journal import IAuditJournal, NullAuditJournal
from spotgrid.config.schema import GridConfiguration
from spotgrid.exceptions import ExchangeError, ExchangeRejected, StateInconsistency
from spotgrid.grid_engine.grid_builder import compute_order_size, order_qty, paired_sell_price
from spotgrid.grid_engine.level_store import GridLevelStore
from spotgrid.interfaces import IExchangeClient
from spotgrid.models.grid import (
    ActionResult,
    ExchangeOrder,
    IntentAction,
    LevelSnapshot,
    LevelState,
    OrderIntent,
    OrderSide,
    TickReport,
)
from spotgrid.models.state import RunHealth


FILLED_STATUSES = {"filled", "closed"}
CANCELLED_STATUSES = {"canceled", "cancelled", "rejected", "expired"}

# 消失订单的分类结果
VANISHED_FILLED = "filled"
VANISHED_ASSUMED = "assumed"
VANISHED_CANCELLED = "cancelled"


class ReconciliationEngine:
    """
    对账引擎

    每个 run 一个实例；同一个 run 的 tick 不会并发执行
    """

    def __init__(
        self,
        config: GridConfiguration,
        store: GridLevelStore,
        client: IExchangeClient,
        session_id: str = "",
        audit_journal: Optional[IAuditJournal] = None,
        verify_vanished_orders: bool = True,
        api_fault_max_consecutive: int = 3,
    ):
        """
        初始化对账引擎

        Args:
            config: 网格配置（已校验）
            store: 层级存储
            client: 交易所客户端（每个 run 注入，不共享）
            session_id: 会话 ID
            audit_journal: 审计日志
            verify_vanished_orders: 订单消失时是否查询单个订单状态
            api_fault_max_consecutive: 连续故障多少次进入 DEGRADED
        """
        self._config = config
        self._store = store
        self._client = client
        self._session_id = session_id
        self._audit_journal = audit_journal or NullAuditJournal()
        self._verify_vanished_orders = verify_vanished_orders
        self._api_fault_max_consecutive = api_fault_max_consecutive

        # 未取整的单层订单价值，避免累计误差
        self._order_size = compute_order_size(config)

        # 层级价格在构建后不变
        self._level_prices: Dict[int, float] = {
            level.index: level.price for level in store.snapshot()
        }

        # run 级健康度
        self._health = RunHealth.OK
        self._consecutive_faults = 0
        self._last_error: Optional[str] = None
        self._tick_count = 0

    @property
    def symbol(self) -> str:
        return self._config.symbol

    @property
    def order_size(self) -> float:
        """单层订单价值（quote，未取整）"""
        return self._order_size

    @property
    def health(self) -> RunHealth:
        return self._health

    @property
    def consecutive_faults(self) -> int:
        return self._consecutive_faults

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def tick_count(self) -> int:
        return self._tick_count

    # ------------------------------------------------------------------
    # tick
    # ------------------------------------------------------------------

    def run_tick(self) -> TickReport:
        """
        执行一次对账

        1. 获取活跃订单快照（一个 tick 只取一次）
        2. 检测成交 / 外部撤单
        3. 生成补偿订单意图
        4. 执行
        """
        self._tick_count += 1
        report = TickReport()

        try:
            open_orders = self._client.get_open_orders(self.symbol)
        except ExchangeError as e:
            self.record_run_fault(e, source="get_open_orders")
            report.error = f"{type(e).__name__}: {e}"
            return report

        self.record_run_success()

        self.detect_fills(open_orders, report)
        intents = self.pending_intents()
        report.results = self.execute(intents)

        return report

    def detect_fills(
        self,
        open_orders: List[ExchangeOrder],
        report: Optional[TickReport] = None,
    ) -> TickReport:
        """
        比对活跃订单快照，处理消失的挂单

        按价格升序处理；每个层级在一个 tick 内最多迁移一次
        """
        if report is None:
            report = TickReport()

        open_refs = {order.order_ref for order in open_orders}

        for level in self._store.snapshot():
            ref = level.open_order_ref
            if ref is None or ref in open_refs:
                continue

            side = level.fill_state.open_side
            outcome = self._classify_vanished(level, ref, side)

            if outcome is None:
                continue

            if outcome == VANISHED_CANCELLED:
                self._store.mark_cancelled(level.price, side)
                message = (
                    f"Level {level.index} {side.value} order {ref} was cancelled outside the engine"
                )
                self._store.record_error(level.price, message)
                report.inconsistencies.append(message)
                self._audit_level(
                    AuditEventType.STATE_INCONSISTENCY,
                    level,
                    side,
                    reason="external_cancel",
                    order_id=ref,
                    error=message,
                )
                print(f"[Reconciler] {message}; re-arming")
                continue

            self._store.mark_filled(level.price, side)
            report.fills.append((level.index, side))

            event_type = (
                AuditEventType.FILL_DETECTED if outcome == VANISHED_FILLED
                else AuditEventType.FILL_ASSUMED
            )
            self._audit_level(
                event_type,
                level,
                side,
                reason="order_vanished",
                order_id=ref,
            )
            print(f"[Reconciler] L{level.index:02d} {side.value.upper()} filled @ {level.price:,.6f} ({ref})")

        return report

    def _classify_vanished(
        self,
        level: LevelSnapshot,
        ref: str,
        side: OrderSide,
    ) -> Optional[str]:
        """
        区分"成交"和"外部撤单"

        轮询模式下两者不可区分；客户端支持单个订单查询时按其状态处理，
        否则按成交处理并记录 FILL_ASSUMED。查询失败时本 tick 不动该层级。

        Returns:
            VANISHED_FILLED | VANISHED_ASSUMED | VANISHED_CANCELLED | None（跳过）
        """
        if not self._verify_vanished_orders:
            return VANISHED_ASSUMED

        try:
            status = self._client.get_order_status(self.symbol, ref)
        except ExchangeError as e:
            message = f"order status lookup failed for {ref}: {e}"
            self._store.record_error(level.price, message)
            print(f"[Reconciler] L{level.index:02d} {message}")
            return None

        if status is None:
            return VANISHED_ASSUMED

        status = status.lower()
        if status in FILLED_STATUSES:
            return VANISHED_FILLED
        if status in CANCELLED_STATUSES:
            return VANISHED_CANCELLED

        # 仍显示为 open 或部分成交：等下一个快照
        return None

    def apply_fill(self, price: float, side: OrderSide) -> bool:
        """
        处理外部报告的成交

        如果层级没有记录该方向的订单，记录 StateInconsistency 并当作
        未跟踪订单的新成交处理；层级另一方向有挂单时无法迁移，忽略。

        Returns:
            是否发生迁移
        """
        level = self._store.find_level(price)
        if level is None:
            raise StateInconsistency(f"Fill reported at {price} matches no grid level", price=price)

        ref = level.buy_order_ref if side == OrderSide.BUY else level.sell_order_ref

        if ref is None:
            message = f"Level {level.index} reported a {side.value} fill with no recorded order"
            self._store.record_error(level.price, message)
            self._audit_level(
                AuditEventType.STATE_INCONSISTENCY,
                level,
                side,
                reason="untracked_fill",
                error=message,
            )
            print(f"[Reconciler] {message}")

            other = side.opposite
            other_ref = level.buy_order_ref if other == OrderSide.BUY else level.sell_order_ref
            if other_ref is not None:
                return False

        self._store.mark_filled(level.price, side)
        if ref is not None:
            self._audit_level(
                AuditEventType.FILL_DETECTED,
                level,
                side,
                reason="fill_reported",
                order_id=ref,
            )
        return True

    # ------------------------------------------------------------------
    # 决策
    # ------------------------------------------------------------------

    def pending_intents(self) -> List[OrderIntent]:
        """
        根据层级状态生成需要下的订单

        - EMPTY: 在层级价格挂 buy
        - BUY_FILLED: 在配对价格挂 sell，数量 = 买入数量
        - SELL_FILLED: 在原层级价格重新挂 buy
        """
        intents = []

        for level in self._store.snapshot():
            if level.fill_state in (LevelState.EMPTY, LevelState.SELL_FILLED):
                reason = "initial_buy" if level.fill_state == LevelState.EMPTY else "rearm_buy"
                if level.pending_retry:
                    reason = "retry_" + reason
                intents.append(OrderIntent.place(
                    symbol=self.symbol,
                    side=OrderSide.BUY,
                    price=level.price,
                    size=order_qty(self._order_size, level.price),
                    level_index=level.index,
                    reason=reason,
                ))

            elif level.fill_state == LevelState.BUY_FILLED:
                size = level.filled_qty or order_qty(self._order_size, level.price)
                intents.append(OrderIntent.place(
                    symbol=self.symbol,
                    side=OrderSide.SELL,
                    price=paired_sell_price(level.price, self._config.profit_per_grid),
                    size=size,
                    level_index=level.index,
                    reason="retry_paired_sell" if level.pending_retry else "paired_sell",
                ))

        return intents

    def cancel_intents(self, open_orders: List[ExchangeOrder]) -> List[OrderIntent]:
        """为交易所报告的每个活跃订单生成撤单意图"""
        tracked = self._store.open_refs()
        intents = []

        for order in sorted(open_orders, key=lambda o: o.price):
            level_index, side = tracked.get(order.order_ref, (None, order.side))
            intents.append(OrderIntent.cancel(
                symbol=self.symbol,
                order_ref=order.order_ref,
                level_index=level_index,
                side=side,
                reason="stop",
            ))

        return intents

    def tracked_cancel_intents(self) -> List[OrderIntent]:
        """为存储中记录的所有挂单生成撤单意图（交易所不可达时使用）"""
        intents = []
        for ref, (level_index, side) in sorted(self._store.open_refs().items(), key=lambda kv: kv[1][0]):
            intents.append(OrderIntent.cancel(
                symbol=self.symbol,
                order_ref=ref,
                level_index=level_index,
                side=side,
                reason="stop_tracked",
            ))
        return intents

    # ------------------------------------------------------------------
    # 执行
    # ------------------------------------------------------------------

    def execute(self, intents: List[OrderIntent]) -> List[ActionResult]:
        """
        执行订单意图

        每个意图的失败只影响自己的层级
        """
        results = []
        for intent in intents:
            if intent.action == IntentAction.PLACE:
                results.append(self._execute_place(intent))
            else:
                results.append(self._execute_cancel(intent))
        return results

    def _execute_place(self, intent: OrderIntent) -> ActionResult:
        level_price = self._level_prices[intent.level_index]

        try:
            order_ref = self._client.place_order(
                intent.symbol,
                intent.side,
                intent.price,
                intent.size,
            )
            if not order_ref:
                raise ExchangeRejected("Exchange returned an empty order id", symbol=intent.symbol)

        except ExchangeError as e:
            # 只有下单返回 ID 之后才更新层级；失败进入 PendingRetry
            self._store.record_failure(level_price, intent.side, f"{type(e).__name__}: {e}")
            self._audit_intent(AuditEventType.ORDER_REJECTED, intent, error=f"{type(e).__name__}: {e}")
            print(f"[Reconciler] Failed to place {intent.describe()}: {e}")
            return ActionResult(
                intent=intent,
                success=False,
                error=str(e),
                error_type=type(e).__name__,
            )

        try:
            self._store.record_order(level_price, order_ref, intent.side, intent.size)
        except StateInconsistency as e:
            # 不能让一个层级同时持有两个同方向挂单，撤掉刚下的订单
            self._audit_intent(AuditEventType.STATE_INCONSISTENCY, intent, order_id=order_ref, error=str(e))
            print(f"[Reconciler] {e}; cancelling {order_ref}")
            self._execute_cancel(OrderIntent.cancel(
                symbol=intent.symbol,
                order_ref=order_ref,
                level_index=intent.level_index,
                side=intent.side,
                reason="duplicate_order",
            ))
            return ActionResult(
                intent=intent,
                success=False,
                order_ref=order_ref,
                error=str(e),
                error_type=type(e).__name__,
            )

        self._audit_intent(AuditEventType.ORDER_PLACED, intent, order_id=order_ref)
        print(f"[Reconciler] Placed {intent.describe()} ({order_ref})")
        return ActionResult(intent=intent, success=True, order_ref=order_ref)

    def _execute_cancel(self, intent: OrderIntent) -> ActionResult:
        error = None
        error_type = None

        try:
            success = self._client.cancel_order(intent.symbol, intent.order_ref)
            if not success:
                error = "cancel rejected by exchange"
        except ExchangeError as e:
            success = False
            error = str(e)
            error_type = type(e).__name__

        if success:
            self._audit_intent(AuditEventType.ORDER_CANCELLED, intent, order_id=intent.order_ref)
        else:
            self._audit_intent(AuditEventType.CANCEL_FAILED, intent, order_id=intent.order_ref, error=error)
            print(f"[Reconciler] Failed to cancel {intent.order_ref}: {error}")

        return ActionResult(
            intent=intent,
            success=success,
            order_ref=intent.order_ref,
            error=error,
            error_type=error_type,
        )

    # ------------------------------------------------------------------
    # 健康度
    # ------------------------------------------------------------------

    def record_run_fault(self, error: Exception, source: str) -> None:
        """记录 run 级故障；连续故障达到阈值时降级（不停止）"""
        self._consecutive_faults += 1
        self._last_error = f"{source}: {type(error).__name__}: {error}"

        self._audit_journal.write(AuditEvent(
            session_id=self._session_id,
            timestamp=datetime.now(),
            event_type=AuditEventType.EXCHANGE_UNAVAILABLE,
            reason=source,
            error=self._last_error,
            details={"consecutive_faults": self._consecutive_faults},
        ))
        print(f"[Reconciler] {self._last_error} (consecutive={self._consecutive_faults})")

        if (
            self._health == RunHealth.OK
            and self._consecutive_faults >= self._api_fault_max_consecutive
        ):
            self._health = RunHealth.DEGRADED
            self._audit_journal.write(AuditEvent(
                session_id=self._session_id,
                timestamp=datetime.now(),
                event_type=AuditEventType.RUN_DEGRADED,
                reason="api_fault_max_consecutive",
                error=self._last_error,
                details={"consecutive_faults": self._consecutive_faults},
            ))
            print(f"[Reconciler] Run degraded after {self._consecutive_faults} consecutive faults")

    def record_run_success(self) -> None:
        """交易所调用成功，清除故障计数"""
        self._consecutive_faults = 0
        if self._health == RunHealth.DEGRADED:
            self._health = RunHealth.OK
            self._audit_journal.write(AuditEvent(
                session_id=self._session_id,
                timestamp=datetime.now(),
                event_type=AuditEventType.RUN_RECOVERED,
                reason="exchange_reachable",
            ))
            print("[Reconciler] Run recovered")

    # ------------------------------------------------------------------
    # 审计
    # ------------------------------------------------------------------

    def _audit_level(
        self,
        event_type: AuditEventType,
        level: LevelSnapshot,
        side: OrderSide,
        reason: str,
        order_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self._audit_journal.write(AuditEvent.level_event(
            event_type=event_type,
            session_id=self._session_id,
            timestamp=datetime.now(),
            level_index=level.index,
            price=level.price,
            side=side.value,
            reason=reason,
            order_id=order_id,
            error=error,
        ))

    def _audit_intent(
        self,
        event_type: AuditEventType,
        intent: OrderIntent,
        order_id: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self._audit_journal.write(AuditEvent.level_event(
            event_type=event_type,
            session_id=self._session_id,
            timestamp=datetime.now(),
            level_index=intent.level_index,
            price=intent.price if intent.action == IntentAction.PLACE else None,
            side=intent.side.value if intent.side else None,
            reason=intent.reason,
            order_id=order_id,
            error=error,
            details={"size": intent.size} if intent.action == IntentAction.PLACE else None,
        ))
