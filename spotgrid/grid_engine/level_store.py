"""
网格层级存储

内存中的层级表，持有订单 ID 与成交状态，负责全部修改。
单写者：只有对账引擎和生命周期控制器调用修改方法，且同一个 run 不会并发调用。
"""

from typing import Dict, Iterator, List, Optional, Tuple

from spotgrid.config.schema import PRICE_EPSILON
from spotgrid.exceptions import StateInconsistency
from spotgrid.models.grid import GridLevel, LevelSnapshot, LevelState, OrderSide


DEFAULT_PRICE_EPSILON = PRICE_EPSILON


class GridLevelStore:
    """
    网格层级存储

    层级数量和价格在构建后不变，只有 order ref / fill state 会变化
    """

    def __init__(self, levels: List[GridLevel], epsilon: float = DEFAULT_PRICE_EPSILON):
        """
        Args:
            levels: 按价格升序排列的层级
            epsilon: 价格比较容差
        """
        prices = [level.price for level in levels]
        if any(b <= a for a, b in zip(prices, prices[1:])):
            raise ValueError("Grid levels must have strictly increasing prices")

        self._levels = levels
        self._epsilon = epsilon

        # 统计
        self._fill_count = 0
        self._completed_cycles = 0

    def __len__(self) -> int:
        return len(self._levels)

    def __iter__(self) -> Iterator[LevelSnapshot]:
        return iter(self.snapshot())

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @property
    def fill_count(self) -> int:
        """累计成交次数"""
        return self._fill_count

    @property
    def completed_cycles(self) -> int:
        """累计完成的 buy→sell 循环（sell 成交次数）"""
        return self._completed_cycles

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def _find(self, price: float) -> Optional[GridLevel]:
        # 取最近的层级，且必须在容差内
        nearest = min(self._levels, key=lambda level: abs(level.price - price), default=None)
        if nearest is None or abs(nearest.price - price) >= self._epsilon:
            return None
        return nearest

    def _require(self, price: float) -> GridLevel:
        level = self._find(price)
        if level is None:
            raise StateInconsistency(f"No grid level at price {price}", price=price)
        return level

    def find_level(self, price: float) -> Optional[LevelSnapshot]:
        """按价格查找层级（容差匹配）"""
        level = self._find(price)
        return LevelSnapshot.of(level) if level is not None else None

    def snapshot(self) -> List[LevelSnapshot]:
        """按价格升序返回只读视图"""
        return [LevelSnapshot.of(level) for level in self._levels]

    def open_refs(self) -> Dict[str, Tuple[int, OrderSide]]:
        """
        所有挂单的订单 ID

        Returns:
            {order_ref: (level_index, side)}
        """
        refs = {}
        for level in self._levels:
            if level.buy_order_ref:
                refs[level.buy_order_ref] = (level.index, OrderSide.BUY)
            if level.sell_order_ref:
                refs[level.sell_order_ref] = (level.index, OrderSide.SELL)
        return refs

    # ------------------------------------------------------------------
    # 修改
    # ------------------------------------------------------------------

    def record_order(
        self,
        price: float,
        order_ref: str,
        side: OrderSide,
        qty: float = 0.0,
    ) -> LevelSnapshot:
        """
        记录已下单的订单

        层级进入 BUY_OPEN / SELL_OPEN，清除 PendingRetry

        Raises:
            StateInconsistency: 该方向已经有挂单
        """
        level = self._require(price)

        existing = level.order_ref(side)
        if existing is not None:
            raise StateInconsistency(
                f"Level {level.index} already has an open {side.value} order {existing}",
                level_index=level.index,
                price=level.price,
            )

        level.set_order_ref(side, order_ref)
        level.fill_state = LevelState.BUY_OPEN if side == OrderSide.BUY else LevelState.SELL_OPEN
        level.order_qty = qty
        level.pending_retry = False
        level.retry_count = 0
        level.last_error = None

        return LevelSnapshot.of(level)

    def mark_filled(self, price: float, side: OrderSide) -> Optional[str]:
        """
        标记成交

        Returns:
            被清除的订单 ID；None 表示该方向没有记录订单（未跟踪的成交）
        """
        level = self._require(price)

        ref = level.order_ref(side)
        level.set_order_ref(side, None)

        if side == OrderSide.BUY:
            level.fill_state = LevelState.BUY_FILLED
            level.filled_qty = level.order_qty
        else:
            level.fill_state = LevelState.SELL_FILLED
            level.filled_qty = 0.0
            self._completed_cycles += 1

        self._fill_count += 1
        return ref

    def mark_cancelled(self, price: float, side: OrderSide) -> Optional[str]:
        """
        订单在引擎之外被撤销

        回到下单前的状态：buy → EMPTY，sell → BUY_FILLED（仍持有 base，需要重新挂 sell）

        Returns:
            被清除的订单 ID
        """
        level = self._require(price)

        ref = level.order_ref(side)
        level.set_order_ref(side, None)

        if side == OrderSide.BUY:
            level.fill_state = LevelState.EMPTY
        else:
            level.fill_state = LevelState.BUY_FILLED
            level.filled_qty = level.order_qty

        return ref

    def record_failure(self, price: float, side: OrderSide, error: str) -> LevelSnapshot:
        """下单失败，层级进入 PendingRetry（状态不变）"""
        level = self._require(price)

        level.pending_retry = True
        level.retry_count += 1
        level.last_error = f"{side.value}: {error}"

        return LevelSnapshot.of(level)

    def record_error(self, price: float, error: str) -> None:
        """记录层级最近错误（不改变状态）"""
        level = self._require(price)
        level.last_error = error

    def discard_orders(self) -> List[str]:
        """
        丢弃所有订单 ID，层级回到 EMPTY

        Returns:
            被丢弃的订单 ID
        """
        discarded = []
        for level in self._levels:
            for ref in (level.buy_order_ref, level.sell_order_ref):
                if ref:
                    discarded.append(ref)
            level.buy_order_ref = None
            level.sell_order_ref = None
            level.fill_state = LevelState.EMPTY
            level.order_qty = 0.0
            level.filled_qty = 0.0
            level.pending_retry = False
            level.retry_count = 0
            level.last_error = None
        return discarded
