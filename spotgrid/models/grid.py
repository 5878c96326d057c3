"""
网格层级、订单与订单意图模型
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Optional


class OrderSide(Enum):
    """订单方向"""
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self == OrderSide.BUY else OrderSide.BUY


class LevelState(Enum):
    """
    层级成交状态

    循环（运行期间无终态）:
    EMPTY → BUY_OPEN → BUY_FILLED → SELL_OPEN → SELL_FILLED → BUY_OPEN → ...
    """
    EMPTY = "empty"
    BUY_OPEN = "buy_open"
    BUY_FILLED = "buy_filled"
    SELL_OPEN = "sell_open"
    SELL_FILLED = "sell_filled"

    @property
    def open_side(self) -> Optional[OrderSide]:
        """挂单方向"""
        if self == LevelState.BUY_OPEN:
            return OrderSide.BUY
        if self == LevelState.SELL_OPEN:
            return OrderSide.SELL
        return None


@dataclass
class GridLevel:
    """
    网格层级

    价格在布局时固定，只有订单 ID / 状态会变化。
    只允许 GridLevelStore 修改。
    """
    index: int                                  # 层级 ID（从低到高）
    price: float                                # 价格
    buy_order_ref: Optional[str] = None         # 当前 buy 挂单
    sell_order_ref: Optional[str] = None        # 当前 sell 挂单
    fill_state: LevelState = LevelState.EMPTY

    order_qty: float = 0.0     # 当前/最近订单的数量（base）
    filled_qty: float = 0.0    # buy 成交数量，用于配对 sell

    # PendingRetry 子状态
    pending_retry: bool = False
    retry_count: int = 0
    last_error: Optional[str] = None

    def order_ref(self, side: OrderSide) -> Optional[str]:
        return self.buy_order_ref if side == OrderSide.BUY else self.sell_order_ref

    def set_order_ref(self, side: OrderSide, ref: Optional[str]) -> None:
        if side == OrderSide.BUY:
            self.buy_order_ref = ref
        else:
            self.sell_order_ref = ref

    @property
    def open_order_ref(self) -> Optional[str]:
        """当前挂单的订单 ID"""
        side = self.fill_state.open_side
        if side is None:
            return None
        return self.order_ref(side)


@dataclass(frozen=True)
class LevelSnapshot:
    """层级只读视图（给观察者和引擎）"""
    index: int
    price: float
    fill_state: LevelState
    buy_order_ref: Optional[str]
    sell_order_ref: Optional[str]
    order_qty: float
    filled_qty: float
    pending_retry: bool
    retry_count: int
    last_error: Optional[str]

    @classmethod
    def of(cls, level: GridLevel) -> "LevelSnapshot":
        return cls(
            index=level.index,
            price=level.price,
            fill_state=level.fill_state,
            buy_order_ref=level.buy_order_ref,
            sell_order_ref=level.sell_order_ref,
            order_qty=level.order_qty,
            filled_qty=level.filled_qty,
            pending_retry=level.pending_retry,
            retry_count=level.retry_count,
            last_error=level.last_error,
        )

    @property
    def open_order_ref(self) -> Optional[str]:
        side = self.fill_state.open_side
        if side is None:
            return None
        return self.buy_order_ref if side == OrderSide.BUY else self.sell_order_ref

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "price": self.price,
            "fill_state": self.fill_state.value,
            "buy_order_ref": self.buy_order_ref,
            "sell_order_ref": self.sell_order_ref,
            "order_qty": self.order_qty,
            "filled_qty": self.filled_qty,
            "pending_retry": self.pending_retry,
            "retry_count": self.retry_count,
            "last_error": self.last_error,
        }


@dataclass
class ExchangeOrder:
    """
    交易所报告的订单

    status: "open" | "partially_filled" | "filled" | "canceled"
    """
    order_ref: str
    symbol: str = ""
    side: OrderSide = OrderSide.BUY
    price: float = 0.0
    size: float = 0.0
    status: str = "open"

    @property
    def notional(self) -> float:
        """名义价值"""
        return self.price * self.size


class IntentAction(Enum):
    """订单动作"""
    PLACE = auto()
    CANCEL = auto()


@dataclass(frozen=True)
class OrderIntent:
    """
    订单意图

    引擎的决策输出，由执行阶段交给交易所客户端
    """
    action: IntentAction
    symbol: str
    side: Optional[OrderSide] = None
    price: float = 0.0
    size: float = 0.0
    level_index: Optional[int] = None
    order_ref: Optional[str] = None   # CANCEL 时使用
    reason: str = ""

    @classmethod
    def place(
        cls,
        symbol: str,
        side: OrderSide,
        price: float,
        size: float,
        level_index: int,
        reason: str,
    ) -> "OrderIntent":
        return cls(
            action=IntentAction.PLACE,
            symbol=symbol,
            side=side,
            price=price,
            size=size,
            level_index=level_index,
            reason=reason,
        )

    @classmethod
    def cancel(
        cls,
        symbol: str,
        order_ref: str,
        level_index: Optional[int] = None,
        side: Optional[OrderSide] = None,
        reason: str = "",
    ) -> "OrderIntent":
        return cls(
            action=IntentAction.CANCEL,
            symbol=symbol,
            side=side,
            level_index=level_index,
            order_ref=order_ref,
            reason=reason,
        )

    def describe(self) -> str:
        """用于日志的简短描述"""
        level = f"L{self.level_index:02d}" if self.level_index is not None else "L--"
        if self.action == IntentAction.CANCEL:
            return f"{level} cancel {self.order_ref}"
        return f"{level} {self.side.value} {self.size:.6f} @ {self.price:,.6f}"


@dataclass
class ActionResult:
    """单个订单意图的执行结果"""
    intent: OrderIntent
    success: bool
    order_ref: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "action": self.intent.action.name,
            "level_index": self.intent.level_index,
            "side": self.intent.side.value if self.intent.side else None,
            "price": self.intent.price,
            "size": self.intent.size,
            "success": self.success,
            "order_ref": self.order_ref or self.intent.order_ref,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class TickReport:
    """一次对账 tick 的结果"""
    fills: list = field(default_factory=list)              # [(level_index, side)]
    inconsistencies: list = field(default_factory=list)    # [message]
    results: list = field(default_factory=list)            # [ActionResult]
    error: Optional[str] = None                            # run 级错误

    @property
    def action_count(self) -> int:
        return len(self.results)

    @property
    def failed(self) -> list:
        return [r for r in self.results if not r.success]
