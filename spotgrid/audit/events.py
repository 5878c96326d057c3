"""
审计事件类型定义

每个对外可见的失败都必须带上受影响的层级和动作
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Dict, Optional


class AuditEventType(Enum):
    """审计事件类型"""
    # 状态相关
    STATE_CHANGE = auto()          # 生命周期迁移
    RUN_STARTED = auto()           # 启动（带配置哈希）
    CONFIG_INVALID = auto()        # 配置无效

    # 订单相关
    ORDER_PLACED = auto()          # 下单成功
    ORDER_REJECTED = auto()        # 下单失败（进入 PendingRetry）
    ORDER_CANCELLED = auto()       # 撤单成功
    CANCEL_FAILED = auto()         # 撤单失败

    # 对账相关
    FILL_DETECTED = auto()         # 检测到成交
    FILL_ASSUMED = auto()          # 订单消失且状态未知，按成交处理
    STATE_INCONSISTENCY = auto()   # 本地状态与交易所不一致

    # 连接相关
    EXCHANGE_UNAVAILABLE = auto()  # 交易所不可达
    RUN_DEGRADED = auto()          # 运行降级
    RUN_RECOVERED = auto()         # 运行恢复
    HEALTH_CHECK = auto()          # 健康检查失败


@dataclass
class AuditEvent:
    """
    审计事件

    所有审计事件必须包含：
    - session_id: 会话 ID
    - timestamp: 时间戳
    - event_type: 事件类型
    - reason: 触发原因
    """
    session_id: str
    timestamp: datetime
    event_type: AuditEventType
    reason: str

    # 状态迁移相关
    from_state: Optional[str] = None
    to_state: Optional[str] = None

    # 层级/订单相关
    level_index: Optional[int] = None
    price: Optional[float] = None
    side: Optional[str] = None
    order_id: Optional[str] = None
    error: Optional[str] = None

    # 配置相关
    config_hash: Optional[str] = None

    # 额外信息
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（用于 JSON 序列化）"""
        d = {
            "ts": self.timestamp.isoformat(),
            "session": self.session_id,
            "type": self.event_type.name,
            "reason": self.reason,
        }

        # 添加非空字段
        if self.from_state:
            d["from"] = self.from_state
        if self.to_state:
            d["to"] = self.to_state
        if self.level_index is not None:
            d["level"] = self.level_index
        if self.price is not None:
            d["price"] = self.price
        if self.side:
            d["side"] = self.side
        if self.order_id:
            d["order_id"] = self.order_id
        if self.error:
            d["error"] = self.error
        if self.config_hash:
            d["config_hash"] = self.config_hash
        if self.details:
            d["details"] = self.details

        return d

    @classmethod
    def state_change(
        cls,
        session_id: str,
        timestamp: datetime,
        from_state: str,
        to_state: str,
        reason: str,
    ) -> "AuditEvent":
        """创建状态迁移事件"""
        return cls(
            session_id=session_id,
            timestamp=timestamp,
            event_type=AuditEventType.STATE_CHANGE,
            reason=reason,
            from_state=from_state,
            to_state=to_state,
        )

    @classmethod
    def level_event(
        cls,
        event_type: AuditEventType,
        session_id: str,
        timestamp: datetime,
        level_index: Optional[int],
        price: Optional[float],
        side: Optional[str],
        reason: str,
        order_id: Optional[str] = None,
        error: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> "AuditEvent":
        """创建层级相关事件"""
        return cls(
            session_id=session_id,
            timestamp=timestamp,
            event_type=event_type,
            reason=reason,
            level_index=level_index,
            price=price,
            side=side,
            order_id=order_id,
            error=error,
            details=details or {},
        )
