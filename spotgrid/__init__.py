"""
现货网格交易控制器

Core modules:
- models: 数据模型与类型定义
- config: 配置、校验与网格指标
- grid_engine: 网格布局与层级存储
- execution: 对账引擎与模拟交易所
- state_machine: 运行生命周期状态机
- runtime: 生命周期控制器与轮询循环
- audit: 审计系统
"""

__version__ = "0.1.0"
