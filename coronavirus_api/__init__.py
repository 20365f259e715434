"""
CoronaVirus API

周期性拉取公开疫情数据集，维护不可变快照缓存并提供只读查询
"""

__version__ = "1.0.0"
