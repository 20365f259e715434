"""
CoronaVirus API Data Sources

外部数据源客户端
"""
from .base import BaseSourceClient
from .open_data import OpenDataClient

__all__ = [
    "BaseSourceClient",
    "OpenDataClient",
]
