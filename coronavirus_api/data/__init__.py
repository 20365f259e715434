"""
CoronaVirus API Data

数据抓取、解析与标准化
"""
from .sources import BaseSourceClient, OpenDataClient
from .parsers import BaseParser, TimeSeriesCsvParser
from .processors import build_snapshot, normalize

__all__ = [
    "BaseSourceClient",
    "OpenDataClient",
    "BaseParser",
    "TimeSeriesCsvParser",
    "build_snapshot",
    "normalize",
]
