"""
CoronaVirus API Data Parsers

把原始数据解析为标准列的 DataFrame
"""

from .base import BaseParser, COUNT_COLUMNS, NORMALIZED_COLUMNS
from .csv_parser import TimeSeriesCsvParser

__all__ = [
    "BaseParser",
    "COUNT_COLUMNS",
    "NORMALIZED_COLUMNS",
    "TimeSeriesCsvParser",
]
