"""
CoronaVirus API Base Parser

基础解析器类，定义通用的解析接口
"""
import re
import unicodedata
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import pandas as pd

from coronavirus_api.core import ParseError, get_logger

# 标准化后的列
NORMALIZED_COLUMNS = [
    "code",
    "name",
    "province",
    "latitude",
    "longitude",
    "date",
    "confirmed",
    "recovered",
    "deceased",
]

COUNT_COLUMNS = ["confirmed", "recovered", "deceased"]


class BaseParser(ABC):
    """
    基础解析器类

    把原始字节转换为标准列的 DataFrame，任何不合法的数据都抛出 ParseError
    """

    def __init__(self):
        """初始化解析器"""
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    def parse(self, payload: bytes) -> pd.DataFrame:
        """
        解析原始数据

        Args:
            payload: 数据源返回的原始字节

        Returns:
            包含 NORMALIZED_COLUMNS 的 DataFrame，保持原始行顺序

        Raises:
            ParseError: 数据格式错误
        """
        pass

    @staticmethod
    def _resolve_columns(
        columns: Iterable[str],
        aliases: Dict[str, List[str]],
        required: Iterable[str],
    ) -> Dict[str, Optional[str]]:
        """
        根据别名表查找实际列名

        Returns:
            标准名 -> 实际列名（缺失的可选列为 None）
        """
        available = {c.strip().lower(): c for c in columns}
        resolved: Dict[str, Optional[str]] = {}
        for canonical, candidates in aliases.items():
            resolved[canonical] = next(
                (available[c.lower()] for c in candidates if c.lower() in available),
                None,
            )
        for canonical in required:
            if resolved.get(canonical) is None:
                raise ParseError(
                    f"Missing required column, expected one of {aliases[canonical]}",
                    field=aliases[canonical][0],
                )
        return resolved

    @staticmethod
    def _text_or_none(value) -> Optional[str]:
        """空字符串与缺失值（None/NaN/NA）统一为 None"""
        if value is None or pd.isna(value):
            return None
        text = str(value).strip()
        return text or None

    @staticmethod
    def _slugify(text: str) -> str:
        """
        生成稳定的大写代码

        例如 "Korea, South" -> "KOREA-SOUTH"
        """
        ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
        slug = re.sub(r"[^A-Z0-9]+", "-", ascii_text.upper()).strip("-")
        return slug or text.strip().upper()
