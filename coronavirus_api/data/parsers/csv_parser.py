"""
CoronaVirus API Time Series CSV Parser

解析合并格式的逐日时间序列 CSV：

    Date,Country/Region,Province/State,Lat,Long,Confirmed,Recovered,Deaths
    2020-01-22,Afghanistan,,33.93911,67.709953,0,0,0

校验规则：
1. 日期必须是合法的 YYYY-MM-DD 日历日
2. 计数为非负整数，空值视为 0
3. 同一地区同一日期不得重复（重复是错误，不做去重）
"""
import io
from typing import Dict, List

import pandas as pd

from coronavirus_api.core import ParseError
from .base import BaseParser, COUNT_COLUMNS, NORMALIZED_COLUMNS

# 表头行占第 1 行，数据行号 = 索引 + 2
_HEADER_OFFSET = 2


class TimeSeriesCsvParser(BaseParser):
    """
    时间序列 CSV 解析器

    支持 DataHub 合并格式以及 JHU CSSE 风格的列名
    """

    COLUMN_ALIASES: Dict[str, List[str]] = {
        "date": ["Date"],
        "region": ["Country/Region", "Country_Region", "Country"],
        "province": ["Province/State", "Province_State"],
        "latitude": ["Lat", "Latitude"],
        "longitude": ["Long", "Long_", "Longitude"],
        "code": ["Code", "ISO3", "iso_code"],
        "confirmed": ["Confirmed"],
        "recovered": ["Recovered"],
        "deceased": ["Deaths", "Deceased"],
    }
    REQUIRED = ("date", "region", "confirmed", "recovered", "deceased")

    def parse(self, payload: bytes) -> pd.DataFrame:
        """
        解析 CSV 原始数据

        Args:
            payload: 原始字节

        Returns:
            标准列 DataFrame，行顺序与原始数据一致

        Raises:
            ParseError: 数据格式错误
        """
        if not payload or not payload.strip():
            raise ParseError("Empty payload")

        try:
            text = payload.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ParseError(f"Payload is not valid UTF-8: {e}") from e

        try:
            raw = pd.read_csv(
                io.StringIO(text),
                dtype=str,
                keep_default_na=False,
                skipinitialspace=True,
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ParseError(f"Malformed CSV: {e}") from e

        if raw.empty:
            raise ParseError("Payload contains no records")

        columns = self._resolve_columns(raw.columns, self.COLUMN_ALIASES, self.REQUIRED)
        raw = raw.apply(lambda s: s.str.strip())

        frame = pd.DataFrame(index=raw.index)
        frame["name"] = self._parse_region(raw, columns["region"])
        frame["province"] = self._parse_optional_text(raw, columns["province"])
        frame["latitude"] = self._parse_coordinate(raw, columns["latitude"], 90.0)
        frame["longitude"] = self._parse_coordinate(raw, columns["longitude"], 180.0)
        frame["date"] = self._parse_dates(raw, columns["date"])
        for canonical in COUNT_COLUMNS:
            frame[canonical] = self._parse_counts(raw, columns[canonical])
        frame["code"] = self._build_codes(raw, columns["code"], frame)

        self._check_duplicates(frame, columns["date"])

        self.logger.debug(
            f"Parsed {len(frame)} rows for {frame['code'].nunique()} countries"
        )
        return frame[NORMALIZED_COLUMNS].reset_index(drop=True)

    @staticmethod
    def _first_bad(mask: pd.Series) -> int:
        return int(mask.idxmax()) + _HEADER_OFFSET

    def _parse_region(self, raw: pd.DataFrame, column: str) -> pd.Series:
        values = raw[column]
        blank = values == ""
        if blank.any():
            raise ParseError("Country/region name is empty", field=column, row=self._first_bad(blank))
        return values

    def _parse_optional_text(self, raw: pd.DataFrame, column) -> pd.Series:
        if column is None:
            return pd.Series(None, index=raw.index, dtype=object)
        values = [self._text_or_none(v) for v in raw[column]]
        return pd.Series(values, index=raw.index, dtype=object)

    def _parse_dates(self, raw: pd.DataFrame, column: str) -> pd.Series:
        dates = pd.to_datetime(raw[column], format="%Y-%m-%d", errors="coerce")
        invalid = dates.isna()
        if invalid.any():
            row = self._first_bad(invalid)
            value = raw[column].iloc[row - _HEADER_OFFSET]
            raise ParseError(f"Invalid calendar date '{value}'", field=column, row=row)
        return dates

    def _parse_counts(self, raw: pd.DataFrame, column: str) -> pd.Series:
        values = raw[column].replace("", "0")
        numbers = pd.to_numeric(values, errors="coerce")
        invalid = numbers.isna() | (numbers < 0) | (numbers % 1 != 0)
        if invalid.any():
            row = self._first_bad(invalid)
            value = raw[column].iloc[row - _HEADER_OFFSET]
            raise ParseError(f"Count must be a non-negative integer, got '{value}'", field=column, row=row)
        return numbers.astype("int64")

    def _parse_coordinate(self, raw: pd.DataFrame, column, limit: float) -> pd.Series:
        if column is None:
            return pd.Series(float("nan"), index=raw.index, dtype="float64")
        values = raw[column]
        numbers = pd.to_numeric(values.mask(values == ""), errors="coerce")
        invalid = (values != "") & (numbers.isna() | (numbers.abs() > limit))
        if invalid.any():
            row = self._first_bad(invalid)
            raise ParseError(
                f"Invalid coordinate '{values.iloc[row - _HEADER_OFFSET]}'", field=column, row=row
            )
        return numbers.astype("float64")

    def _build_codes(self, raw: pd.DataFrame, column, frame: pd.DataFrame) -> pd.Series:
        if column is None:
            bases = [self._slugify(name) for name in frame["name"]]
        else:
            bases = [
                code.upper() if code else self._slugify(name)
                for code, name in zip(map(self._text_or_none, raw[column]), frame["name"])
            ]
        codes = [
            base if province is None else f"{base}.{self._slugify(province)}"
            for base, province in zip(bases, map(self._text_or_none, frame["province"]))
        ]
        return pd.Series(codes, index=raw.index, dtype=object)

    def _check_duplicates(self, frame: pd.DataFrame, date_column: str) -> None:
        duplicated = frame.duplicated(subset=["code", "date"], keep="first")
        if duplicated.any():
            row = self._first_bad(duplicated)
            record = frame.iloc[row - _HEADER_OFFSET]
            raise ParseError(
                f"Duplicate record for country '{record['code']}' on {record['date'].date()}",
                field=date_column,
                row=row,
            )
