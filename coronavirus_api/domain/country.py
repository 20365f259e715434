"""
CoronaVirus API Country Models

国家/地区与逐日观测记录
"""
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Country:
    """
    国家/地区

    code 在同一快照内唯一且稳定；省/州级数据以独立地区出现
    """

    code: str
    name: str
    province: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def display_name(self) -> str:
        """显示名称"""
        if self.province:
            return f"{self.province}, {self.name}"
        return self.name

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "code": self.code,
            "name": self.name,
            "province": self.province,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }

    def __repr__(self) -> str:
        return f"<Country(code='{self.code}', name='{self.display_name}')>"


@dataclass(frozen=True)
class CountryRecord:
    """
    某地区某一天的累计观测值

    同一地区内按日期排序且日期唯一
    """

    date: date
    confirmed: int
    recovered: int
    deceased: int
    country: Country

    @property
    def country_code(self) -> str:
        return self.country.code

    @property
    def active(self) -> int:
        """现存病例数"""
        return self.confirmed - self.recovered - self.deceased

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典（不展开国家信息）"""
        return {
            "country_code": self.country.code,
            "date": self.date.isoformat(),
            "confirmed": self.confirmed,
            "recovered": self.recovered,
            "deceased": self.deceased,
        }

    def __repr__(self) -> str:
        return (
            f"<CountryRecord(country='{self.country.code}', date={self.date}, "
            f"confirmed={self.confirmed})>"
        )
