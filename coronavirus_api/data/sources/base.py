"""
CoronaVirus API Base Source Client

数据源客户端基类，提供通用的HTTP会话、传输层重试和错误转换
"""
from abc import ABC, abstractmethod
from typing import Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from coronavirus_api.core import TransportError, get_logger

logger = get_logger(__name__)


class BaseSourceClient(ABC):
    """
    数据源客户端基类

    只承担一次抓取的传输细节；周期、退避和失败隔离由刷新调度器负责
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: float = 30,
        max_retries: int = 2,
    ):
        """
        初始化客户端

        Args:
            user_agent: User-Agent字符串
            timeout: 请求超时时间（秒）
            max_retries: 传输层最大重试次数（针对 429/5xx 等瞬时错误）
        """
        self.timeout = timeout

        # 配置Session
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent or "Mozilla/5.0 (compatible; CoronaVirusApi/1.0)",
        })

        # 配置重试策略
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["HEAD", "GET", "OPTIONS"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        logger.info(f"{self.__class__.__name__} initialized")

    def get(self, url: str, **kwargs) -> requests.Response:
        """
        发送GET请求

        Args:
            url: 请求URL
            **kwargs: 额外的请求参数

        Returns:
            Response对象

        Raises:
            TransportError: 网络错误或非 2xx 响应
        """
        try:
            response = self.session.get(url, timeout=self.timeout, **kwargs)
        except requests.Timeout as e:
            logger.warning(f"Source timed out after {self.timeout}s: {url}")
            raise TransportError(f"timeout fetching {url}") from e
        except requests.RequestException as e:
            logger.warning(f"Source unreachable: {url} ({e})")
            raise TransportError(f"cannot reach {url}: {e}") from e

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            logger.warning(f"Source answered HTTP {response.status_code}: {url}")
            raise TransportError(f"HTTP {response.status_code} from {url}") from e

        logger.debug(f"GET {url} -> {response.status_code}, {len(response.content)} bytes")
        return response

    @abstractmethod
    def fetch(self) -> bytes:
        """
        抓取一次完整的原始数据（需要子类实现）

        Returns:
            原始字节

        Raises:
            TransportError: 抓取失败
        """
        pass

    def close(self) -> None:
        self.session.close()

    def __enter__(self):
        """上下文管理器进入"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """上下文管理器退出"""
        self.close()
