"""
CoronaVirus API Open Data Client

从公开数据集（JHU CSSE 合并时间序列 CSV）下载原始数据
"""
from typing import Optional

from coronavirus_api.core import TransportError, get_logger
from coronavirus_api.core.config import SourceSettings

from .base import BaseSourceClient

logger = get_logger(__name__)


class OpenDataClient(BaseSourceClient):
    """
    公开数据集客户端

    只配置基础地址和可选的 API 密钥请求头
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        api_key_header: str = "X-Api-Key",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.url = url
        if api_key:
            self.session.headers[api_key_header] = api_key

    @classmethod
    def from_settings(cls, settings: SourceSettings) -> "OpenDataClient":
        """从 SourceSettings 构建"""
        return cls(
            url=settings.url,
            api_key=settings.api_key,
            api_key_header=settings.api_key_header,
            user_agent=settings.user_agent,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
        )

    def fetch(self) -> bytes:
        """
        下载数据集

        Returns:
            原始字节（未解码）

        Raises:
            TransportError: 网络错误、非 2xx 响应或空响应体
        """
        response = self.get(self.url)
        content = response.content
        if not content:
            raise TransportError(f"Empty response body from {self.url}")

        logger.info(f"Fetched {len(content)} bytes from {self.url}")
        return content
