"""
CoronaVirus API 异常体系

按失败域划分异常，调度器据此决定重试、降级或终止
"""
from typing import Optional


class CoronaApiError(Exception):
    """所有业务异常的基类"""
    pass


class ConfigurationError(CoronaApiError):
    """配置错误（启动期致命）"""
    pass


class TransportError(CoronaApiError):
    """数据源网络/远端错误（可重试）"""
    pass


class ParseError(CoronaApiError):
    """
    数据解析错误（可重试，上游下个周期可能自行修正）

    Args:
        message: 错误描述
        field: 出错的字段名
        row: 出错的行号（CSV 文件中从 1 开始，含表头）
    """

    def __init__(self, message: str, field: Optional[str] = None, row: Optional[int] = None):
        self.field = field
        self.row = row
        location = []
        if field:
            location.append(f"field={field}")
        if row is not None:
            location.append(f"line={row}")
        if location:
            message = f"{message} ({', '.join(location)})"
        super().__init__(message)


class StorageError(CoronaApiError):
    """归档存储读写/删除错误（非致命）"""
    pass


class NotInitializedError(CoronaApiError):
    """首次发布之前读取快照缓存"""
    pass
