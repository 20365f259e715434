"""
CoronaVirus API Archive Writer

把每个已发布的快照持久化到归档存储，用于审计、历史和灾难恢复
"""
import asyncio
from typing import List, Optional

from coronavirus_api.core import StorageError, get_logger
from coronavirus_api.domain import ArchiveEntry, Snapshot

from .keys import ArchiveKey
from .serialization import decode_snapshot, encode_snapshot
from .stores import ArchiveStore

logger = get_logger(__name__)


class ArchiveWriter:
    """
    归档写入器

    同一代号总是写入同一个键，重复保存只会覆盖，不会产生重复条目
    """

    def __init__(self, store: ArchiveStore):
        self.store = store

    async def save(self, snapshot: Snapshot) -> ArchiveEntry:
        """
        保存快照

        Args:
            snapshot: 已发布的快照

        Returns:
            ArchiveEntry

        Raises:
            StorageError: 快照缺少抓取时间、序列化或写入失败
        """
        fetched_at = snapshot.fetched_at
        if fetched_at is None:
            raise StorageError(f"Snapshot {snapshot.generation} has no fetched_at, cannot derive archive key")
        key = ArchiveKey.build(snapshot.generation, fetched_at)

        try:
            blob = await asyncio.to_thread(encode_snapshot, snapshot)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Failed to serialize snapshot {snapshot.generation}: {e}") from e

        await self.store.put(key, blob)
        entry = ArchiveEntry(
            key=key,
            generation=snapshot.generation,
            fetched_at=fetched_at,
            size_bytes=len(blob),
        )
        logger.info(f"Archived snapshot generation {snapshot.generation} as {key} ({len(blob)} bytes)")
        return entry

    async def list_entries(self) -> List[ArchiveKey]:
        """
        列出全部归档条目（按代号升序）

        不符合归档键格式的对象会被忽略
        """
        keys = await self.store.list_keys()
        entries = [parsed for parsed in (ArchiveKey.parse(k) for k in keys) if parsed is not None]
        return sorted(entries, key=lambda e: e.generation)

    async def load(self, key: str) -> Snapshot:
        """
        读取并还原快照

        Raises:
            StorageError: 条目不存在或数据损坏
        """
        blob = await self.store.get(key)
        return await asyncio.to_thread(decode_snapshot, blob)

    async def load_latest(self) -> Optional[Snapshot]:
        """
        读取代号最大的快照

        最新条目损坏时依次回退到更早的条目

        Returns:
            Snapshot，归档为空时返回 None
        """
        entries = await self.list_entries()
        for entry in reversed(entries):
            try:
                return await self.load(str(entry))
            except StorageError as e:
                logger.error(f"Skipping unreadable archive entry {entry}: {e}")
        return None
