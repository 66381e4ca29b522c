"""
SlotRegistry — 带世代计数的 id ↔ 槽位索引分配器

每种对象 (群体 / 突触组 / 网络 / 调质系统) 各持有一个 registry:

  allocate(id)  → 已注册则返回原句柄 (无副作用), 否则复用空闲索引或新铸索引
  get(id)       → 句柄或 None (查找失败不是异常)
  release(id)   → 移除映射, 世代 +1, 索引入空闲栈;
                  槽位背后的状态数组由调用方重置为惰性默认值

句柄 = (index, generation)。槽位被释放后世代递增,
旧句柄在 resolve() 时抛出 StaleHandleError, 不会悄悄别名到新对象。

单线程单写者, 无锁。
"""

import logging
from typing import Dict, List, NamedTuple, Optional, Set

from izhinet.errors import StaleHandleError

logger = logging.getLogger(__name__)


class SlotHandle(NamedTuple):
    """槽位句柄"""
    index: int
    generation: int


class SlotRegistry:
    """世代索引槽位表

    核心数据结构:
        _id_to_index / _index_to_id: 双向映射
        _allocated:   当前已分配索引集合
        _free:        空闲索引栈 (LIFO 复用)
        _generations: 每个索引的世代计数
        _next_index:  单调递增的下一个新索引

    不变量:
        - 索引只在 allocate 与 release 之间有效
        - 同一 id 重复 allocate 返回同一句柄
    """

    def __init__(self, kind: str = "slot"):
        self.kind = kind
        self._id_to_index: Dict[str, int] = {}
        self._index_to_id: Dict[int, str] = {}
        self._allocated: Set[int] = set()
        self._free: List[int] = []
        self._generations: List[int] = []
        self._next_index: int = 0

    # =========================================================================
    # 分配与释放
    # =========================================================================

    def allocate(self, obj_id: str) -> SlotHandle:
        """为 id 分配槽位 (幂等)

        Returns:
            该 id 的句柄
        """
        existing = self._id_to_index.get(obj_id)
        if existing is not None:
            return SlotHandle(existing, self._generations[existing])

        if self._free:
            index = self._free.pop()
        else:
            index = self._next_index
            self._next_index += 1
            self._generations.append(0)

        self._id_to_index[obj_id] = index
        self._index_to_id[index] = obj_id
        self._allocated.add(index)
        logger.debug("%s %r → 槽位 %d (世代 %d)",
                     self.kind, obj_id, index, self._generations[index])
        return SlotHandle(index, self._generations[index])

    def release(self, obj_id: str) -> Optional[SlotHandle]:
        """释放 id 的槽位

        Returns:
            被释放的 (旧) 句柄; id 未注册时返回 None
        """
        index = self._id_to_index.pop(obj_id, None)
        if index is None:
            return None

        released = SlotHandle(index, self._generations[index])
        del self._index_to_id[index]
        self._allocated.discard(index)
        self._generations[index] += 1
        self._free.append(index)
        logger.debug("%s %r 释放槽位 %d", self.kind, obj_id, index)
        return released

    # =========================================================================
    # 查询
    # =========================================================================

    def get(self, obj_id: str) -> Optional[SlotHandle]:
        index = self._id_to_index.get(obj_id)
        if index is None:
            return None
        return SlotHandle(index, self._generations[index])

    def is_valid(self, handle: SlotHandle) -> bool:
        index, generation = handle
        return (index in self._allocated
                and self._generations[index] == generation)

    def resolve(self, handle: SlotHandle) -> int:
        """句柄 → 索引, 失效句柄抛出 StaleHandleError"""
        if not self.is_valid(handle):
            raise StaleHandleError(
                f"{self.kind} 句柄 {tuple(handle)} 已失效 "
                f"(槽位已释放或被复用)"
            )
        return handle.index

    def id_of(self, handle: SlotHandle) -> str:
        return self._index_to_id[self.resolve(handle)]

    def handles(self) -> List[SlotHandle]:
        """所有存活句柄 (按索引排序)"""
        return [SlotHandle(i, self._generations[i]) for i in sorted(self._allocated)]

    @property
    def allocated_indices(self) -> Set[int]:
        return set(self._allocated)

    @property
    def capacity(self) -> int:
        """曾经铸出的索引总数 (槽位数组的长度)"""
        return self._next_index

    def __contains__(self, obj_id: str) -> bool:
        return obj_id in self._id_to_index

    def __len__(self) -> int:
        return len(self._allocated)

    def __repr__(self) -> str:
        return (f"SlotRegistry(kind={self.kind!r}, live={len(self)}, "
                f"free={len(self._free)}, next={self._next_index})")
