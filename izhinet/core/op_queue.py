"""
OperationQueue — 批量延迟操作队列 + flush 屏障

仿真中唯一的挂起点:
1. 外部适配器在两个 tick 之间提交写操作 (submit), 暂存在队列中
2. flush() 按 FIFO 顺序执行全部待处理操作
3. 然后依次调用已注册的屏障钩子 (协作式调度器/数值检查挂在这里)
4. 最后检查取消标志, 被取消则抛出 SimulationCancelled

设计原则:
- 队列只做"暂存 + 按序执行", 不解析操作内容
- 待处理数量超过 max_pending 时, submit 会强制 flush, 限制未执行操作的数量
- 取消只在屏障处被观察到; 已执行的操作不回滚

典型使用模式:
```python
queue = OperationQueue()
queue.submit(lambda: populations.inject_current(pop, offsets, amounts))
...
queue.drain()      # tick 开始: 写入生效
...                # 流水线
queue.flush()      # tick 结束: 屏障
```
"""

import logging
from collections import deque
from typing import Callable, Deque, List

from izhinet.errors import ConfigurationError, SimulationCancelled

logger = logging.getLogger(__name__)

Operation = Callable[[], None]
BarrierHook = Callable[[], None]


class OperationQueue:
    """延迟操作队列

    核心数据结构:
        _pending: deque[Operation]
            当前等待执行的操作 (FIFO)
        _hooks: list[BarrierHook]
            每次 flush 末尾调用的屏障钩子

    不变量:
        - 执行顺序 = 提交顺序
        - drain/flush 后 _pending 为空
    """

    def __init__(self, max_pending: int = 1024):
        if max_pending < 1:
            raise ConfigurationError(f"max_pending 必须 ≥ 1, 得到 {max_pending}")
        self.max_pending = max_pending

        self._pending: Deque[Operation] = deque()
        self._hooks: List[BarrierHook] = []
        self._cancelled = False

        # 统计计数器
        self._total_submitted: int = 0
        self._total_executed: int = 0
        self._total_flushes: int = 0

    # =========================================================================
    # 提交与执行
    # =========================================================================

    def submit(self, op: Operation) -> None:
        """提交一个延迟操作

        队列已满时先强制 flush, 再入队。
        """
        if len(self._pending) >= self.max_pending:
            logger.warning("待处理操作达到上限 %d, 强制 flush", self.max_pending)
            self.flush()
        self._pending.append(op)
        self._total_submitted += 1

    def drain(self) -> int:
        """按提交顺序执行所有待处理操作并清空队列 (不触发钩子)

        执行中途抛出异常时, 已执行的操作保持生效, 剩余操作留在队列中。

        Returns:
            本次执行的操作数
        """
        count = 0
        while self._pending:
            op = self._pending.popleft()
            op()
            count += 1
        self._total_executed += count
        return count

    def flush(self) -> int:
        """屏障: drain + 屏障钩子 + 取消检查

        Returns:
            本次执行的操作数
        """
        count = self.drain()
        for hook in self._hooks:
            hook()
        self._total_flushes += 1
        if self._cancelled:
            self._cancelled = False
            raise SimulationCancelled("仿真在 flush 屏障处被取消")
        return count

    # =========================================================================
    # 钩子与取消
    # =========================================================================

    def add_barrier_hook(self, hook: BarrierHook) -> None:
        self._hooks.append(hook)

    def remove_barrier_hook(self, hook: BarrierHook) -> None:
        if hook in self._hooks:
            self._hooks.remove(hook)

    def cancel(self) -> None:
        """请求取消; 下一次 flush 抛出 SimulationCancelled"""
        self._cancelled = True

    @property
    def cancel_requested(self) -> bool:
        return self._cancelled

    def clear(self) -> None:
        """丢弃所有待处理操作 (不执行)"""
        self._pending.clear()

    # =========================================================================
    # 状态查询
    # =========================================================================

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def total_submitted(self) -> int:
        return self._total_submitted

    @property
    def total_executed(self) -> int:
        return self._total_executed

    @property
    def total_flushes(self) -> int:
        return self._total_flushes

    def __repr__(self) -> str:
        return (
            f"OperationQueue(pending={self.pending_count}, "
            f"submitted={self.total_submitted}, "
            f"executed={self.total_executed}, "
            f"flushes={self.total_flushes})"
        )
