"""
SlotRegistry + OperationQueue 验证测试

Case 1: 分配幂等, 索引连续
Case 2: 释放后索引复用, 世代递增
Case 3: 旧句柄失效 → StaleHandleError
Case 4: 队列 FIFO 执行 + 屏障钩子顺序
Case 5: 取消在屏障处抛出, 之后恢复
Case 6: 超过 max_pending 强制 flush
Case 7: 满队列 drain 保持顺序; 中途异常时剩余操作留在队列
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from izhinet.core.registry import SlotHandle, SlotRegistry
from izhinet.core.op_queue import OperationQueue
from izhinet.errors import ConfigurationError, SimulationCancelled, StaleHandleError


def print_header(title: str):
    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}")


# =============================================================================
# SlotRegistry
# =============================================================================

def test_case_1_allocate_idempotent():
    """Case 1: 同一 id 重复分配返回同一句柄"""
    print_header("Case 1: 分配幂等")

    reg = SlotRegistry("population")
    a = reg.allocate("a")
    b = reg.allocate("b")
    a_again = reg.allocate("a")

    print(f"  {reg}")
    assert a == SlotHandle(0, 0), f"首个句柄应为 (0, 0), 得到 {a}"
    assert b == SlotHandle(1, 0), f"第二个句柄应为 (1, 0), 得到 {b}"
    assert a_again == a, "重复分配应返回同一句柄"
    assert len(reg) == 2
    assert "a" in reg and "c" not in reg
    assert reg.get("c") is None, "未注册 id 查找应返回 None"
    assert reg.id_of(b) == "b"
    print("  ✅ PASS")


def test_case_2_release_and_reuse():
    """Case 2: 释放的索引被复用, 世代 +1"""
    print_header("Case 2: 索引复用")

    reg = SlotRegistry("synapse_group")
    reg.allocate("x")
    reg.allocate("y")

    released = reg.release("x")
    assert released == SlotHandle(0, 0), f"应返回被释放的旧句柄, 得到 {released}"
    assert reg.get("x") is None
    assert reg.release("x") is None, "重复释放应返回 None"
    assert reg.allocated_indices == {1}

    z = reg.allocate("z")
    print(f"  复用后: {z}, {reg}")
    assert z == SlotHandle(0, 1), f"应复用索引 0 且世代为 1, 得到 {z}"
    assert reg.capacity == 2, "复用不应铸出新索引"
    assert [h.index for h in reg.handles()] == [0, 1]
    print("  ✅ PASS")


def test_case_3_stale_handle():
    """Case 3: 释放 (并复用) 后旧句柄失效"""
    print_header("Case 3: 句柄失效")

    reg = SlotRegistry("network")
    old = reg.allocate("net")
    assert reg.resolve(old) == 0

    reg.release("net")
    assert not reg.is_valid(old)
    with pytest.raises(StaleHandleError):
        reg.resolve(old)

    new = reg.allocate("other")
    assert new.index == old.index, "索引应被复用"
    assert not reg.is_valid(old), "复用后旧句柄仍应失效, 不能别名到新对象"
    assert reg.is_valid(new)
    print("  ✅ PASS")


# =============================================================================
# OperationQueue
# =============================================================================

def test_case_4_fifo_and_hooks():
    """Case 4: flush 按提交顺序执行, 钩子在全部操作之后"""
    print_header("Case 4: FIFO + 屏障钩子")

    queue = OperationQueue()
    log = []
    queue.add_barrier_hook(lambda: log.append("hook"))
    for i in range(3):
        queue.submit(lambda i=i: log.append(i))

    assert queue.pending_count == 3
    assert log == [], "提交时不应执行"

    executed = queue.flush()
    print(f"  执行顺序: {log}")
    assert executed == 3
    assert log == [0, 1, 2, "hook"], f"执行顺序错误: {log}"
    assert queue.pending_count == 0

    # drain 不触发钩子
    queue.submit(lambda: log.append("late"))
    queue.drain()
    assert log[-1] == "late"
    assert log.count("hook") == 1
    print(f"  {queue}")
    print("  ✅ PASS")


def test_case_5_cancel_at_barrier():
    """Case 5: cancel 后下一次 flush 抛出, 标志随后复位"""
    print_header("Case 5: 取消")

    queue = OperationQueue()
    done = []
    queue.submit(lambda: done.append(1))
    queue.cancel()
    assert queue.cancel_requested

    with pytest.raises(SimulationCancelled):
        queue.flush()
    assert done == [1], "取消前排队的操作仍应执行"
    assert not queue.cancel_requested

    queue.flush()
    print("  ✅ PASS")


def test_case_6_forced_flush():
    """Case 6: 待处理数达到上限时 submit 强制 flush"""
    print_header("Case 6: 强制 flush")

    queue = OperationQueue(max_pending=2)
    done = []
    queue.submit(lambda: done.append("a"))
    queue.submit(lambda: done.append("b"))
    assert done == []

    queue.submit(lambda: done.append("c"))
    print(f"  已执行: {done}, 待处理: {queue.pending_count}")
    assert done == ["a", "b"]
    assert queue.pending_count == 1
    assert queue.total_flushes == 1

    queue.clear()
    assert queue.pending_count == 0

    with pytest.raises(ConfigurationError):
        OperationQueue(max_pending=0)
    print("  ✅ PASS")



def test_case_7_drain_large_queue():
    """Case 7: 上万个操作按提交顺序执行; 某操作抛出时只消费到它为止"""
    print_header("Case 7: 大队列 drain")

    n = 10000
    queue = OperationQueue(max_pending=n)
    order = []
    for i in range(n):
        queue.submit(lambda i=i: order.append(i))
    assert queue.pending_count == n
    assert queue.drain() == n
    assert order == list(range(n))
    assert queue.pending_count == 0

    def boom():
        raise RuntimeError("boom")

    queue.submit(lambda: order.append("before"))
    queue.submit(boom)
    queue.submit(lambda: order.append("after"))
    with pytest.raises(RuntimeError):
        queue.drain()
    assert order[-1] == "before"
    assert queue.pending_count == 1, "异常之后的操作应留在队列中"
    queue.drain()
    assert order[-1] == "after"
    print("  ✅ PASS")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v", "-s"]))
