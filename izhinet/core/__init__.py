"""
izhinet.core — 向量化仿真核心

- SlotRegistry: 代际槽位分配器 (id ↔ 索引, 句柄失效检测)
- OperationQueue: 延迟操作队列 + flush 屏障
- PopulationStore: Izhikevich 神经元群体 arena
- SynapseGroupStore: 稀疏突触组 arena (传递 + 三因子学习)

网络编排层见 izhinet.core.network。
"""

from izhinet.core.registry import SlotHandle, SlotRegistry
from izhinet.core.op_queue import OperationQueue
from izhinet.core.population import PopulationStore, PopulationState
from izhinet.core.synapse_group import SynapseGroupStore, SynapseGroupState

__all__ = [
    'SlotHandle',
    'SlotRegistry',
    'OperationQueue',
    'PopulationStore',
    'PopulationState',
    'SynapseGroupStore',
    'SynapseGroupState',
]
