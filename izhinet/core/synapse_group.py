"""
SynapseGroupStore — 稀疏突触组: 传递 + 三因子学习 (arena + 句柄)

同一突触组内的突触共享:
  - 突触前/后群体
  - 突触类型 (AMPA/NMDA/GABA_A/GABA_B)
  - 权重边界与 STDP 参数

核心数据 (并行数组, 长度均为 S):
  pre_indices[S]:  突触前神经元在源群体中的索引
  post_indices[S]: 突触后神经元在目标群体中的索引
  weights[S]:      可学习权重
  eligibility[S]:  资格痕迹 (待奖励兑现的信用)

电流计算 (稀疏 scatter-add, 代价 O(S), 与群体大小无关):
  active[k]  = fired_pre[pre_indices[k]]
  I_post[i] += Σ_{k: post_indices[k]==i, active[k]} weights[k]

不变量:
  - len(pre_indices) == len(post_indices) == len(weights) == len(eligibility)
  - 每次写权重都裁剪到 [min_weight, max_weight] (Dale 定律边界)
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from izhinet.core.population import PopulationStore
from izhinet.core.registry import SlotHandle, SlotRegistry
from izhinet.errors import (
    ConfigurationError,
    ShapeMismatchError,
    as_index_array,
    check_index_range,
    check_same_length,
)
from izhinet.signal_types import SynapseType
from izhinet.synapse.params import (
    ELIGIBILITY_DECAY,
    ELIGIBILITY_RETAIN_AFTER_REWARD,
    SynapseGroupOptions,
)

logger = logging.getLogger(__name__)


def _empty(dtype=np.float64) -> np.ndarray:
    return np.zeros(0, dtype=dtype)


@dataclass
class SynapseGroupState:
    """单个突触组的全部状态 (arena 中的一个结构体)

    默认值即释放后的惰性空槽。
    """
    pre: Optional[SlotHandle] = None
    post: Optional[SlotHandle] = None
    synapse_type: SynapseType = SynapseType.AMPA
    plastic: bool = True

    pre_indices: np.ndarray = field(default_factory=lambda: _empty(np.int64))
    post_indices: np.ndarray = field(default_factory=lambda: _empty(np.int64))
    weights: np.ndarray = field(default_factory=_empty)
    min_weight: float = 0.0
    max_weight: float = 0.5

    # STDP 痕迹: pre_trace 长度 = 突触前群体大小, post_trace 长度 = 突触后群体大小
    pre_trace: np.ndarray = field(default_factory=_empty)
    post_trace: np.ndarray = field(default_factory=_empty)
    eligibility: np.ndarray = field(default_factory=_empty)

    tau_plus: float = 20.0
    tau_minus: float = 20.0
    a_plus: float = 0.01
    a_minus: float = 0.012
    # 预计算衰减因子 exp(-1/τ), 只在分配时计算一次
    decay_plus: float = 0.951229424500714
    decay_minus: float = 0.951229424500714

    @property
    def synapse_count(self) -> int:
        return len(self.weights)


class SynapseGroupStore:
    """突触组 arena

    使用示例:
        conn = all_to_all(10, 5)
        syn = store.allocate("e_to_i", pre_pop, post_pop,
                             conn.pre_indices, conn.post_indices)

        # 每步:
        store.transmit(syn)
        store.update_traces(syn)
        store.apply_stdp(syn)
        store.apply_reward(syn, reward)
    """

    def __init__(self, populations: PopulationStore, rng: np.random.Generator):
        self.registry = SlotRegistry("synapse_group")
        self._slots: List[SynapseGroupState] = []
        self._populations = populations
        self._rng = rng

    # =========================================================================
    # 分配与释放
    # =========================================================================

    def allocate(
        self,
        group_id: str,
        pre: SlotHandle,
        post: SlotHandle,
        pre_indices,
        post_indices,
        options: Optional[SynapseGroupOptions] = None,
    ) -> SlotHandle:
        """分配一个突触组

        Dale 定律:
        - 权重边界由突触前群体决定 (兴奋 [0, 0.5], 抑制 [-1, 0])
        - 突触类型自动推断: 兴奋 → AMPA, 抑制 → GABA_A

        所有校验在修改 registry 之前完成; 校验失败不留下任何部分状态。

        Args:
            group_id: 唯一 id (已存在则直接返回原句柄)
            pre / post: 突触前/后群体句柄
            pre_indices / post_indices: 等长整数数组 (连接模式生成器的输出)
            options: 覆盖项

        Returns:
            突触组句柄
        """
        existing = self.registry.get(group_id)
        if existing is not None:
            return existing

        options = options or SynapseGroupOptions()
        pre_state = self._populations.state(pre)
        post_state = self._populations.state(post)

        pre_idx = as_index_array("pre_indices", pre_indices)
        post_idx = as_index_array("post_indices", post_indices)
        n_syn = check_same_length(pre_indices=pre_idx, post_indices=post_idx)
        check_index_range("pre_indices", pre_idx, pre_state.size)
        check_index_range("post_indices", post_idx, post_state.size)

        # Dale 定律: 类型与边界由突触前群体推断
        auto_type = SynapseType.AMPA if pre_state.excitatory else SynapseType.GABA_A
        synapse_type = options.synapse_type or auto_type
        dale_min, dale_max = self._populations.get_weight_bounds(pre)
        w_min = dale_min if options.min_weight is None else float(options.min_weight)
        w_max = dale_max if options.max_weight is None else float(options.max_weight)
        if w_min > w_max:
            raise ConfigurationError(f"权重下界大于上界: [{w_min}, {w_max}]")

        if options.initial_weights is not None:
            weights = np.asarray(options.initial_weights, dtype=np.float64).ravel()
            if len(weights) != n_syn:
                raise ShapeMismatchError(
                    f"initial_weights 长度 {len(weights)} ≠ 突触数 {n_syn}"
                )
            weights = np.clip(weights, w_min, w_max)
        else:
            weights = self._draw_weights(n_syn, w_min, w_max)

        stdp = options.resolve_stdp(synapse_type)

        handle = self.registry.allocate(group_id)
        state = SynapseGroupState(
            pre=pre,
            post=post,
            synapse_type=synapse_type,
            plastic=options.plastic,
            pre_indices=pre_idx.copy(),
            post_indices=post_idx.copy(),
            weights=weights,
            min_weight=w_min,
            max_weight=w_max,
            pre_trace=np.zeros(pre_state.size),
            post_trace=np.zeros(post_state.size),
            eligibility=np.zeros(n_syn),
            tau_plus=stdp.tau_plus,
            tau_minus=stdp.tau_minus,
            a_plus=stdp.a_plus,
            a_minus=stdp.a_minus,
            decay_plus=stdp.decay_plus,
            decay_minus=stdp.decay_minus,
        )
        self._put(handle.index, state)
        logger.debug("突触组 %r: S=%d, type=%s, bounds=[%g, %g], plastic=%s",
                     group_id, n_syn, synapse_type.value, w_min, w_max, options.plastic)
        return handle

    def get(self, group_id: str) -> Optional[SlotHandle]:
        return self.registry.get(group_id)

    def release(self, group_id: str) -> None:
        released = self.registry.release(group_id)
        if released is not None:
            self._slots[released.index] = SynapseGroupState()

    def _put(self, index: int, state: SynapseGroupState) -> None:
        while len(self._slots) <= index:
            self._slots.append(SynapseGroupState())
        self._slots[index] = state

    def state(self, handle: SlotHandle) -> SynapseGroupState:
        """突触组状态的实时视图 (可视化/导出只读)"""
        return self._slots[self.registry.resolve(handle)]

    def _draw_weights(self, n: int, w_min: float, w_max: float) -> np.ndarray:
        return w_min + self._rng.random(n) * (w_max - w_min)

    # =========================================================================
    # 脉冲传递
    # =========================================================================

    def transmit(self, handle: SlotHandle) -> None:
        """突触前发放 → 突触后电流 (稀疏 scatter-add)

        使用突触前群体最近一次 integrate 的 fired 状态。
        多个突触指向同一突触后神经元时电流累加; 不构造稠密矩阵。
        """
        g = self.state(handle)
        if g.synapse_count == 0:
            return
        pre_fired = self._populations.state(g.pre).fired
        post_state = self._populations.state(g.post)

        active = pre_fired[g.pre_indices]
        if not active.any():
            return

        contribution = np.where(active, g.weights, 0.0)
        np.add.at(post_state.current, g.post_indices, contribution)

    # =========================================================================
    # 可塑性
    # =========================================================================

    def update_traces(self, handle: SlotHandle) -> None:
        """STDP 痕迹: 指数衰减 + 发放神经元 +1

        泄漏累加器近似"最近一次发放的新近程度", 不是字面时间戳。
        """
        g = self.state(handle)
        if not g.plastic:
            return
        pre_fired = self._populations.state(g.pre).fired
        post_fired = self._populations.state(g.post).fired

        g.pre_trace *= g.decay_plus
        g.post_trace *= g.decay_minus
        g.pre_trace[pre_fired] += 1.0
        g.post_trace[post_fired] += 1.0

    def apply_stdp(self, handle: SlotHandle, direct_update: bool = False) -> None:
        """STDP → 资格痕迹 (不直接改权重)

        LTP: 突触后刚发放 且 突触前近期活跃 → +A+ · pre_trace
        LTD: 突触前刚发放 且 突触后近期活跃 → −A- · post_trace
        e ← 0.95 · e + Δw

        Args:
            direct_update: 同时把 Δw 直接裁剪写入权重 (绕过奖励门控,
                仅用于诊断/无奖励实验)
        """
        g = self.state(handle)
        if not g.plastic or g.synapse_count == 0:
            return
        pre_fired = self._populations.state(g.pre).fired
        post_fired = self._populations.state(g.post).fired

        pre_trace_at_syn = g.pre_trace[g.pre_indices]
        post_trace_at_syn = g.post_trace[g.post_indices]
        pre_fired_at_syn = pre_fired[g.pre_indices]
        post_fired_at_syn = post_fired[g.post_indices]

        ltp = np.where(post_fired_at_syn, g.a_plus * pre_trace_at_syn, 0.0)
        ltd = np.where(pre_fired_at_syn, -g.a_minus * post_trace_at_syn, 0.0)
        dw = ltp + ltd

        g.eligibility *= ELIGIBILITY_DECAY
        g.eligibility += dw

        if direct_update:
            self._write_weights(g, g.weights + dw)

    def apply_reward(self, handle: SlotHandle, reward: float) -> None:
        """第三因子: 奖励 × 资格痕迹 → 权重变化

        w ← clip(w + R · e);  e ← 0.5 · e (部分消耗)
        """
        g = self.state(handle)
        if not g.plastic or g.synapse_count == 0:
            return
        self._write_weights(g, g.weights + g.eligibility * float(reward))
        g.eligibility *= ELIGIBILITY_RETAIN_AFTER_REWARD

    def scale_weights(self, handle: SlotHandle, factor: float) -> None:
        """乘性缩放权重并重新裁剪 (稳态可塑性用)"""
        g = self.state(handle)
        self._write_weights(g, g.weights * float(factor))

    @staticmethod
    def _write_weights(g: SynapseGroupState, new_weights: np.ndarray) -> None:
        np.clip(new_weights, g.min_weight, g.max_weight, out=g.weights)

    # =========================================================================
    # 状态管理
    # =========================================================================

    def reset_learning(self, handle: SlotHandle) -> None:
        """清零 STDP 痕迹与资格痕迹 (训练回合之间)"""
        g = self.state(handle)
        g.pre_trace[:] = 0.0
        g.post_trace[:] = 0.0
        g.eligibility[:] = 0.0

    def reset_weights(self, handle: SlotHandle) -> None:
        """在边界内重新均匀随机初始化权重"""
        g = self.state(handle)
        g.weights[:] = self._draw_weights(g.synapse_count, g.min_weight, g.max_weight)

    def stats(self, handle: SlotHandle) -> Dict[str, float]:
        """权重与资格痕迹统计"""
        g = self.state(handle)
        if g.synapse_count == 0:
            return {"mean_weight": 0.0, "min_weight": 0.0,
                    "max_weight": 0.0, "mean_eligibility": 0.0}
        return {
            "mean_weight": float(g.weights.mean()),
            "min_weight": float(g.weights.min()),
            "max_weight": float(g.weights.max()),
            "mean_eligibility": float(np.abs(g.eligibility).mean()),
        }

    def mean_weight(self, handle: SlotHandle) -> float:
        g = self.state(handle)
        return float(g.weights.mean()) if g.synapse_count > 0 else 0.0

    def handles(self) -> List[SlotHandle]:
        return self.registry.handles()

    def __len__(self) -> int:
        return len(self.registry)

    def __repr__(self) -> str:
        return f"SynapseGroupStore(groups={len(self)})"
