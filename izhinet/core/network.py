"""
NetworkStore — 网络编排层

网络提供:
1. 群体与突触组的成员分组
2. 与调质系统集成 (优先使用组合可塑性门控作为奖励)
3. E/I 平衡统计与稳态可塑性
4. 供外部驱动循环调用的 step()

网络自己不推进时间: 外部驱动每模拟 1ms 调用一次 step()。
循环只遍历结构 (少量群体/突触组), 每个群体/突触组内部全部向量化。

每步执行顺序 (固定):
  0. 执行上一 tick 之后排队的延迟写操作
  1. 所有突触组 transmit  — 传递的是*上一步* integrate 产生的发放
                           (一个 tick 的传导延迟, 有意保留)
  2. 所有突触组 update_traces
  3. 所有突触组 apply_stdp (只更新资格痕迹)
  4. 解析奖励: 附加的调质系统门控, 否则旧式标量多巴胺;
     |reward| > ε 时对所有突触组 apply_reward
  5. 所有群体 integrate   — 产生本步 fired, 供下一步第 1 步使用
  6. 统计 E/I 发放数
  7. 每 100 步 (若启用) 稳态可塑性
  8. 调质向基线衰减
  9. 时间步 +1
 10. flush 屏障
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from izhinet.config import NetworkConfig, validate_homeostasis
from izhinet.core.op_queue import OperationQueue
from izhinet.core.population import PopulationStore
from izhinet.core.registry import SlotHandle, SlotRegistry
from izhinet.core.synapse_group import SynapseGroupStore
from izhinet.modulation.neuromodulation import ModulationStore
from izhinet.neuron.presets import V_REST

logger = logging.getLogger(__name__)

EPSILON = 1e-8
SCALE_MIN = 0.5
SCALE_MAX = 2.0


@dataclass
class HomeostaticState:
    """单个成员群体的稳态状态

    Attributes:
        avg_rate: float[N], 发放率指数滑动平均 (初始化为目标率)
        scale: float[N], 累积乘性缩放因子 (初始化为 1)
    """
    avg_rate: np.ndarray
    scale: np.ndarray


@dataclass
class NetworkState:
    """单个网络的全部状态"""
    config: NetworkConfig = field(default_factory=NetworkConfig)
    populations: List[SlotHandle] = field(default_factory=list)
    groups: List[SlotHandle] = field(default_factory=list)
    timestep: int = 0

    # 旧式全网络多巴胺 (未附加调质系统时使用)
    dopamine: float = 0.0
    dopamine_decay: float = 0.9

    # 稳态可塑性 (homeostasis 与 populations 一一对应)
    homeostasis_enabled: bool = False
    target_rate: float = 0.05
    homeostatic_tau: float = 1000.0
    homeostasis: List[HomeostaticState] = field(default_factory=list)

    # E/I 平衡 (最近一步)
    exc_spikes: int = 0
    inh_spikes: int = 0


class NetworkStore:
    """网络 arena

    使用示例:
        net = networks.allocate("brain")
        networks.add_population(net, pop_e)
        networks.add_synapse_group(net, syn_ee)
        for t in range(1000):
            populations.inject_current(pop_e, sensor_idx, sensor_drive)
            networks.step(net)
    """

    def __init__(
        self,
        populations: PopulationStore,
        synapses: SynapseGroupStore,
        modulation: ModulationStore,
        queue: OperationQueue,
    ):
        self.registry = SlotRegistry("network")
        self._slots: List[NetworkState] = []
        self._populations = populations
        self._synapses = synapses
        self._modulation = modulation
        self._queue = queue

    # =========================================================================
    # 分配与成员管理
    # =========================================================================

    def allocate(self, net_id: str, config: Optional[NetworkConfig] = None) -> SlotHandle:
        existing = self.registry.get(net_id)
        if existing is not None:
            return existing
        config = config or NetworkConfig()

        handle = self.registry.allocate(net_id)
        state = NetworkState(
            config=config,
            dopamine_decay=config.dopamine_decay,
            target_rate=config.target_rate,
            homeostatic_tau=config.homeostasis_tau,
        )
        while len(self._slots) <= handle.index:
            self._slots.append(NetworkState())
        self._slots[handle.index] = state
        logger.info("网络 %r 已创建 (槽位 %d)", net_id, handle.index)
        return handle

    def get(self, net_id: str) -> Optional[SlotHandle]:
        return self.registry.get(net_id)

    def release(self, net_id: str, cascade: bool = False) -> None:
        """释放网络

        Args:
            cascade: 同时释放成员突触组、成员群体以及同名调质系统
        """
        handle = self.registry.get(net_id)
        if handle is None:
            return
        net = self.state(handle)
        if cascade:
            for g in net.groups:
                if self._synapses.registry.is_valid(g):
                    self._synapses.release(self._synapses.registry.id_of(g))
            for p in net.populations:
                if self._populations.registry.is_valid(p):
                    self._populations.release(self._populations.registry.id_of(p))
            self._modulation.release(net_id)

        self.registry.release(net_id)
        self._slots[handle.index] = NetworkState()
        logger.info("网络 %r 已释放 (cascade=%s)", net_id, cascade)

    def state(self, handle: SlotHandle) -> NetworkState:
        return self._slots[self.registry.resolve(handle)]

    def add_population(self, handle: SlotHandle, pop: SlotHandle) -> None:
        """加入群体并初始化其稳态状态 (幂等)"""
        net = self.state(handle)
        if pop in net.populations:
            return
        size = self._populations.state(pop).size
        net.populations.append(pop)
        net.homeostasis.append(HomeostaticState(
            avg_rate=np.full(size, net.target_rate),
            scale=np.ones(size),
        ))

    def add_synapse_group(self, handle: SlotHandle, group: SlotHandle) -> None:
        """加入突触组 (幂等)"""
        net = self.state(handle)
        self._synapses.state(group)
        if group not in net.groups:
            net.groups.append(group)

    # =========================================================================
    # 仿真步
    # =========================================================================

    def step(self, handle: SlotHandle, dt: float = 1.0) -> None:
        """推进网络一个时间步 (见模块文档的固定执行顺序)

        不得对同一网络并发调用。失败时状态停留在最后一个完成的子操作处。
        """
        net = self.state(handle)
        net_id = self.registry.id_of(handle)
        syn = self._synapses

        self._queue.drain()

        # 1. 传递上一步的发放
        for g in net.groups:
            syn.transmit(g)

        # 2. STDP 痕迹
        for g in net.groups:
            syn.update_traces(g)

        # 3. STDP → 资格痕迹
        for g in net.groups:
            syn.apply_stdp(g, direct_update=False)

        # 4. 奖励 (第三因子)
        mod = self._modulation.get(net_id)
        if mod is not None:
            reward = self._modulation.plasticity_gate(mod)
        else:
            reward = net.dopamine

        if abs(reward) > net.config.reward_threshold:
            for g in net.groups:
                syn.apply_reward(g, reward)
            if mod is None:
                net.dopamine *= net.dopamine_decay

        # 5. 积分所有群体
        for p in net.populations:
            self._populations.integrate(p, dt)

        # 6. E/I 平衡
        self._update_ei_balance(net)

        # 7. 周期性稳态可塑性
        interval = net.config.homeostasis_interval
        if net.homeostasis_enabled and net.timestep > 0 and net.timestep % interval == 0:
            self._apply_homeostasis(net)

        # 8. 调质衰减
        if mod is not None:
            self._modulation.decay(mod)

        # 9. 时间步
        net.timestep += 1

        # 10. 屏障
        self._queue.flush()

    def evaluate(self, handle: SlotHandle) -> None:
        """显式同步点: 执行所有排队操作并触发屏障钩子"""
        self.state(handle)
        self._queue.flush()

    # =========================================================================
    # 奖励
    # =========================================================================

    def set_reward(self, handle: SlotHandle, reward: float) -> None:
        """设置旧式多巴胺/奖励信号 (未附加调质系统时生效)"""
        self.state(handle).dopamine = float(reward)

    def set_dopamine_decay(self, handle: SlotHandle, decay: float) -> None:
        self.state(handle).dopamine_decay = float(decay)

    def reset(self, handle: SlotHandle) -> None:
        """重置网络: 群体回静息, 学习状态清零 (保留权重), 多巴胺与时间步归零"""
        net = self.state(handle)
        for p in net.populations:
            self._populations.reset(p)
        for g in net.groups:
            self._synapses.reset_learning(g)
        net.dopamine = 0.0
        net.timestep = 0

    def timestep(self, handle: SlotHandle) -> int:
        return self.state(handle).timestep

    # =========================================================================
    # E/I 平衡
    # =========================================================================

    def _update_ei_balance(self, net: NetworkState) -> None:
        exc = 0
        inh = 0
        for p in net.populations:
            st = self._populations.state(p)
            count = int(np.count_nonzero(st.fired))
            if st.excitatory:
                exc += count
            else:
                inh += count
        net.exc_spikes = exc
        net.inh_spikes = inh

    def ei_ratio(self, handle: SlotHandle) -> float:
        """兴奋 / (兴奋 + 抑制), 健康网络约 0.8"""
        net = self.state(handle)
        return net.exc_spikes / (net.exc_spikes + net.inh_spikes + EPSILON)

    def ei_balance_stats(self, handle: SlotHandle) -> Dict[str, float]:
        net = self.state(handle)
        return {
            "excitatory": net.exc_spikes,
            "inhibitory": net.inh_spikes,
            "ratio": self.ei_ratio(handle),
        }

    # =========================================================================
    # 稳态可塑性
    # =========================================================================

    def enable_homeostasis(self, handle: SlotHandle, target_rate: float = 0.05,
                           tau: float = 1000.0) -> None:
        """启用稳态可塑性

        Args:
            target_rate: 目标发放率 (0-1, 默认 5%)
            tau: 时间常数 (tick), 越大调整越慢
        """
        validate_homeostasis(target_rate, tau)
        net = self.state(handle)
        net.homeostasis_enabled = True
        net.target_rate = float(target_rate)
        net.homeostatic_tau = float(tau)
        logger.info("网络 %r 启用稳态可塑性: target=%.3f, τ=%g",
                    self.registry.id_of(handle), target_rate, tau)

    def disable_homeostasis(self, handle: SlotHandle) -> None:
        self.state(handle).homeostasis_enabled = False
        logger.info("网络 %r 关闭稳态可塑性", self.registry.id_of(handle))

    def _apply_homeostasis(self, net: NetworkState) -> None:
        """乘性稳态缩放

        1. avg ← (1 − 1/τ)·avg + (1/τ)·fired
        2. scale = clip(target / (mean(avg) + ε), 0.5, 2.0)
        3. homeostatic_scale *= scale^(1/τ)     (每次只移动一点, 不跳变)
        4. 每个突触组权重 *= 其突触后群体 homeostatic_scale 的均值, 再裁剪
        """
        lr = 1.0 / net.homeostatic_tau
        post_scale: Dict[SlotHandle, float] = {}

        for p, hs in zip(net.populations, net.homeostasis):
            fired = self._populations.state(p).fired.astype(np.float64)
            hs.avg_rate *= (1.0 - lr)
            hs.avg_rate += lr * fired

            scale = np.clip(net.target_rate / (hs.avg_rate.mean() + EPSILON),
                            SCALE_MIN, SCALE_MAX)
            hs.scale *= scale ** lr
            post_scale[p] = float(hs.scale.mean())

        for g in net.groups:
            post = self._synapses.state(g).post
            factor = post_scale.get(post)
            if factor is None:
                continue
            self._synapses.scale_weights(g, factor)

        logger.debug("稳态遍历 t=%d: scales=%s", net.timestep,
                     [round(s, 4) for s in post_scale.values()])

    def reset_homeostasis(self, handle: SlotHandle) -> None:
        """重置稳态状态 (新训练回合开始时)"""
        net = self.state(handle)
        for p, hs in zip(net.populations, net.homeostasis):
            size = self._populations.state(p).size
            hs.scale = np.ones(size)
            hs.avg_rate = np.full(size, net.target_rate)

    def homeostasis_stats(self, handle: SlotHandle) -> Dict[str, object]:
        net = self.state(handle)
        return {
            "enabled": net.homeostasis_enabled,
            "target_rate": net.target_rate,
            "avg_scales": [float(hs.scale.mean()) for hs in net.homeostasis],
            "avg_rates": [float(hs.avg_rate.mean()) for hs in net.homeostasis],
        }

    def homeostatic_scale(self, handle: SlotHandle, pop: SlotHandle) -> np.ndarray:
        """成员群体的稳态缩放向量 (拷贝)"""
        net = self.state(handle)
        return net.homeostasis[net.populations.index(pop)].scale.copy()

    # =========================================================================
    # 派生统计
    # =========================================================================

    def summary(self, handle: SlotHandle) -> Dict[str, float]:
        net = self.state(handle)
        states = [self._populations.state(p) for p in net.populations]
        total_neurons = sum(st.size for st in states)
        total_spikes = sum(int(np.count_nonzero(st.fired)) for st in states)
        if total_neurons > 0:
            mean_voltage = float(np.concatenate([st.voltage for st in states]).mean())
        else:
            mean_voltage = V_REST
        return {
            "total_neurons": total_neurons,
            "total_spikes": total_spikes,
            "mean_voltage": mean_voltage,
            "timestep": net.timestep,
            "dopamine": net.dopamine,
            "ei_ratio": self.ei_ratio(handle),
            "exc_spikes": net.exc_spikes,
            "inh_spikes": net.inh_spikes,
        }

    def handles(self) -> List[SlotHandle]:
        return self.registry.handles()

    def __len__(self) -> int:
        return len(self.registry)

    def __repr__(self) -> str:
        return f"NetworkStore(networks={len(self)})"
