"""
PopulationStore — 向量化 Izhikevich 神经元群体 (arena + 句柄)

所有群体的状态都存放在一个 store 中, 以槽位索引寻址;
store 本身由 SimulationContext 持有并显式传递, 没有模块级全局数组。

数学模型 (Izhikevich 2003):
  dv/dt = 0.04·v² + 5·v + 140 − u + I
  du/dt = a·(b·v − u)
  发放: v ≥ 30mV → v = c, u += d

二次项使 dt=1ms 的显式 Euler 不稳定, 所以每个 dt 拆成 4 个 dt/4 子步。
子步内发放的神经元立即复位, 并记入"本 dt 内是否发放过"的累加器。

电流契约:
  current 是累加器, 每次 integrate 后清零 —
  调用方 (突触传递 / 外部注入) 必须每个 tick 重新提供电流。
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from izhinet.core.op_queue import OperationQueue
from izhinet.core.registry import SlotHandle, SlotRegistry
from izhinet.errors import (
    ConfigurationError,
    as_index_array,
    check_index_range,
    check_same_length,
)
from izhinet.neuron.presets import (
    NEURON_TYPES,
    DEFAULT_NOISE_AMPLITUDE,
    SUBSTEPS,
    THRESHOLD,
    U_REST,
    V_REST,
    PopulationOptions,
    is_type_excitatory,
    weight_bounds_for,
)
from izhinet.signal_types import BrainRegion, NeuronRole

logger = logging.getLogger(__name__)


def _empty(dtype=np.float64) -> np.ndarray:
    return np.zeros(0, dtype=dtype)


@dataclass
class PopulationState:
    """单个群体的全部状态 (arena 中的一个结构体)

    默认值即"惰性空槽": 释放后的槽位被替换为 PopulationState(),
    过期读取得到空数组而不是垃圾数据。

    Attributes:
        size: 神经元数量
        neuron_type: 预设名 (RS/IB/CH/TC/RZ/FS/LTS)
        excitatory: Dale 定律标志, 群体不混合
        voltage / recovery: 膜电位 v 与恢复变量 u
        current: 输入电流累加器 (每次 integrate 后清零)
        fired: bool[N], 仅对最近一次 integrate 有效
        a, b, c, d: 每神经元 Izhikevich 参数
        noise_amplitude: 背景高斯噪声幅度
    """
    size: int = 0
    neuron_type: str = ""
    excitatory: bool = True
    role: NeuronRole = NeuronRole.INTER
    region: BrainRegion = BrainRegion.OTHER

    voltage: np.ndarray = field(default_factory=_empty)
    recovery: np.ndarray = field(default_factory=_empty)
    current: np.ndarray = field(default_factory=_empty)
    fired: np.ndarray = field(default_factory=lambda: _empty(bool))

    a: np.ndarray = field(default_factory=_empty)
    b: np.ndarray = field(default_factory=_empty)
    c: np.ndarray = field(default_factory=_empty)
    d: np.ndarray = field(default_factory=_empty)

    noise_amplitude: float = 0.0


class PopulationStore:
    """神经元群体 arena

    使用示例:
        store = PopulationStore(rng, queue)
        pop = store.allocate("cortex_e", 100, "RS")
        store.inject_uniform_current(pop, 10.0)
        fired = store.integrate(pop, dt=1.0)
    """

    def __init__(self, rng: np.random.Generator, queue: OperationQueue):
        self.registry = SlotRegistry("population")
        self._slots: List[PopulationState] = []
        self._rng = rng
        self._queue = queue

    # =========================================================================
    # 分配与释放
    # =========================================================================

    def allocate(
        self,
        pop_id: str,
        size: int,
        neuron_type: str = "RS",
        options: Optional[PopulationOptions] = None,
    ) -> SlotHandle:
        """分配一个神经元群体

        Dale 定律: 兴奋/抑制属性由预设所在的表决定
        (RS/IB/CH/TC/RZ → 兴奋, FS/LTS → 抑制), 除非 options.excitatory 显式覆盖。

        Args:
            pop_id: 群体唯一 id (已存在则直接返回原句柄)
            size: 神经元数量
            neuron_type: 预设类型名
            options: 覆盖项

        Returns:
            群体句柄
        """
        existing = self.registry.get(pop_id)
        if existing is not None:
            return existing

        if size < 1:
            raise ConfigurationError(f"群体大小必须 ≥ 1, 得到 {size}")
        excitatory_preset = is_type_excitatory(neuron_type)
        options = options or PopulationOptions()

        handle = self.registry.allocate(pop_id)
        preset = NEURON_TYPES[neuron_type]
        excitatory = excitatory_preset if options.excitatory is None else options.excitatory
        noise = DEFAULT_NOISE_AMPLITUDE if options.noise is None else options.noise

        state = PopulationState(
            size=size,
            neuron_type=neuron_type,
            excitatory=excitatory,
            role=options.role,
            region=options.region,
            voltage=np.full(size, V_REST),
            recovery=np.full(size, U_REST),
            current=np.zeros(size),
            fired=np.zeros(size, dtype=bool),
            a=np.full(size, preset.a),
            b=np.full(size, preset.b),
            c=np.full(size, preset.c),
            d=np.full(size, preset.d),
            noise_amplitude=float(noise),
        )
        self._put(handle.index, state)
        logger.debug("群体 %r: n=%d, type=%s, excitatory=%s",
                     pop_id, size, neuron_type, excitatory)
        return handle

    def get(self, pop_id: str) -> Optional[SlotHandle]:
        return self.registry.get(pop_id)

    def release(self, pop_id: str) -> None:
        """释放群体, 槽位重置为惰性空状态 (索引可被复用)"""
        released = self.registry.release(pop_id)
        if released is not None:
            self._slots[released.index] = PopulationState()

    def _put(self, index: int, state: PopulationState) -> None:
        while len(self._slots) <= index:
            self._slots.append(PopulationState())
        self._slots[index] = state

    def state(self, handle: SlotHandle) -> PopulationState:
        """群体状态的实时视图 (适配器/记录器只读)"""
        return self._slots[self.registry.resolve(handle)]

    # =========================================================================
    # 输入注入
    # =========================================================================

    def inject_current(self, handle: SlotHandle, offsets, amounts) -> None:
        """向指定神经元散射累加电流

        同一神经元多次出现、或 integrate 前多次调用, 电流都会累加。

        Args:
            offsets: int 数组, 群体内神经元索引
            amounts: float 数组 (或标量, 广播到所有 offsets)
        """
        st = self.state(handle)
        offsets, amounts = self._check_injection(st, offsets, amounts)
        np.add.at(st.current, offsets, amounts)

    def queue_current(self, handle: SlotHandle, offsets, amounts) -> None:
        """延迟注入: 立即校验, 在下一次队列 drain/flush 时生效"""
        st = self.state(handle)
        offsets, amounts = self._check_injection(st, offsets, amounts)
        self._queue.submit(lambda: self.inject_current(handle, offsets, amounts))

    def inject_uniform_current(self, handle: SlotHandle, value: float) -> None:
        """向群体所有神经元注入相同电流"""
        self.state(handle).current += value

    @staticmethod
    def _check_injection(st: PopulationState, offsets, amounts) -> Tuple[np.ndarray, np.ndarray]:
        offsets = as_index_array("offsets", offsets)
        amounts = np.asarray(amounts, dtype=np.float64)
        if amounts.ndim == 0:
            amounts = np.full(offsets.shape, float(amounts))
        amounts = amounts.ravel()
        check_same_length(offsets=offsets, amounts=amounts)
        check_index_range("offsets", offsets, st.size)
        return offsets, amounts

    # =========================================================================
    # 核心仿真
    # =========================================================================

    def integrate(self, handle: SlotHandle, dt: float = 1.0,
                  inject_noise: bool = True) -> np.ndarray:
        """推进一个时间步 (4 个 Euler 子步)

        每个子步:
        1. 可选: 在电流上叠加 noise_amplitude · N(0,1) 背景噪声
        2. dv = 0.04v² + 5v + 140 − u + I,  du = a(bv − u)
        3. v += dv·h, u += du·h   (h = dt/4)
        4. v ≥ 30 → 记入发放累加器, v = c, u += d

        最后写回 v/u/fired, 并清零 current。

        Returns:
            fired: bool[N], 本步 (任一子步) 是否发放; 独立拷贝, 不随后续步变化
        """
        st = self.state(handle)
        n = st.size
        h = dt / SUBSTEPS

        v = st.voltage.copy()
        u = st.recovery.copy()
        drive = st.current
        noisy = inject_noise and st.noise_amplitude > 0.0
        any_fired = np.zeros(n, dtype=bool)

        for _ in range(SUBSTEPS):
            i_total = drive
            if noisy:
                i_total = drive + st.noise_amplitude * self._rng.standard_normal(n)

            dv = 0.04 * v * v + 5.0 * v + 140.0 - u + i_total
            du = st.a * (st.b * v - u)
            v += dv * h
            u += du * h

            spike = v >= THRESHOLD
            if spike.any():
                any_fired |= spike
                v[spike] = st.c[spike]
                u[spike] += st.d[spike]

        # 原地写回, 保持外部视图有效
        st.voltage[:] = v
        st.recovery[:] = u
        st.fired[:] = any_fired
        st.current[:] = 0.0
        return any_fired

    # =========================================================================
    # 参数与重置
    # =========================================================================

    def reset(self, handle: SlotHandle) -> None:
        """重置到静息状态 (保留参数)"""
        st = self.state(handle)
        st.voltage[:] = V_REST
        st.recovery[:] = U_REST
        st.current[:] = 0.0
        st.fired[:] = False

    def set_noise_amplitude(self, handle: SlotHandle, amplitude: float) -> None:
        """~5 为生物学合理值, 0 完全关闭噪声"""
        if amplitude < 0:
            raise ConfigurationError(f"噪声幅度不能为负: {amplitude}")
        self.state(handle).noise_amplitude = float(amplitude)

    def get_weight_bounds(self, handle: SlotHandle) -> Tuple[float, float]:
        """以该群体为突触前时的权重边界 (Dale 定律唯一来源)

        兴奋性: [0, 0.5];  抑制性: [-1, 0]
        """
        return weight_bounds_for(self.state(handle).excitatory)

    # =========================================================================
    # 状态查询
    # =========================================================================

    def get_activity(self, handle: SlotHandle) -> np.ndarray:
        """本步发放状态的拷贝"""
        return self.state(handle).fired.copy()

    def spike_count(self, handle: SlotHandle) -> int:
        return int(np.count_nonzero(self.state(handle).fired))

    def mean_voltage(self, handle: SlotHandle) -> float:
        st = self.state(handle)
        return float(st.voltage.mean()) if st.size > 0 else V_REST

    def handles(self) -> List[SlotHandle]:
        return self.registry.handles()

    def __len__(self) -> int:
        return len(self.registry)

    def __repr__(self) -> str:
        return f"PopulationStore(populations={len(self)})"
