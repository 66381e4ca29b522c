"""
ModulationStore — 四种神经调质的全局调制信号

每个网络可附加一个调质系统 (与网络共用 id)。网络 step 时:
  - 优先使用调质系统的组合可塑性门控作为奖励信号 (第三因子)
  - 每步将四种调质向基线衰减

调质作用:
  DA  (多巴胺):     奖励预测误差, 可正可负 → 直接门控
  NE  (去甲肾上腺素): 注意/唤醒, 增强可塑性
  ACh (乙酰胆碱):   学习模式, 增强可塑性
  5HT (血清素):     饱足, 降低可塑性

组合门控:
  gate = (DA + 1) · (0.5 + NE) · (0.5 + ACh) · (1.5 − 5HT)
  基线时 = 1 · 0.8 · 1 · 1 = 0.8
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from izhinet.core.registry import SlotHandle, SlotRegistry
from izhinet.errors import ConfigurationError
from izhinet.signal_types import Neuromodulator

logger = logging.getLogger(__name__)


# =============================================================================
# 参数
# =============================================================================

@dataclass(frozen=True)
class ModulatorParams:
    """单种调质的动力学参数

    Attributes:
        baseline: 张力性基线水平
        decay: 每步向基线衰减的保留因子 (0, 1]
        min / max: 水平的取值范围
    """
    baseline: float
    decay: float
    min: float
    max: float

    def __post_init__(self):
        if not 0.0 < self.decay <= 1.0:
            raise ConfigurationError(f"调质衰减因子必须在 (0, 1] 内: {self.decay}")
        if self.min > self.max:
            raise ConfigurationError(f"调质范围非法: [{self.min}, {self.max}]")
        if not self.min <= self.baseline <= self.max:
            raise ConfigurationError(
                f"调质基线 {self.baseline} 超出范围 [{self.min}, {self.max}]"
            )


MODULATOR_DEFAULTS: Dict[Neuromodulator, ModulatorParams] = {
    # 无张力性多巴胺, 只有相位性; 奖励信号短暂
    Neuromodulator.DOPAMINE: ModulatorParams(baseline=0.0, decay=0.9, min=-1.0, max=1.0),
    # 情绪稳定, 衰减慢
    Neuromodulator.SEROTONIN: ModulatorParams(baseline=0.5, decay=0.99, min=0.0, max=1.0),
    Neuromodulator.NOREPINEPHRINE: ModulatorParams(baseline=0.3, decay=0.95, min=0.0, max=1.0),
    Neuromodulator.ACETYLCHOLINE: ModulatorParams(baseline=0.5, decay=0.98, min=0.0, max=1.0),
}


@dataclass
class ModulationOptions:
    """调质系统覆盖项, None 表示使用 MODULATOR_DEFAULTS"""
    dopamine_baseline: Optional[float] = None
    dopamine_decay: Optional[float] = None
    serotonin_baseline: Optional[float] = None
    serotonin_decay: Optional[float] = None
    norepinephrine_baseline: Optional[float] = None
    norepinephrine_decay: Optional[float] = None
    acetylcholine_baseline: Optional[float] = None
    acetylcholine_decay: Optional[float] = None

    def resolve(self) -> Dict[Neuromodulator, ModulatorParams]:
        resolved = {}
        for mod, base in MODULATOR_DEFAULTS.items():
            baseline = getattr(self, f"{mod.value}_baseline")
            decay = getattr(self, f"{mod.value}_decay")
            resolved[mod] = ModulatorParams(
                baseline=base.baseline if baseline is None else baseline,
                decay=base.decay if decay is None else decay,
                min=base.min,
                max=base.max,
            )
        return resolved


@dataclass
class ModulationState:
    """单个调质系统的状态"""
    params: Dict[Neuromodulator, ModulatorParams] = field(
        default_factory=lambda: dict(MODULATOR_DEFAULTS))
    levels: Dict[Neuromodulator, float] = field(
        default_factory=lambda: {m: p.baseline for m, p in MODULATOR_DEFAULTS.items()})


# =============================================================================
# 调质系统 arena
# =============================================================================

class ModulationStore:
    """调质系统 arena, 以网络 id 为键

    使用示例:
        mod = store.allocate("worm_brain")
        store.signal_reward(mod, 0.8)
        gate = store.plasticity_gate(mod)
        store.decay(mod)
    """

    def __init__(self):
        self.registry = SlotRegistry("modulation")
        self._slots: List[ModulationState] = []

    # =========================================================================
    # 分配与释放
    # =========================================================================

    def allocate(self, mod_id: str, options: Optional[ModulationOptions] = None) -> SlotHandle:
        existing = self.registry.get(mod_id)
        if existing is not None:
            return existing
        params = (options or ModulationOptions()).resolve()

        handle = self.registry.allocate(mod_id)
        state = ModulationState(
            params=params,
            levels={m: p.baseline for m, p in params.items()},
        )
        while len(self._slots) <= handle.index:
            self._slots.append(ModulationState())
        self._slots[handle.index] = state
        logger.debug("调质系统 %r 已分配", mod_id)
        return handle

    def get(self, mod_id: str) -> Optional[SlotHandle]:
        return self.registry.get(mod_id)

    def is_allocated(self, mod_id: str) -> bool:
        return mod_id in self.registry

    def release(self, mod_id: str) -> None:
        released = self.registry.release(mod_id)
        if released is not None:
            self._slots[released.index] = ModulationState()

    def state(self, handle: SlotHandle) -> ModulationState:
        return self._slots[self.registry.resolve(handle)]

    # =========================================================================
    # 调质操作
    # =========================================================================

    def release_modulator(self, handle: SlotHandle, modulator, amount: float) -> None:
        """释放调质: 叠加到当前水平 (可累积), 并裁剪到取值范围

        Args:
            modulator: Neuromodulator、全名或缩写 (DA / 5HT / NE / ACh)
            amount: 释放量, 负值表示抑制
        """
        st = self.state(handle)
        try:
            mod = Neuromodulator.parse(modulator)
        except ValueError as e:
            raise ConfigurationError(f"未知调质: {modulator!r}") from e
        p = st.params[mod]
        st.levels[mod] = min(max(st.levels[mod] + amount, p.min), p.max)

    def decay(self, handle: SlotHandle) -> None:
        """所有调质向各自基线衰减: level = level·decay + baseline·(1 − decay)"""
        st = self.state(handle)
        for mod, p in st.params.items():
            st.levels[mod] = st.levels[mod] * p.decay + p.baseline * (1.0 - p.decay)

    def plasticity_gate(self, handle: SlotHandle) -> float:
        """组合可塑性门控 (三因子学习的第三因子), 取值约 [0, 4]"""
        lv = self.state(handle).levels
        da = lv[Neuromodulator.DOPAMINE] + 1.0
        ne = 0.5 + lv[Neuromodulator.NOREPINEPHRINE]
        ach = 0.5 + lv[Neuromodulator.ACETYLCHOLINE]
        ser = 1.5 - lv[Neuromodulator.SEROTONIN]
        return da * ne * ach * ser

    def reward_signal(self, handle: SlotHandle) -> float:
        """仅多巴胺的奖励信号"""
        return self.state(handle).levels[Neuromodulator.DOPAMINE]

    def set_dopamine(self, handle: SlotHandle, value: float) -> None:
        st = self.state(handle)
        p = st.params[Neuromodulator.DOPAMINE]
        st.levels[Neuromodulator.DOPAMINE] = min(max(value, p.min), p.max)

    def reset(self, handle: SlotHandle) -> None:
        """所有调质回到基线"""
        st = self.state(handle)
        for mod, p in st.params.items():
            st.levels[mod] = p.baseline

    def levels(self, handle: SlotHandle) -> Dict[str, float]:
        return {mod.value: level for mod, level in self.state(handle).levels.items()}

    # =========================================================================
    # 常用调制模式
    # =========================================================================

    def signal_reward(self, handle: SlotHandle, magnitude: float = 1.0) -> None:
        """正向结果: DA↑, 5HT 略↑"""
        self.release_modulator(handle, Neuromodulator.DOPAMINE, magnitude)
        self.release_modulator(handle, Neuromodulator.SEROTONIN, magnitude * 0.2)

    def signal_punishment(self, handle: SlotHandle, magnitude: float = 1.0) -> None:
        """负向结果 (预测误差为负): DA↓"""
        self.release_modulator(handle, Neuromodulator.DOPAMINE, -magnitude)

    def signal_novelty(self, handle: SlotHandle, magnitude: float = 1.0) -> None:
        """新奇/意外: NE↑ (注意), ACh↑ (学习)"""
        self.release_modulator(handle, Neuromodulator.NOREPINEPHRINE, magnitude)
        self.release_modulator(handle, Neuromodulator.ACETYLCHOLINE, magnitude * 0.5)

    def signal_satiation(self, handle: SlotHandle, magnitude: float = 1.0) -> None:
        """饱足: 5HT↑, NE↓"""
        self.release_modulator(handle, Neuromodulator.SEROTONIN, magnitude)
        self.release_modulator(handle, Neuromodulator.NOREPINEPHRINE, -magnitude * 0.3)

    def signal_hunger(self, handle: SlotHandle, magnitude: float = 1.0) -> None:
        """饥饿/内驱力: 5HT↓, NE↑"""
        self.release_modulator(handle, Neuromodulator.SEROTONIN, -magnitude * 0.3)
        self.release_modulator(handle, Neuromodulator.NOREPINEPHRINE, magnitude * 0.5)

    def signal_danger(self, handle: SlotHandle, magnitude: float = 1.0) -> None:
        """危险: NE 强烈↑ (战或逃), DA 轻微↓"""
        self.release_modulator(handle, Neuromodulator.NOREPINEPHRINE, magnitude)
        self.release_modulator(handle, Neuromodulator.DOPAMINE, -magnitude * 0.2)

    def __len__(self) -> int:
        return len(self.registry)

    def __repr__(self) -> str:
        return f"ModulationStore(systems={len(self)})"
