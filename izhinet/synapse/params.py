"""
突触组参数: STDP 默认表 + 分配选项

三因子学习 (STDP × 奖励):

  资格痕迹更新 (每步):
    e ← 0.95 · e + Δw_STDP

  奖励到达时:
    w ← clip(w + R · e, w_min, w_max)
    e ← 0.5 · e          (部分消耗, 一次奖励脉冲不会抹掉全部信用)

  这样即使奖励延迟, 相关突触仍能被正确强化。
"""

import math
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np

from izhinet.errors import ConfigurationError
from izhinet.signal_types import SynapseType


# 资格痕迹每步衰减因子
ELIGIBILITY_DECAY = 0.95

# 奖励后资格痕迹的保留比例
ELIGIBILITY_RETAIN_AFTER_REWARD = 0.5


@dataclass(frozen=True)
class STDPParams:
    """STDP 时间窗口参数

    Attributes:
        tau_plus:  突触前痕迹时间常数 (ms), 决定 LTP 窗口
        tau_minus: 突触后痕迹时间常数 (ms), 决定 LTD 窗口
        a_plus:    LTP 幅度
        a_minus:   LTD 幅度 (略大于 a_plus, 防止权重失控增长)
    """
    tau_plus: float = 20.0
    tau_minus: float = 20.0
    a_plus: float = 0.01
    a_minus: float = 0.012

    def __post_init__(self):
        if self.tau_plus <= 0 or self.tau_minus <= 0:
            raise ConfigurationError(
                f"STDP 时间常数必须为正: τ+={self.tau_plus}, τ-={self.tau_minus}"
            )
        if self.a_plus < 0 or self.a_minus < 0:
            raise ConfigurationError(
                f"STDP 幅度不能为负: A+={self.a_plus}, A-={self.a_minus}"
            )

    @property
    def decay_plus(self) -> float:
        return math.exp(-1.0 / self.tau_plus)

    @property
    def decay_minus(self) -> float:
        return math.exp(-1.0 / self.tau_minus)


# 各突触类型的 STDP 默认值
SYNAPSE_TYPE_DEFAULTS: Dict[SynapseType, STDPParams] = {
    SynapseType.AMPA: STDPParams(tau_plus=20.0, tau_minus=20.0, a_plus=0.01, a_minus=0.012),     # 快兴奋
    SynapseType.NMDA: STDPParams(tau_plus=50.0, tau_minus=50.0, a_plus=0.005, a_minus=0.006),    # 慢兴奋
    SynapseType.GABA_A: STDPParams(tau_plus=20.0, tau_minus=20.0, a_plus=0.01, a_minus=0.012),   # 快抑制
    SynapseType.GABA_B: STDPParams(tau_plus=100.0, tau_minus=100.0, a_plus=0.002, a_minus=0.003),  # 慢抑制
}


@dataclass
class SynapseGroupOptions:
    """突触组分配选项

    所有字段为 None 时按 Dale 定律与类型默认表自动推断。

    Attributes:
        initial_weights: 初始权重 (长度必须等于突触数), None → 边界内均匀随机
        synapse_type: 覆盖自动推断的突触类型
        plastic: 是否启用学习 (STDP + 奖励)
        min_weight / max_weight: 覆盖 Dale 定律权重边界 (慎用)
        tau_plus / tau_minus / a_plus / a_minus: 覆盖类型默认 STDP 参数
    """
    initial_weights: Optional[np.ndarray] = None
    synapse_type: Optional[SynapseType] = None
    plastic: bool = True
    min_weight: Optional[float] = None
    max_weight: Optional[float] = None
    tau_plus: Optional[float] = None
    tau_minus: Optional[float] = None
    a_plus: Optional[float] = None
    a_minus: Optional[float] = None

    def __post_init__(self):
        if self.synapse_type is not None:
            self.synapse_type = SynapseType(self.synapse_type)
        if (self.min_weight is not None and self.max_weight is not None
                and self.min_weight > self.max_weight):
            raise ConfigurationError(
                f"权重下界大于上界: [{self.min_weight}, {self.max_weight}]"
            )

    def resolve_stdp(self, synapse_type: SynapseType) -> STDPParams:
        """类型默认值 + 字段覆盖 → 最终 STDP 参数"""
        base = SYNAPSE_TYPE_DEFAULTS[synapse_type]
        return STDPParams(
            tau_plus=base.tau_plus if self.tau_plus is None else self.tau_plus,
            tau_minus=base.tau_minus if self.tau_minus is None else self.tau_minus,
            a_plus=base.a_plus if self.a_plus is None else self.a_plus,
            a_minus=base.a_minus if self.a_minus is None else self.a_minus,
        )
