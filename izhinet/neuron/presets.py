"""
Izhikevich 神经元参数包与预设表

模型 (Izhikevich 2003):
  dv/dt = 0.04·v² + 5·v + 140 − u + I
  du/dt = a·(b·v − u)
  发放: v ≥ 30mV → v = c, u += d

Dale 定律: 预设表分为兴奋性与抑制性两张,
群体的兴奋/抑制属性默认由预设所在的表决定。
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from izhinet.errors import ConfigurationError
from izhinet.signal_types import NeuronRole, BrainRegion


# =============================================================================
# 生物学常数
# =============================================================================

THRESHOLD = 30.0           # 发放阈值 (mV), 全局固定, 不按群体配置
V_REST = -70.0             # 静息膜电位 (mV)
U_REST = -14.0             # 恢复变量静息值 (= b·V_REST, b=0.2)
SUBSTEPS = 4               # 每个 dt 的 Euler 子步数

# 丘脑/背景输入噪声幅度, ~5 维持自发活动
DEFAULT_NOISE_AMPLITUDE = 5.0

# Dale 定律权重边界 (Izhikevich 2003)
EXCITATORY_WEIGHT_BOUNDS: Tuple[float, float] = (0.0, 0.5)
INHIBITORY_WEIGHT_BOUNDS: Tuple[float, float] = (-1.0, 0.0)


# =============================================================================
# 参数包
# =============================================================================

@dataclass(frozen=True)
class IzhikevichParams:
    """Izhikevich 动力学四参数

    Attributes:
        a: 恢复变量时间尺度 (越小恢复越慢)
        b: 恢复变量对膜电位的敏感度
        c: 发放后膜电位复位值 (mV)
        d: 发放后恢复变量增量
    """
    a: float
    b: float
    c: float
    d: float


# 兴奋性类型 (谷氨酸能)
EXCITATORY_TYPES: Dict[str, IzhikevichParams] = {
    "RS": IzhikevichParams(a=0.02, b=0.2, c=-65.0, d=8.0),    # Regular spiking, 皮层最常见
    "IB": IzhikevichParams(a=0.02, b=0.2, c=-55.0, d=4.0),    # Intrinsically bursting, L5
    "CH": IzhikevichParams(a=0.02, b=0.2, c=-50.0, d=2.0),    # Chattering, L4
    "TC": IzhikevichParams(a=0.02, b=0.25, c=-65.0, d=0.05),  # Thalamo-cortical
    "RZ": IzhikevichParams(a=0.1, b=0.26, c=-65.0, d=2.0),    # Resonator
}

# 抑制性类型 (GABA 能)
INHIBITORY_TYPES: Dict[str, IzhikevichParams] = {
    "FS": IzhikevichParams(a=0.1, b=0.2, c=-65.0, d=2.0),     # Fast spiking, 篮状细胞
    "LTS": IzhikevichParams(a=0.02, b=0.25, c=-65.0, d=2.0),  # Low-threshold spiking, Martinotti
}

NEURON_TYPES: Dict[str, IzhikevichParams] = {**EXCITATORY_TYPES, **INHIBITORY_TYPES}


def is_type_excitatory(neuron_type: str) -> bool:
    """预设类型是否为兴奋性 (Dale 定律判定点)"""
    if neuron_type not in NEURON_TYPES:
        raise ConfigurationError(
            f"未知神经元类型 {neuron_type!r}, 可选: {sorted(NEURON_TYPES)}"
        )
    return neuron_type in EXCITATORY_TYPES


def weight_bounds_for(excitatory: bool) -> Tuple[float, float]:
    return EXCITATORY_WEIGHT_BOUNDS if excitatory else INHIBITORY_WEIGHT_BOUNDS


# =============================================================================
# 群体分配选项
# =============================================================================

@dataclass
class PopulationOptions:
    """群体分配选项

    Attributes:
        excitatory: 覆盖由预设推断的兴奋/抑制属性 (慎用)
        noise: 背景噪声幅度, None → DEFAULT_NOISE_AMPLITUDE, 0 → 关闭
        role: 神经元角色 (基因组元数据)
        region: 所属脑区 (基因组元数据)
    """
    excitatory: Optional[bool] = None
    noise: Optional[float] = None
    role: NeuronRole = NeuronRole.INTER
    region: BrainRegion = BrainRegion.OTHER

    def __post_init__(self):
        if self.noise is not None and self.noise < 0:
            raise ConfigurationError(f"噪声幅度不能为负: {self.noise}")
        self.role = NeuronRole(self.role)
        self.region = BrainRegion(self.region)
