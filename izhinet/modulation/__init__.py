"""
神经调质系统

- ModulationStore: 每网络一个调质系统 (DA / 5HT / NE / ACh)
- ModulatorParams / MODULATOR_DEFAULTS: 基线、衰减、取值范围默认表
- ModulationOptions: 分配时的覆盖项
"""

from izhinet.modulation.neuromodulation import (
    ModulationStore,
    ModulationState,
    ModulationOptions,
    ModulatorParams,
    MODULATOR_DEFAULTS,
)

__all__ = [
    "ModulationStore",
    "ModulationState",
    "ModulationOptions",
    "ModulatorParams",
    "MODULATOR_DEFAULTS",
]
