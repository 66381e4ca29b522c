"""
Izhikevich 神经元参数与预设

- IzhikevichParams: 四参数包 (a, b, c, d)
- EXCITATORY_TYPES / INHIBITORY_TYPES: Dale 定律预设表
- PopulationOptions: 群体分配选项
"""

from izhinet.neuron.presets import (
    IzhikevichParams,
    PopulationOptions,
    EXCITATORY_TYPES,
    INHIBITORY_TYPES,
    NEURON_TYPES,
    THRESHOLD,
    V_REST,
    U_REST,
    SUBSTEPS,
    DEFAULT_NOISE_AMPLITUDE,
    EXCITATORY_WEIGHT_BOUNDS,
    INHIBITORY_WEIGHT_BOUNDS,
    is_type_excitatory,
    weight_bounds_for,
)

__all__ = [
    "IzhikevichParams",
    "PopulationOptions",
    "EXCITATORY_TYPES",
    "INHIBITORY_TYPES",
    "NEURON_TYPES",
    "THRESHOLD",
    "V_REST",
    "U_REST",
    "SUBSTEPS",
    "DEFAULT_NOISE_AMPLITUDE",
    "EXCITATORY_WEIGHT_BOUNDS",
    "INHIBITORY_WEIGHT_BOUNDS",
    "is_type_excitatory",
    "weight_bounds_for",
]
