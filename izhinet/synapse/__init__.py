"""
突触参数与连接模式

- STDPParams / SYNAPSE_TYPE_DEFAULTS: 按突触类型的 STDP 默认表
- SynapseGroupOptions: 突触组分配选项
- connectivity: 生成 (pre_indices, post_indices) 的纯函数与电路模板
"""

from izhinet.synapse.params import (
    STDPParams,
    SynapseGroupOptions,
    SYNAPSE_TYPE_DEFAULTS,
    ELIGIBILITY_DECAY,
    ELIGIBILITY_RETAIN_AFTER_REWARD,
)

from izhinet.synapse.connectivity import (
    Connectivity,
    all_to_all,
    one_to_one,
    random_sparse,
    lateral_inhibition,
    center_surround,
    topographic,
    recurrent,
    feedforward,
    feedback,
    PopulationSpec,
    ConnectionSpec,
    CircuitTemplate,
    reflex_arc,
    oscillator,
    winner_take_all,
    cortical_column,
)

__all__ = [
    "STDPParams",
    "SynapseGroupOptions",
    "SYNAPSE_TYPE_DEFAULTS",
    "ELIGIBILITY_DECAY",
    "ELIGIBILITY_RETAIN_AFTER_REWARD",
    "Connectivity",
    "all_to_all",
    "one_to_one",
    "random_sparse",
    "lateral_inhibition",
    "center_surround",
    "topographic",
    "recurrent",
    "feedforward",
    "feedback",
    "PopulationSpec",
    "ConnectionSpec",
    "CircuitTemplate",
    "reflex_arc",
    "oscillator",
    "winner_take_all",
    "cortical_column",
]
