"""
信号类型枚举

izhinet 最底层的类型定义, 不依赖任何其他 izhinet 模块。

- SynapseType: 突触类型 (决定 STDP 默认参数)
- Neuromodulator: 四种神经调质
- NeuronRole / BrainRegion: 群体元数据 (供基因组层标注)
"""

from enum import Enum


class SynapseType(Enum):
    """突触类型

    兴奋性: AMPA (快), NMDA (慢)
    抑制性: GABA_A (快), GABA_B (慢)
    """
    AMPA = "AMPA"
    NMDA = "NMDA"
    GABA_A = "GABA_A"
    GABA_B = "GABA_B"

    @property
    def is_excitatory(self) -> bool:
        return self in (SynapseType.AMPA, SynapseType.NMDA)


class Neuromodulator(Enum):
    """神经调质类型

    DA  — 奖励预测误差, 门控奖励学习
    5HT — 饱足/情绪, 饱足时降低可塑性
    NE  — 注意/唤醒, 警觉时增强可塑性
    ACh — 学习/回忆模式, 开启记忆形成
    """
    DOPAMINE = "dopamine"
    SEROTONIN = "serotonin"
    NOREPINEPHRINE = "norepinephrine"
    ACETYLCHOLINE = "acetylcholine"

    @classmethod
    def parse(cls, name) -> "Neuromodulator":
        """接受枚举、全名或缩写 (DA / 5HT / NE / ACh)"""
        if isinstance(name, cls):
            return name
        short = _SHORT_NAMES.get(name)
        if short is not None:
            return short
        return cls(name)


_SHORT_NAMES = {
    "DA": Neuromodulator.DOPAMINE,
    "5HT": Neuromodulator.SEROTONIN,
    "NE": Neuromodulator.NOREPINEPHRINE,
    "ACh": Neuromodulator.ACETYLCHOLINE,
}


class NeuronRole(Enum):
    SENSORY = "sensory"
    MOTOR = "motor"
    INTER = "inter"
    MODULATORY = "modulatory"


class BrainRegion(Enum):
    CORTEX = "cortex"
    THALAMUS = "thalamus"
    BASAL_GANGLIA = "basal_ganglia"
    CEREBELLUM = "cerebellum"
    BRAINSTEM = "brainstem"
    OTHER = "other"
