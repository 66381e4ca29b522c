"""
仿真级与网络级配置

与神经元/突触参数包一样采用 dataclass + 构造时校验,
非法取值在 __post_init__ 中抛出 ConfigurationError。
"""

from dataclasses import dataclass
from typing import Optional

from izhinet.errors import ConfigurationError


@dataclass
class NetworkConfig:
    """网络编排参数

    Attributes:
        dopamine_decay: 旧式标量多巴胺每次被使用后的衰减因子
        reward_threshold: |reward| 不超过此值时跳过整个奖励遍历 (ε)
        homeostasis_interval: 稳态遍历周期 (tick)
        target_rate: 稳态目标发放率 (每 tick 每神经元的发放概率, 0.05 = 5%)
        homeostasis_tau: 稳态时间常数 (tick), 学习率 = 1/τ
    """
    dopamine_decay: float = 0.9
    reward_threshold: float = 1e-3
    homeostasis_interval: int = 100
    target_rate: float = 0.05
    homeostasis_tau: float = 1000.0

    def __post_init__(self):
        if not 0.0 <= self.dopamine_decay <= 1.0:
            raise ConfigurationError(f"dopamine_decay 必须在 [0, 1] 内: {self.dopamine_decay}")
        if self.reward_threshold < 0:
            raise ConfigurationError(f"reward_threshold 不能为负: {self.reward_threshold}")
        if self.homeostasis_interval < 1:
            raise ConfigurationError(
                f"homeostasis_interval 必须 ≥ 1: {self.homeostasis_interval}")
        validate_homeostasis(self.target_rate, self.homeostasis_tau)


def validate_homeostasis(target_rate: float, tau: float) -> None:
    if not 0.0 < target_rate <= 1.0:
        raise ConfigurationError(f"目标发放率必须在 (0, 1] 内: {target_rate}")
    if tau < 1.0:
        raise ConfigurationError(f"稳态时间常数必须 ≥ 1: {tau}")


@dataclass
class SimulationConfig:
    """仿真上下文参数

    Attributes:
        seed: 随机种子 (噪声与随机权重), None → 非确定性
        debug: 在每次 flush 屏障检查电压/权重是否出现 NaN/Inf
        max_pending: 延迟操作队列上限, 超过时强制 flush
    """
    seed: Optional[int] = None
    debug: bool = False
    max_pending: int = 1024

    def __post_init__(self):
        if self.max_pending < 1:
            raise ConfigurationError(f"max_pending 必须 ≥ 1: {self.max_pending}")
