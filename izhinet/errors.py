"""
异常层级与数值校验工具

错误分类:
  IzhinetError (基类)
  ├── ConfigurationError       — 参数非法 (未知预设/尺寸/密度/权重边界)
  ├── ShapeMismatchError       — 并行数组长度不等或索引越界 (调用方 bug)
  ├── StaleHandleError         — 句柄指向已释放或已复用的槽位
  ├── NumericalDivergenceError — 电压/权重出现 NaN/Inf (仅 debug 模式检测)
  └── SimulationCancelled      — flush 屏障处观察到取消请求

传播策略:
  - 按 id 查找失败不是异常, 返回 None, 调用方自行分支
  - 形状/不变量违规立即抛出, 且在任何共享数组被修改之前抛出
  - 核心内没有任何重试逻辑
"""

from __future__ import annotations

import numpy as np


# =============================================================================
# 异常层级
# =============================================================================


class IzhinetError(Exception):
    """izhinet 所有自定义异常的基类"""


class ConfigurationError(IzhinetError):
    """配置参数非法

    参数越界或相互矛盾时在构造阶段抛出。
    """


class ShapeMismatchError(IzhinetError):
    """并行数组形状不一致

    例如突触组的 pre_indices / post_indices 长度不等,
    或索引超出目标群体大小。属于编程错误, 不应被静默截断。
    """


class StaleHandleError(IzhinetError):
    """句柄已失效

    槽位被释放后, 其世代计数递增; 旧句柄不会悄悄别名到新对象上。
    """


class NumericalDivergenceError(IzhinetError):
    """数值发散 (NaN / Inf)"""


class SimulationCancelled(IzhinetError):
    """仿真在 flush 屏障处被取消"""


# =============================================================================
# 校验工具
# =============================================================================


def check_finite(name: str, values: np.ndarray) -> None:
    """非有限值检查, 发现 NaN/Inf 时抛出 NumericalDivergenceError"""
    if values.size and not np.all(np.isfinite(values)):
        bad = int(np.count_nonzero(~np.isfinite(values)))
        raise NumericalDivergenceError(
            f"{name}: {bad}/{values.size} 个元素非有限值 (NaN/Inf)"
        )


def check_same_length(**arrays: np.ndarray) -> int:
    """检查多个数组长度一致, 返回公共长度"""
    lengths = {name: len(arr) for name, arr in arrays.items()}
    if len(set(lengths.values())) > 1:
        detail = ", ".join(f"{k}={v}" for k, v in lengths.items())
        raise ShapeMismatchError(f"并行数组长度不一致: {detail}")
    return next(iter(lengths.values()), 0)


def check_index_range(name: str, indices: np.ndarray, size: int) -> None:
    """检查索引全部落在 [0, size) 内"""
    if indices.size == 0:
        return
    lo = int(indices.min())
    hi = int(indices.max())
    if lo < 0 or hi >= size:
        raise ShapeMismatchError(
            f"{name} 越界: 取值范围 [{lo}, {hi}], 允许 [0, {size})"
        )


def check_unit_interval(name: str, value: float) -> None:
    """检查概率/密度类参数落在 [0, 1] 内"""
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} 必须在 [0, 1] 内, 得到 {value}")


def as_index_array(name: str, indices) -> np.ndarray:
    """把索引参数转换为一维 int64 数组

    非整数 dtype (浮点、布尔等) 直接拒绝, 不做截断取整; 空序列视为合法。
    """
    arr = np.asarray(indices).ravel()
    if arr.size == 0:
        return arr.astype(np.int64)
    if arr.dtype.kind not in "iu":
        raise ShapeMismatchError(f"{name} 必须是整数索引, 得到 dtype={arr.dtype}")
    return arr.astype(np.int64, copy=False)
