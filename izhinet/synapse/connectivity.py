"""
连接模式生成器 — 可复用的接线模板

全部为纯函数: 输入尺寸与参数, 输出 Connectivity (等长 pre/post 索引数组),
可直接交给 SynapseGroupStore.allocate。不构造稠密权重矩阵;
随机模式在 (pre × post) 布尔掩码上一次性采样后用 np.nonzero 取索引,
索引按 pre 主序、post 次序排列。

模式:
  - all_to_all / one_to_one / random_sparse  基础模式
  - lateral_inhibition  一维邻域抑制 (对比增强, 赢者通吃)
  - center_surround     二维中心兴奋-周边抑制 (视网膜神经节细胞)
  - topographic         高斯拓扑映射 (保持空间排列)
  - recurrent           群体内循环连接 (工作记忆, 吸引子)
  - feedforward / feedback  多层层级连接

电路模板:
  CircuitTemplate 只描述群体与连接 (不分配任何状态),
  由 SimulationContext.create_circuit 在一个网络下实例化。
  - reflex_arc       感觉 → 中间 → 运动 (先天接线, 不可塑)
  - oscillator       两组互相抑制的 E/I 对 (中枢模式发生器)
  - winner_take_all  兴奋性神经元经共享抑制竞争
  - cortical_column  L4 → L2/3 → L5, 每层带局部抑制
"""

from typing import List, NamedTuple, Optional, Sequence

import numpy as np

from izhinet.errors import ConfigurationError, check_unit_interval


class Connectivity(NamedTuple):
    """一组突触的连接结构

    Attributes:
        pre_indices: int64[S], 突触前神经元索引
        post_indices: int64[S], 突触后神经元索引
        weights: float64[S] 或 None (None → 由突触组在边界内随机初始化)
    """
    pre_indices: np.ndarray
    post_indices: np.ndarray
    weights: Optional[np.ndarray] = None

    @property
    def synapse_count(self) -> int:
        return len(self.pre_indices)


def _check_size(name: str, size: int) -> None:
    if size < 1:
        raise ConfigurationError(f"{name} 必须 ≥ 1, 得到 {size}")


def _as_connectivity(pre, post, weights=None) -> Connectivity:
    pre = np.asarray(pre, dtype=np.int64)
    post = np.asarray(post, dtype=np.int64)
    if weights is not None:
        weights = np.asarray(weights, dtype=np.float64)
    return Connectivity(pre, post, weights)


# =============================================================================
# 基础模式
# =============================================================================

def all_to_all(pre_size: int, post_size: int) -> Connectivity:
    """每个突触前神经元连接每个突触后神经元, S = pre_size · post_size"""
    _check_size("pre_size", pre_size)
    _check_size("post_size", post_size)
    flat = np.arange(pre_size * post_size, dtype=np.int64)
    return Connectivity(flat // post_size, flat % post_size)


def one_to_one(size: int) -> Connectivity:
    """突触前 i → 突触后 i"""
    _check_size("size", size)
    idx = np.arange(size, dtype=np.int64)
    return Connectivity(idx, idx.copy())


def random_sparse(pre_size: int, post_size: int, density: float,
                  rng: Optional[np.random.Generator] = None) -> Connectivity:
    """每个可能连接以概率 density 独立存在 (Bernoulli)"""
    _check_size("pre_size", pre_size)
    _check_size("post_size", post_size)
    check_unit_interval("density", density)
    rng = rng if rng is not None else np.random.default_rng()

    mask = rng.random((pre_size, post_size)) < density
    pre, post = np.nonzero(mask)
    return _as_connectivity(pre, post)


# =============================================================================
# 生物学连接模式
# =============================================================================

def lateral_inhibition(size: int, radius: int, self_connect: bool = False) -> Connectivity:
    """一维排列, 每个神经元连接左右各 radius 以内的邻居

    Args:
        size: 群体大小
        radius: 每侧邻居数
        self_connect: 是否保留自连接
    """
    _check_size("size", size)
    if radius < 0:
        raise ConfigurationError(f"radius 不能为负: {radius}")

    i = np.arange(size)[:, None]
    j = np.arange(size)[None, :]
    mask = np.abs(i - j) <= radius
    if not self_connect:
        mask &= i != j
    pre, post = np.nonzero(mask)
    return _as_connectivity(pre, post)


def center_surround(width: int, height: int, exc_radius: float, inh_radius: float,
                    exc_weight: float = 0.3, inh_weight: float = -0.1) -> Connectivity:
    """二维网格中心-周边连接 (带初始权重)

    距离 ≤ exc_radius → 兴奋中心 (exc_weight)
    exc_radius < 距离 ≤ inh_radius → 抑制周边 (inh_weight)

    负权重只有在突触前为抑制性群体时才会被保留 (Dale 定律裁剪)。
    """
    _check_size("width", width)
    _check_size("height", height)
    if exc_radius < 0 or inh_radius < exc_radius:
        raise ConfigurationError(
            f"需要 0 ≤ exc_radius ≤ inh_radius, 得到 {exc_radius}, {inh_radius}")

    ys, xs = np.divmod(np.arange(width * height), width)
    dist = np.hypot(xs[:, None] - xs[None, :], ys[:, None] - ys[None, :])

    center = dist <= exc_radius
    surround = (dist > exc_radius) & (dist <= inh_radius)
    pre, post = np.nonzero(center | surround)
    weights = np.where(center[pre, post], exc_weight, inh_weight)
    return _as_connectivity(pre, post, weights)


def topographic(pre_width: int, pre_height: int, post_width: int, post_height: int,
                sigma: float, density: float = 1.0,
                rng: Optional[np.random.Generator] = None) -> Connectivity:
    """高斯拓扑映射: 邻近的突触前神经元连接邻近的突触后神经元

    突触前坐标按 (post / pre) 比例映射到突触后网格作为中心,
    连接概率 = exp(−d² / 2σ²) · density, d 在突触后坐标系中计算。
    """
    for name, value in (("pre_width", pre_width), ("pre_height", pre_height),
                        ("post_width", post_width), ("post_height", post_height)):
        _check_size(name, value)
    if sigma <= 0:
        raise ConfigurationError(f"sigma 必须 > 0: {sigma}")
    check_unit_interval("density", density)
    rng = rng if rng is not None else np.random.default_rng()

    pre_y, pre_x = np.divmod(np.arange(pre_width * pre_height), pre_width)
    post_y, post_x = np.divmod(np.arange(post_width * post_height), post_width)
    center_x = pre_x * (post_width / pre_width)
    center_y = pre_y * (post_height / pre_height)

    dx = post_x[None, :] - center_x[:, None]
    dy = post_y[None, :] - center_y[:, None]
    prob = np.exp(-(dx * dx + dy * dy) / (2.0 * sigma * sigma)) * density

    pre, post = np.nonzero(rng.random(prob.shape) < prob)
    return _as_connectivity(pre, post)


def recurrent(size: int, density: float, self_connect: bool = False,
              rng: Optional[np.random.Generator] = None) -> Connectivity:
    """群体内随机循环连接, 默认剔除自环"""
    conn = random_sparse(size, size, density, rng)
    if self_connect:
        return conn
    keep = conn.pre_indices != conn.post_indices
    return Connectivity(conn.pre_indices[keep], conn.post_indices[keep])


def feedforward(layer_sizes: Sequence[int], density: float = 0.1,
                rng: Optional[np.random.Generator] = None) -> List[Connectivity]:
    """相邻层之间的前馈连接: [L0→L1, L1→L2, ...]"""
    if len(layer_sizes) < 2:
        raise ConfigurationError(f"至少需要两层, 得到 {list(layer_sizes)}")
    return [random_sparse(layer_sizes[i], layer_sizes[i + 1], density, rng)
            for i in range(len(layer_sizes) - 1)]


def feedback(layer_sizes: Sequence[int], density: float = 0.05,
             rng: Optional[np.random.Generator] = None) -> List[Connectivity]:
    """高层投射回低层: [Ln→Ln-1, ..., L1→L0]"""
    if len(layer_sizes) < 2:
        raise ConfigurationError(f"至少需要两层, 得到 {list(layer_sizes)}")
    return [random_sparse(layer_sizes[i], layer_sizes[i - 1], density, rng)
            for i in range(len(layer_sizes) - 1, 0, -1)]


# =============================================================================
# 电路模板
# =============================================================================

class PopulationSpec(NamedTuple):
    """模板中的一个群体: id / 尺寸 / 兴奋性 / 预设类型"""
    id: str
    size: int
    excitatory: bool
    neuron_type: str = "RS"


class ConnectionSpec(NamedTuple):
    """模板中的一组连接: pre_id → post_id"""
    pre_id: str
    post_id: str
    connectivity: Connectivity
    plastic: bool = True


class CircuitTemplate(NamedTuple):
    """多个群体及其连接的声明式描述"""
    populations: List[PopulationSpec]
    connections: List[ConnectionSpec]

    @property
    def neuron_count(self) -> int:
        return sum(p.size for p in self.populations)

    @property
    def synapse_count(self) -> int:
        return sum(c.connectivity.synapse_count for c in self.connections)


def reflex_arc(sensor_size: int, inter_size: int, motor_size: int,
               density: float = 0.3,
               rng: Optional[np.random.Generator] = None) -> CircuitTemplate:
    """简单反射弧: sensory → inter → motor

    接线是先天的, 两组连接都不可塑。
    """
    return CircuitTemplate(
        populations=[
            PopulationSpec("sensory", sensor_size, True, "RS"),
            PopulationSpec("inter", inter_size, True, "RS"),
            PopulationSpec("motor", motor_size, True, "RS"),
        ],
        connections=[
            ConnectionSpec("sensory", "inter",
                           random_sparse(sensor_size, inter_size, density, rng),
                           plastic=False),
            ConnectionSpec("inter", "motor",
                           random_sparse(inter_size, motor_size, density, rng),
                           plastic=False),
        ],
    )


def oscillator(size: int,
               rng: Optional[np.random.Generator] = None) -> CircuitTemplate:
    """中枢模式发生器: 两组 E/I 对, 各自的抑制群体抑制对侧兴奋群体

    exc1 → inh1 ⊣ exc2 → inh2 ⊣ exc1, 两个兴奋群体各带 30% 循环自激。
    """
    return CircuitTemplate(
        populations=[
            PopulationSpec("exc1", size, True, "RS"),
            PopulationSpec("inh1", size, False, "FS"),
            PopulationSpec("exc2", size, True, "RS"),
            PopulationSpec("inh2", size, False, "FS"),
        ],
        connections=[
            # 同侧 E → I
            ConnectionSpec("exc1", "inh1", all_to_all(size, size)),
            ConnectionSpec("exc2", "inh2", all_to_all(size, size)),
            # 对侧 I ⊣ E
            ConnectionSpec("inh1", "exc2", all_to_all(size, size)),
            ConnectionSpec("inh2", "exc1", all_to_all(size, size)),
            # 循环自激维持活动
            ConnectionSpec("exc1", "exc1", recurrent(size, 0.3, rng=rng)),
            ConnectionSpec("exc2", "exc2", recurrent(size, 0.3, rng=rng)),
        ],
    )


def winner_take_all(exc_size: int, inh_size: int) -> CircuitTemplate:
    """赢者通吃: 全部兴奋性神经元驱动共享抑制池, 抑制池反过来抑制全部兴奋性神经元"""
    return CircuitTemplate(
        populations=[
            PopulationSpec("exc", exc_size, True, "RS"),
            PopulationSpec("inh", inh_size, False, "FS"),
        ],
        connections=[
            ConnectionSpec("exc", "inh", all_to_all(exc_size, inh_size)),
            ConnectionSpec("inh", "exc", all_to_all(inh_size, exc_size)),
        ],
    )


def cortical_column(l4_size: int, l23_size: int, l5_size: int,
                    inh_ratio: float = 0.2,
                    rng: Optional[np.random.Generator] = None) -> CircuitTemplate:
    """简化皮层柱: L4 (输入) → L2/3 (处理) → L5 (输出)

    每层配一个 FS 抑制群体, 大小为 floor(兴奋层大小 × inh_ratio);
    L5 兴奋群体使用 IB (内在爆发) 预设。

    连接:
      L4_exc → L23_exc / L23_inh     p=0.1   层间前馈
      L23_exc → L5_exc / L5_inh      p=0.05  层间前馈
      L*_inh → L*_exc                全连接  层内抑制
      L*_exc → L*_inh                p=0.3   驱动局部抑制
      L23_exc → L23_exc              p=0.1   循环 (工作记忆)

    Raises:
        ConfigurationError: inh_ratio 使某层抑制群体为空
    """
    if not 0.0 < inh_ratio <= 1.0:
        raise ConfigurationError(f"inh_ratio 必须在 (0, 1] 内, 得到 {inh_ratio}")
    l4_inh = int(l4_size * inh_ratio)
    l23_inh = int(l23_size * inh_ratio)
    l5_inh = int(l5_size * inh_ratio)
    if min(l4_inh, l23_inh, l5_inh) < 1:
        raise ConfigurationError(
            f"抑制群体为空: L4={l4_inh}, L23={l23_inh}, L5={l5_inh} "
            f"(inh_ratio={inh_ratio})"
        )

    return CircuitTemplate(
        populations=[
            PopulationSpec("L4_exc", l4_size, True, "RS"),
            PopulationSpec("L4_inh", l4_inh, False, "FS"),
            PopulationSpec("L23_exc", l23_size, True, "RS"),
            PopulationSpec("L23_inh", l23_inh, False, "FS"),
            PopulationSpec("L5_exc", l5_size, True, "IB"),
            PopulationSpec("L5_inh", l5_inh, False, "FS"),
        ],
        connections=[
            # L4 → L2/3
            ConnectionSpec("L4_exc", "L23_exc", random_sparse(l4_size, l23_size, 0.1, rng)),
            ConnectionSpec("L4_exc", "L23_inh", random_sparse(l4_size, l23_inh, 0.1, rng)),
            # L2/3 → L5
            ConnectionSpec("L23_exc", "L5_exc", random_sparse(l23_size, l5_size, 0.05, rng)),
            ConnectionSpec("L23_exc", "L5_inh", random_sparse(l23_size, l5_inh, 0.05, rng)),
            # 层内抑制
            ConnectionSpec("L4_inh", "L4_exc", all_to_all(l4_inh, l4_size)),
            ConnectionSpec("L23_inh", "L23_exc", all_to_all(l23_inh, l23_size)),
            ConnectionSpec("L5_inh", "L5_exc", all_to_all(l5_inh, l5_size)),
            # E → 局部 I
            ConnectionSpec("L4_exc", "L4_inh", random_sparse(l4_size, l4_inh, 0.3, rng)),
            ConnectionSpec("L23_exc", "L23_inh", random_sparse(l23_size, l23_inh, 0.3, rng)),
            ConnectionSpec("L5_exc", "L5_inh", random_sparse(l5_size, l5_inh, 0.3, rng)),
            # L2/3 循环
            ConnectionSpec("L23_exc", "L23_exc", recurrent(l23_size, 0.1, rng=rng)),
        ],
    )
