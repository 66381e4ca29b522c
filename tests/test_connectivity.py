"""
连接模式生成器验证测试

Case 1: all_to_all / one_to_one 索引顺序
Case 2: random_sparse 极端密度 + 参数校验
Case 3: lateral_inhibition 邻域计数, 自连接开关
Case 4: center_surround 中心/周边计数与权重符号
Case 5: topographic 窄高斯 → 恒等映射
Case 6: recurrent 无自环
Case 7: feedforward / feedback 层对方向
Case 8: 电路模板的群体与连接结构
Case 9: create_circuit 实例化模板, 校验失败不留下部分状态
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest

from izhinet.config import SimulationConfig
from izhinet.context import SimulationContext
from izhinet.errors import ConfigurationError, ShapeMismatchError
from izhinet.synapse.connectivity import (
    CircuitTemplate,
    ConnectionSpec,
    PopulationSpec,
    all_to_all,
    center_surround,
    cortical_column,
    feedback,
    feedforward,
    lateral_inhibition,
    one_to_one,
    oscillator,
    random_sparse,
    recurrent,
    reflex_arc,
    topographic,
    winner_take_all,
)


def print_header(title: str):
    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}")


def test_case_1_basic_patterns():
    """all_to_all pre 主序; one_to_one 对角"""
    print_header("Case 1: 基础模式")

    conn = all_to_all(2, 3)
    print(f"  pre={conn.pre_indices}, post={conn.post_indices}")
    assert conn.pre_indices.tolist() == [0, 0, 0, 1, 1, 1]
    assert conn.post_indices.tolist() == [0, 1, 2, 0, 1, 2]
    assert conn.weights is None
    assert conn.synapse_count == 6

    conn = one_to_one(4)
    assert conn.pre_indices.tolist() == [0, 1, 2, 3]
    assert np.array_equal(conn.pre_indices, conn.post_indices)
    print("  ✅ PASS")


def test_case_2_random_sparse():
    """density=0 → 无连接; density=1 → 全连接; 越界密度报错"""
    print_header("Case 2: random_sparse")

    rng = np.random.default_rng(1)
    assert random_sparse(10, 8, 0.0, rng).synapse_count == 0
    assert random_sparse(10, 8, 1.0, rng).synapse_count == 80

    conn = random_sparse(100, 100, 0.1, rng)
    print(f"  density=0.1 → S={conn.synapse_count}")
    assert 700 < conn.synapse_count < 1300
    assert conn.pre_indices.max() < 100 and conn.post_indices.max() < 100

    with pytest.raises(ConfigurationError):
        random_sparse(10, 10, 1.5)
    with pytest.raises(ConfigurationError):
        random_sparse(10, 10, -0.1)
    with pytest.raises(ConfigurationError):
        random_sparse(0, 10, 0.5)
    print("  ✅ PASS")


def test_case_3_lateral_inhibition():
    """size=5, radius=1: 无自连接 8 条, 有自连接 13 条"""
    print_header("Case 3: lateral_inhibition")

    conn = lateral_inhibition(5, 1)
    assert conn.synapse_count == 8
    assert not np.any(conn.pre_indices == conn.post_indices)
    assert np.all(np.abs(conn.pre_indices - conn.post_indices) <= 1)

    assert lateral_inhibition(5, 1, self_connect=True).synapse_count == 13
    assert lateral_inhibition(4, 10).synapse_count == 12
    print("  ✅ PASS")


def test_case_4_center_surround():
    """3×3 网格, exc_radius=1, inh_radius=1.5: 33 中心 + 16 对角周边"""
    print_header("Case 4: center_surround")

    conn = center_surround(3, 3, exc_radius=1.0, inh_radius=1.5)
    n_exc = int(np.sum(conn.weights > 0))
    n_inh = int(np.sum(conn.weights < 0))
    print(f"  center={n_exc}, surround={n_inh}")
    assert n_exc == 33
    assert n_inh == 16
    assert np.allclose(conn.weights[conn.weights > 0], 0.3)
    assert np.allclose(conn.weights[conn.weights < 0], -0.1)

    # 中心神经元 4: 自身 + 4 邻居兴奋, 4 个对角抑制
    from_center = conn.pre_indices == 4
    assert int(np.sum(conn.weights[from_center] > 0)) == 5
    assert int(np.sum(conn.weights[from_center] < 0)) == 4

    with pytest.raises(ConfigurationError):
        center_surround(3, 3, exc_radius=2.0, inh_radius=1.0)
    print("  ✅ PASS")


def test_case_5_topographic_identity():
    """同尺寸网格 + 极窄 σ + density=1 → 只连接对应位置"""
    print_header("Case 5: topographic")

    conn = topographic(4, 3, 4, 3, sigma=1e-3, density=1.0,
                       rng=np.random.default_rng(0))
    assert conn.synapse_count == 12
    assert np.array_equal(conn.pre_indices, conn.post_indices)

    wide = topographic(4, 4, 8, 8, sigma=2.0, density=0.5,
                       rng=np.random.default_rng(0))
    print(f"  4×4 → 8×8, σ=2: S={wide.synapse_count}")
    assert wide.pre_indices.max() < 16
    assert wide.post_indices.max() < 64
    print("  ✅ PASS")


def test_case_6_recurrent_no_self_loops():
    """density=1 且不允许自环 → size·(size−1) 条"""
    print_header("Case 6: recurrent")

    rng = np.random.default_rng(2)
    conn = recurrent(6, 1.0, rng=rng)
    assert conn.synapse_count == 30
    assert not np.any(conn.pre_indices == conn.post_indices)
    assert recurrent(6, 1.0, self_connect=True, rng=rng).synapse_count == 36
    print("  ✅ PASS")


def test_case_7_layer_chains():
    """feedforward 低→高, feedback 高→低"""
    print_header("Case 7: feedforward / feedback")

    ff = feedforward([3, 4, 5], density=1.0)
    assert [c.synapse_count for c in ff] == [12, 20]
    assert ff[1].pre_indices.max() == 3 and ff[1].post_indices.max() == 4

    fb = feedback([3, 4, 5], density=1.0)
    assert [c.synapse_count for c in fb] == [20, 12]
    assert fb[0].pre_indices.max() == 4 and fb[0].post_indices.max() == 3

    with pytest.raises(ConfigurationError):
        feedforward([10])
    print("  ✅ PASS")


def test_case_8_circuit_templates():
    """各模板的群体尺寸/类型、连接数与可塑性标志"""
    print_header("Case 8: 电路模板")

    rng = np.random.default_rng(4)

    arc = reflex_arc(10, 6, 4, density=1.0, rng=rng)
    assert [p.id for p in arc.populations] == ["sensory", "inter", "motor"]
    assert all(p.excitatory and p.neuron_type == "RS" for p in arc.populations)
    assert [c.connectivity.synapse_count for c in arc.connections] == [60, 24]
    assert not any(c.plastic for c in arc.connections), "反射弧是先天接线"
    assert arc.neuron_count == 20 and arc.synapse_count == 84

    osc = oscillator(5, rng=rng)
    types = {p.id: (p.excitatory, p.neuron_type) for p in osc.populations}
    assert types == {"exc1": (True, "RS"), "inh1": (False, "FS"),
                     "exc2": (True, "RS"), "inh2": (False, "FS")}
    pairs = [(c.pre_id, c.post_id) for c in osc.connections]
    assert ("inh1", "exc2") in pairs and ("inh2", "exc1") in pairs
    assert ("inh1", "exc1") not in pairs, "抑制只作用于对侧"
    for c in osc.connections:
        if c.pre_id == c.post_id:
            assert not np.any(c.connectivity.pre_indices == c.connectivity.post_indices)
        else:
            assert c.connectivity.synapse_count == 25

    wta = winner_take_all(8, 2)
    assert [c.connectivity.synapse_count for c in wta.connections] == [16, 16]

    col = cortical_column(20, 30, 10, rng=rng)
    sizes = {p.id: p.size for p in col.populations}
    print(f"  cortical_column 尺寸: {sizes}")
    assert sizes == {"L4_exc": 20, "L4_inh": 4, "L23_exc": 30,
                     "L23_inh": 6, "L5_exc": 10, "L5_inh": 2}
    assert {p.id: p.neuron_type for p in col.populations}["L5_exc"] == "IB"
    assert len(col.connections) == 11
    local = {(c.pre_id, c.post_id): c.connectivity.synapse_count for c in col.connections}
    assert local[("L4_inh", "L4_exc")] == 80
    assert local[("L5_inh", "L5_exc")] == 20

    with pytest.raises(ConfigurationError):
        cortical_column(4, 30, 10)
    with pytest.raises(ConfigurationError):
        cortical_column(20, 30, 10, inh_ratio=0.0)
    print("  ✅ PASS")


def test_case_9_create_circuit():
    """模板 → 网络: 群体/突触组命名、Dale 边界、可塑性标志; 非法模板不分配任何东西"""
    print_header("Case 9: create_circuit")

    ctx = SimulationContext(SimulationConfig(seed=1))
    net, pops = ctx.create_circuit("wta", winner_take_all(8, 2))

    assert set(pops) == {"exc", "inh"}
    assert ctx.populations.get("wta_exc") == pops["exc"]
    assert ctx.populations.state(pops["exc"]).excitatory
    assert not ctx.populations.state(pops["inh"]).excitatory

    inh_exc = ctx.synapses.get("wta_inh_exc")
    g = ctx.synapses.state(inh_exc)
    assert (g.min_weight, g.max_weight) == (-1.0, 0.0)
    assert np.all(g.weights <= 0.0)
    assert len(ctx.networks.state(net).groups) == 2

    for _ in range(20):
        ctx.populations.inject_uniform_current(pops["exc"], 10.0)
        ctx.networks.step(net)
    assert ctx.networks.timestep(net) == 20

    _, arc_pops = ctx.create_circuit("arc", reflex_arc(5, 4, 3, rng=ctx.rng))
    assert len(arc_pops) == 3
    assert not ctx.synapses.state(ctx.synapses.get("arc_sensory_inter")).plastic

    n_pops, n_syns = len(ctx.populations), len(ctx.synapses)
    ghost = CircuitTemplate(
        populations=[PopulationSpec("a", 3, True)],
        connections=[ConnectionSpec("a", "ghost", all_to_all(3, 3))],
    )
    with pytest.raises(ConfigurationError):
        ctx.create_circuit("bad", ghost)

    too_wide = CircuitTemplate(
        populations=[PopulationSpec("a", 2, True), PopulationSpec("b", 2, False, "FS")],
        connections=[ConnectionSpec("a", "b", all_to_all(3, 2))],
    )
    with pytest.raises(ShapeMismatchError):
        ctx.create_circuit("bad", too_wide)

    assert ctx.networks.get("bad") is None
    assert len(ctx.populations) == n_pops
    assert len(ctx.synapses) == n_syns
    print("  ✅ PASS")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v", "-s"]))
