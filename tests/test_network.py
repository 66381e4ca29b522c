"""
NetworkStore + SimulationContext 验证测试

Case 1: 一个 tick 的传导延迟 (step 内先 transmit 后 integrate)
Case 2: 延迟注入在 step 开头生效
Case 3: 旧式多巴胺奖励 — 阈值与衰减
Case 3b: 低于阈值的奖励不改变权重, 即使资格痕迹非零
Case 4: 端到端三因子学习: pre → post 时序 + 奖励 → 权重增加
Case 5: 附加调质系统时使用组合门控, 并每步衰减
Case 6: E/I 平衡统计 + summary
Case 7: 稳态可塑性 — 高发放率 → 缩放 < 1, 权重下降
Case 8: 前馈网络构造 + 级联释放
Case 9: debug 模式检测数值发散; 取消在屏障处抛出
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np
import pytest

from izhinet.config import NetworkConfig, SimulationConfig
from izhinet.context import SimulationContext
from izhinet.errors import (
    ConfigurationError,
    NumericalDivergenceError,
    SimulationCancelled,
    StaleHandleError,
)
from izhinet.neuron.presets import V_REST, PopulationOptions
from izhinet.synapse.connectivity import one_to_one
from izhinet.synapse.params import SynapseGroupOptions


def print_header(title: str):
    print(f"\n{'=' * 60}")
    print(f"  {title}")
    print(f"{'=' * 60}")


QUIET = PopulationOptions(noise=0.0)


def make_pair_network(plastic: bool = False, weight: float = 0.5, seed: int = 0):
    """pre(1) → post(1) 的最小网络, 无噪声"""
    ctx = SimulationContext(SimulationConfig(seed=seed))
    pre = ctx.populations.allocate("pre", 1, "RS", QUIET)
    post = ctx.populations.allocate("post", 1, "RS", QUIET)
    conn = one_to_one(1)
    syn = ctx.synapses.allocate(
        "pre_post", pre, post, conn.pre_indices, conn.post_indices,
        SynapseGroupOptions(initial_weights=[weight], plastic=plastic))
    net = ctx.networks.allocate("net")
    ctx.networks.add_population(net, pre)
    ctx.networks.add_population(net, post)
    ctx.networks.add_synapse_group(net, syn)
    return ctx, net, pre, post, syn


# =============================================================================
# Case 1: 一个 tick 的传导延迟
# =============================================================================

def test_case_1_one_tick_delay():
    """tick 0 pre 发放, post 在 tick 1 才收到突触电流"""
    print_header("Case 1: 一个 tick 的传导延迟")

    ctx, net, pre, post, _ = make_pair_network()
    pops = ctx.populations

    pops.inject_uniform_current(pre, 1000.0)
    ctx.networks.step(net)
    print(f"  t=0: pre fired={pops.state(pre).fired}, post v={pops.state(post).voltage}")
    assert pops.state(pre).fired[0], "pre 应在 tick 0 发放"
    assert pops.state(post).voltage[0] == pytest.approx(V_REST), \
        "tick 0 的发放不应在同一 tick 到达 post"

    ctx.networks.step(net)
    print(f"  t=1: post v={pops.state(post).voltage}")
    assert pops.state(post).voltage[0] > V_REST, "tick 1 post 应收到突触电流"
    assert pops.state(post).current[0] == 0.0
    assert ctx.networks.timestep(net) == 2
    print("  ✅ PASS")


# =============================================================================
# Case 2: 延迟注入
# =============================================================================

def test_case_2_queued_input_applies_at_step():
    """step 开头 drain 队列, 排队的电流在本 tick 生效"""
    print_header("Case 2: 延迟注入")

    ctx, net, pre, _, _ = make_pair_network()
    ctx.populations.queue_current(pre, [0], 1000.0)
    assert ctx.queue.pending_count == 1

    ctx.networks.step(net)
    assert ctx.populations.state(pre).fired[0]
    assert ctx.queue.pending_count == 0
    print("  ✅ PASS")


# =============================================================================
# Case 3: 旧式多巴胺
# =============================================================================

def test_case_3_legacy_dopamine():
    """|reward| > ε → 使用后按 0.9 衰减; 低于阈值不衰减"""
    print_header("Case 3: 旧式多巴胺")

    ctx, net, *_ = make_pair_network(plastic=True)
    ctx.networks.set_reward(net, 1.0)
    ctx.networks.step(net)
    st = ctx.networks.state(net)
    assert st.dopamine == pytest.approx(0.9)

    ctx.networks.set_dopamine_decay(net, 0.5)
    ctx.networks.step(net)
    assert st.dopamine == pytest.approx(0.45)

    ctx.networks.set_reward(net, 0.0005)
    ctx.networks.step(net)
    assert st.dopamine == pytest.approx(0.0005), "低于阈值时奖励遍历应被跳过"
    print("  ✅ PASS")


def test_case_3b_sub_threshold_reward_keeps_weights():
    """资格痕迹非零, 但 |reward| ≤ ε → 权重保持不变"""
    print_header("Case 3b: 阈值以下奖励")

    ctx, net, pre, post, syn = make_pair_network(plastic=True, weight=0.25)
    pops, nets = ctx.populations, ctx.networks

    pops.inject_uniform_current(pre, 1000.0)
    nets.step(net)
    pops.inject_uniform_current(post, 1000.0)
    nets.step(net)

    nets.set_reward(net, 0.0005)
    nets.step(net)
    g = ctx.synapses.state(syn)
    print(f"  w={g.weights}, e={g.eligibility}")
    assert g.eligibility[0] > 0.0, "因果时序应留下正的资格痕迹"
    assert g.weights[0] == pytest.approx(0.25), "阈值以下奖励不应改变权重"
    assert ctx.networks.state(net).dopamine == pytest.approx(0.0005)
    print("  ✅ PASS")


# =============================================================================
# Case 4: 端到端三因子学习
# =============================================================================

def test_case_4_reward_strengthens_causal_synapse():
    """pre@t0 → post@t1 → 奖励@t2 → 权重增加"""
    print_header("Case 4: 端到端三因子学习")

    ctx, net, pre, post, syn = make_pair_network(plastic=True, weight=0.25)
    pops, nets = ctx.populations, ctx.networks

    pops.inject_uniform_current(pre, 1000.0)
    nets.step(net)
    pops.inject_uniform_current(post, 1000.0)
    nets.step(net)
    assert pops.state(post).fired[0]
    assert ctx.synapses.state(syn).weights[0] == pytest.approx(0.25)

    nets.set_reward(net, 1.0)
    nets.step(net)
    g = ctx.synapses.state(syn)
    print(f"  w={g.weights}, e={g.eligibility}")
    assert g.weights[0] > 0.25, "因果时序 + 正奖励应增强突触"
    print("  ✅ PASS")


# =============================================================================
# Case 5: 调质系统
# =============================================================================

def test_case_5_modulation_gate():
    """附加调质系统后奖励来自组合门控, 旧式多巴胺不参与"""
    print_header("Case 5: 调质门控")

    ctx, net, *_ = make_pair_network(plastic=True)
    mod = ctx.modulation.allocate("net")
    ctx.modulation.signal_reward(mod, 1.0)
    ctx.networks.set_reward(net, 1.0)

    ctx.networks.step(net)
    assert ctx.networks.state(net).dopamine == pytest.approx(1.0), \
        "有调质系统时旧式多巴胺不应衰减"
    assert ctx.modulation.reward_signal(mod) == pytest.approx(0.9), "调质应每步衰减"
    print("  ✅ PASS")


# =============================================================================
# Case 6: E/I 平衡
# =============================================================================

def test_case_6_ei_balance():
    """8 个兴奋 + 2 个抑制同时发放 → ratio = 0.8"""
    print_header("Case 6: E/I 平衡")

    ctx = SimulationContext(SimulationConfig(seed=3))
    exc = ctx.populations.allocate("exc", 8, "RS", QUIET)
    inh = ctx.populations.allocate("inh", 2, "FS", QUIET)
    net = ctx.networks.allocate("ei")
    ctx.networks.add_population(net, exc)
    ctx.networks.add_population(net, inh)
    ctx.networks.add_population(net, exc)

    assert ctx.networks.ei_ratio(net) == 0.0
    ctx.populations.inject_uniform_current(exc, 1000.0)
    ctx.populations.inject_uniform_current(inh, 1000.0)
    ctx.networks.step(net)

    stats = ctx.networks.ei_balance_stats(net)
    summary = ctx.networks.summary(net)
    print(f"  ei = {stats}")
    print(f"  summary = {summary}")
    assert stats["excitatory"] == 8 and stats["inhibitory"] == 2
    assert stats["ratio"] == pytest.approx(0.8)
    assert summary["total_neurons"] == 10, "重复加入的群体只计一次"
    assert summary["total_spikes"] == 10
    assert summary["timestep"] == 1

    ctx.networks.reset(net)
    assert ctx.networks.timestep(net) == 0
    assert ctx.populations.mean_voltage(exc) == pytest.approx(V_REST)
    print("  ✅ PASS")


# =============================================================================
# Case 7: 稳态可塑性
# =============================================================================

def test_case_7_homeostasis_scales_down():
    """每 tick 都发放 (率 ≫ 5%) → 稳态缩放 < 1, 非可塑权重随之下降"""
    print_header("Case 7: 稳态可塑性")

    ctx = SimulationContext(SimulationConfig(seed=4))
    driven = PopulationOptions(excitatory=True, noise=0.0)
    a = ctx.populations.allocate("a", 5, "FS", driven)
    b = ctx.populations.allocate("b", 5, "FS", driven)
    conn = one_to_one(5)
    syn = ctx.synapses.allocate("a_b", a, b, conn.pre_indices, conn.post_indices,
                                SynapseGroupOptions(initial_weights=np.full(5, 0.4),
                                                    plastic=False))
    net = ctx.networks.allocate("homeo", NetworkConfig(homeostasis_interval=10))
    ctx.networks.add_population(net, a)
    ctx.networks.add_population(net, b)
    ctx.networks.add_synapse_group(net, syn)

    with pytest.raises(ConfigurationError):
        ctx.networks.enable_homeostasis(net, target_rate=0.05, tau=0.5)
    ctx.networks.enable_homeostasis(net, target_rate=0.05, tau=100)

    for _ in range(100):
        ctx.populations.inject_uniform_current(a, 300.0)
        ctx.populations.inject_uniform_current(b, 300.0)
        ctx.networks.step(net)

    stats = ctx.networks.homeostasis_stats(net)
    w = ctx.synapses.mean_weight(syn)
    print(f"  homeostasis = {stats}")
    print(f"  mean weight: 0.4 → {w:.5f}")
    assert stats["enabled"]
    assert all(s < 1.0 for s in stats["avg_scales"])
    assert all(r > 0.05 for r in stats["avg_rates"])
    assert w < 0.4
    assert ctx.networks.homeostatic_scale(net, b).mean() == pytest.approx(stats["avg_scales"][1])

    ctx.networks.reset_homeostasis(net)
    stats = ctx.networks.homeostasis_stats(net)
    assert stats["avg_scales"] == [1.0, 1.0]
    assert stats["avg_rates"] == pytest.approx([0.05, 0.05])

    ctx.networks.disable_homeostasis(net)
    for _ in range(20):
        ctx.populations.inject_uniform_current(a, 300.0)
        ctx.networks.step(net)
    assert ctx.synapses.mean_weight(syn) == pytest.approx(w), "关闭后权重不再缩放"
    print("  ✅ PASS")


# =============================================================================
# Case 8: 前馈网络 + 级联释放
# =============================================================================

def test_case_8_feedforward_and_release():
    """create_feedforward_network 建层与连接; release(cascade=True) 清理成员"""
    print_header("Case 8: 前馈网络")

    ctx = SimulationContext(SimulationConfig(seed=5))
    net, pops = ctx.create_feedforward_network("ff", [20, 10, 5], density=0.5)
    print(f"  {ctx}")
    assert len(pops) == 3
    assert ctx.populations.get("ff_layer2") == pops[2]
    assert ctx.synapses.get("ff_syn0_1") is not None
    assert ctx.synapses.get("ff_syn1_2") is not None
    assert len(ctx.networks.state(net).groups) == 2

    for _ in range(50):
        ctx.populations.inject_uniform_current(pops[0], 15.0)
        ctx.networks.step(net)
    assert ctx.networks.timestep(net) == 50

    ctx.networks.release("ff", cascade=True)
    assert len(ctx.populations) == 0
    assert len(ctx.synapses) == 0
    assert len(ctx.networks) == 0
    with pytest.raises(StaleHandleError):
        ctx.networks.step(net)
    with pytest.raises(ConfigurationError):
        ctx.create_feedforward_network("single", [4])
    print("  ✅ PASS")


# =============================================================================
# Case 9: debug 检查 + 取消
# =============================================================================

def test_case_9_debug_and_cancel():
    """NaN 电压在 flush 屏障被发现; cancel 让 step 在屏障处抛出"""
    print_header("Case 9: debug + 取消")

    ctx = SimulationContext(SimulationConfig(seed=6, debug=True))
    pop = ctx.populations.allocate("p", 3, "RS")
    ctx.flush()

    ctx.populations.state(pop).voltage[1] = np.nan
    with pytest.raises(NumericalDivergenceError):
        ctx.flush()

    ctx2, net, *_ = make_pair_network()
    ctx2.cancel()
    with pytest.raises(SimulationCancelled):
        ctx2.networks.step(net)
    assert ctx2.networks.timestep(net) == 1, "取消前本 tick 已完成"
    ctx2.networks.step(net)
    assert ctx2.networks.timestep(net) == 2
    print("  ✅ PASS")


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v", "-s"]))
