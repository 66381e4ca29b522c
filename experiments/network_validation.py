"""
网络级验证实验

3 个实验验证仿真核心在网络尺度上的行为:
  实验 1: 前馈级联 — 输入层驱动逐层传播
  实验 2: 奖励调制学习 — 调质门控下的三因子权重演化
  实验 3: 稳态可塑性 — 过度活跃的 E/I 网络被缩放回目标附近

关键约束:
  - 不修改神经元动力学参数
  - 不修改可塑性规则
  - 只调连接拓扑/输入强度/网络规模
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import logging
from typing import Dict

import numpy as np

from izhinet.config import NetworkConfig, SimulationConfig
from izhinet.context import SimulationContext
from izhinet.neuron.presets import PopulationOptions
from izhinet.signal_types import NeuronRole
from izhinet.synapse.connectivity import lateral_inhibition, random_sparse, recurrent
from izhinet.synapse.params import SynapseGroupOptions
from experiments.utils import (
    collect_window_stats,
    snapshot_weights,
    print_header,
    print_window_table,
    print_weight_table,
)


# =============================================================================
# 实验 1: 前馈级联
# =============================================================================

def experiment_1_feedforward_cascade(
    layer_sizes=(50, 30, 20),
    density: float = 0.3,
    drive: float = 10.0,
    duration: int = 500,
    seed: int = 42,
) -> Dict:
    """输入层持续驱动, 观察各层发放数

    预期结果:
    - layer0: 高发放 (直接接收输入)
    - layer1: 有发放 (layer0 → layer1)
    """
    print_header("实验 1: 前馈级联")

    ctx = SimulationContext(SimulationConfig(seed=seed))
    net, pops = ctx.create_feedforward_network("ff", list(layer_sizes), density)

    windows = collect_window_stats(
        ctx, net, duration,
        drive=lambda t: ctx.populations.inject_uniform_current(pops[0], drive),
    )
    print_window_table(windows)

    totals = {name: sum(w['pop_spikes'][name] for w in windows)
              for name in windows[0]['pop_spikes']}
    passed = totals['ff_layer0'] > 0 and totals['ff_layer1'] > 0
    print(f"\n  各层总发放: {totals}")
    print(f"\n  {'✅ PASS' if passed else '❌ FAIL'}: 输入层活动传播到下一层")
    return {'totals': totals, 'passed': passed}


# =============================================================================
# 实验 2: 奖励调制学习
# =============================================================================

def experiment_2_reward_modulated_learning(
    n_sensor: int = 20,
    n_motor: int = 10,
    duration: int = 2000,
    seed: int = 42,
) -> Dict:
    """感觉 → 运动, 运动层发放后给予奖励 (DA), 观察权重演化

    只有前半感觉神经元接收输入; 与运动发放因果相关的突触应被强化。
    """
    print_header("实验 2: 奖励调制学习")

    ctx = SimulationContext(SimulationConfig(seed=seed))
    pops, syns, nets, mods = ctx.populations, ctx.synapses, ctx.networks, ctx.modulation

    sensor = pops.allocate("sensor", n_sensor, "RS", PopulationOptions(role=NeuronRole.SENSORY))
    motor = pops.allocate("motor", n_motor, "RS", PopulationOptions(role=NeuronRole.MOTOR))
    conn = random_sparse(n_sensor, n_motor, 0.5, ctx.rng)
    syn = syns.allocate("sensor_motor", sensor, motor, conn.pre_indices, conn.post_indices)

    net = nets.allocate("agent")
    nets.add_population(net, sensor)
    nets.add_population(net, motor)
    nets.add_synapse_group(net, syn)
    mod = mods.allocate("agent")

    active = np.arange(n_sensor // 2)
    snapshots = [(0, snapshot_weights(ctx, net))]
    rewards = 0
    for t in range(duration):
        pops.inject_current(sensor, active, 12.0)
        pops.inject_uniform_current(motor, 3.0)
        nets.step(net)
        if pops.spike_count(motor) > 0:
            mods.signal_reward(mod, 0.2)
            rewards += 1
        if (t + 1) % 500 == 0:
            snapshots.append((t + 1, snapshot_weights(ctx, net)))

    print_weight_table(snapshots, ['sensor_motor'])

    g = syns.state(syn)
    driven = np.isin(g.pre_indices, active)
    w_driven = float(g.weights[driven].mean()) if driven.any() else 0.0
    w_silent = float(g.weights[~driven].mean()) if (~driven).any() else 0.0
    finite = bool(np.all(np.isfinite(g.weights)))
    in_bounds = bool(np.all((g.weights >= g.min_weight) & (g.weights <= g.max_weight)))

    print(f"\n  奖励次数: {rewards}")
    print(f"  驱动突触平均权重: {w_driven:.4f}")
    print(f"  静默突触平均权重: {w_silent:.4f}")
    print(f"  调质水平: {mods.levels(mod)}")

    passed = finite and in_bounds
    print(f"\n  {'✅ PASS' if passed else '❌ FAIL'}: 权重有限且在 Dale 边界内")
    return {
        'snapshots': snapshots,
        'w_driven': w_driven,
        'w_silent': w_silent,
        'passed': passed,
    }


# =============================================================================
# 实验 3: 稳态可塑性
# =============================================================================

def experiment_3_homeostasis(
    n_exc: int = 80,
    n_inh: int = 20,
    drive: float = 8.0,
    duration: int = 3000,
    seed: int = 42,
) -> Dict:
    """强驱动的 E/I 网络 + 稳态可塑性

    预期结果:
    - 发放率高于目标 5% → 稳态缩放 < 1
    - E/I 比率保持在兴奋主导区间
    """
    print_header("实验 3: 稳态可塑性")

    ctx = SimulationContext(SimulationConfig(seed=seed))
    pops, syns, nets = ctx.populations, ctx.synapses, ctx.networks

    exc = pops.allocate("exc", n_exc, "RS")
    inh = pops.allocate("inh", n_inh, "FS")
    net = nets.allocate("ei", NetworkConfig(homeostasis_interval=50))
    nets.add_population(net, exc)
    nets.add_population(net, inh)

    wiring = [
        ("e_e", exc, exc, recurrent(n_exc, 0.1, rng=ctx.rng)),
        ("e_i", exc, inh, random_sparse(n_exc, n_inh, 0.3, ctx.rng)),
        ("i_e", inh, exc, random_sparse(n_inh, n_exc, 0.3, ctx.rng)),
        ("i_i", inh, inh, lateral_inhibition(n_inh, 2)),
    ]
    for name, pre, post, conn in wiring:
        g = syns.allocate(name, pre, post, conn.pre_indices, conn.post_indices,
                          SynapseGroupOptions(plastic=False))
        nets.add_synapse_group(net, g)

    nets.enable_homeostasis(net, target_rate=0.05, tau=200)
    windows = collect_window_stats(
        ctx, net, duration,
        drive=lambda t: pops.inject_uniform_current(exc, drive),
        window_size=500,
    )
    print_window_table(windows)

    stats = nets.homeostasis_stats(net)
    print(f"\n  稳态: {stats}")
    print(f"  网络: {nets.summary(net)}")

    rates = stats['avg_rates']
    scales = stats['avg_scales']
    overactive = rates[0] > stats['target_rate']
    passed = (scales[0] < 1.0) if overactive else (scales[0] >= 1.0)
    print(f"\n  {'✅ PASS' if passed else '❌ FAIL'}: 缩放方向与发放率偏差一致")
    return {'windows': windows, 'homeostasis': stats, 'passed': passed}


# =============================================================================
# 主程序: 运行所有实验
# =============================================================================

def run_all_experiments(seed: int = 42):
    """运行全部 3 个实验"""
    print("╔══════════════════════════════════════════════════════════════════╗")
    print("║  izhinet: 网络级验证实验                                        ║")
    print("╚══════════════════════════════════════════════════════════════════╝")

    results = {
        '实验1: 前馈级联': experiment_1_feedforward_cascade(seed=seed)['passed'],
        '实验2: 奖励学习': experiment_2_reward_modulated_learning(seed=seed)['passed'],
        '实验3: 稳态可塑性': experiment_3_homeostasis(seed=seed)['passed'],
    }

    print_header("总结")
    for name, passed in results.items():
        icon = "✅" if passed else "❌"
        print(f"  {icon} {'PASS' if passed else 'FAIL'}: {name}")

    return results


if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='网络级验证实验')
    parser.add_argument('--seed', type=int, default=42, help='随机种子')
    parser.add_argument('--verbose', action='store_true', help='输出 izhinet 日志')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    run_all_experiments(seed=args.seed)
