"""
实验辅助工具 — 窗口统计/权重快照/格式化

提供实验代码共用的工具函数，保持实验代码简洁。
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from izhinet.context import SimulationContext
from izhinet.core.registry import SlotHandle


# =============================================================================
# 时间窗口统计
# =============================================================================

def collect_window_stats(
    ctx: SimulationContext,
    net: SlotHandle,
    duration: int,
    drive: Callable[[int], None],
    window_size: int = 100,
) -> List[Dict]:
    """运行仿真并按时间窗口收集各群体的发放数

    Args:
        ctx: 仿真上下文
        net: 网络句柄
        duration: 仿真时长 (ms)
        drive: 每步调用一次的输入函数 drive(t), 在 step 之前注入电流
        window_size: 统计窗口大小 (ms)

    Returns:
        列表，每个元素是一个窗口的统计字典:
        {
            'window_start': int,
            'window_end': int,
            'pop_spikes': {pop_id: int},
            'exc_spikes': int,
            'inh_spikes': int,
            'ei_ratio': float,
        }
    """
    nets = ctx.networks
    members = nets.state(net).populations
    names = [ctx.populations.registry.id_of(p) for p in members]

    windows = []
    start = nets.timestep(net)
    current = _new_window_stats(start, start + window_size, names)

    for i in range(duration):
        drive(nets.timestep(net))
        nets.step(net)

        for name, pop in zip(names, members):
            current['pop_spikes'][name] += ctx.populations.spike_count(pop)
        ei = nets.ei_balance_stats(net)
        current['exc_spikes'] += ei['excitatory']
        current['inh_spikes'] += ei['inhibitory']

        if (i + 1) % window_size == 0:
            _finalize_window(current)
            windows.append(current)
            next_start = start + i + 1
            current = _new_window_stats(next_start, next_start + window_size, names)

    # 处理最后一个不完整窗口
    if duration % window_size != 0:
        _finalize_window(current)
        windows.append(current)

    return windows


def _new_window_stats(start: int, end: int, names: List[str]) -> Dict:
    return {
        'window_start': start,
        'window_end': end,
        'pop_spikes': {name: 0 for name in names},
        'exc_spikes': 0,
        'inh_spikes': 0,
        'ei_ratio': 0.0,
    }


def _finalize_window(window: Dict) -> None:
    total = window['exc_spikes'] + window['inh_spikes']
    window['ei_ratio'] = window['exc_spikes'] / total if total > 0 else 0.0


# =============================================================================
# 权重快照
# =============================================================================

def snapshot_weights(ctx: SimulationContext, net: SlotHandle) -> Dict[str, Dict]:
    """拍摄网络内所有突触组的权重快照

    Returns:
        {group_id: {'mean', 'std', 'min', 'max', 'count'}, 'all': {...}}
    """
    syns = ctx.synapses
    result = {}
    everything = []
    for g in ctx.networks.state(net).groups:
        w = syns.state(g).weights
        everything.append(w)
        result[syns.registry.id_of(g)] = _weight_summary(w)
    result['all'] = _weight_summary(np.concatenate(everything) if everything else np.zeros(0))
    return result


def _weight_summary(w: np.ndarray) -> Dict:
    if len(w) == 0:
        return {'mean': 0.0, 'std': 0.0, 'min': 0.0, 'max': 0.0, 'count': 0}
    return {
        'mean': float(np.mean(w)),
        'std': float(np.std(w)),
        'min': float(np.min(w)),
        'max': float(np.max(w)),
        'count': len(w),
    }


# =============================================================================
# 格式化打印
# =============================================================================

def print_header(title: str) -> None:
    """打印实验标题"""
    print(f"\n{'=' * 70}")
    print(f"  {title}")
    print(f"{'=' * 70}")


def print_window_table(windows: List[Dict]) -> None:
    """打印时间窗口统计表格"""
    if not windows:
        return
    names = list(windows[0]['pop_spikes'].keys())
    header = "".join(f"{name:>12}" for name in names)
    print(f"\n  {'窗口(ms)':<15}{header} {'E':>8} {'I':>8} {'E/(E+I)':>9}")
    print(f"  {'-' * (42 + 12 * len(names))}")
    for w in windows:
        counts = "".join(f"{w['pop_spikes'][name]:>12}" for name in names)
        print(f"  {w['window_start']:>4}-{w['window_end']:<10}{counts} "
              f"{w['exc_spikes']:>8} {w['inh_spikes']:>8} {w['ei_ratio']:>8.1%}")


def print_weight_table(snapshots: List[Tuple[int, Dict]],
                       categories: Optional[List[str]] = None) -> None:
    """打印权重演化表

    Args:
        snapshots: [(time_ms, snapshot_dict), ...]
        categories: 要显示的突触组 (默认全部)
    """
    if categories is None:
        categories = list(snapshots[0][1].keys()) if snapshots else []

    for cat in categories:
        print(f"\n  [{cat}]")
        print(f"  {'时间(ms)':<10} {'mean':>8} {'std':>8} {'min':>8} {'max':>8} {'count':>6}")
        print(f"  {'-' * 52}")
        for t, snap in snapshots:
            s = snap.get(cat, {})
            if s.get('count', 0) > 0:
                print(f"  {t:<10} {s['mean']:>8.4f} {s['std']:>8.4f} "
                      f"{s['min']:>8.4f} {s['max']:>8.4f} {s['count']:>6}")
            else:
                print(f"  {t:<10} {'(无突触)':>8}")
