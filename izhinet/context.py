"""
SimulationContext — 仿真上下文

一个显式持有全部仿真状态的值:
  rng / queue / populations / synapses / modulation / networks

没有模块级可变状态: 同一进程中可以并存多个互不干扰的上下文,
每个组件都通过构造参数拿到它需要的 store。

使用示例:
    ctx = SimulationContext(SimulationConfig(seed=42))
    net, pops = ctx.create_feedforward_network("ff", [20, 10, 5])
    for t in range(1000):
        ctx.populations.inject_uniform_current(pops[0], 8.0)
        ctx.networks.step(net)
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from izhinet.config import NetworkConfig, SimulationConfig
from izhinet.core.network import NetworkStore
from izhinet.core.op_queue import OperationQueue
from izhinet.core.population import PopulationStore
from izhinet.core.registry import SlotHandle
from izhinet.core.synapse_group import SynapseGroupStore
from izhinet.errors import ConfigurationError, check_finite, check_index_range
from izhinet.modulation.neuromodulation import ModulationStore
from izhinet.neuron.presets import PopulationOptions, is_type_excitatory
from izhinet.synapse.connectivity import CircuitTemplate, feedforward
from izhinet.synapse.params import SynapseGroupOptions

logger = logging.getLogger(__name__)


class SimulationContext:
    """仿真上下文: 拥有随机数生成器、操作队列与全部 store"""

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self.rng = np.random.default_rng(self.config.seed)
        self.queue = OperationQueue(self.config.max_pending)

        self.populations = PopulationStore(self.rng, self.queue)
        self.synapses = SynapseGroupStore(self.populations, self.rng)
        self.modulation = ModulationStore()
        self.networks = NetworkStore(
            self.populations, self.synapses, self.modulation, self.queue)

        if self.config.debug:
            self.queue.add_barrier_hook(self.check_numerics)

    def flush(self) -> int:
        """执行所有排队操作并触发屏障钩子"""
        return self.queue.flush()

    def cancel(self) -> None:
        """请求取消, 下一次 flush 抛出 SimulationCancelled"""
        self.queue.cancel()

    def check_numerics(self) -> None:
        """检查所有群体的 v/u 与所有突触组的权重是否有限

        debug 模式下作为屏障钩子在每次 flush 时运行。
        """
        for handle in self.populations.handles():
            st = self.populations.state(handle)
            pop_id = self.populations.registry.id_of(handle)
            check_finite(f"{pop_id}.voltage", st.voltage)
            check_finite(f"{pop_id}.recovery", st.recovery)
        for handle in self.synapses.handles():
            group_id = self.synapses.registry.id_of(handle)
            check_finite(f"{group_id}.weights", self.synapses.state(handle).weights)

    # =========================================================================
    # 便捷构造
    # =========================================================================

    def create_feedforward_network(
        self,
        net_id: str,
        layer_sizes: Sequence[int],
        density: float = 0.1,
        config: Optional[NetworkConfig] = None,
    ) -> Tuple[SlotHandle, List[SlotHandle]]:
        """创建多层前馈网络

        每层一个 RS 兴奋性群体 ("{net_id}_layer{i}"),
        相邻层之间按 density 随机稀疏连接 ("{net_id}_syn{i}_{i+1}")。

        Returns:
            (网络句柄, 各层群体句柄列表)
        """
        if len(layer_sizes) < 2:
            raise ConfigurationError(f"前馈网络至少需要两层, 得到 {list(layer_sizes)}")
        conns = feedforward(layer_sizes, density, self.rng)

        net = self.networks.allocate(net_id, config)
        pops = []
        for i, size in enumerate(layer_sizes):
            pop = self.populations.allocate(f"{net_id}_layer{i}", size)
            self.networks.add_population(net, pop)
            pops.append(pop)

        for i, conn in enumerate(conns):
            group = self.synapses.allocate(
                f"{net_id}_syn{i}_{i + 1}", pops[i], pops[i + 1],
                conn.pre_indices, conn.post_indices,
            )
            self.networks.add_synapse_group(net, group)

        logger.info("前馈网络 %r: layers=%s, density=%g", net_id, list(layer_sizes), density)
        return net, pops

    def create_circuit(
        self,
        net_id: str,
        template: CircuitTemplate,
        config: Optional[NetworkConfig] = None,
    ) -> Tuple[SlotHandle, Dict[str, SlotHandle]]:
        """把电路模板实例化为一个网络

        群体 id 为 "{net_id}_{spec.id}", 突触组 id 为 "{net_id}_{pre_id}_{post_id}"。
        模板中的 excitatory 标志覆盖预设推断; Connectivity 自带的权重作为初始权重。
        整个模板先校验再分配, 校验失败不留下任何部分状态。

        Returns:
            (网络句柄, {模板群体 id: 群体句柄})
        """
        sizes: Dict[str, int] = {}
        for spec in template.populations:
            if spec.id in sizes:
                raise ConfigurationError(f"模板中群体 id 重复: {spec.id!r}")
            if spec.size < 1:
                raise ConfigurationError(f"群体 {spec.id!r} 大小必须 ≥ 1, 得到 {spec.size}")
            is_type_excitatory(spec.neuron_type)
            sizes[spec.id] = spec.size

        pairs = set()
        for conn in template.connections:
            for pop_id in (conn.pre_id, conn.post_id):
                if pop_id not in sizes:
                    raise ConfigurationError(f"连接引用了未定义的群体 {pop_id!r}")
            if (conn.pre_id, conn.post_id) in pairs:
                raise ConfigurationError(f"模板中连接重复: {conn.pre_id} → {conn.post_id}")
            pairs.add((conn.pre_id, conn.post_id))
            c = conn.connectivity
            check_index_range(f"{conn.pre_id}.pre_indices", c.pre_indices, sizes[conn.pre_id])
            check_index_range(f"{conn.post_id}.post_indices", c.post_indices, sizes[conn.post_id])

        net = self.networks.allocate(net_id, config)
        pops: Dict[str, SlotHandle] = {}
        for spec in template.populations:
            pop = self.populations.allocate(
                f"{net_id}_{spec.id}", spec.size, spec.neuron_type,
                PopulationOptions(excitatory=spec.excitatory),
            )
            self.networks.add_population(net, pop)
            pops[spec.id] = pop

        for conn in template.connections:
            c = conn.connectivity
            group = self.synapses.allocate(
                f"{net_id}_{conn.pre_id}_{conn.post_id}",
                pops[conn.pre_id], pops[conn.post_id],
                c.pre_indices, c.post_indices,
                SynapseGroupOptions(initial_weights=c.weights, plastic=conn.plastic),
            )
            self.networks.add_synapse_group(net, group)

        logger.info("电路 %r: %d 个群体 / %d 个神经元, %d 组连接 / %d 个突触",
                    net_id, len(template.populations), template.neuron_count,
                    len(template.connections), template.synapse_count)
        return net, pops

    def __repr__(self) -> str:
        return (
            f"SimulationContext(populations={len(self.populations)}, "
            f"synapse_groups={len(self.synapses)}, "
            f"networks={len(self.networks)})"
        )
