import numpy as np

from tbsim.errors import ConfigurationError


class ProbabilityDistribution:
    """
    概率分布类，用于表示每个激励值的权重（类似 SystemVerilog 的 dist）。
    """

    def __init__(self, distribution):
        """
        参数:
            distribution: {激励值: 权重} 字典，或 [(激励值, 权重), ...] 列表。
                权重可以是概率也可以是计数，总和不为 1 时自动归一化。

        示例:
            # 全 0、全 1 各占一份，0x55 占两份
            dist = ProbabilityDistribution({0x00: 1, 0xFF: 1, 0x55: 2})
        """
        # 将输入转换为统一的字典格式
        if isinstance(distribution, dict):
            self._distribution_dict = distribution.copy()
        elif isinstance(distribution, list):
            # 列表格式：[(value, prob), ...]
            self._distribution_dict = {value: prob for value, prob in distribution}
        else:
            raise ConfigurationError(f"distribution 必须是 dict 或 list，但收到了 {type(distribution)}")

        if not self._distribution_dict:
            raise ConfigurationError("分布不能为空")

        # 激励值必须是整数，信号没有小数
        if not all(isinstance(k, (int, np.integer)) and not isinstance(k, bool)
                   for k in self._distribution_dict.keys()):
            raise ConfigurationError("分布的所有键（激励值）必须是整数")

        if not all(isinstance(v, (int, float, np.integer, np.floating))
                   for v in self._distribution_dict.values()):
            raise ConfigurationError("分布的所有值（概率/计数）必须是数字类型")

        if any(v < 0 for v in self._distribution_dict.values()):
            raise ConfigurationError("概率/计数不能为负数")

        # 归一化概率（如果总和不为1，则归一化）
        total = sum(self._distribution_dict.values())
        if total <= 0:
            raise ConfigurationError("概率/计数的总和必须大于0")

        if abs(total - 1.0) > 1e-10:  # 如果总和不是1，则归一化
            self._distribution_dict = {k: v / total for k, v in self._distribution_dict.items()}

        # 提取数值和对应的概率；保持插入顺序，同一种子下抽样结果才可复现
        self.values = [int(k) for k in self._distribution_dict.keys()]
        self.probabilities = np.array(list(self._distribution_dict.values()), dtype=float)

    def __repr__(self):
        """返回概率分布的字符串表示。"""
        items = sorted(self._distribution_dict.items())
        items_str = ", ".join(f"{val}: {prob:.4f}" for val, prob in items)
        return f"ProbabilityDistribution({{{items_str}}})"

    def __getitem__(self, value):
        """获取指定数值的概率。"""
        return self._distribution_dict.get(value, 0.0)

    def sample(self, rng: np.random.Generator) -> int:
        """
        按分布抽取一个值。

        参数:
            rng: np.random.Generator，由调用方持有，保证可复现
        """
        # 对下标抽样而不是直接对值抽样：值可能超出 int64 范围
        index = rng.choice(len(self.values), p=self.probabilities)
        return self.values[int(index)]
