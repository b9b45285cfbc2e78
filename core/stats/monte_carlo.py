"""
蒙特卡洛抽样工具：常用分布的随机变量生成、通用模拟、bootstrap 重抽样、Metropolis-Hastings MCMC。

约定：
- 所有随机性都来自调用方注入的 random.Random（或由 seed 构造），
  相同 seed 必然得到完全相同的结果，不使用模块级全局随机状态；
- 抽样器只依赖 rng.random()，方便在测试中替换为确定性序列。
"""

import math
import random
from typing import Callable, List, Optional, Sequence

from .descriptive import mean, median, percentile, population_variance, to_float_list
from .results import ConfidenceInterval, Histogram, MCMCResult, SimulationSummary

DEFAULT_PERCENTILES = (5, 10, 25, 50, 75, 90, 95, 99)
DEFAULT_HISTOGRAM_BINS = 20


def resolve_rng(rng: Optional[random.Random] = None, seed: Optional[int] = None) -> random.Random:
    """
    统一处理随机数发生器入参。

    - 传入 rng 时直接使用（seed 被忽略）；
    - 仅传入 seed 时构造新的 random.Random(seed)；
    - 都不传时使用系统熵初始化，结果不可复现。
    """
    if rng is not None:
        return rng
    return random.Random(seed)


def normal_sample(rng: random.Random, mean: float = 0.0, std: float = 1.0) -> float:
    """Box-Muller 变换生成一个正态随机数。"""
    if std < 0.0:
        raise ValueError(f"std 必须 >= 0，当前为: {std}")
    # 1 - random() 落在 (0, 1]，避免 log(0)
    u1 = 1.0 - rng.random()
    u2 = rng.random()
    z = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
    return mean + std * z


def log_normal_sample(rng: random.Random, mu: float = 0.0, sigma: float = 1.0) -> float:
    """exp(N(mu, sigma^2))。"""
    return math.exp(normal_sample(rng, mu, sigma))


def uniform_sample(rng: random.Random, low: float = 0.0, high: float = 1.0) -> float:
    if high < low:
        raise ValueError(f"均匀分布要求 low <= high，当前 low={low}, high={high}")
    return low + (high - low) * rng.random()


def exponential_sample(rng: random.Random, rate: float = 1.0) -> float:
    """逆变换法：-log(1 - U) / rate。"""
    if rate <= 0.0:
        raise ValueError(f"指数分布的 rate 必须大于 0，当前为: {rate}")
    return -math.log(1.0 - rng.random()) / rate


def triangular_sample(rng: random.Random, low: float, mode: float, high: float) -> float:
    """三角分布的逆变换抽样，要求 low <= mode <= high 且 low < high。"""
    if not low <= mode <= high or low == high:
        raise ValueError(f"三角分布要求 low <= mode <= high 且 low < high，当前为: {low}, {mode}, {high}")
    u = rng.random()
    width = high - low
    if u < (mode - low) / width:
        return low + math.sqrt(u * width * (mode - low))
    return high - math.sqrt((1.0 - u) * width * (high - mode))


def gamma_sample(rng: random.Random, shape: float, scale: float = 1.0) -> float:
    """
    Marsaglia-Tsang 方法生成 Gamma(shape, scale) 随机数。

    shape < 1 时先抽 Gamma(shape + 1)，再乘以 U^(1/shape)。
    """
    if shape <= 0.0 or scale <= 0.0:
        raise ValueError(f"Gamma 分布参数必须大于 0，当前 shape={shape}, scale={scale}")
    if shape < 1.0:
        u = 1.0 - rng.random()
        return gamma_sample(rng, shape + 1.0, scale) * u ** (1.0 / shape)

    d = shape - 1.0 / 3.0
    c = 1.0 / math.sqrt(9.0 * d)
    while True:
        x = normal_sample(rng)
        v = 1.0 + c * x
        if v <= 0.0:
            continue
        v = v * v * v
        u = 1.0 - rng.random()
        if u < 1.0 - 0.0331 * x**4:
            return d * v * scale
        if math.log(u) < 0.5 * x * x + d * (1.0 - v + math.log(v)):
            return d * v * scale


def beta_sample(rng: random.Random, alpha: float, beta: float) -> float:
    """Beta(alpha, beta) = X / (X + Y)，X ~ Gamma(alpha)，Y ~ Gamma(beta)。"""
    x = gamma_sample(rng, alpha)
    y = gamma_sample(rng, beta)
    return x / (x + y)


def histogram(values: Sequence[float], n_bins: int = DEFAULT_HISTOGRAM_BINS) -> Histogram:
    """
    [min, max] 上的等宽直方图，最大值落入最后一个箱。

    所有取值相同时箱宽为 0，全部计入第一个箱。
    """
    data = to_float_list(values, "values")
    if int(n_bins) != n_bins or n_bins < 1:
        raise ValueError(f"n_bins 必须是 >= 1 的整数，当前为: {n_bins}")
    low, high = min(data), max(data)
    width = (high - low) / n_bins
    counts = [0] * n_bins
    for v in data:
        index = 0 if width == 0.0 else min(int((v - low) / width), n_bins - 1)
        counts[index] += 1
    edges = tuple(low + i * width for i in range(n_bins)) + (high,)
    return Histogram(bin_edges=edges, counts=tuple(counts))


def summarize_samples(
    samples: Sequence[float],
    confidence_level: float = 0.95,
    percentiles: Sequence[int] = DEFAULT_PERCENTILES,
    n_bins: int = DEFAULT_HISTOGRAM_BINS,
) -> SimulationSummary:
    """
    汇总一组模拟结果。

    参数：
    - samples: 模拟得到的数值；
    - confidence_level: 百分位置信区间的水平；
    - percentiles: 需要输出的百分位点（0~100 的整数）；
    - n_bins: 直方图箱数。
    """
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"confidence_level 必须在 (0, 1) 区间内，当前为: {confidence_level}")
    values = to_float_list(samples, "samples")
    variance = population_variance(values)
    tail = (1.0 - confidence_level) / 2.0
    return SimulationSummary(
        n=len(values),
        mean=mean(values),
        median=median(values),
        std=math.sqrt(variance),
        variance=variance,
        min=min(values),
        max=max(values),
        percentiles=tuple((int(p), percentile(values, p / 100.0)) for p in percentiles),
        confidence_interval=ConfidenceInterval(
            percentile(values, tail), percentile(values, 1.0 - tail)
        ),
        histogram=histogram(values, n_bins),
    )


def simulate(
    sample_function: Callable[[random.Random], float],
    n_iterations: int = 10000,
    confidence_level: float = 0.95,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
) -> SimulationSummary:
    """
    通用蒙特卡洛模拟：调用 sample_function(rng) n_iterations 次并汇总结果。

    示例：
        simulate(lambda r: triangular_sample(r, 6.0, 7.5, 9.0), n_iterations=5000, seed=1)
    """
    if n_iterations < 1:
        raise ValueError(f"n_iterations 必须 >= 1，当前为: {n_iterations}")
    generator = resolve_rng(rng, seed)
    draws = [float(sample_function(generator)) for _ in range(n_iterations)]
    return summarize_samples(draws, confidence_level=confidence_level)


def bootstrap(
    data: Sequence[float],
    statistic: Callable[[List[float]], float],
    n_resamples: int = 1000,
    confidence_level: float = 0.95,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
) -> SimulationSummary:
    """
    Bootstrap 重抽样：对样本有放回抽样 n_resamples 次，计算 statistic 的分布。

    返回：
    - SimulationSummary，confidence_interval 为百分位 bootstrap 区间。
    """
    values = to_float_list(data, "data")
    if n_resamples < 1:
        raise ValueError(f"n_resamples 必须 >= 1，当前为: {n_resamples}")
    generator = resolve_rng(rng, seed)
    n = len(values)
    estimates = []
    for _ in range(n_resamples):
        resample = [values[int(generator.random() * n)] for _ in range(n)]
        estimates.append(float(statistic(resample)))
    return summarize_samples(estimates, confidence_level=confidence_level)


def mcmc(
    target_density: Callable[[float], float],
    initial_value: float,
    proposal_std: float = 1.0,
    n_iterations: int = 10000,
    burn_in: int = 0,
    confidence_level: float = 0.95,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
) -> MCMCResult:
    """
    随机游走 Metropolis-Hastings。

    参数：
    - target_density: 目标分布的（可未归一化）密度，取值 >= 0；
    - initial_value: 链的起点，要求 target_density(initial_value) > 0；
    - proposal_std: 正态提议分布的标准差；
    - n_iterations: 总迭代次数（含 burn_in）；
    - burn_in: 丢弃的前若干个状态。

    说明：
    - 提议 x' = x + N(0, proposal_std²)，以 min(1, p(x') / p(x)) 的概率接受；
    - 被拒绝时链停留在当前状态，该状态同样计入样本。
    """
    if proposal_std <= 0.0:
        raise ValueError(f"proposal_std 必须大于 0，当前为: {proposal_std}")
    if n_iterations < 1:
        raise ValueError(f"n_iterations 必须 >= 1，当前为: {n_iterations}")
    if not 0 <= burn_in < n_iterations:
        raise ValueError(f"burn_in 必须在 [0, n_iterations) 区间内，当前为: {burn_in}")
    current = float(initial_value)
    current_density = float(target_density(current))
    if not current_density > 0.0:
        raise ValueError(f"起点 {initial_value} 处的目标密度必须大于 0，当前为: {current_density}")

    generator = resolve_rng(rng, seed)
    chain: List[float] = []
    accepted = 0
    for _ in range(n_iterations):
        proposal = current + normal_sample(generator, 0.0, proposal_std)
        proposal_density = float(target_density(proposal))
        if proposal_density < 0.0:
            raise ValueError(f"目标密度不能为负，x={proposal} 处为: {proposal_density}")
        if generator.random() < min(1.0, proposal_density / current_density):
            current, current_density = proposal, proposal_density
            accepted += 1
        chain.append(current)

    samples = chain[burn_in:]
    return MCMCResult(
        samples=tuple(samples),
        summary=summarize_samples(samples, confidence_level=confidence_level),
        acceptance_rate=accepted / n_iterations,
    )
