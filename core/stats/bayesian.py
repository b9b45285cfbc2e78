"""
贝叶斯推断：Beta-Binomial 共轭更新、贝叶斯 AB 测试、贝叶斯线性回归。

说明：
- 共轭更新是确定性的，后验可信区间通过 beta_ppf 二分求得；
- AB 测试用蒙特卡洛估计 P(treatment > control)，随机性通过 rng / seed 注入；
- 线性回归使用已知噪声方差 = 1 的共轭正态先验，协方差矩阵 O(p³) 求逆。
"""

import math
import random
from typing import Optional, Sequence

from core.logger import get_logger

from .descriptive import to_float_list
from .distributions import beta_ppf
from .errors import DimensionMismatchError, InsufficientDataError
from .linalg import invert, matrix_vector_multiply, multiply, transpose
from .monte_carlo import beta_sample, resolve_rng
from .results import (
    ABTestResult,
    BayesianRegressionResult,
    BetaPosterior,
    BetaPrior,
    ConfidenceInterval,
)

logger = get_logger(__name__)


def _check_count(value: int, name: str) -> int:
    if isinstance(value, bool) or int(value) != value or value < 0:
        raise ValueError(f"{name} 必须是非负整数，当前为: {value}")
    return int(value)


def update_beta_prior(
    prior: BetaPrior,
    successes: int,
    failures: int,
    credible_level: float = 0.95,
    max_iterations: int = 100,
    tolerance: float = 1e-6,
) -> BetaPosterior:
    """
    Beta 先验 + 二项观测 -> Beta 后验。

    参数：
    - prior: Beta 先验；
    - successes / failures: 成功 / 失败次数（非负整数）；
    - credible_level: 等尾可信区间水平；
    - max_iterations / tolerance: 传给 beta_ppf 的二分参数。

    返回：
    - BetaPosterior，alpha' = alpha + successes，beta' = beta + failures。
    """
    successes = _check_count(successes, "successes")
    failures = _check_count(failures, "failures")
    if not 0.0 < credible_level < 1.0:
        raise ValueError(f"credible_level 必须在 (0, 1) 区间内，当前为: {credible_level}")

    a = prior.alpha + successes
    b = prior.beta + failures
    total = a + b

    if a > 1.0 and b > 1.0:
        mode: Optional[float] = (a - 1.0) / (total - 2.0)
    elif a <= 1.0 < b:
        mode = 0.0
    elif b <= 1.0 < a:
        mode = 1.0
    else:
        mode = None

    tail = (1.0 - credible_level) / 2.0
    interval = ConfidenceInterval(
        beta_ppf(tail, a, b, max_iterations=max_iterations, tolerance=tolerance),
        beta_ppf(1.0 - tail, a, b, max_iterations=max_iterations, tolerance=tolerance),
    )

    return BetaPosterior(
        alpha=a,
        beta=b,
        mean=a / total,
        mode=mode,
        variance=a * b / (total * total * (total + 1.0)),
        credible_interval=interval,
    )


def ab_test(
    control_successes: int,
    control_total: int,
    treatment_successes: int,
    treatment_total: int,
    prior: Optional[BetaPrior] = None,
    n_samples: int = 10000,
    rng: Optional[random.Random] = None,
    seed: Optional[int] = None,
) -> ABTestResult:
    """
    贝叶斯 AB 测试（转化率类指标）。

    说明：
    - 两组分别做 Beta-Binomial 共轭更新；
    - 从两个后验各抽 n_samples 个样本，估计 P(treatment > control)
      以及相对提升 (t - c) / c 的均值；
    - 传入相同 seed（或相同状态的 rng）时结果完全一致。
    """
    prior = prior or BetaPrior()
    control_successes = _check_count(control_successes, "control_successes")
    control_total = _check_count(control_total, "control_total")
    treatment_successes = _check_count(treatment_successes, "treatment_successes")
    treatment_total = _check_count(treatment_total, "treatment_total")
    if control_total == 0 or treatment_total == 0:
        raise InsufficientDataError("对照组和实验组的样本量都必须大于 0。")
    if control_successes > control_total:
        raise ValueError("control_successes 不能大于 control_total。")
    if treatment_successes > treatment_total:
        raise ValueError("treatment_successes 不能大于 treatment_total。")
    if n_samples < 1:
        raise ValueError(f"n_samples 必须 >= 1，当前为: {n_samples}")

    control = update_beta_prior(prior, control_successes, control_total - control_successes)
    treatment = update_beta_prior(
        prior, treatment_successes, treatment_total - treatment_successes
    )

    generator = resolve_rng(rng, seed)
    wins = 0
    lift_sum = 0.0
    for _ in range(n_samples):
        c = beta_sample(generator, control.alpha, control.beta)
        t = beta_sample(generator, treatment.alpha, treatment.beta)
        if t > c:
            wins += 1
        lift_sum += (t - c) / c

    result = ABTestResult(
        control_posterior=control,
        treatment_posterior=treatment,
        probability_treatment_better=wins / n_samples,
        expected_lift=lift_sum / n_samples,
        n_samples=n_samples,
    )
    logger.debug(
        "贝叶斯 AB 测试完成：P(treatment > control)=%.4f, lift=%.4f, n_samples=%d",
        result.probability_treatment_better,
        result.expected_lift,
        n_samples,
    )
    return result


def bayesian_linear_regression(
    design_matrix: Sequence[Sequence[float]],
    targets: Sequence[float],
    prior_mean: Optional[Sequence[float]] = None,
    prior_precision: float = 1.0,
    fit_intercept: bool = True,
) -> BayesianRegressionResult:
    """
    贝叶斯线性回归（正态先验 N(m0, I/λ)，噪声方差取 1）。

    公式：
    - Σ = (XᵀX + λI)⁻¹；
    - μ = Σ(Xᵀy + λ·m0)；
    - 预测值 Xμ，预测不确定性 sqrt(xᵀΣx)。

    参数：
    - design_matrix: n×p 自变量矩阵（n >= 3）；
    - targets: 长度 n 的因变量；
    - prior_mean: 先验均值 m0，默认全 0，长度需与（含截距的）系数个数一致；
    - prior_precision: 先验精度 λ > 0；
    - fit_intercept: 是否在最前面补一列 1 作为截距。
    """
    if prior_precision <= 0.0:
        raise ValueError(f"prior_precision 必须大于 0，当前为: {prior_precision}")
    y = to_float_list(targets, "targets", min_size=3)
    rows = [to_float_list(row, f"design_matrix[{i}]") for i, row in enumerate(design_matrix)]
    if len(rows) != len(y):
        raise DimensionMismatchError(
            f"design_matrix 行数 {len(rows)} 与 targets 长度 {len(y)} 不一致。"
        )
    width = len(rows[0])
    if any(len(row) != width for row in rows):
        raise DimensionMismatchError("design_matrix 各行长度必须一致。")

    x = [[1.0] + row for row in rows] if fit_intercept else rows
    p = len(x[0])
    m0 = [0.0] * p if prior_mean is None else to_float_list(prior_mean, "prior_mean")
    if len(m0) != p:
        raise DimensionMismatchError(f"prior_mean 长度 {len(m0)} 与系数个数 {p} 不一致。")

    x_t = transpose(x)
    precision = multiply(x_t, x)
    for i in range(p):
        precision[i][i] += prior_precision
    covariance = invert(precision)

    xty = matrix_vector_multiply(x_t, y)
    rhs = [v + prior_precision * m for v, m in zip(xty, m0)]
    posterior_mean = matrix_vector_multiply(covariance, rhs)

    predictions = matrix_vector_multiply(x, posterior_mean)
    uncertainty = []
    for row in x:
        spread = sum(a * b for a, b in zip(row, matrix_vector_multiply(covariance, row)))
        uncertainty.append(math.sqrt(max(spread, 0.0)))

    return BayesianRegressionResult(
        posterior_mean=tuple(posterior_mean),
        posterior_covariance=tuple(tuple(row) for row in covariance),
        predictions=tuple(predictions),
        uncertainty=tuple(uncertainty),
    )
