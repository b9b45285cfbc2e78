"""
生存分析：Kaplan-Meier 估计、Log-rank 检验、Cox 比例风险回归、Weibull 参数模型。

约定：
- 输入为 SurvivalRecord 序列，也接受 (time, event) / (time, event, covariates) 元组；
- event_occurred=False 表示右删失，删失个体在其删失时间点仍计入风险集；
- 迭代求解器（Cox / Weibull）达到最大迭代次数仍未收敛时，结果带 converged=False
  并发出 ConvergenceWarning，不抛异常。
"""

import math
import warnings
from itertools import groupby
from typing import Iterable, List, Sequence, Tuple, Union

from core.logger import get_logger

from .distributions import chi_square_sf, normal_ppf, normal_sf
from .errors import (
    ConvergenceWarning,
    DimensionMismatchError,
    InsufficientDataError,
    SingularMatrixError,
    ZeroVarianceError,
)
from .linalg import invert, solve
from .results import (
    ConfidenceInterval,
    CoxModel,
    KaplanMeierResult,
    LogRankResult,
    SurvivalRecord,
    WeibullModel,
)

logger = get_logger(__name__)

RecordLike = Union[SurvivalRecord, Tuple]

_MAX_STEP_HALVINGS = 20


def as_records(records: Iterable[RecordLike], name: str = "records") -> List[SurvivalRecord]:
    """把 SurvivalRecord / 元组统一转换为 SurvivalRecord 列表，空输入抛 InsufficientDataError。"""
    result: List[SurvivalRecord] = []
    for item in records:
        if isinstance(item, SurvivalRecord):
            result.append(item)
        else:
            result.append(SurvivalRecord(float(item[0]), bool(item[1]), *item[2:3]))
    if not result:
        raise InsufficientDataError(f"{name} 不能为空。")
    return result


# ---------- Kaplan-Meier ----------


def kaplan_meier(
    records: Iterable[RecordLike],
    confidence_level: float = 0.95,
) -> KaplanMeierResult:
    """
    Kaplan-Meier 生存曲线估计。

    参数：
    - records: 生存数据；
    - confidence_level: 逐点置信区间水平。

    说明：
    - 在每一个不同的观测时间点输出一步（仅删失的时间点生存率保持不变）；
    - S(t) = Π (1 - d_i / n_i)，n_i 为时间点 t_i 的风险集大小（time >= t_i）；
    - 方差使用 Greenwood 公式，置信区间采用 log(-log S) 变换，保证落在 [0, 1]；
    - 中位生存时间为 S <= 0.5 的第一个时间点，曲线始终高于 0.5 时为 math.inf。
    """
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"confidence_level 必须在 (0, 1) 区间内，当前为: {confidence_level}")
    data = sorted(as_records(records), key=lambda r: r.time)
    z = normal_ppf(1.0 - (1.0 - confidence_level) / 2.0)

    times: List[float] = []
    survival: List[float] = []
    events_at: List[int] = []
    censored_at: List[int] = []
    at_risk_at: List[int] = []
    intervals: List[ConfidenceInterval] = []

    at_risk = len(data)
    surv = 1.0
    greenwood = 0.0
    median = math.inf

    for time, group in groupby(data, key=lambda r: r.time):
        group = list(group)
        deaths = sum(1 for r in group if r.event_occurred)
        censored = len(group) - deaths

        if deaths > 0:
            surv *= 1.0 - deaths / at_risk
            if at_risk > deaths:
                greenwood += deaths / (at_risk * (at_risk - deaths))

        if surv >= 1.0:
            interval = ConfidenceInterval(1.0, 1.0)
        elif surv <= 0.0:
            interval = ConfidenceInterval(0.0, 0.0)
        else:
            log_surv = math.log(surv)
            theta = z * math.sqrt(greenwood) / abs(log_surv)
            interval = ConfidenceInterval(surv ** math.exp(theta), surv ** math.exp(-theta))

        times.append(time)
        survival.append(surv)
        events_at.append(deaths)
        censored_at.append(censored)
        at_risk_at.append(at_risk)
        intervals.append(interval)

        if median == math.inf and surv <= 0.5:
            median = time
        at_risk -= len(group)

    return KaplanMeierResult(
        times=tuple(times),
        survival=tuple(survival),
        events_at_time=tuple(events_at),
        censored_at_time=tuple(censored_at),
        at_risk_at_time=tuple(at_risk_at),
        confidence_intervals=tuple(intervals),
        median_survival=median,
    )


# ---------- Log-rank ----------


def log_rank_test(
    group1: Iterable[RecordLike],
    group2: Iterable[RecordLike],
    alpha: float = 0.05,
) -> LogRankResult:
    """
    两组生存曲线比较的 Log-rank 检验。

    说明：
    - 在两组合并后的每个事件时间点，按超几何分布计算第一组的期望事件数与方差；
    - 统计量 (O1 - E1)² / V 服从自由度 1 的卡方分布；
    - 两组都没有事件时统计量无意义，抛出 InsufficientDataError。
    """
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha 必须在 (0, 1) 区间内，当前为: {alpha}")
    first = as_records(group1, "group1")
    second = as_records(group2, "group2")

    event_times = sorted({r.time for r in first + second if r.event_occurred})
    if not event_times:
        raise InsufficientDataError("两组均没有观察到事件，无法进行 Log-rank 检验。")

    observed1 = 0.0
    expected1 = 0.0
    total_events = 0.0
    variance = 0.0
    for t in event_times:
        n1 = sum(1 for r in first if r.time >= t)
        n2 = sum(1 for r in second if r.time >= t)
        d1 = sum(1 for r in first if r.time == t and r.event_occurred)
        d2 = sum(1 for r in second if r.time == t and r.event_occurred)
        n = n1 + n2
        d = d1 + d2

        observed1 += d1
        total_events += d
        expected1 += d * n1 / n
        if n > 1:
            variance += n1 * n2 * d * (n - d) / (n * n * (n - 1))

    if variance <= 0.0:
        raise ZeroVarianceError("Log-rank 检验的方差为 0（事件只发生在单组风险集中）。")

    statistic = (observed1 - expected1) ** 2 / variance
    p_value = chi_square_sf(statistic, 1)

    return LogRankResult(
        statistic=statistic,
        p_value=p_value,
        reject=p_value < alpha,
        observed_group1=observed1,
        expected_group1=expected1,
        observed_group2=total_events - observed1,
        expected_group2=total_events - expected1,
        variance=variance,
    )


# ---------- Cox 比例风险 ----------


def _covariate_matrix(data: Sequence[SurvivalRecord]) -> List[List[float]]:
    rows: List[List[float]] = []
    width = None
    for i, record in enumerate(data):
        if record.covariates is None:
            raise ValueError(f"第 {i} 条记录缺少协变量，Cox 回归要求每条记录都提供 covariates。")
        if width is None:
            width = len(record.covariates)
            if width == 0:
                raise ValueError("协变量向量不能为空。")
        elif len(record.covariates) != width:
            raise DimensionMismatchError(
                f"第 {i} 条记录的协变量个数为 {len(record.covariates)}，与首条记录 {width} 不一致。"
            )
        rows.append([float(v) for v in record.covariates])
    return rows


def _partial_likelihood(
    times: Sequence[float],
    events: Sequence[bool],
    x: Sequence[Sequence[float]],
    beta: Sequence[float],
) -> Tuple[float, List[float], List[List[float]]]:
    """
    Breslow 近似下的部分对数似然、梯度与信息矩阵（负 Hessian）。

    按时间倒序累加风险集的 Σw、Σw·x、Σw·xxᵀ，同一时间的个体先全部并入风险集。
    """
    p = len(beta)
    eta = [sum(b * v for b, v in zip(beta, row)) for row in x]
    shift = max(eta)
    weights = [math.exp(e - shift) for e in eta]

    s0 = 0.0
    s1 = [0.0] * p
    s2 = [[0.0] * p for _ in range(p)]
    loglik = 0.0
    gradient = [0.0] * p
    information = [[0.0] * p for _ in range(p)]

    order = sorted(range(len(times)), key=lambda i: times[i], reverse=True)
    for _, group in groupby(order, key=lambda i: times[i]):
        group = list(group)
        for i in group:
            w = weights[i]
            s0 += w
            for a in range(p):
                s1[a] += w * x[i][a]
                for b in range(p):
                    s2[a][b] += w * x[i][a] * x[i][b]
        for i in group:
            if not events[i]:
                continue
            means = [v / s0 for v in s1]
            loglik += eta[i] - shift - math.log(s0)
            for a in range(p):
                gradient[a] += x[i][a] - means[a]
                for b in range(p):
                    information[a][b] += s2[a][b] / s0 - means[a] * means[b]
    return loglik, gradient, information


def _concordance_index(
    times: Sequence[float], events: Sequence[bool], risk: Sequence[float]
) -> float:
    concordant = 0.0
    comparable = 0
    for i in range(len(times)):
        if not events[i]:
            continue
        for j in range(len(times)):
            if times[j] > times[i]:
                comparable += 1
                if risk[i] > risk[j]:
                    concordant += 1.0
                elif risk[i] == risk[j]:
                    concordant += 0.5
    if comparable == 0:
        raise InsufficientDataError("没有可比较的样本对，无法计算一致性指数。")
    return concordant / comparable


def cox_proportional_hazards(
    records: Iterable[RecordLike],
    max_iterations: int = 100,
    tolerance: float = 1e-6,
) -> CoxModel:
    """
    Cox 比例风险回归（Newton-Raphson，Breslow 结处理）。

    参数：
    - records: 每条记录都必须带 covariates，且长度一致；
    - max_iterations: 牛顿迭代上限；
    - tolerance: 收敛判据，max |Δβ| < tolerance。

    说明：
    - 协变量先做中心化，系数不受影响，数值更稳定；
    - 每步 Δ 通过解 I(β)·Δ = U(β) 得到，若部分似然下降则步长减半；
    - 标准误取信息矩阵逆的对角线，Wald z 检验给出 p 值；
    - concordance_index 为 Harrell's C（风险相同记 0.5）。

    单调似然（协变量把早、晚事件完全分开）时 β 发散、信息矩阵趋于奇异：
    迭代中途遇到奇异矩阵即停在当前 β，converged=False 并发出 ConvergenceWarning；
    此时信息矩阵不可逆则标准误记为 inf（z=0，p=1）。
    初始点的信息矩阵就奇异（协变量共线）仍抛 SingularMatrixError。
    """
    data = as_records(records)
    raw_x = _covariate_matrix(data)
    times = [r.time for r in data]
    events = [r.event_occurred for r in data]
    if not any(events):
        raise InsufficientDataError("没有观察到任何事件，无法拟合 Cox 模型。")

    n = len(raw_x)
    p = len(raw_x[0])
    centers = [math.fsum(row[a] for row in raw_x) / n for a in range(p)]
    x = [[row[a] - centers[a] for a in range(p)] for row in raw_x]

    beta = [0.0] * p
    loglik, gradient, information = _partial_likelihood(times, events, x, beta)
    converged = False
    diverged = False
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        try:
            delta = solve(information, gradient)
        except SingularMatrixError:
            if iterations == 1:
                raise
            diverged = True
            iterations -= 1
            break
        step = 1.0
        for _ in range(_MAX_STEP_HALVINGS):
            candidate = [b + step * d for b, d in zip(beta, delta)]
            new_loglik, new_gradient, new_information = _partial_likelihood(
                times, events, x, candidate
            )
            if new_loglik >= loglik - 1e-12:
                break
            step /= 2.0
        beta = candidate
        loglik, gradient, information = new_loglik, new_gradient, new_information
        max_change = max(abs(step * d) for d in delta)
        logger.debug(
            "Cox 迭代 %d：loglik=%.6f, max|Δβ|=%.3e, step=%.3g",
            iterations, loglik, max_change, step,
        )
        if max_change < tolerance:
            converged = True
            break

    if diverged:
        warnings.warn(
            f"Cox 回归第 {iterations + 1} 次迭代时信息矩阵奇异（系数发散，疑似完全分离），"
            "返回最后一次迭代的系数。",
            ConvergenceWarning,
        )
    elif not converged:
        warnings.warn(
            f"Cox 回归在 {max_iterations} 次迭代内未收敛，返回最后一次迭代的系数。",
            ConvergenceWarning,
        )

    try:
        covariance = invert(information)
        standard_errors = [math.sqrt(max(covariance[a][a], 0.0)) for a in range(p)]
    except SingularMatrixError:
        if converged:
            raise
        standard_errors = [math.inf] * p
    z_scores = [
        b / se if se > 0 else math.copysign(math.inf, b) if b != 0 else 0.0
        for b, se in zip(beta, standard_errors)
    ]
    p_values = [min(2.0 * normal_sf(abs(z)), 1.0) for z in z_scores]

    risk = [sum(b * v for b, v in zip(beta, row)) for row in x]
    concordance = _concordance_index(times, events, risk)

    return CoxModel(
        coefficients=tuple(beta),
        hazard_ratios=tuple(math.exp(b) for b in beta),
        standard_errors=tuple(standard_errors),
        z_scores=tuple(z_scores),
        p_values=tuple(p_values),
        concordance_index=concordance,
        log_likelihood=loglik,
        iterations=iterations,
        converged=converged,
    )


# ---------- Weibull ----------


def weibull_fit(
    records: Iterable[RecordLike],
    max_iterations: int = 100,
    tolerance: float = 1e-6,
) -> WeibullModel:
    """
    右删失数据下的 Weibull 极大似然估计 S(t) = exp(-(t/λ)^k)。

    说明：
    - 形状参数 k 用牛顿法求解剖面似然的得分方程：
      d/k + Σ_事件 log t - d·Σ t^k log t / Σ t^k = 0，
      其中 Σ t^k 类求和覆盖全部个体（删失个体也贡献累计风险）；
    - 每次迭代都重新计算 Σ t^k、Σ t^k log t、Σ t^k log² t；
    - 尺度参数闭式给出：λ = (Σ t^k / d)^(1/k)；
    - 时间先除以最大值再计算，避免 t^k 溢出。
    """
    data = as_records(records)
    if any(r.time <= 0.0 for r in data):
        raise ValueError("Weibull 拟合要求所有时间 > 0。")
    d = sum(1 for r in data if r.event_occurred)
    if d == 0:
        raise InsufficientDataError("没有观察到任何事件，无法拟合 Weibull 模型。")
    if len({r.time for r in data}) < 2:
        raise InsufficientDataError("Weibull 拟合至少需要 2 个不同的时间点。")

    t_max = max(r.time for r in data)
    log_u = [math.log(r.time / t_max) for r in data]
    sum_log_events = math.fsum(lu for lu, r in zip(log_u, data) if r.event_occurred)

    k = 1.0
    converged = False
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        powers = [math.exp(k * lu) for lu in log_u]
        s0 = math.fsum(powers)
        s1 = math.fsum(w * lu for w, lu in zip(powers, log_u))
        s2 = math.fsum(w * lu * lu for w, lu in zip(powers, log_u))

        score = d / k + sum_log_events - d * s1 / s0
        slope = -d / (k * k) - d * (s2 * s0 - s1 * s1) / (s0 * s0)
        k_new = k - score / slope
        if k_new <= 0.0:
            k_new = k / 2.0
        change = abs(k_new - k)
        k = k_new
        logger.debug("Weibull 迭代 %d：shape=%.6f, Δ=%.3e", iterations, k, change)
        if change < tolerance:
            converged = True
            break

    if not converged:
        warnings.warn(
            f"Weibull 拟合在 {max_iterations} 次迭代内未收敛，返回最后一次迭代的参数。",
            ConvergenceWarning,
        )

    s0 = math.fsum(math.exp(k * lu) for lu in log_u)
    scale = t_max * (s0 / d) ** (1.0 / k)
    return WeibullModel(shape=k, scale=scale, iterations=iterations, converged=converged)
