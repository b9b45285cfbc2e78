"""
经典假设检验：t 检验（单样本 / 两独立样本 / 配对）、卡方独立性检验、单因素方差分析、
Mann-Whitney U、两样本 Kolmogorov-Smirnov、Pearson 相关检验。

设计目标：
- 仅实现纯统计学算法，不包含任何业务逻辑；
- 每个检验都是纯函数，返回不可变的 TestResult / AnovaResult；
- 样本量不足、配对长度不一致、标准误为 0 时直接抛出对应错误，绝不返回默认统计量。
"""

import math
from bisect import bisect_right
from typing import List, Sequence, Tuple

from .descriptive import mean, sample_variance, to_float_list
from .distributions import (
    chi_square_sf,
    f_sf,
    normal_cdf,
    normal_ppf,
    normal_sf,
    student_t_cdf,
    student_t_ppf,
)
from .errors import DimensionMismatchError, InsufficientDataError, ZeroVarianceError
from .results import AnovaResult, ConfidenceInterval, TestResult

_ALTERNATIVES = {"two-sided", "greater", "less"}
# 兼容 AB 模块中 "larger" / "smaller" 的叫法
_ALTERNATIVE_ALIASES = {"larger": "greater", "smaller": "less"}


def normalize_alternative(alternative: str) -> str:
    """
    校验并统一备择假设写法。

    - "two-sided"：双侧检验；
    - "greater"（或 "larger"）：第一组 / 样本均值大于假设值；
    - "less"（或 "smaller"）：第一组 / 样本均值小于假设值。
    """
    value = str(alternative).lower()
    value = _ALTERNATIVE_ALIASES.get(value, value)
    if value not in _ALTERNATIVES:
        raise ValueError(
            f"alternative 仅支持 'two-sided' / 'greater' / 'less'，当前为: {alternative}"
        )
    return value


def _validate_alpha(alpha: float) -> None:
    if not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha 必须在 (0, 1) 区间内，当前为: {alpha}")


def _p_value_from_t(t_stat: float, df: float, alternative: str) -> float:
    if alternative == "two-sided":
        p_value = 2.0 * student_t_cdf(-abs(t_stat), df)
    elif alternative == "greater":
        p_value = student_t_cdf(-t_stat, df)
    else:
        p_value = student_t_cdf(t_stat, df)
    return max(min(p_value, 1.0), 0.0)


def _p_value_from_z(z_stat: float, alternative: str) -> float:
    if alternative == "two-sided":
        p_value = 2.0 * normal_sf(abs(z_stat))
    elif alternative == "greater":
        p_value = normal_sf(z_stat)
    else:
        p_value = normal_cdf(z_stat)
    # 数值上可能出现极小的越界，这里做一下截断保护
    return max(min(p_value, 1.0), 0.0)


def _confidence_interval(
    center: float, se: float, df: float, alpha: float, alternative: str
) -> ConfidenceInterval:
    if alternative == "two-sided":
        margin = student_t_ppf(1.0 - alpha / 2.0, df) * se
        return ConfidenceInterval(center - margin, center + margin)
    margin = student_t_ppf(1.0 - alpha, df) * se
    if alternative == "greater":
        return ConfidenceInterval(center - margin, math.inf)
    return ConfidenceInterval(-math.inf, center + margin)


def one_sample_t_test(
    data: Sequence[float],
    mu0: float,
    alpha: float = 0.05,
    alternative: str = "two-sided",
) -> TestResult:
    """
    单样本 t 检验：H0 为总体均值 = mu0。

    参数说明：
    - data: 样本（至少 2 个）；
    - mu0: 假设的总体均值；
    - alpha: 显著性水平；
    - alternative: "two-sided" / "greater" / "less"。

    返回：
    - TestResult，effect_size 为 Cohen's d = (均值 - mu0) / 样本标准差，
      confidence_interval 为 1 - alpha 水平下的均值置信区间。

    异常：
    - InsufficientDataError: 样本量 < 2；
    - ZeroVarianceError: 样本方差为 0（t 统计量无定义）。
    """
    _validate_alpha(alpha)
    alternative = normalize_alternative(alternative)
    values = to_float_list(data, "data", min_size=2)

    n = len(values)
    sample_mean = mean(values)
    variance = sample_variance(values)
    if variance == 0.0:
        raise ZeroVarianceError("样本方差为 0，单样本 t 检验的 t 统计量无定义。")

    std = math.sqrt(variance)
    se = std / math.sqrt(n)
    df = n - 1
    t_stat = (sample_mean - mu0) / se
    p_value = _p_value_from_t(t_stat, df, alternative)

    return TestResult(
        statistic=t_stat,
        p_value=p_value,
        reject=p_value < alpha,
        confidence_interval=_confidence_interval(sample_mean, se, df, alpha, alternative),
        effect_size=(sample_mean - mu0) / std,
        degrees_of_freedom=float(df),
    )


def two_sample_t_test(
    data1: Sequence[float],
    data2: Sequence[float],
    alpha: float = 0.05,
    equal_variance: bool = True,
    alternative: str = "two-sided",
) -> TestResult:
    """
    两独立样本 t 检验（H0: μ1 = μ2）。

    说明：
    - equal_variance=True：合并方差，自由度 n1 + n2 - 2；
    - equal_variance=False：Welch 检验，自由度使用 Welch-Satterthwaite 近似；
    - 统计量为 (mean1 - mean2) / se，交换两组时统计量取反、双侧 p 值不变；
    - effect_size 为 Cohen's d（均值差 / 合并标准差）；
    - confidence_interval 为均值差 mean1 - mean2 的置信区间。
    """
    _validate_alpha(alpha)
    alternative = normalize_alternative(alternative)
    values1 = to_float_list(data1, "data1", min_size=2)
    values2 = to_float_list(data2, "data2", min_size=2)

    n1, n2 = len(values1), len(values2)
    mean1, mean2 = mean(values1), mean(values2)
    var1, var2 = sample_variance(values1), sample_variance(values2)

    if equal_variance:
        pooled_var = ((n1 - 1) * var1 + (n2 - 1) * var2) / (n1 + n2 - 2)
        se = math.sqrt(pooled_var * (1.0 / n1 + 1.0 / n2))
        df = float(n1 + n2 - 2)
    else:
        a, b = var1 / n1, var2 / n2
        se = math.sqrt(a + b)
        denom = a * a / (n1 - 1) + b * b / (n2 - 1)
        df = (a + b) ** 2 / denom if denom > 0 else float(n1 + n2 - 2)

    if se == 0.0:
        raise ZeroVarianceError("两组数据方差均为 0，无法进行 t 检验。")

    diff = mean1 - mean2
    t_stat = diff / se
    p_value = _p_value_from_t(t_stat, df, alternative)

    pooled_std = _pooled_std(values1, values2)
    effect_size = diff / pooled_std if pooled_std > 0 else None

    return TestResult(
        statistic=t_stat,
        p_value=p_value,
        reject=p_value < alpha,
        confidence_interval=_confidence_interval(diff, se, df, alpha, alternative),
        effect_size=effect_size,
        degrees_of_freedom=df,
    )


def paired_t_test(
    data1: Sequence[float],
    data2: Sequence[float],
    alpha: float = 0.05,
    alternative: str = "two-sided",
) -> TestResult:
    """
    配对 t 检验：对差值 data1[i] - data2[i] 做 mu0 = 0 的单样本 t 检验。

    典型场景：同一批人干预前后的睡眠评分。
    """
    values1 = to_float_list(data1, "data1")
    values2 = to_float_list(data2, "data2")
    if len(values1) != len(values2):
        raise DimensionMismatchError(
            f"配对样本长度必须一致，当前 data1={len(values1)}, data2={len(values2)}"
        )
    differences = [x - y for x, y in zip(values1, values2)]
    return one_sample_t_test(differences, 0.0, alpha=alpha, alternative=alternative)


def chi_square_test(observed: Sequence[Sequence[float]], alpha: float = 0.05) -> TestResult:
    """
    卡方独立性检验。

    参数：
    - observed: r×c 列联表（r, c >= 2），元素为非负频数。

    返回：
    - TestResult，自由度 (r-1)(c-1)，effect_size 为 Cramér's V。
    """
    _validate_alpha(alpha)
    table = [to_float_list(row, f"observed[{i}]") for i, row in enumerate(observed)]
    rows = len(table)
    if rows < 2:
        raise InsufficientDataError("列联表至少需要 2 行。")
    cols = len(table[0])
    if cols < 2:
        raise InsufficientDataError("列联表至少需要 2 列。")
    for i, row in enumerate(table):
        if len(row) != cols:
            raise DimensionMismatchError(
                f"列联表第 {i} 行长度为 {len(row)}，与第 0 行长度 {cols} 不一致。"
            )
        if any(x < 0 for x in row):
            raise ValueError("列联表中的频数不能为负数。")

    row_totals = [sum(row) for row in table]
    col_totals = [sum(table[i][j] for i in range(rows)) for j in range(cols)]
    total = sum(row_totals)
    if any(t == 0 for t in row_totals) or any(t == 0 for t in col_totals):
        raise InsufficientDataError("列联表存在合计为 0 的行或列，期望频数无定义。")

    chi_square = 0.0
    for i in range(rows):
        for j in range(cols):
            expected = row_totals[i] * col_totals[j] / total
            chi_square += (table[i][j] - expected) ** 2 / expected

    df = (rows - 1) * (cols - 1)
    p_value = chi_square_sf(chi_square, df)
    min_dim = min(rows - 1, cols - 1)

    return TestResult(
        statistic=chi_square,
        p_value=p_value,
        reject=p_value < alpha,
        effect_size=math.sqrt(chi_square / (total * min_dim)),
        degrees_of_freedom=float(df),
    )


def anova(groups: Sequence[Sequence[float]], alpha: float = 0.05) -> AnovaResult:
    """
    单因素方差分析。

    说明：
    - 组间 / 组内平方和分解，F = MSB / MSW，自由度 (k-1, n-k)；
    - effect_size 为 eta² = SSB / (SSB + SSW)；
    - 各组均值完全相同时 F = 0、不拒绝原假设；
    - 组内平方和为 0 而组间不为 0 时 F 无定义，抛出 ZeroVarianceError。
    """
    _validate_alpha(alpha)
    if len(groups) < 2:
        raise InsufficientDataError(f"方差分析至少需要 2 组，当前为: {len(groups)}")
    data = [to_float_list(g, f"groups[{i}]", min_size=2) for i, g in enumerate(groups)]

    k = len(data)
    n = sum(len(g) for g in data)
    grand_mean = math.fsum(x for g in data for x in g) / n
    group_means = [mean(g) for g in data]

    ssb = math.fsum(len(g) * (m - grand_mean) ** 2 for g, m in zip(data, group_means))
    ssw = math.fsum((x - m) ** 2 for g, m in zip(data, group_means) for x in g)

    df_between = k - 1
    df_within = n - k
    msb = ssb / df_between
    msw = ssw / df_within

    # 浮点误差下的 "0"
    scale = max(abs(grand_mean), 1.0) ** 2 * n
    if ssb <= 1e-12 * scale:
        f_stat = 0.0
        p_value = 1.0
    elif msw == 0.0:
        raise ZeroVarianceError("组内方差为 0 而组间方差不为 0，F 统计量无定义。")
    else:
        f_stat = msb / msw
        p_value = f_sf(f_stat, df_between, df_within)

    sst = ssb + ssw
    return AnovaResult(
        statistic=f_stat,
        p_value=p_value,
        reject=p_value < alpha,
        effect_size=ssb / sst if sst > 0 else 0.0,
        between_group_variance=msb,
        within_group_variance=msw,
        df_between=df_between,
        df_within=df_within,
    )


def _average_ranks(values: Sequence[float]) -> Tuple[List[float], List[int]]:
    """
    返回每个元素的平均秩（1-based，相同数值取平均秩）以及各组并列的个数。
    """
    order = sorted(range(len(values)), key=lambda idx: values[idx])
    ranks = [0.0] * len(values)
    tie_sizes: List[int] = []
    i = 0
    while i < len(order):
        j = i + 1
        while j < len(order) and values[order[j]] == values[order[i]]:
            j += 1
        # 区间 [i, j) 为相同数值，赋予平均秩
        avg_rank = 0.5 * (i + 1 + j)
        for k in range(i, j):
            ranks[order[k]] = avg_rank
        if j - i > 1:
            tie_sizes.append(j - i)
        i = j
    return ranks, tie_sizes


def mann_whitney_u(
    data1: Sequence[float],
    data2: Sequence[float],
    alpha: float = 0.05,
    alternative: str = "two-sided",
) -> TestResult:
    """
    Mann-Whitney U（Wilcoxon 秩和）非参数检验，两独立样本。

    方法要点：
    - 合并排序后计算平均秩，得到第一组的 U1 = R1 - n1(n1+1)/2；
    - 大样本正态近似（含并列校正），不做精确小样本 p 值；
    - statistic 为 U1；"greater" 表示第一组整体偏大；
    - effect_size 为秩二列相关 r = 2·U1 / (n1·n2) - 1，取值 [-1, 1]。
    """
    _validate_alpha(alpha)
    alternative = normalize_alternative(alternative)
    values1 = to_float_list(data1, "data1")
    values2 = to_float_list(data2, "data2")

    n1, n2 = len(values1), len(values2)
    n = n1 + n2
    ranks, tie_sizes = _average_ranks(values1 + values2)
    rank_sum1 = math.fsum(ranks[:n1])
    u1 = rank_sum1 - n1 * (n1 + 1) / 2.0

    mean_u = n1 * n2 / 2.0
    tie_term = sum(t**3 - t for t in tie_sizes) / (n * (n - 1)) if n > 1 else 0.0
    var_u = n1 * n2 / 12.0 * ((n + 1) - tie_term)
    if var_u <= 0.0:
        raise ZeroVarianceError("所有样本值都相同，Mann-Whitney U 检验的方差为 0。")

    z_stat = (u1 - mean_u) / math.sqrt(var_u)
    p_value = _p_value_from_z(z_stat, alternative)

    return TestResult(
        statistic=u1,
        p_value=p_value,
        reject=p_value < alpha,
        effect_size=2.0 * u1 / (n1 * n2) - 1.0,
    )


def _kolmogorov_sf(lam: float, max_terms: int = 100, epsilon: float = 1e-10) -> float:
    # Q_KS(λ) = 2 Σ (-1)^{j-1} exp(-2 j² λ²)
    if lam < 1e-3:
        return 1.0
    total = 0.0
    sign = 1.0
    for j in range(1, max_terms + 1):
        term = sign * 2.0 * math.exp(-2.0 * j * j * lam * lam)
        total += term
        if abs(term) <= epsilon * abs(total):
            return max(min(total, 1.0), 0.0)
        sign = -sign
    # λ 很小时级数不收敛，对应 p 值趋于 1
    return 1.0


def ks_test(
    data1: Sequence[float],
    data2: Sequence[float],
    alpha: float = 0.05,
) -> TestResult:
    """
    两样本 Kolmogorov-Smirnov 检验。

    说明：
    - D = 两个经验 CDF 在全部观测值上的最大绝对差；
    - p 值使用 Kolmogorov 分布的渐近近似，λ = (√ne + 0.12 + 0.11/√ne)·D，
      ne = n1·n2 / (n1 + n2)。
    """
    _validate_alpha(alpha)
    sorted1 = sorted(to_float_list(data1, "data1"))
    sorted2 = sorted(to_float_list(data2, "data2"))
    n1, n2 = len(sorted1), len(sorted2)

    d_max = 0.0
    for value in sorted(set(sorted1) | set(sorted2)):
        cdf1 = bisect_right(sorted1, value) / n1
        cdf2 = bisect_right(sorted2, value) / n2
        d_max = max(d_max, abs(cdf1 - cdf2))

    sqrt_ne = math.sqrt(n1 * n2 / (n1 + n2))
    lam = (sqrt_ne + 0.12 + 0.11 / sqrt_ne) * d_max
    p_value = _kolmogorov_sf(lam)

    return TestResult(statistic=d_max, p_value=p_value, reject=p_value < alpha)


def correlation_test(
    x: Sequence[float],
    y: Sequence[float],
    alpha: float = 0.05,
    alternative: str = "two-sided",
) -> TestResult:
    """
    Pearson 相关系数检验（H0: ρ = 0）。

    说明：
    - t = r·sqrt((n-2)/(1-r²))，自由度 n - 2，至少 3 对样本；
    - statistic 为 t，effect_size 为 r；
    - confidence_interval 为 r 的 Fisher z 变换区间（n > 3 时给出）。
    """
    _validate_alpha(alpha)
    alternative = normalize_alternative(alternative)
    xs = to_float_list(x, "x", min_size=3)
    ys = to_float_list(y, "y", min_size=3)
    if len(xs) != len(ys):
        raise DimensionMismatchError(f"x 与 y 的长度必须一致，当前 x={len(xs)}, y={len(ys)}")

    n = len(xs)
    mx, my = mean(xs), mean(ys)
    sxx = math.fsum((a - mx) ** 2 for a in xs)
    syy = math.fsum((b - my) ** 2 for b in ys)
    sxy = math.fsum((a - mx) * (b - my) for a, b in zip(xs, ys))
    if sxx == 0.0 or syy == 0.0:
        raise ZeroVarianceError("x 或 y 的方差为 0，相关系数无定义。")

    r = max(min(sxy / math.sqrt(sxx * syy), 1.0), -1.0)
    df = n - 2
    if abs(r) == 1.0:
        t_stat = math.copysign(math.inf, r)
        p_value = _p_value_from_z(t_stat, alternative)
    else:
        t_stat = r * math.sqrt(df / (1.0 - r * r))
        p_value = _p_value_from_t(t_stat, df, alternative)

    interval = None
    if n > 3 and abs(r) < 1.0:
        z = math.atanh(r)
        margin = normal_ppf(1.0 - alpha / 2.0) / math.sqrt(n - 3)
        interval = ConfidenceInterval(math.tanh(z - margin), math.tanh(z + margin))

    return TestResult(
        statistic=t_stat,
        p_value=p_value,
        reject=p_value < alpha,
        confidence_interval=interval,
        effect_size=r,
        degrees_of_freedom=float(df),
    )


def _pooled_std(values1: Sequence[float], values2: Sequence[float]) -> float:
    """
    两独立样本的合并标准差，用于 Cohen's d。

    公式：pooled_std = sqrt(((n1-1)*var1 + (n2-1)*var2) / (n1+n2-2))
    """
    n1, n2 = len(values1), len(values2)
    pooled_var = ((n1 - 1) * sample_variance(values1) + (n2 - 1) * sample_variance(values2)) / (
        n1 + n2 - 2
    )
    return math.sqrt(pooled_var)
