"""
分布函数：正态、Student t、卡方、F、Beta 的 CDF / 分位数。

全部是 (取值, 参数) 的纯函数，只是 special_functions 的一层参数化适配。
尾部概率（sf）单独实现，避免 1 - cdf 在 p 值极小时的相减抵消。
"""

import math

from .special_functions import (
    incomplete_beta,
    incomplete_gamma,
    log_beta,
    log_gamma,
    normal_quantile,
    t_quantile,
    upper_incomplete_gamma,
)

_SQRT2 = math.sqrt(2.0)


def _check_positive(value: float, name: str) -> None:
    if value <= 0.0:
        raise ValueError(f"{name} 必须大于 0，当前为: {value}")


def _check_probability(p: float) -> None:
    if not 0.0 < p < 1.0:
        raise ValueError(f"p 必须在 (0, 1) 区间内，当前为: {p}")


# ---------- 正态分布 ----------


def normal_cdf(x: float, mean: float = 0.0, std: float = 1.0) -> float:
    """正态分布 CDF，使用误差函数 erf 实现。"""
    _check_positive(std, "std")
    return 0.5 * (1.0 + math.erf((x - mean) / (std * _SQRT2)))


def normal_sf(x: float, mean: float = 0.0, std: float = 1.0) -> float:
    _check_positive(std, "std")
    return 0.5 * math.erfc((x - mean) / (std * _SQRT2))


def normal_pdf(x: float, mean: float = 0.0, std: float = 1.0) -> float:
    _check_positive(std, "std")
    z = (x - mean) / std
    return math.exp(-0.5 * z * z) / (std * math.sqrt(2.0 * math.pi))


def normal_ppf(p: float, mean: float = 0.0, std: float = 1.0) -> float:
    _check_positive(std, "std")
    return mean + std * normal_quantile(p)


# ---------- Student t 分布 ----------


def student_t_cdf(t: float, df: float) -> float:
    """
    Student t 分布 CDF。

    说明：
    - 利用 I_{df/(df+t²)}(df/2, 1/2) 得到双侧尾部概率，再按 t 的符号修正。
    """
    _check_positive(df, "df")
    if math.isinf(t):
        return 1.0 if t > 0 else 0.0
    tail = 0.5 * incomplete_beta(df / (df + t * t), df / 2.0, 0.5)
    return 1.0 - tail if t >= 0 else tail


def student_t_sf(t: float, df: float) -> float:
    return student_t_cdf(-t, df)


def student_t_pdf(t: float, df: float) -> float:
    _check_positive(df, "df")
    log_pdf = (
        log_gamma((df + 1.0) / 2.0)
        - log_gamma(df / 2.0)
        - 0.5 * math.log(df * math.pi)
        - (df + 1.0) / 2.0 * math.log1p(t * t / df)
    )
    return math.exp(log_pdf)


def student_t_ppf(p: float, df: float, max_iterations: int = 50, tolerance: float = 1e-12) -> float:
    """
    Student t 分布分位数。

    说明：
    - 以 Cornish-Fisher 近似为初值，再对 CDF 做牛顿迭代修正；
    - 利用对称性只在上半区间求解，保证迭代从凹区间出发单调收敛。
    """
    _check_probability(p)
    _check_positive(df, "df")
    if p == 0.5:
        return 0.0
    if p < 0.5:
        return -student_t_ppf(1.0 - p, df, max_iterations, tolerance)

    x = max(t_quantile(p, df), 0.0)
    for _ in range(max_iterations):
        density = student_t_pdf(x, df)
        if density <= 0.0:
            break
        step = (student_t_cdf(x, df) - p) / density
        x_new = x - step
        if x_new <= 0.0:
            x_new = x / 2.0
        if abs(x_new - x) <= tolerance * max(1.0, abs(x)):
            x = x_new
            break
        x = x_new
    return x


# ---------- 卡方分布 ----------


def chi_square_cdf(x: float, df: float) -> float:
    _check_positive(df, "df")
    if x <= 0.0:
        return 0.0
    return incomplete_gamma(df / 2.0, x / 2.0)


def chi_square_sf(x: float, df: float) -> float:
    """卡方分布右尾概率 P(X > x)，即卡方检验的 p 值。"""
    _check_positive(df, "df")
    if x <= 0.0:
        return 1.0
    return upper_incomplete_gamma(df / 2.0, x / 2.0)


# ---------- F 分布 ----------


def f_cdf(x: float, df1: float, df2: float) -> float:
    _check_positive(df1, "df1")
    _check_positive(df2, "df2")
    if x <= 0.0:
        return 0.0
    return incomplete_beta(df1 * x / (df1 * x + df2), df1 / 2.0, df2 / 2.0)


def f_sf(x: float, df1: float, df2: float) -> float:
    """F 分布右尾概率，ANOVA 的 p 值。"""
    _check_positive(df1, "df1")
    _check_positive(df2, "df2")
    if x <= 0.0:
        return 1.0
    return incomplete_beta(df2 / (df2 + df1 * x), df2 / 2.0, df1 / 2.0)


# ---------- Beta 分布 ----------


def beta_cdf(x: float, alpha: float, beta: float) -> float:
    _check_positive(alpha, "alpha")
    _check_positive(beta, "beta")
    if x <= 0.0:
        return 0.0
    if x >= 1.0:
        return 1.0
    return incomplete_beta(x, alpha, beta)


def beta_pdf(x: float, alpha: float, beta: float) -> float:
    _check_positive(alpha, "alpha")
    _check_positive(beta, "beta")
    if x <= 0.0 or x >= 1.0:
        return 0.0
    return math.exp(
        (alpha - 1.0) * math.log(x) + (beta - 1.0) * math.log1p(-x) - log_beta(alpha, beta)
    )


def beta_ppf(
    p: float,
    alpha: float,
    beta: float,
    max_iterations: int = 100,
    tolerance: float = 1e-6,
) -> float:
    """
    Beta 分布分位数（逆 CDF）。

    参数：
    - p: 分位点，0 < p < 1；
    - alpha / beta: 形状参数；
    - max_iterations: 二分最大次数；
    - tolerance: |CDF(mid) - p| 的精度要求。

    说明：
    - 通过在区间 [0, 1] 上二分搜索反解 CDF，不使用闭式近似。
    """
    _check_probability(p)
    low, high = 0.0, 1.0
    mid = 0.5
    for _ in range(max_iterations):
        mid = (low + high) / 2.0
        cdf = beta_cdf(mid, alpha, beta)
        if abs(cdf - p) < tolerance:
            break
        if cdf < p:
            low = mid
        else:
            high = mid
    return mid
