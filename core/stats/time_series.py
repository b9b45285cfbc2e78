"""
时间序列：指数平滑 / Holt 预测、移动平均、加法季节分解、自相关与季节性检测、线性趋势。

约定：
- 输入按时间顺序排列、等间隔，不允许缺失值（NaN 会在入口处被拒绝）；
- 移动平均类输出与输入等长，窗口未填满的位置为 NaN；
- 预测区间半宽 = z · σ_resid · sqrt(h)，σ_resid 为拟合残差的总体标准差。
"""

import math
from typing import List, Optional, Sequence, Tuple

from .descriptive import mean, population_variance, to_float_list
from .distributions import normal_ppf, student_t_sf
from .errors import InsufficientDataError, ZeroVarianceError
from .results import (
    Decomposition,
    ForecastResult,
    SeasonalityResult,
    TrendAnalysis,
)


def _check_smoothing(value: float, name: str) -> None:
    if not 0.0 < value <= 1.0:
        raise ValueError(f"{name} 必须在 (0, 1] 区间内，当前为: {value}")


def _check_horizon(horizon: int) -> None:
    if int(horizon) != horizon or horizon < 1:
        raise ValueError(f"horizon 必须是 >= 1 的整数，当前为: {horizon}")


def _prediction_bands(
    forecast: Sequence[float], residuals: Sequence[float], confidence_level: float
) -> Tuple[Tuple[float, ...], Tuple[float, ...]]:
    if not 0.0 < confidence_level < 1.0:
        raise ValueError(f"confidence_level 必须在 (0, 1) 区间内，当前为: {confidence_level}")
    z = normal_ppf(1.0 - (1.0 - confidence_level) / 2.0)
    sigma = math.sqrt(population_variance(residuals))
    margins = [z * sigma * math.sqrt(h) for h in range(1, len(forecast) + 1)]
    lower = tuple(f - m for f, m in zip(forecast, margins))
    upper = tuple(f + m for f, m in zip(forecast, margins))
    return lower, upper


def exponential_smoothing(
    data: Sequence[float],
    alpha: float = 0.3,
    horizon: int = 10,
    confidence_level: float = 0.95,
) -> ForecastResult:
    """
    简单指数平滑。

    - 平滑值 s_0 = x_0，s_i = alpha·x_i + (1 - alpha)·s_{i-1}，fitted 即平滑序列；
    - 预测为最后一个平滑值的水平外推；
    - alpha = 1 时 fitted 与输入完全一致，残差全为 0。
    """
    _check_smoothing(alpha, "alpha")
    _check_horizon(horizon)
    values = to_float_list(data, "data")

    smoothed = [values[0]]
    for x in values[1:]:
        smoothed.append(alpha * x + (1.0 - alpha) * smoothed[-1])

    residuals = [x - s for x, s in zip(values, smoothed)]
    forecast = tuple([smoothed[-1]] * horizon)
    lower, upper = _prediction_bands(forecast, residuals, confidence_level)

    return ForecastResult(
        forecast=forecast,
        lower=lower,
        upper=upper,
        fitted=tuple(smoothed),
        residuals=tuple(residuals),
    )


def double_exponential_smoothing(
    data: Sequence[float],
    alpha: float = 0.3,
    beta: float = 0.1,
    horizon: int = 10,
    confidence_level: float = 0.95,
    period: Optional[int] = None,
) -> ForecastResult:
    """
    Holt 双指数平滑（水平 + 线性趋势）。

    参数：
    - data: 至少 2 个观测；
    - alpha: 水平平滑系数；
    - beta: 趋势平滑系数；
    - horizon: 预测步数；
    - period: 可选的季节周期，非空时先按 seasonal_decompose 的季节指数去季节，
      对去季节序列做 Holt 平滑，再把对应相位的季节指数加回 fitted 与预测值。

    说明：
    - 初始水平取 x_0，初始趋势取 x_1 - x_0；
    - 第 h 步预测 = level + h·trend（+ 季节指数）；
    - 返回的 trend 为各预测步的累计趋势增量 h·trend，seasonal 为各预测步的季节指数。
    """
    _check_smoothing(alpha, "alpha")
    _check_smoothing(beta, "beta")
    _check_horizon(horizon)
    values = to_float_list(data, "data", min_size=2)

    indices: List[float] = []
    if period is not None:
        indices = list(seasonal_decompose(values, period).seasonal[:period])
    n = len(values)
    adjusted = [x - indices[i % period] for i, x in enumerate(values)] if indices else values

    level = adjusted[0]
    trend = adjusted[1] - adjusted[0]
    fitted = [level]
    for x in adjusted[1:]:
        previous_level = level
        level = alpha * x + (1.0 - alpha) * (level + trend)
        trend = beta * (level - previous_level) + (1.0 - beta) * trend
        fitted.append(level)

    seasonal: Optional[Tuple[float, ...]] = None
    forecast = tuple(level + h * trend for h in range(1, horizon + 1))
    if indices:
        fitted = [f + indices[i % period] for i, f in enumerate(fitted)]
        seasonal = tuple(indices[(n - 1 + h) % period] for h in range(1, horizon + 1))
        forecast = tuple(f + s for f, s in zip(forecast, seasonal))
    residuals = [x - f for x, f in zip(values, fitted)]
    lower, upper = _prediction_bands(forecast, residuals, confidence_level)

    return ForecastResult(
        forecast=forecast,
        lower=lower,
        upper=upper,
        fitted=tuple(fitted),
        residuals=tuple(residuals),
        trend=tuple(h * trend for h in range(1, horizon + 1)),
        seasonal=seasonal,
    )


def moving_average(data: Sequence[float], window: int, weighted: bool = False) -> List[float]:
    """
    尾随移动平均，前 window - 1 个位置为 NaN。

    weighted=True 时使用线性权重 1, 2, ..., window（越新的观测权重越大）。
    """
    values = to_float_list(data, "data")
    if int(window) != window or window < 1:
        raise ValueError(f"window 必须是 >= 1 的整数，当前为: {window}")
    if window > len(values):
        raise InsufficientDataError(f"window={window} 大于序列长度 {len(values)}。")

    weights = list(range(1, window + 1)) if weighted else [1] * window
    weight_sum = float(sum(weights))
    result = [math.nan] * (window - 1)
    for i in range(window - 1, len(values)):
        chunk = values[i - window + 1 : i + 1]
        result.append(math.fsum(w * x for w, x in zip(weights, chunk)) / weight_sum)
    return result


def centered_moving_average(data: Sequence[float], period: int) -> List[float]:
    """
    中心化移动平均，两端 period // 2 个位置为 NaN。

    - period 为奇数：以当前点为中心的 period 项简单平均；
    - period 为偶数：2×m 移动平均，两端点权重各为 1/2，总权重仍为 period。
    """
    values = to_float_list(data, "data")
    if int(period) != period or period < 2:
        raise ValueError(f"period 必须是 >= 2 的整数，当前为: {period}")
    half = period // 2
    n = len(values)
    if n < 2 * half + 1:
        raise InsufficientDataError(f"序列长度 {n} 不足以计算周期为 {period} 的中心化移动平均。")

    result = [math.nan] * n
    for i in range(half, n - half):
        if period % 2 == 1:
            total = math.fsum(values[i - half : i + half + 1])
        else:
            inner = math.fsum(values[i - half + 1 : i + half])
            total = inner + 0.5 * (values[i - half] + values[i + half])
        result[i] = total / period
    return result


def seasonal_decompose(data: Sequence[float], period: int) -> Decomposition:
    """
    经典加法季节分解：x = trend + seasonal + residual。

    说明：
    - trend 为中心化移动平均（偶数周期使用 2×m 平均）；
    - 各相位的季节指数取去趋势值的均值，再整体减去均值，使一个周期内的季节指数之和为 0；
    - trend 为 NaN 的位置 residual 同样为 NaN；
    - 序列长度至少为 2 个完整周期。
    """
    values = to_float_list(data, "data")
    if int(period) != period or period < 2:
        raise ValueError(f"period 必须是 >= 2 的整数，当前为: {period}")
    n = len(values)
    if n < 2 * period:
        raise InsufficientDataError(f"季节分解至少需要 2 个完整周期（{2 * period} 个点），当前为: {n}")

    trend = centered_moving_average(values, period)
    detrended = [x - t for x, t in zip(values, trend)]

    indices = []
    for phase in range(period):
        phase_values = [detrended[j] for j in range(phase, n, period) if not math.isnan(detrended[j])]
        indices.append(mean(phase_values))
    offset = mean(indices)
    indices = [v - offset for v in indices]

    seasonal = [indices[i % period] for i in range(n)]
    residual = [x - t - s for x, t, s in zip(values, trend, seasonal)]
    return Decomposition(trend=tuple(trend), seasonal=tuple(seasonal), residual=tuple(residual))


def autocorrelation(data: Sequence[float], max_lag: int = 20) -> List[float]:
    """
    样本自相关函数 ACF(0..max_lag)，分母统一为 n·方差（有偏估计，保证半正定）。

    max_lag 超过 n - 1 时自动截断。
    """
    values = to_float_list(data, "data", min_size=2)
    if int(max_lag) != max_lag or max_lag < 1:
        raise ValueError(f"max_lag 必须是 >= 1 的整数，当前为: {max_lag}")
    n = len(values)
    m = mean(values)
    denom = math.fsum((x - m) ** 2 for x in values)
    if denom == 0.0:
        raise ZeroVarianceError("序列方差为 0，自相关函数无定义。")

    acf = [1.0]
    for lag in range(1, min(max_lag, n - 1) + 1):
        acf.append(math.fsum((values[i] - m) * (values[i + lag] - m) for i in range(n - lag)) / denom)
    return acf


def detect_seasonality(
    data: Sequence[float],
    max_period: int = 30,
    threshold: float = 0.3,
) -> SeasonalityResult:
    """
    基于 ACF 局部峰值的季节性检测。

    在 lag 1..max_period 中寻找比左右邻居都大、且超过 threshold 的 ACF 峰，
    取最高的峰作为周期，峰值作为季节强度；没有峰时 has_season=False。
    """
    acf = autocorrelation(data, max_lag=max_period)
    peaks = [
        (acf[lag], lag)
        for lag in range(1, len(acf) - 1)
        if acf[lag] > acf[lag - 1] and acf[lag] > acf[lag + 1] and acf[lag] > threshold
    ]
    if not peaks:
        return SeasonalityResult(has_season=False, period=None, strength=None, acf=tuple(acf))

    # 峰值相同时取更短的周期
    strength, period = max(peaks, key=lambda item: (item[0], -item[1]))
    return SeasonalityResult(has_season=True, period=period, strength=strength, acf=tuple(acf))


def _linear_regression(x: Sequence[float], y: Sequence[float]) -> Tuple[float, float, float]:
    """
    简单一元线性回归 y = a + b * x 的最小二乘解。

    返回：
    - (a, b, sxx): 截距、斜率，以及 x 的离差平方和（供斜率标准误使用）。
    """
    mx = mean(x)
    my = mean(y)

    sxx = 0.0
    sxy = 0.0
    for xi, yi in zip(x, y):
        dx = xi - mx
        sxx += dx * dx
        sxy += dx * (yi - my)

    b = sxy / sxx
    a = my - b * mx
    return a, b, sxx


def linear_trend(data: Sequence[float], stable_threshold: float = 0.01) -> TrendAnalysis:
    """
    以时间下标 0..n-1 为自变量的线性趋势分析。

    返回：
    - slope / intercept / r2；
    - p_value: 斜率 = 0 的 t 检验双侧 p 值（自由度 n - 2）；
    - direction: |slope| < stable_threshold 为 "stable"，否则按符号为 increasing / decreasing；
    - strength: r2 < 0.3 为 "weak"，< 0.7 为 "moderate"，否则 "strong"。
    """
    y = to_float_list(data, "data", min_size=3)
    n = len(y)
    x = [float(i) for i in range(n)]
    intercept, slope, sxx = _linear_regression(x, y)

    my = mean(y)
    ss_tot = math.fsum((v - my) ** 2 for v in y)
    ss_res = math.fsum((v - (intercept + slope * xi)) ** 2 for xi, v in zip(x, y))

    if ss_tot == 0.0:
        # 常数序列：没有可解释的波动
        r2 = 0.0
        p_value = 1.0
    else:
        r2 = max(0.0, 1.0 - ss_res / ss_tot)
        se = math.sqrt(ss_res / (n - 2) / sxx)
        p_value = 0.0 if se == 0.0 else min(2.0 * student_t_sf(abs(slope / se), n - 2), 1.0)

    if abs(slope) < stable_threshold:
        direction = "stable"
    elif slope > 0:
        direction = "increasing"
    else:
        direction = "decreasing"

    if r2 < 0.3:
        strength = "weak"
    elif r2 < 0.7:
        strength = "moderate"
    else:
        strength = "strong"

    return TrendAnalysis(
        slope=slope,
        intercept=intercept,
        r2=r2,
        p_value=p_value,
        direction=direction,
        strength=strength,
    )
