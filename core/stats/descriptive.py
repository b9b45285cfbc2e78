import math
from typing import Dict, Iterable, List, Sequence

from .errors import InsufficientDataError


def to_float_list(values: Iterable[float], name: str, min_size: int = 1) -> List[float]:
    """
    将任意可迭代对象转换为 float 列表，并做基础校验。

    参数：
    - values: 输入序列；
    - name: 参数名称，用于报错信息；
    - min_size: 最少样本量，不足时抛出 InsufficientDataError。
    """
    try:
        data = [float(v) for v in values]
    except TypeError as exc:
        raise ValueError(f"{name} 必须是可迭代的数值序列。") from exc
    except ValueError as exc:
        raise ValueError(f"{name} 中存在无法转换为浮点数的元素。") from exc

    if any(math.isnan(x) or math.isinf(x) for x in data):
        raise ValueError(f"{name} 中存在 NaN 或无穷大，请先清洗数据。")
    if len(data) < min_size:
        if not data:
            raise InsufficientDataError(f"{name} 不能为空。")
        raise InsufficientDataError(
            f"{name} 至少需要 {min_size} 个样本，当前为: {len(data)}"
        )
    return data


def mean(data: Sequence[float]) -> float:
    if not data:
        raise InsufficientDataError("求均值的样本不能为空。")
    return math.fsum(data) / len(data)


def sample_variance(data: Sequence[float]) -> float:
    """无偏样本方差（分母 n - 1）。"""
    n = len(data)
    if n < 2:
        raise InsufficientDataError(f"样本方差至少需要 2 个样本，当前为: {n}")
    m = mean(data)
    return math.fsum((x - m) ** 2 for x in data) / (n - 1)


def population_variance(data: Sequence[float]) -> float:
    m = mean(data)
    return math.fsum((x - m) ** 2 for x in data) / len(data)


def median(data: Sequence[float]) -> float:
    if not data:
        raise InsufficientDataError("求中位数的样本不能为空。")
    data_sorted = sorted(data)
    n = len(data_sorted)
    if n % 2 == 1:
        return data_sorted[n // 2]
    return 0.5 * (data_sorted[n // 2 - 1] + data_sorted[n // 2])


def percentile(data: Sequence[float], q: float) -> float:
    """
    线性插值分位数（与 pandas / numpy 默认的 "linear" 口径一致）。

    参数：
    - data: 样本；
    - q: 分位点，0 <= q <= 1。
    """
    if not 0.0 <= q <= 1.0:
        raise ValueError(f"q 必须在 [0, 1] 区间内，当前为: {q}")
    if not data:
        raise InsufficientDataError("求分位数的样本不能为空。")
    data_sorted = sorted(data)
    pos = (len(data_sorted) - 1) * q
    lower = int(math.floor(pos))
    upper = min(lower + 1, len(data_sorted) - 1)
    frac = pos - lower
    return data_sorted[lower] + (data_sorted[upper] - data_sorted[lower]) * frac


def describe_sample(values: Sequence[float]) -> Dict[str, object]:
    """
    对连续型指标做简单的分布诊断，帮助后续选择合适的显著性检验方法。

    诊断内容（近似，非严格统计检验）：
    - 样本规模：n；
    - 基本统计量：均值、标准差、最小值、最大值、中位数；
    - 偏度 / 峰度（以 0 为参考，绝对值越大越偏离正态）；
    - 经验标签：
      * is_approximately_normal: |skew| < 1 且超额峰度 < 3；
      * is_heavy_tailed: |skew| >= 1 或峰度过高；
    - 推荐检验策略（recommended_tests）：
      * "t_test"：均值 t 检验，适合近似正态；
      * "mann_whitney_u"：秩和检验，适合强偏态或重尾（如睡眠时长里的极端熬夜日）。

    返回：
    - 字典，既包含数值指标，也包含布尔标签和建议列表。
    """
    data = to_float_list(values, "values")
    n = len(data)

    data_mean = mean(data)
    if n > 1:
        var = sample_variance(data)
        std = math.sqrt(var)
    else:
        var = 0.0
        std = 0.0

    # 偏度和峰度（样本版本，简化实现）
    if n > 2 and std > 0:
        m3 = sum((x - data_mean) ** 3 for x in data) / n
        m4 = sum((x - data_mean) ** 4 for x in data) / n
        skewness = m3 / (std**3)
        kurtosis_excess = m4 / (var**2) - 3.0
    else:
        skewness = 0.0
        kurtosis_excess = 0.0

    is_approximately_normal = abs(skewness) < 1.0 and abs(kurtosis_excess) < 3.0
    is_heavy_tailed = abs(skewness) >= 1.0 or abs(kurtosis_excess) >= 3.0

    recommended_tests = ["t_test"] if is_approximately_normal else ["mann_whitney_u"]

    return {
        "n": n,
        "mean": data_mean,
        "std": std,
        "min": min(data),
        "max": max(data),
        "median": median(data),
        "skewness": skewness,
        "kurtosis_excess": kurtosis_excess,
        "is_approximately_normal": is_approximately_normal,
        "is_heavy_tailed": is_heavy_tailed,
        "recommended_tests": recommended_tests,
    }
