"""
core.stats.results: 统计引擎返回的结果对象。

约定：
- 全部为 frozen dataclass，创建后不可修改；序列字段统一用 tuple；
- 展示层 / 文案层只读取字段，不得回写；
- 需要字典形式时使用 dataclasses.asdict。
"""

import math
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence, Tuple

from .special_functions import gamma_function


class ConfidenceInterval(NamedTuple):
    lower: float
    upper: float


@dataclass(frozen=True)
class TestResult:
    """
    单次假设检验结果。

    字段说明：
    - statistic: 检验统计量（t / 卡方 / U / D 等）；
    - p_value: p 值，取值 [0, 1]；
    - reject: p_value < alpha 时为 True；
    - confidence_interval: 均值 / 均值差的置信区间（若该检验有定义）；
    - effect_size: 效应量（Cohen's d、Cramér's V、秩二列相关等）；
    - degrees_of_freedom: 自由度（若该检验有定义）。
    """

    __test__ = False

    statistic: float
    p_value: float
    reject: bool
    confidence_interval: Optional[ConfidenceInterval] = None
    effect_size: Optional[float] = None
    degrees_of_freedom: Optional[float] = None


@dataclass(frozen=True)
class AnovaResult:
    """单因素方差分析结果，统计量为 F。"""

    statistic: float
    p_value: float
    reject: bool
    effect_size: float
    between_group_variance: float
    within_group_variance: float
    df_between: int
    df_within: int


@dataclass(frozen=True)
class LogRankResult:
    statistic: float
    p_value: float
    reject: bool
    observed_group1: float
    expected_group1: float
    observed_group2: float
    expected_group2: float
    variance: float


@dataclass(frozen=True)
class BetaPrior:
    """Beta 先验，由调用方给出。"""

    alpha: float = 1.0
    beta: float = 1.0

    def __post_init__(self) -> None:
        if not (self.alpha > 0.0 and self.beta > 0.0):
            raise ValueError(
                f"Beta 先验参数必须均大于 0，当前 alpha={self.alpha}, beta={self.beta}"
            )


@dataclass(frozen=True)
class BetaPosterior:
    """
    Beta 后验，由先验 + 成功 / 失败次数确定性地计算得到。

    mode 在 alpha <= 1 且 beta <= 1 时无定义，取 None。
    """

    alpha: float
    beta: float
    mean: float
    mode: Optional[float]
    variance: float
    credible_interval: ConfidenceInterval


@dataclass(frozen=True)
class ABTestResult:
    control_posterior: BetaPosterior
    treatment_posterior: BetaPosterior
    probability_treatment_better: float
    expected_lift: float
    n_samples: int


@dataclass(frozen=True)
class BayesianRegressionResult:
    posterior_mean: Tuple[float, ...]
    posterior_covariance: Tuple[Tuple[float, ...], ...]
    predictions: Tuple[float, ...]
    uncertainty: Tuple[float, ...]


@dataclass(frozen=True)
class Histogram:
    """等宽直方图：bin_edges 比 counts 多一个元素，最后一个箱包含右端点。"""

    bin_edges: Tuple[float, ...]
    counts: Tuple[int, ...]


@dataclass(frozen=True)
class SimulationSummary:
    """蒙特卡洛 / bootstrap 抽样结果的汇总。"""

    n: int
    mean: float
    median: float
    std: float
    variance: float
    min: float
    max: float
    percentiles: Tuple[Tuple[int, float], ...]
    confidence_interval: ConfidenceInterval
    histogram: Histogram


@dataclass(frozen=True)
class MCMCResult:
    """
    Metropolis-Hastings 抽样结果。

    - samples: 去掉 burn_in 之后的链；
    - summary: samples 的汇总；
    - acceptance_rate: 全部迭代（含 burn_in）中提议被接受的比例。
    """

    samples: Tuple[float, ...]
    summary: SimulationSummary
    acceptance_rate: float


@dataclass(frozen=True)
class SurvivalRecord:
    """
    单条生存数据。

    字段说明：
    - time: 事件或删失发生的时间，>= 0；
    - event_occurred: True 表示观察到事件，False 表示删失；
    - covariates: 可选的协变量向量（Cox 回归必需）。
    """

    time: float
    event_occurred: bool
    covariates: Optional[Tuple[float, ...]] = None

    def __post_init__(self) -> None:
        if math.isnan(self.time) or self.time < 0.0:
            raise ValueError(f"生存时间必须 >= 0，当前为: {self.time}")
        if self.covariates is not None and not isinstance(self.covariates, tuple):
            object.__setattr__(self, "covariates", tuple(float(v) for v in self.covariates))


@dataclass(frozen=True)
class KaplanMeierResult:
    """
    Kaplan-Meier 估计结果。

    说明：
    - times 为升序的全部不同观测时间（包括仅有删失的时间点，此处生存率不变）；
    - survival 单调不增，取值 [0, 1]；
    - median_survival 为生存率首次 <= 0.5 的时间，始终未跌破 0.5 时为 math.inf。
    """

    times: Tuple[float, ...]
    survival: Tuple[float, ...]
    events_at_time: Tuple[int, ...]
    censored_at_time: Tuple[int, ...]
    at_risk_at_time: Tuple[int, ...]
    confidence_intervals: Tuple[ConfidenceInterval, ...]
    median_survival: float

    def survival_at(self, t: float) -> float:
        """阶梯函数取值：t 之前（含 t）最近一个时间点的生存率，首个时间点之前为 1。"""
        value = 1.0
        for time, surv in zip(self.times, self.survival):
            if time > t:
                break
            value = surv
        return value


@dataclass(frozen=True)
class CoxModel:
    """
    Cox 比例风险模型。

    converged=False 表示达到最大迭代次数仍未满足精度，系数为最后一次迭代值，
    仍可作为近似结果使用。
    """

    coefficients: Tuple[float, ...]
    hazard_ratios: Tuple[float, ...]
    standard_errors: Tuple[float, ...]
    z_scores: Tuple[float, ...]
    p_values: Tuple[float, ...]
    concordance_index: float
    log_likelihood: float
    iterations: int
    converged: bool

    def relative_risk(self, covariates: Sequence[float]) -> float:
        """相对风险 exp(β·x)。"""
        if len(covariates) != len(self.coefficients):
            raise ValueError(
                f"协变量个数 {len(covariates)} 与模型系数个数 {len(self.coefficients)} 不一致。"
            )
        return math.exp(sum(b * x for b, x in zip(self.coefficients, covariates)))


@dataclass(frozen=True)
class WeibullModel:
    """Weibull 生存模型 S(t) = exp(-(t/scale)^shape)。"""

    shape: float
    scale: float
    iterations: int
    converged: bool

    def survival(self, t: float) -> float:
        if t <= 0.0:
            return 1.0
        return math.exp(-((t / self.scale) ** self.shape))

    def hazard(self, t: float) -> float:
        if t < 0.0:
            raise ValueError(f"t 必须 >= 0，当前为: {t}")
        if t == 0.0:
            if self.shape < 1.0:
                return math.inf
            return self.shape / self.scale if self.shape == 1.0 else 0.0
        return (self.shape / self.scale) * (t / self.scale) ** (self.shape - 1.0)

    def median(self) -> float:
        return self.scale * math.log(2.0) ** (1.0 / self.shape)

    def mean(self) -> float:
        return self.scale * gamma_function(1.0 + 1.0 / self.shape)


@dataclass(frozen=True)
class ForecastResult:
    """
    时间序列预测结果。

    - forecast / lower / upper 长度等于预测步数 horizon；
    - fitted / residuals 与输入序列等长；
    - trend 仅 Holt 双指数平滑时给出（各预测步的累计趋势增量）；
    - seasonal 仅带季节周期的 Holt 预测时给出（各预测步对应相位的季节指数）。
    """

    forecast: Tuple[float, ...]
    lower: Tuple[float, ...]
    upper: Tuple[float, ...]
    fitted: Tuple[float, ...]
    residuals: Tuple[float, ...]
    trend: Optional[Tuple[float, ...]] = None
    seasonal: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True)
class Decomposition:
    trend: Tuple[float, ...]
    seasonal: Tuple[float, ...]
    residual: Tuple[float, ...]


@dataclass(frozen=True)
class SeasonalityResult:
    has_season: bool
    period: Optional[int]
    strength: Optional[float]
    acf: Tuple[float, ...]


@dataclass(frozen=True)
class TrendAnalysis:
    """线性趋势：direction 取 increasing / decreasing / stable，strength 取 weak / moderate / strong。"""

    slope: float
    intercept: float
    r2: float
    p_value: float
    direction: str
    strength: str
