from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

ANALYSIS_KINDS = {
    "one_sample",
    "compare_groups",
    "paired",
    "anova",
    "correlation",
    "chi_square",
    "bayes_rate",
    "survival",
    "forecast",
    "seasonality",
    "trend",
}
COMPARE_METHODS = {"auto", "t_test", "welch", "mann_whitney", "ks"}
FORECAST_METHODS = {"simple", "holt"}
ALTERNATIVES = {"two-sided", "greater", "less", "larger", "smaller"}

# 需要第二个指标列的分析类型
_NEEDS_METRIC2 = {"paired", "correlation", "chi_square"}
# 需要分组列的分析类型
_NEEDS_GROUPS = {"compare_groups", "anova", "bayes_rate"}


@dataclass
class BayesConfig:
    """
    bayes_rate 分析的先验与抽样配置。

    说明：
    - prior_alpha / prior_beta: Beta 先验参数，默认 Beta(1, 1) 即均匀先验；
    - n_samples: 蒙特卡洛抽样次数。
    """

    prior_alpha: float = 1.0
    prior_beta: float = 1.0
    n_samples: int = 10000


@dataclass
class SurvivalConfig:
    """
    survival 分析配置。

    说明：
    - event_col: 事件指示列（1 = 观察到事件，0 = 删失）；
    - covariates: Cox 回归的协变量列，为空时不拟合 Cox 模型；
    - fit_weibull: 是否额外拟合 Weibull 参数模型；
    - id_col: 个体标识列，日级明细中同一个体重复出现时按该列去重，只保留第一行。
    """

    event_col: str
    covariates: List[str] = field(default_factory=list)
    fit_weibull: bool = False
    id_col: Optional[str] = None


@dataclass
class ForecastConfig:
    """
    forecast 分析配置。

    说明：
    - method: "simple"（简单指数平滑）或 "holt"（双指数平滑）；
    - alpha / beta: 水平 / 趋势平滑系数；
    - horizon: 预测步数；
    - confidence_level: 预测区间水平。
    """

    method: str = "simple"
    alpha: float = 0.3
    beta: float = 0.1
    horizon: int = 7
    confidence_level: float = 0.95


@dataclass
class AnalysisConfig:
    """
    单个分析任务配置。

    说明：
    - name: 分析名称，出现在结果表的 analysis 列；
    - kind: 分析类型，见 ANALYSIS_KINDS；
    - metric: 主指标列；
    - metric2: 第二指标列（paired / correlation / chi_square 必填）；
    - method: compare_groups 的检验方法，"auto" 表示按对照组分布诊断自动选择；
    - alternative: 备择假设；
    - mu0: one_sample 的假设均值；
    - base_group: 对照组名称，为空时取分组列排序后的第一个取值；
    - group_col: 覆盖全局 data.group_col；
    - max_period / threshold: seasonality 的参数；
    - period: 非空时对 seasonality 额外做季节分解；对 holt 预测则按该周期去季节后再外推。
    """

    name: str
    kind: str
    metric: str
    metric2: Optional[str] = None
    method: str = "auto"
    alternative: str = "two-sided"
    mu0: Optional[float] = None
    base_group: Optional[str] = None
    group_col: Optional[str] = None
    max_period: int = 30
    threshold: float = 0.3
    period: Optional[int] = None
    bayes: BayesConfig = field(default_factory=BayesConfig)
    survival: Optional[SurvivalConfig] = None
    forecast: ForecastConfig = field(default_factory=ForecastConfig)


@dataclass
class MetricAnalysisConfig:
    """
    指标分析的整体配置对象。

    说明：
    - group_col: 默认分组列（如 "group" / "cohort"）；
    - time_col: 时间列，时间序列类分析按其排序并按天聚合均值；
    - alpha: 全局显著性水平；
    - seed: 随机种子，保证 bayes_rate 的结果可复现；
    - analyses: 需要执行的分析列表（按顺序执行）。
    """

    group_col: Optional[str] = None
    time_col: Optional[str] = None
    alpha: float = 0.05
    seed: Optional[int] = None
    analyses: List[AnalysisConfig] = field(default_factory=list)


def _check_probability(value: Any, label: str) -> float:
    value = float(value)
    if not 0 < value < 1:
        raise ValueError(f"{label} 必须在 (0,1) 区间内，当前为: {value}")
    return value


def _load_bayes(name: str, raw: Mapping[str, Any]) -> BayesConfig:
    prior_alpha = float(raw.get("prior_alpha", 1.0))
    prior_beta = float(raw.get("prior_beta", 1.0))
    n_samples = int(raw.get("n_samples", 10000))
    if prior_alpha <= 0 or prior_beta <= 0:
        raise ValueError(
            f"分析 {name} 的 bayes.prior_alpha / prior_beta 必须大于 0，"
            f"当前为: {prior_alpha}, {prior_beta}"
        )
    if n_samples < 1:
        raise ValueError(f"分析 {name} 的 bayes.n_samples 必须 >= 1，当前为: {n_samples}")
    return BayesConfig(prior_alpha=prior_alpha, prior_beta=prior_beta, n_samples=n_samples)


def _load_survival(name: str, raw: Optional[Mapping[str, Any]]) -> SurvivalConfig:
    if not raw or not raw.get("event_col"):
        raise ValueError(f"分析 {name} 为 survival 类型，必须配置 survival.event_col。")
    covariates = raw.get("covariates") or []
    if isinstance(covariates, str):
        covariates = [covariates]
    return SurvivalConfig(
        event_col=str(raw["event_col"]),
        covariates=[str(c) for c in covariates],
        fit_weibull=bool(raw.get("fit_weibull", False)),
        id_col=str(raw["id_col"]) if raw.get("id_col") else None,
    )


def _load_forecast(name: str, raw: Mapping[str, Any]) -> ForecastConfig:
    method = raw.get("method", "simple")
    if method not in FORECAST_METHODS:
        raise ValueError(
            f"分析 {name} 的 forecast.method 必须为 'simple' 或 'holt'，当前为: {method}"
        )
    alpha = float(raw.get("alpha", 0.3))
    beta = float(raw.get("beta", 0.1))
    for label, value in (("alpha", alpha), ("beta", beta)):
        if not 0 < value <= 1:
            raise ValueError(f"分析 {name} 的 forecast.{label} 必须在 (0,1] 区间内，当前为: {value}")
    horizon = int(raw.get("horizon", 7))
    if horizon < 1:
        raise ValueError(f"分析 {name} 的 forecast.horizon 必须 >= 1，当前为: {horizon}")
    confidence_level = _check_probability(
        raw.get("confidence_level", 0.95), f"分析 {name} 的 forecast.confidence_level"
    )
    return ForecastConfig(
        method=method,
        alpha=alpha,
        beta=beta,
        horizon=horizon,
        confidence_level=confidence_level,
    )


def load_metric_analysis_config(raw_config: Mapping[str, Any]) -> MetricAnalysisConfig:
    """
    从字典（通常由 YAML 解析而来）构建 MetricAnalysisConfig 对象，并做基础校验与默认值填充。

    期望的配置结构大致为（示例）：

    - data:
        group_col: "cohort"
        time_col: "date"
    - alpha: 0.05
    - seed: 42
    - analyses:
        - name: "sleep_by_cohort"
          kind: "compare_groups"
          metric: "sleep_hours"
          method: "auto"
          base_group: "control"
        - name: "steps_forecast"
          kind: "forecast"
          metric: "steps"
          forecast:
            method: "holt"
            horizon: 7

    如果缺少必要字段或取值非法，将抛出 ValueError，错误信息为中文，方便排查。
    """
    data_cfg = raw_config.get("data", {}) or {}
    group_col = data_cfg.get("group_col")
    time_col = data_cfg.get("time_col")

    alpha = _check_probability(raw_config.get("alpha", 0.05), "alpha")
    seed = raw_config.get("seed")
    if seed is not None:
        seed = int(seed)

    analyses_cfg = raw_config.get("analyses", [])
    if not analyses_cfg:
        raise ValueError("指标分析配置中 analyses 列表不能为空。")

    analyses: List[AnalysisConfig] = []
    seen_names = set()
    for item in analyses_cfg:
        name = item.get("name")
        kind = item.get("kind")
        metric = item.get("metric")

        if not name:
            raise ValueError("analyses 中存在缺少 name 的配置。")
        if name in seen_names:
            raise ValueError(f"analyses 中存在重复的 name: {name}")
        seen_names.add(name)
        if kind not in ANALYSIS_KINDS:
            raise ValueError(
                f"分析 {name} 的 kind 必须为 {sorted(ANALYSIS_KINDS)} 之一，当前为: {kind}"
            )
        if not metric:
            raise ValueError(f"分析 {name} 缺少 metric 字段。")

        metric2 = item.get("metric2")
        if kind in _NEEDS_METRIC2 and not metric2:
            raise ValueError(f"分析 {name} 为 {kind} 类型，必须配置 metric2。")

        analysis_group_col = item.get("group_col") or group_col
        if kind in _NEEDS_GROUPS and not analysis_group_col:
            raise ValueError(
                f"分析 {name} 为 {kind} 类型，必须配置 group_col（分析级或 data.group_col）。"
            )

        method = item.get("method", "auto")
        if kind == "compare_groups" and method not in COMPARE_METHODS:
            raise ValueError(
                f"分析 {name} 的 method 必须为 {sorted(COMPARE_METHODS)} 之一，当前为: {method}"
            )

        alternative = item.get("alternative", "two-sided")
        if alternative not in ALTERNATIVES:
            raise ValueError(
                f"分析 {name} 的 alternative 必须为 'two-sided'/'greater'/'less'，当前为: {alternative}"
            )

        mu0 = item.get("mu0")
        if kind == "one_sample" and mu0 is None:
            raise ValueError(f"分析 {name} 为 one_sample 类型，必须配置 mu0。")

        max_period = int(item.get("max_period", 30))
        if max_period < 2:
            raise ValueError(f"分析 {name} 的 max_period 必须 >= 2，当前为: {max_period}")
        period = item.get("period")
        if period is not None:
            period = int(period)
            if period < 2:
                raise ValueError(f"分析 {name} 的 period 必须 >= 2，当前为: {period}")

        survival_cfg: Optional[SurvivalConfig] = None
        if kind == "survival":
            survival_cfg = _load_survival(name, item.get("survival"))

        base_group = item.get("base_group")
        analyses.append(
            AnalysisConfig(
                name=str(name),
                kind=kind,
                metric=str(metric),
                metric2=str(metric2) if metric2 else None,
                method=method,
                alternative=alternative,
                mu0=float(mu0) if mu0 is not None else None,
                base_group=str(base_group) if base_group is not None else None,
                group_col=analysis_group_col,
                max_period=max_period,
                threshold=float(item.get("threshold", 0.3)),
                period=period,
                bayes=_load_bayes(name, item.get("bayes", {}) or {}),
                survival=survival_cfg,
                forecast=_load_forecast(name, item.get("forecast", {}) or {}),
            )
        )

    return MetricAnalysisConfig(
        group_col=group_col,
        time_col=time_col,
        alpha=alpha,
        seed=seed,
        analyses=analyses,
    )
