import math
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import warnings

import pandas as pd

from core.logger import get_logger
from core.stats import (
    BetaPrior,
    SurvivalRecord,
    ab_test,
    anova,
    chi_square_test,
    correlation_test,
    cox_proportional_hazards,
    describe_sample,
    detect_seasonality,
    double_exponential_smoothing,
    exponential_smoothing,
    kaplan_meier,
    ks_test,
    linear_trend,
    log_rank_test,
    mann_whitney_u,
    one_sample_t_test,
    paired_t_test,
    seasonal_decompose,
    two_sample_t_test,
    weibull_fit,
)
from .config_schema import AnalysisConfig, MetricAnalysisConfig

logger = get_logger(__name__)

RESULT_COLUMNS = [
    "analysis",
    "kind",
    "method",
    "metric",
    "groups",
    "statistic",
    "p_value",
    "reject",
    "effect_size",
    "detail",
]


@dataclass
class AnalysisResultRow:
    """
    单条分析结果行的数据结构。

    字段说明：
    - analysis: 分析名称；
    - kind: 分析类型；
    - method: 实际采用的方法（如 two_sample_t_test / kaplan_meier）；
    - metric: 指标列（两列指标时为 "a ~ b"）；
    - groups: 参与比较的分组（如 "control vs treatment"），无分组时为 None；
    - statistic: 主统计量；
    - p_value: p 值，无假设检验含义的行为 NaN；
    - reject: 是否拒绝原假设 / 是否判定为显著，无检验含义时为 None；
    - effect_size: 效应量；
    - detail: 其他辅助信息（置信区间、诊断结果、预测序列等）。
    """

    analysis: str
    kind: str
    method: str
    metric: str
    groups: Optional[str]
    statistic: float
    p_value: float
    reject: Optional[bool]
    effect_size: Optional[float]
    detail: Dict[str, Any]


def _numeric_column(df: pd.DataFrame, column: str, analysis_name: str) -> pd.Series:
    """把指标列转换为浮点数，无法转换的值视为缺失并丢弃。"""
    values = pd.to_numeric(df[column], errors="coerce")
    n_missing = int(values.isna().sum())
    if n_missing:
        logger.info("分析 %s：列 %s 中有 %d 个缺失 / 非数值记录已忽略。", analysis_name, column, n_missing)
    return values.dropna()


def _samples_by_group(
    df: pd.DataFrame, group_col: str, metric: str, analysis_name: str
) -> Dict[str, List[float]]:
    """
    按分组抽取指标样本。

    返回：
    - 字典，key 为 group 名称（字符串），value 为该组的样本列表，按组名排序。
    """
    if group_col not in df.columns:
        raise ValueError(f"分析 {analysis_name} 的分组列 {group_col} 不存在于数据中。")
    samples: Dict[str, List[float]] = {}
    for group, subset in df.groupby(df[group_col].astype(str), sort=True):
        values = _numeric_column(subset, metric, analysis_name)
        if not values.empty:
            samples[str(group)] = values.tolist()
    return samples


def _split_base_group(
    samples: Dict[str, List[float]], base_group: Optional[str], analysis_name: str
) -> Tuple[str, List[str]]:
    if len(samples) < 2:
        raise ValueError(f"分析 {analysis_name} 至少需要 2 个有数据的分组，当前为: {list(samples)}")
    base = base_group if base_group is not None else next(iter(samples))
    if base not in samples:
        raise ValueError(f"分析 {analysis_name} 的对照组 '{base}' 在数据中不存在或没有样本。")
    return base, [g for g in samples if g != base]


def _daily_series(df: pd.DataFrame, metric: str, time_col: Optional[str], analysis_name: str) -> List[float]:
    """
    时间序列类分析的输入：有 time_col 时按时间排序并对同一时间点取均值，否则按行顺序。
    """
    values = pd.to_numeric(df[metric], errors="coerce")
    if time_col is None:
        series = values.dropna()
    else:
        if time_col not in df.columns:
            raise ValueError(f"分析 {analysis_name} 的时间列 {time_col} 不存在于数据中。")
        series = values.groupby(df[time_col]).mean().sort_index().dropna()
    return series.tolist()


def _test_row(
    cfg: AnalysisConfig,
    method: str,
    metric: str,
    groups: Optional[str],
    result: Any,
    detail: Optional[Dict[str, Any]] = None,
) -> AnalysisResultRow:
    extra: Dict[str, Any] = {}
    interval = getattr(result, "confidence_interval", None)
    if interval is not None:
        extra["confidence_interval"] = tuple(interval)
    df_value = getattr(result, "degrees_of_freedom", None)
    if df_value is not None:
        extra["degrees_of_freedom"] = df_value
    if detail:
        extra.update(detail)
    return AnalysisResultRow(
        analysis=cfg.name,
        kind=cfg.kind,
        method=method,
        metric=metric,
        groups=groups,
        statistic=float(result.statistic),
        p_value=float(result.p_value),
        reject=bool(result.reject),
        effect_size=float(result.effect_size) if result.effect_size is not None else None,
        detail=extra,
    )


def _run_one_sample(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    values = _numeric_column(df, cfg.metric, cfg.name).tolist()
    result = one_sample_t_test(values, cfg.mu0, alpha=config.alpha, alternative=cfg.alternative)
    return [_test_row(cfg, "one_sample_t_test", cfg.metric, None, result, {"mu0": cfg.mu0})]


def _run_compare_groups(
    df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig
) -> List[AnalysisResultRow]:
    """
    对照组与其他每个分组两两比较。

    method == "auto" 时以对照组的分布诊断为准：近似正态用 t 检验，否则用 Mann-Whitney U。
    """
    samples = _samples_by_group(df, cfg.group_col, cfg.metric, cfg.name)
    base, others = _split_base_group(samples, cfg.base_group, cfg.name)
    control = samples[base]

    diagnosis = describe_sample(control)
    method = cfg.method
    if method == "auto":
        method = "t_test" if "t_test" in diagnosis["recommended_tests"] else "mann_whitney"

    rows: List[AnalysisResultRow] = []
    for group in others:
        variant = samples[group]
        if method == "t_test":
            result = two_sample_t_test(variant, control, alpha=config.alpha, alternative=cfg.alternative)
            used = "two_sample_t_test"
        elif method == "welch":
            result = two_sample_t_test(
                variant, control, alpha=config.alpha, equal_variance=False, alternative=cfg.alternative
            )
            used = "welch_t_test"
        elif method == "mann_whitney":
            result = mann_whitney_u(variant, control, alpha=config.alpha, alternative=cfg.alternative)
            used = "mann_whitney_u"
        else:
            result = ks_test(variant, control, alpha=config.alpha)
            used = "ks_test"
        rows.append(
            _test_row(
                cfg,
                used,
                cfg.metric,
                f"{group} vs {base}",
                result,
                {"n": {base: len(control), group: len(variant)}, "diagnosis": diagnosis},
            )
        )
    return rows


def _paired_columns(df: pd.DataFrame, cfg: AnalysisConfig) -> Tuple[List[float], List[float]]:
    pair = df[[cfg.metric, cfg.metric2]].apply(pd.to_numeric, errors="coerce").dropna()
    return pair[cfg.metric].tolist(), pair[cfg.metric2].tolist()


def _run_paired(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    first, second = _paired_columns(df, cfg)
    result = paired_t_test(first, second, alpha=config.alpha, alternative=cfg.alternative)
    return [_test_row(cfg, "paired_t_test", f"{cfg.metric} - {cfg.metric2}", None, result, {"n_pairs": len(first)})]


def _run_anova(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    samples = _samples_by_group(df, cfg.group_col, cfg.metric, cfg.name)
    result = anova(list(samples.values()), alpha=config.alpha)
    return [
        AnalysisResultRow(
            analysis=cfg.name,
            kind=cfg.kind,
            method="one_way_anova",
            metric=cfg.metric,
            groups=", ".join(samples),
            statistic=result.statistic,
            p_value=result.p_value,
            reject=result.reject,
            effect_size=result.effect_size,
            detail={
                "df_between": result.df_between,
                "df_within": result.df_within,
                "between_group_variance": result.between_group_variance,
                "within_group_variance": result.within_group_variance,
            },
        )
    ]


def _run_correlation(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    x, y = _paired_columns(df, cfg)
    result = correlation_test(x, y, alpha=config.alpha, alternative=cfg.alternative)
    return [_test_row(cfg, "pearson_correlation", f"{cfg.metric} ~ {cfg.metric2}", None, result, {"n_pairs": len(x)})]


def _run_chi_square(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    table = pd.crosstab(df[cfg.metric], df[cfg.metric2])
    result = chi_square_test(table.values.tolist(), alpha=config.alpha)
    detail = {"rows": [str(v) for v in table.index], "columns": [str(v) for v in table.columns]}
    return [_test_row(cfg, "chi_square_independence", f"{cfg.metric} x {cfg.metric2}", None, result, detail)]


def _count_successes(values: List[float], group: str, analysis_name: str) -> int:
    """0/1 指标的成功次数；出现 0/1 以外的取值直接报错。"""
    invalid = sorted({v for v in values if v not in (0, 1)})
    if invalid:
        raise ValueError(
            f"分析 {analysis_name} 的分组 '{group}' 中存在非 0/1 取值：{invalid[:5]}"
        )
    return sum(1 for v in values if v == 1)


def _run_bayes_rate(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    """
    0/1 指标（如 "当天是否达成睡眠目标"）的贝叶斯 AB 比较。

    statistic 为 P(实验组 > 对照组)，p_value 无定义记为 NaN；
    reject 表示该后验概率 >= 1 - alpha，effect_size 为期望相对提升。
    """
    samples = _samples_by_group(df, cfg.group_col, cfg.metric, cfg.name)
    base, others = _split_base_group(samples, cfg.base_group, cfg.name)
    prior = BetaPrior(cfg.bayes.prior_alpha, cfg.bayes.prior_beta)

    control = samples[base]
    control_successes = _count_successes(control, base, cfg.name)
    rows: List[AnalysisResultRow] = []
    for offset, group in enumerate(others):
        variant = samples[group]
        seed = None if config.seed is None else config.seed + offset
        result = ab_test(
            control_successes,
            len(control),
            _count_successes(variant, group, cfg.name),
            len(variant),
            prior=prior,
            n_samples=cfg.bayes.n_samples,
            seed=seed,
        )
        rows.append(
            AnalysisResultRow(
                analysis=cfg.name,
                kind=cfg.kind,
                method="beta_binomial_monte_carlo",
                metric=cfg.metric,
                groups=f"{group} vs {base}",
                statistic=result.probability_treatment_better,
                p_value=math.nan,
                reject=result.probability_treatment_better >= 1.0 - config.alpha,
                effect_size=result.expected_lift,
                detail={
                    "control_posterior": asdict(result.control_posterior),
                    "treatment_posterior": asdict(result.treatment_posterior),
                    "n_samples": result.n_samples,
                },
            )
        )
    return rows


def _survival_records(df: pd.DataFrame, cfg: AnalysisConfig) -> List[SurvivalRecord]:
    columns = [cfg.metric, cfg.survival.event_col] + list(cfg.survival.covariates)
    missing = set(columns).difference(df.columns)
    if missing:
        raise ValueError(f"分析 {cfg.name} 缺少以下列：{', '.join(sorted(missing))}")
    if cfg.survival.id_col is not None:
        if cfg.survival.id_col not in df.columns:
            raise ValueError(f"分析 {cfg.name} 的个体标识列 {cfg.survival.id_col} 不存在于数据中。")
        df = df.drop_duplicates(subset=cfg.survival.id_col, keep="first")
    frame = df[columns].apply(pd.to_numeric, errors="coerce").dropna()
    records = []
    for row in frame.itertuples(index=False):
        covariates = tuple(float(v) for v in row[2:]) if cfg.survival.covariates else None
        records.append(SurvivalRecord(float(row[0]), bool(row[1]), covariates))
    return records


def _run_survival(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    """
    生存分析：各组 Kaplan-Meier 中位生存时间、各组与对照组的 Log-rank 检验，
    配置了协变量时追加 Cox 回归（每个协变量一行），可选 Weibull 拟合。
    """
    rows: List[AnalysisResultRow] = []

    if cfg.group_col:
        if cfg.group_col not in df.columns:
            raise ValueError(f"分析 {cfg.name} 的分组列 {cfg.group_col} 不存在于数据中。")
        grouped = {
            str(g): _survival_records(subset, cfg)
            for g, subset in df.groupby(df[cfg.group_col].astype(str), sort=True)
        }
    else:
        grouped = {"all": _survival_records(df, cfg)}

    for group, records in grouped.items():
        km = kaplan_meier(records)
        rows.append(
            AnalysisResultRow(
                analysis=cfg.name,
                kind=cfg.kind,
                method="kaplan_meier",
                metric=cfg.metric,
                groups=group,
                statistic=km.median_survival,
                p_value=math.nan,
                reject=None,
                effect_size=None,
                detail={
                    "n": len(records),
                    "events": sum(km.events_at_time),
                    "final_survival": km.survival[-1],
                },
            )
        )

    if len(grouped) >= 2:
        base = cfg.base_group if cfg.base_group is not None else next(iter(grouped))
        if base not in grouped:
            raise ValueError(f"分析 {cfg.name} 的对照组 '{base}' 在数据中不存在。")
        for group, records in grouped.items():
            if group == base:
                continue
            result = log_rank_test(records, grouped[base], alpha=config.alpha)
            rows.append(
                AnalysisResultRow(
                    analysis=cfg.name,
                    kind=cfg.kind,
                    method="log_rank",
                    metric=cfg.metric,
                    groups=f"{group} vs {base}",
                    statistic=result.statistic,
                    p_value=result.p_value,
                    reject=result.reject,
                    effect_size=None,
                    detail={
                        "observed": result.observed_group1,
                        "expected": result.expected_group1,
                    },
                )
            )

    all_records = [r for records in grouped.values() for r in records]
    if cfg.survival.covariates:
        model = cox_proportional_hazards(all_records)
        for i, name in enumerate(cfg.survival.covariates):
            rows.append(
                AnalysisResultRow(
                    analysis=cfg.name,
                    kind=cfg.kind,
                    method="cox_proportional_hazards",
                    metric=f"{cfg.metric} ~ {name}",
                    groups=None,
                    statistic=model.z_scores[i],
                    p_value=model.p_values[i],
                    reject=model.p_values[i] < config.alpha,
                    effect_size=model.hazard_ratios[i],
                    detail={
                        "coefficient": model.coefficients[i],
                        "standard_error": model.standard_errors[i],
                        "concordance_index": model.concordance_index,
                        "converged": model.converged,
                    },
                )
            )

    if cfg.survival.fit_weibull:
        weibull = weibull_fit(all_records)
        rows.append(
            AnalysisResultRow(
                analysis=cfg.name,
                kind=cfg.kind,
                method="weibull",
                metric=cfg.metric,
                groups=None,
                statistic=weibull.shape,
                p_value=math.nan,
                reject=None,
                effect_size=None,
                detail={
                    "scale": weibull.scale,
                    "median": weibull.median(),
                    "converged": weibull.converged,
                },
            )
        )
    return rows


def _run_forecast(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    series = _daily_series(df, cfg.metric, config.time_col, cfg.name)
    fc = cfg.forecast
    if fc.method == "holt":
        result = double_exponential_smoothing(
            series,
            alpha=fc.alpha,
            beta=fc.beta,
            horizon=fc.horizon,
            confidence_level=fc.confidence_level,
            period=cfg.period,
        )
        method = "holt" if cfg.period is None else "seasonal_holt"
    else:
        result = exponential_smoothing(
            series, alpha=fc.alpha, horizon=fc.horizon, confidence_level=fc.confidence_level
        )
        method = "simple_exponential_smoothing"
    return [
        AnalysisResultRow(
            analysis=cfg.name,
            kind=cfg.kind,
            method=method,
            metric=cfg.metric,
            groups=None,
            statistic=result.forecast[0],
            p_value=math.nan,
            reject=None,
            effect_size=None,
            detail={
                "forecast": list(result.forecast),
                "lower": list(result.lower),
                "upper": list(result.upper),
                "seasonal": None if result.seasonal is None else list(result.seasonal),
                "n_observations": len(series),
            },
        )
    ]


def _run_seasonality(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    series = _daily_series(df, cfg.metric, config.time_col, cfg.name)
    result = detect_seasonality(series, max_period=cfg.max_period, threshold=cfg.threshold)
    detail: Dict[str, Any] = {"period": result.period, "acf": list(result.acf)}
    if cfg.period is not None:
        decomposition = seasonal_decompose(series, cfg.period)
        detail["seasonal_indices"] = list(decomposition.seasonal[: cfg.period])
    return [
        AnalysisResultRow(
            analysis=cfg.name,
            kind=cfg.kind,
            method="acf_peak",
            metric=cfg.metric,
            groups=None,
            statistic=result.strength if result.strength is not None else 0.0,
            p_value=math.nan,
            reject=result.has_season,
            effect_size=None,
            detail=detail,
        )
    ]


def _run_trend(df: pd.DataFrame, cfg: AnalysisConfig, config: MetricAnalysisConfig) -> List[AnalysisResultRow]:
    series = _daily_series(df, cfg.metric, config.time_col, cfg.name)
    result = linear_trend(series)
    return [
        AnalysisResultRow(
            analysis=cfg.name,
            kind=cfg.kind,
            method="linear_trend",
            metric=cfg.metric,
            groups=None,
            statistic=result.slope,
            p_value=result.p_value,
            reject=result.p_value < config.alpha,
            effect_size=result.r2,
            detail={
                "intercept": result.intercept,
                "direction": result.direction,
                "strength": result.strength,
            },
        )
    ]


_RUNNERS: Dict[str, Callable[[pd.DataFrame, AnalysisConfig, MetricAnalysisConfig], List[AnalysisResultRow]]] = {
    "one_sample": _run_one_sample,
    "compare_groups": _run_compare_groups,
    "paired": _run_paired,
    "anova": _run_anova,
    "correlation": _run_correlation,
    "chi_square": _run_chi_square,
    "bayes_rate": _run_bayes_rate,
    "survival": _run_survival,
    "forecast": _run_forecast,
    "seasonality": _run_seasonality,
    "trend": _run_trend,
}


def run_metric_analyses(df: pd.DataFrame, config: MetricAnalysisConfig) -> pd.DataFrame:
    """
    运行指标分析的主入口。

    设计目标：
    - 只依赖上游数据层输出的日级指标明细表 df（每行一个用户 × 日期，或一条生存记录）；
    - 按 MetricAnalysisConfig 中的 analyses 顺序，调用 core.stats 完成检验 / 推断 / 预测；
    - 返回统一结构的结果 DataFrame，方便后续写出 CSV 或做展示。

    参数：
    - df: 指标明细 DataFrame；
    - config: MetricAnalysisConfig 配置对象。

    返回：
    - DataFrame，列为 RESULT_COLUMNS，每行对应一个分析 × 比较。
      若某个分析的指标列在数据中不存在，会给出 UserWarning 并跳过该分析；
      分析过程中的统计错误（样本不足、方差为 0 等）记录日志后原样抛出。
    """
    results: List[AnalysisResultRow] = []

    for cfg in config.analyses:
        needed = [cfg.metric] + ([cfg.metric2] if cfg.metric2 else [])
        missing = [c for c in needed if c not in df.columns]
        if missing:
            warnings.warn(
                f"分析 {cfg.name} 的指标列 {', '.join(missing)} 不存在于数据中，已跳过。",
                UserWarning,
            )
            continue

        logger.info("开始分析 %s（kind=%s, metric=%s）", cfg.name, cfg.kind, cfg.metric)
        try:
            rows = _RUNNERS[cfg.kind](df, cfg, config)
        except ValueError as exc:
            logger.error("分析 %s 失败：%s", cfg.name, exc)
            raise
        logger.info("分析 %s 完成，生成 %d 行结果。", cfg.name, len(rows))
        results.extend(rows)

    if not results:
        raise ValueError("run_metric_analyses 未生成任何结果，请检查输入数据与配置是否匹配。")

    return pd.DataFrame([asdict(row) for row in results], columns=RESULT_COLUMNS)
