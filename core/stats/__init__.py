"""
core.stats: 统计学底层（特殊函数、分布、假设检验、贝叶斯推断、生存分析、时间序列）

本模块仅提供通用统计学算法，不包含任何业务逻辑；纯 Python 实现，不依赖 NumPy / SciPy。
"""

from .bayesian import ab_test, bayesian_linear_regression, update_beta_prior
from .descriptive import describe_sample
from .distributions import (
    beta_cdf,
    beta_ppf,
    chi_square_cdf,
    chi_square_sf,
    f_cdf,
    f_sf,
    normal_cdf,
    normal_ppf,
    student_t_cdf,
    student_t_ppf,
)
from .errors import (
    ConvergenceWarning,
    DimensionMismatchError,
    InsufficientDataError,
    SingularMatrixError,
    StatsError,
    ZeroVarianceError,
)
from .hypothesis_test import (
    anova,
    chi_square_test,
    correlation_test,
    ks_test,
    mann_whitney_u,
    one_sample_t_test,
    paired_t_test,
    two_sample_t_test,
)
from .monte_carlo import bootstrap, mcmc, simulate
from .results import (
    ABTestResult,
    AnovaResult,
    BayesianRegressionResult,
    BetaPosterior,
    BetaPrior,
    ConfidenceInterval,
    CoxModel,
    Decomposition,
    ForecastResult,
    Histogram,
    KaplanMeierResult,
    LogRankResult,
    MCMCResult,
    SeasonalityResult,
    SimulationSummary,
    SurvivalRecord,
    TestResult,
    TrendAnalysis,
    WeibullModel,
)
from .survival import cox_proportional_hazards, kaplan_meier, log_rank_test, weibull_fit
from .time_series import (
    autocorrelation,
    centered_moving_average,
    detect_seasonality,
    double_exponential_smoothing,
    exponential_smoothing,
    linear_trend,
    moving_average,
    seasonal_decompose,
)

__all__ = [
    "ABTestResult",
    "AnovaResult",
    "BayesianRegressionResult",
    "BetaPosterior",
    "BetaPrior",
    "ConfidenceInterval",
    "ConvergenceWarning",
    "CoxModel",
    "Decomposition",
    "DimensionMismatchError",
    "ForecastResult",
    "Histogram",
    "InsufficientDataError",
    "KaplanMeierResult",
    "LogRankResult",
    "MCMCResult",
    "SeasonalityResult",
    "SimulationSummary",
    "SingularMatrixError",
    "StatsError",
    "SurvivalRecord",
    "TestResult",
    "TrendAnalysis",
    "WeibullModel",
    "ZeroVarianceError",
    "ab_test",
    "anova",
    "autocorrelation",
    "bayesian_linear_regression",
    "beta_cdf",
    "beta_ppf",
    "bootstrap",
    "centered_moving_average",
    "chi_square_cdf",
    "chi_square_sf",
    "chi_square_test",
    "correlation_test",
    "cox_proportional_hazards",
    "describe_sample",
    "detect_seasonality",
    "double_exponential_smoothing",
    "exponential_smoothing",
    "f_cdf",
    "f_sf",
    "kaplan_meier",
    "ks_test",
    "linear_trend",
    "log_rank_test",
    "mann_whitney_u",
    "mcmc",
    "moving_average",
    "normal_cdf",
    "normal_ppf",
    "one_sample_t_test",
    "paired_t_test",
    "seasonal_decompose",
    "simulate",
    "student_t_cdf",
    "student_t_ppf",
    "two_sample_t_test",
    "update_beta_prior",
    "weibull_fit",
]
