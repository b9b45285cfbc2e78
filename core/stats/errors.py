"""
core.stats.errors: 统计引擎的统一错误类型。

约定：
- 输入校验类错误（样本量不足、维度不一致、方差为 0 等）一律在 API 入口处直接抛出；
- 迭代求解器未收敛不是错误：结果对象上带 converged=False，同时发出 ConvergenceWarning；
- 所有错误类型都继承自 ValueError，上层按 ValueError 捕获的旧代码无需修改。
"""


class StatsError(ValueError):
    """统计引擎错误基类。"""


class InsufficientDataError(StatsError):
    """样本量 / 分组数低于检验所需的最小值。"""


class DimensionMismatchError(StatsError):
    """配对样本、协变量或矩阵的维度不一致。"""


class SingularMatrixError(StatsError, ArithmeticError):
    """矩阵求逆或解线性方程组时遇到（近似）为 0 的主元。"""


class ZeroVarianceError(StatsError, ZeroDivisionError):
    """标准误或方差为 0，统计量无定义（原本会得到 NaN / Infinity）。"""


class ConvergenceWarning(UserWarning):
    """迭代求解器在最大迭代次数内未满足收敛精度，返回的是最后一次迭代值。"""
