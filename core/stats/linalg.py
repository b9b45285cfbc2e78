"""
小规模稠密矩阵运算：转置、乘法、矩阵 × 向量、高斯-约当求逆、线性方程组求解。

说明：
- 仅服务于贝叶斯线性回归与 Cox 回归（协变量个数一般在几十以内），复杂度 O(n³)；
- 矩阵统一用 list[list[float]] 表示，函数不修改入参；
- 部分主元选取后主元仍（近似）为 0 时抛出 SingularMatrixError，绝不除以极小值。
"""

from typing import List, Sequence

from .errors import DimensionMismatchError, SingularMatrixError

Matrix = List[List[float]]
Vector = List[float]

DEFAULT_PIVOT_TOLERANCE = 1e-12


def _check_rectangular(matrix: Sequence[Sequence[float]], name: str) -> None:
    if not matrix or not matrix[0]:
        raise DimensionMismatchError(f"{name} 不能为空矩阵。")
    width = len(matrix[0])
    for i, row in enumerate(matrix):
        if len(row) != width:
            raise DimensionMismatchError(
                f"{name} 第 {i} 行长度为 {len(row)}，与第 0 行长度 {width} 不一致。"
            )


def _check_square(matrix: Sequence[Sequence[float]], name: str) -> None:
    _check_rectangular(matrix, name)
    if len(matrix) != len(matrix[0]):
        raise DimensionMismatchError(
            f"{name} 必须是方阵，当前为 {len(matrix)}×{len(matrix[0])}。"
        )


def identity(n: int) -> Matrix:
    return [[1.0 if i == j else 0.0 for j in range(n)] for i in range(n)]


def transpose(matrix: Sequence[Sequence[float]]) -> Matrix:
    _check_rectangular(matrix, "matrix")
    return [[float(row[j]) for row in matrix] for j in range(len(matrix[0]))]


def dot(a: Sequence[float], b: Sequence[float]) -> float:
    if len(a) != len(b):
        raise DimensionMismatchError(f"向量长度不一致：{len(a)} 与 {len(b)}。")
    return sum(x * y for x, y in zip(a, b))


def multiply(a: Sequence[Sequence[float]], b: Sequence[Sequence[float]]) -> Matrix:
    """矩阵乘法 A(m×k) · B(k×n)。"""
    _check_rectangular(a, "A")
    _check_rectangular(b, "B")
    if len(a[0]) != len(b):
        raise DimensionMismatchError(
            f"矩阵乘法维度不匹配：A 为 {len(a)}×{len(a[0])}，B 为 {len(b)}×{len(b[0])}。"
        )
    b_t = transpose(b)
    return [[dot(row, col) for col in b_t] for row in a]


def matrix_vector_multiply(a: Sequence[Sequence[float]], v: Sequence[float]) -> Vector:
    _check_rectangular(a, "A")
    if len(a[0]) != len(v):
        raise DimensionMismatchError(
            f"矩阵列数 {len(a[0])} 与向量长度 {len(v)} 不一致。"
        )
    return [dot(row, v) for row in a]


def _pivot_threshold(matrix: Sequence[Sequence[float]], pivot_tolerance: float) -> float:
    scale = max(abs(x) for row in matrix for x in row)
    return pivot_tolerance * max(scale, 1.0)


def _swap_in_pivot(augmented: Matrix, col: int, threshold: float) -> None:
    # 部分主元：当前列中绝对值最大的行换到对角线位置
    pivot_row = max(range(col, len(augmented)), key=lambda r: abs(augmented[r][col]))
    if abs(augmented[pivot_row][col]) <= threshold:
        raise SingularMatrixError(
            f"矩阵奇异或病态：第 {col} 列主元绝对值为 {abs(augmented[pivot_row][col]):.3e}。"
        )
    if pivot_row != col:
        augmented[col], augmented[pivot_row] = augmented[pivot_row], augmented[col]


def invert(
    matrix: Sequence[Sequence[float]],
    pivot_tolerance: float = DEFAULT_PIVOT_TOLERANCE,
) -> Matrix:
    """
    高斯-约当消元求逆。

    参数：
    - matrix: n×n 方阵；
    - pivot_tolerance: 相对主元阈值，主元绝对值 <= tol × max(|a_ij|, 1) 视为奇异。

    返回：
    - 逆矩阵（新列表，不修改入参）。

    异常：
    - DimensionMismatchError: 非方阵；
    - SingularMatrixError: 奇异或严重病态。
    """
    _check_square(matrix, "matrix")
    n = len(matrix)
    threshold = _pivot_threshold(matrix, pivot_tolerance)
    eye = identity(n)
    augmented = [[float(x) for x in row] + eye[i] for i, row in enumerate(matrix)]

    for col in range(n):
        _swap_in_pivot(augmented, col, threshold)
        pivot = augmented[col][col]
        augmented[col] = [x / pivot for x in augmented[col]]
        for r in range(n):
            if r == col:
                continue
            factor = augmented[r][col]
            if factor != 0.0:
                pivot_values = augmented[col]
                augmented[r] = [x - factor * y for x, y in zip(augmented[r], pivot_values)]

    return [row[n:] for row in augmented]


def solve(
    a: Sequence[Sequence[float]],
    b: Sequence[float],
    pivot_tolerance: float = DEFAULT_PIVOT_TOLERANCE,
) -> Vector:
    """
    解线性方程组 A·x = b（部分主元高斯消元 + 回代）。

    Cox 回归的牛顿步用它求 Δ，避免显式求逆。
    """
    _check_square(a, "A")
    n = len(a)
    if len(b) != n:
        raise DimensionMismatchError(f"右端向量长度 {len(b)} 与矩阵阶数 {n} 不一致。")
    threshold = _pivot_threshold(a, pivot_tolerance)
    augmented = [[float(x) for x in row] + [float(b[i])] for i, row in enumerate(a)]

    for col in range(n):
        _swap_in_pivot(augmented, col, threshold)
        pivot = augmented[col][col]
        for r in range(col + 1, n):
            factor = augmented[r][col] / pivot
            if factor != 0.0:
                augmented[r] = [
                    x - factor * y for x, y in zip(augmented[r], augmented[col])
                ]

    x = [0.0] * n
    for i in range(n - 1, -1, -1):
        acc = augmented[i][n] - sum(augmented[i][j] * x[j] for j in range(i + 1, n))
        x[i] = acc / augmented[i][i]
    return x
