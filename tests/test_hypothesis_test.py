import math

import pytest

from core.stats.distributions import chi_square_sf, student_t_sf
from core.stats.errors import (
    DimensionMismatchError,
    InsufficientDataError,
    ZeroVarianceError,
)
from core.stats.hypothesis_test import (
    anova,
    chi_square_test,
    correlation_test,
    ks_test,
    mann_whitney_u,
    normalize_alternative,
    one_sample_t_test,
    paired_t_test,
    two_sample_t_test,
)

SLEEP_A = [6.8, 7.2, 7.9, 6.5, 7.4, 8.1, 7.0, 6.9]
SLEEP_B = [7.5, 8.0, 8.4, 7.1, 7.9, 8.6, 7.7, 8.3, 7.6]


def test_one_sample_reference_values():
    result = one_sample_t_test([68, 70, 72, 74, 76], 70)
    assert math.isclose(result.statistic, 1.41421, abs_tol=1e-3)
    assert math.isclose(result.p_value, 0.2302, abs_tol=1e-3)
    assert result.degrees_of_freedom == 4
    assert result.reject is False
    lower, upper = result.confidence_interval
    # 均值 72，半宽 t(0.975, 4) · sqrt(10 / 5)
    assert math.isclose((lower + upper) / 2.0, 72.0)
    assert math.isclose(upper - 72.0, 2.7764451051977987 * math.sqrt(2.0), rel_tol=1e-8)
    assert math.isclose(result.effect_size, 2.0 / math.sqrt(10.0))


def test_one_sample_one_sided():
    greater = one_sample_t_test([68, 70, 72, 74, 76], 70, alternative="greater")
    less = one_sample_t_test([68, 70, 72, 74, 76], 70, alternative="less")
    assert math.isclose(greater.p_value, 0.2302 / 2.0, abs_tol=1e-3)
    assert math.isclose(greater.p_value + less.p_value, 1.0, abs_tol=1e-12)
    assert greater.confidence_interval.upper == math.inf


def test_one_sample_zero_variance_and_small_samples():
    with pytest.raises(ZeroVarianceError):
        one_sample_t_test([5.0, 5.0, 5.0], 5.0)
    # ZeroVarianceError 同时是 ZeroDivisionError
    with pytest.raises(ZeroDivisionError):
        one_sample_t_test([5.0, 5.0], 4.0)
    with pytest.raises(InsufficientDataError):
        one_sample_t_test([5.0], 4.0)
    with pytest.raises(ValueError):
        one_sample_t_test([1.0, 2.0, float("nan")], 1.0)


def test_invalid_alpha_and_alternative():
    with pytest.raises(ValueError):
        one_sample_t_test([1.0, 2.0, 3.0], 0.0, alpha=1.5)
    with pytest.raises(ValueError):
        one_sample_t_test([1.0, 2.0, 3.0], 0.0, alternative="sideways")
    assert normalize_alternative("larger") == "greater"
    assert normalize_alternative("smaller") == "less"
    assert normalize_alternative("Two-Sided") == "two-sided"


def test_two_sample_antisymmetric():
    for equal_variance in (True, False):
        ab = two_sample_t_test(SLEEP_A, SLEEP_B, equal_variance=equal_variance)
        ba = two_sample_t_test(SLEEP_B, SLEEP_A, equal_variance=equal_variance)
        assert math.isclose(ab.statistic, -ba.statistic, rel_tol=1e-12)
        assert math.isclose(ab.p_value, ba.p_value, rel_tol=1e-12)
        assert math.isclose(ab.effect_size, -ba.effect_size, rel_tol=1e-12)


def test_two_sample_pooled_vs_welch_degrees_of_freedom():
    pooled = two_sample_t_test(SLEEP_A, SLEEP_B)
    welch = two_sample_t_test(SLEEP_A, SLEEP_B, equal_variance=False)
    assert pooled.degrees_of_freedom == len(SLEEP_A) + len(SLEEP_B) - 2
    assert welch.degrees_of_freedom < pooled.degrees_of_freedom
    assert pooled.statistic < 0
    assert pooled.reject is True
    lower, upper = pooled.confidence_interval
    assert lower < upper < 0.0


def test_two_sample_zero_variance():
    with pytest.raises(ZeroVarianceError):
        two_sample_t_test([1.0, 1.0, 1.0], [2.0, 2.0])


def test_paired_equals_one_sample_on_differences():
    before = [6.1, 6.5, 5.9, 7.0, 6.4, 6.8]
    after = [6.9, 7.1, 6.2, 7.4, 7.3, 7.0]
    paired = paired_t_test(after, before)
    diffs = [a - b for a, b in zip(after, before)]
    direct = one_sample_t_test(diffs, 0.0)
    assert math.isclose(paired.statistic, direct.statistic)
    assert math.isclose(paired.p_value, direct.p_value)


def test_paired_length_mismatch():
    with pytest.raises(DimensionMismatchError):
        paired_t_test([1.0, 2.0, 3.0], [1.0, 2.0])


def test_chi_square_two_by_two():
    result = chi_square_test([[10, 20], [20, 10]])
    assert math.isclose(result.statistic, 20.0 / 3.0, rel_tol=1e-12)
    assert result.degrees_of_freedom == 1
    assert math.isclose(result.p_value, chi_square_sf(20.0 / 3.0, 1), rel_tol=1e-12)
    assert math.isclose(result.p_value, 0.009823, abs_tol=1e-5)
    assert math.isclose(result.effect_size, 1.0 / 3.0, rel_tol=1e-12)
    assert result.reject is True


def test_chi_square_validation():
    with pytest.raises(InsufficientDataError):
        chi_square_test([[1, 2]])
    with pytest.raises(DimensionMismatchError):
        chi_square_test([[1, 2], [3]])
    with pytest.raises(ValueError):
        chi_square_test([[1, -2], [3, 4]])
    with pytest.raises(InsufficientDataError):
        chi_square_test([[0, 0], [3, 4]])


def test_anova_identical_groups():
    result = anova([[1.0, 2.0, 3.0], [1.0, 2.0, 3.0], [1.0, 2.0, 3.0]])
    assert result.statistic == 0.0
    assert result.p_value == 1.0
    assert result.reject is False


def test_anova_reference_values():
    result = anova([[1, 2, 3], [4, 5, 6], [7, 8, 9]])
    assert math.isclose(result.statistic, 27.0, rel_tol=1e-12)
    assert math.isclose(result.p_value, 0.001, rel_tol=1e-8)
    assert math.isclose(result.effect_size, 0.9, rel_tol=1e-12)
    assert result.df_between == 2
    assert result.df_within == 6
    assert math.isclose(result.between_group_variance, 27.0)
    assert math.isclose(result.within_group_variance, 1.0)


def test_anova_errors():
    with pytest.raises(InsufficientDataError):
        anova([[1.0, 2.0]])
    with pytest.raises(InsufficientDataError):
        anova([[1.0, 2.0], [3.0]])
    with pytest.raises(ZeroVarianceError):
        anova([[1.0, 1.0], [2.0, 2.0]])


def test_mann_whitney_separated_samples():
    result = mann_whitney_u([1, 2, 3, 4], [5, 6, 7, 8])
    assert result.statistic == 0.0
    assert result.effect_size == -1.0
    less = mann_whitney_u([1, 2, 3, 4], [5, 6, 7, 8], alternative="less")
    greater = mann_whitney_u([1, 2, 3, 4], [5, 6, 7, 8], alternative="greater")
    assert less.p_value < greater.p_value
    assert math.isclose(less.p_value * 2.0, result.p_value, rel_tol=1e-9)


def test_mann_whitney_ties_and_all_equal():
    result = mann_whitney_u([1, 2, 2, 3], [2, 3, 3, 4])
    assert 0.0 <= result.p_value <= 1.0
    assert -1.0 <= result.effect_size <= 1.0
    with pytest.raises(ZeroVarianceError):
        mann_whitney_u([2, 2, 2], [2, 2])


def test_ks_identical_and_disjoint():
    same = ks_test([1, 2, 3, 4, 5], [1, 2, 3, 4, 5])
    assert same.statistic == 0.0
    assert same.p_value == 1.0
    assert same.reject is False

    far = ks_test(list(range(1, 11)), list(range(11, 21)))
    assert far.statistic == 1.0
    assert far.p_value < 0.001
    assert far.reject is True


def test_correlation_reference_values():
    result = correlation_test([1, 2, 3, 4, 5], [2, 1, 4, 3, 5])
    assert math.isclose(result.effect_size, 0.8, rel_tol=1e-12)
    expected_t = 0.8 * math.sqrt(3.0 / (1.0 - 0.64))
    assert math.isclose(result.statistic, expected_t, rel_tol=1e-12)
    assert math.isclose(result.p_value, 2.0 * student_t_sf(expected_t, 3.0), rel_tol=1e-12)
    assert result.degrees_of_freedom == 3
    lower, upper = result.confidence_interval
    assert -1.0 < lower < 0.8 < upper < 1.0


def test_correlation_perfect_and_errors():
    perfect = correlation_test([1, 2, 3, 4], [2, 4, 6, 8])
    assert perfect.effect_size == 1.0
    assert perfect.p_value == 0.0
    assert perfect.reject is True
    with pytest.raises(InsufficientDataError):
        correlation_test([1, 2], [3, 4])
    with pytest.raises(DimensionMismatchError):
        correlation_test([1, 2, 3], [1, 2, 3, 4])
    with pytest.raises(ZeroVarianceError):
        correlation_test([1, 1, 1], [1, 2, 3])
