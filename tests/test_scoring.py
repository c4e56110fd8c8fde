import pytest

from bulk_entry.models import SubjectResult
from bulk_entry.scoring import (
    InvalidConfiguration,
    compute_net,
    format_net,
    round_net,
    total_net,
)


def test_net_subtracts_quarter_of_wrong():
    assert compute_net(30, 8, 4) == pytest.approx(28.0)


def test_net_with_divisor_three():
    assert compute_net(10, 3, 3) == pytest.approx(9.0)


def test_net_is_never_negative():
    assert compute_net(2, 20, 4) == 0.0
    assert compute_net(0, 0, 4) == 0.0


@pytest.mark.parametrize("correct,wrong,divisor", [
    (0, 0, 4), (40, 0, 4), (0, 40, 4), (17, 9, 3), (5, 21, 2.5),
])
def test_net_bounds(correct, wrong, divisor):
    net = compute_net(correct, wrong, divisor)
    assert 0 <= net <= correct


@pytest.mark.parametrize("divisor", [0, -1, -4.0])
def test_non_positive_divisor_rejected(divisor):
    with pytest.raises(InvalidConfiguration):
        compute_net(10, 2, divisor)


def test_invalid_configuration_is_value_error():
    with pytest.raises(ValueError):
        compute_net(1, 1, 0)


def test_total_net_sums_subject_nets():
    results = [
        SubjectResult("a", correct_count=30, wrong_count=8),
        SubjectResult("b", correct_count=2, wrong_count=20),
        SubjectResult("c", correct_count=10, wrong_count=2),
    ]
    assert total_net(results, 4) == pytest.approx(28.0 + 0.0 + 9.5)


def test_round_and_format():
    assert round_net(9.666666, 2) == pytest.approx(9.67)
    assert format_net(9.5) == "9.50"
    assert format_net(9.5, 1) == "9.5"


def test_net_twenty_correct_four_wrong():
    assert compute_net(20, 4, 4) == 19.0
