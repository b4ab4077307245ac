import math

from quizsync.services.session.scoring import calculate_score, round_half_up


def test_incorrect_answers_score_zero():
    for spent in (0, 500, 15000, 30000, 60000):
        assert calculate_score(False, spent, 100, 30) == 0


def test_instant_window_awards_full_points():
    # 3% of 30s is 900ms
    for spent in (0, 1, 450, 900):
        assert calculate_score(True, spent, 100, 30) == 100


def test_at_or_past_limit_awards_ten_percent_floor():
    for base in (1, 15, 100, 250, 999):
        for spent in (30000, 30001, 45000):
            assert calculate_score(True, spent, base, 30) == math.floor(base * 0.1)


def test_linear_decay_between_window_and_limit():
    # ratio = (10000 - 5000) / (10000 - 300) = 0.5154...
    assert calculate_score(True, 5000, 1000, 10) == 515
    # decay below the floor is lifted to 10%
    assert calculate_score(True, 9900, 1000, 10) == 100


def test_points_never_increase_with_time_spent():
    for base, limit in ((100, 30), (1000, 10), (7, 5)):
        previous = None
        for spent in range(0, limit * 1000 + 2000, 125):
            points = calculate_score(True, spent, base, limit)
            if previous is not None:
                assert points <= previous
            previous = points


def test_one_second_on_thirty_second_question():
    # 100 * 29000 / 29100 = 99.66 -> 100
    assert calculate_score(True, 1000, 100, 30) == 100


def test_non_positive_base_points_score_zero():
    assert calculate_score(True, 0, 0, 30) == 0
    assert calculate_score(True, 0, -5, 30) == 0


def test_rounding_is_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.49) == 2
