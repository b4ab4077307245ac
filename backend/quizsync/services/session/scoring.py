import math

# Answers inside this share of the time limit earn full points
INSTANT_ANSWER_RATIO = 0.03
# Floor for a correct answer, however slow
MIN_POINTS_RATIO = 0.1


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_score(is_correct: bool, time_spent_ms: float, base_points: int, time_limit_seconds: float) -> int:
    """Points awarded for one answer.

    Full points inside the instant window, then a linear decay towards the
    end of the time limit, never below 10% of the base points for a correct
    answer. Incorrect answers score 0.
    """
    if not is_correct or base_points is None or base_points <= 0:
        return 0
    if time_spent_ms is None or time_limit_seconds is None:
        return int(base_points)

    time_limit_ms = float(time_limit_seconds) * 1000.0
    min_time_for_max = time_limit_ms * INSTANT_ANSWER_RATIO
    if time_spent_ms <= min_time_for_max:
        return int(base_points)

    ratio = max(0.0, (time_limit_ms - time_spent_ms) / (time_limit_ms - min_time_for_max))
    min_points = math.floor(base_points * MIN_POINTS_RATIO)
    return max(min_points, round_half_up(base_points * ratio))
