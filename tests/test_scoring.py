import pytest

from app.schemas.prediction import PredictedPosition, PredictionPicks
from app.schemas.room import ScoringConfig
from app.services.scoring import calculate_prediction_score, points_for_position

from conftest import make_result


def picks(positions=None, fastest_lap=None, pole=None, dnfs=()):
    return PredictionPicks(
        predicted_positions=[
            PredictedPosition(position=p, driver_number=d)
            for p, d in (positions or {}).items()
        ],
        fastest_lap_driver=fastest_lap,
        pole_position_driver=pole,
        dnf_drivers=list(dnfs),
    )


def test_worked_example_totals_34():
    # 44 acierta P1 (+25), 1 queda a una posición de P2 (+9), vuelta rápida (+1),
    # pole fallada (0), un DNF que no abandonó (-1)
    prediction = picks({1: 44, 2: 1}, fastest_lap=44, pole=1, dnfs=[55])
    official = make_result([44, 16, 1, 55], fastest_lap=44, pole=16)

    result = calculate_prediction_score(prediction, official, ScoringConfig())

    assert result.breakdown.position_points == 34
    assert result.breakdown.fastest_lap_points == 1
    assert result.breakdown.pole_position_points == 0
    assert result.breakdown.dnf_penalty == -1
    assert result.total == 34
    assert result.breakdown.total == result.total


def test_score_is_pure():
    prediction = picks({1: 44, 2: 1}, fastest_lap=44, dnfs=[55])
    official = make_result([44, 1])
    config = ScoringConfig()

    before = (prediction.model_dump(), official.model_dump(), config.model_dump())
    first = calculate_prediction_score(prediction, official, config)
    second = calculate_prediction_score(prediction, official, config)

    assert first == second
    assert (prediction.model_dump(), official.model_dump(), config.model_dump()) == before


def test_off_by_more_than_one_scores_nothing():
    official = make_result([1, 2, 3, 4])
    result = calculate_prediction_score(picks({1: 4}), official, ScoringConfig())
    assert result.total == 0


def test_driver_absent_from_result_scores_nothing():
    official = make_result([1, 2, 3])
    result = calculate_prediction_score(picks({1: 99}), official, ScoringConfig())
    assert result.breakdown.position_points == 0


def test_half_points_use_predicted_position_value():
    official = make_result([10, 20, 30])
    # Predice P2 y acaba P1: mitad del valor de P2 (18)
    result = calculate_prediction_score(picks({2: 10}), official, ScoringConfig())
    assert result.breakdown.position_points == 9


def test_position_beyond_table_uses_last_value():
    config = ScoringConfig(position_points=[10, 5, 2])
    assert points_for_position(3, config.position_points) == 2
    assert points_for_position(15, config.position_points) == 2

    official = make_result(list(range(1, 13)))
    result = calculate_prediction_score(picks({12: 12}), official, config)
    assert result.breakdown.position_points == 2


def test_single_entry_table():
    config = ScoringConfig(position_points=[7])
    official = make_result([5, 6, 7])
    result = calculate_prediction_score(picks({1: 5, 3: 7}), official, config)
    assert result.breakdown.position_points == 14


def test_bonus_requires_exact_driver():
    official = make_result([1, 2], fastest_lap=2, pole=1)
    config = ScoringConfig(fastest_lap_points=3, pole_position_points=2)

    hit = calculate_prediction_score(picks(fastest_lap=2, pole=1), official, config)
    miss = calculate_prediction_score(picks(fastest_lap=1, pole=2), official, config)
    empty = calculate_prediction_score(picks(), official, config)

    assert hit.breakdown.fastest_lap_points == 3
    assert hit.breakdown.pole_position_points == 2
    assert miss.total == 0
    assert empty.total == 0


def test_dnf_under_prediction_is_neutral():
    official = make_result([1, 2], dnfs=[33, 44, 55])
    result = calculate_prediction_score(picks(dnfs=[33]), official, ScoringConfig())
    assert result.breakdown.dnf_penalty == 0


def test_dnf_over_prediction_is_penalised_per_driver():
    official = make_result([1, 2], dnfs=[33])
    config = ScoringConfig(dnf_penalty=2)
    result = calculate_prediction_score(picks({1: 1}, dnfs=[33, 44, 55]), official, config)
    assert result.breakdown.dnf_penalty == -4
    assert result.total == 21


def test_total_never_negative():
    official = make_result([1, 2])
    result = calculate_prediction_score(picks(dnfs=[7, 8, 9]), official, ScoringConfig(dnf_penalty=5))

    assert result.breakdown.dnf_penalty == -15
    assert result.total == 0
    assert result.breakdown.total == 0


def test_negative_penalty_is_stored_as_magnitude():
    assert ScoringConfig(dnf_penalty=-3).dnf_penalty == 3


@pytest.mark.parametrize("table", [[], [25, -1]])
def test_invalid_points_table_rejected(table):
    with pytest.raises(ValueError):
        ScoringConfig(position_points=table)
