from app.schemas.prediction import PredictionPicks
from app.schemas.race import OfficialResult
from app.schemas.room import ScoringConfig
from app.schemas.score import ScoreBreakdown, ScoreResult


def build_real_positions_map(result_positions):
    """
    Devuelve: {driver_number: position}
    """
    return {
        rp.driver_number: rp.position
        for rp in result_positions
    }


def points_for_position(position, position_points):
    """
    Puntos de la tabla para una posición (1 = primer elemento).
    Si la posición es mayor que la tabla usamos el último valor.
    """
    index = min(position - 1, len(position_points) - 1)
    return position_points[index]


def calculate_position_points(predicted_positions, result_positions, position_points):
    real_map = build_real_positions_map(result_positions)
    total = 0.0

    for pp in predicted_positions:
        real_pos = real_map.get(pp.driver_number)
        if real_pos is None:
            continue

        diff = abs(pp.position - real_pos)
        # Siempre se puntúa con el valor de la posición PREDICHA
        value = points_for_position(pp.position, position_points)

        if diff == 0:
            total += value
        elif diff == 1:
            total += value * 0.5

    return total


def calculate_bonus(predicted_driver, real_driver, bonus_points):
    """Vuelta rápida / pole: solo si acierta el dorsal exacto. No predecir no resta."""
    if predicted_driver is None:
        return 0.0
    if predicted_driver == real_driver:
        return float(bonus_points)
    return 0.0


def calculate_dnf_penalty(predicted_dnfs, real_dnfs, dnf_penalty):
    """
    Resta la penalización por cada piloto que el usuario dio como DNF y terminó.
    Quedarse corto (predecir menos abandonos de los reales) no suma ni resta.
    """
    real_set = set(real_dnfs)
    wrong = len({d for d in predicted_dnfs if d not in real_set})
    return -(wrong * abs(dnf_penalty))


def calculate_prediction_score(
    prediction: PredictionPicks,
    official_result: OfficialResult,
    scoring_config: ScoringConfig,
) -> ScoreResult:
    position_points = calculate_position_points(
        prediction.predicted_positions,
        official_result.positions,
        scoring_config.position_points,
    )

    fastest_lap_points = calculate_bonus(
        prediction.fastest_lap_driver,
        official_result.fastest_lap_driver,
        scoring_config.fastest_lap_points,
    )

    pole_position_points = calculate_bonus(
        prediction.pole_position_driver,
        official_result.pole_position_driver,
        scoring_config.pole_position_points,
    )

    dnf_penalty = calculate_dnf_penalty(
        prediction.dnf_drivers,
        official_result.dnf_drivers,
        scoring_config.dnf_penalty,
    )

    # Nunca por debajo de 0: la penalización puede borrar lo ganado, pero no más
    total = max(0.0, position_points + fastest_lap_points + pole_position_points + dnf_penalty)

    return ScoreResult(
        total=total,
        breakdown=ScoreBreakdown(
            position_points=position_points,
            fastest_lap_points=fastest_lap_points,
            pole_position_points=pole_position_points,
            dnf_penalty=dnf_penalty,
            total=total,
        ),
    )
