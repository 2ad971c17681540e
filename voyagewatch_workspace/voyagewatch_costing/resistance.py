"""
VoyageWatch Costing — Weather Resistance Model
==============================================
Scales a leg's fuel burn and speed by the wind and waves it meets.

  angle difference  0°  → weather dead ahead (head)
                   90°  → on the beam
                  180°  → dead astern (following)

Directions are meteorological ("coming from"), bearings are the vessel's
course over ground. Constants come from a ResistanceModel.
"""

from typing import Tuple

from voyagewatch_common.config import DEFAULT_RESISTANCE_MODEL, ResistanceModel

STANDARD_CONDITIONS = "standard conditions"


def angle_difference(bearing: float, direction: float) -> float:
    """Smallest angle (0–180°) between the course and the weather direction."""
    diff = abs(bearing - (direction % 360.0))
    return 180.0 - abs(180.0 - diff)


def resistance_factor(
    bearing:   float,
    direction: float,
    magnitude: float,
    influence: str,
    model:     ResistanceModel = DEFAULT_RESISTANCE_MODEL,
) -> Tuple[float, str]:
    """
    Return (factor, insight) for one influence ('wind' in knots or 'wave'
    in metres). The factor never drops below model.min_factor.
    """
    d_head, d_beam, d_following = model.divisors(influence)
    angle = angle_difference(bearing, direction)

    if angle <= model.head_max_angle:
        factor  = 1.0 + magnitude / d_head
        insight = f"head {influence} increased fuel consumption"
    elif angle < model.beam_max_angle:
        factor  = 1.0 + magnitude / d_beam
        insight = f"beam {influence} caused minor resistance"
    else:
        factor  = 1.0 - magnitude / d_following
        insight = f"favorable following {influence} reduced fuel burn"

    return max(model.min_factor, factor), insight


def combine(wind: Tuple[float, str], wave: Tuple[float, str]) -> Tuple[float, str]:
    """Average the two factors; the insight of the larger deviation wins (wind on ties)."""
    (wind_factor, wind_insight), (wave_factor, wave_insight) = wind, wave
    combined = (wind_factor + wave_factor) / 2
    if abs(wave_factor - 1.0) > abs(wind_factor - 1.0):
        return combined, wave_insight
    return combined, wind_insight


def adjust_speed(
    base_speed: float,
    combined:   float,
    model:      ResistanceModel = DEFAULT_RESISTANCE_MODEL,
) -> float:
    """Resistance slows the vessel hard; assistance speeds it up gently."""
    if combined > 1.0:
        return base_speed / (1.0 + (combined - 1.0) * model.slowdown_coefficient)
    if combined < 1.0:
        return base_speed * (1.0 + (1.0 - combined) * model.speedup_coefficient)
    return base_speed
