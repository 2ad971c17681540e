"""
VoyageWatch Alerts — LangGraph State Definition
"""

from typing import Any, Dict, List, Optional, TypedDict

from voyagewatch_common.models import Alert, ForecastSnapshot, WeatherSnapshot

from .rules import TriggeredRule


class PositionState(TypedDict, total=False):
    """State flowing through the alert pipeline for one position report."""

    # Input
    event:        Dict[str, Any]               # raw {recipientId, voyageId, lat, lon}

    # Validated position
    recipient_id: str
    voyage_id:    str
    lat:          float
    lon:          float

    # Intermediate
    significant:  bool
    weather:      Optional[WeatherSnapshot]
    forecast:     Optional[ForecastSnapshot]
    triggered:    List[TriggeredRule]

    # Output
    alerts:       List[Alert]

    # Execution control
    messages:     List[Any]                    # LangChain message history
    errors:       List[str]
    status:       str                          # init / processing / skipped / evaluated / complete / error
