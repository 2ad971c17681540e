"""
VoyageWatch Alerts — LangGraph StateGraph Definition
build_alert_pipeline() compiles the position → alert pipeline graph.
"""

from langgraph.graph import StateGraph, END

from .state import PositionState
from .nodes import (
    validate_position_node,
    check_location_change_node,
    fetch_weather_node,
    evaluate_rules_node,
    dispatch_alerts_node,
)


def _continue_unless(*stop_statuses):
    def route(state: PositionState) -> str:
        return "stop" if state.get("status") in stop_statuses else "ok"
    return route


def build_alert_pipeline():
    """
    Compile and return the alert pipeline.

    Flow:
      validate_position → check_location_change → fetch_weather
        → evaluate_rules → dispatch_alerts → END

    Invalid events, insignificant moves and missing realtime weather end
    the run early.
    """
    graph = StateGraph(PositionState)

    # Register nodes
    graph.add_node("validate_position",     validate_position_node)
    graph.add_node("check_location_change", check_location_change_node)
    graph.add_node("fetch_weather",         fetch_weather_node)
    graph.add_node("evaluate_rules",        evaluate_rules_node)
    graph.add_node("dispatch_alerts",       dispatch_alerts_node)

    # Entry point
    graph.set_entry_point("validate_position")

    # Early exits
    graph.add_conditional_edges(
        "validate_position",
        _continue_unless("error"),
        {"stop": END, "ok": "check_location_change"},
    )
    graph.add_conditional_edges(
        "check_location_change",
        _continue_unless("skipped"),
        {"stop": END, "ok": "fetch_weather"},
    )
    graph.add_conditional_edges(
        "fetch_weather",
        _continue_unless("skipped"),
        {"stop": END, "ok": "evaluate_rules"},
    )

    # Linear tail
    graph.add_edge("evaluate_rules",  "dispatch_alerts")
    graph.add_edge("dispatch_alerts", END)

    return graph.compile()
