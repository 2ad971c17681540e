"""
VoyageWatch — Navigational Alert Service
LangGraph pipeline turning vessel position reports into captain alerts:
  - rules      : rule table and AlertRuleEngine
  - location   : significant position change detection
  - dispatcher : debounce, persistence and push of alerts
  - graph      : validate → location → weather → rules → dispatch
"""
