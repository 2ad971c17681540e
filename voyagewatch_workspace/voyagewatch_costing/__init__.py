"""
VoyageWatch — Voyage Cost Service
Weather-adjusted per-leg speed, duration and fuel estimates:
  - resistance : head / beam / following wind and wave factors
  - analyzer   : VoyageLegAnalyzer and the voyage summary
"""
