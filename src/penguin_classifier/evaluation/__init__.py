"""
Evaluation layer: metrics, reports and experiment tracking.
"""
