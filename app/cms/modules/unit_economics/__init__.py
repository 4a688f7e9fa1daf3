"""
Unit-economics calculator: per-item profitability and optimization projections.
"""
