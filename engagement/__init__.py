"""
Engagement Metrics Engine.

Computes customer-engagement metrics (offer completion rates, transaction
trends, income-based demographics, channel effectiveness) from an offer and
transaction event log, and serves them to dashboard clients over HTTP.
"""

__version__ = "0.1.0"
