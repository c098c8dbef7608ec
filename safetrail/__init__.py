"""
SafeTrail personal-safety monitoring engine

Watches a stream of location samples and raises alerts for restricted-area
entry, prolonged inactivity, route deviation, simulated anomalies and
explicit panic requests, delivering them to a remote alert ingestion API.
"""

__version__ = "1.0.0"
