"""
AgriIntel - Resilient Service Client Layer

Request pipeline shared by every livestock-management API call: caching,
request deduplication, rate limiting, classified retries and a uniform
response envelope.
"""

__version__ = "0.1.0"
__author__ = "AgriIntel Team"
