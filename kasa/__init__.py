"""
Kasa - Source Package

Internal cash-desk ("kasa") tracking for a single organization.
Users record income and expenses per region, administrators manage
users, regions and broadcast notifications.

DESIGN PRINCIPLES:
1. The hosted backend owns auth, storage, realtime and security
2. Business logic stays pure and testable (aggregation, validation)
3. Clients are built explicitly and passed down, never global
4. Every significant action is logged
5. Errors reach the user verbatim, nothing is silently retried
"""

__version__ = "1.0.0"
__author__ = "Kasa Team"
