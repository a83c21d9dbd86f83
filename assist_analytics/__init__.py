"""
Assist Analytics

KPI and report service for the device-assistance platform.
"""

__version__ = "1.0.0"
