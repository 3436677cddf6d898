"""
Analytics Module

HTTP API for recording page visits and clicks and reading the aggregated
site statistics.
"""

from .factory import create_analytics_module

__all__ = ["create_analytics_module"]
