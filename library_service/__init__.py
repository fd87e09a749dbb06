"""
Library service package.

Books, clients and loans over a REST API, with stock accounting
and overdue detection.
"""

from .app import create_app

__all__ = ["create_app"]
