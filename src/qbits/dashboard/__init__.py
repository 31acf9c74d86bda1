"""
qbits Dashboard API.

Launch with: qbits serve
Or programmatically: from qbits.dashboard import launch; launch()
"""

from qbits.dashboard.server import create_app, launch

__all__ = ["create_app", "launch"]
