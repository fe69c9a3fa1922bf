"""
iTop SLA Exporter
=================

Prometheus exporter for iTop ticket SLA compliance.
"""

__version__ = "1.0.0"
