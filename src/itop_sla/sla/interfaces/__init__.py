"""
SLA Interfaces Layer
====================

Interface adapters (controllers) for the SLA exporter.

Contains:
- Controllers: Prometheus scrape routes and JSON compliance routes

This is the outermost layer - handles HTTP requests/responses and
reads the monitor snapshots.
"""

from itop_sla.sla.interfaces.controllers import metrics_router, sla_router

__all__ = ["metrics_router", "sla_router"]
