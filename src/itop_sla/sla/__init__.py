"""
SLA Compliance Module
=====================

Bounded Context for iTop ticket SLA compliance.

Responsibilities:
- Pull Incidents, UserRequests and holidays from iTop
- Resolve TTO/TTR targets per class, priority and service (cached)
- Measure response and resolution times, raw and in business hours
- Classify each ticket as comply or violate per regime and metric
- Expose the results as Prometheus metrics and a JSON dashboard
"""

__version__ = "1.0.0"
