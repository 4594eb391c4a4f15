"""LeadFlow Source Package.

Lead follow-up planning for travel advisors.

Layers:
    - core: Configuration, logging, exceptions
    - db: Lead, task, template and policy records
    - engine: Business logic (cadence engine, policies, templates, planner)
"""

__version__ = "0.1.0"
