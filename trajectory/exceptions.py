"""
Exceptions raised by the planning pipeline.

Leaf modules raise these; only the cycle orchestrator and the bridge catch them.
"""


class PlannerError(Exception):
    """Base class for planner errors."""


class CurveFitError(PlannerError):
    """Anchor points cannot be fitted by a single-valued curve in the local frame."""


class TelemetryError(PlannerError):
    """Telemetry message is malformed or missing required fields."""


class MapLoadError(PlannerError):
    """Centerline waypoint table could not be loaded."""
