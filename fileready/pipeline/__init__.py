"""Pipeline state: readiness derivation and status event delivery."""

from fileready.pipeline.readiness import ReadinessTracker, compute_readiness
from fileready.pipeline.status_broadcaster import StatusEventBroadcaster

__all__ = ["ReadinessTracker", "StatusEventBroadcaster", "compute_readiness"]
