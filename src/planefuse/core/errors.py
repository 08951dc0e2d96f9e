"""Typed failures raised by the plane fusion core."""


class PlaneFusionError(ValueError):
    """Base class for recoverable per-object failures."""


class PlaneGeometryError(PlaneFusionError):
    """Point set too small, non-finite or collinear for a stable plane fit."""


class TransformError(PlaneFusionError):
    """Malformed rigid transform (wrong arity, non-finite, non-unit quaternion)."""
