"""
Error taxonomy for the floor-plan engine.

File-level errors (ParseError, UnsupportedFormat) are recoverable: the
caller degrades to "outline unavailable" and zone editing carries on.
Entity- and bounds-level errors never leave the module that raises them.
"""


class FloorPlanError(Exception):
    """Base class for all floor-plan engine errors."""


class ParseError(FloorPlanError):
    """Drawing content is malformed or cannot be decoded."""


class UnsupportedFormat(FloorPlanError):
    """Drawing format cannot be handled (e.g. DWG with no converter)."""


class DegenerateEntity(FloorPlanError):
    """A single entity has an unknown type or an unusable shape."""

    def __init__(self, entity_type: str, reason: str):
        super().__init__(f"{entity_type}: {reason}")
        self.entity_type = entity_type
        self.reason = reason


class BoundsUnavailable(FloorPlanError):
    """No valid coordinate was found to compute bounds from."""


class ZoneReferenceError(FloorPlanError, LookupError):
    """A zone or device id does not exist in the model."""
