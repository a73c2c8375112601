"""
Model package.

Every model module is imported here so that relationship() targets given
as strings ("Item", "Participant", ...) resolve no matter which model a
caller imports first.
"""

from kashta.app.models import (  # noqa: F401
    contribution,
    event,
    event_participant,
    item,
    participant,
    settlement_activity_log,
    settlement_record,
)
