"""Client-side ride roster synchronization.

Keeps a local projection of rides and participants consistent with the
remote store across local mutations and realtime change notifications.
"""

from groupride.roster.engine import RosterSyncEngine
from groupride.roster.errors import (
    FetchError,
    Forbidden,
    MutationError,
    NotFound,
    RosterError,
    SchemaError,
    Unauthorized,
)
from groupride.roster.identity import Identity, RequestIdentity
from groupride.roster.models import (
    ChangeEvent,
    Participant,
    ParticipantStatus,
    ParticipantWithUser,
    Ride,
    RideDetail,
    RiderProfile,
)
from groupride.roster.projection import RosterProjection, RosterSnapshot
from groupride.roster.store import RideStore, SupabaseRideStore

__all__ = [
    "ChangeEvent",
    "FetchError",
    "Forbidden",
    "Identity",
    "MutationError",
    "NotFound",
    "Participant",
    "ParticipantStatus",
    "ParticipantWithUser",
    "RequestIdentity",
    "Ride",
    "RideDetail",
    "RideStore",
    "RiderProfile",
    "RosterError",
    "RosterProjection",
    "RosterSnapshot",
    "RosterSyncEngine",
    "SchemaError",
    "SupabaseRideStore",
    "Unauthorized",
]
