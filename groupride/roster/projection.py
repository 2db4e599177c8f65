import asyncio
import logging
from typing import List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel

from groupride.roster.errors import RosterError
from groupride.roster.models import Participant, ParticipantStatus, Ride

logger = logging.getLogger(__name__)

LISTENER_QUEUE_SIZE = 16


class RosterSnapshot(BaseModel):
    version: int
    rides: List[Ride]
    participants: List[Participant]
    loading: bool
    last_error: Optional[str] = None


class RosterProjection:
    """Client-local view of rides and their participants.

    ``rides`` is kept sorted by ``ride_time``. Authoritative fetches replace
    the whole state; optimistic patches edit it in place until the next
    fetch lands. A fetch that started before the last applied one is
    discarded, so slow responses never overwrite newer state.
    """

    def __init__(self):
        self.rides: List[Ride] = []
        self.participants: List[Participant] = []
        self.last_error: Optional[RosterError] = None
        self.version = 0
        self._fetch_seq = 0
        self._applied_seq = 0
        self._in_flight = 0
        self._listeners: Set[asyncio.Queue] = set()

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def loaded(self) -> bool:
        """True once an authoritative fetch has been applied."""
        return self._applied_seq > 0

    # Authoritative fetches

    def begin_fetch(self) -> int:
        self._fetch_seq += 1
        self._in_flight += 1
        return self._fetch_seq

    def replace(self, rides: Sequence[Ride], participants: Sequence[Participant], seq: int) -> bool:
        self._in_flight = max(0, self._in_flight - 1)
        if seq < self._applied_seq:
            logger.debug("Discarding stale roster fetch %s (applied %s)", seq, self._applied_seq)
            return False
        self._applied_seq = seq
        self.rides = _sorted(rides)
        ride_ids = {ride.id for ride in self.rides}
        # A ride that vanished takes its participants with it
        self.participants = [p for p in participants if p.ride_id in ride_ids]
        self.last_error = None
        self._changed()
        return True

    def fail(self, seq: int, error: RosterError) -> None:
        self._in_flight = max(0, self._in_flight - 1)
        if seq < self._applied_seq:
            return
        self.last_error = error
        self._changed()

    def abandon(self, seq: int) -> None:
        self._in_flight = max(0, self._in_flight - 1)

    # Optimistic patches

    def put_ride(self, ride: Ride) -> Optional[Ride]:
        previous = self.ride(ride.id)
        self.rides = _sorted([r for r in self.rides if r.id != ride.id] + [ride])
        self._changed()
        return previous

    def drop_ride(self, ride_id: str) -> Tuple[Optional[Ride], List[Participant]]:
        ride = self.ride(ride_id)
        removed = [p for p in self.participants if p.ride_id == ride_id]
        self.rides = [r for r in self.rides if r.id != ride_id]
        self.participants = [p for p in self.participants if p.ride_id != ride_id]
        self._changed()
        return ride, removed

    def restore_ride(self, ride: Optional[Ride], participants: Sequence[Participant]) -> None:
        if ride is None:
            return
        self.rides = _sorted([r for r in self.rides if r.id != ride.id] + [ride])
        keys = {p.key for p in self.participants}
        self.participants.extend(p for p in participants if p.key not in keys)
        self._changed()

    def put_participant(self, participant: Participant) -> Optional[Participant]:
        previous = self.participant(participant.ride_id, participant.user_id)
        self.participants = [p for p in self.participants if p.key != participant.key] + [participant]
        self._changed()
        return previous

    def drop_participant(self, ride_id: str, user_id: str) -> Optional[Participant]:
        previous = self.participant(ride_id, user_id)
        if previous is not None:
            self.participants = [p for p in self.participants if p.key != (ride_id, user_id)]
            self._changed()
        return previous

    def restore_participant(self, ride_id: str, user_id: str, previous: Optional[Participant]) -> None:
        if previous is None:
            self.drop_participant(ride_id, user_id)
        else:
            self.put_participant(previous)

    # Derived views

    def ride(self, ride_id: str) -> Optional[Ride]:
        return next((r for r in self.rides if r.id == ride_id), None)

    def participant(self, ride_id: str, user_id: str) -> Optional[Participant]:
        return next((p for p in self.participants if p.key == (ride_id, user_id)), None)

    def roster(self, ride_id: str) -> List[Participant]:
        return [p for p in self.participants if p.ride_id == ride_id]

    def is_participant(self, ride_id: str, user_id: Optional[str], going_only: bool = False) -> bool:
        if not user_id:
            return False
        participant = self.participant(ride_id, user_id)
        if participant is None:
            return False
        return not (going_only and participant.status == ParticipantStatus.DECLINED)

    def participant_count(self, ride_id: str) -> int:
        return len(self.roster(ride_id))

    def going_count(self, ride_id: str) -> int:
        return sum(1 for p in self.roster(ride_id) if p.status == ParticipantStatus.ACCEPTED)

    # Push delivery

    def snapshot(self) -> RosterSnapshot:
        return RosterSnapshot(
            version=self.version,
            rides=list(self.rides),
            participants=list(self.participants),
            loading=self.loading,
            last_error=self.last_error.message if self.last_error else None,
        )

    def listen(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=LISTENER_QUEUE_SIZE)
        self._listeners.add(queue)
        return queue

    def unlisten(self, queue: asyncio.Queue) -> None:
        self._listeners.discard(queue)

    def _changed(self) -> None:
        self.version += 1
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for queue in self._listeners:
            if queue.full():
                # Slow consumer: only the newest snapshot matters
                queue.get_nowait()
            queue.put_nowait(snapshot)


def _sorted(rides: Sequence[Ride]) -> List[Ride]:
    return sorted(rides, key=lambda ride: ride.ride_time)
