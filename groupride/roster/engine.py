import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from groupride.roster.errors import FetchError, Forbidden, NotFound, RosterError, Unauthorized
from groupride.roster.identity import Identity, RequestIdentity
from groupride.roster.models import (
    PARTICIPANTS_TABLE,
    RIDES_TABLE,
    ChangeEvent,
    Participant,
    ParticipantStatus,
    ParticipantWithUser,
    Ride,
    parse_ride_detail,
    parse_row,
    parse_rows,
)
from groupride.roster.projection import RosterProjection
from groupride.roster.store import RideStore, Subscription

logger = logging.getLogger(__name__)

PARTICIPANT_KEY = "ride_id,user_id"
PROFILE_COLUMNS = "id, name, full_name, avatar_url, strava_url, social_url"
RIDE_DETAIL_COLUMNS = f"*, groups(name), creator:users!rides_created_by_fkey({PROFILE_COLUMNS})"
PARTICIPANT_DETAIL_COLUMNS = f"ride_id, user_id, status, created_at, users({PROFILE_COLUMNS})"


class RosterSyncEngine:
    """Keeps a RosterProjection consistent with the remote store.

    List mode (``ride_id=None``) tracks every ride and participant; detail
    mode tracks one ride and its participants joined with user display
    fields. Any realtime event triggers a full ``load_all()``; local
    mutations patch the projection optimistically and undo the patch when
    the store rejects the write.

    Authorization checks here are a convenience for the caller; the store's
    row-level policies remain the enforcement point.
    """

    def __init__(
        self,
        store: RideStore,
        identity: Optional[Identity] = None,
        projection: Optional[RosterProjection] = None,
        *,
        ride_id: Optional[str] = None,
        fetch_timeout: float = 10.0,
        reader: Optional[RideStore] = None,
    ):
        self.store = store
        # Store used by load_all; defaults to the acting store
        self.reader = reader
        self.identity = identity or RequestIdentity()
        self.projection = projection or RosterProjection()
        self.ride_id = ride_id
        self.fetch_timeout = fetch_timeout
        self._events: Optional[asyncio.Queue] = None
        self._subscriptions: List[Subscription] = []
        self._task: Optional[asyncio.Task] = None

    def with_session(self, store: RideStore, identity: Identity) -> "RosterSyncEngine":
        """Engine acting as another user against the same projection.

        Writes go through ``store``; reloads of the shared projection keep
        using this engine's reader so one caller's row visibility never
        replaces everyone's view.
        """
        return RosterSyncEngine(
            store,
            identity,
            self.projection,
            ride_id=self.ride_id,
            fetch_timeout=self.fetch_timeout,
            reader=self.reader or self.store,
        )

    # Reads

    async def load_all(self) -> RosterProjection:
        seq = self.projection.begin_fetch()
        try:
            rides, participants = await asyncio.wait_for(self._fetch(), timeout=self.fetch_timeout)
        except asyncio.TimeoutError as e:
            error = FetchError(f"Roster fetch timed out after {self.fetch_timeout}s")
            logger.warning(error.message)
            self.projection.fail(seq, error)
            raise error from e
        except RosterError as e:
            logger.warning(f"Roster fetch failed, keeping last known state: {e.message}")
            self.projection.fail(seq, e)
            raise
        except BaseException:
            self.projection.abandon(seq)
            raise
        self.projection.replace(rides, participants, seq)
        return self.projection

    async def _fetch(self) -> Tuple[List[Ride], List[Participant]]:
        store = self.reader or self.store
        if self.ride_id is None:
            ride_rows, participant_rows = await asyncio.gather(
                store.select(RIDES_TABLE, order=("ride_time", False)),
                store.select(PARTICIPANTS_TABLE),
            )
            return parse_rows(Ride, ride_rows), parse_rows(Participant, participant_rows)

        ride_rows, participant_rows = await asyncio.gather(
            store.select(RIDES_TABLE, columns=RIDE_DETAIL_COLUMNS, filters={"id": self.ride_id}),
            store.select(
                PARTICIPANTS_TABLE,
                columns=PARTICIPANT_DETAIL_COLUMNS,
                filters={"ride_id": self.ride_id},
            ),
        )
        rides = [parse_ride_detail(row) for row in ride_rows]
        return rides, parse_rows(ParticipantWithUser, participant_rows)

    async def _get_ride(self, ride_id: str) -> Ride:
        ride = self.projection.ride(ride_id)
        if ride is not None:
            return ride
        rows = await self.store.select(RIDES_TABLE, filters={"id": ride_id})
        if not rows:
            raise NotFound("Ride not found")
        return parse_row(Ride, rows[0])

    # Derived views

    def is_participant(self, ride_id: str, user_id: Optional[str] = None, going_only: bool = False) -> bool:
        return self.projection.is_participant(
            ride_id, user_id or self.identity.current_user_id(), going_only=going_only
        )

    def roster(self, ride_id: str) -> List[Participant]:
        return self.projection.roster(ride_id)

    def going_count(self, ride_id: str) -> int:
        return self.projection.going_count(ride_id)

    def participant_count(self, ride_id: str) -> int:
        return self.projection.participant_count(ride_id)

    # Mutations

    def _require_session(self) -> str:
        user_id = self.identity.current_user_id()
        if not user_id:
            raise Unauthorized("You must be logged in")
        return user_id

    def _require_self(self, user_id: str, message: str) -> str:
        current = self._require_session()
        if user_id != current:
            raise Forbidden(message)
        return current

    async def _reconcile_after_mutation(self) -> None:
        try:
            await self.load_all()
        except RosterError as e:
            # The write went through; projection.last_error carries the notice
            logger.warning(f"Refresh after mutation failed: {e.message}")

    async def create_ride(self, fields: Dict[str, Any]) -> Ride:
        """Insert a ride owned by the current user and auto-join them as accepted."""
        creator_id = self._require_session()
        ride = parse_row(Ride, {
            **fields,
            "id": fields.get("id") or str(uuid.uuid4()),
            "created_by": creator_id,
            "created_at": datetime.now(timezone.utc),
        })
        self.projection.put_ride(ride)
        try:
            stored = await self.store.insert(RIDES_TABLE, ride.model_dump(mode="json", exclude_none=True))
        except Exception:
            self.projection.drop_ride(ride.id)
            raise
        created = parse_row(Ride, stored)
        self.projection.put_ride(created)
        logger.info("Ride %s created by %s", created.id, creator_id)

        creator = Participant(ride_id=created.id, user_id=creator_id, status=ParticipantStatus.ACCEPTED)
        self.projection.put_participant(creator)
        try:
            await self.store.upsert(PARTICIPANTS_TABLE, _participant_row(creator), on_conflict=PARTICIPANT_KEY)
        except Exception:
            self.projection.drop_participant(created.id, creator_id)
            await self._reconcile_after_mutation()
            raise
        await self._reconcile_after_mutation()
        return created

    async def join(self, ride_id: str, user_id: str) -> None:
        self._require_self(user_id, "You can only join rides as yourself")
        row = Participant(ride_id=ride_id, user_id=user_id, status=ParticipantStatus.PENDING)
        previous = self.projection.put_participant(row)
        try:
            await self.store.upsert(PARTICIPANTS_TABLE, _participant_row(row), on_conflict=PARTICIPANT_KEY)
        except Exception:
            self.projection.restore_participant(ride_id, user_id, previous)
            raise
        logger.info("User %s joined ride %s", user_id, ride_id)
        await self._reconcile_after_mutation()

    async def leave(self, ride_id: str, user_id: str) -> None:
        self._require_self(user_id, "You can only leave rides as yourself")
        previous = self.projection.drop_participant(ride_id, user_id)
        try:
            await self.store.delete(PARTICIPANTS_TABLE, {"ride_id": ride_id, "user_id": user_id})
        except NotFound:
            pass
        except Exception:
            self.projection.restore_participant(ride_id, user_id, previous)
            raise
        logger.info("User %s left ride %s", user_id, ride_id)
        await self._reconcile_after_mutation()

    async def set_status(self, ride_id: str, user_id: str, status: ParticipantStatus) -> None:
        status = ParticipantStatus(status)
        if status == ParticipantStatus.PENDING:
            raise ValueError("Status can only be set to accepted or declined")
        self._require_self(user_id, "Only the participant may set their own status")
        await self._get_ride(ride_id)
        row = Participant(ride_id=ride_id, user_id=user_id, status=status)
        previous = self.projection.put_participant(row)
        try:
            await self.store.upsert(PARTICIPANTS_TABLE, _participant_row(row), on_conflict=PARTICIPANT_KEY)
        except Exception:
            self.projection.restore_participant(ride_id, user_id, previous)
            raise
        logger.info("User %s set status %s on ride %s", user_id, status.value, ride_id)
        await self._reconcile_after_mutation()

    async def delete_ride(self, ride_id: str, requester_id: Optional[str] = None) -> None:
        current = self._require_session()
        requester_id = requester_id or current
        if requester_id != current:
            raise Forbidden("Cannot delete a ride on behalf of another user")
        ride = await self._get_ride(ride_id)
        if ride.created_by != requester_id:
            raise Forbidden("Only the ride creator can delete this ride")

        removed_ride, removed_participants = self.projection.drop_ride(ride_id)
        try:
            deleted = await self.store.delete(RIDES_TABLE, {"id": ride_id})
        except Exception:
            self.projection.restore_ride(removed_ride, removed_participants)
            raise
        if not deleted:
            if not await self.store.select(RIDES_TABLE, filters={"id": ride_id}):
                # Someone else deleted it first; keep it out of the projection
                raise NotFound("Ride not found")
            # Row-level policy filtered the delete out
            self.projection.restore_ride(removed_ride, removed_participants)
            raise Forbidden("Only the ride creator can delete this ride")
        logger.info("Ride %s deleted by %s", ride_id, requester_id)
        await self._reconcile_after_mutation()

    # Realtime reconciliation

    async def start(self) -> None:
        """Subscribe to both change feeds and run the reconciliation loop."""
        if self._task is not None:
            return
        self._events = asyncio.Queue()
        ride_filter = f"id=eq.{self.ride_id}" if self.ride_id else None
        participant_filter = f"ride_id=eq.{self.ride_id}" if self.ride_id else None
        self._subscriptions = []
        try:
            for table, row_filter in ((RIDES_TABLE, ride_filter), (PARTICIPANTS_TABLE, participant_filter)):
                self._subscriptions.append(await self.store.subscribe(table, self.notify, filter=row_filter))
        except Exception:
            await self._unsubscribe_all()
            self._events = None
            raise
        self._task = asyncio.create_task(self._reconcile_loop())
        # Initial load goes through the loop so a transient failure does not abort startup
        self.notify(ChangeEvent(table="*"))

    async def _unsubscribe_all(self) -> None:
        for subscription in self._subscriptions:
            try:
                await subscription.unsubscribe()
            except Exception as e:
                logger.warning(f"Error removing realtime subscription: {e}")
        self._subscriptions = []

    async def stop(self) -> None:
        await self._unsubscribe_all()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def notify(self, event: ChangeEvent) -> None:
        """Publish a change event onto the reconciliation channel."""
        if self._events is None:
            self._events = asyncio.Queue()
        self._events.put_nowait(event)

    async def wait_reconciled(self) -> None:
        """Wait until every published event has been reconciled."""
        if self._events is not None:
            await self._events.join()

    async def _reconcile_loop(self) -> None:
        while True:
            event = await self._events.get()
            handled = 1
            # Coalesce a burst of events into one refetch
            while not self._events.empty():
                self._events.get_nowait()
                handled += 1
            logger.debug("Reconciling after %s event(s), first: %s %s", handled, event.event_type, event.table)
            try:
                await self.load_all()
            except RosterError as e:
                logger.warning(f"Reconciliation failed: {e.message}")
            except Exception:
                logger.exception("Unexpected error during roster reconciliation")
            finally:
                for _ in range(handled):
                    self._events.task_done()


def _participant_row(participant: Participant) -> Dict[str, Any]:
    return {
        "ride_id": participant.ride_id,
        "user_id": participant.user_id,
        "status": participant.status.value,
    }
