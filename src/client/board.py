"""
UI controller for the recipe board: optimistic mutations and reconciliation.

Every mutation is applied to the ClientStore before its request is sent and
the display is re-rendered at once. When the server answers, the record is
reconciled by key with the authoritative version; when the request fails,
the record is restored to its last confirmed state and the user is told.

Mutations on the same record are sent one after another in the order they
were issued. A mutation issued against a recipe whose create is still in
flight waits for that create to learn the server-assigned id. Only the most
recently issued mutation of a record may reconcile or roll it back; earlier
answers just update the record's last confirmed state. A full reload keeps
the optimistic state of records whose mutations are still in flight.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from src.app.domain.models import Recipe, dump_recipe, parse_recipe
from src.client.api_client import RecipeApiClient
from src.client.errors import ApiError, ServiceError
from src.client.filters import DisplayList, FilterState, SortMode
from src.client.store import (
    ClientStore,
    InsertRecipe,
    RecordSnapshot,
    RemoveRecipe,
    ReplaceRecipe,
)

logger = logging.getLogger(__name__)

RenderCallback = Callable[[DisplayList], None]
NotifyCallback = Callable[[str], None]


class MutationState(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    ROLLED_BACK = "ROLLED_BACK"


@dataclass
class MutationTicket:
    op: str
    key: int
    seq: int
    state: MutationState = MutationState.PENDING
    record: Optional[Recipe] = None
    error: Optional[ServiceError] = None


@dataclass
class _RecordTrack:
    """Bookkeeping for a record with mutations in flight."""
    cache_key: int
    server_id: Optional[int]  # None until its create is confirmed
    confirmed: RecordSnapshot
    latest_seq: int = 0
    pending: int = 0
    tail: Optional[asyncio.Future] = None
    keys: set[int] = field(default_factory=set)
    optimistic: Optional[Recipe] = None  # None: removed locally


def _log_notify(message: str) -> None:
    logger.warning("%s", message)


def _merge(current: Recipe, fields: dict[str, Any]) -> Recipe:
    merged = {**dump_recipe(current), **fields, "id": current.id}
    merged["kind"] = fields.get("kind") or current.kind
    return parse_recipe(merged)


class RecipeBoard:
    def __init__(
        self,
        api: RecipeApiClient,
        store: Optional[ClientStore] = None,
        render: Optional[RenderCallback] = None,
        notify: Optional[NotifyCallback] = None,
    ):
        self._api = api
        self.store = store or ClientStore()
        self._render = render
        self._notify = notify or _log_notify
        self.filters = FilterState()
        self._temp_ids = itertools.count(-1, -1)
        self._seq = itertools.count(1)
        self._tracks: dict[int, _RecordTrack] = {}
        self._aliases: dict[int, int] = {}

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def render(self) -> DisplayList:
        display = self.store.recompute(self.filters)
        if self._render is not None:
            self._render(display)
        return display

    def set_filters(self, **changes: Any) -> DisplayList:
        if changes.get("sort"):
            changes["sort"] = SortMode(changes["sort"])
        self.filters = replace(self.filters, **changes)
        return self.render()

    def pick_random(self, rng: Optional[random.Random] = None) -> Optional[Recipe]:
        recipes = self.store.displayed.recipes
        if not recipes:
            self._notify("No recipes to choose from. Try adjusting your filters!")
            return None
        return (rng or random).choice(recipes)

    async def load(self) -> bool:
        try:
            recipes = await self._api.list_recipes()
        except ServiceError as error:
            logger.error("Failed to load recipes: %s", error)
            self._notify("Could not load recipes. Is the server running?")
            return False
        self.store.set_collection(recipes)
        self._replay_pending()
        self.render()
        return True

    async def import_recipes(self, items: list[dict[str, Any]]) -> bool:
        try:
            await self._api.import_recipes(items)
        except ServiceError as error:
            logger.error("Failed to import recipes: %s", error)
            self._notify("There was an error importing your recipes.")
            return False
        return await self.load()

    async def export_recipes(self) -> Optional[list[dict[str, Any]]]:
        try:
            return await self._api.export_recipes()
        except ServiceError as error:
            logger.error("Failed to export recipes: %s", error)
            self._notify("There was an error exporting your recipes.")
            return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, fields: dict[str, Any]) -> MutationTicket:
        """
        Add a recipe under a temporary negative id, then confirm it.

        Raises:
            pydantic.ValidationError: If ``fields`` do not form a valid recipe
        """
        temp_id = next(self._temp_ids)
        record = parse_recipe({**fields, "id": temp_id})
        track = _RecordTrack(
            cache_key=temp_id,
            server_id=None,
            confirmed=self.store.capture(temp_id),
        )
        ticket, _, done = self._begin("create", temp_id, track)
        track.optimistic = record
        self.store.apply_optimistic(InsertRecipe(record))
        self.render()

        payload = {k: v for k, v in dump_recipe(record).items() if k != "id"}
        try:
            try:
                created = await self._api.create_recipe(payload)
            except ServiceError as error:
                ticket.error = error
                ticket.state = MutationState.ROLLED_BACK
                self.store.rollback(replace(track.confirmed, key=track.cache_key))
                self.render()
                self._fail(error, "There was an error adding your recipe. Please try again.")
                return ticket

            track.server_id = created.id
            self._aliases[temp_id] = created.id
            self._register(track, created.id)
            if self.store.get(created.id) is not None:
                # a reload already brought in the server copy
                self.store.apply_optimistic(RemoveRecipe(created.id))
            if self._is_latest(track, ticket):
                if not self.store.reconcile(track.cache_key, created):
                    self.store.apply_optimistic(InsertRecipe(created))
            else:
                self.store.rekey(track.cache_key, created.id)
            track.cache_key = created.id
            track.confirmed = RecordSnapshot(created.id, created, track.confirmed.index)
            ticket.record = created
            ticket.state = MutationState.CONFIRMED
            self.render()
            return ticket
        finally:
            self._end(track, done)

    async def update(self, recipe_id: int, fields: dict[str, Any]) -> MutationTicket:
        """
        Merge ``fields`` into the cached recipe, then confirm with the server.

        Raises:
            pydantic.ValidationError: If the merged record is not valid
        """
        key = self._aliases.get(recipe_id, recipe_id)
        track = self._track_for(key)
        current = self.store.get(track.cache_key)
        if current is None:
            self._notify("This recipe no longer exists.")
            return MutationTicket("update", key, next(self._seq), MutationState.ROLLED_BACK)
        merged = _merge(current, fields)

        ticket, prev, done = self._begin("update", key, track)
        track.optimistic = merged
        self.store.apply_optimistic(ReplaceRecipe(track.cache_key, merged))
        self.render()
        return await self._send(
            ticket,
            track,
            prev,
            done,
            lambda server_id: self._api.update_recipe(server_id, fields),
            "There was an error updating the recipe.",
        )

    async def delete(self, recipe_id: int) -> MutationTicket:
        key = self._aliases.get(recipe_id, recipe_id)
        track = self._track_for(key)
        ticket, prev, done = self._begin("delete", key, track)
        track.optimistic = None
        self.store.apply_optimistic(RemoveRecipe(track.cache_key))
        self.render()
        return await self._send(
            ticket,
            track,
            prev,
            done,
            self._api.delete_recipe,
            "There was an error deleting the recipe.",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _replay_pending(self) -> None:
        """Carry in-flight changes over a full reload of the collection."""
        tracks = {id(track): track for track in self._tracks.values()}
        for track in tracks.values():
            if track.server_id is not None:
                track.confirmed = self.store.capture(track.cache_key)
            if track.optimistic is None:
                self.store.apply_optimistic(RemoveRecipe(track.cache_key))
            else:
                self.store.apply_optimistic(ReplaceRecipe(track.cache_key, track.optimistic))

    def _track_for(self, key: int) -> _RecordTrack:
        track = self._tracks.get(key)
        if track is None:
            track = _RecordTrack(
                cache_key=key,
                server_id=key if key >= 0 else None,
                confirmed=self.store.capture(key),
            )
        return track

    def _register(self, track: _RecordTrack, key: int) -> None:
        track.keys.add(key)
        self._tracks[key] = track

    def _begin(
        self, op: str, key: int, track: _RecordTrack
    ) -> tuple[MutationTicket, Optional[asyncio.Future], asyncio.Future]:
        self._register(track, key)
        ticket = MutationTicket(op=op, key=key, seq=next(self._seq))
        track.latest_seq = ticket.seq
        track.pending += 1
        prev = track.tail
        done: asyncio.Future = asyncio.get_running_loop().create_future()
        track.tail = done
        return ticket, prev, done

    def _end(self, track: _RecordTrack, done: asyncio.Future) -> None:
        done.set_result(None)
        track.pending -= 1
        if track.pending == 0:
            for key in track.keys:
                self._aliases.pop(key, None)
                if self._tracks.get(key) is track:
                    del self._tracks[key]

    @staticmethod
    def _is_latest(track: _RecordTrack, ticket: MutationTicket) -> bool:
        return track.latest_seq == ticket.seq

    async def _send(
        self,
        ticket: MutationTicket,
        track: _RecordTrack,
        prev: Optional[asyncio.Future],
        done: asyncio.Future,
        request: Callable[[int], Awaitable[Optional[Recipe]]],
        failure_message: str,
    ) -> MutationTicket:
        try:
            if prev is not None:
                await prev
            if track.server_id is None:
                # the create this depends on failed and was already rolled back
                ticket.state = MutationState.ROLLED_BACK
                return ticket

            try:
                result = await request(track.server_id)
            except ServiceError as error:
                ticket.error = error
                ticket.state = MutationState.ROLLED_BACK
                if self._is_latest(track, ticket):
                    self.store.rollback(replace(track.confirmed, key=track.cache_key))
                    self.render()
                self._fail(error, failure_message)
                return ticket

            track.confirmed = RecordSnapshot(track.cache_key, result, track.confirmed.index)
            if self._is_latest(track, ticket):
                if result is None:
                    self.store.apply_optimistic(RemoveRecipe(track.cache_key))
                else:
                    self.store.reconcile(track.cache_key, result)
                self.render()
            ticket.record = result
            ticket.state = MutationState.CONFIRMED
            return ticket
        finally:
            self._end(track, done)

    def _fail(self, error: ServiceError, message: str) -> None:
        logger.error("%s (%s)", message, error)
        if isinstance(error, ApiError) and error.is_conflict:
            message = "The recipes changed on the server. Reload and try again."
        elif isinstance(error, ApiError) and error.is_not_found:
            message = "This recipe no longer exists."
        self._notify(message)
