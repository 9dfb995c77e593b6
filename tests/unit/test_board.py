from __future__ import annotations

import asyncio
import json
import random
from typing import Any, Callable, Optional

import httpx

from src.client.api_client import RecipeApiClient
from src.client.board import MutationState, RecipeBoard
from src.client.errors import ApiError
from src.client.filters import DisplayList


class FakeRecipeServer:
    """Minimal in-memory version of the REST API for httpx.MockTransport."""

    def __init__(self, recipes: Optional[list[dict[str, Any]]] = None) -> None:
        self.recipes = [dict(r) for r in recipes or []]
        self.next_id = 100
        self.fail: set[str] = set()
        self.fail_status = 500
        self.unreachable = False
        self.fail_when: Optional[Callable[[httpx.Request], bool]] = None
        self.gate: Optional[asyncio.Event] = None
        self.hold: Optional[Callable[[httpx.Request], bool]] = None
        self.requests: list[tuple[str, str]] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if self.gate is not None and (self.hold is None or self.hold(request)):
            await self.gate.wait()
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if request.method in self.fail or (self.fail_when is not None and self.fail_when(request)):
            return httpx.Response(self.fail_status, json={"detail": "Request failed."})

        parts = request.url.path.rstrip("/").split("/")
        if request.method == "GET":
            return httpx.Response(200, json=self.recipes)
        if request.method == "POST" and parts[-1] == "import":
            imported = []
            for item in json.loads(request.content):
                imported.append({**item, "id": self.next_id})
                self.next_id += 1
            self.recipes.extend(imported)
            return httpx.Response(201, json=imported)
        if request.method == "POST":
            record = {**json.loads(request.content), "id": self.next_id}
            self.next_id += 1
            self.recipes.append(record)
            return httpx.Response(201, json=record)

        recipe_id = int(parts[-1])
        index = next((i for i, r in enumerate(self.recipes) if r["id"] == recipe_id), None)
        if request.method == "PUT":
            if index is None:
                return httpx.Response(404, json={"detail": f"Recipe not found: {recipe_id}"})
            self.recipes[index] = {**self.recipes[index], **json.loads(request.content), "id": recipe_id}
            return httpx.Response(200, json=self.recipes[index])
        if index is not None:
            del self.recipes[index]
        return httpx.Response(204)


def _title(request: httpx.Request) -> Optional[str]:
    if not request.content:
        return None
    body = json.loads(request.content)
    return body.get("title") if isinstance(body, dict) else None


SEED = [
    {"id": 1, "kind": "link", "title": "Pasta", "link": "https://youtu.be/a", "category": "Dinner"},
    {"id": 2, "kind": "custom", "title": "Soup", "ingredients": "water"},
    {"id": 3, "kind": "link", "title": "Cake", "link": "https://www.tiktok.com/@c/video/1"},
]


class BoardHarness:
    def __init__(self, server: FakeRecipeServer) -> None:
        self.server = server
        self.renders: list[DisplayList] = []
        self.notices: list[str] = []
        self.api = RecipeApiClient(base_url="http://test", transport=httpx.MockTransport(server))
        self.board = RecipeBoard(self.api, render=self.renders.append, notify=self.notices.append)

    def ids(self) -> list[int]:
        return [r.id for r in self.board.store.all_recipes]


def _run(server: FakeRecipeServer, scenario) -> BoardHarness:
    async def main() -> BoardHarness:
        harness = BoardHarness(server)
        async with harness.api:
            await harness.board.load()
            await scenario(harness)
        return harness

    return asyncio.run(main())


class TestLoad:
    def test_load_populates_store_and_renders(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            pass

        h = _run(FakeRecipeServer(SEED), scenario)

        assert h.ids() == [1, 2, 3]
        assert h.renders[-1].count_label == "3 of 3"
        assert h.board.store.platform_options == ("youtube", "tiktok")

    def test_unreachable_server_notifies(self) -> None:
        server = FakeRecipeServer(SEED)
        server.unreachable = True

        async def scenario(h: BoardHarness) -> None:
            pass

        h = _run(server, scenario)

        assert h.ids() == []
        assert h.notices == ["Could not load recipes. Is the server running?"]


class TestCreate:
    def test_confirmed_create_takes_server_id(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            ticket = await h.board.create({"title": "Tacos", "link": "https://www.instagram.com/reel/x/"})
            assert ticket.state is MutationState.CONFIRMED
            assert ticket.record.id == 100

        h = _run(FakeRecipeServer(SEED), scenario)

        assert h.ids() == [1, 2, 3, 100]
        assert any(r.id < 0 for r in h.renders[-2].recipes)
        assert h.notices == []

    def test_failed_create_is_removed(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail.add("POST")

        async def scenario(h: BoardHarness) -> None:
            ticket = await h.board.create({"title": "Tacos"})
            assert ticket.state is MutationState.ROLLED_BACK

        h = _run(server, scenario)

        assert h.ids() == [1, 2, 3]
        assert h.renders[-1].count_label == "3 of 3"
        assert h.notices == ["There was an error adding your recipe. Please try again."]


class TestUpdate:
    def test_confirmed_update(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            await h.board.update(1, {"title": "Better Pasta"})

        h = _run(FakeRecipeServer(SEED), scenario)

        assert h.board.store.get(1).title == "Better Pasta"
        assert h.board.store.get(1).category == "Dinner"

    def test_failed_update_restores_previous_record(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail.add("PUT")

        async def scenario(h: BoardHarness) -> None:
            ticket = await h.board.update(1, {"title": "Better Pasta"})
            assert ticket.state is MutationState.ROLLED_BACK

        h = _run(server, scenario)

        assert h.board.store.get(1).title == "Pasta"
        assert h.notices == ["There was an error updating the recipe."]

    def test_update_of_pending_create_waits_for_server_id(self) -> None:
        server = FakeRecipeServer(SEED)

        async def scenario(h: BoardHarness) -> None:
            server.gate = asyncio.Event()
            create = asyncio.create_task(h.board.create({"title": "Tacos"}))
            await asyncio.sleep(0)
            temp_id = min(h.ids())
            assert temp_id < 0

            update = asyncio.create_task(h.board.update(temp_id, {"title": "Fish Tacos"}))
            await asyncio.sleep(0)
            assert h.board.store.get(temp_id).title == "Fish Tacos"

            server.gate.set()
            await asyncio.gather(create, update)

        h = _run(server, scenario)

        assert ("PUT", "/api/recipes/100") in server.requests
        assert h.ids() == [1, 2, 3, 100]
        assert h.board.store.get(100).title == "Fish Tacos"

    def test_mutations_on_failed_create_are_dropped(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail.add("POST")

        async def scenario(h: BoardHarness) -> None:
            server.gate = asyncio.Event()
            create = asyncio.create_task(h.board.create({"title": "Tacos"}))
            await asyncio.sleep(0)
            update = asyncio.create_task(h.board.update(min(h.ids()), {"title": "Fish Tacos"}))
            await asyncio.sleep(0)

            server.gate.set()
            _, ticket = await asyncio.gather(create, update)
            assert ticket.state is MutationState.ROLLED_BACK

        h = _run(server, scenario)

        assert h.ids() == [1, 2, 3]
        assert not any(method == "PUT" for method, _ in server.requests)


class TestDelete:
    def test_confirmed_delete(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            await h.board.delete(2)

        h = _run(FakeRecipeServer(SEED), scenario)

        assert h.ids() == [1, 3]

    def test_failed_delete_restores_at_original_position(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail.add("DELETE")

        async def scenario(h: BoardHarness) -> None:
            await h.board.delete(2)

        h = _run(server, scenario)

        assert h.ids() == [1, 2, 3]
        assert h.notices == ["There was an error deleting the recipe."]


class TestFilters:
    def test_search_without_match_shows_zero_of_total(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            display = h.board.set_filters(search="sushi")
            assert display.count_label == "0 of 3"

        _run(FakeRecipeServer(SEED), scenario)

    def test_pick_random_with_nothing_displayed_notifies(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            h.board.set_filters(search="sushi")
            assert h.board.pick_random() is None

        h = _run(FakeRecipeServer(SEED), scenario)

        assert h.notices == ["No recipes to choose from. Try adjusting your filters!"]

    def test_pick_random_chooses_from_displayed(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            display = h.board.set_filters(platform="youtube")
            picked = h.board.pick_random(random.Random(7))
            assert picked is not None
            assert picked in display.recipes
            assert picked == random.Random(7).choice(display.recipes)

        _run(FakeRecipeServer(SEED), scenario)


class TestLatestMutationWins:
    def test_failed_later_update_rolls_back_to_earlier_result(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail_when = lambda request: request.method == "PUT" and _title(request) == "B"

        async def scenario(h: BoardHarness) -> None:
            first = asyncio.create_task(h.board.update(1, {"title": "A"}))
            second = asyncio.create_task(h.board.update(1, {"title": "B"}))
            a, b = await asyncio.gather(first, second)
            assert a.state is MutationState.CONFIRMED
            assert b.state is MutationState.ROLLED_BACK

        h = _run(server, scenario)

        assert h.board.store.get(1).title == "A"
        assert h.notices == ["There was an error updating the recipe."]

    def test_failed_update_before_delete_does_not_resurrect(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail.add("PUT")

        async def scenario(h: BoardHarness) -> None:
            update = asyncio.create_task(h.board.update(1, {"title": "A"}))
            delete = asyncio.create_task(h.board.delete(1))
            u, d = await asyncio.gather(update, delete)
            assert u.state is MutationState.ROLLED_BACK
            assert d.state is MutationState.CONFIRMED

        h = _run(server, scenario)

        assert h.ids() == [2, 3]
        assert [r["id"] for r in server.recipes] == [2, 3]

    def test_earlier_success_keeps_later_optimistic_value(self) -> None:
        server = FakeRecipeServer(SEED)

        async def scenario(h: BoardHarness) -> None:
            server.gate = asyncio.Event()
            server.hold = lambda request: request.method == "PUT" and _title(request) == "B"
            first = asyncio.create_task(h.board.update(1, {"title": "A"}))
            second = asyncio.create_task(h.board.update(1, {"title": "B"}))

            ticket = await first
            assert ticket.state is MutationState.CONFIRMED
            assert h.board.store.get(1).title == "B"

            server.gate.set()
            await second

        h = _run(server, scenario)

        assert h.board.store.get(1).title == "B"

    def test_bookkeeping_is_released_after_mutations_settle(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            create = asyncio.create_task(h.board.create({"title": "Tacos"}))
            await asyncio.sleep(0)
            update = asyncio.create_task(h.board.update(min(h.ids()), {"title": "Fish Tacos"}))
            await asyncio.gather(create, update)

        h = _run(FakeRecipeServer(SEED), scenario)

        assert h.board._aliases == {}
        assert h.board._tracks == {}


class TestReloadDuringMutation:
    def test_reload_keeps_pending_create(self) -> None:
        server = FakeRecipeServer(SEED)

        async def scenario(h: BoardHarness) -> None:
            server.gate = asyncio.Event()
            server.hold = lambda request: request.method == "POST"
            create = asyncio.create_task(h.board.create({"title": "Tacos"}))
            await asyncio.sleep(0)

            assert await h.board.load() is True
            assert [r.title for r in h.board.store.all_recipes if r.id < 0] == ["Tacos"]

            server.gate.set()
            ticket = await create
            assert ticket.state is MutationState.CONFIRMED

        h = _run(server, scenario)

        assert h.ids() == [1, 2, 3, 100]
        assert h.board.store.get(100).title == "Tacos"

    def test_reload_keeps_pending_delete_removed(self) -> None:
        server = FakeRecipeServer(SEED)

        async def scenario(h: BoardHarness) -> None:
            server.gate = asyncio.Event()
            server.hold = lambda request: request.method == "DELETE"
            delete = asyncio.create_task(h.board.delete(2))
            await asyncio.sleep(0)

            assert await h.board.load() is True
            assert h.board.store.get(2) is None

            server.gate.set()
            ticket = await delete
            assert ticket.state is MutationState.CONFIRMED

        h = _run(server, scenario)

        assert h.ids() == [1, 3]

    def test_reload_keeps_pending_update_value(self) -> None:
        server = FakeRecipeServer(SEED)

        async def scenario(h: BoardHarness) -> None:
            server.gate = asyncio.Event()
            server.hold = lambda request: request.method == "PUT"
            update = asyncio.create_task(h.board.update(1, {"title": "Better Pasta"}))
            await asyncio.sleep(0)

            await h.board.load()
            assert h.board.store.get(1).title == "Better Pasta"

            server.gate.set()
            await update

        h = _run(server, scenario)

        assert h.board.store.get(1).title == "Better Pasta"


class TestFailureMessages:
    def test_conflict_asks_to_reload(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail.add("PUT")
        server.fail_status = 409

        async def scenario(h: BoardHarness) -> None:
            await h.board.update(1, {"title": "Better Pasta"})

        h = _run(server, scenario)

        assert h.notices == ["The recipes changed on the server. Reload and try again."]
        assert h.board.store.get(1).title == "Pasta"

    def test_recipe_removed_on_server(self) -> None:
        server = FakeRecipeServer(SEED)

        async def scenario(h: BoardHarness) -> None:
            server.recipes = [r for r in server.recipes if r["id"] != 1]
            ticket = await h.board.update(1, {"title": "Better Pasta"})
            assert ticket.state is MutationState.ROLLED_BACK
            assert isinstance(ticket.error, ApiError)
            assert ticket.error.is_not_found

        h = _run(server, scenario)

        assert h.notices == ["This recipe no longer exists."]


class TestImportExport:
    def test_import_reloads_collection(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            assert await h.board.import_recipes([{"title": "Tacos"}, {"title": "Stew", "ingredients": "beef"}]) is True

        h = _run(FakeRecipeServer(SEED), scenario)

        assert h.ids() == [1, 2, 3, 100, 101]
        assert h.renders[-1].count_label == "5 of 5"

    def test_failed_import_notifies(self) -> None:
        server = FakeRecipeServer(SEED)
        server.fail.add("POST")

        async def scenario(h: BoardHarness) -> None:
            assert await h.board.import_recipes([{"title": "Tacos"}]) is False

        h = _run(server, scenario)

        assert h.ids() == [1, 2, 3]
        assert h.notices == ["There was an error importing your recipes."]

    def test_export_returns_document(self) -> None:
        async def scenario(h: BoardHarness) -> None:
            document = await h.board.export_recipes()
            assert [r["id"] for r in document] == [1, 2, 3]

        _run(FakeRecipeServer(SEED), scenario)

    def test_failed_export_notifies(self) -> None:
        server = FakeRecipeServer(SEED)

        async def scenario(h: BoardHarness) -> None:
            server.fail.add("GET")
            assert await h.board.export_recipes() is None

        h = _run(server, scenario)

        assert h.notices == ["There was an error exporting your recipes."]
