# tests/test_tag_store.py

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select

from tasktags.core.errors import ConflictError, EmptyNameError, InUseError, NotFoundError, PermissionDeniedError
from tasktags.models.tag import Tag
from tasktags.models.task import task_tags
from tasktags.services.tag_store import TagStore, canonicalize, canonicalize_all
from tasktags.services.task_manager import TaskManager


def test_canonicalize_trims_and_lowercases() -> None:
    assert canonicalize("  Work ") == "work"
    assert canonicalize(None) == ""
    assert canonicalize_all(["Work", "work ", " WORK", "", "  ", "Home"]) == ["work", "home"]


@pytest.mark.asyncio
async def test_find_or_create_is_idempotent_over_case_and_spaces(db) -> None:
    store = TagStore(db)

    first = await store.find_or_create("  Work ")
    second = await store.find_or_create("work")
    third = await store.find_or_create("WORK")

    assert first.id == second.id == third.id
    assert first.name == "work"
    assert len(await store.list_all()) == 1


@pytest.mark.asyncio
async def test_find_or_create_rejects_blank_names(db) -> None:
    store = TagStore(db)
    with pytest.raises(EmptyNameError):
        await store.find_or_create("   ")


@pytest.mark.asyncio
async def test_find_or_create_returns_canonical_name_for_legacy_rows(db) -> None:
    db.add(Tag(name="Legacy"))
    await db.commit()

    tag = await TagStore(db).find_or_create("LEGACY ")
    assert tag.name == "legacy"

    stored = (await db.execute(select(Tag))).scalars().all()
    assert [t.id for t in stored] == [tag.id]


@pytest.mark.asyncio
async def test_find_or_create_reads_winner_after_concurrent_insert(db, monkeypatch) -> None:
    store = TagStore(db)
    winner = await store.find_or_create("shared")
    await db.commit()

    real_lookup = store._find_by_canonical
    calls = []

    async def lookup_missing_once(canonical: str):
        # first lookup misses, as if another request inserted in between
        calls.append(canonical)
        if len(calls) == 1:
            return None
        return await real_lookup(canonical)

    monkeypatch.setattr(store, "_find_by_canonical", lookup_missing_once)

    tag = await store.find_or_create("Shared")
    assert tag.id == winner.id
    assert tag.name == "shared"
    assert calls == ["shared", "shared"]

    # the session is still usable after the rolled-back savepoint
    other = await store.find_or_create("other")
    await db.commit()
    assert {t.name for t in await store.list_all()} == {"shared", "other"}
    assert other.id != winner.id


@pytest.mark.asyncio
async def test_tag_names_stay_unique(db, make_user) -> None:
    user_id = await make_user("alice")
    manager = TaskManager(db)
    await manager.create(user_id, "First task", tag_names=["Alpha", "beta"])
    await manager.create(user_id, "Second task", tag_names=[" ALPHA", "Beta ", "gamma"])

    names = [t.name for t in await TagStore(db).list_all()]
    assert names == ["alpha", "beta", "gamma"]
    assert len(names) == len(set(names))


@pytest.mark.asyncio
async def test_list_for_user_only_returns_own_tags_sorted(db, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    manager = TaskManager(db)
    await manager.create(alice, "Zoo trip", tag_names=["Zebra"])
    await manager.create(alice, "Fruit run", tag_names=["apple", "Banana"])
    await manager.create(bob, "Bob things", tag_names=["avocado", "apple"])

    store = TagStore(db)
    assert [t.name for t in await store.list_for_user(alice)] == ["apple", "banana", "zebra"]
    assert [t.name for t in await store.list_for_user(bob)] == ["apple", "avocado"]


@pytest.mark.asyncio
async def test_autocomplete_prefix_limit_and_show_all(db, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    manager = TaskManager(db)
    await manager.create(alice, "Task one", tag_names=["apple", "apricot", "banana"])
    await manager.create(alice, "Task two", tag_names=["ApplePie", "blueberry"])
    await manager.create(bob, "Other user", tag_names=["avocado"])

    store = TagStore(db)
    assert [t.name for t in await store.autocomplete(alice, "AP")] == ["apple", "applepie", "apricot"]
    assert [t.name for t in await store.autocomplete(alice, "ap", limit=2)] == ["apple", "applepie"]
    assert await store.autocomplete(alice, "av") == []
    assert await store.autocomplete(alice, "") == []
    assert await store.autocomplete(alice, None) == []
    everything = await store.autocomplete(alice, "", show_all=True)
    assert [t.name for t in everything] == ["apple", "applepie", "apricot", "banana", "blueberry"]


@pytest.mark.asyncio
async def test_autocomplete_treats_wildcards_literally(db, make_user) -> None:
    alice = await make_user("alice")
    await TaskManager(db).create(alice, "Wildcards", tag_names=["a_b", "axb", "100%"])

    store = TagStore(db)
    assert [t.name for t in await store.autocomplete(alice, "a_")] == ["a_b"]
    assert [t.name for t in await store.autocomplete(alice, "100%")] == ["100%"]


@pytest.mark.asyncio
async def test_rename_is_global_and_canonical(db, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    manager = TaskManager(db)
    alice_task = await manager.create(alice, "Alice task", tag_names=["initial"])
    bob_task = await manager.create(bob, "Bob task", tag_names=["Initial"])
    tag_id = alice_task["tags"][0]["id"]
    assert bob_task["tags"][0]["id"] == tag_id

    store = TagStore(db)
    renamed = await store.rename(tag_id, "  UpdatedName ", alice)
    assert renamed.id == tag_id
    assert renamed.name == "updatedname"

    bob_view = await manager.get_by_id(bob_task["id"], bob)
    assert bob_view["tags"] == [{"id": tag_id, "name": "updatedname"}]

    # the old name no longer resolves to the renamed tag
    fresh = await store.find_or_create("initial")
    assert fresh.id != tag_id


@pytest.mark.asyncio
async def test_rename_to_same_canonical_name_is_allowed(db, make_user) -> None:
    alice = await make_user("alice")
    task = await TaskManager(db).create(alice, "Alice task", tag_names=["initialtag"])
    tag_id = task["tags"][0]["id"]

    renamed = await TagStore(db).rename(tag_id, "InitialTag", alice)
    assert renamed.name == "initialtag"


@pytest.mark.asyncio
async def test_rename_errors(db, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    task = await TaskManager(db).create(alice, "Alice task", tag_names=["initialtag", "anotherone"])
    tag_id = next(t["id"] for t in task["tags"] if t["name"] == "initialtag")
    store = TagStore(db)

    with pytest.raises(NotFoundError):
        await store.rename(99999, "whatever", alice)
    with pytest.raises(EmptyNameError):
        await store.rename(tag_id, "   ", alice)
    with pytest.raises(PermissionDeniedError):
        await store.rename(tag_id, "bobs name", bob)
    with pytest.raises(ConflictError) as excinfo:
        await store.rename(tag_id, " anotherOne ", alice)
    assert 'A tag with the name "anotherOne" already exists.' in str(excinfo.value)


@pytest.mark.asyncio
async def test_delete_requires_tag_to_be_unused_everywhere(db, make_user) -> None:
    alice = await make_user("alice")
    bob = await make_user("bob")
    manager = TaskManager(db)
    alice_task = await manager.create(alice, "Alice task", tag_names=["shared"])
    bob_task = await manager.create(bob, "Bob task", tag_names=["shared"])
    tag_id = alice_task["tags"][0]["id"]
    store = TagStore(db)

    with pytest.raises(InUseError):
        await store.delete(tag_id, alice)

    # alice no longer uses the tag, but bob's task still does
    await manager.update(alice_task["id"], alice, {"tags": []})
    with pytest.raises(InUseError):
        await store.delete(tag_id, alice)

    await manager.update(bob_task["id"], bob, {"tags": []})
    await store.delete(tag_id, alice)
    assert await store.list_all() == []

    with pytest.raises(NotFoundError):
        await store.delete(tag_id, alice)


@pytest.mark.asyncio
async def test_deleting_task_keeps_orphaned_tags(db, make_user) -> None:
    alice = await make_user("alice")
    manager = TaskManager(db)
    task = await manager.create(alice, "Tagged", tag_names=["one", "two", "three"])

    assert await manager.delete(task["id"], alice) is True

    links = (await db.execute(select(task_tags).where(task_tags.c.task_id == task["id"]))).all()
    assert links == []
    assert [t.name for t in await TagStore(db).list_all()] == ["one", "three", "two"]


@pytest.mark.asyncio
@pytest.mark.parametrize("callers", [2, 4])
async def test_concurrent_find_or_create_shares_one_row(session_factory, callers) -> None:
    async def resolve(name: str) -> int:
        async with session_factory() as session:
            tag = await TagStore(session).find_or_create(name)
            # hold the transaction open so the callers overlap
            await asyncio.sleep(0.02)
            await session.commit()
            return tag.id

    names = ["Race", "race", " RACE ", "rAcE"][:callers]
    ids = await asyncio.gather(*(resolve(name) for name in names))

    assert len(set(ids)) == 1
    async with session_factory() as session:
        assert [(t.id, t.name) for t in await TagStore(session).list_all()] == [(ids[0], "race")]
