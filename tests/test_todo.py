import pytest

from toolloop.tools.todo import (
    CreateTodoListArgs,
    FinishTodoItemArgs,
    InvalidItemIndex,
    ListNotFound,
    NoItemsProvided,
    NoItemsToFinish,
    TodoStore,
)


@pytest.fixture
def store():
    todos = TodoStore()
    todos.create(CreateTodoListArgs(list_id="trip", title="Trip", items=["book flight", "pack bags"]))
    return todos


def test_create_lists_items(store):
    assert store.get("trip").formatted() == "0. [ ] book flight\n1. [ ] pack bags"


def test_create_requires_items():
    with pytest.raises(NoItemsProvided):
        TodoStore().create(CreateTodoListArgs(list_id="x", title="X", items=[]))


def test_finish_by_index_and_description(store):
    out = store.finish(FinishTodoItemArgs(list_id="trip", item_indices=[0]))
    assert "✓ book flight" in out
    assert "Remaining items:" in out
    out = store.finish(FinishTodoItemArgs(list_id="trip", item_descriptions=["PACK"]))
    assert out.endswith("All items completed!")
    assert store.incomplete_summary() is None


def test_finish_errors(store):
    with pytest.raises(InvalidItemIndex, match="indices 0-1"):
        store.finish(FinishTodoItemArgs(list_id="trip", item_indices=[5]))
    with pytest.raises(ListNotFound):
        store.finish(FinishTodoItemArgs(list_id="nope", item_indices=[0]))
    with pytest.raises(NoItemsToFinish):
        store.finish(FinishTodoItemArgs(list_id="trip", item_descriptions=["swim"]))


def test_incomplete_summary(store):
    summary = store.incomplete_summary()
    assert summary.startswith("Active To-Do Lists (Incomplete Items):")
    assert "  1. [ ] pack bags" in summary


@pytest.mark.asyncio
async def test_capabilities_dispatch_through_specs(store):
    specs = {s.name: s for s in store.capabilities()}
    assert set(specs) == {"create_todo_list", "add_todo_item", "finish_todo_item"}
    out = await specs["add_todo_item"].execute({"list_id": "trip", "items": ["buy snacks"]})
    assert "Added 1 new item(s) to 'Trip'" in out
    assert specs["finish_todo_item"].required == ["list_id"]


def test_invalid_index_leaves_list_untouched(store):
    with pytest.raises(InvalidItemIndex):
        store.finish(FinishTodoItemArgs(list_id="trip", item_indices=[0, 9]))
    assert [item.done for item in store.get("trip").items] == [False, False]


def test_description_finishes_first_match_only():
    todos = TodoStore()
    todos.create(
        CreateTodoListArgs(list_id="tax", title="Tax", items=["look up price", "look up tax", "pay"])
    )
    out = todos.finish(FinishTodoItemArgs(list_id="tax", item_descriptions=["look up"]))
    assert "Marked 1 item(s) as finished:\n✓ look up price" in out
    assert [item.done for item in todos.get("tax").items] == [True, False, False]
