"""To-do list capabilities.

Lets the model keep a plan across tool calls. The loop shows unfinished
items after every round of calls and holds off the sufficiency check while
any remain.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel

from toolloop.tools.base import Datatype, ParameterSpec
from toolloop.tools.categories import Category
from toolloop.tools.specs import CapabilitySpec


class TodoError(ValueError):
    pass


class ListNotFound(TodoError):
    def __init__(self, list_id: str):
        super().__init__(
            f"To-do list with ID '{list_id}' not found. Create it first using create_todo_list."
        )


class NoItemsProvided(TodoError):
    def __init__(self) -> None:
        super().__init__("No items were provided. Please specify at least one item.")


class InvalidItemIndex(TodoError):
    def __init__(self, index: int, count: int):
        super().__init__(
            f"Invalid item index {index}. The list has {count} items (indices 0-{count - 1})."
        )


class NoItemsToFinish(TodoError):
    def __init__(self) -> None:
        super().__init__(
            "No matching items found to mark as finished. Check the indices or descriptions provided."
        )


@dataclass
class TodoItem:
    description: str
    done: bool = False


@dataclass
class TodoList:
    id: str
    title: str
    items: List[TodoItem] = field(default_factory=list)

    def formatted(self) -> str:
        return "\n".join(
            f"{i}. {'[✓]' if item.done else '[ ]'} {item.description}"
            for i, item in enumerate(self.items)
        )

    @property
    def remaining(self) -> int:
        return sum(1 for item in self.items if not item.done)


class CreateTodoListArgs(BaseModel):
    list_id: str
    title: str
    items: List[str]


class AddTodoItemArgs(BaseModel):
    list_id: str
    items: List[str]


class FinishTodoItemArgs(BaseModel):
    list_id: str
    item_indices: Optional[List[int]] = None
    item_descriptions: Optional[List[str]] = None


class TodoStore:
    """To-do lists for one conversation."""

    def __init__(self) -> None:
        self._lists: Dict[str, TodoList] = {}
        self._lock = threading.Lock()

    def get(self, list_id: str) -> Optional[TodoList]:
        with self._lock:
            return self._lists.get(list_id)

    def clear(self, list_id: Optional[str] = None) -> None:
        with self._lock:
            if list_id is None:
                self._lists.clear()
            else:
                self._lists.pop(list_id, None)

    def create(self, args: CreateTodoListArgs) -> str:
        if not args.items:
            raise NoItemsProvided()
        todo = TodoList(args.list_id, args.title, [TodoItem(d) for d in args.items])
        with self._lock:
            self._lists[args.list_id] = todo
        return f"Created to-do list '{args.title}' with {len(args.items)} items:\n\n{todo.formatted()}"

    def add(self, args: AddTodoItemArgs) -> str:
        with self._lock:
            todo = self._lists.get(args.list_id)
            if todo is None:
                raise ListNotFound(args.list_id)
            if not args.items:
                raise NoItemsProvided()
            todo.items.extend(TodoItem(d) for d in args.items)
            added = "\n".join(f"• {d}" for d in args.items)
            return (
                f"Added {len(args.items)} new item(s) to '{todo.title}':\n\n{added}\n\n"
                f"Current status:\n{todo.formatted()}"
            )

    def finish(self, args: FinishTodoItemArgs) -> str:
        """Mark items done; nothing changes unless every index is valid."""
        with self._lock:
            todo = self._lists.get(args.list_id)
            if todo is None:
                raise ListNotFound(args.list_id)
            selected: List[int] = []
            for index in args.item_indices or []:
                if index < 0 or index >= len(todo.items):
                    raise InvalidItemIndex(index, len(todo.items))
                if not todo.items[index].done and index not in selected:
                    selected.append(index)
            for text in args.item_descriptions or []:
                needle = text.lower()
                for i, item in enumerate(todo.items):
                    if not item.done and i not in selected and needle in item.description.lower():
                        selected.append(i)
                        break
            if not selected:
                raise NoItemsToFinish()
            for i in selected:
                todo.items[i].done = True
            marked = "\n".join(f"✓ {todo.items[i].description}" for i in selected)
            tail = f"Remaining items:\n{todo.formatted()}" if todo.remaining else "All items completed!"
            return f"Marked {len(selected)} item(s) as finished:\n{marked}\n\n{tail}"

    def incomplete_summary(self) -> Optional[str]:
        """Unfinished items of every list, or None when all are done."""
        with self._lock:
            open_lists = [t for t in self._lists.values() if t.remaining]
            if not open_lists:
                return None
            blocks = []
            for todo in open_lists:
                lines = [
                    f"  {i}. [ ] {item.description}"
                    for i, item in enumerate(todo.items)
                    if not item.done
                ]
                blocks.append(f"To-Do List: {todo.title} (ID: {todo.id})\n" + "\n".join(lines))
        return (
            "Active To-Do Lists (Incomplete Items):\n\n"
            + "\n\n".join(blocks)
            + "\n\nUse `finish_todo_item` to mark items as complete, or `add_todo_item` to add more tasks."
        )

    def capabilities(self) -> List[CapabilitySpec]:
        """Capability specs bound to this store."""
        return [
            CapabilitySpec(
                name="create_todo_list",
                description=(
                    "Creates a new to-do list to track the steps of a task. Incomplete items "
                    "are shown to you after every tool execution."
                ),
                params=(
                    ParameterSpec("list_id", "A unique identifier for this to-do list", Datatype.STRING),
                    ParameterSpec("title", "A descriptive title for the to-do list", Datatype.STRING),
                    ParameterSpec("items", "Clear, actionable items to create", Datatype.STRING_ARRAY),
                ),
                args_model=CreateTodoListArgs,
                func=self.create,
                category=Category.TODO,
            ),
            CapabilitySpec(
                name="add_todo_item",
                description="Adds new items to an existing to-do list.",
                params=(
                    ParameterSpec("list_id", "The identifier of the to-do list", Datatype.STRING),
                    ParameterSpec("items", "New items to add", Datatype.STRING_ARRAY),
                ),
                args_model=AddTodoItemArgs,
                func=self.add,
                category=Category.TODO,
            ),
            CapabilitySpec(
                name="finish_todo_item",
                description=(
                    "Marks items of a to-do list as finished, by 0-based index or by "
                    "matching description text."
                ),
                params=(
                    ParameterSpec("list_id", "The identifier of the to-do list", Datatype.STRING),
                    ParameterSpec(
                        "item_indices", "0-based indices of items to finish", Datatype.INTEGER_ARRAY, False
                    ),
                    ParameterSpec(
                        "item_descriptions",
                        "Descriptions (or parts of them) of items to finish",
                        Datatype.STRING_ARRAY,
                        False,
                    ),
                ),
                args_model=FinishTodoItemArgs,
                func=self.finish,
                category=Category.TODO,
            ),
        ]
