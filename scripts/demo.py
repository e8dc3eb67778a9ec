#!/usr/bin/env python3
"""
Notes Undo/Redo Demo

Walks through the note store end to end: two notes are added, saved to
a JSON file, loaded back into a fresh store, listed, and then the
undo/redo history is replayed step by step.
"""

import argparse
import asyncio
import logging
import tempfile
from pathlib import Path

from note_manager.models import Note, Notification
from note_manager.storage import JsonFileBackend
from note_manager.store import NotesStore

# ---------------------------------------------------------------------------
# ANSI colours
# ---------------------------------------------------------------------------
BOLD = "\033[1m"
DIM = "\033[2m"
RESET = "\033[0m"
CYAN = "\033[96m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
MAGENTA = "\033[95m"


def banner(text: str) -> None:
    """Print a bold cyan banner."""
    width = 60
    print()
    print(f"{CYAN}{BOLD}{'=' * width}{RESET}")
    print(f"{CYAN}{BOLD}  {text}{RESET}")
    print(f"{CYAN}{BOLD}{'=' * width}{RESET}")
    print()


def step(number: int, title: str) -> None:
    """Print a step header."""
    print(f"\n{YELLOW}{BOLD}--- Step {number}: {title} ---{RESET}\n")


def print_notification(notification: Notification) -> None:
    """Notifier that prints store results in colour."""
    if notification.is_error:
        print(f"  {RED}Error: {notification.message}{RESET}")
    else:
        print(f"  {GREEN}Operation Result: {notification.message}{RESET}")


def print_titles(store: NotesStore) -> None:
    """Print the titles currently in the store."""
    titles = [n.title for n in store.list_notes()]
    print(f"  {MAGENTA}Notes now:{RESET} {titles if titles else '(empty)'}")


# ---------------------------------------------------------------------------
# Demo flow
# ---------------------------------------------------------------------------


async def run(data_dir: Path, key: str) -> None:
    """Run the full walkthrough against a file backend in ``data_dir``."""
    banner("📝 Notes Undo/Redo Demo")
    backend = JsonFileBackend(data_dir)

    step(1, "Add two notes")
    store = NotesStore(backend, notifier=print_notification)
    store.add(
        Note.create(
            "Things to Study",
            "How to structure projects. Depending on what kind of project you "
            "have, which framework you use and more, you will have to "
            "structure the project differently.",
        )
    )
    store.add(
        Note.create(
            "2nd Note",
            "Just another note created solely with the intent of testing the "
            "code to see how it handles certain things.",
        )
    )

    step(2, f"Save to {backend.describe_key(key)}")
    await store.save(key)

    step(3, "Load into a fresh store and list")
    fresh = NotesStore(backend, notifier=print_notification)
    await fresh.load(key)
    print()
    for line in fresh.listing().splitlines():
        print(f"  {DIM}{line}{RESET}")

    step(4, "Loading again skips ids already present")
    await fresh.load(key)
    print_titles(fresh)

    step(5, "Groceries: add, delete, undo, undo, redo, redo")
    groceries = Note.create("Groceries", "milk, eggs")
    store.add(groceries)
    store.delete_by_id(groceries.id)
    print_titles(store)
    for replay in (store.undo, store.undo, store.redo, store.redo):
        replay()
        print_titles(store)

    step(6, "A fresh delete clears the redo history")
    store.undo()
    store.delete_by_id(store.list_notes()[0].id)
    store.redo()
    print_titles(store)

    banner("🎯 Demo Complete!")


def main() -> None:
    """Parse arguments and run the demo."""
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=None,
        help="Directory for the notes file (default: a temporary directory)",
    )
    parser.add_argument("--key", default="notesData", help="Collection file name")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    )
    if args.data_dir is not None:
        asyncio.run(run(args.data_dir, args.key))
        return
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(run(Path(tmp), args.key))


if __name__ == "__main__":
    main()
