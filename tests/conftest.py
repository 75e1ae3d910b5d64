import json
import os
import sys

import pytest

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

import todo_tui as tt  # noqa: E402


@pytest.fixture
def todo_path(tmp_path):
    """Return a todo file path inside an isolated temp directory."""
    return tmp_path / "todos.json"


@pytest.fixture
def write_todos(todo_path):
    def _write(payload):
        if isinstance(payload, str):
            todo_path.write_text(payload, encoding="utf-8")
        else:
            todo_path.write_text(json.dumps(payload), encoding="utf-8")
        return todo_path
    return _write


@pytest.fixture
def make_store(todo_path):
    """Build a loaded TaskStore holding the given texts (all persisted)."""
    def _make(*texts):
        store = tt.TaskStore(str(todo_path))
        store.load_or_empty()
        for text in texts:
            store.add(text)
        return store
    return _make


@pytest.fixture
def read_todos(todo_path):
    def _read():
        with open(todo_path, "r", encoding="utf-8") as f:
            return json.load(f)
    return _read
