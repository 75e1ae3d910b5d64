#!/usr/bin/env python3
# todo_tui: Terminal todo list with modal editing and crash-safe persistence
#
# Hotkeys (normal mode)
#   k/up     move selection up
#   j/down   move selection down
#   space    toggle done for the selected todo
#   a        add a todo (enters insert mode)
#   d        delete the selected todo
#   q        quit
#
# Hotkeys (insert mode)
#   enter      save the typed todo
#   escape     discard the typed todo
#   backspace  delete the last typed character
#
# Notes
# - The list lives in ./todos.json by default (override with --file, TODO_TUI_FILE
#   or the config file). Every change is written immediately through a temp file
#   and an atomic rename, so there is nothing to save on exit.
# - An unreadable todos.json is ignored at startup and kept aside as
#   todos.json.corrupt on the first save.
# - Key bindings and colours can be overridden in a YAML config (--config).

from __future__ import annotations

import argparse
import json
import os
import shutil
import sys
import tempfile
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

import yaml
from prompt_toolkit import Application
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.keys import Keys
from prompt_toolkit.layout import HSplit, Layout, Window
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.styles import Style
from prompt_toolkit.widgets import Frame
import logging
from logging.handlers import RotatingFileHandler


logger = logging.getLogger('todo_tui')

DEFAULT_FILE = "todos.json"
DEFAULT_LOG_FILE = "~/.todo_tui.log"
CORRUPT_SUFFIX = ".corrupt"

HELP_TASKS = [
    "Press 'a' to add a todo",
    "Press 'Space' to toggle completion",
    "Press 'd' to delete a todo",
    "Press 'q' to quit",
]


# -----------------------------
# Errors
# -----------------------------
class TodoError(Exception):
    """Base class for every error raised by todo_tui."""


class EmptyInput(TodoError):
    """A todo was submitted with blank text."""


class NotFound(TodoError):
    """No todo with the requested id exists."""


class CorruptStorage(TodoError):
    """The todo file exists but cannot be parsed."""


class StorageIOError(TodoError):
    """Reading or writing the todo file failed at the OS level."""


class ConfigError(TodoError):
    """Invalid configuration file, key binding or option."""


# -----------------------------
# Modes, events and key bindings
# -----------------------------
MODE_NORMAL = "normal"
MODE_INSERT = "insert"

EV_MOVE_UP = "move-up"
EV_MOVE_DOWN = "move-down"
EV_TOGGLE = "toggle"
EV_DELETE = "delete"
EV_BEGIN_INSERT = "begin-insert"
EV_QUIT = "quit"
EV_CHAR = "char"
EV_BACKSPACE = "backspace"
EV_CONFIRM = "confirm"
EV_CANCEL = "cancel"

NORMAL_ACTIONS: Tuple[str, ...] = (EV_MOVE_UP, EV_MOVE_DOWN, EV_TOGGLE, EV_DELETE, EV_BEGIN_INSERT, EV_QUIT)
INSERT_ACTIONS: Tuple[str, ...] = (EV_CONFIRM, EV_CANCEL, EV_BACKSPACE)

DEFAULT_KEYS: Dict[str, List[str]] = {
    EV_MOVE_UP: ["up", "k"],
    EV_MOVE_DOWN: ["down", "j"],
    EV_TOGGLE: ["space"],
    EV_DELETE: ["d"],
    EV_BEGIN_INSERT: ["a"],
    EV_QUIT: ["q"],
    EV_CONFIRM: ["enter"],
    EV_CANCEL: ["escape"],
    EV_BACKSPACE: ["backspace"],
}

# Named keys accepted inside <...> in a --keys script
SCRIPT_KEY_NAMES = {"up", "down", "left", "right", "enter", "escape", "backspace", "tab", "delete", "home", "end"}


@dataclass(frozen=True)
class InputEvent:
    kind: str
    char: str = ""


def _default_keymap() -> Dict[str, List[str]]:
    return {action: list(keys) for action, keys in DEFAULT_KEYS.items()}


def _normalize_key(key: str) -> str:
    return "space" if key == " " else key


def merge_keys(overrides: Optional[Dict[str, object]]) -> Dict[str, List[str]]:
    """Merge per-action key overrides over DEFAULT_KEYS.

    Each override replaces the whole key list of its action. A key may not be
    bound to two actions of the same mode.
    """
    keymap = _default_keymap()
    if not overrides:
        return keymap
    if not isinstance(overrides, dict):
        raise ConfigError("Config: 'keys' must be a mapping of action -> key(s).")
    for action, raw_keys in overrides.items():
        if action not in keymap:
            known = ", ".join(sorted(keymap))
            raise ConfigError(f"Config: unknown key action '{action}' (known: {known}).")
        keys = [raw_keys] if isinstance(raw_keys, str) else raw_keys
        if not isinstance(keys, list) or not keys or not all(isinstance(k, str) and k for k in keys):
            raise ConfigError(f"Config: keys for '{action}' must be a key name or a non-empty list of key names.")
        keymap[action] = [_normalize_key(k) for k in keys]
    for actions in (NORMAL_ACTIONS, INSERT_ACTIONS):
        seen: Dict[str, str] = {}
        for action in actions:
            for key in keymap[action]:
                if key in seen and seen[key] != action:
                    raise ConfigError(f"Config: key '{key}' is bound to both '{seen[key]}' and '{action}'.")
                seen[key] = action
    return keymap


def event_for_key(mode: str, key: str, data: str = "", keymap: Optional[Dict[str, List[str]]] = None) -> Optional[InputEvent]:
    """Translate one key press into an InputEvent for the given mode.

    Normal mode only knows its bound actions. Insert mode checks its own
    actions first and turns any other printable character into a char event.
    Returns None for keys with no meaning in the current mode.
    """
    keymap = keymap or DEFAULT_KEYS
    actions = INSERT_ACTIONS if mode == MODE_INSERT else NORMAL_ACTIONS
    if key:
        for action in actions:
            if key in keymap.get(action, ()):
                return InputEvent(action)
    if mode == MODE_INSERT and len(data) == 1 and data.isprintable():
        return InputEvent(EV_CHAR, data)
    return None


def parse_key_script(script: str) -> List[Tuple[str, str]]:
    """Split a --keys script into (key name, typed data) pairs.

    Plain characters stand for themselves, newlines for enter, and <name>
    for named keys such as <up>, <enter>, <escape>, <backspace> or <space>.
    Use <lt> for a literal '<'.
    """
    keys: List[Tuple[str, str]] = []
    i = 0
    while i < len(script):
        ch = script[i]
        if ch == "<":
            end = script.find(">", i + 1)
            if end == -1:
                raise ValueError(f"Unterminated key name at position {i} in key script")
            name = script[i + 1:end].strip().lower()
            if name == "lt":
                keys.append(("<", "<"))
            elif name == "space":
                keys.append(("space", " "))
            elif name in SCRIPT_KEY_NAMES:
                keys.append((name, ""))
            else:
                raise ValueError(f"Unknown key <{name}> in key script")
            i = end + 1
            continue
        if ch in "\r\n":
            keys.append(("enter", ""))
        elif ch == " ":
            keys.append(("space", " "))
        else:
            keys.append((ch, ch))
        i += 1
    return keys


# -----------------------------
# Config
# -----------------------------
@dataclass
class Config:
    file: str = DEFAULT_FILE
    log_file: str = DEFAULT_LOG_FILE
    log_level: str = "ERROR"
    keys: Dict[str, List[str]] = field(default_factory=_default_keymap)
    style: Dict[str, str] = field(default_factory=dict)
    seed_help: bool = False


def load_config(path: str) -> Config:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as exc:
        raise ConfigError(f"Config: cannot read {path}: {exc.strerror or exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config: invalid YAML in {path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("Config: top level must be a mapping.")
    cfg = Config()
    for name in ("file", "log_file", "log_level"):
        if name not in raw:
            continue
        value = raw[name]
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(f"Config: '{name}' must be a non-empty string.")
        setattr(cfg, name, value.strip())
    cfg.keys = merge_keys(raw.get("keys"))
    style = raw.get("style") or {}
    if not isinstance(style, dict) or not all(isinstance(k, str) and isinstance(v, str) for k, v in style.items()):
        raise ConfigError("Config: 'style' must map style class names to style strings.")
    cfg.style = dict(style)
    seed = raw.get("seed_help", False)
    if not isinstance(seed, bool):
        raise ConfigError("Config: 'seed_help' must be true or false.")
    cfg.seed_help = seed
    return cfg


def setup_logging(log_path: str, log_level: str = "ERROR") -> logging.Logger:
    """Attach a rotating file handler to the todo_tui logger.

    Handlers are reset on every call so the CLI level always wins. The
    terminal belongs to the full-screen UI, so nothing goes to stderr.
    """
    log = logging.getLogger('todo_tui')
    for h in list(log.handlers):
        log.removeHandler(h)
        h.close()
    log.setLevel(logging.DEBUG)
    path = os.path.expanduser(log_path)
    directory = os.path.dirname(path)
    if directory and not os.path.isdir(directory):
        os.makedirs(directory, exist_ok=True)
    fh = RotatingFileHandler(path, maxBytes=2000000, backupCount=2, encoding='utf-8')
    lvl = getattr(logging, str(log_level).upper(), None)
    fh.setLevel(lvl if isinstance(lvl, int) else logging.ERROR)
    fh.setFormatter(logging.Formatter('%(asctime)s %(levelname)s %(message)s'))
    log.addHandler(fh)
    return log


# -----------------------------
# Storage
# -----------------------------
@dataclass
class Task:
    id: int
    text: str
    done: bool = False


def task_to_dict(task: Task) -> Dict[str, object]:
    return {"id": task.id, "text": task.text, "done": task.done}


def _encodable(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class TaskStore:
    """Ordered todo list plus the JSON file that backs it.

    Mutators write the whole list before returning, so the file always
    matches ``tasks`` once control is back with the caller. Ids are never
    renumbered; new ids continue after the highest id seen this session.
    """

    def __init__(self, path: str = DEFAULT_FILE):
        self.path = path
        self.tasks: List[Task] = []
        self.corrupt = False
        self._next_id = 1

    # --- load ---
    def load(self) -> List[Task]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw_text = f.read()
        except FileNotFoundError:
            logger.debug("No todo file at %s; starting empty", self.path)
            self._replace([])
            return self.tasks
        except UnicodeDecodeError as exc:
            raise CorruptStorage(f"{self.path}: not valid UTF-8") from exc
        except OSError as exc:
            raise StorageIOError(f"{self.path}: {exc.strerror or exc}") from exc
        try:
            data = json.loads(raw_text)
        except ValueError as exc:
            raise CorruptStorage(f"{self.path}: invalid JSON ({exc})") from exc
        except RecursionError as exc:
            raise CorruptStorage(f"{self.path}: JSON nested too deeply") from exc
        self._replace(self._parse(data))
        logger.debug("Loaded %d todos from %s", len(self.tasks), self.path)
        return self.tasks

    def load_or_empty(self) -> List[Task]:
        """Startup policy: a corrupt file never blocks the session."""
        try:
            return self.load()
        except CorruptStorage as exc:
            logger.warning("Ignoring unreadable todo file: %s", exc)
            self.corrupt = True
            self._replace([])
            return self.tasks

    def _parse(self, data: object) -> List[Task]:
        if not isinstance(data, list):
            raise CorruptStorage(f"{self.path}: expected a JSON array of todos")
        parsed: List[Tuple[Optional[int], str, bool]] = []
        seen_ids = set()
        for pos, raw in enumerate(data):
            if not isinstance(raw, dict):
                raise CorruptStorage(f"{self.path}: entry {pos} is not an object")
            text = raw.get("text")
            if not isinstance(text, str) or not text.strip():
                raise CorruptStorage(f"{self.path}: entry {pos} has no text")
            if not _encodable(text):
                # JSON \ud800-style escapes decode to lone surrogates that UTF-8 cannot write back
                raise CorruptStorage(f"{self.path}: entry {pos} has text that is not valid Unicode")
            # files written by the first release used "completed" and had no ids
            done = raw.get("done", raw.get("completed", False))
            if not isinstance(done, bool):
                raise CorruptStorage(f"{self.path}: entry {pos} has a non-boolean done flag")
            tid = raw.get("id")
            if tid is not None:
                if isinstance(tid, bool) or not isinstance(tid, int) or tid < 1:
                    raise CorruptStorage(f"{self.path}: entry {pos} has an invalid id")
                if tid in seen_ids:
                    raise CorruptStorage(f"{self.path}: duplicate id {tid}")
                seen_ids.add(tid)
            parsed.append((tid, text, done))
        next_id = max(seen_ids, default=0) + 1
        tasks: List[Task] = []
        for tid, text, done in parsed:
            if tid is None:
                tid = next_id
                next_id += 1
            tasks.append(Task(id=tid, text=text, done=done))
        return tasks

    def _replace(self, tasks: List[Task]) -> None:
        self.tasks = tasks
        self._next_id = max((t.id for t in tasks), default=0) + 1

    # --- save ---
    def save(self, tasks: Optional[List[Task]] = None) -> None:
        """Write the list atomically (temp file in the same directory + rename)."""
        if tasks is not None and tasks is not self.tasks:
            self._replace(tasks)
        payload = [task_to_dict(t) for t in self.tasks]
        target = os.path.abspath(self.path)
        directory = os.path.dirname(target)
        tmp_path: Optional[str] = None
        try:
            os.makedirs(directory, exist_ok=True)
            if self.corrupt:
                self._keep_corrupt_copy(target)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix="." + os.path.basename(target) + ".", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            # mkstemp creates 0600 files; keep whatever mode todos.json already has
            if os.path.exists(target):
                shutil.copymode(target, tmp_path)
            os.replace(tmp_path, target)
            tmp_path = None
        except OSError as exc:
            logger.exception("Unable to save todos to %s", target)
            raise StorageIOError(f"{self.path}: {exc.strerror or exc}") from exc
        except UnicodeEncodeError as exc:
            logger.exception("Unable to encode todos for %s", target)
            raise StorageIOError(f"{self.path}: text is not valid Unicode") from exc
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove temp file %s", tmp_path, exc_info=True)
        self.corrupt = False
        logger.debug("Saved %d todos to %s", len(payload), target)

    def _keep_corrupt_copy(self, target: str) -> None:
        if not os.path.exists(target):
            return
        # never overwrite a backup left by an earlier run
        backup = target + CORRUPT_SUFFIX
        n = 1
        while os.path.exists(backup):
            backup = f"{target}{CORRUPT_SUFFIX}.{n}"
            n += 1
        try:
            shutil.copy2(target, backup)
            logger.warning("Kept unreadable todo file as %s", backup)
        except OSError:
            logger.warning("Could not back up unreadable todo file %s", target, exc_info=True)

    # --- queries ---
    def index_of(self, task_id: int) -> int:
        for idx, task in enumerate(self.tasks):
            if task.id == task_id:
                return idx
        raise NotFound(f"No todo with id {task_id}")

    # --- mutators ---
    def add(self, text: str) -> Task:
        text = (text or "").strip()
        if not text:
            raise EmptyInput("Todo text is empty")
        task = Task(id=self._next_id, text=text, done=False)
        self._next_id += 1
        self.tasks.append(task)
        self.save()
        return task

    def toggle(self, task_id: int) -> Task:
        task = self.tasks[self.index_of(task_id)]
        task.done = not task.done
        self.save()
        return task

    def remove(self, task_id: int) -> Task:
        task = self.tasks.pop(self.index_of(task_id))
        self.save()
        return task


def seed_help_tasks(store: TaskStore) -> None:
    """Fill an empty list with the first-run hints."""
    if store.tasks:
        return
    for text in HELP_TASKS:
        store.add(text)


# -----------------------------
# Session state machine
# -----------------------------
@dataclass(frozen=True)
class TaskView:
    text: str
    done: bool
    selected: bool


@dataclass(frozen=True)
class ViewModel:
    tasks: Tuple[TaskView, ...]
    mode: str
    draft: str
    status: str = ""


class SessionController:
    def __init__(self, store: TaskStore):
        self.store = store
        self.mode = MODE_NORMAL
        self.draft = ""
        self.status_line = ""
        self.selected: Optional[int] = 0 if store.tasks else None

    def handle(self, event: InputEvent) -> bool:
        """Apply one input event. Returns False once the session should end."""
        logger.debug("event %s mode=%s selected=%s", event.kind, self.mode, self.selected)
        self._clamp_selection()
        if self.mode == MODE_INSERT:
            self._handle_insert(event)
            return True
        if event.kind == EV_QUIT:
            return False
        self._handle_normal(event)
        return True

    def _handle_normal(self, event: InputEvent) -> None:
        kind = event.kind
        if kind == EV_BEGIN_INSERT:
            self.mode = MODE_INSERT
            self.draft = ""
            self.status_line = ""
            return
        tasks = self.store.tasks
        if self.selected is None:
            return
        if kind == EV_MOVE_UP:
            self.selected = max(self.selected - 1, 0)
        elif kind == EV_MOVE_DOWN:
            self.selected = min(self.selected + 1, len(tasks) - 1)
        elif kind == EV_TOGGLE:
            self._mutate(self.store.toggle, tasks[self.selected].id)
        elif kind == EV_DELETE:
            self._mutate(self.store.remove, tasks[self.selected].id)
            self._clamp_selection()

    def _handle_insert(self, event: InputEvent) -> None:
        kind = event.kind
        if kind == EV_CHAR:
            self.draft += event.char
        elif kind == EV_BACKSPACE:
            self.draft = self.draft[:-1]
        elif kind == EV_CANCEL:
            self.draft = ""
            self.mode = MODE_NORMAL
            self.status_line = ""
        elif kind == EV_CONFIRM:
            self._commit_draft()

    def _commit_draft(self) -> None:
        before = len(self.store.tasks)
        try:
            self.store.add(self.draft)
        except EmptyInput:
            logger.debug("Ignored blank todo")
            self.status_line = ""
        except StorageIOError as exc:
            self._save_failed(exc)
        else:
            self.status_line = ""
        # a failed save still keeps the new todo in memory
        if len(self.store.tasks) > before:
            self.selected = len(self.store.tasks) - 1
        self.draft = ""
        self.mode = MODE_NORMAL

    def _mutate(self, action: Callable[[int], Task], task_id: int) -> None:
        try:
            action(task_id)
        except NotFound:
            logger.debug("Todo %s vanished before %s", task_id, action.__name__)
        except StorageIOError as exc:
            self._save_failed(exc)
        else:
            self.status_line = ""

    def _save_failed(self, exc: StorageIOError) -> None:
        self.status_line = f"Save failed: {exc}"

    def _clamp_selection(self) -> None:
        count = len(self.store.tasks)
        if count == 0:
            self.selected = None
        elif self.selected is None:
            self.selected = 0
        else:
            self.selected = max(0, min(self.selected, count - 1))

    def view(self) -> ViewModel:
        self._clamp_selection()
        rows = tuple(
            TaskView(text=t.text, done=t.done, selected=(idx == self.selected))
            for idx, t in enumerate(self.store.tasks)
        )
        return ViewModel(tasks=rows, mode=self.mode, draft=self.draft, status=self.status_line)


def run_session(controller: SessionController, events: Iterable[InputEvent],
                on_view: Optional[Callable[[ViewModel], None]] = None) -> ViewModel:
    """Pull events one at a time until quit or the source runs dry."""
    for event in events:
        keep_going = controller.handle(event)
        if on_view is not None:
            on_view(controller.view())
        if not keep_going:
            break
    return controller.view()


def script_events(controller: SessionController, keys: Iterable[Tuple[str, str]],
                  keymap: Optional[Dict[str, List[str]]] = None) -> Iterator[InputEvent]:
    # mode is read lazily so each key is mapped after the previous event ran
    for key, data in keys:
        event = event_for_key(controller.mode, key, data, keymap)
        if event is not None:
            yield event


# -----------------------------
# UI helpers (fragments only)
# -----------------------------
BASE_STYLE: Dict[str, str] = {
    'task': '#f0f0f0',
    'task.done': '#808080 strike',
    'task.selected': 'bg:ansiblue bold',
    'hint': 'italic #87d7ff',
    'input': '',
    'input.active': 'ansiyellow',
    'status': 'reverse',
    'status.message': 'bold #ff8787',
}

_KEY_LABELS = {
    'up': '↑', 'down': '↓', 'space': 'Space', 'enter': 'Enter',
    'escape': 'Esc', 'backspace': 'Bksp',
}


def _sanitize_text(s: Optional[str]) -> str:
    return (s or "").replace("\n", " ").replace("\r", " ")


def _key_label(keys: List[str]) -> str:
    return "/".join(_KEY_LABELS.get(k, k) for k in keys)


def key_help_title(keymap: Dict[str, List[str]]) -> str:
    nav = _key_label(keymap[EV_MOVE_UP][:1] + keymap[EV_MOVE_DOWN][:1])
    return (f"📝 Todo List ({nav}: navigate, {_key_label(keymap[EV_TOGGLE])}: toggle, "
            f"{_key_label(keymap[EV_BEGIN_INSERT])}: add, {_key_label(keymap[EV_DELETE])}: delete, "
            f"{_key_label(keymap[EV_QUIT])}: quit)")


def build_fragments(view: ViewModel) -> List[Tuple[str, str]]:
    """Return a list of (style, text) tuples for the todo list control."""
    if not view.tasks:
        return [("class:hint", "Nothing to do yet.")]
    frags: List[Tuple[str, str]] = []
    for t in view.tasks:
        marker = "► " if t.selected else "  "
        box = "[✓] " if t.done else "[ ] "
        text_style = "class:task.done" if t.done else "class:task"
        if t.selected:
            frags.append(("class:task.selected", marker + box))
            frags.append((f"class:task.selected {text_style}", _sanitize_text(t.text)))
        else:
            frags.append(("", marker + box))
            frags.append((text_style, _sanitize_text(t.text)))
        frags.append(("", "\n"))
    frags.pop()
    return frags


def build_input_fragments(view: ViewModel, keymap: Optional[Dict[str, List[str]]] = None) -> List[Tuple[str, str]]:
    keymap = keymap or DEFAULT_KEYS
    if view.mode == MODE_INSERT:
        hint = f" (Press {_key_label(keymap[EV_CONFIRM])} to confirm, {_key_label(keymap[EV_CANCEL])} to cancel)"
        return [("class:input.active", f"New todo: {view.draft}"), ("class:hint", hint)]
    return [("class:input", f"Press '{_key_label(keymap[EV_BEGIN_INSERT])}' to add a new todo")]


def build_status_bar(view: ViewModel) -> List[Tuple[str, str]]:
    mode = "INSERT" if view.mode == MODE_INSERT else "NORMAL"
    done = sum(1 for t in view.tasks if t.done)
    frags = [("class:status", f" {mode}  {done}/{len(view.tasks)} done ")]
    if view.status:
        frags.append(("class:status.message", f" {view.status}"))
    return frags


def format_plain(view: ViewModel) -> str:
    """Plain-text rendering used by --no-ui and --keys."""
    done = sum(1 for t in view.tasks if t.done)
    lines = [f"Tasks: {len(view.tasks)} (done {done})"]
    for t in view.tasks:
        marker = ">" if t.selected else " "
        box = "[x]" if t.done else "[ ]"
        lines.append(f"{marker} {box} {_sanitize_text(t.text)}")
    if view.status:
        lines.append(view.status)
    return "\n".join(lines)


# -----------------------------
# TUI
# -----------------------------
def build_app(controller: SessionController, cfg: Config, input=None, output=None) -> Application:
    """Full-screen list with a one-line input panel and a status bar.

    Every bound key goes through event_for_key so the controller stays the
    only place that knows about modes.
    """
    keymap = cfg.keys
    style_rules = dict(BASE_STYLE)
    style_rules.update(cfg.style)
    style = Style.from_dict(style_rules)
    app: Optional[Application] = None

    list_control = FormattedTextControl(text=lambda: build_fragments(controller.view()))
    input_control = FormattedTextControl(text=lambda: build_input_fragments(controller.view(), keymap))
    status_control = FormattedTextControl(text=lambda: build_status_bar(controller.view()))
    container = HSplit([
        Frame(Window(content=list_control, wrap_lines=False, always_hide_cursor=True), title=key_help_title(keymap)),
        Frame(Window(content=input_control, height=1, always_hide_cursor=True), title="Input"),
        Window(content=status_control, height=1, style="class:status"),
    ])

    kb = KeyBindings()
    is_insert = Condition(lambda: controller.mode == MODE_INSERT)

    def invalidate():
        if app is not None:
            app.invalidate()

    def dispatch(event, key: str) -> None:
        ev = event_for_key(controller.mode, key, event.data or "", keymap)
        if ev is None:
            return
        if not controller.handle(ev):
            event.app.exit()
            return
        invalidate()

    bound = sorted({key for keys in keymap.values() for key in keys})
    for key_name in bound:
        try:
            @kb.add(key_name)
            def _(event, key=key_name):
                dispatch(event, key)
        except ValueError as exc:
            raise ConfigError(f"Config: invalid key name '{key_name}': {exc}") from exc

    # Catch-all printable character input while typing a todo
    @kb.add(Keys.Any, filter=is_insert)
    def _(event):
        dispatch(event, "")

    @kb.add('c-c')
    def _(event):
        event.app.exit()

    app = Application(layout=Layout(container), key_bindings=kb, full_screen=True, style=style,
                      input=input, output=output)
    return app


def run_ui(controller: SessionController, cfg: Config) -> None:
    app = build_app(controller, cfg)
    app.run()


# -----------------------------
# CLI
# -----------------------------
def main(argv: Optional[List[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Terminal todo list")
    ap.add_argument("--config", help="Path to YAML config (optional)")
    ap.add_argument("--file", help=f"Path to the todo JSON file (default ./{DEFAULT_FILE})")
    ap.add_argument("--log-level", help="File log level (DEBUG, INFO, WARNING, ERROR)")
    ap.add_argument("--log-file", help=f"Path to the rotating log file (default {DEFAULT_LOG_FILE})")
    ap.add_argument("--no-ui", action="store_true", help="Print the list and exit")
    ap.add_argument("--keys", metavar="SCRIPT", help="Apply a key script without a terminal, e.g. 'abuy milk<enter>'")
    ap.add_argument("--seed-help", action="store_true", help="Add the first-run hint todos when the list is empty")
    args = ap.parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else Config()
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)

    key_script: Optional[List[Tuple[str, str]]] = None
    if args.keys is not None:
        try:
            key_script = parse_key_script(args.keys)
        except ValueError as e:
            ap.error(str(e))

    try:
        setup_logging(args.log_file or cfg.log_file, args.log_level or cfg.log_level)
    except OSError as e:
        print(f"File logging disabled: {e}", file=sys.stderr)

    path = args.file or os.environ.get("TODO_TUI_FILE") or cfg.file
    store = TaskStore(path)
    try:
        store.load_or_empty()
    except StorageIOError as e:
        logger.error("Cannot read todo file: %s", e)
        print(f"Cannot read todo file: {e}", file=sys.stderr)
        sys.exit(1)

    startup_status = ""
    if store.corrupt:
        startup_status = f"Ignored unreadable {os.path.basename(path)}; starting empty"
    if (args.seed_help or cfg.seed_help) and not store.tasks:
        try:
            seed_help_tasks(store)
        except StorageIOError as e:
            startup_status = f"Save failed: {e}"

    controller = SessionController(store)
    controller.status_line = startup_status

    if args.no_ui:
        print(format_plain(controller.view()))
        return

    if key_script is not None:
        view = run_session(controller, script_events(controller, key_script, cfg.keys))
        print(format_plain(view))
        return

    try:
        run_ui(controller, cfg)
    except ConfigError as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
