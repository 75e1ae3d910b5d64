from types import SimpleNamespace

import pytest
from prompt_toolkit import Application
from prompt_toolkit.input import DummyInput
from prompt_toolkit.keys import Keys
from prompt_toolkit.output import DummyOutput

import todo_tui as tt


def dummy_event(data=''):
    exits = []
    app = SimpleNamespace(exit=lambda: exits.append(True), invalidate=lambda: None)
    return SimpleNamespace(data=data, app=app, exits=exits)


@pytest.fixture
def ui(make_store):
    def _build(*items, cfg=None):
        controller = tt.SessionController(make_store(*items))
        app = tt.build_app(controller, cfg or tt.Config(), input=DummyInput(), output=DummyOutput())
        kb = app.key_bindings

        def press(key, data=''):
            event = dummy_event(data)
            binding = find_binding(kb, key)
            if binding.filter():
                binding.handler(event)
            return event

        return SimpleNamespace(controller=controller, app=app, kb=kb, press=press)
    return _build


def find_binding(kb, key):
    for binding in kb.bindings:
        if binding.keys == (key,):
            return binding
    raise AssertionError(f'Binding for {key!r} not found')


def test_build_app_returns_application(ui):
    ctx = ui('A')
    assert isinstance(ctx.app, Application)
    for key in ('j', 'k', Keys.Up, Keys.Down, ' ', 'a', 'd', 'q', Keys.ControlM, Keys.Escape, Keys.ControlH, Keys.Any, Keys.ControlC):
        find_binding(ctx.kb, key)


def test_navigation_and_toggle_through_bindings(ui, read_todos):
    ctx = ui('A', 'B')
    ctx.press('j', 'j')
    assert ctx.controller.selected == 1
    ctx.press(Keys.Up)
    assert ctx.controller.selected == 0
    ctx.press(' ', ' ')
    assert [r['done'] for r in read_todos()] == [True, False]


def test_typing_a_todo_through_bindings(ui, read_todos):
    ctx = ui()
    ctx.press('a', 'a')
    assert ctx.controller.mode == tt.MODE_INSERT
    # bound letters type themselves while inserting; others go through the catch-all
    ctx.press('q', 'q')
    ctx.press(Keys.Any, 'x')
    ctx.press(' ', ' ')
    ctx.press(Keys.Any, '!')
    ctx.press(Keys.ControlH)
    assert ctx.controller.draft == 'qx '
    ctx.press(Keys.ControlM)
    assert ctx.controller.mode == tt.MODE_NORMAL
    assert read_todos() == [{'id': 1, 'text': 'qx', 'done': False}]


def test_catch_all_inactive_in_normal_mode(ui):
    ctx = ui()
    binding = find_binding(ctx.kb, Keys.Any)
    assert binding.filter() is False
    ctx.press('a', 'a')
    assert binding.filter() is True


def test_escape_cancels_insert(ui, todo_path):
    ctx = ui()
    ctx.press('a', 'a')
    ctx.press(Keys.Any, 'z')
    ctx.press(Keys.Escape)
    assert ctx.controller.mode == tt.MODE_NORMAL
    assert ctx.controller.draft == ''
    assert not todo_path.exists()


def test_quit_key_exits_app(ui):
    ctx = ui('A')
    event = ctx.press('q', 'q')
    assert event.exits == [True]
    other = ctx.press('j', 'j')
    assert other.exits == []


def test_ctrl_c_exits_in_any_mode(ui):
    ctx = ui()
    ctx.press('a', 'a')
    event = ctx.press(Keys.ControlC)
    assert event.exits == [True]


def test_configured_keys_are_bound(ui):
    cfg = tt.Config(keys=tt.merge_keys({'toggle': 'x'}))
    ctx = ui('A', cfg=cfg)
    ctx.press('x', 'x')
    assert ctx.controller.store.tasks[0].done is True
    with pytest.raises(AssertionError):
        find_binding(ctx.kb, ' ')


def test_invalid_key_name_raises_config_error(make_store):
    cfg = tt.Config(keys=tt.merge_keys({'quit': 'not-a-key'}))
    controller = tt.SessionController(make_store())
    with pytest.raises(tt.ConfigError):
        tt.build_app(controller, cfg, input=DummyInput(), output=DummyOutput())


def test_build_fragments_marks_selection_and_done(make_store):
    controller = tt.SessionController(make_store('A', 'B'))
    controller.handle(tt.InputEvent(tt.EV_TOGGLE))
    frags = tt.build_fragments(controller.view())
    assert frags[0] == ('class:task.selected', '► [✓] ')
    assert frags[1] == ('class:task.selected class:task.done', 'A')
    assert ('', '  [ ] ') in frags
    assert ('class:task', 'B') in frags
    assert frags[-1] != ('', '\n')


def test_build_fragments_empty_list():
    view = tt.ViewModel(tasks=(), mode=tt.MODE_NORMAL, draft='')
    assert tt.build_fragments(view) == [('class:hint', 'Nothing to do yet.')]


def test_input_and_status_fragments():
    view = tt.ViewModel(tasks=(tt.TaskView('A', True, True),), mode=tt.MODE_INSERT, draft='ne', status='Save failed: x')
    text = ''.join(t for _, t in tt.build_input_fragments(view))
    assert text.startswith('New todo: ne')
    assert 'Enter to confirm' in text and 'Esc to cancel' in text
    status = ''.join(t for _, t in tt.build_status_bar(view))
    assert 'INSERT' in status and '1/1 done' in status and 'Save failed: x' in status

    normal = tt.ViewModel(tasks=(), mode=tt.MODE_NORMAL, draft='')
    assert tt.build_input_fragments(normal) == [('class:input', "Press 'a' to add a new todo")]


def test_key_help_title_uses_keymap():
    title = tt.key_help_title(tt.merge_keys({'delete': 'x'}))
    assert '↑/↓: navigate' in title
    assert 'Space: toggle' in title
    assert 'x: delete' in title


def test_format_plain():
    view = tt.ViewModel(
        tasks=(tt.TaskView('A', True, False), tt.TaskView('multi\nline', False, True)),
        mode=tt.MODE_NORMAL, draft='', status='note',
    )
    assert tt.format_plain(view) == 'Tasks: 2 (done 1)\n  [x] A\n> [ ] multi line\nnote'
