"""Textual integration for stanx. Opt-in — requires textual.

Binds store subscriptions to widgets. Guards, NoMatches handling and thread
marshaling are enforced here rather than at call sites, and Textual coupling
stays in this module so the core store remains framework agnostic.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded callbacks during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def _guard(app, fn):
    """Wrap fn so it only runs when the app is safe, on the app's thread."""
    main = threading.get_ident()

    def _safe(*args):
        try:
            fn(*args)
        except NoMatches:
            pass

    def _guarded(*args):
        if not is_safe(app):
            return
        if threading.get_ident() != main:
            app.call_from_thread(_safe, *args)
        else:
            _safe(*args)

    return _guarded


def bind(app, store, fields, callback, *, fire_immediately=True):
    """Call callback(snapshot) whenever one of fields changes.

    The snapshot is a dict of the bound fields from ``store.select``; it keeps
    its identity while the values stay equal, so an unchanged snapshot is not
    delivered twice. Returns the disposer.
    """
    names = [fields] if isinstance(fields, str) else list(fields)
    snapshot = store.select(*names)
    last = [snapshot()]
    guarded = _guard(app, callback)

    def _on_change(*_):
        current = snapshot()
        if current is last[0]:
            return
        last[0] = current
        guarded(current)

    if fire_immediately:
        guarded(last[0])
    return store.subscribe(names)(_on_change)


def effect(app, store, run, fields=None):
    """store.effect() that safely bridges to Textual widgets.

    Dependencies are discovered from the first guarded run. If the app is not
    safe at that moment nothing is read, and the effect listens to every field.
    """
    return store.effect(_guard(app, run), fields)
