from __future__ import annotations

import importlib

import dbus.mainloop.glib

from bleperiph.core import config


def test_main_loop_setup_without_threads_init(monkeypatch):
    monkeypatch.delattr(dbus.mainloop.glib, "threads_init", raising=False)
    reloaded = importlib.reload(config)
    assert reloaded.DEFAULT_APPLICATION_PATH == "/org/bleperiph"
