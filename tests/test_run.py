import sys

import run


def test_importing_run_builds_no_app():
    assert not hasattr(run, "app")


def test_main_serves_app_on_requested_address(app, monkeypatch):
    served = {}
    monkeypatch.setattr(run, "create_app", lambda: app)
    monkeypatch.setattr(app, "run", lambda **kwargs: served.update(kwargs))
    monkeypatch.setattr(sys, "argv", ["linkdeck", "--host", "127.0.0.1", "--port", "9000"])

    run.main()

    assert served == {"host": "127.0.0.1", "port": 9000, "debug": False}
