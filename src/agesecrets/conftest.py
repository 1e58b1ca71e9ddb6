import os

import pytest

from agesecrets._output import NullBackend, output


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    for name in list(os.environ):
        if name.startswith("AGESECRETS_"):
            monkeypatch.delitem(os.environ, name)
    # Keep the default config file and identities out of the real home.
    monkeypatch.setitem(os.environ, "HOME", str(tmp_path / "home"))


@pytest.fixture(autouse=True)
def reset_output():
    backend, debug = output.backend, output.enable_debug
    output.backend = NullBackend()
    yield
    output.backend, output.enable_debug = backend, debug
