import base64
import json
import os
import pathlib
import sys
import tempfile

import pytest

from agesecrets import Cancelled
from agesecrets.config import Configuration
from agesecrets.session import Prompter

FIXTURE = pathlib.Path(__file__).parent / "fixture"

REGISTRY = {
    "secrets/db.age": {"publicKeys": ["fake-pub-keyA", "fake-pub-keyB"]},
    "secrets/new.age": {"publicKeys": ["fake-pub-keyA"]},
    "secrets/protected.age": {"publicKeys": ["fake-pub-keyC"]},
    "secrets/nobody.age": {"publicKeys": []},
    "secrets/broken.age": {"publicKeys": ["ssh-rsa not-a-fake-key"]},
}


class Tools(object):
    """Fake age, ssh-keygen and nix-instantiate executables."""

    def __init__(self, basedir: pathlib.Path):
        self.bin = basedir / "bin"
        self.bin.mkdir()
        self.log = basedir / "tools.log"
        self.age = self._install("age", "fake_age.py")
        self.ssh_keygen = self._install("ssh-keygen", "fake_ssh_keygen.py")
        self.nix_instantiate = self._install(
            "nix-instantiate", "fake_nix_instantiate.py"
        )

    def _install(self, name, source):
        path = self.bin / name
        path.write_text(
            "#!{}\n".format(sys.executable) + (FIXTURE / source).read_text()
        )
        path.chmod(0o755)
        return str(path)

    def calls(self, tool=None):
        if not self.log.exists():
            return []
        lines = self.log.read_text().splitlines()
        calls = [json.loads(line) for line in lines]
        return [c["args"] for c in calls if tool is None or c["tool"] == tool]

    def decrypt_calls(self):
        return [args for args in self.calls("age") if "--decrypt" in args]

    def config(self, identities, **kw):
        return Configuration(
            age=self.age,
            ssh_keygen=self.ssh_keygen,
            nix_instantiate=self.nix_instantiate,
            identities=tuple(identities),
            **kw,
        )


@pytest.fixture
def tools(tmp_path, monkeypatch):
    tools = Tools(tmp_path)
    monkeypatch.setitem(os.environ, "FAKE_TOOLS_LOG", str(tools.log))
    return tools


@pytest.fixture
def keys(tmp_path):
    """keyA and keyB are unprotected, keyC needs the passphrase `sesame`."""
    keydir = tmp_path / "keys"
    keydir.mkdir()
    result = {}
    for name, passphrase in [
        ("keyA", None),
        ("keyB", None),
        ("keyC", "sesame"),
    ]:
        path = keydir / name
        content = "FAKEKEY {}\n".format(name)
        if passphrase:
            content += "PASSPHRASE {}\n".format(passphrase)
        path.write_text(content)
        path.chmod(0o600)
        result[name] = str(path)
    return result


@pytest.fixture
def project(tmp_path):
    """A directory governed by a registry, with a `secrets` subdirectory."""
    root = tmp_path / "project"
    (root / "secrets").mkdir(parents=True)
    (root / "secrets.nix").write_text(json.dumps(REGISTRY))
    return root


@pytest.fixture
def scratch(tmp_path, monkeypatch):
    """Redirect temporary files so leaks can be detected."""
    path = tmp_path / "scratch"
    path.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(path))
    monkeypatch.setattr(
        "agesecrets.identity.scratch_dir", lambda: str(path)
    )
    return path


def write_ciphertext(path, plaintext: bytes, recipients):
    """Write a secret in the format understood by the fake age."""
    path = pathlib.Path(path)
    path.write_text(
        json.dumps(
            {
                "recipients": list(recipients),
                "payload": base64.b64encode(plaintext).decode("ascii"),
            }
        )
    )
    return path


def read_plaintext(path) -> bytes:
    envelope = json.loads(pathlib.Path(path).read_text())
    return base64.b64decode(envelope["payload"])


class RecordingPrompter(Prompter):
    """Answers prompts from canned values and records what was asked."""

    def __init__(self, choice=None, passphrase=None):
        self.choice = choice
        self.secret = passphrase
        self.selections = []
        self.passphrase_requests = []
        self.forgotten = []

    def select_identity(self, candidates):
        self.selections.append(list(candidates))
        if self.choice is None:
            raise Cancelled.from_context("identity selection")
        return self.choice

    def passphrase(self, identity):
        self.passphrase_requests.append(identity)
        if self.secret is None:
            raise Cancelled.from_context("passphrase entry")
        return self.secret

    def forget(self, identity):
        self.forgotten.append(identity)
