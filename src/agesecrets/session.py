"""Decrypt-on-open and encrypt-on-save for a single secret file."""

import enum
import os
import pathlib
from typing import List, Optional

from agesecrets import DecryptError, IdentityUnlockError
from agesecrets._output import output
from agesecrets.config import Configuration
from agesecrets.encryption import Age
from agesecrets.identity import EphemeralIdentity, IdentityStore, is_protected
from agesecrets.registry import RegistryResolver


class State(enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"
    FAILED = "failed"


class Document(object):
    """The editing surface a session decrypts into.

    Hosts provide their own implementation. The session only needs the
    content, the modified flag and an opaque checkpoint of the editing
    state (cursor, undo history) that survives a reload.

    """

    text: str
    modified: bool
    read_only: bool

    def replace(self, text: str):
        raise NotImplementedError("replace() not implemented")

    def clear_undo(self):
        raise NotImplementedError("clear_undo() not implemented")

    def mark_unmodified(self):
        raise NotImplementedError("mark_unmodified() not implemented")

    def checkpoint(self):
        raise NotImplementedError("checkpoint() not implemented")

    def restore(self, token):
        raise NotImplementedError("restore() not implemented")


class Buffer(Document):
    """In-memory document with a cursor and a simple undo log."""

    def __init__(self, text=""):
        self.text = text
        self.modified = False
        self.read_only = False
        self.cursor = 0
        self.undo_log = []

    def edit(self, text):
        if self.read_only:
            raise RuntimeError("Buffer is read-only")
        self.undo_log.append(self.text)
        self.text = text
        self.cursor = min(self.cursor, len(text))
        self.modified = True

    def undo(self):
        if not self.undo_log:
            return
        self.text = self.undo_log.pop()
        self.cursor = min(self.cursor, len(self.text))
        self.modified = True

    def replace(self, text):
        self.text = text
        self.cursor = min(self.cursor, len(text))

    def clear_undo(self):
        self.undo_log = []

    def mark_unmodified(self):
        self.modified = False

    def checkpoint(self):
        return (self.cursor, list(self.undo_log))

    def restore(self, token):
        cursor, undo_log = token
        self.cursor = min(cursor, len(self.text))
        self.undo_log = list(undo_log)


class Prompter(object):
    """Interactive decisions needed while opening a secret.

    Raise `agesecrets.Cancelled` to abandon the open.

    """

    def select_identity(self, candidates: List[str]) -> str:
        raise NotImplementedError("select_identity() not implemented")

    def passphrase(self, identity: str) -> str:
        raise NotImplementedError("passphrase() not implemented")

    def forget(self, identity: str):
        """Drop anything remembered about `identity` after it failed."""


class SecretSession(object):
    """Owns the state of one opened secret.

    Recipients are resolved from the registry once, when the secret is
    opened, and used for every save until the session is closed.

    """

    recipients: Optional[List[str]] = None
    identity: Optional[str] = None
    is_new: bool = False

    def __init__(
        self,
        path,
        document: Document,
        prompter: Prompter,
        config: Configuration = Configuration(),
    ):
        self.path = pathlib.Path(os.path.abspath(str(path)))
        self.document = document
        self.prompter = prompter
        self.config = config
        self.registry = RegistryResolver(
            config.registry_name, config.nix_instantiate
        )
        self.identities = IdentityStore(config.identities)
        self.age = Age(config.age)
        self._state = State.CLOSED

    @property
    def state(self) -> State:
        if self._state == State.CLEAN and self.document.modified:
            return State.DIRTY
        return self._state

    @property
    def is_open(self):
        return self.state in (State.CLEAN, State.DIRTY)

    def open(self):
        if self._state not in (State.CLOSED, State.FAILED):
            raise RuntimeError(f"Secret {self.path} is already open")
        self._state = State.OPENING
        self.identity = None
        try:
            if self.config.setup_hook is not None:
                self.config.setup_hook()
            self.recipients = self.registry.recipients_for(self.path)
            self._load(select=True)
        except BaseException:
            self._fail()
            raise
        return self

    def save(self):
        if not self.is_open:
            raise RuntimeError(f"Secret {self.path} is not open")
        plaintext = self.document.text
        self._state = State.SAVING
        try:
            self.age.encrypt(plaintext, self.recipients, self.path)
        except BaseException:
            self._state = State.CLEAN
            raise
        output.annotate(f"Encrypted {self.path}.", debug=True)

        self.is_new = False
        token = self.document.checkpoint()
        self._state = State.OPENING
        try:
            self._load(select=False)
        except BaseException:
            self._fail()
            raise
        self.document.restore(token)
        self.document.mark_unmodified()

    def close(self):
        self._state = State.CLOSED
        self.recipients = None
        self.identity = None

    def _fail(self):
        self._state = State.FAILED
        self.document.read_only = True

    def _load(self, select):
        if not self.path.exists():
            output.annotate(
                f"{self.path} does not exist, creating a new secret.",
                debug=True,
            )
            self.is_new = True
            plaintext = ""
        else:
            self.is_new = False
            plaintext = self._decrypt(select)
        self.document.replace(plaintext)
        self.document.clear_undo()
        self.document.mark_unmodified()
        self.document.read_only = False
        self._state = State.CLEAN

    def _decrypt(self, select):
        keygen = self.config.ssh_keygen
        if not select and self.identity is not None:
            return self._decrypt_with(
                self.identity, is_protected(self.identity, keygen)
            )

        candidates = self.identities.candidates()
        protection = {c: is_protected(c, keygen) for c in candidates}

        if not any(protection.values()):
            # age tries each identity until one matches
            return self.age.decrypt(self.path, candidates)

        identity = self.prompter.select_identity(candidates)
        identity = os.path.abspath(os.path.expanduser(identity))
        if identity not in protection:
            protection[identity] = is_protected(identity, keygen)
        self.identity = identity
        return self._decrypt_with(identity, protection[identity])

    def _decrypt_with(self, identity, protected):
        if not protected:
            return self.age.decrypt(self.path, [identity])
        passphrase = self.prompter.passphrase(identity)
        try:
            with EphemeralIdentity(
                identity, passphrase, self.config.ssh_keygen
            ) as ephemeral:
                return self.age.decrypt(self.path, [ephemeral.temp_path])
        except (IdentityUnlockError, DecryptError):
            self.prompter.forget(identity)
            raise
