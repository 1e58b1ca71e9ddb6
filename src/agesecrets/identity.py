"""Local private identities: discovery, protection probing and ephemeral
passphrase-free copies of protected keys."""

import os
import shutil
import subprocess
import tempfile
from typing import List, Optional, Sequence

from agesecrets import IdentityUnlockError
from agesecrets._output import output
from agesecrets.config import DEFAULT_IDENTITIES, IdentityEntry
from agesecrets.utils import scratch_dir


class IdentityStore(object):
    """Enumerate the configured identity candidates that exist on disk."""

    def __init__(
        self, configured: Sequence[IdentityEntry] = DEFAULT_IDENTITIES
    ):
        self.configured = configured

    def candidates(self) -> List[str]:
        paths = []
        for entry in self.configured:
            if callable(entry):
                entry = entry()
                if entry is None:
                    continue
            path = os.path.abspath(os.path.expanduser(str(entry)))
            if os.path.exists(path):
                paths.append(path)
        output.annotate(f"Found identities: {paths}", debug=True)
        return paths


def is_protected(identity: str, keygen: str = "ssh-keygen") -> bool:
    """Tell whether the private key file needs a passphrase.

    Deriving the public key with an empty passphrase only succeeds for
    unprotected keys.

    """
    args = [keygen, "-y", "-P", "", "-f", identity]
    output.annotate(f"Running `{args}`", debug=True)
    try:
        p = subprocess.run(
            args,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        raise IdentityUnlockError.from_context(
            identity,
            f"Could not find ssh-keygen binary. Is OpenSSH installed? "
            f"I tried looking for: `{keygen}`",
        ) from e
    return p.returncode != 0


class EphemeralIdentity(object):
    """Context that provides a passphrase-free copy of a protected identity.

    The copy lives in a temporary file that only exists between `create()`
    and `destroy()`. Use it as a context manager so the key material is
    removed on every exit path::

        with EphemeralIdentity(path, passphrase) as ephemeral:
            age.decrypt(secret, [ephemeral.temp_path])

    """

    temp_path: Optional[str] = None

    def __init__(self, source_path, passphrase, keygen="ssh-keygen"):
        self.source_path = source_path
        self.passphrase = passphrase
        self.keygen = keygen

    def create(self):
        fd, self.temp_path = tempfile.mkstemp(
            prefix="identity.", dir=scratch_dir()
        )
        os.close(fd)
        try:
            shutil.copyfile(self.source_path, self.temp_path)
        except OSError as e:
            self.destroy()
            raise IdentityUnlockError.from_context(self.source_path, str(e))

        args = [
            self.keygen,
            "-p",
            "-P",
            self.passphrase,
            "-N",
            "",
            "-f",
            self.temp_path,
        ]
        masked = [x if x != self.passphrase else "***" for x in args]
        output.annotate(f"Running `{masked}`", debug=True)
        try:
            subprocess.run(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            self.destroy()
            raise IdentityUnlockError.from_context(
                self.source_path, e.output
            ) from e
        except OSError as e:
            self.destroy()
            raise IdentityUnlockError.from_context(
                self.source_path, f"Could not run `{self.keygen}`: {e}"
            ) from e
        return self

    def destroy(self):
        if self.temp_path is None:
            return
        try:
            os.unlink(self.temp_path)
        except FileNotFoundError:
            pass
        self.temp_path = None

    def __enter__(self):
        return self.create()

    def __exit__(self, *_exc_args):
        self.destroy()
