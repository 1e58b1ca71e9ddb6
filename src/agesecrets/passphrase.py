"""Ask the user which identity to use and for its passphrase."""

import getpass
import os
import subprocess
import sys
from typing import Dict, List

from agesecrets import Cancelled, IdentityUnlockError
from agesecrets.session import Prompter


def read_passphrase_reference(reference):
    """Read a passphrase from 1Password, e.g. `op://vault/item/password`."""
    try:
        p = subprocess.run(
            ["op", "read", reference],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise IdentityUnlockError.from_context(reference, e.stderr) from e
    except OSError as e:
        raise IdentityUnlockError.from_context(
            reference, f"Could not run 1Password CLI `op`: {e}"
        ) from e
    return p.stdout.decode("utf-8").strip()


class TerminalPrompter(Prompter):
    """Prompt on the terminal.

    Entered passphrases are remembered per identity for the lifetime of the
    process, so saving (which decrypts the new file again) does not ask
    twice. A passphrase can also be given in
    `AGESECRETS_IDENTITY_PASSPHRASE`, either literally or as an `op://`
    reference.

    """

    known_passphrases: Dict[str, str]

    def __init__(self):
        self.known_passphrases = {}

    def _input(self, prompt):
        # stdout may carry decrypted content
        sys.stderr.write(prompt)
        sys.stderr.flush()
        line = sys.stdin.readline()
        if not line:
            raise EOFError()
        return line.rstrip("\n")

    def _getpass(self, prompt):
        return getpass.getpass(prompt)

    def select_identity(self, candidates: List[str]) -> str:
        print(
            "Some identities are passphrase protected. Choose one:",
            file=sys.stderr,
        )
        for i, candidate in enumerate(candidates, 1):
            print(f"\t{i}) {candidate}", file=sys.stderr)
        try:
            choice = self._input("Identity (number or path): ").strip()
        except EOFError:
            choice = ""
        if not choice:
            raise Cancelled.from_context("identity selection")
        if choice.isdigit() and 1 <= int(choice) <= len(candidates):
            return candidates[int(choice) - 1]
        return choice

    def passphrase(self, identity: str) -> str:
        if identity in self.known_passphrases:
            return self.known_passphrases[identity]

        op = os.environ.get("AGESECRETS_IDENTITY_PASSPHRASE")
        if op and not op.startswith("op://"):
            passphrase = op
        elif op:
            passphrase = read_passphrase_reference(op)
        else:
            try:
                passphrase = self._getpass(
                    "Enter passphrase for {}: ".format(identity)
                )
            except (EOFError, KeyboardInterrupt) as e:
                raise Cancelled.from_context("passphrase entry") from e

        self.known_passphrases[identity] = passphrase
        return passphrase

    def forget(self, identity: str):
        self.known_passphrases.pop(identity, None)
