"""Securely edit encrypted secret files."""

import os
import subprocess
import sys
import tempfile
import traceback

from agesecrets import ReportingException
from agesecrets._output import output
from agesecrets.config import Configuration
from agesecrets.passphrase import TerminalPrompter
from agesecrets.session import Buffer, SecretSession, State
from agesecrets.utils import scratch_dir


class Editor(object):
    def __init__(self, editor_cmd, path, config: Configuration, prompter=None):
        self.editor_cmd = editor_cmd
        self.buffer = Buffer()
        self.session = SecretSession(
            path, self.buffer, prompter or TerminalPrompter(), config
        )

    def main(self):
        self.session.open()
        try:
            self.interact()
        finally:
            self.session.close()

    def _input(self):
        return input("> ").strip()

    def interact(self):
        cmd = "edit"
        while cmd != "quit":
            try:
                self.process_cmd(cmd)
            except Exception as e:
                if self.session.state == State.FAILED:
                    output.error(
                        f"{self.session.path} was encrypted, "
                        "but decrypting it again failed."
                    )
                    raise
                print()
                print()
                if isinstance(e, ReportingException):
                    e.report()
                else:
                    print(f"An error occurred: {e}")
                    print("Traceback:")
                    tb = traceback.format_exc()
                    tb_lines = tb.splitlines()
                    # if tb is too long, only have first and last 10 lines
                    if len(tb_lines) > 20 and not output.enable_debug:
                        print("\n".join(tb_lines[:10]))
                        print("...")
                        print("\n".join(tb_lines[-10:]))
                    else:
                        print(tb)
                print()
                print("Your changes are still available. You can try:")
                print("\tedit       -- opens editor with current data again")
                print("\tencrypt    -- tries to encrypt current data again")
                print("\tquit       -- quits and loses your changes")
                cmd = self._input()
            else:
                break

    def process_cmd(self, cmd):
        if cmd == "edit":
            self.edit()
            self.encrypt()
        elif cmd == "encrypt":
            self.encrypt()
        elif cmd == "":
            raise ValueError("empty command")
        else:
            raise ValueError("unknown command `{}`".format(cmd))

    def encrypt(self):
        if not self.buffer.modified and not self.session.is_new:
            print("No changes from original cleartext. Not updating.")
            return
        self.session.save()
        output.step("encrypted", str(self.session.path))

    def edit(self):
        filename, _encryption_ext = os.path.splitext(self.session.path.name)
        _, suffix = os.path.splitext(filename)
        with tempfile.NamedTemporaryFile(
            prefix="edit",
            suffix=suffix,
            mode="w+",
            encoding="utf-8",
            newline="",
            dir=scratch_dir(),
        ) as clearfile:
            clearfile.write(self.buffer.text)
            clearfile.flush()

            args = [self.editor_cmd + " " + clearfile.name]

            output.annotate(
                "Running editor with command: {}".format(args), debug=True
            )

            subprocess.check_call(args, shell=True)

            with open(clearfile.name, "r", encoding="utf-8", newline="") as f:
                cleartext = f.read()
        if cleartext != self.buffer.text:
            self.buffer.edit(cleartext)


def main(editor, file, config, **kw):
    """Secrets editor console script.

    The main focus here is to avoid having unencrypted files accidentally
    ending up next to the encrypted ones.

    """
    try:
        Editor(editor, file, config).main()
    except ReportingException as e:
        e.report()
        return 1
    except Exception as e:
        # only print traceback if we're in debug mode
        if output.enable_debug:
            traceback.print_exc()
        print(e, file=sys.stderr)
        return 1
    return 0
