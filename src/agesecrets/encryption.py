import os
import pathlib
import shutil
import subprocess
import tempfile
from typing import List, Sequence

from agesecrets import DecryptError, EncryptError
from agesecrets._output import output


class Age(object):
    """Encrypt and decrypt secrets by calling the age binary."""

    def __init__(self, age: str = "age"):
        self.age = age

    def decrypt(self, path, identities: Sequence[str]) -> str:
        args = [self.age, "--decrypt"]
        for identity in identities:
            args.extend(["--identity", str(identity)])
        args.append(str(path))

        output.annotate(f"Running `{args}`", debug=True)

        try:
            p = subprocess.run(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise DecryptError.from_context(
                e.cmd, e.returncode, e.stderr + e.stdout
            ) from e
        except OSError as e:
            raise DecryptError.from_context(
                args, "-", f"Could not find age binary `{self.age}`: {e}"
            ) from e
        try:
            return p.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptError.from_context(
                args,
                p.returncode,
                f"Plaintext of {path} is not valid UTF-8 text: {e}",
            ) from e

    def encrypt(self, plaintext: str, recipients: List[str], output_path):
        """Encrypt `plaintext` for `recipients` into `output_path`.

        age writes into a scratch directory next to the target. Only a
        successful run replaces the target, so a failing call never leaves
        a truncated file behind.

        """
        output_path = pathlib.Path(output_path)
        if not recipients:
            raise EncryptError.from_context(
                [self.age, "--encrypt"],
                "-",
                "No recipients declared. Refusing to encrypt "
                "a secret nobody could decrypt.",
            )

        with tempfile.TemporaryDirectory(
            prefix=".agesecrets.", dir=str(output_path.parent)
        ) as scratch:
            target = os.path.join(scratch, output_path.name)
            args = [self.age, "--encrypt"]
            for recipient in recipients:
                args.extend(["--recipient", recipient])
            args.extend(["-o", target])

            output.annotate(f"Running `{args}`", debug=True)

            try:
                subprocess.run(
                    args,
                    input=plaintext.encode("utf-8"),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    check=True,
                )
            except subprocess.CalledProcessError as e:
                raise EncryptError.from_context(
                    e.cmd, e.returncode, e.stderr + e.stdout
                ) from e
            except OSError as e:
                raise EncryptError.from_context(
                    args, "-", f"Could not find age binary `{self.age}`: {e}"
                ) from e

            if output_path.exists():
                shutil.copymode(str(output_path), target)
            os.replace(target, str(output_path))
