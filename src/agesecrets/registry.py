"""Look up the recipients of a secret in its governing `secrets.nix`."""

import json
import os
import pathlib
import subprocess
from typing import List, Optional

from agesecrets import RegistryEvalError
from agesecrets._output import output


def nix_string(value):
    """Quote `value` as a Nix string literal."""
    value = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("${", "\\${")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )
    return f'"{value}"'


class RegistryResolver(object):
    def __init__(
        self,
        registry_name: str = "secrets.nix",
        nix_instantiate: str = "nix-instantiate",
    ):
        self.registry_name = registry_name
        self.nix_instantiate = nix_instantiate

    def locate(self, secret_path) -> Optional[pathlib.Path]:
        """Return the registry file of the closest ancestor directory."""
        directory = pathlib.Path(os.path.abspath(str(secret_path))).parent
        while True:
            candidate = directory / self.registry_name
            if candidate.is_file():
                return candidate
            if directory.parent == directory:
                return None
            directory = directory.parent

    def expression(self, registry: pathlib.Path, secret_path) -> str:
        key = os.path.relpath(
            os.path.abspath(str(secret_path)), str(registry.parent)
        )
        return "(import {}).{}.publicKeys".format(
            nix_string(str(registry)), nix_string(key)
        )

    def recipients_for(self, secret_path) -> List[str]:
        registry = self.locate(secret_path)
        if registry is None:
            raise RegistryEvalError.from_context(
                secret_path,
                f"No {self.registry_name} found in any parent directory",
            )
        output.annotate(f"Using registry {registry}.", debug=True)

        args = [
            self.nix_instantiate,
            "--eval",
            "--strict",
            "--json",
            "-E",
            self.expression(registry, secret_path),
        ]
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
            raise RegistryEvalError.from_context(
                secret_path,
                f"Could not evaluate {registry}",
                e.stderr + e.stdout,
            ) from e
        except OSError as e:
            raise RegistryEvalError.from_context(
                secret_path,
                f"Could not run `{self.nix_instantiate}`",
                str(e),
            ) from e

        try:
            recipients = json.loads(p.stdout)
        except ValueError as e:
            raise RegistryEvalError.from_context(
                secret_path, f"Invalid output from {registry}", p.stdout
            ) from e
        if not isinstance(recipients, list) or not all(
            isinstance(r, str) for r in recipients
        ):
            raise RegistryEvalError.from_context(
                secret_path,
                f"publicKeys in {registry} is not a list of strings",
                p.stdout,
            )
        output.annotate(f"Recipients: {recipients}", debug=True)
        return recipients
