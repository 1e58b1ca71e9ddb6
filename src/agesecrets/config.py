"""Configuration of the secrets engine.

The configuration is a single immutable value that is handed to every
session. It can be built in code or loaded from an INI-style file::

    [agesecrets]
    age = /usr/bin/age
    identities =
        ~/.ssh/id_ed25519,
        py:mycompany.keys:current_identity
    setup-hook = mycompany.env:prepare

"""

import importlib
import os
import pathlib
import re
from typing import Callable, NamedTuple, Optional, Sequence, Union

from configupdater import ConfigUpdater

from agesecrets import ConfigurationError
from agesecrets._output import output

# ssh uses this order when looking for keys, too.
DEFAULT_IDENTITIES = (
    "~/.ssh/id_rsa",
    "~/.ssh/id_ecdsa",
    "~/.ssh/id_ecdsa_sk",
    "~/.ssh/id_ed25519",
    "~/.ssh/id_ed25519_sk",
    "~/.ssh/id_dsa",
)

DEFAULT_CONFIG_FILE = "~/.config/agesecrets/agesecrets.cfg"

SECTION = "agesecrets"

IdentityEntry = Union[str, Callable[[], Optional[str]]]


class Configuration(NamedTuple):
    age: str = "age"
    ssh_keygen: str = "ssh-keygen"
    nix_instantiate: str = "nix-instantiate"
    registry_name: str = "secrets.nix"
    identities: Sequence[IdentityEntry] = DEFAULT_IDENTITIES
    setup_hook: Optional[Callable[[], None]] = None


def split_list(value):
    """Split a comma and/or newline separated option value."""
    if not value:
        return []
    items = re.split(r"(\n|,)+", value)
    return [item.strip() for item in items if item.strip()]


def resolve_reference(reference):
    """Import `module:attribute` and return the attribute."""
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise ConfigurationError.from_context(
            f"Invalid reference `{reference}`, expected `module:attribute`."
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError.from_context(
            f"Could not import `{module_name}` for `{reference}`: {e}"
        ) from e
    try:
        result = module
        for name in attribute.split("."):
            result = getattr(result, name)
    except AttributeError as e:
        raise ConfigurationError.from_context(
            f"`{module_name}` has no attribute `{attribute}`."
        ) from e
    if not callable(result):
        raise ConfigurationError.from_context(
            f"`{reference}` is not callable."
        )
    return result


def parse_identities(value):
    identities = []
    for entry in split_list(value):
        if entry.startswith("py:"):
            identities.append(resolve_reference(entry[len("py:") :]))
        else:
            identities.append(entry)
    return identities


def config_file_path(path=None):
    if path is None:
        path = os.environ.get("AGESECRETS_CONFIG", DEFAULT_CONFIG_FILE)
    return pathlib.Path(os.path.expanduser(str(path)))


def load_configuration(path=None) -> Configuration:
    """Load the configuration from the config file and the environment.

    A missing default config file is not an error. A config file that was
    asked for explicitly must exist.

    """
    explicit = path is not None or "AGESECRETS_CONFIG" in os.environ
    path = config_file_path(path)
    settings = {}

    if path.exists():
        output.annotate(f"Reading configuration from {path}.", debug=True)
        try:
            config = ConfigUpdater().read(str(path))
        except Exception as e:
            raise ConfigurationError.from_context(
                f"Could not parse configuration file {path}: {e}"
            ) from e
        if config.has_section(SECTION):
            section = config[SECTION]
            for key, name in [
                ("age", "age"),
                ("ssh-keygen", "ssh_keygen"),
                ("nix-instantiate", "nix_instantiate"),
                ("registry", "registry_name"),
            ]:
                if key in section and section[key].value:
                    settings[name] = section[key].value.strip()
            if "identities" in section:
                settings["identities"] = tuple(
                    parse_identities(section["identities"].value)
                )
            if "setup-hook" in section and section["setup-hook"].value:
                settings["setup_hook"] = resolve_reference(
                    section["setup-hook"].value.strip()
                )
    elif explicit:
        raise ConfigurationError.from_context(
            f"Configuration file {path} does not exist."
        )

    if os.environ.get("AGESECRETS_AGE"):
        settings["age"] = os.environ["AGESECRETS_AGE"]
    if os.environ.get("AGESECRETS_IDENTITIES"):
        settings["identities"] = tuple(
            parse_identities(os.environ["AGESECRETS_IDENTITIES"])
        )

    return Configuration(**settings)
