import argparse
import os
import sys
import textwrap
from typing import Optional

import importlib_resources

import agesecrets
import agesecrets.edit
import agesecrets.manage
from agesecrets._output import TerminalBackend, output
from agesecrets.config import load_configuration


def main(args: Optional[list] = None) -> int:
    version = (
        importlib_resources.files("agesecrets")
        .joinpath("version.txt")
        .read_text()
        .strip()
    )
    parser = argparse.ArgumentParser(
        description=(
            "agesecrets v{}: edit age encrypted secrets declared in a "
            "secrets.nix registry"
        ).format(version),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.set_defaults(func=parser.print_usage)

    parser.add_argument(
        "-d", "--debug", action="store_true", help="Enable debug mode."
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Configuration file "
        "(default: $AGESECRETS_CONFIG or ~/.config/agesecrets/agesecrets.cfg)",
    )

    subparsers = parser.add_subparsers()

    p = subparsers.add_parser(
        "edit",
        help=textwrap.dedent(
            """
            Encrypted secret file editor utility. Decrypts the file,
            invokes the editor, and encrypts the file again for the
            recipients declared in the registry. If called with a
            non-existent file name, a new encrypted file is created.
        """
        ),
    )
    p.add_argument(
        "--editor",
        "-e",
        metavar="EDITOR",
        default=os.environ.get("EDITOR", "vi"),
        help="Invoke EDITOR to edit (default: $EDITOR or vi)",
    )
    p.add_argument("file", help="Secret file to edit.")
    p.set_defaults(func=agesecrets.edit.main)

    p = subparsers.add_parser(
        "decrypt", help="Decrypt a secret file and write it to stdout."
    )
    p.add_argument("file", help="Secret file to decrypt.")
    p.set_defaults(func=agesecrets.manage.decrypt_to_stdout)

    p = subparsers.add_parser(
        "recipients", help="Show who a secret file is encrypted for."
    )
    p.add_argument("file", help="Secret file to look up.")
    p.set_defaults(func=agesecrets.manage.recipients)

    p = subparsers.add_parser(
        "reencrypt",
        help="Re-encrypt secret files for the recipients currently declared.",
    )
    p.add_argument("files", nargs="+", metavar="file")
    p.set_defaults(func=agesecrets.manage.reencrypt)

    args = parser.parse_args(args)

    # Consume global arguments
    output.enable_debug = args.debug

    # Pass over to function
    if args.func.__name__ == "print_usage":
        args.func()
        return 1

    output.backend = TerminalBackend()

    try:
        config = load_configuration(args.config)
    except agesecrets.ConfigurationError as e:
        e.report()
        return 1

    func_args = dict(args._get_kwargs())
    del func_args["func"]
    del func_args["debug"]
    func_args["config"] = config
    return args.func(**func_args)


def console_main():
    sys.exit(main())
