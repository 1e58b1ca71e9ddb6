import pathlib
import sys

from agesecrets import ReportingException
from agesecrets._output import output
from agesecrets.passphrase import TerminalPrompter
from agesecrets.registry import RegistryResolver
from agesecrets.session import Buffer, SecretSession


def recipients(file, config, **kw):
    """Show the registry governing a secret and its recipients."""
    resolver = RegistryResolver(config.registry_name, config.nix_instantiate)
    try:
        keys = resolver.recipients_for(file)
    except ReportingException as e:
        e.report()
        return 1
    print(file)
    print(f"\t registry: {resolver.locate(file)}")
    print("\t recipients")
    for key in keys:
        print(f"\t\t- {key}")
    if not keys:
        print("\t\t(none)")
    return 0


def decrypt_to_stdout(file, config, **kw):
    """Decrypt a file and write the content to stdout."""
    path = pathlib.Path(file).absolute()
    if not path.exists():
        output.error(f"No such secret: {path}")
        return 1
    buffer = Buffer()
    session = SecretSession(path, buffer, TerminalPrompter(), config)
    try:
        session.open()
    except ReportingException as e:
        e.report()
        return 1
    finally:
        session.close()
    sys.stdout.buffer.write(buffer.text.encode("utf-8"))
    sys.stdout.flush()
    return 0


def reencrypt(files, config, **kw):
    """Re-encrypt secrets for the recipients currently declared."""
    return_code = 0
    prompter = TerminalPrompter()
    for file in files:
        path = pathlib.Path(file).absolute()
        if not path.exists():
            output.error(f"No such secret: {path}")
            return_code = 1
            continue
        session = SecretSession(path, Buffer(), prompter, config)
        try:
            session.open()
            session.save()
        except ReportingException as e:
            e.report()
            return_code = 1
            continue
        finally:
            session.close()
        output.step("re-encrypted", str(path))
    return return_code
