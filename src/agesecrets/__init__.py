import os.path

from ._output import output

with open(os.path.dirname(__file__) + "/version.txt") as f:
    __version__ = f.read().strip()


class ReportingException(Exception):
    """Exceptions that support user-readable reporting."""

    def __str__(self):
        raise NotImplementedError()

    def report(self):
        raise NotImplementedError()


def _decode(data):
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data or ""


class ConfigurationError(ReportingException):
    """The configuration could not be loaded."""

    message: str

    @classmethod
    def from_context(cls, message):
        self = cls()
        self.message = message
        return self

    def __str__(self):
        return str(self.message)

    def report(self):
        output.error(self.message)


class Cancelled(ReportingException):
    """The user abandoned an interactive prompt."""

    what: str

    @classmethod
    def from_context(cls, what):
        self = cls()
        self.what = what
        return self

    def __str__(self):
        return "Cancelled {}.".format(self.what)

    def report(self):
        output.error(str(self))


class RegistryEvalError(ReportingException):
    """The recipients of a secret could not be determined."""

    secret: str
    message: str
    output: str

    @classmethod
    def from_context(cls, secret, message, output=""):
        self = cls()
        self.secret = str(secret)
        self.message = message
        self.output = _decode(output)
        return self

    def __str__(self):
        result = f"{self.message}: {self.secret}"
        if self.output:
            result += f"\n{self.output}"
        return result

    def report(self):
        output.error("Could not determine recipients")
        output.tabular("secret", self.secret, red=True)
        output.tabular("reason", self.message)
        if self.output:
            output.tabular("message", self.output, separator=":\n")


class IdentityUnlockError(ReportingException):
    """A protected identity could not be made usable."""

    identity: str
    output: str

    @classmethod
    def from_context(cls, identity, output):
        self = cls()
        self.identity = str(identity)
        self.output = _decode(output)
        return self

    def __str__(self):
        return f"Could not unlock identity {self.identity}\n{self.output}"

    def report(self):
        output.error("Could not unlock identity")
        output.tabular("identity", self.identity, red=True)
        output.tabular("message", self.output, separator=":\n")


class AgeCallError(ReportingException):
    """There was an error calling age on an encrypted file."""

    command: str
    exitcode: str
    output: str

    action = "calling age"

    @classmethod
    def from_context(cls, command, exitcode, output):
        self = cls()
        self.command = " ".join(command)
        self.exitcode = str(exitcode)
        self.output = _decode(output)
        return self

    def __str__(self):
        return (
            f"Exitcode {self.exitcode} while {self.action}: "
            f"{self.command}\n{self.output}"
        )

    def report(self):
        output.error(f"Error while {self.action}")
        output.tabular("command", self.command, red=True)
        output.tabular("exit code", self.exitcode)
        output.tabular("message", self.output, separator=":\n")


class DecryptError(AgeCallError):
    """age could not decrypt a secret with any of the given identities."""

    action = "decrypting"


class EncryptError(AgeCallError):
    """age could not encrypt a secret. The target file is untouched."""

    action = "encrypting"
