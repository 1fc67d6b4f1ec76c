"""
Commandeer faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues
  (errors and warnings). Codes are grouped by domain to keep copy consistent
  and make logs/searches predictable.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves in a friendly, lowercased, and actionable way.
- HelpRequested: a sentinel raised when help was asked for; not an error.
- trigger(): central entry point to surface any fault (respecting shell/colorful/fancy).

Integration
- The resolver, flag parser and validators raise CommandException subclasses with
  a title, a code, a hint and any context the renderer may want (input, flags...).
- Command.execute() catches them: in shell mode they are printed via rich on the
  command's stderr console and the process exits with status 1; otherwise they
  propagate to the embedding program.
- Configuration mistakes (bad wiring of the tree or of flag groups) are NOT faults:
  they raise TypeError/ValueError at declaration time.
"""
import inspect
import sys
import warnings
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the engine (stable identifiers).

    grouping (by high-level domain)
    - routing (1110x)
      • UNKNOWN_COMMAND
    - flags (1111x)
      • UNKNOWN_FLAG, FLAG_VALUE_REQUIRED, INVALID_FLAG_VALUE, FLAG_COMPLETION
    - positionals (1112x)
      • ARGUMENT_COUNT, INVALID_ARGUMENT
    - delegated errors (11131)
      • DELEGATED_ERROR (raised by user hooks)
    - flag constraints (1115x)
      • REQUIRED_FLAGS, REQUIRED_TOGETHER, ONE_REQUIRED, MUTUALLY_EXCLUSIVE
    - warnings (121xx)
      • DEPRECATED_COMMAND, DEPRECATED_FLAG
    """
    # --- routing errors (11xxx) ---
    UNKNOWN_COMMAND             = 11101

    # --- flag errors (11xxx) ---
    UNKNOWN_FLAG                = 11111
    FLAG_VALUE_REQUIRED         = 11112
    INVALID_FLAG_VALUE          = 11113
    FLAG_COMPLETION             = 11114

    # --- positional errors (11xxx) ---
    ARGUMENT_COUNT              = 11121
    INVALID_ARGUMENT            = 11122

    # --- delegated errors (11xxx) ---
    DELEGATED_ERROR             = 11131

    # --- flag constraint errors (11xxx) ---
    REQUIRED_FLAGS              = 11151
    REQUIRED_TOGETHER           = 11152
    ONE_REQUIRED                = 11153
    MUTUALLY_EXCLUSIVE          = 11154

    # --- warnings (12xxx) ---
    DEPRECATED_COMMAND          = 12111
    DEPRECATED_FLAG             = 12112

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels. when no mapping
        is present, the numeric value is returned as a string.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, kind):
    """
    shared rich rendering for exceptions and warnings: a header line
    "[ prog — code | title ]", the message, and an arrow-led hint.
    """
    main = __import__("__main__")
    options = fault.options
    colorful = options.get("colorful", False)
    fancy = options.get("fancy", False)
    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    tool = options.get("tool")
    prog = text(getattr(main, "__prog__", getattr(getattr(tool, "root", None), "name", "")), styler("prog-name"))
    code = options.get("code")

    header = Text.assemble(
        "[ ",
        prog,
        " — ",
        text(code.normalize() if code else "", styler("code")),
        " | ",
        text(str(options.get("title", kind)).title(), styler(f"{kind}-title")),
        " ]"
    )
    message = text(fault.message, styler(f"{kind}-message"))
    renderables = [message]
    if hint := options.get("hint"):
        renderables.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

    if fancy:
        return Panel(Group(*renderables), title=header, title_align="left")
    return Group(header, *renderables)


class CommandException(Exception):
    """
    base for every user-input fault (never fatal by itself).

    options carry rendering/runtime context: tool (the Command), code (FaultCode),
    title, hint, shell, colorful, fancy, console, plus fault-specific payload
    (input, flags, missing, suggestions...).
    """

    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "error-title": "bold #FF4DA6",  # friendly pinky title

            # body
            "error-message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",  # gentle green arrow
            "hint": "italic #9CE19C",  # gentle green hint text
        }, "error")

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            raise self from None
        output = self.options.get("console", console)
        if not self.options.get("silent"):
            output.print(self)
        # usage is printed even when the error itself is silenced
        if usage := self.options.get("usage"):
            output.print(usage)
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class UnknownCommandError(CommandException): ...
class UnknownFlagError(CommandException): ...
class FlagValueRequiredError(CommandException): ...
class InvalidFlagValueError(CommandException): ...
class FlagCompletionError(CommandException): ...
class ArgumentCountError(CommandException): ...
class InvalidArgumentError(CommandException): ...
class DelegatedCommandError(CommandException): ...
class RequiredFlagsError(CommandException): ...


class FlagGroupError(CommandException):
    """
    a broken cross-flag constraint; options["group"] holds the group signature
    and options["flags"] the offending member names (sorted).
    """


class RequiredTogetherError(FlagGroupError): ...
class OneRequiredError(FlagGroupError): ...
class MutuallyExclusiveError(FlagGroupError): ...


class HelpRequested(Exception):
    """
    sentinel raised when help was requested (--help, a non-runnable command).

    not a CommandException: nothing is printed as an error, help is rendered and
    the invocation counts as successful.
    """

    def __init__(self, command=None, /):
        super().__init__("help requested")
        self.command = command


class CommandWarning(ABC, Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | Unset)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        return _render(self, {
            # header parts
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #FFB400",  # amber fault code for warnings
            "warning-title": "bold #FFC2E0",  # softer pinky title for warnings

            # body
            "warning-message": "#D6D6DE",  # slightly lighter gray body
            "hint-arrow": "#B8EFAF dim",  # softer green arrow
            "hint": "italic #B8EFAF",  # softer green hint text
        }, "warning")

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            return warnings.warn(self, stacklevel=len(inspect.stack()))
        self.options.get("console", console).print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class DeprecatedCommandWarning(CommandWarning): ...
class DeprecatedFlagWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via rich console; otherwise, exceptions are
      raised and warnings go through warnings.warn.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "CommandException",
    "UnknownCommandError",
    "UnknownFlagError",
    "FlagValueRequiredError",
    "InvalidFlagValueError",
    "FlagCompletionError",
    "ArgumentCountError",
    "InvalidArgumentError",
    "DelegatedCommandError",
    "RequiredFlagsError",
    "FlagGroupError",
    "RequiredTogetherError",
    "OneRequiredError",
    "MutuallyExclusiveError",
    "HelpRequested",
    "CommandWarning",
    "DeprecatedCommandWarning",
    "DeprecatedFlagWarning",
    "FaultCode",
    "trigger",
)
