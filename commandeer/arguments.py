r"""
Commandeer positional argument validators.

Overview
- A validator is a callable `validator(command, args)` that returns quietly when
  the positional arguments are acceptable and raises a CommandException otherwise.
- Commands take one through `Command(..., validator=...)`; when none is given the
  legacy check applies (see legacy_args).

Builders
- no_args, arbitrary_args, only_valid_args, legacy_args: plain validators.
- minimum_args(n), maximum_args(n), exact_args(n), range_args(lo, hi),
  exact_valid_args(n): build validators for the given counts.
- match_all(*validators): run several validators in order, first failure wins.

Quick example:
    >>> from commandeer import command, range_args
    >>> @command(validator=range_args(1, 2))
    >>> def copy(command, args): ...
"""
import functools

from .faults import *
from .suggestions import find_suggestion
from .utils import *


def _count_error(message, command, args):
    return ArgumentCountError(
        message,
        title="wrong number of arguments",
        code=FaultCode.ARGUMENT_COUNT,
        tool=command,
        input=list(args),
        hint=f"run '{command.command_path} --help' for usage",
    )


def legacy_args(command, args, /):
    """
    Check applied to commands without a validator.

    - a command without subcommands accepts arbitrary arguments;
    - a root command with subcommands rejects any positional argument, reporting
      the first one as an unknown command (with suggestions);
    - a nested command with subcommands accepts arbitrary arguments.
    """
    if not command.has_subcommands:
        return
    if command.parent is None and args:
        raise UnknownCommandError(
            "unknown command %r for %r%s" % (args[0], command.command_path, find_suggestion(command, args[0])),
            title="unknown command",
            code=FaultCode.UNKNOWN_COMMAND,
            tool=command,
            input=args[0],
            hint=f"run '{command.command_path} --help' to list the available commands",
        )


def no_args(command, args, /):
    if args:
        raise UnknownCommandError(
            "unknown command %r for %r" % (args[0], command.command_path),
            title="unexpected argument",
            code=FaultCode.UNKNOWN_COMMAND,
            tool=command,
            input=args[0],
            hint=f"{command.command_path!r} accepts no arguments",
        )


def arbitrary_args(command, args, /):
    pass


def only_valid_args(command, args, /):
    """
    Reject any argument missing from the command's valid_args (or arg_aliases).

    Entries of valid_args may carry a tab-separated description, only the part
    before the tab is compared. Commands without valid_args accept anything.
    """
    if not command.valid_args:
        return
    accepted = [entry.partition("\t")[0] for entry in command.valid_args] + command.arg_aliases
    for arg in args:
        if arg not in accepted:
            raise InvalidArgumentError(
                "invalid argument %r for %r%s" % (arg, command.command_path, find_suggestion(command, arg)),
                title="invalid argument",
                code=FaultCode.INVALID_ARGUMENT,
                tool=command,
                input=arg,
                hint="expected one of: %s" % ", ".join(accepted),
            )


def minimum_args(n, /):
    @rename(f"minimum_args({n})")
    def validator(command, args, /):
        if len(args) < n:
            raise _count_error("requires at least %d arg(s), only received %d" % (n, len(args)), command, args)
    return validator


def maximum_args(n, /):
    @rename(f"maximum_args({n})")
    def validator(command, args, /):
        if len(args) > n:
            raise _count_error("accepts at most %d arg(s), received %d" % (n, len(args)), command, args)
    return validator


def exact_args(n, /):
    @rename(f"exact_args({n})")
    def validator(command, args, /):
        if len(args) != n:
            raise _count_error("accepts %d arg(s), received %d" % (n, len(args)), command, args)
    return validator


def range_args(lo, hi, /):
    if lo > hi:
        raise ValueError("range_args() lower bound must not exceed the upper bound")

    @rename(f"range_args({lo}, {hi})")
    def validator(command, args, /):
        if not lo <= len(args) <= hi:
            raise _count_error("accepts between %d and %d arg(s), received %d" % (lo, hi, len(args)), command, args)
    return validator


def match_all(*validators):
    for validator in validators:
        if not callable(validator):
            raise TypeError("match_all() arguments must be callable")

    @rename("match_all")
    def validator(command, args, /):
        for each in validators:
            each(command, args)
    return validator


@functools.cache
def exact_valid_args(n, /):
    return rename(match_all(exact_args(n), only_valid_args), f"exact_valid_args({n})")


__all__ = (
    "legacy_args",
    "no_args",
    "arbitrary_args",
    "only_valid_args",
    "minimum_args",
    "maximum_args",
    "exact_args",
    "range_args",
    "match_all",
    "exact_valid_args",
)
