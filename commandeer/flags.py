r"""
Commandeer flags: named flag records and the flag sets that own them.

Overview
- Flag: a named flag with an optional single-character shorthand, a default and a
  current value, an optional implicit value (the "no value" default that makes the
  flag presence-only), a monotonic `changed` marker and an annotation mapping
  (key -> ordered list of strings) used to encode required/group/completion markers.
- FlagSet: an ordered mapping name -> Flag (plus shorthand index) that parses flag
  tokens out of an argument vector and keeps the leftover positional arguments.

Identity
- Flags are shared by identity between the sets of a command tree: a persistent flag
  declared on the root is the very same object in every descendant's merged view,
  so parsing it anywhere flips the one `changed` marker every view observes.

Token grammar (parse)
- "--name=value", "--name value", "--name" (implicit value only)
- "-n=value", "-nvalue", "-n value", "-abc" (cluster of implicit shorthands)
- "--" ends flag parsing; everything after it is positional.
- "-" alone is positional.

Errors
- Unknown names raise UnknownFlagError; a value-taking flag with no value token
  raises FlagValueRequiredError; a converter failure raises InvalidFlagValueError.
- An undeclared "--help"/"-h" raises HelpRequested, so a bare flag set still honors
  the help convention.
- Declaring two flags with the same name or shorthand is a configuration error
  (ValueError), raised immediately.
"""
import re

from .faults import *
from .utils import *


_TRUTHY = frozenset({"1", "t", "true", "y", "yes", "on"})
_FALSY = frozenset({"0", "f", "false", "n", "no", "off"})


def boolean(text, /):
    """
    Convert a textual boolean into a bool, the way flag values are read.

    accepts 1/t/true/y/yes/on and 0/f/false/n/no/off (case-insensitive);
    real bools pass through. anything else is a ValueError.
    """
    if isinstance(text, bool):
        return text
    if not isinstance(text, str):
        raise TypeError("boolean() argument must be a string")
    if (lowered := text.strip().lower()) in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"invalid boolean value {text!r}")


class Flag(metaclass=IntrospectiveType):
    """
    A single named flag.

    Parameters
    - name: long name, without the leading dashes ("output", "dry-run").
    - shorthand: optional single character ("o").
    - default: value reported until the flag is set.
    - descr: short description, used for completion descriptions.
    - type: converter applied to every textual value (str by default).
    - implicit: value used when the flag appears without a value; when given the
      flag never consumes the following token.
    - multiple: collect every occurrence in a list instead of keeping the last one.
    - hidden: excluded from completion candidates.
    - deprecated: message shown when the flag is used; also hides it from completion.

    Properties listed in __introspectable__ are read-only; values only change
    through FlagSet.parse()/FlagSet.set(), and `changed` only goes False -> True.
    """

    __introspectable__ = (
        "name",
        "shorthand",
        "default",
        "value",
        "implicit",
        "changed",
        "annotations",
        "descr",
        "type",
        "multiple",
        "hidden",
        "deprecated",
    )

    __displayable__ = (
        "name",
        "shorthand",
        "default",
        "value",
        "changed",
    )

    def __init__(
            self,
            name,
            /,
            shorthand=Unset,
            default=None,
            descr=Unset,
            *,
            type=str,
            implicit=Unset,
            multiple=False,
            hidden=False,
            deprecated=Unset
    ):
        cls = self.__class__
        if not isinstance(name, str):
            raise TypeError(f"{cls.__typename__} 'name' must be a string")
        elif not re.fullmatch(r"[^\W_][\w.-]*", name := name.strip()):
            raise ValueError(f"{cls.__typename__} 'name' must be a valid flag name (without dashes)")
        if not isinstance(shorthand, str | Unset):
            raise TypeError(f"{cls.__typename__} 'shorthand' must be a string")
        elif isinstance(shorthand, str) and (len(shorthand) != 1 or shorthand in "-="):
            raise ValueError(f"{cls.__typename__} 'shorthand' must be a single character")
        if not isinstance(descr, str | Unset):
            raise TypeError(f"{cls.__typename__} 'descr' must be a string")
        if not callable(type):
            raise TypeError(f"{cls.__typename__} 'type' must be callable")
        if not isinstance(deprecated, str | Unset):
            raise TypeError(f"{cls.__typename__} 'deprecated' must be a message string")

        self._name = name
        self._shorthand = coalesce(shorthand)
        self._default = default
        self._value = list(default or ()) if multiple else default
        self._implicit = implicit
        self._changed = False
        self._annotations = {}
        self._descr = coalesce(descr, "")
        self._type = type
        self._multiple = bool(multiple)
        self._hidden = bool(hidden)
        self._deprecated = coalesce(deprecated)

    @classmethod
    def switch(cls, name, /, shorthand=Unset, descr=Unset, **options):
        """
        Build a boolean, presence-only flag ("--verbose", "-v", "--verbose=false").
        """
        return cls(name, shorthand, False, descr, type=boolean, implicit="true", **options)

    @property
    def takes_value(self):
        """
        True when the flag consumes the following token as its value.
        """
        return self._implicit is Unset

    def _assign(self, value):
        converted = self._type(value)
        if self._multiple:
            if not self._changed:
                self._value = []
            self._value.append(converted)
        else:
            self._value = converted
        self._changed = True

    def _reset(self):
        self._value = list(self._default or ()) if self._multiple else self._default
        self._changed = False


class FlagSet:
    """
    Ordered collection of flags with a shorthand index and parse state.

    A set created by a command for registration ("own" or "persistent" flags) and a
    set computed as a merged view share Flag objects; only the parse state (the
    leftover positional arguments) belongs to the set itself.

    revision
    - incremented whenever a flag is added; merged views compare revisions to decide
      whether their cached content is stale.
    """

    def __init__(self, name=""):
        self.name = name
        self.revision = 0
        self._flags = {}
        self._shorthands = {}
        self._args = []
        self._dash = -1
        self._parsed = False

    def __repr__(self):
        return f"flag-set(name={self.name!r}, flags={list(self._flags)!r})"

    def __contains__(self, name):
        return name in self._flags

    def __iter__(self):
        return iter(tuple(self._flags.values()))

    def __len__(self):
        return len(self._flags)

    def __bool__(self):
        return True

    def add(self, flag, /):
        """
        Register a flag; duplicate names or shorthands are configuration errors.

        Returns the flag, so declarations read naturally:
            verbose = command.flags().add(Flag.switch("verbose", "v"))
        """
        if not isinstance(flag, Flag):
            raise TypeError("add() argument must be a flag")
        if flag.name in self._flags:
            raise ValueError(f"flag set {self.name!r} flag {flag.name!r} is already in use")
        if flag.shorthand is not None:
            if (other := self._shorthands.get(flag.shorthand)) is not None and other is not flag:
                raise ValueError(
                    f"flag set {self.name!r} shorthand {flag.shorthand!r} of flag {flag.name!r} "
                    f"is already used by flag {other.name!r}"
                )
            self._shorthands[flag.shorthand] = flag
        self._flags[flag.name] = flag
        self.revision += 1
        return flag

    def merge(self, other, /):
        """
        Add every flag of `other` whose name is not present yet (closest wins).
        """
        for flag in other:
            if flag.name not in self._flags:
                self.add(flag)
        return self

    def lookup(self, name, /):
        return self._flags.get(name)

    def shorthand(self, char, /):
        return self._shorthands.get(char)

    def changed(self, name, /):
        return bool((flag := self.lookup(name)) is not None and flag.changed)

    def value(self, name, /):
        if (flag := self.lookup(name)) is None:
            raise KeyError(name)
        return flag.value

    def set(self, name, value, /):
        """
        Assign a textual value to a flag programmatically (marks it changed).
        """
        if (flag := self.lookup(name)) is None:
            raise KeyError(name)
        self._assign(flag, value, "--" + name)

    def set_annotation(self, name, key, values, /):
        """
        Replace the annotation `key` of flag `name` with the given ordered values.
        """
        if (flag := self.lookup(name)) is None:
            raise ValueError(f"no such flag -{name}")
        flag._annotations[key] = list(values)

    def hide(self, name, /):
        if (flag := self.lookup(name)) is not None:
            flag._hidden = True

    @property
    def args(self):
        """
        Positional arguments left by the last parse (flags and their values removed).
        """
        return list(self._args)

    @property
    def nargs(self):
        return len(self._args)

    @property
    def args_len_at_dash(self):
        """
        Number of positional arguments seen before "--" (-1 when "--" was absent).
        """
        return self._dash

    @property
    def parsed(self):
        return self._parsed

    def reset(self):
        """
        Discard the results of previous parses (values back to defaults, changed
        markers cleared). This is the only way `changed` ever goes back to False.
        """
        for flag in self._flags.values():
            flag._reset()
        self._args = []
        self._dash = -1
        self._parsed = False

    def parse(self, tokens, /):
        """
        Parse flag tokens out of `tokens`, interspersed with positionals.

        Values are assigned in place on the Flag objects; the remaining positional
        arguments are available through .args afterwards.
        """
        tokens = list(tokens)
        args = []
        self._dash = -1
        while tokens:
            token = tokens.pop(0)
            if len(token) < 2 or not token.startswith("-"):
                args.append(token)
            elif token == "--":
                self._dash = len(args)
                args.extend(tokens)
                break
            elif token.startswith("--"):
                self._parse_long(token, tokens)
            else:
                self._parse_short(token, tokens)
        self._args = args
        self._parsed = True

    def _parse_long(self, token, tokens):
        name, separator, value = token[2:].partition("=")
        if not name or name.startswith("-"):
            raise UnknownFlagError(
                "bad flag syntax: %s" % token,
                title="malformed flag",
                code=FaultCode.UNKNOWN_FLAG,
                input=token,
                hint="flags are written --name, --name=value or -n",
            )
        if (flag := self.lookup(name)) is None:
            if name == "help":
                raise HelpRequested()
            raise UnknownFlagError(
                "unknown flag: --%s" % name,
                title="unknown flag",
                code=FaultCode.UNKNOWN_FLAG,
                input=token,
                hint="check the spelling or run with --help to see the available flags",
            )
        if separator:
            pass
        elif not flag.takes_value:
            value = flag.implicit
        elif tokens:
            value = tokens.pop(0)
        else:
            raise FlagValueRequiredError(
                "flag needs an argument: --%s" % name,
                title="missing flag value",
                code=FaultCode.FLAG_VALUE_REQUIRED,
                input=token,
                hint="use --%s=<value> or --%s <value>" % (name, name),
            )
        self._assign(flag, value, "--" + name)

    def _parse_short(self, token, tokens):
        body = token[1:]
        while body:
            char, body = body[0], body[1:]
            if (flag := self.shorthand(char)) is None:
                if char == "h":
                    raise HelpRequested()
                raise UnknownFlagError(
                    "unknown shorthand flag: %r in %s" % (char, token),
                    title="unknown flag",
                    code=FaultCode.UNKNOWN_FLAG,
                    input=token,
                    hint="check the spelling or run with --help to see the available flags",
                )
            if body.startswith("="):
                value, body = body[1:], ""
            elif not flag.takes_value:
                value = flag.implicit
            elif body:
                value, body = body, ""
            elif tokens:
                value = tokens.pop(0)
            else:
                raise FlagValueRequiredError(
                    "flag needs an argument: %r in -%s" % (char, char),
                    title="missing flag value",
                    code=FaultCode.FLAG_VALUE_REQUIRED,
                    input=token,
                    hint="use -%s=<value> or -%s <value>" % (char, char),
                )
            self._assign(flag, value, "-" + char)

    def _assign(self, flag, value, display):
        try:
            flag._assign(value)
        except (TypeError, ValueError) as error:
            raise InvalidFlagValueError(
                "invalid argument %r for %r flag: %s" % (value, display, error),
                title="invalid flag value",
                code=FaultCode.INVALID_FLAG_VALUE,
                input=display,
                value=value,
                hint="check the expected value format of %s" % display,
            ) from None


__all__ = (
    "Flag",
    "FlagSet",
    "boolean",
)
