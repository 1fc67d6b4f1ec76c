"""
Commandeer command layer: build command trees, resolve argument vectors, run them.

What this module provides
- Command: a node of a command tree with:
  • Identity: name, aliases, suggest_for aliases, short description, group id.
  • Flags: own and persistent flag sets, plus lazily merged views
    (local_flags, inherited_flags, all_flags) with closest-wins shadowing.
  • Resolution: find() (strip flags, match names, recurse) and traverse()
    (parse each level's flags before descending), exact/alias/prefix matching.
  • Constraints: positional validators, required flags, flag groups.
  • Completion: argument completion hook, valid_args, per-flag hooks registered
    in the tree's Context.
  • Lifecycle hooks: persistent_pre_run, pre_run, run, post_run, persistent_post_run.

- Factories and helpers:
  • command(...): create a Command or a decorator that produces one.
  • invoke(obj, prompt): convenience runner for Commands or plain callables.

Quick start
    from commandeer import command, Flag

    @command(shell=True)
    def tool(command, args):
        \"\"\"Manage the things.\"\"\"

    @tool.command
    def status(command, args):
        \"\"\"Show the status.\"\"\"
        print(command.flags().value("short"))

    status.flags().add(Flag.switch("short", "s", "short format"))

    if __name__ == "__main__":
        tool.execute()

Design notes
- Options left Unset (shell, prefix_matching, silence_errors...) are inherited
  from the parent at the time they are read, so a subtree can be built before
  being attached.
- Every hook has the shape hook(command, args) and signals failure by raising a
  CommandException (DelegatedCommandError for user code).
- User-input faults raise in library mode and print + exit(1) in shell mode;
  wiring mistakes raise TypeError/ValueError right away.
"""
import inspect
import os.path
import re
import shlex
import sys
from collections import defaultdict
from collections.abc import Iterable

from rich.console import Console
from rich.text import Text

from . import faults
from .arguments import legacy_args, arbitrary_args, minimum_args
from .completions import COMPLETE, COMPLETE_NO_DESC, Directive, complete_run
from .context import Context
from .faults import *
from .flags import Flag, FlagSet
from .groups import *
from .suggestions import find_suggestion, suggestions_for
from .utils import *


def _inherited(name, default):
    """
    Property reading "_<name>" on the nearest command (self first) that set it.
    """
    @rename(name)
    def getter(self):
        command = self
        while command is not None:
            if (object := getattr(command, "_" + name)) is not Unset:
                return object
            command = command._parent
        return default
    return property(getter)


def _takes_value(flag):
    # an unknown flag is assumed to take a value
    return flag is None or flag.takes_value


def _is_flag_arg(token):
    return (len(token) >= 3 and token.startswith("--")) or (len(token) >= 2 and token[0] == "-" and token[1] != "-")


def _process_strings(cls, metadata):
    """
    Trim scalar strings, reject empty ones and resolve Unset to None.
    """
    for name in (
            "name",
            "short",
            "version",
            "deprecated",
            "group",
    ):
        if not isinstance(object := metadata[name], str | Unset):
            raise TypeError(f"{cls.__typename__} {name!r} must be a string")
        elif isinstance(object, str) and not (object := object.strip()):
            raise ValueError(f"{cls.__typename__} {name!r} cannot be empty")
        metadata[name] = coalesce(object)
    if not re.fullmatch(r"(?!-)[\w.:-]+", metadata["name"]):
        raise ValueError(f"{cls.__typename__} 'name' must be a single word not starting with a dash")
    metadata["short"] = metadata["short"] or ""


def _process_iterables(cls, metadata):
    """
    Stabilize iterable-of-string fields to lists, rejecting duplicates.
    """
    for name in (
            "aliases",
            "suggest_for",
            "valid_args",
            "arg_aliases",
    ):
        if isinstance(object := metadata[name], str) or not isinstance(object, Iterable):
            raise TypeError(f"{cls.__typename__} {name!r} must be an iterable of strings")
        items = []
        for item in object:
            if not isinstance(item, str):
                raise TypeError(f"{cls.__typename__} {name!r} must be an iterable of strings")
            elif not (item := item.strip()):
                raise ValueError(f"{cls.__typename__} {name!r} must be an iterable of non-empty strings")
            elif item in items:
                raise ValueError(f"{cls.__typename__} {name!r} cannot contain duplicates")
            items.append(item)
        metadata[name] = items


def _process_callables(cls, metadata):
    for name in (
            "callback",
            "validator",
            "completion",
            "persistent_pre_run",
            "pre_run",
            "post_run",
            "persistent_post_run",
            "flag_error",
    ):
        if not callable(object := metadata[name]) and object is not Unset:
            raise TypeError(f"{cls.__typename__} {name!r} must be callable")


class Command(metaclass=IntrospectiveType):
    """
    A node of a command tree.

    Lifecycle
    - Built from an optional callback (the `run` hook); commands without one are
      pure groupings and show their help when called.
    - Attached with parent.add_command(child) or Command(..., parent=...); a child
      has exactly one parent and a command can't be its own ancestor.
    - Executed from the root with execute(prompt); the target is resolved, its
      flags parsed and validated, and its hooks run.

    Notes
    - Flag sets are created on first access; merged views are cached and rebuilt
      when a flag set on the path to the root gained flags or the path changed.
    """

    __introspectable__ = (
        "name",
        "aliases",
        "suggest_for",
        "short",
        "group",
        "groups",
        "parent",
        "children",
        "valid_args",
        "arg_aliases",
        "version",
        "deprecated",
        "hidden",
        "validator",
        "completion",
    )

    __displayable__ = (
        "name",
        "aliases",
        "short",
        "version",
        "deprecated",
        "hidden",
    )

    shell = _inherited("shell", False)
    colorful = _inherited("colorful", False)
    fancy = _inherited("fancy", False)
    prefix_matching = _inherited("prefix_matching", False)
    case_insensitive = _inherited("case_insensitive", False)
    traverse_children = _inherited("traverse_children", False)
    disable_suggestions = _inherited("disable_suggestions", False)
    suggestions_minimum_distance = _inherited("suggestions_minimum_distance", 2)
    silence_errors = _inherited("silence_errors", False)
    silence_usage = _inherited("silence_usage", False)
    flag_error = _inherited("flag_error", None)
    stdout = _inherited("stdout", Console())
    stderr = _inherited("stderr", faults.console)

    def __init__(
            self,
            callback=Unset,
            /,
            parent=Unset,
            # ── Identity ───────────────────────────────────────────────────────────
            name=Unset,
            aliases=(),
            short=Unset,
            *,
            suggest_for=(),
            group=Unset,
            version=Unset,
            deprecated=Unset,
            hidden=False,
            # ── Positionals and completion ─────────────────────────────────────────
            validator=Unset,
            valid_args=(),
            arg_aliases=(),
            completion=Unset,
            # ── Hooks ──────────────────────────────────────────────────────────────
            persistent_pre_run=Unset,
            pre_run=Unset,
            post_run=Unset,
            persistent_post_run=Unset,
            flag_error=Unset,
            # ── Behavior (inherited from the parent when Unset) ────────────────────
            shell=Unset,
            colorful=Unset,
            fancy=Unset,
            prefix_matching=Unset,
            case_insensitive=Unset,
            traverse_children=Unset,
            disable_flag_parsing=False,
            disable_suggestions=Unset,
            suggestions_minimum_distance=Unset,
            silence_errors=Unset,
            silence_usage=Unset,
            # ── Plumbing ───────────────────────────────────────────────────────────
            stdout=Unset,
            stderr=Unset,
            context=Unset,
    ):
        cls = self.__class__
        if not isinstance(parent, Command | Unset):
            raise TypeError(f"{cls.__typename__} 'parent' must be a command")
        if not isinstance(context, Context | Unset):
            raise TypeError(f"{cls.__typename__} 'context' must be a context")
        for label, console in (("stdout", stdout), ("stderr", stderr)):
            if not isinstance(console, Console | Unset):
                raise TypeError(f"{cls.__typename__} {label!r} must be a rich console")
        if not isinstance(suggestions_minimum_distance, int | Unset):
            raise TypeError(f"{cls.__typename__} 'suggestions_minimum_distance' must be an integer")

        default = getattr(callback, "__name__", os.path.basename(sys.argv[0]))
        metadata = {
            "callback": callback,
            "name": coalesce(name, default.strip("_").replace("_", "-") or default),
            "aliases": aliases,
            "short": coalesce(short, (callable(callback) and inspect.getdoc(callback) or "").partition("\n")[0] or Unset),
            "suggest_for": suggest_for,
            "group": group,
            "version": version,
            "deprecated": deprecated,
            "valid_args": valid_args,
            "arg_aliases": arg_aliases,
            "validator": validator,
            "completion": completion,
            "persistent_pre_run": persistent_pre_run,
            "pre_run": pre_run,
            "post_run": post_run,
            "persistent_post_run": persistent_post_run,
            "flag_error": flag_error,
        }
        _process_strings(cls, metadata)
        _process_iterables(cls, metadata)
        _process_callables(cls, metadata)

        for name, object in metadata.items():
            setattr(self, "_" + name, object)
        # callables keep Unset so "not given" stays distinguishable from None
        self._hidden = bool(hidden)
        self._disable_flag_parsing = bool(disable_flag_parsing)
        self._shell = shell
        self._colorful = colorful
        self._fancy = fancy
        self._prefix_matching = prefix_matching
        self._case_insensitive = case_insensitive
        self._traverse_children = traverse_children
        self._disable_suggestions = disable_suggestions
        self._suggestions_minimum_distance = suggestions_minimum_distance
        self._silence_errors = silence_errors
        self._silence_usage = silence_usage
        self._stdout = stdout
        self._stderr = stderr
        self._context = context

        self._parent = None
        self._children = []
        self._groups = []
        self._called_as = ""
        self._called = False
        self._help_command = None
        self._complete_command = None

        self._own = None
        self._persistent = None
        self._stamp = None
        self._views = None

        if parent is not Unset:
            parent.add_command(self)

    # ── Tree ──────────────────────────────────────────────────────────────────

    @property
    def root(self):
        command = self
        while command._parent is not None:
            command = command._parent
        return command

    @property
    def path(self):
        """
        The ancestry from the root to this command, as a tuple.
        """
        path = [command := self]
        while command._parent is not None:
            path.append(command := command._parent)
        return tuple(reversed(path))

    @property
    def command_path(self):
        return " ".join(command.name for command in self.path)

    @property
    def disable_flag_parsing(self):
        return self._disable_flag_parsing

    @property
    def runnable(self):
        return self._callback is not Unset

    @property
    def has_subcommands(self):
        return bool(self._children)

    @property
    def has_available_subcommands(self):
        return any(child.is_available for child in self._children)

    @property
    def is_available(self):
        """
        Whether the command is offered to users (help listings, suggestions,
        completion): not hidden, not deprecated, not the help command, and either
        runnable or the parent of an available command.
        """
        if self._hidden or self._deprecated:
            return False
        if self._parent is not None and self._parent._help_command is self:
            return False
        return self.runnable or self.has_available_subcommands

    @property
    def called_as(self):
        """
        The name or alias this command was invoked with ("" if it was not invoked).
        """
        return self._called_as if self._called else ""

    @property
    def help_command(self):
        return self._help_command

    @property
    def complete_command(self):
        return self._complete_command

    @property
    def context(self):
        root = self.root
        if root._context is Unset:
            root._context = Context()
        return root._context

    def add_command(self, *commands):
        """
        Attach each command as a child, in order.

        Raises
        - TypeError: an argument is not a command.
        - ValueError: a command is attached to itself or to one of its descendants,
          already has a parent, or its name is already used by a sibling.
        """
        typename = type(self).__typename__
        for child in commands:
            if not isinstance(child, Command):
                raise TypeError(f"{typename} add_command() arguments must be commands")
            if child is self:
                raise ValueError(f"{typename} {self.name!r} can't be a child of itself")
            if child in self.path:
                raise ValueError(f"{typename} {child.name!r} is an ancestor of {self.name!r}")
            if child._parent is not None:
                raise ValueError(f"{typename} {child.name!r} already belongs to {child._parent.name!r}")
            if any(other.name == child.name for other in self._children):
                raise ValueError(f"{typename} subcommand name {child.name!r} is already in use")
            # hooks registered while the child was a root move to this tree
            if child._context is not Unset and child._context.registry is not self.context.registry:
                self.context.registry.update(child._context.registry)
            child._parent = self
            self._children.append(child)

    def remove_command(self, *commands):
        for child in commands:
            for index, other in enumerate(self._children):
                if other is child:
                    del self._children[index]
                    child._parent = None
                    break

    def add_group(self, *groups):
        for group in groups:
            if not isinstance(group, Group):
                raise TypeError(f"{type(self).__typename__} add_group() arguments must be groups")
            if self.contains_group(group.id):
                raise ValueError(f"{type(self).__typename__} group id {group.id!r} is already in use")
            self._groups.append(group)

    def contains_group(self, id, /):
        return any(group.id == id for group in self._groups)

    def _check_command_groups(self):
        for child in self._children:
            if child._group is not None and not self.contains_group(child._group):
                raise ValueError(
                    f"group id {child._group!r} is not defined for subcommand {child.command_path!r}"
                )
            child._check_command_groups()

    def command(self, source=Unset, /, *args, **kwargs):
        """
        Create a subcommand of this command (or a decorator that will).

            @tool.command(aliases=["st"])
            def status(command, args): ...
        """
        return command(source, self, *args, **kwargs)

    # ── Flags ─────────────────────────────────────────────────────────────────

    def flags(self):
        """
        The command's own flags (not inherited by subcommands).
        """
        if self._own is None:
            self._own = FlagSet(self.name)
        return self._own

    def persistent_flags(self):
        """
        Flags declared on this command and inherited by every descendant.
        """
        if self._persistent is None:
            self._persistent = FlagSet(self.name)
        return self._persistent

    def _merge(self):
        stamp = tuple((id(command), command.persistent_flags().revision) for command in self.path)
        stamp += (self.flags().revision,)
        if stamp != self._stamp:
            local = FlagSet(self.name).merge(self.flags()).merge(self.persistent_flags())
            inherited = FlagSet(self.name)
            for ancestor in reversed(self.path[:-1]):
                for flag in ancestor.persistent_flags():
                    if flag.name not in local and flag.name not in inherited:
                        inherited.add(flag)
            self._views = local, inherited, FlagSet(self.name).merge(local).merge(inherited)
            self._stamp = stamp
        return self._views

    def local_flags(self):
        return self._merge()[0]

    def inherited_flags(self):
        return self._merge()[1]

    def all_flags(self):
        """
        Every flag applying to this command (local and inherited): the view flags
        are parsed and validated against.
        """
        return self._merge()[2]

    def flag(self, name, /):
        return self.all_flags().lookup(name)

    def init_default_help_flag(self):
        flags = self.all_flags()
        if "help" not in flags:
            shorthand = "h" if flags.shorthand("h") is None else Unset
            self.flags().add(Flag.switch("help", shorthand, f"help for {self.name}"))

    def init_default_version_flag(self):
        if not self._version:
            return
        flags = self.all_flags()
        if "version" not in flags:
            shorthand = "v" if flags.shorthand("v") is None else Unset
            self.flags().add(Flag.switch("version", shorthand, f"version for {self.name}"))

    def help_or_version_present(self):
        flags = self.all_flags()
        return any(flags.changed(name) and flags.value(name) is True for name in ("help", "version"))

    # ── Declarations ──────────────────────────────────────────────────────────

    def mark_flags_required_together(self, *names):
        mark_flags_required_together(self, *names)

    def mark_flags_one_required(self, *names):
        mark_flags_one_required(self, *names)

    def mark_flags_mutually_exclusive(self, *names):
        mark_flags_mutually_exclusive(self, *names)

    def mark_flag_required(self, name, /):
        mark_flag_required(self, name)

    def mark_persistent_flag_required(self, name, /):
        mark_persistent_flag_required(self, name)

    def mark_flag_filename(self, name, /, *extensions):
        mark_flag_filename(self, name, *extensions)

    def mark_flag_dirname(self, name, /, subdir=Unset):
        mark_flag_dirname(self, name, subdir)

    def register_flag_completion(self, name, hook, /):
        """
        Register the completion hook of flag `name` in the tree's context.

        Attach the command to its root first: the registry belongs to the root.
        """
        if (flag := self.flag(name)) is None:
            raise ValueError(f"{type(self).__typename__} {self.name!r} has no flag {name!r}")
        self.context.registry.register(flag, hook)

    # ── Validation ────────────────────────────────────────────────────────────

    def validate_args(self, args, /):
        coalesce(self._validator, arbitrary_args)(self, list(args))

    def validate_required_flags(self):
        validate_required_flags(self)

    def validate_flag_groups(self):
        validate_flag_groups(self)

    # ── Resolution ────────────────────────────────────────────────────────────

    def _matches(self, name):
        if self.case_insensitive:
            return any(name.casefold() == each.casefold() for each in (self.name, *self._aliases))
        return name == self.name or name in self._aliases

    def _prefixed(self, prefix):
        if self.name.startswith(prefix):
            return self.name
        for alias in self._aliases:
            if alias.startswith(prefix):
                return alias
        return None

    def find_next(self, name, /):
        """
        The child called `name` (or aliased so); failing that, when prefix matching
        is enabled, the only child whose name or alias starts with `name`.
        Ambiguous prefixes match nothing.
        """
        matches = []
        for child in self._children:
            if child._matches(name):
                child._called_as = name
                return child
            if self.prefix_matching and (called := child._prefixed(name)) is not None:
                matches.append((child, called))
        if len(matches) == 1:
            child, child._called_as = matches[0]
            return child
        return None

    def strip_flags(self, args, /):
        """
        The non-flag words of `args`, up to "--".

        Values of flags taking one are skipped; a value-taking flag in last or
        next-to-last position ends the scan.
        """
        flags = self.all_flags()
        commands = []
        args = list(args)
        while args:
            token = args.pop(0)
            if token == "--":
                break
            if "=" not in token and (
                (token.startswith("--") and _takes_value(flags.lookup(token[2:]))) or
                (token.startswith("-") and len(token) == 2 and _takes_value(flags.shorthand(token[1])))
            ):
                if len(args) <= 1:
                    break
                args.pop(0)
            elif token and not token.startswith("-"):
                commands.append(token)
        return commands

    def args_minus_first(self, args, name, /):
        """
        Copy of `args` without the first non-flag occurrence of `name`.
        """
        flags = self.all_flags()
        index = 0
        while index < len(args):
            token = args[index]
            if token == "--":
                break
            if "=" not in token and (
                (token.startswith("--") and _takes_value(flags.lookup(token[2:]))) or
                (token.startswith("-") and len(token) == 2 and _takes_value(flags.shorthand(token[1])))
            ):
                index += 2
                continue
            if not token.startswith("-") and token == name:
                return args[:index] + args[index + 1:]
            index += 1
        return list(args)

    def find(self, args, /):
        """
        Resolve the target command of `args` without parsing any flag.

        Returns (command, remaining args); the remaining args still hold every
        flag, the target parses them. A command without validator is checked
        with legacy_args, so a root with subcommands rejects unknown words.
        """
        command, rest = self, list(args)
        while stripped := command.strip_flags(rest):
            if (child := command.find_next(stripped[0])) is None:
                break
            command, rest = child, command.args_minus_first(rest, stripped[0])
        if command._validator is Unset:
            legacy_args(command, command.strip_flags(rest))
        return command, rest

    def traverse(self, args, /):
        """
        Resolve the target command of `args`, parsing each level's flags on the way.

        Flags met before a subcommand name are parsed by the command they follow;
        the remaining args are returned untouched for the target.
        """
        args = list(args)
        buffered = []
        in_flag = False
        for index, token in enumerate(args):
            if token == "--":
                break
            if token.startswith("--") and "=" not in token:
                in_flag = _takes_value(self.all_flags().lookup(token[2:]))
                buffered.append(token)
                continue
            if token.startswith("-") and "=" not in token and len(token) == 2:
                in_flag = _takes_value(self.all_flags().shorthand(token[1]))
                buffered.append(token)
                continue
            if in_flag:
                in_flag = False
                buffered.append(token)
                continue
            if _is_flag_arg(token):
                buffered.append(token)
                continue

            if (child := self.find_next(token)) is None:
                return self, args
            try:
                self.all_flags().parse(buffered)
            except HelpRequested:
                raise HelpRequested(self) from None
            except CommandException as error:
                self._handle_flag_error(error)
            return child.traverse(args[index + 1:])
        return self, args

    def _handle_flag_error(self, error):
        if (handler := self.flag_error) is not None:
            error = handler(self, error)
        if error is not None:
            raise error

    def suggestions_for(self, typed, /):
        return suggestions_for(self, typed)

    def find_suggestion(self, typed, /):
        return find_suggestion(self, typed)

    # ── Built-in commands ─────────────────────────────────────────────────────

    def init_default_help_command(self):
        """
        Add the "help" subcommand (last) to a command with subcommands, unless a
        child already uses that name.
        """
        if not self.has_subcommands:
            return
        if self._help_command is None:
            if any(child.name == "help" for child in self._children):
                return
            self._help_command = Command(
                _help,
                name="help",
                short="Help about any command",
                completion=_help_completion,
            )
        self.remove_command(self._help_command)
        self.add_command(self._help_command)

    def init_complete_command(self, args, /):
        """
        Attach the hidden completion command, keeping it only when `args` call it.
        """
        if self._complete_command is None:
            self._complete_command = Command(
                complete_run,
                name=COMPLETE,
                aliases=[COMPLETE_NO_DESC],
                short="Request shell completion choices for the specified command-line",
                hidden=True,
                disable_flag_parsing=True,
                validator=minimum_args(1),
            )
        if self._complete_command._parent is None:
            self.add_command(self._complete_command)
        try:
            found, _ = self.find(args)
        except CommandException:
            found = None
        if found is not self._complete_command:
            self.remove_command(self._complete_command)

    # ── Rendering ─────────────────────────────────────────────────────────────

    @property
    def use_line(self):
        flags = any(not flag.hidden for flag in self.all_flags())
        return self.command_path + (" [flags]" if flags else "")

    def usage_hint(self):
        return Text(f"Run '{self.command_path} --help' for usage.")

    def help(self):
        """
        Print the usage block of this command on its stdout console.

        Full help screens are left to the embedding program; this only states how
        the command is called and, for groupings, that a subcommand is expected.
        Define a mapping named __styles__ in __main__ to override the palette
        (usage-label, usage-section, description-section).
        """
        styles = defaultdict(str, {
            "usage-label": "bold #FFFFFF",
            "usage-section": "bold #36C5F0",
            "description-section": "italic #A3A3A3",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def text(fragment, style):
            return Text(str(fragment), styles[style] if self.colorful else "")

        usage = Text.assemble(text("Usage", "usage-label"), ":\n  ", text(self.use_line, "usage-section"))
        if self.has_available_subcommands:
            usage.append("\n  ").append(text(f"{self.command_path} [command]", "usage-section"))
        if self._short:
            usage = Text.assemble(text(self._short, "description-section"), "\n\n", usage)
        self.stdout.print(usage)

    # ── Execution ─────────────────────────────────────────────────────────────

    def _trigger(self, fault, /, **options):
        trigger(
            fault,
            tool=self,
            shell=self.shell,
            colorful=self.colorful,
            fancy=self.fancy,
            console=self.stderr,
            **options,
        )

    def _fail(self, command, error):
        command._trigger(
            error,
            silent=command.silence_errors,
            usage=None if command.silence_usage else command.usage_hint(),
        )

    def execute(self, prompt=Unset, /, *, value=Unset, active_help=Unset):
        """
        Resolve and run the command line `prompt` from the root of the tree.

        Parameters
        - prompt:
          • Unset: read tokens from sys.argv[1:].
          • str: shell-like string; will be split via shlex.split.
          • Iterable[str]: pre-tokenized sequence.
        - value: opaque value stored on the context for the hooks.
        - active_help: when False, drop active help from completions for this call.

        Returns
        - The command that was resolved (and run).

        Raises
        - CommandException subclasses for user-input faults (outside shell mode;
          in shell mode they are printed and the process exits with status 1).
        - TypeError/ValueError for wiring mistakes (undefined group ids...).
        """
        if self._parent is not None:
            return self.root.execute(prompt, value=value, active_help=active_help)

        if prompt is Unset:
            tokens = sys.argv[1:]
        elif isinstance(prompt, str):
            tokens = shlex.split(prompt)
        elif isinstance(prompt, Iterable):
            tokens = list(prompt)
            if not all(isinstance(token, str) for token in tokens):
                raise TypeError("execute() argument must be a string or an iterable of strings")
        else:
            raise TypeError("execute() argument must be a string or an iterable of strings")

        context = self.context
        if value is not Unset:
            context.value = value
        previous = context.active_help
        if active_help is not Unset:
            context.active_help = bool(active_help)
        try:
            return self._execute_root(tokens)
        finally:
            context.active_help = previous

    def _execute_root(self, tokens):
        self.init_default_help_command()
        self.init_complete_command(tokens)
        self._check_command_groups()

        try:
            command, args = (self.traverse if self.traverse_children else self.find)(tokens)
        except HelpRequested as request:
            (command := request.command or self).help()
            return command
        except CommandException as error:
            self._fail(error.options.get("tool") or self, error)

        command._called = True
        if not command._called_as:
            command._called_as = command.name
        try:
            command._execute(args)
        except HelpRequested as request:
            (request.command or command).help()
        except CommandException as error:
            self._fail(command, error)
        return command

    def _execute(self, args):
        if self._deprecated:
            self._trigger(DeprecatedCommandWarning(
                "command %r is deprecated, %s" % (self.name, self._deprecated),
                title="deprecated command",
                code=FaultCode.DEPRECATED_COMMAND,
            ))

        self.init_default_help_flag()
        self.init_default_version_flag()

        if self.disable_flag_parsing:
            positionals = list(args)
        else:
            flags = self.all_flags()
            try:
                flags.parse(args)
            except HelpRequested:
                raise HelpRequested(self) from None
            except CommandException as error:
                return self._handle_flag_error(error)
            for flag in flags:
                if flag.changed and flag.deprecated:
                    self._trigger(DeprecatedFlagWarning(
                        "flag --%s has been deprecated, %s" % (flag.name, flag.deprecated),
                        title="deprecated flag",
                        code=FaultCode.DEPRECATED_FLAG,
                    ))
            if flags.changed("help") and flags.value("help") is True:
                raise HelpRequested(self)
            if self._version and flags.changed("version") and flags.value("version") is True:
                self.stdout.print(Text(f"{self.name} version {self._version}"))
                return
            positionals = flags.args

        if not self.runnable:
            raise HelpRequested(self)

        self.validate_args(positionals)

        for command in reversed(self.path):
            if command._persistent_pre_run is not Unset:
                command._persistent_pre_run(self, positionals)
                break
        if self._pre_run is not Unset:
            self._pre_run(self, positionals)

        self.validate_required_flags()
        self.validate_flag_groups()

        self._callback(self, positionals)

        if self._post_run is not Unset:
            self._post_run(self, positionals)
        for command in reversed(self.path):
            if command._persistent_post_run is not Unset:
                command._persistent_post_run(self, positionals)
                break

    def __invoke__(self, prompt=Unset):
        return self.execute(prompt)


def _help(command, args, /):
    """
    Help about any command.
    """
    root = command.root
    try:
        target, _ = root.find(args)
    except CommandException:
        command.stdout.print(Text("Unknown help topic %r" % " ".join(args)))
        root.help()
        return
    target.init_default_help_flag()
    target.init_default_version_flag()
    target.help()


def _help_completion(command, args, to_complete, /):
    try:
        target, _ = command.root.find(args)
    except CommandException:
        return [], Directive.NO_FILE_COMP
    completions = [
        f"{child.name}\t{child.short}"
        for child in target.children
        if (child.is_available or child is target.help_command) and child.name.startswith(to_complete)
    ]
    return completions, Directive.NO_FILE_COMP


def command(source=Unset, /, *args, **kwargs):
    """
    Create a Command or return a decorator to build it later.

    Invocation modes
    - Direct callback:
        cmd = command(func, name="x")
    - Decorator:
        @command(name="x")
        def func(command, args): ...

    Parameters
    - source: Unset | Callable (the run hook)
    - *args, **kwargs: forwarded to Command (parent, name, aliases, options...).
    """
    @rename("command")
    def wrapper(source, /):
        if not callable(source):
            raise TypeError("@command() must be applied to a callable")
        return Command(source, *args, **kwargs)

    return wrapper(source) if source is not Unset else wrapper


def invoke(object, prompt=Unset, /):
    """
    Convenience runner for commands or callables.

    - If 'object' implements __invoke__, call it with prompt.
    - If 'object' is a plain callable, wrap it as a Command and then invoke.
    - Otherwise, raise TypeError.
    """
    if hasattr(object, "__invoke__") and callable(object.__invoke__):
        return object.__invoke__(prompt)

    if callable(object):
        return invoke(command(object), prompt)

    target = "argument" if prompt is Unset else "first argument"
    raise TypeError(f"invoke() {target} must implement __invoke__ method") from None


__all__ = (
    "Command",
    "command",
    "invoke",
)
