r"""
Commandeer completions: candidates and directives for shell completion.

Protocol
- The shell calls the program with a hidden command, `__complete` (with
  descriptions) or `__completeNoDesc` (without), followed by the words of the
  line; the last word is the partial one being completed (possibly "").
- The program answers on stdout, one candidate per line (`value` or
  `value<TAB>description`), then a final `:<directive>` line; diagnostics go to
  stderr and never change the exit status.

Directive
- A bit set of hints to the shell (Directive.NO_SPACE | Directive.NO_FILE_COMP...).

Hooks
- A completion hook has the shape `hook(command, args, to_complete)` and returns
  `(candidates, directive)`; it may raise a CommandException, in which case the
  request degrades to no candidates with the default directive.
- Per-flag hooks live in the context's CompletionRegistry, argument hooks on the
  command itself (`Command(..., completion=hook)`).

Active help
- Candidates starting with ACTIVE_HELP_MARKER are hints for the user rather than
  values; they are dropped when active help is disabled (see active_help_config).
"""
from contextlib import contextmanager
from enum import IntFlag

from rich.text import Text

from .context import envkey
from .faults import *
from .flags import boolean
from .groups import *
from .utils import *


COMPLETE = "__complete"
COMPLETE_NO_DESC = "__completeNoDesc"
ACTIVE_HELP_MARKER = "_activeHelp_ "


class Directive(IntFlag):
    """
    Completion hints sent to the shell as a bit set after the candidates.

    - ERROR: an error occurred, ignore the candidates.
    - NO_SPACE: do not add a space after the (single) completion.
    - NO_FILE_COMP: do not fall back to file completion when there is no candidate.
    - FILTER_FILE_EXT: the candidates are file extensions to filter on.
    - FILTER_DIRS: complete directory names only (inside the candidate dir, if any).
    - KEEP_ORDER: keep the candidates in the given order instead of sorting them.
    """
    DEFAULT = 0
    ERROR = 1
    NO_SPACE = 2
    NO_FILE_COMP = 4
    FILTER_FILE_EXT = 8
    FILTER_DIRS = 16
    KEEP_ORDER = 32

    def describe(self):
        if not (names := [member.name for member in type(self) if member and member in self]):
            return "DEFAULT"
        return ", ".join(names)


def fixed_completions(choices, directive=Directive.DEFAULT, /):
    """
    Build a hook completing with `choices` whatever the partial word is.
    """
    choices = list(choices)
    directive = Directive(directive)

    @rename("fixed_completions")
    def hook(command, args, to_complete, /):
        return list(choices), directive
    return hook


def no_file_completions(command, args, to_complete, /):
    """
    Hook that completes nothing and keeps the shell from completing file names.
    """
    return [], Directive.NO_FILE_COMP


def append_active_help(candidates, text, /):
    return [*candidates, ACTIVE_HELP_MARKER + text]


def active_help_config(command, /):
    """
    Value of the active help configuration for the program of `command`.

    The prefix-scoped variable (COMMANDEER_ACTIVE_HELP by default) set to "0"
    disables active help globally; otherwise the program variable
    (<PROGRAM>_ACTIVE_HELP) decides.
    """
    context = command.context
    if (value := context.getenv(envkey(context.prefix, "ACTIVE_HELP"))) == "0":
        return value
    return context.getenv(envkey(command.root.name, "ACTIVE_HELP"))


def _flag_name_completions(flag, to_complete):
    if flag.hidden or flag.deprecated:
        return []
    completions = []
    # value-taking flags are offered in their "--name=" form
    if (name := "--" + flag.name + ("=" if flag.takes_value else "")).startswith(to_complete):
        completions.append(f"{name}\t{flag.descr}")
    if flag.shorthand and (name := "-" + flag.shorthand).startswith(to_complete):
        completions.append(f"{name}\t{flag.descr}")
    return completions


def _required_flag_completions(command, to_complete):
    completions = []
    for flags in (command.inherited_flags(), command.local_flags()):
        for flag in flags:
            if is_required(flag) and not flag.changed:
                completions.extend(_flag_name_completions(flag, to_complete))
    return completions


def _flag_completion(command, args, to_complete):
    """
    Decide whether the partial word is the value of a flag.

    Returns (flag or None, args, to_complete): `--name=<partial>` and a previous
    word naming a value-taking flag both select the flag; the previous word is
    then dropped from `args` so parsing does not fail on its missing value.
    """
    if command.disable_flag_parsing:
        return None, args, to_complete

    name = ""
    trimmed = args
    with_equal = False
    original = to_complete

    if to_complete.startswith("-"):
        if (index := to_complete.find("=")) < 0:
            return None, args, to_complete
        # -abc=<partial> completes the value of the last shorthand
        name = to_complete[2:index] if to_complete.startswith("--") else to_complete[index - 1:index]
        to_complete = to_complete[index + 1:]
        with_equal = True
    elif args and _is_flag_arg(previous := args[-1]) and "=" not in previous:
        name = previous[2:] if previous.startswith("--") else previous[-1]
        trimmed = args[:-1]

    if not name:
        return None, trimmed, to_complete

    flags = command.all_flags()
    if (flag := flags.lookup(name) if len(name) > 1 else flags.shorthand(name) or flags.lookup(name)) is None:
        raise FlagCompletionError(
            "subcommand %r does not support flag %r" % (command.name, name),
            title="unknown flag",
            code=FaultCode.FLAG_COMPLETION,
            tool=command,
            input=name,
            args=args,
            partial=original,
        )
    if not with_equal and not flag.takes_value:
        # a presence-only flag: the partial word is a noun, not its value
        return None, args, to_complete
    return flag, trimmed, to_complete


def _is_flag_arg(token):
    return (len(token) >= 3 and token.startswith("--")) or (len(token) >= 2 and token[0] == "-" and token[1] != "-")


class Completer:
    """
    Compute completion candidates for a command line.

    Resolution uses the same strategy as execution (`traverse` when the root
    enables traverse_children, `find` otherwise) against every word but the
    partial one; the resolved command then completes, in order:
    - a flag value (file/dir annotations, then the flag's registered hook),
    - nothing at all when --help or --version is already on the line,
    - flag names, when the partial word starts with "-",
    - otherwise subcommand names, required flags, valid_args and the command's
      own completion hook.
    """

    def __init__(self, command, /):
        self.command = command

    @contextmanager
    def _resolving(self):
        # a root whose only child is the completion command must resolve as a
        # command without subcommands
        root = self.command.root
        hidden = root.complete_command
        if hidden is not None and root.children == [hidden]:
            root.remove_command(hidden)
            try:
                yield root
            finally:
                root.add_command(hidden)
        else:
            yield root

    def complete(self, args, /):
        """
        Return (final command, candidates, directive) for the words `args`.

        Raises a CommandException when the line cannot be resolved; callers in
        the completion protocol degrade it to no candidates.
        """
        args = list(args) or [""]
        to_complete, trimmed = args[-1], args[:-1]

        with self._resolving() as root:
            try:
                if root.traverse_children:
                    final, final_args = root.traverse(trimmed)
                else:
                    final, final_args = root.find(trimmed)
            except CommandException as error:
                raise UnknownCommandError(
                    "unable to find a command for arguments: %s" % trimmed,
                    title="unresolved completion",
                    code=FaultCode.UNKNOWN_COMMAND,
                    tool=root,
                    input=trimmed,
                    cause=error,
                ) from error

        if not final.disable_flag_parsing:
            final.init_default_help_flag()
            final.init_default_version_flag()

        try:
            flag, final_args, to_complete = _flag_completion(final, final_args, to_complete)
            failure = None
        except FlagCompletionError as error:
            flag, failure = None, error

        flags = final.all_flags()
        completing_flag = True
        if not final.disable_flag_parsing:
            try:
                flags.parse(final_args)
            except (CommandException, HelpRequested) as error:
                raise InvalidFlagValueError(
                    "error while parsing flags from args %s: %s" % (final_args, error),
                    title="unparsable completion line",
                    code=FaultCode.INVALID_FLAG_VALUE,
                    tool=final,
                    input=final_args,
                ) from error
            # past "--" every word is a positional, never a flag value
            completing_flag = flags.args_len_at_dash < 0
            final_args = flags.args
        if failure is not None and completing_flag:
            raise failure

        if flag is not None and completing_flag:
            return (final, *self._flag_value(final, flag, final_args, to_complete))

        if final.help_or_version_present():
            return final, [], Directive.NO_FILE_COMP

        with flag_groups_enforced_for_completion(final):
            return final, *self._candidates(final, flag, final_args, to_complete, completing_flag)

    def _candidates(self, final, flag, final_args, to_complete, completing_flag):
        completions = []
        directive = Directive.DEFAULT
        if flag is None and to_complete.startswith("-") and "=" not in to_complete and completing_flag:
            if not (completions := _required_flag_completions(final, to_complete)):
                for each in [*final.local_flags(), *final.inherited_flags()]:
                    if not each.changed or each.multiple:
                        completions.extend(_flag_name_completions(each, to_complete))
            directive = Directive.NO_FILE_COMP
            if len(completions) == 1 and completions[0].partition("\t")[0].endswith("="):
                directive = Directive.NO_SPACE
            if not final.disable_flag_parsing:
                return completions, directive
        else:
            completions, directive = self._nouns(final, final_args, to_complete)

        if (hook := final.completion) is not None:
            candidates, directive = hook(final, final_args, to_complete)
            completions.extend(candidates)
            directive = Directive(directive)
        return completions, directive

    def _flag_value(self, final, flag, final_args, to_complete):
        # an annotation without extensions asks for plain file completion, which
        # is the default anyway: a registered hook takes precedence over it
        annotations = flag.annotations
        if extensions := annotations.get(FILENAME_EXTENSIONS):
            return extensions, Directive.FILTER_FILE_EXT
        if SUBDIRS_IN_DIR in annotations:
            return annotations[SUBDIRS_IN_DIR][:1], Directive.FILTER_DIRS
        if (hook := final.context.registry.lookup(flag)) is None:
            return [], Directive.DEFAULT
        candidates, directive = hook(final, final_args, to_complete)
        return list(candidates), Directive(directive)

    def _nouns(self, final, final_args, to_complete):
        completions = []
        directive = Directive.DEFAULT

        local = False
        if not final.root.traverse_children:
            # a local, non-persistent flag on the line means the subcommand is already chosen
            persistent = final.persistent_flags()
            local = any(flag.changed and flag.name not in persistent for flag in final.flags())

        if not final_args and not local:
            for child in final.children:
                if child.is_available or child is final.help_command:
                    if child.name.startswith(to_complete):
                        completions.append(f"{child.name}\t{child.short}")
                    directive = Directive.NO_FILE_COMP

        completions.extend(_required_flag_completions(final, to_complete))

        if final.valid_args and not final_args:
            before = len(completions)
            completions.extend(arg for arg in final.valid_args if arg.startswith(to_complete))
            if len(completions) > before:
                directive = Directive.NO_FILE_COMP
        return completions, directive


def complete_run(command, args, /):
    """
    Body of the hidden completion command: print candidates, then the directive.
    """
    try:
        final, completions, directive = Completer(command.root).complete(args)
    except HelpRequested:
        final, completions, directive = command, [], Directive.NO_FILE_COMP
    except Exception as error:
        # failing hooks included: the shell still gets a directive line
        final, completions, directive = command, [], Directive.DEFAULT
        command.stderr.print(Text("Error: %s" % error), soft_wrap=True)

    context = command.context
    descriptions = command.called_as != COMPLETE_NO_DESC
    if descriptions and (value := context.program(command.root.name, "COMPLETION_DESCRIPTIONS")):
        try:
            descriptions = boolean(value)
        except ValueError:
            pass
    active_help = context.active_help and active_help_config(final) != "0"

    out = final.stdout.file
    for completion in completions:
        if not active_help and completion.startswith(ACTIVE_HELP_MARKER):
            continue
        if not descriptions:
            completion = completion.partition("\t")[0]
        # one line per candidate, trailing blanks (empty descriptions) removed
        out.write(completion.partition("\n")[0].strip() + "\n")
    out.write(":%d\n" % directive)
    command.stderr.print(Text("Completion ended with directive: %s" % directive.describe()), soft_wrap=True)


__all__ = (
    "COMPLETE",
    "COMPLETE_NO_DESC",
    "ACTIVE_HELP_MARKER",
    "Directive",
    "Completer",
    "fixed_completions",
    "no_file_completions",
    "append_active_help",
    "active_help_config",
    "complete_run",
)
