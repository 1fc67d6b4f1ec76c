"""
Commandeer groups: command groups and cross-flag constraints.

Command groups
- Group(id, title) is a structural tag: a command references one by id through
  `Command(..., group=...)` and the parent declares it with `add_group()`.

Flag groups
- Three constraint kinds, each stored as an annotation on every member flag:
  • required together: if any member is set, all must be set;
  • one required: at least one member must be set;
  • mutually exclusive: at most one member may be set.
- The annotation value is a list of group signatures (member names joined by a
  space, in declaration order), so any member leads to its whole group.
- A signature naming a flag absent from the command's effective flag view is
  skipped: the group only applies where all its members are visible.

Validation
- validate_flag_groups(): the three passes run in the order above, each visiting
  its groups sorted by signature; the first broken group raises.
- enforce_flag_groups_for_completion(): never raises; it marks flags required or
  hidden so completion steers the user towards a valid line.
- flag_groups_enforced_for_completion(): the same, undone when the block exits.

Single flags
- mark_flag_required()/validate_required_flags(): "this flag must be given".
- mark_flag_filename()/mark_flag_dirname(): completion hints for flag values.
"""
from contextlib import contextmanager

from .faults import *
from .utils import *


REQUIRED_TOGETHER = "commandeer_annotation_required_if_others_set"
ONE_REQUIRED = "commandeer_annotation_one_required"
MUTUALLY_EXCLUSIVE = "commandeer_annotation_mutually_exclusive"
REQUIRED = "commandeer_annotation_required"
FILENAME_EXTENSIONS = "commandeer_annotation_filename_extensions"
SUBDIRS_IN_DIR = "commandeer_annotation_subdirs_in_dir"


class Group(metaclass=IntrospectiveType):
    """
    A titled group of sibling commands.
    """

    __introspectable__ = (
        "id",
        "title",
    )

    def __init__(self, id, title=Unset, /):
        cls = self.__class__
        if not isinstance(id, str):
            raise TypeError(f"{cls.__typename__} 'id' must be a string")
        elif not (id := id.strip()):
            raise ValueError(f"{cls.__typename__} 'id' must be a non-empty string")
        if not isinstance(title, str | Unset):
            raise TypeError(f"{cls.__typename__} 'title' must be a string")
        self._id = id
        self._title = coalesce(title, id.title() + ":")


def _declare(command, key, names):
    if not names:
        raise ValueError("a flag group needs at least one flag name")
    for name in names:
        if not isinstance(name, str):
            raise TypeError("flag group names must be strings")
    flags = command.all_flags()
    for name in names:
        if name not in flags:
            raise ValueError(
                f"failed to find flag {name!r} and mark it as being part of a group on command {command.name!r}"
            )
    signature = " ".join(names)
    for name in names:
        annotations = flags.lookup(name).annotations
        if signature not in (values := annotations.get(key, [])):
            flags.set_annotation(name, key, values + [signature])


def mark_flags_required_together(command, *names):
    _declare(command, REQUIRED_TOGETHER, names)


def mark_flags_one_required(command, *names):
    _declare(command, ONE_REQUIRED, names)


def mark_flags_mutually_exclusive(command, *names):
    _declare(command, MUTUALLY_EXCLUSIVE, names)


def _status(flags, key):
    """
    Build the table signature -> {member name: changed} for one annotation kind.

    Groups with a member missing from `flags` are left out.
    """
    status = {}
    for flag in flags:
        for signature in flag.annotations.get(key, ()):
            if signature in status:
                continue
            members = signature.split(" ")
            if all(name in flags for name in members):
                status[signature] = {name: flags.changed(name) for name in members}
    return status


def _require_together(command, signature, members):
    changed = [name for name, is_set in members.items() if is_set]
    unchanged = sorted(name for name, is_set in members.items() if not is_set)
    if changed and unchanged:
        raise RequiredTogetherError(
            "if any flags in the group [%s] are set they must all be set; missing %s"
            % (" ".join(sorted(members)), unchanged),
            title="incomplete flag group",
            code=FaultCode.REQUIRED_TOGETHER,
            tool=command,
            group=signature,
            flags=unchanged,
            hint="also pass %s" % ", ".join("--" + name for name in unchanged),
        )


def _require_one(command, signature, members):
    if not any(members.values()):
        names = sorted(members)
        raise OneRequiredError(
            "at least one of the flags in the group [%s] is required" % " ".join(names),
            title="missing flag",
            code=FaultCode.ONE_REQUIRED,
            tool=command,
            group=signature,
            flags=names,
            hint="pass one of %s" % ", ".join("--" + name for name in names),
        )


def _exclude(command, signature, members):
    changed = sorted(name for name, is_set in members.items() if is_set)
    if len(changed) > 1:
        raise MutuallyExclusiveError(
            "if any flags in the group [%s] are set none of the others can be; %s were all set"
            % (" ".join(sorted(members)), changed),
            title="conflicting flags",
            code=FaultCode.MUTUALLY_EXCLUSIVE,
            tool=command,
            group=signature,
            flags=changed,
            hint="keep only one of %s" % ", ".join("--" + name for name in changed),
        )


def validate_flag_groups(command):
    if command.disable_flag_parsing:
        return
    flags = command.all_flags()
    for key, check in (
        (REQUIRED_TOGETHER, _require_together),
        (ONE_REQUIRED, _require_one),
        (MUTUALLY_EXCLUSIVE, _exclude),
    ):
        status = _status(flags, key)
        for signature in sorted(status):
            check(command, signature, status[signature])


def enforce_flag_groups_for_completion(command):
    """
    Adjust flag visibility for completion instead of failing.

    - required together / one required: once a member is set, every other
      member is marked required, so it is offered first;
    - mutually exclusive: once exactly one member is set, every other member is
      hidden (the set one stays visible, it may be repeatable).
    """
    if command.disable_flag_parsing:
        return
    flags = command.all_flags()
    for key in (REQUIRED_TOGETHER, ONE_REQUIRED):
        for members in _status(flags, key).values():
            if any(members.values()):
                for name, is_set in members.items():
                    if not is_set:
                        flags.set_annotation(name, REQUIRED, ["true"])
    for members in _status(flags, MUTUALLY_EXCLUSIVE).values():
        if sum(members.values()) == 1:
            for name, is_set in members.items():
                if not is_set:
                    flags.hide(name)


@contextmanager
def flag_groups_enforced_for_completion(command):
    """
    Apply enforce_flag_groups_for_completion() for the duration of the block.

    The required marks and hidden states it sets are put back on exit, so a
    completion request leaves the tree as it found it for later invocations.
    """
    saved = [(flag, flag.annotations.get(REQUIRED), flag.hidden) for flag in command.all_flags()]
    enforce_flag_groups_for_completion(command)
    try:
        yield command
    finally:
        for flag, required, hidden in saved:
            if required is None:
                flag._annotations.pop(REQUIRED, None)
            else:
                flag._annotations[REQUIRED] = required
            flag._hidden = hidden


def _declared(command, name, /, *, persistent=Unset):
    """
    The set owning flag `name` among the command's own (and/or persistent) flags.
    """
    candidates = {
        Unset: (command.flags(), command.persistent_flags()),
        False: (command.flags(),),
        True: (command.persistent_flags(),),
    }[persistent]
    for flags in candidates:
        if name in flags:
            return flags
    raise ValueError(f"no such flag -{name} on command {command.name!r}")


def mark_flag_required(command, name, /):
    _declared(command, name, persistent=False).set_annotation(name, REQUIRED, ["true"])


def mark_persistent_flag_required(command, name, /):
    _declared(command, name, persistent=True).set_annotation(name, REQUIRED, ["true"])


def mark_flag_filename(command, name, /, *extensions):
    """
    Complete the value of flag `name` with file names, optionally restricted to
    the given extensions ("yaml", "json"...).
    """
    _declared(command, name).set_annotation(name, FILENAME_EXTENSIONS, [ext.lstrip(".") for ext in extensions])


def mark_flag_dirname(command, name, /, subdir=Unset):
    """
    Complete the value of flag `name` with directory names (inside `subdir` if given).
    """
    _declared(command, name).set_annotation(name, SUBDIRS_IN_DIR, [subdir] if subdir else [])


def is_required(flag, /):
    return flag.annotations.get(REQUIRED) == ["true"]


def validate_required_flags(command):
    if command.disable_flag_parsing:
        return
    if missing := [flag.name for flag in command.all_flags() if is_required(flag) and not flag.changed]:
        raise RequiredFlagsError(
            'required flag(s) "%s" not set' % '", "'.join(missing),
            title="missing required flags",
            code=FaultCode.REQUIRED_FLAGS,
            tool=command,
            flags=missing,
            hint="pass %s" % ", ".join("--" + name for name in missing),
        )


__all__ = (
    "Group",
    "REQUIRED_TOGETHER",
    "ONE_REQUIRED",
    "MUTUALLY_EXCLUSIVE",
    "REQUIRED",
    "FILENAME_EXTENSIONS",
    "SUBDIRS_IN_DIR",
    "mark_flags_required_together",
    "mark_flags_one_required",
    "mark_flags_mutually_exclusive",
    "validate_flag_groups",
    "enforce_flag_groups_for_completion",
    "flag_groups_enforced_for_completion",
    "mark_flag_required",
    "mark_persistent_flag_required",
    "mark_flag_filename",
    "mark_flag_dirname",
    "is_required",
    "validate_required_flags",
)
