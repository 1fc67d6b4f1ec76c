"""
Application-scoped state shared by every command of one tree.

A root command owns one Context (created lazily, or passed explicitly) and every
descendant reaches it through `command.context`. Nothing here is module-global,
so two applications (or two test cases) never observe each other's hooks.

Contents
- registry: CompletionRegistry mapping Flag identity -> completion hook.
- environ: the mapping environment-driven switches are read from (os.environ
  unless a test injects its own).
- prefix: program-scoped prefix of the environment variables (e.g. COMMANDEER_ACTIVE_HELP).
- value: an opaque value (cancellation token, request context...) threaded down to
  hooks unchanged; acting on it is the embedding program's business.
- active_help: per-invocation switch to drop active-help lines from completions.
"""
import os
import re

from .flags import Flag
from .utils import *


class CompletionRegistry:
    """
    Per-flag completion hooks, keyed by Flag identity.

    - register(): write-exclusive; a second registration for the same flag is a
      configuration error (ValueError), never an overwrite.
    - lookup(): read-shared; concurrent lookups do not block each other.
    - update(): copy another registry's hooks in, with the same duplicate rule.
    """

    def __init__(self):
        self._lock = RWLock()
        self._hooks = {}

    def register(self, flag, hook, /):
        if not isinstance(flag, Flag):
            raise TypeError("register() first argument must be a flag")
        if not callable(hook):
            raise TypeError("register() second argument must be callable")
        with self._lock.writing():
            if id(flag) in self._hooks:
                raise ValueError(f"completion hook for flag {flag.name!r} is already registered")
            # the flag is stored alongside its hook so the id stays owned
            self._hooks[id(flag)] = (flag, hook)

    def lookup(self, flag, /):
        with self._lock.reading():
            try:
                return self._hooks[id(flag)][1]
            except KeyError:
                return None

    def update(self, other, /):
        """
        Register every hook of another registry here (a subtree joining a tree).
        """
        with other._lock.reading():
            entries = list(other._hooks.values())
        for flag, hook in entries:
            self.register(flag, hook)

    def __contains__(self, flag):
        return self.lookup(flag) is not None

    def __len__(self):
        with self._lock.reading():
            return len(self._hooks)


def envkey(name, suffix, /):
    """
    Build an environment variable name: uppercased, non-alphanumerics to '_'.

    envkey("my-prog", "ACTIVE_HELP") -> "MY_PROG_ACTIVE_HELP"
    """
    return re.sub(r"\W", "_", f"{name}_{suffix}".upper())


class Context:

    def __init__(self, value=Unset, *, environ=Unset, prefix="COMMANDEER", registry=Unset, active_help=True):
        if not isinstance(prefix, str) or not prefix.strip():
            raise ValueError("context 'prefix' must be a non-empty string")
        if not isinstance(registry, CompletionRegistry | Unset):
            raise TypeError("context 'registry' must be a completion registry")
        self.value = coalesce(value)
        self.environ = coalesce(environ, os.environ)
        self.prefix = prefix.strip()
        self.registry = CompletionRegistry() if registry is Unset else registry
        self.active_help = bool(active_help)

    def __repr__(self):
        return f"context(prefix={self.prefix!r}, value={self.value!r}, hooks={len(self.registry)})"

    def getenv(self, name, default="", /):
        return self.environ.get(name, default)

    def program(self, program, suffix, /):
        """
        Read the program-qualified variable, falling back to the prefix-scoped one.
        """
        if (value := self.getenv(envkey(program, suffix), None)) is not None:
            return value
        return self.getenv(envkey(self.prefix, suffix))


__all__ = (
    "Context",
    "CompletionRegistry",
    "envkey",
)
