"""
Commands module behavioral tests (tree wiring, flag views, resolution, pipeline).

Scope
- Validate parent/child invariants and configuration errors.
- Validate merged flag views: idempotence, shadowing, invalidation.
- Validate find() (exact, alias, prefix, ambiguity, legacy check) and traverse().
- Validate the execute pipeline: hook order, help, version, faults, shell mode.

Conventions
- Test method names follow CamelCase per project convention.
- Consoles are redirected to StringIO buffers.
"""
import io
import unittest
from unittest import TestCase

from rich.console import Console

from commandeer import Command, Context, Flag, Group, command, invoke, arbitrary_args, exact_args
from commandeer.faults import (
    UnknownCommandError,
    UnknownFlagError,
    ArgumentCountError,
    RequiredFlagsError,
    DelegatedCommandError,
    DeprecatedCommandWarning,
)


def noop(command, args):
    pass


def root(**options):
    out, err = io.StringIO(), io.StringIO()
    tool = Command(
        name="app",
        stdout=Console(file=out, width=200),
        stderr=Console(file=err, width=200),
        context=Context(environ={}),
        **options,
    )
    return tool, out, err


class TestCommandTree(TestCase):

    def testParentIsAttached(self):
        tool, *_ = root()
        child = Command(noop, tool, name="child")
        self.assertIs(child.parent, tool)
        self.assertEqual(tool.children, [child])
        self.assertEqual(child.command_path, "app child")
        self.assertIs(child.root, tool)

    def testSelfParentingRaises(self):
        tool, *_ = root()
        with self.assertRaises(ValueError):
            tool.add_command(tool)

    def testAncestorAsChildRaises(self):
        tool, *_ = root()
        child = Command(noop, tool, name="child")
        with self.assertRaises(ValueError):
            child.add_command(tool)

    def testSecondOwnerRaises(self):
        first, *_ = root()
        second, *_ = root()
        child = Command(noop, first, name="child")
        with self.assertRaises(ValueError):
            second.add_command(child)

    def testDuplicateNameRaises(self):
        tool, *_ = root()
        Command(noop, tool, name="child")
        with self.assertRaises(ValueError):
            Command(noop, tool, name="child")

    def testRemoveClearsParent(self):
        tool, *_ = root()
        child = Command(noop, tool, name="child")
        tool.remove_command(child)
        self.assertIsNone(child.parent)
        self.assertEqual(tool.children, [])
        other, *_ = root()
        other.add_command(child)
        self.assertIs(child.parent, other)

    def testDecoratorCreatesChild(self):
        tool, *_ = root()

        @tool.command(aliases=["st"])
        def show_status(command, args):
            """Show the status.

            Longer description.
            """

        self.assertEqual(show_status.name, "show-status")
        self.assertEqual(show_status.short, "Show the status.")
        self.assertEqual(show_status.aliases, ["st"])
        self.assertIs(show_status.parent, tool)

    def testUndefinedGroupRaises(self):
        tool, *_ = root()
        Command(noop, tool, name="child", group="core")
        with self.assertRaises(ValueError):
            tool.execute(["child"])
        tool.add_group(Group("core", "Core Commands:"))
        tool.execute(["child"])

    def testOptionsAreInherited(self):
        tool, *_ = root(prefix_matching=True, silence_usage=True)
        child = Command(noop, tool, name="child", silence_usage=False)
        self.assertTrue(child.prefix_matching)
        self.assertFalse(child.silence_usage)
        self.assertIs(child.stdout, tool.stdout)
        self.assertIs(child.context, tool.context)


class TestFlagViews(TestCase):

    def setUp(self):
        self.tool, *_ = root()
        self.verbose = self.tool.persistent_flags().add(Flag.switch("verbose", "v"))
        self.child = Command(noop, self.tool, name="child")
        self.leaf = Command(noop, self.child, name="leaf")

    def testViewsAreIdempotent(self):
        self.assertIs(self.leaf.local_flags(), self.leaf.local_flags())
        self.assertIs(self.leaf.inherited_flags(), self.leaf.inherited_flags())
        first = [id(flag) for flag in self.leaf.all_flags()]
        second = [id(flag) for flag in self.leaf.all_flags()]
        self.assertEqual(first, second)

    def testPersistentFlagIsShared(self):
        self.assertIs(self.leaf.inherited_flags().lookup("verbose"), self.verbose)
        self.assertIs(self.leaf.flag("verbose"), self.verbose)

    def testClosestPersistentFlagShadows(self):
        closer = self.child.persistent_flags().add(Flag.switch("verbose"))
        self.assertNotIn("verbose", self.child.inherited_flags())
        self.assertIs(self.child.local_flags().lookup("verbose"), closer)
        self.assertIs(self.leaf.inherited_flags().lookup("verbose"), closer)

    def testOwnFlagIsNotInherited(self):
        self.child.flags().add(Flag("local"))
        self.assertIn("local", self.child.local_flags())
        self.assertNotIn("local", self.leaf.all_flags())

    def testViewsFollowRegistration(self):
        before = self.leaf.all_flags()
        self.tool.persistent_flags().add(Flag("config", "c"))
        self.assertIsNot(self.leaf.all_flags(), before)
        self.assertIn("config", self.leaf.inherited_flags())

    def testViewsFollowReparenting(self):
        self.child.remove_command(self.leaf)
        self.assertNotIn("verbose", self.leaf.all_flags())


class TestFind(TestCase):

    def setUp(self):
        self.tool, *_ = root()
        self.tool.persistent_flags().add(Flag("config", "c"))
        self.status = Command(noop, self.tool, name="status", aliases=["st"])
        self.start = Command(noop, self.tool, name="start")
        self.build = Command(noop, self.tool, name="build")

    def testExactName(self):
        found, rest = self.tool.find(["build", "--config", "x", "arg"])
        self.assertIs(found, self.build)
        self.assertEqual(rest, ["--config", "x", "arg"])

    def testAlias(self):
        found, _ = self.tool.find(["st"])
        self.assertIs(found, self.status)
        self.assertEqual(found._called_as, "st")

    def testFlagValueIsNotACommand(self):
        found, rest = self.tool.find(["--config", "build", "start"])
        self.assertIs(found, self.start)
        self.assertEqual(rest, ["--config", "build"])

    def testUniquePrefix(self):
        tool, *_ = root(prefix_matching=True)
        status = Command(noop, tool, name="status")
        Command(noop, tool, name="build")
        found, rest = tool.find(["stat"])
        self.assertIs(found, status)
        self.assertEqual(rest, [])

    def testAmbiguousPrefixMatchesNothing(self):
        tool, *_ = root(prefix_matching=True, validator=arbitrary_args)
        Command(noop, tool, name="status")
        Command(noop, tool, name="start")
        self.assertIsNone(tool.find_next("sta"))
        found, rest = tool.find(["sta"])
        self.assertIs(found, tool)
        self.assertEqual(rest, ["sta"])

    def testPrefixNeedsOptIn(self):
        self.assertIsNone(self.tool.find_next("bui"))

    def testCaseInsensitive(self):
        tool, *_ = root(case_insensitive=True)
        child = Command(noop, tool, name="status")
        self.assertIs(tool.find_next("STATUS"), child)

    def testUnknownCommandRaises(self):
        with self.assertRaises(UnknownCommandError) as context:
            self.tool.find(["biuld"])
        self.assertIn("Did you mean this?", str(context.exception))
        self.assertIn("build", str(context.exception))

    def testNestedLeftoversAreArguments(self):
        remote = Command(noop, self.tool, name="remote")
        Command(noop, remote, name="add")
        found, rest = self.tool.find(["remote", "origin"])
        self.assertIs(found, remote)
        self.assertEqual(rest, ["origin"])

    def testStripFlags(self):
        self.assertEqual(self.tool.strip_flags(["-c", "x", "a", "--", "b"]), ["a"])
        self.assertEqual(self.tool.strip_flags(["a", "--config"]), ["a"])

    def testArgsMinusFirst(self):
        self.assertEqual(
            self.tool.args_minus_first(["--config", "build", "build", "x"], "build"),
            ["--config", "build", "x"],
        )


class TestTraverse(TestCase):

    def setUp(self):
        self.tool, *_ = root(traverse_children=True)
        self.config = self.tool.flags().add(Flag("config", "c"))
        self.child = Command(noop, self.tool, name="child")

    def testParentFlagsAreParsedOnTheWay(self):
        found, rest = self.tool.traverse(["--config", "x", "child", "arg"])
        self.assertIs(found, self.child)
        self.assertEqual(rest, ["arg"])
        self.assertEqual(self.config.value, "x")

    def testUnknownWordStops(self):
        found, rest = self.tool.traverse(["-c", "x", "other"])
        self.assertIs(found, self.tool)
        self.assertEqual(rest, ["-c", "x", "other"])

    def testUnknownParentFlagGoesThroughHook(self):
        seen = []

        def handler(command, error):
            seen.append(error)
            return DelegatedCommandError("bad flag on %s" % command.name)

        tool, *_ = root(traverse_children=True, flag_error=handler)
        Command(noop, tool, name="child")
        with self.assertRaises(DelegatedCommandError):
            tool.traverse(["--nope=1", "child"])
        self.assertIsInstance(seen[0], UnknownFlagError)

    def testExecuteWithTraverse(self):
        self.tool.execute(["--config", "x", "child"])
        self.assertEqual(self.config.value, "x")

    def testFindRejectsParentLocalFlag(self):
        tool, *_ = root()
        tool.flags().add(Flag("config", "c"))
        Command(noop, tool, name="child")
        with self.assertRaises(UnknownFlagError):
            tool.execute(["--config", "x", "child"])


class TestExecute(TestCase):

    def testHookOrder(self):
        calls = []

        def hook(label):
            return lambda command, args: calls.append((label, command.name, list(args)))

        tool, *_ = root(persistent_pre_run=hook("persistent-pre"), persistent_post_run=hook("persistent-post"))
        Command(
            hook("run"),
            tool,
            name="child",
            pre_run=hook("pre"),
            post_run=hook("post"),
        )
        tool.execute("child a b")
        self.assertEqual(calls, [
            ("persistent-pre", "child", ["a", "b"]),
            ("pre", "child", ["a", "b"]),
            ("run", "child", ["a", "b"]),
            ("post", "child", ["a", "b"]),
            ("persistent-post", "child", ["a", "b"]),
        ])

    def testClosestPersistentHookWins(self):
        calls = []
        tool, *_ = root(persistent_pre_run=lambda command, args: calls.append("root"))
        middle = Command(name="middle", parent=tool, persistent_pre_run=lambda command, args: calls.append("middle"))
        Command(noop, middle, name="leaf")
        tool.execute(["middle", "leaf"])
        self.assertEqual(calls, ["middle"])

    def testExecuteReturnsTarget(self):
        tool, *_ = root()
        child = Command(noop, tool, name="child")
        self.assertIs(tool.execute(["child"]), child)
        self.assertEqual(child.called_as, "child")

    def testContextValueIsThreaded(self):
        seen = []
        tool, *_ = root()
        Command(lambda command, args: seen.append(command.context.value), tool, name="child")
        token = object()
        tool.execute(["child"], value=token)
        self.assertIs(seen[0], token)

    def testHelpFlagPrintsUsage(self):
        tool, out, _ = root()
        Command(noop, tool, name="child")
        tool.execute(["--help"])
        text = out.getvalue()
        self.assertIn("Usage:", text)
        self.assertIn("app [flags]", text)
        self.assertIn("app [command]", text)

    def testNonRunnablePrintsUsage(self):
        tool, out, _ = root()
        Command(noop, tool, name="child")
        tool.execute([])
        self.assertIn("app [command]", out.getvalue())

    def testHelpCommand(self):
        tool, out, _ = root()
        Command(noop, tool, name="child", short="Do the child thing")
        tool.execute(["help", "child"])
        self.assertIn("Do the child thing", out.getvalue())
        self.assertIn("app child [flags]", out.getvalue())
        self.assertFalse(tool.help_command.is_available)

    def testVersionFlag(self):
        out = io.StringIO()
        tool = Command(noop, name="app", version="1.2.3", stdout=Console(file=out))
        tool.execute(["--version"])
        self.assertEqual(out.getvalue().strip(), "app version 1.2.3")

    def testValidatorFailureRaises(self):
        tool, *_ = root()
        Command(noop, tool, name="child", validator=exact_args(1))
        with self.assertRaises(ArgumentCountError):
            tool.execute(["child"])

    def testRequiredFlagMissingRaises(self):
        tool, *_ = root()
        child = Command(noop, tool, name="child")
        child.flags().add(Flag("name"))
        child.flags().add(Flag("other"))
        child.mark_flag_required("other")
        child.mark_flag_required("name")
        with self.assertRaises(RequiredFlagsError) as context:
            tool.execute(["child"])
        self.assertEqual(context.exception.options["flags"], ["name", "other"])

    def testFlagErrorHookCanSuppress(self):
        calls = []
        tool, *_ = root(flag_error=lambda command, error: None)
        Command(lambda command, args: calls.append(args), tool, name="child")
        tool.execute(["child", "--nope"])
        self.assertEqual(calls, [])

    def testDeprecatedCommandWarns(self):
        tool, *_ = root()
        Command(noop, tool, name="old", deprecated="use 'new' instead")
        with self.assertWarns(DeprecatedCommandWarning):
            tool.execute(["old"])

    def testShellModePrintsAndExits(self):
        tool, out, err = root(shell=True)
        Command(noop, tool, name="build")
        with self.assertRaises(SystemExit) as context:
            tool.execute(["biuld"])
        self.assertEqual(context.exception.code, 1)
        self.assertIn("unknown command", err.getvalue())
        self.assertIn("Run 'app --help' for usage.", err.getvalue())

    def testShellModeSilenced(self):
        tool, out, err = root(shell=True, silence_errors=True, silence_usage=True)
        Command(noop, tool, name="build")
        with self.assertRaises(SystemExit):
            tool.execute(["biuld"])
        self.assertEqual(err.getvalue(), "")

    def testInvokeWrapsCallables(self):
        calls = []

        def tool(command, args):
            calls.append(args)

        invoke(tool, ["a"])
        self.assertEqual(calls, [["a"]])

    def testCommandFactory(self):
        @command(name="tool", version="0.1")
        def run(command, args):
            pass

        self.assertEqual(run.name, "tool")
        self.assertEqual(run.version, "0.1")


class TestAvailability(TestCase):

    def testNonRunnableNeedsAvailableChildren(self):
        tool, *_ = root()
        topic = Command(name="topic", parent=tool)
        self.assertFalse(topic.is_available)
        hidden = Command(noop, topic, name="hidden", hidden=True)
        self.assertFalse(topic.is_available)
        Command(noop, topic, name="shown")
        self.assertTrue(topic.is_available)
        self.assertFalse(hidden.is_available)


class TestPackage(TestCase):

    def testExportsResolve(self):
        import commandeer
        from commandeer.utils import Unset, coalesce
        for name in commandeer.__all__:
            self.assertTrue(hasattr(commandeer, name), name)
        self.assertFalse(Unset)
        self.assertEqual(coalesce(Unset, "fallback"), "fallback")


if __name__ == "__main__":
    unittest.main()
