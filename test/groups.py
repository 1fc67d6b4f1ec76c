"""
Groups module tests (command groups, flag groups, required flags).

Scope
- Validate declarations: unknown names, signatures, idempotence.
- Validate the three constraint kinds and their evaluation order.
- Validate that groups with members missing from a command's view are skipped.
- Validate completion-time enforcement (required marks, hidden flags) and its undoing.

Conventions
- Test method names follow CamelCase per project convention.
"""
import unittest
from unittest import TestCase

from commandeer import Command, Context, Flag, Group
from commandeer.faults import (
    RequiredTogetherError,
    OneRequiredError,
    MutuallyExclusiveError,
    RequiredFlagsError,
)
from commandeer.groups import (
    REQUIRED,
    REQUIRED_TOGETHER,
    ONE_REQUIRED,
    validate_flag_groups,
    enforce_flag_groups_for_completion,
    flag_groups_enforced_for_completion,
    is_required,
)


def noop(command, args):
    pass


def tool(*names, **options):
    command = Command(noop, name="tool", context=Context(environ={}), **options)
    for name in names:
        command.flags().add(Flag(name))
    return command


def parse(command, *tokens):
    command.all_flags().parse(list(tokens))
    return command


class TestCommandGroup(TestCase):

    def testDefaultTitle(self):
        self.assertEqual(Group("core").title, "Core:")
        self.assertEqual(Group("core", "Core Commands:").title, "Core Commands:")

    def testEmptyIdRaises(self):
        with self.assertRaises(ValueError):
            Group("  ")

    def testDuplicateIdRaises(self):
        command = tool()
        command.add_group(Group("core"))
        with self.assertRaises(ValueError):
            command.add_group(Group("core"))


class TestDeclaration(TestCase):

    def testUnknownFlagRaises(self):
        with self.assertRaises(ValueError):
            tool("a").mark_flags_mutually_exclusive("a", "missing")

    def testEmptyGroupRaises(self):
        with self.assertRaises(ValueError):
            tool("a").mark_flags_one_required()

    def testSignatureOnEveryMember(self):
        command = tool("a", "b", "c")
        command.mark_flags_required_together("b", "a")
        self.assertEqual(command.flag("a").annotations[REQUIRED_TOGETHER], ["b a"])
        self.assertEqual(command.flag("b").annotations[REQUIRED_TOGETHER], ["b a"])
        self.assertNotIn(REQUIRED_TOGETHER, command.flag("c").annotations)

    def testRedeclarationIsIgnored(self):
        command = tool("a", "b")
        command.mark_flags_one_required("a", "b")
        command.mark_flags_one_required("a", "b")
        self.assertEqual(command.flag("a").annotations[ONE_REQUIRED], ["a b"])

    def testFlagInSeveralGroups(self):
        command = tool("a", "b", "c")
        command.mark_flags_one_required("a", "b")
        command.mark_flags_one_required("a", "c")
        self.assertEqual(command.flag("a").annotations[ONE_REQUIRED], ["a b", "a c"])


class TestValidation(TestCase):

    def testRequiredTogether(self):
        command = tool("a", "b", "c")
        command.mark_flags_required_together("a", "b", "c")
        parse(command, "--a", "x")
        with self.assertRaises(RequiredTogetherError) as context:
            validate_flag_groups(command)
        self.assertEqual(context.exception.options["flags"], ["b", "c"])
        self.assertEqual(context.exception.options["group"], "a b c")

    def testRequiredTogetherSatisfied(self):
        command = tool("a", "b")
        command.mark_flags_required_together("a", "b")
        validate_flag_groups(command)
        validate_flag_groups(parse(command, "--a", "x", "--b", "y"))

    def testOneRequiredIsOrderIndependent(self):
        command = tool("a", "b")
        command.mark_flags_one_required("b", "a")
        with self.assertRaises(OneRequiredError) as context:
            validate_flag_groups(command)
        self.assertEqual(context.exception.options["flags"], ["a", "b"])
        self.assertEqual(context.exception.options["group"], "b a")

    def testOneRequiredSatisfied(self):
        command = tool("a", "b")
        command.mark_flags_one_required("a", "b")
        validate_flag_groups(parse(command, "--b", "y"))

    def testMutuallyExclusive(self):
        command = tool("a", "b", "c")
        command.mark_flags_mutually_exclusive("c", "b", "a")
        parse(command, "--c", "z", "--a", "x")
        with self.assertRaises(MutuallyExclusiveError) as context:
            validate_flag_groups(command)
        self.assertEqual(context.exception.options["flags"], ["a", "c"])

    def testTogetherCheckedBeforeExclusion(self):
        command = tool("a", "b", "c")
        command.mark_flags_mutually_exclusive("a", "c")
        command.mark_flags_required_together("a", "b")
        parse(command, "--a", "x", "--c", "z")
        with self.assertRaises(RequiredTogetherError):
            validate_flag_groups(command)

    def testGroupsSortedBySignature(self):
        command = tool("a", "b", "c", "d")
        command.mark_flags_one_required("c", "d")
        command.mark_flags_one_required("a", "b")
        with self.assertRaises(OneRequiredError) as context:
            validate_flag_groups(command)
        self.assertEqual(context.exception.options["group"], "a b")

    def testAbsentMemberSkipsGroup(self):
        root = tool("config")
        root.persistent_flags().add(Flag("profile"))
        root.mark_flags_required_together("config", "profile")
        child = Command(noop, root, name="child")
        validate_flag_groups(parse(child, "--profile", "dev"))
        with self.assertRaises(RequiredTogetherError):
            validate_flag_groups(parse(root, "--profile", "dev"))

    def testDisabledParsingSkips(self):
        command = tool("a", "b", disable_flag_parsing=True)
        command.mark_flags_one_required("a", "b")
        validate_flag_groups(command)

    def testExecuteValidatesGroups(self):
        root = tool()
        child = Command(noop, root, name="child")
        child.flags().add(Flag("a"))
        child.flags().add(Flag("b"))
        child.mark_flags_mutually_exclusive("a", "b")
        with self.assertRaises(MutuallyExclusiveError):
            root.execute(["child", "--a", "x", "--b", "y"])


class TestRequiredFlags(TestCase):

    def testMarkRequired(self):
        command = tool("name")
        command.mark_flag_required("name")
        self.assertTrue(is_required(command.flag("name")))
        self.assertEqual(command.flag("name").annotations[REQUIRED], ["true"])

    def testPersistentRequiresPersistentFlag(self):
        command = tool("name")
        with self.assertRaises(ValueError):
            command.mark_persistent_flag_required("name")

    def testMissingRequiredRaises(self):
        command = tool("name")
        command.mark_flag_required("name")
        with self.assertRaises(RequiredFlagsError):
            command.validate_required_flags()
        parse(command, "--name", "x")
        command.validate_required_flags()

    def testInheritedRequiredFlag(self):
        root = tool()
        root.persistent_flags().add(Flag("token"))
        root.mark_persistent_flag_required("token")
        child = Command(noop, root, name="child")
        with self.assertRaises(RequiredFlagsError) as context:
            root.execute(["child"])
        self.assertEqual(context.exception.options["flags"], ["token"])


class TestCompletionEnforcement(TestCase):

    def testSetMemberMarksOthersRequired(self):
        command = tool("a", "b", "c")
        command.mark_flags_required_together("a", "b")
        parse(command, "--a", "x")
        enforce_flag_groups_for_completion(command)
        self.assertTrue(is_required(command.flag("b")))
        self.assertFalse(is_required(command.flag("a")))
        self.assertFalse(is_required(command.flag("c")))

    def testOneRequiredMarksOthersOnceSet(self):
        command = tool("a", "b")
        command.mark_flags_one_required("a", "b")
        enforce_flag_groups_for_completion(command)
        self.assertFalse(is_required(command.flag("b")))
        parse(command, "--a", "x")
        enforce_flag_groups_for_completion(command)
        self.assertTrue(is_required(command.flag("b")))

    def testExclusiveMemberHidesOthers(self):
        command = tool("a", "b", "c")
        command.mark_flags_mutually_exclusive("a", "b", "c")
        parse(command, "--b", "y")
        enforce_flag_groups_for_completion(command)
        self.assertTrue(command.flag("a").hidden)
        self.assertFalse(command.flag("b").hidden)
        self.assertTrue(command.flag("c").hidden)

    def testScopedEnforcementIsUndone(self):
        command = tool("a", "b", "c", "d")
        command.mark_flag_required("c")
        command.mark_flags_required_together("a", "b")
        command.mark_flags_mutually_exclusive("a", "d")
        parse(command, "--a", "x")
        with flag_groups_enforced_for_completion(command):
            self.assertTrue(is_required(command.flag("b")))
            self.assertTrue(command.flag("d").hidden)
        self.assertFalse(is_required(command.flag("b")))
        self.assertFalse(command.flag("d").hidden)
        self.assertTrue(is_required(command.flag("c")))

    def testNeverRaises(self):
        command = tool("a", "b")
        command.mark_flags_mutually_exclusive("a", "b")
        parse(command, "--a", "x", "--b", "y")
        enforce_flag_groups_for_completion(command)
        self.assertFalse(command.flag("a").hidden)


if __name__ == "__main__":
    unittest.main()
