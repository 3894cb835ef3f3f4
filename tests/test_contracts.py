import unittest

from aesd_utils.domain.contracts import (
    MODE_DIRECT,
    OUTCOME_ABNORMAL_EXIT,
    OUTCOME_EXEC_FAILED,
    OUTCOME_FORK_FAILED,
    OUTCOMES,
    OUTCOME_SUCCESS,
    OUTCOME_WAIT_FAILED,
    CommandSpec,
    ExecutionResult,
)
from aesd_utils.domain.errors import (
    InvalidCommandError,
    ProcessCreationError,
    ProcessExecutionError,
    ProcessWaitError,
    UtilityError,
    error_for_outcome,
)


class TestCommandSpec(unittest.TestCase):
    def test_of_builds_tuple(self):
        spec = CommandSpec.of(["/bin/echo", "a", "b"])
        self.assertEqual(spec.argv, ("/bin/echo", "a", "b"))
        self.assertEqual(spec.executable, "/bin/echo")
        self.assertEqual(spec.args, ("a", "b"))
        self.assertEqual(len(spec), 3)
        self.assertEqual(list(spec), ["/bin/echo", "a", "b"])

    def test_of_is_idempotent(self):
        spec = CommandSpec.of(("/bin/true",))
        self.assertIs(CommandSpec.of(spec), spec)

    def test_rejects_invalid_vectors(self):
        for bad in (None, [], "", "/bin/true", b"/bin/true", [""], ["/bin/echo", None]):
            with self.assertRaises(InvalidCommandError):
                CommandSpec.of(bad)


class TestExecutionResult(unittest.TestCase):
    def test_truthiness_follows_outcome(self):
        self.assertTrue(ExecutionResult(outcome=OUTCOME_SUCCESS, mode=MODE_DIRECT, returncode=0))
        self.assertFalse(ExecutionResult(outcome=OUTCOME_FORK_FAILED, mode=MODE_DIRECT))

    def test_describe(self):
        signalled = ExecutionResult(outcome=OUTCOME_ABNORMAL_EXIT, mode=MODE_DIRECT, signal=9)
        self.assertIn("signal 9", signalled.describe())
        failed = ExecutionResult(outcome=OUTCOME_EXEC_FAILED, mode=MODE_DIRECT, error="[ENOENT] nope")
        self.assertEqual(failed.describe(), "Command failed (exec_failed): [ENOENT] nope")

    def test_raise_for_status_uses_outcome_error(self):
        result = ExecutionResult(outcome=OUTCOME_WAIT_FAILED, mode=MODE_DIRECT)
        with self.assertRaises(ProcessWaitError) as ctx:
            result.raise_for_status()
        self.assertEqual(ctx.exception.code, "ERR_PROCESS_WAIT")


class TestErrorTaxonomy(unittest.TestCase):
    def test_every_failure_outcome_has_an_error(self):
        for outcome in OUTCOMES - {OUTCOME_SUCCESS}:
            self.assertTrue(issubclass(error_for_outcome(outcome), UtilityError))

    def test_specific_mappings(self):
        self.assertIs(error_for_outcome("fork_failed"), ProcessCreationError)
        self.assertIs(error_for_outcome("open_failed"), ProcessExecutionError)

    def test_success_has_no_error(self):
        with self.assertRaises(ValueError):
            error_for_outcome(OUTCOME_SUCCESS)


if __name__ == "__main__":
    unittest.main()
