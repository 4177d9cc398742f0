"""Classification of failed tool invocations.

Only the exit status and the combined output are available, so the
classification leans on two conventions of the Go tool: exit code 2 means the
package did not compile, and compile diagnostics are printed under a
``# <unit>`` header. The header check is a best-effort fallback; it breaks if
the tool changes its diagnostic format.
"""

from gotest_ci.models.outcome import TaskStatus

COMPILE_ERROR_EXIT_CODE = 2
GENERIC_FAILURE_EXIT_CODE = 1
SETUP_FAILED_MARKER = "[setup failed]\n"


def build_failure_prefix(unit: str) -> str:
    return f"# {unit}"


def classify_failure(
    *,
    unit: str,
    output: str,
    exit_code: int | None,
    timed_out: bool = False,
) -> TaskStatus:
    """Classify a failed invocation.

    Args:
        unit: Unit the tool was invoked for
        output: Combined stdout and stderr
        exit_code: Process exit code; None or negative when the process was
            terminated by a signal and no exit status exists
        timed_out: Whether the executor killed the process at its deadline

    Returns:
        BUILD_FAILED, TEST_FAILED or TIMED_OUT

    """
    # A killed process can carry a misleading exit code.
    if timed_out:
        return TaskStatus.TIMED_OUT

    prefix = build_failure_prefix(unit)
    if exit_code == COMPILE_ERROR_EXIT_CODE:
        return TaskStatus.BUILD_FAILED
    if exit_code == GENERIC_FAILURE_EXIT_CODE:
        if output.startswith(prefix) and output.endswith(SETUP_FAILED_MARKER):
            return TaskStatus.BUILD_FAILED
        return TaskStatus.TEST_FAILED

    if output.startswith(prefix):
        return TaskStatus.BUILD_FAILED
    return TaskStatus.TEST_FAILED
