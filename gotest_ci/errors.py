"""Errors that abort a pipeline run."""


class OrchestrationError(RuntimeError):
    """Raised when a pipeline cannot continue, as opposed to a unit failing.

    ``stage`` names the step that broke (``"List"``, ``"Install"``, ...).
    """

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
