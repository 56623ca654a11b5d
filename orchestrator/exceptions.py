class RunnerError(RuntimeError):
    """Base scenario-runner error."""

class StepValidationError(RunnerError):
    """Raised when the step overrides file is malformed."""

class ActionExecutionError(RunnerError):
    """Raised when an agent action fails to execute."""

class StepTimeoutError(ActionExecutionError):
    """Raised when an agent dispatch does not settle in time."""

class MacroError(ActionExecutionError):
    """Raised when a macro step cannot find its control or marker."""

class SessionClosedError(RunnerError):
    """Raised when the page handle reports itself closed."""

class AuthenticationError(RunnerError):
    """Raised when login fails after its attempt budget."""

class ChunkAbortedError(RunnerError):
    """Raised when a session chunk cannot continue (e.g. recovery failed)."""

class SetupError(RunnerError):
    """Raised when the run cannot start (missing project/issue)."""

class TrackerError(SetupError):
    """Raised when the tracker API answers with errors."""
