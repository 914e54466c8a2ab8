class JudgeError(Exception):
    pass


class NotSupportedError(JudgeError, ValueError):
    """Raised when no language profile exists for a language."""


class SandboxSetupError(JudgeError):
    """Raised when a sandbox container cannot be created or started."""


class SubmissionIdNotFoundError(JudgeError):
    pass


class ProblemNotFoundError(JudgeError, ValueError):
    pass


class AnalysisError(JudgeError):
    pass
