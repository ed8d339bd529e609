"""
Domain Errors

Error taxonomy of the test execution engine. Validation failures are not
exceptions: they are returned as ValidationResult(passed=False).
"""

from enum import Enum

from model_testbench.domain.constants import TOOLS_UNSUPPORTED_MARKER


class ErrorKind(str, Enum):
    """Category of a failure surfaced to the operator"""
    TIMEOUT = "timeout"
    PROVIDER = "provider"
    VALIDATION = "validation"
    ARTIFACT_MISSING = "artifact_missing"
    SETUP = "setup"
    CONSTRUCTION = "construction"


class TestbenchError(Exception):
    """Base class for all engine errors"""

    __test__ = False
    kind: ErrorKind = ErrorKind.PROVIDER


class InvocationTimeout(TestbenchError):
    """A single model invocation exceeded its allotted time"""

    kind = ErrorKind.TIMEOUT

    def __init__(self, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Timeout after {timeout_seconds}s")


class ProviderError(TestbenchError):
    """The model provider rejected or failed the request"""

    kind = ErrorKind.PROVIDER

    @property
    def tools_unsupported(self) -> bool:
        return TOOLS_UNSUPPORTED_MARKER in str(self).lower()


class ProviderConstructionError(TestbenchError):
    """The provider session could not be opened (e.g. missing credentials)"""

    kind = ErrorKind.CONSTRUCTION


class UnknownModelError(TestbenchError):
    """The model name does not resolve to a ModelRecord"""

    kind = ErrorKind.SETUP


class EmptyGroupError(TestbenchError):
    """The test group has no active test definitions"""

    kind = ErrorKind.SETUP


class UnknownTestTypeError(TestbenchError, ValueError):
    """A test definition declares a test type the engine cannot execute"""

    kind = ErrorKind.SETUP


class SeedFormatError(TestbenchError, ValueError):
    """A seed file does not match the expected structure"""

    kind = ErrorKind.SETUP
