"""
Per-type step executors

Each executor turns one test definition into a StepOutcome. EXECUTORS maps
every TestType to its executor.
"""

from typing import Callable

from model_testbench.domain.entities import StepOutcome, TestType
from model_testbench.use_cases.executors.common import StepContext
from model_testbench.use_cases.executors.function_call import execute_function_call
from model_testbench.use_cases.executors.question import execute_question
from model_testbench.use_cases.executors.tts import execute_tts
from model_testbench.use_cases.executors.writer import execute_writer

StepExecutor = Callable[[StepContext], StepOutcome]

EXECUTORS: dict[TestType, StepExecutor] = {
    TestType.QUESTION: execute_question,
    TestType.FUNCTION_CALL: execute_function_call,
    TestType.WRITER: execute_writer,
    TestType.TTS: execute_tts,
}

_missing = set(TestType) - set(EXECUTORS)
if _missing:
    raise RuntimeError(f"No executor registered for test types: {sorted(t.value for t in _missing)}")

__all__ = [
    "EXECUTORS",
    "StepContext",
    "StepExecutor",
    "execute_question",
    "execute_function_call",
    "execute_writer",
    "execute_tts",
]
