"""
Use Cases Layer

Test run orchestration, working-folder staging and the per-type executors.
"""

from model_testbench.use_cases.executors import (
    EXECUTORS,
    StepContext,
    execute_function_call,
    execute_question,
    execute_tts,
    execute_writer,
)
from model_testbench.use_cases.orchestrator import TestRunOrchestrator
from model_testbench.use_cases.staging import (
    needs_working_folder,
    resolve_prompt,
    stage_working_folder,
    working_folder_name,
)

__all__ = [
    # orchestrator
    "TestRunOrchestrator",
    # executors
    "EXECUTORS",
    "StepContext",
    "execute_question",
    "execute_function_call",
    "execute_writer",
    "execute_tts",
    # staging
    "needs_working_folder",
    "resolve_prompt",
    "stage_working_folder",
    "working_folder_name",
]
