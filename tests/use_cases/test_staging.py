"""
Tests for working folder staging (staging.py)
"""

from datetime import datetime
from pathlib import Path

from model_testbench.domain.entities import TestType
from model_testbench.use_cases.staging import (
    needs_working_folder,
    resolve_prompt,
    stage_working_folder,
    working_folder_name,
)


class TestNeedsWorkingFolder:

    def test_plain_questions(self, make_definition):
        assert not needs_working_folder([make_definition()])

    def test_files_to_stage(self, make_definition):
        assert needs_working_folder([make_definition(), make_definition(files_to_stage=["a.txt"])])

    def test_tts_always_needs_folder(self, make_definition):
        assert needs_working_folder([make_definition(TestType.TTS)])


def test_working_folder_name():
    now = datetime(2026, 1, 2, 3, 4, 5, 678000)
    assert working_folder_name("qwen3:8b", "base tests", now) == "20260102_030405678_qwen3_8b_base_tests"


class TestStageWorkingFolder:

    def test_no_folder_needed(self, make_definition, config):
        assert stage_working_folder([make_definition()], "gpt-4o-mini", "base", config.paths) is None

    def test_files_copied(self, make_definition, config):
        Path(config.paths.source_files_dir, "a.txt").write_text("A", encoding="utf-8")
        folder = stage_working_folder(
            [make_definition(files_to_stage=["a.txt"])], "gpt-4o-mini", "base", config.paths
        )
        assert Path(folder).is_absolute()
        assert Path(folder, "a.txt").read_text(encoding="utf-8") == "A"
        assert Path(folder).parent == Path(config.paths.run_folders_dir).resolve()

    def test_missing_source_is_not_fatal(self, make_definition, config):
        folder = stage_working_folder(
            [make_definition(files_to_stage=["missing.txt", " "])], "gpt-4o-mini", "base", config.paths
        )
        assert folder is not None
        assert list(Path(folder).iterdir()) == []


class TestResolvePrompt:

    def test_placeholder_replaced(self):
        assert resolve_prompt("Read [test_folder]/a.txt", "/runs/x") == "Read /runs/x/a.txt"

    def test_no_folder(self):
        assert resolve_prompt("Read [test_folder]/a.txt", None) == "Read [test_folder]/a.txt"
