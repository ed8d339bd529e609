"""
Working folder staging

Creates the per-run working folder and copies the input files declared by
a group's test definitions into it. Failures never abort the run.
"""

from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path

from model_testbench.bench_config import PathsConfig
from model_testbench.domain.constants import TEST_FOLDER_PLACEHOLDER
from model_testbench.domain.entities import TestDefinition, TestType

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


def needs_working_folder(definitions: list[TestDefinition]) -> bool:
    """True if any test stages files or builds a schema artifact"""
    return any(d.files_to_stage or d.test_type is TestType.TTS for d in definitions)


def working_folder_name(model_name: str, group_name: str, now: datetime | None = None) -> str:
    """<yyyyMMdd_HHMMSSfff>_<model>_<group>, with path-unsafe characters replaced"""
    now = now or datetime.now()
    timestamp = now.strftime("%Y%m%d_%H%M%S") + f"{now.microsecond // 1000:03d}"
    model = _UNSAFE_CHARS_RE.sub("_", model_name)
    group = _UNSAFE_CHARS_RE.sub("_", group_name)
    return f"{timestamp}_{model}_{group}"


def stage_working_folder(
    definitions: list[TestDefinition],
    model_name: str,
    group_name: str,
    paths: PathsConfig,
) -> str | None:
    """
    Create the run's working folder and copy the declared input files

    Args:
        definitions: Test definitions of the group
        model_name: Model under test
        group_name: Test group
        paths: Source and destination directories

    Returns:
        Absolute path of the folder, or None when no test needs one or the
        folder could not be created
    """
    if not needs_working_folder(definitions):
        return None

    folder = Path(paths.run_folders_dir).resolve() / working_folder_name(model_name, group_name)
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("[%s] Cannot create working folder %s: %s", model_name, folder, e)
        return None
    logger.info("[%s] Created working folder: %s", model_name, folder)

    source_dir = Path(paths.source_files_dir)
    for definition in definitions:
        for file_name in definition.files_to_stage:
            file_name = file_name.strip()
            if not file_name:
                continue
            source = source_dir / file_name
            if not source.is_file():
                logger.warning("[%s] Source file not found: %s", model_name, source)
                continue
            try:
                shutil.copy2(source, folder / Path(file_name).name)
                logger.info("[%s] Copied file: %s", model_name, file_name)
            except OSError as e:
                logger.error("[%s] Cannot copy %s: %s", model_name, file_name, e)

    return str(folder)


def resolve_prompt(prompt: str, working_folder: str | None) -> str:
    """Replace the [test_folder] placeholder with the working folder path"""
    if working_folder and TEST_FOLDER_PLACEHOLDER in prompt:
        return prompt.replace(TEST_FOLDER_PLACEHOLDER, working_folder)
    return prompt
