"""
File system capability

Paths are resolved inside the run's working folder; anything outside it is
rejected.
"""

from __future__ import annotations

from pathlib import Path

from model_testbench.capabilities.base import Capability, capability_function, register_capability


@register_capability
class FileSystemCapability(Capability):
    name = "filesystem"
    description = "Provides file system functions such as checking existence, reading, writing, and deleting files."

    def _resolve(self, path: str) -> Path:
        if not self.context.working_folder:
            raise PermissionError("No working folder is available for this test")
        root = Path(self.context.working_folder).resolve()
        target = (root / path).resolve()
        if target != root and root not in target.parents:
            raise PermissionError(f"Path '{path}' is outside the working folder")
        return target

    @capability_function("Checks if a file exists.", path=("string", "The path of the file to check."))
    def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    @capability_function("Lists the files in the working folder.")
    def list_files(self) -> list[str]:
        root = self._resolve(".")
        return sorted(p.name for p in root.iterdir() if p.is_file())

    @capability_function("Reads all text from a file.", path=("string", "The path of the file to read from."))
    def read_all_text(self, path: str) -> str:
        target = self._resolve(path)
        return target.read_text(encoding="utf-8") if target.is_file() else ""

    @capability_function(
        "Writes text to a file.",
        path=("string", "The path of the file to write to."),
        content=("string", "The content to write to the file."),
    )
    def write_all_text(self, path: str, content: str) -> str:
        self._resolve(path).write_text(content, encoding="utf-8")
        return "OK"

    @capability_function("Deletes a file.", path=("string", "The path of the file to delete."))
    def delete_file(self, path: str) -> str:
        target = self._resolve(path)
        if target.is_file():
            target.unlink()
        return "OK"
