"""file_read and list_files: read-only filesystem access confined to a base directory."""

from pathlib import Path
from typing import Any

from dialectic.context import DebateContext
from dialectic.tools.base import ToolImplementation, tool_error_json, tool_success_json


def is_within_directory(target: Path, base_dir: Path) -> bool:
    """True if target (after resolving symlinks) is base_dir or lies beneath it."""
    try:
        real_base = base_dir.resolve(strict=True)
    except OSError:
        return False
    real_target = (base_dir / target).resolve()
    return real_target == real_base or real_base in real_target.parents


class _FilesystemTool(ToolImplementation):
    _kind = "path"

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir or Path.cwd()

    def _validated_path(self, args: dict[str, Any]) -> Path | str:
        raw = args.get("path")
        if not isinstance(raw, str):
            return tool_error_json(f"{self._kind} path is required and must be a string")
        if not raw.strip():
            return tool_error_json(f"{self._kind} path cannot be empty")
        path = (self._base_dir / raw).resolve()
        if not is_within_directory(path, self._base_dir):
            return tool_error_json("Access denied: path is outside the context directory")
        return path


class FileReadTool(_FilesystemTool):
    name = "file_read"
    _kind = "File"
    schema = {
        "name": "file_read",
        "description": (
            "Read the contents of a text file. Returns the file content as a string, "
            "or an error message if the file cannot be read."
        ),
        "parameters": {
            "type": "object",
            "properties": {"path": {"type": "string", "description": "The path to the file to read"}},
            "required": ["path"],
        },
    }

    def execute(self, args: dict[str, Any], context: DebateContext | None = None) -> str:
        path = self._validated_path(args)
        if isinstance(path, str):
            return path
        if not path.exists():
            return tool_error_json(f"File not found: {path}")
        if not path.is_file():
            return tool_error_json(f"Path is not a file: {path}")
        try:
            content = path.read_text(encoding="utf-8")
        except PermissionError:
            return tool_error_json(f"Permission denied: {path}")
        except (OSError, UnicodeDecodeError) as exc:
            return tool_error_json(f"Error reading file {path}: {exc}")
        return tool_success_json({"content": content})


class ListFilesTool(_FilesystemTool):
    name = "list_files"
    _kind = "Directory"
    schema = {
        "name": "list_files",
        "description": (
            "List all files and directories in a given directory. Returns entries "
            "with their absolute paths and types (file or directory)."
        ),
        "parameters": {
            "type": "object",
            "properties": {"path": {"type": "string", "description": "The path to the directory to list"}},
            "required": ["path"],
        },
    }

    def execute(self, args: dict[str, Any], context: DebateContext | None = None) -> str:
        path = self._validated_path(args)
        if isinstance(path, str):
            return path
        if not path.exists():
            return tool_error_json(f"Directory not found: {path}")
        if not path.is_dir():
            return tool_error_json(f"Path is not a directory: {path}")
        try:
            children = sorted(path.iterdir())
        except PermissionError:
            return tool_error_json(f"Permission denied: {path}")
        except OSError as exc:
            return tool_error_json(f"Error listing directory {path}: {exc}")
        entries = [
            {"path": str(child.absolute()), "type": "directory" if child.is_dir() else "file"}
            for child in children
            if is_within_directory(child, self._base_dir)
        ]
        return tool_success_json({"entries": entries})
