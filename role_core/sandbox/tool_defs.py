"""把 FileSystemSandbox 的操作注册为可供 LLM 调用的工具。"""

from typing import Any, Dict, List

from role_core.tools.definitions import ToolDef, ToolParam
from role_core.tools.registry import ToolRegistry
from .filesystem import FileSystemSandbox, MAX_SEARCH_RESULTS


def _path_param(description: str = "Path relative to the project root", required: bool = True) -> ToolParam:
    return ToolParam(name="path", description=description, required=required, schema={"type": "string"})


def _flag(name: str, description: str) -> ToolParam:
    return ToolParam(name=name, description=description, required=False, schema={"type": "boolean"})


def sandbox_tool_defs() -> List[ToolDef]:
    return [
        ToolDef(
            name="read_file",
            description="Read the contents of a file. Returns an empty string when the file does not exist.",
            params={"path": _path_param()},
        ),
        ToolDef(
            name="read_multiple_files",
            description=(
                "Read several files in one call. Each entry carries its path plus either the content "
                "or an error, and a failed file does not stop the others."
            ),
            params={
                "paths": ToolParam(
                    name="paths",
                    description="Paths relative to the project root",
                    required=True,
                    schema={"type": "array", "items": {"type": "string"}},
                ),
            },
        ),
        ToolDef(
            name="write_file",
            description=(
                "Write content to a file, creating parent directories as needed. "
                "Existing files are only replaced when overwriting is allowed."
            ),
            params={
                "path": _path_param(),
                "content": ToolParam(
                    name="content",
                    description="Full text content to write",
                    required=True,
                    schema={"type": "string"},
                ),
                "allow_overwrite": _flag("allow_overwrite", "Replace the file if it already exists"),
            },
        ),
        ToolDef(
            name="create_directory",
            description="Create a directory and any missing parents.",
            params={"path": _path_param()},
        ),
        ToolDef(
            name="delete_file",
            description="Delete a single file.",
            params={"path": _path_param()},
        ),
        ToolDef(
            name="delete_directory",
            description="Delete a directory and everything below it.",
            params={"path": _path_param()},
        ),
        ToolDef(
            name="list_directory",
            description="List the entries of a directory. Hidden entries are skipped.",
            params={"path": _path_param("Directory relative to the project root, defaults to the root", required=False)},
        ),
        ToolDef(
            name="search_codebase",
            description=(
                f"Search file contents with a case-insensitive regular expression. "
                f"Returns at most {MAX_SEARCH_RESULTS} matching lines."
            ),
            params={
                "query": ToolParam(
                    name="query",
                    description="Regular expression or plain text to look for",
                    required=True,
                    schema={"type": "string"},
                ),
                "path": _path_param("Directory or file to search, defaults to the root", required=False),
                "recursive": _flag("recursive", "Descend into subdirectories"),
            },
        ),
        ToolDef(
            name="find_files",
            description="Find files whose name matches a glob pattern such as *.py.",
            params={
                "pattern": ToolParam(
                    name="pattern",
                    description="Glob pattern matched against file names",
                    required=True,
                    schema={"type": "string"},
                ),
                "path": _path_param("Directory to search, defaults to the root", required=False),
                "recursive": _flag("recursive", "Descend into subdirectories, defaults to true"),
                "exclude": ToolParam(
                    name="exclude",
                    description="Glob patterns to skip",
                    required=False,
                    schema={"type": "array", "items": {"type": "string"}},
                ),
            },
        ),
        ToolDef(
            name="get_directory_tree",
            description=(
                "Get a recursive tree of files and directories as JSON. Directories carry a children "
                "list, dot-entries are skipped."
            ),
            params={"path": _path_param("Directory relative to the project root, defaults to the root", required=False)},
        ),
        ToolDef(
            name="get_file_info",
            description="Return whether a path exists, its type, size and modification time.",
            params={"path": _path_param()},
        ),
        ToolDef(
            name="move_file",
            description="Move or rename a file or directory inside the project.",
            params={
                "source": ToolParam(name="source", description="Existing path", required=True, schema={"type": "string"}),
                "destination": ToolParam(
                    name="destination", description="New path", required=True, schema={"type": "string"}
                ),
                "allow_overwrite": _flag("allow_overwrite", "Replace the destination if it already exists"),
            },
        ),
    ]


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes"}


def sandbox_tools(sandbox: FileSystemSandbox) -> Dict[str, Any]:
    """工具名 → 实现（接收参数 dict 的协程函数）。"""

    async def read_file(args: Dict[str, Any]):
        return await sandbox.read_file(str(args.get("path") or ""))

    async def read_multiple_files(args: Dict[str, Any]):
        paths = args.get("paths") or []
        if isinstance(paths, str):
            paths = [paths]
        return await sandbox.read_multiple_files([str(p) for p in paths])

    async def write_file(args: Dict[str, Any]):
        overwrite = args.get("allow_overwrite")
        return await sandbox.write_file(
            str(args.get("path") or ""),
            str(args.get("content") or ""),
            allow_overwrite=None if overwrite is None else _as_bool(overwrite, False),
        )

    async def create_directory(args: Dict[str, Any]):
        return await sandbox.create_directory(str(args.get("path") or ""))

    async def delete_file(args: Dict[str, Any]):
        return await sandbox.delete_file(str(args.get("path") or ""))

    async def delete_directory(args: Dict[str, Any]):
        return await sandbox.delete_directory(str(args.get("path") or ""))

    async def list_directory(args: Dict[str, Any]):
        return await sandbox.list_directory(str(args.get("path") or "."))

    async def search_codebase(args: Dict[str, Any]):
        return await sandbox.search_codebase(
            str(args.get("query") or ""),
            str(args.get("path") or "."),
            recursive=_as_bool(args.get("recursive"), False),
        )

    async def find_files(args: Dict[str, Any]):
        return await sandbox.find_files(
            str(args.get("pattern") or "*"),
            str(args.get("path") or "."),
            recursive=_as_bool(args.get("recursive"), True),
            exclude=args.get("exclude") or None,
        )

    async def get_directory_tree(args: Dict[str, Any]):
        return await sandbox.get_directory_tree(str(args.get("path") or "."))

    async def get_file_info(args: Dict[str, Any]):
        return await sandbox.get_file_info(str(args.get("path") or ""))

    async def move_file(args: Dict[str, Any]):
        overwrite = args.get("allow_overwrite")
        return await sandbox.move_file(
            str(args.get("source") or ""),
            str(args.get("destination") or ""),
            allow_overwrite=None if overwrite is None else _as_bool(overwrite, False),
        )

    return {
        "read_file": read_file,
        "read_multiple_files": read_multiple_files,
        "write_file": write_file,
        "create_directory": create_directory,
        "delete_file": delete_file,
        "delete_directory": delete_directory,
        "list_directory": list_directory,
        "search_codebase": search_codebase,
        "find_files": find_files,
        "get_directory_tree": get_directory_tree,
        "get_file_info": get_file_info,
        "move_file": move_file,
    }


def register_sandbox_tools(registry: ToolRegistry, sandbox: FileSystemSandbox) -> ToolRegistry:
    funcs = sandbox_tools(sandbox)
    for definition in sandbox_tool_defs():
        registry.register(definition, funcs[definition.name])
    return registry
