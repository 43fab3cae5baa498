"""根目录受限的文件系统能力层。

所有路径参数都相对于 SandboxContext.root。每次操作都重新解析根目录并校验：
解析后的路径必须等于根目录或以 “根目录 + 分隔符” 开头，否则抛
AccessDeniedError。这样 ``..``、绝对路径、符号链接等都会被拒绝，
同一个 sandbox 在两次请求之间换了根目录也不会沿用旧的权限。

目标不存在属于正常结果：读取得到空内容，删除/列目录返回 False/空列表。
真正的文件 I/O 通过 asyncio.to_thread 执行，避免阻塞事件循环。
"""

import asyncio
import difflib
import fnmatch
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from role_core.domain.exceptions import AccessDeniedError, FileConflictError


MAX_SEARCH_RESULTS = 50
MAX_LINE_LENGTH = 200

CONFLICT_MESSAGE = (
    "File exists and allowOverwrite is false. Set allowOverwrite to true to proceed."
)


@dataclass(frozen=True)
class SandboxContext:
    """能力调用上下文：根目录与是否允许覆盖已有文件。"""

    root: Union[str, Path]
    allow_overwrite: bool = False


def make_diff(old: str, new: str, path: str) -> str:
    """生成 old → new 的 unified diff 文本（无变化时为空字符串）。"""

    return "".join(
        difflib.unified_diff(
            old.splitlines(keepends=True),
            new.splitlines(keepends=True),
            fromfile=f"a/{path}",
            tofile=f"b/{path}",
        )
    )


def _truncate_line(line: str) -> str:
    text = line.strip()
    if len(text) > MAX_LINE_LENGTH:
        return text[: MAX_LINE_LENGTH - 3] + "..."
    return text


class FileSystemSandbox:
    def __init__(self, context: SandboxContext):
        self.context = context

    # ---- 路径校验 ----

    def root(self) -> Path:
        return Path(self.context.root).expanduser().resolve()

    def resolve_path(self, relative_path: str) -> Path:
        """把相对路径解析为根目录内的绝对路径，越界时抛 AccessDeniedError。"""

        candidate = (self.root() / (relative_path or ".")).resolve()
        if not self._contains(candidate):
            raise AccessDeniedError(relative_path)
        return candidate

    def _contains(self, resolved: Path) -> bool:
        root_str = str(self.root())
        prefix = root_str if root_str.endswith(os.sep) else root_str + os.sep
        cand_str = str(resolved)
        return cand_str == root_str or cand_str.startswith(prefix)

    @staticmethod
    def _visible_children(directory: Path) -> List[Path]:
        """按名称排序的直接子项，跳过以 . 开头的条目。"""

        return [p for p in sorted(directory.iterdir(), key=lambda p: p.name) if not p.name.startswith(".")]

    def _relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root()).as_posix()
        except ValueError:
            return str(path)

    # ---- 目录 / 文件操作 ----

    async def create_directory(self, path: str) -> Dict[str, Any]:
        target = self.resolve_path(path)
        await asyncio.to_thread(target.mkdir, parents=True, exist_ok=True)
        return {"success": True}

    async def write_file(
        self,
        path: str,
        content: str = "",
        allow_overwrite: Optional[bool] = None,
    ) -> Dict[str, Any]:
        target = self.resolve_path(path)
        overwrite = self.context.allow_overwrite if allow_overwrite is None else allow_overwrite
        return await asyncio.to_thread(self._write_sync, target, path, content or "", overwrite)

    @staticmethod
    def _write_sync(target: Path, path: str, content: str, overwrite: bool) -> Dict[str, Any]:
        exists = target.is_file()
        old = target.read_text(encoding="utf-8", errors="replace") if exists else ""
        diff = make_diff(old, content, path)
        if exists and not overwrite:
            return {
                "success": False,
                "fileExists": True,
                "existingContent": old,
                "diff": diff,
                "message": CONFLICT_MESSAGE,
            }
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return {"success": True, "diff": diff}

    async def read_file(self, path: str) -> Dict[str, Any]:
        target = self.resolve_path(path)
        return await asyncio.to_thread(self._read_sync, target)

    @staticmethod
    def _read_sync(target: Path) -> Dict[str, Any]:
        if not target.is_file():
            return {"content": ""}
        return {"content": target.read_text(encoding="utf-8", errors="replace")}

    async def read_multiple_files(self, paths: Sequence[str]) -> Dict[str, Any]:
        """逐个读取多个文件；单个文件越界或读取失败只记在该项的 error 中。"""

        files: List[Dict[str, Any]] = []
        for path in paths:
            try:
                result = await self.read_file(path)
            except (AccessDeniedError, OSError) as e:
                files.append({"path": path, "error": str(e)})
                continue
            files.append({"path": path, "content": result["content"]})
        return {"files": files}

    async def delete_file(self, path: str) -> Dict[str, Any]:
        target = self.resolve_path(path)

        def _delete() -> bool:
            if not target.is_file():
                return False
            target.unlink()
            return True

        return {"success": await asyncio.to_thread(_delete)}

    async def delete_directory(self, path: str) -> Dict[str, Any]:
        target = self.resolve_path(path)
        if target == self.root():
            raise AccessDeniedError(path)

        def _delete() -> bool:
            if not target.is_dir():
                return False
            shutil.rmtree(target)
            return True

        return {"success": await asyncio.to_thread(_delete)}

    async def list_directory(self, path: str = ".") -> Dict[str, Any]:
        target = self.resolve_path(path)

        def _list() -> List[Dict[str, str]]:
            if not target.is_dir():
                return []
            entries = []
            for item in self._visible_children(target):
                entries.append({
                    "name": self._relative(item),
                    "type": "directory" if item.is_dir() else "file",
                })
            return entries

        try:
            entries = await asyncio.to_thread(_list)
        except OSError:
            entries = []
        return {"entries": entries}

    async def get_directory_tree(self, path: str = ".") -> Dict[str, Any]:
        """递归目录树：每项含 name、type，目录另有 children（可能为空）。

        目录不存在时返回 ``{"tree": None}``；指向根目录之外的符号链接被跳过，
        根目录内的目录符号链接列出但不展开。
        """

        target = self.resolve_path(path)

        def _node(item: Path) -> Dict[str, Any]:
            if not item.is_dir():
                return {"name": item.name, "type": "file"}
            children = []
            if item == target or not item.is_symlink():
                for child in self._visible_children(item):
                    if self._contains(child.resolve()):
                        children.append(_node(child))
            return {"name": item.name, "type": "directory", "children": children}

        def _tree() -> Optional[Dict[str, Any]]:
            if not target.exists():
                return None
            return _node(target)

        return {"tree": await asyncio.to_thread(_tree)}

    async def get_file_info(self, path: str) -> Dict[str, Any]:
        target = self.resolve_path(path)

        def _info() -> Dict[str, Any]:
            if not target.exists():
                return {"exists": False}
            stat = target.stat()
            return {
                "exists": True,
                "type": "directory" if target.is_dir() else "file",
                "size": stat.st_size,
                "modified": datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc).isoformat(),
            }

        return await asyncio.to_thread(_info)

    async def move_file(
        self,
        source: str,
        destination: str,
        allow_overwrite: Optional[bool] = None,
    ) -> Dict[str, Any]:
        src = self.resolve_path(source)
        dst = self.resolve_path(destination)
        overwrite = self.context.allow_overwrite if allow_overwrite is None else allow_overwrite

        def _move() -> bool:
            if not src.exists():
                return False
            if dst.exists() and not overwrite:
                raise FileConflictError(destination)
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(src), str(dst))
            return True

        return {"success": await asyncio.to_thread(_move)}

    # ---- 搜索 ----

    def _iter_files(self, base: Path, recursive: bool) -> Iterator[Path]:
        if base.is_file():
            yield base
            return
        if not base.is_dir():
            return
        if not recursive:
            for item in self._visible_children(base):
                if item.is_file():
                    yield item
            return
        # os.walk 默认忽略无权限目录
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for name in sorted(filenames):
                if not name.startswith("."):
                    yield Path(dirpath) / name

    async def search_codebase(
        self,
        query: str,
        path: str = ".",
        recursive: bool = False,
    ) -> Dict[str, Any]:
        base = self.resolve_path(path)
        try:
            pattern = re.compile(query, re.IGNORECASE)
        except re.error:
            pattern = re.compile(re.escape(query), re.IGNORECASE)

        def _search() -> List[Dict[str, Any]]:
            results: List[Dict[str, Any]] = []
            for file_path in self._iter_files(base, recursive):
                try:
                    content = file_path.read_text(encoding="utf-8", errors="ignore")
                except OSError:
                    continue
                for line_no, line in enumerate(content.splitlines(), start=1):
                    if pattern.search(line):
                        results.append({
                            "file": self._relative(file_path),
                            "line_number": line_no,
                            "line_content": _truncate_line(line),
                        })
                        if len(results) >= MAX_SEARCH_RESULTS:
                            return results
            return results

        return {"results": await asyncio.to_thread(_search)}

    async def find_files(
        self,
        pattern: str,
        path: str = ".",
        recursive: bool = True,
        exclude: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        base = self.resolve_path(path)
        excludes = list(exclude or [])

        def _find() -> List[str]:
            files: List[str] = []
            for file_path in self._iter_files(base, recursive):
                rel = self._relative(file_path)
                if any(fnmatch.fnmatch(file_path.name, ex) or fnmatch.fnmatch(rel, ex) for ex in excludes):
                    continue
                if fnmatch.fnmatch(file_path.name, pattern) or fnmatch.fnmatch(rel, pattern):
                    files.append(rel)
            return files

        return {"files": await asyncio.to_thread(_find)}
