from pathlib import Path

import pytest

from role_core.domain.exceptions import AccessDeniedError, ErrorKind, FileConflictError
from role_core.sandbox import FileSystemSandbox, SandboxContext, register_sandbox_tools
from role_core.tools.executor import ToolExecutor
from role_core.tools.registry import ToolRegistry


def test_resolve_path_rejects_parent_escape():
    sb = FileSystemSandbox(SandboxContext(root="/base"))
    with pytest.raises(AccessDeniedError) as exc:
        sb.resolve_path("../secret")
    assert exc.value.kind is ErrorKind.ACCESS_DENIED


def test_resolve_path_accepts_normalized_inside_root():
    sb = FileSystemSandbox(SandboxContext(root="/base"))
    root = Path("/base").resolve()
    assert sb.resolve_path("sub/../file.txt") == root / "file.txt"
    assert sb.resolve_path(".") == root


def test_resolve_path_rejects_absolute_and_sibling_prefix(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    (tmp_path / "proj-other").mkdir()
    sb = FileSystemSandbox(SandboxContext(root=root))
    with pytest.raises(AccessDeniedError):
        sb.resolve_path("/etc/passwd")
    with pytest.raises(AccessDeniedError):
        sb.resolve_path("../proj-other/x.txt")


def test_root_is_resolved_per_call(tmp_path):
    a, b = tmp_path / "a", tmp_path / "b"
    a.mkdir()
    b.mkdir()
    sb = FileSystemSandbox(SandboxContext(root=a))
    assert sb.resolve_path("f.txt") == a.resolve() / "f.txt"
    sb.context = SandboxContext(root=b)
    assert sb.resolve_path("f.txt") == b.resolve() / "f.txt"
    with pytest.raises(AccessDeniedError):
        sb.resolve_path("../a/f.txt")


@pytest.mark.asyncio
async def test_write_conflict_overwrite_read_sequence(sandbox):
    first = await sandbox.write_file("out.txt", "hi")
    assert first["success"] is True

    second = await sandbox.write_file("out.txt", "bye")
    assert second["success"] is False
    assert second["fileExists"] is True
    assert second["existingContent"] == "hi"
    assert "-hi" in second["diff"] and "+bye" in second["diff"]
    assert (await sandbox.read_file("out.txt")) == {"content": "hi"}

    third = await sandbox.write_file("out.txt", "bye", allow_overwrite=True)
    assert third["success"] is True
    assert (await sandbox.read_file("out.txt")) == {"content": "bye"}


@pytest.mark.asyncio
async def test_context_allow_overwrite_is_default(tmp_path):
    sb = FileSystemSandbox(SandboxContext(root=tmp_path, allow_overwrite=True))
    await sb.write_file("nested/dir/out.txt", "one")
    result = await sb.write_file("nested/dir/out.txt", "two")
    assert result["success"] is True
    assert (tmp_path / "nested" / "dir" / "out.txt").read_text(encoding="utf-8") == "two"


@pytest.mark.asyncio
async def test_missing_targets_are_not_errors(sandbox):
    assert await sandbox.read_file("nope.txt") == {"content": ""}
    assert await sandbox.delete_file("nope.txt") == {"success": False}
    assert await sandbox.delete_directory("nope") == {"success": False}
    assert await sandbox.list_directory("nope") == {"entries": []}
    assert await sandbox.get_file_info("nope.txt") == {"exists": False}


@pytest.mark.asyncio
async def test_directory_operations(sandbox, tmp_path):
    assert await sandbox.create_directory("pkg/sub") == {"success": True}
    (tmp_path / "pkg" / "a.py").write_text("x = 1\n", encoding="utf-8")
    (tmp_path / "pkg" / ".hidden").write_text("", encoding="utf-8")

    listing = await sandbox.list_directory("pkg")
    assert listing["entries"] == [
        {"name": "pkg/a.py", "type": "file"},
        {"name": "pkg/sub", "type": "directory"},
    ]
    info = await sandbox.get_file_info("pkg/a.py")
    assert info["exists"] is True and info["type"] == "file" and info["size"] == 6

    assert await sandbox.delete_directory("pkg") == {"success": True}
    assert not (tmp_path / "pkg").exists()


@pytest.mark.asyncio
async def test_search_codebase_recursion_and_truncation(sandbox, tmp_path):
    (tmp_path / "top.txt").write_text("Hello world\n", encoding="utf-8")
    (tmp_path / "deep").mkdir()
    (tmp_path / "deep" / "inner.txt").write_text("say HELLO\n" + "hello " * 60 + "\n", encoding="utf-8")

    shallow = await sandbox.search_codebase("hello")
    assert shallow["results"] == [{"file": "top.txt", "line_number": 1, "line_content": "Hello world"}]

    deep = await sandbox.search_codebase("hello", recursive=True)
    files = [(r["file"], r["line_number"]) for r in deep["results"]]
    assert files == [("top.txt", 1), ("deep/inner.txt", 1), ("deep/inner.txt", 2)]
    long_line = deep["results"][2]["line_content"]
    assert len(long_line) == 200 and long_line.endswith("...")


@pytest.mark.asyncio
async def test_search_codebase_invalid_regex_falls_back_to_literal(sandbox, tmp_path):
    (tmp_path / "a.txt").write_text("call(foo\n", encoding="utf-8")
    result = await sandbox.search_codebase("call(")
    assert result["results"][0]["line_number"] == 1


@pytest.mark.asyncio
async def test_find_files_glob_and_exclude(sandbox, tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.py").write_text("", encoding="utf-8")
    (tmp_path / "src" / "test_a.py").write_text("", encoding="utf-8")
    (tmp_path / "readme.md").write_text("", encoding="utf-8")

    found = await sandbox.find_files("*.py")
    assert found == {"files": ["src/a.py", "src/test_a.py"]}
    excluded = await sandbox.find_files("*.py", exclude=["test_*"])
    assert excluded == {"files": ["src/a.py"]}
    shallow = await sandbox.find_files("*.py", recursive=False)
    assert shallow == {"files": []}


@pytest.mark.asyncio
async def test_move_file_respects_overwrite(sandbox, tmp_path):
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "b.txt").write_text("b", encoding="utf-8")
    with pytest.raises(FileConflictError):
        await sandbox.move_file("a.txt", "b.txt")
    assert await sandbox.move_file("a.txt", "moved/c.txt") == {"success": True}
    assert (tmp_path / "moved" / "c.txt").read_text(encoding="utf-8") == "a"


@pytest.mark.asyncio
async def test_sandbox_tools_turn_access_denied_into_text(sandbox):
    executor = ToolExecutor(register_sandbox_tools(ToolRegistry(), sandbox))
    result = await executor.execute("read_file", {"path": "../../etc/passwd"})
    assert result.startswith("Error: Access denied")
    written = await executor.execute("write_file", {"path": "a.txt", "content": "x"})
    assert written["success"] is True


@pytest.mark.asyncio
async def test_read_multiple_files_reports_each_path(sandbox, tmp_path):
    (tmp_path / "a.txt").write_text("alpha", encoding="utf-8")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.txt").write_text("beta", encoding="utf-8")

    out = await sandbox.read_multiple_files(["a.txt", "../x.txt", "missing.txt", "sub/b.txt"])

    files = out["files"]
    assert [f["path"] for f in files] == ["a.txt", "../x.txt", "missing.txt", "sub/b.txt"]
    assert files[0] == {"path": "a.txt", "content": "alpha"}
    assert files[1]["error"].startswith("Access denied")
    assert "content" not in files[1]
    assert files[2] == {"path": "missing.txt", "content": ""}
    assert files[3] == {"path": "sub/b.txt", "content": "beta"}


@pytest.mark.asyncio
async def test_directory_tree_nests_and_skips_dot_entries(sandbox, tmp_path):
    (tmp_path / "src" / "pkg").mkdir(parents=True)
    (tmp_path / "src" / "pkg" / "mod.py").write_text("", encoding="utf-8")
    (tmp_path / "src" / "empty").mkdir()
    (tmp_path / "README.md").write_text("", encoding="utf-8")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".env").write_text("", encoding="utf-8")

    tree = (await sandbox.get_directory_tree("src"))["tree"]
    assert tree == {
        "name": "src",
        "type": "directory",
        "children": [
            {"name": "empty", "type": "directory", "children": []},
            {"name": "pkg", "type": "directory", "children": [{"name": "mod.py", "type": "file"}]},
        ],
    }

    root = (await sandbox.get_directory_tree())["tree"]
    assert [c["name"] for c in root["children"]] == ["README.md", "src"]


@pytest.mark.asyncio
async def test_directory_tree_missing_path_and_outside_root(tmp_path):
    root = tmp_path / "proj"
    root.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("s", encoding="utf-8")
    (root / "link").symlink_to(outside, target_is_directory=True)
    sb = FileSystemSandbox(SandboxContext(root=root))

    assert await sb.get_directory_tree("nope") == {"tree": None}
    assert (await sb.get_directory_tree())["tree"]["children"] == []
    with pytest.raises(AccessDeniedError):
        await sb.get_directory_tree("../outside")


@pytest.mark.asyncio
async def test_tree_and_multi_read_are_registered_tools(sandbox, tmp_path):
    (tmp_path / "a.txt").write_text("alpha", encoding="utf-8")
    executor = ToolExecutor(register_sandbox_tools(ToolRegistry(), sandbox))

    read = await executor.execute("read_multiple_files", {"paths": ["a.txt"]})
    assert read == {"files": [{"path": "a.txt", "content": "alpha"}]}
    single = await executor.execute("read_multiple_files", {"paths": "a.txt"})
    assert single == read

    tree = await executor.execute("get_directory_tree", {})
    assert tree["tree"]["children"] == [{"name": "a.txt", "type": "file"}]
    denied = await executor.execute("get_directory_tree", {"path": "../"})
    assert denied.startswith("Error: Access denied")
