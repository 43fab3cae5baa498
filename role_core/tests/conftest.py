"""
Pytest configuration for role_core tests.

pytest-asyncio is loaded through its entry point; async tests are marked
with @pytest.mark.asyncio (strict mode, see pyproject.toml).
"""
import pytest

from role_core.sandbox import FileSystemSandbox, SandboxContext


@pytest.fixture
def sandbox(tmp_path):
    return FileSystemSandbox(SandboxContext(root=tmp_path))
