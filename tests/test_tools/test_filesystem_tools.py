from pathlib import Path

import pytest

from vibe_cli.tools import build_default_registry
from vibe_cli.tools.path_policy import check_access, check_delete, resolve_path


class DummyConfirm:
    def __init__(self, answer: bool):
        self.answer = answer
        self.questions: list[str] = []

    def __call__(self, question: str) -> bool:
        self.questions.append(question)
        return self.answer


def _registry(tmp_path: Path, answer: bool | None = None):
    registry = build_default_registry(base_path=tmp_path)
    registry.set_record_sink(None)
    confirm = None
    if answer is not None:
        confirm = DummyConfirm(answer)
        registry.set_approval_callback(confirm)
    return registry, confirm


@pytest.mark.asyncio
async def test_list_dir_separates_files_and_directories(tmp_path: Path):
    (tmp_path / "b.txt").write_text("b")
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "src").mkdir()
    registry, _ = _registry(tmp_path)

    result = await registry.execute("listDir", {"path": "."})

    assert result.success is True
    assert result.data == {
        "path": str(tmp_path.resolve()),
        "files": ["a.txt", "b.txt"],
        "directories": ["src"],
    }


@pytest.mark.asyncio
async def test_list_dir_reports_missing_and_non_directories(tmp_path: Path):
    (tmp_path / "file.txt").write_text("x")
    registry, _ = _registry(tmp_path)

    missing = await registry.execute("listDir", {"path": "nope"})
    not_dir = await registry.execute("listDir", {"path": "file.txt"})

    assert missing.success is False
    assert missing.error.startswith("Directory not found:")
    assert not_dir.success is False
    assert "is not a directory" in not_dir.error


@pytest.mark.asyncio
async def test_read_file_returns_content(tmp_path: Path):
    (tmp_path / "notes.md").write_text("hello", encoding="utf-8")
    registry, _ = _registry(tmp_path)

    result = await registry.execute("readFile", {"path": "notes.md"})

    assert result.success is True
    assert result.data["content"] == "hello"
    assert result.data["encoding"] == "utf-8"


@pytest.mark.asyncio
async def test_read_file_missing_file(tmp_path: Path):
    registry, _ = _registry(tmp_path)

    result = await registry.execute("readFile", {"path": "missing.txt"})

    assert result.success is False
    assert result.error.startswith("File not found:")


@pytest.mark.asyncio
async def test_read_file_refuses_secret_files(tmp_path: Path):
    (tmp_path / ".env").write_text("TOKEN=1")
    (tmp_path / "server.pem").write_text("cert")
    registry, _ = _registry(tmp_path)

    env = await registry.execute("readFile", {"path": ".env"})
    pem = await registry.execute("readFile", {"path": "server.pem"})

    assert env.success is False
    assert env.error == "Cannot read .env files for security reasons"
    assert pem.error == "Cannot read .pem files for security reasons"


@pytest.mark.asyncio
async def test_write_file_creates_and_overwrites_with_confirmation(tmp_path: Path):
    registry, confirm = _registry(tmp_path, answer=True)

    created = await registry.execute("writeFile", {"path": "out/a.txt", "content": "one"})
    replaced = await registry.execute("writeFile", {"path": "out/a.txt", "content": "two"})

    assert created.success is True
    assert created.data["overwritten"] is False
    assert replaced.success is True
    assert replaced.data["overwritten"] is True
    assert replaced.data["bytes_written"] == 3
    assert (tmp_path / "out" / "a.txt").read_text() == "two"
    assert len(confirm.questions) == 1
    assert "already exists. Overwrite?" in confirm.questions[0]


@pytest.mark.asyncio
async def test_write_file_declined_overwrite_leaves_file(tmp_path: Path):
    target = tmp_path / "keep.txt"
    target.write_text("original")
    registry, _ = _registry(tmp_path, answer=False)

    result = await registry.execute("writeFile", {"path": "keep.txt", "content": "new"})

    assert result.success is False
    assert result.error == "Operation cancelled by user"
    assert target.read_text() == "original"


@pytest.mark.asyncio
async def test_write_file_force_skips_confirmation(tmp_path: Path):
    (tmp_path / "a.txt").write_text("old")
    registry, confirm = _registry(tmp_path, answer=False)

    result = await registry.execute("writeFile", {"path": "a.txt", "content": "new", "force": True})

    assert result.success is True
    assert confirm.questions == []
    assert (tmp_path / "a.txt").read_text() == "new"


@pytest.mark.asyncio
async def test_write_file_accepts_empty_content_and_serializes_objects(tmp_path: Path):
    registry, _ = _registry(tmp_path)

    empty = await registry.execute("writeFile", {"path": "empty.txt", "content": ""})
    data = await registry.execute("writeFile", {"path": "data.json", "content": {"a": 1}})
    missing = await registry.execute("writeFile", {"path": "x.txt"})

    assert empty.success is True
    assert (tmp_path / "empty.txt").read_text() == ""
    assert data.success is True
    assert (tmp_path / "data.json").read_text() == '{"a": 1}'
    assert missing.success is False
    assert "Missing required argument: content" in missing.error


@pytest.mark.asyncio
async def test_write_file_refuses_secret_extensions(tmp_path: Path):
    registry, _ = _registry(tmp_path)

    result = await registry.execute("writeFile", {"path": "id.key", "content": "x"})

    assert result.success is False
    assert result.error == "Cannot write to .key files for security reasons"
    assert not (tmp_path / "id.key").exists()


@pytest.mark.asyncio
async def test_create_file_never_overwrites(tmp_path: Path):
    registry, _ = _registry(tmp_path)

    created = await registry.execute("createFile", {"path": "new.txt", "content": "hi"})
    again = await registry.execute("createFile", {"path": "new.txt", "content": "other"})
    blank = await registry.execute("createFile", {"path": "blank.txt"})

    assert created.success is True
    assert created.data["created"] is True
    assert created.data["bytes_written"] == 2
    assert again.success is False
    assert "Use writeFile tool to modify existing files." in again.error
    assert (tmp_path / "new.txt").read_text() == "hi"
    assert blank.success is True
    assert blank.data["bytes_written"] is None


@pytest.mark.asyncio
async def test_delete_file_requires_confirmation(tmp_path: Path):
    target = tmp_path / "old.log"
    target.write_text("x")
    registry, confirm = _registry(tmp_path, answer=False)

    declined = await registry.execute("deleteFile", {"path": "old.log"})
    assert declined.success is False
    assert target.exists()

    confirm.answer = True
    deleted = await registry.execute("deleteFile", {"path": "old.log"})
    assert deleted.success is True
    assert deleted.data == {"path": str(target.resolve()), "deleted": True}
    assert not target.exists()


@pytest.mark.asyncio
async def test_delete_file_refuses_protected_files(tmp_path: Path):
    (tmp_path / "package.json").write_text("{}")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "HEAD").write_text("ref")
    registry, _ = _registry(tmp_path, answer=True)

    manifest = await registry.execute("deleteFile", {"path": "package.json", "force": True})
    git_file = await registry.execute("deleteFile", {"path": ".git/HEAD", "force": True})

    assert manifest.success is False
    assert "protected file type" in manifest.error
    assert git_file.success is False
    assert git_file.error == "Cannot delete files in .git for security reasons"
    assert (tmp_path / "package.json").exists()


@pytest.mark.asyncio
async def test_delete_file_rejects_directories(tmp_path: Path):
    (tmp_path / "dir").mkdir()
    registry, _ = _registry(tmp_path, answer=True)

    result = await registry.execute("deleteFile", {"path": "dir"})

    assert result.success is False
    assert "is not a file" in result.error


@pytest.mark.asyncio
async def test_mkdir_is_idempotent(tmp_path: Path):
    registry, _ = _registry(tmp_path)

    first = await registry.execute("mkdir", {"path": "a/b/c"})
    second = await registry.execute("mkdir", {"path": "a/b/c"})

    assert first.success is True
    assert second.success is True
    assert (tmp_path / "a" / "b" / "c").is_dir()


@pytest.mark.asyncio
async def test_mkdir_fails_on_existing_file(tmp_path: Path):
    (tmp_path / "taken").write_text("x")
    registry, _ = _registry(tmp_path)

    result = await registry.execute("mkdir", {"path": "taken"})

    assert result.success is False
    assert result.error.endswith("exists but is not a directory")


@pytest.mark.asyncio
async def test_move_file_detects_collisions(tmp_path: Path):
    (tmp_path / "a.txt").write_text("a")
    (tmp_path / "b.txt").write_text("b")
    registry, _ = _registry(tmp_path)

    blocked = await registry.execute("moveFile", {"source": "a.txt", "destination": "b.txt"})
    assert blocked.success is False
    assert "Use overwrite: true to replace it." in blocked.error
    assert (tmp_path / "b.txt").read_text() == "b"

    replaced = await registry.execute(
        "moveFile", {"source": "a.txt", "destination": "b.txt", "overwrite": True}
    )
    assert replaced.success is True
    assert not (tmp_path / "a.txt").exists()
    assert (tmp_path / "b.txt").read_text() == "a"


@pytest.mark.asyncio
async def test_move_file_creates_destination_parents(tmp_path: Path):
    (tmp_path / "a.txt").write_text("a")
    registry, _ = _registry(tmp_path)

    result = await registry.execute("moveFile", {"source": "a.txt", "destination": "archive/a.txt"})
    missing = await registry.execute("moveFile", {"source": "ghost.txt", "destination": "x.txt"})

    assert result.success is True
    assert (tmp_path / "archive" / "a.txt").read_text() == "a"
    assert missing.success is False
    assert missing.error.startswith("Source not found:")


@pytest.mark.asyncio
async def test_load_instructions_defaults_and_missing_file(tmp_path: Path):
    registry, _ = _registry(tmp_path)

    missing = await registry.execute("loadInstructions", {})
    (tmp_path / "VIBE.md").write_text("Use tabs.", encoding="utf-8")
    found = await registry.execute("loadInstructions", {})

    assert missing.success is True
    assert missing.data["found"] is False
    assert found.data == {
        "path": str((tmp_path / "VIBE.md").resolve()),
        "content": "Use tabs.",
        "found": True,
    }


def test_resolve_path_is_relative_to_base(tmp_path: Path):
    assert resolve_path("x/../y.txt", tmp_path) == (tmp_path / "y.txt").resolve()
    assert resolve_path("/abs/file.txt", tmp_path) == Path("/abs/file.txt").resolve()


def test_path_policy_messages():
    assert check_access(Path("/etc/hosts"), "read") == "Cannot read files in /etc for security reasons"
    assert check_access(Path("/home/me/app/main.py"), "read") is None
    assert check_delete(Path("/home/me/app/node_modules/x/index.js")) == (
        "Cannot delete files in node_modules for security reasons"
    )
    assert check_delete(Path("/home/me/app/yarn.lock")) == "Cannot delete /home/me/app/yarn.lock - protected file type"
