"""Tests for selecting files to embed."""

from pathlib import Path

from reposcribe.services.file_selection import is_allowed_file, is_env_file, select_files


def _write(root: Path, rel: str, content: str = "x = 1\n") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def _rels(root: Path, files: list[Path]) -> list[str]:
    return [f.relative_to(root.resolve()).as_posix() for f in files]


class TestAllowList:
    def test_env_files(self):
        assert is_env_file(".env")
        assert is_env_file(".env.local")
        assert not is_env_file(".env.example")
        assert not is_env_file("env.py")

    def test_allowed_and_rejected(self):
        assert is_allowed_file(Path("src/app.ts"))
        assert is_allowed_file(Path("Dockerfile"))
        assert is_allowed_file(Path("LICENSE"))
        assert is_allowed_file(Path(".env.example"))
        assert not is_allowed_file(Path(".env"))
        assert not is_allowed_file(Path("yarn.lock"))
        assert not is_allowed_file(Path("package-lock.json"))
        assert not is_allowed_file(Path("logo.png"))
        assert not is_allowed_file(Path("main.o"))


class TestSelectFiles:
    def test_skips_vendor_dirs_env_and_gitignored(self, tmp_path: Path):
        _write(tmp_path, "src/app.ts")
        _write(tmp_path, "README.md", "# Demo\n")
        _write(tmp_path, ".env", "API_KEY=secret\n")
        _write(tmp_path, "node_modules/lib/index.js")
        _write(tmp_path, "generated/out.ts")
        _write(tmp_path, ".gitignore", "generated/\n")

        selected = select_files(tmp_path, max_file_bytes=10_000, max_repo_bytes=100_000)
        assert _rels(tmp_path, selected.files) == ["README.md", "src/app.ts"]

    def test_gitignore_can_be_disabled(self, tmp_path: Path):
        _write(tmp_path, "generated/out.ts")
        _write(tmp_path, ".gitignore", "generated/\n")
        selected = select_files(
            tmp_path, max_file_bytes=10_000, max_repo_bytes=100_000, respect_gitignore=False
        )
        assert "generated/out.ts" in _rels(tmp_path, selected.files)

    def test_empty_and_oversized_files_dropped(self, tmp_path: Path):
        _write(tmp_path, "empty.py", "")
        _write(tmp_path, "huge.py", "y" * 2000)
        _write(tmp_path, "ok.py")
        selected = select_files(tmp_path, max_file_bytes=1000, max_repo_bytes=100_000)
        assert _rels(tmp_path, selected.files) == ["ok.py"]

    def test_repo_budget_stops_selection(self, tmp_path: Path):
        """Selection stops at the first file that would exceed the budget."""
        for name in ("a.py", "b.py", "c.py"):
            _write(tmp_path, name, "z" * 400)
        selected = select_files(tmp_path, max_file_bytes=1000, max_repo_bytes=1000)
        assert _rels(tmp_path, selected.files) == ["a.py", "b.py"]
        assert selected.bytes == 800
