"""Tests for the file inventory scanner."""

from pathlib import Path

import pytest

from memorybank import scanner
from memorybank.errors import ScanIOError
from memorybank.models import AnalysisDepth
from memorybank.scanner import detect_language, scan_project, should_skip_dir


def _write(path: Path, text: str = "x = 1\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestLanguageDetection:
    """Extension to language mapping."""

    def test_known_extensions(self):
        """Test recognized extensions map to their language bucket."""
        assert detect_language(Path("a.py")) == "python"
        assert detect_language(Path("a.ts")) == "typescript"
        assert detect_language(Path("a.tsx")) == "tsx"
        assert detect_language(Path("a.jsx")) == "javascript"
        assert detect_language(Path("a.rs")) == "rust"

    def test_unbucketed_source_is_unknown(self):
        """Test C/C++ files are source files without a language bucket."""
        assert detect_language(Path("a.cpp")) == "unknown"
        assert scanner.is_source_file(Path("a.h"))
        assert not scanner.is_source_file(Path("README.md"))

    def test_skip_rules(self):
        """Test dependency, build and hidden directories are skipped."""
        for name in ("node_modules", "dist", "__pycache__", ".git", ".idea", "pkg.egg-info"):
            assert should_skip_dir(name)
        assert not should_skip_dir("src")


class TestScanProject:
    """Tests for scan_project()."""

    @pytest.mark.asyncio
    async def test_dependency_cache_directory_is_skipped(self, temp_dir: Path):
        """Test a tree with node_modules and one source file yields one record."""
        _write(temp_dir / "node_modules" / "lib" / "index.js", "module.exports = 1;\n")
        _write(temp_dir / "app.py")

        inventory = await scan_project(temp_dir)

        assert [f.relative_path for f in inventory.files] == ["app.py"]
        assert "node_modules" not in inventory.directories

    @pytest.mark.asyncio
    async def test_record_fields(self, temp_dir: Path):
        """Test a FileRecord carries language, sizes and line count."""
        _write(temp_dir / "src" / "mod.py", "a = 1\nb = 2\n")

        inventory = await scan_project(temp_dir)
        (record,) = inventory.files

        assert record.relative_path == "src/mod.py"
        assert record.language == "python"
        assert record.size == record.byte_length == 12
        assert record.line_count == 3
        assert inventory.directories == ["src"]

    @pytest.mark.asyncio
    async def test_empty_file_has_zero_lines(self, temp_dir: Path):
        """Test an empty source file reports zero lines."""
        _write(temp_dir / "empty.py", "")
        inventory = await scan_project(temp_dir)
        assert inventory.files[0].line_count == 0

    @pytest.mark.asyncio
    async def test_depth_budget_limits_walk(self, temp_dir: Path):
        """Test directories beyond the depth budget are not entered."""
        _write(temp_dir / "a" / "b" / "shallow.py")
        _write(temp_dir / "a" / "b" / "c" / "deep.py")

        shallow = await scan_project(temp_dir, AnalysisDepth.SHALLOW)
        deep = await scan_project(temp_dir, AnalysisDepth.DEEP)

        assert [f.relative_path for f in shallow.files] == ["a/b/shallow.py"]
        assert sorted(f.relative_path for f in deep.files) == ["a/b/c/deep.py", "a/b/shallow.py"]

    @pytest.mark.asyncio
    async def test_explicit_max_depth(self, temp_dir: Path):
        """Test max_depth=0 only inventories root files."""
        _write(temp_dir / "top.py")
        _write(temp_dir / "pkg" / "inner.py")

        inventory = await scan_project(temp_dir, max_depth=0)

        assert [f.relative_path for f in inventory.files] == ["top.py"]

    @pytest.mark.asyncio
    async def test_root_files_include_non_source(self, temp_dir: Path):
        """Test root-level non-source files are listed for profiling."""
        _write(temp_dir / "package.json", "{}")
        _write(temp_dir / "index.ts", "export const a = 1;\n")

        inventory = await scan_project(temp_dir)

        assert inventory.root_files == ["index.ts", "package.json"]
        assert len(inventory.files) == 1

    @pytest.mark.asyncio
    async def test_unreadable_directory_is_treated_as_empty(self, temp_dir: Path, monkeypatch):
        """Test a directory listing failure is logged and the walk continues."""
        _write(temp_dir / "ok.py")
        _write(temp_dir / "locked" / "hidden.py")
        real_list = scanner._list_directory

        def flaky_list(directory: Path):
            if directory.name == "locked":
                raise ScanIOError(str(directory), "Permission denied")
            return real_list(directory)

        monkeypatch.setattr(scanner, "_list_directory", flaky_list)

        inventory = await scan_project(temp_dir)

        assert [f.relative_path for f in inventory.files] == ["ok.py"]
        assert inventory.unreadable == [str(temp_dir / "locked")]

    @pytest.mark.asyncio
    async def test_sample_project(self, sample_project_path: Path):
        """Test scanning the bundled sample project."""
        inventory = await scan_project(sample_project_path)
        names = sorted(f.relative_path for f in inventory.files)
        assert names == ["main.py", "models.py", "processor.py", "utils.py"]
