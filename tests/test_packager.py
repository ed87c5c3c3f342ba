"""Smoke tests for twigc.packager."""

import zipfile
from pathlib import Path, PurePosixPath
from unittest.mock import MagicMock, patch

from twigc.packager import _excluded, build_archive, main


class TestExcluded:
    def test_pycache_and_tests_skipped(self):
        assert _excluded(Path("twigc/__pycache__/x.pyc"))
        assert _excluded(Path("jinja2/tests/test_x.py"))
        assert _excluded(Path("markupsafe/_speedups.c"))

    def test_outside_paths_skipped(self):
        assert _excluded(Path("../../bin/tool"))

    def test_sources_kept(self):
        assert not _excluded(Path("jinja2/environment.py"))


def _fake_root_dist():
    dist = MagicMock()
    dist.files = []
    return dist


class TestBuildArchive:
    @patch("twigc.packager.metadata.distribution", return_value=_fake_root_dist())
    def test_builds_executable_zipapp(self, _mock_dist, tmp_path):
        target = build_archive(tmp_path / "twigc.pyz", vendor=False)

        assert target.exists()
        assert target.read_bytes().startswith(b"#!/usr/bin/env python3")
        assert target.stat().st_mode & 0o111

        with zipfile.ZipFile(target) as zf:
            names = zf.namelist()
            assert "__main__.py" in names
            assert "twigc/__main__.py" in names
            assert "twigc/packager.py" in names
            main_src = zf.read("twigc/__main__.py").decode()
        assert "%BUILD_DATE%" not in main_src

    @patch("twigc.packager.dependency_closure")
    @patch("twigc.packager.metadata.distribution", return_value=_fake_root_dist())
    def test_vendors_dependency_files(self, _mock_dist, mock_closure, tmp_path):
        site = tmp_path / "site"
        (site / "fakepkg").mkdir(parents=True)
        (site / "fakepkg" / "__init__.py").write_text("X = 1\n")
        (site / "fakepkg" / "tests").mkdir()
        (site / "fakepkg" / "tests" / "test_a.py").write_text("")

        dist = MagicMock()
        dist.files = [PurePosixPath("fakepkg/__init__.py"), PurePosixPath("fakepkg/tests/test_a.py")]
        dist.locate_file.side_effect = lambda f: site / f
        mock_closure.return_value = [dist]

        target = build_archive(tmp_path / "out.pyz")

        with zipfile.ZipFile(target) as zf:
            names = zf.namelist()
        assert "fakepkg/__init__.py" in names
        assert "fakepkg/tests/test_a.py" not in names

    def test_main_reports_failure(self, tmp_path, capsys):
        with patch("twigc.packager.build_archive", side_effect=RuntimeError("boom")):
            assert main(["-o", str(tmp_path / "x.pyz")]) == 1
        assert "twigc-build: boom" in capsys.readouterr().err
