"""Unit tests for the CLI — command registration, exit codes and output.

Network access is replaced by pointing the commands' client factory at
the fake release index.
"""

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from typer.testing import CliRunner

from buildcache.cli.app import app
from buildcache.cli.commands import releases as releases_module
from buildcache.cli.commands import restore as restore_module
from buildcache.core.pipeline import ArchivePipeline

runner = CliRunner()


@pytest.fixture
def fake_remote(monkeypatch: pytest.MonkeyPatch, release_index, make_client):
    """Route every command's ReleaseIndexClient to the fake index."""
    client = make_client(release_index)
    factory = SimpleNamespace(from_settings=lambda settings: client)
    monkeypatch.setattr(restore_module, "ReleaseIndexClient", factory)
    monkeypatch.setattr(releases_module, "ReleaseIndexClient", factory)
    return release_index


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output or "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("archive", "restore", "releases", "status", "clean"):
            assert name in result.output

    @pytest.mark.parametrize("name", ["archive", "restore", "releases", "status", "clean"])
    def test_command_help(self, name: str):
        assert runner.invoke(app, [name, "--help"]).exit_code == 0


# ---------------------------------------------------------------------------
# archive
# ---------------------------------------------------------------------------


class TestArchiveCommand:
    def test_archive(self, source_root: Path):
        result = runner.invoke(
            app, ["archive", "--project-root", str(source_root), "--max-part-size", "4K"]
        )
        assert result.exit_code == 0, result.output
        assert "Build cache archived" in result.output
        assert "Parts:" in result.output
        assert (source_root / "build-cache" / "archive-files.txt").exists()

    def test_archive_from_environment(self, source_root: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PROJECT_ROOT", str(source_root))
        monkeypatch.setenv("BUILDCACHE_MAX_PART_SIZE", "1G")
        result = runner.invoke(app, ["archive"])
        assert result.exit_code == 0, result.output
        assert "Parts:" not in result.output
        assert len(list((source_root / "build-cache").glob("*.tar.gz"))) == 1

    def test_nothing_to_archive(self, tmp_dir: Path):
        result = runner.invoke(app, ["archive", "--project-root", str(tmp_dir)])
        assert result.exit_code == 0
        assert "No build directories found" in result.output

    def test_invalid_part_size(self, source_root: Path):
        result = runner.invoke(
            app, ["archive", "--project-root", str(source_root), "--max-part-size", "0"]
        )
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_missing_project_root(self, tmp_dir: Path):
        result = runner.invoke(app, ["archive", "--project-root", str(tmp_dir / "absent")])
        assert result.exit_code == 1
        assert "does not exist" in result.output


# ---------------------------------------------------------------------------
# restore
# ---------------------------------------------------------------------------


@pytest.fixture
def published_cache(source_root: Path, make_settings, fake_remote):
    report = ArchivePipeline(make_settings(source_root)).run()
    fake_remote.publish("build-cache-20240501", report.upload_files)
    return report


class TestRestoreCommand:
    def test_restore(self, published_cache, target_root: Path, kept_files: dict):
        result = runner.invoke(app, ["restore", "--project-root", str(target_root)])
        assert result.exit_code == 0, result.output
        assert "Build cache restored" in result.output
        assert "build-cache-20240501" in result.output
        for relative, data in kept_files.items():
            assert (target_root / relative).read_bytes() == data

    def test_no_cache_exits_3(self, fake_remote, target_root: Path):
        result = runner.invoke(app, ["restore", "--project-root", str(target_root)])
        assert result.exit_code == 3
        assert "No cache available" in result.output

    def test_declined_overwrite_exits_0(self, published_cache, target_root: Path):
        existing = target_root / "script/meta/minimyth/work/keep.txt"
        existing.parent.mkdir(parents=True)
        existing.write_text("mine")

        result = runner.invoke(
            app, ["restore", "--project-root", str(target_root)], input="n\n"
        )

        assert result.exit_code == 0, result.output
        assert "cancelled" in result.output
        assert existing.read_text() == "mine"
        assert not (target_root / "script/kernel").exists()

    def test_confirmed_overwrite(self, published_cache, target_root: Path):
        existing = target_root / "script/meta/minimyth/work/rootfs/etc/hostname"
        existing.parent.mkdir(parents=True)
        existing.write_text("stale")

        result = runner.invoke(
            app, ["restore", "--project-root", str(target_root)], input="y\n"
        )

        assert result.exit_code == 0, result.output
        assert existing.read_text() == "minimyth\n"

    def test_yes_skips_prompt(self, published_cache, target_root: Path):
        existing = target_root / "script/meta/minimyth/work/keep.txt"
        existing.parent.mkdir(parents=True)
        existing.write_text("mine")
        result = runner.invoke(app, ["restore", "--yes", "--project-root", str(target_root)])
        assert result.exit_code == 0, result.output
        assert "Overwrite?" not in result.output

    def test_integrity_failure_exits_1(self, published_cache, fake_remote, target_root: Path):
        part = published_cache.split.manifest.parts[0]
        url = fake_remote.asset_url("build-cache-20240501", part)
        fake_remote.blobs[url] = b"\x00" * len(fake_remote.blobs[url])

        result = runner.invoke(app, ["restore", "--project-root", str(target_root)])

        assert result.exit_code == 1
        assert "Integrity check failed" in result.output
        assert "Staging area kept" in result.output

    def test_staging_policy_option(self, published_cache, fake_remote, target_root: Path):
        part = published_cache.split.manifest.parts[0]
        url = fake_remote.asset_url("build-cache-20240501", part)
        fake_remote.blobs[url] = b"\x00" * len(fake_remote.blobs[url])

        result = runner.invoke(
            app,
            ["restore", "--project-root", str(target_root), "--staging-policy", "always"],
        )

        assert result.exit_code == 1
        assert "Staging area kept" not in result.output
        assert not (target_root / "build-cache-download").exists()


# ---------------------------------------------------------------------------
# clean
# ---------------------------------------------------------------------------


class TestCleanCommand:
    def test_confirmed(self, source_root: Path):
        result = runner.invoke(app, ["clean", "--project-root", str(source_root)], input="y\n")
        assert result.exit_code == 0, result.output
        assert "Are you sure?" in result.output
        assert "Cache cleaned" in result.output
        assert not (source_root / "script/kernel/work").exists()

    def test_declined(self, source_root: Path):
        result = runner.invoke(app, ["clean", "--project-root", str(source_root)], input="n\n")
        assert result.exit_code == 0
        assert "nothing was deleted" in result.output
        assert (source_root / "script/kernel/work/linux-6.6/vmlinux").exists()

    def test_yes_skips_prompt(self, source_root: Path):
        result = runner.invoke(app, ["clean", "--yes", "--project-root", str(source_root)])
        assert result.exit_code == 0, result.output
        assert "Are you sure?" not in result.output
        assert not (source_root / "script/mythtv/work").exists()

    def test_nothing_to_clean(self, tmp_dir: Path):
        result = runner.invoke(app, ["clean", "--project-root", str(tmp_dir)])
        assert result.exit_code == 0
        assert "No local build cache" in result.output


# ---------------------------------------------------------------------------
# releases / status
# ---------------------------------------------------------------------------


class TestReleasesCommand:
    def test_lists_cache_releases(self, fake_remote):
        fake_remote.add_release(
            "build-cache-1", {"a-build-cache.tar.gz": b"x"}, body="First cache\nmore"
        )
        fake_remote.add_release("v2.0", {"firmware.img.xz": b"x"})
        result = runner.invoke(app, ["releases"])
        assert result.exit_code == 0, result.output
        assert "build-cache-1" in result.output
        assert "First cache" in result.output
        assert "v2.0" not in result.output

    def test_none_found(self, fake_remote):
        result = runner.invoke(app, ["releases"])
        assert result.exit_code == 0
        assert "No build cache releases" in result.output

    def test_index_failure(self, fake_remote):
        fake_remote.failures["/repos/warpme/minimyth2/releases"] = [403]
        result = runner.invoke(app, ["releases"])
        assert result.exit_code == 1
        assert "Download failed" in result.output

    def test_malformed_index_entry(self, fake_remote):
        fake_remote.releases.append({"tag_name": "build-cache-x", "assets": [{"name": "x"}]})
        result = runner.invoke(app, ["releases"])
        assert result.exit_code == 1
        assert "Download failed" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)


class TestStatusCommand:
    def test_status(self, source_root: Path):
        runner.invoke(app, ["archive", "--project-root", str(source_root), "--max-part-size", "1G"])
        result = runner.invoke(app, ["status", "--project-root", str(source_root)])
        assert result.exit_code == 0, result.output
        assert "populated" in result.output
        assert "missing" in result.output
        assert "metadata.json" in result.output

    def test_status_empty_root(self, tmp_dir: Path):
        result = runner.invoke(app, ["status", "--project-root", str(tmp_dir)])
        assert result.exit_code == 0
        assert "No archive output" in result.output
