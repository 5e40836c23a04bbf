from __future__ import annotations

from typer.testing import CliRunner

from contribforms.cli import cli


def test_init_store_creates_the_configured_store(settings):
    result = CliRunner().invoke(cli, ["init-store"])

    assert result.exit_code == 0, result.output
    assert "store ready at" in result.output
    assert settings.upload_dir.is_dir()
    if settings.storage_backend == "sqlite":
        assert settings.sqlite_path.exists()
    else:
        assert settings.json_path.parent.is_dir()
