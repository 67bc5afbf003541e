"""Tests for the command-line entry point."""

from content_migration.cli import build_config, build_parser, main
from content_migration.services import snapshots
from fixture_data import write_json

ENV = {
    "WP_DB_HOST": "db.local",
    "WP_DB_USER": "wp",
    "WP_DB_PASS": "secret",
    "WP_DB_NAME": "wordpress",
}


def test_flags_override_environment(tmp_path) -> None:
    """Command-line switches turn toggles on and replace paths."""
    args = build_parser().parse_args([
        "run", "--dry-run", "--skip-extraction", "--output-dir", str(tmp_path), "--mapping", "m.json",
    ])

    config = build_config(args, {**ENV, "SKIP_IMPORT": "true"})

    assert config.options.dry_run is True
    assert config.options.skip_extraction is True
    assert config.options.skip_import is True
    assert config.options.skip_transformation is False
    assert config.output_dir == str(tmp_path)
    assert config.mapping_file == "m.json"


def test_run_exits_nonzero_on_missing_configuration(tmp_path, capsys) -> None:
    """A failed run signals failure through the exit status."""
    status = main(["run", "--output-dir", str(tmp_path / "out")], environ={})

    assert status == 1
    assert "Missing source database configuration" in capsys.readouterr().out
    assert not (tmp_path / "out").exists()


def test_run_with_all_stages_skipped_succeeds(tmp_path, capsys) -> None:
    status = main(
        ["run", "--skip-extraction", "--skip-transformation", "--skip-import", "--output-dir", str(tmp_path)],
        environ=ENV,
    )

    assert status == 0
    output = capsys.readouterr().out
    assert "MIGRATION SUMMARY" in output
    assert "Status: completed" in output


def test_transform_command(tmp_path, capsys) -> None:
    """The transform subcommand works from existing snapshot files."""
    date = "2024-06-01"
    write_json(tmp_path / "data" / f"users_{date}.json", [{
        "ID": 1,
        "user_login": "alice",
        "user_email": "alice@example.com",
        "user_registered": "2023-01-02 10:00:00",
        "user_status": "0",
        "display_name": "Alice Author",
        "meta": {},
    }])

    status = main(["transform", "--output-dir", str(tmp_path)], environ=ENV)

    assert status == 0
    assert (tmp_path / "data" / "transformed" / snapshots.transformed_filename("users", date)).exists()
    assert "users: 1" in capsys.readouterr().out


def test_transform_command_without_snapshots_fails(tmp_path, capsys) -> None:
    status = main(["transform", "--output-dir", str(tmp_path)], environ=ENV)

    assert status == 1
    assert "No extraction snapshot files found" in capsys.readouterr().err


def test_import_command_requires_destination(tmp_path) -> None:
    assert main(["import", "--output-dir", str(tmp_path)], environ=ENV) == 1


def test_no_command_prints_help(capsys) -> None:
    assert main([], environ={}) == 1
    assert "usage" in capsys.readouterr().out


def test_unreadable_mapping_file_fails_cleanly(tmp_path, capsys) -> None:
    """A broken mapping file is reported as an error, not a traceback."""
    mapping = tmp_path / "mapping.json"
    mapping.write_text("{not json", encoding="utf-8")
    write_json(tmp_path / "data" / "users_2024-06-01.json", [{"ID": 1, "user_email": "a@example.com"}])

    status = main(["transform", "--output-dir", str(tmp_path), "--mapping", str(mapping)], environ=ENV)

    assert status == 1
    err = capsys.readouterr().err
    assert "Could not load mapping file" in err
    assert "JSONDecodeError" in err
