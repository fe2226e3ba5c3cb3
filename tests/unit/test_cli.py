"""Unit tests for the operator CLI."""

import json
import uuid

from click.testing import CliRunner

from weekly_picks.database.models import ImportAttempt, PicksHistory, Profile, Report
from weekly_picks.imports.cli import cli
from weekly_picks.security.auth import hash_token

from tests.fixtures.sample_reports import make_pick, make_report_payload, report_filename


def _write(directory, day, payload):
    path = directory / report_filename(day)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestImportCommands:
    """Test import-file and import-dir."""

    def test_import_file(self, bound_database, session_factory, tmp_path, sample_payload):
        path = _write(tmp_path, "2025-01-07", sample_payload)

        result = CliRunner().invoke(cli, ["import-file", str(path)])

        assert result.exit_code == 0, result.output
        assert "2025-01-07-us-market-report" in result.output
        with session_factory() as session:
            assert session.query(Report).count() == 1
            assert session.query(PicksHistory).count() == 3

    def test_import_file_failure_exits_nonzero(self, bound_database, session_factory, tmp_path):
        path = _write(tmp_path, "2025-01-07", make_report_payload(picks=[]))

        result = CliRunner().invoke(cli, ["import-file", str(path)])

        assert result.exit_code == 1
        assert "validation" in result.output
        with session_factory() as session:
            assert session.query(ImportAttempt).count() == 1

    def test_import_dir_seeds_and_skips_duplicates(self, bound_database, session_factory, tmp_path, sample_payload):
        _write(tmp_path, "2025-01-07", sample_payload)
        _write(tmp_path, "2025-01-14", make_report_payload(published_at="2025-01-14T14:30:00Z"))
        _write(tmp_path, "2025-01-08", sample_payload)  # same week as 01-07
        (tmp_path / "notes.json").write_text("{}", encoding="utf-8")

        result = CliRunner().invoke(cli, ["import-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "Found 3 report files" in result.output
        assert "Imported 2, skipped 1 duplicates, 0 failed" in result.output
        with session_factory() as session:
            assert session.query(Report).count() == 2
            assert session.query(ImportAttempt).count() == 3

    def test_import_dir_dry_run(self, bound_database, session_factory, tmp_path, sample_payload):
        _write(tmp_path, "2025-01-07", sample_payload)

        result = CliRunner().invoke(cli, ["import-dir", str(tmp_path), "--dry-run"])

        assert result.exit_code == 0
        assert "Would import: 2025-01-07report.json" in result.output
        with session_factory() as session:
            assert session.query(ImportAttempt).count() == 0

    def test_import_file_records_actor(self, bound_database, session_factory, admin_profile, tmp_path, sample_payload):
        path = _write(tmp_path, "2025-01-07", sample_payload)

        result = CliRunner().invoke(cli, ["import-file", str(path), "--actor", str(admin_profile.user_id)])

        assert result.exit_code == 0, result.output
        with session_factory() as session:
            assert session.query(ImportAttempt).one().actor_id == admin_profile.user_id

    def test_unknown_actor_is_rejected_before_import(self, bound_database, session_factory, tmp_path, sample_payload):
        path = _write(tmp_path, "2025-01-07", sample_payload)

        result = CliRunner().invoke(cli, ["import-file", str(path), "--actor", str(uuid.uuid4())])

        assert result.exit_code == 2
        assert "no profile with id" in result.output
        with session_factory() as session:
            assert session.query(ImportAttempt).count() == 0

    def test_non_finite_numbers_are_not_json(self, bound_database, session_factory, tmp_path):
        path = _write(tmp_path, "2025-01-07", make_report_payload(picks=[make_pick(target_change_pct=float("nan"))]))

        result = CliRunner().invoke(cli, ["import-file", str(path)])

        assert result.exit_code == 1
        assert "is not valid JSON" in result.output
        with session_factory() as session:
            assert session.query(ImportAttempt).count() == 0


class TestAdminCommands:
    """Test create-admin and refresh-view."""

    def test_create_admin_prints_working_token(self, bound_database, session_factory):
        result = CliRunner().invoke(cli, ["create-admin", "--name", "Ops"])

        assert result.exit_code == 0, result.output
        token = result.output.strip().splitlines()[-1].rsplit(" ", 1)[-1]
        with session_factory() as session:
            profile = session.query(Profile).one()
            assert profile.is_admin
            assert profile.api_token_hash == hash_token(token)

    def test_refresh_view(self, bound_database):
        result = CliRunner().invoke(cli, ["refresh-view"])

        assert result.exit_code == 0
        assert "picks_history refreshed: 0 rows" in result.output
