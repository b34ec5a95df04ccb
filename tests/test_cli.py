from __future__ import annotations

import time

import httpx
import pytest
from typer.testing import CliRunner

from adapters.session_store import TokenStore
from cli import runtime
from cli.main import app
from conftest import RecordingHandler, json_response
from core.config import AppSettings, write_user_env_vars
from core.domain.models import TokenData
from core.services.organization_csv import REQUIRED_HEADERS, generate_template

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PARTNER_CONSOLE_SESSION_FILE", str(tmp_path / "session.json"))
    monkeypatch.setenv("PARTNER_CONSOLE_SUPABASE_URL", "http://backend.test")


def test_template_command_writes_importable_template(tmp_path):
    out = tmp_path / "template.csv"

    result = runner.invoke(app, ["orgs", "template", "--output", str(out)])

    assert result.exit_code == 0
    assert out.read_text(encoding="utf-8") == generate_template()


def test_import_dry_run_validates_without_uploading(tmp_path):
    path = tmp_path / "orgs.csv"
    path.write_text(generate_template(), encoding="utf-8")

    result = runner.invoke(app, ["orgs", "import", str(path), "--dry-run"])

    assert result.exit_code == 0
    assert "1 row(s) are valid" in result.stdout


def test_invalid_csv_exits_with_error(tmp_path):
    path = tmp_path / "orgs.csv"
    path.write_text(",".join(REQUIRED_HEADERS) + "\n" + ",".join(["x"] * 10 + [""] + ["y"] * 5) + "\n", encoding="utf-8")

    result = runner.invoke(app, ["orgs", "import", str(path)])

    assert result.exit_code == 1


def test_status_without_session():
    result = runner.invoke(app, ["auth", "status"])

    assert result.exit_code == 0
    assert "No active session" in result.stdout


def test_settings_derive_function_and_auth_urls():
    settings = AppSettings(_env_file=None, supabase_url="https://proj.supabase.co/")

    assert settings.functions_url == "https://proj.supabase.co/functions/v1"
    assert settings.auth_url == "https://proj.supabase.co/auth/v1"


def test_write_user_env_vars_merges_existing_values(tmp_path):
    env_path = tmp_path / "cfg" / ".env"
    write_user_env_vars({"PARTNER_CONSOLE_SUPABASE_URL": "http://a"}, env_path=env_path)
    write_user_env_vars({"PARTNER_CONSOLE_SUPABASE_ANON_KEY": "k"}, env_path=env_path)

    text = env_path.read_text(encoding="utf-8")
    assert "PARTNER_CONSOLE_SUPABASE_URL=http://a" in text
    assert "PARTNER_CONSOLE_SUPABASE_ANON_KEY=k" in text


@pytest.fixture
def backend(tmp_path, monkeypatch):
    """Sesión válida en disco y un transporte simulado para el runtime de la CLI."""

    TokenStore(tmp_path / "session.json").save(
        TokenData(access_token="cli-token", refresh_token="r", expires_at=time.time() + 3600)
    )
    build = runtime.build_async_client

    def _install(responder) -> RecordingHandler:
        handler = RecordingHandler(responder)
        monkeypatch.setattr(
            runtime,
            "build_async_client",
            lambda settings: build(settings, transport=httpx.MockTransport(handler)),
        )
        return handler

    return _install


def test_sales_heatmap_prints_states_by_volume(backend):
    sales = [
        {"amount": 100, "state_backup": "Lagos"},
        {"amount": 50, "address": {"state": "Lagos"}},
        {"amount": 70, "state_backup": "Kano"},
    ]
    handler = backend(lambda r: json_response({"data": sales}))

    result = runner.invoke(app, ["sales", "heatmap", "--from", "2025-01-01"])

    assert result.exit_code == 0
    assert handler.json_body() == {"dateFrom": "2025-01-01", "limit": 1000, "includeAddress": True}
    assert handler.requests[0].headers["Authorization"] == "Bearer cli-token"
    assert result.stdout.index("Lagos") < result.stdout.index("Kano")
    assert "150.00" in result.stdout


def test_sales_show_looks_up_by_serial(backend):
    handler = backend(lambda r: json_response({"success": True, "data": {"id": "s1", "stove_serial_no": "101034734"}}))

    result = runner.invoke(app, ["sales", "show", "101034734", "--by", "stove_serial_no"])

    assert result.exit_code == 0
    assert handler.requests[0].url.params["stove_serial_no"] == "101034734"
    assert "101034734" in result.stdout


def test_orgs_stoves_lists_inventory_with_totals(backend):
    def responder(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/get-stove-stats"):
            return json_response({"data": {"available": 1, "sold": 0, "total": 1}})
        return json_response({"data": [{"stove_id": "101034734", "status": "available"}]})

    handler = backend(responder)

    result = runner.invoke(app, ["orgs", "stoves", "org-1", "--status", "available"])

    assert result.exit_code == 0
    assert [r.url.path for r in handler.requests] == [
        "/functions/v1/manage-stove-ids",
        "/functions/v1/get-stove-stats",
    ]
    assert "101034734" in result.stdout


def test_backend_errors_exit_with_status_one(backend):
    backend(lambda r: json_response({"message": "x"}, 403))

    result = runner.invoke(app, ["sales", "show", "s1"])

    assert result.exit_code == 1
