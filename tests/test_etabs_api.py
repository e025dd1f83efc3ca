"""Tests for ETABS API endpoints."""

from pathlib import Path

import pytest


class TestSession:
    """Tests for /etabs/open, /etabs/close and /etabs/status."""

    @pytest.mark.asyncio
    async def test_open_status_close(self, client, api_project, launcher, working_path):
        opened = await client.post("/etabs/open", json={"project_path": api_project})
        assert opened.status_code == 200

        data = opened.json()["data"]
        assert data["opened"] is True
        assert data["branch"] == "main"
        assert data["read_only"] is False
        assert data["file_path"] == str(working_path(api_project, "main"))
        assert data["process_id"] == launcher.last.pid

        status = await client.get("/etabs/status", params={"project_path": api_project})
        assert status.json()["data"]["is_running"] is True
        assert status.json()["data"]["open_file_path"] == data["file_path"]

        closed = await client.post("/etabs/close", json={"project_path": api_project})
        assert closed.status_code == 200
        assert closed.json()["data"] == {"closed": True, "changes_saved": False}

        status = await client.get("/etabs/status", params={"project_path": api_project})
        assert status.json()["data"]["is_running"] is False

    @pytest.mark.asyncio
    async def test_open_version_read_only(self, client, api_project):
        response = await client.post(
            "/etabs/open",
            json={"project_path": api_project, "branch_name": "main", "version_id": "v1"},
        )
        data = response.json()["data"]
        assert data["read_only"] is True
        assert data["version_id"] == "v1"
        assert "views" in Path(data["file_path"]).parts

    @pytest.mark.asyncio
    async def test_already_running(self, client, api_project):
        await client.post("/etabs/open", json={"project_path": api_project})

        response = await client.post("/etabs/open", json={"project_path": api_project})
        assert response.status_code == 409
        assert response.json()["error_kind"] == "AlreadyRunning"

    @pytest.mark.asyncio
    async def test_close_when_not_running(self, client, api_project):
        response = await client.post("/etabs/close", json={"project_path": api_project})
        assert response.status_code == 400
        assert response.json()["error_kind"] == "NotRunning"

    @pytest.mark.asyncio
    async def test_launch_failure(self, client, api_project, launcher):
        launcher.error = OSError("access denied")

        response = await client.post("/etabs/open", json={"project_path": api_project})
        assert response.status_code == 500
        assert response.json()["error_kind"] == "LaunchFailed"


class TestGenerateE2K:
    """Tests for /etabs/generate-e2k."""

    @pytest.mark.asyncio
    async def test_default_output_path(self, client, design_file):
        response = await client.post("/etabs/generate-e2k", json={"edb_path": str(design_file)})
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["e2k_path"] == str(design_file.with_suffix(".e2k"))
        assert data["file_size"] == design_file.stat().st_size
        assert data["messages"] == ["Opening model", "Exporting E2K", "Export complete"]

    @pytest.mark.asyncio
    async def test_existing_output(self, client, design_file):
        design_file.with_suffix(".e2k").write_text("old", encoding="utf-8")

        response = await client.post("/etabs/generate-e2k", json={"edb_path": str(design_file)})
        assert response.status_code == 409
        assert response.json()["error_kind"] == "OutputExists"

        response = await client.post(
            "/etabs/generate-e2k", json={"edb_path": str(design_file), "overwrite": True}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_not_an_edb(self, client, tmp_path):
        source = tmp_path / "notes.txt"
        source.write_text("x", encoding="utf-8")

        response = await client.post("/etabs/generate-e2k", json={"edb_path": str(source)})
        assert response.status_code == 400
        assert response.json()["error_kind"] == "SourceInvalid"

    @pytest.mark.asyncio
    async def test_cli_failure(self, client, design_file, cli_runner):
        cli_runner.failing.add("generate-e2k")

        response = await client.post("/etabs/generate-e2k", json={"edb_path": str(design_file)})
        assert response.status_code == 500
        assert response.json()["error_kind"] == "CommandFailed"


class TestValidateAndInfo:
    """Tests for /etabs/validate and /etabs/cli-info."""

    @pytest.mark.asyncio
    async def test_validate(self, client, design_file):
        response = await client.post("/etabs/validate", json={"file_path": str(design_file)})
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["etabsInstalled"] is True
        assert data["fileValid"] is True
        assert data["fileExtension"] == ".edb"

    @pytest.mark.asyncio
    async def test_validate_failure(self, client, design_file, cli_runner):
        cli_runner.failing.add("validate")

        response = await client.post("/etabs/validate", json={"file_path": str(design_file)})
        assert response.status_code == 500
        assert response.json()["error_kind"] == "CommandFailed"

    @pytest.mark.asyncio
    async def test_cli_info(self, client):
        response = await client.get("/etabs/cli-info")
        assert response.status_code == 200
        assert response.json()["data"] == {"available": True, "version": "etabs-cli 1.2.0"}
