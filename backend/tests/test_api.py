"""
Tests for the HTTP API.

The workspace path is pointed at a temporary directory for every test.
"""
import struct
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest
from fastapi.testclient import TestClient

from ecgconvert.main import app
from ecgconvert.settings import settings, ensure_workspace


client = TestClient(app)


def rdt_bytes(data, sampling_rate=500, adu_gain=200):
    data = np.asarray(data)
    return struct.pack('<3h', data.shape[0], sampling_rate, adu_gain) + data.T.astype('<i2').tobytes()


SIGNAL = [[1, 2, 3, 4], [5, 6, 7, 8]]


@pytest.fixture(autouse=True)
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "WORKSPACE_PATH", str(tmp_path))
    ensure_workspace(str(tmp_path))
    return tmp_path


class TestRootAndHealth:
    """Tests for GET / and GET /api/health."""

    def test_root(self):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == settings.APP_NAME

    def test_health(self):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == settings.APP_VERSION
        assert data["workspace_exists"] is True
        assert data["formats_registered"] == 13

    def test_health_degraded_without_workspace(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "WORKSPACE_PATH", str(tmp_path / "missing"))
        assert client.get("/api/health").json()["status"] == "degraded"

    def test_request_id_header(self):
        response = client.get("/api/health")
        assert "X-Request-ID" in response.headers


class TestFormatsEndpoint:
    """Tests for GET /api/formats."""

    def test_lists_every_format(self):
        response = client.get("/api/formats")

        assert response.status_code == 200
        formats = {f["tag"]: f for f in response.json()["formats"]}
        assert len(formats) == 13
        assert formats["RDT"]["can_write"] is True
        assert formats["RDT"]["extension"] == ".rdt"
        assert formats["MUSEXML"]["can_write"] is False
        assert formats["MUSEXML"]["produces_payload"] is True
        assert formats["WFDB_212"]["accepts_signal_count"] is True


class TestConvertEndpoint:
    """Tests for POST /api/convert."""

    def test_convert_from_inputs(self, workspace):
        (workspace / "inputs" / "rec.rdt").write_bytes(rdt_bytes(SIGNAL))

        response = client.post("/api/convert", json={
            "input_format": "RDT",
            "output_format": "GEMUSE",
            "file_name": "rec.rdt",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["rows_written"] == 4
        assert data["record_name"] == "rec"
        assert data["output_files"] == ["rec.txt"]
        assert data["error_kind"] is None
        assert (workspace / "outputs" / "rec.txt").exists()

    def test_convert_relative_paths(self, workspace):
        (workspace / "batch").mkdir()
        (workspace / "batch" / "rec.rdt").write_bytes(rdt_bytes(SIGNAL))

        response = client.post("/api/convert", json={
            "input_format": "RDT",
            "output_format": "HL7",
            "file_name": "rec.rdt",
            "input_path": "batch",
            "output_path": "batch/out",
        })

        assert response.json()["success"] is True
        assert (workspace / "batch" / "out" / "rec.xml").exists()

    def test_missing_source_reported_in_body(self):
        response = client.post("/api/convert", json={
            "input_format": "RDT",
            "output_format": "RDT",
            "file_name": "absent.rdt",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["rows_written"] == -1
        assert data["error_kind"] == "SourceParseFailure"
        assert data["context"]["file_name"] == "absent.rdt"

    def test_load_only_target(self, workspace):
        (workspace / "inputs" / "rec.rdt").write_bytes(rdt_bytes(SIGNAL))

        response = client.post("/api/convert", json={
            "input_format": "RDT",
            "output_format": "SCHILLER",
            "file_name": "rec.rdt",
        })

        assert response.json()["error_kind"] == "UnsupportedFormat"

    def test_path_outside_workspace(self):
        response = client.post("/api/convert", json={
            "input_format": "RDT",
            "output_format": "RDT",
            "file_name": "rec.rdt",
            "input_path": "../../etc",
        })

        assert response.status_code == 400
        assert "request_id" in response.json()

    def test_unknown_format_rejected(self):
        response = client.post("/api/convert", json={
            "input_format": "DICOM",
            "output_format": "RDT",
            "file_name": "rec.dcm",
        })

        assert response.status_code == 422
        assert response.json()["error"] == "Validation error"

    def test_negative_signal_count_rejected(self):
        response = client.post("/api/convert", json={
            "input_format": "WFDB",
            "output_format": "RDT",
            "file_name": "100.hea",
            "signals_requested": -1,
        })
        assert response.status_code == 422


class TestUploadEndpoint:
    """Tests for POST /api/convert/upload."""

    def test_upload_and_convert(self, workspace):
        response = client.post(
            "/api/convert/upload",
            files=[("files", ("rec.rdt", rdt_bytes(SIGNAL), "application/octet-stream"))],
            data={"input_format": "RDT", "output_format": "RDT"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["output_files"] == ["rec.rdt"]
        output = workspace / "outputs" / data["request_id"] / "rec.rdt"
        assert output.read_bytes() == rdt_bytes(SIGNAL)

    def test_upload_selects_named_file(self):
        response = client.post(
            "/api/convert/upload",
            files=[
                ("files", ("notes.txt", b"1,2\n3,4\n", "text/plain")),
                ("files", ("rec.rdt", rdt_bytes(SIGNAL), "application/octet-stream")),
            ],
            data={"input_format": "RDT", "output_format": "GEMUSE", "file_name": "rec.rdt"},
        )

        data = response.json()
        assert data["success"] is True
        assert data["output_files"] == ["rec.txt"]

    def test_named_file_not_uploaded(self):
        response = client.post(
            "/api/convert/upload",
            files=[("files", ("rec.rdt", rdt_bytes(SIGNAL), "application/octet-stream"))],
            data={"input_format": "RDT", "output_format": "RDT", "file_name": "other.rdt"},
        )
        assert response.status_code == 400

    def test_disallowed_extension(self):
        response = client.post(
            "/api/convert/upload",
            files=[("files", ("payload.exe", b"MZ", "application/octet-stream"))],
            data={"input_format": "RDT", "output_format": "RDT"},
        )

        assert response.status_code == 400
        assert "not allowed" in response.json()["error"]

    def test_empty_file(self):
        response = client.post(
            "/api/convert/upload",
            files=[("files", ("rec.rdt", b"", "application/octet-stream"))],
            data={"input_format": "RDT", "output_format": "RDT"},
        )
        assert response.status_code == 400

    def test_oversized_file(self, monkeypatch):
        monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE_MB", 0)
        response = client.post(
            "/api/convert/upload",
            files=[("files", ("rec.rdt", rdt_bytes(SIGNAL), "application/octet-stream"))],
            data={"input_format": "RDT", "output_format": "RDT"},
        )
        assert response.status_code == 413

    @pytest.mark.parametrize("second", [
        ("payload.exe", b"MZ"),
        ("rec.dat", b""),
    ])
    def test_rejected_batch_writes_nothing(self, workspace, second):
        response = client.post(
            "/api/convert/upload",
            files=[
                ("files", ("rec.rdt", rdt_bytes(SIGNAL), "application/octet-stream")),
                ("files", (second[0], second[1], "application/octet-stream")),
            ],
            data={"input_format": "RDT", "output_format": "RDT"},
        )

        assert response.status_code == 400
        assert list((workspace / "inputs").iterdir()) == []
        assert list((workspace / "outputs").iterdir()) == []

    def test_filename_sanitized(self, workspace):
        response = client.post(
            "/api/convert/upload",
            files=[("files", ("../../rec.rdt", rdt_bytes(SIGNAL), "application/octet-stream"))],
            data={"input_format": "RDT", "output_format": "RDT"},
        )

        data = response.json()
        assert data["success"] is True
        assert (workspace / "inputs" / data["request_id"] / "rec.rdt").exists()


class TestConfigEndpoint:
    """Tests for GET/PUT /api/config."""

    def test_get_config(self, workspace):
        response = client.get("/api/config")

        assert response.status_code == 200
        data = response.json()
        assert data["workspace_path"] == str(workspace)
        assert data["workspace_exists"] is True
        assert data["subdirectories"] == {"inputs": True, "outputs": True}

    @patch('ecgconvert.settings.save_config')
    def test_update_config(self, mock_save, tmp_path):
        new_path = tmp_path / "elsewhere"

        response = client.put("/api/config", json={"workspace_path": str(new_path)})

        assert response.status_code == 200
        assert response.json()["subdirectories"] == {"inputs": True, "outputs": True}
        assert (new_path / "outputs").is_dir()
        assert settings.WORKSPACE_PATH == str(new_path)
        mock_save.assert_called_once_with({"workspace_path": str(new_path)})

    def test_update_config_empty_path(self):
        response = client.put("/api/config", json={"workspace_path": "  "})
        assert response.status_code == 400

    def test_update_config_missing_parent(self, tmp_path):
        response = client.put("/api/config", json={"workspace_path": str(tmp_path / "a" / "b")})
        assert response.status_code == 400
