from __future__ import annotations

import pytest

from doc_drive.config import DocDriveConfig
from doc_drive.runtime import DocDriveRuntime, build_storage
from doc_drive.clients import RestMetadataGateway, RestStorageGateway
from doc_drive.storage import LocalBlobStore


def test_defaults_are_in_memory():
    cfg = DocDriveConfig.from_env({})

    assert cfg.storage.backend == "memory"
    assert cfg.metadata.backend == "memory"
    assert cfg.gateway.timeout_seconds == 30.0


def test_data_dir_selects_local_backends(tmp_path):
    cfg = DocDriveConfig.from_env({"DOC_DRIVE_DATA_DIR": str(tmp_path), "DOC_DRIVE_GATEWAY_TIMEOUT": "0"})

    runtime = DocDriveRuntime.bootstrap(cfg)

    assert isinstance(runtime.storage, LocalBlobStore)
    assert cfg.metadata.state_path == str(tmp_path / "documents.json")
    assert cfg.gateway.timeout_seconds is None


def test_rest_backends_share_url_and_key():
    cfg = DocDriveConfig.from_env(
        {
            "DOC_DRIVE_STORAGE_BACKEND": "rest",
            "DOC_DRIVE_METADATA_BACKEND": "rest",
            "DOC_DRIVE_REST_URL": "http://store.local",
            "DOC_DRIVE_API_KEY": "anon",
            "DOC_DRIVE_BUCKET": "docs",
        }
    )

    runtime = DocDriveRuntime.bootstrap(cfg)

    assert isinstance(runtime.storage, RestStorageGateway)
    assert runtime.storage.bucket == "docs"
    assert isinstance(runtime.metadata, RestMetadataGateway)
    assert runtime.metadata.api_key == "anon"


def test_rest_backend_needs_url():
    cfg = DocDriveConfig.default()
    cfg.storage.backend = "rest"

    with pytest.raises(ValueError):
        build_storage(cfg)
