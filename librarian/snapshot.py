"""Qdrant collection snapshots pushed to a NAS directory, with retention."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

import requests

_TIMEOUT_SECS = 120.0


class SnapshotError(Exception):
    """Snapshot creation, download or restore failed."""


class SnapshotNotFoundError(SnapshotError):
    """The requested snapshot is not on the NAS."""

    def __init__(self, snapshot_id: str) -> None:
        super().__init__(f"snapshot not found on NAS: {snapshot_id}")
        self.snapshot_id = snapshot_id


class QdrantNasSnapshotter:
    """Uses Qdrant's snapshot API and keeps the snapshot files in a local directory."""

    name = "qdrant-nas-snapshotter"

    def __init__(
        self,
        qdrant_url: str,
        collection: str,
        nas_path: Union[str, os.PathLike],
    ) -> None:
        self.nas_path = Path(nas_path)
        self.nas_path.mkdir(parents=True, exist_ok=True)
        self.qdrant_url = qdrant_url.rstrip("/")
        self.collection = collection
        self._session = requests.Session()

    def version(self) -> str:
        return "0.1.0"

    def config_hash(self) -> str:
        return f"c={self.collection};nas={self.nas_path}"

    def _snapshots_url(self) -> str:
        return f"{self.qdrant_url}/collections/{self.collection}/snapshots"

    def _nas_file(self, snapshot_id: str) -> Path:
        return self.nas_path / snapshot_id

    def _request(self, label: str, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self._session.request(method, url, timeout=_TIMEOUT_SECS, **kwargs)
        except requests.RequestException as exc:
            raise SnapshotError(f"http: {label}: {exc}") from exc

    def snapshot(self) -> str:
        """Create a snapshot, copy it to the NAS, free it on Qdrant; return its id."""
        create = self._request("create", "POST", self._snapshots_url())
        if not create.ok:
            raise SnapshotError(f"qdrant: create snapshot http {create.status_code}")
        try:
            name = create.json()["result"]["name"]
        except (ValueError, KeyError, TypeError) as exc:
            raise SnapshotError("qdrant: missing snapshot name in response") from exc
        if not isinstance(name, str):
            raise SnapshotError("qdrant: missing snapshot name in response")
        snapshot_id = f"{self.collection}__{name}"

        file_url = f"{self._snapshots_url()}/{name}"
        download = self._request("download", "GET", file_url)
        try:
            download.raise_for_status()
        except requests.HTTPError as exc:
            raise SnapshotError(f"qdrant: {exc}") from exc
        self._nas_file(snapshot_id).write_bytes(download.content)

        try:
            self._session.delete(file_url, timeout=_TIMEOUT_SECS)
        except requests.RequestException:
            pass
        return snapshot_id

    def restore(self, snapshot_id: str) -> None:
        """Upload a NAS snapshot back into the collection."""
        path = self._nas_file(snapshot_id)
        if not path.exists():
            raise SnapshotNotFoundError(snapshot_id)
        upload_url = f"{self._snapshots_url()}/upload?priority=snapshot"
        with open(path, "rb") as fh:
            resp = self._request(
                "upload", "POST", upload_url, files={"snapshot": (path.name, fh)}
            )
        if not resp.ok:
            raise SnapshotError(f"qdrant: restore http {resp.status_code}: {resp.text}")

    def list(self) -> list[str]:
        """Ids of this collection's snapshots on the NAS."""
        prefix = f"{self.collection}__"
        return [entry.name for entry in self.nas_path.iterdir() if entry.name.startswith(prefix)]

    def prune(self, keep_last: int) -> None:
        """Keep the newest ``keep_last`` snapshots by mtime; delete the rest."""

        def mtime(path: Path) -> float:
            try:
                return path.stat().st_mtime
            except OSError:
                return 0.0

        paths = sorted((self._nas_file(i) for i in self.list()), key=mtime, reverse=True)
        for path in paths[keep_last:]:
            try:
                path.unlink()
            except OSError:
                pass