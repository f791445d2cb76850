"""HTTP client that keeps a local directory in step with the file sync server."""

import io
import time
import uuid
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from client.sync_state import SyncState, TrackedFile
from common.checksum import digest_file
from common.logging_config import get_logger

logger = get_logger(__name__)


class SyncClientError(Exception):
    """Raised when the server rejects a request or cannot be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class SyncClient:
    """HTTP client for the storage and synchronization API with retry logic."""

    def __init__(
        self,
        base_url: str,
        owner_id: str,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_backoff_multiplier: float = 2,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.owner_id = owner_id
        self.max_retries = max_retries
        self.backoff = retry_backoff_multiplier
        self.session = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)
        self.request_id = None
        logger.info(f"Initialized SyncClient [base_url={base_url}]")

    def close(self) -> None:
        self.session.close()

    def _request_with_retry(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Raises:
            SyncClientError: If max retries are exceeded or the connection fails
        """
        self.request_id = str(uuid.uuid4())
        kwargs.setdefault('headers', {})['X-Request-ID'] = self.request_id
        params = kwargs.setdefault('params', {})
        params['owner_id'] = self.owner_id

        last_exception = None

        for attempt in range(self.max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < self.max_retries:
                    delay = self.backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{self.max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                continue

            if response.status_code >= 500 and attempt < self.max_retries:
                delay = self.backoff ** attempt
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{self.max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                )
                time.sleep(delay)
                continue

            return response

        if isinstance(last_exception, httpx.TimeoutException):
            raise SyncClientError("Request timed out. Server may be overloaded.")
        raise SyncClientError("Cannot connect to file sync server. Is it running?")

    def _json_or_raise(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code >= 400:
            message = payload.get('message') or payload.get('detail') or 'Unknown error'
            if not isinstance(message, str):
                message = 'Invalid request'
            raise SyncClientError(message, status_code=response.status_code, code=payload.get('code'))

        return payload

    def build_reports(self, root: Path, state: SyncState) -> List[Dict[str, Any]]:
        """
        Describe every tracked file that still exists locally.

        The checksum is computed from the current local content; last_updated
        is the server timestamp recorded at the last exchange. Files whose
        timestamp was never fetched are left out until the next refresh.
        """
        reports = []
        for entry in state.files.values():
            path = root / entry.relative_path
            if not path.is_file():
                logger.debug(f"Tracked file missing locally, not reported [file_id={entry.file_id}]")
                continue
            if not entry.last_updated:
                logger.debug(f"Tracked file has no server timestamp yet, not reported [file_id={entry.file_id}]")
                continue
            reports.append({
                'file_id': entry.file_id,
                'last_updated': entry.last_updated,
                'checksum': digest_file(path),
            })
        return reports

    def synchronize(self, reports: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        """
        Ask the server which files must be uploaded.

        Returns:
            None when nothing is owed, otherwise synchronization_id and
            files_to_upload
        """
        response = self._request_with_retry('POST', '/storage/synchronize', json=reports)
        return self._json_or_raise(response).get('data')

    def upload_pending(
        self,
        synchronization_id: str,
        root: Path,
        state: SyncState,
        files_to_upload: List[Dict[str, str]],
    ) -> Dict[str, Any]:
        """
        Zip the owed files under their server names and upload them.

        Files that are no longer present locally are left out; the server
        keeps them pending.
        """
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
            for item in files_to_upload:
                entry = state.get(item['file_id'])
                if entry is None or not (root / entry.relative_path).is_file():
                    logger.warning(f"Cannot upload missing file [file_id={item['file_id']}]")
                    continue
                archive.write(root / entry.relative_path, arcname=item['file_name'])

        response = self._request_with_retry(
            'POST',
            '/storage/upload/sync',
            params={'synchronization_id': synchronization_id},
            files={'archive': ('sync.zip', buffer.getvalue(), 'application/zip')},
        )
        return self._json_or_raise(response)['data']

    def fetch_metadata(self, page_size: int = 100) -> Dict[str, Dict[str, Any]]:
        """
        Returns:
            Server metadata of every file owned by this client, keyed by file id
        """
        metadata = {}
        page = 1
        while True:
            response = self._request_with_retry(
                'GET', '/storage/list', params={'page': page, 'page_size': page_size}
            )
            payload = self._json_or_raise(response)
            for item in payload['data']:
                metadata[item['file_id']] = item
            if page >= payload['pagination']['total_pages']:
                return metadata
            page += 1

    def sync_directory(self, root: Path, state: SyncState) -> Optional[Dict[str, Any]]:
        """
        Run one synchronization round for a local directory.

        Returns:
            None when the server needed nothing, otherwise the fulfillment
            result (completed, synchronized_files, pending_files)
        """
        reports = self.build_reports(root, state)
        if not reports:
            return None

        evaluation = self.synchronize(reports)
        if evaluation is None:
            return None

        result = self.upload_pending(
            evaluation['synchronization_id'], root, state, evaluation['files_to_upload']
        )
        self._refresh_state(state, [item['file_id'] for item in evaluation['files_to_upload']])
        return result

    def ingest_directory(self, root: Path, state: SyncState) -> List[Dict[str, str]]:
        """
        Upload every file below root as new server files and start tracking
        them.

        The server answers in sorted relative-path order, which is the order
        the archive is built in.
        """
        relative_paths = sorted(
            path.relative_to(root).as_posix() for path in root.rglob('*') if path.is_file()
        )

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
            for relative in relative_paths:
                archive.write(root / relative, arcname=relative)

        response = self._request_with_retry(
            'POST',
            '/storage/upload/archive',
            files={'archive': ('ingest.zip', buffer.getvalue(), 'application/zip')},
        )
        ingested = self._json_or_raise(response)['data']

        for relative, item in zip(relative_paths, ingested):
            state.track(TrackedFile(
                file_id=item['file_id'],
                relative_path=relative,
                last_updated='',
                checksum=item['checksum'],
            ))
        self._refresh_state(state, [item['file_id'] for item in ingested])
        return ingested

    def _refresh_state(self, state: SyncState, file_ids: List[str]) -> None:
        if not file_ids:
            return
        metadata = self.fetch_metadata()
        for file_id in file_ids:
            entry = state.get(file_id)
            server = metadata.get(file_id)
            if entry is None or server is None:
                continue
            entry.last_updated = server['last_updated']
            entry.checksum = server['checksum']
        state.save()
