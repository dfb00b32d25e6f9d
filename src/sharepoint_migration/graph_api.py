# -*- coding: utf-8 -*-
"""
Microsoft Graph API operations for SharePoint migration.

This module provides the request retry logic and GraphRemoteStore, the
RemoteStore implementation that resolves the site and library once and then
addresses every file by its library-relative path.
"""

import os
import time
from urllib.parse import quote, unquote, urlparse
import requests
from .exceptions import GraphRequestError, RemoteConnectionError, RemoteItemExistsError, UploadError
from .models import RemoteFileInfo
from .monitoring import RateLimitMonitor
from .remote_store import RemoteStore
from .utils import format_graph_timestamp, is_debug_enabled, is_debug_metadata_enabled, parse_graph_timestamp

# Files up to this size go through a single PUT, larger ones use an upload session
SMALL_FILE_LIMIT = 4 * 1024 * 1024

# Upload session chunks must be multiples of 320 KiB, at most 60 MiB
CHUNK_ALIGNMENT = 327680
MAX_CHUNK_SIZE = 60 * 1024 * 1024
DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024


def make_graph_request_with_retry(url, headers, method='GET', json_data=None, data=None, params=None,
                                  max_retries=3, timeout=120, retry_conflicts=True, monitor=None):
    """
    Make a Graph API request with proper retry handling for transient errors.
    Includes rate limiting monitoring via response header analysis.

    Retry Logic:
        - 429 (Rate Limit): Waits for Retry-After header duration
        - 5xx (Server Error): Exponential backoff (2s, 3s, 5s)
        - 409 (Conflict/Lock): Exponential backoff (3s, 4s, 6s) unless retry_conflicts is False
        - Timeouts and connection errors: Exponential backoff
        - 4xx (Client Error): No retry, response is returned

    Args:
        url (str): The Graph API endpoint URL
        headers (dict): Request headers including Authorization
        method (str): HTTP method ('GET', 'POST', 'PATCH', 'PUT', 'DELETE')
        json_data (dict): JSON body (mutually exclusive with data)
        data (bytes): Binary body (mutually exclusive with json_data)
        params (dict): URL query parameters
        max_retries (int): Maximum number of retry attempts (default: 3)
        timeout (int): Per-request timeout in seconds
        retry_conflicts (bool): Retry 409 responses; False when a 409 means
            "already exists" and must be reported immediately
        monitor (RateLimitMonitor): Receives every response for throttling statistics

    Returns:
        requests.Response: The HTTP response object

    Raises:
        GraphRequestError: If retries are exhausted for 429, 5xx or network errors,
            or on SSL, proxy and redirect failures

    Note:
        409 responses are returned (never raised) so callers can handle
        conflicts gracefully.
    """
    debug_metadata = is_debug_metadata_enabled()
    method = method.upper()
    if method not in ('GET', 'POST', 'PATCH', 'PUT', 'DELETE'):
        raise ValueError(f"Unsupported HTTP method: {method}")

    for attempt in range(max_retries + 1):
        try:
            # Add proactive delay if approaching rate limits
            if monitor is not None and attempt > 0 and monitor.should_slow_down():
                delay = 2 ** attempt
                if is_debug_enabled():
                    print(f"[⚠] Proactive rate limiting delay: {delay}s")
                time.sleep(delay)

            if data is not None:
                response = requests.request(method, url, headers=headers, params=params,
                                            data=data, timeout=timeout)
            else:
                response = requests.request(method, url, headers=headers, params=params,
                                            json=json_data, timeout=timeout)

            if monitor is not None:
                monitor.analyze_response_headers(response, method=method, url=url)

            if response.status_code == 429:
                retry_after = response.headers.get('Retry-After', '60')
                try:
                    wait_seconds = int(retry_after)
                except ValueError:
                    wait_seconds = 60  # Malformed header

                if attempt < max_retries:
                    if is_debug_enabled():
                        print(f"[!] Rate limited (429). Waiting {wait_seconds} seconds before retry {attempt + 1}/{max_retries}...")
                    if debug_metadata:
                        print(f"[DEBUG] Retry-After header: {retry_after}")
                        print(f"[DEBUG] Rate limit response: {response.text[:300]}")
                    _note_retry(monitor)
                    time.sleep(wait_seconds)
                    continue
                print("[!] Rate limiting exhausted all retries. Final 429 response:")
                print(f"[DEBUG] {response.text[:500]}")
                raise GraphRequestError(
                    f"Graph API rate limiting: {response.status_code} after {max_retries} retries",
                    response.status_code
                )

            elif 500 <= response.status_code < 600:
                if attempt < max_retries:
                    wait_seconds = (2 ** attempt) + 1
                    if is_debug_enabled():
                        print(f"[!] Server error ({response.status_code}). Retrying in {wait_seconds} seconds... ({attempt + 1}/{max_retries})")
                    if debug_metadata:
                        print(f"[DEBUG] Server error response: {response.text[:300]}")
                    _note_retry(monitor)
                    time.sleep(wait_seconds)
                    continue
                if is_debug_enabled():
                    print("[!] Server errors exhausted all retries. Final response:")
                    print(f"[DEBUG] {response.text[:500]}")
                raise GraphRequestError(
                    f"Graph API server error: {response.status_code} after {max_retries} retries",
                    response.status_code
                )

            elif response.status_code == 409 and retry_conflicts:
                # Often transient: SharePoint processing, virus scan, indexing
                if attempt < max_retries:
                    wait_seconds = (2 ** attempt) + 2
                    if is_debug_enabled():
                        print(f"[!] Conflict/Lock error (409). File may be locked or processing. Retrying in {wait_seconds} seconds... ({attempt + 1}/{max_retries})")
                    if debug_metadata:
                        print(f"[DEBUG] Conflict response: {response.text[:300]}")
                    _note_retry(monitor)
                    time.sleep(wait_seconds)
                    continue
                if is_debug_enabled():
                    print("[!] Conflict errors exhausted all retries. File may be locked.")
                return response

            # Success or client error (400, 401, 403, 404 and non-retried 409)
            return response

        except requests.exceptions.Timeout as e:
            if attempt < max_retries:
                wait_seconds = (2 ** attempt) + 1
                timeout_info = str(e)[:100] if str(e) else "timeout"
                print(f"[!] Request timeout ({timeout_info}). Retrying in {wait_seconds} seconds... ({attempt + 1}/{max_retries})")
                _note_retry(monitor)
                time.sleep(wait_seconds)
                continue
            _print_failure_banner(
                "REQUEST TIMEOUT - All retries exhausted",
                f"The request timed out after {max_retries} retry attempts: {url[:100]}",
                ["Check the network connection to Microsoft Graph",
                 "If using a proxy, verify the proxy configuration",
                 "Increase requestTimeout for very large files on slow links"],
            )
            raise GraphRequestError(f"Graph API request timed out after {max_retries} retries") from e

        except requests.exceptions.SSLError as e:
            # Not transient
            _print_failure_banner(
                "SSL/TLS CERTIFICATE ERROR",
                f"Certificate verification failed: {str(e)[:300]}",
                ["Verify the system certificate store is up to date",
                 "Check whether a corporate proxy intercepts TLS connections"],
            )
            raise GraphRequestError(f"SSL certificate verification failed: {str(e)[:200]}") from e

        except requests.exceptions.ProxyError as e:
            _print_failure_banner(
                "PROXY CONNECTION ERROR",
                f"Failed to connect through the proxy: {str(e)[:300]}",
                ["Verify HTTP_PROXY and HTTPS_PROXY",
                 "Check the proxy allows connections to *.microsoft.com"],
            )
            raise GraphRequestError(f"Proxy connection failed: {str(e)[:200]}") from e

        except requests.exceptions.TooManyRedirects as e:
            _print_failure_banner(
                "TOO MANY REDIRECTS",
                f"Verify the Graph endpoint: {url[:100]}",
                ["Commercial cloud: graph.microsoft.com, GovCloud: graph.microsoft.us"],
            )
            raise GraphRequestError(f"Too many redirects - possible configuration issue: {str(e)[:200]}") from e

        except requests.exceptions.ConnectionError as e:
            if attempt < max_retries:
                wait_seconds = (2 ** attempt) + 1
                print(f"[!] Network connection error: {str(e)[:100]}. Retrying in {wait_seconds} seconds... ({attempt + 1}/{max_retries})")
                _note_retry(monitor)
                time.sleep(wait_seconds)
                continue
            _print_failure_banner(
                "NETWORK CONNECTION FAILED",
                f"No connection after {max_retries} retry attempts: {str(e)[:300]}",
                ["Check DNS resolution of graph.microsoft.com",
                 "Ensure the firewall allows HTTPS (port 443) to *.microsoft.com"],
            )
            raise GraphRequestError(f"Network connection failed after {max_retries} retries: {str(e)[:200]}") from e

        except requests.exceptions.RequestException as e:
            if attempt < max_retries:
                wait_seconds = (2 ** attempt) + 1
                print(f"[!] HTTP request error: {str(e)[:100]}. Retrying in {wait_seconds} seconds... ({attempt + 1}/{max_retries})")
                _note_retry(monitor)
                time.sleep(wait_seconds)
                continue
            print(f"[!] HTTP request errors exhausted all retries: {str(e)[:200]}")
            raise GraphRequestError(f"HTTP request failed: {str(e)[:200]}") from e

    raise GraphRequestError("Unexpected error in make_graph_request_with_retry")


def _note_retry(monitor):
    if monitor is not None:
        monitor.record_retry()


def _print_failure_banner(title, message, steps):
    print("[!] ========================================")
    print(f"[!] {title}")
    print("[!] ========================================")
    print(f"[!] {message}")
    print("[!] Troubleshooting steps:")
    for number, step in enumerate(steps, 1):
        print(f"[!]   {number}. {step}")
    print("[!] ========================================")


def _error_code(response):
    """Extract the Graph error code ('nameAlreadyExists', ...) from a response body."""
    try:
        return (response.json().get('error') or {}).get('code')
    except ValueError:
        return None


def align_chunk_size(chunk_size):
    """Round a chunk size up to the 320 KiB multiple Graph requires, capped at 60 MiB."""
    chunk_size = max(int(chunk_size), CHUNK_ALIGNMENT)
    if chunk_size % CHUNK_ALIGNMENT != 0:
        chunk_size = ((chunk_size // CHUNK_ALIGNMENT) + 1) * CHUNK_ALIGNMENT
    return min(chunk_size, MAX_CHUNK_SIZE - (MAX_CHUNK_SIZE % CHUNK_ALIGNMENT))


def build_file_system_info(modified_at=None, created_at=None):
    """Build the fileSystemInfo facet stamping source timestamps on an item."""
    info = {}
    if modified_at is not None:
        info['lastModifiedDateTime'] = format_graph_timestamp(modified_at)
    if created_at is not None:
        info['createdDateTime'] = format_graph_timestamp(created_at)
    return info


def item_to_remote_info(item, path):
    """
    Convert a driveItem into RemoteFileInfo.

    The fileSystemInfo timestamp is preferred over the service timestamp
    because uploads stamp it with the source modification time.
    """
    file_system_info = item.get('fileSystemInfo') or {}
    modified = parse_graph_timestamp(
        file_system_info.get('lastModifiedDateTime') or item.get('lastModifiedDateTime')
    )
    return RemoteFileInfo(
        resolved_url=path,
        size=item.get('size'),
        modified_at=modified,
        name=item.get('name'),
        item_id=item.get('id'),
    )


class GraphRemoteStore(RemoteStore):
    """
    RemoteStore backed by a SharePoint document library through Microsoft Graph.

    Args:
        site_url (str): e.g. 'https://contoso.sharepoint.com/sites/Finance'
        library_name (str): Library display name ('Documents') or URL name ('Shared Documents')
        token_provider (TokenProvider): Supplies the Authorization header
        graph_endpoint (str): Graph host (graph.microsoft.com or graph.microsoft.us)
        max_retries (int): Retry budget per request
        timeout (int): Per-request timeout in seconds
        chunk_size (int): Upload session chunk size

    Example:
        store = GraphRemoteStore(site_url, 'Documents', tokens)
        store.connect()
        info = store.get_file('Clients/Acme/contract.pdf')
    """

    def __init__(self, site_url, library_name, token_provider, graph_endpoint='graph.microsoft.com',
                 max_retries=3, timeout=120, chunk_size=DEFAULT_CHUNK_SIZE):
        self.site_url = site_url.rstrip('/')
        self.library_name = library_name
        self.token_provider = token_provider
        self.base_url = f"https://{graph_endpoint}/v1.0"
        self.max_retries = max_retries
        self.timeout = timeout
        self.chunk_size = align_chunk_size(chunk_size)
        self.monitor = RateLimitMonitor()
        self.site_id = None
        self.drive_id = None

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _headers(self, content_type=None):
        headers = {
            'Authorization': self.token_provider.authorization_header(),
            'Accept': 'application/json',
        }
        if content_type:
            headers['Content-Type'] = content_type
        return headers

    def _request(self, url, method='GET', content_type=None, retry_conflicts=True, **kwargs):
        return make_graph_request_with_retry(
            url, self._headers(content_type), method=method,
            max_retries=self.max_retries, timeout=self.timeout,
            retry_conflicts=retry_conflicts, monitor=self.monitor, **kwargs
        )

    def _item_url(self, path, suffix=''):
        """URL of a driveItem addressed by path ('' is the library root)."""
        path = (path or '').replace('\\', '/').strip('/')
        if not path:
            return f"{self.base_url}/drives/{self.drive_id}/root{suffix.replace(':/', '/', 1)}"
        return f"{self.base_url}/drives/{self.drive_id}/root:/{quote(path)}{suffix}"

    # ------------------------------------------------------------------
    # Site and library resolution
    # ------------------------------------------------------------------

    def connect(self):
        """
        Resolve the site and the library drive.

        Raises:
            RemoteConnectionError: Site or library cannot be resolved
        """
        parsed = urlparse(self.site_url)
        if not parsed.netloc:
            raise RemoteConnectionError(f"Invalid site URL: {self.site_url}")

        site_path = parsed.path.rstrip('/')
        if site_path:
            site_lookup_url = f"{self.base_url}/sites/{parsed.netloc}:{site_path}"
        else:
            site_lookup_url = f"{self.base_url}/sites/{parsed.netloc}"

        try:
            site_response = self._request(site_lookup_url)
            if site_response.status_code != 200:
                raise RemoteConnectionError(
                    f"Failed to resolve site {self.site_url}: {site_response.status_code} - {site_response.text[:300]}"
                )
            self.site_id = site_response.json()['id']

            drives_response = self._request(f"{self.base_url}/sites/{self.site_id}/drives")
            if drives_response.status_code != 200:
                raise RemoteConnectionError(
                    f"Failed to list libraries: {drives_response.status_code} - {drives_response.text[:300]}"
                )
            drives = drives_response.json().get('value', [])
        except GraphRequestError as e:
            raise RemoteConnectionError(f"Cannot reach SharePoint site {self.site_url}: {e}") from e

        drive = self._match_drive(drives)
        if drive is None:
            available = ', '.join(sorted(d.get('name', '') for d in drives)) or 'none'
            raise RemoteConnectionError(
                f"Library '{self.library_name}' not found on {self.site_url} (available: {available})"
            )

        self.drive_id = drive['id']
        self.library_display_name = drive.get('name') or self.library_name
        web_url = (drive.get('webUrl') or '').rstrip('/')
        if web_url:
            self.library_internal_name = unquote(web_url.rsplit('/', 1)[-1])
            self.library_url = web_url
        else:
            self.library_internal_name = self.library_display_name
            self.library_url = f"{self.site_url}/{quote(self.library_internal_name)}"

        print(f"[✓] Connected to library '{self.library_display_name}' ({self.library_internal_name})")
        if is_debug_metadata_enabled():
            print(f"[DEBUG] Site ID: {self.site_id}")
            print(f"[DEBUG] Drive ID: {self.drive_id}")
        return self

    def _match_drive(self, drives):
        wanted = self.library_name.strip().lower()
        for drive in drives:
            if (drive.get('name') or '').lower() == wanted:
                return drive
        # Accept the URL name too ('Shared Documents' for 'Documents')
        for drive in drives:
            web_url = (drive.get('webUrl') or '').rstrip('/')
            if web_url and unquote(web_url.rsplit('/', 1)[-1]).lower() == wanted:
                return drive
        return None

    # ------------------------------------------------------------------
    # RemoteStore operations
    # ------------------------------------------------------------------

    def get_file(self, path):
        response = self._request(self._item_url(path))
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise GraphRequestError(
                f"Lookup failed for {path}: {response.status_code} - {response.text[:200]}",
                response.status_code
            )
        item = response.json()
        if 'folder' in item:
            return None
        return item_to_remote_info(item, path.strip('/'))

    def list_folder(self, path):
        url = self._item_url(path, ':/children')
        params = {
            '$select': 'id,name,size,file,folder,fileSystemInfo,lastModifiedDateTime',
            '$top': 999,
        }
        children = []
        while url:
            response = self._request(url, params=params)
            if response.status_code == 404:
                return None
            if response.status_code != 200:
                raise GraphRequestError(
                    f"Listing failed for {path or '/'}: {response.status_code} - {response.text[:200]}",
                    response.status_code
                )
            page = response.json()
            for item in page.get('value', []):
                info = item_to_remote_info(item, path)
                children.append({
                    'name': item.get('name'),
                    'is_folder': 'folder' in item,
                    'size': item.get('size'),
                    'modified_at': info.modified_at,
                    'id': item.get('id'),
                })
            # nextLink already carries the query string
            url = page.get('@odata.nextLink')
            params = None
        return children

    def folder_exists(self, path):
        response = self._request(self._item_url(path))
        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise GraphRequestError(
                f"Folder check failed for {path}: {response.status_code} - {response.text[:200]}",
                response.status_code
            )
        return 'folder' in response.json()

    def create_folder(self, parent_path, name):
        request_body = {
            "name": name,
            "folder": {},
            "@microsoft.graph.conflictBehavior": "fail"
        }
        response = self._request(
            self._item_url(parent_path, ':/children'), method='POST',
            content_type='application/json', json_data=request_body, retry_conflicts=False
        )
        if response.status_code in (200, 201):
            if is_debug_enabled():
                print(f"[DEBUG] Folder created: {parent_path}/{name}".replace('//', '/'))
            return True
        if response.status_code == 409:
            # Created meanwhile by another worker or a previous run
            return False
        raise GraphRequestError(
            f"Folder creation failed for {name}: {response.status_code} - {response.text[:200]}",
            response.status_code
        )

    def upload_file(self, local_path, folder_path, file_name, overwrite=False,
                    modified_at=None, created_at=None):
        folder_path = (folder_path or '').strip('/')
        target = f"{folder_path}/{file_name}" if folder_path else file_name
        file_size = os.path.getsize(local_path)
        file_system_info = build_file_system_info(modified_at, created_at)

        if file_size <= SMALL_FILE_LIMIT:
            item = self._upload_small(local_path, target, overwrite, file_system_info)
        else:
            item = self._upload_with_session(local_path, target, file_size, overwrite, file_system_info)

        if item is None or 'id' not in item:
            info = self.get_file(target)
            if info is None:
                raise UploadError(f"Upload finished but {target} cannot be found")
            return info
        return item_to_remote_info(item, target)

    def _upload_small(self, local_path, target, overwrite, file_system_info):
        """Single PUT upload, then stamp the source timestamps on the new item."""
        behavior = 'replace' if overwrite else 'fail'
        with open(local_path, 'rb') as f:
            file_content = f.read()

        upload_url = f"{self._item_url(target, ':/content')}?@microsoft.graph.conflictBehavior={behavior}"
        if is_debug_enabled():
            print(f"[DEBUG] Uploading to: {upload_url}")
            print(f"[DEBUG] File size: {len(file_content)} bytes")

        response = self._request(upload_url, method='PUT', content_type='application/octet-stream',
                                 data=file_content, retry_conflicts=overwrite)
        if response.status_code == 409 and not overwrite:
            raise RemoteItemExistsError(f"{target} already exists ({_error_code(response) or 'conflict'})")
        if response.status_code not in (200, 201):
            raise GraphRequestError(
                f"Upload failed: {response.status_code} - {response.text[:300]}", response.status_code
            )

        item = response.json()
        if file_system_info:
            item = self._stamp_file_system_info(item, file_system_info, target)
        return item

    def _stamp_file_system_info(self, item, file_system_info, target):
        url = f"{self.base_url}/drives/{self.drive_id}/items/{item['id']}"
        response = self._request(url, method='PATCH', content_type='application/json',
                                 json_data={"fileSystemInfo": file_system_info})
        if response.status_code == 200:
            return response.json()
        # The content is uploaded; the next run will see the service timestamp instead
        print(f"[!] Could not set timestamps on {target}: {response.status_code}")
        if is_debug_metadata_enabled():
            print(f"[DEBUG] {response.text[:300]}")
        return item

    def _upload_with_session(self, local_path, target, file_size, overwrite, file_system_info):
        """
        Upload large files using a resumable upload session.

        Note:
            - Chunk sizes are multiples of 320 KiB (327,680 bytes)
            - Maximum 60 MiB per chunk
            - fileSystemInfo is set when the session is created
        """
        behavior = 'replace' if overwrite else 'fail'
        request_body = {"item": {"@microsoft.graph.conflictBehavior": behavior}}
        if file_system_info:
            request_body["item"]["fileSystemInfo"] = file_system_info

        if is_debug_enabled():
            print(f"[→] Uploading large file with resumable upload: {target} ({file_size:,} bytes)")

        response = self._request(
            self._item_url(target, ':/createUploadSession'), method='POST',
            content_type='application/json', json_data=request_body, retry_conflicts=overwrite
        )
        if response.status_code == 409 and not overwrite:
            raise RemoteItemExistsError(f"{target} already exists ({_error_code(response) or 'conflict'})")
        if response.status_code != 200 or 'uploadUrl' not in response.json():
            raise GraphRequestError(
                f"Session creation failed: {response.status_code} - {response.text[:300]}",
                response.status_code
            )
        upload_url = response.json()['uploadUrl']

        if is_debug_enabled():
            print(f"[DEBUG] Upload session created. Chunk size: {self.chunk_size:,} bytes")

        result = None
        with open(local_path, 'rb') as f:
            offset = 0
            while offset < file_size:
                f.seek(offset)
                chunk_data = f.read(self.chunk_size)
                if not chunk_data:
                    raise UploadError(f"{local_path} shrank during upload at offset {offset}")
                chunk_end = offset + len(chunk_data) - 1
                result = self._upload_chunk(upload_url, chunk_data, offset, chunk_end, file_size,
                                            target, overwrite)
                if 'id' in result:
                    break
                next_offset = _next_expected_offset(result, offset + len(chunk_data))
                if next_offset <= offset:
                    raise GraphRequestError(f"Upload session for {target} stopped advancing at offset {offset}")
                offset = next_offset
                if is_debug_enabled():
                    print(f"Uploaded {offset} bytes from {file_size} bytes ... {offset/file_size*100:.2f}%")
        return result

    def _upload_chunk(self, upload_url, chunk_data, chunk_start, chunk_end, total_size, target, overwrite):
        """
        PUT one byte range of an upload session, retrying transient failures.

        Network errors, 429 and 5xx responses are retried up to max_retries
        times with the same backoff as make_graph_request_with_retry. A 416
        means the service already holds this range, so the session status is
        returned and the caller resumes from its nextExpectedRanges.

        Returns:
            dict: The driveItem once the upload completes, otherwise the
            session status with nextExpectedRanges
        """
        # The upload URL is pre-authenticated: no Authorization header
        headers = {
            'Content-Length': str(len(chunk_data)),
            'Content-Range': f"bytes {chunk_start}-{chunk_end}/{total_size}"
        }
        for attempt in range(self.max_retries + 1):
            try:
                response = requests.put(upload_url, headers=headers, data=chunk_data, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                if attempt < self.max_retries:
                    self._wait_for_chunk_retry(attempt, chunk_start, str(e)[:100])
                    continue
                raise GraphRequestError(
                    f"Chunk upload failed at offset {chunk_start} after {self.max_retries} retries: {str(e)[:200]}"
                ) from e

            if response.status_code == 409 and not overwrite:
                raise RemoteItemExistsError(f"{target} already exists ({_error_code(response) or 'conflict'})")
            if response.status_code == 416:
                return self._upload_session_status(upload_url)
            if response.status_code == 429 or 500 <= response.status_code < 600:
                if attempt < self.max_retries:
                    retry_after = response.headers.get('Retry-After') if response.status_code == 429 else None
                    self._wait_for_chunk_retry(attempt, chunk_start, f"HTTP {response.status_code}", retry_after)
                    continue
            if response.status_code not in (200, 201, 202):
                raise GraphRequestError(
                    f"Chunk upload failed: {response.status_code} - {response.text[:300]}", response.status_code
                )
            # 202 = chunk accepted, 200/201 = upload complete with the driveItem
            return response.json() if response.content else {}

    def _wait_for_chunk_retry(self, attempt, chunk_start, reason, retry_after=None):
        try:
            wait_seconds = int(retry_after) if retry_after else (2 ** attempt) + 1
        except ValueError:
            wait_seconds = (2 ** attempt) + 1
        print(f"[!] Chunk upload error at offset {chunk_start} ({reason}). "
              f"Retrying in {wait_seconds} seconds... ({attempt + 1}/{self.max_retries})")
        _note_retry(self.monitor)
        time.sleep(wait_seconds)

    def _upload_session_status(self, upload_url):
        try:
            response = requests.get(upload_url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise GraphRequestError(f"Upload session status query failed: {str(e)[:200]}") from e
        if response.status_code != 200:
            raise GraphRequestError(
                f"Upload session status query failed: {response.status_code} - {response.text[:300]}",
                response.status_code
            )
        return response.json()


def _next_expected_offset(session_status, default):
    """First byte the upload session still expects, from nextExpectedRanges ('start-end' or 'start-')."""
    ranges = session_status.get('nextExpectedRanges') or []
    if not ranges:
        return default
    try:
        return int(str(ranges[0]).split('-', 1)[0])
    except ValueError:
        return default
