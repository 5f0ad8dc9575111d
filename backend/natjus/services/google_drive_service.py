"""
NatJus Backend — Google Drive Storage Service
===============================================

What:  Storage provider "google_drive". Uploads PDFs into a shared Drive
       folder with a service account, makes them publicly readable, and
       exposes list/delete for administration.
How:   OAuth2 service-account flow done server-side:
         1. Build a JWT assertion (iss=client_email, scope=drive.file,
            aud=token endpoint, 1h expiry) signed RS256 with the account's
            private key (google-auth's RSASigner)
         2. Exchange it at the token endpoint with the JWT bearer grant (httpx)
         3. Cache the access token until shortly before it expires
       Uploads are multipart/related POSTs; a follow-up permission grant
       (anyone/reader) makes the file reachable by its view URL.

Security:
    The private key is read from Settings (env or key file) and never leaves
    this process. Browser clients only ever see the resulting view URL.
"""

import json
import logging
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional

import httpx
from google.auth import crypt, jwt

from natjus.exceptions import ProviderError
from natjus.services.storage_base import FileStore, StoredFile

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
DRIVE_SCOPE = "https://www.googleapis.com/auth/drive.file"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"
FILES_URL = "https://www.googleapis.com/drive/v3/files"
TOKEN_LIFETIME = 3600
# Refresh a little early so a token never expires mid-upload
TOKEN_EXPIRY_MARGIN = 60


def drive_view_url(file_id: str) -> str:
    return f"https://drive.google.com/file/d/{file_id}/view"


class GoogleDriveService(FileStore):
    """
    Drive client bound to one service account and one folder.

    Attributes:
        client_email: Service-account identity (JWT issuer)
        folder_id:    Parent folder for every upload
    """

    provider = "google_drive"

    def __init__(
        self,
        credentials_info: Mapping[str, Any],
        folder_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        client_email = credentials_info.get("client_email")
        private_key = credentials_info.get("private_key")
        if not client_email or not private_key:
            raise ValueError("Service-account credentials need client_email and private_key")
        if not folder_id:
            raise ValueError("A Google Drive folder id is required")

        self.client_email = client_email
        self.folder_id = folder_id
        self._signer = crypt.RSASigner.from_service_account_info(dict(credentials_info))
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    # ── Authentication ────────────────────────────────────────────────────

    def _build_assertion(self, now: Optional[int] = None) -> str:
        issued_at = int(now if now is not None else time.time())
        payload = {
            "iss": self.client_email,
            "scope": DRIVE_SCOPE,
            "aud": TOKEN_URL,
            "exp": issued_at + TOKEN_LIFETIME,
            "iat": issued_at,
        }
        assertion = jwt.encode(self._signer, payload)
        return assertion.decode("utf-8") if isinstance(assertion, bytes) else assertion

    async def authenticate(self) -> str:
        """Exchange a fresh JWT assertion for an access token and cache it."""
        response = await self._http.post(
            TOKEN_URL,
            data={"grant_type": JWT_BEARER_GRANT, "assertion": self._build_assertion()},
        )
        body = self._json_or_raise(response, "autenticação")
        token = body.get("access_token")
        if not token:
            raise ProviderError(
                message="Google OAuth não retornou access_token",
                provider=self.provider,
                status=response.status_code,
            )
        self._access_token = token
        self._token_expires_at = time.time() + int(body.get("expires_in", TOKEN_LIFETIME))
        logger.info("Google Drive authenticated as %s", self.client_email)
        return token

    async def ensure_authenticated(self) -> str:
        if self._access_token and time.time() < self._token_expires_at - TOKEN_EXPIRY_MARGIN:
            return self._access_token
        return await self.authenticate()

    async def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {await self.ensure_authenticated()}"}

    def _json_or_raise(self, response: httpx.Response, action: str) -> Dict[str, Any]:
        if response.is_success:
            return response.json() if response.content else {}
        try:
            detail = response.json().get("error", {})
            message = detail.get("message") if isinstance(detail, dict) else str(detail)
        except ValueError:
            message = response.text
        raise ProviderError(
            message=f"Google Drive API Error ({response.status_code}) em {action}: {message or 'Unknown error'}",
            provider=self.provider,
            status=response.status_code,
        )

    # ── Files ─────────────────────────────────────────────────────────────

    async def upload_file(self, filename: str, content: bytes, mime_type: str) -> StoredFile:
        """
        Multipart upload into the folder, then public-read permission.

        A failed permission grant is logged and tolerated: the file exists,
        only privately.
        """
        boundary = f"natjus-{uuid.uuid4().hex}"
        metadata = json.dumps({"name": filename, "parents": [self.folder_id]})
        body = b"".join([
            f"--{boundary}\r\nContent-Type: application/json; charset=UTF-8\r\n\r\n".encode(),
            metadata.encode("utf-8"),
            f"\r\n--{boundary}\r\nContent-Type: {mime_type}\r\n\r\n".encode(),
            content,
            f"\r\n--{boundary}--".encode(),
        ])
        headers = await self._auth_headers()
        headers["Content-Type"] = f"multipart/related; boundary={boundary}"

        response = await self._http.post(
            UPLOAD_URL,
            params={"uploadType": "multipart", "fields": "id,name,webViewLink"},
            headers=headers,
            content=body,
        )
        file_id = self._json_or_raise(response, "upload")["id"]
        logger.info("Uploaded %s to Google Drive as %s", filename, file_id)

        try:
            await self.make_file_public(file_id)
        except (ProviderError, httpx.HTTPError) as e:
            logger.warning("Could not make Drive file %s public: %s", file_id, e)

        return StoredFile(
            file_url=drive_view_url(file_id),
            storage_provider=self.provider,
            file_id=file_id,
        )

    async def make_file_public(self, file_id: str) -> None:
        response = await self._http.post(
            f"{FILES_URL}/{file_id}/permissions",
            headers=await self._auth_headers(),
            json={"role": "reader", "type": "anyone"},
        )
        self._json_or_raise(response, "permissão")

    async def list_files(self, page_size: int = 10) -> List[Dict[str, Any]]:
        response = await self._http.get(
            FILES_URL,
            headers=await self._auth_headers(),
            params={
                "q": f"'{self.folder_id}' in parents and trashed=false",
                "fields": "files(id,name,createdTime,size,webViewLink)",
                "pageSize": page_size,
            },
        )
        return self._json_or_raise(response, "listagem").get("files", [])

    async def delete_file(self, file_id: str) -> None:
        response = await self._http.delete(
            f"{FILES_URL}/{file_id}", headers=await self._auth_headers()
        )
        self._json_or_raise(response, "exclusão")
        logger.info("Deleted Drive file %s", file_id)

    async def aclose(self) -> None:
        await self._http.aclose()


_drive_services: Dict[tuple, GoogleDriveService] = {}


def get_drive_service(
    credentials_info: Optional[Mapping[str, Any]], folder_id: str
) -> Optional[GoogleDriveService]:
    """
    Shared GoogleDriveService per (account, folder), so the access token is
    reused across queue runs. None when credentials or folder are missing
    or the private key cannot be loaded.
    """
    if not credentials_info or not folder_id:
        return None
    key = (
        credentials_info.get("client_email"),
        credentials_info.get("private_key_id") or hash(credentials_info.get("private_key")),
        folder_id,
    )
    if key not in _drive_services:
        try:
            _drive_services[key] = GoogleDriveService(credentials_info, folder_id)
        except ValueError as e:
            logger.warning("Google Drive service not initialized: %s", e)
            return None
    return _drive_services[key]


async def close_drive_services() -> None:
    """Close every shared Drive client; called from the app shutdown."""
    while _drive_services:
        _, service = _drive_services.popitem()
        await service.aclose()
