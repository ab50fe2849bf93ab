"""
Image handler for downloading WhatsApp complaint images and storing them in
a shared Google Drive folder.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from complaints_bot.config.settings import get_settings

logger = logging.getLogger(__name__)

DRIVE_SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
    "https://www.googleapis.com/auth/drive.metadata",
]
DRIVE_API_URL = "https://www.googleapis.com/drive/v3/files"
DRIVE_UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"

_credentials: Optional[service_account.Credentials] = None


def get_drive_token() -> str:
    """Get a valid OAuth access token for the Drive API."""
    global _credentials

    if _credentials is None:
        info = get_settings().service_account_info
        if not info:
            raise RuntimeError("Google service account credentials are not configured")
        _credentials = service_account.Credentials.from_service_account_info(info, scopes=DRIVE_SCOPES)

    if not _credentials.valid:
        _credentials.refresh(GoogleAuthRequest())

    return _credentials.token


def get_extension_from_content_type(content_type: str) -> str:
    """
    Get file extension from an image MIME type.

    Args:
        content_type: MIME type string

    Returns:
        File extension (without dot)
    """
    content_type_map = {
        "image/jpeg": "jpg",
        "image/jpg": "jpg",
        "image/png": "png",
        "image/webp": "webp",
        "image/gif": "gif",
        "image/heic": "heic",
    }
    return content_type_map.get(content_type.split(";")[0].strip().lower(), "jpg")


async def download_image(client: httpx.AsyncClient, image_url: str) -> Tuple[bytes, str]:
    """
    Download an image, resolving Meta media references first.

    Args:
        client: HTTP client
        image_url: Direct image URL or Meta Graph media URL

    Returns:
        Tuple of (image bytes, content type)
    """
    settings = get_settings()
    headers = {}
    if settings.meta_access_token:
        headers["Authorization"] = f"Bearer {settings.meta_access_token}"

    if image_url.startswith("https://graph.facebook.com/"):
        # Graph media endpoints return metadata with the actual download URL
        response = await client.get(image_url, headers=headers)
        response.raise_for_status()
        image_url = response.json()["url"]

    logger.info(f"Downloading image from: {image_url}")
    response = await client.get(image_url, headers=headers, follow_redirects=True)
    response.raise_for_status()

    content_type = response.headers.get("content-type", "image/jpeg")
    logger.info(f"Downloaded image ({len(response.content)} bytes, type: {content_type})")
    return response.content, content_type


async def upload_image_to_drive(image_url: str, sender: str, event_time: str = "") -> Optional[str]:
    """
    Copy a complaint image into the shared Drive folder.

    Args:
        image_url: Source image URL
        sender: Sender phone number, used in the file name
        event_time: Human-readable event time for the file description

    Returns:
        Shareable Drive link, or None if anything failed
    """
    settings = get_settings()
    folder_id = settings.google_drive_folder_id
    if not folder_id:
        logger.warning("GOOGLE_DRIVE_FOLDER_ID not configured, skipping Drive upload")
        return None

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            image_bytes, content_type = await download_image(client, image_url)

            token = get_drive_token()
            auth_headers = {"Authorization": f"Bearer {token}"}

            stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
            extension = get_extension_from_content_type(content_type)
            filename = f"complaint_{sender or 'unknown'}_{stamp}.{extension}"

            upload = await client.post(
                DRIVE_UPLOAD_URL,
                params={"uploadType": "media", "supportsAllDrives": "true"},
                headers={**auth_headers, "Content-Type": content_type},
                content=image_bytes,
            )
            upload.raise_for_status()
            file_id = upload.json()["id"]

            metadata = await client.patch(
                f"{DRIVE_API_URL}/{file_id}",
                params={"addParents": folder_id, "supportsAllDrives": "true"},
                headers=auth_headers,
                json={
                    "name": filename,
                    "description": f"WhatsApp complaint image from {sender or 'unknown'} at {event_time or stamp}",
                },
            )
            metadata.raise_for_status()

            permission = await client.post(
                f"{DRIVE_API_URL}/{file_id}/permissions",
                params={"supportsAllDrives": "true"},
                headers=auth_headers,
                json={"role": "reader", "type": "anyone"},
            )
            if permission.status_code >= 400:
                # Shared folders may enforce their own sharing policy
                logger.warning(f"Could not set public permissions: {permission.status_code}")

        link = f"https://drive.google.com/file/d/{file_id}/view?usp=sharing"
        logger.info(f"Image uploaded to Drive: {link}")
        return link

    except httpx.HTTPStatusError as e:
        logger.error(f"Drive upload failed with status {e.response.status_code}: {e}")
        return None
    except Exception as e:
        logger.exception(f"Error uploading image to Drive: {e}")
        return None
