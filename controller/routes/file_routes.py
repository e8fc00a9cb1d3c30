"""File operation API routes.

Endpoints are synchronous; Starlette runs them in its worker thread pool so
every request gets its own blocking call into the storage engine.
"""

from typing import Iterator, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Response, UploadFile, status
from fastapi.responses import StreamingResponse

from common.logging_config import get_logger
from controller.auth import get_current_user
from controller.config import DECRYPTION_KEY_HEADER, ENCRYPTION_KEY_HEADER
from controller.schemas.files import FileResponse, ListFilesResponse, UpdateFileRequest
from controller.service_locator import get_file_engine
from controller.utils import content_disposition, decode_key_header
from engine.exceptions import AuthenticationError
from engine.streams import PlaintextStream

logger = get_logger(__name__)

router = APIRouter(prefix="/files", tags=["Files"])


def _stream_body(stream: PlaintextStream, file_id: str) -> Iterator[bytes]:
    try:
        for piece in stream:
            yield piece
    except AuthenticationError as e:
        logger.error(f"Download of file {file_id} aborted, stored content failed verification: {e}")
        raise
    finally:
        stream.close()


@router.post("", response_model=FileResponse, status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile = File(...),
    description: str = Form(""),
    encryption_key: Optional[str] = Header(None, alias=ENCRYPTION_KEY_HEADER),
    current_user: str = Depends(get_current_user)
):
    """
    Upload a file, encrypting it when a key is supplied.

    Parameters:
        - file: File to upload (multipart/form-data)
        - description: Optional free-form description
        - X-Encryption-Key header: base64 AES key of 16, 24 or 32 bytes (optional)
        - Authorization header: Bearer <api_key> (required)

    Returns:
        - FileResponse of the stored file; replaced_file_id is set when an
          earlier upload with the same name was replaced

    Raises:
        - 400: Invalid key, invalid name or truncated upload
        - 401: Invalid or missing API Key
        - 500: Storage or metadata failure
        - 507: Storage full
    """
    key = decode_key_header(encryption_key)

    record = get_file_engine().store(
        owner_id=current_user,
        name=file.filename or "",
        stream=file.file,
        content_type=file.content_type or "",
        description=description,
        key=key,
        expected_size=file.size,
    )

    return FileResponse.from_record(record)


@router.get("", response_model=ListFilesResponse)
def list_files(current_user: str = Depends(get_current_user)):
    """
    List the caller's files, newest first.
    """
    records = get_file_engine().list_files(current_user)
    return ListFilesResponse(files=[FileResponse.from_record(r) for r in records])


@router.get("/{file_id}", response_model=FileResponse)
def get_file(file_id: str, current_user: str = Depends(get_current_user)):
    """
    Get metadata of one file.

    Raises:
        - 403: User does not own this file
        - 404: File not found
    """
    return FileResponse.from_record(get_file_engine().get(file_id, current_user))


@router.get("/{file_id}/download")
def download_file(
    file_id: str,
    decryption_key: Optional[str] = Header(None, alias=DECRYPTION_KEY_HEADER),
    current_user: str = Depends(get_current_user)
):
    """
    Download a file by file_id.

    Parameters:
        - file_id: UUID of file to download
        - X-Decryption-Key header: base64 AES key, required for encrypted files
        - Authorization header: Bearer <api_key> (required)

    Returns:
        - StreamingResponse with the plaintext

    Raises:
        - 400: Key missing for an encrypted file, or key of invalid length
        - 401: Invalid API Key, wrong decryption key or corrupted content
        - 403: User does not own this file
        - 404: File not found
        - 500: Stored content unavailable
    """
    key = decode_key_header(decryption_key)

    stream, record = get_file_engine().retrieve(file_id, current_user, key)

    return StreamingResponse(
        _stream_body(stream, file_id),
        media_type=record.content_type or "application/octet-stream",
        headers={
            "Content-Disposition": content_disposition(record.name),
            "Content-Length": str(record.size),
        }
    )


@router.put("/{file_id}", response_model=FileResponse)
def update_file(
    file_id: str,
    request: UpdateFileRequest,
    current_user: str = Depends(get_current_user)
):
    """
    Update name, content type or description of a file.

    Renaming moves the stored content.

    Raises:
        - 400: Invalid name
        - 403: User does not own this file
        - 404: File not found
        - 409: Another file already has the new name
    """
    record = get_file_engine().update(file_id, current_user, request.to_patch())
    return FileResponse.from_record(record)


@router.delete("/{file_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(file_id: str, current_user: str = Depends(get_current_user)):
    """
    Delete a file.

    Raises:
        - 403: User does not own this file
        - 404: File not found
    """
    get_file_engine().delete(file_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
