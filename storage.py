# migrant-health-be/storage.py
import os
import shutil
import time

from fastapi import UploadFile

from utils import UPLOAD_DIR, PUBLIC_BASE_URL


def save_upload(upload: UploadFile) -> dict:
    """Write an uploaded file under UPLOAD_DIR as ``<epochMillis>-<name>``."""
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    original_name = os.path.basename(upload.filename or "upload")
    stored_name = f"{int(time.time() * 1000)}-{original_name}"
    path = os.path.join(UPLOAD_DIR, stored_name)
    with open(path, "wb") as out:
        shutil.copyfileobj(upload.file, out)
    return {
        "filename": original_name,
        "stored_name": stored_name,
        "file_type": upload.content_type,
        "file_url": f"{PUBLIC_BASE_URL}/uploads/{stored_name}",
        "file_size": os.path.getsize(path),
    }
