import re
import uuid
from functools import lru_cache

from supabase import Client

from app.core.config import get_settings
from app.core.supabase_client import supabase_storage


def safe_filename(name: str | None) -> str:
    """
    Reduce a client-supplied filename to a safe object-name suffix.

    Example:
        "../My Board (v2).PNG" -> "My-Board-v2-.PNG"
    """
    base = (name or "").replace("\\", "/").rsplit("/", 1)[-1]
    base = re.sub(r"[^A-Za-z0-9._-]+", "-", base).strip(".-")
    return base or "file"


def generate_object_path(review_id: uuid.UUID | str, original_name: str | None) -> str:
    """
    Object path for one review media file.

    Path pattern:
        <review_id>/<uuid4>-<original name>
    """
    return f"{review_id}/{uuid.uuid4()}-{safe_filename(original_name)}"


class MediaStorage:
    """
    Supabase Storage bucket holding review media.

    Wraps the bucket calls used by the review service so they can be
    swapped out in tests.
    """

    def __init__(self, client: Client, bucket: str):
        self.client = client
        self.bucket = bucket

    def upload(self, path: str, file_bytes: bytes, content_type: str) -> str:
        """
        Upload raw bytes and return the public URL.

        Raises:
            Any exception raised by Supabase client if upload fails.
        """
        bucket = self.client.storage.from_(self.bucket)
        bucket.upload(path, file_bytes, {"content-type": content_type})
        return bucket.get_public_url(path)

    def remove(self, paths: list[str]) -> None:
        """
        Delete objects by path. Paths that no longer exist are ignored by
        Supabase, so calling this twice is safe.
        """
        if paths:
            self.client.storage.from_(self.bucket).remove(paths)

    def extract_path_from_public_url(self, url: str) -> str | None:
        """
        Given a public URL, extract the object path relative to the bucket.

        Example:
            https://<proj>.supabase.co/storage/v1/object/public/review-media/<review>/<file>
            -> '<review>/<file>'
        """
        marker = f"/storage/v1/object/public/{self.bucket}/"
        idx = url.find(marker)
        if idx == -1:
            return None
        return url[idx + len(marker) :].split("?", 1)[0]


@lru_cache
def get_media_storage() -> MediaStorage:
    """Process-wide media bucket handle (FastAPI dependency)."""
    return MediaStorage(supabase_storage(), get_settings().REVIEW_MEDIA_BUCKET)
