"""
Object Storage
Stores uploaded blobs (avatars, item images) under the upload folder
and serves them through the static URL prefix
"""

import os
import logging
from werkzeug.utils import secure_filename

from stockroom.errors import ValidationError

logger = logging.getLogger(__name__)


class LocalObjectStorage:
    """Bucket/path object storage backed by the local filesystem"""

    def __init__(self, root, url_prefix='/static/uploads'):
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix.rstrip('/')

    def _safe_parts(self, bucket, path):
        parts = [secure_filename(bucket)]
        parts.extend(secure_filename(part) for part in str(path).split('/') if part)
        if not all(parts) or len(parts) < 2:
            raise ValidationError(f"Invalid storage path: {bucket}/{path}")
        return parts

    def _full_path(self, bucket, path):
        full_path = os.path.abspath(os.path.join(self.root, *self._safe_parts(bucket, path)))
        if not full_path.startswith(self.root + os.sep):
            raise ValidationError(f"Invalid storage path: {bucket}/{path}")
        return full_path

    def upload(self, bucket, path, blob):
        """
        Write a blob to bucket/path, replacing any existing object

        Args:
            bucket: Bucket name (e.g. 'avatars')
            path: Object path inside the bucket
            blob: bytes or a readable file-like object

        Returns:
            The normalized object path inside the bucket
        """
        full_path = self._full_path(bucket, path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)

        data = blob.read() if hasattr(blob, 'read') else blob
        with open(full_path, 'wb') as f:
            f.write(data)

        logger.info(f"Stored object {bucket}/{path} ({len(data)} bytes)")
        return '/'.join(self._safe_parts(bucket, path)[1:])

    def public_url(self, bucket, path):
        return f"{self.url_prefix}/{'/'.join(self._safe_parts(bucket, path))}"

    def exists(self, bucket, path):
        return os.path.exists(self._full_path(bucket, path))
