import logging
import os

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """
    Byte storage on local disk, keyed by paths relative to ``root``.

    Only relative paths ever leave this class; the absolute location is an
    implementation detail of the deployment.
    """

    def __init__(self, root):
        self.root = os.path.abspath(root)
        os.makedirs(self.root, exist_ok=True)

    def path(self, relative_path):
        full = os.path.abspath(os.path.join(self.root, relative_path))
        if os.path.commonpath([self.root, full]) != self.root:
            raise ValueError(f"Path escapes storage root: {relative_path}")
        return full

    def write(self, relative_path, data):
        full = self.path(relative_path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as fh:
            fh.write(data)
        return relative_path

    def exists(self, relative_path):
        return os.path.isfile(self.path(relative_path))

    def size(self, relative_path):
        return os.path.getsize(self.path(relative_path))

    def delete(self, relative_path):
        """Remove a stored file. Returns False when there was nothing to remove."""
        full = self.path(relative_path)
        try:
            os.remove(full)
        except FileNotFoundError:
            return False
        logger.info("Deleted stored file %s", relative_path)
        return True
