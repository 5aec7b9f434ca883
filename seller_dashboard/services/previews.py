"""Preview handles for images that live only for the duration of a form."""
import logging
import os
import tempfile

logger = logging.getLogger(__name__)


class PreviewHandle:
    """Exclusive reference to a temporary preview file.

    The record that creates a handle owns it and must release it when the
    record is removed or replaced. ``release`` is idempotent.
    """

    def __init__(self, data, suffix=".jpg"):
        fd, self.path = tempfile.mkstemp(prefix="preview-", suffix=suffix)
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        self.released = False

    @property
    def token(self):
        return os.path.basename(self.path)

    def read(self):
        if self.released:
            raise ValueError("Preview has been released")
        with open(self.path, "rb") as fh:
            return fh.read()

    def release(self):
        if self.released:
            return
        self.released = True
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            logger.debug("Preview %s already gone", self.path)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self):
        state = "released" if self.released else "live"
        return f"<PreviewHandle {self.token} [{state}]>"
