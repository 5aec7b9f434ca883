"""Open product forms, each with its own image intake."""
import logging
import threading
import time
import uuid

from seller_dashboard.errors import NotFoundError
from seller_dashboard.services.intake import ImageIntake

logger = logging.getLogger(__name__)


class Draft:
    """One open add or edit form.

    ``version`` is the product version being edited, or None when creating
    a listing; ``initial`` is the snapshot taken when editing began.
    """

    def __init__(self, seller_id, intake, version_id=None, initial=None):
        self.id = uuid.uuid4().hex
        self.seller_id = seller_id
        self.intake = intake
        self.version_id = version_id
        self.initial = initial
        self.lock = threading.Lock()
        self.touched_at = time.monotonic()

    @property
    def is_edit(self):
        return self.version_id is not None

    def touch(self):
        self.touched_at = time.monotonic()

    def close(self):
        self.intake.close()

    def to_dict(self):
        data = self.intake.to_dict()
        data["draft_id"] = self.id
        data["version_id"] = self.version_id
        return data


class DraftRegistry:
    """Process-local store of open drafts.

    Closing a draft (the seller dismissing the form) releases its previews.
    """

    def __init__(self):
        self._drafts = {}
        self._lock = threading.Lock()

    def open(self, seller_id, config, existing_urls=(), version_id=None, initial=None):
        intake = ImageIntake.from_config(config, existing_urls=existing_urls)
        draft = Draft(seller_id, intake, version_id=version_id, initial=initial)
        with self._lock:
            self._drafts[draft.id] = draft
        logger.info("Opened draft %s for seller %s", draft.id, seller_id)
        return draft

    def get(self, draft_id, seller_id):
        with self._lock:
            draft = self._drafts.get(draft_id)
        if draft is None or draft.seller_id != seller_id:
            raise NotFoundError("This form is no longer open.")
        draft.touch()
        return draft

    def close(self, draft_id, seller_id):
        draft = self.get(draft_id, seller_id)
        with self._lock:
            self._drafts.pop(draft_id, None)
        draft.close()
        logger.info("Closed draft %s", draft_id)

    def prune(self, max_idle_seconds):
        """Close drafts untouched for longer than max_idle_seconds."""
        cutoff = time.monotonic() - max_idle_seconds
        with self._lock:
            stale = [d for d in self._drafts.values() if d.touched_at < cutoff]
            for draft in stale:
                self._drafts.pop(draft.id, None)
        for draft in stale:
            draft.close()
        return len(stale)

    def close_all(self):
        with self._lock:
            drafts = list(self._drafts.values())
            self._drafts.clear()
        for draft in drafts:
            draft.close()

    def __len__(self):
        return len(self._drafts)
