"""Image search by id or name prefix."""

from __future__ import annotations

from typing import List, Optional

from relcache.cache.attributes import ImageAttributes
from relcache.cache.store import CacheStore
from relcache.constants import KEY_WILDCARD
from relcache.keys import Namespace, search_pattern
from relcache.views.common import parse_attributes
from relcache.views.model import ImageResult

IMAGES = Namespace.IMAGES.ns
NAMED_IMAGES = Namespace.NAMED_IMAGES.ns


class ImageSearchProvider:
    def __init__(self, store: CacheStore):
        self.store = store

    def find(self, q: str, account: Optional[str] = None, region: Optional[str] = None) -> List[ImageResult]:
        """Images whose id or name starts with ``q``.

        ``*`` inside ``q`` is a wildcard. Named images are account-scoped
        only, so ``region`` does not narrow them.
        """
        glob = (q or "") + KEY_WILDCARD
        image_ids = self.store.filter_identifiers(IMAGES, search_pattern(IMAGES, account, region, glob))
        named_ids = self.store.filter_identifiers(NAMED_IMAGES, search_pattern(NAMED_IMAGES, account, glob))

        entities = self.store.get_all(IMAGES, sorted(image_ids)) + self.store.get_all(
            NAMED_IMAGES, sorted(named_ids)
        )
        results = []
        for e in entities:
            attrs = parse_attributes(ImageAttributes, e)
            if attrs is not None:
                results.append(ImageResult(attrs.imageName, e.attributes))
        return results
