"""Image caching agent.

Public images are cached by image id; the account's own images are
cached by name so they can be looked up by what users call them.
"""

from __future__ import annotations

import logging

from relcache.agents.base import CachingAgent
from relcache.agents.merge import CacheResultBuilder
from relcache.cache.result import Authority, CacheResult
from relcache.errors import InvalidKeyError
from relcache.keys import Namespace, image_key, named_image_key
from relcache.providers.base import ImageFetcher

logger = logging.getLogger(__name__)

IMAGES = Namespace.IMAGES.ns
NAMED_IMAGES = Namespace.NAMED_IMAGES.ns

SELF_OWNER = "self"


class ImageCachingAgent(CachingAgent):
    provided_data_types = (
        Authority.AUTHORITATIVE.for_type(IMAGES),
        Authority.AUTHORITATIVE.for_type(NAMED_IMAGES),
    )

    def __init__(self, fetcher: ImageFetcher, account: str, region: str, public_owner: str = "amazon"):
        super().__init__(account, region)
        self.fetcher = fetcher
        self.public_owner = public_owner

    def load_data(self) -> CacheResult:
        builder = CacheResultBuilder()

        for image in self.fetcher.iter_images(self.public_owner):
            try:
                key = image_key(image.get("imageId"), self.account, self.region)
            except InvalidKeyError as e:
                logger.warning("%s: skipping image record: %s", self.agent_type, e)
                continue
            builder.merge(IMAGES, key, image)

        for image in self.fetcher.iter_images(SELF_OWNER):
            try:
                key = named_image_key(self.account, image.get("imageName"))
            except InvalidKeyError as e:
                logger.debug("%s: unnamed image %s not cached by name: %s", self.agent_type, image.get("imageId"), e)
                continue
            builder.merge(NAMED_IMAGES, key, image)

        result = builder.build(self.provided_data_types)
        logger.info("%s: cached %s", self.agent_type, result.counts())
        return result
