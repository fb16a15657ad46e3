"""Builds ClassificationContext objects from folder address caches and settings."""

from __future__ import annotations

import logging
from datetime import date

from .cache import AddressCache, unique
from .config import Settings
from .models import ClassificationContext

logger = logging.getLogger(__name__)


class ContextBuilder:
    """Collects rule data for a run.

    Folders that do not exist on the server contribute nothing; errors from
    folders that do exist propagate.
    """

    def __init__(
        self,
        cache: AddressCache,
        settings: Settings,
        existing_folders: list[str],
        sent_folder: str | None = None,
        today: date | None = None,
    ) -> None:
        self.cache = cache
        self.settings = settings
        self.existing_folders = set(existing_folders)
        self.sent_folder = sent_folder
        self.today = today

    def _exists(self, folder: str | None) -> bool:
        if not folder:
            return False
        if folder not in self.existing_folders:
            logger.debug("Skipping missing folder %s", folder)
            return False
        return True

    def allowed_addresses(self) -> list[str]:
        """Senders found in allow folders plus recipients of sent mail."""
        addresses: list[str] = []
        for folder in self.settings.whitelist_folders:
            if self._exists(folder):
                addresses.extend(self.cache.addresses_for(folder, "from"))

        if self._exists(self.sent_folder):
            addresses.extend(
                self.cache.addresses_for(
                    self.sent_folder, "to", since=self.settings.sent_since(self.today)
                )
            )
        return unique(addresses)

    def sender_destinations(self, folders: list[str]) -> dict[str, str]:
        """Map each sender to the first of ``folders`` it was seen in."""
        destinations: dict[str, str] = {}
        since = self.settings.sender_map_since(self.today)
        for folder in folders:
            if not self._exists(folder):
                continue
            logger.debug("Adding addresses from %s", folder)
            for address in self.cache.addresses_for(folder, "from", since=since):
                destinations.setdefault(address, folder)
        return destinations

    def list_domain_destinations(self, restrict_to: list[str] | None = None) -> dict[str, str]:
        domain_map = dict(self.settings.list_domain_map)
        if restrict_to is None:
            return domain_map
        allowed = set(restrict_to)
        return {domain: folder for domain, folder in domain_map.items() if folder in allowed}

    def for_incoming(self) -> ClassificationContext:
        """Context for triaging new inbox mail."""
        logger.info("Building allow list...")
        allowed = self.allowed_addresses()
        logger.info("Found %d allowed addresses", len(allowed))

        return ClassificationContext.create(
            allowed_addresses=allowed,
            allowed_domains=self.settings.whitelisted_domains,
            list_domains=self.settings.list_domains,
            list_domain_destinations=self.list_domain_destinations(),
            default_list_folder=self.settings.list_folder,
        )

    def for_filing(self) -> ClassificationContext:
        """Context for re-filing existing mail (also used for unjunking)."""
        folders = self.settings.filing_folders
        logger.info("Building sender maps...")
        senders = self.sender_destinations(folders)
        logger.info("Found %d known senders across %d folders", len(senders), len(folders))

        return ClassificationContext.create(
            allowed_domains=self.settings.whitelisted_domains,
            list_domains=self.settings.list_domains,
            list_domain_destinations=self.list_domain_destinations(restrict_to=folders),
            sender_destinations=senders,
            default_list_folder=self.settings.list_folder,
        )
