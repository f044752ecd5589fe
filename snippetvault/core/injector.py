"""Read-side selection: which stored items apply to a request.

The injector reads current state and asks the rule engine once per stored
item. It decides what to emit and in which order; rendering markup is the
caller's job.
"""

from __future__ import annotations

import logging

from snippetvault.core.file_store import ManagedFileStore
from snippetvault.core.location_store import LocationConfigStore
from snippetvault.core.rule_engine import RuleEngine
from snippetvault.models.context import RequestContext
from snippetvault.models.location import InjectionPlan

logger = logging.getLogger(__name__)


class Injector:
    def __init__(
        self,
        location_store: LocationConfigStore,
        file_store: ManagedFileStore,
        rule_engine: RuleEngine,
    ) -> None:
        self._locations = location_store
        self._files = file_store
        self._engine = rule_engine

    def select(self, location: str, context: RequestContext) -> InjectionPlan:
        """Return the items at *location* whose rule sets apply to *context*.

        Linked URLs come first in stored order, then managed files in
        creation order, then the inline content block.
        """
        config = self._locations.get(location)
        urls = [
            item.url for item in config.linked_items
            if self._engine.evaluate(item.rule_set, context)
        ]
        files = [
            file for file in self._files.list()
            if file.location == location and self._engine.evaluate(file.rule_set, context)
        ]
        content = None
        if config.content.strip() and self._engine.evaluate(config.rule_set, context):
            content = config.content
        plan = InjectionPlan(location=location, content=content, urls=urls, files=files)
        logger.debug(
            "Selected for %s: content=%s urls=%d files=%d",
            location, content is not None, len(urls), len(files),
        )
        return plan
