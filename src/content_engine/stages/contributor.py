"""Selecting contributor: explicit id, then content-type match, then tenant default."""

from __future__ import annotations

import logging

from content_engine.errors import ConfigurationError, NotFoundError
from content_engine.models import Contributor, GenerateRequest
from content_engine.store import JsonStore

logger = logging.getLogger(__name__)


class ContributorSelector:
    def __init__(self, store: JsonStore) -> None:
        self._store = store

    def run(self, request: GenerateRequest) -> Contributor:
        if request.contributor_id:
            try:
                contributor = self._store.get_contributor(request.contributor_id)
            except NotFoundError:
                raise ConfigurationError(
                    f"Contributor {request.contributor_id} not found"
                ) from None
            if contributor.tenant_id != request.tenant_id:
                raise ConfigurationError(f"Contributor {request.contributor_id} not found")
            return contributor

        contributors = self._store.list_contributors(request.tenant_id)
        for contributor in contributors:
            if contributor.is_active and request.content_type in contributor.content_types:
                logger.info(
                    "Selected contributor %s for content type %s",
                    contributor.name,
                    request.content_type,
                )
                return contributor

        for contributor in contributors:
            if contributor.is_default:
                logger.info("Falling back to default contributor %s", contributor.name)
                return contributor

        raise ConfigurationError("No contributor available")
