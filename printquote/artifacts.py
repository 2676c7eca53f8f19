"""
Keeps each quote's generated document in step with its inputs.

A quote's artifact must always be the render of the *current* quote fields
and the *current* company profile. Refresh triggers:
- quote created
- quote fields changed
- company profile changed (every quote is refreshed)

Rendering always runs; the stored {uri, file_name, generated_at} is only
replaced when uri or file_name differ from what is stored. The superseded
document is then deleted so each quote keeps exactly one file.
"""

import logging
from datetime import datetime

from .errors import RenderingError, TransientStorageError

logger = logging.getLogger(__name__)


class ArtifactCache:

    def __init__(self, renderer, repository):
        self.renderer = renderer
        self.repository = repository

    def refresh(self, quote, company) -> bool:
        """
        Re-render one quote. Returns True when the stored artifact changed.
        Rendering and storage failures are logged and leave the stored
        artifact untouched; the quote write that triggered them still stands.
        """
        try:
            document = self.renderer.render(quote, company)
        except RenderingError as e:
            logger.warning("Artifact for quote %s left stale: %s", quote.code, e)
            return False

        previous_uri = quote.artifact_uri
        if (document.uri, document.file_name) == (previous_uri, quote.artifact_file_name):
            return False

        try:
            self.repository.save_artifact(quote, document.uri, document.file_name, datetime.utcnow())
        except TransientStorageError as e:
            logger.warning("Artifact for quote %s not saved: %s", quote.code, e)
            self._discard(document.uri)
            return False

        logger.info("Artifact for quote %s updated: %s", quote.code, document.file_name)
        if previous_uri and previous_uri != document.uri:
            self._discard(previous_uri)
        return True

    def _discard(self, uri):
        try:
            self.renderer.discard(uri)
        except OSError as e:
            logger.warning("Could not delete superseded document %s: %s", uri, e)

    def on_quote_created(self, quote) -> bool:
        return self.refresh(quote, self.repository.get_company_profile())

    def on_quote_updated(self, quote) -> bool:
        return self.refresh(quote, self.repository.get_company_profile())

    def on_company_profile_updated(self, company) -> int:
        """Refresh every stored quote. Returns how many artifacts changed."""
        changed = 0
        for quote in self.repository.list_quotes():
            if self.refresh(quote, company):
                changed += 1
        logger.info("Company profile changed: %d quote artifact(s) regenerated", changed)
        return changed
