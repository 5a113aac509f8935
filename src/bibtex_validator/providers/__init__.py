"""Metadata providers and their registry."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bibtex_validator.providers.arxiv import ArxivProvider
from bibtex_validator.providers.base import Provider
from bibtex_validator.providers.crossref import CrossrefProvider
from bibtex_validator.providers.dblp import DBLPProvider
from bibtex_validator.providers.openalex import OpenAlexProvider
from bibtex_validator.providers.semanticscholar import SemanticScholarProvider
from bibtex_validator.providers.zenodo import ZenodoProvider
from bibtex_validator.utils import HttpClient

if TYPE_CHECKING:
    from bibtex_validator.config import ValidatorConfig

PROVIDER_CLASSES: dict[str, type[Provider]] = {
    CrossrefProvider.name: CrossrefProvider,
    DBLPProvider.name: DBLPProvider,
    ArxivProvider.name: ArxivProvider,
    SemanticScholarProvider.name: SemanticScholarProvider,
    OpenAlexProvider.name: OpenAlexProvider,
    ZenodoProvider.name: ZenodoProvider,
}

DEFAULT_PROVIDER_ORDER: tuple[str, ...] = tuple(PROVIDER_CLASSES)


def build_providers(
    config: ValidatorConfig, http: HttpClient, logger: logging.Logger | None = None
) -> dict[str, Provider]:
    """Instantiate every registered provider, in default order.

    Enabled and disabled providers are both built; the engine decides which
    ones are called.
    """
    providers: dict[str, Provider] = {}
    for name in DEFAULT_PROVIDER_ORDER:
        cls = PROVIDER_CLASSES[name]
        if cls is OpenAlexProvider:
            providers[name] = cls(http, max_results=config.max_results, logger=logger, mailto=config.mailto)
        else:
            providers[name] = cls(http, max_results=config.max_results, logger=logger)
    return providers


__all__ = [
    "DEFAULT_PROVIDER_ORDER",
    "PROVIDER_CLASSES",
    "ArxivProvider",
    "CrossrefProvider",
    "DBLPProvider",
    "OpenAlexProvider",
    "Provider",
    "SemanticScholarProvider",
    "ZenodoProvider",
    "build_providers",
]
