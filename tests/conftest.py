import pytest

from hts_classifier import config
from hts_classifier.catalog_build import load_catalog


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()


@pytest.fixture(autouse=True)
def no_collaborators(monkeypatch):
    # Tests never reach real services; individual tests opt back in.
    for name in (
        "SEMANTIC_MATCHER_URL",
        "REGISTRY_LOOKUP_URL",
        "IMAGE_ANALYZER_URL",
        "PREDICTION_STORE_URL",
    ):
        monkeypatch.setattr(config, name, "")
