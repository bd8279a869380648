import pytest

from lmd_grades.config import get_settings
from lmd_grades.models import ModuleDefinition


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_module():
    def _make(name="Analyse 1", components=("TD", "Examen"), coefficient=1, credits=0, threshold=None, semester=""):
        return ModuleDefinition(
            name=name,
            coefficient=coefficient,
            credits=credits,
            evaluation_components=frozenset(components),
            elimination_threshold=threshold,
            semester=semester,
        )

    return _make
