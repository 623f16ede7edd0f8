import importlib.util
import sys

import pytest

from core.cache.service import ParameterCache
from core.config import CacheSettings
from core.fingerprint import clear_fingerprint_cache

PRODUCER_SOURCE = '''
from core.behavior.engine import EngineBehavior

__version__ = "{version}"


class JetEngine(EngineBehavior):
    fit_calls = 0

    def fit_parameters(self):
        type(self).fit_calls += 1
        return {{"areaRatio": 0.42, "tprCurve": [0.98, 0.95, 0.9], "build": {build}}}


class RocketEngine(EngineBehavior):
    def fit_parameters(self):
        return {{"chamberPressure": 5.5e6, "build": {build}}}
'''

@pytest.fixture(autouse=True)
def fresh_fingerprints():
    clear_fingerprint_cache()
    yield
    clear_fingerprint_cache()

@pytest.fixture
def settings(tmp_path):
    return CacheSettings(root_dir=tmp_path / "gamedata")

@pytest.fixture
def cache(settings):
    cache = ParameterCache(settings).open()
    yield cache

@pytest.fixture
def load_producer(tmp_path, monkeypatch):
    """
    Write a producer module to disk and import it.

    Loading again under the same name replaces the module, which is how a
    producer upgrade or rebuild looks to engines created from it.
    """
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    loaded = []

    def _load(version="1.4.0", build=1, name="jet_producer"):
        path = tmp_path / f"{name}.py"
        path.write_text(PRODUCER_SOURCE.format(version=version, build=build))
        spec = importlib.util.spec_from_file_location(name, path)
        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        spec.loader.exec_module(module)
        loaded.append(name)
        clear_fingerprint_cache()
        return module

    yield _load
    for name in loaded:
        sys.modules.pop(name, None)

@pytest.fixture
def dummy_logger(caplog):
    caplog.set_level("DEBUG", logger="fitcache")
    return caplog
