import os
import shutil
import sys

import pytest

# Add the parent directory to the path to import cloudcost modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from cloudcost.engine.catalog import PriceCatalog
from cloudcost.settings import settings


@pytest.fixture(scope="session")
def catalog():
    """Price catalog loaded from the bundled pricing files."""
    return PriceCatalog.load()


@pytest.fixture
def pricing_dir(tmp_path):
    """Writable copy of the bundled pricing directory."""
    target = tmp_path / "pricing"
    shutil.copytree(settings.PRICING_DIR, target)
    return str(target)
