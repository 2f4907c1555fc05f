import shutil
import logging
import pathlib

import pytest

from tabularld import utils

FIXTURES = pathlib.Path(__file__).parent / 'fixtures'


@pytest.fixture
def fixtures():
    return FIXTURES


@pytest.fixture
def tree_ops():
    return FIXTURES / 'tree-ops.csv'


@pytest.fixture
def tree_ops_md():
    return FIXTURES / 'tree-ops.csv-metadata.json'


@pytest.fixture
def tree_ops_ext():
    return FIXTURES / 'tree-ops-ext.json'


@pytest.fixture
def countries():
    return FIXTURES / 'countries.json'


@pytest.fixture
def tmp_fixtures(tmp_path):
    """
    A copy of the fixtures directory, so that tests can add or remove metadata files.
    """
    d = tmp_path / 'fixtures'
    shutil.copytree(str(FIXTURES), str(d))
    return d


@pytest.fixture
def location():
    return utils.location_uri


@pytest.fixture
def log():
    return logging.getLogger('tabularld-test')
