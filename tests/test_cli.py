import json
import argparse

import pytest
from rdflib import Graph

from tabularld.__main__ import tabular2json, tabular2rdf, tabularvalidate


def run(func, **kw):
    return func(argparse.Namespace(**kw), test=True)


@pytest.fixture
def csvname(tree_ops):
    return str(tree_ops)


@pytest.fixture
def mdname(tree_ops_md):
    return str(tree_ops_md)


def test_tabular2json(csvname, mdname, capsys):
    assert run(tabular2json, url=csvname, metadata=None, minimal=False, noprov=True, atd=False) == 0
    out, _ = capsys.readouterr()
    res = json.loads(out)
    assert res['row'][0]['on_street'] == 'ADDISON AV'
    assert 'describedBy' not in res

    run(tabular2json, url=mdname, metadata=None, minimal=False, noprov=False, atd=False)
    out, _ = capsys.readouterr()
    assert json.loads(out)['describedBy'].endswith('tree-ops.csv-metadata.json')

    run(tabular2json, url=mdname, metadata=None, minimal=False, noprov=False, atd=True)
    out, _ = capsys.readouterr()
    assert json.loads(out)['@type'] == 'AnnotatedTable'


def test_tabular2json_user_metadata(csvname, tmp_path, capsys):
    md = tmp_path / 'md.json'
    md.write_text(json.dumps({
        'url': csvname,
        'tableSchema': {'columns': [{'name': 'gid', 'datatype': 'integer'}]}}), encoding='utf8')
    run(tabular2json, url=csvname, metadata=str(md), minimal=False, noprov=True, atd=False)
    out, _ = capsys.readouterr()
    assert json.loads(out)['row'][0]['gid'] == 1


@pytest.mark.parametrize('fmt', ['turtle', 'nt', 'json-ld'])
def test_tabular2rdf(mdname, capsys, fmt):
    assert run(tabular2rdf, url=mdname, metadata=None, minimal=True, noprov=False, format=fmt) == 0
    out, _ = capsys.readouterr()
    g = Graph()
    g.parse(data=out, format=fmt)
    assert len(g) == 15


def test_tabularvalidate(csvname, tree_ops_ext, tmp_path, capsys):
    assert run(tabularvalidate, url=csvname, verbose=False) == 0
    out, _ = capsys.readouterr()
    assert 'OK' in out

    assert run(tabularvalidate, url=str(tree_ops_ext), verbose=True) == 1
    out, _ = capsys.readouterr()
    assert 'FAIL' in out
    assert '3x is not a valid integer' in out

    md = tmp_path / 'md.json'
    md.write_text(json.dumps({'@type': 'Table', 'url': 'missing.csv'}), encoding='utf8')
    assert run(tabularvalidate, url=str(md), verbose=True) == 2
    out, _ = capsys.readouterr()
    assert 'FAIL' in out
