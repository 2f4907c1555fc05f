import io
import csv

import pytest
import requests

from tabularld.dsv import iterrows, UnicodeReader, formatting_parameters, normalize_encoding
from tabularld.metadata import Dialect

ROWS = [['first', 'line'], ['sücond', 'läneß']]


def test_iterrows():
    lines = [','.join(r) for r in ROWS]
    assert list(iterrows(lines)) == ROWS
    assert list(iterrows('\n'.join(lines))) == ROWS

    lines = ['\t'.join(r) for r in ROWS]
    assert list(iterrows(lines, dialect=Dialect({'delimiter': '\t'}))) == ROWS
    assert list(iterrows(lines, delimiter='\t')) == ROWS

    for lt in ['\n', '\r\n', '\r']:
        fp = io.StringIO(lt.join(lines), newline='')
        assert list(iterrows(fp, delimiter='\t')) == ROWS

    assert list(iterrows(ROWS)) == ROWS
    assert list(iterrows([])) == []


def test_iterrows_path(tmp_path):
    p = tmp_path / 'test.csv'
    p.write_bytes(b'\xef\xbb\xbfa,b\n1,2\n')
    assert list(iterrows(p)) == [['a', 'b'], ['1', '2']]
    assert list(iterrows(str(p))) == [['a', 'b'], ['1', '2']]
    assert list(iterrows(p.as_uri())) == [['a', 'b'], ['1', '2']]

    p.write_bytes('ä,b\n'.encode('latin1'))
    assert list(iterrows(p, dialect=Dialect({'encoding': 'latin1'}))) == [['ä', 'b']]


def test_iterrows_file_like():
    f = io.BytesIO('ä,b\n1,2'.encode('utf8'))
    assert list(iterrows(f)) == [['ä', 'b'], ['1', '2']]
    # The source is rewound, so it can be read again.
    assert len(list(iterrows(f))) == 2


def test_iterrows_url(requests_mock):
    requests_mock.get('http://example.org/a.csv', content='a;b\n1;2'.encode('utf8'))
    assert list(iterrows(
        'http://example.org/a.csv', dialect=Dialect({'delimiter': ';'}))) == [['a', 'b'], ['1', '2']]

    requests_mock.get('http://example.org/b.csv', status_code=404)
    with pytest.raises(requests.HTTPError):
        list(iterrows('http://example.org/b.csv'))


@pytest.mark.parametrize(
    'dialect,line,row',
    [
        ({}, '"a""b",c', ['a"b', 'c']),
        ({'doubleQuote': False}, '"a\\"b",c', ['a"b', 'c']),
        ({'quoteChar': None}, '"a",b', ['"a"', 'b']),
        ({'quoteChar': "'"}, "'a,b',c", ['a,b', 'c']),
        ({'skipInitialSpace': True}, 'a, b', ['a', 'b']),
        ({}, 'a, b', ['a', ' b']),
        ({'delimiter': '|'}, 'a|b,c', ['a', 'b,c']),
    ]
)
def test_dialect(dialect, line, row):
    assert list(iterrows([line], dialect=Dialect(dialect))) == [row]


def test_formatting_parameters():
    params = formatting_parameters(Dialect({'delimiter': ';', 'lineTerminator': '\r\n'}))
    assert params['delimiter'] == ';'
    assert params['lineterminator'] == '\r\n'
    assert params['quotechar'] == '"'
    assert params['escapechar'] is None

    params = formatting_parameters(Dialect({'quoteChar': None, 'doubleQuote': False}))
    assert params['quoting'] == csv.QUOTE_NONE
    assert params['escapechar'] == '\\'
    assert 'lineterminator' not in params


def test_normalize_encoding():
    assert normalize_encoding('UTF-8-BOM') == 'utf-8-sig'
    assert normalize_encoding('latin1') == 'iso8859-1'
    with pytest.raises(LookupError):
        normalize_encoding('no-such-encoding')


def test_UnicodeReader(tmp_path):
    p = tmp_path / 'test.csv'
    p.write_text('a,b\n', encoding='utf8')
    with UnicodeReader(p) as reader:
        assert next(reader) == ['a', 'b']
        f = reader.f
    assert f.closed

    with UnicodeReader(['a,b'], encoding='utf-8') as reader:
        assert list(reader) == [['a', 'b']]
