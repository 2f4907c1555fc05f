import json

import pytest
from rdflib import Literal
from rdflib.namespace import XSD

from tabularld.context import CSVW_CONTEXT
from tabularld.metadata import (
    Metadata, MetadataError, TableGroup, Table, Transformation, Schema, Column, Dialect)


@pytest.mark.parametrize(
    'value,type_,cls',
    [
        ({'resources': []}, None, TableGroup),
        ({'tableSchema': {}}, None, Table),
        ({'targetFormat': 'http://example.org/f'}, None, Transformation),
        ({'primaryKey': 'a'}, None, Schema),
        ({'name': 'a'}, None, Column),
        ({'delimiter': ';'}, None, Dialect),
        ({'@type': 'Column'}, None, Column),
        ({}, 'Dialect', Dialect),
        ('{"resources": []}', None, TableGroup),
    ]
)
def test_dispatch(value, type_, cls):
    assert isinstance(Metadata.fromvalue(value, type=type_), cls)


@pytest.mark.parametrize(
    'value,type_,match',
    [
        ({'@type': 'Foo'}, None, 'Unknown metadata type'),
        ({'x': 1}, None, 'Unknown metadata type'),
        ({}, 'Foo', 'type must be one of'),
        ('[1]', None, 'must be a JSON object'),
    ]
)
def test_dispatch_errors(value, type_, match):
    with pytest.raises(MetadataError, match=match):
        Metadata.fromvalue(value, type=type_)


def test_fromvalue_subclass():
    t = Table.fromvalue({'url': 'a.csv'})
    assert isinstance(t, Table)
    assert t['@context'] == CSVW_CONTEXT
    assert Table.fromvalue(t) is t


def test_open(tree_ops_md, location, tmp_path):
    md = Metadata.open(tree_ops_md)
    assert isinstance(md, Table)
    assert md.filenames == [location(tree_ops_md)]
    assert md.url == location(tree_ops_md.parent / 'tree-ops.csv')
    assert md.context.default_language == 'en'
    assert md['dc:title'] == 'Tree Operations'
    assert 'dc:title' in md and 'tableSchema' in md
    assert md.is_valid

    with pytest.raises(MetadataError):
        Metadata.open(tmp_path / 'nope.json')

    p = tmp_path / 'invalid.json'
    p.write_text('{"url": ', encoding='utf8')
    with pytest.raises(MetadataError):
        Metadata.open(p)


def test_open_group(tree_ops_ext):
    group = Metadata.open(tree_ops_ext)
    assert isinstance(group, TableGroup)
    assert group.id == 'http://example.org/tree-ops-ext'
    assert group.is_valid, group.errors
    table = group.resources[0]
    assert table.parent is group
    assert table.dialect.get('trim') == 'true'
    cols = table.tableSchema.columns
    assert [c.number for c in cols] == list(range(1, 9))
    assert cols[0].suppressOutput and cols[0].required
    assert cols[-1].inherit('default') == 'NO'
    assert cols[1].title == {'en': ['On Street']}

    assert group.for_table(table.url) is table
    assert table.context.base == table.url
    assert group.for_table('http://example.org/none.csv') is None
    assert list(group.each_resource()) == [table]


@pytest.mark.parametrize(
    'value,error',
    [
        ({'url': 'a.csv', 'foo': 1}, "Table has unexpected keys: ['foo']"),
        ({'dialect': {}}, "Table missing required keys: ['url']"),
        ({'url': 'a b.csv'}, "Table has invalid property 'url'"),
        ({'url': 'a.csv', 'tableSchema': {'columns': [{'name': '_foo'}]}},
         "Column has invalid property 'name': _foo, expected proper string format"),
        ({'url': 'a.csv', 'tableSchema': {'columns': [{'name': 'a'}, {'name': 'a'}]}},
         "Schema has invalid property 'columns': must have unique names"),
        ({'url': 'a.csv', 'tableSchema': {'columns': [{'name': 'a'}], 'primaryKey': 'b'}},
         "Schema has invalid property 'primaryKey': column reference not found b"),
        ({'url': 'a.csv', 'tableSchema': {
            'columns': [{'name': 'a'}],
            'foreignKeys': [{'columns': 'b', 'reference': {'resource': 'b.csv', 'columns': 'x'}}]}},
         "Schema has invalid property 'foreignKeys': column reference not found b"),
        ({'url': 'a.csv', 'tableSchema': {'columns': [{'name': 'a', 'title': 1}]}},
         "Column has invalid property 'title'"),
        ({'url': 'a.csv', 'tableSchema': {'columns': [{'name': 'a', 'required': 'yes'}]}},
         "Column has invalid property 'required'"),
        ({'url': 'a.csv', 'dialect': {'delimiter': ';;'}},
         "Dialect has invalid property 'delimiter'"),
        ({'url': 'a.csv', 'dialect': {'headerRowCount': -1}},
         "Dialect has invalid property 'headerRowCount'"),
        ({'url': 'a.csv', 'dialect': {'encoding': 'no-such-encoding'}},
         "Dialect has invalid property 'encoding'"),
        ({'url': 'a.csv', 'dialect': {'trim': 'both'}}, "Dialect has invalid property 'trim'"),
        ({'url': 'a.csv', 'dialect': {'dc:title': 'x'}}, "Dialect has unexpected keys"),
        ({'url': 'a.csv', 'transformations': [{'targetFormat': 'x', 'scriptFormat': 'y'}]},
         "Transformation has invalid property 'targetFormat'"),
        ({'url': 'a.csv', 'lang': 1}, "Table has invalid property 'lang'"),
        ({'url': 'a.csv', 'null': 'NA', 'tableSchema': {'columns': [{'name': 'a', 'null': 'x'}]}},
         'subset of that defined on parent'),
        ({'url': 'a.csv', 'datatype': 'integer', 'tableSchema': {
            'columns': [{'name': 'a', 'datatype': 'string'}]}},
         'compatible datatype of that defined on parent'),
        ({'url': 'a.csv', 'tableSchema': {
            'columns': [{'name': 'a', 'datatype': {'base': 'integer', 'minimum': 'x'}}]}},
         'numeric or valid date/time bounds'),
        ({'url': 'a.csv', 'tableSchema': {'columns': [{'name': 'a', 'datatype': 'foo'}]}},
         'valid datatype'),
        ({'url': 'a.csv', '@type': 'Column'}, "Table has invalid property '@type'"),
    ]
)
def test_validation_errors(value, error):
    t = Table.fromvalue(value)
    assert not t.is_valid
    assert any(error in e for e in t.errors), t.errors

    with pytest.raises(MetadataError):
        t.validate()


def test_validate_with_log(mocker):
    t = Table.fromvalue({'url': 'a.csv', 'foo': 1})
    log = mocker.Mock()
    assert t.validate(log=log) is t
    assert 'unexpected keys' in log.warning.call_args[0][0]


@pytest.mark.parametrize(
    'value',
    [
        {'url': 'a.csv', 'tableSchema': {'columns': [{'name': '_col.1'}]}},
        {'url': 'a.csv', 'tableSchema': {
            'columns': [{'name': 'a'}, {'name': 'b'}], 'primaryKey': ['a', 'b']}},
        {'url': 'a.csv', 'datatype': 'integer', 'tableSchema': {
            'columns': [{'name': 'a', 'datatype': 'byte'}]}},
        {'url': 'a.csv', 'null': ['NA', ''], 'tableSchema': {
            'columns': [{'name': 'a', 'null': 'NA'}]}},
        {'url': 'a.csv', 'lang': 'en', 'tableSchema': {'columns': [{'name': 'a', 'lang': 'en-US'}]}},
        {'url': 'a.csv', 'dialect': {'trim': 'start', 'headerRowCount': '2'}},
        {'url': 'a.csv', 'transformations': [{
            'url': 'http://example.org/t.js',
            'targetFormat': 'http://example.org/f',
            'scriptFormat': 'http://example.org/s',
            'dc:title': 'x'}]},
        {'url': 'a.csv', 'tableSchema': {
            'columns': [{'name': 'a', 'datatype': {'base': 'date', 'minimum': '2015-01-01'}}]}},
    ]
)
def test_valid(value):
    t = Table.fromvalue(value)
    assert t.is_valid, t.errors


def test_inheritance():
    group = TableGroup.fromvalue({
        'null': 'NA',
        'lang': 'de',
        'resources': [{
            'url': 'a.csv',
            'tableSchema': {'separator': ';', 'columns': [{'name': 'a', 'separator': ';'}]}}]})
    col = group.resources[0].tableSchema.columns[0]
    assert col.inherit('null') == 'NA'
    assert col.inherit('lang') == 'de'
    assert col.inherit('separator') == ';'
    assert col.inherit('valueUrl') is None
    assert col.datatypes == []
    assert col.table is group.resources[0]


def test_column_name():
    t = Table.fromvalue({
        '@context': [CSVW_CONTEXT, {'@language': 'de'}],
        'url': 'a.csv',
        'tableSchema': {'columns': [
            {'title': {'en': ['Name'], 'de': ['Name DE']}},
            {},
            {'title': 'Ort'},
            {'name': 'x', 'title': 'y'},
        ]}})
    assert [c.name for c in t.tableSchema.columns] == ['Name%20DE', '_col.2', 'Ort', 'x']
    assert t.tableSchema.columns[2].title == {'de': ['Ort']}
    assert t.tableSchema.column('x').number == 4
    assert t.tableSchema.column('z') is None


def test_dialect():
    assert Dialect({}).get('headerRowCount') == 1
    assert Dialect({'header': False}).get('headerRowCount') == 0
    assert Dialect({'header': 'false', 'headerRowCount': 2}).get('headerRowCount') == 2
    assert Dialect({'skipInitialSpace': True}).get('trim') == 'start'
    assert Dialect({'trim': True}).get('trim') == 'true'
    assert Dialect({'trim': '0'}).get('trim') == 'false'
    assert Dialect({'headerRowCount': '2'})['headerRowCount'] == 2
    assert Dialect({}).get('delimiter') == ','
    assert Dialect({}).get('commentPrefix') is None
    assert Dialect({}).escape_character == '"'
    assert Dialect({'doubleQuote': False}).escape_character == '\\'


def test_dialect_cache():
    group = TableGroup.fromvalue({
        'dialect': {'delimiter': ';'},
        'resources': [{'url': 'a.csv', 'tableSchema': {'columns': [{'name': 'a'}]}}]})
    table = group.resources[0]
    col = table.tableSchema.columns[0]
    assert table.dialect.get('delimiter') == ';'
    assert table.dialect is table.dialect
    assert col.dialect is group.dialect

    group.dialect = {'delimiter': '\t'}
    assert table.dialect.get('delimiter') == '\t'
    assert col.dialect.get('delimiter') == '\t'

    table.dialect = Dialect({'delimiter': '|'})
    assert table.dialect.parent is table
    assert col.dialect.get('delimiter') == '|'

    group.dialect = None
    assert 'dialect' not in group
    assert group.dialect.get('delimiter') == ','

    with pytest.raises(MetadataError):
        _ = Column.fromvalue({'name': 'a'}).dialect


def test_normalize():
    t = Table.fromvalue(
        {
            'url': 'a.csv',
            'dc:title': 'T',
            'dc:source': {'@id': 'source.html'},
            'notes': ['a note'],
            'tableSchema': {'columns': [
                {'name': 'a', 'title': 'A', 'required': 'true', 'datatype': 'integer'}]},
        },
        base='http://example.org/md.json')
    assert t.normalize() is t
    assert t.url == 'http://example.org/a.csv'
    assert t['url'] == 'http://example.org/a.csv'
    assert t['dc:title'] == {'@value': 'T'}
    assert t['dc:source'] == {'@id': 'http://example.org/source.html'}
    assert t['notes'] == [{'@value': 'a note'}]
    assert t.tableSchema.columns[0].asdict() == {
        'name': 'a', 'title': {'und': ['A']}, 'required': True, 'datatype': ['integer']}

    with pytest.raises(MetadataError):
        Table.fromvalue({'url': 'a.csv', 'dc:source': {'@id': '_:b0'}}).normalize()


def test_common_properties(tree_ops_md):
    md = Metadata.open(tree_ops_md)
    props = md.common_properties()
    assert props['dc:title'] == 'Tree Operations'
    assert props['dcat:keyword'] == ['tree', 'street', 'maintenance']
    assert props['dc:license'] == 'http://opendefinition.org/licenses/cc-by/'
    assert props['dc:publisher'] == {
        'schema:name': 'Example Municipality', 'schema:url': 'http://example.org'}

    triples = list(md.common_property_triples(md.url))
    assert (md.url, 'http://purl.org/dc/terms/title', Literal('Tree Operations', lang='en')) in [
        (str(s), str(p), o) for s, p, o in triples]


def test_asdict_copy_eq():
    t = Table.fromvalue({
        'url': 'a.csv',
        'dc:title': 'T',
        'tableSchema': {'columns': [{'name': 'a'}]}})
    assert t.asdict() == {
        '@context': CSVW_CONTEXT,
        'url': 'a.csv',
        'tableSchema': {'columns': [{'name': 'a'}]},
        'dc:title': 'T'}
    assert json.loads(json.dumps(t.asdict()))['url'] == 'a.csv'

    t2 = t.copy()
    assert t2 == t and t2 is not t
    assert t2.parent is None
    assert t2.tableSchema.parent is t2
    assert t2.tableSchema.columns[0].parent is t2.tableSchema
    t2.tableSchema.columns[0]['name'] = 'b'
    assert t2 != t
    assert t.tableSchema.columns[0].name == 'a'
    assert t != t.asdict()


def test_referenced_schema(tmp_path, location):
    (tmp_path / 'schema.json').write_text(
        json.dumps({'columns': [{'name': 'a'}, {'name': 'b'}]}), encoding='utf8')
    t = Table.fromvalue(
        {'url': 'a.csv', 'tableSchema': 'schema.json'}, base=location(tmp_path / 'md.json'))
    assert t.tableSchema.reference == 'schema.json'
    assert t.tableSchema.parent is t
    assert [c.name for c in t.tableSchema.columns] == ['a', 'b']
    assert t.tableSchema.filenames == [location(tmp_path / 'schema.json')]

    with pytest.raises(MetadataError, match='could not load Schema'):
        Table.fromvalue(
            {'url': 'a.csv', 'tableSchema': 'nope.json'}, base=location(tmp_path / 'md.json'))


def test_embedded_metadata(tree_ops, location):
    t = Table.fromvalue({'url': 'tree-ops.csv'})
    emb = t.embedded_metadata(str(tree_ops))
    assert emb.url == location(str(tree_ops))
    cols = emb.tableSchema.columns
    assert len(cols) == 5
    assert cols[0].title == {'und': ['GID']}
    assert cols[1].name == 'On%20Street'
    assert 'notes' not in emb

    t = Table.fromvalue({
        'url': 'x.csv',
        'dialect': {'skipRows': 1, 'commentPrefix': '#', 'skipColumns': 1, 'headerRowCount': 2}})
    emb = t.embedded_metadata(['#This is a note', 'id,a,b', 'x,c,d', '1,2,3'])
    assert emb['notes'] == ['This is a note']
    assert [c.title for c in emb.tableSchema.columns] == [{'und': ['a', 'c']}, {'und': ['b', 'd']}]


def test_each_row():
    t = Table.fromvalue({
        'url': 'http://example.org/x.csv',
        'dialect': {'skipRows': 1, 'headerRowCount': 1}})
    rows = list(t.each_row(['skip me', 'a,b', '1,2', '3,4', '5,6']))
    assert [r.number for r in rows] == [1, 2, 3]
    assert [r.sourceNumber for r in rows] == [3, 4, 5]
    assert rows[0].id == 'http://example.org/x.csv#row=3'
    assert [c.name for c in t.tableSchema.columns] == ['_col.1', '_col.2']
    assert [str(v) for v in rows[-1].asdict().values()] == ['5', '6']

    t = Table.fromvalue({
        'url': 'http://example.org/x.csv',
        'dialect': {'commentPrefix': '#', 'skipBlankRows': True, 'header': False}})
    rows = list(t.each_row(['#c', '1,2', ',', '3,4']))
    assert [(r.number, r.sourceNumber) for r in rows] == [(1, 2), (2, 4)]


def test_each_row_typed(tree_ops_md):
    md = Metadata.open(tree_ops_md)
    rows = list(md.each_row(md.url))
    assert len(rows) == 3
    row = rows[0]
    assert row.is_valid
    assert row.asdict()['on_street'] == Literal('ADDISON AV', lang='en')
    assert row.asdict()['inventory_date'] == Literal('2010-10-18', datatype=XSD.date)
    assert row.values[0].aboutUrl == md.url + '#gid-1'
    assert row.values[1].propertyUrl == md.url + '#on_street'
    assert rows[1].values[-1].value == Literal('2010-06-02', datatype=XSD.date)


def test_to_atd(tree_ops_ext):
    group = Metadata.open(tree_ops_ext)
    atd = group.to_atd()
    assert atd['@type'] == 'AnnotatedTableGroup'
    table = atd['resources'][0]
    assert table['url'] == group.resources[0].url
    assert table['columns'][1]['@id'] == group.resources[0].url + '#col=2'
    assert table['columns'][1]['name'] == 'on_street'
