import pytest

from tabularld.datatypes import (
    DATATYPES, Datatype, NumberPattern, normalize_datatypes, is_derived_from)


@pytest.mark.parametrize(
    'base,value,valid',
    [
        ('integer', '-12', True),
        ('integer', '1.5', False),
        ('byte', '127', True),
        ('byte', '128', False),
        ('unsignedInt', '-1', False),
        ('nonPositiveInteger', '0', True),
        ('negativeInteger', '0', False),
        ('decimal', '-.5', True),
        ('decimal', '1e3', False),
        ('double', '1.5E-3', True),
        ('double', 'INF', True),
        ('boolean', 'true', True),
        ('boolean', 'yes', False),
        ('date', '2015-03-22', True),
        ('date', '2015-02-30', False),
        ('dateTime', '2015-03-22T10:00:00Z', True),
        ('dateTimeStamp', '2015-03-22T10:00:00', False),
        ('time', '24:00:00', True),
        ('time', '10:61:00', False),
        ('duration', 'P1Y2M3DT10H30M', True),
        ('duration', 'P1YT', False),
        ('yearMonthDuration', 'P1D', False),
        ('gYear', '1960', True),
        ('hexBinary', '0FB7', True),
        ('hexBinary', '0FB', False),
        ('base64Binary', 'YWJj', True),
        ('json', '{"a": 1}', True),
        ('json', '{a', False),
        ('language', 'en-US', True),
        ('NMTOKEN', 'a b', False),
        ('anyURI', 'http://example.org', True),
    ]
)
def test_kinds(base, value, valid):
    assert DATATYPES[base].is_valid(value) == valid


def test_hierarchy():
    assert is_derived_from('byte', 'integer')
    assert is_derived_from('integer', 'integer')
    assert not is_derived_from('integer', 'byte')
    assert is_derived_from('dateTimeStamp', 'dateTime')
    assert not is_derived_from('string', 'integer')
    assert DATATYPES['number'] is DATATYPES['double']


def test_Datatype():
    dt = Datatype.fromvalue('integer')
    assert dt.base == 'integer'
    assert dt.iri == 'http://www.w3.org/2001/XMLSchema#integer'
    assert dt.asdict() == 'integer'

    dt = Datatype.fromvalue({'base': 'decimal', 'format': {'groupChar': ' ', 'pattern': '#,##0'}})
    assert dt.group_char == ' '
    assert dt.decimal_char == '.'
    assert dt.number_pattern == '#,##0'

    dt = Datatype.fromvalue({'minLength': '2', 'maximum': 5})
    assert dt.base == 'string'
    assert dt.minLength == 2
    assert dt.upper_bounds == [(5, True)]
    assert dt.asdict() == {'base': 'string', 'minLength': 2, 'maximum': 5}

    dt = Datatype.fromvalue({'base': 'http://example.org/dt'})
    assert dt.kind is None
    assert dt.iri == 'http://example.org/dt'


def test_normalize_datatypes():
    dts = normalize_datatypes(['integer', {'base': 'string'}])
    assert [dt.base for dt in dts] == ['integer', 'string']
    assert normalize_datatypes(dts) == dts


@pytest.mark.parametrize(
    'pattern,value,valid',
    [
        ('#,##0.##', '1,234.5', True),
        ('#,##0.##', '1,234.567', False),
        ('#,##0.##', '12,34', False),
        ('#,##,##0', '1,23,456', True),
        ('000', '012', True),
        ('000', '12', False),
        ('0.00', '1.5', False),
    ]
)
def test_NumberPattern(pattern, value, valid):
    assert NumberPattern(pattern).is_valid(value) == valid
