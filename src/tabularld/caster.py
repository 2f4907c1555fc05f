"""
Casting of raw cell values to typed literals.

For each candidate datatype of a column we try to interpret the string value, normalize it to the
canonical lexical form of the datatype and check it against the datatype's facets. The first
candidate which matches determines the literal; otherwise the value is kept as plain literal and
all errors are reported.

.. seealso::

    - https://www.w3.org/TR/tabular-data-model/#parsing-cells
    - https://www.w3.org/TR/tabular-data-model/#formats-for-numeric-types
    - https://www.w3.org/TR/tabular-data-model/#formats-for-dates-and-times
"""
import re
import json
import typing
import decimal
import itertools

import jsonschema
from rdflib import Literal, URIRef

from .datatypes import DATATYPES, UNSUPPORTED, STRING_LIKE, Datatype, NumberPattern

__all__ = ['cast', 'value_matching_datatype', 'trim_value', 'parse_date_format']

TZ_FORMAT = re.compile(r'^(.*[dyms])+(\s*[xX]{1,5})$')

DATE_PATTERNS = {
    'yyyy-MM-dd',
    'yyyyMMdd',
    'dd-MM-yyyy',
    'd-M-yyyy',
    'MM-dd-yyyy',
    'M-d-yyyy',
    'dd/MM/yyyy',
    'd/M/yyyy',
    'MM/dd/yyyy',
    'M/d/yyyy',
    'dd.MM.yyyy',
    'd.M.yyyy',
    'MM.dd.yyyy',
    'M.d.yyyy',
    'yyyy-MM-ddTHH:mm:ss',
}

TIME_PATTERNS = {'HH:mm:ss', 'HHmmss', 'HH:mm', 'HHmm'}

TOKENS = {
    'yyyy': r'(?P<yr>[0-9]{4})',
    'MM': r'(?P<mo>[0-9]{2})',
    'M': r'(?P<mo>[0-9]{1,2})',
    'dd': r'(?P<da>[0-9]{2})',
    'd': r'(?P<da>[0-9]{1,2})',
    'HH': r'(?P<hr>[0-9]{2})',
    'mm': r'(?P<mi>[0-9]{2})',
    'ss': r'(?P<se>[0-9]{2})',
}

NUMERIC_SPECIALS = {'INF', '-INF', 'NaN'}


def trim_value(value: str, base, trim) -> str:
    """
    String-like kinds are trimmed according to the dialect, all others are stripped.
    """
    if base in STRING_LIKE:
        if trim in ('true', 'start'):
            value = value.lstrip()
        if trim in ('true', 'end'):
            value = value.rstrip()
        return value
    return value.strip()


def parse_date_format(fmt: str, time_only=False) -> typing.Optional[dict]:
    """
    Split a date/time format into its date, time and timezone components and compile the regular
    expressions to match the date and time parts.

    :return: `dict` with keys `date`, `time` (compiled regex or `None`), `tz` (the zone marker or \
    `None`) and `errors`.
    """
    res = {'date': None, 'time': None, 'tz': None, 'errors': []}
    m = TZ_FORMAT.match(fmt)
    if m:
        fmt, res['tz'] = m.group(1), m.group(2)

    parts = fmt.split(' ')
    date_format, time_format = parts[0], parts[1] if len(parts) > 1 else None
    if time_only:
        date_format, time_format = None, date_format

    if date_format:
        if date_format in DATE_PATTERNS:
            res['date'] = _format_regex(date_format)
        else:
            res['errors'].append('unrecognized date/time format {}'.format(date_format))

    if time_format:
        base_format, _, fraction = time_format.partition('.')
        if base_format in TIME_PATTERNS and set(fraction) <= {'S'}:
            res['time'] = _format_regex(base_format, fraction=len(fraction))
        else:
            res['errors'].append('unrecognized date/time format {}'.format(time_format))
    return res


def _format_regex(fmt, fraction=0):
    regex = ''
    for _, chars in itertools.groupby(fmt):
        token = ''.join(chars)
        regex += TOKENS.get(token, re.escape(token))
    if fraction:
        regex += r'(\.(?P<fr>[0-9]{1,%s}))?' % fraction
    return re.compile(regex)


def _normalize_tz(tz: str) -> str:
    if tz in ('Z', 'z'):
        return 'Z'
    m = re.fullmatch(r'([+-])([0-9]{2}):?([0-9]{2})?', tz)
    if m:
        return '{}{}:{}'.format(m.group(1), m.group(2), m.group(3) or '00')
    return tz


def _cast_temporal(value, datatype):
    fmt = parse_date_format(datatype.format, time_only=datatype.base == 'time')
    if fmt['errors']:
        return None, fmt['errors']

    rest, date_part, time_part = value, None, None
    if fmt['date']:
        date_part = fmt['date'].match(rest)
        if not date_part:
            return None, ['{} does not match format {}'.format(value, datatype.format)]
        rest = rest[date_part.end():]
        if rest.startswith(' '):
            rest = rest.lstrip()

    if fmt['time']:
        time_part = fmt['time'].match(rest)
        if not time_part:
            return None, ['{} does not match format {}'.format(value, datatype.format)]
        rest = rest[time_part.end():]

    if date_part and 'hr' in date_part.groupdict():
        time_part = date_part

    tz = ''
    if fmt['tz']:
        tz = _normalize_tz(rest.strip()) if rest.strip() else ''
    elif rest:
        return None, ['{} does not match format {}'.format(value, datatype.format)]

    res = []
    if date_part:
        res.append('{:04d}-{:02d}-{:02d}'.format(
            int(date_part.group('yr')), int(date_part.group('mo')), int(date_part.group('da'))))
    if time_part:
        t = '{:02d}:{:02d}:{:02d}'.format(
            int(time_part.group('hr')), int(time_part.group('mi')),
            int(time_part.groupdict().get('se') or 0))
        if time_part.groupdict().get('fr'):
            t += '.' + time_part.group('fr')
        res.append(t)
    return 'T'.join(res) + tz, []


def _cast_numeric(value, datatype):
    errors = []
    group, dec = datatype.group_char, datatype.decimal_char
    if value in NUMERIC_SPECIALS:
        return value, errors

    if datatype.pattern:
        try:
            if not re.search(datatype.pattern, value):
                errors.append('{} does not match pattern {}'.format(value, datatype.pattern))
        except re.error:
            errors.append('{} is not a valid regular expression'.format(datatype.pattern))
    pattern = datatype.number_pattern
    if pattern:
        mapped = ''.join(',' if c == group else ('.' if c == dec else c) for c in value)
        if not NumberPattern(pattern).is_valid(mapped):
            errors.append('{} does not match pattern {}'.format(value, pattern))
    if group * 2 in value:
        errors.append('{} has repeating {!r}'.format(value, group))
    if errors:
        return None, errors

    v = value.replace(group, '').replace(dec, '.', 1)
    factor = None
    if v.endswith('%'):
        v, factor = v[:-1], decimal.Decimal('0.01')
    elif v.endswith('‰'):
        v, factor = v[:-1], decimal.Decimal('0.001')

    if factor is not None:
        try:
            number = decimal.Decimal(v) * factor
        except decimal.InvalidOperation:
            return None, ['{} is not a valid {}'.format(value, datatype.base)]
        if number == number.to_integral_value() and DATATYPES[datatype.base].name != 'decimal':
            v = str(int(number)) if issubclass(DATATYPES[datatype.base], DATATYPES['integer']) \
                else format(number, 'f')
        else:
            v = format(number, 'f')
    return v, errors


def _check_format(value, datatype):
    fmt = datatype.format
    if fmt is None:
        return []
    if datatype.base == 'json':
        try:
            schema = json.loads(fmt)
        except ValueError:
            schema = None
        if isinstance(schema, dict):
            try:
                jsonschema.validate(json.loads(value), schema=schema)
                return []
            except (ValueError, jsonschema.ValidationError):
                return ['{} does not match format {}'.format(value, fmt)]
    try:
        if re.match(r'({})$'.format(fmt), value):
            return []
    except re.error:
        return ['{} is not a valid regular expression'.format(fmt)]
    return ['{} does not match format {}'.format(value, fmt)]


def _check_bounds(lexical, datatype, kind):
    errors = []
    if not (kind.numeric or kind.temporal) or lexical in NUMERIC_SPECIALS:
        return errors

    def comparable(v):
        if kind.numeric:
            return decimal.Decimal(str(v))
        return kind.value(str(v))

    try:
        value = comparable(lexical)
        for bounds, op, strict in [
            (datatype.lower_bounds, '>', lambda a, b: a > b),
            (datatype.upper_bounds, '<', lambda a, b: a < b),
        ]:
            for bound, inclusive in bounds:
                b = comparable(bound)
                if kind.temporal and (value.tzinfo is None) != (b.tzinfo is None):
                    value, b = value.replace(tzinfo=None), b.replace(tzinfo=None)
                if not (strict(value, b) or (inclusive and value == b)):
                    errors.append('{} is not {}{} {}'.format(
                        lexical, op, '=' if inclusive else '', bound))
    except (ValueError, decimal.InvalidOperation):
        errors.append('invalid bounds for {}'.format(datatype.base))
    return errors


def value_matching_datatype(
        value: str,
        datatype: Datatype,
        language: typing.Optional[str] = None) -> typing.Union[Literal, typing.List[str]]:
    """
    Try to interpret `value` as instance of `datatype`.

    :return: An `rdflib.Literal` if successful, a `list` of error messages otherwise.
    """
    errors = []
    if datatype.length is not None and len(value) != datatype.length:
        errors.append('{} does not have length {}'.format(value, datatype.length))
    if datatype.minLength is not None and len(value) < datatype.minLength:
        errors.append('{} does not have length >= {}'.format(value, datatype.minLength))
    if datatype.maxLength is not None and len(value) > datatype.maxLength:
        errors.append('{} does not have length <= {}'.format(value, datatype.maxLength))

    base, kind, lexical = datatype.base, datatype.kind, value
    if base in UNSUPPORTED:
        return errors + ['{} uses unsupported datatype: {}'.format(value, base)]

    if kind and kind.numeric:
        lexical, errs = _cast_numeric(value, datatype)
        errors.extend(errs)
    elif kind and kind.name == 'boolean':
        if datatype.format:
            true, _, false = str(datatype.format).partition('|')
            if value == true:
                lexical = 'true'
            elif value == false:
                lexical = 'false'
            else:
                errors.append('{} does not match boolean format {}'.format(value, datatype.format))
        elif value.lower() in ('1', 'true'):
            lexical = 'true'
        elif value.lower() in ('0', 'false'):
            lexical = 'false'
    elif kind and kind.temporal:
        if datatype.format:
            lexical, errs = _cast_temporal(value, datatype)
            errors.extend(errs)
    elif kind and issubclass(kind, DATATYPES['duration']):
        pass
    else:
        errors.extend(_check_format(value, datatype))

    if errors:
        return errors

    if kind and not kind.is_valid(lexical):
        return ['{} is not a valid {}'.format(lexical, base)]
    if kind:
        errors.extend(_check_bounds(lexical, datatype, kind))
    if errors:
        return errors

    if kind and kind.name == 'string':
        return Literal(lexical, lang=language)
    return Literal(lexical, datatype=URIRef(datatype.iri), normalize=False)


def cast(value: str,
         datatypes: typing.List[Datatype],
         language: typing.Optional[str] = None,
         trim='false') -> typing.Tuple[Literal, typing.List[str]]:
    """
    Cast a raw value, trying each candidate datatype in order.

    .. code-block:: python

        >>> lit, errors = cast('123,456.789', [Datatype(base='decimal')])
        >>> str(lit), errors
        ('123456.789', [])

    :return: Pair (literal, errors) - if no candidate matches, a plain literal of the value and \
    the errors of all candidates.
    """
    errors = []
    for datatype in datatypes:
        res = value_matching_datatype(trim_value(value, datatype.base, trim), datatype, language)
        if isinstance(res, Literal):
            return res, []
        errors.extend(res)
    return Literal(value, lang=language), errors
