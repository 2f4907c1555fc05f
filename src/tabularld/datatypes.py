"""
We model the hierarchy of primitive datatypes using a class hierarchy: a kind is "narrower" than
another if its class is a subclass of the other's.

Each kind knows its datatype IRI and a predicate deciding whether a (canonicalized) lexical form is
valid. Derived datatypes, i.e. a base kind plus facets, are described by :class:`Datatype`.

.. seealso:: https://www.w3.org/TR/tabular-metadata/#datatypes
"""
import re
import json as _json
import base64
import typing
import decimal as _decimal
import binascii
import datetime

import attr
import isodate
import dateutil.parser

from . import utils

__all__ = [
    'DATATYPES', 'UNSUPPORTED', 'STRING_LIKE', 'Datatype', 'normalize_datatypes', 'is_derived_from',
    'NumberPattern']

XSD = 'http://www.w3.org/2001/XMLSchema#'
RDF = 'http://www.w3.org/1999/02/22-rdf-syntax-ns#'
CSVW = 'http://www.w3.org/ns/csvw#'

DATATYPES = {}

# Legacy XML Schema kinds which are recognized, but which we cannot cast to.
UNSUPPORTED = {
    'anyType', 'anySimpleType', 'ENTITIES', 'IDREFS', 'NMTOKENS', 'ENTITY', 'ID', 'IDREF',
    'NOTATION'}

# Kinds for which leading and trailing whitespace is significant (subject to the dialect's trim).
STRING_LIKE = {'string', 'anyAtomicType', 'any'}

TZ = r'(Z|[+-](((0[0-9]|1[0-3]):[0-5][0-9])|14:00))'


def register(cls):
    DATATYPES[cls.name] = cls
    return cls


def alias(name, cls):
    DATATYPES[name] = cls


@register
class anyAtomicType:
    """
    The root of the hierarchy. A kind consists of

    - a `name` matching a CSVW built-in datatype,
    - the `iri` used for typed literals,
    - an optional `regex` the lexical form must fully match,
    - the `is_valid` predicate.
    """
    name = 'anyAtomicType'
    iri = XSD + 'anyAtomicType'
    regex = None
    numeric = False
    temporal = False

    @classmethod
    def is_valid(cls, v: str) -> bool:
        return cls.regex is None or bool(re.fullmatch(cls.regex, v))

    @classmethod
    def value(cls, v: str):
        """The comparable value for range checks."""
        return v


alias('any', anyAtomicType)


@register
class string(anyAtomicType):
    name = 'string'
    iri = XSD + 'string'


@register
class normalizedString(string):
    name = 'normalizedString'
    iri = XSD + 'normalizedString'
    regex = r'[^\r\n\t]*'


@register
class token(normalizedString):
    name = 'token'
    iri = XSD + 'token'
    regex = r'([^\s]+( [^\s]+)*)?'


@register
class language(token):
    name = 'language'
    iri = XSD + 'language'
    regex = r'[a-zA-Z]{1,8}(-[a-zA-Z0-9]{1,8})*'


alias('lang', language)


@register
class Name(token):
    name = 'Name'
    iri = XSD + 'Name'
    regex = r'[:A-Z_a-z\u00C0-\uFFFF][-.:0-9A-Z_a-z\u00B7\u00C0-\uFFFF]*'


@register
class NCName(Name):
    name = 'NCName'
    iri = XSD + 'NCName'
    regex = r'[A-Z_a-z\u00C0-\uFFFF][-.0-9A-Z_a-z\u00B7\u00C0-\uFFFF]*'


@register
class NMTOKEN(token):
    name = 'NMTOKEN'
    iri = XSD + 'NMTOKEN'
    regex = r'[-.:0-9A-Z_a-z\u00B7\u00C0-\uFFFF]+'


@register
class QName(anyAtomicType):
    name = 'QName'
    iri = XSD + 'QName'
    regex = r'({0}:)?{0}'.format(NCName.regex)


@register
class xml(string):
    name = 'xml'
    iri = RDF + 'XMLLiteral'


@register
class html(string):
    name = 'html'
    iri = RDF + 'HTML'


@register
class json(string):
    """
    The lexical form must be a JSON document.
    """
    name = 'json'
    iri = CSVW + 'JSON'

    @classmethod
    def is_valid(cls, v):
        try:
            _json.loads(v)
            return True
        except ValueError:
            return False


@register
class anyURI(anyAtomicType):
    name = 'anyURI'
    iri = XSD + 'anyURI'

    @classmethod
    def is_valid(cls, v):
        return utils.is_valid_uri(v)


@register
class base64Binary(anyAtomicType):
    name = 'base64Binary'
    iri = XSD + 'base64Binary'

    @classmethod
    def is_valid(cls, v):
        try:
            base64.b64decode(re.sub(r'\s+', '', v), validate=True)
            return True
        except (binascii.Error, ValueError):
            return False


alias('binary', base64Binary)


@register
class hexBinary(anyAtomicType):
    name = 'hexBinary'
    iri = XSD + 'hexBinary'
    regex = r'([0-9a-fA-F]{2})*'


@register
class boolean(anyAtomicType):
    name = 'boolean'
    iri = XSD + 'boolean'
    regex = r'true|false|1|0'


@register
class decimal(anyAtomicType):
    """
    Decimal numbers, without scientific notation.

        Valid values include: "123.456", "+1234.456", "-1234.456", "-.456", or "-456".
    """
    name = 'decimal'
    iri = XSD + 'decimal'
    regex = r'[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)'
    numeric = True

    @classmethod
    def value(cls, v):
        return _decimal.Decimal(v)


@register
class integer(decimal):
    name = 'integer'
    iri = XSD + 'integer'
    regex = r'[+-]?[0-9]+'
    range = (None, None)

    @classmethod
    def is_valid(cls, v):
        if not re.fullmatch(cls.regex, v):
            return False
        i, (lower, upper) = int(v), cls.range
        return (lower is None or i >= lower) and (upper is None or i <= upper)

    @classmethod
    def value(cls, v):
        return int(v)


@register
class long(integer):
    name = 'long'
    iri = XSD + 'long'
    range = (-9223372036854775808, 9223372036854775807)


@register
class _int(long):
    name = 'int'
    iri = XSD + 'int'
    range = (-2147483648, 2147483647)


@register
class short(_int):
    name = 'short'
    iri = XSD + 'short'
    range = (-32768, 32767)


@register
class byte(short):
    name = 'byte'
    iri = XSD + 'byte'
    range = (-128, 127)


@register
class nonNegativeInteger(integer):
    name = 'nonNegativeInteger'
    iri = XSD + 'nonNegativeInteger'
    range = (0, None)


@register
class positiveInteger(nonNegativeInteger):
    name = 'positiveInteger'
    iri = XSD + 'positiveInteger'
    range = (1, None)


@register
class unsignedLong(nonNegativeInteger):
    name = 'unsignedLong'
    iri = XSD + 'unsignedLong'
    range = (0, 18446744073709551615)


@register
class unsignedInt(unsignedLong):
    name = 'unsignedInt'
    iri = XSD + 'unsignedInt'
    range = (0, 4294967295)


@register
class unsignedShort(unsignedInt):
    name = 'unsignedShort'
    iri = XSD + 'unsignedShort'
    range = (0, 65535)


@register
class unsignedByte(unsignedShort):
    name = 'unsignedByte'
    iri = XSD + 'unsignedByte'
    range = (0, 255)


@register
class nonPositiveInteger(integer):
    name = 'nonPositiveInteger'
    iri = XSD + 'nonPositiveInteger'
    range = (None, 0)


@register
class negativeInteger(nonPositiveInteger):
    name = 'negativeInteger'
    iri = XSD + 'negativeInteger'
    range = (None, -1)


@register
class double(anyAtomicType):
    name = 'double'
    iri = XSD + 'double'
    regex = r'[+-]?(([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?|INF)|NaN'
    numeric = True

    @classmethod
    def value(cls, v):
        return float(v.replace('INF', 'inf'))


alias('number', double)


@register
class _float(double):
    name = 'float'
    iri = XSD + 'float'


def _valid_date(year, month, day):
    try:
        # datetime only supports years 1-9999, use a leap year proxy for the rest.
        y = int(year)
        datetime.date(y if 1 <= y <= 9999 else (2000 if y % 4 == 0 else 2001), int(month), int(day))
        return True
    except ValueError:
        return False


def _valid_time(hour, minute, second):
    if (hour, minute) == ('24', '00') and float(second) == 0:
        return True
    return int(hour) < 24 and int(minute) < 60 and float(second) < 60


class _temporal(anyAtomicType):
    temporal = True

    @classmethod
    def value(cls, v):
        return dateutil.parser.isoparse(v)


@register
class date(_temporal):
    name = 'date'
    iri = XSD + 'date'
    regex = r'(?P<year>-?[0-9]{4,})-(?P<month>[0-9]{2})-(?P<day>[0-9]{2})' + TZ + '?'

    @classmethod
    def is_valid(cls, v):
        m = re.fullmatch(cls.regex, v)
        return bool(m) and _valid_date(m.group('year'), m.group('month'), m.group('day'))


@register
class time(_temporal):
    name = 'time'
    iri = XSD + 'time'
    regex = r'(?P<hour>[0-9]{2}):(?P<minute>[0-9]{2}):(?P<second>[0-9]{2}(\.[0-9]+)?)' + TZ + '?'

    @classmethod
    def is_valid(cls, v):
        m = re.fullmatch(cls.regex, v)
        return bool(m) and _valid_time(m.group('hour'), m.group('minute'), m.group('second'))

    @classmethod
    def value(cls, v):
        return dateutil.parser.isoparse('2000-01-01T' + v)


@register
class dateTime(_temporal):
    name = 'dateTime'
    iri = XSD + 'dateTime'
    regex = date.regex[:-len(TZ) - 1] + 'T' + time.regex

    @classmethod
    def is_valid(cls, v):
        m = re.fullmatch(cls.regex, v)
        return bool(m) and \
            _valid_date(m.group('year'), m.group('month'), m.group('day')) and \
            _valid_time(m.group('hour'), m.group('minute'), m.group('second'))


alias('datetime', dateTime)


@register
class dateTimeStamp(dateTime):
    name = 'dateTimeStamp'
    iri = XSD + 'dateTimeStamp'
    regex = dateTime.regex[:-1]


@register
class duration(anyAtomicType):
    """
    ISO 8601 durations as restricted by XML Schema, e.g. `P1Y2M3DT10H30M`.
    """
    name = 'duration'
    iri = XSD + 'duration'
    regex = r'-?P(?=[0-9T])([0-9]+Y)?([0-9]+M)?([0-9]+D)?' \
            r'(T(?=[0-9])([0-9]+H)?([0-9]+M)?([0-9]+(\.[0-9]+)?S)?)?'

    @classmethod
    def is_valid(cls, v):
        if not (re.fullmatch(cls.regex, v) and not v.endswith('T')):
            return False
        try:
            isodate.parse_duration(v)
            return True
        except (isodate.ISO8601Error, ValueError):
            return False


@register
class dayTimeDuration(duration):
    name = 'dayTimeDuration'
    iri = XSD + 'dayTimeDuration'
    regex = r'-?P(?=[0-9T])([0-9]+D)?(T(?=[0-9])([0-9]+H)?([0-9]+M)?([0-9]+(\.[0-9]+)?S)?)?'


@register
class yearMonthDuration(duration):
    name = 'yearMonthDuration'
    iri = XSD + 'yearMonthDuration'
    regex = r'-?P(?=[0-9])([0-9]+Y)?([0-9]+M)?'


@register
class gDay(anyAtomicType):
    name = 'gDay'
    iri = XSD + 'gDay'
    regex = r'---(0[1-9]|[12][0-9]|3[01])' + TZ + '?'


@register
class gMonth(anyAtomicType):
    name = 'gMonth'
    iri = XSD + 'gMonth'
    regex = r'--(0[1-9]|1[0-2])' + TZ + '?'


@register
class gMonthDay(anyAtomicType):
    name = 'gMonthDay'
    iri = XSD + 'gMonthDay'
    regex = r'--(0[1-9]|1[0-2])-(0[1-9]|[12][0-9]|3[01])' + TZ + '?'


@register
class gYear(anyAtomicType):
    name = 'gYear'
    iri = XSD + 'gYear'
    regex = r'-?[0-9]{4,}' + TZ + '?'


@register
class gYearMonth(anyAtomicType):
    name = 'gYearMonth'
    iri = XSD + 'gYearMonth'
    regex = r'-?[0-9]{4,}-(0[1-9]|1[0-2])' + TZ + '?'


def is_derived_from(base: str, other: str) -> bool:
    """
    Whether the kind `base` is the same as or narrower than the kind `other`.
    """
    if base in DATATYPES and other in DATATYPES:
        return issubclass(DATATYPES[base], DATATYPES[other])
    return base == other


def _int_facet(v):
    if isinstance(v, str) and re.fullmatch('[0-9]+', v):
        return int(v)
    return v


@attr.s
class Datatype:
    """
    A derived datatype: a base kind plus facets.

    .. code-block:: python

        >>> Datatype.fromvalue({"base": "decimal", "format": {"groupChar": " "}}).group_char
        ' '

    .. seealso:: https://www.w3.org/TR/tabular-metadata/#datatypes
    """
    base = attr.ib(default='string')
    format = attr.ib(default=None)
    length = attr.ib(default=None, converter=_int_facet)
    minLength = attr.ib(default=None, converter=_int_facet)
    maxLength = attr.ib(default=None, converter=_int_facet)
    minimum = attr.ib(default=None)
    maximum = attr.ib(default=None)
    minInclusive = attr.ib(default=None)
    maxInclusive = attr.ib(default=None)
    minExclusive = attr.ib(default=None)
    maxExclusive = attr.ib(default=None)
    decimalChar = attr.ib(default=None)
    groupChar = attr.ib(default=None)
    pattern = attr.ib(default=None)

    @classmethod
    def fromvalue(cls, value) -> 'Datatype':
        if isinstance(value, Datatype):
            return value
        if isinstance(value, dict):
            names = {f.name for f in attr.fields(cls)}
            kw = {k: v for k, v in value.items() if k in names}
            if kw.get('base') is None:
                kw['base'] = 'string'
            return cls(**kw)
        return cls(base=value)

    @property
    def kind(self) -> typing.Optional[type]:
        return DATATYPES.get(self.base) if isinstance(self.base, str) else None

    @property
    def iri(self):
        return self.kind.iri if self.kind else self.base

    def _numeric_format(self, key):
        if isinstance(self.format, dict) and key in self.format:
            return self.format[key]
        return getattr(self, key)

    @property
    def number_pattern(self):
        if isinstance(self.format, str):
            return self.format
        if isinstance(self.format, dict):
            return self.format.get('pattern')

    @property
    def decimal_char(self) -> str:
        return self._numeric_format('decimalChar') or '.'

    @property
    def group_char(self) -> str:
        return self._numeric_format('groupChar') or ','

    @property
    def lower_bounds(self):
        """Pairs (bound, inclusive) of the lower bound facets."""
        return [(v, inclusive) for v, inclusive in [
            (self.minimum, True), (self.minInclusive, True), (self.minExclusive, False)]
            if v is not None]

    @property
    def upper_bounds(self):
        return [(v, inclusive) for v, inclusive in [
            (self.maximum, True), (self.maxInclusive, True), (self.maxExclusive, False)]
            if v is not None]

    def asdict(self) -> typing.Union[str, dict]:
        res = {k: v for k, v in attr.asdict(self).items() if v is not None}
        return res['base'] if list(res) == ['base'] else res


def normalize_datatypes(value) -> typing.List[Datatype]:
    """
    Normalize the value of a `datatype` property to a list of :class:`Datatype`.
    """
    return [Datatype.fromvalue(v) for v in utils.ensure_list(value)]


class NumberPattern:
    """
    Number format patterns containing the symbols 0, #, the decimal separator ".", the grouping
    separator ",", E, +, % and ‰. Values are checked after group and decimal characters have been
    mapped to "," and ".".

    .. seealso:: https://www.w3.org/TR/tabular-data-model/#formats-for-numeric-types
    """

    def __init__(self, pattern):
        self.positive, _, self.negative = pattern.partition(';')
        if not self.negative:
            self.negative = '-' + self.positive.replace('+', '')

    @property
    def primary_grouping_size(self):
        comps = self.positive.split('.')[0].split(',')
        if len(comps) > 1:
            return comps[-1].count('#') + comps[-1].count('0')

    @property
    def secondary_grouping_size(self):
        comps = self.positive.split('.')[0].split(',')
        if len(comps) > 2:
            return comps[1].count('#') + comps[1].count('0')
        return self.primary_grouping_size

    @property
    def min_digits_before_decimal_point(self):
        match = re.search('(0+)$', self.positive.split('.')[0])
        if match:
            return len(match.group(1))

    @property
    def decimal_digits(self):
        _, _, decimal_part = self.positive.partition('.')
        return len([c for c in decimal_part.split('E')[0] if c in '#0'])

    @property
    def significant_decimal_digits(self):
        i = 0
        _, _, decimal_part = self.positive.partition('.')
        for c in decimal_part:
            if c in 'E#':
                break
            if c == '0':
                i += 1
        return i

    def is_valid(self, s: str) -> bool:
        def digits(ss):
            return [c for c in ss if c.isdigit()]

        integral_part, _, decimal_part = s.partition('.')
        decimal_part = decimal_part.lower().partition('e')[0]
        groups = integral_part.lower().partition('e')[0].split(',')
        integral_digits = digits(''.join(groups))
        if self.min_digits_before_decimal_point and \
                len(integral_digits) < self.min_digits_before_decimal_point:
            return False
        if self.primary_grouping_size and len(groups) > 1:
            if len(digits(groups[-1])) != self.primary_grouping_size:
                return False
            for group in groups[1:-1]:
                if len(digits(group)) != self.secondary_grouping_size:
                    return False
            if len(digits(groups[0])) > self.secondary_grouping_size:
                return False
        if len(digits(decimal_part)) > self.decimal_digits:
            return False
        if self.significant_decimal_digits and \
                len(digits(decimal_part)) < self.significant_decimal_digits:
            return False
        return True
