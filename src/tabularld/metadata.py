"""Functionality to read, validate and combine metadata for tabular data.

A metadata document is turned into a tree of description nodes. Each node type declares its
properties in a registry, mapping property names to a category which determines how values are
normalized and merged.

.. seealso::

    - https://www.w3.org/TR/tabular-metadata/
    - https://www.w3.org/TR/tabular-data-model/#parsing
"""
import re
import copy
import json
import codecs
import typing
import decimal
import weakref
import collections
from urllib.parse import urljoin

import requests
from language_tags import tags

from . import utils
from . import jsonld
from .context import Context, CSVW_CONTEXT
from .datatypes import DATATYPES, UNSUPPORTED, normalize_datatypes, is_derived_from
from .rows import Row
from . import dsv

__all__ = [
    'MetadataError', 'Metadata',
    'TableGroup', 'Table', 'Transformation', 'Schema', 'Column', 'Dialect',
    'INHERITED_PROPERTIES', 'DIALECT_DEFAULTS', 'NAME_SYNTAX',
]

INHERITED_PROPERTIES = collections.OrderedDict([
    ('null', 'atomic'),
    ('lang', 'atomic'),
    ('textDirection', 'atomic'),
    ('separator', 'atomic'),
    ('default', 'atomic'),
    ('ordered', 'atomic'),
    ('datatype', 'atomic'),
    ('aboutUrl', 'uri_template'),
    ('propertyUrl', 'uri_template'),
    ('valueUrl', 'uri_template'),
])

DIALECT_DEFAULTS = collections.OrderedDict([
    ('commentPrefix', None),
    ('delimiter', ','),
    ('doubleQuote', True),
    ('encoding', 'utf-8'),
    ('header', True),
    ('headerColumnCount', 0),
    ('headerRowCount', 1),
    ('lineTerminator', 'auto'),
    ('quoteChar', '"'),
    ('skipBlankRows', False),
    ('skipColumns', 0),
    ('skipInitialSpace', False),
    ('skipRows', 0),
    ('trim', 'false'),
])

NAME_SYNTAX = re.compile(r'^(?:_col|[a-zA-Z0-9])[a-zA-Z0-9._]*$')

BOOLEAN_PROPERTIES = {
    'doubleQuote', 'header', 'ordered', 'required', 'skipBlankRows', 'skipInitialSpace',
    'suppressOutput', 'virtual'}
COUNT_PROPERTIES = {'headerColumnCount', 'headerRowCount', 'skipColumns', 'skipRows'}
SINGLE_CHAR_PROPERTIES = {'commentPrefix', 'delimiter', 'quoteChar'}


class MetadataError(ValueError):
    pass


def _is_boolean_like(v):
    return str(v).lower() in ('true', 'false', '1', '0')


def _as_bool(v):
    return str(v).lower() in ('true', '1')


def _is_count(v):
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def _valid_bound(v):
    if isinstance(v, bool):
        return False
    if isinstance(v, (int, float, decimal.Decimal)):
        return True
    return isinstance(v, str) and \
        any(DATATYPES[k].is_valid(v) for k in ('double', 'date', 'time', 'dateTime'))


def _natural_language_values(value):
    return [vv for v in value.values() for vv in utils.ensure_list(v)]


class Metadata:
    """
    Base class of all description nodes.

    Declared properties (plus `@id`, `@type` and any unrecognized keys) are stored in the ordered
    mapping `object`, vocabulary-qualified common properties in `common_props`. The parent of a
    node is held as weak reference, i.e. the root of a tree must be kept alive by the caller.

    Instances should be created via :meth:`Metadata.fromvalue` or :meth:`Metadata.open`, which
    dispatch a JSON object to the appropriate subclass.
    """
    PROPERTIES = collections.OrderedDict()
    REQUIRED = []
    MARKERS = set()
    INHERITS = True

    def __init__(self,
                 value: typing.Optional[dict] = None,
                 parent: typing.Optional['Metadata'] = None,
                 base: typing.Optional[str] = None,
                 filenames=None,
                 log=None,
                 number: typing.Optional[int] = None):
        value = value or {}
        self.object = collections.OrderedDict()
        self.common_props = collections.OrderedDict()
        self.filenames = list(filenames or [])
        self.reference = None
        self.number = number
        self.id = None
        self.url = None
        self._parent = weakref.ref(parent) if parent is not None else None
        self._context = None
        self._dialect = None
        self._log = log

        if '@context' in value:
            self._context = Context.from_value(value['@context'], base=base)
            base = self._context.base or base
        self.base = base

        for key, v in value.items():
            if key == '@context':
                self.object[key] = v
            elif key == 'columns':
                if isinstance(v, list) and all(isinstance(vv, dict) for vv in v):
                    v = [Column(vv, parent=self, base=self.base, log=log, number=i)
                         for i, vv in enumerate(v, start=1)]
                self.object[key] = v
            elif key == 'resources':
                if isinstance(v, list) and all(isinstance(vv, dict) for vv in v):
                    v = [Table(vv, parent=self, base=self.base, log=log) for vv in v]
                self.object[key] = v
            elif key == 'transformations':
                if isinstance(v, list) and all(isinstance(vv, dict) for vv in v):
                    v = [Transformation(vv, parent=self, base=self.base, log=log) for vv in v]
                self.object[key] = v
            elif key in ('dialect', 'tableSchema'):
                self.object[key] = self._child(Dialect if key == 'dialect' else Schema, v)
            elif key == 'url':
                self.object[key] = v
                self.url = self.resolve(v)
            elif key == '@id':
                self.object[key] = v
                self.id = self.resolve(v)
            elif ':' in key:
                self.common_props[key] = v
            else:
                self[key] = v

        if log and parent is None:
            log.debug('{}: filenames {}'.format(self.type, self.filenames))

    def _child(self, cls, value):
        if isinstance(value, str):
            location = self.resolve(value)
            try:
                data = utils.get_json(location)
            except (OSError, ValueError, requests.RequestException) as e:
                raise MetadataError('could not load {} from {}: {}'.format(
                    cls.__name__, location, e))
            res = cls(data, parent=self, base=location, filenames=[location], log=self._log)
            res.reference = value
            return res
        if isinstance(value, dict):
            return cls(value, parent=self, base=self.base, log=self._log)
        # Invalid, but preserved for validation.
        return value

    @classmethod
    def fromvalue(cls, value, type: typing.Optional[str] = None, **kw) -> 'Metadata':
        """
        Create a description node from a JSON object (or its serialization).

        :param type: Name of the node type; if not given, the type is determined from the \
        object's `@type` or - failing that - from the presence of marker properties.
        :raises MetadataError: If the type cannot be determined.
        """
        if isinstance(value, Metadata):
            return value
        if hasattr(value, 'read'):
            value = value.read()
        if isinstance(value, (str, bytes)):
            value = json.loads(value, object_pairs_hook=collections.OrderedDict)
        if not isinstance(value, dict):
            raise MetadataError('metadata must be a JSON object')
        value = collections.OrderedDict(value)
        if kw.get('parent') is None and '@context' not in value:
            value['@context'] = CSVW_CONTEXT
        klass = cls if cls is not Metadata and type is None else _dispatch(value, type)
        return klass(value, **kw)

    @classmethod
    def open(cls, location, log=None, **kw) -> 'Metadata':
        """
        Load a metadata document from a local path, a `file:` URL or an HTTP(S) URL.

        :raises requests.HTTPError: If the document cannot be fetched via HTTP.
        :raises MetadataError: If a local document cannot be read or is not valid JSON.
        """
        location = utils.location_uri(location)
        try:
            data = utils.get_json(location)
        except (OSError, ValueError) as e:
            raise MetadataError('could not load metadata from {}: {}'.format(location, e))
        if log:
            log.info('load metadata: {}'.format(location))
        kw.setdefault('base', location)
        return Metadata.fromvalue(
            data,
            type=None if cls is Metadata else cls.__name__,
            filenames=[location],
            log=log,
            **kw)

    @property
    def type(self) -> str:
        return self.__class__.__name__

    @property
    def parent(self) -> typing.Optional['Metadata']:
        return self._parent() if self._parent is not None else None

    @property
    def context(self) -> Context:
        """The context declared by this node, or by the nearest ancestor declaring one."""
        if self._context is not None:
            return self._context
        parent = self.parent
        if parent is not None:
            return parent.context
        return Context(base=self.base)

    def resolve(self, url):
        if not isinstance(url, str):
            return url
        return urljoin(self.base, url) if self.base else url

    def __repr__(self):
        return '<{} {}>'.format(self.type, dict(self.object))

    def __getitem__(self, key):
        if ':' in key:
            return self.common_props[key]
        return self.object[key]

    def __setitem__(self, key, value):
        if key == 'dialect':
            self.dialect = value
        elif ':' in key:
            self.common_props[key] = value
        elif self.PROPERTIES.get(key) == 'natural_language':
            self.set_natural_language(key, value)
        elif key in COUNT_PROPERTIES and isinstance(value, str) and value.isdigit():
            self.object[key] = int(value)
        else:
            self.object[key] = value

    def __contains__(self, key):
        return key in self.object or key in self.common_props

    def __eq__(self, other):
        if not isinstance(other, Metadata):
            return False
        return self.type == other.type and self.asdict() == other.asdict()

    __hash__ = None

    def get(self, key, default=None):
        if ':' in key:
            return self.common_props.get(key, default)
        return self.object.get(key, default)

    def set_natural_language(self, key, value):
        """
        Natural language properties are stored as mapping of language tags to lists of strings.
        """
        if isinstance(value, (str, list)):
            value = collections.OrderedDict(
                [(self.context.default_language or 'und', utils.ensure_list(value))])
        self.object[key] = value

    def inherit(self, key):
        """
        The value of an inherited property, looked up along the chain of ancestors.
        """
        if key in self.object:
            return self.object[key]
        parent = self.parent
        if parent is not None:
            return parent.inherit(key)

    def children(self) -> typing.Iterator['Metadata']:
        for value in self.object.values():
            for v in (value if isinstance(value, list) else [value]):
                if isinstance(v, Metadata):
                    yield v

    #
    # Dialect resolution
    #
    @property
    def dialect(self) -> 'Dialect':
        """
        The effective dialect: declared on this node, inherited from an ancestor or synthesized
        from the defaults for tables and table groups. The result is cached.
        """
        if self._dialect is None:
            own = self.object.get('dialect')
            parent = self.parent
            if isinstance(own, Dialect):
                self._dialect = own
            elif parent is not None:
                self._dialect = parent.dialect
            elif isinstance(self, (Table, TableGroup)):
                self._dialect = Dialect({}, parent=self, base=self.base)
            else:
                raise MetadataError("Can't access dialect from {} without a parent".format(
                    self.type))
        return self._dialect

    @dialect.setter
    def dialect(self, value):
        self.invalidate_dialect()
        if value is None:
            self.object.pop('dialect', None)
        elif isinstance(value, Dialect):
            value._parent = weakref.ref(self)
            self.object['dialect'] = value
        else:
            self.object['dialect'] = self._child(Dialect, value)

    def invalidate_dialect(self):
        """
        Clear the cached dialect of this node and all its descendants.
        """
        self._dialect = None
        for child in self.children():
            child.invalidate_dialect()

    #
    # Validation
    #
    def validate(self, log=None) -> 'Metadata':
        """
        Validate the node and its descendants.

        :param log: If a log is passed, errors are reported to it rather than raised.
        :raises MetadataError: Listing all problems, one per line.
        """
        errors = self._validation_errors()
        if errors:
            utils.log_or_raise('\n'.join(errors), log=log, exception_cls=MetadataError)
        return self

    @property
    def errors(self) -> typing.List[str]:
        return self._validation_errors()

    @property
    def is_valid(self) -> bool:
        return not self._validation_errors()

    def _expected(self):
        expected = list(self.PROPERTIES)
        if self.INHERITS:
            expected.extend(INHERITED_PROPERTIES)
        return expected

    def _validation_errors(self) -> typing.List[str]:
        errors = []
        expected = self._expected()
        keys = [k for k in self.object if k not in ('@id', '@context')]
        unexpected = [k for k in keys if k not in expected]
        if isinstance(self, Dialect):
            # Dialects do not accept common properties.
            unexpected.extend(self.common_props)
        if unexpected:
            errors.append('{} has unexpected keys: {}'.format(self.type, unexpected))
        missing = [k for k in self.REQUIRED if k not in keys]
        if missing:
            errors.append('{} missing required keys: {}'.format(self.type, missing))

        for key in keys:
            if key in expected:
                self._validate_property(key, self.object[key], errors)
        return errors

    def _invalid(self, key, msg):
        return "{} has invalid property '{}': {}".format(self.type, key, msg)

    def _validate_children(self, key, value, cls, errors):
        if isinstance(value, list) and all(isinstance(v, cls) for v in value):
            for v in value:
                errors.extend(v._validation_errors())
            return True
        errors.append(self._invalid(key, 'expected array of {}s'.format(cls.__name__)))
        return False

    def _validate_property(self, key, value, errors):
        if key in INHERITED_PROPERTIES:
            self._validate_inherited(key, value, errors)
        elif key == 'columns':
            if self._validate_children(key, value, Column, errors):
                names = [c.name for c in value]
                if len(set(names)) != len(names):
                    errors.append(self._invalid(key, 'must have unique names: {}'.format(names)))
        elif key == 'resources':
            self._validate_children(key, value, Table, errors)
        elif key == 'transformations':
            self._validate_children(key, value, Transformation, errors)
        elif key in ('dialect', 'tableSchema'):
            cls = Dialect if key == 'dialect' else Schema
            if isinstance(value, cls):
                errors.extend(value._validation_errors())
            else:
                errors.append(self._invalid(key, 'expected a {} Description'.format(cls.__name__)))
        elif key in SINGLE_CHAR_PROPERTIES:
            if not (isinstance(value, str) and len(value) == 1):
                errors.append(self._invalid(
                    key, '{!r}, expected a single character string'.format(value)))
        elif key in ('lineTerminator', 'urlTemplate'):
            if not isinstance(value, str):
                errors.append(self._invalid(key, '{!r}, expected a string'.format(value)))
        elif key in BOOLEAN_PROPERTIES:
            if not _is_boolean_like(value):
                errors.append(self._invalid(
                    key, '{!r}, expected true, false, 1, or 0'.format(value)))
        elif key == 'encoding':
            try:
                codecs.lookup(value)
            except (LookupError, TypeError):
                errors.append(self._invalid(key, '{!r}, expected a valid encoding'.format(value)))
        elif key in COUNT_PROPERTIES:
            if not _is_count(value):
                errors.append(self._invalid(
                    key, '{!r} must be a non-negative integer'.format(value)))
        elif key == 'name':
            if not (isinstance(value, str) and NAME_SYNTAX.match(value)):
                errors.append(self._invalid(key, '{}, expected proper string format'.format(value)))
        elif key == 'primaryKey':
            names = [c.name for c in self.columns]
            for ref in utils.ensure_list(value):
                if ref not in names:
                    errors.append(self._invalid(key, 'column reference not found {}'.format(ref)))
        elif key == 'foreignKeys':
            self._validate_foreign_keys(key, value, errors)
        elif key in ('scriptFormat', 'targetFormat'):
            if not utils.is_absolute_url(self.resolve(value)):
                errors.append(self._invalid(
                    key, '{!r}, expected valid absolute URL'.format(value)))
        elif key == 'source':
            if value not in ('json', 'rdf'):
                errors.append(self._invalid(key, '{!r}, expected json or rdf'.format(value)))
        elif key == 'tableDirection':
            if value not in ('rtl', 'ltr', 'auto', 'default'):
                errors.append(self._invalid(
                    key, '{!r}, expected rtl, ltr, auto or default'.format(value)))
        elif key == 'title':
            if not (isinstance(value, dict) and all(
                    isinstance(v, str) for v in _natural_language_values(value))):
                errors.append(self._invalid(
                    key, '{!r}, expected a valid natural language property'.format(value)))
        elif key == 'trim':
            if str(value).lower() not in ('true', 'false', '1', '0', 'start', 'end'):
                errors.append(self._invalid(
                    key, '{!r}, expected true, false, 1, 0, start or end'.format(value)))
        elif key == 'url':
            if not utils.is_valid_uri(self.url):
                errors.append(self._invalid(key, '{!r}, expected valid URL'.format(value)))
        elif key == '@type':
            if value != self.type:
                errors.append(self._invalid(key, '{!r}, expected {}'.format(value, self.type)))

    def _validate_foreign_keys(self, key, value, errors):
        if not isinstance(value, list):
            errors.append(self._invalid(key, 'expected array of foreign key definitions'))
            return
        names = [c.name for c in self.columns]
        for fk in value:
            if not isinstance(fk, dict):
                errors.append(self._invalid(key, 'foreign key must be an object: {!r}'.format(fk)))
                continue
            if set(fk) != {'columns', 'reference'}:
                errors.append(self._invalid(
                    key, 'expected columns and reference, got {}'.format(list(fk))))
            for ref in utils.ensure_list(fk.get('columns')):
                if ref not in names:
                    errors.append(self._invalid(key, 'column reference not found {}'.format(ref)))
            reference = fk.get('reference')
            if not isinstance(reference, dict):
                errors.append(self._invalid(
                    key, 'reference must be an object: {!r}'.format(reference)))
            elif 'resource' in reference and 'schemaReference' in reference:
                errors.append(self._invalid(
                    key, 'reference has a schemaReference: {!r}'.format(reference)))

    def _validate_inherited(self, key, value, errors):
        parent = self.parent
        pv = parent.inherit(key) if parent is not None else None

        error = None
        if key in ('aboutUrl', 'default', 'propertyUrl', 'valueUrl'):
            if not isinstance(value, str):
                error = 'string'
        elif key == 'datatype':
            error = self._datatype_error(value)
        elif key == 'lang':
            if not (isinstance(value, str) and tags.check(value)):
                error = 'valid BCP47 language tag'
        elif key == 'null':
            if not all(isinstance(v, str) for v in utils.ensure_list(value)) \
                    or isinstance(value, dict):
                error = 'string or array of strings'
        elif key == 'ordered':
            if not _is_boolean_like(value):
                error = 'boolean'
        elif key == 'separator':
            if not (value is None or (isinstance(value, str) and len(value) == 1)):
                error = 'single character'
        elif key == 'textDirection':
            if value not in ('rtl', 'ltr', 'auto', 'inherit'):
                error = 'rtl, ltr, auto or inherit'

        if error is None and pv is not None:
            if key in ('default', 'separator', 'textDirection'):
                if pv != value:
                    error = 'same as that defined on parent'
            elif key == 'ordered':
                if _as_bool(pv) != _as_bool(value):
                    error = 'same as that defined on parent'
            elif key == 'datatype':
                parent_bases = [dt.base for dt in normalize_datatypes(pv)]
                if not all(any(is_derived_from(dt.base, b) for b in parent_bases)
                           for dt in normalize_datatypes(value)):
                    error = 'compatible datatype of that defined on parent'
            elif key == 'lang':
                if not value.startswith(pv):
                    error = 'lang expected to restrict {}'.format(pv)
            elif key == 'null':
                if not set(utils.ensure_list(value)).issubset(utils.ensure_list(pv)):
                    error = 'subset of that defined on parent'

        if error:
            errors.append("{} has invalid property '{}' ('{}'): expected {}".format(
                self.type, key, value, error))

    @staticmethod
    def _datatype_error(value):
        try:
            datatypes = normalize_datatypes(value)
        except TypeError:
            return 'valid datatype'
        for dt in datatypes:
            if not isinstance(dt.base, str) or not (
                    dt.base in DATATYPES or dt.base in UNSUPPORTED or
                    utils.is_absolute_url(dt.base)):
                return 'valid datatype'
            for facet in ('length', 'minLength', 'maxLength'):
                v = getattr(dt, facet)
                if v is not None and not _is_count(v):
                    return 'non-negative integer {}'.format(facet)
            for v, _ in dt.lower_bounds + dt.upper_bounds:
                if not _valid_bound(v):
                    return 'numeric or valid date/time bounds'

    #
    # Normalization and serialization
    #
    def normalize(self) -> 'Metadata':
        """
        Bring property values into their normal form, in place.

        :raises MetadataError: If common properties or notes are not valid JSON-LD.
        """
        categories = dict(INHERITED_PROPERTIES, **self.PROPERTIES)
        for key, value in list(self.object.items()):
            category = categories.get(key)
            if key == '@context':
                self.object[key] = CSVW_CONTEXT
            elif key == 'notes':
                self.object[key] = self._normalize_jsonld(value)
            elif category == 'link':
                self.object[key] = self.resolve(value)
            elif category == 'natural_language':
                if not isinstance(value, dict):
                    self.set_natural_language(key, value)
                else:
                    self.object[key] = collections.OrderedDict(
                        (k, utils.ensure_list(v)) for k, v in value.items())
            elif key in BOOLEAN_PROPERTIES:
                self.object[key] = _as_bool(value)
            elif key in COUNT_PROPERTIES and str(value).isdigit():
                self.object[key] = int(value)
            elif key == 'datatype':
                self.object[key] = normalize_datatypes(value)
        for key, value in self.common_props.items():
            self.common_props[key] = self._normalize_jsonld(value)
        if 'url' in self.object:
            self.url = self.object['url']
        for child in self.children():
            child.normalize()
        return self

    def _normalize_jsonld(self, value):
        try:
            return jsonld.normalize_jsonld(value, self.context)
        except ValueError as e:
            raise MetadataError(str(e))

    def asdict(self) -> collections.OrderedDict:
        """
        A JSON serializable representation of the node.
        """
        def _asdict(v):
            if isinstance(v, list):
                return [_asdict(vv) for vv in v]
            if hasattr(v, 'asdict'):
                return v.asdict()
            return v

        res = collections.OrderedDict((k, _asdict(v)) for k, v in self.object.items())
        res.update(self.common_props)
        return res

    def common_properties(self) -> collections.OrderedDict:
        """
        Notes and common properties, simplified to plain JSON values.
        """
        res = collections.OrderedDict()
        if 'notes' in self.object:
            res['notes'] = jsonld.to_json(self.object['notes'], flatten_list=True)
        for key, value in self.common_props.items():
            res[key] = jsonld.to_json(value, flatten_list=True)
        return res

    def common_property_triples(self, subject, notes=False) -> typing.Iterator[tuple]:
        """
        RDF triples for the common properties of the node and - optionally - its notes.
        """
        items = list(self.common_props.items())
        if notes and 'notes' in self.object:
            items.insert(0, ('csvw:note', self.object['notes']))
        for key, value in items:
            yield from jsonld.common_property_triples(
                subject, key, self._normalize_jsonld(value), self.context)

    def copy(self, parent=None) -> 'Metadata':
        """
        A deep copy of the node, attached to `parent`.
        """
        res = copy.deepcopy(self)
        res._parent = weakref.ref(parent) if parent is not None else None
        res._reparent()
        return res

    def __deepcopy__(self, memo):
        res = self.__class__.__new__(self.__class__)
        memo[id(self)] = res
        for k, v in self.__dict__.items():
            if k in ('_parent', '_log', '_context'):
                res.__dict__[k] = v
            elif k == '_dialect':
                res.__dict__[k] = None
            else:
                res.__dict__[k] = copy.deepcopy(v, memo)
        return res

    def _reparent(self):
        self._dialect = None
        for child in self.children():
            child._parent = weakref.ref(self)
            child._reparent()

    def merge(self, *others, log=None) -> 'Metadata':
        """
        Merge other descriptions into a copy of this one.

        .. seealso:: :func:`tabularld.merge.merge`
        """
        from .merge import merge

        return merge(self, *others, log=log)

    #
    # Reading data
    #
    def embedded_metadata(self, source, base=None, log=None) -> 'Table':
        """
        Extract the metadata embedded in a tabular data file, i.e. notes from skipped rows and
        column titles from header rows, using the dialect of this node.

        :param source: Data to read, see :func:`tabularld.dsv.iterrows`.
        :param base: URL of the data, used as `url` of the resulting table description.
        """
        dialect = self.dialect
        if base is None and isinstance(source, str) and '\n' not in source:
            base = utils.location_uri(source)
        trim, prefix = dialect.get('trim'), dialect.get('commentPrefix')
        skip = dialect.get('skipColumns') + dialect.get('headerColumnCount')
        skip_rows, header_rows = dialect.get('skipRows'), dialect.get('headerRowCount')

        table = collections.OrderedDict([
            ('@context', CSVW_CONTEXT),
            ('url', base or ''),
            ('@type', 'Table'),
        ])
        notes, columns = [], []
        for i, row in enumerate(dsv.iterrows(source, dialect=dialect)):
            if i < skip_rows:
                value = _trim(dialect.get('delimiter').join(row), trim)
                if prefix and value.startswith(prefix):
                    value = value[len(prefix):]
                if value:
                    notes.append(value)
            elif i < skip_rows + header_rows:
                for index, value in enumerate(row):
                    if index < skip:
                        continue
                    while len(columns) <= index - skip:
                        columns.append(collections.OrderedDict([
                            ('title', collections.OrderedDict([('und', [])]))]))
                    columns[index - skip]['title']['und'].append(_trim(value, trim))
            else:
                break
        if notes:
            table['notes'] = notes
        table['tableSchema'] = collections.OrderedDict(
            [('@type', 'Schema'), ('columns', columns)])
        if log:
            log.debug('embedded metadata: {} notes, {} columns'.format(len(notes), len(columns)))
        return Table(table, base=base, log=log)


def _trim(value, trim):
    if trim in ('true', 'start'):
        value = value.lstrip()
    if trim in ('true', 'end'):
        value = value.rstrip()
    return value


class TableGroup(Metadata):
    """
    A group of tables, described by a metadata document with a `resources` property.
    """
    PROPERTIES = collections.OrderedDict([
        ('@id', 'link'),
        ('@type', 'atomic'),
        ('notes', 'array'),
        ('resources', 'array'),
        ('tableSchema', 'object'),
        ('tableDirection', 'atomic'),
        ('dialect', 'object'),
        ('transformations', 'array'),
    ])
    REQUIRED = []
    MARKERS = {'resources'}

    @property
    def resources(self) -> typing.List['Table']:
        return [t for t in self.object.get('resources') or [] if isinstance(t, Table)]

    def for_table(self, url) -> typing.Optional['Table']:
        """
        The description of the table with URL `url`, with a context based on this URL.
        """
        for table in self.resources:
            if table.url == url:
                table._context = self.context.rebased(url)
                return table

    def each_resource(self) -> typing.Iterator['Table']:
        for url in [t.url for t in self.resources]:
            yield self.for_table(url)

    def to_atd(self) -> collections.OrderedDict:
        return collections.OrderedDict([
            ('@id', self.id),
            ('@type', 'AnnotatedTableGroup'),
            ('resources', [t.to_atd() for t in self.resources]),
        ])


class Table(Metadata):
    """
    The description of a single table, i.e. tabular data file.
    """
    PROPERTIES = collections.OrderedDict([
        ('@id', 'link'),
        ('@type', 'atomic'),
        ('dialect', 'object'),
        ('notes', 'array'),
        ('suppressOutput', 'atomic'),
        ('tableDirection', 'atomic'),
        ('tableSchema', 'object'),
        ('transformations', 'array'),
        ('url', 'link'),
    ])
    REQUIRED = ['url']
    MARKERS = {'dialect', 'tableSchema', 'transformations'}

    @property
    def tableSchema(self) -> 'Schema':
        schema = self.object.get('tableSchema')
        if not isinstance(schema, Schema):
            schema = self.object['tableSchema'] = Schema(
                {}, parent=self, base=self.base, log=self._log)
        return schema

    @property
    def notes(self) -> list:
        return utils.ensure_list(self.object.get('notes'))

    @property
    def suppressOutput(self) -> bool:
        return _as_bool(self.object.get('suppressOutput', False))

    @property
    def transformations(self) -> typing.List['Transformation']:
        return [t for t in self.object.get('transformations') or []
                if isinstance(t, Transformation)]

    def each_row(self, source, log=None) -> typing.Iterator[Row]:
        """
        Iterate over the data rows of the table.

        Skipped rows and header rows are not yielded, nor are rows starting with the comment
        prefix or - if the dialect says so - blank rows. Skipped rows still count for the
        `sourceNumber` of a row.

        :param source: Data to read, see :func:`tabularld.dsv.iterrows`.
        """
        dialect = self.dialect
        skipped = dialect.get('skipRows') + dialect.get('headerRowCount')
        prefix = dialect.get('commentPrefix')
        number = 0
        for source_number, data in enumerate(dsv.iterrows(source, dialect=dialect), start=1):
            if source_number <= skipped:
                continue
            if prefix and data and data[0].startswith(prefix):
                if log:
                    log.info('{}: comment {}'.format(
                        source_number, dialect.get('delimiter').join(data)[len(prefix):].strip()))
                continue
            if dialect.get('skipBlankRows') and not any(c.strip() for c in data):
                continue
            number += 1
            yield Row.build(data, self, number, source_number, log=log)

    def to_atd(self) -> collections.OrderedDict:
        return collections.OrderedDict([
            ('@id', self.id),
            ('@type', 'AnnotatedTable'),
            ('columns', [c.to_atd() for c in self.tableSchema.columns]),
            ('rows', []),
            ('url', self.url),
        ])


class Transformation(Metadata):
    """
    A template specification for transforming the table into another format.
    """
    PROPERTIES = collections.OrderedDict([
        ('@id', 'link'),
        ('@type', 'atomic'),
        ('source', 'atomic'),
        ('targetFormat', 'link'),
        ('scriptFormat', 'link'),
        ('title', 'natural_language'),
        ('url', 'link'),
    ])
    REQUIRED = ['targetFormat', 'scriptFormat']
    MARKERS = {'targetFormat', 'scriptFormat', 'source'}
    INHERITS = False


class Schema(Metadata):
    PROPERTIES = collections.OrderedDict([
        ('@id', 'link'),
        ('@type', 'atomic'),
        ('columns', 'array'),
        ('foreignKeys', 'array'),
        ('primaryKey', 'column_reference'),
        ('urlTemplate', 'atomic'),
    ])
    REQUIRED = []
    MARKERS = {'columns', 'primaryKey', 'foreignKeys', 'urlTemplate'}

    @property
    def columns(self) -> typing.List['Column']:
        return [c for c in self.object.get('columns') or [] if isinstance(c, Column)]

    def column(self, name) -> typing.Optional['Column']:
        for col in self.columns:
            if col.name == name:
                return col

    def add_column(self, number: int) -> 'Column':
        """
        Create a column description for a data column without one.
        """
        col = Column({}, parent=self, base=self.base, log=self._log, number=number)
        cols = self.object.get('columns')
        if not isinstance(cols, list):
            cols = self.object['columns'] = []
        cols.append(col)
        return col


class Column(Metadata):
    """
    The description of a single column.

    .. seealso:: https://www.w3.org/TR/tabular-metadata/#columns
    """
    PROPERTIES = collections.OrderedDict([
        ('@id', 'link'),
        ('@type', 'atomic'),
        ('name', 'atomic'),
        ('suppressOutput', 'atomic'),
        ('title', 'natural_language'),
        ('required', 'atomic'),
        ('virtual', 'atomic'),
    ])
    REQUIRED = []
    MARKERS = {'name', 'required'}

    @property
    def table(self) -> typing.Optional[Table]:
        node = self.parent
        while node is not None and not isinstance(node, Table):
            node = node.parent
        return node

    @property
    def source_number(self) -> int:
        number = self.number or 0
        if self.table is not None:
            dialect = self.dialect
            number += dialect.get('skipColumns') + dialect.get('headerColumnCount')
        return number

    @property
    def title(self) -> typing.Optional[dict]:
        return self.object.get('title')

    @property
    def name(self) -> str:
        """
        The declared name, or a name derived from the first title (in the default language if
        available), or `_col.<number>`.
        """
        if self.object.get('name'):
            return self.object['name']
        title = self.title
        if isinstance(title, dict) and title:
            lang = self.context.default_language or 'und'
            titles = utils.ensure_list(title.get(lang) or title.get('und')) or \
                _natural_language_values(title)
            if titles and isinstance(titles[0], str) and titles[0]:
                t = titles[0]
                return utils.pct_encode(t[:1], 'a-zA-Z0-9') + utils.pct_encode(t[1:], r'\w.')
        return '_col.{}'.format(self.number)

    @property
    def suppressOutput(self) -> bool:
        return _as_bool(self.object.get('suppressOutput', False))

    @property
    def virtual(self) -> bool:
        return _as_bool(self.object.get('virtual', False))

    @property
    def required(self) -> bool:
        return _as_bool(self.object.get('required', False))

    @property
    def datatypes(self):
        datatype = self.inherit('datatype')
        return normalize_datatypes(datatype) if datatype is not None else []

    @property
    def column_id(self) -> str:
        table = self.table
        return '{}#col={}'.format(table.url if table is not None else '', self.source_number)

    def to_atd(self) -> collections.OrderedDict:
        table = self.table
        return collections.OrderedDict([
            ('@id', self.column_id),
            ('@type', 'Column'),
            ('table', table.id if table is not None else None),
            ('number', self.number),
            ('sourceNumber', self.source_number),
            ('cells', []),
            ('virtual', self.virtual),
            ('name', self.name),
            ('title', self.title),
        ])


class Dialect(Metadata):
    """
    Dialect values are read via :meth:`Dialect.get`, falling back to `DIALECT_DEFAULTS`.

    .. seealso:: https://www.w3.org/TR/tabular-metadata/#dialect-descriptions
    """
    PROPERTIES = collections.OrderedDict(
        [('@id', 'link'), ('@type', 'atomic')] +
        [(k, 'atomic') for k in DIALECT_DEFAULTS])
    REQUIRED = []
    MARKERS = set(DIALECT_DEFAULTS)
    INHERITS = False

    def get(self, key, default=None):
        if key not in DIALECT_DEFAULTS:
            return super().get(key, default)
        if key not in self.object:
            if key == 'headerRowCount':
                return 1 if self.get('header') else 0
            if key == 'trim':
                return 'start' if self.get('skipInitialSpace') else 'false'
        value = self.object.get(key, DIALECT_DEFAULTS[key])
        if key in BOOLEAN_PROPERTIES:
            return _as_bool(value)
        if key in COUNT_PROPERTIES:
            return int(value) if str(value).isdigit() else DIALECT_DEFAULTS[key]
        if key == 'trim':
            value = str(value).lower()
            return {'1': 'true', '0': 'false'}.get(value, value)
        return value

    @property
    def escape_character(self) -> str:
        return '"' if self.get('doubleQuote') else '\\'


TYPES = collections.OrderedDict(
    (cls.__name__, cls) for cls in [TableGroup, Table, Transformation, Schema, Column, Dialect])


def _dispatch(value: dict, type_: typing.Optional[str]) -> type:
    if type_ is not None:
        if type_ not in TYPES:
            raise MetadataError('If provided, type must be one of {}'.format(list(TYPES)))
        return TYPES[type_]
    if '@type' in value:
        if not isinstance(value['@type'], str) or value['@type'] not in TYPES:
            raise MetadataError('Unknown metadata type: {!r}'.format(value['@type']))
        return TYPES[value['@type']]
    keys = set(value)
    for cls in TYPES.values():
        if keys & cls.MARKERS:
            return cls
    raise MetadataError('Unknown metadata type: {}'.format(list(value)))
