"""
A minimal JSON-LD context for CSVW metadata.

Metadata documents must declare the CSVW context `http://www.w3.org/ns/csvw`, optionally amended
with `@base` and `@language`. We do not implement JSON-LD context processing in general; instead
we expand the prefixes and terms defined in the CSVW context.

.. seealso:: https://www.w3.org/TR/tabular-metadata/#top-level-properties
"""
import typing
from urllib.parse import urljoin

import attr

from . import utils

__all__ = ['Context', 'NAMESPACES', 'CSVW_CONTEXT', 'CSVW_TERMS']

CSVW_CONTEXT = 'http://www.w3.org/ns/csvw'

NAMESPACES = {
    'as': 'https://www.w3.org/ns/activitystreams#',
    'cc': 'http://creativecommons.org/ns#',
    'csvw': 'http://www.w3.org/ns/csvw#',
    'dc': 'http://purl.org/dc/terms/',
    'dc11': 'http://purl.org/dc/elements/1.1/',
    'dcat': 'http://www.w3.org/ns/dcat#',
    'dcterms': 'http://purl.org/dc/terms/',
    'foaf': 'http://xmlns.com/foaf/0.1/',
    'ldp': 'http://www.w3.org/ns/ldp#',
    'oa': 'http://www.w3.org/ns/oa#',
    'org': 'http://www.w3.org/ns/org#',
    'owl': 'http://www.w3.org/2002/07/owl#',
    'prov': 'http://www.w3.org/ns/prov#',
    'qb': 'http://purl.org/linked-data/cube#',
    'rdf': 'http://www.w3.org/1999/02/22-rdf-syntax-ns#',
    'rdfs': 'http://www.w3.org/2000/01/rdf-schema#',
    'schema': 'http://schema.org/',
    'sioc': 'http://rdfs.org/sioc/ns#',
    'skos': 'http://www.w3.org/2004/02/skos/core#',
    'vcard': 'http://www.w3.org/2006/vcard/ns#',
    'void': 'http://rdfs.org/ns/void#',
    'xml': 'http://www.w3.org/XML/1998/namespace',
    'xsd': 'http://www.w3.org/2001/XMLSchema#',
}

CSVW_TERMS = """Cell
Column
Datatype
Dialect
Direction
ForeignKey
JSON
NumericFormat
Row
Schema
Table
TableGroup
TableReference
Transformation
aboutUrl
base
columnReference
columns
commentPrefix
datatype
decimalChar
default
delimiter
describes
dialect
doubleQuote
encoding
foreignKeys
format
groupChar
header
headerColumnCount
headerRowCount
lang
length
lineTerminators
maxExclusive
maxInclusive
maxLength
maximum
minExclusive
minInclusive
minLength
minimum
name
note
null
ordered
pattern
primaryKey
propertyUrl
quoteChar
reference
referencedRows
required
resource
row
rowTitles
rownum
schemaReference
scriptFormat
separator
skipBlankRows
skipColumns
skipInitialSpace
skipRows
source
suppressOutput
table
tableDirection
tableSchema
targetFormat
textDirection
title
transformations
trim
uriTemplate
url
valueUrl
virtual""".split()


@attr.s(frozen=True)
class Context:
    """
    Resolves short names to absolute identifiers.

    A `Context` is immutable; use :meth:`rebased` to obtain a copy with a different base.
    """
    base = attr.ib(default=None)
    default_language = attr.ib(default=None)

    @classmethod
    def from_value(cls, value, base=None) -> 'Context':
        """
        Create a `Context` from the value of a `@context` property.

        :param value: Either the CSVW context URL or a pair `[URL, {"@base": ..., "@language": ...}]`
        :param base: Location of the document, used to resolve a relative `@base`.
        """
        lang = None
        if isinstance(value, list) and len(value) == 2 and isinstance(value[1], dict):
            local = value[1]
            if '@base' in local:
                base = urljoin(base, local['@base']) if base else local['@base']
            lang = local.get('@language')
        return cls(base=base, default_language=lang)

    def rebased(self, base) -> 'Context':
        return attr.evolve(self, base=base)

    @property
    def language(self) -> typing.Optional[str]:
        """The default language to use for literals, `None` for `und`."""
        return None if self.default_language in (None, 'und') else self.default_language

    def expand_iri(self, value, vocab=False, document_relative=False):
        """
        Expand a compact IRI, CSVW term or relative URL.

        :param vocab: Expand CSVW terms to the CSVW namespace.
        :param document_relative: Resolve relative references against `base`.
        """
        if not isinstance(value, str):
            return value
        prefix, sep, suffix = value.partition(':')
        if sep and not suffix.startswith('//') and prefix in NAMESPACES:
            return NAMESPACES[prefix] + suffix
        if sep and utils.is_absolute_url(value):
            return value
        if vocab and value in CSVW_TERMS:
            return NAMESPACES['csvw'] + value
        if document_relative and self.base:
            return urljoin(str(self.base), value)
        return value
