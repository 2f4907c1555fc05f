"""
JSON-LD values of common properties and notes.

Metadata may carry arbitrary JSON-LD as the value of vocabulary-qualified "common properties"
(e.g. `dc:title`) and of `notes`. We support the subset of JSON-LD allowed by the metadata
vocabulary: strings, value objects (`@value` with `@type` or `@language`), and node objects with
`@id`, `@type` and further properties.

.. seealso:: https://www.w3.org/TR/tabular-metadata/#common-properties
"""
import math
import typing
import collections

from rdflib import URIRef, Literal, BNode, RDF
from language_tags import tags

from .context import Context
from .datatypes import DATATYPES

__all__ = ['normalize_jsonld', 'common_property_triples', 'to_json', 'literal_to_json']

KINDS_BY_IRI = {kind.iri: kind for kind in DATATYPES.values()}


def normalize_jsonld(value, context: Context):
    """
    Normalize a JSON-LD value: strings become value objects (tagged with the default language if
    there is one), `@id` values are resolved against the base.

    :raises ValueError: If the value is not valid JSON-LD in the subset allowed in metadata.
    """
    if isinstance(value, list):
        return [normalize_jsonld(v, context) for v in value]
    if isinstance(value, str):
        res = collections.OrderedDict([('@value', value)])
        if context.default_language:
            res['@language'] = context.default_language
        return res
    if not isinstance(value, dict):
        return value

    if '@value' in value:
        if '@language' in value and '@type' in value:
            raise ValueError(
                'Value object may not contain both @type and @language: {}'.format(dict(value)))
        if '@language' in value and not tags.check(str(value['@language'])):
            raise ValueError(
                'Value object with @language must use valid language: {}'.format(dict(value)))
        if '@type' in value and \
                not _is_absolute(context.expand_iri(value['@type'], vocab=True)):
            raise ValueError(
                'Value object with @type must use defined type: {}'.format(dict(value)))
        return value

    res = collections.OrderedDict()
    for k, v in value.items():
        if k == '@id':
            if str(v).startswith('_:'):
                raise ValueError('Invalid use of explicit blank node on @id')
            res[k] = context.expand_iri(v, document_relative=True)
        elif k == '@type':
            for t in (v if isinstance(v, list) else [v]):
                if not _is_absolute(context.expand_iri(t, vocab=True)):
                    raise ValueError('Invalid type {} in JSON-LD context'.format(t))
            res[k] = v
        elif k.startswith('@') or k.startswith('_:'):
            raise ValueError('Invalid use of {} in JSON-LD content'.format(k))
        else:
            res[k] = normalize_jsonld(v, context)
    return res


def _is_absolute(iri):
    return isinstance(iri, str) and ':' in iri and not iri.startswith('_:')


def common_property_triples(
        subject,
        prop: str,
        value,
        context: Context) -> typing.Generator[tuple, None, None]:
    """
    Generate the RDF triples for a common property.

    :param subject: The RDF term the property is attached to.
    :param prop: The property name, a compact IRI, CSVW term or absolute IRI.
    :param value: The (normalized) JSON-LD value.
    """
    predicate = prop if isinstance(prop, URIRef) else URIRef(context.expand_iri(prop, vocab=True))
    if isinstance(value, list):
        for v in value:
            yield from common_property_triples(subject, predicate, v, context)
    elif isinstance(value, dict):
        if '@value' in value:
            datatype = value.get('@type')
            yield subject, predicate, Literal(
                value['@value'],
                lang=value.get('@language'),
                datatype=URIRef(context.expand_iri(datatype, vocab=True)) if datatype else None,
                normalize=False)
        else:
            node = URIRef(context.expand_iri(value['@id'], document_relative=True)) \
                if '@id' in value else BNode()
            yield subject, predicate, node
            types = value.get('@type', [])
            for t in (types if isinstance(types, list) else [types]):
                yield node, RDF.type, URIRef(context.expand_iri(t, vocab=True))
            for k, v in value.items():
                if not k.startswith('@'):
                    yield from common_property_triples(node, k, v, context)
    else:
        yield subject, predicate, Literal(value)


def to_json(obj, flatten_list=False):
    """
    Simplify JSON-LD data by refactoring trivial objects.

    .. code-block:: python

        >>> to_json([{'@value': 'x', '@language': 'en'}], flatten_list=True)
        'x'
    """
    if isinstance(obj, dict):
        if '@value' in obj:
            obj = obj['@value']
        elif len(obj) == 1 and '@id' in obj:
            obj = obj['@id']
    if isinstance(obj, dict):
        return collections.OrderedDict(
            (k, to_json(v, flatten_list=flatten_list)) for k, v in obj.items())
    if isinstance(obj, list):
        if len(obj) == 1 and flatten_list:
            return to_json(obj[0], flatten_list=flatten_list)
        return [to_json(v, flatten_list=flatten_list) for v in obj]
    return obj


def literal_to_json(term):
    """
    Format an RDF term as JSON value: numbers and booleans as native JSON values, everything else
    as string.
    """
    if not isinstance(term, Literal):
        return str(term)
    kind = KINDS_BY_IRI.get(str(term.datatype)) if term.datatype else None
    if kind is None:
        return str(term)
    if kind.name == 'boolean':
        return str(term) in ('true', '1')
    if kind.numeric:
        if issubclass(kind, DATATYPES['integer']):
            return int(str(term))
        value = float(str(term).replace('INF', 'inf'))
        if math.isnan(value) or math.isinf(value):
            return str(term)
        return value
    return str(term)
