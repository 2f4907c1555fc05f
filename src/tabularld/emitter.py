"""
Conversion of annotated tables to RDF and JSON.

.. seealso::

    - https://www.w3.org/TR/csv2rdf/
    - https://www.w3.org/TR/csv2json/
"""
import json
import typing
import datetime
import collections

from rdflib import Graph, URIRef, BNode, Literal, Namespace, RDF

from . import utils
from . import jsonld
from .context import NAMESPACES
from .discovery import for_input
from .metadata import Metadata, TableGroup, Table, _as_bool

__all__ = ['EmitterError', 'Emitter', 'CSVW', 'PROV', 'DCAT']

CSVW = Namespace(NAMESPACES['csvw'])
PROV = Namespace(NAMESPACES['prov'])
DCAT = Namespace(NAMESPACES['dcat'])


class EmitterError(ValueError):
    pass


def _root(node: Metadata) -> Metadata:
    while node.parent is not None:
        node = node.parent
    return node


class Emitter:
    """
    Emits the data of a table or a group of tables as RDF statements, as flat JSON or in the
    annotated table model.

    .. code-block:: python

        >>> emitter = Emitter.from_input('tree-ops.csv', noprov=True)
        >>> graph = emitter.graph()

    :param metadata: A `TableGroup` or `Table` description. The data of each table is read from \
    the table's `url`.
    :param source: Data source to read instead of the `url` of a single table.
    :param minimal: Only emit statements derived from the cells of the data.
    :param noprov: Do not emit provenance information; implied by `minimal`.
    :param strict: Raise an `EmitterError` for statements with invalid IRIs.
    :param log: Diagnostic sink, passed on when reading rows.
    """
    def __init__(self,
                 metadata: Metadata,
                 source=None,
                 minimal: bool = False,
                 noprov: bool = False,
                 strict: bool = False,
                 log=None):
        if not isinstance(metadata, (TableGroup, Table)):
            raise EmitterError('Opened inappropriate metadata type: {}'.format(
                getattr(metadata, 'type', type(metadata).__name__)))
        self.metadata = metadata
        # Tables only hold a weak reference to their group.
        self.root = _root(metadata)
        self.source = source
        self.minimal = minimal
        self.noprov = noprov or minimal
        self.strict = strict
        self.log = log

    @classmethod
    def from_input(cls, location, metadata=None, log=None, **kw) -> 'Emitter':
        """
        Create an emitter for a metadata document or a tabular data file.

        For data files the metadata is determined via :func:`tabularld.discovery.for_input`.
        """
        if str(location).endswith('.json') or str(location).endswith('.jsonld'):
            return cls(Metadata.open(location, log=log), log=log, **kw)
        group = for_input(location, metadata=metadata, log=log)
        table = group.for_table(utils.location_uri(location))
        res = cls(table if table is not None else group, source=location, log=log, **kw)
        res.root = group
        return res

    def tables(self) -> typing.Iterator[typing.Tuple[Table, typing.Any]]:
        if isinstance(self.metadata, TableGroup):
            for table in self.metadata.each_resource():
                if not table.suppressOutput:
                    yield table, table.url
        else:
            yield self.metadata, self.source if self.source is not None else self.metadata.url

    def _rows(self, table, source):
        if self.log:
            self.log.info('reading {}'.format(table.url))
        return table.each_row(source, log=self.log)

    #
    # RDF
    #
    def _check(self, triple):
        if self.strict:
            for term in triple:
                if isinstance(term, URIRef) and not utils.is_absolute_url(str(term)):
                    raise EmitterError('{} is invalid: {} is not an absolute IRI'.format(
                        ' '.join(t.n3() for t in triple), term))
        return triple

    def triples(self) -> typing.Iterator[tuple]:
        """
        The RDF statements for the data, as `rdflib` triples.

        :raises EmitterError: In strict mode, for statements with invalid IRIs.
        """
        start = datetime.datetime.now(datetime.timezone.utc)
        tables = []
        if isinstance(self.metadata, TableGroup):
            group = URIRef(self.metadata.id) if self.metadata.id else BNode()
            prov_subject = group
            if not self.minimal:
                yield self._check((group, RDF.type, CSVW.TableGroup))
                for triple in self.metadata.common_property_triples(group, notes=True):
                    yield self._check(triple)
            for table, source in self.tables():
                resource = URIRef(table.id) if table.id else BNode()
                tables.append((table, resource))
                if not self.minimal:
                    yield self._check((group, CSVW.table, resource))
                for triple in self._table_triples(table, resource, source):
                    yield self._check(triple)
        else:
            table, source = next(self.tables())
            prov_subject = URIRef(table.id) if table.id else BNode()
            tables.append((table, prov_subject))
            for triple in self._table_triples(table, prov_subject, source):
                yield self._check(triple)

        if not self.noprov:
            for triple in self._provenance(prov_subject, tables, start):
                yield triple

    def _table_triples(self, table, resource, source):
        if not self.minimal:
            yield resource, RDF.type, CSVW.Table
            yield resource, CSVW.url, URIRef(table.url)
            for triple in table.common_property_triples(resource, notes=True):
                yield triple

        for row in self._rows(table, source):
            row_resource = BNode()
            default_subject = URIRef(row.resource) if row.resource else BNode()
            if not self.minimal:
                yield resource, CSVW.row, row_resource
                yield row_resource, CSVW.rownum, Literal(row.number)
                yield row_resource, CSVW.url, URIRef(row.id)
            described = []
            for cell in row.values:
                if cell.column.suppressOutput:
                    continue
                subject = URIRef(cell.aboutUrl) if cell.aboutUrl else default_subject
                if not self.minimal and subject not in described:
                    described.append(subject)
                    yield row_resource, CSVW.describes, subject
                predicate = URIRef(cell.propertyUrl)
                if cell.valueUrl:
                    yield subject, predicate, URIRef(cell.valueUrl)
                elif _as_bool(cell.column.inherit('ordered')) \
                        and isinstance(cell.value, list):
                    yield from self._list_triples(subject, predicate, cell.value)
                else:
                    for value in utils.ensure_list(cell.value):
                        yield subject, predicate, value

    @staticmethod
    def _list_triples(subject, predicate, values):
        nodes = [BNode() for _ in values]
        yield subject, predicate, nodes[0] if nodes else RDF.nil
        for i, (node, value) in enumerate(zip(nodes, values)):
            yield node, RDF.first, value
            yield node, RDF.rest, nodes[i + 1] if i + 1 < len(nodes) else RDF.nil

    def _provenance(self, subject, tables, start):
        activity = BNode()
        for table, resource in tables:
            distribution = BNode()
            yield resource, DCAT.distribution, distribution
            yield distribution, RDF.type, DCAT.Distribution
            yield distribution, DCAT.downloadURL, URIRef(table.url)

        yield subject, PROV.wasGeneratedBy, activity
        yield activity, RDF.type, PROV.Activity
        yield activity, PROV.startedAtTime, Literal(start)
        yield activity, PROV.endedAtTime, Literal(datetime.datetime.now(datetime.timezone.utc))

        usages = [(table.url, 'csvEncodedTabularData') for table, _ in tables]
        usages.extend((fn, 'tabularMetadata') for fn in self.root.filenames)
        for location, role in usages:
            usage = BNode()
            yield activity, PROV.qualifiedUsage, usage
            yield usage, RDF.type, PROV.Usage
            yield usage, PROV.entity, URIRef(location)
            yield usage, PROV.hadRole, CSVW[role]

    def graph(self) -> Graph:
        """
        The RDF statements for the data, collected in an `rdflib.Graph`.
        """
        g = Graph()
        for prefix in ['csvw', 'dcat', 'prov', 'xsd']:
            g.bind(prefix, NAMESPACES[prefix])
        for triple in self.triples():
            g.add(triple)
        return g

    #
    # JSON
    #
    def _described_by(self, res):
        filenames = self.root.filenames
        if filenames and not self.noprov:
            res['describedBy'] = filenames[0] if len(filenames) == 1 else list(filenames)
        return res

    def _table_hash(self, table, source) -> collections.OrderedDict:
        res = collections.OrderedDict([('url', table.url)])
        res.update(table.common_properties())
        rows = res['row'] = []
        for row in self._rows(table, source):
            r = collections.OrderedDict()
            if row.resource:
                r['url'] = row.resource
            r['rownum'] = row.number
            for cell in row.values:
                if cell.column.virtual or cell.column.suppressOutput:
                    continue
                if cell.valueUrl:
                    value = cell.valueUrl
                elif isinstance(cell.value, list):
                    value = [jsonld.literal_to_json(v) for v in cell.value]
                elif cell.value is not None:
                    value = jsonld.literal_to_json(cell.value)
                else:
                    value = None
                r[cell.column.name] = value
            rows.append(r)
        return res

    def to_hash(self) -> collections.OrderedDict:
        """
        The data as flat JSON object: tables with their URL, common properties and rows keyed by
        column name.
        """
        if isinstance(self.metadata, TableGroup):
            res = collections.OrderedDict([('tables', [])])
            res.update(self.metadata.common_properties())
            for table, source in self.tables():
                res['tables'].append(self._table_hash(table, source))
            return self._described_by(res)

        table, source = next(self.tables())
        res = self._table_hash(table, source)
        if not self.noprov:
            res['distribution'] = collections.OrderedDict([('downloadURL', table.url)])
        return self._described_by(res)

    def _table_atd(self, table, source) -> collections.OrderedDict:
        rows = list(self._rows(table, source))
        res = table.to_atd()
        res['rows'] = [row.to_atd() for row in rows]
        for row in rows:
            for index, cell in enumerate(row.values):
                res['columns'][index]['cells'].append(cell.id)
        return res

    def to_atd(self) -> collections.OrderedDict:
        """
        The data in the annotated table model, i.e. with every table, column, row and cell
        identified and all cell errors included.
        """
        if isinstance(self.metadata, TableGroup):
            res = self.metadata.to_atd()
            res['resources'] = [
                self._table_atd(table, table.url) for table in self.metadata.each_resource()]
            return res
        return self._table_atd(*next(self.tables()))

    def to_json(self, atd=False, indent=None) -> str:
        return json.dumps(self.to_atd() if atd else self.to_hash(), indent=indent)
