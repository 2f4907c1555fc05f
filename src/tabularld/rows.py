"""
Rows and cells of an annotated table.

A :class:`Row` is built from the list of strings read for one line of data. Building it casts each
raw value according to its column description and expands the column's URI templates.

.. seealso:: https://www.w3.org/TR/tabular-data-model/#parsing-cells
"""
import typing
import collections
from urllib.parse import unquote

import attr
import uritemplate

from . import utils
from . import jsonld
from .caster import cast, trim_value
from .datatypes import Datatype

__all__ = ['Row', 'Cell']

URL_PROPERTIES = ['aboutUrl', 'propertyUrl', 'valueUrl']


def expand_template(template, variables: dict, context) -> str:
    """
    Expand a URI template and resolve the result against the base of `context`.
    """
    expanded = uritemplate.URITemplate(str(template)).expand(var_dict=variables)
    return context.expand_iri(expanded, document_relative=True)


@attr.s
class Cell:
    table = attr.ib(repr=False, eq=False)
    column = attr.ib(repr=False, eq=False)
    row = attr.ib(repr=False, eq=False)
    stringValue = attr.ib()
    value = attr.ib(default=None)
    errors = attr.ib(default=attr.Factory(list))
    aboutUrl = attr.ib(default=None)
    propertyUrl = attr.ib(default=None)
    valueUrl = attr.ib(default=None)

    def set_urls(self, variables: dict, context):
        for prop in URL_PROPERTIES:
            template = self.column.inherit(prop) or ('{#_name}' if prop == 'propertyUrl' else None)
            if template:
                setattr(self, prop, expand_template(template, variables, context))

    @property
    def id(self) -> str:
        """The cell identifier, as RFC 7111 fragment of the table URL."""
        return '{}#cell={},{}'.format(
            self.table.url, self.row.sourceNumber, self.column.source_number)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def __str__(self):
        if isinstance(self.value, list):
            return ' '.join(str(v) for v in self.value)
        return '' if self.value is None else str(self.value)

    def to_atd(self) -> collections.OrderedDict:
        value = self.value
        if isinstance(value, list):
            value = [jsonld.literal_to_json(v) for v in value]
        elif value is not None:
            value = jsonld.literal_to_json(value)
        return collections.OrderedDict([
            ('@id', self.id),
            ('@type', 'Cell'),
            ('column', self.column.column_id),
            ('row', self.row.id),
            ('stringValue', self.stringValue),
            ('value', value),
            ('errors', self.errors),
        ])


@attr.s
class Row:
    table = attr.ib(repr=False, eq=False)
    number = attr.ib()
    sourceNumber = attr.ib()
    values = attr.ib(default=attr.Factory(list))
    resource = attr.ib(default=None)
    context = attr.ib(default=None, repr=False, eq=False)

    @property
    def id(self) -> str:
        return '{}#row={}'.format(self.table.url, self.sourceNumber)

    @property
    def is_valid(self) -> bool:
        return all(cell.is_valid for cell in self.values)

    def asdict(self) -> collections.OrderedDict:
        """
        Mapping of column names to cell values.
        """
        return collections.OrderedDict((c.column.name, c.value) for c in self.values)

    def to_atd(self) -> collections.OrderedDict:
        return collections.OrderedDict([
            ('@id', self.id),
            ('@type', 'Row'),
            ('table', self.table.id),
            ('number', self.number),
            ('sourceNumber', self.sourceNumber),
            ('cells', [c.to_atd() for c in self.values]),
        ])

    @classmethod
    def build(cls, data: typing.List[str], table, number: int, source_number: int, log=None):
        """
        Build a row from the raw strings of a line of data.

        :param data: The cells of the line, including skipped columns.
        :param table: The :class:`tabularld.metadata.Table` describing the data.
        :param number: Number of the row, counting data rows only.
        :param source_number: Number of the line in the data source.
        """
        row = cls(
            table=table,
            number=number,
            sourceNumber=source_number,
            context=table.context.rebased(table.url))
        dialect = table.dialect
        skip = dialect.get('skipColumns') + dialect.get('headerColumnCount')
        trim = dialect.get('trim')
        schema = table.tableSchema
        columns = schema.columns
        variables = {'_row': number, '_sourceRow': source_number}

        data = list(data)
        # Virtual columns, and data rows shorter than the schema, get null cells.
        for index in range(len(data), len(columns) + skip):
            nulls = utils.ensure_list(columns[index - skip].inherit('null')) \
                if index >= skip else []
            data.append(nulls[0] if nulls else '')

        for index, raw in enumerate(data):
            if index < skip:
                continue
            if index - skip >= len(columns):
                columns.append(schema.add_column(index - skip + 1))
            column = columns[index - skip]
            cell = Cell(table, column, row, raw)
            row.values.append(cell)

            value = raw
            if value == '':
                value = column.inherit('default') or ''
            separator = column.inherit('separator')
            if separator:
                pieces = value.split(separator) if value else []
            else:
                pieces = [value]

            datatypes = column.datatypes or [Datatype(base='string')]
            nulls = utils.ensure_list(column.inherit('null')) or ['']
            lang = column.inherit('lang') or table.context.default_language
            lang = None if lang in (None, 'und') else lang
            literals = []
            for piece in pieces:
                piece = trim_value(piece, datatypes[0].base, trim)
                if piece in nulls:
                    continue
                literal, errors = cast(piece, datatypes, language=lang, trim=trim)
                cell.errors.extend(errors)
                literals.append(literal)

            if separator:
                cell.value = literals
                variables[column.name] = [str(lit) for lit in literals]
            elif literals:
                cell.value = literals[0]
                variables[column.name] = str(literals[0])

            if cell.errors and log:
                log.warning('{}: cell {},{}: {}'.format(
                    number, source_number, column.source_number, '; '.join(cell.errors)))

        for cell in row.values:
            cell.set_urls(
                dict(
                    variables,
                    _name=unquote(cell.column.name),
                    _column=cell.column.number,
                    _sourceColumn=cell.column.source_number),
                row.context)

        template = schema.get('urlTemplate')
        if template:
            row.resource = expand_template(template, variables, row.context)
        return row
