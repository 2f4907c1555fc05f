# tabularld - https://www.w3.org/TR/tabular-data-primer/

from .metadata import (
    Metadata, MetadataError, TableGroup, Table, Transformation, Schema, Column, Dialect)
from .merge import MergeError, merge
from .datatypes import Datatype
from .rows import Row, Cell
from .dsv import UnicodeReader, iterrows
from .discovery import for_input
from .emitter import Emitter, EmitterError

__all__ = [
    'Metadata', 'MetadataError',
    'TableGroup', 'Table', 'Transformation', 'Schema', 'Column', 'Dialect',
    'MergeError', 'merge',
    'Datatype',
    'Row', 'Cell',
    'UnicodeReader', 'iterrows',
    'for_input',
    'Emitter', 'EmitterError',
]

__title__ = 'tabularld'
__version__ = '0.1.0.dev0'
__license__ = 'Apache 2.0'
