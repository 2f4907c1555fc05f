"""Support for reading delimiter-separated value data.

Splitting text into rows and cells is delegated to Python's :mod:`csv` module; this module maps a
dialect description onto `csv.reader` formatting parameters and opens the various kinds of data
sources.

.. seealso:: https://docs.python.org/3/library/csv.html#dialects-and-formatting-parameters
"""
import io
import csv
import codecs
import typing
import pathlib

import requests

from . import utils

__all__ = ['UnicodeReader', 'iterrows', 'formatting_parameters', 'normalize_encoding']

ENCODING_MAP = {
    'UTF-8-BOM': 'utf-8-sig',  # Recognize the name of this encoding in R.
}

SOURCE = typing.Union[str, pathlib.Path, typing.IO, typing.Iterable]


def normalize_encoding(encoding: str) -> str:
    return codecs.lookup(ENCODING_MAP.get(encoding, encoding)).name


def formatting_parameters(dialect) -> dict:
    """
    Translate a dialect description into keyword arguments for `csv.reader`.
    """
    res = {
        'delimiter': dialect.get('delimiter'),
        'doublequote': dialect.get('doubleQuote'),
        # We have to hack around incompatible ways escape char is interpreted in CSVW
        # and python's csv lib:
        'escapechar': None if dialect.get('doubleQuote') else dialect.escape_character,
        'skipinitialspace': dialect.get('skipInitialSpace'),
        'strict': False,
    }
    if dialect.get('quoteChar'):
        res['quotechar'] = dialect.get('quoteChar')
    else:
        res['quoting'] = csv.QUOTE_NONE
    lt = dialect.get('lineTerminator')
    if isinstance(lt, str) and lt != 'auto':
        res['lineterminator'] = lt
    return res


class UnicodeReader:
    """
    Read rows of strings from delimiter-separated data.

    :param f: The source from which to read the data; a local path specified as `str` or \
    `pathlib.Path`, a `file:` or HTTP(S) URL, a file-like object, a `list` of lines or a \
    `list` of already tokenized rows.
    :param dialect: A :class:`tabularld.metadata.Dialect` instance.
    :param kw: Keyword arguments passed through to `csv.reader`.

    .. code-block:: python

        >>> with UnicodeReader(['a,b', '1,2']) as reader:
        ...     list(reader)
        [['a', 'b'], ['1', '2']]
    """
    def __init__(self, f: SOURCE, dialect=None, **kw):
        self.f = f
        self.encoding = normalize_encoding(kw.pop('encoding', 'utf-8'))
        self.kw = {}
        if dialect is not None:
            self.encoding = normalize_encoding(dialect.get('encoding'))
            self.kw = formatting_parameters(dialect)
        self.kw.update(kw)
        self._close = False
        self._rows = None

        # Excel exported CSV often starts with a BOM.
        if self.encoding == 'utf-8':
            self.encoding = 'utf-8-sig'

    def _open(self, location):
        path = utils.as_local_path(location)
        if path is None:
            res = requests.get(str(location))
            res.raise_for_status()
            return io.StringIO(res.content.decode(self.encoding), newline='')
        self._close = True
        return io.open(str(path), mode='rt', encoding=self.encoding, newline='')

    def __enter__(self):
        if isinstance(self.f, pathlib.Path):
            self.f = self._open(self.f)
        elif isinstance(self.f, str):
            if '\n' in self.f or '\r' in self.f:
                self.f = io.StringIO(self.f, newline='')
            else:
                self.f = self._open(self.f)
        elif hasattr(self.f, 'read'):
            content = self.f.read()
            if hasattr(self.f, 'seek'):
                # The same source is read for embedded metadata and for the data.
                self.f.seek(0)
            if isinstance(content, bytes):
                content = content.decode(self.encoding)
            self.f = io.StringIO(content, newline='')
        else:
            items = list(self.f)
            if items and all(isinstance(i, (list, tuple)) for i in items):
                self._rows = iter([list(i) for i in items])
            self.f = [i.decode(self.encoding) if isinstance(i, bytes) else i for i in items] \
                if self._rows is None else []
        self.reader = self._rows if self._rows is not None else csv.reader(self.f, **self.kw)
        return self

    def __next__(self) -> typing.List[str]:
        return list(next(self.reader))

    def __iter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._close:
            self.f.close()


def iterrows(source: SOURCE, dialect=None, **kw) -> typing.Generator[typing.List[str], None, None]:
    """
    Convenience factory function for a reader.

    :param source: Content to be read, see :class:`UnicodeReader`.
    :param dialect: Dialect description controlling the tokenization.
    :return: A generator over the rows, i.e. lists of strings.
    """
    with UnicodeReader(source, dialect=dialect, **kw) as r:
        for row in r:
            yield row
