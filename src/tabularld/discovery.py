"""
Locating the metadata for a tabular data file.

Metadata for a file is combined from user supplied metadata, a metadata document linked from the
HTTP response for the file, metadata found at standard locations next to the file and the metadata
embedded in the file itself.

.. seealso:: https://www.w3.org/TR/tabular-data-model/#locating-metadata
"""
import typing
import warnings
from urllib.parse import urljoin

import requests

from . import utils
from .merge import merge, promote
from .metadata import Metadata, MetadataError, TableGroup, Table

__all__ = ['for_input', 'link_metadata_url']


def _head(url, log=None) -> typing.Optional[requests.Response]:
    if not utils.is_url(url):
        return None
    try:
        return requests.head(url, allow_redirects=True)
    except requests.RequestException as e:
        if log:
            log.info('for_input: HEAD {} failed: {}'.format(url, e))


def link_metadata_url(url, response: typing.Optional[requests.Response] = None, log=None):
    """
    The target of a `Link` header with `rel="describedby"` in the HTTP response for `url`.
    """
    response = response if response is not None else _head(url, log=log)
    if response is not None:
        link = response.links.get('describedby')
        if link and link.get('url'):
            return urljoin(url, link['url'])


def _header_absent(response: typing.Optional[requests.Response]) -> bool:
    if response is None:
        return False
    params = response.headers.get('Content-Type', '').split(';')
    return any(p.strip() == 'header=absent' for p in params)


def _describes(md: Metadata, url: str) -> bool:
    if isinstance(md, TableGroup):
        return any(t.url == url for t in md.resources)
    return isinstance(md, Table) and md.url == url


def for_input(url, metadata=None, log=None) -> TableGroup:
    """
    Determine the metadata for the tabular data at `url`.

    :param url: Local path or URL of the data.
    :param metadata: User supplied metadata - a `Metadata` instance, a JSON object or the \
    location of a metadata document. Takes precedence over all other metadata.
    :return: The merged metadata, a `TableGroup` with a table description for `url`.
    """
    location = utils.location_uri(url)
    if metadata is None or isinstance(metadata, Metadata):
        user = metadata
    elif isinstance(metadata, dict):
        user = Metadata.fromvalue(metadata, base=location, log=log)
    else:
        user = Metadata.open(metadata, log=log)

    response = _head(location, log=log)
    if user is None and _header_absent(response):
        user = Metadata.fromvalue({'dialect': {'header': False}}, type='TableGroup', log=log)

    candidates = []
    linked = link_metadata_url(location, response=response)
    if linked:
        candidates.append(('linked', linked))
    candidates.append(('found', location + '-metadata.json'))
    candidates.append(('found', urljoin(location, 'metadata.json')))

    found = []
    for reason, loc in candidates:
        try:
            md = Metadata.open(loc, log=log)
        except (MetadataError, requests.RequestException) as e:
            if log:
                log.debug('for_input: failed to load {} metadata {}: {}'.format(reason, loc, e))
            continue
        if not _describes(md, location):
            warnings.warn('Ignoring {} metadata {}: it does not describe {}'.format(
                reason, loc, location))
            continue
        if log:
            log.info('for_input: using {} metadata {}'.format(reason, loc))
        found.append(md)

    # The dialect for reading the embedded metadata comes from the metadata found so far.
    sources = [md for md in [user] + found if md is not None]
    parse_md = merge(sources[0], *sources[1:], log=log) if sources else Table({}, base=location)
    described = parse_md
    if isinstance(parse_md, TableGroup):
        described = ([t for t in parse_md.resources if t.url == location] or [parse_md])[0]
    embedded = described.embedded_metadata(location, base=location, log=log)

    if user is not None:
        embedded = merge(user, embedded, log=log)
    return promote(merge(embedded, *found, log=log))
