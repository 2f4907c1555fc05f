import io
import re
import json
import pathlib
import collections
from urllib.parse import urlparse, unquote
from urllib.request import url2pathname

import requests
from rfc3986 import uri_reference, validators, exceptions

__all__ = [
    'is_url', 'is_absolute_url', 'is_valid_uri', 'log_or_raise', 'json_open', 'get_json',
    'ensure_list', 'pct_encode', 'as_local_path', 'location_uri']

JSON_HEADERS = {'Accept': 'application/ld+json, application/json'}

_uri_validator = validators.Validator().check_validity_of(
    'scheme', 'userinfo', 'host', 'port', 'path', 'query', 'fragment')
_absolute_uri_validator = validators.Validator().require_presence_of('scheme').check_validity_of(
    'scheme', 'userinfo', 'host', 'port', 'path', 'query', 'fragment')


def is_url(s):
    return re.match(r'https?://', str(s))


def _validate(s, validator):
    if not isinstance(s, str) or re.search(r'\s', s):
        return False
    # IRIs are checked in their URI-mapped form.
    s = pct_encode(s, r'\x00-\x7f')
    try:
        validator.validate(uri_reference(s))
        return True
    except (exceptions.ValidationError, exceptions.InvalidComponentsError):
        return False


def is_valid_uri(s) -> bool:
    """Syntactic check of a (possibly relative) URI reference."""
    return _validate(s, _uri_validator)


def is_absolute_url(s) -> bool:
    return _validate(s, _absolute_uri_validator)


def log_or_raise(msg, log=None, level='warning', exception_cls=ValueError):
    if log:
        getattr(log, level)(msg)
    else:
        raise exception_cls(msg)


def ensure_list(v):
    if v is None:
        return []
    return list(v) if isinstance(v, (list, tuple)) else [v]


def pct_encode(s, keep):
    """
    Percent-encode all characters of `s` not matched by the regex character class `keep`.

    >>> pct_encode('On Street', r'\\w.')
    'On%20Street'
    """
    res = []
    for c in s:
        if re.match('[{}]'.format(keep), c):
            res.append(c)
        else:
            res.extend('%{:02X}'.format(b) for b in c.encode('utf-8'))
    return ''.join(res)


def as_local_path(location):
    """
    Return a `pathlib.Path` for local locations (plain paths or `file:` URLs), `None` otherwise.
    """
    if isinstance(location, pathlib.Path):
        return location
    location = str(location)
    if location.startswith('file:'):
        return pathlib.Path(url2pathname(unquote(urlparse(location).path)))
    if is_url(location):
        return None
    return pathlib.Path(location)


def location_uri(location) -> str:
    """
    Local paths are turned into absolute `file:` URLs, URLs are returned unchanged.
    """
    if isinstance(location, str) and (location.startswith('file:') or is_url(location)):
        return location
    return pathlib.Path(str(location)).resolve().as_uri()


def json_open(filename, mode='r', encoding='utf-8'):
    return io.open(filename, mode, encoding=encoding)


def get_json(fname):
    """
    Load JSON from a local path, a `file:` URL or an HTTP(S) URL.

    :raises requests.HTTPError: if the document cannot be fetched.
    """
    path = as_local_path(fname)
    if path is None:
        res = requests.get(str(fname), headers=JSON_HEADERS)
        res.raise_for_status()
        return res.json(object_pairs_hook=collections.OrderedDict)
    with json_open(str(path)) as f:
        return json.load(f, object_pairs_hook=collections.OrderedDict)
