"""
Merging of metadata descriptions.

Merging combines descriptions of the same tables from different sources (user supplied metadata,
linked or found metadata documents, metadata embedded in the data) into one tree. How a property
is merged depends on its category, see `Metadata.PROPERTIES`.

.. seealso:: https://www.w3.org/TR/2015/WD-tabular-metadata-20150416/#merging-metadata
"""
import collections

from . import utils
from .context import CSVW_CONTEXT
from .metadata import MetadataError, Metadata, TableGroup, Table, INHERITED_PROPERTIES

__all__ = ['MergeError', 'merge', 'merge_into']


class MergeError(MetadataError):
    pass


def promote(node: Metadata) -> Metadata:
    """
    Tables are merged as part of a table group: the parent of a table, or - for a table without
    parent - a new group with the table as single resource.
    """
    if not isinstance(node, Table):
        return node
    if node.parent is not None:
        return node.parent
    group = TableGroup({}, base=node.base, filenames=node.filenames, log=node._log)
    table = node.copy(parent=group)
    if '@context' in table.object:
        group.object['@context'] = table.object.pop('@context')
    group._context, table._context = node._context, None
    group.object['resources'] = [table]
    return group


def merge(receiver: Metadata, *others, log=None) -> Metadata:
    """
    Merge descriptions into a copy of `receiver`.

    Values from `receiver` take precedence over values from `others`, which in turn take
    precedence in the order given.

    :param others: `Metadata` instances or JSON objects.
    :raises MergeError: If descriptions of different types are merged.
    """
    if not others:
        return receiver
    result = promote(receiver).copy()
    for other in others:
        if not isinstance(other, Metadata):
            other = Metadata.fromvalue(other, log=log)
        other = promote(other)
        if type(result) is not type(other):
            raise MergeError("Can't merge {} with {}".format(result.type, other.type))
        merge_into(result, other, log=log)
    result.object['@context'] = CSVW_CONTEXT
    return result


def _is_string(value):
    return isinstance(value, str) or (isinstance(value, Metadata) and value.reference is not None)


def _titles_overlap(a: dict, b: dict) -> bool:
    def values(titles):
        return [v for vs in titles.values() for v in utils.ensure_list(vs)]

    return any(set(utils.ensure_list(b.get(lang))) & set(utils.ensure_list(vs))
               for lang, vs in a.items()) \
        or bool(set(utils.ensure_list(a.get('und'))) & set(values(b))) \
        or bool(set(utils.ensure_list(b.get('und'))) & set(values(a)))


def _as_list(value):
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def merge_into(receiver: Metadata, other: Metadata, log=None) -> Metadata:
    """
    Merge `other` into `receiver`, in place.

    :raises MergeError: If `receiver` and `other` are of different types.
    """
    if type(receiver) is not type(other):
        raise MergeError('Merging non-equivalent metadata types: {} vs {}'.format(
            receiver.type, other.type))

    receiver.filenames.extend(f for f in other.filenames if f not in receiver.filenames)
    receiver.normalize()
    other = other.copy(parent=other.parent).normalize()
    receiver.invalidate_dialect()

    categories = dict(INHERITED_PROPERTIES, **receiver.PROPERTIES)
    for key, value in other.object.items():
        if key == '@context':
            continue
        category = categories.get(key)
        if category == 'array':
            _merge_array(receiver, key, value, log)
        elif category == 'object':
            mine = receiver.object.get(key)
            if _is_string(mine) or _is_string(value):
                if mine is None:
                    receiver.object[key] = _adopt(value, receiver)
            elif isinstance(mine, Metadata):
                merge_into(mine, value, log=log)
            else:
                receiver.object[key] = _adopt(value, receiver)
        elif category == 'natural_language' and isinstance(value, dict):
            receiver.object[key] = _merge_natural_language(receiver.object.get(key) or {}, value)
        elif receiver.object.get(key) is None:
            receiver.object[key] = _adopt(value, receiver)
            if key == '@id':
                receiver.id = receiver.object[key]
            elif key == 'url':
                receiver.url = receiver.object[key]

    for key, value in other.common_props.items():
        if key not in receiver.common_props:
            receiver.common_props[key] = value
    receiver.invalidate_dialect()
    return receiver


def _adopt(value, parent):
    if isinstance(value, Metadata):
        return value.copy(parent=parent)
    return value


def _merge_array(receiver, key, value, log):
    existing = _as_list(receiver.object.get(key))
    value = _as_list(value)
    if key == 'notes':
        receiver.object[key] = existing + value
        return

    receiver.object[key] = existing
    if key == 'resources':
        for table in value:
            match = [t for t in existing if isinstance(t, Table) and t.url == table.url]
            if match:
                merge_into(match[0], table, log=log)
            else:
                if log:
                    log.debug('merge: append resource {}'.format(table.url))
                existing.append(_adopt(table, receiver))
    elif key == 'transformations':
        for tr in value:
            match = [
                t for t in existing if isinstance(t, Metadata) and
                t.get('targetFormat') == tr.get('targetFormat') and
                t.get('scriptFormat') == tr.get('scriptFormat')]
            if match:
                merge_into(match[0], tr, log=log)
            else:
                existing.append(_adopt(tr, receiver))
    elif key == 'columns':
        for index, col in enumerate(value):
            mine = existing[index] if index < len(existing) else None
            if mine is None:
                if log:
                    log.debug('merge: columns {}: added'.format(index))
                new = _adopt(col, receiver)
                new.number = index + 1
                existing.append(new)
            elif mine.get('name') and mine.get('name') == col.get('name'):
                if log:
                    log.debug('merge: columns {}: name={}'.format(index, col.get('name')))
                merge_into(mine, col, log=log)
            elif isinstance(mine.get('title'), dict) and isinstance(col.get('title'), dict) \
                    and _titles_overlap(mine.get('title'), col.get('title')):
                if log:
                    log.debug('merge: columns {}: title={}'.format(index, col.get('title')))
                merge_into(mine, col, log=log)
            elif log:
                log.debug('merge: columns {}: ignored'.format(index))
    elif key == 'foreignKeys':
        existing.extend(fk for fk in value if fk not in existing)
    else:
        existing.extend(v for v in value if v not in existing)


def _merge_natural_language(mine: dict, other: dict) -> collections.OrderedDict:
    res = collections.OrderedDict((k, list(utils.ensure_list(v))) for k, v in mine.items())
    for lang, values in other.items():
        current = res.setdefault(lang, [])
        current.extend(v for v in utils.ensure_list(values) if v not in current)
    if 'und' in res:
        res['und'] = [
            v for v in res['und']
            if not any(lang != 'und' and v in values for lang, values in res.items())]
        if not res['und']:
            del res['und']
    return res
