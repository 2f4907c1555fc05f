import sys
import json
import argparse

import requests
from colorama import init, Fore, Style

from tabularld.emitter import Emitter

FORMATS = ['turtle', 'nt', 'xml', 'json-ld']


def parsed_args(desc, args, *argspecs):
    if args is None:  # pragma: no cover
        parser = argparse.ArgumentParser(description=desc)
        for kw, kwargs in argspecs:
            parser.add_argument(*kw, **kwargs)
        return parser.parse_args()
    return args


def exit(ret, test=False):
    if test:
        return ret
    sys.exit(ret)  # pragma: no cover


URL_ARG = (['url'], dict(help='URL or local path to CSV or JSON metadata file.'))
METADATA_ARG = (
    ['--metadata'],
    dict(default=None, help='URL or local path of user metadata, overriding found metadata.'))
MINIMAL_ARG = (['--minimal'], dict(action='store_true', default=False))
NOPROV_ARG = (['--noprov'], dict(action='store_true', default=False))


def _emitter(args):
    return Emitter.from_input(
        args.url,
        metadata=args.metadata,
        minimal=args.minimal,
        noprov=args.noprov)


def tabular2json(args=None, test=False):
    args = parsed_args(
        "Convert tabular data to JSON, see https://www.w3.org/TR/csv2json/",
        args,
        URL_ARG,
        METADATA_ARG,
        MINIMAL_ARG,
        NOPROV_ARG,
        (['--atd'], dict(
            action='store_true',
            default=False,
            help='Output the annotated table model instead of the flat JSON.')),
    )
    print(_emitter(args).to_json(atd=args.atd, indent=4))
    return exit(0, test=test)


def tabular2rdf(args=None, test=False):
    args = parsed_args(
        "Convert tabular data to RDF, see https://www.w3.org/TR/csv2rdf/",
        args,
        URL_ARG,
        METADATA_ARG,
        MINIMAL_ARG,
        NOPROV_ARG,
        (['--format'], dict(choices=FORMATS, default='turtle')),
    )
    print(_emitter(args).graph().serialize(format=args.format))
    return exit(0, test=test)


def tabularvalidate(args=None, test=False):
    init()
    args = parsed_args(
        "Validate tabular data and its metadata.",
        args,
        URL_ARG,
        (['-v', '--verbose'], dict(action='store_true', default=False)),
    )
    ret, messages = 0, []
    try:
        emitter = Emitter.from_input(args.url, noprov=True)
        messages.extend(emitter.root.errors)
        for table, source in emitter.tables():
            for row in table.each_row(source):
                for cell in row.values:
                    messages.extend('{}: {}'.format(cell.id, e) for e in cell.errors)
        if messages:
            ret = 1
            print(Style.BRIGHT + Fore.RED + 'FAIL')
            if args.verbose:
                for msg in messages:
                    print(Style.DIM + msg)
        else:
            print(Style.BRIGHT + Fore.GREEN + 'OK')
    except (ValueError, OSError, requests.RequestException) as e:
        ret = 2
        print(Style.BRIGHT + Fore.RED + 'FAIL')
        if args.verbose:
            print(Style.DIM + Fore.BLUE + str(e))
    return exit(ret, test=test)


if __name__ == '__main__':  # pragma: no cover
    tabular2json()
