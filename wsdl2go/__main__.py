#!/usr/bin/env python
'''
    Command line front end: generates a Go SOAP client from a WSDL and
    writes it to a file.

    Usage: python -m wsdl2go [-p package] [-o outfile] service.wsdl
'''

import argparse
import logging
import re
import sys

from . import __version__
from .errors import Wsdl2GoError
from .generator import GoWSDL
from .loader import Fetcher

logger = logging.getLogger('wsdl2go')

_go_identifier = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

go_keywords = frozenset([
    'break', 'case', 'chan', 'const', 'continue', 'default', 'defer', 'else',
    'fallthrough', 'for', 'func', 'go', 'goto', 'if', 'import', 'interface',
    'map', 'package', 'range', 'return', 'select', 'struct', 'switch', 'type',
    'var',
])


def go_package_name(value):
    '''argparse type for -p: a Go identifier that can name a package'''
    if not _go_identifier.match(value) or value == '_' or value in go_keywords:
        raise argparse.ArgumentTypeError('%r is not a valid Go package name' % value)
    return value


def build_parser():
    parser = argparse.ArgumentParser(prog='wsdl2go',
                                     description='Generate a Go SOAP client from a WSDL document')
    parser.add_argument('wsdl', help='path or URL of the WSDL document')
    parser.add_argument('-p', '--package', default='myservice', type=go_package_name,
                        help='Go package name (default: %(default)s)')
    parser.add_argument('-o', '--output', default='myservice.go',
                        help="output file, '-' for stdout (default: %(default)s)")
    parser.add_argument('-i', '--insecure', action='store_true',
                        help='skip TLS verification when downloading the WSDL')
    parser.add_argument('--timeout', type=float, default=30,
                        help='timeout in seconds for each remote fetch (default: %(default)s)')
    parser.add_argument('--strict', action='store_true',
                        help='fail on unsupported schema constructs instead of degrading them')
    parser.add_argument('-v', '--verbose', action='store_true', help='debug logging')
    parser.add_argument('--version', action='version', version='%(prog)s ' + __version__)
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s %(name)s: %(message)s')

    g = GoWSDL(args.wsdl, package=args.package,
               fetch=Fetcher(timeout=args.timeout, verify=not args.insecure),
               timeout=args.timeout, strict=args.strict)

    try:
        source = g.generate()
    except Wsdl2GoError as e:
        logger.error('%s', e)
        return 1

    if args.output == '-':
        sys.stdout.write(source.decode('utf-8'))
    else:
        with open(args.output, 'wb') as fp:
            fp.write(source)
        logger.info('Wrote %s', args.output)

    return 0


if __name__ == '__main__':
    sys.exit(main())
