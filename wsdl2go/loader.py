'''
    Fetches a WSDL document and every schema or WSDL it imports or
    includes, and merges them into one Definitions object.

    Documents are fetched one at a time, depth first. Each (namespace,
    location) pair is visited once, so self imports and mutual imports
    terminate and the shared schema is only merged once.
'''

import logging
import os
from urllib.parse import unquote, urljoin, urlparse

from lxml import etree
import requests
from xmlschema.names import XML_NAMESPACE, XSD_NAMESPACE, XSD_SCHEMA

from .errors import LoadError, ParseError, unsupported
from .wsdl import WSDL_DEFINITIONS, Definitions, parse_definitions
from .xsd import parse_schema

logger = logging.getLogger(__name__)

SOAP_ENCODING_NAMESPACE = 'http://schemas.xmlsoap.org/soap/encoding/'

# imports of these namespaces never need to be fetched
WELL_KNOWN_NAMESPACES = frozenset([
    XSD_NAMESPACE,
    XML_NAMESPACE,
    SOAP_ENCODING_NAMESPACE,
])

URL_SCHEMES = ('http', 'https', 'file')


def is_url(location):
    return urlparse(location).scheme in URL_SCHEMES


def join_location(base, location):
    '''Resolves location relative to the document that referenced it'''
    if is_url(location):
        return location
    if base and is_url(base):
        return urljoin(base, location)
    if os.path.isabs(location):
        return os.path.normpath(location)
    return os.path.normpath(os.path.join(os.path.dirname(base or ''), location))


class Fetcher(object):
    '''
        The default fetch capability: HTTP(S) GET through requests, bounded
        by `timeout` seconds, or a plain read for local paths and file URLs.
    '''

    def __init__(self, timeout=30, verify=True):
        self.timeout = timeout
        self.verify = verify

    def __call__(self, location):
        parsed = urlparse(location)
        if parsed.scheme in ('http', 'https'):
            try:
                resp = requests.get(location, timeout=self.timeout, verify=self.verify)
                resp.raise_for_status()
            except requests.RequestException as e:
                raise LoadError(location, e) from e
            return resp.content

        path = unquote(parsed.path) if parsed.scheme == 'file' else location
        try:
            with open(path, 'rb') as fp:
                return fp.read()
        except OSError as e:
            raise LoadError(location, e) from e


class DocumentLoader(object):
    '''
        Loads one WSDL (or standalone schema) and everything reachable from
        it. A loader instance is good for a single run.
    '''

    def __init__(self, fetch=None, timeout=30, strict=False):
        self.fetch = fetch or Fetcher(timeout=timeout)
        self.strict = strict

        # (namespace, location) pairs already followed
        self.visited = set()
        self.loaded = set()

    def load(self, location):
        if not is_url(location):
            location = os.path.normpath(location)
        root = self._parse(location)
        self.loaded.add(location)

        if root.tag == XSD_SCHEMA:
            schema = parse_schema(root, location)
            self.visited.add((schema.target_namespace, location))
            defs = Definitions(schema.target_namespace, location)
            self._add_schema(defs, schema, (0,))
        else:
            defs, imports, schema_elems = parse_definitions(root, location)
            self.visited.add((defs.target_namespace, location))
            self._add_definitions(defs, defs, imports, schema_elems, ())

        # fetch order is depth first; pin the merged order to the position in
        # the import tree rather than to when a document arrived
        defs.schemas.sort(key=lambda s: s.order)

        logger.debug('Loaded %s: %d schema(s), %d message(s), %d port type(s)',
                     location, len(defs.schemas), len(defs.messages), len(defs.port_types))
        return defs

    def _fetch(self, location):
        logger.debug('Fetching %s', location)
        try:
            return self.fetch(location)
        except LoadError:
            raise
        except (OSError, requests.RequestException) as e:
            raise LoadError(location, e) from e

    def _parse(self, location):
        data = self._fetch(location)
        parser = etree.XMLParser(resolve_entities=False, no_network=True)
        try:
            return etree.fromstring(data, parser)
        except etree.XMLSyntaxError as e:
            raise ParseError(location, e) from e

    def _should_follow(self, namespace, location):
        key = (namespace or '', location)
        if key in self.visited or location in self.loaded:
            logger.debug('Already loaded %s (%s), skipping', location, namespace)
            return False
        self.visited.add(key)
        self.loaded.add(location)
        return True

    def _add_definitions(self, defs, current, imports, schema_elems, order):
        idx = 0
        for elem in schema_elems:
            self._add_schema(defs, parse_schema(elem, current.location), order + (idx,))
            idx += 1

        for namespace, location in imports:
            if not location:
                logger.warning('wsdl:import of %s without a location in %s, skipping',
                               namespace, current.location)
                continue

            full = join_location(current.location, location)
            if not self._should_follow(namespace, full):
                continue

            root = self._parse(full)
            if root.tag == XSD_SCHEMA:
                self._add_schema(defs, parse_schema(root, full), order + (idx,))
            elif root.tag == WSDL_DEFINITIONS:
                other, more_imports, more_schemas = parse_definitions(root, full)
                defs.merge(other)
                self._add_definitions(defs, other, more_imports, more_schemas, order + (idx,))
            else:
                raise ParseError(full, 'expected wsdl:definitions or xsd:schema, found %s' % root.tag)
            idx += 1

    def _add_schema(self, defs, schema, order):
        schema.order = order
        defs.schemas.append(schema)

        idx = 0
        for namespace, location in schema.imports:
            if namespace in WELL_KNOWN_NAMESPACES:
                continue
            if not location:
                # sibling schemas embedded in the same WSDL import each other
                # by namespace only
                if not any(s.target_namespace == namespace for s in defs.schemas):
                    logger.debug('Import of %s in %s has no schemaLocation', namespace, schema.location)
                continue

            full = join_location(schema.location, location)
            if not self._should_follow(namespace, full):
                continue

            root = self._expect_schema(full)
            child = parse_schema(root, full)
            if namespace and child.target_namespace != namespace:
                logger.warning('%s declares namespace %s but was imported as %s',
                               full, child.target_namespace, namespace)
            self._add_schema(defs, child, order + (idx,))
            idx += 1

        includes = [(loc, False) for loc in schema.includes] + \
                   [(loc, True) for loc in schema.redefines]
        for location, redefine in includes:
            if redefine:
                unsupported(self.strict, 'xsd:redefine', schema.location)
            if not location:
                continue

            full = join_location(schema.location, location)
            if not self._should_follow(schema.target_namespace, full):
                continue

            root = self._expect_schema(full)
            chameleon = None if root.get('targetNamespace') else schema.target_namespace
            self._add_schema(defs, parse_schema(root, full, chameleon), order + (idx,))
            idx += 1

    def _expect_schema(self, location):
        root = self._parse(location)
        if root.tag != XSD_SCHEMA:
            raise ParseError(location, 'expected xsd:schema, found %s' % root.tag)
        return root


def load(location, fetch=None, timeout=30, strict=False):
    return DocumentLoader(fetch=fetch, timeout=timeout, strict=strict).load(location)
