'''
    Runs the whole pipeline: load -> resolve -> allocate identifiers ->
    emit -> assemble.

    Resolution errors abort before anything is emitted. Each section is
    emitted on its own, so when one emitter fails the others are still
    available on the AssemblyError.
'''

from collections import OrderedDict
import logging

from .errors import AssemblyError, Wsdl2GoError
from .golang import RESERVED_NAMES, GoEmitter
from .loader import DocumentLoader
from .naming import IdentifierAllocator, make_public
from .resolver import TypeResolver

logger = logging.getLogger(__name__)

SECTIONS = ('header', 'types', 'operations', 'soap')


def assemble(sections):
    '''Concatenates the four sections in their fixed order'''
    missing = [name for name in SECTIONS if name not in sections]
    if missing:
        raise AssemblyError(OrderedDict((name, KeyError(name)) for name in missing), sections)
    return b''.join(sections[name] for name in SECTIONS)


class GoWSDL(object):
    '''
        Generates a Go SOAP client from the WSDL at `location`.

        `make_public_fn` turns a local name into an exported identifier,
        `fetch` (callable(location) -> bytes) replaces the default HTTP/file
        fetcher, `timeout` bounds remote fetches and `strict` makes
        unsupported constructs fatal instead of degrading them.
    '''

    def __init__(self, location, package='myservice', make_public_fn=make_public,
                 fetch=None, timeout=30, strict=False):
        self.location = location
        self.package = package
        self.make_public_fn = make_public_fn
        self.fetch = fetch
        self.timeout = timeout
        self.strict = strict

        # only set once the corresponding stage has completed
        self.definitions = None
        self.model = None
        self.identifiers = None

    def unmarshal(self):
        '''Loads and resolves the WSDL and allocates identifiers'''
        loader = DocumentLoader(fetch=self.fetch, timeout=self.timeout, strict=self.strict)
        definitions = loader.load(self.location)
        model = TypeResolver(definitions, strict=self.strict).resolve()
        identifiers = IdentifierAllocator(self.make_public_fn, RESERVED_NAMES).allocate(model)

        self.definitions = definitions
        self.model = model
        self.identifiers = identifiers

        logger.info('Resolved %s: %d type(s), %d port(s)',
                    self.location, len(model.types), len(model.ports))

    def _emitter(self):
        if self.model is None:
            self.unmarshal()
        return GoEmitter(self.model, self.identifiers, self.package)

    def gen_header(self):
        # the header does not depend on the document
        return GoEmitter(None, None, self.package).header().encode('utf-8')

    def gen_types(self):
        return self._emitter().types().encode('utf-8')

    def gen_operations(self):
        return self._emitter().operations().encode('utf-8')

    def gen_soap(self):
        return self._emitter().soap().encode('utf-8')

    def start(self):
        '''
            Returns the four sections by name. Raises AssemblyError if any
            emitter failed; the ones that did not are on the error.
        '''
        self.unmarshal()

        emitters = OrderedDict([
            ('header', self.gen_header),
            ('types', self.gen_types),
            ('operations', self.gen_operations),
            ('soap', self.gen_soap),
        ])

        sections = OrderedDict()
        errors = OrderedDict()
        for name, emit in emitters.items():
            try:
                sections[name] = emit()
            except (Wsdl2GoError, KeyError, ValueError) as e:
                logger.error('Failed to emit %s section: %s', name, e)
                errors[name] = e

        if errors:
            raise AssemblyError(errors, sections) from next(iter(errors.values()))

        return sections

    def generate(self):
        '''The complete Go source file'''
        return assemble(self.start())
