'''
    wsdl2go generates Go SOAP client code (types, operation stubs and an
    HTTP transport) from a WSDL document.
'''

from .errors import (
    AssemblyError, LoadError, ParseError, UnresolvedReferenceError,
    UnsupportedConstructError, Wsdl2GoError,
)
from .generator import SECTIONS, GoWSDL, assemble
from .naming import make_public

__version__ = '0.1.0'

__all__ = [
    'GoWSDL', 'assemble', 'make_public', 'SECTIONS',
    'Wsdl2GoError', 'LoadError', 'ParseError', 'UnresolvedReferenceError',
    'UnsupportedConstructError', 'AssemblyError',
]
