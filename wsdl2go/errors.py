'''
    Errors raised while turning a WSDL document into Go source
'''

import logging

logger = logging.getLogger(__name__)


class Wsdl2GoError(Exception):
    '''Base class for everything this package raises'''


class LoadError(Wsdl2GoError):
    '''A WSDL or schema document could not be fetched or read'''

    def __init__(self, location, reason):
        super(LoadError, self).__init__('cannot load %s: %s' % (location, reason))
        self.location = location
        self.reason = reason


class ParseError(Wsdl2GoError):
    '''A document was fetched but is not usable XML'''

    def __init__(self, location, reason):
        super(ParseError, self).__init__('cannot parse %s: %s' % (location, reason))
        self.location = location
        self.reason = reason


class UnresolvedReferenceError(Wsdl2GoError):
    '''A reference names something the merged schema set does not declare'''

    def __init__(self, qname, context=None):
        msg = 'unresolved reference %s' % qname
        if context:
            msg += ' (in %s)' % context
        super(UnresolvedReferenceError, self).__init__(msg)
        self.qname = qname
        self.context = context


class UnsupportedConstructError(Wsdl2GoError):
    '''
        A construct that is recognized but cannot be represented. Only raised
        when the generator runs in strict mode; otherwise it is degraded.
    '''

    def __init__(self, construct, context=None):
        msg = 'unsupported construct: %s' % construct
        if context:
            msg += ' (in %s)' % context
        super(UnsupportedConstructError, self).__init__(msg)
        self.construct = construct
        self.context = context


class AssemblyError(Wsdl2GoError):
    '''
        One or more section emitters failed. The sections that were emitted
        successfully are still available on `sections`.
    '''

    def __init__(self, errors, sections=None):
        names = ', '.join(sorted(errors))
        super(AssemblyError, self).__init__('failed to emit section(s): %s' % names)
        self.errors = errors
        self.sections = sections or {}


def unsupported(strict, construct, context=None):
    '''
        Apply the unsupported-construct policy: raise in strict mode, else
        log it so the caller can degrade to the nearest representation.
    '''
    if strict:
        raise UnsupportedConstructError(construct, context)
    logger.warning('Degrading unsupported construct %s%s', construct,
                   ' (in %s)' % context if context else '')
