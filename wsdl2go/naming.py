'''
    Maps qualified names from the resolved model to exported Go
    identifiers.

    The sanitizer that turns a local name into an identifier is pluggable.
    Whatever it returns is made legal (exported, word characters only) and
    then made unique within its scope by appending 1, 2, ... in the order
    names are first seen.
'''

from collections import OrderedDict
import logging
import re

from .resolver import ANY, ANY_ATTRIBUTE, KIND_ENUM, KIND_STRUCT, TEXT
from .xsd import split_qname

logger = logging.getLogger(__name__)

_separators = re.compile(r'\W+', re.UNICODE)
_non_word = re.compile(r'\W', re.UNICODE)


def make_public(name):
    '''
        Default sanitizer: splits on anything that cannot appear in an
        identifier and capitalizes each piece, so get-info.v2 -> GetInfoV2
    '''
    return ''.join(p[:1].upper() + p[1:] for p in _separators.split(name) if p)


def legalize(name):
    '''Forces a sanitizer result into an exported identifier'''
    name = _non_word.sub('', name)
    if not name:
        return 'X'
    if name[0].islower():
        return name[0].upper() + name[1:]
    if not name[0].isupper():
        # digits, underscore and letters without case are not exported
        return 'X' + name
    return name


class Identifier(object):
    '''An allocated identifier and the wire name it was allocated for'''

    __slots__ = ['name', 'namespace', 'local']

    def __init__(self, name, namespace, local):
        self.name = name
        self.namespace = namespace
        self.local = local

    def __str__(self):
        return self.name

    def __repr__(self):
        return '<Identifier %s for {%s}%s>' % (self.name, self.namespace, self.local)


class Scope(object):

    def __init__(self, reserved=()):
        self.taken = set(reserved)
        self.ids = OrderedDict()
        self.frozen = False

    def allocate(self, key, proposed, namespace='', local=''):
        ident = self.ids.get(key)
        if ident is not None:
            return ident
        if self.frozen:
            raise ValueError('identifier scope is frozen, cannot allocate %r' % (key,))

        base = legalize(proposed)
        name = base
        n = 1
        while name in self.taken:
            name = '%s%d' % (base, n)
            n += 1

        if name != base:
            logger.debug('Identifier %s is taken, using %s for %r', base, name, key)

        ident = Identifier(name, namespace, local)
        self.taken.add(name)
        self.ids[key] = ident
        return ident

    def __getitem__(self, key):
        return self.ids[key]

    def __contains__(self, key):
        return key in self.ids

    def names(self):
        return [i.name for i in self.ids.values()]


class IdentifierTable(object):
    '''
        Identifiers for one generation run. Package level names (types,
        constants, ports and their constructors) share one scope; struct
        fields and port methods each get a scope per owner. Read only once
        `freeze` has been called.
    '''

    def __init__(self, reserved=()):
        self.package = Scope(reserved)
        self.fields = OrderedDict()
        self.methods = OrderedDict()
        self.frozen = False

    def freeze(self):
        self.frozen = True
        for scope in [self.package] + list(self.fields.values()) + list(self.methods.values()):
            scope.frozen = True

    def type_name(self, key):
        return self.package[('type', key)].name

    def const_name(self, key, value):
        return self.package[('const', key, value)].name

    def port_name(self, qname):
        return self.package[('port', qname)].name

    def constructor_name(self, qname):
        return self.package[('new', qname)].name

    def field_name(self, owner_key, index):
        return self.fields[owner_key][index].name

    def method_name(self, port_qname, index):
        return self.methods[port_qname][index].name

    def identifier(self, key):
        '''The Identifier object (with its wire name) for a package level key'''
        return self.package[key]


class IdentifierAllocator(object):
    '''
        Walks the resolved model in its own order and allocates every
        identifier the emitters will ask for.
    '''

    def __init__(self, sanitize=make_public, reserved=()):
        self.sanitize = sanitize
        self.reserved = reserved

    def _propose(self, local):
        return self.sanitize(local) or local

    def allocate(self, model):
        table = IdentifierTable(self.reserved)
        pkg = table.package

        # types claim names before anything derived from them
        for key, data in model.types.items():
            ns, local = split_qname(data.qname)
            pkg.allocate(('type', key), self._propose(local), ns, local)

        for port in model.ports:
            ns, local = split_qname(port.name)
            ident = pkg.allocate(('port', port.name), self._propose(local), ns, local)
            pkg.allocate(('new', port.name), 'New' + ident.name, ns, local)

        for key, data in model.types.items():
            if data.kind != KIND_ENUM:
                continue
            type_ident = pkg[('type', key)]
            for value in data.enum_values:
                fragment = _non_word.sub('', self.sanitize(value)) or 'Empty'
                pkg.allocate(('const', key, value), type_ident.name + fragment,
                             type_ident.namespace, value)

        for key, data in model.types.items():
            if data.kind != KIND_STRUCT:
                continue
            # encoding/xml reads any field called XMLName as the element name
            scope = Scope(['XMLName'])
            for i, m in enumerate(data.members):
                if m.kind == TEXT:
                    scope.allocate(i, 'Value')
                elif m.kind == ANY:
                    scope.allocate(i, 'Items')
                elif m.kind == ANY_ATTRIBUTE:
                    scope.allocate(i, 'AnyAttrs')
                else:
                    ns, local = split_qname(m.name)
                    scope.allocate(i, self._propose(local), ns, local)
            table.fields[key] = scope

        for port in model.ports:
            scope = Scope()
            for i, op in enumerate(port.operations):
                scope.allocate(i, self._propose(op.name), split_qname(port.name)[0], op.name)
            table.methods[port.name] = scope

        table.freeze()
        return table


def allocate(model, sanitize=make_public, reserved=()):
    return IdentifierAllocator(sanitize, reserved).allocate(model)
