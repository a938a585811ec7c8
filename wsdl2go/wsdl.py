'''
    WSDL 1.1 definitions: messages, port types, bindings and services.
    Schemas embedded in wsdl:types are parsed by wsdl2go.xsd; the loader
    takes care of merging everything that gets imported.
'''

from collections import OrderedDict
import logging

from lxml import etree
from xmlschema.names import SOAP_NAMESPACE, WSDL_NAMESPACE, XSD_SCHEMA

from .errors import ParseError
from .xsd import children, make_qname, resolve_reference

logger = logging.getLogger(__name__)

SOAP12_NAMESPACE = 'http://schemas.xmlsoap.org/wsdl/soap12/'

WSDL_DEFINITIONS = '{%s}definitions' % WSDL_NAMESPACE
WSDL_IMPORT = '{%s}import' % WSDL_NAMESPACE
WSDL_TYPES = '{%s}types' % WSDL_NAMESPACE
WSDL_MESSAGE = '{%s}message' % WSDL_NAMESPACE
WSDL_PART = '{%s}part' % WSDL_NAMESPACE
WSDL_PORT_TYPE = '{%s}portType' % WSDL_NAMESPACE
WSDL_OPERATION = '{%s}operation' % WSDL_NAMESPACE
WSDL_INPUT = '{%s}input' % WSDL_NAMESPACE
WSDL_OUTPUT = '{%s}output' % WSDL_NAMESPACE
WSDL_FAULT = '{%s}fault' % WSDL_NAMESPACE
WSDL_BINDING = '{%s}binding' % WSDL_NAMESPACE
WSDL_SERVICE = '{%s}service' % WSDL_NAMESPACE
WSDL_PORT = '{%s}port' % WSDL_NAMESPACE
WSDL_DOCUMENTATION = '{%s}documentation' % WSDL_NAMESPACE

SOAP_VERSIONS = {
    SOAP_NAMESPACE: '1.1',
    SOAP12_NAMESPACE: '1.2',
}


class Part(object):

    __slots__ = ['name', 'element', 'type']

    def __init__(self, name, element=None, type=None):
        self.name = name
        self.element = element
        self.type = type

    def __repr__(self):
        return '<Part %s element=%s type=%s>' % (self.name, self.element, self.type)


class Message(object):

    def __init__(self, name):
        self.name = name
        self.parts = []

    def __repr__(self):
        return '<Message %s %r>' % (self.name, self.parts)


class Operation(object):
    '''A wsdl:portType operation; messages are referenced by qname'''

    def __init__(self, name):
        self.name = name
        self.input = None
        self.output = None
        self.faults = []
        self.doc = None

    def __repr__(self):
        return '<Operation %s in=%s out=%s>' % (self.name, self.input, self.output)


class PortType(object):

    def __init__(self, name):
        self.name = name
        self.operations = []
        self.doc = None


class BindingOperation(object):

    __slots__ = ['name', 'soap_action', 'style', 'input_namespace', 'output_namespace']

    def __init__(self, name):
        self.name = name
        self.soap_action = ''
        self.style = None
        self.input_namespace = None
        self.output_namespace = None


class Binding(object):

    def __init__(self, name, port_type):
        self.name = name
        self.port_type = port_type

        # None when this is not a SOAP binding (http, mime, ...)
        self.soap_version = None
        self.style = 'document'
        self.operations = OrderedDict()


class Port(object):

    __slots__ = ['name', 'binding', 'address']

    def __init__(self, name, binding, address):
        self.name = name
        self.binding = binding
        self.address = address


class Service(object):

    def __init__(self, name):
        self.name = name
        self.ports = []


class Definitions(object):
    '''
        The merged view of a WSDL document and everything it imports. Built
        once by the loader and not modified afterwards.
    '''

    def __init__(self, target_namespace, location):
        self.target_namespace = target_namespace
        self.location = location

        # in the order the loader found them
        self.schemas = []

        self.messages = OrderedDict()
        self.port_types = OrderedDict()
        self.bindings = OrderedDict()
        self.services = OrderedDict()

    def merge(self, other):
        '''Merges the declarations of an imported WSDL, keeping ours on conflict'''
        for attr in ('messages', 'port_types', 'bindings', 'services'):
            mine = getattr(self, attr)
            for k, v in getattr(other, attr).items():
                if k in mine:
                    logger.warning('Duplicate WSDL declaration %s in %s, keeping the first',
                                   k, other.location)
                    continue
                mine[k] = v


def get_wsdl_documentation(elem):
    doc = elem.find(WSDL_DOCUMENTATION)
    if doc is None:
        return None
    return ''.join(doc.itertext()).strip() or None


class WsdlParser(object):
    '''
        Parses a wsdl:definitions element. Embedded schema elements and
        wsdl:import locations are returned to the caller instead of being
        followed here.
    '''

    def __init__(self, location):
        self.location = location
        self.tns = ''

    def _qname(self, elem, value):
        return resolve_reference(elem, value, self.location)

    def _name(self, elem):
        name = elem.get('name')
        if not name:
            raise ParseError(self.location, '<%s> without a name' % etree.QName(elem).localname)
        return make_qname(self.tns, name)

    def parse(self, root):
        if root.tag != WSDL_DEFINITIONS:
            raise ParseError(self.location, 'expected wsdl:definitions, found %s' % root.tag)

        self.tns = root.get('targetNamespace', '')
        defs = Definitions(self.tns, self.location)

        imports = []
        schema_elems = []

        for child in children(root):
            tag = child.tag
            if tag == WSDL_IMPORT:
                imports.append((child.get('namespace'), child.get('location')))
            elif tag == WSDL_TYPES:
                schema_elems.extend(child.iterchildren(XSD_SCHEMA))
            elif tag == WSDL_MESSAGE:
                msg = self.parse_message(child)
                defs.messages[msg.name] = msg
            elif tag == WSDL_PORT_TYPE:
                pt = self.parse_port_type(child)
                defs.port_types[pt.name] = pt
            elif tag == WSDL_BINDING:
                binding = self.parse_binding(child)
                defs.bindings[binding.name] = binding
            elif tag == WSDL_SERVICE:
                service = self.parse_service(child)
                defs.services[service.name] = service

        return defs, imports, schema_elems

    def parse_message(self, elem):
        msg = Message(self._name(elem))
        for part in elem.iterchildren(WSDL_PART):
            element = part.get('element')
            typ = part.get('type')
            msg.parts.append(Part(
                part.get('name'),
                element=self._qname(part, element) if element else None,
                type=self._qname(part, typ) if typ else None,
            ))
        return msg

    def parse_port_type(self, elem):
        pt = PortType(self._name(elem))
        pt.doc = get_wsdl_documentation(elem)

        for child in elem.iterchildren(WSDL_OPERATION):
            op = Operation(child.get('name'))
            op.doc = get_wsdl_documentation(child)

            inp = child.find(WSDL_INPUT)
            if inp is not None and inp.get('message'):
                op.input = self._qname(inp, inp.get('message'))

            out = child.find(WSDL_OUTPUT)
            if out is not None and out.get('message'):
                op.output = self._qname(out, out.get('message'))

            for fault in child.iterchildren(WSDL_FAULT):
                if fault.get('message'):
                    op.faults.append(self._qname(fault, fault.get('message')))

            pt.operations.append(op)

        return pt

    def parse_binding(self, elem):
        binding = Binding(self._name(elem), self._qname(elem, elem.get('type', '')))

        for child in children(elem):
            ns = etree.QName(child).namespace
            if ns in SOAP_VERSIONS and etree.QName(child).localname == 'binding':
                binding.soap_version = SOAP_VERSIONS[ns]
                binding.style = child.get('style', 'document')

        for child in elem.iterchildren(WSDL_OPERATION):
            bop = BindingOperation(child.get('name'))
            for ext in children(child):
                ns = etree.QName(ext).namespace
                if ns in SOAP_VERSIONS and etree.QName(ext).localname == 'operation':
                    bop.soap_action = ext.get('soapAction', '')
                    bop.style = ext.get('style')

            bop.input_namespace = self._body_namespace(child.find(WSDL_INPUT))
            bop.output_namespace = self._body_namespace(child.find(WSDL_OUTPUT))
            binding.operations[bop.name] = bop

        return binding

    def _body_namespace(self, elem):
        if elem is None:
            return None
        for ext in children(elem):
            if etree.QName(ext).namespace in SOAP_VERSIONS and \
                    etree.QName(ext).localname == 'body':
                return ext.get('namespace')
        return None

    def parse_service(self, elem):
        service = Service(self._name(elem))
        for port in elem.iterchildren(WSDL_PORT):
            address = None
            for ext in children(port):
                if etree.QName(ext).namespace in SOAP_VERSIONS and \
                        etree.QName(ext).localname == 'address':
                    address = ext.get('location')
            service.ports.append(Port(port.get('name'), self._qname(port, port.get('binding', '')), address))
        return service


def parse_definitions(root, location):
    return WsdlParser(location).parse(root)
