'''
    The subset of XML Schema needed to describe SOAP services, modelled as
    plain declarations. Content models are tagged variants (Sequence, Choice,
    All, GroupRef, Extension, Restriction) so the resolver never has to look
    at XML nodes again.

    All names are kept in Clark notation ({namespace}local), the same form
    lxml uses for tags.
'''

from collections import OrderedDict
import logging

from lxml import etree
from xmlschema.names import (
    XSD_ALL, XSD_ANNOTATION, XSD_ANY, XSD_ANY_ATTRIBUTE, XSD_ATTRIBUTE,
    XSD_ATTRIBUTE_GROUP, XSD_CHOICE, XSD_COMPLEX_CONTENT, XSD_COMPLEX_TYPE,
    XSD_DOCUMENTATION, XSD_ELEMENT, XSD_ENUMERATION, XSD_EXTENSION, XSD_GROUP,
    XSD_IMPORT, XSD_INCLUDE, XSD_LIST, XSD_NAMESPACE, XSD_OVERRIDE,
    XSD_REDEFINE, XSD_RESTRICTION, XSD_SCHEMA, XSD_SEQUENCE,
    XSD_SIMPLE_CONTENT, XSD_SIMPLE_TYPE, XSD_UNION, WSDL_NAMESPACE, XML_NAMESPACE,
)

from .errors import ParseError

logger = logging.getLogger(__name__)

WSDL_ARRAY_TYPE = '{%s}arrayType' % WSDL_NAMESPACE


def split_qname(qname):
    '''Returns (namespace, local name); namespace is '' when there is none'''
    q = etree.QName(qname)
    return q.namespace or '', q.localname


def make_qname(namespace, name):
    if namespace:
        return '{%s}%s' % (namespace, name)
    return name


def is_repeated(max_occurs):
    # max_occurs of None means unbounded
    return max_occurs is None or max_occurs > 1


class ElementDecl(object):

    __slots__ = ['name', 'type_name', 'ref', 'inline_type', 'min_occurs',
                 'max_occurs', 'nillable', 'abstract', 'doc']

    def __init__(self, name):
        self.name = name

        # exactly one of these is set for a well formed declaration; none of
        # them set means xsd:anyType
        self.type_name = None
        self.ref = None
        self.inline_type = None

        self.min_occurs = 1
        self.max_occurs = 1
        self.nillable = False
        self.abstract = False
        self.doc = None

    @property
    def optional(self):
        return self.min_occurs == 0 or self.nillable

    @property
    def repeated(self):
        return is_repeated(self.max_occurs)

    def __repr__(self):
        return '<ElementDecl %s type=%s ref=%s>' % (self.name, self.type_name, self.ref)


class AttributeDecl(object):

    __slots__ = ['name', 'type_name', 'ref', 'inline_type', 'use', 'doc',
                 'array_type']

    def __init__(self, name):
        self.name = name
        self.type_name = None
        self.ref = None
        self.inline_type = None
        self.use = 'optional'
        self.doc = None

        # wsdl:arrayType on soapenc:arrayType attributes, resolved to a qname
        self.array_type = None

    def __repr__(self):
        return '<AttributeDecl %s type=%s ref=%s>' % (self.name, self.type_name, self.ref)


class AttributeGroupRef(object):

    __slots__ = ['ref']

    def __init__(self, ref):
        self.ref = ref


class ModelGroup(object):

    __slots__ = ['items', 'min_occurs', 'max_occurs']

    kind = None

    def __init__(self, min_occurs=1, max_occurs=1):
        self.items = []
        self.min_occurs = min_occurs
        self.max_occurs = max_occurs

    def __repr__(self):
        return '<%s %r>' % (self.__class__.__name__, self.items)


class Sequence(ModelGroup):
    __slots__ = []
    kind = 'sequence'


class Choice(ModelGroup):
    __slots__ = []
    kind = 'choice'


class All(ModelGroup):
    __slots__ = []
    kind = 'all'


class GroupRef(object):

    __slots__ = ['ref', 'min_occurs', 'max_occurs']

    def __init__(self, ref, min_occurs=1, max_occurs=1):
        self.ref = ref
        self.min_occurs = min_occurs
        self.max_occurs = max_occurs


class Any(object):

    __slots__ = ['min_occurs', 'max_occurs']

    def __init__(self, min_occurs=1, max_occurs=1):
        self.min_occurs = min_occurs
        self.max_occurs = max_occurs


class Derivation(object):
    '''Shared shape of xsd:extension and xsd:restriction'''

    __slots__ = ['base', 'base_type', 'particle', 'attributes',
                 'any_attribute', 'simple', 'facets', 'enumeration']

    def __init__(self, base, simple):
        self.base = base

        # an inline xsd:simpleType inside a restriction, instead of base=
        self.base_type = None

        self.particle = None
        self.attributes = []
        self.any_attribute = False

        # simpleContent (or a simpleType restriction) versus complexContent
        self.simple = simple

        # facets other than enumeration, by local name; kept as metadata only
        self.facets = OrderedDict()
        self.enumeration = []

    def __repr__(self):
        return '<%s base=%s>' % (self.__class__.__name__, self.base)


class Extension(Derivation):
    __slots__ = []


class Restriction(Derivation):
    __slots__ = []


class ListType(object):

    __slots__ = ['item_type']

    def __init__(self, item_type):
        self.item_type = item_type


class UnionType(object):

    __slots__ = ['member_types']

    def __init__(self, member_types):
        self.member_types = member_types


class ComplexType(object):

    __slots__ = ['name', 'content', 'attributes', 'any_attribute', 'abstract',
                 'mixed', 'doc']

    def __init__(self, name):
        self.name = name

        # Sequence | Choice | All | GroupRef | Extension | Restriction | None
        self.content = None

        self.attributes = []
        self.any_attribute = False
        self.abstract = False
        self.mixed = False
        self.doc = None

    def __repr__(self):
        return '<ComplexType %s %r>' % (self.name, self.content)


class SimpleType(object):

    __slots__ = ['name', 'content', 'doc']

    def __init__(self, name):
        self.name = name

        # Restriction | ListType | UnionType
        self.content = None
        self.doc = None

    def __repr__(self):
        return '<SimpleType %s %r>' % (self.name, self.content)


class Group(object):

    __slots__ = ['name', 'particle']

    def __init__(self, name, particle):
        self.name = name
        self.particle = particle


class AttributeGroup(object):

    __slots__ = ['name', 'attributes', 'any_attribute']

    def __init__(self, name):
        self.name = name
        self.attributes = []
        self.any_attribute = False


class Schema(object):
    '''
        One xsd:schema document (embedded in a WSDL or standalone). The
        declaration dicts keep document order, which is what makes the
        generated output stable.
    '''

    def __init__(self, target_namespace, location):
        self.target_namespace = target_namespace
        self.location = location

        self.types = OrderedDict()
        self.elements = OrderedDict()
        self.attributes = OrderedDict()
        self.groups = OrderedDict()
        self.attribute_groups = OrderedDict()

        # (namespace, schemaLocation) pairs; either may be None
        self.imports = []
        self.includes = []

        # xsd:redefine / xsd:override locations; loaded like includes
        self.redefines = []

        # position in the import tree, set by the loader
        self.order = ()

    def __repr__(self):
        return '<Schema %s at %s: %d types, %d elements>' % (
            self.target_namespace, self.location,
            len(self.types), len(self.elements))


def children(elem):
    '''Element children, skipping comments and processing instructions'''
    return [c for c in elem if isinstance(c.tag, str)]


def get_documentation(elem):
    '''Text of the xsd:annotation/xsd:documentation nodes directly on elem'''
    texts = []
    for ann in elem.iterchildren(XSD_ANNOTATION):
        for doc in ann.iterchildren(XSD_DOCUMENTATION):
            text = ''.join(doc.itertext()).strip()
            if text:
                texts.append(text)
    return '\n'.join(texts) or None


def parse_occurs(elem, location):
    try:
        min_occurs = int(elem.get('minOccurs', '1'))
        max_attr = elem.get('maxOccurs', '1')
        max_occurs = None if max_attr == 'unbounded' else int(max_attr)
    except ValueError:
        raise ParseError(location, 'bad occurrence bounds on <%s name=%r>' % (
            etree.QName(elem).localname, elem.get('name')))
    return min_occurs, max_occurs


def resolve_reference(elem, value, location, default_namespace=None):
    '''
        Expands a prefixed reference like tns:Foo using the namespace
        declarations in scope at elem
    '''
    value = value.strip()
    if ':' in value:
        prefix, local = value.split(':', 1)
        # the xml prefix is bound implicitly and never shows up in nsmap
        ns = XML_NAMESPACE if prefix == 'xml' else elem.nsmap.get(prefix)
        if ns is None:
            raise ParseError(location, 'undeclared namespace prefix in %r' % value)
    else:
        local = value
        ns = elem.nsmap.get(None) or default_namespace

    return make_qname(ns, local)


class SchemaParser(object):
    '''
        Builds a Schema from an xsd:schema element. `chameleon_namespace` is
        set when parsing an included schema that has no targetNamespace of its
        own; it then takes on the includer's namespace.
    '''

    def __init__(self, location, chameleon_namespace=None):
        self.location = location
        self.chameleon_namespace = chameleon_namespace
        self.tns = None
        self.elements_qualified = False
        self.attributes_qualified = False

    def parse(self, root):
        if root.tag != XSD_SCHEMA:
            raise ParseError(self.location, 'expected xsd:schema, found %s' % root.tag)

        self.tns = root.get('targetNamespace') or self.chameleon_namespace or ''
        self.elements_qualified = root.get('elementFormDefault') == 'qualified'
        self.attributes_qualified = root.get('attributeFormDefault') == 'qualified'

        schema = Schema(self.tns, self.location)

        for child in children(root):
            tag = child.tag
            if tag == XSD_IMPORT:
                schema.imports.append((child.get('namespace'), child.get('schemaLocation')))
            elif tag == XSD_INCLUDE:
                schema.includes.append(child.get('schemaLocation'))
            elif tag in (XSD_REDEFINE, XSD_OVERRIDE):
                schema.redefines.append(child.get('schemaLocation'))
            elif tag == XSD_COMPLEX_TYPE:
                self._add(schema.types, self.parse_complex_type(child, self._global_name(child)))
            elif tag == XSD_SIMPLE_TYPE:
                self._add(schema.types, self.parse_simple_type(child, self._global_name(child)))
            elif tag == XSD_ELEMENT:
                self._add(schema.elements, self.parse_element(child, is_global=True))
            elif tag == XSD_ATTRIBUTE:
                self._add(schema.attributes, self.parse_attribute(child, is_global=True))
            elif tag == XSD_GROUP:
                particle = self._parse_group_content(child)
                self._add(schema.groups, Group(self._global_name(child), particle))
            elif tag == XSD_ATTRIBUTE_GROUP:
                group = AttributeGroup(self._global_name(child))
                self._parse_attributes(child, group)
                self._add(schema.attribute_groups, group)

        return schema

    def _add(self, table, decl):
        if decl.name in table:
            logger.warning('Duplicate declaration %s in %s, keeping the first', decl.name, self.location)
            return
        table[decl.name] = decl

    def _global_name(self, elem):
        name = elem.get('name')
        if not name:
            raise ParseError(self.location, 'top level <%s> without a name' % etree.QName(elem).localname)
        return make_qname(self.tns, name)

    def _ref(self, elem, value):
        return resolve_reference(elem, value, self.location, self.chameleon_namespace)

    def parse_element(self, elem, is_global=False):
        ref = elem.get('ref')
        if ref is not None:
            decl = ElementDecl(self._ref(elem, ref))
            decl.ref = decl.name
        else:
            name = elem.get('name')
            if not name:
                raise ParseError(self.location, 'xsd:element without name or ref')
            form = elem.get('form')
            qualified = is_global or form == 'qualified' or \
                (form is None and self.elements_qualified)
            decl = ElementDecl(make_qname(self.tns if qualified else '', name))

            type_attr = elem.get('type')
            if type_attr is not None:
                decl.type_name = self._ref(elem, type_attr)

            for child in children(elem):
                if child.tag == XSD_COMPLEX_TYPE:
                    decl.inline_type = self.parse_complex_type(child, None)
                elif child.tag == XSD_SIMPLE_TYPE:
                    decl.inline_type = self.parse_simple_type(child, None)

        if not is_global:
            decl.min_occurs, decl.max_occurs = parse_occurs(elem, self.location)
        decl.nillable = elem.get('nillable') == 'true'
        decl.abstract = elem.get('abstract') == 'true'
        decl.doc = get_documentation(elem)
        return decl

    def parse_attribute(self, elem, is_global=False):
        ref = elem.get('ref')
        if ref is not None:
            decl = AttributeDecl(self._ref(elem, ref))
            decl.ref = decl.name
        else:
            name = elem.get('name')
            if not name:
                raise ParseError(self.location, 'xsd:attribute without name or ref')
            form = elem.get('form')
            qualified = is_global or form == 'qualified' or \
                (form is None and self.attributes_qualified)
            decl = AttributeDecl(make_qname(self.tns if qualified else '', name))

            type_attr = elem.get('type')
            if type_attr is not None:
                decl.type_name = self._ref(elem, type_attr)
            for child in elem.iterchildren(XSD_SIMPLE_TYPE):
                decl.inline_type = self.parse_simple_type(child, None)

        decl.use = elem.get('use', 'optional')
        decl.doc = get_documentation(elem)

        array_type = elem.get(WSDL_ARRAY_TYPE)
        if array_type is not None:
            # tns:Foo[] -> tns:Foo; multi dimensional arrays collapse to one
            decl.array_type = self._ref(elem, array_type.split('[', 1)[0])

        return decl

    def _parse_attributes(self, elem, owner):
        for child in children(elem):
            if child.tag == XSD_ATTRIBUTE:
                owner.attributes.append(self.parse_attribute(child))
            elif child.tag == XSD_ATTRIBUTE_GROUP:
                owner.attributes.append(AttributeGroupRef(self._ref(child, child.get('ref', ''))))
            elif child.tag == XSD_ANY_ATTRIBUTE:
                owner.any_attribute = True

    def parse_particle(self, elem):
        tag = elem.tag
        if tag == XSD_ELEMENT:
            return self.parse_element(elem)
        elif tag == XSD_ANY:
            return Any(*parse_occurs(elem, self.location))
        elif tag == XSD_GROUP:
            return GroupRef(self._ref(elem, elem.get('ref', '')),
                            *parse_occurs(elem, self.location))

        cls = {XSD_SEQUENCE: Sequence, XSD_CHOICE: Choice, XSD_ALL: All}.get(tag)
        if cls is None:
            return None

        group = cls(*parse_occurs(elem, self.location))
        for child in children(elem):
            item = self.parse_particle(child)
            if item is not None:
                group.items.append(item)
        return group

    def _parse_group_content(self, elem):
        for child in children(elem):
            if child.tag in (XSD_SEQUENCE, XSD_CHOICE, XSD_ALL):
                return self.parse_particle(child)
        return None

    def _parse_derivation(self, elem, simple):
        cls = Extension if elem.tag == XSD_EXTENSION else Restriction
        base = elem.get('base')
        d = cls(self._ref(elem, base) if base else None, simple)

        for child in children(elem):
            tag = child.tag
            if tag in (XSD_SEQUENCE, XSD_CHOICE, XSD_ALL, XSD_GROUP):
                d.particle = self.parse_particle(child)
            elif tag == XSD_SIMPLE_TYPE:
                d.base_type = self.parse_simple_type(child, None)
            elif tag == XSD_ENUMERATION:
                d.enumeration.append(child.get('value', ''))
            elif etree.QName(child).namespace == XSD_NAMESPACE and \
                    tag not in (XSD_ATTRIBUTE, XSD_ATTRIBUTE_GROUP,
                                XSD_ANY_ATTRIBUTE, XSD_ANNOTATION):
                # remaining XSD children of a restriction are facets
                d.facets[etree.QName(child).localname] = child.get('value')

        self._parse_attributes(elem, d)
        return d

    def parse_complex_type(self, elem, name):
        ct = ComplexType(name)
        ct.abstract = elem.get('abstract') == 'true'
        ct.mixed = elem.get('mixed') == 'true'
        ct.doc = get_documentation(elem)

        for child in children(elem):
            tag = child.tag
            if tag in (XSD_SIMPLE_CONTENT, XSD_COMPLEX_CONTENT):
                if child.get('mixed') == 'true':
                    ct.mixed = True
                for d in children(child):
                    if d.tag in (XSD_EXTENSION, XSD_RESTRICTION):
                        ct.content = self._parse_derivation(d, tag == XSD_SIMPLE_CONTENT)
            elif tag in (XSD_SEQUENCE, XSD_CHOICE, XSD_ALL, XSD_GROUP):
                ct.content = self.parse_particle(child)

        self._parse_attributes(elem, ct)
        return ct

    def parse_simple_type(self, elem, name):
        st = SimpleType(name)
        st.doc = get_documentation(elem)

        for child in children(elem):
            tag = child.tag
            if tag == XSD_RESTRICTION:
                st.content = self._parse_derivation(child, True)
            elif tag == XSD_LIST:
                item = child.get('itemType')
                st.content = ListType(self._ref(child, item) if item else None)
            elif tag == XSD_UNION:
                members = child.get('memberTypes', '').split()
                st.content = UnionType([self._ref(child, m) for m in members])

        return st


def parse_schema(root, location, chameleon_namespace=None):
    return SchemaParser(location, chameleon_namespace).parse(root)
