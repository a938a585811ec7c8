'''
    Walks the merged schema set and WSDL definitions and produces the
    resolved type model that the emitters consume.

    Every named type, top level element, anonymous type and (where needed)
    message wrapper becomes one TypeData. Members never embed another type;
    they point at it with a TypeRef, which is what keeps recursive schemas
    finite. Derivation (extension/restriction) and group references are the
    only places where one declaration needs another one's members, and those
    go through an explicit resolution stack.
'''

from collections import OrderedDict
import logging

import xmlschema
from xmlschema.names import XML_NAMESPACE, XSD_NAMESPACE

from .errors import UnresolvedReferenceError, unsupported
from .loader import SOAP_ENCODING_NAMESPACE
from .xsd import (
    AttributeDecl, AttributeGroupRef, Any, Choice, ComplexType, ElementDecl,
    Extension, GroupRef, ListType, ModelGroup, Restriction, SimpleType,
    UnionType, is_repeated, make_qname, split_qname,
)

logger = logging.getLogger(__name__)

# local names of the types the XSD 1.0 and 1.1 meta-schemas declare; 1.1
# adds dateTimeStamp, anyAtomicType and the duration subtypes
XSD_BUILTINS = frozenset(
    split_qname(name)[1]
    for schema_class in (xmlschema.XMLSchema10, xmlschema.XMLSchema11)
    for name in schema_class.builtin_types()
)

# SOAP encoding re-declares the XSD built-ins under its own namespace
BUILTIN_NAMESPACES = (XSD_NAMESPACE, SOAP_ENCODING_NAMESPACE)

SOAP_ENCODING_ARRAY = '{%s}Array' % SOAP_ENCODING_NAMESPACE

KIND_STRUCT = 'struct'
KIND_SIMPLE = 'simple'
KIND_ENUM = 'enum'

# member kinds
ELEMENT = 'element'
ATTRIBUTE = 'attribute'
TEXT = 'text'
ANY = 'any'
ANY_ATTRIBUTE = 'any_attribute'


class TypeRef(object):
    '''
        Points at a built-in (by XSD local name) or at another TypeData in
        the model (by key)
    '''

    __slots__ = ['key', 'builtin', 'is_struct']

    def __init__(self, key=None, builtin=None, is_struct=False):
        self.key = key
        self.builtin = builtin
        self.is_struct = is_struct

    def __eq__(self, other):
        return isinstance(other, TypeRef) and \
            (self.key, self.builtin, self.is_struct) == (other.key, other.builtin, other.is_struct)

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash((self.key, self.builtin, self.is_struct))

    def __repr__(self):
        if self.builtin:
            return '<TypeRef xsd:%s>' % self.builtin
        return '<TypeRef %s%s>' % (self.key, ' struct' if self.is_struct else '')


class Member(object):

    __slots__ = ['name', 'kind', 'type', 'is_list', 'optional', 'doc']

    def __init__(self, name, kind, typ, is_list=False, optional=False, doc=None):
        # wire name in Clark notation; None for text and wildcards
        self.name = name
        self.kind = kind
        self.type = typ

        # maxOccurs > 1 somewhere on the path to this member
        self.is_list = is_list

        # minOccurs=0, nillable, inside a choice, or a non-required attribute
        self.optional = optional

        self.doc = doc

    def copy(self):
        return Member(self.name, self.kind, self.type, self.is_list, self.optional, self.doc)

    def __repr__(self):
        return '<Member %s %s %r%s%s>' % (
            self.kind, self.name, self.type,
            ' list' if self.is_list else '',
            ' optional' if self.optional else '')


class TypeData(object):
    '''
        One resolved declaration. `key` is (category, qname) where category
        is 'type', 'element', 'anon' or 'message', since an element and a
        complex type commonly share a qname. RPC wrappers are keyed
        ('rpc', wire name, message qname): operations may share a message
        but each one sends its own wrapper element.
    '''

    __slots__ = ['key', 'kind', 'xml_name', 'members', 'base', 'enum_values',
                 'facets', 'doc', 'is_abstract']

    def __init__(self, key, kind, xml_name=None, doc=None):
        self.key = key
        self.kind = kind

        # set for elements and message wrappers, which know their wire name
        self.xml_name = xml_name

        self.members = []

        # TypeRef this simple type or enum restricts
        self.base = None
        self.enum_values = []

        # length, pattern, etc.; metadata only
        self.facets = OrderedDict()

        self.doc = doc
        self.is_abstract = False

    @property
    def qname(self):
        return self.key[1]

    @property
    def namespace(self):
        return split_qname(self.key[1])[0]

    def __repr__(self):
        return '<TypeData %s %s members=%r>' % (self.kind, self.key, self.members)


class OperationData(object):

    def __init__(self, name, soap_action, input, output, faults, doc=None):
        self.name = name
        self.soap_action = soap_action

        # model keys, or None for an empty/absent message
        self.input = input
        self.output = output
        self.faults = faults

        self.doc = doc

    def __repr__(self):
        return '<OperationData %s in=%s out=%s>' % (self.name, self.input, self.output)


class PortData(object):

    def __init__(self, name, address, doc=None):
        self.name = name
        self.address = address
        self.operations = []
        self.doc = doc


class ResolvedModel(object):
    '''
        Output of the resolver. Nothing in here refers to a declaration
        outside of `types`, and nothing modifies it after it is returned.
    '''

    def __init__(self, target_namespace, types, ports):
        self.target_namespace = target_namespace
        self.types = types
        self.ports = ports

    def __getitem__(self, key):
        return self.types[key]

    def builtin_of(self, ref):
        '''The XSD built-in that a (chain of) simple type(s) bottoms out at'''
        seen = set()
        while ref is not None and ref.builtin is None:
            if ref.key in seen or ref.key not in self.types:
                return 'string'
            seen.add(ref.key)
            ref = self.types[ref.key].base
        return ref.builtin if ref is not None else 'string'


class TypeResolver(object):

    def __init__(self, defs, strict=False):
        self.defs = defs
        self.strict = strict

        # name indexes over the merged schema set; first declaration wins
        self.types = OrderedDict()
        self.elements = OrderedDict()
        self.attributes = OrderedDict()
        self.groups = OrderedDict()
        self.attribute_groups = OrderedDict()

        for schema in defs.schemas:
            for attr in ('types', 'elements', 'attributes', 'groups', 'attribute_groups'):
                index = getattr(self, attr)
                for qname, decl in getattr(schema, attr).items():
                    if qname in index:
                        logger.warning('%s is declared more than once (again in %s), keeping the first',
                                       qname, schema.location)
                        continue
                    index[qname] = decl

        self._model = OrderedDict()
        self._ports = []

        # keys currently being resolved, innermost last
        self._stack = []

    def resolve(self):
        for schema in self.defs.schemas:
            for qname in schema.types:
                self.resolve_type(qname)
            for qname in schema.elements:
                self.resolve_element(qname)

        self.resolve_ports()

        return ResolvedModel(self.defs.target_namespace, self._model, self._ports)

    #
    # references
    #

    def type_ref(self, qname, context):
        ns, local = split_qname(qname)
        if ns in BUILTIN_NAMESPACES and qname not in self.types:
            if local not in XSD_BUILTINS:
                logger.warning('Unknown built-in type %s in %s, treating it as a string', qname, context)
                return TypeRef(builtin='string')
            return TypeRef(builtin=local)

        decl = self.types.get(qname)
        if decl is None:
            raise UnresolvedReferenceError(qname, context)
        return TypeRef(key=('type', qname), is_struct=isinstance(decl, ComplexType))

    def _enter(self, key, construct):
        '''Pushes key on the resolution stack; False when it is already there'''
        if key in self._stack:
            unsupported(self.strict, 'circular %s %s' % (construct, key[1]),
                        self._stack[-1][1] if self._stack else None)
            return False
        self._stack.append(key)
        return True

    def _leave(self):
        self._stack.pop()

    #
    # named types
    #

    def resolve_type(self, qname):
        key = ('type', qname)
        data = self._model.get(key)
        if data is not None:
            return data

        decl = self.types.get(qname)
        if decl is None:
            raise UnresolvedReferenceError(qname)

        if isinstance(decl, ComplexType):
            data = TypeData(key, KIND_STRUCT, doc=decl.doc)
            data.is_abstract = decl.abstract
        else:
            data = TypeData(key, KIND_SIMPLE, doc=decl.doc)

        # reserve the slot first so the declaration order is kept
        self._model[key] = data

        self._stack.append(key)
        try:
            if isinstance(decl, ComplexType):
                self._fill_complex(data, decl)
            else:
                self._fill_simple(data, decl)
        finally:
            self._leave()

        return data

    def _derived_from(self, base, context):
        '''Resolved TypeData of a complex base type, or None for a cycle'''
        key = ('type', base)
        if key in self._stack:
            unsupported(self.strict, 'circular derivation from %s' % base, context)
            return None
        if base not in self.types:
            raise UnresolvedReferenceError(base, context)
        return self.resolve_type(base)

    def _fill_simple(self, data, decl):
        content = decl.content
        context = data.qname

        if isinstance(content, Restriction):
            data.facets.update(content.facets)
            data.base = self._restriction_base(content, context)
            if content.enumeration:
                data.kind = KIND_ENUM
                for value in content.enumeration:
                    if value not in data.enum_values:
                        data.enum_values.append(value)
        elif isinstance(content, ListType):
            # space separated text on the wire
            data.facets['list'] = content.item_type
            data.base = TypeRef(builtin='string')
        elif isinstance(content, UnionType):
            data.facets['union'] = ' '.join(content.member_types)
            data.base = TypeRef(builtin='string')
        else:
            data.base = TypeRef(builtin='string')

    def _restriction_base(self, restriction, context):
        if restriction.base:
            ref = self.type_ref(restriction.base, context)
            if ref.is_struct:
                unsupported(self.strict, 'simple type restricting complex type %s' % restriction.base, context)
                return TypeRef(builtin='string')
            return ref
        if restriction.base_type is not None:
            return self._simple_base(restriction.base_type, context)
        return TypeRef(builtin='string')

    def _simple_base(self, st, context):
        '''The type an inline simple type stands for, without naming it'''
        if isinstance(st.content, Restriction):
            return self._restriction_base(st.content, context)
        return TypeRef(builtin='string')

    def _fill_complex(self, data, decl):
        context = data.qname
        content = decl.content

        if decl.mixed:
            unsupported(self.strict, 'mixed content', context)

        if isinstance(content, Extension):
            self._extend(data, content)
        elif isinstance(content, Restriction):
            self._restrict(data, content)
        else:
            self._particle(data, content)

        self._attributes(data, decl.attributes, decl.any_attribute)

    def _inherit(self, data, base_data, elements=True):
        for m in base_data.members:
            if m.kind in (ELEMENT, ANY) and not elements:
                continue
            self._add_member(data, m.copy())

    def _extend(self, data, ext):
        context = data.qname
        if ext.base is None:
            unsupported(self.strict, 'extension without a base', context)
        else:
            ref = self.type_ref(ext.base, context)
            if ref.is_struct:
                base_data = self._derived_from(ext.base, context)
                if base_data is not None:
                    self._inherit(data, base_data)
            elif ref.builtin != 'anyType':
                self._add_member(data, Member(None, TEXT, ref))

        self._particle(data, ext.particle)
        self._attributes(data, ext.attributes, ext.any_attribute)

    def _restrict(self, data, r):
        context = data.qname

        if r.base == SOAP_ENCODING_ARRAY:
            self._soap_array(data, r)
            return

        data.facets.update(r.facets)

        if r.base:
            ref = self.type_ref(r.base, context)
        else:
            ref = TypeRef(builtin='anyType')

        if ref.is_struct:
            base_data = self._derived_from(r.base, context)
            if base_data is not None:
                # a restriction that spells out its content replaces the base's
                self._inherit(data, base_data, elements=r.particle is None)
        elif r.simple and ref.builtin != 'anyType':
            self._add_member(data, Member(None, TEXT, ref))

        self._particle(data, r.particle)
        self._attributes(data, r.attributes, r.any_attribute)

    def _soap_array(self, data, r):
        '''soapenc:Array restrictions: the item type hides in wsdl:arrayType'''
        context = data.qname
        item = None
        for a in r.attributes:
            if isinstance(a, AttributeDecl) and a.array_type:
                item = a.array_type

        if item is not None:
            self._add_member(data, Member('item', ELEMENT, self.type_ref(item, context),
                                          is_list=True, optional=True))
        elif r.particle is not None:
            self._particle(data, r.particle)
        else:
            unsupported(self.strict, 'soapenc:Array without wsdl:arrayType', context)
            self._add_member(data, Member('item', ELEMENT, TypeRef(builtin='string'),
                                          is_list=True, optional=True))

    #
    # members
    #

    def _add_member(self, data, member):
        if member.kind in (ELEMENT, ATTRIBUTE):
            for existing in data.members:
                if existing.kind == member.kind and existing.name == member.name:
                    logger.debug('%s appears more than once in %s, merging', member.name, data.qname)
                    existing.is_list = existing.is_list or member.is_list
                    existing.optional = existing.optional or member.optional
                    return
        elif member.kind in (TEXT, ANY, ANY_ATTRIBUTE):
            for existing in data.members:
                if existing.kind == member.kind:
                    return
        data.members.append(member)

    def _particle(self, data, p, repeated=False, optional=False):
        if p is None:
            return

        if isinstance(p, ElementDecl):
            self._element_member(data, p, repeated or p.repeated, optional or p.optional)

        elif isinstance(p, Any):
            self._add_member(data, Member(None, ANY, TypeRef(builtin='string'), is_list=True, optional=True))

        elif isinstance(p, GroupRef):
            group = self.groups.get(p.ref)
            if group is None:
                raise UnresolvedReferenceError(p.ref, data.qname)
            key = ('group', p.ref)
            if not self._enter(key, 'group'):
                return
            try:
                self._particle(data, group.particle,
                               repeated or is_repeated(p.max_occurs),
                               optional or p.min_occurs == 0)
            finally:
                self._leave()

        elif isinstance(p, ModelGroup):
            repeated = repeated or is_repeated(p.max_occurs)
            optional = optional or p.min_occurs == 0 or isinstance(p, Choice)
            for item in p.items:
                self._particle(data, item, repeated, optional)

    def _element_member(self, data, e, repeated, optional):
        if e.ref:
            target = self.elements.get(e.ref)
            if target is None:
                raise UnresolvedReferenceError(e.ref, data.qname)
            typ = TypeRef(key=('element', e.ref), is_struct=True)
            doc = e.doc or target.doc
        else:
            typ = self._element_type(e, data)
            doc = e.doc

        self._add_member(data, Member(e.name, ELEMENT, typ, is_list=repeated,
                                      optional=optional, doc=doc))

    def _element_type(self, e, owner):
        context = owner.qname
        if isinstance(e.inline_type, ComplexType):
            data = self._anonymous(e.name, owner, KIND_STRUCT, e.inline_type.doc)
            self._stack.append(data.key)
            try:
                self._fill_complex(data, e.inline_type)
            finally:
                self._leave()
            return TypeRef(key=data.key, is_struct=True)

        if isinstance(e.inline_type, SimpleType):
            return self._inline_simple(e.inline_type, e.name, owner)

        if e.type_name:
            return self.type_ref(e.type_name, context)

        return TypeRef(builtin='anyType')

    def _inline_simple(self, st, name, owner):
        '''
            Anonymous enumerations get a synthesized named type so they can
            carry constants; anything else is replaced by its base type
        '''
        content = st.content
        if isinstance(content, Restriction) and content.enumeration:
            data = self._anonymous(name, owner, KIND_ENUM, st.doc)
            self._fill_simple(data, st)
            return TypeRef(key=data.key)
        return self._simple_base(st, owner.qname)

    def _anonymous(self, element_name, owner, kind, doc):
        '''
            Reserves a TypeData for an anonymous type, named after the element
            that declares it plus an AnonType suffix; a number is appended
            while the name clashes with a declared type or an earlier one
        '''
        ns, local = split_qname(element_name)
        if not ns:
            ns = owner.namespace

        base = local + 'AnonType'
        candidate = make_qname(ns, base)
        n = 1
        while candidate in self.types or ('anon', candidate) in self._model:
            candidate = make_qname(ns, '%s%d' % (base, n))
            n += 1

        data = TypeData(('anon', candidate), kind, doc=doc)
        self._model[data.key] = data
        return data

    def _attributes(self, data, attributes, any_attribute):
        for a in attributes:
            if isinstance(a, AttributeGroupRef):
                group = self.attribute_groups.get(a.ref)
                if group is None:
                    raise UnresolvedReferenceError(a.ref, data.qname)
                if not self._enter(('attributeGroup', a.ref), 'attribute group'):
                    continue
                try:
                    self._attributes(data, group.attributes, group.any_attribute)
                finally:
                    self._leave()
                continue

            if a.use == 'prohibited':
                data.members = [m for m in data.members
                                if not (m.kind == ATTRIBUTE and m.name == a.name)]
                continue

            member = self._attribute_member(a, data)
            replaced = False
            for i, existing in enumerate(data.members):
                if existing.kind == ATTRIBUTE and existing.name == member.name:
                    data.members[i] = member
                    replaced = True
                    break
            if not replaced:
                data.members.append(member)

        if any_attribute:
            self._add_member(data, Member(None, ANY_ATTRIBUTE, TypeRef(builtin='string'),
                                          is_list=True, optional=True))

    def _attribute_member(self, a, owner):
        context = owner.qname
        decl = a
        if a.ref:
            ns, _ = split_qname(a.ref)
            if ns in (XML_NAMESPACE, SOAP_ENCODING_NAMESPACE) and a.ref not in self.attributes:
                return Member(a.ref, ATTRIBUTE, TypeRef(builtin='string'),
                              optional=a.use != 'required', doc=a.doc)
            decl = self.attributes.get(a.ref)
            if decl is None:
                raise UnresolvedReferenceError(a.ref, context)

        if decl.inline_type is not None:
            typ = self._inline_simple(decl.inline_type, decl.name, owner)
        elif decl.type_name:
            typ = self.type_ref(decl.type_name, context)
            if typ.is_struct:
                unsupported(self.strict, 'attribute %s of complex type' % decl.name, context)
                typ = TypeRef(builtin='string')
        else:
            typ = TypeRef(builtin='anySimpleType')

        return Member(a.name, ATTRIBUTE, typ, optional=a.use != 'required',
                      doc=a.doc or decl.doc)

    #
    # top level elements
    #

    def resolve_element(self, qname):
        key = ('element', qname)
        data = self._model.get(key)
        if data is not None:
            return data

        decl = self.elements.get(qname)
        if decl is None:
            raise UnresolvedReferenceError(qname)

        data = TypeData(key, KIND_STRUCT, xml_name=qname, doc=decl.doc)
        data.is_abstract = decl.abstract
        self._model[key] = data

        self._stack.append(key)
        try:
            if isinstance(decl.inline_type, ComplexType):
                self._fill_complex(data, decl.inline_type)
            elif isinstance(decl.inline_type, SimpleType):
                self._add_member(data, Member(None, TEXT, self._inline_simple(decl.inline_type, qname, data)))
            elif decl.type_name:
                ref = self.type_ref(decl.type_name, qname)
                if ref.is_struct:
                    typ = self._derived_from(decl.type_name, qname)
                    if typ is not None:
                        self._inherit(data, typ)
                        data.doc = data.doc or typ.doc
                elif ref.builtin != 'anyType':
                    self._add_member(data, Member(None, TEXT, ref))
                else:
                    self._add_member(data, Member(None, TEXT, TypeRef(builtin='string')))
            else:
                self._add_member(data, Member(None, TEXT, TypeRef(builtin='string')))
        finally:
            self._leave()

        return data

    #
    # port types and operations
    #

    def resolve_ports(self):
        for pt in self.defs.port_types.values():
            binding = self._binding_for(pt.name)
            port = PortData(pt.name, self._address_for(binding), pt.doc)

            for op in pt.operations:
                bop = binding.operations.get(op.name) if binding is not None else None
                style = 'document'
                if bop is not None and bop.style:
                    style = bop.style
                elif binding is not None:
                    style = binding.style

                context = '%s.%s' % (split_qname(pt.name)[1], op.name)
                inp = self._message(op.input, op.name, style,
                                    bop.input_namespace if bop else None, False, context)
                out = self._message(op.output, op.name, style,
                                    bop.output_namespace if bop else None, True, context)
                faults = []
                for fault in op.faults:
                    fkey = self._message(fault, op.name, 'document', None, True, context)
                    if fkey is not None:
                        faults.append(fkey)

                port.operations.append(OperationData(
                    op.name, bop.soap_action if bop else '', inp, out, faults, op.doc))

            self._ports.append(port)

    def _binding_for(self, port_type):
        soap11 = soap12 = None
        for binding in self.defs.bindings.values():
            if binding.port_type != port_type:
                continue
            if binding.soap_version == '1.1' and soap11 is None:
                soap11 = binding
            elif binding.soap_version == '1.2' and soap12 is None:
                soap12 = binding
            elif binding.soap_version is None:
                logger.warning('Skipping non-SOAP binding %s', binding.name)
        return soap11 or soap12

    def _address_for(self, binding):
        if binding is None:
            return ''
        for service in self.defs.services.values():
            for port in service.ports:
                if port.binding == binding.name and port.address:
                    return port.address
        return ''

    def _message(self, qname, op_name, style, body_namespace, response, context):
        if qname is None:
            return None

        msg = self.defs.messages.get(qname)
        if msg is None:
            raise UnresolvedReferenceError(qname, context)
        if not msg.parts:
            return None

        if style != 'rpc' and len(msg.parts) == 1 and msg.parts[0].element:
            element = msg.parts[0].element
            if element not in self.elements:
                raise UnresolvedReferenceError(element, context)
            return self.resolve_element(element).key

        if style == 'rpc':
            xml_name = make_qname(body_namespace or self.defs.target_namespace,
                                  op_name + ('Response' if response else ''))
            key = ('rpc', xml_name, qname)
        else:
            xml_name = qname
            key = ('message', qname)
        if key in self._model:
            return key

        data = TypeData(key, KIND_STRUCT, xml_name=xml_name)
        for part in msg.parts:
            if part.element:
                if part.element not in self.elements:
                    raise UnresolvedReferenceError(part.element, context)
                self._add_member(data, Member(part.element, ELEMENT,
                                              TypeRef(key=('element', part.element), is_struct=True)))
            else:
                typ = self.type_ref(part.type, context) if part.type else TypeRef(builtin='anyType')
                self._add_member(data, Member(part.name, ELEMENT, typ))

        self._model[key] = data
        return key


def resolve(defs, strict=False):
    return TypeResolver(defs, strict=strict).resolve()
