from collections import OrderedDict

import pytest

from wsdl2go.golang import RESERVED_NAMES
from wsdl2go.naming import IdentifierAllocator, Scope, allocate, legalize, make_public
from wsdl2go.resolver import (
    ELEMENT, KIND_ENUM, KIND_STRUCT, TEXT, Member, OperationData, PortData,
    ResolvedModel, TypeData, TypeRef,
)


def _struct(key, members=(), xml_name=None):
    data = TypeData(key, KIND_STRUCT, xml_name=xml_name)
    data.members = list(members)
    return data


def _model(*types, **kwargs):
    return ResolvedModel('urn:t', OrderedDict((t.key, t) for t in types), kwargs.get('ports', []))


@pytest.mark.parametrize('name,expected', [
    ('GetInfo', 'GetInfo'),
    ('getInfo', 'GetInfo'),
    ('get-info.v2', 'GetInfoV2'),
    ('order_line', 'Order_line'),
    ('', ''),
])
def test_make_public(name, expected):
    assert make_public(name) == expected


@pytest.mark.parametrize('name,expected', [
    ('Foo', 'Foo'),
    ('foo', 'Foo'),
    ('1st', 'X1st'),
    ('_x', 'X_x'),
    ('a b', 'Ab'),
    ('', 'X'),
])
def test_legalize(name, expected):
    assert legalize(name) == expected


def test_scope_suffixes_in_first_seen_order():
    scope = Scope(['Reserved'])
    assert scope.allocate('a', 'Foo').name == 'Foo'
    assert scope.allocate('b', 'Foo').name == 'Foo1'
    assert scope.allocate('c', 'Foo').name == 'Foo2'
    assert scope.allocate('d', 'Reserved').name == 'Reserved1'
    # same key, same identifier
    assert scope.allocate('b', 'Other').name == 'Foo1'


def test_frozen_scope_refuses_new_names():
    scope = Scope()
    scope.allocate('a', 'Foo')
    scope.frozen = True
    assert scope.allocate('a', 'Bar').name == 'Foo'
    with pytest.raises(ValueError):
        scope.allocate('b', 'Bar')


def test_type_and_element_with_one_name():
    typ = _struct(('type', '{urn:t}Order'))
    elem = _struct(('element', '{urn:t}Order'), xml_name='{urn:t}Order')
    other_ns = _struct(('type', '{urn:other}Order'))

    table = allocate(_model(typ, elem, other_ns))

    assert table.type_name(typ.key) == 'Order'
    assert table.type_name(elem.key) == 'Order1'
    assert table.type_name(other_ns.key) == 'Order2'

    ident = table.identifier(('type', elem.key))
    assert (ident.namespace, ident.local) == ('urn:t', 'Order')


def test_reserved_transport_names_are_avoided():
    fault = _struct(('element', '{urn:t}SOAPFault'), xml_name='{urn:t}SOAPFault')
    table = allocate(_model(fault), reserved=RESERVED_NAMES)
    assert table.type_name(fault.key) == 'SOAPFault1'


def test_identifiers_are_unique_at_package_level():
    status = TypeData(('type', '{urn:t}Status'), KIND_ENUM)
    status.base = TypeRef(builtin='string')
    status.enum_values = ['Open', 'open', '']
    status_open = _struct(('type', '{urn:t}StatusOpen'))

    port = PortData('{urn:t}Status', 'http://localhost')
    model = _model(status, status_open, ports=[port])
    table = allocate(model)

    names = table.package.names()
    assert len(names) == len(set(names))

    assert table.type_name(status.key) == 'Status'
    assert table.type_name(status_open.key) == 'StatusOpen'
    assert table.port_name(port.name) == 'Status1'
    assert table.constructor_name(port.name) == 'NewStatus1'
    assert table.const_name(status.key, 'Open') == 'StatusOpen1'
    assert table.const_name(status.key, 'open') == 'StatusOpen2'
    assert table.const_name(status.key, '') == 'StatusEmpty'


def test_field_names():
    owner = _struct(('element', '{urn:t}Doc'), [
        Member('{urn:t}xmlName', ELEMENT, TypeRef(builtin='string')),
        Member('{urn:t}value', ELEMENT, TypeRef(builtin='string')),
        Member('{urn:other}value', ELEMENT, TypeRef(builtin='string')),
        Member(None, TEXT, TypeRef(builtin='string')),
    ], xml_name='{urn:t}Doc')

    table = allocate(_model(owner))

    assert [table.field_name(owner.key, i) for i in range(4)] == [
        'XmlName', 'Value', 'Value1', 'Value2',
    ]


def test_xml_name_field_is_reserved_on_elements():
    owner = _struct(('element', '{urn:t}Doc'), [
        Member('{urn:t}XMLName', ELEMENT, TypeRef(builtin='string')),
    ], xml_name='{urn:t}Doc')
    assert allocate(_model(owner)).field_name(owner.key, 0) == 'XMLName1'


def test_xml_name_field_is_reserved_on_named_types():
    inner = _struct(('type', '{urn:t}Thing'), [
        Member('{urn:t}XMLName', ELEMENT, TypeRef(builtin='string')),
        Member('{urn:t}xmlName', ELEMENT, TypeRef(builtin='string')),
    ])
    anon = _struct(('anon', '{urn:t}innerAnonType'), [
        Member('{urn:t}XMLName', ELEMENT, TypeRef(builtin='string')),
    ])
    table = allocate(_model(inner, anon))
    assert table.field_name(inner.key, 0) == 'XMLName1'
    assert table.field_name(inner.key, 1) == 'XmlName'
    assert table.field_name(anon.key, 0) == 'XMLName1'


def test_method_names_are_per_port():
    first = PortData('{urn:t}A', '')
    first.operations = [OperationData('get', '', None, None, []),
                        OperationData('Get', '', None, None, [])]
    second = PortData('{urn:t}B', '')
    second.operations = [OperationData('get', '', None, None, [])]

    table = allocate(_model(ports=[first, second]))

    assert table.method_name(first.name, 0) == 'Get'
    assert table.method_name(first.name, 1) == 'Get1'
    assert table.method_name(second.name, 0) == 'Get'


def test_pluggable_sanitizer():
    typ = _struct(('type', '{urn:t}order_line'))
    table = IdentifierAllocator(sanitize=lambda name: name.upper()).allocate(_model(typ))
    assert table.type_name(typ.key) == 'ORDER_LINE'


def test_table_is_frozen_after_allocation():
    typ = _struct(('type', '{urn:t}A'))
    table = allocate(_model(typ))
    assert table.package.frozen
    with pytest.raises(ValueError):
        table.package.allocate(('type', ('type', '{urn:t}B')), 'B')
