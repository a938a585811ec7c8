from pathlib import Path

import pytest

from wsdl2go import SECTIONS, AssemblyError, GoWSDL, assemble
from wsdl2go.golang import GoEmitter

TESTDATA = Path(__file__).resolve().parent / 'testdata'

SIMPLE_HEADER = '''package myservice

import (
\t"bytes"
\t"crypto/tls"
\t"encoding/xml"
\t"io/ioutil"
\t"log"
\t"net"
\t"net/http"
\t"time"
)

// against "unused imports"
var _ time.Time
var _ xml.Name
'''

SIMPLE_TYPES = '''
type GetInfo struct {
\tXMLName xml.Name `xml:"http://www.mnb.hu/webservices/ GetInfo"`
}

type GetInfoResponse struct {
\tXMLName xml.Name `xml:"http://www.mnb.hu/webservices/ GetInfoResponse"`

\t// this is a comment

\tGetInfoResult string `xml:"GetInfoResult,omitempty"`
}
'''

SIMPLE_OPS = '''
type TestSoapPort struct {
\tclient *SOAPClient
}

func NewTestSoapPort(url string, tls bool, auth *BasicAuth, headers ...*HTTPHeader) *TestSoapPort {
\tif url == "" {
\t\turl = "http://www.mnb.hu/arfolyamok.asmx"
\t}
\tclient := NewSOAPClient(url, tls, auth, headers)

\treturn &TestSoapPort{
\t\tclient: client,
\t}
}
'''


def _generator(name, **kwargs):
    return GoWSDL(str(TESTDATA / name), package='myservice', **kwargs)


def test_simple_header():
    assert _generator('test.wsdl').gen_header() == SIMPLE_HEADER.encode('utf-8')


def test_header_uses_package_name():
    header = GoWSDL(str(TESTDATA / 'test.wsdl'), package='rates').gen_header()
    assert header.startswith(b'package rates\n')


def test_simple_types():
    assert _generator('test.wsdl').gen_types() == SIMPLE_TYPES.encode('utf-8')


def test_simple_operations():
    assert _generator('test.wsdl').gen_operations() == SIMPLE_OPS.encode('utf-8')


def test_comment_does_not_comment_out_field():
    resp = _generator('test.wsdl').start()
    types = resp['types'].decode('utf-8')

    assert '// this is a comment  GetInfoResult string' not in types
    for line in types.splitlines():
        if 'this is a comment' in line:
            assert line.strip() == '// this is a comment'


def test_start_returns_all_sections():
    resp = _generator('test.wsdl').start()
    assert list(resp) == list(SECTIONS)
    assert all(isinstance(v, bytes) for v in resp.values())


def test_generate_is_sections_in_order():
    g = _generator('shop.wsdl')
    resp = g.start()
    assert g.generate() == resp['header'] + resp['types'] + resp['operations'] + resp['soap']


def test_generation_is_deterministic():
    first = _generator('shop.wsdl').start()
    second = _generator('shop.wsdl').start()
    assert first == second


def test_sections_are_reproducible_from_one_run():
    g = _generator('shop.wsdl')
    resp = g.start()
    assert g.gen_types() == resp['types']
    assert g.gen_operations() == resp['operations']


def test_custom_make_public():
    g = _generator('test.wsdl', make_public_fn=lambda name: 'Ws' + name)
    types = g.gen_types().decode('utf-8')
    assert 'type WsGetInfo struct {' in types
    assert 'WsGetInfoResult string `xml:"GetInfoResult,omitempty"`' in types


def test_assemble_orders_sections():
    sections = {'soap': b'4', 'types': b'2', 'header': b'1', 'operations': b'3'}
    assert assemble(sections) == b'1234'


def test_assemble_missing_section():
    with pytest.raises(AssemblyError) as excinfo:
        assemble({'header': b'1', 'types': b'2'})
    assert set(excinfo.value.errors) == {'operations', 'soap'}


def test_failing_emitter_keeps_other_sections(monkeypatch):
    def broken(self):
        raise KeyError('nope')

    monkeypatch.setattr(GoEmitter, 'operations', broken)

    g = _generator('test.wsdl')
    with pytest.raises(AssemblyError) as excinfo:
        g.start()

    err = excinfo.value
    assert list(err.errors) == ['operations']
    assert set(err.sections) == {'header', 'types', 'soap'}
    assert err.sections['types'] == SIMPLE_TYPES.encode('utf-8')
