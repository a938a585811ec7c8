from pathlib import Path

import pytest
import requests

from wsdl2go import loader
from wsdl2go.errors import LoadError, ParseError
from wsdl2go.loader import DocumentLoader, Fetcher, join_location

TESTDATA = Path(__file__).resolve().parent / 'testdata'


def _types(defs):
    return [qname for s in defs.schemas for qname in s.types]


class CountingFetch(object):
    '''Serves documents from a dict and remembers what was asked for'''

    def __init__(self, documents):
        self.documents = documents
        self.calls = []

    def __call__(self, location):
        self.calls.append(location)
        try:
            return self.documents[location]
        except KeyError:
            raise LoadError(location, 'not found')


def test_load_wsdl():
    defs = loader.load(str(TESTDATA / 'test.wsdl'))
    assert defs.target_namespace == 'http://www.mnb.hu/webservices/'
    assert len(defs.schemas) == 1
    assert list(defs.schemas[0].elements) == [
        '{http://www.mnb.hu/webservices/}GetInfo',
        '{http://www.mnb.hu/webservices/}GetInfoResponse',
    ]
    assert list(defs.messages) == [
        '{http://www.mnb.hu/webservices/}GetInfoSoapIn',
        '{http://www.mnb.hu/webservices/}GetInfoSoapOut',
    ]


def test_self_import_terminates():
    defs = loader.load(str(TESTDATA / 'selfimport.wsdl'))
    assert _types(defs) == ['{urn:self}Node']


def test_mutual_import_terminates():
    defs = loader.load(str(TESTDATA / 'mutual.wsdl'))
    assert sorted(_types(defs)) == ['{urn:a}A', '{urn:b}B']


def test_mutual_import_from_standalone_schema():
    defs = loader.load(str(TESTDATA / 'a.xsd'))
    assert defs.target_namespace == 'urn:a'
    assert _types(defs) == ['{urn:a}A', '{urn:b}B']


def test_each_document_fetched_once():
    fetch = CountingFetch({
        str(TESTDATA / 'mutual.wsdl'): (TESTDATA / 'mutual.wsdl').read_bytes(),
        str(TESTDATA / 'a.xsd'): (TESTDATA / 'a.xsd').read_bytes(),
        str(TESTDATA / 'b.xsd'): (TESTDATA / 'b.xsd').read_bytes(),
    })
    loader.load(str(TESTDATA / 'mutual.wsdl'), fetch=fetch)
    assert sorted(fetch.calls) == sorted(set(fetch.calls))
    assert len(fetch.calls) == 3


def test_chameleon_include():
    defs = loader.load(str(TESTDATA / 'main.xsd'))
    assert '{urn:main}Part' in _types(defs)
    assert [s.target_namespace for s in defs.schemas] == ['urn:main', 'urn:main']


def test_remote_imports_resolve_relative_to_importer():
    wsdl = b'''<?xml version="1.0"?>
<wsdl:definitions targetNamespace="urn:root"
    xmlns:wsdl="http://schemas.xmlsoap.org/wsdl/"
    xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <wsdl:types>
    <xsd:schema targetNamespace="urn:root">
      <xsd:import namespace="urn:a" schemaLocation="schemas/a.xsd"/>
    </xsd:schema>
  </wsdl:types>
</wsdl:definitions>'''
    fetch = CountingFetch({
        'http://example.com/svc/root.wsdl': wsdl,
        'http://example.com/svc/schemas/a.xsd': (TESTDATA / 'a.xsd').read_bytes(),
        'http://example.com/svc/schemas/b.xsd': (TESTDATA / 'b.xsd').read_bytes(),
    })

    defs = loader.load('http://example.com/svc/root.wsdl', fetch=fetch)

    assert fetch.calls == [
        'http://example.com/svc/root.wsdl',
        'http://example.com/svc/schemas/a.xsd',
        'http://example.com/svc/schemas/b.xsd',
    ]
    assert _types(defs) == ['{urn:a}A', '{urn:b}B']


def test_wsdl_import_is_merged():
    outer = b'''<?xml version="1.0"?>
<wsdl:definitions targetNamespace="urn:outer"
    xmlns:wsdl="http://schemas.xmlsoap.org/wsdl/">
  <wsdl:import namespace="http://www.mnb.hu/webservices/" location="test.wsdl"/>
</wsdl:definitions>'''
    fetch = CountingFetch({
        'http://example.com/outer.wsdl': outer,
        'http://example.com/test.wsdl': (TESTDATA / 'test.wsdl').read_bytes(),
    })

    defs = loader.load('http://example.com/outer.wsdl', fetch=fetch)

    assert defs.target_namespace == 'urn:outer'
    assert '{http://www.mnb.hu/webservices/}TestSoapPort' in defs.port_types
    assert '{http://www.mnb.hu/webservices/}GetInfo' in defs.schemas[0].elements


def test_missing_file_is_load_error():
    with pytest.raises(LoadError) as excinfo:
        loader.load(str(TESTDATA / 'does-not-exist.wsdl'))
    assert excinfo.value.location.endswith('does-not-exist.wsdl')


def test_missing_import_is_load_error():
    wsdl = b'''<?xml version="1.0"?>
<wsdl:definitions targetNamespace="urn:root"
    xmlns:wsdl="http://schemas.xmlsoap.org/wsdl/"
    xmlns:xsd="http://www.w3.org/2001/XMLSchema">
  <wsdl:types>
    <xsd:schema targetNamespace="urn:root">
      <xsd:import namespace="urn:gone" schemaLocation="gone.xsd"/>
    </xsd:schema>
  </wsdl:types>
</wsdl:definitions>'''
    fetch = CountingFetch({'http://example.com/root.wsdl': wsdl})

    with pytest.raises(LoadError) as excinfo:
        loader.load('http://example.com/root.wsdl', fetch=fetch)
    assert excinfo.value.location == 'http://example.com/gone.xsd'


def test_malformed_xml_is_parse_error():
    with pytest.raises(ParseError):
        loader.load(str(TESTDATA / 'malformed.wsdl'))


def test_unexpected_root_is_parse_error():
    fetch = CountingFetch({'doc.xml': b'<html><body/></html>'})
    with pytest.raises(ParseError):
        loader.load('doc.xml', fetch=fetch)


def test_fetch_os_error_is_wrapped():
    def fetch(location):
        raise PermissionError(location)

    with pytest.raises(LoadError) as excinfo:
        DocumentLoader(fetch=fetch).load('locked.wsdl')
    assert isinstance(excinfo.value.__cause__, PermissionError)


def test_fetcher_passes_timeout(monkeypatch):
    seen = {}

    def fake_get(url, timeout=None, verify=True):
        seen['url'] = url
        seen['timeout'] = timeout
        seen['verify'] = verify
        raise requests.Timeout('too slow')

    monkeypatch.setattr(loader.requests, 'get', fake_get)

    with pytest.raises(LoadError) as excinfo:
        Fetcher(timeout=2.5, verify=False)('https://example.com/service?wsdl')

    assert seen == {'url': 'https://example.com/service?wsdl', 'timeout': 2.5, 'verify': False}
    assert isinstance(excinfo.value.__cause__, requests.Timeout)


def test_fetcher_reads_local_files():
    data = Fetcher()(str(TESTDATA / 'self.xsd'))
    assert data.startswith(b'<?xml')


@pytest.mark.parametrize('base,location,expected', [
    ('http://example.com/a/b.wsdl', 'c.xsd', 'http://example.com/a/c.xsd'),
    ('http://example.com/a/b.wsdl', '../c.xsd', 'http://example.com/c.xsd'),
    ('http://example.com/a/b.wsdl', 'https://other.org/c.xsd', 'https://other.org/c.xsd'),
    ('/srv/wsdl/b.wsdl', 'xsd/c.xsd', '/srv/wsdl/xsd/c.xsd'),
    ('/srv/wsdl/b.wsdl', '/abs/c.xsd', '/abs/c.xsd'),
])
def test_join_location(base, location, expected):
    assert join_location(base, location) == expected
