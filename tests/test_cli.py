from pathlib import Path

import pytest

from wsdl2go import GoWSDL
from wsdl2go.__main__ import build_parser, main

TESTDATA = Path(__file__).resolve().parent / 'testdata'


def test_defaults():
    args = build_parser().parse_args(['service.wsdl'])
    assert args.package == 'myservice'
    assert args.output == 'myservice.go'
    assert args.timeout == 30
    assert not args.insecure
    assert not args.strict


def test_writes_output_file(tmp_path):
    out = tmp_path / 'rates.go'
    wsdl = str(TESTDATA / 'test.wsdl')

    assert main(['-p', 'rates', '-o', str(out), wsdl]) == 0

    expected = GoWSDL(wsdl, package='rates').generate()
    assert out.read_bytes() == expected


def test_writes_stdout(capsys):
    assert main(['-o', '-', str(TESTDATA / 'test.wsdl')]) == 0
    assert capsys.readouterr().out.startswith('package myservice\n')


def test_failure_returns_nonzero(tmp_path):
    out = tmp_path / 'broken.go'
    assert main(['-o', str(out), str(TESTDATA / 'unresolved.wsdl')]) == 1
    assert not out.exists()


def test_strict_flag(tmp_path):
    wsdl = tmp_path / 'mixed.xsd'
    wsdl.write_text(
        '<xsd:schema targetNamespace="urn:t" xmlns:xsd="http://www.w3.org/2001/XMLSchema">'
        '<xsd:complexType name="Para" mixed="true"/>'
        '</xsd:schema>')
    out = tmp_path / 'out.go'

    assert main(['-o', str(out), str(wsdl)]) == 0
    assert main(['--strict', '-o', str(out), str(wsdl)]) == 1


@pytest.mark.parametrize('package', ['my-service', '2fast', 'type', '_', ''])
def test_package_must_be_a_go_identifier(package, capsys, tmp_path):
    out = tmp_path / 'out.go'
    with pytest.raises(SystemExit) as excinfo:
        main(['-p', package, '-o', str(out), str(TESTDATA / 'test.wsdl')])
    assert excinfo.value.code == 2
    assert 'not a valid Go package name' in capsys.readouterr().err
    assert not out.exists()


def test_package_accepts_go_identifiers():
    assert build_parser().parse_args(['-p', 'my_service2', 'x.wsdl']).package == 'my_service2'


def test_version(capsys):
    with pytest.raises(SystemExit):
        main(['--version'])
    assert 'wsdl2go' in capsys.readouterr().out
