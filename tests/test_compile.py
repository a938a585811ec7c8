'''
    Checks generated files with the Go toolchain. Skipped when it is not
    installed.
'''

import os
from pathlib import Path
import shutil
import subprocess

import pytest

from wsdl2go import GoWSDL, Wsdl2GoError

TESTDATA = Path(__file__).resolve().parent / 'testdata'

WSDL_FILES = sorted(TESTDATA.glob('*.wsdl'))


def _generate(wsdl, tmp_path):
    try:
        source = GoWSDL(str(wsdl), package='myservice').generate()
    except Wsdl2GoError as e:
        pytest.skip('%s does not generate: %s' % (wsdl.name, e))

    out = tmp_path / 'myservice.go'
    out.write_bytes(source)
    return out


@pytest.mark.skipif(shutil.which('gofmt') is None, reason='gofmt not installed')
@pytest.mark.parametrize('wsdl', WSDL_FILES, ids=[p.name for p in WSDL_FILES])
def test_generates_without_syntax_errors(wsdl, tmp_path):
    out = _generate(wsdl, tmp_path)
    result = subprocess.run(['gofmt', '-e', '-l', str(out)],
                            stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    assert result.returncode == 0, result.stderr.decode('utf-8', 'replace')


@pytest.mark.skipif(shutil.which('go') is None, reason='go not installed')
@pytest.mark.parametrize('wsdl', WSDL_FILES, ids=[p.name for p in WSDL_FILES])
def test_generated_code_compiles(wsdl, tmp_path):
    out = _generate(wsdl, tmp_path)

    env = dict(os.environ)
    env.update(GOCACHE=str(tmp_path / 'cache'), GOPATH=str(tmp_path / 'gopath'),
               GOTOOLCHAIN='local', GOPROXY='off')
    result = subprocess.run(['go', 'build', str(out)],
                            cwd=str(tmp_path), env=env,
                            stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    assert result.returncode == 0, result.stderr.decode('utf-8', 'replace')
