'''
    Emits Go source from the resolved model: a header, the type
    declarations, one client method per operation and the SOAP transport.

    Each section is produced on its own from the (frozen) model and
    identifier table, so they can be generated, tested or written out
    separately. Layout follows gofmt closely enough that the output reads
    like formatted code even when gofmt is not run over it.
'''

import json
import logging
import re

from .resolver import ANY, ANY_ATTRIBUTE, ATTRIBUTE, KIND_ENUM, KIND_STRUCT, TEXT
from .xsd import split_qname

logger = logging.getLogger(__name__)

SOAP_ENVELOPE_NAMESPACE = 'http://schemas.xmlsoap.org/soap/envelope/'

# package level names the transport section declares
RESERVED_NAMES = [
    'SOAPEnvelope', 'SOAPBody', 'SOAPFault', 'BasicAuth', 'HTTPHeader',
    'SOAPClient', 'NewSOAPClient',
]

golang_builtin_map = {
    'boolean': 'bool',
    'decimal': 'float64',
    'float': 'float32',
    'double': 'float64',
    'integer': 'int64',
    'nonPositiveInteger': 'int64',
    'negativeInteger': 'int64',
    'long': 'int64',
    'int': 'int32',
    'short': 'int16',
    'byte': 'int8',
    'nonNegativeInteger': 'uint64',
    'positiveInteger': 'uint64',
    'unsignedLong': 'uint64',
    'unsignedInt': 'uint32',
    'unsignedShort': 'uint16',
    'unsignedByte': 'byte',
    'dateTime': 'time.Time',
    'dateTimeStamp': 'time.Time',
    'base64Binary': '[]byte',
    'hexBinary': '[]byte',
}

# (min, max) for the integer types an enumeration constant may be typed as
golang_int_ranges = {
    'int8': (-2 ** 7, 2 ** 7 - 1),
    'int16': (-2 ** 15, 2 ** 15 - 1),
    'int32': (-2 ** 31, 2 ** 31 - 1),
    'int64': (-2 ** 63, 2 ** 63 - 1),
    'byte': (0, 2 ** 8 - 1),
    'uint16': (0, 2 ** 16 - 1),
    'uint32': (0, 2 ** 32 - 1),
    'uint64': (0, 2 ** 64 - 1),
}

_int_literal = re.compile(r'^[+-]?\d+$')
_float_literal = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$')

golang_header = '''package %(package)s

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

golang_port_fmt = '''
%(doc)stype %(port)s struct {
\tclient *SOAPClient
}

func %(constructor)s(url string, tls bool, auth *BasicAuth, headers ...*HTTPHeader) *%(port)s {
\tif url == "" {
\t\turl = %(address)s
\t}
\tclient := NewSOAPClient(url, tls, auth, headers)

\treturn &%(port)s{
\t\tclient: client,
\t}
}
'''

golang_op_fmt = '''
%(doc)sfunc (service *%(port)s) %(method)s(%(params)s) (*%(output)s, error) {
\tresponse := new(%(output)s)
\terr := service.client.Call(%(action)s, %(request)s, response)
\tif err != nil {
\t\treturn nil, err
\t}

\treturn response, nil
}
'''

golang_oneway_op_fmt = '''
%(doc)sfunc (service *%(port)s) %(method)s(%(params)s) error {
\treturn service.client.Call(%(action)s, %(request)s, nil)
}
'''

golang_soap = '''
var timeout = time.Duration(30 * time.Second)

func dialTimeout(network, addr string) (net.Conn, error) {
\treturn net.DialTimeout(network, addr, timeout)
}

type SOAPEnvelope struct {
\tXMLName xml.Name `xml:"%(envelope_ns)s Envelope"`

\tBody SOAPBody
}

type SOAPBody struct {
\tXMLName xml.Name `xml:"%(envelope_ns)s Body"`

\tFault   *SOAPFault  `xml:",omitempty"`
\tContent interface{} `xml:",omitempty"`
}

type SOAPFault struct {
\tXMLName xml.Name `xml:"%(envelope_ns)s Fault"`

\tCode   string `xml:"faultcode,omitempty"`
\tString string `xml:"faultstring,omitempty"`
\tActor  string `xml:"faultactor,omitempty"`
\tDetail string `xml:"detail,omitempty"`
}

func (f *SOAPFault) Error() string {
\treturn f.Code + ": " + f.String
}

// UnmarshalXML decodes the single body element into Content, unless it is a
// SOAP Fault, which is decoded into Fault instead.
func (b *SOAPBody) UnmarshalXML(d *xml.Decoder, start xml.StartElement) error {
\tvar (
\t\ttoken    xml.Token
\t\terr      error
\t\tconsumed bool
\t)

Loop:
\tfor {
\t\tif token, err = d.Token(); err != nil {
\t\t\treturn err
\t\t}

\t\tif token == nil {
\t\t\tbreak
\t\t}

\t\tswitch se := token.(type) {
\t\tcase xml.StartElement:
\t\t\tif consumed {
\t\t\t\treturn xml.UnmarshalError("Found multiple elements inside SOAP body; not wrapped-document/literal WS-I compliant")
\t\t\t} else if se.Name.Space == "%(envelope_ns)s" && se.Name.Local == "Fault" {
\t\t\t\tb.Fault = &SOAPFault{}
\t\t\t\tb.Content = nil

\t\t\t\tif err = d.DecodeElement(b.Fault, &se); err != nil {
\t\t\t\t\treturn err
\t\t\t\t}
\t\t\t} else if b.Content == nil {
\t\t\t\tif err = d.Skip(); err != nil {
\t\t\t\t\treturn err
\t\t\t\t}
\t\t\t} else {
\t\t\t\tif err = d.DecodeElement(b.Content, &se); err != nil {
\t\t\t\t\treturn err
\t\t\t\t}
\t\t\t}

\t\t\tconsumed = true
\t\tcase xml.EndElement:
\t\t\tbreak Loop
\t\t}
\t}

\treturn nil
}

type BasicAuth struct {
\tLogin    string
\tPassword string
}

type HTTPHeader struct {
\tName  string
\tValue string
}

type SOAPClient struct {
\turl     string
\ttls     bool
\tauth    *BasicAuth
\theaders []*HTTPHeader
}

// NewSOAPClient returns a client for url. When tls is true the server
// certificate is not verified.
func NewSOAPClient(url string, tls bool, auth *BasicAuth, headers []*HTTPHeader) *SOAPClient {
\treturn &SOAPClient{
\t\turl:     url,
\t\ttls:     tls,
\t\tauth:    auth,
\t\theaders: headers,
\t}
}

// Call posts request in a SOAP envelope and decodes the reply into response.
// A SOAP Fault in the reply is returned as a *SOAPFault error.
func (s *SOAPClient) Call(soapAction string, request, response interface{}) error {
\tenvelope := SOAPEnvelope{}
\tenvelope.Body.Content = request

\tbuffer := new(bytes.Buffer)
\tencoder := xml.NewEncoder(buffer)
\tif err := encoder.Encode(envelope); err != nil {
\t\treturn err
\t}
\tif err := encoder.Flush(); err != nil {
\t\treturn err
\t}

\treq, err := http.NewRequest("POST", s.url, buffer)
\tif err != nil {
\t\treturn err
\t}
\tif s.auth != nil {
\t\treq.SetBasicAuth(s.auth.Login, s.auth.Password)
\t}

\treq.Header.Add("Content-Type", "text/xml; charset=\\"utf-8\\"")
\treq.Header.Add("SOAPAction", "\\""+soapAction+"\\"")
\treq.Header.Set("User-Agent", "wsdl2go")
\tfor _, header := range s.headers {
\t\treq.Header.Set(header.Name, header.Value)
\t}
\treq.Close = true

\ttr := &http.Transport{
\t\tTLSClientConfig: &tls.Config{
\t\t\tInsecureSkipVerify: s.tls,
\t\t},
\t\tDial: dialTimeout,
\t}

\tclient := &http.Client{Transport: tr}
\tres, err := client.Do(req)
\tif err != nil {
\t\treturn err
\t}
\tdefer res.Body.Close()

\trawbody, err := ioutil.ReadAll(res.Body)
\tif err != nil {
\t\treturn err
\t}
\tif len(rawbody) == 0 {
\t\tlog.Println("empty response")
\t\treturn nil
\t}

\trespEnvelope := new(SOAPEnvelope)
\trespEnvelope.Body = SOAPBody{Content: response}
\tif err := xml.Unmarshal(rawbody, respEnvelope); err != nil {
\t\treturn err
\t}

\tif respEnvelope.Body.Fault != nil {
\t\treturn respEnvelope.Body.Fault
\t}

\treturn nil
}
'''


def go_string(s):
    '''A Go interpreted string literal for s'''
    # JSON string escapes are a subset of Go's
    return json.dumps(s, ensure_ascii=False)


def comment_lines(doc, indent=''):
    '''
        Documentation as // lines. Every line of text gets its own comment
        line, so nothing that follows can end up inside the comment.
    '''
    lines = [l.strip() for l in doc.splitlines()]
    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    return ['%s// %s' % (indent, l) if l else indent + '//' for l in lines]


def doc_prefix(doc):
    if not doc:
        return ''
    return ''.join(l + '\n' for l in comment_lines(doc))


def join_doc(doc, paragraph):
    '''Appends a paragraph to documentation that may be empty'''
    if not doc:
        return paragraph
    return '%s\n\n%s' % (doc, paragraph)


def xml_name_tag(qname):
    ns, local = split_qname(qname)
    if ns:
        return '%s %s' % (ns, local)
    return local


def align(rows, indent='\t'):
    '''Pads every column but the last to a common width, as gofmt does'''
    widths = [max(len(r[i]) for r in rows) for i in range(len(rows[0]) - 1)]
    out = []
    for r in rows:
        cells = [c.ljust(w) for c, w in zip(r, widths)] + [r[-1]]
        out.append(indent + ' '.join(cells))
    return out


class GoEmitter(object):
    '''
        Formats the four sections. Only reads the model and the identifier
        table it is given.
    '''

    def __init__(self, model, table, package='myservice'):
        self.model = model
        self.table = table
        self.package = package

    #
    # header
    #

    def header(self):
        return golang_header % dict(package=self.package)

    #
    # types
    #

    def go_type(self, ref):
        if ref.builtin is not None:
            return golang_builtin_map.get(ref.builtin, 'string')
        return self.table.type_name(ref.key)

    def field_type(self, member):
        if member.kind == ANY:
            return '[]string'
        if member.kind == ANY_ATTRIBUTE:
            return '[]xml.Attr'

        typ = self.go_type(member.type)
        if member.is_list:
            return '[]' + typ
        if member.type.is_struct:
            # pointers keep recursive types finite
            return '*' + typ
        return typ

    def field_tag(self, member, owner_namespace):
        if member.kind == TEXT:
            return ',chardata'
        if member.kind == ANY:
            return ',any'
        if member.kind == ANY_ATTRIBUTE:
            return ',any,attr'

        ns, local = split_qname(member.name)
        tag = local
        if ns and ns != owner_namespace:
            tag = '%s %s' % (ns, local)
        if member.kind == ATTRIBUTE:
            tag += ',attr'
        if member.optional:
            tag += ',omitempty'
        return tag

    def struct(self, data):
        name = self.table.type_name(data.key)
        owner_ns = split_qname(data.xml_name)[0] if data.xml_name else data.namespace

        # blocks are separated by a blank line; a block is either comment
        # lines or rows of aligned fields
        blocks = []
        if data.xml_name:
            blocks.append([('XMLName', 'xml.Name', '`xml:"%s"`' % xml_name_tag(data.xml_name))])

        run = []
        for i, m in enumerate(data.members):
            row = (self.table.field_name(data.key, i), self.field_type(m),
                   '`xml:"%s"`' % self.field_tag(m, owner_ns))
            if m.doc:
                if run:
                    blocks.append(run)
                    run = []
                blocks.append(comment_lines(m.doc, '\t'))
                blocks.append([row])
            else:
                run.append(row)
        if run:
            blocks.append(run)

        lines = ['type %s struct {' % name]
        for i, block in enumerate(blocks):
            if i:
                lines.append('')
            if isinstance(block[0], tuple):
                lines.extend(align(block))
            else:
                lines.extend(block)
        lines.append('}')

        doc = data.doc
        if data.is_abstract:
            doc = join_doc(doc, '%s is abstract; send a type or element derived from it.' % name)
        return doc_prefix(doc) + '\n'.join(lines) + '\n'

    def const_literal(self, gotype, value):
        '''A Go literal for an enumeration value, or None when there is none'''
        v = value.strip()
        if gotype == 'string':
            return go_string(value)
        if gotype == 'bool':
            if v in ('true', '1'):
                return 'true'
            if v in ('false', '0'):
                return 'false'
            return None
        if gotype in golang_int_ranges:
            lo, hi = golang_int_ranges[gotype]
            if _int_literal.match(v) and lo <= int(v) <= hi:
                return str(int(v))
            return None
        if gotype in ('float32', 'float64'):
            if _float_literal.match(v):
                return v
            return None
        return None

    def simple(self, data):
        name = self.table.type_name(data.key)
        gotype = golang_builtin_map.get(self.model.builtin_of(data.base), 'string')

        # a defined type over time.Time loses MarshalText, so alias it
        decl = 'type %s = %s\n' if gotype == 'time.Time' else 'type %s %s\n'
        out = doc_prefix(data.doc) + decl % (name, self.go_type(data.base))

        if data.kind != KIND_ENUM:
            return out

        rows = []
        for value in data.enum_values:
            literal = self.const_literal(gotype, value)
            if literal is None:
                logger.debug('No %s constant for enumeration value %r of %s', gotype, value, data.qname)
                continue
            rows.append((self.table.const_name(data.key, value), name, '= ' + literal))

        if rows:
            out += '\nconst (\n%s\n)\n' % '\n'.join(align(rows))
        return out

    def types(self):
        decls = []
        for data in self.model.types.values():
            if data.kind == KIND_STRUCT:
                decls.append(self.struct(data))
            else:
                decls.append(self.simple(data))
        return ''.join('\n' + d for d in decls)

    #
    # operations
    #

    def operation(self, port, index, op):
        fmt = golang_op_fmt if op.output is not None else golang_oneway_op_fmt
        params = ''
        request = 'nil'
        if op.input is not None:
            params = 'request *%s' % self.table.type_name(op.input)
            request = 'request'

        doc = op.doc
        if op.faults:
            doc = join_doc(doc, 'Error can be a *SOAPFault whose detail is one of: %s' %
                           ', '.join(self.table.type_name(f) for f in op.faults))

        return fmt % dict(
            doc=doc_prefix(doc),
            port=self.table.port_name(port.name),
            method=self.table.method_name(port.name, index),
            params=params,
            request=request,
            output=self.table.type_name(op.output) if op.output is not None else '',
            action=go_string(op.soap_action),
        )

    def operations(self):
        out = []
        for port in self.model.ports:
            out.append(golang_port_fmt % dict(
                doc=doc_prefix(port.doc),
                port=self.table.port_name(port.name),
                constructor=self.table.constructor_name(port.name),
                address=go_string(port.address),
            ))
            for i, op in enumerate(port.operations):
                out.append(self.operation(port, i, op))
        return ''.join(out)

    #
    # transport
    #

    def soap(self):
        return golang_soap % dict(envelope_ns=SOAP_ENVELOPE_NAMESPACE)
