# robtinkers/mailto

import logging
from collections import namedtuple

from email_validator import EmailNotValidError, validate_email

__all__ = [
    "UNRESERVED", "SOME_DELIMS", "QCHAR", "ADDR_SPEC_SAFE",
    "percent_encode", "percent_decode", "find_bad_escape",
    "EmailAddress", "Header", "Mailto",
    "MailtoError", "EmptyURI", "MissingScheme", "InvalidEmailAddress", "InvalidHeader",
    "HeaderError", "EmptyField", "MissingEquals", "EmptyName",
    "InvalidPercentEncoding",
]

_log = logging.getLogger(__name__)


# Character classes (sets of byte-values)

_ALNUM = frozenset(range(48, 58)) | frozenset(range(65, 91)) | frozenset(range(97, 123))

UNRESERVED = _ALNUM | frozenset(b'-._~')
SOME_DELIMS = frozenset(b"!$'()*+,;:@") # RFC 3986 sub-delims without & and =
QCHAR = UNRESERVED | SOME_DELIMS
ADDR_SPEC_SAFE = UNRESERVED | frozenset(b'@.')

# Never copied literally, whatever the safe set says
_NEVER_SAFE = frozenset([37]) | frozenset(range(128, 256)) # % and non-ASCII

_hexdig = b'0123456789ABCDEF'
_hexdig_set = frozenset(b'0123456789ABCDEFabcdef')


# Errors

class _ParseError(ValueError):
    message = '{value}'

    def __init__(self, value=''):
        super().__init__(value)
        self.value = value

    def __str__(self):
        return self.message.format(value=self.value)


class MailtoError(_ParseError):
    message = "Invalid mailto URI: '{value}'"

class EmptyURI(MailtoError):
    message = 'mailto URI cannot be empty'

class MissingScheme(MailtoError):
    message = "mailto URI must start with 'mailto:': '{value}'"

class InvalidEmailAddress(MailtoError):
    message = "Invalid email address in mailto URI: '{value}'"

class InvalidHeader(MailtoError):
    message = "Invalid header in mailto URI: '{value}'"


class HeaderError(_ParseError):
    message = "Invalid header field: '{value}'"

class EmptyField(HeaderError):
    message = 'Header field cannot be empty'

class MissingEquals(HeaderError):
    message = "Header field must contain '=': '{value}'"

class EmptyName(HeaderError):
    message = "Header field name cannot be empty: '{value}'"


# Raised from both contexts, so it belongs to both families
class InvalidPercentEncoding(MailtoError, HeaderError):
    message = "Invalid percent encoding: '{value}'"


# Percent-encoding

def _bytes(data):
    if isinstance(data, str):
        return data.encode('utf-8')
    return bytes(data)


def _text(data):
    return bytes(data).decode('utf-8', 'replace')


def _hexval(h):
    if 48 <= h <= 57:  return h - 48
    if 65 <= h <= 70:  return h - 55
    if 97 <= h <= 102: return h - 87
    raise ValueError


def percent_encode(data, safe=UNRESERVED):
    if isinstance(safe, (str, bytes)):
        safe = UNRESERVED | frozenset(_bytes(safe)) # extra safe characters, as urllib.parse.quote
    if not _NEVER_SAFE.isdisjoint(safe):
        safe = frozenset(safe) - _NEVER_SAFE

    bmv = _bytes(data)

    # First pass: check for fast path (no quotes) and calculate length of the result

    m = 0
    for b in bmv:
        m += 1 if b in safe else 3
    if m == len(bmv):
        return bmv

    # Second pass:

    res = bytearray(m)
    j = 0

    for b in bmv:
        if b in safe:
            res[j] = b
            j += 1
        else:
            res[j+0] = 37 # %
            res[j+1] = _hexdig[(b >> 4) & 0xF]
            res[j+2] = _hexdig[(b >> 0) & 0xF]
            j += 3

    return bytes(res)


def percent_decode(data):
    bmv = _bytes(data)
    if 37 not in bmv:
        return bmv
    n = len(bmv)

    res = bytearray(n) # Worst Case: result is the same size as the input
    j = 0

    i = 0
    while (i < n):
        b = bmv[i]
        i += 1

        if b == 37:
            # Found '%'
            try:
                n1 = _hexval(bmv[i+0])
                n2 = _hexval(bmv[i+1])
                i += 2
                res[j] = (n1 << 4) | (n2 << 0)
            except (ValueError, IndexError):
                # Invalid or partial %, treat as literal
                res[j] = 37
        else:
            res[j] = b

        j += 1

    return bytes(res[:j])


def find_bad_escape(data):
    """Return the index of the first '%' that does not start a valid escape, or -1."""
    bmv = _bytes(data)
    n = len(bmv)
    i = bmv.find(37)
    while i != -1:
        if i + 2 >= n or bmv[i+1] not in _hexdig_set or bmv[i+2] not in _hexdig_set:
            return i
        i = bmv.find(37, i + 3)
    return -1


# Email addresses

# addr-spec grammar only: quoted local parts, domain literals and dotless domains are valid
_VALIDATE_OPTIONS = dict(
    check_deliverability=False,
    allow_quoted_local=True,
    allow_domain_literal=True,
    globally_deliverable=False,
)


class EmailAddress(str):
    """An addr-spec accepted by email-validator, kept exactly as written."""

    __slots__ = ()

    def __new__(cls, text):
        if isinstance(text, EmailAddress):
            return text
        if not isinstance(text, str):
            raise TypeError('email address must be str, not ' + type(text).__name__)
        try:
            validate_email(text, **_VALIDATE_OPTIONS)
        except EmailNotValidError as e:
            raise InvalidEmailAddress(text) from e
        return super().__new__(cls, text)

    def __repr__(self):
        return 'EmailAddress(' + str.__repr__(self) + ')'

    @property
    def local_part(self):
        return self.rpartition('@')[0]

    @property
    def domain(self):
        return self.rpartition('@')[2]

    @property
    def normalized(self):
        return validate_email(str(self), **_VALIDATE_OPTIONS).normalized


def _addresses(values):
    res = []
    for value in values:
        try:
            res.append(EmailAddress(value))
        except InvalidEmailAddress:
            continue
    return tuple(res)


def _unordered(self, other):
    return NotImplemented


# Header fields

class Header(namedtuple('Header', 'name value')):

    __slots__ = ()

    def __new__(cls, name, value=''):
        if not isinstance(name, str) or not isinstance(value, str):
            raise TypeError('header name and value must be str')
        if not name:
            raise EmptyName(name + '=' + value)
        return super().__new__(cls, name, value)

    @classmethod
    def parse(cls, data, strict=False):
        """Parse one ``hfname=hfvalue`` field.

        Only the first '=' separates name from value. Both halves are
        percent-decoded leniently and converted to text with replacement
        characters for invalid UTF-8. With strict=True a malformed escape
        raises InvalidPercentEncoding instead of being kept literally.
        """
        bmv = _bytes(data)
        if not bmv:
            raise EmptyField()

        k = bmv.find(61) # =
        if k == -1:
            raise MissingEquals(_text(bmv))
        if k == 0:
            raise EmptyName(_text(bmv))
        if strict and find_bad_escape(bmv) != -1:
            raise InvalidPercentEncoding(_text(bmv))

        name = _text(percent_decode(bmv[:k]))
        value = _text(percent_decode(bmv[k+1:]))
        return cls(name, value)

    @classmethod
    def subject(cls, value):
        return cls('subject', value)

    @classmethod
    def body(cls, value):
        return cls('body', value)

    @classmethod
    def cc(cls, value):
        return cls('cc', value)

    @classmethod
    def bcc(cls, value):
        return cls('bcc', value)

    @classmethod
    def to(cls, value):
        return cls('to', value)

    @classmethod
    def in_reply_to(cls, value):
        return cls('in-reply-to', value)

    def to_bytes(self):
        return percent_encode(self.name, QCHAR) + b'=' + percent_encode(self.value, QCHAR)

    def __bytes__(self):
        return self.to_bytes()

    def __str__(self):
        return self.to_bytes().decode('ascii')

    def __eq__(self, other):
        if not isinstance(other, Header):
            return False if isinstance(other, tuple) else NotImplemented
        return self.name.lower() == other.name.lower() and self.value == other.value

    def __ne__(self, other):
        res = self.__eq__(other)
        return res if res is NotImplemented else not res

    def __hash__(self):
        return hash((self.name.lower(), self.value))

    __lt__ = __le__ = __gt__ = __ge__ = _unordered


# mailto URIs

class Mailto(namedtuple('Mailto', 'to headers')):

    __slots__ = ()

    def __new__(cls, to=(), headers=()):
        if isinstance(to, (str, bytes)):
            raise TypeError('to must be a sequence of addresses, not a single string')
        to = tuple(EmailAddress(addr) for addr in to)
        headers = tuple(h if isinstance(h, Header) else Header(*h) for h in headers)
        return super().__new__(cls, to, headers)

    @classmethod
    def parse(cls, data, strict=False):
        """Parse a ``mailto:`` URI from bytes (or str).

        Only an empty input or a missing scheme fails the parse. Recipients
        the address validator rejects and header fields that cannot be
        parsed are dropped, unless strict=True, in which case they raise
        InvalidEmailAddress, InvalidHeader or InvalidPercentEncoding.
        """
        bmv = _bytes(data)
        if not bmv:
            raise EmptyURI()
        if len(bmv) < 7 or bmv[:7].lower() != b'mailto:':
            raise MissingScheme(_text(bmv))

        # The first literal '?' ends the path, any later '?' belongs to the query
        path, _, query = bmv[7:].partition(b'?')

        if strict:
            for part in (path, query):
                if find_bad_escape(part) != -1:
                    raise InvalidPercentEncoding(_text(part))

        to = []
        if path:
            for segment in percent_decode(path).split(b','):
                segment = segment.strip(b' \t')
                if not segment:
                    continue
                text = _text(segment)
                try:
                    to.append(EmailAddress(text))
                except InvalidEmailAddress:
                    if strict:
                        raise
                    _log.debug('dropping invalid recipient %r', text)

        headers = []
        if query:
            for field in query.split(b'&'):
                if not field:
                    continue
                try:
                    headers.append(Header.parse(field, strict=strict))
                except HeaderError as e:
                    if strict:
                        raise InvalidHeader(_text(field)) from e
                    _log.debug('dropping invalid header field %r: %s', field, e)

        return cls(to, headers)

    def to_bytes(self):
        res = bytearray(b'mailto:')
        res += b','.join(percent_encode(addr, ADDR_SPEC_SAFE) for addr in self.to)
        if self.headers:
            res += b'?'
            res += b'&'.join(h.to_bytes() for h in self.headers)
        return bytes(res)

    def __bytes__(self):
        return self.to_bytes()

    def __str__(self):
        return self.to_bytes().decode('utf-8')

    def _values(self, name):
        return [h.value for h in self.headers if h.name.lower() == name]

    def _first(self, name):
        for h in self.headers:
            if h.name.lower() == name:
                return h.value
        return None

    @property
    def subject(self):
        return self._first('subject')

    @property
    def body(self):
        return self._first('body')

    @property
    def all_to(self):
        # to headers are only merged here, never serialized into the path
        return self.to + _addresses(self._values('to'))

    @property
    def cc(self):
        return _addresses(self._values('cc'))

    @property
    def bcc(self):
        return _addresses(self._values('bcc'))

    def __eq__(self, other):
        if not isinstance(other, Mailto):
            return False if isinstance(other, tuple) else NotImplemented
        return self.to == other.to and self.headers == other.headers

    def __ne__(self, other):
        res = self.__eq__(other)
        return res if res is NotImplemented else not res

    def __hash__(self):
        return hash((self.to, self.headers))

    __lt__ = __le__ = __gt__ = __ge__ = _unordered
