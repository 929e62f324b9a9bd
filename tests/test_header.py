import pytest

from robtinkers.mailto import (
    EmptyField, EmptyName, Header, HeaderError, InvalidPercentEncoding,
    MailtoError, MissingEquals,
)


class TestHeaderParse:
    def test_basic(self):
        h = Header.parse(b'subject=Hello%20World')
        assert h.name == 'subject'
        assert h.value == 'Hello World'

    def test_accepts_str(self):
        assert Header.parse('body=hi') == Header('body', 'hi')

    def test_first_equals_splits(self):
        h = Header.parse(b'body=a=b=c')
        assert h.name == 'body'
        assert h.value == 'a=b=c'

    def test_empty_value(self):
        assert Header.parse(b'subject=').value == ''

    def test_encoded_name(self):
        assert Header.parse(b'in%2Dreply%2dto=x').name == 'in-reply-to'

    def test_lossy_utf8(self):
        assert Header.parse(b'subject=%FF').value == '�'

    def test_utf8_value(self):
        assert Header.parse(b'subject=Gr%C3%BC%C3%9Fe').value == 'Grüße'

    def test_malformed_escape_kept(self):
        assert Header.parse(b'subject=100%').value == '100%'

    def test_empty(self):
        with pytest.raises(EmptyField):
            Header.parse(b'')

    def test_missing_equals(self):
        with pytest.raises(MissingEquals) as excinfo:
            Header.parse(b'subject')
        assert excinfo.value.value == 'subject'
        assert "must contain '='" in str(excinfo.value)

    def test_empty_name(self):
        with pytest.raises(EmptyName) as excinfo:
            Header.parse(b'=value')
        assert excinfo.value.value == '=value'

    def test_strict_rejects_bad_escape(self):
        with pytest.raises(InvalidPercentEncoding) as excinfo:
            Header.parse(b'subject=100%', strict=True)
        assert isinstance(excinfo.value, HeaderError)
        assert isinstance(excinfo.value, MailtoError)

    def test_strict_accepts_good_escape(self):
        assert Header.parse(b'subject=a%20b', strict=True).value == 'a b'

    def test_errors_are_value_errors(self):
        with pytest.raises(ValueError):
            Header.parse(b'nothing')


class TestHeaderConstruction:
    def test_empty_name(self):
        with pytest.raises(EmptyName):
            Header('', 'x')

    def test_types(self):
        with pytest.raises(TypeError):
            Header('subject', 1)

    def test_immutable(self):
        h = Header('subject', 'x')
        with pytest.raises(AttributeError):
            h.value = 'y'

    @pytest.mark.parametrize('factory, name', [
        (Header.subject, 'subject'),
        (Header.body, 'body'),
        (Header.cc, 'cc'),
        (Header.bcc, 'bcc'),
        (Header.to, 'to'),
        (Header.in_reply_to, 'in-reply-to'),
    ])
    def test_named_constructors(self, factory, name):
        h = factory('value')
        assert h.name == name
        assert h.value == 'value'


class TestHeaderEquality:
    def test_name_case_insensitive(self):
        assert Header('Subject', 'x') == Header('subject', 'x')
        assert hash(Header('Subject', 'x')) == hash(Header('subject', 'x'))

    def test_value_case_sensitive(self):
        assert Header('subject', 'X') != Header('subject', 'x')

    def test_set_membership(self):
        assert len({Header('CC', 'a'), Header('cc', 'a'), Header('cc', 'b')}) == 2

    def test_plain_tuples_never_equal(self):
        assert Header('subject', 'x') != ('subject', 'x')
        assert ('subject', 'x') != Header('subject', 'x')
        assert ('Subject', 'x') != Header('subject', 'x')

    def test_no_ordering(self):
        with pytest.raises(TypeError):
            Header('A', 'x') < Header('a', 'x')


class TestHeaderSerialize:
    def test_basic(self):
        assert bytes(Header.subject('Hello')) == b'subject=Hello'

    def test_escapes_structural_characters(self):
        h = Header('subject', 'Hello World & more=yes?')
        assert h.to_bytes() == b'subject=Hello%20World%20%26%20more%3Dyes%3F'

    def test_some_delims_literal(self):
        assert str(Header('body', "a!$'()*+,;:@b")) == "body=a!$'()*+,;:@b"

    def test_utf8(self):
        assert str(Header.subject('Grüße')) == 'subject=Gr%C3%BC%C3%9Fe'

    def test_round_trip(self):
        h = Header('In-Reply-To', '<3469A91.D10AF4C@example.com> 100% & =')
        assert Header.parse(bytes(h)) == h
