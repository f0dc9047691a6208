import xml.etree.ElementTree as ET

import pytest

from s3sign.xmlconv import S3_NAMESPACE, XML_DECLARATION, from_xml, to_xml


def test_to_xml_declaration_and_namespace_on_outermost_only():
    xml = to_xml({'createBucketConfiguration': {'locationConstraint': 'us-east-2'}})
    assert xml == (
        XML_DECLARATION
        + f'<CreateBucketConfiguration xmlns="{S3_NAMESPACE}">'
        + '<LocationConstraint>us-east-2</LocationConstraint>'
        + '</CreateBucketConfiguration>'
    )


def test_to_xml_arrays_repeat_elements():
    xml = to_xml({'delete': {'object': [{'key': 'a'}, {'key': 'b'}], 'quiet': True}})
    assert '<Object><Key>a</Key></Object><Object><Key>b</Key></Object><Quiet>true</Quiet>' in xml


def test_to_xml_escapes_text():
    xml = to_xml({'key': 'a<b&c'})
    assert '<Key xmlns="http://s3.amazonaws.com/doc/2006-03-01/">a&lt;b&amp;c</Key>' in xml


def test_to_xml_null_and_numbers():
    xml = to_xml({'a': {'b': None, 'c': 3}})
    assert '<B>null</B><C>3</C>' in xml


def test_from_xml_uses_tag_names_verbatim():
    text = (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<LocationConstraint xmlns="{S3_NAMESPACE}">eu-west-1</LocationConstraint>'
    )
    assert from_xml(text) == {'LocationConstraint': 'eu-west-1'}


def test_from_xml_nested_and_repeated():
    text = (
        f'<ListBucketResult xmlns="{S3_NAMESPACE}">'
        '<Name>b</Name>'
        '<Contents><Key>one</Key><Size>1</Size></Contents>'
        '<Contents><Key>two</Key><Size>2</Size></Contents>'
        '</ListBucketResult>'
    )
    assert from_xml(text) == {
        'ListBucketResult': {
            'Name': 'b',
            'Contents': [{'Key': 'one', 'Size': '1'}, {'Key': 'two', 'Size': '2'}],
        }
    }


def test_round_trip_keeps_structure_but_not_key_casing():
    tree = {'listBucketResult': {'name': 'b', 'prefix': 'photos/', 'contents': {'key': 'k'}}}
    back = from_xml(to_xml(tree))
    assert back != tree
    assert back == {'ListBucketResult': {'Name': 'b', 'Prefix': 'photos/', 'Contents': {'Key': 'k'}}}


def test_round_trip_is_exact_for_capitalized_keys():
    tree = {'Tagging': {'TagSet': {'Tag': [{'Key': 'a', 'Value': '1'}, {'Key': 'b', 'Value': '2'}]}}}
    assert from_xml(to_xml(tree)) == tree


def test_from_xml_rejects_malformed():
    with pytest.raises(ET.ParseError):
        from_xml('<not-closed>')
