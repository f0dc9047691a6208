import json

import responses

from s3sign.cli import create_bucket_configuration, main, parse_header_args, parse_query_args

CREDENTIALS = ['--id', 'AKIDEXAMPLE', '--key', 'secret']


def test_parse_header_args():
    headers = parse_header_args([
        'Content-Type: text/plain',
        'x-amz-meta-tag: a',
        'X-Amz-Meta-Tag: b',
        'garbage',
    ])
    assert headers == {'content-type': 'text/plain', 'x-amz-meta-tag': 'a,b'}


def test_parse_query_args():
    assert parse_query_args(['prefix=photos/', 'uploads']) == {'prefix': 'photos/', 'uploads': ''}


def test_create_bucket_configuration():
    assert create_bucket_configuration('') is None
    assert create_bucket_configuration('us-east-1') is None
    assert create_bucket_configuration('eu-west-1') == {
        'createBucketConfiguration': {'locationConstraint': 'eu-west-1'}
    }


def test_presign_prints_url(capsys):
    assert main(CREDENTIALS + ['--presign', '60', 'mybucket', 'a.txt']) == 0
    url = capsys.readouterr().out.strip()
    assert url.startswith('https://mybucket.s3.amazonaws.com/a.txt?X-Amz-Algorithm=AWS4-HMAC-SHA256&')
    assert 'X-Amz-Expires=60' in url


@responses.activate
def test_get_json_output(capsys):
    responses.add(responses.GET, 'https://mybucket.s3.amazonaws.com/a.txt', body='hi',
                  headers={'ETag': '"1"'})
    assert main(CREDENTIALS + ['--json', 'mybucket', 'a.txt']) == 0
    output = json.loads(capsys.readouterr().out)
    assert output['status_code'] == 200
    assert output['error'] == ''
    assert output['body'] == 'hi'


@responses.activate
def test_not_found_exit_status(capsys):
    responses.add(responses.HEAD, 'http://localhost:9000/mybucket/missing', status=404)
    argv = CREDENTIALS + ['--head', '--host', 'localhost', '--port', '9000', '--http', '--pathStyle',
                          'mybucket', 'missing']
    assert main(argv) == 1
    assert 'HTTP/1.1 404' in capsys.readouterr().out


@responses.activate
def test_save_request(tmp_path, capsys):
    responses.add(responses.PUT, 'https://mybucket.s3.amazonaws.com/up.txt', status=200)
    source = tmp_path / 'up.txt'
    source.write_bytes(b'payload')
    dump = tmp_path / 'dump.txt'
    argv = CREDENTIALS + ['--put', str(source), '--calculateContentMd5', '--saveRequest', str(dump),
                          'mybucket', 'up.txt']
    assert main(argv) == 0
    saved = dump.read_bytes()
    assert saved.startswith(b'=== REQUEST ===\nPUT https://mybucket.s3.amazonaws.com/up.txt HTTP/1.1\n')
    assert b'content-md5: ' in saved
    assert b'=== CANONICAL REQUEST ===' in saved
    assert b'HTTP/1.1 200' in saved
