from s3sign.hosts import Host, normalize_key, resolve_target, splice_region


def test_region_spliced_between_last_two_labels():
    assert splice_region('s3.example.com', 'us-west-2') == 's3.us-west-2.example.com'
    assert splice_region(Host.WASABI, 'eu-central-1') == 's3.eu-central-1.wasabisys.com'


def test_default_region_leaves_host_alone():
    assert splice_region('s3.example.com', 'us-east-1') == 's3.example.com'


def test_region_splice_keeps_port():
    assert splice_region('s3.example.com:9000', 'us-west-2') == 's3.us-west-2.example.com:9000'


def test_keys_always_start_with_slash():
    assert normalize_key(None) == '/'
    assert normalize_key('') == '/'
    assert normalize_key('k') == '/k'
    assert normalize_key('/k') == '/k'


def test_path_style_addressing():
    target = resolve_target('s3.example.com', key='/k', bucket='b', path_style=True)
    assert target.host == 's3.example.com'
    assert target.path == '/b/k'


def test_virtual_hosted_addressing():
    target = resolve_target('s3.example.com', key='/k', bucket='b', path_style=False)
    assert target.host == 'b.s3.example.com'
    assert target.path == '/k'


def test_no_bucket():
    target = resolve_target(Host.AMAZON)
    assert target == (Host.AMAZON, '/')


def test_region_and_bucket_combined():
    target = resolve_target('s3.amazonaws.com', key='x', bucket='b', region='eu-west-1')
    assert target.host == 'b.s3.eu-west-1.amazonaws.com'
    assert target.path == '/x'
