import os
import stat
import sys
import zipfile
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tfdeployer.modules.storage import ReleaseStorage, extract_archive


def client_error(code: str, operation: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def write_release(path):
    """Write a release archive with an executable helper script."""
    with zipfile.ZipFile(path, "w") as archive:
        archive.writestr("terraform/main.tf", 'resource "null_resource" "x" {}\n')
        script = zipfile.ZipInfo("terraform/scripts/hook.sh")
        script.create_system = 3
        script.external_attr = (stat.S_IFREG | 0o755) << 16
        archive.writestr(script, "#!/bin/sh\necho hook\n")
        archive.writestr(zipfile.ZipInfo("terraform/modules/"), "")


def test_state_exists():
    """Test that a found state object is reported"""
    client = MagicMock()
    storage = ReleaseStorage("eu-west-1", client=client)

    assert storage.state_exists("state", "svc/dev/terraform.tfstate") is True
    client.head_object.assert_called_once_with(Bucket="state", Key="svc/dev/terraform.tfstate")


@pytest.mark.parametrize("code", ["404", "NotFound", "NoSuchKey"])
def test_state_missing(code):
    """Test that not-found errors mean no state"""
    client = MagicMock()
    client.head_object.side_effect = client_error(code)
    storage = ReleaseStorage("eu-west-1", client=client)

    assert storage.state_exists("state", "svc/dev/terraform.tfstate") is False


def test_state_check_other_errors_propagate():
    """Test that access errors are not mistaken for missing state"""
    client = MagicMock()
    client.head_object.side_effect = client_error("403")
    storage = ReleaseStorage("eu-west-1", client=client)

    with pytest.raises(ClientError):
        storage.state_exists("state", "svc/dev/terraform.tfstate")


def test_download_release(short_tmp):
    """Test downloading and unpacking a release archive"""
    downloaded = []

    def fake_download(bucket, key, filename):
        downloaded.append(filename)
        write_release(filename)

    client = MagicMock()
    client.download_file.side_effect = fake_download
    storage = ReleaseStorage("eu-west-1", client=client)
    dest = os.path.join(short_tmp, "release")

    storage.download_release("releases", "svc/1.2.3.zip", dest)

    client.download_file.assert_called_once()
    assert client.download_file.call_args.args[:2] == ("releases", "svc/1.2.3.zip")
    assert os.path.isfile(os.path.join(dest, "terraform", "main.tf"))
    hook = os.path.join(dest, "terraform", "scripts", "hook.sh")
    assert os.stat(hook).st_mode & 0o777 == 0o755
    # Temporary archive is removed
    assert not os.path.exists(downloaded[0])


def test_download_failure_cleans_up(short_tmp):
    """Test that a failed download propagates and leaves no temp file"""
    downloaded = []

    def failing_download(bucket, key, filename):
        downloaded.append(filename)
        raise client_error("NoSuchKey", "GetObject")

    client = MagicMock()
    client.download_file.side_effect = failing_download
    storage = ReleaseStorage("eu-west-1", client=client)

    with pytest.raises(ClientError):
        storage.download_release("releases", "missing.zip", short_tmp)

    assert not os.path.exists(downloaded[0])


def test_extract_archive_skips_directories(short_tmp):
    """Test that only files are counted and extracted"""
    archive = os.path.join(short_tmp, "release.zip")
    write_release(archive)

    count = extract_archive(archive, os.path.join(short_tmp, "out"))

    assert count == 2
