import pytest
from botocore.exceptions import ClientError

from weaver_service import storage
from weaver_service.storage import StorageError, store_result

R2_ENV = {
    "R2_ENDPOINT": "https://r2.example.com",
    "R2_ACCESS_KEY_ID": "id",
    "R2_SECRET_ACCESS_KEY": "secret",
    "R2_BUCKET_NAME": "weaves",
}


class FakeS3:
    def __init__(self, error=None):
        self.error = error
        self.puts = []

    def put_object(self, **kwargs):
        if self.error is not None:
            raise self.error
        self.puts.append(kwargs)

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        return f"https://signed.example.com/{Params['Bucket']}/{Params['Key']}?exp={ExpiresIn}"


@pytest.fixture
def fake_s3(monkeypatch):
    client = FakeS3()
    monkeypatch.setattr(storage, "_get_s3_client", lambda settings: client)
    return client


def test_store_result_is_skipped_without_configuration(fake_s3):
    assert store_result(b"img", "image/png") is None
    assert fake_s3.puts == []


def test_store_result_uses_public_base_url(set_env, fake_s3):
    set_env(R2_PUBLIC_BASE_URL="https://cdn.example.com/", **R2_ENV)
    url = store_result(b"img", "image/jpeg")

    put = fake_s3.puts[0]
    assert put["Bucket"] == "weaves"
    assert put["Body"] == b"img"
    assert put["ContentType"] == "image/jpeg"
    assert put["Key"].startswith("weaver/") and put["Key"].endswith(".jpeg")
    assert url == f"https://cdn.example.com/{put['Key']}"


def test_store_result_falls_back_to_presigned_url(set_env, fake_s3):
    set_env(**R2_ENV)
    url = store_result(b"img", "image/png")
    assert url.startswith("https://signed.example.com/weaves/weaver/")
    assert url.endswith("?exp=3600")


def test_store_result_wraps_upload_errors(set_env, monkeypatch):
    set_env(**R2_ENV)
    error = ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "PutObject")
    monkeypatch.setattr(storage, "_get_s3_client", lambda settings: FakeS3(error=error))
    with pytest.raises(StorageError, match="Upload to storage failed"):
        store_result(b"img", "image/png")


def test_get_s3_client_requires_configuration():
    from weaver_service import config

    with pytest.raises(RuntimeError, match="incomplete"):
        storage._get_s3_client(config.get_settings())
