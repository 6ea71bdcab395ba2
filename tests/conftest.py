from io import BytesIO
from types import SimpleNamespace

import pytest
from PIL import Image

from weaver_service import config, genai_client
from weaver_service.data_uri import to_data_uri

ENV_VARS = (
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
    "GEMINI_MODEL",
    "MAX_IMAGE_BYTES",
    "MAX_INPUT_LONG_EDGE",
    "MAX_INPUT_PIXELS",
    "ALLOW_URL_SOURCES",
    "MAX_TEXT_LENGTH",
    "OUTPUT_FORMAT",
    "R2_ENDPOINT",
    "R2_ACCESS_KEY_ID",
    "R2_SECRET_ACCESS_KEY",
    "R2_BUCKET_NAME",
    "R2_PUBLIC_BASE_URL",
    "DEBUG",
    "DEBUG_OUTPUT_DIR",
    "REQUEST_TIMEOUT_SECONDS",
    "LOG_LEVEL",
)


def make_image_bytes(size=(64, 48), color=(200, 30, 30), fmt="PNG", mode="RGB", **save_kwargs) -> bytes:
    image = Image.new(mode, size, color)
    buf = BytesIO()
    image.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


def make_data_uri(size=(64, 48), fmt="PNG", mime_type="image/png") -> str:
    return to_data_uri(make_image_bytes(size=size, fmt=fmt), mime_type)


def make_response(*parts):
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))])


def image_part(data: bytes, mime_type: str = "image/png"):
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))


def text_part(text: str):
    return SimpleNamespace(text=text, inline_data=None)


class FakeModels:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return self.response


class FakeClient:
    def __init__(self, response=None, error=None):
        self.models = FakeModels(response=response, error=error)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    # Keep a developer's .env out of the tests.
    monkeypatch.chdir(tmp_path)
    config.get_settings.cache_clear()
    genai_client.reset_client()
    yield
    config.get_settings.cache_clear()
    genai_client.reset_client()


@pytest.fixture
def set_env(monkeypatch):
    def _set(**values):
        for key, value in values.items():
            monkeypatch.setenv(key, str(value))
        config.get_settings.cache_clear()

    return _set


@pytest.fixture
def fake_client(monkeypatch):
    """Route model calls to a fake that answers with a small PNG."""
    client = FakeClient(response=make_response(text_part("Here you go"), image_part(make_image_bytes((80, 60)))))
    monkeypatch.setattr(genai_client, "get_genai_client", lambda: client)
    return client
