import pytest
import requests

from cashledger.core import config
from cashledger.core.exceptions import DependencyError, ValidationError
from cashledger.utils import mailer, storage


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


@pytest.fixture
def storage_api(monkeypatch):
    monkeypatch.setattr(config, "STORAGE_API_URL", "https://storage.example.com/storage/v1")
    monkeypatch.setattr(config, "STORAGE_SERVICE_KEY", "service-key")
    monkeypatch.setattr(config, "SIGNED_URL_DEFAULT_EXPIRY", 60)
    calls = []

    def fake_post(url, json=None, headers=None, timeout=None):
        calls.append({"url": url, "json": json, "headers": headers})
        return FakeResponse([{"signedURL": f"/object/sign/receipts/{path}?token=t"} for path in json["paths"]])

    monkeypatch.setattr(storage.requests, "post", fake_post)
    return calls


class TestSignedUrls:
    def test_signs_paths_in_order(self, storage_api):
        urls = storage.create_signed_urls("receipts", ["2025/a.jpg", "2025/b.jpg"])
        assert urls == [
            "https://storage.example.com/storage/v1/object/sign/receipts/2025/a.jpg?token=t",
            "https://storage.example.com/storage/v1/object/sign/receipts/2025/b.jpg?token=t",
        ]
        assert storage_api[0]["url"] == "https://storage.example.com/storage/v1/object/sign/receipts"
        assert storage_api[0]["json"]["expiresIn"] == 60
        assert storage_api[0]["headers"]["Authorization"] == "Bearer service-key"

    def test_custom_expiry(self, storage_api):
        storage.create_signed_urls("receipts", ["a.jpg"], 300)
        assert storage_api[0]["json"]["expiresIn"] == 300

    @pytest.mark.parametrize("bucket, paths, expires_in", [
        (None, ["a.jpg"], None),
        ("receipts", [], None),
        ("receipts", "a.jpg", None),
        ("receipts", ["a.jpg"], 0),
        ("receipts", ["a.jpg"], "60"),
    ])
    def test_bad_input(self, storage_api, bucket, paths, expires_in):
        with pytest.raises(ValidationError):
            storage.create_signed_urls(bucket, paths, expires_in)
        assert storage_api == []

    def test_upstream_failure(self, monkeypatch):
        monkeypatch.setattr(storage.requests, "post", lambda *args, **kwargs: FakeResponse({}, status_code=500))
        with pytest.raises(DependencyError) as exc_info:
            storage.create_signed_urls("receipts", ["a.jpg"])
        assert exc_info.value.message == "Failed to generate signed URLs"


class TestMailer:
    def test_posts_to_mail_api(self, monkeypatch):
        monkeypatch.setattr(config, "MAIL_API_URL", "https://mail.example.com/send")
        monkeypatch.setattr(config, "MAIL_API_KEY", "mail-key")
        sent = []

        def fake_post(url, json=None, headers=None, timeout=None):
            sent.append((url, json, headers))
            return FakeResponse({"success": True, "id": "msg-1"})

        monkeypatch.setattr(mailer.requests, "post", fake_post)
        assert mailer.send_email("ravi@example.com", "Hello", "<p>Hi</p>")["id"] == "msg-1"
        url, payload, headers = sent[0]
        assert url == "https://mail.example.com/send"
        assert payload["to"] == ["ravi@example.com"]
        assert headers == {"Authorization": "Bearer mail-key"}

    def test_unconfigured(self, monkeypatch):
        monkeypatch.setattr(config, "MAIL_API_URL", "")
        with pytest.raises(DependencyError):
            mailer.send_email(["ravi@example.com"], "Hello", "<p>Hi</p>")

    def test_api_reports_failure(self, monkeypatch):
        monkeypatch.setattr(config, "MAIL_API_URL", "https://mail.example.com/send")
        monkeypatch.setattr(mailer.requests, "post",
                            lambda *args, **kwargs: FakeResponse({"success": False, "message": "quota exceeded"}))
        with pytest.raises(DependencyError) as exc_info:
            mailer.send_email(["ravi@example.com"], "Hello", "<p>Hi</p>")
        assert exc_info.value.message == "quota exceeded"

    def test_network_error(self, monkeypatch):
        monkeypatch.setattr(config, "MAIL_API_URL", "https://mail.example.com/send")

        def refuse(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(mailer.requests, "post", refuse)
        with pytest.raises(DependencyError):
            mailer.send_email(["ravi@example.com"], "Hello", "<p>Hi</p>")
