"""
Tests for the Nylas mailbox layer: grant lookup, the REST client (with
``requests`` mocked out) and the Mailbox helpers over a scripted client.
"""

from unittest import mock

import pytest
import requests

from caretqa.errors import MailboxConfigError, MailboxTimeout, MessageNotFoundError
from caretqa.mail import Mailbox, NylasClient, get_mailbox_for, grant_id_for_email, html_to_text
from caretqa.run_config import RunConfig


# ====================================================================
# Grants
# ====================================================================

class TestGrantLookup:

    def test_found(self):
        assert grant_id_for_email("qa@firm.test", '{"qa@firm.test": "grant-1"}') == "grant-1"

    def test_missing_variable(self, monkeypatch):
        monkeypatch.delenv("NYLAS_MAILBOXES", raising=False)
        with pytest.raises(MailboxConfigError, match="missing"):
            grant_id_for_email("qa@firm.test")

    def test_invalid_json(self):
        with pytest.raises(MailboxConfigError, match="not valid JSON"):
            grant_id_for_email("qa@firm.test", "{nope")

    def test_unmapped_email(self):
        with pytest.raises(MailboxConfigError, match="No grant id found for mailbox: x@firm.test"):
            grant_id_for_email("x@firm.test", '{"qa@firm.test": "grant-1"}')

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("NYLAS_MAILBOXES", '{"qa@firm.test": "grant-env"}')
        assert grant_id_for_email("qa@firm.test") == "grant-env"


# ====================================================================
# REST client
# ====================================================================

def _response(json_body=None, content=b"", status=200):
    response = mock.Mock()
    response.status_code = status
    response.json.return_value = json_body
    response.content = content
    response.text = ""
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status}")
    return response


class TestNylasClient:

    def test_requires_api_key(self):
        with pytest.raises(MailboxConfigError, match="NYLAS_API_KEY"):
            NylasClient("")

    def test_from_env_defaults_region(self):
        client = NylasClient.from_env({"NYLAS_API_KEY": "k"})
        assert client.api_uri == "https://api.us.nylas.com"
        assert client._session.headers["Authorization"] == "Bearer k"

    def test_list_messages(self):
        client = NylasClient("k", "https://api.eu.nylas.com/")
        with mock.patch.object(client._session, "get", return_value=_response({"data": [{"id": "m1"}]})) as get:
            messages = client.list_messages("g1", search_query_native="subject:Hi", limit=None)
        assert messages == [{"id": "m1"}]
        get.assert_called_once_with(
            "https://api.eu.nylas.com/v3/grants/g1/messages",
            params={"search_query_native": "subject:Hi"},
            timeout=client.timeout,
        )

    def test_find_and_download(self):
        client = NylasClient("k")
        responses = [_response({"data": {"id": "m1", "attachments": []}}), _response(content=b"%PDF")]
        with mock.patch.object(client._session, "get", side_effect=responses) as get:
            assert client.find_message("g1", "m1") == {"id": "m1", "attachments": []}
            assert client.download_attachment("g1", "a1", "m1") == b"%PDF"
        url, = get.call_args.args
        assert url.endswith("/v3/grants/g1/attachments/a1/download")
        assert get.call_args.kwargs["params"] == {"message_id": "m1"}

    def test_http_error_raises(self):
        client = NylasClient("k")
        with mock.patch.object(client._session, "get", return_value=_response(status=401)):
            with pytest.raises(requests.HTTPError):
                client.list_messages("g1")


# ====================================================================
# Mailbox
# ====================================================================

class FakeNylas:
    """Scripted NylasClient: each list_messages call pops the next result."""

    def __init__(self, listings=None, messages=None, attachment=b"bytes"):
        self.listings = list(listings or [])
        self.messages = messages or {}
        self.attachment = attachment
        self.list_calls = []
        self.downloads = []

    def list_messages(self, grant_id, **query):
        self.list_calls.append(query)
        if not self.listings:
            return []
        result = self.listings.pop(0) if len(self.listings) > 1 else self.listings[0]
        if isinstance(result, Exception):
            raise result
        return result

    def find_message(self, grant_id, message_id):
        return self.messages.get(message_id, {})

    def download_attachment(self, grant_id, attachment_id, message_id):
        self.downloads.append((attachment_id, message_id))
        return self.attachment


class FakeTime:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def clock(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


MESSAGE = {
    "id": "m1",
    "subject": "Invoice INV-1001",
    "body": "<html><head><style>p{}</style></head><body><p>Hello</p><p>Total: $10</p></body></html>",
    "attachments": [{"id": "a1", "filename": "invoice.pdf"}, {"id": "a2"}],
}


@pytest.fixture
def fake_time():
    return FakeTime()


def _mailbox(client, fake_time, timeout=30.0):
    return Mailbox(client, "g1", poll_interval=2.0, timeout=timeout,
                   sleep=fake_time.sleep, clock=fake_time.clock)


class TestHtmlToText:

    def test_strips_markup_and_styles(self):
        assert html_to_text(MESSAGE["body"]) == "Hello\nTotal: $10"

    def test_plain_text_passes(self):
        assert html_to_text("just text") == "just text"

    def test_empty(self):
        assert html_to_text("") == ""


class TestMailboxLookup:

    def test_requires_grant(self):
        with pytest.raises(MailboxConfigError):
            Mailbox(FakeNylas(), "")

    def test_search_by_subject(self, fake_time):
        client = FakeNylas([[MESSAGE]])
        assert _mailbox(client, fake_time).search_by_subject("Invoice", limit=1) == MESSAGE
        assert client.list_calls == [{"search_query_native": "subject:Invoice", "limit": 1}]

    def test_search_nothing_found(self, fake_time):
        with pytest.raises(MessageNotFoundError):
            _mailbox(FakeNylas([[]]), fake_time).search_by_subject("Nope")

    def test_get_latest_email(self, fake_time):
        assert _mailbox(FakeNylas([[MESSAGE]]), fake_time).get_latest_email("Invoice")["id"] == "m1"

    def test_get_message_id(self, fake_time):
        mailbox = _mailbox(FakeNylas([[MESSAGE]]), fake_time)
        assert mailbox.get_message_id("Invoice") == "m1"
        assert mailbox.get_message_id("  ") is None

    def test_get_message_id_not_found(self, fake_time):
        assert _mailbox(FakeNylas([[]]), fake_time).get_message_id("Nope") is None

    def test_get_message_id_on_http_error(self, fake_time):
        client = FakeNylas([requests.ConnectionError("down")])
        assert _mailbox(client, fake_time).get_message_id("Invoice") is None


class TestWaitForEmail:

    def test_returns_when_message_arrives(self, fake_time):
        client = FakeNylas([[], requests.ConnectionError("blip"), [MESSAGE]])
        message = _mailbox(client, fake_time).wait_for_email("Invoice")
        assert message["id"] == "m1"
        assert fake_time.sleeps == [2.0, 2.0]

    def test_times_out(self, fake_time):
        with pytest.raises(MailboxTimeout, match='"Invoice" not found within 10 s'):
            _mailbox(FakeNylas([[]]), fake_time, timeout=10).wait_for_email("Invoice")
        assert sum(fake_time.sleeps) >= 10


class TestMailboxContent:

    def test_body_content(self, fake_time):
        client = FakeNylas([[MESSAGE]], messages={"m1": MESSAGE})
        assert _mailbox(client, fake_time).get_body_content("Invoice") == "Hello\nTotal: $10"

    def test_body_falls_back_to_snippet(self, fake_time):
        message = {"id": "m1", "body": "", "snippet": "preview only"}
        client = FakeNylas([[message]], messages={"m1": message})
        assert _mailbox(client, fake_time).get_body_content("Invoice") == "preview only"

    def test_body_content_not_found(self, fake_time):
        assert _mailbox(FakeNylas([[]]), fake_time).get_body_content("Invoice") is None

    def test_attachment_metadata_and_id(self, fake_time):
        mailbox = _mailbox(FakeNylas(messages={"m1": MESSAGE}), fake_time)
        assert len(mailbox.get_attachment_metadata("m1")) == 2
        assert mailbox.get_attachment_id("m1") == "a1"

    def test_no_attachments(self, fake_time):
        mailbox = _mailbox(FakeNylas(messages={"m1": {"id": "m1"}}), fake_time)
        assert mailbox.get_attachment_metadata("m1") == []
        assert mailbox.get_attachment_id("m1") is None

    def test_download_attachment(self, fake_time):
        client = FakeNylas([[MESSAGE]], messages={"m1": MESSAGE}, attachment=b"%PDF-1.7")
        assert _mailbox(client, fake_time).download_attachment("Invoice") == b"%PDF-1.7"
        assert client.downloads == [("a1", "m1")]

    def test_download_without_message(self, fake_time):
        with pytest.raises(MessageNotFoundError):
            _mailbox(FakeNylas([[]]), fake_time).download_attachment("Invoice")

    def test_all_params(self, fake_time):
        client = FakeNylas([[MESSAGE]], messages={"m1": MESSAGE})
        params = _mailbox(client, fake_time).get_all_params("Invoice")
        assert params == {
            "subject": "Invoice INV-1001",
            "attachment_metadata": MESSAGE["attachments"],
            "body_content": "Hello\nTotal: $10",
        }

    def test_all_params_come_from_one_message(self, fake_time):
        newer = {"id": "m2", "subject": "Invoice INV-1002", "body": "<p>Newer</p>", "attachments": []}
        client = FakeNylas([[MESSAGE], [newer]], messages={"m1": MESSAGE, "m2": newer})
        params = _mailbox(client, fake_time).get_all_params("Invoice")
        assert params["subject"] == "Invoice INV-1001"
        assert params["body_content"] == "Hello\nTotal: $10"
        assert params["attachment_metadata"] == MESSAGE["attachments"]
        assert len(client.list_calls) == 1

    def test_all_params_none_when_missing(self, fake_time):
        assert _mailbox(FakeNylas([[]]), fake_time).get_all_params("Invoice") is None
        assert _mailbox(FakeNylas([[]]), fake_time).get_all_params("") is None


class TestGetMailboxFor:

    def test_uses_suite_polling_defaults(self):
        config = RunConfig(nylas_api_key="k", nylas_mailboxes={"qa@firm.test": "grant-9"})
        mailbox = get_mailbox_for("qa@firm.test", config=config)
        assert mailbox.grant_id == "grant-9"
        assert mailbox.poll_interval == 20.0
        assert mailbox.timeout == 300.0

    def test_unknown_mailbox(self, monkeypatch):
        monkeypatch.setenv("NYLAS_MAILBOXES", '{"qa@firm.test": "grant-9"}')
        with pytest.raises(MailboxConfigError, match="No grant id"):
            get_mailbox_for("other@firm.test", config=RunConfig(nylas_api_key="k"))

    def test_missing_api_key(self):
        config = RunConfig(nylas_mailboxes={"qa@firm.test": "grant-9"})
        with pytest.raises(MailboxConfigError, match="NYLAS_API_KEY"):
            get_mailbox_for("qa@firm.test", config=config)
