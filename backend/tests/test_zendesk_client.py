"""
Tests for the Zendesk client.
HTTP is served by httpx.MockTransport; no network access.
"""

import base64
import json
import os

import httpx
import pytest

from tco_agent.errors import ConfigError, DeliveryError, NetworkError, TicketingError
from tco_agent.services import http_retry
from tco_agent.services.zendesk import ZendeskClient, remove_files


BASE = "https://acme.zendesk.com/api/v2"


def _zendesk(handler) -> ZendeskClient:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ZendeskClient(domain="acme", user="agent@acme.test", api_key="tok", client=client)


def _comments_payload():
    return {
        "comments": [
            {
                "id": 1,
                "attachments": [
                    {
                        "id": 11,
                        "file_name": "order.pdf",
                        "content_type": "application/pdf",
                        "content_url": "https://acme.zendesk.com/attachments/token/abc/?name=order.pdf",
                        "size": 8,
                    },
                    {
                        "id": 12,
                        "file_name": "photo.png",
                        "content_type": "image/png",
                        "content_url": "https://acme.zendesk.com/attachments/token/def/?name=photo.png",
                    },
                ],
            },
            {"id": 2, "attachments": []},
        ]
    }


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    monkeypatch.setattr(http_retry, "RETRY_WAIT_SECONDS", 0)


class TestTickets:
    def test_fetch_ticket_uses_token_auth(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"ticket": {
                "id": 5158, "subject": "Removal order", "recipient": "tco@acme.test",
            }})

        ticket = _zendesk(handler).fetch_ticket("5158")

        assert ticket.id == "5158"
        assert ticket.recipient == "tco@acme.test"
        assert seen["url"] == f"{BASE}/tickets/5158.json"
        expected = base64.b64encode(b"agent@acme.test/token:tok").decode()
        assert seen["auth"] == f"Basic {expected}"

    def test_fetch_ticket_not_found(self):
        zendesk = _zendesk(lambda r: httpx.Response(404, json={"error": "RecordNotFound"}))
        with pytest.raises(TicketingError, match="404"):
            zendesk.fetch_ticket("1")

    def test_fetch_tickets_bulk(self):
        def handler(request):
            assert request.url.path == "/api/v2/tickets.json"
            assert request.url.params["ids"] == "1,2"
            return httpx.Response(200, json={"tickets": [{"id": 1}, {"id": 2.0}]})

        tickets = _zendesk(handler).fetch_tickets(["1", "2"])
        assert [t.id for t in tickets] == ["1", "2"]

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("ZENDESK_DOMAIN", raising=False)
        with pytest.raises(ConfigError, match="ZENDESK_DOMAIN"):
            ZendeskClient().fetch_ticket("1")


class TestAttachments:
    def test_downloads_only_pdfs(self):
        requested = []

        def handler(request):
            requested.append(request.url.path)
            if request.url.path.endswith("/comments.json"):
                return httpx.Response(200, json=_comments_payload())
            if request.url.path == "/attachments/token/abc/":
                return httpx.Response(
                    302, headers={"Location": "https://files.zdusercontent.test/order.pdf"}
                )
            if request.url.host == "files.zdusercontent.test":
                return httpx.Response(200, content=b"%PDF-1.4")
            raise AssertionError(f"unexpected request {request.url}")

        paths = _zendesk(handler).get_attachments("77")
        try:
            assert len(paths) == 1
            assert os.path.basename(paths[0]).startswith("77-attachment-")
            assert paths[0].endswith(".pdf")
            with open(paths[0], "rb") as fh:
                assert fh.read() == b"%PDF-1.4"
            assert "/attachments/token/def/" not in requested
        finally:
            remove_files(paths)

    def test_download_failure_removes_partial_files(self, monkeypatch):
        payload = _comments_payload()
        second_pdf = dict(payload["comments"][0]["attachments"][0], id=13,
                          content_url="https://acme.zendesk.com/attachments/token/ghi/")
        payload["comments"][1]["attachments"] = [second_pdf]
        created = []
        original_remove = remove_files

        def tracking_remove(paths):
            created.extend(paths)
            original_remove(paths)

        monkeypatch.setattr("tco_agent.services.zendesk.remove_files", tracking_remove)

        def handler(request):
            if request.url.path.endswith("/comments.json"):
                return httpx.Response(200, json=payload)
            if request.url.path == "/attachments/token/abc/":
                return httpx.Response(200, content=b"%PDF-1.4")
            return httpx.Response(500)

        with pytest.raises(TicketingError, match="order.pdf"):
            _zendesk(handler).get_attachments("77")

        assert len(created) == 1
        assert not os.path.exists(created[0])

    def test_ticket_without_attachments(self):
        zendesk = _zendesk(lambda r: httpx.Response(200, json={"comments": []}))
        assert zendesk.get_attachments("1") == []


class TestWrites:
    def test_reply_posts_public_comment(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        _zendesk(handler).reply("9", "Hello BKA")

        assert seen["method"] == "PUT"
        assert seen["url"] == f"{BASE}/tickets/9.json"
        assert seen["body"] == {"ticket": {"comment": {"body": "Hello BKA", "public": True}}}

    def test_reply_error_status(self):
        zendesk = _zendesk(lambda r: httpx.Response(422, text="invalid"))
        with pytest.raises(DeliveryError, match="422"):
            zendesk.reply("9", "Hello")

    def test_reply_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(NetworkError):
            _zendesk(handler).reply("9", "Hello")

    def test_add_tags(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"tags": ["tco-vo"]})

        _zendesk(handler).add_tags("9", ["tco-vo", "tco-vo-decision-banned"])

        assert seen["url"] == f"{BASE}/tickets/9/tags.json"
        assert seen["body"] == {"tags": ["tco-vo", "tco-vo-decision-banned"]}

    def test_add_no_tags_is_noop(self):
        def handler(request):
            raise AssertionError("no request expected")

        _zendesk(handler).add_tags("9", [])


class TestViews:
    def _handler(self, rows, tags):
        def handler(request):
            path = request.url.path
            if path == "/api/v2/views.json":
                return httpx.Response(200, json={"views": [
                    {"id": 1, "title": "Other"},
                    {"id": 360001, "title": "TCO - Handled Tickets"},
                ]})
            if path == "/api/v2/views/360001/execute.json":
                return httpx.Response(200, json={"rows": rows})
            if path == "/api/v2/tickets/9.json":
                return httpx.Response(200, json={"ticket": {"id": 9, "tags": tags}})
            raise AssertionError(f"unexpected request {request.url}")
        return handler

    def test_ticket_in_view(self):
        zendesk = _zendesk(self._handler([{"ticket": {"id": 9}}], []))
        assert zendesk.is_ticket_in_view("9") is True

    def test_ticket_id_in_flat_row(self):
        zendesk = _zendesk(self._handler([{"ticket_id": 8}, {"ticket_id": 9}], []))
        assert zendesk.is_ticket_in_view("9") is True

    def test_missing_agent_tag(self):
        zendesk = _zendesk(self._handler([], ["other"]))
        with pytest.raises(TicketingError, match="missing required tag 'tco-vo'"):
            zendesk.is_ticket_in_view("9")

    def test_missing_decision_tag(self):
        zendesk = _zendesk(self._handler([], ["tco-vo"]))
        with pytest.raises(TicketingError, match="missing decision tag"):
            zendesk.is_ticket_in_view("9")

    def test_fully_tagged_but_not_indexed(self):
        zendesk = _zendesk(self._handler([], ["tco-vo", "tco-vo-decision-banned"]))
        with pytest.raises(TicketingError, match="may need time to index"):
            zendesk.is_ticket_in_view("9")

    def test_unknown_view(self):
        zendesk = _zendesk(self._handler([], []))
        with pytest.raises(TicketingError, match="Available views"):
            zendesk.is_ticket_in_view("9", view_title="Missing")


class TestRemoveFiles:
    def test_ignores_missing_files(self, tmp_path):
        existing = tmp_path / "a.pdf"
        existing.write_bytes(b"x")
        remove_files([str(existing), str(tmp_path / "gone.pdf")])
        assert not existing.exists()
