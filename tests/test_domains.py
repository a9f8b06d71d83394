import pytest

from dealdesk.config import DOMAIN_SCAN_WEBHOOK_URL
from dealdesk.domains import InvalidDomain, clean_domain, validate_domain


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("acme.io", "acme.io"),
        ("  ACME.io ", "acme.io"),
        ("https://www.acme.io/about?x=1", "acme.io"),
        ("jane@acme.io", "acme.io"),
        ("http://app.acme.io:8080", "app.acme.io"),
    ],
)
def test_clean_domain(raw, expected):
    assert clean_domain(raw) == expected


@pytest.mark.parametrize("domain", ["gmail.com", "yahoo.fr", "localhost", "acme", "-bad.com", ""])
def test_validate_domain_rejects(domain):
    with pytest.raises(InvalidDomain):
        validate_domain(domain)


def test_first_domain_is_primary_and_scan_is_requested(client, integrations, company):
    resp = client.post(f"/companies/{company['id']}/domains", json={"domain": "https://acme.io"})
    assert resp.status_code == 201
    first = resp.json()
    assert first["domain"] == "acme.io"
    assert first["is_primary"] is True

    url, payload = integrations.notify.call_args.args
    assert url == DOMAIN_SCAN_WEBHOOK_URL
    assert payload == {"company_id": company["id"], "company_name": "Acme", "domain": "acme.io"}

    second = client.post(f"/companies/{company['id']}/domains", json={"domain": "acme.com"}).json()
    assert second["is_primary"] is False


def test_duplicate_and_generic_domains_rejected(client, company):
    path = f"/companies/{company['id']}/domains"
    assert client.post(path, json={"domain": "acme.io"}).status_code == 201
    assert client.post(path, json={"domain": "www.ACME.io"}).status_code == 400
    resp = client.post(path, json={"domain": "founder@gmail.com"})
    assert resp.status_code == 400
    assert "génériques" in resp.json()["detail"]


def test_set_primary_and_remove(client, company):
    path = f"/companies/{company['id']}/domains"
    first = client.post(path, json={"domain": "acme.io"}).json()
    second = client.post(path, json={"domain": "acme.com"}).json()

    resp = client.post(f"{path}/{second['id']}/primary")
    assert resp.json()["is_primary"] is True
    listed = client.get(path).json()
    assert [d["domain"] for d in listed] == ["acme.com", "acme.io"]
    assert [d["is_primary"] for d in listed] == [True, False]

    assert client.delete(f"{path}/{second['id']}").status_code == 204
    (remaining,) = client.get(path).json()
    assert remaining["id"] == first["id"]
    assert remaining["is_primary"] is True

    assert client.delete(f"{path}/missing").status_code == 404
