import json

import pytest

from fleetdeck.shared.core.accounts import (
    build_account_catalog,
    load_account_catalog,
    parse_account_entries,
)
from fleetdeck.shared.core.credentials import AccountConfig, IdentityVersion
from fleetdeck.shared.core.exceptions import ConfigurationError


def _config(**overrides) -> AccountConfig:
    values = {
        "version": "v3",
        "region": "c3j1",
        "apiUser": "gncu-user",
        "apiPassword": "pw",
        "tenantId": "abcdef0123456789",
    }
    values.update(overrides)
    return AccountConfig.model_validate(values)


def test_single_account_per_region_uses_short_id():
    catalog = build_account_catalog([_config()], endpoint_domain="conoha.test")
    assert [a.account_id for a in catalog] == ["v3-c3j1"]


def test_shared_region_appends_tenant_fragment():
    catalog = build_account_catalog(
        [_config(tenantId="abcdefgh-1111"), _config(tenantId="12345678-2222")],
        endpoint_domain="conoha.test",
    )
    assert [a.account_id for a in catalog] == ["v3-c3j1-abcdefgh", "v3-c3j1-12345678"]


def test_same_region_on_different_versions_stays_unsuffixed():
    catalog = build_account_catalog(
        [_config(version="v2"), _config(version="v3")], endpoint_domain="conoha.test"
    )
    assert [a.account_id for a in catalog] == ["v2-c3j1", "v3-c3j1"]


def test_colliding_ids_are_rejected():
    with pytest.raises(ConfigurationError) as exc_info:
        build_account_catalog(
            [_config(tenantId="samepref-1"), _config(tenantId="samepref-2")],
            endpoint_domain="conoha.test",
        )
    assert exc_info.value.details == {"account_id": "v3-c3j1-samepref"}


def test_default_endpoints_per_generation():
    legacy, current = build_account_catalog(
        [_config(version="v2", region="tyo1"), _config()], endpoint_domain="conoha.io"
    )

    assert legacy.endpoints.identity == "https://identity.tyo1.conoha.io/v2.0"
    assert legacy.endpoints.compute == "https://compute.tyo1.conoha.io/v2/abcdef0123456789"
    assert legacy.endpoints.networking == "https://networking.tyo1.conoha.io/v2.0"
    assert current.endpoints.identity == "https://identity.c3j1.conoha.io/v3"
    assert current.endpoints.compute == "https://compute.c3j1.conoha.io/v2.1"
    assert current.endpoints.block_storage == "https://block-storage.c3j1.conoha.io/v3"


def test_endpoint_overrides_replace_defaults():
    (account,) = build_account_catalog(
        [_config(endpoints={"blockStorage": "https://volumes.internal/v3/"})],
        endpoint_domain="conoha.test",
    )
    assert account.endpoints.block_storage == "https://volumes.internal/v3"
    assert account.endpoints.compute == "https://compute.c3j1.conoha.test/v2.1"


def test_descriptor_keeps_password_secret():
    (account,) = build_account_catalog([_config()], endpoint_domain="conoha.test")
    assert "pw" not in repr(account.credentials)
    assert account.credentials.api_password.get_secret_value() == "pw"
    assert account.tenant_id == "abcdef0123456789"
    assert account.version is IdentityVersion.V3


def test_parse_accepts_list_wrapper_and_bare_object():
    entry = {"region": "c3j1", "apiUser": "u", "apiPassword": "p", "tenantId": "t"}

    assert len(parse_account_entries([entry, entry])) == 2
    assert len(parse_account_entries({"accounts": [entry]})) == 1
    (bare,) = parse_account_entries(entry)
    assert bare.version is IdentityVersion.V3


def test_parse_accepts_snake_case_keys():
    (config,) = parse_account_entries(
        [{"region": "c3j1", "api_user": "u", "api_password": "p", "tenant_id": "t"}]
    )
    assert config.api_user == "u"


def test_invalid_entry_reports_its_index():
    good = {"region": "c3j1", "apiUser": "u", "apiPassword": "p", "tenantId": "t"}
    bad = {"region": "   ", "apiUser": "u", "tenantId": "t"}

    with pytest.raises(ConfigurationError) as exc_info:
        parse_account_entries([good, bad])

    assert exc_info.value.details["index"] == 1
    assert exc_info.value.details["fields"]


def test_non_list_payload_is_rejected():
    with pytest.raises(ConfigurationError):
        parse_account_entries("accounts")


def test_load_account_catalog_from_file(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(
        json.dumps(
            {
                "accounts": [
                    {
                        "version": "v2",
                        "region": "tyo1",
                        "apiUser": "u1",
                        "apiPassword": "p1",
                        "tenantId": "t1",
                    },
                    {
                        "region": "c3j1",
                        "apiUser": "u2",
                        "apiPassword": "p2",
                        "tenantId": "t2",
                    },
                ]
            }
        ),
        encoding="utf-8",
    )

    catalog = load_account_catalog(path)

    assert [a.account_id for a in catalog] == ["v2-tyo1", "v3-c3j1"]
    assert catalog[1].endpoints.identity == "https://identity.c3j1.conoha.io/v3"


def test_load_uses_configured_path(tmp_path, monkeypatch):
    path = tmp_path / "accounts.json"
    path.write_text(
        json.dumps([{"region": "c3j1", "apiUser": "u", "apiPassword": "p", "tenantId": "t"}]),
        encoding="utf-8",
    )
    monkeypatch.setenv("ACCOUNTS_FILE", str(path))
    monkeypatch.setenv("ENDPOINT_DOMAIN", "example.net")

    (account,) = load_account_catalog()

    assert account.endpoints.compute == "https://compute.c3j1.example.net/v2.1"


def test_missing_file_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_account_catalog(tmp_path / "absent.json")


def test_malformed_json_is_a_configuration_error(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="not valid JSON"):
        load_account_catalog(path)
