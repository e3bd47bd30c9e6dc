"""
Field catalog and value store API.

Covers:
  - Fields append at max(display_order) + 1; gaps are never reused
  - Type and dropdown-option validation
  - Field lookups are scoped to their tier
  - Template import appends after existing fields in template order
  - Leaf-only writes; parents answer 409 ERR_PARENT_TIER_READ_ONLY
  - Upsert is idempotent and routes the payload by field type
  - A batch write with one invalid entry writes nothing
"""

import pytest

API = "/api/v1"


# ── Helpers ──────────────────────────────────────────────────────────────────


def _post(client, url, data=None, headers=None):
    return client.post(f"{API}{url}", json=data or {}, headers=headers)


def _get(client, url, headers=None):
    return client.get(f"{API}{url}", headers=headers)


def _put(client, url, data=None, headers=None):
    return client.put(f"{API}{url}", json=data or {}, headers=headers)


def _delete(client, url, headers=None):
    return client.delete(f"{API}{url}", headers=headers)


def _add_field(client, headers, tier_id, name, field_type="string", options=None):
    payload = {"field_name": name, "field_type": field_type}
    if options is not None:
        payload["field_options"] = options
    return _post(client, f"/tiers/{tier_id}/fields", payload, headers)


@pytest.fixture()
def tree(client, admin_headers):
    """Team (parent) with leaves Alice and Bob."""
    pid = _post(client, "/projects", {"name": "Org"}, admin_headers).get_json()["id"]

    def tier(name, parent_id=None):
        res = _post(client, f"/projects/{pid}/tiers", {"name": name, "parent_id": parent_id}, admin_headers)
        return res.get_json()["id"]

    team = tier("Team")
    return {"project_id": pid, "team": team, "alice": tier("Alice", team), "bob": tier("Bob", team)}


# ═════════════════════════════════════════════════════════════════════════════
# Field catalog
# ═════════════════════════════════════════════════════════════════════════════


class TestFieldCatalog:
    def test_append_order_never_reuses_gaps(self, client, admin_headers, tree):
        ids = [
            _add_field(client, admin_headers, tree["alice"], name).get_json()["id"]
            for name in ("A", "B", "C")
        ]
        _delete(client, f"/tiers/{tree['alice']}/fields/{ids[1]}", admin_headers)
        d = _add_field(client, admin_headers, tree["alice"], "D").get_json()
        assert d["display_order"] == 3

        fields = _get(client, f"/tiers/{tree['alice']}/fields", admin_headers).get_json()["fields"]
        assert [(f["field_name"], f["display_order"]) for f in fields] == [("A", 0), ("C", 2), ("D", 3)]

    def test_fields_are_not_inherited(self, client, admin_headers, tree):
        _add_field(client, admin_headers, tree["team"], "Budget", "number")
        fields = _get(client, f"/tiers/{tree['alice']}/fields", admin_headers).get_json()["fields"]
        assert fields == []

    def test_unknown_type_rejected(self, client, admin_headers, tree):
        res = _add_field(client, admin_headers, tree["alice"], "X", "hologram")
        assert res.status_code == 422

    def test_blank_name_rejected(self, client, admin_headers, tree):
        res = _add_field(client, admin_headers, tree["alice"], "  ")
        assert res.status_code == 422

    def test_dropdown_requires_options(self, client, admin_headers, tree):
        assert _add_field(client, admin_headers, tree["alice"], "Status", "dropdown").status_code == 422
        res = _add_field(client, admin_headers, tree["alice"], "Status", "dropdown", ["Open", " Done ", ""])
        assert res.status_code == 201
        assert res.get_json()["options"] == ["Open", "Done"]

    def test_member_cannot_define_fields(self, client, member_headers, tree):
        res = _add_field(client, member_headers, tree["alice"], "Hours", "number")
        assert res.status_code == 403

    def test_delete_scoped_to_tier(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        res = _delete(client, f"/tiers/{tree['bob']}/fields/{field['id']}", admin_headers)
        assert res.status_code == 404
        assert len(_get(client, f"/tiers/{tree['alice']}/fields", admin_headers).get_json()["fields"]) == 1

    def test_delete_by_query_string(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": 3}, admin_headers)

        res = _delete(client, f"/tiers/{tree['alice']}/fields?fieldId={field['id']}", admin_headers)
        assert res.status_code == 200
        assert _get(client, f"/tiers/{tree['alice']}/data", admin_headers).get_json()["data"] == []

    def test_delete_without_field_id_is_bad_request(self, client, admin_headers, tree):
        assert _delete(client, f"/tiers/{tree['alice']}/fields", admin_headers).status_code == 400


class TestTemplateImport:
    def test_appends_in_template_order(self, client, admin_headers, tree):
        _add_field(client, admin_headers, tree["alice"], "Existing")
        template = _post(client, "/field-templates", {
            "name": "Hours",
            "fields": [
                {"field_name": "Planned", "field_type": "number"},
                {"field_name": "Actual", "field_type": "number"},
            ],
        }, admin_headers).get_json()

        res = _post(client, f"/tiers/{tree['alice']}/import-template", {"templateId": template["id"]}, admin_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["fields_added"] == 2
        assert [(f["field_name"], f["display_order"]) for f in body["fields"]] == [
            ("Existing", 0), ("Planned", 1), ("Actual", 2),
        ]

    def test_unknown_template(self, client, admin_headers, tree):
        res = _post(client, f"/tiers/{tree['alice']}/import-template", {"templateId": 777}, admin_headers)
        assert res.status_code == 404

    def test_template_id_required(self, client, admin_headers, tree):
        res = _post(client, f"/tiers/{tree['alice']}/import-template", {}, admin_headers)
        assert res.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Values
# ═════════════════════════════════════════════════════════════════════════════


class TestValues:
    def test_upsert_is_idempotent(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        for _ in range(2):
            res = _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": "12.5"}, admin_headers)
            assert res.status_code == 200
        data = _get(client, f"/tiers/{tree['alice']}/data", admin_headers).get_json()["data"]
        assert len(data) == 1
        assert data[0]["value"] == 12.5
        assert data[0]["text_value"] is None

    def test_overwrite_replaces_value(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": 1}, admin_headers)
        _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": 9}, admin_headers)
        data = _get(client, f"/tiers/{tree['alice']}/data", admin_headers).get_json()["data"]
        assert [d["value"] for d in data] == [9]

    def test_text_types_route_to_text_column(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Color", "color").get_json()
        res = _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": "#FFF"}, admin_headers)
        written = res.get_json()["data"][0]
        assert written == {"field_id": field["id"], "value": None, "text_value": "#ffffff"}

    def test_clearing_a_value(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": 4}, admin_headers)
        _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": None}, admin_headers)
        data = _get(client, f"/tiers/{tree['alice']}/data", admin_headers).get_json()["data"]
        assert data[0]["value"] is None and data[0]["text_value"] is None

    def test_parent_is_read_only(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["team"], "Budget", "number").get_json()
        res = _put(client, f"/tiers/{tree['team']}/data", {"field_id": field["id"], "value": 100}, admin_headers)
        assert res.status_code == 409
        body = res.get_json()
        assert body["code"] == "ERR_PARENT_TIER_READ_ONLY"
        assert body["details"]["child_count"] == 2
        assert _get(client, f"/tiers/{tree['team']}/data", admin_headers).get_json()["data"] == []

    def test_field_of_another_tier_not_found(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["bob"], "Hours", "number").get_json()
        res = _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": 1}, admin_headers)
        assert res.status_code == 404

    def test_invalid_value_rejected(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Mail", "email").get_json()
        res = _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": "not-an-email"}, admin_headers)
        assert res.status_code == 422

    def test_number_beyond_float_range_rejected(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        res = _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": int("9" * 400)}, admin_headers)
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert _get(client, f"/tiers/{tree['alice']}/data", admin_headers).get_json()["data"] == []

    def test_dropdown_value_must_be_an_option(self, client, admin_headers, tree):
        field = _add_field(client, admin_headers, tree["alice"], "Status", "dropdown", "Open\nDone").get_json()
        bad = _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": "Later"}, admin_headers)
        assert bad.status_code == 422
        good = _put(client, f"/tiers/{tree['alice']}/data", {"field_id": field["id"], "value": "Done"}, admin_headers)
        assert good.get_json()["data"][0]["text_value"] == "Done"

    def test_batch_is_all_or_nothing(self, client, admin_headers, tree):
        hours = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        url = _add_field(client, admin_headers, tree["alice"], "Link", "url").get_json()
        res = _put(client, f"/tiers/{tree['alice']}/data", {"values": [
            {"field_id": hours["id"], "value": 8},
            {"field_id": url["id"], "value": "ftp://nope"},
        ]}, admin_headers)
        assert res.status_code == 422
        assert _get(client, f"/tiers/{tree['alice']}/data", admin_headers).get_json()["data"] == []

    def test_batch_write(self, client, member_headers, admin_headers, tree):
        hours = _add_field(client, admin_headers, tree["alice"], "Hours", "number").get_json()
        note = _add_field(client, admin_headers, tree["alice"], "Note", "textarea").get_json()
        res = _put(client, f"/tiers/{tree['alice']}/data", {"values": [
            {"field_id": hours["id"], "value": 8},
            {"field_id": note["id"], "text_value": "on leave"},
        ]}, member_headers)
        assert res.status_code == 200
        data = _get(client, f"/tiers/{tree['alice']}/data", admin_headers).get_json()["data"]
        assert {d["field_id"]: (d["value"], d["text_value"]) for d in data} == {
            hours["id"]: (8.0, None),
            note["id"]: (None, "on leave"),
        }

    def test_missing_field_id_is_bad_request(self, client, admin_headers, tree):
        res = _put(client, f"/tiers/{tree['alice']}/data", {"value": 1}, admin_headers)
        assert res.status_code == 400
