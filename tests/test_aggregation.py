"""
Aggregation of numeric leaf values up the tier tree.

Totals are keyed by field name, recomputed on every read and never stored.
"""

import pytest

from tierbook.services import aggregation, tier_service, value_service
from tierbook.services.field_service import add_field

API = "/api/v1"


def _post(client, url, data=None, headers=None):
    return client.post(f"{API}{url}", json=data or {}, headers=headers)


def _get(client, url, headers=None):
    return client.get(f"{API}{url}", headers=headers)


def _put(client, url, data=None, headers=None):
    return client.put(f"{API}{url}", json=data or {}, headers=headers)


@pytest.fixture()
def dept(client, admin_headers):
    """
    Dept
    ├── Team A
    │   ├── Alice  Hours=5
    │   └── Bob    Hours=3
    └── Team B
        └── Carol  Hours=4
    """
    pid = _post(client, "/projects", {"name": "Org"}, admin_headers).get_json()["id"]
    ids = {"project_id": pid}

    def tier(key, name, parent=None):
        parent_id = ids[parent] if parent else None
        res = _post(client, f"/projects/{pid}/tiers", {"name": name, "parent_id": parent_id}, admin_headers)
        ids[key] = res.get_json()["id"]

    def hours(key, amount):
        field = _post(client, f"/tiers/{ids[key]}/fields",
                      {"field_name": "Hours", "field_type": "number"}, admin_headers).get_json()
        _put(client, f"/tiers/{ids[key]}/data", {"field_id": field["id"], "value": amount}, admin_headers)

    tier("dept", "Dept")
    tier("team_a", "Team A", "dept")
    tier("team_b", "Team B", "dept")
    tier("alice", "Alice", "team_a")
    tier("bob", "Bob", "team_a")
    tier("carol", "Carol", "team_b")
    hours("alice", 5)
    hours("bob", 3)
    hours("carol", 4)
    return ids


class TestAggregateEndpoint:
    def test_root_total(self, client, admin_headers, dept):
        res = _get(client, f"/tiers/{dept['dept']}/aggregate", admin_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["aggregated"] == {"Hours": 12}
        assert body["is_leaf"] is False
        assert body["child_count"] == 2

    def test_intermediate_totals(self, client, admin_headers, dept):
        assert _get(client, f"/tiers/{dept['team_a']}/aggregate", admin_headers).get_json()["aggregated"] == {"Hours": 8}
        assert _get(client, f"/tiers/{dept['team_b']}/aggregate", admin_headers).get_json()["aggregated"] == {"Hours": 4}

    def test_parent_field_shows_total_and_is_not_editable(self, client, admin_headers, dept):
        _post(client, f"/tiers/{dept['dept']}/fields", {"field_name": "Hours", "field_type": "number"}, admin_headers)
        _post(client, f"/tiers/{dept['dept']}/fields", {"field_name": "Owner", "field_type": "string"}, admin_headers)
        fields = _get(client, f"/tiers/{dept['dept']}/aggregate", admin_headers).get_json()["fields"]
        shown = {f["field_name"]: f for f in fields}
        assert shown["Hours"]["value"] == 12
        assert shown["Owner"]["value"] is None
        assert not any(f["editable"] for f in fields)

    def test_leaf_shows_stored_values(self, client, admin_headers, dept):
        body = _get(client, f"/tiers/{dept['alice']}/aggregate", admin_headers).get_json()
        assert body["is_leaf"] is True
        assert body["fields"][0]["value"] == 5
        assert body["fields"][0]["editable"] is True

    def test_missing_leaf_value_counts_as_zero(self, client, admin_headers, dept):
        res = _post(client, f"/projects/{dept['project_id']}/tiers",
                    {"name": "Dave", "parent_id": dept["team_b"]}, admin_headers)
        dave = res.get_json()["id"]
        _post(client, f"/tiers/{dave}/fields", {"field_name": "Hours", "field_type": "number"}, admin_headers)

        leaf = _get(client, f"/tiers/{dave}/aggregate", admin_headers).get_json()
        assert leaf["fields"][0]["value"] == 0
        assert _get(client, f"/tiers/{dept['dept']}/aggregate", admin_headers).get_json()["aggregated"] == {"Hours": 12}

    def test_recomputed_after_write(self, client, admin_headers, dept):
        field_id = _get(client, f"/tiers/{dept['carol']}/fields", admin_headers).get_json()["fields"][0]["id"]
        _put(client, f"/tiers/{dept['carol']}/data", {"field_id": field_id, "value": 10}, admin_headers)
        assert _get(client, f"/tiers/{dept['dept']}/aggregate", admin_headers).get_json()["aggregated"] == {"Hours": 18}

    def test_background_color_from_color_field(self, client, admin_headers, dept):
        field = _post(client, f"/tiers/{dept['bob']}/fields",
                      {"field_name": "Flag", "field_type": "color"}, admin_headers).get_json()
        _put(client, f"/tiers/{dept['bob']}/data", {"field_id": field["id"], "value": "#FF0000"}, admin_headers)
        assert _get(client, f"/tiers/{dept['bob']}/aggregate", admin_headers).get_json()["background_color"] == "#ff0000"
        assert _get(client, f"/tiers/{dept['alice']}/aggregate", admin_headers).get_json()["background_color"] is None


class TestProjectTree:
    def test_nested_tree_carries_display_values(self, client, admin_headers, dept):
        res = _get(client, f"/projects/{dept['project_id']}/tree", admin_headers)
        assert res.status_code == 200
        tree = res.get_json()["tree"]
        assert [n["name"] for n in tree] == ["Dept"]
        root = tree[0]
        assert root["display"]["aggregated"] == {"Hours": 12}
        assert [c["name"] for c in root["children"]] == ["Team A", "Team B"]
        alice = root["children"][0]["children"][0]
        assert alice["name"] == "Alice"
        assert alice["display"]["fields"][0]["value"] == 5

    def test_unknown_project(self, client, admin_headers):
        assert _get(client, "/projects/4040/tree", admin_headers).status_code == 404


class TestAggregationService:
    def test_aggregate_by_field_name_across_field_ids(self, dept):
        assert aggregation.aggregate(dept["team_a"]) == {"Hours": 8.0}
        assert aggregation.aggregate(dept["alice"]) == {"Hours": 5.0}

    def test_deep_chain(self, admin):
        from tierbook.services.project_service import create_project

        project = create_project("Deep", admin)
        parent_id = None
        root_id = None
        for depth in range(150):
            tier = tier_service.create_tier(project["id"], f"L{depth}", admin, parent_id=parent_id)
            parent_id = tier["id"]
            root_id = root_id or tier["id"]
        field = add_field(parent_id, "Hours", "number")
        value_service.write_value(parent_id, field["id"], value=2.5)

        assert aggregation.aggregate(root_id) == {"Hours": 2.5}
        assert tier_service.get_tier(parent_id)["level"] == 149
