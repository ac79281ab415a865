import pytest
from common.resources import network, vpc_and_subnet

from strata.core.exceptions import BadRequestError
from strata.graph import GraphBuilder, LifecycleState
from strata.plan import Action, Plan, PlanOperation, Planner
from strata.state import ResourceState, StateSnapshot


def created_snapshot(version: int = 3) -> StateSnapshot:
    return StateSnapshot(
        version=version,
        lineage="test",
        resources={
            "aws_vpc.main": ResourceState(
                type="aws_vpc",
                name="main",
                resource_id="vpc-1",
                attributes={
                    "cidr_block": "10.0.0.0/16",
                    "enable_dns_hostnames": True,
                },
                outputs={"id": "vpc-1"},
            ),
            "aws_subnet.a": ResourceState(
                type="aws_subnet",
                name="a",
                resource_id="subnet-1",
                attributes={
                    "vpc_id": "vpc-1",
                    "cidr_block": "10.0.1.0/24",
                    "availability_zone": "us-east-1a",
                },
                outputs={"id": "subnet-1"},
                dependencies=["aws_vpc.main"],
            ),
        },
    )


def plan(resources, snapshot=None, external=None, destroy=False) -> Plan:
    graph = GraphBuilder().build(resources, external)
    return Planner().plan(graph, snapshot or StateSnapshot(), destroy=destroy)


def actions(plan: Plan) -> list[tuple[Action, str]]:
    return [(op.action, op.identity) for op in plan.operations]


def test_create_on_empty_state():
    result = plan(vpc_and_subnet())

    assert actions(result) == [
        (Action.CREATE, "aws_vpc.main"),
        (Action.CREATE, "aws_subnet.a"),
    ]
    subnet = result.get("aws_subnet.a")
    assert subnet.attributes["vpc_id"] == "${aws_vpc.main.id}"
    assert subnet.depends_on == ["aws_vpc.main"]
    assert result.base_version == 0
    result.validate_order()


def test_plan_is_topologically_valid():
    result = plan(network())

    result.validate_order()
    assert len(result.operations) == len(
        GraphBuilder().build(network()).resources
    )


def test_unchanged_graph_yields_empty_plan():
    result = plan(vpc_and_subnet(), created_snapshot())

    assert result.empty
    assert result.base_version == 3
    assert "No changes" in result.render()


def test_update_changed_attribute():
    resources = vpc_and_subnet()
    resources["aws_subnet"]["a"]["attributes"]["cidr_block"] = "10.0.2.0/24"
    result = plan(resources, created_snapshot())

    assert actions(result) == [(Action.UPDATE, "aws_subnet.a")]
    op = result.operations[0]
    assert op.resource_id == "subnet-1"
    assert [(c.name, c.before, c.after) for c in op.changes] == [
        ("cidr_block", "10.0.1.0/24", "10.0.2.0/24")
    ]
    assert op.depends_on == []


def test_update_of_dependency_resolves_recorded_outputs():
    resources = vpc_and_subnet()
    resources["aws_vpc"]["main"]["attributes"]["enable_dns_hostnames"] = False
    result = plan(resources, created_snapshot())

    assert actions(result) == [(Action.UPDATE, "aws_vpc.main")]


def test_delete_removed_resource():
    resources = vpc_and_subnet()
    del resources["aws_subnet"]
    result = plan(resources, created_snapshot())

    assert actions(result) == [(Action.DELETE, "aws_subnet.a")]
    op = result.operations[0]
    assert op.resource_id == "subnet-1"
    assert not op.forget


def test_deletes_run_dependents_first():
    result = plan({}, created_snapshot())

    assert actions(result) == [
        (Action.DELETE, "aws_subnet.a"),
        (Action.DELETE, "aws_vpc.main"),
    ]
    assert result.get("aws_vpc.main").depends_on == ["aws_subnet.a"]
    result.validate_order()


def test_destroy_deletes_everything():
    result = plan(vpc_and_subnet(), created_snapshot(), destroy=True)

    assert result.destroy
    assert actions(result) == [
        (Action.DELETE, "aws_subnet.a"),
        (Action.DELETE, "aws_vpc.main"),
    ]


def test_creates_come_before_deletes():
    resources = vpc_and_subnet()
    del resources["aws_subnet"]
    resources["aws_eip"] = {"nat": {}}
    result = plan(resources, created_snapshot())

    assert actions(result) == [
        (Action.CREATE, "aws_eip.nat"),
        (Action.DELETE, "aws_subnet.a"),
    ]


def test_pinned_attribute_drift_is_ignored():
    snapshot = created_snapshot()
    snapshot.resources["aws_subnet.a"].attributes[
        "availability_zone"
    ] = "us-east-1b"
    resources = vpc_and_subnet()

    assert actions(plan(resources, snapshot)) == [
        (Action.UPDATE, "aws_subnet.a")
    ]

    resources["aws_subnet"]["a"]["pinned"] = ["availability_zone"]
    op = plan(resources, snapshot).get("aws_subnet.a")
    assert op.state_only
    assert op.changes == []

    snapshot.resources["aws_subnet.a"].pinned = ["availability_zone"]
    assert plan(resources, snapshot).empty


def test_pinned_value_kept_on_update():
    snapshot = created_snapshot()
    snapshot.resources["aws_subnet.a"].attributes[
        "availability_zone"
    ] = "us-east-1b"
    resources = vpc_and_subnet()
    resources["aws_subnet"]["a"]["pinned"] = ["availability_zone"]
    resources["aws_subnet"]["a"]["attributes"]["cidr_block"] = "10.0.9.0/24"
    op = plan(resources, snapshot).get("aws_subnet.a")

    assert op.attributes["availability_zone"] == "us-east-1b"
    assert [c.name for c in op.changes] == ["cidr_block"]
    assert op.pinned == ["availability_zone"]


def test_added_depends_on_updates_state_only():
    resources = vpc_and_subnet()
    resources["aws_subnet"]["a"]["depends_on"] = ["aws_vpc.main"]
    resources["aws_eip"] = {"nat": {"depends_on": ["aws_subnet.a"]}}
    snapshot = created_snapshot()
    snapshot.resources["aws_eip.nat"] = ResourceState(
        type="aws_eip",
        name="nat",
        resource_id="eipalloc-1",
        outputs={"id": "eipalloc-1"},
    )
    result = plan(resources, snapshot)

    assert actions(result) == [(Action.UPDATE, "aws_eip.nat")]
    op = result.operations[0]
    assert op.state_only
    assert op.changes == []
    assert [(c.name, c.before, c.after) for c in op.state_changes] == [
        ("dependencies", [], ["aws_subnet.a"])
    ]
    assert "dependencies: [] -> [\"aws_subnet.a\"]" in result.render()


def test_declared_dependency_orders_deletes_before_state_update():
    snapshot = created_snapshot()
    for name in ("a", "b"):
        snapshot.resources[f"aws_eip.{name}"] = ResourceState(
            type="aws_eip",
            name=name,
            resource_id=f"eipalloc-{name}",
        )
    resources = vpc_and_subnet()
    resources["aws_eip"] = {"a": {}, "b": {"depends_on": ["aws_eip.a"]}}
    result = plan(resources, snapshot, destroy=True)

    identities = [op.identity for op in result.operations]
    assert identities.index("aws_eip.b") < identities.index("aws_eip.a")
    assert result.get("aws_eip.a").depends_on == ["aws_eip.b"]
    result.validate_order()


def test_failed_record_without_id_is_created():
    snapshot = created_snapshot()
    record = snapshot.resources["aws_subnet.a"]
    record.lifecycle = LifecycleState.FAILED
    record.resource_id = None
    record.error = "boom"
    result = plan(vpc_and_subnet(), snapshot)

    assert actions(result) == [(Action.CREATE, "aws_subnet.a")]
    assert result.get("aws_subnet.a").attributes["vpc_id"] == "vpc-1"


def test_failed_record_with_id_is_updated():
    snapshot = created_snapshot()
    snapshot.resources["aws_subnet.a"].lifecycle = LifecycleState.FAILED
    result = plan(vpc_and_subnet(), snapshot)

    assert actions(result) == [(Action.UPDATE, "aws_subnet.a")]
    assert result.get("aws_subnet.a").changes == []


def test_failed_record_without_id_is_forgotten():
    snapshot = created_snapshot()
    record = snapshot.resources["aws_subnet.a"]
    record.lifecycle = LifecycleState.FAILED
    record.resource_id = None
    resources = vpc_and_subnet()
    del resources["aws_subnet"]
    op = plan(resources, snapshot).get("aws_subnet.a")

    assert op.action == Action.DELETE
    assert op.forget
    assert op.describe() == "- forget aws_subnet.a"


def test_resource_turned_external_is_forgotten():
    resources = vpc_and_subnet()
    del resources["aws_vpc"]
    external = {"aws_vpc": {"main": {"id": "vpc-1"}}}
    result = plan(resources, created_snapshot(), external=external)

    assert actions(result) == [(Action.DELETE, "aws_vpc.main")]
    assert result.operations[0].forget


def test_external_reference_resolved():
    resources = vpc_and_subnet()
    del resources["aws_vpc"]
    external = {"aws_vpc": {"main": {"id": "vpc-existing"}}}
    result = plan(resources, external=external)

    assert actions(result) == [(Action.CREATE, "aws_subnet.a")]
    op = result.operations[0]
    assert op.attributes["vpc_id"] == "vpc-existing"
    assert op.depends_on == []


def test_plan_survives_json():
    result = plan(vpc_and_subnet())
    loaded = Plan.from_json(result.to_json())

    assert actions(loaded) == actions(result)
    assert loaded.get("aws_subnet.a").attributes["vpc_id"] == (
        "${aws_vpc.main.id}"
    )


def test_render():
    text = plan(vpc_and_subnet()).render()

    assert "+ create aws_vpc.main" in text
    assert "(known after apply: ${aws_vpc.main.id})" in text
    assert text.endswith("Plan: 2 to create, 0 to update, 0 to delete.\n")


def test_validate_order_rejects_misordered_plan():
    result = Plan(
        operations=[
            PlanOperation(
                action=Action.CREATE,
                identity="aws_subnet.a",
                type="aws_subnet",
                name="a",
                depends_on=["aws_vpc.main"],
            ),
            PlanOperation(
                action=Action.CREATE,
                identity="aws_vpc.main",
                type="aws_vpc",
                name="main",
            ),
        ]
    )
    with pytest.raises(BadRequestError):
        result.validate_order()
