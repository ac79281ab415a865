import json
import os

import pytest
import yaml
from common.resources import manifest

from strata.main import main
from strata.state import StateStore

STATE_PATH = os.path.join(".strata", "state.json")


@pytest.fixture
def project(tmp_path):
    def write(**kwargs) -> str:
        obj = manifest(pending_reads=0, **kwargs)
        obj["variables"] = {"cidr": "10.0.0.0/16"}
        obj["resources"]["aws_vpc"]["main"]["attributes"][
            "cidr_block"
        ] = "${variables.cidr}"
        obj["state"] = {"type": "local", "parameters": {"path": STATE_PATH}}
        obj["outputs"] = {"vpc_id": "${aws_vpc.main.id}"}
        with open(tmp_path / "strata.yaml", "w") as file:
            yaml.safe_dump(obj, file)
        return str(tmp_path)

    return write


def state_store(path: str) -> StateStore:
    return StateStore(
        __provider__=dict(
            type="local",
            parameters={"path": os.path.join(path, STATE_PATH)},
        )
    )


def test_plan(project, capsys):
    path = project()

    assert main(["plan", "--path", path]) == 0
    out = capsys.readouterr().out
    assert "+ create aws_vpc.main" in out
    assert '"10.0.0.0/16"' in out
    assert "Plan: 2 to create, 0 to update, 0 to delete." in out


def test_var_override(project, capsys):
    path = project()

    assert main(["plan", "--path", path, "--var", "cidr=10.9.0.0/16"]) == 0
    assert '"10.9.0.0/16"' in capsys.readouterr().out


def test_saved_plan_apply_show_output(project, capsys, tmp_path):
    path = project()
    plan_file = str(tmp_path / "plan.json")

    assert main(["plan", "--path", path, "--out", plan_file]) == 0
    assert os.path.exists(plan_file)
    assert main(["apply", plan_file, "--path", path, "--workers", "1"]) == 0
    out = capsys.readouterr().out
    assert "succeeded create aws_vpc.main" in out
    assert "2 succeeded, 0 failed" in out

    assert main(["show", "--path", path]) == 0
    snapshot = json.loads(capsys.readouterr().out)
    vpc_id = snapshot["resources"]["aws_vpc.main"]["resource_id"]
    assert snapshot["lock"] is None

    assert main(["output", "vpc_id", "--path", path]) == 0
    assert json.loads(capsys.readouterr().out) == vpc_id

    assert main(["plan", "--path", path]) == 0
    assert "No changes" in capsys.readouterr().out

    # the saved plan is now stale
    assert main(["apply", plan_file, "--path", path]) == 3


def test_partial_failure(project, capsys):
    path = project(faults={"aws_subnet.a": {"kind": "permanent"}})

    assert main(["apply", "--path", path]) == 1
    out = capsys.readouterr().out
    assert "failed    create aws_subnet.a" in out


def test_graph_error(project, capsys):
    path = project(
        resources={
            "aws_vpc": {
                "main": {"attributes": {"peer": "${aws_subnet.a.id}"}},
            },
            "aws_subnet": {
                "a": {"attributes": {"vpc_id": "${aws_vpc.main.id}"}},
            },
        }
    )

    assert main(["plan", "--path", path]) == 2
    assert "dependency cycle" in capsys.readouterr().err
    assert main(["apply", "--path", path]) == 2


def test_missing_manifest(tmp_path, capsys):
    assert main(["plan", "--path", str(tmp_path)]) == 2
    assert "not found" in capsys.readouterr().err


def test_locked_state(project, capsys):
    path = project()
    state_store(path).lock("apply")

    assert main(["plan", "--path", path]) == 3
    assert "locked" in capsys.readouterr().err
    assert main(["apply", "--path", path]) == 3

    assert main(["force-unlock", "--path", path]) == 0
    assert main(["plan", "--path", path]) == 0


def test_destroy(project, capsys):
    path = project()
    assert main(["apply", "--path", path]) == 0

    assert main(["plan", "--destroy", "--path", path]) == 0
    assert "0 to create, 0 to update, 2 to delete" in capsys.readouterr().out
    assert main(["destroy", "--path", path]) == 0
    assert state_store(path).get_snapshot().result.resources == {}


def test_refresh(project, capsys):
    path = project()
    assert main(["apply", "--path", path]) == 0

    # every run talks to a fresh simulated cloud, so nothing survives
    assert main(["refresh", "--path", path]) == 0
    assert "Refreshed 0 resources" in capsys.readouterr().out


def test_graph(project, capsys):
    path = project()

    assert main(["graph", "--path", path]) == 0
    assert '"aws_subnet.a" -> "aws_vpc.main";' in capsys.readouterr().out
