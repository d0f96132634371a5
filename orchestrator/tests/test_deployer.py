import asyncio

import pytest
from box import Box

from connectors.local_host import LocalHost, Unit
from orchestrator.completion import UnitState
from orchestrator.deployer import DependentDeployer, Orchestrator, deploy
from orchestrator.exceptions import StartFailure, TreeAlreadyRun, UnitNotFound
from orchestrator.models import DependentGroup, DeploymentTree, UnitDescriptor
from orchestrator.tree import report


class RecordingHost:
    """Host double: records calls, fails the identifiers in ``failing``,
    and holds back identifiers that have a gate until the gate is set."""

    def __init__(self, failing=(), gates=None, on_call=None):
        self.failing = set(failing)
        self.gates = gates or {}
        self.on_call = on_call
        self.calls = []

    @property
    def info(self):
        return Box(type="recording")

    async def start(self, identifier, options=None):
        self.calls.append((identifier, options))
        if self.on_call is not None:
            self.on_call(identifier)
        gate = self.gates.get(identifier)
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        if identifier in self.failing:
            raise UnitNotFound(identifier)
        return f"{identifier}-{len(self.calls)}"


class Service(Unit):
    pass


def chain(*names):
    """a -> b -> c ... each the only dependent of the previous one."""
    units = [UnitDescriptor(identifier=name) for name in names]
    for parent, child in zip(units, units[1:]):
        parent.add_dependents(child)
    return DeploymentTree(units=[units[0]]), units


@pytest.mark.asyncio
async def test_empty_tree_succeeds_without_contacting_host():
    host = RecordingHost()
    future = Orchestrator(host).run(DeploymentTree())
    assert future.done()
    assert await future is None
    assert host.calls == []


@pytest.mark.asyncio
async def test_single_unit_succeeds():
    host = LocalHost({"service": Service})
    unit = UnitDescriptor(identifier="service")
    await Orchestrator(host).run(DeploymentTree(units=[unit]))
    assert unit.completion.succeeded
    assert unit.completion.cause is None
    assert unit.completion.instance_id
    assert host.deployment_ids() == [unit.completion.instance_id]


@pytest.mark.asyncio
async def test_single_unknown_unit_fails():
    host = LocalHost()
    unit = UnitDescriptor(identifier="IDontExist")
    with pytest.raises(StartFailure) as excinfo:
        await Orchestrator(host).run(DeploymentTree(units=[unit]))
    assert unit.completion.failed
    assert unit.completion.cause is excinfo.value
    assert "unit not found" in str(unit.completion.cause).lower()
    assert isinstance(excinfo.value.__cause__, UnitNotFound)
    assert unit.completion.instance_id is None


@pytest.mark.asyncio
async def test_same_unit_twice():
    host = LocalHost({"service": Service})
    first = UnitDescriptor(identifier="service")
    second = UnitDescriptor(identifier="service")
    await Orchestrator(host).run(DeploymentTree(units=[first, second]))
    assert first.completion.succeeded and second.completion.succeeded
    assert first.completion.instance_id != second.completion.instance_id
    assert len(host.deployment_ids()) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("failing_first", [True, False])
async def test_one_fails_other_still_succeeds(failing_first):
    gate = asyncio.Event()
    host = RecordingHost(failing={"broken"}, gates={"good": gate})
    good = UnitDescriptor(identifier="good")
    broken = UnitDescriptor(identifier="broken")
    units = [broken, good] if failing_first else [good, broken]
    orchestrator = Orchestrator(host)

    with pytest.raises(StartFailure) as excinfo:
        await orchestrator.run(DeploymentTree(units=units))
    assert excinfo.value.identifier == "broken"
    assert "unit not found: broken" in str(excinfo.value)
    # the good unit was still in flight when the run failed
    assert not good.completion.settled

    gate.set()
    await orchestrator.wait_idle()
    assert good.completion.succeeded
    assert broken.completion.failed


@pytest.mark.asyncio
async def test_dependent_launched_after_parent_success():
    tree, (parent, child) = chain("parent", "child")
    states_at_call = {}
    host = RecordingHost(on_call=lambda name: states_at_call.setdefault(name, parent.completion.state))

    await Orchestrator(host).run(tree)

    assert [name for name, _ in host.calls] == ["parent", "child"]
    assert states_at_call["child"] is UnitState.SUCCEEDED
    assert parent.completion.succeeded and child.completion.succeeded


@pytest.mark.asyncio
async def test_failed_parent_skips_dependents():
    tree, (parent, child, grandchild) = chain("parent", "child", "grandchild")
    host = RecordingHost(failing={"parent"})
    orchestrator = Orchestrator(host)

    with pytest.raises(StartFailure) as excinfo:
        await orchestrator.run(tree)
    await orchestrator.wait_idle()

    assert excinfo.value is parent.completion.cause
    assert [name for name, _ in host.calls] == ["parent"]
    for skipped in (child, grandchild):
        assert not skipped.completion.settled
        assert not skipped.completion.launched
    assert [row.status for row in report(tree)] == ["failed", "skipped", "skipped"]


@pytest.mark.asyncio
async def test_deep_failure_reports_its_own_cause():
    tree, (a, b, c) = chain("a", "b", "c")
    host = RecordingHost(failing={"c"})
    with pytest.raises(StartFailure) as excinfo:
        await Orchestrator(host).run(tree)
    assert excinfo.value.identifier == "c"
    assert a.completion.succeeded and b.completion.succeeded and c.completion.failed


@pytest.mark.asyncio
async def test_every_group_of_a_unit_is_launched():
    tree = DeploymentTree.from_dict({
        "configurations": [{
            "name": "root",
            "dependents": [
                {"configurations": [{"name": "x"}, {"name": "y"}]},
                {"configurations": [{"name": "z", "dependents": [{"configurations": [{"name": "leaf"}]}]}]},
            ],
        }]
    })
    host = RecordingHost()
    await Orchestrator(host).run(tree)
    names = [name for name, _ in host.calls]
    assert sorted(names) == ["leaf", "root", "x", "y", "z"]
    assert names[0] == "root"
    assert names.index("leaf") > names.index("z")
    assert all(row.status == "succeeded" for row in report(tree))


@pytest.mark.asyncio
async def test_siblings_start_concurrently():
    gates = {"x": asyncio.Event(), "y": asyncio.Event()}
    host = RecordingHost(gates=gates)
    x, y = UnitDescriptor(identifier="x"), UnitDescriptor(identifier="y")
    future = Orchestrator(host).run(DeploymentTree(units=[x, y]))
    for _ in range(3):
        await asyncio.sleep(0)
    # both requested before either finished
    assert [name for name, _ in host.calls] == ["x", "y"]
    assert not future.done()
    gates["y"].set()
    gates["x"].set()
    await future
    assert x.completion.succeeded and y.completion.succeeded


@pytest.mark.asyncio
async def test_options_are_passed_through():
    options = {"instances": 2, "config": {"port": 8080}}
    host = RecordingHost()
    await Orchestrator(host).run({"configurations": [{"name": "svc", "deploymentOptions": options}, {"name": "bare"}]})
    assert dict(host.calls) == {"svc": options, "bare": None}


@pytest.mark.asyncio
async def test_tree_cannot_be_run_twice():
    tree, _ = chain("a")
    orchestrator = Orchestrator(RecordingHost())
    await orchestrator.run(tree)
    with pytest.raises(TreeAlreadyRun):
        orchestrator.run(tree)


@pytest.mark.asyncio
async def test_inspection_is_idempotent():
    tree, (a, b) = chain("a", "b")
    await Orchestrator(RecordingHost()).run(tree)
    snapshot = [(u.completion.state, u.completion.instance_id) for u in (a, b)]
    for _ in range(3):
        assert [(u.completion.state, u.completion.instance_id) for u in (a, b)] == snapshot


@pytest.mark.asyncio
async def test_dependent_deployer_completes_given_future():
    tree, (a, b) = chain("a", "b")
    deployer = DependentDeployer(RecordingHost(), tree)
    done = asyncio.get_running_loop().create_future()
    deployer.start(done)
    assert await done is None
    assert deployer.tree is tree
    assert b.completion.succeeded


@pytest.mark.asyncio
async def test_dependent_deployer_fails_given_future():
    tree, (a, b) = chain("a", "b")
    deployer = DependentDeployer(RecordingHost(failing={"b"}), tree)
    done = asyncio.get_running_loop().create_future()
    deployer.start(done)
    with pytest.raises(StartFailure):
        await done


@pytest.mark.asyncio
async def test_dependent_deployer_with_nothing_to_deploy():
    deployer = DependentDeployer(RecordingHost())
    assert deployer.tree is None
    done = asyncio.get_running_loop().create_future()
    deployer.start(done)
    assert done.done()
    await done


@pytest.mark.asyncio
async def test_deploy_helper_returns_tree():
    tree = await deploy(LocalHost({"svc": Service}), {"configurations": [{"name": "svc"}]})
    assert tree.units[0].completion.succeeded


@pytest.mark.asyncio
async def test_dependent_deployer_rerun_fails_given_future():
    tree, _ = chain("a", "b")
    loop = asyncio.get_running_loop()
    first = loop.create_future()
    DependentDeployer(RecordingHost(), tree).start(first)
    await first

    again = loop.create_future()
    DependentDeployer(RecordingHost(), tree).start(again)
    assert again.done()
    with pytest.raises(TreeAlreadyRun):
        await again


@pytest.mark.asyncio
async def test_plain_group_can_be_run():
    a, b = UnitDescriptor(identifier="a"), UnitDescriptor(identifier="b")
    group = DependentGroup(units=[a]).add(b)
    host = RecordingHost()
    await Orchestrator(host).run(group)
    assert sorted(name for name, _ in host.calls) == ["a", "b"]
    assert a.completion.succeeded and b.completion.succeeded
