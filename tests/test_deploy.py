"""
Tests for the one-call deploy() wrapper.
"""

import os

from dotlink import deploy
from dotlink.apply import InProcessExecutor
from dotlink.resolve import ScriptedDecisions
from dotlink.types import Decision, DeployConfig
from dotlink.util import get_debug_level


def test_deploy_with_keywords(env):
    env.create_source({"a/b": "b", "secret/key": "k"})

    result = deploy(
        source=env.source_dir,
        target=env.dest_dir,
        auto_approve=True,
        ignore=["secret"],
        executor=InProcessExecutor(),
    )

    assert result.report.ok
    assert os.readlink(env.dst("a/b")) == env.src("a/b")
    assert not os.path.lexists(env.dst("secret"))


def test_deploy_overrides_config(env):
    env.create_source({"f": "x"})
    config = DeployConfig(source=env.source_dir, target=env.dest_dir, verbose=2)

    result = deploy(config, executor=InProcessExecutor(), dry_run=True, auto_approve=True)

    assert result.report.dry_run
    assert result.report.links_created == 1
    assert env.get_filesystem_state() == {}
    assert get_debug_level() == 2


def test_deploy_uses_given_decisions(env):
    env.create_source({"f": "repo"})
    env.create_dest_file("f", "local")

    result = deploy(
        source=env.source_dir,
        target=env.dest_dir,
        decisions=ScriptedDecisions([Decision.REJECT]),
        executor=InProcessExecutor(),
    )

    assert [i.relative for i in result.plan.unresolved] == ["f"]
    assert env.read(env.dst("f")) == "local"
