"""Tests for security.policy."""

import os

import pytest

from security.policy import ActionTracker, AutonomyLevel, SecurityPolicy


@pytest.fixture
def policy(tmp_path):
    return SecurityPolicy(tmp_path)


class TestAutonomyLevel:
    @pytest.mark.parametrize("raw,expected", [
        ("read_only", AutonomyLevel.READ_ONLY),
        ("readonly", AutonomyLevel.READ_ONLY),
        ("read-only", AutonomyLevel.READ_ONLY),
        ("Supervised", AutonomyLevel.SUPERVISED),
        ("full", AutonomyLevel.FULL),
        ("autonomous", AutonomyLevel.FULL),
        (None, AutonomyLevel.SUPERVISED),
    ])
    def test_parse(self, raw, expected):
        assert AutonomyLevel.parse(raw) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            AutonomyLevel.parse("yolo")


class TestPathChecks:
    @pytest.mark.parametrize("path", [
        "",
        "../outside.txt",
        "sub/../../escape",
        "..\\windows\\style",
        "~/secrets",
        "/etc/passwd",
        "file\0name",
    ])
    def test_rejected(self, policy, path):
        assert not policy.is_path_allowed(path)

    @pytest.mark.parametrize("path", ["notes.txt", "src/main.py", "./a/b/c"])
    def test_relative_paths_allowed(self, policy, path):
        assert policy.is_path_allowed(path)

    def test_absolute_inside_workspace(self, policy, tmp_path):
        assert policy.is_path_allowed(str(tmp_path / "inside.txt"))

    def test_absolute_outside_workspace_depends_on_workspace_only(self, tmp_path):
        outside = str(tmp_path.parent / "elsewhere.txt")
        assert not SecurityPolicy(tmp_path).is_path_allowed(outside)
        assert SecurityPolicy(tmp_path, workspace_only=False).is_path_allowed(outside)

    def test_forbidden_paths_apply_without_workspace_only(self, tmp_path):
        policy = SecurityPolicy(tmp_path, workspace_only=False)
        assert not policy.is_path_allowed("/etc/shadow")
        assert not policy.is_path_allowed("/proc/self/environ")

    def test_relative_forbidden_entry(self, tmp_path):
        policy = SecurityPolicy(tmp_path, forbidden_paths=["secrets"])
        assert not policy.is_path_allowed("secrets/key.pem")
        assert policy.is_path_allowed("secrets-not/key.pem")

    def test_resolved_path_inside(self, policy, tmp_path):
        target = tmp_path / "real.txt"
        target.write_text("x")
        assert policy.is_resolved_path_allowed(target.resolve())
        assert policy.is_resolved_path_allowed(policy.workspace_root())

    def test_symlink_escape_detected(self, tmp_path):
        workspace = tmp_path / "ws"
        workspace.mkdir()
        outside = tmp_path / "outside.txt"
        outside.write_text("secret")
        (workspace / "link.txt").symlink_to(outside)
        policy = SecurityPolicy(workspace)

        # syntactically fine, canonically outside
        assert policy.is_path_allowed("link.txt")
        resolved = (workspace / "link.txt").resolve(strict=True)
        assert not policy.is_resolved_path_allowed(resolved)

    def test_sibling_prefix_is_not_inside(self, tmp_path):
        workspace = tmp_path / "ws"
        workspace.mkdir()
        sibling = tmp_path / "ws-evil"
        sibling.mkdir()
        policy = SecurityPolicy(workspace)
        assert not policy.is_path_allowed(str(sibling / "x"))
        assert not policy.is_resolved_path_allowed(sibling.resolve())


class TestCommands:
    @pytest.mark.parametrize("command", [
        "ls -la",
        "git status && git diff",
        "cat a.txt | grep foo | wc -l",
        "FOO=1 BAR=2 python3 script.py",
        "/usr/bin/ls",
        "echo one; echo two",
    ])
    def test_allowed(self, policy, command):
        assert policy.is_command_allowed(command)

    @pytest.mark.parametrize("command", [
        "",
        "   ",
        "rm -rf /",
        "ls && rm file",
        "echo `whoami`",
        "echo $(whoami)",
        "diff <(ls) b",
        "echo hi > out.txt",
        "curl http://example.com",
        "ls\nrm x",
    ])
    def test_denied(self, policy, command):
        assert not policy.is_command_allowed(command)

    def test_full_autonomy_allows_anything(self, tmp_path):
        policy = SecurityPolicy(tmp_path, AutonomyLevel.FULL)
        assert policy.is_command_allowed("rm -rf build && echo $(date) > log")

    def test_read_only_denies_everything(self, tmp_path):
        policy = SecurityPolicy(tmp_path, "read_only")
        assert not policy.can_act()
        assert not policy.is_command_allowed("ls")
        assert not policy.allows_category("write")
        assert not policy.allows_category("shell")
        assert policy.allows_category("read")
        assert policy.allows_category("network")

    def test_custom_allowlist(self, tmp_path):
        policy = SecurityPolicy(tmp_path, allowed_commands=["make"])
        assert policy.is_command_allowed("make test")
        assert not policy.is_command_allowed("ls")


class TestRateLimit:
    def test_tracker_window(self):
        now = [0.0]
        tracker = ActionTracker(2, window_seconds=10, clock=lambda: now[0])

        assert tracker.record()
        assert tracker.record()
        assert not tracker.record()
        assert tracker.is_exhausted()

        now[0] = 10.5
        assert tracker.count() == 0
        assert tracker.record()

    def test_policy_budget(self, tmp_path):
        policy = SecurityPolicy(tmp_path, max_actions_per_hour=1)
        assert not policy.is_rate_limited()
        assert policy.record_action()
        assert policy.is_rate_limited()
        assert not policy.record_action()


def test_from_config(tmp_path):
    from agent.config import AutonomyConfig

    config = AutonomyConfig(level="readonly", workspace_only=False, allowed_commands=["git"])
    policy = SecurityPolicy.from_config(config, tmp_path)
    assert policy.autonomy is AutonomyLevel.READ_ONLY
    assert policy.workspace_only is False
    assert policy.allowed_commands == frozenset({"git"})
    assert os.path.normpath("/etc") in policy.forbidden_paths
