import pytest

from mcinstance.environment import PlatformContext
from mcinstance.models import parse_rules
from mcinstance.rules import applies, rule_matches


def test_empty_rules_apply(linux):
    assert applies([], linux) is True


def test_disallow_matching_os(windows):
    rules = parse_rules([{"action": "disallow", "os": {"name": "windows"}}])
    assert applies(rules, windows) is False


def test_allow_other_os_does_not_apply(linux):
    rules = parse_rules([{"action": "allow", "os": {"name": "osx"}}])
    assert applies(rules, linux) is False


def test_allow_all_then_disallow_osx():
    rules = parse_rules([
        {"action": "allow"},
        {"action": "disallow", "os": {"name": "osx"}},
    ])
    # First matching rule decides.
    assert applies(rules, PlatformContext('osx', 'arm64')) is True


def test_disallow_first_wins():
    rules = parse_rules([
        {"action": "disallow", "os": {"name": "osx"}},
        {"action": "allow"},
    ])
    assert applies(rules, PlatformContext('osx', 'arm64')) is False
    assert applies(rules, PlatformContext('linux', 'x64')) is True


@pytest.mark.parametrize("arch, expected", [("x86", True), ("x64", False)])
def test_arch_condition(arch, expected):
    rules = parse_rules([{"action": "allow", "os": {"arch": "x86"}}])
    assert applies(rules, PlatformContext('windows', arch)) is expected


def test_os_version_is_ignored(linux):
    rules = parse_rules([{"action": "allow", "os": {"name": "linux", "version": "^99\\."}}])
    assert applies(rules, linux) is True


def test_features_never_active(linux):
    demo = parse_rules([{"action": "allow", "features": {"is_demo_user": True}}])
    assert applies(demo, linux) is False

    not_demo = parse_rules([{"action": "allow", "features": {"is_demo_user": False}}])
    assert applies(not_demo, linux) is True


def test_unknown_action_is_skipped(linux):
    rules = parse_rules([
        {"action": "maybe"},
        {"action": "disallow", "os": {"name": "linux"}},
    ])
    assert applies(rules, linux) is False


def test_rule_matches_ignores_action(linux):
    rule = parse_rules([{"action": "disallow", "os": {"name": "linux", "arch": "x64"}}])[0]
    assert rule_matches(rule, linux) is True
    assert rule_matches(rule, PlatformContext('linux', 'arm64')) is False
