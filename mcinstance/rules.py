import logging
from typing import List

from .environment import PlatformContext
from .models import Rule

log = logging.getLogger(__name__)


def rule_matches(rule: Rule, ctx: PlatformContext) -> bool:
    """
    Checks whether the conditions of a *single rule* hold for the platform.
    The rule's action is not considered here.
    """
    matches = True
    if rule.os is not None:
        if rule.os.name is not None:
            matches = matches and rule.os.name == ctx.os_name
        if rule.os.arch is not None:
            matches = matches and rule.os.arch == ctx.arch
        # os.version is not evaluated.

    # No optional feature (demo user, custom resolution, quick play) is ever
    # active, so only rules requiring a feature to be off can match.
    for required in rule.features.values():
        matches = matches and required is False
    return matches


def applies(rules: List[Rule], ctx: PlatformContext) -> bool:
    """
    Decides whether a library or argument guarded by ``rules`` is included.

    An empty rule list always applies. Otherwise the first rule whose
    conditions match decides: 'allow' includes, 'disallow' excludes. When
    no rule matches the item is excluded.
    """
    if not rules:
        return True

    for rule in rules:
        if not rule_matches(rule, ctx):
            continue
        if rule.action == 'allow':
            return True
        elif rule.action == 'disallow':
            return False
        else:
            log.warning(f"Unknown rule action: {rule.action}. Ignoring rule.")

    return False
