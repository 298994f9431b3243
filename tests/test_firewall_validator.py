"""Tests de la validación de política de firewall."""

import pytest

from baseline.core.errors import OpenChainPolicyError, UnreachableRuleError
from baseline.core.plan import FirewallPolicyValidator, plan, validate_plan
from baseline.core.resources import ChainRef, ResourceGraph, firewall_chain, firewall_rule, package


def plan_of(resources):
    return plan(ResourceGraph.from_resources(resources))


def input_rules(*specs):
    """(id, target, match) → reglas de INPUT en ese orden"""
    return [
        firewall_rule(rule_id, "INPUT", target, position, match=match)
        for position, (rule_id, target, match) in enumerate(specs)
    ]


class TestReachability:

    def test_allow_list_closed_by_deny(self):
        rules = input_rules(
            ("ssh", "ACCEPT", "-p tcp --dport 22"),
            ("established", "ACCEPT", "-m state --state ESTABLISHED,RELATED"),
            ("deny_all", "DROP", ""),
        )
        validate_plan(plan_of(rules))

    def test_deny_before_accept_is_unreachable(self):
        rules = input_rules(("deny_all", "DROP", ""), ("ssh", "ACCEPT", "-p tcp --dport 22"))
        with pytest.raises(UnreachableRuleError) as exc:
            validate_plan(plan_of(rules))
        assert exc.value.rule_id == "ssh"
        assert exc.value.shadowed_by == "deny_all"

    def test_broader_accept_shadows_narrower(self):
        rules = input_rules(
            ("tcp", "ACCEPT", "-p tcp"),
            ("ssh", "ACCEPT", "-p tcp --dport 22"),
            ("deny_all", "DROP", ""),
        )
        with pytest.raises(UnreachableRuleError) as exc:
            validate_plan(plan_of(rules))
        assert exc.value.rule_id == "ssh"

    def test_non_terminal_target_does_not_shadow(self):
        rules = input_rules(
            ("log", "LOG", ""),
            ("ssh", "ACCEPT", "-p tcp --dport 22"),
            ("deny_all", "DROP", ""),
        )
        validate_plan(plan_of(rules))

    def test_return_shadows(self):
        resources = [
            firewall_chain("FW_EXTERNAL"),
            firewall_rule("back", "FW_EXTERNAL", "RETURN", 0),
            firewall_rule("ssh", "FW_EXTERNAL", "ACCEPT", 1, match="-p tcp --dport 22"),
        ]
        with pytest.raises(UnreachableRuleError):
            validate_plan(plan_of(resources))


class TestClosing:

    def test_open_chain(self):
        rules = input_rules(("ssh", "ACCEPT", "-p tcp --dport 22"))
        with pytest.raises(OpenChainPolicyError) as exc:
            validate_plan(plan_of(rules))
        assert exc.value.chain == "filter/INPUT"

    def test_constrained_drop_does_not_close(self):
        rules = input_rules(("ssh", "ACCEPT", "-p tcp --dport 22 -i eth0"), ("deny", "DROP", "-i eth0"))
        with pytest.raises(OpenChainPolicyError):
            validate_plan(plan_of(rules))

    def test_reject_closes(self):
        validate_plan(plan_of(input_rules(("ssh", "ACCEPT", "-p tcp --dport 22"), ("reject", "REJECT", ""))))

    def test_declared_drop_policy_closes(self):
        resources = [firewall_chain("INPUT", policy="DROP")] + input_rules(("ssh", "ACCEPT", "-p tcp --dport 22"))
        validate_plan(plan_of(resources))

    def test_declared_accept_policy_is_open(self):
        resources = [firewall_chain("INPUT", policy="ACCEPT")] + input_rules(("ssh", "ACCEPT", "-p tcp --dport 22"))
        with pytest.raises(OpenChainPolicyError):
            validate_plan(plan_of(resources))

    def test_declared_chain_without_rules(self):
        with pytest.raises(OpenChainPolicyError):
            validate_plan(plan_of([firewall_chain("FW_EXTERNAL")]))

    def test_host_policy_lookup(self):
        looked_up = []

        def lookup(ref):
            looked_up.append(ref)
            return "DROP"

        rules = input_rules(("ssh", "ACCEPT", "-p tcp --dport 22"))
        FirewallPolicyValidator(lookup).validate(plan_of(rules))
        assert looked_up == [ChainRef("filter", "INPUT")]

    def test_lookup_skipped_when_rules_close(self):
        def lookup(ref):
            raise AssertionError("no debería consultarse")

        FirewallPolicyValidator(lookup).validate(plan_of(input_rules(("deny", "DROP", ""))))

    def test_user_chain_ignores_lookup(self):
        resources = [
            firewall_chain("FW_EXTERNAL"),
            firewall_rule("ssh", "FW_EXTERNAL", "ACCEPT", 0, match="-p tcp --dport 22"),
        ]
        with pytest.raises(OpenChainPolicyError):
            FirewallPolicyValidator(lambda ref: "DROP").validate(plan_of(resources))

    def test_accept_all_requires_opt_in(self):
        rules = input_rules(("ssh", "ACCEPT", "-p tcp --dport 22"), ("accept_all", "ACCEPT", ""))
        with pytest.raises(OpenChainPolicyError):
            validate_plan(plan_of(rules))
        validate_plan(plan_of(rules), allow_accept_all=True)

    def test_plan_without_firewall(self):
        validate_plan(plan_of([package("perl")]))


class TestNegatedMatches:

    def test_established_then_drop_not_established(self):
        rules = input_rules(
            ("est", "ACCEPT", "-m state --state ESTABLISHED"),
            ("drop_new", "DROP", "-m state ! --state ESTABLISHED"),
            ("deny_all", "DROP", ""),
        )
        validate_plan(plan_of(rules))

    def test_drop_all_but_ssh_shadows_http(self):
        rules = input_rules(
            ("drop_not_ssh", "DROP", "-p tcp ! --dport 22"),
            ("http", "ACCEPT", "-p tcp --dport 80"),
            ("deny_all", "DROP", ""),
        )
        with pytest.raises(UnreachableRuleError) as exc:
            validate_plan(plan_of(rules))
        assert exc.value.rule_id == "http"
        assert exc.value.shadowed_by == "drop_not_ssh"

    def test_drop_all_but_ssh_keeps_ssh_reachable(self):
        rules = input_rules(
            ("drop_not_ssh", "DROP", "-p tcp ! --dport 22"),
            ("ssh", "ACCEPT", "-p tcp --dport 22"),
            ("deny_all", "DROP", ""),
        )
        validate_plan(plan_of(rules))
