"""Tests del planificador (orden topológico estable)."""

import random

import pytest

from baseline.core.errors import CycleDetectedError, UnknownResourceError
from baseline.core.plan import plan
from baseline.core.resources import (
    ResourceGraph,
    firewall_chain,
    firewall_rule,
    package,
    service,
)
from baseline.core.runtime import ConvergenceExecutor


def plan_of(resources):
    return plan(ResourceGraph.from_resources(resources))


def ids(result):
    return [r.id for r in result]


class TestOrdering:

    def test_every_resource_exactly_once(self, external_node):
        result = plan_of(external_node)
        assert sorted(result.keys()) == sorted(r.key for r in external_node)
        assert len(set(result.keys())) == len(external_node)

    def test_dependencies_before_dependents(self, external_node):
        result = plan_of(external_node)
        for resource in result:
            for dep in resource.depends_on:
                assert result.index(dep) < result.index(resource.key)

    def test_stable_declaration_order_for_ties(self):
        result = plan_of([package("c"), package("a"), package("b")])
        assert ids(result) == ["c", "a", "b"]

    def test_dependency_moves_resource_forward_only_as_needed(self):
        result = plan_of([
            service("webmin", depends_on=["package:webmin"]),
            package("perl"),
            package("webmin", depends_on=["package:perl"]),
        ])
        assert ids(result) == ["perl", "webmin", "webmin"]
        assert [r.kind.value for r in result] == ["package", "package", "service"]

    def test_rule_positions_override_declaration_order(self):
        result = plan_of([
            firewall_rule("deny", "INPUT", "DROP", 2),
            firewall_rule("ssh", "INPUT", "ACCEPT", 1, match="-p tcp --dport 22"),
            firewall_rule("lo", "INPUT", "ACCEPT", 0, match="-i lo"),
        ])
        assert ids(result) == ["lo", "ssh", "deny"]

    def test_explicit_edge_against_chain_order_is_ignored(self):
        result = plan_of([
            firewall_rule("ssh", "INPUT", "ACCEPT", 0, match="-p tcp --dport 22",
                          depends_on=["firewall_rule:deny"]),
            firewall_rule("deny", "INPUT", "DROP", 1),
        ])
        assert ids(result) == ["ssh", "deny"]

    def test_chain_before_rules(self):
        result = plan_of([
            firewall_rule("ssh", "FW_EXTERNAL", "ACCEPT", 0, match="-p tcp --dport 22"),
            firewall_chain("FW_EXTERNAL"),
        ])
        assert ids(result) == ["FW_EXTERNAL", "ssh"]

    def test_plan_groups_rules_by_chain(self, external_node):
        result = plan_of(external_node)
        chains = {str(ref): [r.id for r in rules] for ref, rules in result.rules_by_chain().items()}
        assert chains == {"filter/FW_EXTERNAL": ["external_ssh", "external_deny_all"]}


class TestStructuralErrors:

    def test_cycle_detected(self):
        with pytest.raises(CycleDetectedError) as exc:
            plan_of([
                package("a", depends_on=["package:b"]),
                package("b", depends_on=["package:a"]),
                package("c", depends_on=["package:a"]),
            ])
        assert set(exc.value.involved_ids) == {"package:a", "package:b"}

    def test_cycle_through_chain_order(self):
        # deny (pos 1) no puede preceder a ssh (pos 0) vía un servicio intermedio
        with pytest.raises(CycleDetectedError):
            plan_of([
                firewall_rule("ssh", "INPUT", "ACCEPT", 0, match="-p tcp --dport 22",
                              depends_on=["service:sshd"]),
                service("sshd", depends_on=["firewall_rule:deny"]),
                firewall_rule("deny", "INPUT", "DROP", 1),
            ])

    def test_cycle_never_reaches_executor(self, host):
        resources = [
            package("a", depends_on=["package:b"]),
            package("b", depends_on=["package:a"]),
        ]
        executor = ConvergenceExecutor(host.registry())
        with pytest.raises(CycleDetectedError):
            executor.execute(plan_of(resources))
        assert host.calls == []

    def test_undeclared_user_chain(self):
        with pytest.raises(UnknownResourceError):
            plan_of([firewall_rule("ssh", "FW_EXTERNAL", "ACCEPT", 0)])

    def test_undeclared_jump_target(self):
        with pytest.raises(UnknownResourceError) as exc:
            plan_of([firewall_rule("jump", "INPUT", "FW_EXTERNAL", 0, match="-i eth0")])
        assert "FW_EXTERNAL" in str(exc.value)

    def test_builtin_chain_needs_no_declaration(self):
        result = plan_of([firewall_rule("deny", "INPUT", "DROP", 0)])
        assert ids(result) == ["deny"]


def random_node(seed):
    """
    Nodo aleatorio pero acíclico: paquetes y servicios con dependencias hacia atrás,
    tres cadenas (INPUT, OUTPUT y una de usuario), saltos a la cadena de usuario y
    aristas explícitas que contradicen la posición dentro de una cadena.
    Las declaraciones se barajan para que el orden de declaración no ayude.
    """
    rng = random.Random(seed)
    base = [package(f"pkg{i}") for i in range(rng.randint(2, 5))]
    base += [service(f"svc{i}") for i in range(rng.randint(1, 3))]
    rng.shuffle(base)
    packages = [str(r.key) for r in base if r.kind.value == "package"]

    resources = []
    for i, resource in enumerate(base):
        deps = rng.sample([str(r.key) for r in base[:i]], min(i, rng.randint(0, 2)))
        factory = package if resource.kind.value == "package" else service
        resources.append(factory(resource.id, depends_on=deps))

    resources.append(firewall_chain("FW_X", depends_on=rng.sample(packages, 1)))
    if rng.random() < 0.5:
        resources.append(firewall_chain("INPUT", policy="DROP"))

    input_ids = []
    for chain in ("INPUT", "OUTPUT", "FW_X"):
        count = rng.randint(2, 4)
        for position in range(count):
            rule_id = f"{chain.lower()}_{position}"
            deps = rng.sample(packages, rng.randint(0, 1))
            if position + 1 < count and rng.random() < 0.5:
                # Contradice la posición: el orden de cadena manda
                deps.append(f"firewall_rule:{chain.lower()}_{rng.randint(position + 1, count - 1)}")
            if chain == "OUTPUT" and input_ids and rng.random() < 0.5:
                deps.append(f"firewall_rule:{rng.choice(input_ids)}")
            target = "FW_X" if chain == "INPUT" and rng.random() < 0.4 else "ACCEPT"
            resources.append(firewall_rule(
                rule_id, chain, target, position,
                match=f"-p tcp --dport {1000 + position}", depends_on=deps,
            ))
            if chain == "INPUT":
                input_ids.append(rule_id)

    rng.shuffle(resources)
    return resources


class TestRandomGraphs:

    @pytest.mark.parametrize("seed", range(25))
    def test_every_effective_edge_respected(self, seed):
        graph = ResourceGraph.from_resources(random_node(seed))
        result = plan(graph)

        assert len(result) == len(graph)
        assert len(set(result.keys())) == len(result)
        assert sorted(result.keys()) == sorted(graph.keys())
        for before, afters in graph.edges().items():
            for after in afters:
                assert result.index(before) < result.index(after), f"{before} → {after}"

    @pytest.mark.parametrize("seed", range(25))
    def test_rules_follow_position_despite_explicit_edges(self, seed):
        graph = ResourceGraph.from_resources(random_node(seed))
        result = plan(graph)

        for rules in graph.rules_by_chain().values():
            by_position = sorted(rules, key=lambda r: r.desired.position)
            indexes = [result.index(r.key) for r in by_position]
            assert indexes == sorted(indexes)

    @pytest.mark.parametrize("seed", range(25))
    def test_same_seed_same_plan(self, seed):
        first = plan(ResourceGraph.from_resources(random_node(seed)))
        second = plan(ResourceGraph.from_resources(random_node(seed)))
        assert first.keys() == second.keys()
