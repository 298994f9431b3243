"""Tests del loader de recetas YAML."""

from pathlib import Path

import pytest

from baseline.core.errors import ConfigError
from baseline.core.resources import ResourceKey, ResourceKind
from baseline.declarative import RecipeLoader, load_recipe

RECIPES = Path(__file__).resolve().parents[1] / "recipes"


def write(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


class TestParsing:

    def test_all_kinds(self, tmp_path):
        recipe = write(tmp_path / "node.yaml", """
version: 1
resources:
  - {kind: package, name: openssl, version: 1.1.1f-1}
  - {kind: service, name: cockpit.socket, actions: [enable, start], depends_on: [package:openssl]}
  - {kind: file, name: /etc/motd, content: "hola\\n", mode: 0644}
  - {kind: firewall_chain, name: INPUT, policy: DROP}
  - {kind: firewall_rule, name: ssh, chain: INPUT, match: -p tcp --dport 22, target: ACCEPT}
""")
        resources = load_recipe(recipe)
        by_kind = {r.kind: r for r in resources}

        assert by_kind[ResourceKind.PACKAGE].desired.version == "1.1.1f-1"
        svc = by_kind[ResourceKind.SERVICE]
        assert svc.desired.running is True and svc.desired.enabled is True
        assert svc.depends_on == {ResourceKey(ResourceKind.PACKAGE, "openssl")}
        assert by_kind[ResourceKind.FILE].desired.mode == "0644"
        assert by_kind[ResourceKind.FIREWALL_CHAIN].desired.policy == "DROP"
        assert by_kind[ResourceKind.FIREWALL_RULE].desired.match == "-p tcp --dport 22"

    def test_positions_follow_declaration_per_chain(self, tmp_path):
        recipe = write(tmp_path / "fw.yaml", """
resources:
  - {kind: firewall_rule, name: in_ssh, chain: INPUT, match: -p tcp --dport 22, target: ACCEPT}
  - {kind: firewall_rule, name: out_all, chain: OUTPUT, target: ACCEPT}
  - {kind: firewall_rule, name: in_deny, chain: INPUT, target: DROP}
  - {kind: firewall_rule, name: nat_in, table: nat, chain: INPUT, target: ACCEPT}
""")
        positions = {r.id: r.desired.position for r in load_recipe(recipe)}
        assert positions == {"in_ssh": 0, "out_all": 0, "in_deny": 1, "nat_in": 0}

    @pytest.mark.parametrize("body", [
        "resources:\n  - {kind: package}\n",
        "resources:\n  - {kind: daemon, name: x}\n",
        "resources:\n  - {kind: package, name: x, depends_on: [perl]}\n",
        "resources:\n  - {kind: package, name: x, colour: red}\n",
        "resources:\n  - {kind: firewall_chain, name: FW_EXTERNAL, policy: DROP}\n",
        "resources:\n  - {kind: firewall_chain, name: INPUT, policy: REJECT}\n",
        "resources:\n  - {kind: file, name: /x, mode: '999'}\n",
        "resources:\n  - {kind: file, name: /x, source: 'http://a/b', content: c}\n",
        "- just a list\n",
        "resources: [\n",
    ])
    def test_invalid_recipes(self, tmp_path, body):
        recipe = write(tmp_path / "bad.yaml", body)
        with pytest.raises(ConfigError) as exc:
            load_recipe(recipe)
        assert "bad.yaml" in str(exc.value)

    def test_empty_file(self, tmp_path):
        assert load_recipe(write(tmp_path / "empty.yaml", "")) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_recipe(tmp_path / "nope.yaml")


class TestIncludes:

    def test_includes_expand_first_and_once(self, tmp_path):
        write(tmp_path / "common.yaml", "resources:\n  - {kind: package, name: iptables-persistent}\n")
        write(tmp_path / "a.yaml", "include: [common.yaml]\nresources:\n  - {kind: package, name: a}\n")
        write(tmp_path / "b.yaml", "include: [common.yaml]\nresources:\n  - {kind: package, name: b}\n")
        site = write(tmp_path / "site.yaml", "include: [a.yaml, b.yaml]\nresources:\n  - {kind: package, name: site}\n")

        assert [r.id for r in load_recipe(site)] == ["iptables-persistent", "a", "b", "site"]

    def test_include_relative_to_including_file(self, tmp_path):
        sub = tmp_path / "fw"
        sub.mkdir()
        write(sub / "rules.yaml", "resources:\n  - {kind: firewall_rule, name: deny, chain: INPUT, target: DROP}\n")
        write(sub / "index.yaml", "include: [rules.yaml]\n")
        site = write(tmp_path / "site.yaml", "include: [fw/index.yaml]\n")
        assert [r.id for r in load_recipe(site)] == ["deny"]

    def test_include_cycle(self, tmp_path):
        write(tmp_path / "a.yaml", "include: [b.yaml]\n")
        write(tmp_path / "b.yaml", "include: [a.yaml]\n")
        with pytest.raises(ConfigError) as exc:
            load_recipe(tmp_path / "a.yaml")
        assert "cíclico" in str(exc.value)

    def test_base_dir_lookup(self, tmp_path):
        write(tmp_path / "only.yaml", "resources:\n  - {kind: package, name: perl}\n")
        resources = RecipeLoader(base_dir=tmp_path).load("only.yaml")
        assert [r.id for r in resources] == ["perl"]


class TestSampleRecipes:

    def test_site_includes_everything(self):
        resources = load_recipe(RECIPES / "site.yaml")
        keys = {str(r.key) for r in resources}
        assert "package:webmin" in keys
        assert "file:/var/cache/baseline/webmin_1.940_all.deb" in keys
        assert "service:netfilter-persistent" in keys
        assert "firewall_rule:inbound_deny_all" in keys
        assert sum(1 for r in resources if r.id == "iptables-persistent") == 1

    def test_webmin_file_mode(self):
        resources = load_recipe(RECIPES / "baseline.yaml")
        webmin = next(r for r in resources if r.kind == ResourceKind.FILE)
        assert webmin.desired.mode == "0600"
        assert webmin.desired.owner == "root"
