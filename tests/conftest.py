"""Fixtures compartidos: host simulado y recursos del nodo de ejemplo."""

import pytest

from baseline.core.resources import firewall_chain, firewall_rule, package, service
from baseline.providers import InMemoryHost


@pytest.fixture
def host():
    return InMemoryHost()


@pytest.fixture
def sleeps():
    """Registra las esperas en lugar de dormir"""
    calls = []
    return calls


@pytest.fixture
def fake_sleep(sleeps):
    return sleeps.append


@pytest.fixture
def external_node():
    """perl + openssl, cadena FW_EXTERNAL [ACCEPT tcp/22, DROP] y restart de netfilter-persistent"""
    return [
        package("perl"),
        package("openssl"),
        firewall_chain("FW_EXTERNAL"),
        firewall_rule("external_ssh", "FW_EXTERNAL", "ACCEPT", 0, match="-p tcp --dport 22"),
        firewall_rule("external_deny_all", "FW_EXTERNAL", "DROP", 1),
        service(
            "netfilter-persistent",
            restart=True,
            depends_on=["firewall_rule:external_ssh", "firewall_rule:external_deny_all"],
        ),
    ]
