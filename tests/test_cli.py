import argparse
from types import SimpleNamespace

import pytest

import cli
from basketswap.core.execution.errors import ConfigError
from basketswap.core.execution.models import Receipt, ReceiptStatus


TOKEN = "0xaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa"
OTHER = "0xbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbbb"
WALLET = "0x1111111111111111111111111111111111111111"


def test_parse_rebalance_entries():
    args = cli.build_parser().parse_args(
        ["rebalance", "--base", f"{TOKEN}:1000", "--target", f"{TOKEN}:1"]
    )

    assert args.base[0].token_address == TOKEN
    assert args.base[0].amount == 1000
    assert args.target[0].allocation == 1.0
    assert args.handler is cli.cli_rebalance


def test_malformed_entry_is_rejected():
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_base_entry(TOKEN)
    with pytest.raises(argparse.ArgumentTypeError):
        cli.parse_target_entry(f"{TOKEN}:2")


def test_execution_error_maps_to_exit_code_one(monkeypatch):
    def fail():
        raise ConfigError("RPC_URL is not configured")

    monkeypatch.setattr(cli, "build_gateway", fail)

    assert cli.main(["balances", TOKEN, "--owner", TOKEN]) == 1


class StubGateway:
    def __init__(self):
        self.balances = {TOKEN: 2 * 10 ** 18, OTHER: 0}
        self.closed = False

    async def balance_of(self, token, owner):
        return self.balances[token]

    async def decimals(self, token):
        return 18

    async def symbol(self, token):
        return "AAA" if token == TOKEN else "BBB"

    async def close(self):
        self.closed = True


class StubProvider:
    async def close(self):
        pass


class StubFlow:
    def __init__(self, gateway):
        self.gateway = gateway
        self.requests = []

    async def execute(self, request):
        self.requests.append(request)
        self.gateway.balances = {TOKEN: 0, OTHER: 5 * 10 ** 17}
        return Receipt(transaction_hash="0x01", block_number=10, gas_used=21_000, status=ReceiptStatus.SUCCESS)


def test_rebalance_prints_balances_before_and_after(monkeypatch, capsys):
    gateway = StubGateway()
    flow = StubFlow(gateway)
    monkeypatch.setattr(cli, "build_signer", lambda: SimpleNamespace(address=WALLET))
    monkeypatch.setattr(cli, "build_provider", StubProvider)
    monkeypatch.setattr(cli, "build_gateway", lambda: gateway)
    monkeypatch.setattr(cli, "build_rebalance_flow", lambda provider, gw, signer: flow)

    code = cli.main(["rebalance", "--base", f"{TOKEN}:1000", "--target", f"{OTHER}:1"])

    assert code == 0
    assert flow.requests[0].wallet == WALLET
    assert gateway.closed
    out = capsys.readouterr().out
    before, after = out.split("Balances before rebalancing:")[1].split("Balances after rebalancing:")
    assert "AAA: 2" in before and "BBB: 0" in before
    assert "AAA: 0" in after and "BBB: 0.5" in after
