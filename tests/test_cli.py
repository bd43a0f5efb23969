"""Tests for the command line interface."""

import json

import pytest

from soulbound_identity import ChainClient, build_registration, hash_identity_files, to_data_uri
from soulbound_identity import cli
from conftest import OWNER


@pytest.fixture
def use_fake_chain(monkeypatch, fake_chain):
    """Route every ChainClient the CLI creates to the fake chain."""
    transport = fake_chain.transport()
    monkeypatch.setattr(cli, "ChainClient", lambda config: ChainClient(config, transport=transport))
    return fake_chain


@pytest.fixture
def config_file(tmp_path, workspace):
    def write(**extra):
        data = {
            "name": "Bernardo",
            "description": "Business & engineering agent",
            "workspacePath": str(workspace),
            "ownerAddress": OWNER,
            **extra,
        }
        path = tmp_path / "bernardo.json"
        path.write_text(json.dumps(data))
        return path

    return write


class TestHashCommand:
    def test_json_output(self, workspace, capsys):
        assert cli.main(["hash", str(workspace), "--json"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["composite"] == hash_identity_files(workspace).composite

    def test_human_output(self, workspace, capsys):
        assert cli.main(["hash", str(workspace)]) == 0
        assert "Composite Hash" in capsys.readouterr().out


class TestBuildCommand:
    def test_writes_registration(self, config_file, capsys):
        path = config_file()

        assert cli.main(["build", str(path)]) == 0

        written = json.loads((path.parent / "bernardo-registration.json").read_text())
        assert written["name"] == "Bernardo"
        assert "Estimated gas" in capsys.readouterr().out

    def test_invalid_config(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{")

        assert cli.main(["build", str(path)]) == 3
        assert "not valid JSON" in capsys.readouterr().err


class TestVerifyCommand:
    def test_offline_verified(self, workspace, tmp_path):
        hashes = tmp_path / "hashes.json"
        hashes.write_text(json.dumps(hash_identity_files(workspace).expected_hashes()))

        code = cli.main(["verify", str(workspace), "--offline", "--expected-hashes", str(hashes)])
        assert code == 0

    def test_offline_mismatch_json(self, workspace, tmp_path, capsys):
        hashes = tmp_path / "hashes.json"
        hashes.write_text(json.dumps(hash_identity_files(workspace).expected_hashes()))
        (workspace / "USER.md").write_text("changed")

        code = cli.main(
            ["verify", "-w", str(workspace), "--offline", "--expected-hashes", str(hashes), "--json"]
        )

        assert code == 1
        output = json.loads(capsys.readouterr().out)
        assert output["exit_code"] == 1
        assert output["result"]["files"]["USER.md"]["status"] == "MISMATCH"

    def test_online_verified(self, use_fake_chain, agent_config, workspace):
        use_fake_chain.register(42, to_data_uri(build_registration(agent_config)))

        assert cli.main(["verify", str(workspace), "--agent-id", "42"]) == 0

    def test_online_no_registration(self, use_fake_chain, workspace):
        assert cli.main(["verify", str(workspace), "-a", "5"]) == 2

    def test_online_unresolvable_registration(self, use_fake_chain, workspace):
        use_fake_chain.register(42, "http://[::1/reg.json")

        assert cli.main(["verify", str(workspace), "-a", "42"]) == 2

    def test_online_network_error(self, use_fake_chain, workspace):
        use_fake_chain.rpc_timeout = True

        assert cli.main(["verify", str(workspace), "-a", "5"]) == 3

    def test_agent_id_from_config(self, use_fake_chain, agent_config, config_file):
        use_fake_chain.register(42, to_data_uri(build_registration(agent_config)))
        path = config_file(agentId=42)

        assert cli.main(["verify", "--config", str(path)]) == 0

    def test_no_agent_id_is_configuration_error(self, use_fake_chain, workspace):
        assert cli.main(["verify", str(workspace)]) == 3


class TestChainCommands:
    def test_lookup(self, use_fake_chain, agent_config, capsys):
        use_fake_chain.register(42, to_data_uri(build_registration(agent_config)))

        assert cli.main(["lookup", "42"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["agentId"] == 42
        assert output["registration"]["name"] == "Bernardo"

    def test_lookup_unknown_agent(self, use_fake_chain):
        assert cli.main(["lookup", "9"]) == 2

    def test_tba(self, use_fake_chain, capsys):
        assert cli.main(["tba", "42", "--json"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["exists"] is False
        assert output["address"].startswith("0x")


class TestUpdateCommand:
    def test_hint_without_mode(self, use_fake_chain, config_file, capsys):
        assert cli.main(["update", "--config", str(config_file())]) == 0
        assert "--dry-run" in capsys.readouterr().out

    def test_dry_run_and_output(self, use_fake_chain, config_file, tmp_path):
        path = config_file()
        tx_path = tmp_path / "tx.json"

        assert cli.main(["update", "-c", str(path), "--dry-run", "--output", str(tx_path)]) == 0

        assert (tmp_path / "bernardo-registration.json").exists()
        assert (tmp_path / "bernardo-expected-hashes.json").exists()
        assert json.loads(tx_path.read_text())["chainId"] == 8453

    def test_sign_without_signer(self, use_fake_chain, config_file, capsys):
        assert cli.main(["update", "-c", str(config_file()), "--sign"]) == 1
        assert "No signer configured" in capsys.readouterr().err

    def test_unknown_agent(self, use_fake_chain, config_file, capsys):
        assert cli.main(["update", "-c", str(config_file(agentId=99)), "--dry-run"]) == 2
        assert "99" in capsys.readouterr().err

    def test_noop(self, use_fake_chain, agent_config, config_file, capsys):
        registered = agent_config.model_copy(update={"agent_id": 42})
        use_fake_chain.register(42, to_data_uri(build_registration(registered)))

        assert cli.main(["update", "-c", str(config_file(agentId=42)), "--output", "unused.json"]) == 0
        assert "No update needed" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()
