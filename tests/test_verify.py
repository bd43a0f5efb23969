"""Tests for the verification workflow."""

import json

import pytest

from soulbound_identity import (
    ExitCode,
    VerificationStatus,
    build_registration,
    hash_identity_files,
    to_data_uri,
    verify_identity,
    verify_identity_files,
)
from soulbound_identity.types import RegistrationDocument


def _statuses(result):
    return {name: item.status for name, item in result.files.items()}


class TestVerifyIdentityFiles:
    """Tests for verify_identity_files()."""

    def test_snapshot_verifies_against_itself(self, workspace):
        snapshot = hash_identity_files(workspace)

        result = verify_identity_files(snapshot, snapshot.expected_hashes())

        assert result.verified is True
        assert set(_statuses(result).values()) == {VerificationStatus.VERIFIED}
        assert result.composite.status == VerificationStatus.VERIFIED

    def test_changed_document_is_mismatch(self, workspace):
        expected = hash_identity_files(workspace).expected_hashes()
        (workspace / "USER.md").write_text("tampered")

        result = verify_identity_files(hash_identity_files(workspace), expected)

        assert result.verified is False
        assert _statuses(result) == {
            "SOUL.md": VerificationStatus.VERIFIED,
            "USER.md": VerificationStatus.MISMATCH,
            "IDENTITY.md": VerificationStatus.VERIFIED,
        }
        assert result.composite.status == VerificationStatus.MISMATCH
        assert result.files["USER.md"].expected == expected["USER.md"]

    def test_missing_document(self, workspace):
        expected = hash_identity_files(workspace).expected_hashes()
        (workspace / "SOUL.md").unlink()

        result = verify_identity_files(hash_identity_files(workspace), expected)

        assert result.verified is False
        assert result.files["SOUL.md"].status == VerificationStatus.MISSING
        assert result.files["SOUL.md"].actual is None

    def test_missing_without_expected_hash_still_fails(self, tmp_path):
        result = verify_identity_files(hash_identity_files(tmp_path), {})

        assert result.verified is False
        assert set(_statuses(result).values()) == {VerificationStatus.MISSING}

    def test_no_chain_hash_is_not_a_failure(self, workspace):
        snapshot = hash_identity_files(workspace)
        expected = {"SOUL.md": snapshot.get("SOUL.md").hash}

        result = verify_identity_files(snapshot, expected)

        assert result.verified is True
        assert result.files["USER.md"].status == VerificationStatus.NO_CHAIN_HASH
        assert result.files["USER.md"].actual == snapshot.get("USER.md").hash
        assert result.composite is None

    def test_strict_fails_on_no_chain_hash(self, workspace):
        snapshot = hash_identity_files(workspace)
        expected = {"SOUL.md": snapshot.get("SOUL.md").hash}

        assert verify_identity_files(snapshot, expected, strict=True).verified is False

    def test_composite_mismatch_alone_fails(self, workspace):
        snapshot = hash_identity_files(workspace)
        expected = snapshot.expected_hashes()
        expected["_composite"] = "0x" + "ab" * 32

        result = verify_identity_files(snapshot, expected)

        assert result.verified is False
        assert set(_statuses(result).values()) == {VerificationStatus.VERIFIED}


class TestVerifyIdentityOnline:
    """End-to-end verification against the fake chain."""

    @pytest.fixture
    def registered(self, fake_chain, agent_config):
        fake_chain.register(42, to_data_uri(build_registration(agent_config)))
        return fake_chain

    @pytest.mark.asyncio
    async def test_all_verified(self, registered, workspace):
        async with registered.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.VERIFIED
        assert outcome.verified
        assert set(_statuses(outcome.result).values()) == {VerificationStatus.VERIFIED}
        assert outcome.result.composite.status == VerificationStatus.VERIFIED

    @pytest.mark.asyncio
    async def test_tampered_document(self, registered, workspace):
        (workspace / "USER.md").write_text("someone else")

        async with registered.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.MISMATCH
        assert outcome.result.files["USER.md"].status == VerificationStatus.MISMATCH
        assert outcome.result.files["SOUL.md"].status == VerificationStatus.VERIFIED
        assert outcome.result.files["IDENTITY.md"].status == VerificationStatus.VERIFIED
        assert outcome.result.composite.status == VerificationStatus.MISMATCH

    @pytest.mark.asyncio
    async def test_deleted_document(self, registered, workspace):
        (workspace / "IDENTITY.md").unlink()

        async with registered.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.MISMATCH
        assert outcome.result.files["IDENTITY.md"].status == VerificationStatus.MISSING

    @pytest.mark.asyncio
    async def test_unknown_agent_is_indeterminate(self, fake_chain, workspace):
        async with fake_chain.client() as client:
            outcome = await verify_identity(workspace, agent_id=404, client=client)

        assert outcome.exit_code == ExitCode.NO_REGISTRATION
        assert outcome.result is None
        assert outcome.snapshot is not None

    @pytest.mark.asyncio
    async def test_unresolvable_registration_is_indeterminate(self, fake_chain, workspace):
        fake_chain.register(42, "https://agent.example/missing.json")

        async with fake_chain.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.NO_REGISTRATION

    @pytest.mark.asyncio
    async def test_registration_without_hashes_is_indeterminate(self, fake_chain, workspace):
        fake_chain.register(42, to_data_uri(RegistrationDocument(name="bare")))

        async with fake_chain.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.NO_REGISTRATION
        assert "no identity file hashes" in outcome.message

    @pytest.mark.asyncio
    async def test_network_failure_is_error(self, registered, workspace):
        registered.rpc_timeout = True

        async with registered.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.ERROR
        assert "Chain read error" in outcome.message

    @pytest.mark.asyncio
    async def test_missing_agent_id_fails_before_network(self, fake_chain, workspace):
        async with fake_chain.client() as client:
            outcome = await verify_identity(workspace, client=client)

        assert outcome.exit_code == ExitCode.ERROR
        assert fake_chain.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("agent_id", [-1, "42", True])
    async def test_invalid_agent_id_fails_before_network(self, fake_chain, workspace, agent_id):
        async with fake_chain.client() as client:
            outcome = await verify_identity(workspace, agent_id=agent_id, client=client)

        assert outcome.exit_code == ExitCode.ERROR
        assert "non-negative integer" in outcome.message
        assert fake_chain.calls == []

    @pytest.mark.asyncio
    async def test_malformed_registration_url_is_indeterminate(self, fake_chain, workspace):
        fake_chain.register(42, "http://[::1/reg.json")

        async with fake_chain.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.NO_REGISTRATION

    @pytest.mark.asyncio
    async def test_missing_workspace_is_error(self, fake_chain, tmp_path):
        async with fake_chain.client() as client:
            outcome = await verify_identity(tmp_path / "nope", agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.ERROR
        assert fake_chain.calls == []

    @pytest.mark.asyncio
    async def test_unreadable_document_is_error(self, registered, workspace):
        (workspace / "SOUL.md").unlink()
        (workspace / "SOUL.md").mkdir()

        async with registered.client() as client:
            outcome = await verify_identity(workspace, agent_id=42, client=client)

        assert outcome.exit_code == ExitCode.ERROR


class TestVerifyIdentityOffline:
    """Offline verification against an expected-hashes file."""

    @pytest.mark.asyncio
    async def test_offline_verified(self, workspace, tmp_path):
        hashes = tmp_path / "hashes.json"
        hashes.write_text(json.dumps(hash_identity_files(workspace).expected_hashes()))

        outcome = await verify_identity(workspace, offline=True, expected_hashes_path=hashes)

        assert outcome.exit_code == ExitCode.VERIFIED

    @pytest.mark.asyncio
    async def test_offline_mismatch(self, workspace, tmp_path):
        hashes = tmp_path / "hashes.json"
        hashes.write_text(json.dumps(hash_identity_files(workspace).expected_hashes()))
        (workspace / "SOUL.md").write_text("rewritten")

        outcome = await verify_identity(workspace, offline=True, expected_hashes_path=hashes)

        assert outcome.exit_code == ExitCode.MISMATCH

    @pytest.mark.asyncio
    async def test_offline_without_file_is_error(self, workspace):
        outcome = await verify_identity(workspace, offline=True)

        assert outcome.exit_code == ExitCode.ERROR

    @pytest.mark.asyncio
    async def test_offline_bad_json_is_error(self, workspace, tmp_path):
        hashes = tmp_path / "hashes.json"
        hashes.write_text("{not json")

        outcome = await verify_identity(workspace, offline=True, expected_hashes_path=hashes)

        assert outcome.exit_code == ExitCode.ERROR
