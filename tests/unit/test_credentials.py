"""Tests for the credential store and the ephemeral keychain."""

from __future__ import annotations

import base64
from pathlib import Path

import pytest

from conftest import FAKE_CERTIFICATE, FakeRunner
from releaseforge.core.commands import CommandFailed
from releaseforge.core.errors import CredentialUnavailable
from releaseforge.credentials.keychain import EphemeralKeychain
from releaseforge.credentials.store import DEFAULT_MACOS_IDENTITY, CredentialStore
from releaseforge.models.credentials import SigningCredential
from releaseforge.models.jobs import PlatformId


class TestCredentialStore:
    def test_macos_signing_credential(self, credentials: CredentialStore):
        cred = credentials.get_signing_credential(PlatformId.MACOS)
        assert cred.certificate_b64.get_secret_value() == FAKE_CERTIFICATE
        assert cred.password.get_secret_value() == "mac-cert-pass-8731"
        assert cred.identity == DEFAULT_MACOS_IDENTITY

    def test_macos_identity_override(self, credential_env: dict[str, str]):
        credential_env["MACOS_SIGNING_IDENTITY"] = "Developer ID Application: Example (TEAM1)"
        cred = CredentialStore(credential_env).get_signing_credential(PlatformId.MACOS)
        assert cred.identity == "Developer ID Application: Example (TEAM1)"

    def test_windows_has_no_identity(self, credentials: CredentialStore):
        cred = credentials.get_signing_credential(PlatformId.WINDOWS)
        assert cred.identity == ""
        assert cred.password.get_secret_value() == "win-cert-pass-2047"

    def test_notarization_credential(self, credentials: CredentialStore):
        cred = credentials.get_notarization_credential()
        assert cred.apple_id == "release@example.com"
        assert cred.team_id == "TEAM123456"
        assert cred.password.get_secret_value() == "app-specific-pass-5519"

    @pytest.mark.parametrize("variable", ["MACOS_CERTIFICATE", "MACOS_CERTIFICATE_PWD"])
    def test_missing_signing_secret(self, credential_env: dict[str, str], variable: str):
        del credential_env[variable]
        with pytest.raises(CredentialUnavailable) as exc_info:
            CredentialStore(credential_env).get_signing_credential(PlatformId.MACOS)
        assert exc_info.value.variable == variable

    def test_empty_value_counts_as_missing(self, credential_env: dict[str, str]):
        credential_env["NOTARIZE_PASSWORD"] = ""
        with pytest.raises(CredentialUnavailable):
            CredentialStore(credential_env).get_notarization_credential()

    def test_reads_environment_on_every_call(self, credential_env: dict[str, str]):
        store = CredentialStore(credential_env)
        store.get_release_token()
        del credential_env["GITHUB_TOKEN"]
        with pytest.raises(CredentialUnavailable):
            store.get_release_token()

    def test_defaults_to_process_environment(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_from_env")
        assert CredentialStore().get_release_token().get_secret_value() == "ghp_from_env"


@pytest.fixture
def signing_credential() -> SigningCredential:
    return SigningCredential(
        certificate_b64=FAKE_CERTIFICATE, password="p12-pass-77", identity="Dev"
    )


class TestEphemeralKeychain:
    def test_lifecycle(self, runner: FakeRunner, tmp_path: Path):
        with EphemeralKeychain(runner, tmp_path) as keychain:
            assert keychain.active is True
            assert keychain.path.parent == tmp_path
        assert keychain.active is False

        security = [c[1] for c in runner.commands("security")]
        assert security == [
            "list-keychains",
            "create-keychain",
            "set-keychain-settings",
            "unlock-keychain",
            "list-keychains",
            "list-keychains",
            "delete-keychain",
        ]

    def test_deleted_when_body_raises(self, runner: FakeRunner, tmp_path: Path):
        with pytest.raises(RuntimeError):
            with EphemeralKeychain(runner, tmp_path):
                raise RuntimeError("codesign exploded")
        assert runner.called("security", "delete-keychain")

    def test_deleted_when_setup_fails_after_create(self, runner: FakeRunner, tmp_path: Path):
        runner.fail("security", "unlock-keychain")
        with pytest.raises(CommandFailed):
            with EphemeralKeychain(runner, tmp_path):
                pass
        assert runner.called("security", "delete-keychain")

    def test_nothing_to_delete_when_create_fails(self, runner: FakeRunner, tmp_path: Path):
        runner.fail("security", "create-keychain")
        with pytest.raises(CommandFailed):
            with EphemeralKeychain(runner, tmp_path):
                pass
        assert not runner.called("security", "delete-keychain")

    def test_import_certificate(
        self, runner: FakeRunner, tmp_path: Path, signing_credential: SigningCredential
    ):
        seen: list[bytes] = []

        def capture(argv: list[str], cwd: Path | None) -> None:
            seen.append(Path(argv[2]).read_bytes())

        runner.on("security", "import", handler=capture)
        with EphemeralKeychain(runner, tmp_path) as keychain:
            keychain.import_certificate(signing_credential)
            (imported,) = [c for c in runner.calls if c[:2] == ["security", "import"]]
            p12 = Path(imported[2])

        assert seen == [base64.b64decode(FAKE_CERTIFICATE)]
        assert not p12.exists()
        assert "-T" in imported and "/usr/bin/codesign" in imported
        assert runner.called("security", "set-key-partition-list")

    def test_passwords_are_declared_secret(
        self, runner: FakeRunner, tmp_path: Path, signing_credential: SigningCredential
    ):
        with EphemeralKeychain(runner, tmp_path) as keychain:
            keychain.import_certificate(signing_credential)
        for argv, secrets in zip(runner.calls, runner.secrets):
            if "p12-pass-77" in argv:
                assert "p12-pass-77" in secrets


LISTING = (
    '    "/Users/builder/Library/Keychains/login.keychain-db"\n'
    '    "/Library/Keychains/System.keychain"\n'
)


class TestKeychainSearchList:
    @pytest.fixture
    def listed(self, runner: FakeRunner) -> FakeRunner:
        def list_keychains(argv: list[str], cwd: Path | None) -> str | None:
            return None if "-s" in argv else LISTING

        runner.on("security", "list-keychains", handler=list_keychains)
        return runner

    def _set_calls(self, runner: FakeRunner) -> list[list[str]]:
        return [c[5:] for c in runner.calls if c[:5] == ["security", "list-keychains", "-d", "user", "-s"]]

    def test_prepends_to_existing_list(self, listed: FakeRunner, tmp_path: Path):
        with EphemeralKeychain(listed, tmp_path) as keychain:
            (prepend,) = self._set_calls(listed)
            assert prepend == [
                str(keychain.path),
                "/Users/builder/Library/Keychains/login.keychain-db",
                "/Library/Keychains/System.keychain",
            ]

    def test_restores_previous_list_before_deleting(self, listed: FakeRunner, tmp_path: Path):
        with EphemeralKeychain(listed, tmp_path):
            pass
        _, restore = self._set_calls(listed)
        assert restore == [
            "/Users/builder/Library/Keychains/login.keychain-db",
            "/Library/Keychains/System.keychain",
        ]
        restore_index = listed.calls.index(["security", "list-keychains", "-d", "user", "-s", *restore])
        delete_index = next(i for i, c in enumerate(listed.calls) if c[1] == "delete-keychain")
        assert restore_index < delete_index

    def test_restores_list_when_body_raises(self, listed: FakeRunner, tmp_path: Path):
        with pytest.raises(RuntimeError):
            with EphemeralKeychain(listed, tmp_path):
                raise RuntimeError("codesign exploded")
        assert len(self._set_calls(listed)) == 2

    def test_delete_still_runs_when_restore_fails(self, runner: FakeRunner, tmp_path: Path):
        keychain = EphemeralKeychain(runner, tmp_path)
        keychain.create()
        runner.fail("security", "list-keychains", stderr="SecKeychainSetSearchList failed")
        with pytest.raises(CommandFailed, match="SecKeychainSetSearchList"):
            keychain.delete()
        assert runner.called("security", "delete-keychain")
        assert keychain.active is False


class TestKeychainExit:
    def test_cleanup_failure_does_not_mask_body_error(self, runner: FakeRunner, tmp_path: Path):
        runner.fail("security", "delete-keychain", stderr="The specified keychain could not be found.")
        with pytest.raises(RuntimeError, match="codesign exploded"):
            with EphemeralKeychain(runner, tmp_path):
                raise RuntimeError("codesign exploded")

    def test_cleanup_failure_does_not_mask_setup_error(self, runner: FakeRunner, tmp_path: Path):
        runner.fail("security", "unlock-keychain", stderr="unlock failed")
        runner.fail("security", "delete-keychain", stderr="delete failed")
        with pytest.raises(CommandFailed, match="unlock failed"):
            with EphemeralKeychain(runner, tmp_path):
                pass

    def test_cleanup_failure_after_clean_body_is_raised(self, runner: FakeRunner, tmp_path: Path):
        runner.fail("security", "delete-keychain", stderr="delete failed")
        with pytest.raises(CommandFailed, match="delete failed"):
            with EphemeralKeychain(runner, tmp_path):
                pass
