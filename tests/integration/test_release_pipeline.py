"""End-to-end integration tests: tag in, published installers out.

These exercise the Orchestrator, both platform pipelines, the packagers,
signers, Notarizer, Publisher and RunLedger together.  Only the external
tools, the notary authority and the clock are faked.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from conftest import FakeClock, FakeNotaryService, FakeRunner, FakeToolchain, MemoryReleaseStore
from releaseforge.config import ReleaseSettings
from releaseforge.core.errors import TransientNetworkError
from releaseforge.models.artifacts import ReleaseKey
from releaseforge.models.jobs import JobStatus, PlatformId
from releaseforge.publish.store import LocalReleaseStore


class TestMacOSRelease:
    def test_publishes_signed_notarized_stapled_dmg(
        self, make_orchestrator, store: MemoryReleaseStore, notary: FakeNotaryService
    ):
        result = make_orchestrator().run("v1.2.3", PlatformId.MACOS)

        assert result.status == "success"
        key = ReleaseKey(tag="v1.2.3", platform="macos", filename="Product-macos.dmg")
        assert result.published_key == key
        data = store.objects[key]
        assert data.startswith(b"DMG")
        assert data.endswith(b"+codesign+ticket")
        assert b"Product.app/Contents/_CodeSignature/CodeResources" in data
        assert notary.submitted[0].name == "Product.dmg"
        assert notary.stapled == notary.submitted
        assert notary.open_sessions == 0

    def test_universal_binary_from_both_targets(self, make_orchestrator, runner: FakeRunner, toolchain):
        make_orchestrator().run("v1.2.3", PlatformId.MACOS)
        assert toolchain.builds == ["x86_64-apple-darwin", "aarch64-apple-darwin"]
        (lipo,) = runner.commands("lipo")
        assert lipo[-2:] == [
            str(toolchain.root / "x86_64-apple-darwin" / "product"),
            str(toolchain.root / "aarch64-apple-darwin" / "product"),
        ]

    def test_notarization_never_resolving_fails_without_publishing(
        self, make_orchestrator, store: MemoryReleaseStore, clock: FakeClock,
        release_settings: ReleaseSettings,
    ):
        notary = FakeNotaryService(["pending"])
        orch = make_orchestrator(notary=notary)
        result = orch.run("v1.2.3", PlatformId.MACOS)

        assert result.status == "failed:notarize"
        assert "no verdict" in result.error
        assert store.put_calls == []
        assert notary.stapled == []
        assert sum(clock.sleeps) == pytest.approx(release_settings.notarize_deadline_seconds)
        assert not (orch.workdir_for("v1.2.3", PlatformId.MACOS) / "Product-macos.dmg").exists()

    def test_rejection_carries_developer_log(self, make_orchestrator, store: MemoryReleaseStore):
        notary = FakeNotaryService(["pending", "rejected"], log='{"issues": ["unsigned binary"]}')
        result = make_orchestrator(notary=notary).run("v1.2.3", PlatformId.MACOS)
        assert result.status == "failed:notarize"
        assert "Package Invalid" in result.error
        assert store.put_calls == []

    def test_transient_poll_errors_are_tolerated(self, make_orchestrator):
        notary = FakeNotaryService([TransientNetworkError("503"), "pending", TransientNetworkError("reset"), "accepted"])
        result = make_orchestrator(notary=notary).run("v1.2.3", PlatformId.MACOS)
        assert result.succeeded
        assert notary.status_calls == 4


class TestWindowsRelease:
    def test_publishes_signed_msi(self, make_orchestrator, store: MemoryReleaseStore, runner: FakeRunner):
        result = make_orchestrator().run("v1.2.3", PlatformId.WINDOWS)

        assert result.succeeded
        key = ReleaseKey(tag="v1.2.3", platform="windows", filename="Product-windows.msi")
        assert store.objects[key] == b"MSI+signtool"
        (light,) = runner.commands("light.exe")
        assert "-sice:ICE61" in light
        assert "-sice:ICE91" in light

    def test_prerelease_tag_version(self, make_orchestrator, store: MemoryReleaseStore, runner: FakeRunner):
        result = make_orchestrator().run("v2.0.0-rc.1", PlatformId.WINDOWS)
        assert str(result.published_key) == "v2.0.0-rc.1/windows/Product-windows.msi"
        (candle,) = runner.commands("candle.exe")
        assert "-dProductVersion=2.0.0" in candle

    def test_transient_upload_failure_is_retried(self, make_orchestrator, clock: FakeClock):
        store = MemoryReleaseStore(failures=[TransientNetworkError("502 Bad Gateway")])
        result = make_orchestrator(store=store).run("v1.2.3", PlatformId.WINDOWS)
        assert result.succeeded
        assert len(store.put_calls) == 2
        assert clock.sleeps == [1.0]


class TestTagValidation:
    @pytest.mark.parametrize("tag", ["1.2.3", "v1.2", "vX.Y.Z", "nightly"])
    def test_rejected_before_any_phase(
        self, make_orchestrator, tag: str, toolchain: FakeToolchain, runner: FakeRunner,
        store: MemoryReleaseStore,
    ):
        results = make_orchestrator().run_all(tag)
        assert {r.status for r in results.values()} == {"failed:validate"}
        assert toolchain.builds == []
        assert runner.calls == []
        assert store.put_calls == []


class TestParallelPlatforms:
    def test_both_platforms_publish(self, make_orchestrator, store: MemoryReleaseStore):
        results = make_orchestrator().run_all("v1.2.3")
        assert {p: r.status for p, r in results.items()} == {
            PlatformId.WINDOWS: "success",
            PlatformId.MACOS: "success",
        }
        assert sorted(str(k) for k in store.objects) == [
            "v1.2.3/macos/Product-macos.dmg",
            "v1.2.3/windows/Product-windows.msi",
        ]

    def test_one_failure_does_not_touch_the_other(
        self, make_orchestrator, runner: FakeRunner, store: MemoryReleaseStore
    ):
        runner.fail("light.exe", stderr="error LGHT0204 : ICE03")
        orch = make_orchestrator()
        results = orch.run_all("v1.2.3")

        assert results[PlatformId.WINDOWS].status == "failed:package"
        assert results[PlatformId.MACOS].status == "success"
        assert [str(k) for k in store.objects] == ["v1.2.3/macos/Product-macos.dmg"]
        assert orch.history("v1.2.3", "macos")[-1].state_transition == "renamed->published"
        assert orch.verify_chain("v1.2.3", "windows")
        assert orch.verify_chain("v1.2.3", "macos")

    def test_serial_when_capped_to_one_worker(self, make_orchestrator, release_settings: ReleaseSettings):
        config = release_settings.model_copy(update={"max_parallel_platforms": 1})
        results = make_orchestrator(settings=config).run_all("v1.2.3")
        assert all(r.succeeded for r in results.values())


class TestLocalStoreRelease:
    @pytest.fixture
    def local_store(self, release_settings: ReleaseSettings) -> LocalReleaseStore:
        return LocalReleaseStore(release_settings.release_root)

    def test_files_land_under_tag_and_platform(self, make_orchestrator, local_store: LocalReleaseStore):
        results = make_orchestrator(store=local_store).run_all("v1.2.3")
        for result in results.values():
            stored = local_store.path_for(result.published_key)
            assert hashlib.sha256(stored.read_bytes()).hexdigest() == result.artifact_sha256
        assert len(local_store.keys()) == 2

    def test_rerun_overwrites_the_same_keys(
        self, make_orchestrator, local_store: LocalReleaseStore, toolchain: FakeToolchain
    ):
        orch = make_orchestrator(store=local_store)
        orch.run_all("v1.2.3")
        first = {k: local_store.get(k) for k in local_store.keys()}

        orch.run_all("v1.2.3")
        assert set(local_store.keys()) == set(first)
        assert len(local_store.keys()) == 2
        for key in first:
            assert local_store.get(key) == first[key]

    def test_rerun_ledger_keeps_both_attempts(self, make_orchestrator, local_store: LocalReleaseStore):
        orch = make_orchestrator(store=local_store)
        orch.run("v1.2.3", PlatformId.WINDOWS)
        orch.run("v1.2.3", PlatformId.WINDOWS)
        transitions = [e.state_transition for e in orch.history("v1.2.3", "windows")]
        assert transitions.count("renamed->published") == 2
        assert orch.verify_chain("v1.2.3", "windows")


def test_history_statuses_are_monotonic(make_orchestrator):
    order = list(JobStatus)
    result = make_orchestrator().run("v1.2.3", PlatformId.MACOS)
    indices = [order.index(s) for s in result.history]
    assert indices == sorted(indices)
