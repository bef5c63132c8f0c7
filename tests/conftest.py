"""Shared test fixtures for releaseforge.

Every external collaborator (command-line tools, the compiler, the notary
service, the release store, the clock) has a fake here so pipeline tests
run offline and instantly.
"""

from __future__ import annotations

import base64
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest

from releaseforge.config import ReleaseSettings
from releaseforge.core.commands import CommandFailed, CommandResult, redact
from releaseforge.core.errors import BuildError
from releaseforge.core.orchestrator import Orchestrator
from releaseforge.core.run_ledger import RunLedger
from releaseforge.credentials.store import CredentialStore
from releaseforge.models.artifacts import ReleaseKey
from releaseforge.models.credentials import NotarizationCredential
from releaseforge.models.notarization import Verdict, VerdictStatus
from releaseforge.pipelines.registry import build_default_pipelines

FAKE_CERTIFICATE = base64.b64encode(b"-----fake pkcs12 bundle-----").decode()

CREDENTIAL_ENV: dict[str, str] = {
    "MACOS_CERTIFICATE": FAKE_CERTIFICATE,
    "MACOS_CERTIFICATE_PWD": "mac-cert-pass-8731",
    "NOTARIZE_USERNAME": "release@example.com",
    "NOTARIZE_PASSWORD": "app-specific-pass-5519",
    "NOTARIZE_TEAM_ID": "TEAM123456",
    "WINDOWS_CERTIFICATE": FAKE_CERTIFICATE,
    "WINDOWS_CERTIFICATE_PWD": "win-cert-pass-2047",
    "GITHUB_TOKEN": "ghp_faketoken0000",
}


# ---------------------------------------------------------------------------
# Command runner
# ---------------------------------------------------------------------------


Handler = Callable[[list[str], Path | None], str | None]


class FakeRunner:
    """Records every command and simulates the tools' file side effects.

    ``on(prefix, handler)`` registers a handler for argv starting with
    *prefix*; a string returned by the handler becomes stdout.
    ``fail(prefix)`` makes matching commands exit non-zero.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.secrets: list[list[str]] = []
        self.timeouts: list[float | None] = []
        self._handlers: list[tuple[tuple[str, ...], Handler]] = []
        self._failures: list[tuple[tuple[str, ...], int, str]] = []

    def on(self, *prefix: str, handler: Handler) -> None:
        self._handlers.append((prefix, handler))

    def fail(self, *prefix: str, returncode: int = 1, stderr: str = "tool failed") -> None:
        self._failures.append((prefix, returncode, stderr))

    def run(
        self,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        secrets: Sequence[str] = (),
        timeout: float | None = None,
    ) -> CommandResult:
        argv = list(args)
        self.calls.append(argv)
        self.secrets.append(list(secrets))
        self.timeouts.append(timeout)
        for prefix, returncode, stderr in self._failures:
            if tuple(argv[: len(prefix)]) == prefix:
                raise CommandFailed(redact(argv, secrets), returncode, stderr)
        stdout = ""
        for prefix, handler in reversed(self._handlers):
            if tuple(argv[: len(prefix)]) == prefix:
                stdout = handler(argv, cwd) or ""
                break
        return CommandResult(args=argv, returncode=0, stdout=stdout)

    def commands(self, program: str) -> list[list[str]]:
        return [c for c in self.calls if c and c[0].endswith(program)]

    def called(self, *prefix: str) -> bool:
        return any(tuple(c[: len(prefix)]) == prefix for c in self.calls)


def _value_after(argv: list[str], flag: str) -> str:
    return argv[argv.index(flag) + 1]


def _append(path: Path, data: bytes) -> None:
    with path.open("ab") as fh:
        fh.write(data)


def install_tool_handlers(runner: FakeRunner) -> FakeRunner:
    """Make lipo/hdiutil/candle/light/codesign/signtool/stapler write files."""

    def lipo(argv: list[str], cwd: Path | None) -> None:
        out = Path(_value_after(argv, "-output"))
        inputs = argv[argv.index("-output") + 2 :]
        out.write_bytes(b"".join(Path(p).read_bytes() for p in inputs))

    def hdiutil(argv: list[str], cwd: Path | None) -> None:
        staging = Path(_value_after(argv, "-srcfolder"))
        listing = sorted(str(p.relative_to(staging)) for p in staging.rglob("*"))
        Path(argv[-1]).write_bytes(("DMG\n" + "\n".join(listing)).encode())

    def candle(argv: list[str], cwd: Path | None) -> None:
        Path(_value_after(argv, "-out")).write_bytes(b"WIXOBJ")

    def light(argv: list[str], cwd: Path | None) -> None:
        Path(_value_after(argv, "-out")).write_bytes(b"MSI")

    def codesign(argv: list[str], cwd: Path | None) -> None:
        if "--sign" not in argv:
            return
        target = Path(argv[-1])
        if target.is_dir():
            seal = target / "Contents" / "_CodeSignature" / "CodeResources"
            seal.parent.mkdir(parents=True, exist_ok=True)
            seal.write_bytes(b"codesign")
        else:
            _append(target, b"+codesign")

    def signtool(argv: list[str], cwd: Path | None) -> None:
        if argv[1] == "sign":
            _append(Path(argv[-1]), b"+signtool")

    def stapler(argv: list[str], cwd: Path | None) -> None:
        if argv[2] == "staple":
            _append(Path(argv[-1]), b"+ticket")

    runner.on("lipo", handler=lipo)
    runner.on("hdiutil", "create", handler=hdiutil)
    runner.on("candle.exe", handler=candle)
    runner.on("light.exe", handler=light)
    runner.on("codesign", handler=codesign)
    runner.on("signtool.exe", handler=signtool)
    runner.on("xcrun", "stapler", handler=stapler)
    return runner


# ---------------------------------------------------------------------------
# Other collaborators
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        assert seconds >= 0
        self.sleeps.append(seconds)
        self.now += seconds


class FakeToolchain:
    """Writes a per-target binary instead of compiling."""

    def __init__(self, root: Path, *, failing: Sequence[str] = ()) -> None:
        self.root = root
        self.failing = set(failing)
        self.builds: list[str] = []

    def build(self, target: str) -> Path:
        self.builds.append(target)
        if target in self.failing:
            raise BuildError(f"cargo build for {target} failed")
        out = self.root / target / "product"
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(f"binary-{target}".encode())
        return out


class FakeNotaryService:
    """Scripted notary authority.

    ``script`` holds status strings (``"pending"``, ``"accepted"``,
    ``"rejected"``) or exceptions to raise; the last item repeats forever.
    """

    def __init__(self, script: Sequence[Any] = ("accepted",), *, log: str = "") -> None:
        self.script = list(script)
        self.log = log
        self.submitted: list[Path] = []
        self.credentials: list[NotarizationCredential] = []
        self.status_calls = 0
        self.status_timeouts: list[float | None] = []
        self.stapled: list[Path] = []
        self.sessions = 0
        self.open_sessions = 0

    @contextmanager
    def session(self) -> Iterator[None]:
        self.sessions += 1
        self.open_sessions += 1
        try:
            yield
        finally:
            self.open_sessions -= 1

    def submit(self, path: Path, credential: NotarizationCredential) -> str:
        self.submitted.append(path)
        self.credentials.append(credential)
        return f"sub-{len(self.submitted)}"

    def status(self, submission_id: str, *, timeout: float | None = None) -> Verdict:
        self.status_timeouts.append(timeout)
        index = min(self.status_calls, len(self.script) - 1)
        self.status_calls += 1
        item = self.script[index]
        if isinstance(item, BaseException):
            raise item
        return Verdict(
            submission_id=submission_id,
            status=VerdictStatus(item),
            message="Package Invalid" if item == "rejected" else "",
        )

    def fetch_log(self, submission_id: str, *, timeout: float | None = None) -> str:
        return self.log

    def staple(self, path: Path) -> None:
        self.stapled.append(path)
        _append(path, b"+ticket")


class MemoryReleaseStore:
    """In-memory ``ReleaseStore``; ``failures`` are raised by the first puts."""

    def __init__(self, failures: Sequence[Exception] = ()) -> None:
        self.objects: dict[ReleaseKey, bytes] = {}
        self.failures = list(failures)
        self.put_calls: list[ReleaseKey] = []

    def put(self, key: ReleaseKey, data: bytes) -> None:
        self.put_calls.append(key)
        if self.failures:
            raise self.failures.pop(0)
        self.objects[key] = data


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner() -> FakeRunner:
    """A FakeRunner with file-producing tool handlers installed."""
    return install_tool_handlers(FakeRunner())


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential_env() -> dict[str, str]:
    return dict(CREDENTIAL_ENV)


@pytest.fixture
def credentials(credential_env: dict[str, str]) -> CredentialStore:
    return CredentialStore(credential_env)


@pytest.fixture
def release_settings(tmp_path: Path) -> ReleaseSettings:
    """Settings with every path under tmp_path and short poll intervals."""
    wxs = tmp_path / "product.wxs"
    wxs.write_text("<Wix />", encoding="utf-8")
    return ReleaseSettings(
        _env_file=None,
        product_name="Product",
        binary_name="product",
        wxs_path=wxs,
        work_dir=tmp_path / "work",
        ledger_path=tmp_path / "ledger.db",
        release_root=tmp_path / "releases",
        notarize_deadline_seconds=600.0,
        notarize_poll_initial_seconds=10.0,
        notarize_poll_max_seconds=60.0,
        notarize_poll_multiplier=2.0,
        upload_attempts=3,
        upload_backoff_initial_seconds=1.0,
        upload_backoff_max_seconds=4.0,
    )


@pytest.fixture
def ledger(tmp_path: Path) -> RunLedger:
    """Provide a fresh RunLedger backed by a temp SQLite database."""
    return RunLedger(tmp_path / "test_ledger.db")


@pytest.fixture
def toolchain(tmp_path: Path) -> FakeToolchain:
    return FakeToolchain(tmp_path / "target")


@pytest.fixture
def notary() -> FakeNotaryService:
    return FakeNotaryService()


@pytest.fixture
def store() -> MemoryReleaseStore:
    return MemoryReleaseStore()


@pytest.fixture
def make_orchestrator(
    release_settings: ReleaseSettings,
    runner: FakeRunner,
    credentials: CredentialStore,
    toolchain: FakeToolchain,
    notary: FakeNotaryService,
    store: MemoryReleaseStore,
    clock: FakeClock,
) -> Callable[..., Orchestrator]:
    """Factory fixture: an Orchestrator wired entirely to fakes.

    Keyword overrides replace any of the default collaborators.
    """

    def _factory(**overrides: Any) -> Orchestrator:
        config = overrides.pop("settings", release_settings)
        pipelines = build_default_pipelines(
            config,
            runner=overrides.pop("runner", runner),
            credentials=overrides.pop("credentials", credentials),
            store=overrides.pop("store", store),
            toolchain=overrides.pop("toolchain", toolchain),
            notary=overrides.pop("notary", notary),
            sleep=clock.sleep,
            clock=clock,
        )
        return Orchestrator(
            pipelines,
            settings=config,
            ledger=RunLedger(config.ledger_path),
            **overrides,
        )

    return _factory

