"""Tests for install and uninstall orchestration."""

import asyncio

from common.errors import InstallError, OperationCancelledError, StateError
from catalog.models import PackageInfo, VersionInfo
from catalog.store import PackageCatalog
from install.host import HostIndex
from operations.manager import OperationState, PackageOperationManager
from operations.policy import AutoRejectPolicy, CallbackPolicy, Decision


class FakeInstaller:
    """Records installer calls and keeps installed versions in a dict."""

    def __init__(self, versions=None, fail=None):
        self.versions = dict(versions or {})
        self.fail = set(fail or ())
        self.calls = []

    def is_installed(self, name):
        return name in self.versions

    def get_installed_version(self, name):
        return self.versions.get(name)

    async def install(self, name, version, on_progress=None, cancel_event=None):
        await asyncio.sleep(0)
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError("download cancelled")
        if name in self.fail:
            raise InstallError(f"download failed: {name}")
        if on_progress is not None:
            on_progress(0.5)
        self.calls.append(("install", name, version))
        self.versions[name] = version

    async def uninstall(self, name):
        if name not in self.versions:
            raise StateError(f"package does not exist: {name}")
        self.calls.append(("uninstall", name))
        del self.versions[name]


class TrackingInstaller(FakeInstaller):
    """Counts installer calls running at the same time."""

    def __init__(self, versions=None):
        super().__init__(versions)
        self.in_flight = 0
        self.peak = 0

    async def install(self, name, version, on_progress=None, cancel_event=None):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            await super().install(name, version, on_progress, cancel_event)
        finally:
            self.in_flight -= 1


def _pkg(name, versions=("1.0.0",), deps=None):
    versions = list(versions)
    return PackageInfo(
        name=name,
        newest_version=versions[0] if versions else None,
        versions=[VersionInfo(v) for v in versions],
        dependencies=dict(deps or {}),
    )


def _catalog(packages, installer, host_index=None):
    catalog = PackageCatalog(None, installer, host_index or HostIndex(manifest_path=None))
    catalog.replace_all(packages)
    catalog.refresh_installed_status()
    return catalog


def _installs(installer):
    return [call[1] for call in installer.calls if call[0] == "install"]


def _chain():
    return [
        _pkg("P", deps={"Q": "^1.0.0"}),
        _pkg("Q", deps={"R": "^1.0.0"}),
        _pkg("R", versions=("1.2.0", "1.0.0")),
    ]


class TestInstallOrder:
    """Dependencies are installed before their dependents."""

    def test_chain_order(self):
        installer = FakeInstaller()

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(catalog, installer)
            return catalog, await manager.install_package(catalog.find("P"))

        catalog, result = asyncio.run(scenario())

        assert result.state == OperationState.COMPLETED
        assert result.succeeded
        assert result.installed == ["R", "Q", "P"]
        assert _installs(installer) == ["R", "Q", "P"]
        assert installer.versions["R"] == "1.2.0"
        assert catalog.find("P").is_installed
        assert catalog.find("R").local_version == "1.2.0"

    def test_second_install_is_noop(self):
        installer = FakeInstaller()

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(catalog, installer)
            await manager.install_package(catalog.find("P"))
            before = len(installer.calls)
            second = await manager.install_package(catalog.find("P"), "1.0.0")
            return before, second

        before, second = asyncio.run(scenario())

        assert len(installer.calls) == before
        assert second.state == OperationState.COMPLETED
        assert second.installed == []
        assert set(second.skipped) == {"P", "Q"}

    def test_target_reinstalled_at_other_version(self):
        installer = FakeInstaller({"P": "1.0.0"})

        async def scenario():
            catalog = _catalog([_pkg("P", versions=("1.1.0", "1.0.0"))], installer)
            manager = PackageOperationManager(catalog, installer)
            return catalog, await manager.install_package(catalog.find("P"), "1.1.0")

        catalog, result = asyncio.run(scenario())

        assert result.installed == ["P"]
        assert installer.versions["P"] == "1.1.0"
        assert not catalog.find("P").has_update

    def test_compatible_dependency_not_reinstalled(self):
        installer = FakeInstaller({"R": "1.0.0"})

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(catalog, installer)
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert _installs(installer) == ["Q", "P"]
        assert installer.versions["R"] == "1.0.0"
        assert "R" in result.skipped

    def test_diamond_installs_shared_dependency_once(self):
        installer = FakeInstaller()
        packages = [
            _pkg("A", deps={"B": "^1.0.0", "C": "^1.0.0"}),
            _pkg("B", deps={"D": "^1.0.0"}),
            _pkg("C", deps={"D": "^1.0.0"}),
            _pkg("D"),
        ]

        async def scenario():
            catalog = _catalog(packages, installer)
            manager = PackageOperationManager(catalog, installer, max_concurrency=4)
            return await manager.install_package(catalog.find("A"))

        result = asyncio.run(scenario())

        assert _installs(installer).count("D") == 1
        assert result.installed.count("D") == 1
        assert result.installed[0] == "D"
        assert result.installed[-1] == "A"


class TestDelegationAndFailures:
    """Host packages, failing dependencies and cycles."""

    def test_host_and_git_dependencies_delegated(self):
        installer = FakeInstaller()
        packages = [_pkg("P", deps={"com.unity.ugui": "1.0.0", "tool": "git+https://example.test/tool.git"})]

        async def scenario():
            catalog = _catalog(packages, installer)
            manager = PackageOperationManager(catalog, installer)
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.COMPLETED
        assert sorted(result.delegated) == ["com.unity.ugui", "tool"]
        assert _installs(installer) == ["P"]

    def test_failed_dependency_is_best_effort(self):
        installer = FakeInstaller(fail={"Q"})
        errors = []

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(catalog, installer)
            manager.on_error.subscribe(errors.append)
            return catalog, await manager.install_package(catalog.find("P"))

        catalog, result = asyncio.run(scenario())

        assert result.state == OperationState.COMPLETED
        assert result.installed == ["R", "P"]
        assert "Q" in result.failed
        assert not catalog.find("Q").is_installed
        assert any("Q" in message for message in errors)

    def test_dependency_missing_from_catalog(self):
        installer = FakeInstaller()

        async def scenario():
            catalog = _catalog([_pkg("P", deps={"ghost": "^1.0.0"})], installer)
            manager = PackageOperationManager(catalog, installer)
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert "ghost" in result.failed
        assert result.installed == ["P"]

    def test_cycle_is_reported_not_followed(self):
        installer = FakeInstaller()
        packages = [_pkg("A", deps={"B": "^1.0.0"}), _pkg("B", deps={"A": "^1.0.0"})]

        async def scenario():
            catalog = _catalog(packages, installer)
            manager = PackageOperationManager(catalog, installer)
            return await manager.install_package(catalog.find("A"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.COMPLETED
        assert "A -> B -> A" in result.failed["A"]
        assert result.installed == ["B", "A"]

    def test_installed_back_edge_is_satisfied_not_a_cycle(self):
        """Upgrading A whose dependency requires an A range the installed A meets."""
        installer = FakeInstaller({"A": "1.0.0"})
        packages = [
            _pkg("A", versions=("1.1.0", "1.0.0"), deps={"B": "^1.0.0"}),
            _pkg("B", deps={"A": "^1.0.0"}),
        ]

        async def scenario():
            catalog = _catalog(packages, installer)
            manager = PackageOperationManager(catalog, installer)
            return await manager.install_package(catalog.find("A"), "1.1.0")

        result = asyncio.run(scenario())

        assert result.state == OperationState.COMPLETED
        assert result.failed == {}
        assert result.installed == ["B", "A"]
        assert "A" in result.skipped
        assert installer.versions == {"A": "1.1.0", "B": "1.0.0"}

    def test_target_failure(self):
        installer = FakeInstaller(fail={"P"})

        async def scenario():
            catalog = _catalog([_pkg("P")], installer)
            manager = PackageOperationManager(catalog, installer)
            return catalog, await manager.install_package(catalog.find("P"))

        catalog, result = asyncio.run(scenario())

        assert result.state == OperationState.FAILED
        assert "download failed" in result.error
        assert not catalog.find("P").is_installed

    def test_no_version_available(self):
        installer = FakeInstaller()

        async def scenario():
            catalog = _catalog([_pkg("P", versions=())], installer)
            manager = PackageOperationManager(catalog, installer)
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.FAILED
        assert installer.calls == []

    def test_cancellation_aborts(self):
        installer = FakeInstaller()

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(catalog, installer)
            cancel = asyncio.Event()
            cancel.set()
            return catalog, await manager.install_package(catalog.find("P"), cancel_event=cancel)

        catalog, result = asyncio.run(scenario())

        assert result.state == OperationState.ABORTED
        assert installer.calls == []
        assert not catalog.find("P").is_installed


class TestPolicyDecisions:
    """Aborting on conflicts and unconfirmed dependencies."""

    def _conflicting(self, installer):
        return _catalog(
            [
                _pkg("dep", versions=("2.0.0", "1.0.0")),
                _pkg("existing", deps={"dep": "^1.0.0"}),
                _pkg("new", deps={"dep": "^2.0.0"}),
            ],
            installer,
        )

    def test_conflicts_abort_without_side_effects(self):
        installer = FakeInstaller({"existing": "1.0.0", "dep": "1.0.0"})

        async def scenario():
            catalog = self._conflicting(installer)
            manager = PackageOperationManager(catalog, installer, policy=AutoRejectPolicy())
            return await manager.install_package(catalog.find("new"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.ABORTED
        assert {c.dependency_name for c in result.conflicts} == {"dep"}
        assert installer.calls == []

    def test_conflicts_proceed_when_policy_agrees(self):
        installer = FakeInstaller({"existing": "1.0.0", "dep": "1.0.0"})
        asked = []

        def on_conflicts(package, conflicts):
            asked.append((package.name, len(conflicts)))
            return Decision.PROCEED

        async def scenario():
            catalog = self._conflicting(installer)
            manager = PackageOperationManager(catalog, installer, policy=CallbackPolicy(on_conflicts=on_conflicts))
            return await manager.install_package(catalog.find("new"))

        result = asyncio.run(scenario())

        assert asked and asked[0][0] == "new"
        assert result.state == OperationState.COMPLETED
        assert installer.versions["dep"] == "2.0.0"

    def test_missing_dependencies_need_confirmation(self):
        installer = FakeInstaller()

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(
                catalog, installer, policy=CallbackPolicy(on_dependencies=lambda package, analysis: False)
            )
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.ABORTED
        assert result.error == "aborted: dependencies not confirmed"
        assert installer.calls == []

    def _host_catalog(self, installer, on_install):
        return _catalog(
            [_pkg("P", deps={"com.unity.ugui": "1.0.0"})],
            installer,
            HostIndex(manifest_path=None, on_install=on_install),
        )

    def test_missing_host_packages_requested_after_confirmation(self):
        installer = FakeInstaller()
        requested = []

        async def scenario():
            catalog = self._host_catalog(installer, lambda name, spec: requested.append((name, spec)))
            manager = PackageOperationManager(catalog, installer)
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert requested == [("com.unity.ugui", "1.0.0")]
        assert result.host_requested == ["com.unity.ugui"]
        assert result.delegated == ["com.unity.ugui"]
        assert _installs(installer) == ["P"]

    def test_host_packages_not_requested_when_declined(self):
        installer = FakeInstaller()
        requested = []

        async def scenario():
            catalog = self._host_catalog(installer, lambda name, spec: requested.append(name))
            manager = PackageOperationManager(
                catalog, installer, policy=CallbackPolicy(on_dependencies=lambda package, analysis: False)
            )
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.ABORTED
        assert requested == []
        assert result.host_requested == []

    def test_failed_host_install_is_best_effort(self):
        installer = FakeInstaller()
        errors = []

        def refuse(name, spec):
            raise InstallError(f"host refused {name}")

        async def scenario():
            catalog = self._host_catalog(installer, refuse)
            manager = PackageOperationManager(catalog, installer)
            manager.on_error.subscribe(errors.append)
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.COMPLETED
        assert result.failed == {"com.unity.ugui": "host refused com.unity.ugui"}
        assert result.host_requested == []
        assert _installs(installer) == ["P"]
        assert any("com.unity.ugui" in message for message in errors)


class TestUninstall:
    """Uninstall flow."""

    def test_uninstall_resets_state(self):
        installer = FakeInstaller({"P": "1.0.0"})

        async def scenario():
            catalog = _catalog([_pkg("P", versions=("1.1.0", "1.0.0"))], installer)
            manager = PackageOperationManager(catalog, installer)
            return catalog, await manager.uninstall_package(catalog.find("P"))

        catalog, result = asyncio.run(scenario())

        package = catalog.find("P")
        assert result.state == OperationState.COMPLETED
        assert result.version == "1.0.0"
        assert not package.is_installed
        assert package.local_version is None
        assert not package.has_update
        assert not any(v.is_installed for v in package.versions)

    def test_uninstall_rejected(self):
        installer = FakeInstaller({"P": "1.0.0"})

        async def scenario():
            catalog = _catalog([_pkg("P")], installer)
            manager = PackageOperationManager(catalog, installer, policy=AutoRejectPolicy())
            return catalog, await manager.uninstall_package(catalog.find("P"))

        catalog, result = asyncio.run(scenario())

        assert result.state == OperationState.ABORTED
        assert catalog.find("P").is_installed
        assert installer.calls == []

    def test_uninstall_missing_package_fails(self):
        installer = FakeInstaller()

        async def scenario():
            catalog = _catalog([_pkg("P")], installer)
            manager = PackageOperationManager(catalog, installer)
            return await manager.uninstall_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.FAILED
        assert "does not exist" in result.error


class TestEvents:
    """Notifications raised while operating."""

    def test_event_sequence(self):
        installer = FakeInstaller()
        started, completed, updated, states, progress = [], [], [], [], []

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(catalog, installer)
            manager.on_operation_started.subscribe(started.append)
            manager.on_operation_completed.subscribe(completed.append)
            manager.on_package_updated.subscribe(lambda package: updated.append(package.name))
            manager.on_state_changed.subscribe(states.append)
            manager.on_progress.subscribe(lambda message, fraction: progress.append((message, fraction)))
            result = await manager.install_package(catalog.find("P"))
            return manager, result

        manager, result = asyncio.run(scenario())

        assert started == ["Installing P v1.0.0"]
        assert completed == [result]
        assert updated == ["R", "Q", "P"]
        assert states[0] == OperationState.RESOLVING
        assert OperationState.INSTALLING in states
        assert states[-1] == OperationState.COMPLETED
        assert ("Downloading R v1.2.0", 0.5) in progress
        assert not manager.is_operating
        assert manager.current_operation == ""
        assert manager.state == OperationState.COMPLETED

    def test_broken_subscriber_does_not_stop_install(self):
        installer = FakeInstaller()

        def broken(_package):
            raise RuntimeError("listener bug")

        async def scenario():
            catalog = _catalog([_pkg("P")], installer)
            manager = PackageOperationManager(catalog, installer)
            manager.on_package_updated.subscribe(broken)
            return await manager.install_package(catalog.find("P"))

        result = asyncio.run(scenario())

        assert result.state == OperationState.COMPLETED


class TestConcurrency:
    """Semaphore bound and single-flight installs."""

    def _fan_out(self):
        siblings = ["B", "C", "D", "E"]
        return [_pkg("A", deps={name: "^1.0.0" for name in siblings})] + [_pkg(name) for name in siblings]

    def _peak(self, max_concurrency):
        installer = TrackingInstaller()

        async def scenario():
            catalog = _catalog(self._fan_out(), installer)
            manager = PackageOperationManager(catalog, installer, max_concurrency=max_concurrency)
            return await manager.install_package(catalog.find("A"))

        result = asyncio.run(scenario())
        assert result.state == OperationState.COMPLETED
        assert sorted(_installs(installer)) == ["A", "B", "C", "D", "E"]
        return installer.peak

    def test_single_slot_serializes_siblings(self):
        assert self._peak(1) == 1

    def test_siblings_run_concurrently_up_to_bound(self):
        assert self._peak(2) == 2
        assert self._peak(4) == 4

    def test_concurrent_requests_for_same_package_install_once(self):
        installer = TrackingInstaller()

        async def scenario():
            catalog = _catalog([_pkg("P")], installer)
            manager = PackageOperationManager(catalog, installer, max_concurrency=4)
            package = catalog.find("P")
            return await asyncio.gather(manager.install_package(package), manager.install_package(package))

        first, second = asyncio.run(scenario())

        assert _installs(installer) == ["P"]
        assert first.installed + second.installed == ["P"]
        assert first.skipped + second.skipped == ["P"]
        assert first.succeeded and second.succeeded

    def test_concurrent_requests_share_dependency_installs(self):
        installer = TrackingInstaller()

        async def scenario():
            catalog = _catalog(_chain(), installer)
            manager = PackageOperationManager(catalog, installer, max_concurrency=4)
            package = catalog.find("P")
            await asyncio.gather(manager.install_package(package), manager.install_package(package))
            return manager

        manager = asyncio.run(scenario())

        assert sorted(_installs(installer)) == ["P", "Q", "R"]
        assert not manager.is_operating
