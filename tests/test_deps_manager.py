"""Tests for the local toolchain dependency sequencer."""

from unittest.mock import AsyncMock

import pytest
from fxcore.core.errors import FxSystemError, UncaughtError
from fxcore.deps import (
    DEPENDENCY_ORDER,
    DependencyChecker,
    DependencyInfo,
    DependencyManager,
    DependencySequencer,
    DependencyType,
    sort_by_sequence,
)


def checker(name, installed=True, error=None, bin_folder=None):
    mock = AsyncMock()
    mock.resolve.return_value = installed
    if error is not None:
        mock.resolve.side_effect = error
    details = {"bin_folder": bin_folder} if bin_folder else {}
    mock.get_info.return_value = DependencyInfo(
        name=name, supported_versions=["16", "18"], details=details
    )
    mock.command.return_value = name.lower()
    return mock


class TestSortBySequence:
    def test_follows_installation_order(self):
        assert sort_by_sequence(
            [DependencyType.NGROK, DependencyType.DOTNET, DependencyType.AZURE_NODE]
        ) == [DependencyType.AZURE_NODE, DependencyType.DOTNET, DependencyType.NGROK]

    def test_deduplicates_and_accepts_strings(self):
        assert sort_by_sequence(["dotnet", DependencyType.DOTNET, "ngrok"]) == [
            DependencyType.DOTNET,
            DependencyType.NGROK,
        ]

    def test_order_covers_every_type(self):
        assert set(DEPENDENCY_ORDER) == set(DependencyType)


class TestDependencyManager:
    """ensure_dependencies with and without fast fail."""

    def test_satisfies_protocols(self):
        assert isinstance(DependencyManager({}), DependencySequencer)
        assert isinstance(checker("Node"), DependencyChecker)

    @pytest.mark.asyncio
    async def test_all_installed(self):
        checkers = {
            DependencyType.AZURE_NODE: checker("Node", bin_folder="/opt/node"),
            DependencyType.DOTNET: checker("Dotnet"),
        }
        manager = DependencyManager(checkers)

        statuses = await manager.ensure_dependencies(["dotnet", "azure-node"])

        assert [s.type for s in statuses] == [DependencyType.AZURE_NODE, DependencyType.DOTNET]
        assert all(s.is_installed for s in statuses)
        assert statuses[0].details["bin_folder"] == "/opt/node"
        assert statuses[0].command == "node"
        assert statuses[1].details["supported_versions"] == ["16", "18"]

    @pytest.mark.asyncio
    async def test_fast_fail_stops_installing_but_still_probes(self):
        checkers = {
            DependencyType.AZURE_NODE: checker("Node", installed=False),
            DependencyType.DOTNET: checker("Dotnet"),
            DependencyType.NGROK: checker("Ngrok"),
        }
        manager = DependencyManager(checkers)

        statuses = await manager.ensure_dependencies(list(checkers), fast_fail=True)

        assert [s.is_installed for s in statuses] == [False, False, False]
        checkers[DependencyType.DOTNET].resolve.assert_not_awaited()
        checkers[DependencyType.NGROK].resolve.assert_not_awaited()
        checkers[DependencyType.NGROK].get_info.assert_awaited_once()
        assert statuses[2].name == "Ngrok"

    @pytest.mark.asyncio
    async def test_without_fast_fail_every_tool_is_installed(self):
        checkers = {
            DependencyType.AZURE_NODE: checker("Node", installed=False),
            DependencyType.DOTNET: checker("Dotnet"),
        }
        manager = DependencyManager(checkers)

        statuses = await manager.ensure_dependencies(list(checkers), fast_fail=False)

        assert [s.is_installed for s in statuses] == [False, True]

    @pytest.mark.asyncio
    async def test_checker_exception_is_normalized(self):
        checkers = {DependencyType.DOTNET: checker("Dotnet", error=OSError("disk full"))}
        manager = DependencyManager(checkers)

        statuses = await manager.ensure_dependencies([DependencyType.DOTNET])

        assert not statuses[0].is_installed
        assert isinstance(statuses[0].error, UncaughtError)

    @pytest.mark.asyncio
    async def test_missing_checker(self):
        statuses = await DependencyManager({}).ensure_dependencies([DependencyType.NGROK])

        assert not statuses[0].is_installed
        assert isinstance(statuses[0].error, FxSystemError)

    def test_checkers_required(self):
        with pytest.raises(ValueError):
            DependencyManager(None)
